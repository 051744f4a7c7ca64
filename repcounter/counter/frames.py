from __future__ import annotations
import base64
import threading
import time
from typing import Optional, Protocol

import cv2
import numpy as np


class FrameSourceError(RuntimeError):
    """Camera could not be opened or read."""


class FrameSource(Protocol):
    def grab(self) -> Optional[bytes]:
        """Return one JPEG still of the current instant, or None when nothing is available."""
        ...


def encode_jpeg(frame: np.ndarray, quality: int = 70) -> bytes:
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise FrameSourceError("JPEG encoding failed")
    return buf.tobytes()


class CameraFrameSource:
    """Local webcam through OpenCV. The device is opened on first grab and kept open."""
    def __init__(self, index: int = 0, jpeg_quality: int = 70, capture_factory=None):
        self.index = index
        self.jpeg_quality = jpeg_quality
        self._capture_factory = capture_factory or cv2.VideoCapture
        self.cap = None
        self._closed = False
        self._lock = threading.Lock()

    def grab(self) -> Optional[bytes]:
        with self._lock:
            if self._closed:
                return None  # released; never reopen the device
            if self.cap is None:
                self.cap = self._capture_factory(self.index)
            if not self.cap.isOpened():
                self.cap = None
                raise FrameSourceError("Webcam not available")
            ok, frame = self.cap.read()
        if not ok or frame is None:
            raise FrameSourceError("Webcam returned no frame")
        return encode_jpeg(frame, self.jpeg_quality)

    def release(self):
        with self._lock:
            self._closed = True
            if self.cap is not None:
                self.cap.release()
                self.cap = None


class BrowserFrameSource:
    """
    Latest JPEG pushed by a websocket client.
    No camera, no threads. The server calls push_base64(); the session grabs.
    """
    def __init__(self, max_age_s: float = 3.0):
        self.max_age_s = max_age_s
        self._frame: Optional[bytes] = None
        self._ts = 0.0

    def push(self, data: bytes, ts: Optional[float] = None):
        self._frame = bytes(data)
        self._ts = time.monotonic() if ts is None else ts

    def push_base64(self, data: str):
        # accept raw base64 as well as a full data: URL
        if data.startswith("data:"):
            data = data.split(",", 1)[1]
        self.push(base64.b64decode(data))

    def grab(self) -> Optional[bytes]:
        if self._frame is None:
            return None
        if time.monotonic() - self._ts > self.max_age_s:
            return None  # client stopped sending
        return self._frame
