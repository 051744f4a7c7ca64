from __future__ import annotations
import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


@dataclass
class CounterConfig:
    # Cadence
    sample_interval_s: float = 1.0   # one classified frame per interval
    cooldown_s: float = 0.5          # suppress re-counting right after a rep
    # Frame capture
    camera_index: int = 0
    jpeg_quality: int = 70
    # Classifier
    model: str = "gpt-4o-mini"

    def __post_init__(self):
        if self.sample_interval_s <= 0:
            raise ValueError(f"sample_interval_s must be > 0, got {self.sample_interval_s}")
        if self.cooldown_s < 0:
            raise ValueError(f"cooldown_s must be >= 0, got {self.cooldown_s}")
        if not 1 <= self.jpeg_quality <= 100:
            raise ValueError(f"jpeg_quality must be in 1..100, got {self.jpeg_quality}")

    @classmethod
    def from_env(cls) -> "CounterConfig":
        return cls(
            sample_interval_s=_env_float("REPCOUNTER_SAMPLE_INTERVAL", 1.0),
            cooldown_s=_env_float("REPCOUNTER_COOLDOWN", 0.5),
            camera_index=_env_int("REPCOUNTER_CAMERA", 0),
            jpeg_quality=_env_int("REPCOUNTER_JPEG_QUALITY", 70),
            model=os.getenv("REPCOUNTER_MODEL", "gpt-4o-mini"),
        )
