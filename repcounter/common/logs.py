from __future__ import annotations
import logging
import os
from typing import Optional

FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Root logger setup for the CLI and the server. Level falls back to REPCOUNTER_LOG_LEVEL."""
    name = (level or os.getenv("REPCOUNTER_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=FORMAT)
