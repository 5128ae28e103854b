"""
Engine configuration.

Defaults can be overridden through environment variables:
- GAMESIM_TIMESTEP_MS: fixed tick timestep (clamped to 1-100 ms)
- GAMESIM_MAX_FRAME_MS: largest frame time fed to the accumulator
- GAMESIM_FRAME_INTERVAL_MS: how often the background loop wakes up
- GAMESIM_LOG_LEVEL: logging level for configure_logging()
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring invalid %s=%r", name, raw)
        return default


@dataclass(frozen=True)
class EngineConfig:
    """Settings shared by every room a process hosts."""
    timestep_ms: float = 16.0
    max_frame_ms: float = 50.0
    frame_interval_ms: float = 1.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> EngineConfig:
        return cls(
            timestep_ms=_float_env("GAMESIM_TIMESTEP_MS", cls.timestep_ms),
            max_frame_ms=_float_env("GAMESIM_MAX_FRAME_MS", cls.max_frame_ms),
            frame_interval_ms=_float_env("GAMESIM_FRAME_INTERVAL_MS", cls.frame_interval_ms),
            log_level=os.getenv("GAMESIM_LOG_LEVEL", cls.log_level).upper(),
        )


def configure_logging(level: str | int | None = None):
    """Install a basic stderr handler at the given (or configured) level."""
    if level is None:
        level = EngineConfig.from_env().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
