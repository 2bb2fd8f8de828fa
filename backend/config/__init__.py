import logging

from .settings import Settings, settings
from .constants import (
    CALIBRATION_CONFIG,
    SOURCE_TIERS,
    SERVICE_IDS,
    STRATEGY_CONFIG,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("verifier")

__all__ = [
    "logger",
    "Settings",
    "settings",
    "CALIBRATION_CONFIG",
    "SOURCE_TIERS",
    "SERVICE_IDS",
    "STRATEGY_CONFIG",
]
