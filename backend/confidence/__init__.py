from .calibrator import ConfidenceCalibrator
from .signals import SignalExtractor

__all__ = [
    "ConfidenceCalibrator",
    "SignalExtractor",
]
