from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class CalibrationConfig:
    DEFAULT_HEDGE: float = 0.60
    HEDGE_TOLERANCE: float = 0.01
    NUDGE_TARGET: float = 0.62

    BASE_SCORE: float = 0.5
    SOURCE_COUNT_WEIGHT: float = 0.20
    SOURCE_TIER_WEIGHT: float = 0.20
    AGREEMENT_WEIGHT: float = 0.15
    MAX_SOURCES_FOR_FULL_DENSITY: int = 5
    BASE_FLOOR: float = 0.25
    BASE_CEILING: float = 0.90

    CONSENSUS_MIN_SOURCES: int = 3
    CONSENSUS_MAX_AVG_TIER: float = 2.0
    CONSENSUS_BOOST: float = 0.15
    CONSENSUS_CAP: float = 0.95

    CONFLICT_PENALTY: float = 0.10
    CONFLICT_FLOOR: float = 0.35

    HIGH_THRESHOLD: float = 0.75
    MEDIUM_THRESHOLD: float = 0.5


@dataclass(frozen=True)
class SourceTiers:
    """Credibility tiers run from 1 (highest) to 5 (lowest)."""
    HIGHEST: int = 1
    LOWEST: int = 5
    DEFAULT: int = 3


@dataclass(frozen=True)
class ServiceIds:
    """Breaker identifiers for every external collaborator."""
    EXTRACTION: str = "content_extraction"
    CLASSIFIER: str = "classifier"
    SYNTHESIS: str = "synthesis"
    CACHE: str = "verification_cache"
    FACT_CHECK: str = "fact_check_search"
    WEB_SEARCH: str = "web_search"
    WEB_REASONING: str = "web_reasoning"
    AI_IMAGE_DETECTION: str = "ai_image_detection"
    CLAIM_EXTRACTION: str = "claim_extraction"

    @property
    def PRIMARY_EVIDENCE(self) -> str:
        return self.FACT_CHECK

    @property
    def SECONDARY_EVIDENCE(self) -> str:
        return self.WEB_REASONING


@dataclass(frozen=True)
class StrategyConfig:
    # minimum calibrated confidence for a decisive verdict, per stakes level
    CONSENSUS_THRESHOLDS: Dict[str, float] = field(default_factory=lambda: {
        "low": 0.35,
        "medium": 0.45,
        "high": 0.5,
        "critical": 0.6,
    })


CALIBRATION_CONFIG = CalibrationConfig()
SOURCE_TIERS = SourceTiers()
SERVICE_IDS = ServiceIds()
STRATEGY_CONFIG = StrategyConfig()
