from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .confidence import CalibrationAdjustment
from .verdicts import PipelineTier


class StageName(str, Enum):
    CACHE = "cache"
    INTAKE = "intake"
    CLASSIFY = "classify"
    STRATEGY = "strategy"
    SPECIALISTS = "specialists"
    SYNTHESIS = "synthesis"
    OUTPUT = "output"


class StageStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SHORT_CIRCUITED = "short_circuited"
    SKIPPED = "skipped"


class StageRecord(BaseModel):
    stage: StageName
    status: StageStatus
    latency_ms: float
    detail: Optional[str] = None


class BreakerTransition(BaseModel):
    service: str
    from_state: str
    to_state: str
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuditRecord(BaseModel):
    """Per-request trail handed to the audit sink once the result exists."""
    request_id: str
    fingerprint: Optional[str] = None
    stages: List[StageRecord] = Field(default_factory=list)
    breaker_transitions: List[BreakerTransition] = Field(default_factory=list)
    calibration_adjustments: List[CalibrationAdjustment] = Field(default_factory=list)
    tier: Optional[PipelineTier] = None
    degraded: bool = False
    cache_hit: bool = False
