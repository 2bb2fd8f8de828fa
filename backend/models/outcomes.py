from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .claims import Claim
from .evidence import EvidenceItem
from .verdicts import Verdict


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    SKIPPED_BREAKER_OPEN = "skipped_breaker_open"


class SpecialistFindings(BaseModel):
    """What a gatherer may return instead of a bare evidence list."""
    model_config = ConfigDict(frozen=True)

    evidence: List[EvidenceItem] = Field(default_factory=list)
    claims: List[Claim] = Field(default_factory=list)
    sub_verdict: Optional[Verdict] = None
    raw_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class SpecialistOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    specialist: str
    status: OutcomeStatus
    evidence: List[EvidenceItem] = Field(default_factory=list)
    claims: List[Claim] = Field(default_factory=list)
    sub_verdict: Optional[Verdict] = None
    raw_confidence: Optional[float] = None
    error: Optional[str] = None
    latency_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED
