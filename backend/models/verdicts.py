from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .claims import Claim
from .evidence import EvidenceItem, Stance


class Verdict(str, Enum):
    TRUE = "TRUE"
    FALSE = "FALSE"
    MISLEADING = "MISLEADING"
    UNCERTAIN = "UNCERTAIN"
    UNVERIFIABLE = "UNVERIFIABLE"
    SATIRE = "SATIRE"

    @property
    def direction(self) -> Optional[Stance]:
        if self is Verdict.TRUE:
            return Stance.SUPPORTS
        if self in (Verdict.FALSE, Verdict.MISLEADING):
            return Stance.REFUTES
        return None


class PipelineTier(str, Enum):
    FULL = "full"
    REDUCED = "reduced"
    MINIMAL = "minimal"


ConfidenceTier = Literal["High", "Medium", "Low"]


class SynthesisResult(BaseModel):
    """Validated synthesis payload; anything else is a SynthesisError."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    verdict: Verdict
    raw_confidence: float = Field(
        ..., ge=0.0, le=1.0,
        validation_alias=AliasChoices("raw_confidence", "rawConfidence", "confidence")
    )
    summary: str = Field(..., min_length=1)
    cited_urls: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("cited_urls", "citedUrls", "sources")
    )

    @field_validator("verdict", mode="before")
    @classmethod
    def uppercase_verdict(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("verdict")
    @classmethod
    def no_satire_from_synthesis(cls, v: Verdict) -> Verdict:
        if v is Verdict.SATIRE:
            raise ValueError("SATIRE is decided by classification, not synthesis")
        return v


class VerificationResult(BaseModel):
    """Terminal artifact returned by verify()."""
    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    confidence: float = Field(..., ge=0.0, le=1.0)
    confidence_tier: ConfidenceTier = "Low"
    summary: str
    evidence: List[EvidenceItem] = Field(default_factory=list)
    claims: List[Claim] = Field(default_factory=list)
    degraded: bool = False
    degradation_reason: Optional[str] = None
    tier: PipelineTier = PipelineTier.FULL
    fingerprint: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def degraded_needs_reason(self) -> "VerificationResult":
        if self.degraded and not (self.degradation_reason or "").strip():
            raise ValueError("degraded results must state a degradation_reason")
        return self

    def cited_evidence(self) -> List[EvidenceItem]:
        items = list(self.evidence)
        for claim in self.claims:
            items.extend(claim.evidence)
        return items
