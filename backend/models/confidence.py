from pydantic import BaseModel, ConfigDict, Field


class ConfidenceSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_count: int = Field(0, ge=0)
    avg_source_tier: float = Field(5.0, ge=1.0, le=5.0)
    fact_checker_agreement: float = Field(0.0, ge=0.0, le=1.0)
    conflicting_verdicts: bool = False


class CalibrationAdjustment(BaseModel):
    model_config = ConfigDict(frozen=True)

    factor: str
    delta: float
    reason: str
