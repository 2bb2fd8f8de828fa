from .evidence import EvidenceItem, Stance
from .claims import (
    Claim,
    ClassificationResult,
    ContentType,
    InputKind,
    StakesLevel,
    VerificationRequest,
)
from .verdicts import (
    ConfidenceTier,
    PipelineTier,
    SynthesisResult,
    Verdict,
    VerificationResult,
)
from .outcomes import OutcomeStatus, SpecialistFindings, SpecialistOutcome
from .strategy import SpecialistId, Strategy
from .confidence import CalibrationAdjustment, ConfidenceSignals
from .audit import AuditRecord, BreakerTransition, StageName, StageRecord, StageStatus

__all__ = [
    "EvidenceItem",
    "Stance",

    "Claim",
    "ClassificationResult",
    "ContentType",
    "InputKind",
    "StakesLevel",
    "VerificationRequest",

    "ConfidenceTier",
    "PipelineTier",
    "SynthesisResult",
    "Verdict",
    "VerificationResult",

    "OutcomeStatus",
    "SpecialistFindings",
    "SpecialistOutcome",

    "SpecialistId",
    "Strategy",

    "CalibrationAdjustment",
    "ConfidenceSignals",

    "AuditRecord",
    "BreakerTransition",
    "StageName",
    "StageRecord",
    "StageStatus",
]
