from .strategy import build_strategy, apply_tier
from .dispatcher import SpecialistDispatcher
from .router import DegradationRouter, RoutingContext, TierDecision
from .synthesis import EvidenceSynthesis, SynthesisValidator
from .pipeline import VerificationPipeline
from .verification_service import VerificationService
from .audit import LoggingAuditSink

__all__ = [
    "build_strategy",
    "apply_tier",
    "SpecialistDispatcher",
    "DegradationRouter",
    "RoutingContext",
    "TierDecision",
    "EvidenceSynthesis",
    "SynthesisValidator",
    "VerificationPipeline",
    "VerificationService",
    "LoggingAuditSink",
]
