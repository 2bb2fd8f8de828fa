from dataclasses import dataclass, field
from typing import Dict, Optional

from models import SpecialistId
from .capabilities import (
    AuditSink,
    Classifier,
    ContentExtractor,
    EvidenceGatherer,
    Synthesizer,
    VerificationCache,
)


@dataclass
class Collaborators:
    """Bundle of external capabilities wired into the pipeline at startup."""
    extractor: ContentExtractor
    classifier: Classifier
    synthesizer: Synthesizer
    gatherers: Dict[SpecialistId, EvidenceGatherer] = field(default_factory=dict)
    cache: Optional[VerificationCache] = None
    audit_sink: Optional[AuditSink] = None


__all__ = [
    "AuditSink",
    "Classifier",
    "Collaborators",
    "ContentExtractor",
    "EvidenceGatherer",
    "Synthesizer",
    "VerificationCache",
]
