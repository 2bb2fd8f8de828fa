"""
Capability contracts consumed by the verification pipeline.

Concrete adapters (OCR, transcription, search providers, model clients,
result storage) live outside this package and only need to implement
these classes. Every call made through them is gated by the circuit
breaker registry, so adapters should raise on failure rather than return
placeholder data.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from models import (
    AuditRecord,
    Claim,
    ClassificationResult,
    EvidenceItem,
    SpecialistFindings,
    SpecialistId,
    SynthesisResult,
    VerificationRequest,
    VerificationResult,
)


class ContentExtractor(ABC):
    """OCR, transcription and URL extraction."""

    @abstractmethod
    async def extract_content(self, request: VerificationRequest) -> str:
        """
        Turn the submitted content reference into plain text.
        Raises:
            IntakeError: nothing usable could be extracted.
        """
        ...


class Classifier(ABC):

    @abstractmethod
    async def classify(self, text: str) -> Union[ClassificationResult, Dict[str, Any], str]:
        """
        Classify extracted text.
        Returns:
            A ClassificationResult, or a raw dict / model text holding one JSON
            object; the pipeline validates anything that is not already a model.
        Raises:
            ClassificationError
        """
        ...


class EvidenceGatherer(ABC):
    """One evidence specialist (fact-check search, web search, ...)."""

    @abstractmethod
    async def gather_evidence(
        self,
        specialist_id: SpecialistId,
        claim: str
    ) -> Union[List[EvidenceItem], SpecialistFindings]:
        ...


class Synthesizer(ABC):

    @abstractmethod
    async def synthesize(
        self,
        evidence: List[EvidenceItem],
        claims: List[Claim],
        corrective_instruction: Optional[str] = None
    ) -> Union[SynthesisResult, Dict[str, Any], str]:
        """
        Produce a verdict grounded only in the given evidence.
        Args:
            evidence: Aggregated evidence from successful specialists
            claims: Claims under verification with their own evidence
            corrective_instruction: Set on the retry after a failed validation
        Raises:
            SynthesisError
        """
        ...


class VerificationCache(ABC):

    @abstractmethod
    async def lookup(self, fingerprint: str) -> Optional[VerificationResult]:
        ...

    @abstractmethod
    async def store(self, fingerprint: str, result: VerificationResult) -> None:
        ...


class AuditSink(ABC):

    @abstractmethod
    async def emit(self, record: AuditRecord) -> None:
        ...
