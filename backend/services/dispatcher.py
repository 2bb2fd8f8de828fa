import asyncio
import time
from typing import Dict, List, Optional

from pydantic import ValidationError

from config import logger, SERVICE_IDS
from exceptions import SpecialistError
from interfaces import EvidenceGatherer
from models import (
    BreakerTransition,
    ClassificationResult,
    OutcomeStatus,
    SpecialistFindings,
    SpecialistId,
    SpecialistOutcome,
    Strategy,
    VerificationRequest,
)
from utils.circuit_breaker import CircuitBreakerRegistry

SPECIALIST_SERVICES: Dict[SpecialistId, str] = {
    SpecialistId.FACT_CHECK_SEARCH: SERVICE_IDS.FACT_CHECK,
    SpecialistId.WEB_SEARCH: SERVICE_IDS.WEB_SEARCH,
    SpecialistId.WEB_REASONING: SERVICE_IDS.WEB_REASONING,
    SpecialistId.AI_IMAGE_DETECTION: SERVICE_IDS.AI_IMAGE_DETECTION,
    SpecialistId.CLAIM_EXTRACTION: SERVICE_IDS.CLAIM_EXTRACTION,
}


class SpecialistDispatcher:
    """Runs the strategy's specialists concurrently, one outcome per specialist."""

    def __init__(
        self,
        gatherers: Dict[SpecialistId, EvidenceGatherer],
        breakers: CircuitBreakerRegistry
    ):
        self.gatherers = gatherers
        self.breakers = breakers

    async def dispatch(
        self,
        strategy: Strategy,
        request: VerificationRequest,
        classification: ClassificationResult,
        claim: Optional[str] = None,
        transitions: Optional[List[BreakerTransition]] = None
    ) -> List[SpecialistOutcome]:
        """
        Dispatch every specialist named by the strategy and wait for all to settle.
        Args:
            strategy: Specialists to run with their timeouts
            request: The submission (media specialists inspect its content)
            classification: Result of the Classify stage
            claim: Claim text extracted at Intake
            transitions: Collector for breaker transitions caused by this dispatch
        Returns:
            Exactly one SpecialistOutcome per requested specialist, unordered
        """
        claim_text = claim or request.claim_text or request.content
        tasks = [
            self._run_specialist(
                specialist,
                strategy.timeout_for(specialist),
                self._subject_for(specialist, request, claim_text),
                transitions,
            )
            for specialist in strategy.specialists
        ]
        if not tasks:
            logger.warning("No specialists selected for dispatch.")
            return []

        outcomes = await asyncio.gather(*tasks)

        failed = [o for o in outcomes if not o.succeeded]
        logger.info(
            f"Dispatched {len(outcomes)} specialists, {len(failed)} did not succeed.",
            extra={
                "specialists": [o.specialist for o in outcomes],
                "statuses": [o.status.value for o in outcomes],
                "stakes": classification.stakes.value,
            }
        )
        return list(outcomes)

    @staticmethod
    def _subject_for(specialist: SpecialistId, request: VerificationRequest, claim_text: str) -> str:
        # image detection inspects the submitted media, not the claim
        if specialist == SpecialistId.AI_IMAGE_DETECTION:
            return request.content
        return claim_text

    async def _run_specialist(
        self,
        specialist: SpecialistId,
        timeout: float,
        subject: str,
        transitions: Optional[List[BreakerTransition]]
    ) -> SpecialistOutcome:
        name = specialist.value
        gatherer = self.gatherers.get(specialist)
        if gatherer is None:
            logger.error(f"No gatherer registered for specialist {name}")
            return SpecialistOutcome(
                specialist=name,
                status=OutcomeStatus.FAILED,
                error="No gatherer registered for this specialist",
            )

        service_id = SPECIALIST_SERVICES[specialist]
        if not self.breakers.permits(service_id, transitions):
            return SpecialistOutcome(specialist=name, status=OutcomeStatus.SKIPPED_BREAKER_OPEN)

        start = time.perf_counter()
        try:
            raw = await asyncio.wait_for(gatherer.gather_evidence(specialist, subject), timeout=timeout)
            findings = self._normalize(raw)
        except asyncio.CancelledError:
            # cancellation is not a service failure
            self.breakers.release(service_id)
            raise
        except asyncio.TimeoutError:
            self.breakers.record_failure(service_id, transitions)
            logger.warning(
                f"Specialist {name} timed out after {timeout}s",
                extra={"specialist": name, "timeout": timeout}
            )
            return SpecialistOutcome(
                specialist=name,
                status=OutcomeStatus.TIMED_OUT,
                error=f"Timed out after {timeout}s",
                latency_ms=self._elapsed_ms(start),
            )
        except Exception as e:
            self.breakers.record_failure(service_id, transitions)
            error = e if isinstance(e, SpecialistError) else SpecialistError(name, f"{type(e).__name__}: {e}")
            logger.error(error.message, extra={**error.details, "error_type": type(e).__name__})
            return SpecialistOutcome(
                specialist=name,
                status=OutcomeStatus.FAILED,
                error=error.message,
                latency_ms=self._elapsed_ms(start),
            )

        self.breakers.record_success(service_id, transitions)
        return SpecialistOutcome(
            specialist=name,
            status=OutcomeStatus.SUCCEEDED,
            evidence=findings.evidence,
            claims=findings.claims,
            sub_verdict=findings.sub_verdict,
            raw_confidence=findings.raw_confidence,
            latency_ms=self._elapsed_ms(start),
        )

    @staticmethod
    def _normalize(raw) -> SpecialistFindings:
        """Accept a bare evidence list or SpecialistFindings (models or plain dicts)."""
        if isinstance(raw, SpecialistFindings):
            return raw
        try:
            if isinstance(raw, list):
                return SpecialistFindings(evidence=raw)
            if isinstance(raw, dict):
                return SpecialistFindings.model_validate(raw)
        except ValidationError as e:
            raise ValueError(f"Invalid specialist payload: {e.error_count()} validation errors") from e
        raise ValueError(f"Unexpected specialist payload type: {type(raw).__name__}")

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return round((time.perf_counter() - start) * 1000, 2)
