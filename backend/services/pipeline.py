"""
Verification pipeline state machine.

Intake -> Classify -> Strategy -> Specialists -> Synthesis -> Output

Every state may exit straight to Output. Output is the only place a
VerificationResult is built.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from config import logger, settings, SERVICE_IDS
from confidence import ConfidenceCalibrator, SignalExtractor
from exceptions import BreakerOpenError, ClassificationError, IntakeError
from interfaces import Collaborators
from middleware.context import get_request_id
from models import (
    AuditRecord,
    Claim,
    ClassificationResult,
    EvidenceItem,
    InputKind,
    OutcomeStatus,
    PipelineTier,
    SpecialistOutcome,
    StageName,
    StageRecord,
    StageStatus,
    Strategy,
    Verdict,
    VerificationRequest,
    VerificationResult,
)
from utils.circuit_breaker import CircuitBreakerRegistry
from utils.fingerprint import content_fingerprint
from utils.retry import async_retry
from .dispatcher import SpecialistDispatcher
from .payloads import coerce_classification
from .router import DegradationRouter, RoutingContext
from .strategy import apply_tier, build_strategy
from .synthesis import EvidenceSynthesis

UNDECIDED = (Verdict.UNCERTAIN, Verdict.UNVERIFIABLE, Verdict.SATIRE)


@dataclass
class PipelineRun:
    """Mutable per-request state. Never shared between requests."""
    request: VerificationRequest
    started: float
    audit: AuditRecord
    fingerprint: str
    text: Optional[str] = None
    claim: Optional[str] = None
    classification: Optional[ClassificationResult] = None
    strategy: Optional[Strategy] = None
    tier: PipelineTier = PipelineTier.FULL
    degradation_notes: List[str] = field(default_factory=list)

    def degrade(self, note: str) -> None:
        if note and note not in self.degradation_notes:
            self.degradation_notes.append(note)


class VerificationPipeline:

    def __init__(
        self,
        collaborators: Collaborators,
        breakers: CircuitBreakerRegistry,
        router: DegradationRouter = None,
        calibrator: ConfidenceCalibrator = None,
        signal_extractor: SignalExtractor = None,
        dispatcher: SpecialistDispatcher = None,
        synthesis: EvidenceSynthesis = None,
        latency_ceiling: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.collaborators = collaborators
        self.breakers = breakers
        self.router = router or DegradationRouter()
        self.calibrator = calibrator or ConfidenceCalibrator()
        self.signals = signal_extractor or SignalExtractor()
        self.dispatcher = dispatcher or SpecialistDispatcher(collaborators.gatherers, breakers)
        self.synthesis = synthesis or EvidenceSynthesis(collaborators.synthesizer, breakers)
        self.latency_ceiling = latency_ceiling or settings.PIPELINE_LATENCY_CEILING
        self.clock = clock

    def start(self, request: VerificationRequest) -> PipelineRun:
        fingerprint = content_fingerprint(request)
        return PipelineRun(
            request=request,
            started=self.clock(),
            fingerprint=fingerprint,
            audit=AuditRecord(
                request_id=get_request_id() or str(uuid.uuid4()),
                fingerprint=fingerprint,
            ),
        )

    def elapsed(self, run: PipelineRun) -> float:
        return self.clock() - run.started

    async def run(self, run: PipelineRun) -> VerificationResult:
        # Intake
        try:
            await self._intake(run)
        except IntakeError as e:
            return self.output(
                run,
                verdict=Verdict.UNVERIFIABLE,
                summary=f"The submission could not be verified: {e.details.get('reason', e.message)}.",
            )

        # Classify
        run.classification = await self._classify(run)
        if run.classification.satire:
            source = run.classification.known_source
            summary = (
                f"This content comes from {source}, a known satire source."
                if source else "This content was identified as satire."
            )
            return self.output(
                run,
                verdict=Verdict.SATIRE,
                summary=summary,
                raw_confidence=settings.SATIRE_CONFIDENCE,
            )

        # Strategy
        started = self.clock()
        run.strategy = build_strategy(run.classification)
        self._record(
            run, StageName.STRATEGY, StageStatus.SUCCEEDED, started,
            ",".join(s.value for s in run.strategy.specialists),
        )

        # Specialists
        decision = self.router.select_tier(self._routing_context(run, StageName.SPECIALISTS, run.strategy.max_timeout))
        run.tier = decision.tier
        run.audit.tier = decision.tier
        if decision.tier == PipelineTier.MINIMAL:
            self._record(run, StageName.SPECIALISTS, StageStatus.SKIPPED, self.clock(), decision.reason)
            return self.minimal(run, decision.reason)
        if decision.reason:
            run.degrade(decision.reason)

        started = self.clock()
        outcomes = await self.dispatcher.dispatch(
            apply_tier(run.strategy, run.tier),
            run.request,
            run.classification,
            claim=run.claim,
            transitions=run.audit.breaker_transitions,
        )
        self._note_failed_specialists(run, outcomes)
        self._record(
            run, StageName.SPECIALISTS,
            StageStatus.SUCCEEDED if any(o.succeeded for o in outcomes) else StageStatus.FAILED,
            started,
            ", ".join(f"{o.specialist}={o.status.value}" for o in outcomes),
        )

        # Synthesis
        evidence = self.signals.unique_evidence(o for o in outcomes if o.succeeded)
        claims = self._collect_claims(outcomes)
        if not evidence:
            self._record(run, StageName.SYNTHESIS, StageStatus.SKIPPED, self.clock(), "no evidence")
            summary = (
                "No evidence could be gathered for this claim, so no verdict was reached."
                if run.degradation_notes else
                "No relevant evidence was found for this claim, so no verdict was reached."
            )
            return self.output(run, verdict=Verdict.UNCERTAIN, summary=summary, outcomes=outcomes, claims=claims)

        decision = self.router.select_tier(self._routing_context(run, StageName.SYNTHESIS, self.synthesis.timeout))
        if decision.tier == PipelineTier.MINIMAL:
            self._record(run, StageName.SYNTHESIS, StageStatus.SKIPPED, self.clock(), decision.reason)
            return self.minimal(run, decision.reason)

        started = self.clock()
        attempt = await self.synthesis.run(
            evidence,
            claims or [Claim(text=run.claim)],
            transitions=run.audit.breaker_transitions,
        )
        if not attempt.accepted:
            self._record(run, StageName.SYNTHESIS, StageStatus.FAILED, started, "; ".join(attempt.failures))
            run.degrade("The evidence could not be summarised into a reliable verdict.")
            return self.output(
                run,
                verdict=Verdict.UNCERTAIN,
                summary="Evidence was gathered but no reliable verdict could be derived from it.",
                outcomes=outcomes,
                evidence=self._top_level_evidence(outcomes),
                claims=claims,
            )
        self._record(run, StageName.SYNTHESIS, StageStatus.SUCCEEDED, started, f"attempts={attempt.attempts}")

        result = attempt.result
        return self.output(
            run,
            verdict=result.verdict,
            summary=result.summary,
            raw_confidence=result.raw_confidence,
            outcomes=outcomes,
            evidence=self._top_level_evidence(outcomes),
            claims=claims,
        )

    def minimal(self, run: PipelineRun, reason: Optional[str]) -> VerificationResult:
        """Minimal tier: no evidence, UNCERTAIN, always degraded."""
        run.tier = PipelineTier.MINIMAL
        run.degrade(reason or "Verification ran in minimal mode.")
        return self.output(
            run,
            verdict=Verdict.UNCERTAIN,
            summary="The claim could not be checked right now; no verdict was reached.",
        )

    def output(
        self,
        run: PipelineRun,
        verdict: Verdict,
        summary: str,
        raw_confidence: Optional[float] = None,
        outcomes: Iterable[SpecialistOutcome] = (),
        evidence: Iterable[EvidenceItem] = (),
        claims: Iterable[Claim] = ()
    ) -> VerificationResult:
        started = self.clock()
        outcomes = list(outcomes)
        evidence = list(evidence)
        claims = list(claims)
        has_evidence = bool(evidence) or any(c.evidence for c in claims)

        # stages never pass a decided verdict without evidence; guard against callers that do
        if verdict not in UNDECIDED and not has_evidence and run.tier != PipelineTier.MINIMAL:
            logger.warning(f"Verdict {verdict.value} had no supporting evidence, reporting UNCERTAIN")
            run.degrade("The verdict could not be tied to any evidence.")
            verdict, raw_confidence = Verdict.UNCERTAIN, None

        confidence = 0.0
        if raw_confidence is not None:
            confidence = self.calibrator.calibrate(
                raw_confidence,
                self.signals.extract(outcomes, verdict),
                audit=run.audit.calibration_adjustments,
            )

        if (
            verdict.direction is not None
            and run.strategy is not None
            and confidence < run.strategy.consensus_threshold
        ):
            summary = (
                f"{summary} The evidence leans {verdict.value} but does not reach the confidence "
                f"required for {run.classification.stakes.value}-stakes claims."
            )
            verdict = Verdict.UNCERTAIN

        if run.tier == PipelineTier.MINIMAL:
            run.degrade("Verification ran in minimal mode.")

        degraded = bool(run.degradation_notes)
        result = VerificationResult(
            verdict=verdict,
            confidence=confidence,
            confidence_tier=self.calibrator.get_confidence_tier(confidence),
            summary=summary,
            evidence=evidence,
            claims=claims,
            degraded=degraded,
            degradation_reason=" ".join(run.degradation_notes) if degraded else None,
            tier=run.tier,
            fingerprint=run.fingerprint,
        )

        run.audit.tier = run.tier
        run.audit.degraded = degraded
        self._record(run, StageName.OUTPUT, StageStatus.SUCCEEDED, started, verdict.value)
        logger.info(
            f"Verification finished: {verdict.value} ({confidence:.2f}) in {self.elapsed(run):.2f}s",
            extra={
                "request_id": run.audit.request_id,
                "verdict": verdict.value,
                "confidence": confidence,
                "tier": run.tier.value,
                "degraded": degraded,
            }
        )
        return result

    async def _intake(self, run: PipelineRun) -> None:
        started = self.clock()
        request = run.request
        try:
            if request.input_kind == InputKind.TEXT:
                text = request.content
            else:
                text = await self.breakers.call(
                    SERVICE_IDS.EXTRACTION,
                    self.collaborators.extractor.extract_content,
                    request,
                    timeout=settings.INTAKE_TIMEOUT,
                    transitions=run.audit.breaker_transitions,
                )
        except IntakeError as e:
            self._record(run, StageName.INTAKE, StageStatus.FAILED, started, e.message)
            raise
        except BreakerOpenError as e:
            self._record(run, StageName.INTAKE, StageStatus.FAILED, started, e.message)
            run.degrade("The content extraction service is unavailable.")
            raise IntakeError("content extraction service unavailable") from e
        except asyncio.TimeoutError as e:
            self._record(run, StageName.INTAKE, StageStatus.FAILED, started, "timeout")
            run.degrade("Content extraction timed out.")
            raise IntakeError("content extraction timed out") from e
        except Exception as e:
            logger.exception("Content extraction failed.")
            self._record(run, StageName.INTAKE, StageStatus.FAILED, started, f"{type(e).__name__}: {e}")
            run.degrade("The content extraction service failed.")
            raise IntakeError("content extraction failed") from e

        text = " ".join((text or "").split())
        if not text:
            self._record(run, StageName.INTAKE, StageStatus.FAILED, started, "empty")
            raise IntakeError("no text could be extracted from the submission")

        run.text = text
        run.claim = request.claim_text or text
        self._record(run, StageName.INTAKE, StageStatus.SUCCEEDED, started, f"{len(text)} chars")

    async def _classify(self, run: PipelineRun) -> ClassificationResult:
        started = self.clock()
        classify = async_retry(
            max_attempts=2,
            base_delay=0.0,
            exceptions=(ClassificationError,),
            label="classify",
        )(self._classify_once)

        try:
            classification = await classify(run.text, run)
        except (ClassificationError, BreakerOpenError) as e:
            logger.warning(f"Classification unavailable, applying conservative defaults: {e}")
            self._record(run, StageName.CLASSIFY, StageStatus.FAILED, started, str(e))
            run.degrade("Content classification was unavailable, so conservative high-stakes defaults were applied.")
            return ClassificationResult.conservative_default(
                ai_detection_relevant=run.request.input_kind in (InputKind.IMAGE, InputKind.VIDEO)
            )

        self._record(
            run, StageName.CLASSIFY,
            StageStatus.SHORT_CIRCUITED if classification.satire else StageStatus.SUCCEEDED,
            started,
            f"{classification.content_type.value}/{classification.stakes.value}",
        )
        return classification

    async def _classify_once(self, text: str, run: PipelineRun) -> ClassificationResult:
        try:
            raw = await self.breakers.call(
                SERVICE_IDS.CLASSIFIER,
                self.collaborators.classifier.classify,
                text,
                timeout=settings.CLASSIFY_TIMEOUT,
                transitions=run.audit.breaker_transitions,
            )
        except (ClassificationError, BreakerOpenError):
            raise
        except asyncio.TimeoutError as e:
            raise ClassificationError("classifier timed out") from e
        except Exception as e:
            raise ClassificationError(f"{type(e).__name__}: {e}") from e
        return coerce_classification(raw)

    def _routing_context(self, run: PipelineRun, stage: StageName, upcoming: float) -> RoutingContext:
        return RoutingContext(
            breakers=self.breakers,
            stage=stage,
            elapsed=self.elapsed(run),
            latency_ceiling=self.latency_ceiling,
            upcoming_budget=upcoming,
        )

    @staticmethod
    def _note_failed_specialists(run: PipelineRun, outcomes: List[SpecialistOutcome]) -> None:
        failed = [o for o in outcomes if o.status != OutcomeStatus.SUCCEEDED]
        if not failed:
            return
        described = ", ".join(f"{o.specialist} ({o.status.value.replace('_', ' ')})" for o in failed)
        run.degrade(f"Some evidence sources did not respond: {described}.")

    @staticmethod
    def _top_level_evidence(outcomes: List[SpecialistOutcome]) -> List[EvidenceItem]:
        seen = set()
        items = []
        for outcome in outcomes:
            if not outcome.succeeded:
                continue
            for item in outcome.evidence:
                if item.source_url not in seen:
                    seen.add(item.source_url)
                    items.append(item)
        return items

    @staticmethod
    def _collect_claims(outcomes: List[SpecialistOutcome]) -> List[Claim]:
        claims = []
        for outcome in outcomes:
            if outcome.succeeded:
                claims.extend(outcome.claims)
        return claims

    def _record(
        self,
        run: PipelineRun,
        stage: StageName,
        status: StageStatus,
        started: float,
        detail: Optional[str] = None
    ) -> None:
        latency_ms = round((self.clock() - started) * 1000, 2)
        run.audit.stages.append(StageRecord(stage=stage, status=status, latency_ms=latency_ms, detail=detail))
        logger.info(
            f"Stage {stage.value} {status.value} in {latency_ms}ms",
            extra={
                "request_id": run.audit.request_id,
                "stage": stage.value,
                "status": status.value,
                "latency_ms": latency_ms,
            }
        )
