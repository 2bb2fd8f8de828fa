import asyncio
import re
from dataclasses import dataclass, field
from typing import List, Optional

from config import logger, settings, CALIBRATION_CONFIG, SERVICE_IDS
from exceptions import BreakerOpenError, SynthesisError
from interfaces import Synthesizer
from models import (
    BreakerTransition,
    Claim,
    EvidenceItem,
    Stance,
    SynthesisResult,
)
from utils.circuit_breaker import CircuitBreakerRegistry
from .payloads import coerce_synthesis

URL_PATTERN = re.compile(r"https?://[^\s)\]>\"']+")
SOURCE_REF_PATTERN = re.compile(r"\bSource_(\d+)\b")
AFFIRMS_CLAIM = re.compile(
    r"\bclaim (is|was|appears|seems) (true|accurate|correct|confirmed|supported)\b",
    re.IGNORECASE,
)
REFUTES_CLAIM = re.compile(
    r"\bclaim (is|was|appears|seems) (false|inaccurate|incorrect|fabricated|debunked|unsupported)\b",
    re.IGNORECASE,
)


@dataclass
class SynthesisAttempt:
    result: Optional[SynthesisResult] = None
    failures: List[str] = field(default_factory=list)
    attempts: int = 0

    @property
    def accepted(self) -> bool:
        return self.result is not None and not self.failures


class SynthesisValidator:
    """Checklist a synthesis result must pass before the pipeline accepts it."""

    def __init__(self, hedge_value: Optional[float] = None, hedge_tolerance: Optional[float] = None):
        self.hedge_value = hedge_value if hedge_value is not None else CALIBRATION_CONFIG.DEFAULT_HEDGE
        self.hedge_tolerance = hedge_tolerance if hedge_tolerance is not None else CALIBRATION_CONFIG.HEDGE_TOLERANCE

    def check(self, result: SynthesisResult, evidence: List[EvidenceItem]) -> List[str]:
        failures = []
        for check in (self.check_direction, self.check_confidence, self.check_grounded, self.check_coherence):
            problem = check(result, evidence)
            if problem:
                failures.append(problem)
        return failures

    @staticmethod
    def evidence_majority(evidence: List[EvidenceItem]) -> Optional[Stance]:
        supports = sum(1 for e in evidence if e.stance == Stance.SUPPORTS)
        refutes = sum(1 for e in evidence if e.stance == Stance.REFUTES)
        if supports > refutes:
            return Stance.SUPPORTS
        if refutes > supports:
            return Stance.REFUTES
        return None

    def check_direction(self, result: SynthesisResult, evidence: List[EvidenceItem]) -> Optional[str]:
        direction = result.verdict.direction
        majority = self.evidence_majority(evidence)
        if direction is not None and majority is not None and direction != majority:
            return (
                f"direction: verdict {result.verdict.value} {direction.value} the claim "
                f"but most evidence {majority.value} it"
            )
        return None

    def check_confidence(self, result: SynthesisResult, evidence: List[EvidenceItem]) -> Optional[str]:
        if abs(result.raw_confidence - self.hedge_value) < self.hedge_tolerance:
            return f"confidence: {result.raw_confidence:.2f} is the untouched default, derive it from the evidence"
        return None

    def check_grounded(self, result: SynthesisResult, evidence: List[EvidenceItem]) -> Optional[str]:
        known = {e.source_url.rstrip("/") for e in evidence}
        cited = set(u.rstrip("/") for u in result.cited_urls)
        cited.update(u.rstrip(".,;:/") for u in URL_PATTERN.findall(result.summary))
        unknown = sorted(u for u in cited if u not in known and u.rstrip("/") not in known)
        if unknown:
            return f"grounding: cites sources that were not provided ({', '.join(unknown[:3])})"

        for ref in SOURCE_REF_PATTERN.findall(result.summary):
            if not 1 <= int(ref) <= len(evidence):
                return f"grounding: refers to Source_{ref} but only {len(evidence)} sources were provided"
        return None

    def check_coherence(self, result: SynthesisResult, evidence: List[EvidenceItem]) -> Optional[str]:
        direction = result.verdict.direction
        if direction == Stance.REFUTES and AFFIRMS_CLAIM.search(result.summary):
            return f"coherence: summary affirms the claim while the verdict is {result.verdict.value}"
        if direction == Stance.SUPPORTS and REFUTES_CLAIM.search(result.summary):
            return "coherence: summary refutes the claim while the verdict is TRUE"
        return None


class EvidenceSynthesis:
    """
    Calls the synthesis collaborator with evidence only, validates the answer and
    retries once with a corrective instruction. Never called with empty evidence.
    """

    def __init__(
        self,
        synthesizer: Synthesizer,
        breakers: CircuitBreakerRegistry,
        validator: SynthesisValidator = None,
        timeout: Optional[float] = None,
        max_attempts: int = 2
    ):
        self.synthesizer = synthesizer
        self.breakers = breakers
        self.validator = validator or SynthesisValidator()
        self.timeout = timeout or settings.SYNTHESIS_TIMEOUT
        self.max_attempts = max_attempts

    async def run(
        self,
        evidence: List[EvidenceItem],
        claims: List[Claim],
        transitions: Optional[List[BreakerTransition]] = None
    ) -> SynthesisAttempt:
        if not evidence:
            raise ValueError("Synthesis requires at least one evidence item")

        attempt = SynthesisAttempt()
        instruction = None

        while attempt.attempts < self.max_attempts:
            attempt.attempts += 1
            try:
                raw = await self.breakers.call(
                    SERVICE_IDS.SYNTHESIS,
                    self.synthesizer.synthesize,
                    evidence,
                    claims,
                    instruction,
                    timeout=self.timeout,
                    transitions=transitions,
                )
                result = coerce_synthesis(raw)
            except BreakerOpenError as e:
                attempt.result = None
                attempt.failures = [f"unavailable: {e.message}"]
                logger.warning("Synthesis skipped, breaker open.")
                return attempt
            except asyncio.TimeoutError:
                attempt.result = None
                attempt.failures = [f"timeout: no answer within {self.timeout}s"]
            except SynthesisError as e:
                attempt.result = None
                attempt.failures = [f"error: {e.message}"]
            except Exception as e:
                logger.exception("Unexpected error during synthesis.")
                attempt.result = None
                attempt.failures = [f"error: {type(e).__name__}: {e}"]
            else:
                attempt.result = result
                attempt.failures = self.validator.check(result, evidence)

            if attempt.accepted:
                return attempt

            logger.warning(
                f"Synthesis attempt {attempt.attempts} rejected: {'; '.join(attempt.failures)}",
                extra={"attempt": attempt.attempts, "failures": attempt.failures}
            )
            instruction = self.corrective_instruction(attempt.failures)

        return attempt

    @staticmethod
    def corrective_instruction(failures: List[str]) -> str:
        lines = [
            "Your previous answer was rejected. Use ONLY the provided evidence and fix:",
        ]
        lines.extend(f"- {f}" for f in failures)
        lines.append(
            "If the evidence does not support a clear conclusion, answer UNCERTAIN."
        )
        return "\n".join(lines)
