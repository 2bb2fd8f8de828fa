import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from exceptions import IntakeError, SpecialistError  # noqa: E402
from interfaces import (  # noqa: E402
    Classifier,
    Collaborators,
    ContentExtractor,
    EvidenceGatherer,
    Synthesizer,
    VerificationCache,
)
from models import (  # noqa: E402
    ClassificationResult,
    ContentType,
    EvidenceItem,
    SpecialistId,
    StakesLevel,
    Stance,
)
from utils.circuit_breaker import CircuitBreakerRegistry  # noqa: E402


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_evidence(
    count: int,
    tier: int = 1,
    stance: Optional[Stance] = None,
    specialist: str = "fact_check_search",
    prefix: str = "https://example.org/source"
) -> List[EvidenceItem]:
    return [
        EvidenceItem(
            source_url=f"{prefix}/{specialist}/{i}",
            title=f"Source {i}",
            excerpt="Relevant excerpt",
            credibility_tier=tier,
            specialist=specialist,
            stance=stance,
        )
        for i in range(count)
    ]


class FakeExtractor(ContentExtractor):
    def __init__(self, text: str = "Extracted claim text", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = 0

    async def extract_content(self, request):
        self.calls += 1
        if self.error:
            raise self.error
        return self.text


class FakeClassifier(Classifier):
    def __init__(self, responses=None, delay: float = 0.0):
        self.responses = list(responses or [factual_classification()])
        self.delay = delay
        self.calls = 0

    async def classify(self, text):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses[min(self.calls, len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


class FakeGatherer(EvidenceGatherer):
    def __init__(self, result=None, delay: float = 0.0, error: Exception = None):
        self.result = result if result is not None else []
        self.delay = delay
        self.error = error
        self.calls: List[str] = []
        self.cancelled = False

    async def gather_evidence(self, specialist_id, claim):
        self.calls.append(claim)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error:
            raise self.error
        return self.result


class FakeSynthesizer(Synthesizer):
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls: List[dict] = []

    async def synthesize(self, evidence, claims, corrective_instruction=None):
        self.calls.append({
            "evidence": evidence,
            "claims": claims,
            "corrective_instruction": corrective_instruction,
        })
        response = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


class FakeCache(VerificationCache):
    def __init__(self):
        self.entries: Dict[str, object] = {}
        self.lookups = 0
        self.stores = 0

    async def lookup(self, fingerprint):
        self.lookups += 1
        return self.entries.get(fingerprint)

    async def store(self, fingerprint, result):
        self.stores += 1
        self.entries[fingerprint] = result


def factual_classification(stakes: StakesLevel = StakesLevel.MEDIUM, **overrides) -> ClassificationResult:
    data = {
        "content_type": ContentType.FACTUAL_CLAIM,
        "stakes": stakes,
        "ai_detection_relevant": False,
        "satire": False,
    }
    data.update(overrides)
    return ClassificationResult(**data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return CircuitBreakerRegistry(failure_threshold=5, recovery_timeout=60.0, clock=clock)


@pytest.fixture
def refuting_evidence():
    return make_evidence(5, tier=1, stance=Stance.REFUTES)


@pytest.fixture
def collaborators():
    """Collaborators where every specialist answers with nothing."""
    return Collaborators(
        extractor=FakeExtractor(),
        classifier=FakeClassifier(),
        synthesizer=FakeSynthesizer([{
            "verdict": "UNCERTAIN",
            "raw_confidence": 0.4,
            "summary": "Evidence is inconclusive.",
        }]),
        gatherers={
            SpecialistId.FACT_CHECK_SEARCH: FakeGatherer(),
            SpecialistId.WEB_SEARCH: FakeGatherer(),
            SpecialistId.WEB_REASONING: FakeGatherer(),
            SpecialistId.CLAIM_EXTRACTION: FakeGatherer(),
            SpecialistId.AI_IMAGE_DETECTION: FakeGatherer(),
        },
        cache=FakeCache(),
    )


def gatherer_error(name: str = "web_search") -> SpecialistError:
    return SpecialistError(name, "upstream returned 503")


def intake_error() -> IntakeError:
    return IntakeError("image contained no readable text")
