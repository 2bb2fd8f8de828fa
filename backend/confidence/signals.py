from typing import Iterable, List, Optional

from config.constants import SOURCE_TIERS
from models import (
    ConfidenceSignals,
    EvidenceItem,
    SpecialistId,
    SpecialistOutcome,
    Stance,
    Verdict,
)

# specialists whose sub-verdicts count as fact-checker opinions
FACT_CHECKERS = {SpecialistId.FACT_CHECK_SEARCH.value, SpecialistId.WEB_REASONING.value}


class SignalExtractor:
    """Projects specialist outcomes into the evidence signals used by calibration."""

    def extract(
        self,
        outcomes: Iterable[SpecialistOutcome],
        verdict: Optional[Verdict] = None
    ) -> ConfidenceSignals:
        succeeded = [o for o in outcomes if o.succeeded]
        evidence = self.unique_evidence(succeeded)

        return ConfidenceSignals(
            source_count=len(evidence),
            avg_source_tier=self.average_tier(evidence),
            fact_checker_agreement=self.fact_checker_agreement(succeeded, verdict),
            conflicting_verdicts=self.has_conflict(succeeded),
        )

    @staticmethod
    def unique_evidence(outcomes: Iterable[SpecialistOutcome]) -> List[EvidenceItem]:
        """All evidence from the outcomes (claim-level included), one item per URL."""
        seen = set()
        unique = []
        for outcome in outcomes:
            items = list(outcome.evidence)
            for claim in outcome.claims:
                items.extend(claim.evidence)
            for item in items:
                if item.source_url in seen:
                    continue
                seen.add(item.source_url)
                unique.append(item)
        return unique

    @staticmethod
    def average_tier(evidence: List[EvidenceItem]) -> float:
        if not evidence:
            return float(SOURCE_TIERS.LOWEST)
        return round(sum(e.credibility_tier for e in evidence) / len(evidence), 2)

    @staticmethod
    def fact_checker_agreement(
        outcomes: List[SpecialistOutcome],
        verdict: Optional[Verdict]
    ) -> float:
        opinions = [
            o.sub_verdict for o in outcomes
            if o.specialist in FACT_CHECKERS and o.sub_verdict is not None
        ]
        if not opinions or verdict is None:
            return 0.0
        agreeing = sum(1 for v in opinions if v == verdict or (
            verdict.direction is not None and v.direction == verdict.direction
        ))
        return round(agreeing / len(opinions), 2)

    @staticmethod
    def specialist_direction(outcome: SpecialistOutcome) -> Optional[Stance]:
        """The side a specialist took: its sub-verdict, else the majority stance of its evidence."""
        if outcome.sub_verdict is not None:
            return outcome.sub_verdict.direction
        supports = sum(1 for e in outcome.evidence if e.stance == Stance.SUPPORTS)
        refutes = sum(1 for e in outcome.evidence if e.stance == Stance.REFUTES)
        if supports > refutes:
            return Stance.SUPPORTS
        if refutes > supports:
            return Stance.REFUTES
        return None

    @classmethod
    def has_conflict(cls, outcomes: List[SpecialistOutcome]) -> bool:
        directions = {cls.specialist_direction(o) for o in outcomes}
        directions.discard(None)
        return len(directions) > 1
