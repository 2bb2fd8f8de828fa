from confidence import SignalExtractor
from models import Claim, OutcomeStatus, SpecialistOutcome, Stance, Verdict
from conftest import make_evidence


def outcome(specialist, evidence=None, sub_verdict=None, status=OutcomeStatus.SUCCEEDED, claims=None):
    return SpecialistOutcome(
        specialist=specialist,
        status=status,
        evidence=evidence or [],
        claims=claims or [],
        sub_verdict=sub_verdict,
    )


class TestSignalExtractor:
    """Tests for projecting outcomes into confidence signals."""

    def setup_method(self):
        self.extractor = SignalExtractor()

    def test_no_outcomes(self):
        """Test the signals for an empty outcome list."""
        signals = self.extractor.extract([])
        assert signals.source_count == 0
        assert signals.avg_source_tier == 5.0
        assert signals.fact_checker_agreement == 0.0
        assert signals.conflicting_verdicts is False

    def test_counts_unique_urls_only(self):
        """Test that duplicate URLs count once."""
        shared = make_evidence(3, tier=1)
        outcomes = [
            outcome("fact_check_search", shared),
            outcome("web_search", shared[:2] + make_evidence(1, tier=3, specialist="web_search")),
        ]
        signals = self.extractor.extract(outcomes)
        assert signals.source_count == 4
        assert signals.avg_source_tier == 1.5

    def test_failed_outcomes_are_ignored(self):
        """Test that failed specialists contribute no sources."""
        outcomes = [
            outcome("fact_check_search", make_evidence(2)),
            outcome("web_search", make_evidence(4, specialist="web_search"), status=OutcomeStatus.FAILED),
        ]
        assert self.extractor.extract(outcomes).source_count == 2

    def test_claim_evidence_is_counted(self):
        """Test that claim-level evidence is counted."""
        claim = Claim(text="The moon landing was staged", evidence=make_evidence(2, specialist="claim_extraction"))
        signals = self.extractor.extract([outcome("claim_extraction", claims=[claim])])
        assert signals.source_count == 2

    def test_fact_checker_agreement(self):
        """Test agreement from fact-checker sub-verdicts."""
        outcomes = [
            outcome("fact_check_search", sub_verdict=Verdict.FALSE),
            outcome("web_reasoning", sub_verdict=Verdict.TRUE),
            outcome("web_search", sub_verdict=Verdict.TRUE),
        ]
        signals = self.extractor.extract(outcomes, Verdict.FALSE)
        assert signals.fact_checker_agreement == 0.5

    def test_agreement_by_direction(self):
        """Test agreement by verdict direction."""
        outcomes = [outcome("fact_check_search", sub_verdict=Verdict.MISLEADING)]
        assert self.extractor.extract(outcomes, Verdict.FALSE).fact_checker_agreement == 1.0

    def test_agreement_needs_a_verdict(self):
        """Test that agreement is off without a verdict."""
        outcomes = [outcome("fact_check_search", sub_verdict=Verdict.FALSE)]
        assert self.extractor.extract(outcomes).fact_checker_agreement == 0.0

    def test_conflict_from_sub_verdicts(self):
        """Test conflict from opposing sub-verdicts."""
        outcomes = [
            outcome("fact_check_search", sub_verdict=Verdict.FALSE),
            outcome("web_search", sub_verdict=Verdict.TRUE),
        ]
        assert self.extractor.extract(outcomes).conflicting_verdicts is True

    def test_conflict_from_evidence_stance(self):
        """Test conflict from opposing evidence stances."""
        outcomes = [
            outcome("fact_check_search", make_evidence(2, stance=Stance.REFUTES)),
            outcome("web_search", make_evidence(2, stance=Stance.SUPPORTS, specialist="web_search")),
        ]
        assert self.extractor.extract(outcomes).conflicting_verdicts is True

    def test_agreeing_specialists_do_not_conflict(self):
        """Test that agreeing specialists raise no conflict."""
        outcomes = [
            outcome("fact_check_search", make_evidence(2, stance=Stance.REFUTES), sub_verdict=Verdict.FALSE),
            outcome("web_search", make_evidence(2, stance=Stance.REFUTES, specialist="web_search")),
            outcome("claim_extraction", sub_verdict=Verdict.UNCERTAIN),
        ]
        assert self.extractor.extract(outcomes, Verdict.FALSE).conflicting_verdicts is False
