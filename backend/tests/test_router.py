from models import PipelineTier, StageName
from services.router import (
    ALL_EVIDENCE_DOWN_REASON,
    OUT_OF_TIME_REASON,
    PRIMARY_DOWN_REASON,
    DegradationRouter,
    RoutingContext,
)


def open_breaker(registry, service):
    for _ in range(5):
        registry.record_failure(service)


def context(registry, stage=StageName.SPECIALISTS, elapsed=0.0, upcoming=0.0, error=None):
    return RoutingContext(
        breakers=registry,
        stage=stage,
        elapsed=elapsed,
        latency_ceiling=30.0,
        upcoming_budget=upcoming,
        pipeline_error=error,
    )


class TestDegradationRouter:
    """Tests for tier selection."""

    def setup_method(self):
        self.router = DegradationRouter()

    def test_full_when_healthy(self, registry):
        """Test Full when every breaker is closed."""
        decision = self.router.select_tier(context(registry))
        assert decision.tier == PipelineTier.FULL
        assert decision.reason is None

    def test_reduced_when_primary_open(self, registry):
        """Test Reduced when the primary is open."""
        open_breaker(registry, "fact_check_search")
        decision = self.router.select_tier(context(registry))
        assert decision.tier == PipelineTier.REDUCED
        assert decision.reason == PRIMARY_DOWN_REASON

    def test_minimal_when_both_open(self, registry):
        """Test Minimal when both evidence services are open."""
        open_breaker(registry, "fact_check_search")
        open_breaker(registry, "web_reasoning")
        decision = self.router.select_tier(context(registry))
        assert decision.tier == PipelineTier.MINIMAL
        assert decision.reason == ALL_EVIDENCE_DOWN_REASON

    def test_half_open_primary_counts_as_available(self, registry, clock):
        """Test that a half-open primary is still usable."""
        open_breaker(registry, "fact_check_search")
        clock.advance(60)
        assert self.router.select_tier(context(registry)).tier == PipelineTier.FULL
        # routing never claims the trial call
        assert registry.permits("fact_check_search") is True

    def test_breakers_ignored_outside_specialists(self, registry):
        """Test that breakers only matter before specialists."""
        open_breaker(registry, "fact_check_search")
        open_breaker(registry, "web_reasoning")
        decision = self.router.select_tier(context(registry, stage=StageName.SYNTHESIS))
        assert decision.tier == PipelineTier.FULL

    def test_minimal_when_out_of_time(self, registry):
        """Test Minimal when the next stage would overrun the ceiling."""
        decision = self.router.select_tier(context(registry, elapsed=25.0, upcoming=8.0))
        assert decision.tier == PipelineTier.MINIMAL
        assert decision.reason == OUT_OF_TIME_REASON

    def test_minimal_on_pipeline_error(self, registry):
        """Test Minimal after an internal error."""
        decision = self.router.select_tier(context(registry, stage=StageName.OUTPUT, error="KeyError"))
        assert decision.tier == PipelineTier.MINIMAL
        assert "KeyError" in decision.reason

    def test_reads_live_state(self, registry):
        """Test that each decision reads current breaker state."""
        open_breaker(registry, "fact_check_search")
        assert self.router.select_tier(context(registry)).tier == PipelineTier.REDUCED
        registry.record_success("fact_check_search")
        assert self.router.select_tier(context(registry)).tier == PipelineTier.FULL
