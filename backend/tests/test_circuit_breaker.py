import asyncio

import pytest

from exceptions import BreakerOpenError
from utils.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, CircuitState
from conftest import FakeClock


def trip(registry, service="fact_check_search", times=5):
    for _ in range(times):
        registry.record_failure(service)


class TestCircuitBreaker:
    """State transitions for a single service."""

    def test_starts_closed(self, registry):
        """Test that a new breaker is closed."""
        assert registry.permits("web_search") is True
        assert registry.get("web_search").state == CircuitState.CLOSED

    def test_opens_after_threshold(self, registry):
        """Test that the breaker opens at the failure threshold."""
        trip(registry, times=4)
        assert registry.permits("fact_check_search") is True

        registry.record_failure("fact_check_search")
        assert registry.get("fact_check_search").state == CircuitState.OPEN
        assert registry.permits("fact_check_search") is False

    def test_success_resets_counter(self, registry):
        """Test that a success clears the failure count."""
        trip(registry, times=4)
        registry.record_success("fact_check_search")
        assert registry.get("fact_check_search").failure_count == 0

        trip(registry, times=4)
        assert registry.permits("fact_check_search") is True

    def test_stays_open_during_cooldown(self, registry, clock):
        """Test that calls are refused during the cool-down."""
        trip(registry)
        clock.advance(59.9)
        assert registry.permits("fact_check_search") is False

    def test_half_open_allows_exactly_one_trial(self, registry, clock):
        """Test that half-open admits a single trial call."""
        trip(registry)
        clock.advance(60)

        assert registry.permits("fact_check_search") is True
        assert registry.get("fact_check_search").state == CircuitState.HALF_OPEN
        assert registry.permits("fact_check_search") is False

    def test_half_open_success_closes(self, registry, clock):
        """Test that a successful trial closes the breaker."""
        trip(registry)
        clock.advance(60)
        registry.permits("fact_check_search")

        registry.record_success("fact_check_search")
        breaker = registry.get("fact_check_search")
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert registry.permits("fact_check_search") is True

    def test_half_open_failure_reopens(self, registry, clock):
        """Test that a failed trial reopens the breaker."""
        trip(registry)
        clock.advance(60)
        registry.permits("fact_check_search")

        registry.record_failure("fact_check_search")
        assert registry.get("fact_check_search").state == CircuitState.OPEN
        assert registry.permits("fact_check_search") is False

        clock.advance(60)
        assert registry.permits("fact_check_search") is True

    def test_would_permit_does_not_claim_trial(self, registry, clock):
        """Test that would_permit leaves the trial slot free."""
        trip(registry)
        clock.advance(60)

        assert registry.would_permit("fact_check_search") is True
        assert registry.would_permit("fact_check_search") is True
        assert registry.permits("fact_check_search") is True
        assert registry.would_permit("fact_check_search") is False

    def test_release_returns_trial_slot(self, registry, clock):
        """Test that release frees a claimed trial."""
        trip(registry)
        clock.advance(60)
        registry.permits("fact_check_search")

        registry.release("fact_check_search")
        assert registry.get("fact_check_search").state == CircuitState.HALF_OPEN
        assert registry.permits("fact_check_search") is True

    def test_transitions_are_collected(self, registry, clock):
        """Test that state changes are appended to the transitions list."""
        transitions = []
        for _ in range(5):
            registry.record_failure("fact_check_search", transitions)
        clock.advance(60)
        registry.permits("fact_check_search", transitions)
        registry.record_success("fact_check_search", transitions)

        assert [(t.from_state, t.to_state) for t in transitions] == [
            ("closed", "open"),
            ("open", "half_open"),
            ("half_open", "closed"),
        ]

    def test_services_are_independent(self, registry):
        """Test that one service's failures do not affect another."""
        trip(registry, "fact_check_search")
        assert registry.permits("fact_check_search") is False
        assert registry.permits("web_reasoning") is True

    def test_custom_threshold(self):
        """Test a registry with a non-default threshold."""
        breaker = CircuitBreaker("classifier", failure_threshold=2, recovery_timeout=1.0, clock=FakeClock())
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN


class TestRegistryLifecycle:
    """Tests for registry snapshot, reset and close."""

    def test_snapshot_lists_tracked_services(self, registry):
        """Test the health snapshot contents."""
        registry.record_failure("web_search")
        registry.permits("synthesis")

        snapshot = registry.snapshot()
        assert [s["service"] for s in snapshot] == ["synthesis", "web_search"]
        assert snapshot[1]["consecutive_failures"] == 1
        assert snapshot[1]["state"] == "closed"

    def test_reset_forgets_health(self, registry):
        """Test that reset returns a service to closed."""
        trip(registry)
        registry.reset("fact_check_search")
        assert registry.permits("fact_check_search") is True

    def test_closed_registry_rejects_use(self, registry):
        """Test that a closed registry refuses new calls."""
        registry.close()
        with pytest.raises(RuntimeError):
            registry.permits("web_search")


@pytest.mark.asyncio
class TestGuardedCall:
    """Tests for CircuitBreakerRegistry.call."""

    async def test_success_is_recorded(self, registry):
        """Test that a successful call is recorded."""
        registry.record_failure("synthesis")

        async def ok():
            return "done"

        assert await registry.call("synthesis", ok) == "done"
        assert registry.get("synthesis").failure_count == 0

    async def test_failure_is_recorded_and_raised(self, registry):
        """Test that a failing call is recorded and re-raised."""
        async def boom():
            raise RuntimeError("503")

        with pytest.raises(RuntimeError):
            await registry.call("synthesis", boom)
        assert registry.get("synthesis").failure_count == 1

    async def test_open_breaker_skips_call(self, registry):
        """Test that an open breaker raises without calling."""
        trip(registry, "synthesis")
        called = False

        async def never():
            nonlocal called
            called = True

        with pytest.raises(BreakerOpenError):
            await registry.call("synthesis", never)
        assert called is False

    async def test_timeout_counts_as_failure(self, registry):
        """Test that a timed-out call counts as a failure."""
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(asyncio.TimeoutError):
            await registry.call("classifier", slow, timeout=0.01)
        assert registry.get("classifier").failure_count == 1

    async def test_cancellation_is_not_a_failure(self, registry):
        """Test that a cancelled call is not counted."""
        async def slow():
            await asyncio.sleep(10)

        task = asyncio.ensure_future(registry.call("classifier", slow))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert registry.get("classifier").failure_count == 0

    async def test_concurrent_failures_are_all_counted(self):
        """Test that failures from concurrent calls are all counted."""
        registry = CircuitBreakerRegistry(failure_threshold=50, recovery_timeout=60.0)

        async def boom():
            await asyncio.sleep(0)
            raise RuntimeError("fail")

        results = await asyncio.gather(
            *[registry.call("web_search", boom) for _ in range(20)],
            return_exceptions=True,
        )
        assert all(isinstance(r, RuntimeError) for r in results)
        assert registry.get("web_search").failure_count == 20
