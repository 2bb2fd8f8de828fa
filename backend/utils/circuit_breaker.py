import asyncio
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from config import logger, settings
from exceptions import BreakerOpenError
from models import BreakerTransition

Transitions = Optional[List[BreakerTransition]]


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class ServiceHealth:
    service: str
    consecutive_failures: int = 0
    last_failure_time: Optional[float] = None
    state: CircuitState = CircuitState.CLOSED
    trial_in_flight: bool = False


class CircuitBreaker:
    """Health tracker for a single dependency. All methods are thread-safe."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._health = ServiceHealth(service=name)
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        return self._health.state

    @property
    def failure_count(self) -> int:
        return self._health.consecutive_failures

    def permits(self, transitions: Transitions = None) -> bool:
        with self._lock:
            health = self._health
            if health.state == CircuitState.CLOSED:
                return True

            if health.state == CircuitState.OPEN:
                if not self._should_attempt_reset():
                    logger.warning(
                        f"Circuit breaker {self.name} is open, rejecting request",
                        extra={
                            "circuit_breaker": self.name,
                            "failure_count": health.consecutive_failures,
                            "state": "open"
                        }
                    )
                    return False
                self._transition(CircuitState.HALF_OPEN, transitions)
                health.trial_in_flight = True
                return True

            # half-open: only one trial call at a time
            if health.trial_in_flight:
                return False
            health.trial_in_flight = True
            return True

    def would_permit(self) -> bool:
        """Read-only variant of permits() that never claims the half-open trial."""
        with self._lock:
            health = self._health
            if health.state == CircuitState.CLOSED:
                return True
            if health.state == CircuitState.OPEN:
                return self._should_attempt_reset()
            return not health.trial_in_flight

    def record_success(self, transitions: Transitions = None) -> None:
        with self._lock:
            if self._health.state != CircuitState.CLOSED:
                logger.info(
                    f"Circuit breaker {self.name}: Recovery successful, closing circuit",
                    extra={"circuit_breaker": self.name, "state": "closed"}
                )
                self._transition(CircuitState.CLOSED, transitions)
            self._health.consecutive_failures = 0
            self._health.trial_in_flight = False

    def record_failure(self, transitions: Transitions = None) -> None:
        with self._lock:
            health = self._health
            health.consecutive_failures += 1
            health.last_failure_time = self._clock()
            health.trial_in_flight = False

            if health.state == CircuitState.HALF_OPEN:
                logger.error(
                    f"Circuit breaker {self.name}: Trial call failed, reopening circuit",
                    extra={"circuit_breaker": self.name, "state": "open"}
                )
                self._transition(CircuitState.OPEN, transitions)
            elif health.state == CircuitState.CLOSED and health.consecutive_failures >= self.failure_threshold:
                logger.error(
                    f"Circuit breaker {self.name}: Failure threshold reached, opening circuit",
                    extra={
                        "circuit_breaker": self.name,
                        "failure_count": health.consecutive_failures,
                        "threshold": self.failure_threshold,
                        "state": "open"
                    }
                )
                self._transition(CircuitState.OPEN, transitions)

    def release(self) -> None:
        """Give back a half-open trial slot without judging the service (cancelled call)."""
        with self._lock:
            self._health.trial_in_flight = False

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            health = self._health
            return {
                "service": health.service,
                "state": health.state.value,
                "consecutive_failures": health.consecutive_failures,
                "last_failure_time": health.last_failure_time,
            }

    def _should_attempt_reset(self) -> bool:
        return (
            self._health.last_failure_time is not None
            and self._clock() - self._health.last_failure_time >= self.recovery_timeout
        )

    def _transition(self, new_state: CircuitState, transitions: Transitions) -> None:
        old_state = self._health.state
        self._health.state = new_state
        if new_state == CircuitState.HALF_OPEN:
            logger.info(
                f"Circuit breaker {self.name}: Transitioning to half-open state",
                extra={"circuit_breaker": self.name, "state": "half_open"}
            )
        if transitions is not None:
            transitions.append(BreakerTransition(
                service=self.name,
                from_state=old_state.value,
                to_state=new_state.value,
            ))


class CircuitBreakerRegistry:
    """
    Process-wide set of breakers, one per service id.

    Created once at process start and injected into the pipeline; close() at
    shutdown drops all tracked health.
    """

    def __init__(
        self,
        failure_threshold: Optional[int] = None,
        recovery_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold or settings.BREAKER_FAILURE_THRESHOLD
        self.recovery_timeout = recovery_timeout if recovery_timeout is not None else settings.BREAKER_COOLDOWN_SECONDS
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()
        self._closed = False

    def get(self, service_id: str) -> CircuitBreaker:
        with self._lock:
            if self._closed:
                raise RuntimeError("Circuit breaker registry has been closed")
            breaker = self._breakers.get(service_id)
            if breaker is None:
                breaker = CircuitBreaker(
                    name=service_id,
                    failure_threshold=self.failure_threshold,
                    recovery_timeout=self.recovery_timeout,
                    clock=self._clock,
                )
                self._breakers[service_id] = breaker
            return breaker

    def permits(self, service_id: str, transitions: Transitions = None) -> bool:
        return self.get(service_id).permits(transitions)

    def would_permit(self, service_id: str) -> bool:
        return self.get(service_id).would_permit()

    def record_success(self, service_id: str, transitions: Transitions = None) -> None:
        self.get(service_id).record_success(transitions)

    def record_failure(self, service_id: str, transitions: Transitions = None) -> None:
        self.get(service_id).record_failure(transitions)

    def release(self, service_id: str) -> None:
        self.get(service_id).release()

    async def call(
        self,
        service_id: str,
        func: Callable[..., Awaitable[Any]],
        *args,
        timeout: Optional[float] = None,
        transitions: Transitions = None,
        **kwargs
    ) -> Any:
        """
        Run one collaborator call behind the service's breaker.
        Raises:
            BreakerOpenError: the breaker refused the call; func is never invoked
        """
        breaker = self.get(service_id)
        if not breaker.permits(transitions):
            raise BreakerOpenError(service_id, breaker.failure_count)

        try:
            if timeout is not None:
                result = await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            else:
                result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            breaker.release()
            raise
        except Exception:
            breaker.record_failure(transitions)
            raise

        breaker.record_success(transitions)
        return result

    def snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            breakers = list(self._breakers.values())
        return [b.snapshot() for b in sorted(breakers, key=lambda b: b.name)]

    def reset(self, service_id: str) -> None:
        with self._lock:
            self._breakers.pop(service_id, None)

    def close(self) -> None:
        with self._lock:
            tracked = len(self._breakers)
            self._breakers.clear()
            self._closed = True
        logger.info(f"Circuit breaker registry closed ({tracked} services tracked)")
