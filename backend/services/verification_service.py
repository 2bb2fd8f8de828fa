import asyncio
from datetime import datetime, timezone
from typing import Optional, Set

from config import logger, settings, SERVICE_IDS
from exceptions import BreakerOpenError, CacheError
from interfaces import Collaborators
from models import StageName, StageRecord, StageStatus, VerificationRequest, VerificationResult
from utils.circuit_breaker import CircuitBreakerRegistry
from .audit import LoggingAuditSink
from .payloads import coerce_cached_result
from .pipeline import PipelineRun, VerificationPipeline
from .router import OUT_OF_TIME_REASON, RoutingContext


class VerificationService:
    """
    Entry point: verify(request) -> VerificationResult.

    Never raises to the caller (cancellation excepted). The latency ceiling
    covers the cache lookup, the pipeline and the cache write-back; the audit
    record is emitted in a tracked background task so a slow sink cannot
    hold the response.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        breakers: CircuitBreakerRegistry,
        pipeline: VerificationPipeline = None,
        latency_ceiling: Optional[float] = None,
        cache_freshness_seconds: Optional[float] = None
    ):
        self.collaborators = collaborators
        self.breakers = breakers
        self.latency_ceiling = latency_ceiling or settings.PIPELINE_LATENCY_CEILING
        self.pipeline = pipeline or VerificationPipeline(
            collaborators, breakers, latency_ceiling=self.latency_ceiling
        )
        self.cache_freshness_seconds = cache_freshness_seconds or settings.CACHE_FRESHNESS_SECONDS
        self.audit_sink = collaborators.audit_sink or LoggingAuditSink()
        self._pending: Set[asyncio.Task] = set()

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        run = self.pipeline.start(request)

        cached = await self._cache_lookup(run)
        if cached is not None:
            run.audit.cache_hit = True
            run.audit.tier = cached.tier
            run.audit.degraded = cached.degraded
            self._emit(run)
            return cached

        try:
            remaining = self._remaining(run)
            if remaining <= 0:
                raise asyncio.TimeoutError()
            result = await asyncio.wait_for(self.pipeline.run(run), timeout=remaining)
        except asyncio.TimeoutError:
            logger.error(
                f"Verification exceeded the {self.latency_ceiling}s ceiling, returning minimal result",
                extra={"request_id": run.audit.request_id}
            )
            result = self.pipeline.minimal(run, OUT_OF_TIME_REASON)
        except Exception as e:
            logger.exception("Unexpected error during verification.")
            decision = self.pipeline.router.select_tier(RoutingContext(
                breakers=self.breakers,
                stage=StageName.OUTPUT,
                elapsed=self.pipeline.elapsed(run),
                latency_ceiling=self.latency_ceiling,
                pipeline_error=type(e).__name__,
            ))
            result = self.pipeline.minimal(run, decision.reason)

        if not result.degraded:
            await self._cache_store(run, result)
        self._emit(run)
        return result

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight audit emissions; anything still running after `timeout` is cancelled."""
        if not self._pending:
            return
        done, pending = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Dropped {len(pending)} audit emissions at shutdown")
            await asyncio.wait(pending)

    def _remaining(self, run: PipelineRun) -> float:
        return self.latency_ceiling - self.pipeline.elapsed(run)

    async def _cache_lookup(self, run: PipelineRun) -> Optional[VerificationResult]:
        cache = self.collaborators.cache
        if cache is None:
            return None

        started = self.pipeline.clock()
        try:
            raw = await self.breakers.call(
                SERVICE_IDS.CACHE, cache.lookup, run.fingerprint,
                timeout=min(settings.CACHE_TIMEOUT, self._remaining(run)),
                transitions=run.audit.breaker_transitions,
            )
        except BreakerOpenError:
            return None
        except asyncio.TimeoutError:
            logger.warning("Cache lookup timed out, continuing without cache")
            self._record_cache(run, StageStatus.FAILED, started, "timeout")
            return None
        except Exception as e:
            logger.warning(f"Cache lookup failed, continuing without cache: {e}")
            self._record_cache(run, StageStatus.FAILED, started, type(e).__name__)
            return None

        if raw is None:
            self._record_cache(run, StageStatus.SUCCEEDED, started, "miss")
            return None
        try:
            cached = coerce_cached_result(raw)
        except CacheError as e:
            logger.warning(f"Ignoring cache entry for {run.fingerprint[:12]}: {e.message}")
            self._record_cache(run, StageStatus.FAILED, started, "invalid")
            return None
        if not self._is_fresh(cached):
            self._record_cache(run, StageStatus.SUCCEEDED, started, "stale")
            return None

        self._record_cache(run, StageStatus.SHORT_CIRCUITED, started, "hit")
        logger.info(f"Cache hit for fingerprint {run.fingerprint[:12]}")
        return cached

    async def _cache_store(self, run: PipelineRun, result: VerificationResult) -> None:
        cache = self.collaborators.cache
        if cache is None:
            return
        remaining = self._remaining(run)
        if remaining <= 0:
            logger.warning("No time left to store the result in the cache")
            return
        try:
            await self.breakers.call(
                SERVICE_IDS.CACHE, cache.store, run.fingerprint, result,
                timeout=min(settings.CACHE_TIMEOUT, remaining),
                transitions=run.audit.breaker_transitions,
            )
        except Exception as e:
            logger.warning(f"Cache store failed: {type(e).__name__} {e}")

    def _is_fresh(self, result: VerificationResult) -> bool:
        created = result.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        age = (datetime.now(timezone.utc) - created).total_seconds()
        return age < self.cache_freshness_seconds

    def _record_cache(self, run: PipelineRun, status: StageStatus, started: float, detail: str) -> None:
        run.audit.stages.append(StageRecord(
            stage=StageName.CACHE,
            status=status,
            latency_ms=round((self.pipeline.clock() - started) * 1000, 2),
            detail=detail,
        ))

    def _emit(self, run: PipelineRun) -> None:
        task = asyncio.ensure_future(self._send_audit(run))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send_audit(self, run: PipelineRun) -> None:
        try:
            await asyncio.wait_for(self.audit_sink.emit(run.audit), timeout=settings.AUDIT_TIMEOUT)
        except Exception as e:
            logger.error(f"Audit sink failed for request {run.audit.request_id}: {type(e).__name__} {e}")
