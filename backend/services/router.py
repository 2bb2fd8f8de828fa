from dataclasses import dataclass
from typing import Optional

from config import logger, SERVICE_IDS
from models import PipelineTier, StageName
from utils.circuit_breaker import CircuitBreakerRegistry

PRIMARY_DOWN_REASON = (
    "The primary fact-check service is unavailable, so evidence came from a "
    "secondary web search with reasoning."
)
ALL_EVIDENCE_DOWN_REASON = (
    "Both the fact-check service and the fallback web search service are "
    "unavailable, so no evidence could be gathered."
)
OUT_OF_TIME_REASON = (
    "Verification could not finish within the time limit, so no verdict was reached."
)


@dataclass(frozen=True)
class RoutingContext:
    breakers: CircuitBreakerRegistry
    stage: StageName
    elapsed: float
    latency_ceiling: float
    upcoming_budget: float = 0.0
    pipeline_error: Optional[str] = None


@dataclass(frozen=True)
class TierDecision:
    tier: PipelineTier
    reason: Optional[str] = None


class DegradationRouter:
    """
    Chooses Full, Reduced or Minimal for one request. Nothing is cached:
    every call reads the live breaker state.
    """

    def __init__(
        self,
        primary_service: str = SERVICE_IDS.PRIMARY_EVIDENCE,
        secondary_service: str = SERVICE_IDS.SECONDARY_EVIDENCE
    ):
        self.primary_service = primary_service
        self.secondary_service = secondary_service

    def select_tier(self, context: RoutingContext) -> TierDecision:
        decision = self._decide(context)
        logger.info(
            f"Tier {decision.tier.value} selected before {context.stage.value}",
            extra={
                "tier": decision.tier.value,
                "stage": context.stage.value,
                "elapsed_s": round(context.elapsed, 3),
                "reason": decision.reason,
            }
        )
        return decision

    def _decide(self, context: RoutingContext) -> TierDecision:
        if context.pipeline_error:
            return TierDecision(
                PipelineTier.MINIMAL,
                f"The verification pipeline hit an unrecoverable error ({context.pipeline_error}).",
            )

        if context.elapsed + context.upcoming_budget >= context.latency_ceiling:
            return TierDecision(PipelineTier.MINIMAL, OUT_OF_TIME_REASON)

        # evidence services only matter while evidence is still to be gathered
        if context.stage != StageName.SPECIALISTS:
            return TierDecision(PipelineTier.FULL)

        if context.breakers.would_permit(self.primary_service):
            return TierDecision(PipelineTier.FULL)
        if context.breakers.would_permit(self.secondary_service):
            return TierDecision(PipelineTier.REDUCED, PRIMARY_DOWN_REASON)
        return TierDecision(PipelineTier.MINIMAL, ALL_EVIDENCE_DOWN_REASON)
