from typing import Dict, List

from config import settings, STRATEGY_CONFIG
from models import ClassificationResult, PipelineTier, SpecialistId, StakesLevel, Strategy


def specialist_timeouts() -> Dict[SpecialistId, float]:
    return {
        SpecialistId.FACT_CHECK_SEARCH: settings.FACT_CHECK_TIMEOUT,
        SpecialistId.WEB_SEARCH: settings.WEB_SEARCH_TIMEOUT,
        SpecialistId.WEB_REASONING: settings.WEB_REASONING_TIMEOUT,
        SpecialistId.AI_IMAGE_DETECTION: settings.AI_IMAGE_DETECTION_TIMEOUT,
        SpecialistId.CLAIM_EXTRACTION: settings.CLAIM_EXTRACTION_TIMEOUT,
    }


def build_strategy(classification: ClassificationResult) -> Strategy:
    """
    Map a classification onto the specialists to run. Pure and deterministic.
    Args:
        classification: Output of the Classify stage
    Returns:
        Strategy for the Full tier; see apply_tier for substitutions
    """
    specialists: List[SpecialistId] = [
        SpecialistId.FACT_CHECK_SEARCH,
        SpecialistId.WEB_SEARCH,
    ]
    if classification.stakes in (StakesLevel.HIGH, StakesLevel.CRITICAL):
        specialists.append(SpecialistId.CLAIM_EXTRACTION)
    if classification.ai_detection_relevant:
        specialists.append(SpecialistId.AI_IMAGE_DETECTION)

    timeouts = specialist_timeouts()
    return Strategy(
        specialists=tuple(specialists),
        timeouts={s: timeouts[s] for s in specialists},
        consensus_threshold=STRATEGY_CONFIG.CONSENSUS_THRESHOLDS[classification.stakes.value],
    )


def apply_tier(strategy: Strategy, tier: PipelineTier) -> Strategy:
    """Reduced swaps the primary fact-check search for web search plus reasoning."""
    if tier == PipelineTier.FULL:
        return strategy
    if tier == PipelineTier.MINIMAL:
        return Strategy(specialists=(), timeouts={}, consensus_threshold=strategy.consensus_threshold)

    specialists = tuple(
        SpecialistId.WEB_REASONING if s == SpecialistId.FACT_CHECK_SEARCH else s
        for s in strategy.specialists
    )
    if SpecialistId.WEB_REASONING not in specialists:
        specialists = (SpecialistId.WEB_REASONING,) + specialists
    timeouts = specialist_timeouts()
    return Strategy(
        specialists=specialists,
        timeouts={s: timeouts[s] for s in specialists},
        consensus_threshold=strategy.consensus_threshold,
    )
