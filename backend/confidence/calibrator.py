from typing import List, Optional

from config import logger
from config.constants import CALIBRATION_CONFIG, CalibrationConfig
from models import CalibrationAdjustment, ConfidenceSignals


class ConfidenceCalibrator:
    """
    Turns a reported confidence into one backed by evidence quantity,
    quality and agreement. Deterministic; the only side effect is the
    adjustment trail written to the log and to the optional `audit` list.
    """

    def __init__(self, config: CalibrationConfig = None):
        self.config = config or CALIBRATION_CONFIG

    def calibrate(
        self,
        raw_confidence: float,
        signals: ConfidenceSignals,
        audit: Optional[List[CalibrationAdjustment]] = None
    ) -> float:
        cfg = self.config
        adjustments: List[CalibrationAdjustment] = []
        value = self._clamp(raw_confidence, 0.0, 1.0)

        if self._is_hedge(value):
            base = self.evidence_base_score(signals)
            adjustments.append(CalibrationAdjustment(
                factor="hedge_recompute",
                delta=round(base - value, 4),
                reason=f"Reported confidence {value:.2f} is the model default; recomputed from evidence",
            ))
            value = base

        if (
            signals.source_count >= cfg.CONSENSUS_MIN_SOURCES
            and signals.avg_source_tier <= cfg.CONSENSUS_MAX_AVG_TIER
            and value < cfg.CONSENSUS_CAP
        ):
            boosted = min(value + cfg.CONSENSUS_BOOST, cfg.CONSENSUS_CAP)
            adjustments.append(CalibrationAdjustment(
                factor="consensus_boost",
                delta=round(boosted - value, 4),
                reason=(
                    f"{signals.source_count} sources with average tier "
                    f"{signals.avg_source_tier:.1f}"
                ),
            ))
            value = boosted

        if signals.conflicting_verdicts and value > cfg.CONFLICT_FLOOR:
            penalized = max(value - cfg.CONFLICT_PENALTY, cfg.CONFLICT_FLOOR)
            adjustments.append(CalibrationAdjustment(
                factor="conflict_penalty",
                delta=round(penalized - value, 4),
                reason="Specialists returned disagreeing verdicts",
            ))
            value = penalized

        # anything from just under the hedge up to the nudge target moves to the
        # target, so the hedge value never surfaces and ordering is preserved
        lower = cfg.DEFAULT_HEDGE - cfg.HEDGE_TOLERANCE
        if lower <= value < cfg.NUDGE_TARGET:
            adjustments.append(CalibrationAdjustment(
                factor="hedge_nudge",
                delta=round(cfg.NUDGE_TARGET - value, 4),
                reason="Result sat on the model default value",
            ))
            value = cfg.NUDGE_TARGET

        value = round(self._clamp(value, 0.0, 1.0), 4)

        for adj in adjustments:
            logger.info(
                f"Calibration adjustment {adj.factor}: {adj.delta:+.3f} ({adj.reason})",
                extra={"factor": adj.factor, "delta": adj.delta, "reason": adj.reason}
            )
        if audit is not None:
            audit.extend(adjustments)

        return value

    def evidence_base_score(self, signals: ConfidenceSignals) -> float:
        cfg = self.config
        density = min(signals.source_count / cfg.MAX_SOURCES_FOR_FULL_DENSITY, 1.0)
        quality = (5.0 - signals.avg_source_tier) / 4.0
        base = (
            cfg.BASE_SCORE
            + density * cfg.SOURCE_COUNT_WEIGHT
            + quality * cfg.SOURCE_TIER_WEIGHT
            + signals.fact_checker_agreement * cfg.AGREEMENT_WEIGHT
        )
        return self._clamp(base, cfg.BASE_FLOOR, cfg.BASE_CEILING)

    def _is_hedge(self, value: float) -> bool:
        return abs(value - self.config.DEFAULT_HEDGE) < self.config.HEDGE_TOLERANCE

    @staticmethod
    def _clamp(value: float, low: float, high: float) -> float:
        return max(low, min(high, value))

    @staticmethod
    def get_confidence_tier(confidence: float) -> str:
        if confidence > CALIBRATION_CONFIG.HIGH_THRESHOLD:
            return "High"
        elif confidence > CALIBRATION_CONFIG.MEDIUM_THRESHOLD:
            return "Medium"
        else:
            return "Low"
