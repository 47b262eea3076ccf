"""
Conviction Score Calculator

Rolls every PositionAnalysis of a wallet into a composite score (0-100):
- Win rate (share of positions closed at a profit)
- Upside capture (realized value vs. realized + missed value)
- Early-exit mitigation (share of positions NOT sold before a >50% run)
- Holding period (average days held, saturating at 30)

The score then maps to a percentile band and a behavioral archetype.
"""

import math
from typing import Optional, Sequence

from .math_utils import clamp, safe_divide
from .models import (
    Archetype,
    ArchetypeThresholds,
    ConvictionMetrics,
    PositionAnalysis,
    ScoringWeights,
)

HOLDING_PERIOD_REFERENCE_DAYS = 30.0
CONVICTION_WIN_RATIO = 0.5


def calculate_conviction_score(
    win_rate: float,
    upside_capture: float,
    early_exit_rate: float,
    avg_holding_period: float,
    weights: ScoringWeights,
) -> float:
    """
    Calculate the composite conviction score (0-100).

    Args:
        win_rate: Winning positions, percent
        upside_capture: Realized / (realized + patience tax), percent
        early_exit_rate: Early exits, percent
        avg_holding_period: Average holding period in days
        weights: Component weights

    Returns:
        Score clamped to [0, 100]
    """
    holding_factor = min(max(avg_holding_period, 0.0) / HOLDING_PERIOD_REFERENCE_DAYS, 1.0)
    score = (
        win_rate * weights.win_rate
        + upside_capture * weights.upside_capture
        + (100.0 - early_exit_rate) * weights.early_exit_mitigation
        + holding_factor * 100.0 * weights.holding_period
    )
    return clamp(score, 0.0, 100.0)


def calculate_percentile(score: float) -> int:
    """Percentile band for a score: 100 - floor(score), clamped to [1, 99]."""
    return int(clamp(100 - math.floor(score), 1, 99))


def classify_archetype(score: float, patience_tax: float,
                       thresholds: Optional[ArchetypeThresholds] = None) -> Archetype:
    """
    Classify a wallet from its score and total patience tax.

    Rules, first match wins:
    - IRON_PILLAR: score >= 90 and patience tax <= $1,000
    - PROFIT_PHANTOM: score >= 70 and patience tax >= $5,000
    - EXIT_VOYAGER: score <= 40
    - DIAMOND_HAND: everything else
    """
    t = thresholds or ArchetypeThresholds()
    if score >= t.iron_min_score and patience_tax <= t.iron_max_patience_tax:
        return Archetype.IRON_PILLAR
    elif score >= t.phantom_min_score and patience_tax >= t.phantom_min_patience_tax:
        return Archetype.PROFIT_PHANTOM
    elif score <= t.voyager_max_score:
        return Archetype.EXIT_VOYAGER
    else:
        return Archetype.DIAMOND_HAND


class ConvictionScorer:
    """Portfolio scorer with injectable weights and archetype thresholds."""

    def __init__(self, weights: Optional[ScoringWeights] = None,
                 thresholds: Optional[ArchetypeThresholds] = None):
        self.weights = weights or ScoringWeights()
        self.thresholds = thresholds or ArchetypeThresholds()

    @classmethod
    def from_config(cls) -> "ConvictionScorer":
        return cls(ScoringWeights.from_config(), ArchetypeThresholds.from_config())

    def empty_metrics(self) -> ConvictionMetrics:
        """Neutral result for a wallet without positions."""
        return ConvictionMetrics(
            score=0.0,
            percentile=0,
            archetype=self.thresholds.empty_state,
            total_patience_tax=0.0,
            upside_capture=0.0,
            win_rate=0.0,
            early_exit_rate=0.0,
            avg_holding_period=0.0,
            early_exits=0,
            conviction_wins=0,
            total_positions=0,
        )

    def score(self, analyses: Sequence[PositionAnalysis]) -> ConvictionMetrics:
        """
        Aggregate position analyses into ConvictionMetrics.

        Args:
            analyses: One PositionAnalysis per position of the wallet

        Returns:
            ConvictionMetrics at full precision (to_dict() rounds)
        """
        n = len(analyses)
        if n == 0:
            return self.empty_metrics()

        total_invested = 0.0
        total_realized = 0.0
        total_patience_tax = 0.0
        total_holding_days = 0.0
        winning = 0
        conviction_wins = 0
        early_exits = 0

        for analysis in analyses:
            total_invested += analysis.total_invested
            total_realized += analysis.total_realized
            total_patience_tax += max(0.0, analysis.patience_tax)
            total_holding_days += analysis.holding_period_days

            if analysis.realized_pnl > 0:
                winning += 1
                if analysis.realized_pnl > CONVICTION_WIN_RATIO * analysis.total_invested:
                    conviction_wins += 1
            if analysis.is_early_exit:
                early_exits += 1

        win_rate = winning / n * 100
        upside_capture = clamp(
            safe_divide(total_realized, total_realized + total_patience_tax) * 100, 0.0, 100.0
        )
        early_exit_rate = early_exits / n * 100
        avg_holding_period = total_holding_days / n

        score = calculate_conviction_score(
            win_rate, upside_capture, early_exit_rate, avg_holding_period, self.weights
        )

        return ConvictionMetrics(
            score=score,
            percentile=calculate_percentile(score),
            archetype=classify_archetype(score, total_patience_tax, self.thresholds),
            total_patience_tax=total_patience_tax,
            upside_capture=upside_capture,
            win_rate=win_rate,
            early_exit_rate=early_exit_rate,
            avg_holding_period=avg_holding_period,
            early_exits=early_exits,
            conviction_wins=conviction_wins,
            total_positions=n,
            total_invested=total_invested,
            total_realized=total_realized,
        )
