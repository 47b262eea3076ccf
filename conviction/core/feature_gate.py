"""
Feature Gate

Pure mapping from a unified trust score (0-100) to entitlements: result-size
limits, permitted filter thresholds, community role, and premium-view flags.
No I/O. Every entitlement is monotonic non-decreasing in score.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .models import UnifiedTrustScore


class AccessTier(Enum):
    """Access tiers, lowest first."""
    VISITOR = "visitor"
    MEMBER = "member"
    PREMIUM = "premium"
    WHALE = "whale"
    ALPHA = "alpha"
    ELITE = "elite"


class CommunityRole(Enum):
    VIEWER = "viewer"
    NOMINATOR = "nominator"
    CONTRIBUTOR = "contributor"
    CURATOR = "curator"
    MODERATOR = "moderator"
    ADMIN = "admin"


# Minimum unified score per tier, highest first. Mirrors the trust flag breakpoints.
ACCESS_TIER_THRESHOLDS = [
    (80, AccessTier.ELITE),
    (65, AccessTier.ALPHA),
    (50, AccessTier.WHALE),
    (35, AccessTier.PREMIUM),
    (1, AccessTier.MEMBER),
]

COMMUNITY_ROLE_THRESHOLDS = [
    (67, CommunityRole.ADMIN),
    (57, CommunityRole.MODERATOR),
    (47, CommunityRole.CURATOR),
    (40, CommunityRole.CONTRIBUTOR),
    (33, CommunityRole.NOMINATOR),
]


@dataclass(frozen=True)
class Entitlements:
    """What a wallet may do. daily_analysis_limit None means unlimited."""
    access_tier: AccessTier
    community_role: CommunityRole
    analysis_lookback_days: int
    positions_per_analysis: int
    daily_analysis_limit: Optional[int]
    leaderboard_result_limit: int
    max_watchlist_size: int
    max_conviction_filter: int
    alerts_per_hour: int
    can_export_data: bool = False
    can_view_full_history: bool = False
    can_receive_alerts: bool = False
    can_filter_leaderboard: bool = False
    can_filter_by_archetype: bool = False
    can_access_cohort_data: bool = False
    can_access_token_heatmap: bool = False
    can_access_alpha_discovery: bool = False
    can_nominate: bool = False
    can_endorse: bool = False
    can_moderate: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["access_tier"] = self.access_tier.value
        data["community_role"] = self.community_role.value
        return data


_VISITOR = dict(
    analysis_lookback_days=30,
    positions_per_analysis=20,
    daily_analysis_limit=5,
    leaderboard_result_limit=10,
    max_watchlist_size=5,
    max_conviction_filter=0,
    alerts_per_hour=0,
)

TIER_LIMITS: Dict[AccessTier, Dict[str, Any]] = {
    AccessTier.VISITOR: _VISITOR,
    AccessTier.MEMBER: _VISITOR,
    AccessTier.PREMIUM: dict(
        analysis_lookback_days=60,
        positions_per_analysis=30,
        daily_analysis_limit=10,
        leaderboard_result_limit=15,
        max_watchlist_size=10,
        max_conviction_filter=0,
        alerts_per_hour=0,
    ),
    AccessTier.WHALE: dict(
        analysis_lookback_days=90,
        positions_per_analysis=50,
        daily_analysis_limit=20,
        leaderboard_result_limit=25,
        max_watchlist_size=20,
        max_conviction_filter=70,
        alerts_per_hour=0,
        can_export_data=True,
        can_filter_leaderboard=True,
        can_access_cohort_data=True,
        can_access_token_heatmap=True,
    ),
    AccessTier.ALPHA: dict(
        analysis_lookback_days=180,
        positions_per_analysis=100,
        daily_analysis_limit=50,
        leaderboard_result_limit=50,
        max_watchlist_size=50,
        max_conviction_filter=90,
        alerts_per_hour=60,
        can_export_data=True,
        can_view_full_history=True,
        can_receive_alerts=True,
        can_filter_leaderboard=True,
        can_filter_by_archetype=True,
        can_access_cohort_data=True,
        can_access_token_heatmap=True,
        can_access_alpha_discovery=True,
    ),
    AccessTier.ELITE: dict(
        analysis_lookback_days=365,
        positions_per_analysis=200,
        daily_analysis_limit=None,
        leaderboard_result_limit=100,
        max_watchlist_size=100,
        max_conviction_filter=100,
        alerts_per_hour=120,
        can_export_data=True,
        can_view_full_history=True,
        can_receive_alerts=True,
        can_filter_leaderboard=True,
        can_filter_by_archetype=True,
        can_access_cohort_data=True,
        can_access_token_heatmap=True,
        can_access_alpha_discovery=True,
    ),
}

# Named gated features and the unified score each requires.
FEATURES: Dict[str, int] = {
    "extended_lookback": 35,
    "export": 50,
    "cohort_data": 50,
    "token_heatmap": 50,
    "filter_by_conviction": 50,
    "full_history": 65,
    "alerts": 65,
    "alpha_discovery": 65,
    "filter_by_archetype": 65,
    "fast_refresh": 80,
}


@dataclass(frozen=True)
class GateResult:
    feature: str
    allowed: bool
    score: int
    required_score: int
    access_tier: AccessTier
    message: Optional[str] = None

    @property
    def missing(self) -> int:
        """Points still needed to unlock the feature."""
        return max(0, self.required_score - self.score)


def _score_of(trust: Union[int, float, UnifiedTrustScore, None]) -> int:
    if trust is None:
        return 0
    if isinstance(trust, UnifiedTrustScore):
        return trust.score
    return max(0, min(100, int(trust)))


def get_access_tier(trust: Union[int, float, UnifiedTrustScore, None]) -> AccessTier:
    score = _score_of(trust)
    for minimum, tier in ACCESS_TIER_THRESHOLDS:
        if score >= minimum:
            return tier
    return AccessTier.VISITOR


def get_community_role(trust: Union[int, float, UnifiedTrustScore, None]) -> CommunityRole:
    score = _score_of(trust)
    for minimum, role in COMMUNITY_ROLE_THRESHOLDS:
        if score >= minimum:
            return role
    return CommunityRole.VIEWER


def get_entitlements(trust: Union[int, float, UnifiedTrustScore, None]) -> Entitlements:
    """
    Entitlements for a unified trust score (or a UnifiedTrustScore).

    Unknown or missing scores get visitor limits.
    """
    score = _score_of(trust)
    tier = get_access_tier(score)
    role = get_community_role(score)
    return Entitlements(
        access_tier=tier,
        community_role=role,
        can_nominate=score >= 33,
        can_endorse=score >= 40,
        can_moderate=score >= 57,
        **TIER_LIMITS[tier],
    )


def check_gate(trust: Union[int, float, UnifiedTrustScore, None], feature: str) -> GateResult:
    """
    Check one named feature.

    Raises:
        KeyError: unknown feature name
    """
    required = FEATURES[feature]
    score = _score_of(trust)
    allowed = score >= required
    return GateResult(
        feature=feature,
        allowed=allowed,
        score=score,
        required_score=required,
        access_tier=get_access_tier(score),
        message=None if allowed else f"{feature} requires a trust score of {required}+ (you have {score})",
    )


def next_unlocks(trust: Union[int, float, UnifiedTrustScore, None], limit: int = 3) -> List[GateResult]:
    """Locked features closest to the current score, nearest first."""
    score = _score_of(trust)
    locked = sorted(
        (name for name, required in FEATURES.items() if required > score),
        key=lambda name: (FEATURES[name], name),
    )
    return [check_gate(score, name) for name in locked[:limit]]
