"""
Feature Gate Tests

Entitlements are a pure function of the unified trust score and never
decrease as the score rises.
"""

from dataclasses import fields

import pytest
from hypothesis import given, strategies as st

from conviction.core.feature_gate import (
    FEATURES,
    AccessTier,
    CommunityRole,
    Entitlements,
    check_gate,
    get_access_tier,
    get_community_role,
    get_entitlements,
    next_unlocks,
)
from conviction.core.models import (
    Chain,
    CredibilityLevel,
    TrustFeatureFlags,
    TrustTier,
    UnifiedTrustScore,
)


def _limit(value):
    # None means unlimited
    return float("inf") if value is None else value


class TestAccessTiers:

    @pytest.mark.parametrize("score,tier", [
        (None, AccessTier.VISITOR),
        (0, AccessTier.VISITOR),
        (1, AccessTier.MEMBER),
        (34, AccessTier.MEMBER),
        (35, AccessTier.PREMIUM),
        (50, AccessTier.WHALE),
        (65, AccessTier.ALPHA),
        (79, AccessTier.ALPHA),
        (80, AccessTier.ELITE),
        (100, AccessTier.ELITE),
    ])
    def test_tier_breakpoints(self, score, tier):
        assert get_access_tier(score) == tier

    @pytest.mark.parametrize("score,role", [
        (32, CommunityRole.VIEWER),
        (33, CommunityRole.NOMINATOR),
        (40, CommunityRole.CONTRIBUTOR),
        (47, CommunityRole.CURATOR),
        (57, CommunityRole.MODERATOR),
        (67, CommunityRole.ADMIN),
    ])
    def test_community_roles(self, score, role):
        assert get_community_role(score) == role

    def test_accepts_unified_trust_score(self):
        trust = UnifiedTrustScore(
            address="0x" + "a" * 40, chain=Chain.BASE, score=72, tier=TrustTier.GOLD,
            credibility=CredibilityLevel.HIGH, primary_provider="ethos",
            flags=TrustFeatureFlags(premium=True, whale=True, alpha=True),
        )
        entitlements = get_entitlements(trust)
        assert entitlements.access_tier == AccessTier.ALPHA
        assert entitlements.can_access_alpha_discovery is True
        assert entitlements.community_role == CommunityRole.ADMIN

    def test_elite_is_unlimited(self):
        assert get_entitlements(95).daily_analysis_limit is None

    def test_out_of_range_scores_are_clamped(self):
        assert get_entitlements(-20) == get_entitlements(0)
        assert get_entitlements(250) == get_entitlements(100)

    def test_to_dict_serializes_enums(self):
        data = get_entitlements(50).to_dict()
        assert data["access_tier"] == "whale"
        assert data["can_export_data"] is True


class TestGates:

    def test_locked_feature(self):
        result = check_gate(40, "export")
        assert result.allowed is False
        assert result.required_score == 50
        assert result.missing == 10
        assert "50+" in result.message

    def test_unlocked_feature(self):
        result = check_gate(80, "fast_refresh")
        assert result.allowed is True
        assert result.missing == 0
        assert result.message is None

    def test_unknown_feature(self):
        with pytest.raises(KeyError):
            check_gate(50, "teleport")

    def test_next_unlocks_nearest_first(self):
        unlocks = next_unlocks(36)
        assert [g.required_score for g in unlocks] == [50, 50, 50]
        assert all(not g.allowed for g in unlocks)

    def test_nothing_left_to_unlock(self):
        assert next_unlocks(100) == []


class TestMonotonicity:

    @given(low=st.integers(0, 100), high=st.integers(0, 100))
    def test_entitlements_never_decrease(self, low, high):
        """Property: every limit and flag is non-decreasing in score."""
        if low > high:
            low, high = high, low
        a, b = get_entitlements(low), get_entitlements(high)
        for f in fields(Entitlements):
            left, right = getattr(a, f.name), getattr(b, f.name)
            if f.name == "access_tier":
                assert list(AccessTier).index(left) <= list(AccessTier).index(right)
            elif f.name == "community_role":
                assert list(CommunityRole).index(left) <= list(CommunityRole).index(right)
            else:
                assert _limit(left) <= _limit(right), f"{f.name} decreased from {low} to {high}"

    @given(low=st.integers(0, 100), high=st.integers(0, 100))
    def test_gates_never_relock(self, low, high):
        if low > high:
            low, high = high, low
        for feature in FEATURES:
            if check_gate(low, feature).allowed:
                assert check_gate(high, feature).allowed
