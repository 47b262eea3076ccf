"""
Conviction Service Tests

End-to-end wallet analysis with mocked providers: positions and trust are
resolved concurrently and neither can fail the other.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conviction.core.exceptions import InvalidAddressError
from conviction.core.feature_gate import AccessTier
from conviction.core.identity_bridge import IdentityBridge
from conviction.core.market_data import MarketDataGateway
from conviction.core.models import MS_PER_DAY, Archetype, Chain, PricePoint
from conviction.core.position_analyzer import PositionAnalyzer
from conviction.core.scoring import ConvictionScorer
from conviction.core.service import ConvictionService
from conviction.core.trust_resolver import TrustResolver
from conviction.tests.conftest import T0, MockMarketProvider, make_position
from conviction.tests.test_trust_resolver import MockFairScale

SOL = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
EXIT = T0 + 10 * MS_PER_DAY
NOW = T0 + 200 * MS_PER_DAY


@pytest.fixture
def service(cache, clock, metrics):
    birdeye = MockMarketProvider(
        "birdeye",
        prices={"TOKEN": 3.0},
        history={"TOKEN": [PricePoint(EXIT + MS_PER_DAY, 4.0)]},
    )
    gateway = MarketDataGateway(cache, birdeye=birdeye, clock=clock, metrics=metrics)
    resolver = TrustResolver(cache, fairscale=MockFairScale(scores={SOL: 55}),
                             identity_bridge=IdentityBridge(cache), metrics=metrics, clock=clock)
    return ConvictionService(
        cache=cache,
        gateway=gateway,
        analyzer=PositionAnalyzer(gateway),
        scorer=ConvictionScorer(),
        trust_resolver=resolver,
        metrics=metrics,
    )


@pytest.fixture
def positions():
    return [make_position("TOKEN", buys=[(T0, 100, 1.0)], sells=[(EXIT, 100, 2.0)], wallet=SOL)]


def test_analyze_wallet_with_trust(service, positions, metrics):
    result = asyncio.run(service.analyze_wallet(SOL, "solana", positions, now_ms=NOW))

    assert result.chain == Chain.SOLANA
    assert result.positions[0].patience_tax == pytest.approx(200.0)
    assert result.metrics.total_positions == 1
    assert result.metrics.early_exits == 1
    assert result.trust.score == 55
    assert result.entitlements.access_tier == AccessTier.WHALE
    assert metrics.registry.get_sample_value("conviction_analysis_duration_seconds_count") == 1

    data = result.to_dict()
    assert data["metrics"]["patienceTax"] == 200
    assert data["trust"]["primaryProvider"] == "fairscale"


def test_analyze_wallet_without_trust(service, positions):
    result = asyncio.run(service.analyze_wallet(SOL, Chain.SOLANA, positions,
                                                include_trust=False, now_ms=NOW))
    assert result.trust is None
    assert result.entitlements is None


def test_empty_wallet(service):
    result = asyncio.run(service.analyze_wallet(SOL, Chain.SOLANA, [], include_trust=False))
    assert result.metrics.score == 0
    assert result.metrics.archetype == Archetype.EXIT_VOYAGER
    assert result.positions == []


def test_malformed_address_rejected_before_lookups(service, positions):
    with pytest.raises(InvalidAddressError):
        asyncio.run(service.analyze_wallet("nope", Chain.SOLANA, positions))
    assert service.gateway.birdeye.calls == []


def test_unsupported_chain(service):
    with pytest.raises(ValueError):
        asyncio.run(service.analyze_wallet(SOL, "ethereum", [], include_trust=False))


def test_trust_failure_does_not_fail_analysis(service, positions):
    service.trust_resolver.resolve = AsyncMock(side_effect=RuntimeError("resolver crashed"))

    result = asyncio.run(service.analyze_wallet(SOL, Chain.SOLANA, positions, now_ms=NOW))

    assert result.trust is None
    assert result.metrics.total_positions == 1


def test_close_closes_clients(service):
    service.gateway.close = AsyncMock()
    service.trust_resolver.close = AsyncMock()

    async def run():
        async with service:
            pass

    asyncio.run(run())
    service.gateway.close.assert_awaited_once()
    service.trust_resolver.close.assert_awaited_once()


def test_from_config_injects_one_cache():
    with patch.dict("os.environ", {"PATIENCE_WINDOW_DAYS": "30"}, clear=True):
        service = ConvictionService.from_config(metrics=MagicMock())

    assert service.gateway.cache is service.cache
    assert service.trust_resolver.cache is service.cache
    assert service.trust_resolver.identity_bridge.cache is service.cache
    assert service.analyzer.window_days == 30
    assert service.gateway.window_days == 30


def test_analysis_does_not_scan_the_cache(service, positions):
    service.cache.get_stats = MagicMock()

    asyncio.run(service.analyze_wallet(SOL, Chain.SOLANA, positions, include_trust=False, now_ms=NOW))

    service.cache.get_stats.assert_not_called()
