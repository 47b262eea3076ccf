"""
Pytest configuration and fixtures for conviction analytics tests.
"""

from typing import Dict, List, Optional

import pytest
from prometheus_client import CollectorRegistry

from conviction.core.cache import Cache, MemoryStore
from conviction.core.dto import IdentityLinks
from conviction.core.exceptions import ProviderError
from conviction.core.metrics import AnalyticsMetrics
from conviction.core.models import (
    MS_PER_DAY,
    PricePoint,
    PriceQuote,
    Position,
    TokenMetadata,
    TradeDirection,
    TradeEvent,
)

# 2024-01-01T00:00:00Z
T0 = 1_704_067_200_000


class FakeClock:
    """Settable wall clock in seconds."""

    def __init__(self, now: float = T0 / 1000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class MockMarketProvider:
    """Mock market data provider with predefined values, standing in for Birdeye or DexScreener."""

    def __init__(self, name: str,
                 prices: Optional[Dict[str, float]] = None,
                 history: Optional[Dict[str, List[PricePoint]]] = None,
                 error: Optional[Exception] = None,
                 configured: bool = True):
        self.name = name
        self.prices = prices or {}
        self.history = history or {}
        self.error = error
        self.configured = configured
        self.calls: List[tuple] = []

    def is_configured(self) -> bool:
        return self.configured

    async def close(self):
        pass

    def _check(self, call: tuple):
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    async def get_price(self, token: str, chain: Optional[str] = None) -> Optional[PriceQuote]:
        self._check(("price", token))
        if token not in self.prices:
            return None
        return PriceQuote(price=self.prices[token], source=self.name)

    async def get_metadata(self, token: str, chain: Optional[str] = None) -> Optional[TokenMetadata]:
        self._check(("metadata", token))
        if token not in self.prices:
            return None
        return TokenMetadata(address=token, symbol=token[:4].upper(), source=self.name)

    async def get_price_history(self, token: str, from_ms: int, to_ms: int) -> List[PricePoint]:
        self._check(("history", token))
        return list(self.history.get(token, []))

    async def get_current_point(self, token: str, chain: str, now_ms: int) -> Optional[PricePoint]:
        self._check(("current", token))
        if token not in self.prices:
            return None
        return PricePoint(timestamp=now_ms, price=self.prices[token])


class MockIdentityProvider:
    """Mock identity provider returning fixed IdentityLinks per address."""

    def __init__(self, links: Optional[Dict[str, IdentityLinks]] = None,
                 error: Optional[Exception] = None, configured: bool = True):
        self.links = links or {}
        self.error = error
        self.configured = configured
        self.calls: List[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def close(self):
        pass

    async def lookup(self, address: str) -> IdentityLinks:
        self.calls.append(address)
        if self.error is not None:
            raise self.error
        return self.links.get(address, IdentityLinks())


def provider_error(name: str, status: int = 500) -> ProviderError:
    return ProviderError(name, f"HTTP {status}", status=status)


def trade(hash_: str, timestamp: int, amount: float, price: float,
          direction: TradeDirection = TradeDirection.BUY, token: str = "TOKEN") -> TradeEvent:
    return TradeEvent(
        hash=hash_,
        timestamp=timestamp,
        token_address=token,
        direction=direction,
        amount=amount,
        price_usd=price,
        value_usd=amount * price,
    )


def make_position(token: str = "TOKEN",
                  buys: Optional[List[tuple]] = None,
                  sells: Optional[List[tuple]] = None,
                  wallet: str = "wallet") -> Position:
    """
    Build a Position from (timestamp, amount, price) tuples.
    """
    entries = [trade(f"b{i}", ts, amount, price, TradeDirection.BUY, token)
               for i, (ts, amount, price) in enumerate(buys or [])]
    exits = [trade(f"s{i}", ts, amount, price, TradeDirection.SELL, token)
             for i, (ts, amount, price) in enumerate(sells or [])]
    return Position(wallet=wallet, token_address=token, entries=entries, exits=exits)


@pytest.fixture
def solana_address():
    """Sample Solana wallet address for testing."""
    return "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


@pytest.fixture
def evm_address():
    """Sample Base (EVM) wallet address for testing."""
    return "0x1234567890abcdef1234567890abcdef12345678"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """In-memory cache driven by the fake clock."""
    return Cache(store=MemoryStore(max_size=500), default_ttl_seconds=3600, clock=clock)


@pytest.fixture
def metrics():
    """Metrics on a private registry so tests never collide on metric names."""
    return AnalyticsMetrics(registry=CollectorRegistry())


@pytest.fixture
def round_trip_position():
    """
    Bought 100 @ $1 at T0, sold everything @ $2 ten days later.
    """
    return make_position(
        buys=[(T0, 100, 1.0)],
        sells=[(T0 + 10 * MS_PER_DAY, 100, 2.0)],
    )
