"""
Market Data Gateway.

Resolves current prices, token metadata and historical price series behind
the shared Cache, with per-chain provider fallback:

- solana: Birdeye (when an API key is configured), then DexScreener
- base:   DexScreener only

A provider error (missing key, non-2xx, timeout, malformed payload) moves on
to the next provider. When every provider errors the lookup is reported as
unavailable and nothing is cached; public methods then return None or [].
"""

import logging
import time
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import aiohttp

from .cache import Cache
from .exceptions import MarketDataUnavailable, ProviderError
from .fanout import settle_all
from .models import (
    MS_PER_DAY,
    MS_PER_HOUR,
    Chain,
    PricePoint,
    PriceQuote,
    TokenMarketData,
    TokenMetadata,
)
from .providers import BirdeyeClient, DexScreenerClient

logger = logging.getLogger(__name__)

PRICE_TTL_SECONDS = 5 * 60
METADATA_TTL_SECONDS = 24 * 60 * 60
HISTORY_TTL_SECONDS = 60 * 60


def post_exit_window(exit_ms: int, now_ms: int, window_days: int = 90) -> Tuple[int, int]:
    """
    Lookback window for the patience tax: exit time to min(now, exit + N days).

    "Now" is floored to the hour so repeated requests share one cache key.
    """
    now_floor = now_ms - (now_ms % MS_PER_HOUR)
    end = min(now_floor, exit_ms + window_days * MS_PER_DAY)
    return exit_ms, max(exit_ms, end)


class MarketDataGateway:
    """Best-effort price, metadata and history lookups for a chain family."""

    def __init__(
        self,
        cache: Cache,
        birdeye: Optional[BirdeyeClient] = None,
        dexscreener: Optional[DexScreenerClient] = None,
        window_days: int = 90,
        metrics=None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the gateway.

        Args:
            cache: Shared process cache
            birdeye: Primary Solana provider (skipped when unkeyed)
            dexscreener: Secondary provider for both chains
            window_days: Post-exit lookback cap for history
            metrics: Optional AnalyticsMetrics
            clock: Wall clock in seconds (injectable for tests)
        """
        self.cache = cache
        self.birdeye = birdeye
        self.dexscreener = dexscreener
        self.window_days = window_days
        self.metrics = metrics
        self._clock = clock

    @classmethod
    def from_config(cls, cache: Cache, metrics=None,
                    session: Optional[aiohttp.ClientSession] = None) -> "MarketDataGateway":
        from ..config import ConvictionConfig
        return cls(
            cache,
            birdeye=BirdeyeClient.from_config(session),
            dexscreener=DexScreenerClient.from_config(session),
            window_days=ConvictionConfig.get_patience_window_days(),
            metrics=metrics,
        )

    async def close(self):
        for client in (self.birdeye, self.dexscreener):
            if client is not None:
                await client.close()

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ------------------------------------------------------------------
    # Provider fallback
    # ------------------------------------------------------------------

    def _chain_providers(self, chain: Chain) -> List[str]:
        providers = []
        if chain == Chain.SOLANA and self.birdeye is not None:
            providers.append("birdeye")
        if self.dexscreener is not None:
            providers.append("dexscreener")
        return providers

    async def _first_available(self, chain: Chain, what: str, token: str,
                               calls: Dict[str, Callable[[], Awaitable]]):
        """
        Try each provider for the chain in order and return the first answer.

        A provider that answers "no data" (None or []) ends the search; only
        errors fall through.

        Raises:
            MarketDataUnavailable: every provider errored
        """
        errors = []
        for index, name in enumerate(self._chain_providers(chain)):
            client = getattr(self, name)
            if not client.is_configured():
                logger.debug(f"{name} not configured, skipping {what} for {token}")
                continue
            try:
                result = await calls[name]()
            except ProviderError as e:
                errors.append(str(e))
                logger.warning(f"{what} lookup for {token} on {chain.value} failed via {name}: {e}")
                if self.metrics is not None:
                    self.metrics.increment_provider_failures(name)
                continue
            if index > 0 and self.metrics is not None:
                self.metrics.increment_market_fallbacks(chain.value)
            return result

        raise MarketDataUnavailable(
            f"No market data provider answered {what} for {token} on {chain.value}: "
            + ("; ".join(errors) if errors else "no provider configured")
        )

    # ------------------------------------------------------------------
    # Public lookups
    # ------------------------------------------------------------------

    async def get_price(self, token: str, chain: Chain) -> Optional[PriceQuote]:
        """Current price and 24h change, or None."""
        chain = Chain.parse(chain)
        key = f"price:{chain.value}:{token}"

        async def compute():
            return await self._first_available(chain, "price", token, {
                "birdeye": lambda: self.birdeye.get_price(token),
                "dexscreener": lambda: self.dexscreener.get_price(token, chain.value),
            })

        try:
            return await self.cache.get(key, compute, PRICE_TTL_SECONDS)
        except MarketDataUnavailable as e:
            logger.warning(str(e))
            return None

    async def get_metadata(self, token: str, chain: Chain) -> Optional[TokenMetadata]:
        """Name, symbol and logo, or None."""
        chain = Chain.parse(chain)
        key = f"metadata:{chain.value}:{token}"

        async def compute():
            return await self._first_available(chain, "metadata", token, {
                "birdeye": lambda: self.birdeye.get_metadata(token),
                "dexscreener": lambda: self.dexscreener.get_metadata(token, chain.value),
            })

        try:
            return await self.cache.get(key, compute, METADATA_TTL_SECONDS)
        except MarketDataUnavailable as e:
            logger.warning(str(e))
            return None

    async def get_price_history(self, token: str, chain: Chain,
                                from_ms: int, to_ms: int) -> List[PricePoint]:
        """
        Price points inside [from_ms, to_ms], sorted by time. Possibly empty.

        The DexScreener fallback only knows the current price, so it yields at
        most one point, and only while the window is still open (to_ms in the
        current hour or later). The point is stamped at min(now, to_ms) so a
        window whose end was floored to the hour keeps it.
        """
        chain = Chain.parse(chain)
        if to_ms < from_ms:
            return []
        key = f"history:{chain.value}:{token}:{from_ms}:{to_ms}"

        async def current_point():
            now_ms = self.now_ms()
            if to_ms < now_ms - (now_ms % MS_PER_HOUR):
                return []
            point = await self.dexscreener.get_current_point(token, chain.value, min(now_ms, to_ms))
            return [point] if point is not None else []

        async def compute():
            points = await self._first_available(chain, "history", token, {
                "birdeye": lambda: self.birdeye.get_price_history(token, from_ms, to_ms),
                "dexscreener": current_point,
            })
            return sorted(
                (p for p in points if from_ms <= p.timestamp <= to_ms and p.price > 0),
                key=lambda p: p.timestamp,
            )

        try:
            return await self.cache.get(key, compute, HISTORY_TTL_SECONDS)
        except MarketDataUnavailable as e:
            logger.warning(str(e))
            return []

    async def get_post_exit_history(self, token: str, chain: Chain, exit_ms: int,
                                    now_ms: Optional[int] = None) -> List[PricePoint]:
        """History from the exit to min(now, exit + window_days)."""
        now_ms = self.now_ms() if now_ms is None else now_ms
        from_ms, to_ms = post_exit_window(exit_ms, now_ms, self.window_days)
        if to_ms <= from_ms:
            return []
        return await self.get_price_history(token, chain, from_ms, to_ms)

    async def get_market_snapshot(self, tokens: Iterable[str], chain: Chain) -> Dict[str, TokenMarketData]:
        """
        Price and metadata for many tokens, fetched concurrently.

        Repeated addresses are fetched once. Every requested token has an
        entry; its quote and metadata are None when unavailable.
        """
        chain = Chain.parse(chain)
        unique = list(dict.fromkeys(tokens))
        if not unique:
            return {}

        awaitables = []
        labels = []
        for token in unique:
            awaitables.append(self.get_price(token, chain))
            labels.append(f"price:{token}")
            awaitables.append(self.get_metadata(token, chain))
            labels.append(f"metadata:{token}")

        results = await settle_all(awaitables, labels)
        snapshot = {}
        for i, token in enumerate(unique):
            snapshot[token] = TokenMarketData(
                token_address=token,
                quote=results[2 * i].value_or(None),
                metadata=results[2 * i + 1].value_or(None),
            )
        logger.debug(f"Market snapshot for {len(unique)} {chain.value} tokens "
                     f"({sum(1 for d in snapshot.values() if d.quote)} priced)")
        return snapshot
