"""DexScreener API client for price and token metadata (no API key required)."""

from typing import Optional

import aiohttp

from ..dto import DexPair, DexTokenResponse, map_dex_metadata, map_dex_price, parse_payload, select_dex_pair
from ..models import PricePoint, PriceQuote, TokenMetadata
from .base import ProviderClient


class DexScreenerClient(ProviderClient):
    """
    Client for the DexScreener API.

    DexScreener has no history endpoint; get_current_point() returns the
    current price as a single point for callers that want a degenerate series.
    """

    name = "dexscreener"

    def __init__(self, base_url: str = "https://api.dexscreener.com",
                 session: Optional[aiohttp.ClientSession] = None,
                 timeout_seconds: float = 10.0):
        super().__init__(base_url, session=session, timeout_seconds=timeout_seconds,
                         rate_limit_delay=0.2)

    @classmethod
    def from_config(cls, session: Optional[aiohttp.ClientSession] = None) -> "DexScreenerClient":
        from ...config import ConvictionConfig
        return cls(base_url=ConvictionConfig.get_dexscreener_base_url(),
                   session=session,
                   timeout_seconds=ConvictionConfig.get_provider_timeout_seconds())

    async def get_best_pair(self, token_address: str, chain: str) -> Optional[DexPair]:
        """
        Get the most liquid priced pair for a token on one chain.

        Args:
            token_address: Token address
            chain: DexScreener chain id ('solana' or 'base')
        """
        payload = await self._get_json(f"/latest/dex/tokens/{token_address}")
        response = parse_payload(self.name, DexTokenResponse, payload)
        return select_dex_pair(token_address, chain, response)

    async def get_price(self, token_address: str, chain: str) -> Optional[PriceQuote]:
        return map_dex_price(await self.get_best_pair(token_address, chain))

    async def get_metadata(self, token_address: str, chain: str) -> Optional[TokenMetadata]:
        return map_dex_metadata(token_address, await self.get_best_pair(token_address, chain))

    async def get_current_point(self, token_address: str, chain: str, now_ms: int) -> Optional[PricePoint]:
        quote = await self.get_price(token_address, chain)
        if quote is None:
            return None
        return PricePoint(timestamp=now_ms, price=quote.price)
