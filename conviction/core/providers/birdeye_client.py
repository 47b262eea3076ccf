"""Birdeye API client for Solana prices, token metadata and price history."""

from typing import Dict, List, Optional

import aiohttp

from ..dto import (
    BirdeyeHistoryResponse,
    BirdeyeOverviewResponse,
    BirdeyePriceResponse,
    map_birdeye_history,
    map_birdeye_overview,
    map_birdeye_price,
    parse_payload,
)
from ..exceptions import ProviderNotConfigured
from ..models import PricePoint, PriceQuote, TokenMetadata
from .base import ProviderClient


class BirdeyeClient(ProviderClient):
    """
    Client for the Birdeye public API (Solana only, requires an API key).

    Endpoints used:
    - /defi/price: current price and 24h change
    - /defi/token_overview: name, symbol, decimals, logo
    - /defi/history_price: historical price points
    """

    name = "birdeye"

    def __init__(self, api_key: Optional[str] = None,
                 base_url: str = "https://public-api.birdeye.so",
                 session: Optional[aiohttp.ClientSession] = None,
                 timeout_seconds: float = 10.0):
        super().__init__(base_url, api_key=api_key, session=session,
                         timeout_seconds=timeout_seconds, rate_limit_delay=0.1)

    @classmethod
    def from_config(cls, session: Optional[aiohttp.ClientSession] = None) -> "BirdeyeClient":
        from ...config import ConvictionConfig
        return cls(api_key=ConvictionConfig.get_birdeye_api_key(),
                   base_url=ConvictionConfig.get_birdeye_base_url(),
                   session=session,
                   timeout_seconds=ConvictionConfig.get_provider_timeout_seconds())

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["x-chain"] = "solana"
        if self.api_key:
            headers["X-API-KEY"] = self.api_key
        return headers

    def _ensure_configured(self):
        if not self.is_configured():
            raise ProviderNotConfigured(self.name)

    async def get_price(self, token_address: str) -> Optional[PriceQuote]:
        """
        Get current price for a token.

        Returns:
            PriceQuote, or None if Birdeye has no price for the token
        """
        self._ensure_configured()
        payload = await self._get_json("/defi/price", params={"address": token_address})
        return map_birdeye_price(parse_payload(self.name, BirdeyePriceResponse, payload))

    async def get_metadata(self, token_address: str) -> Optional[TokenMetadata]:
        self._ensure_configured()
        payload = await self._get_json("/defi/token_overview", params={"address": token_address})
        return map_birdeye_overview(token_address, parse_payload(self.name, BirdeyeOverviewResponse, payload))

    async def get_price_history(self, token_address: str, from_ms: int, to_ms: int,
                                interval: str = "1H") -> List[PricePoint]:
        """
        Get historical prices between two epoch-millisecond timestamps.

        Args:
            token_address: Token mint address
            from_ms: Window start (ms)
            to_ms: Window end (ms)
            interval: Birdeye candle type (1H, 4H, 1D, ...)

        Returns:
            Price points sorted by timestamp (may be empty)
        """
        self._ensure_configured()
        params = {
            "address": token_address,
            "address_type": "token",
            "type": interval,
            "time_from": from_ms // 1000,
            "time_to": to_ms // 1000,
        }
        payload = await self._get_json("/defi/history_price", params=params)
        return map_birdeye_history(parse_payload(self.name, BirdeyeHistoryResponse, payload))
