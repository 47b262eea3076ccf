"""Neynar API client (Farcaster social graph)."""

from typing import Dict, Optional

import aiohttp

from ..dto import IdentityLinks, NeynarBulkByAddress, map_neynar_users, parse_payload
from ..exceptions import ProviderNotConfigured
from .base import ProviderClient


class NeynarClient(ProviderClient):
    """Resolves the Farcaster user behind an address and their verified addresses."""

    name = "neynar"

    def __init__(self, api_key: Optional[str] = None,
                 base_url: str = "https://api.neynar.com/v2",
                 session: Optional[aiohttp.ClientSession] = None,
                 timeout_seconds: float = 10.0):
        super().__init__(base_url, api_key=api_key, session=session,
                         timeout_seconds=timeout_seconds, max_retries=1)

    @classmethod
    def from_config(cls, session: Optional[aiohttp.ClientSession] = None) -> "NeynarClient":
        from ...config import ConvictionConfig
        return cls(api_key=ConvictionConfig.get_neynar_api_key(),
                   base_url=ConvictionConfig.get_neynar_base_url(),
                   session=session,
                   timeout_seconds=ConvictionConfig.get_provider_timeout_seconds())

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def lookup(self, address: str) -> IdentityLinks:
        if not self.is_configured():
            raise ProviderNotConfigured(self.name)
        payload = await self._get_json("/farcaster/user/bulk-by-address",
                                       params={"addresses": address}, allow_not_found=True)
        if not payload:
            return IdentityLinks()
        return map_neynar_users(address, parse_payload(self.name, NeynarBulkByAddress, payload))
