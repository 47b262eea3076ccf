"""web3.bio universal profile client (cross-chain identity graph)."""

from typing import Dict, Optional

import aiohttp

from ..dto import IdentityLinks, Web3BioProfiles, map_web3bio_profiles, parse_payload
from .base import ProviderClient


class Web3BioClient(ProviderClient):
    """Looks up every profile linked to an address: other-chain addresses and social handles."""

    name = "web3bio"

    def __init__(self, api_key: Optional[str] = None,
                 base_url: str = "https://api.web3.bio",
                 session: Optional[aiohttp.ClientSession] = None,
                 timeout_seconds: float = 10.0):
        super().__init__(base_url, api_key=api_key, session=session,
                         timeout_seconds=timeout_seconds, max_retries=1)

    @classmethod
    def from_config(cls, session: Optional[aiohttp.ClientSession] = None) -> "Web3BioClient":
        from ...config import ConvictionConfig
        return cls(api_key=ConvictionConfig.get_web3bio_api_key(),
                   base_url=ConvictionConfig.get_web3bio_base_url(),
                   session=session,
                   timeout_seconds=ConvictionConfig.get_provider_timeout_seconds())

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["X-API-KEY"] = f"Bearer {self.api_key}"
        return headers

    async def lookup(self, address: str) -> IdentityLinks:
        payload = await self._get_json(f"/profile/{address}", allow_not_found=True)
        if not payload:
            return IdentityLinks()
        return map_web3bio_profiles(parse_payload(self.name, Web3BioProfiles, payload))
