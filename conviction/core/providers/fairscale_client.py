"""FairScale API client (Solana wallet reputation)."""

from typing import Dict, Optional

import aiohttp

from ..dto import FairScaleScoreResponse, parse_payload
from ..exceptions import ProviderNotConfigured
from .base import ProviderClient


class FairScaleClient(ProviderClient):
    """Client for the FairScale scoring API. Scores are already on a 0-100 scale."""

    name = "fairscale"

    def __init__(self, api_key: Optional[str] = None,
                 base_url: str = "https://api.fairscale.xyz",
                 session: Optional[aiohttp.ClientSession] = None,
                 timeout_seconds: float = 10.0):
        super().__init__(base_url, api_key=api_key, session=session,
                         timeout_seconds=timeout_seconds)

    @classmethod
    def from_config(cls, session: Optional[aiohttp.ClientSession] = None) -> "FairScaleClient":
        from ...config import ConvictionConfig
        return cls(api_key=ConvictionConfig.get_fairscale_api_key(),
                   base_url=ConvictionConfig.get_fairscale_base_url(),
                   session=session,
                   timeout_seconds=ConvictionConfig.get_provider_timeout_seconds())

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["fairkey"] = self.api_key
        return headers

    async def get_score(self, wallet: str, twitter: Optional[str] = None) -> Optional[FairScaleScoreResponse]:
        """
        Get the combined FairScore for a Solana wallet.

        Args:
            wallet: Solana wallet address
            twitter: Optional X handle folded into the social component

        Returns:
            Score payload, or None if FairScale does not know the wallet
        """
        if not self.is_configured():
            raise ProviderNotConfigured(self.name)
        params = {"wallet": wallet}
        if twitter:
            params["twitter"] = twitter.lstrip("@")
        payload = await self._get_json("/score", params=params, allow_not_found=True)
        if payload is None:
            return None
        return parse_payload(self.name, FairScaleScoreResponse, payload)
