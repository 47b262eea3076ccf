"""Ethos Network API client (EVM reputation scores)."""

from typing import Dict, Optional

import aiohttp

from ..dto import EthosScoreResponse, parse_payload
from .base import ProviderClient


def x_userkey(handle: str) -> str:
    """Ethos userkey for an X (Twitter) account."""
    return f"service:x.com:username:{handle.lstrip('@').lower()}"


class EthosClient(ProviderClient):
    """
    Client for the Ethos v2 API.

    Raw Ethos credibility scores run roughly 0-3000; normalization happens in
    the trust resolver, not here.
    """

    name = "ethos"

    def __init__(self, client_id: str = "conviction-analytics",
                 base_url: str = "https://api.ethos.network/api/v2",
                 session: Optional[aiohttp.ClientSession] = None,
                 timeout_seconds: float = 10.0):
        super().__init__(base_url, session=session, timeout_seconds=timeout_seconds)
        self.client_id = client_id

    @classmethod
    def from_config(cls, session: Optional[aiohttp.ClientSession] = None) -> "EthosClient":
        from ...config import ConvictionConfig
        return cls(client_id=ConvictionConfig.get_ethos_client_id(),
                   base_url=ConvictionConfig.get_ethos_base_url(),
                   session=session,
                   timeout_seconds=ConvictionConfig.get_provider_timeout_seconds())

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["X-Ethos-Client"] = self.client_id
        return headers

    async def get_score_by_address(self, address: str) -> Optional[EthosScoreResponse]:
        """
        Get the credibility score for an EVM address.

        Returns:
            Score payload, or None if Ethos has no profile for the address
        """
        payload = await self._get_json("/score/address", params={"address": address},
                                       allow_not_found=True)
        if payload is None:
            return None
        return parse_payload(self.name, EthosScoreResponse, payload)

    async def get_score_by_userkey(self, userkey: str) -> Optional[EthosScoreResponse]:
        """Get the credibility score for an Ethos userkey (e.g. an X account)."""
        payload = await self._get_json("/score/userkey", params={"userkey": userkey},
                                       allow_not_found=True)
        if payload is None:
            return None
        return parse_payload(self.name, EthosScoreResponse, payload)
