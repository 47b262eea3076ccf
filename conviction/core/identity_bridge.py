"""
Cross-chain identity bridging.

Given an address on one chain family, find the same owner's address on the
other family and their X (Twitter) handle. Providers are asked in order
(web3.bio identity graph, then Neynar social graph); the first non-empty
value for each field wins and is never overwritten. Every failure is
logged and skipped.
"""

import logging
from typing import List, Optional, Tuple

from .cache import Cache
from .dto import IdentityLinks
from .exceptions import ProviderError
from .models import BridgedIdentity, Chain
from .providers import NeynarClient, Web3BioClient

logger = logging.getLogger(__name__)

IDENTITY_TTL_SECONDS = 60 * 60


class IdentityBridge:
    """Best-effort counter-chain address and social handle resolution."""

    def __init__(self, cache: Cache,
                 web3bio: Optional[Web3BioClient] = None,
                 neynar: Optional[NeynarClient] = None,
                 ttl_seconds: float = IDENTITY_TTL_SECONDS,
                 metrics=None):
        self.cache = cache
        self.providers: List[Tuple[str, object]] = [
            (name, client) for name, client in (("web3bio", web3bio), ("neynar", neynar))
            if client is not None
        ]
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics

    async def close(self):
        for _, client in self.providers:
            await client.close()

    async def _lookup(self, name: str, client, address: str) -> IdentityLinks:
        key = f"identity:{name}:{address.lower()}"
        return await self.cache.get(key, lambda: client.lookup(address), self.ttl_seconds)

    async def bridge(self, address: str, chain: Chain,
                     social_handle: Optional[str] = None) -> BridgedIdentity:
        """
        Resolve the counter-chain address and social handle for an address.

        Args:
            address: Address being resolved
            chain: Its chain family
            social_handle: Handle supplied by the caller (kept as-is)

        Returns:
            BridgedIdentity; unresolved fields stay None
        """
        identity = BridgedIdentity(
            address=address,
            chain=chain,
            social_handle=social_handle.lstrip("@") if social_handle else None,
        )

        for name, client in self.providers:
            if identity.is_complete:
                break
            if not client.is_configured():
                continue
            try:
                links = await self._lookup(name, client, address)
            except ProviderError as e:
                logger.warning(f"Identity bridging via {name} failed for {address}: {e}")
                if self.metrics is not None:
                    self.metrics.increment_provider_failures(name)
                continue

            contributed = False
            if identity.counter_address is None:
                candidates = links.solana_addresses if chain == Chain.BASE else links.evm_addresses
                counter = next((a for a in candidates if a.lower() != address.lower()), None)
                if counter:
                    identity.counter_address = counter
                    contributed = True
            if identity.social_handle is None and links.social_handle:
                identity.social_handle = links.social_handle
                contributed = True
            if contributed:
                identity.sources.append(name)

        logger.debug(
            f"Bridged {address} ({chain.value}): counter={identity.counter_address} "
            f"handle={identity.social_handle} via {identity.sources or 'none'}"
        )
        return identity
