"""
Trust Resolver

Normalizes two independent reputation providers into one 0-100 trust score:
- Ethos (EVM): raw credibility ~0-3000, normalized as min(100, raw / 30)
- FairScale (Solana): already 0-100

The unified score is the max of the two, so strength on either provider is
fully credited. Cross-chain bridging lets an EVM wallet pick up its Solana
FairScore and a Solana wallet pick up Ethos through its X handle.

Provider errors and timeouts count as "no data from that provider"; a
well-formed address always resolves.
"""

import logging
import re
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import aiohttp

from .cache import Cache
from .exceptions import InvalidAddressError
from .fanout import settle_all
from .identity_bridge import IdentityBridge
from .math_utils import round_half_up
from .models import (
    BridgedIdentity,
    Chain,
    CredibilityLevel,
    ProviderScore,
    TrustFeatureFlags,
    TrustTier,
    UnifiedTrustScore,
)
from .providers import EthosClient, FairScaleClient, NeynarClient, Web3BioClient, x_userkey

logger = logging.getLogger(__name__)

EVM_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")
SOLANA_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

ETHOS_SCALE = 30.0

TIER_BREAKPOINTS = [
    (90, TrustTier.DIAMOND, CredibilityLevel.ELITE),
    (75, TrustTier.PLATINUM, CredibilityLevel.HIGH),
    (60, TrustTier.GOLD, CredibilityLevel.HIGH),
    (40, TrustTier.SILVER, CredibilityLevel.MEDIUM),
    (20, TrustTier.BRONZE, CredibilityLevel.LOW),
]

FLAG_BREAKPOINTS = {
    "premium": 35,
    "whale": 50,
    "alpha": 65,
    "elite": 80,
}


def detect_chain(address: str) -> Chain:
    """
    Detect the chain family from the address format.

    Raises:
        InvalidAddressError: neither a 0x-prefixed 40-hex address nor Base58
    """
    if EVM_ADDRESS.match(address):
        return Chain.BASE
    if SOLANA_ADDRESS.match(address):
        return Chain.SOLANA
    raise InvalidAddressError(f"Unrecognized address format: {address!r}")


def normalize_ethos(raw: float) -> int:
    return round_half_up(min(100.0, max(0.0, raw) / ETHOS_SCALE))


def normalize_fairscale(raw: float) -> int:
    return round_half_up(min(100.0, max(0.0, raw)))


def tier_for_score(score: float) -> Tuple[TrustTier, CredibilityLevel]:
    for minimum, tier, credibility in TIER_BREAKPOINTS:
        if score >= minimum:
            return tier, credibility
    return TrustTier.UNKNOWN, CredibilityLevel.UNKNOWN


def feature_flags_for_score(score: float) -> TrustFeatureFlags:
    return TrustFeatureFlags(**{name: score >= minimum for name, minimum in FLAG_BREAKPOINTS.items()})


def combine_scores(ethos: Optional[ProviderScore],
                   fairscale: Optional[ProviderScore]) -> Tuple[int, str]:
    """
    Unified score and the provider that contributed it.

    Ethos is primary only when strictly higher; ties go to FairScale.
    """
    ethos_score = ethos.normalized_score if ethos else None
    fair_score = fairscale.normalized_score if fairscale else None
    if ethos_score is not None and (fair_score is None or ethos_score > fair_score):
        return ethos_score, "ethos"
    if fair_score is not None:
        return fair_score, "fairscale"
    return 0, "none"


def _clean_handle(handle: Optional[str]) -> Optional[str]:
    if handle is None:
        return None
    handle = handle.strip().lstrip("@")
    return handle or None


class TrustResolver:
    """Resolves a UnifiedTrustScore for an address and optional social handle."""

    def __init__(
        self,
        cache: Cache,
        ethos: Optional[EthosClient] = None,
        fairscale: Optional[FairScaleClient] = None,
        identity_bridge: Optional[IdentityBridge] = None,
        ttl_seconds: float = 3600.0,
        lookup_timeout: Optional[float] = 15.0,
        batch_limit: int = 50,
        metrics=None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the resolver.

        Args:
            cache: Shared process cache
            ethos: Ethos client (EVM reputation)
            fairscale: FairScale client (Solana reputation)
            identity_bridge: Cross-chain identity bridge (optional)
            ttl_seconds: TTL for provider scores and unified results
            lookup_timeout: Upper bound for each fanned-out lookup
            batch_limit: Maximum addresses per resolve_batch call
            metrics: Optional AnalyticsMetrics
        """
        self.cache = cache
        self.ethos = ethos
        self.fairscale = fairscale
        self.identity_bridge = identity_bridge
        self.ttl_seconds = ttl_seconds
        self.lookup_timeout = lookup_timeout
        self.batch_limit = batch_limit
        self.metrics = metrics
        self._clock = clock

    @classmethod
    def from_config(cls, cache: Cache, metrics=None,
                    session: Optional[aiohttp.ClientSession] = None) -> "TrustResolver":
        from ..config import ConvictionConfig
        bridge = IdentityBridge(
            cache,
            web3bio=Web3BioClient.from_config(session),
            neynar=NeynarClient.from_config(session),
            ttl_seconds=ConvictionConfig.get_trust_cache_ttl_seconds(),
            metrics=metrics,
        )
        return cls(
            cache,
            ethos=EthosClient.from_config(session),
            fairscale=FairScaleClient.from_config(session),
            identity_bridge=bridge,
            ttl_seconds=ConvictionConfig.get_trust_cache_ttl_seconds(),
            lookup_timeout=ConvictionConfig.get_provider_timeout_seconds() * 1.5,
            batch_limit=ConvictionConfig.get_trust_batch_limit(),
            metrics=metrics,
        )

    async def close(self):
        for client in (self.ethos, self.fairscale):
            if client is not None:
                await client.close()
        if self.identity_bridge is not None:
            await self.identity_bridge.close()

    # ------------------------------------------------------------------
    # Provider lookups (cached; errors propagate to the fan-out)
    # ------------------------------------------------------------------

    async def _ethos_by_address(self, address: str) -> Optional[ProviderScore]:
        async def compute():
            response = await self.ethos.get_score_by_address(address)
            if response is None:
                return None
            return ProviderScore(provider="ethos", raw_score=response.score,
                                 normalized_score=normalize_ethos(response.score),
                                 tier_label=response.level, lookup="address")

        return await self.cache.get(f"ethos:score:address:{address.lower()}", compute, self.ttl_seconds)

    async def _ethos_by_handle(self, handle: str) -> Optional[ProviderScore]:
        userkey = x_userkey(handle)

        async def compute():
            response = await self.ethos.get_score_by_userkey(userkey)
            if response is None:
                return None
            return ProviderScore(provider="ethos", raw_score=response.score,
                                 normalized_score=normalize_ethos(response.score),
                                 tier_label=response.level, lookup="userkey")

        return await self.cache.get(f"ethos:score:userkey:{userkey}", compute, self.ttl_seconds)

    async def _fairscale(self, wallet: str, handle: Optional[str]) -> Optional[ProviderScore]:
        async def compute():
            response = await self.fairscale.get_score(wallet, handle)
            if response is None:
                return None
            return ProviderScore(provider="fairscale", raw_score=response.fairscore,
                                 normalized_score=normalize_fairscale(response.fairscore),
                                 tier_label=response.tier, lookup="address",
                                 badges=[b.label or b.id for b in response.badges])

        key = f"fairscale:score:{wallet}:{(handle or '').lower()}"
        return await self.cache.get(key, compute, self.ttl_seconds)

    async def _bridge(self, address: str, chain: Chain, handle: Optional[str]) -> Tuple[BridgedIdentity, bool]:
        identity = BridgedIdentity(address=address, chain=chain, social_handle=handle)
        if self.identity_bridge is None:
            return identity, False
        [result] = await settle_all([self.identity_bridge.bridge(address, chain, handle)],
                                    labels=["identity"], timeout=self.lookup_timeout)
        return result.value_or(identity), not result.ok

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _cache_key(self, address: str, handle: Optional[str]) -> str:
        return f"trust:{address.lower()}:{(handle or '').lower()}"

    async def resolve(self, address: str, social_handle: Optional[str] = None) -> UnifiedTrustScore:
        """
        Resolve the unified trust score for an address.

        Args:
            address: EVM (0x...) or Solana (Base58) address
            social_handle: Optional X handle, with or without '@'

        Returns:
            UnifiedTrustScore (score 0 / tier unknown when no provider has data)

        Raises:
            InvalidAddressError: address format not recognized
        """
        address = address.strip()
        chain = detect_chain(address)
        handle = _clean_handle(social_handle)

        key = self._cache_key(address, handle)
        cached = await self.cache.apeek(key)
        if cached is not None:
            return cached.value

        identity, bridge_failed = await self._bridge(address, chain, handle)

        lookups = []
        labels = []
        if chain == Chain.BASE:
            if self.ethos is not None:
                lookups.append(self._ethos_by_address(address))
                labels.append("ethos")
            if self.fairscale is not None and self.fairscale.is_configured() and identity.solana_address:
                lookups.append(self._fairscale(identity.solana_address, identity.social_handle))
                labels.append("fairscale")
        else:
            if self.fairscale is not None and self.fairscale.is_configured():
                lookups.append(self._fairscale(address, identity.social_handle))
                labels.append("fairscale")
            if self.ethos is not None and identity.social_handle:
                lookups.append(self._ethos_by_handle(identity.social_handle))
                labels.append("ethos")

        results = await settle_all(lookups, labels, timeout=self.lookup_timeout)
        scores: Dict[str, Optional[ProviderScore]] = {"ethos": None, "fairscale": None}
        degraded = bridge_failed
        for result in results:
            if result.ok:
                scores[result.label] = result.value
            else:
                degraded = True
                logger.warning(f"Trust lookup via {result.label} failed for {address}: {result.error}")
                if self.metrics is not None:
                    self.metrics.increment_provider_failures(result.label)

        trust = self._build(address, chain, scores["ethos"], scores["fairscale"], identity, degraded)

        if not degraded:
            await self.cache.aset(key, trust, self.ttl_seconds)
        if self.metrics is not None:
            self.metrics.record_trust_resolution(trust.tier.value)

        logger.info(
            f"Trust for {address[:10]}... ({chain.value}): {trust.score} {trust.tier.value} "
            f"via {trust.primary_provider}{' (degraded)' if degraded else ''}"
        )
        return trust

    def _build(self, address: str, chain: Chain,
               ethos: Optional[ProviderScore], fairscale: Optional[ProviderScore],
               identity: Optional[BridgedIdentity], degraded: bool) -> UnifiedTrustScore:
        score, primary = combine_scores(ethos, fairscale)
        tier, credibility = tier_for_score(score)
        return UnifiedTrustScore(
            address=address,
            chain=chain,
            score=score,
            tier=tier,
            credibility=credibility,
            primary_provider=primary,
            flags=feature_flags_for_score(score),
            ethos=ethos,
            fairscale=fairscale,
            identity=identity,
            degraded=degraded,
            resolved_at=int(self._clock() * 1000),
        )

    async def resolve_batch(
        self,
        requests: Sequence[Union[str, Tuple[str, Optional[str]]]],
    ) -> Dict[str, UnifiedTrustScore]:
        """
        Resolve many addresses concurrently.

        Args:
            requests: Addresses, or (address, social_handle) pairs

        Returns:
            Mapping of address to UnifiedTrustScore, one per unique address

        Raises:
            ValueError: more than batch_limit unique addresses
            InvalidAddressError: any address is malformed (checked before any lookup)
        """
        pairs: Dict[str, Optional[str]] = {}
        for item in requests:
            address, handle = (item, None) if isinstance(item, str) else item
            address = address.strip()
            detect_chain(address)
            pairs.setdefault(address, handle)

        if len(pairs) > self.batch_limit:
            raise ValueError(f"Batch of {len(pairs)} addresses exceeds limit of {self.batch_limit}")

        addresses: List[str] = list(pairs)
        results = await settle_all([self.resolve(a, pairs[a]) for a in addresses], labels=addresses)
        resolved = {}
        for address, result in zip(addresses, results):
            if result.ok:
                resolved[address] = result.value
            else:
                resolved[address] = self._build(address, detect_chain(address), None, None, None, True)
        return resolved

    def invalidate(self, address: str) -> int:
        """Drop cached unified results and provider scores for an address."""
        escaped = re.escape(address.strip().lower())
        count = self.cache.invalidate_pattern(re.compile(f"^trust:{escaped}:"))
        count += self.cache.invalidate_pattern(re.compile(f"^ethos:score:address:{escaped}$"))
        count += self.cache.invalidate_pattern(
            re.compile(f"^fairscale:score:{re.escape(address.strip())}:")
        )
        return count
