"""
Conviction service: wires the cache, gateway, analyzer, scorer and trust
resolver together for one wallet request.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .cache import Cache
from .feature_gate import Entitlements, get_entitlements
from .fanout import settle_all
from .market_data import MarketDataGateway
from .models import Chain, ConvictionMetrics, Position, PositionAnalysis, UnifiedTrustScore
from .position_analyzer import PositionAnalyzer
from .scoring import ConvictionScorer
from .trust_resolver import TrustResolver, detect_chain

logger = logging.getLogger(__name__)


@dataclass
class WalletAnalysis:
    """Everything computed for one wallet request."""
    address: str
    chain: Chain
    positions: List[PositionAnalysis]
    metrics: ConvictionMetrics
    trust: Optional[UnifiedTrustScore] = None
    entitlements: Optional[Entitlements] = None
    analyzed_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "chain": self.chain.value,
            "metrics": self.metrics.to_dict(),
            "positions": [p.to_dict() for p in self.positions],
            "trust": self.trust.to_dict() if self.trust else None,
            "entitlements": self.entitlements.to_dict() if self.entitlements else None,
            "analyzedAt": self.analyzed_at,
        }


class ConvictionService:
    """Request-level entry point for wallet analysis and trust resolution."""

    def __init__(
        self,
        cache: Cache,
        gateway: MarketDataGateway,
        analyzer: PositionAnalyzer,
        scorer: ConvictionScorer,
        trust_resolver: Optional[TrustResolver] = None,
        metrics=None,
    ):
        self.cache = cache
        self.gateway = gateway
        self.analyzer = analyzer
        self.scorer = scorer
        self.trust_resolver = trust_resolver
        self.metrics = metrics

    @classmethod
    def from_config(cls, metrics=None) -> "ConvictionService":
        """Construct the process cache once and inject it into every component."""
        cache = Cache.from_config(metrics=metrics)
        gateway = MarketDataGateway.from_config(cache, metrics=metrics)
        return cls(
            cache=cache,
            gateway=gateway,
            analyzer=PositionAnalyzer.from_config(gateway),
            scorer=ConvictionScorer.from_config(),
            trust_resolver=TrustResolver.from_config(cache, metrics=metrics),
            metrics=metrics,
        )

    async def close(self):
        await self.gateway.close()
        if self.trust_resolver is not None:
            await self.trust_resolver.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def analyze_wallet(
        self,
        address: str,
        chain: Chain,
        positions: Sequence[Position],
        social_handle: Optional[str] = None,
        include_trust: bool = True,
        now_ms: Optional[int] = None,
    ) -> WalletAnalysis:
        """
        Analyze a wallet's positions and, optionally, resolve its trust score.

        Market data and trust lookups run concurrently; neither can fail the
        other. Provider outages yield zeroed metrics, not errors.
        """
        start = time.time()
        chain = Chain.parse(chain)
        resolve_trust = include_trust and self.trust_resolver is not None
        if resolve_trust:
            # Malformed addresses are rejected before any lookup starts
            detect_chain(address.strip())

        tasks = [self.analyzer.analyze_positions(positions, chain, now_ms=now_ms)]
        labels = ["positions"]
        if resolve_trust:
            tasks.append(self.trust_resolver.resolve(address, social_handle))
            labels.append("trust")

        results = await settle_all(tasks, labels)
        positions_result = results[0]
        if not positions_result.ok:
            raise positions_result.error
        analyses = positions_result.value
        trust = results[1].value_or(None) if len(results) > 1 else None

        metrics = self.scorer.score(analyses)
        duration = time.time() - start

        if self.metrics is not None:
            self.metrics.record_conviction(metrics.score, metrics.archetype.value)
            self.metrics.record_analysis_duration(duration)

        logger.info(
            f"Analyzed {address} ({chain.value}): {metrics.total_positions} positions, "
            f"score {metrics.score:.1f} ({metrics.archetype.value}) in {duration:.2f}s"
        )

        return WalletAnalysis(
            address=address,
            chain=chain,
            positions=analyses,
            metrics=metrics,
            trust=trust,
            entitlements=get_entitlements(trust) if trust is not None else None,
            analyzed_at=int(time.time() * 1000),
        )
