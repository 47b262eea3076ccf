"""
Prometheus Metrics Export for Conviction Analytics

Exports engine metrics for monitoring:
- Cache hits, misses and de-duplicated waits
- Provider failures and market data fallbacks
- Conviction score and trust tier distributions
- Wallet analysis duration
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)


class AnalyticsMetrics:
    """
    Prometheus metrics exporter for the conviction engine.

    Metrics exported:
    - conviction_cache_requests_total: Cache lookups by outcome (Counter with label)
    - conviction_cache_entries: Entries currently held by the cache (Gauge)
    - conviction_provider_failures_total: Failed provider calls (Counter with label)
    - conviction_market_fallbacks_total: Lookups served by the secondary provider (Counter)
    - conviction_score_distribution: Conviction scores (Histogram)
    - conviction_wallets_by_archetype_total: Analyses per archetype (Counter with label)
    - conviction_trust_resolutions_total: Trust resolutions by tier (Counter with label)
    - conviction_analysis_duration_seconds: Time taken to analyze a wallet (Histogram)

    Each instance owns its own CollectorRegistry so several can coexist in one
    process (tests, embedded use).
    """

    def __init__(self, port: int = 9108, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics exporter.

        Args:
            port: Port to expose metrics on (default 9108)
            registry: Registry to register metrics in (a fresh one by default)
        """
        self.port = port
        self.registry = registry if registry is not None else CollectorRegistry()
        self.metrics_started = False

        self.cache_requests = Counter(
            'conviction_cache_requests_total',
            'Cache lookups by outcome',
            ['outcome'],
            registry=self.registry,
        )

        self.cache_entries = Gauge(
            'conviction_cache_entries',
            'Entries currently held by the cache',
            registry=self.registry,
        )

        self.provider_failures = Counter(
            'conviction_provider_failures_total',
            'Total number of failed provider calls',
            ['provider'],
            registry=self.registry,
        )

        self.market_fallbacks = Counter(
            'conviction_market_fallbacks_total',
            'Market data lookups served by the secondary provider',
            ['chain'],
            registry=self.registry,
        )

        self.score_distribution = Histogram(
            'conviction_score_distribution',
            'Distribution of conviction scores',
            buckets=[0, 20, 40, 60, 70, 80, 90, 100],
            registry=self.registry,
        )

        self.wallets_by_archetype = Counter(
            'conviction_wallets_by_archetype_total',
            'Wallet analyses by archetype',
            ['archetype'],
            registry=self.registry,
        )

        self.trust_resolutions = Counter(
            'conviction_trust_resolutions_total',
            'Trust resolutions by tier',
            ['tier'],
            registry=self.registry,
        )

        self.analysis_duration = Histogram(
            'conviction_analysis_duration_seconds',
            'Time taken to analyze a wallet',
            buckets=[0.5, 1, 2, 5, 10, 30, 60],
            registry=self.registry,
        )

    def start_server(self):
        """Start Prometheus metrics HTTP server."""
        if self.metrics_started:
            return

        try:
            start_http_server(self.port, registry=self.registry)
            self.metrics_started = True
            logger.info(f"Prometheus metrics server started on port {self.port}")
        except OSError as e:
            logger.warning(f"Failed to start Prometheus metrics server: {e}")

    def record_cache(self, outcome: str):
        """
        Count one cache lookup.

        Args:
            outcome: 'hit', 'miss' or 'dedup'
        """
        self.cache_requests.labels(outcome=outcome).inc()

    def update_cache_size(self, entries: int):
        self.cache_entries.set(entries)

    def increment_provider_failures(self, provider: str, count: int = 1):
        self.provider_failures.labels(provider=provider).inc(count)

    def increment_market_fallbacks(self, chain: str):
        self.market_fallbacks.labels(chain=chain).inc()

    def record_conviction(self, score: float, archetype: str):
        """
        Record one scored wallet.

        Args:
            score: Conviction score (0-100)
            archetype: Archetype label
        """
        self.score_distribution.observe(score)
        self.wallets_by_archetype.labels(archetype=archetype).inc()

    def record_trust_resolution(self, tier: str):
        self.trust_resolutions.labels(tier=tier).inc()

    def record_analysis_duration(self, duration_seconds: float):
        """
        Record analysis duration.

        Args:
            duration_seconds: Duration in seconds
        """
        self.analysis_duration.observe(duration_seconds)


# Global metrics instance
_metrics_instance: Optional[AnalyticsMetrics] = None


def get_metrics() -> AnalyticsMetrics:
    """Get or create the process metrics instance (used by the CLI entry point)."""
    global _metrics_instance

    if _metrics_instance is None:
        from ..config import ConvictionConfig

        _metrics_instance = AnalyticsMetrics(port=ConvictionConfig.get_metrics_port())

        # Auto-start if enabled
        if ConvictionConfig.get_metrics_enabled():
            _metrics_instance.start_server()

    return _metrics_instance
