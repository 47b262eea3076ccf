"""
Conviction Configuration Module

Centralized configuration management for the conviction analytics engine.
Loads from environment variables with sensible defaults.
"""

import os
from typing import Optional
from pathlib import Path


class ConvictionConfig:
    """Centralized conviction analytics configuration."""

    # ========================================================================
    # API Keys
    # ========================================================================

    @staticmethod
    def get_birdeye_api_key() -> Optional[str]:
        """Get Birdeye API key from environment."""
        return os.getenv("BIRDEYE_API_KEY") or None

    @staticmethod
    def get_fairscale_api_key() -> Optional[str]:
        """Get FairScale API key from environment."""
        return os.getenv("FAIRSCALE_API_KEY") or None

    @staticmethod
    def get_neynar_api_key() -> Optional[str]:
        """Get Neynar API key from environment (Farcaster identity bridging)."""
        return os.getenv("NEYNAR_API_KEY") or None

    @staticmethod
    def get_web3bio_api_key() -> Optional[str]:
        """Get web3.bio API key from environment (optional, raises rate limits)."""
        return os.getenv("WEB3BIO_API_KEY") or None

    @staticmethod
    def get_ethos_client_id() -> str:
        """Get the client identifier sent to the Ethos API."""
        return os.getenv("ETHOS_CLIENT_ID", "conviction-analytics")

    # ========================================================================
    # Provider Endpoints
    # ========================================================================

    @staticmethod
    def get_birdeye_base_url() -> str:
        return os.getenv("BIRDEYE_BASE_URL", "https://public-api.birdeye.so")

    @staticmethod
    def get_dexscreener_base_url() -> str:
        return os.getenv("DEXSCREENER_BASE_URL", "https://api.dexscreener.com")

    @staticmethod
    def get_ethos_base_url() -> str:
        return os.getenv("ETHOS_BASE_URL", "https://api.ethos.network/api/v2")

    @staticmethod
    def get_fairscale_base_url() -> str:
        return os.getenv("FAIRSCALE_BASE_URL", "https://api.fairscale.xyz")

    @staticmethod
    def get_web3bio_base_url() -> str:
        return os.getenv("WEB3BIO_BASE_URL", "https://api.web3.bio")

    @staticmethod
    def get_neynar_base_url() -> str:
        return os.getenv("NEYNAR_BASE_URL", "https://api.neynar.com/v2")

    @staticmethod
    def get_provider_timeout_seconds() -> float:
        """Get the per-request timeout applied to every provider call."""
        return float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"))

    # ========================================================================
    # Cache Configuration
    # ========================================================================

    @staticmethod
    def get_cache_max_size() -> int:
        """Get the maximum number of entries held by the in-memory cache."""
        return int(os.getenv("CACHE_MAX_SIZE", "500"))

    @staticmethod
    def get_cache_default_ttl_seconds() -> float:
        """Get the default cache TTL in seconds."""
        return float(os.getenv("CACHE_DEFAULT_TTL_SECONDS", "3600"))

    @staticmethod
    def get_redis_enabled() -> bool:
        """Get whether Redis is used as the shared cache backend."""
        return os.getenv("REDIS_ENABLED", "false").lower() == "true"

    @staticmethod
    def get_redis_url() -> str:
        """Get Redis connection URL."""
        return os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # ========================================================================
    # Position Analytics
    # ========================================================================

    @staticmethod
    def get_patience_window_days() -> int:
        """Get the post-exit lookback window used for the patience tax."""
        return int(os.getenv("PATIENCE_WINDOW_DAYS", "90"))

    @staticmethod
    def get_early_exit_threshold_pct() -> float:
        """Get the missed-gain percentage above which an exit counts as early."""
        return float(os.getenv("EARLY_EXIT_THRESHOLD_PCT", "50"))

    # ========================================================================
    # Conviction Score Weights (sum to 1.0)
    # ========================================================================

    @staticmethod
    def get_weight_win_rate() -> float:
        return float(os.getenv("WEIGHT_WIN_RATE", "0.25"))

    @staticmethod
    def get_weight_upside_capture() -> float:
        return float(os.getenv("WEIGHT_UPSIDE_CAPTURE", "0.35"))

    @staticmethod
    def get_weight_early_exit_mitigation() -> float:
        return float(os.getenv("WEIGHT_EARLY_EXIT_MITIGATION", "0.25"))

    @staticmethod
    def get_weight_holding_period() -> float:
        return float(os.getenv("WEIGHT_HOLDING_PERIOD", "0.15"))

    # ========================================================================
    # Archetype Thresholds
    # ========================================================================

    @staticmethod
    def get_archetype_iron_min_score() -> float:
        return float(os.getenv("ARCHETYPE_IRON_MIN_SCORE", "90"))

    @staticmethod
    def get_archetype_iron_max_patience_tax() -> float:
        return float(os.getenv("ARCHETYPE_IRON_MAX_PATIENCE_TAX", "1000"))

    @staticmethod
    def get_archetype_phantom_min_score() -> float:
        return float(os.getenv("ARCHETYPE_PHANTOM_MIN_SCORE", "70"))

    @staticmethod
    def get_archetype_phantom_min_patience_tax() -> float:
        return float(os.getenv("ARCHETYPE_PHANTOM_MIN_PATIENCE_TAX", "5000"))

    @staticmethod
    def get_archetype_voyager_max_score() -> float:
        return float(os.getenv("ARCHETYPE_VOYAGER_MAX_SCORE", "40"))

    @staticmethod
    def get_archetype_empty_state() -> str:
        """Get the archetype label reported for a wallet with no positions."""
        return os.getenv("ARCHETYPE_EMPTY_STATE", "Exit Voyager")

    # ========================================================================
    # Trust Resolution
    # ========================================================================

    @staticmethod
    def get_trust_cache_ttl_seconds() -> float:
        """Get TTL for cached provider scores and unified trust results."""
        return float(os.getenv("TRUST_CACHE_TTL_SECONDS", "3600"))

    @staticmethod
    def get_trust_batch_limit() -> int:
        """Get the maximum number of addresses accepted by one batch resolve."""
        return int(os.getenv("TRUST_BATCH_LIMIT", "50"))

    # ========================================================================
    # Observability
    # ========================================================================

    @staticmethod
    def get_metrics_enabled() -> bool:
        """Get whether the Prometheus exporter should be started."""
        return os.getenv("METRICS_ENABLED", "false").lower() == "true"

    @staticmethod
    def get_metrics_port() -> int:
        return int(os.getenv("METRICS_PORT", "9108"))

    @staticmethod
    def get_log_level() -> str:
        return os.getenv("LOG_LEVEL", "INFO").upper()

    # ========================================================================
    # Database Configuration
    # ========================================================================

    @staticmethod
    def get_db_path() -> str:
        """Get the sqlite database path used by the CLI to store analyses."""
        return os.getenv("CONVICTION_DB_PATH", "data/conviction.db")

    @staticmethod
    def validate_config() -> tuple[bool, list[str]]:
        """
        Validate the current configuration.

        Returns:
            Tuple of (is_valid, list_of_warnings)
        """
        warnings = []
        is_valid = True

        if not ConvictionConfig.get_birdeye_api_key():
            warnings.append("BIRDEYE_API_KEY is not set. Solana market data will use DexScreener only.")

        if not ConvictionConfig.get_fairscale_api_key():
            warnings.append("FAIRSCALE_API_KEY is not set. Solana trust scores will be unavailable.")

        if not ConvictionConfig.get_neynar_api_key():
            warnings.append("NEYNAR_API_KEY is not set. Farcaster identity bridging is disabled.")

        weights = [
            ConvictionConfig.get_weight_win_rate(),
            ConvictionConfig.get_weight_upside_capture(),
            ConvictionConfig.get_weight_early_exit_mitigation(),
            ConvictionConfig.get_weight_holding_period(),
        ]
        if any(w < 0 for w in weights):
            warnings.append("ERROR: Conviction score weights must not be negative")
            is_valid = False
        elif abs(sum(weights) - 1.0) > 1e-6:
            warnings.append(f"WARNING: Conviction score weights sum to {sum(weights):.2f}, expected 1.0")

        if ConvictionConfig.get_cache_max_size() <= 0:
            warnings.append("ERROR: CACHE_MAX_SIZE must be positive")
            is_valid = False

        if ConvictionConfig.get_provider_timeout_seconds() <= 0:
            warnings.append("ERROR: PROVIDER_TIMEOUT_SECONDS must be positive")
            is_valid = False

        db_dir = Path(ConvictionConfig.get_db_path()).parent
        if not db_dir.exists():
            warnings.append(f"WARNING: Database directory does not exist: {db_dir}")
            warnings.append("It will be created automatically on first run")

        return is_valid, warnings

    @staticmethod
    def print_config_summary():
        """Print a summary of current configuration."""
        print("=" * 70)
        print("Conviction Configuration Summary")
        print("=" * 70)
        print(f"Birdeye API Key: {'Set' if ConvictionConfig.get_birdeye_api_key() else 'Not set'}")
        print(f"FairScale API Key: {'Set' if ConvictionConfig.get_fairscale_api_key() else 'Not set'}")
        print(f"Neynar API Key: {'Set' if ConvictionConfig.get_neynar_api_key() else 'Not set'}")
        print(f"Provider Timeout: {ConvictionConfig.get_provider_timeout_seconds():.0f}s")
        print(f"Cache: max {ConvictionConfig.get_cache_max_size()} entries, "
              f"default TTL {ConvictionConfig.get_cache_default_ttl_seconds():.0f}s, "
              f"redis {'on' if ConvictionConfig.get_redis_enabled() else 'off'}")
        print(f"Patience Window: {ConvictionConfig.get_patience_window_days()} days")
        print(f"Early Exit Threshold: {ConvictionConfig.get_early_exit_threshold_pct():.0f}%")
        print(f"Weights: win={ConvictionConfig.get_weight_win_rate()} "
              f"upside={ConvictionConfig.get_weight_upside_capture()} "
              f"early_exit={ConvictionConfig.get_weight_early_exit_mitigation()} "
              f"holding={ConvictionConfig.get_weight_holding_period()}")
        print(f"Database Path: {ConvictionConfig.get_db_path()}")
        print("=" * 70)

        is_valid, warnings = ConvictionConfig.validate_config()
        if warnings:
            print("\nConfiguration Warnings:")
            for warning in warnings:
                print(f"  ⚠️  {warning}")
        else:
            print("\n✓ Configuration looks good!")
