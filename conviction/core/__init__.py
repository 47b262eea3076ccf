"""
Conviction Core Module

Provides the get-or-compute cache, market data gateway, position analytics,
conviction scoring, trust resolution and feature gating.
"""

from .cache import Cache, MemoryStore
from .db_writer import AnalysisStore
from .dto import parse_ledger
from .exceptions import (
    ConvictionError,
    InvalidAddressError,
    InvalidLedgerError,
    MarketDataUnavailable,
    ProviderError,
    ProviderNotConfigured,
    ProviderPayloadError,
)
from .fanout import Settled, settle_all
from .feature_gate import Entitlements, check_gate, get_entitlements, next_unlocks
from .identity_bridge import IdentityBridge
from .market_data import MarketDataGateway, post_exit_window
from .models import (
    Archetype,
    ArchetypeThresholds,
    BridgedIdentity,
    Chain,
    ConvictionMetrics,
    Position,
    PositionAnalysis,
    PricePoint,
    PriceQuote,
    ScoringWeights,
    TokenMetadata,
    TradeDirection,
    TradeEvent,
    TrustTier,
    UnifiedTrustScore,
)
from .position_analyzer import PositionAnalyzer, calculate_patience_tax
from .scoring import ConvictionScorer, classify_archetype
from .service import ConvictionService, WalletAnalysis
from .trust_resolver import TrustResolver, detect_chain

__all__ = [
    "Cache",
    "MemoryStore",
    "AnalysisStore",
    "parse_ledger",
    "ConvictionError",
    "InvalidAddressError",
    "InvalidLedgerError",
    "MarketDataUnavailable",
    "ProviderError",
    "ProviderNotConfigured",
    "ProviderPayloadError",
    "Settled",
    "settle_all",
    "Entitlements",
    "check_gate",
    "get_entitlements",
    "next_unlocks",
    "IdentityBridge",
    "MarketDataGateway",
    "post_exit_window",
    "Archetype",
    "ArchetypeThresholds",
    "BridgedIdentity",
    "Chain",
    "ConvictionMetrics",
    "Position",
    "PositionAnalysis",
    "PricePoint",
    "PriceQuote",
    "ScoringWeights",
    "TokenMetadata",
    "TradeDirection",
    "TradeEvent",
    "TrustTier",
    "UnifiedTrustScore",
    "PositionAnalyzer",
    "calculate_patience_tax",
    "ConvictionScorer",
    "classify_archetype",
    "ConvictionService",
    "WalletAnalysis",
    "TrustResolver",
    "detect_chain",
]
