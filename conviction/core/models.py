"""
Data models for conviction analytics and trust resolution.

This module defines the core data structures used throughout the engine:
ledger positions, market data, per-position analyses, portfolio metrics,
and unified trust scores. Timestamps are epoch milliseconds throughout.
Records are kept at full precision; rounding happens in to_dict() only.
"""

import functools
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

MS_PER_HOUR = 60 * 60 * 1000
MS_PER_DAY = 24 * MS_PER_HOUR


class Chain(Enum):
    """Supported chain families."""
    SOLANA = "solana"
    BASE = "base"

    @classmethod
    def parse(cls, value) -> "Chain":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unsupported chain: {value!r} (expected 'solana' or 'base')")


class TradeDirection(Enum):
    """Trade direction relative to the wallet."""
    BUY = "buy"
    SELL = "sell"


class Archetype(Enum):
    """Behavioral archetype assigned from score and patience tax."""
    IRON_PILLAR = "Iron Pillar"
    PROFIT_PHANTOM = "Profit Phantom"
    DIAMOND_HAND = "Diamond Hand"
    EXIT_VOYAGER = "Exit Voyager"


@functools.total_ordering
class TrustTier(Enum):
    """Six ordinal reputation bands."""
    UNKNOWN = "unknown"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    DIAMOND = "diamond"

    @property
    def rank(self) -> int:
        return list(TrustTier).index(self)

    def __lt__(self, other):
        if not isinstance(other, TrustTier):
            return NotImplemented
        return self.rank < other.rank


class CredibilityLevel(Enum):
    UNKNOWN = "unknown"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ELITE = "elite"


# ============================================================================
# Ledger
# ============================================================================

@dataclass(frozen=True)
class TradeEvent:
    """A single buy or sell reconstructed upstream. Immutable."""
    hash: str
    timestamp: int
    token_address: str
    direction: TradeDirection
    amount: float
    price_usd: float
    value_usd: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "timestamp": self.timestamp,
            "tokenAddress": self.token_address,
            "direction": self.direction.value,
            "amount": self.amount,
            "priceUsd": self.price_usd,
            "valueUsd": self.value_usd,
        }


@dataclass
class Position:
    """All trade events for one (wallet, token) pair."""
    wallet: str
    token_address: str
    entries: List[TradeEvent] = field(default_factory=list)
    exits: List[TradeEvent] = field(default_factory=list)
    token_symbol: Optional[str] = None

    def __post_init__(self):
        self.entries = sorted(self.entries, key=lambda e: e.timestamp)
        self.exits = sorted(self.exits, key=lambda e: e.timestamp)

    @classmethod
    def from_events(cls, wallet: str, token_address: str,
                    events: Iterable[TradeEvent],
                    token_symbol: Optional[str] = None) -> "Position":
        entries = []
        exits = []
        for event in events:
            if event.token_address != token_address:
                raise ValueError(
                    f"Event {event.hash} belongs to {event.token_address}, not {token_address}"
                )
            if event.direction == TradeDirection.BUY:
                entries.append(event)
            else:
                exits.append(event)
        return cls(wallet=wallet, token_address=token_address,
                   entries=entries, exits=exits, token_symbol=token_symbol)

    @property
    def total_invested(self) -> float:
        return sum(e.value_usd for e in self.entries)

    @property
    def total_realized(self) -> float:
        return sum(e.value_usd for e in self.exits)

    @property
    def raw_remaining_balance(self) -> float:
        return sum(e.amount for e in self.entries) - sum(e.amount for e in self.exits)

    @property
    def remaining_balance(self) -> float:
        # Selling more than was bought is an upstream ledger defect; never go negative.
        return max(0.0, self.raw_remaining_balance)

    @property
    def ledger_defect(self) -> bool:
        return self.raw_remaining_balance < 0

    @property
    def is_active(self) -> bool:
        return self.remaining_balance > 0

    @property
    def last_exit(self) -> Optional[TradeEvent]:
        return self.exits[-1] if self.exits else None


def group_positions(wallet: str, events: Iterable[TradeEvent]) -> List[Position]:
    """Group a flat event list into one Position per token, in first-seen order."""
    by_token: "OrderedDict[str, List[TradeEvent]]" = OrderedDict()
    for event in events:
        by_token.setdefault(event.token_address, []).append(event)
    return [Position.from_events(wallet, token, token_events)
            for token, token_events in by_token.items()]


# ============================================================================
# Market Data
# ============================================================================

@dataclass(frozen=True)
class PricePoint:
    timestamp: int
    price: float


@dataclass
class PriceQuote:
    """Current price and 24h change for one token."""
    price: float
    price_change_24h: Optional[float] = None
    source: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {"price": self.price, "priceChange24h": self.price_change_24h, "source": self.source}


@dataclass
class TokenMetadata:
    address: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    logo_uri: Optional[str] = None
    decimals: Optional[int] = None
    source: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "logoURI": self.logo_uri,
            "decimals": self.decimals,
            "source": self.source,
        }


@dataclass
class TokenMarketData:
    """Market snapshot for one token: both halves are best effort."""
    token_address: str
    quote: Optional[PriceQuote] = None
    metadata: Optional[TokenMetadata] = None


# ============================================================================
# Position Analysis
# ============================================================================

@dataclass
class EntryDetails:
    avg_price: float
    total_amount: float
    total_value: float
    first_entry: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avgPrice": self.avg_price,
            "totalAmount": self.total_amount,
            "totalValue": round(self.total_value, 2),
            "firstEntry": self.first_entry,
        }


@dataclass
class ExitDetails:
    avg_price: float
    total_amount: float
    total_value: float
    last_exit: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avgPrice": self.avg_price,
            "totalAmount": self.total_amount,
            "totalValue": round(self.total_value, 2),
            "lastExit": self.last_exit,
        }


@dataclass
class PatienceTax:
    """Result of scanning the post-exit price series."""
    patience_tax: float = 0.0
    max_missed_gain_pct: float = 0.0
    multiplier: float = 1.0
    max_price: Optional[float] = None
    max_price_at: Optional[int] = None
    would_be_value: float = 0.0


@dataclass
class Counterfactual:
    would_be_value: float
    missed_gain_dollars: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wouldBeValue": round(self.would_be_value, 2),
            "missedGainDollars": round(self.missed_gain_dollars, 2),
        }


@dataclass
class PositionAnalysis:
    """Derived view of one Position plus its post-exit price series."""
    token_address: str
    entry: EntryDetails
    exit: Optional[ExitDetails]
    total_invested: float
    total_realized: float
    realized_pnl: float
    realized_pnl_pct: float
    remaining_balance: float
    is_active: bool
    holding_period_days: int
    patience_tax: float = 0.0
    max_missed_gain_pct: float = 0.0
    max_missed_gain_at: Optional[int] = None
    is_early_exit: bool = False
    counterfactual: Optional[Counterfactual] = None
    unrealized_pnl: Optional[float] = None
    current_price: Optional[float] = None
    price_change_24h: Optional[float] = None
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None
    logo_uri: Optional[str] = None
    ledger_defect: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokenAddress": self.token_address,
            "tokenSymbol": self.token_symbol,
            "tokenName": self.token_name,
            "logoURI": self.logo_uri,
            "entryDetails": self.entry.to_dict(),
            "exitDetails": self.exit.to_dict() if self.exit else None,
            "totalInvested": round(self.total_invested, 2),
            "totalRealized": round(self.total_realized, 2),
            "realizedPnL": round(self.realized_pnl, 2),
            "realizedPnLPercent": round(self.realized_pnl_pct, 2),
            "unrealizedPnL": round(self.unrealized_pnl, 2) if self.unrealized_pnl is not None else None,
            "remainingBalance": self.remaining_balance,
            "isActive": self.is_active,
            "holdingPeriodDays": self.holding_period_days,
            "patienceTax": round(self.patience_tax, 2),
            "maxMissedGain": round(self.max_missed_gain_pct, 2),
            "maxMissedGainDate": self.max_missed_gain_at,
            "isEarlyExit": self.is_early_exit,
            "counterfactual": self.counterfactual.to_dict() if self.counterfactual else None,
            "currentPrice": self.current_price,
            "priceChange24h": self.price_change_24h,
            "ledgerDefect": self.ledger_defect,
        }


# ============================================================================
# Portfolio Scoring
# ============================================================================

@dataclass
class ScoringWeights:
    """Composite score weights. Defaults sum to 1.0."""
    win_rate: float = 0.25
    upside_capture: float = 0.35
    early_exit_mitigation: float = 0.25
    holding_period: float = 0.15

    @classmethod
    def from_config(cls) -> "ScoringWeights":
        from ..config import ConvictionConfig
        return cls(
            win_rate=ConvictionConfig.get_weight_win_rate(),
            upside_capture=ConvictionConfig.get_weight_upside_capture(),
            early_exit_mitigation=ConvictionConfig.get_weight_early_exit_mitigation(),
            holding_period=ConvictionConfig.get_weight_holding_period(),
        )


@dataclass
class ArchetypeThresholds:
    """Named archetype breakpoints. Rules are evaluated in order."""
    iron_min_score: float = 90.0
    iron_max_patience_tax: float = 1000.0
    phantom_min_score: float = 70.0
    phantom_min_patience_tax: float = 5000.0
    voyager_max_score: float = 40.0
    empty_state: Archetype = Archetype.EXIT_VOYAGER

    @classmethod
    def from_config(cls) -> "ArchetypeThresholds":
        from ..config import ConvictionConfig
        return cls(
            iron_min_score=ConvictionConfig.get_archetype_iron_min_score(),
            iron_max_patience_tax=ConvictionConfig.get_archetype_iron_max_patience_tax(),
            phantom_min_score=ConvictionConfig.get_archetype_phantom_min_score(),
            phantom_min_patience_tax=ConvictionConfig.get_archetype_phantom_min_patience_tax(),
            voyager_max_score=ConvictionConfig.get_archetype_voyager_max_score(),
            empty_state=Archetype(ConvictionConfig.get_archetype_empty_state()),
        )


@dataclass
class ConvictionMetrics:
    """Portfolio aggregate over every PositionAnalysis of one wallet."""
    score: float
    percentile: int
    archetype: Archetype
    total_patience_tax: float
    upside_capture: float
    win_rate: float
    early_exit_rate: float
    avg_holding_period: float
    early_exits: int
    conviction_wins: int
    total_positions: int
    total_invested: float = 0.0
    total_realized: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": round(self.score, 1),
            "percentile": self.percentile,
            "archetype": self.archetype.value,
            "patienceTax": round(self.total_patience_tax),
            "upsideCapture": round(self.upside_capture),
            "winRate": round(self.win_rate),
            "earlyExitRate": round(self.early_exit_rate),
            "avgHoldingPeriod": round(self.avg_holding_period),
            "earlyExits": self.early_exits,
            "convictionWins": self.conviction_wins,
            "totalPositions": self.total_positions,
            "totalInvested": round(self.total_invested, 2),
            "totalRealized": round(self.total_realized, 2),
        }


# ============================================================================
# Trust Resolution
# ============================================================================

@dataclass
class TrustFeatureFlags:
    premium: bool = False
    whale: bool = False
    alpha: bool = False
    elite: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {"premium": self.premium, "whale": self.whale,
                "alpha": self.alpha, "elite": self.elite}


@dataclass
class ProviderScore:
    """One reputation provider's contribution to a unified score."""
    provider: str
    raw_score: float
    normalized_score: int
    tier_label: Optional[str] = None
    lookup: str = "address"
    badges: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "rawScore": self.raw_score,
            "normalizedScore": self.normalized_score,
            "tier": self.tier_label,
            "lookup": self.lookup,
            "badges": list(self.badges),
        }


@dataclass
class BridgedIdentity:
    """Cross-chain identity resolved for one address. Fields are best effort."""
    address: str
    chain: Chain
    counter_address: Optional[str] = None
    social_handle: Optional[str] = None
    sources: List[str] = field(default_factory=list)

    @property
    def evm_address(self) -> Optional[str]:
        return self.address if self.chain == Chain.BASE else self.counter_address

    @property
    def solana_address(self) -> Optional[str]:
        return self.address if self.chain == Chain.SOLANA else self.counter_address

    @property
    def is_complete(self) -> bool:
        return bool(self.counter_address and self.social_handle)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "chain": self.chain.value,
            "evmAddress": self.evm_address,
            "solanaAddress": self.solana_address,
            "socialHandle": self.social_handle,
            "sources": list(self.sources),
        }


@dataclass
class UnifiedTrustScore:
    address: str
    chain: Chain
    score: int
    tier: TrustTier
    credibility: CredibilityLevel
    primary_provider: str
    flags: TrustFeatureFlags
    ethos: Optional[ProviderScore] = None
    fairscale: Optional[ProviderScore] = None
    identity: Optional[BridgedIdentity] = None
    degraded: bool = False
    resolved_at: int = 0

    @property
    def has_data(self) -> bool:
        return self.primary_provider != "none"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "chain": self.chain.value,
            "score": self.score,
            "tier": self.tier.value,
            "credibility": self.credibility.value,
            "primaryProvider": self.primary_provider,
            "flags": self.flags.to_dict(),
            "breakdown": {
                "ethos": self.ethos.to_dict() if self.ethos else None,
                "fairscale": self.fairscale.to_dict() if self.fairscale else None,
            },
            "identity": self.identity.to_dict() if self.identity else None,
            "degraded": self.degraded,
            "resolvedAt": self.resolved_at,
        }


# ============================================================================
# Cache
# ============================================================================

@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

