"""
Position Analyzer.

Turns one Position (entries/exits for a wallet+token) and its post-exit
price series into a PositionAnalysis: cost basis, realized and unrealized
P&L, holding period, and the patience tax (gains missed by exiting before
the token's post-exit peak).
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from .market_data import MarketDataGateway, post_exit_window
from .math_utils import round_half_up, safe_divide, weighted_average_price
from .models import (
    MS_PER_DAY,
    Chain,
    Counterfactual,
    EntryDetails,
    ExitDetails,
    PatienceTax,
    Position,
    PositionAnalysis,
    PricePoint,
    PriceQuote,
    TokenMetadata,
)
from .fanout import settle_all

logger = logging.getLogger(__name__)


def entry_details(position: Position) -> EntryDetails:
    """
    Entry aggregate. A defective ledger with exits but no entries takes its
    first exit as the first entry, so the holding period starts there.
    """
    entries = position.entries
    if entries:
        first_entry = entries[0].timestamp
    elif position.exits:
        first_entry = position.exits[0].timestamp
    else:
        first_entry = 0
    return EntryDetails(
        avg_price=weighted_average_price((e.price_usd, e.amount) for e in entries),
        total_amount=sum(e.amount for e in entries),
        total_value=position.total_invested,
        first_entry=first_entry,
    )


def exit_details(position: Position) -> Optional[ExitDetails]:
    """Exit aggregate, or None when the position has no exits."""
    exits = position.exits
    if not exits:
        return None
    return ExitDetails(
        avg_price=weighted_average_price((e.price_usd, e.amount) for e in exits),
        total_amount=sum(e.amount for e in exits),
        total_value=position.total_realized,
        last_exit=exits[-1].timestamp,
    )


def calculate_patience_tax(
    total_realized: float,
    exit_price: float,
    exit_ms: int,
    series: Optional[Sequence[PricePoint]],
    window_end_ms: int,
) -> PatienceTax:
    """
    Measure what holding past the last exit would have been worth.

    Scans points inside [exit_ms, window_end_ms] for the peak price.
    multiplier = peak / exit price, tax = max(0, realized * (multiplier - 1)).
    Without usable data (no points, or a non-positive exit price) the
    multiplier is 1: no tax, would-be value equals realized value.

    Args:
        total_realized: Total USD received from exits
        exit_price: Price of the last exit
        exit_ms: Timestamp of the last exit
        series: Post-exit price points (any order)
        window_end_ms: End of the lookback window

    Returns:
        PatienceTax with full-precision values
    """
    neutral = PatienceTax(would_be_value=total_realized)
    if exit_price <= 0 or not series:
        return neutral

    peak: Optional[PricePoint] = None
    for point in series:
        if point.timestamp < exit_ms or point.timestamp > window_end_ms or point.price <= 0:
            continue
        if peak is None or point.price > peak.price:
            peak = point
    if peak is None:
        return neutral

    multiplier = safe_divide(peak.price, exit_price, default=1.0)
    return PatienceTax(
        patience_tax=max(0.0, total_realized * (multiplier - 1)),
        max_missed_gain_pct=(multiplier - 1) * 100,
        multiplier=multiplier,
        max_price=peak.price,
        max_price_at=peak.timestamp,
        would_be_value=total_realized * multiplier,
    )


class PositionAnalyzer:
    """
    Per-position analytics.

    analyze() is pure; analyze_positions() fetches market data through the
    gateway first.
    """

    def __init__(
        self,
        gateway: Optional[MarketDataGateway] = None,
        early_exit_threshold_pct: float = 50.0,
        window_days: int = 90,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.early_exit_threshold_pct = early_exit_threshold_pct
        self.window_days = window_days
        self._clock = clock

    @classmethod
    def from_config(cls, gateway: Optional[MarketDataGateway] = None) -> "PositionAnalyzer":
        from ..config import ConvictionConfig
        return cls(
            gateway=gateway,
            early_exit_threshold_pct=ConvictionConfig.get_early_exit_threshold_pct(),
            window_days=ConvictionConfig.get_patience_window_days(),
        )

    def analyze(
        self,
        position: Position,
        quote: Optional[PriceQuote] = None,
        metadata: Optional[TokenMetadata] = None,
        post_exit_series: Optional[Sequence[PricePoint]] = None,
        now_ms: Optional[int] = None,
    ) -> PositionAnalysis:
        """
        Analyze one position.

        Args:
            position: Ledger position for one wallet+token
            quote: Current price, if known
            metadata: Token metadata, if known
            post_exit_series: Price points after the last exit
            now_ms: Reference "now" (defaults to the clock)
        """
        now_ms = int(self._clock() * 1000) if now_ms is None else now_ms

        if position.ledger_defect:
            logger.warning(
                f"Ledger defect for {position.wallet}/{position.token_address}: "
                f"sold {-position.raw_remaining_balance:g} more than bought, clamping balance to 0"
            )

        entry = entry_details(position)
        exit_ = exit_details(position)

        total_invested = position.total_invested
        total_realized = position.total_realized
        realized_pnl = total_realized - total_invested
        realized_pnl_pct = safe_divide(realized_pnl, total_invested) * 100

        remaining = position.remaining_balance
        unrealized_pnl = None
        current_price = quote.price if quote is not None else None
        if position.is_active and current_price is not None:
            unrealized_pnl = remaining * (current_price - entry.avg_price)

        last_known = exit_.last_exit if exit_ else now_ms
        holding_period_days = round_half_up(max(0, last_known - entry.first_entry) / MS_PER_DAY)

        analysis = PositionAnalysis(
            token_address=position.token_address,
            entry=entry,
            exit=exit_,
            total_invested=total_invested,
            total_realized=total_realized,
            realized_pnl=realized_pnl,
            realized_pnl_pct=realized_pnl_pct,
            remaining_balance=remaining,
            is_active=position.is_active,
            holding_period_days=holding_period_days,
            unrealized_pnl=unrealized_pnl,
            current_price=current_price,
            price_change_24h=quote.price_change_24h if quote is not None else None,
            token_symbol=(metadata.symbol if metadata and metadata.symbol else position.token_symbol),
            token_name=metadata.name if metadata else None,
            logo_uri=metadata.logo_uri if metadata else None,
            ledger_defect=position.ledger_defect,
        )

        last_exit = position.last_exit
        if last_exit is not None:
            _, window_end = post_exit_window(last_exit.timestamp, now_ms, self.window_days)
            tax = calculate_patience_tax(
                total_realized=total_realized,
                exit_price=last_exit.price_usd,
                exit_ms=last_exit.timestamp,
                series=post_exit_series,
                window_end_ms=window_end,
            )
            analysis.patience_tax = tax.patience_tax
            analysis.max_missed_gain_pct = tax.max_missed_gain_pct
            analysis.max_missed_gain_at = tax.max_price_at
            analysis.is_early_exit = tax.max_missed_gain_pct > self.early_exit_threshold_pct
            analysis.counterfactual = Counterfactual(
                would_be_value=tax.would_be_value,
                missed_gain_dollars=tax.patience_tax,
            )

        return analysis

    async def analyze_positions(self, positions: Sequence[Position], chain: Chain,
                                now_ms: Optional[int] = None) -> List[PositionAnalysis]:
        """
        Analyze every position of one wallet, fetching market data concurrently.

        Market data failures leave quotes/metadata empty and the patience tax at
        zero; they never fail the analysis.
        """
        if self.gateway is None:
            raise RuntimeError("PositionAnalyzer needs a MarketDataGateway to fetch market data")
        if not positions:
            return []

        chain = Chain.parse(chain)
        now_ms = int(self._clock() * 1000) if now_ms is None else now_ms

        snapshot = await self.gateway.get_market_snapshot((p.token_address for p in positions), chain)

        exited = [p for p in positions if p.last_exit is not None]
        histories = await settle_all(
            [self.gateway.get_post_exit_history(p.token_address, chain, p.last_exit.timestamp, now_ms)
             for p in exited],
            labels=[f"history:{p.token_address}" for p in exited],
        )
        series_by_token: Dict[str, List[PricePoint]] = {
            p.token_address: result.value_or([]) for p, result in zip(exited, histories)
        }

        analyses = []
        for position in positions:
            market = snapshot.get(position.token_address)
            analyses.append(self.analyze(
                position,
                quote=market.quote if market else None,
                metadata=market.metadata if market else None,
                post_exit_series=series_by_token.get(position.token_address),
                now_ms=now_ms,
            ))
        return analyses
