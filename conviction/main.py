#!/usr/bin/env python3
"""
Conviction Analytics - Command Line Entry Point

Commands:
    analyze   Score a wallet from its trade ledger (JSON file)
    trust     Resolve the unified trust score and entitlements for an address
    history   Show stored analyses for an address
    config    Print the configuration summary

Usage:
    python -m conviction.main analyze --address <wallet> --chain solana --ledger ledger.json
    python -m conviction.main analyze ... --save           # also store in sqlite
    python -m conviction.main trust --address 0xabc... --handle someone
    python -m conviction.main history --address <wallet>

The ledger file is a JSON list of positions:
    [{"tokenAddress": "...", "entries": [{hash, timestamp, amount, priceUsd, valueUsd}], "exits": [...]}]
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import ConvictionConfig
from .core.db_writer import AnalysisStore
from .core.dto import parse_ledger
from .core.exceptions import ConvictionError
from .core.feature_gate import get_entitlements, next_unlocks
from .core.metrics import get_metrics
from .core.models import Chain
from .core.service import ConvictionService

logger = logging.getLogger("conviction")


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Conviction Analytics - wallet conviction scoring and trust resolution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Score a wallet from its trade ledger")
    analyze.add_argument("--address", required=True, help="Wallet address")
    analyze.add_argument(
        "--chain",
        required=True,
        choices=[c.value for c in Chain],
        help="Chain family of the ledger"
    )
    analyze.add_argument("--ledger", required=True, help="Path to the ledger JSON file")
    analyze.add_argument("--handle", default=None, help="Optional X handle for trust resolution")
    analyze.add_argument(
        "--no-trust",
        action="store_true",
        help="Skip trust resolution"
    )
    analyze.add_argument(
        "--save",
        action="store_true",
        help="Store the result in the analysis database"
    )
    analyze.add_argument(
        "--db",
        default=ConvictionConfig.get_db_path(),
        help=f"Analysis database path (default: {ConvictionConfig.get_db_path()}, or CONVICTION_DB_PATH)"
    )
    analyze.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON"
    )

    trust = subparsers.add_parser("trust", help="Resolve the unified trust score for an address")
    trust.add_argument("--address", required=True, help="EVM (0x...) or Solana address")
    trust.add_argument("--handle", default=None, help="Optional X handle")
    trust.add_argument("--json", action="store_true", help="Print the full result as JSON")

    history = subparsers.add_parser("history", help="Show stored analyses for an address")
    history.add_argument("--address", required=True, help="Wallet address")
    history.add_argument("--db", default=ConvictionConfig.get_db_path(), help="Analysis database path")
    history.add_argument("--limit", type=int, default=10, help="Number of analyses to show")

    subparsers.add_parser("config", help="Print the configuration summary")

    return parser.parse_args(argv)


def _load_ledger(path: str):
    ledger_path = Path(path)
    if not ledger_path.exists():
        raise ConvictionError(f"Ledger file not found: {ledger_path}")
    with open(ledger_path) as f:
        return json.load(f)


async def run_analyze(args: argparse.Namespace) -> int:
    positions = parse_ledger(args.address, _load_ledger(args.ledger))
    chain = Chain.parse(args.chain)

    async with ConvictionService.from_config(metrics=get_metrics()) as service:
        result = await service.analyze_wallet(
            args.address,
            chain,
            positions,
            social_handle=args.handle,
            include_trust=not args.no_trust,
        )

    if args.save:
        store = AnalysisStore(args.db)
        identity = result.trust.identity if result.trust else None
        analysis_id = store.save_analysis_with_positions(
            args.address, chain, result.metrics, service.analyzer.window_days,
            result.positions, identity
        )
        print(f"[Conviction] Saved analysis #{analysis_id} to {args.db}")

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    m = result.metrics
    print("=" * 70)
    print(f"Wallet: {args.address} ({chain.value})")
    print("=" * 70)
    print(f"  Conviction Score: {m.score:.1f}  (top {m.percentile}%)")
    print(f"  Archetype:        {m.archetype.value}")
    print(f"  Patience Tax:     ${m.total_patience_tax:,.0f}")
    print(f"  Upside Capture:   {m.upside_capture:.0f}%")
    print(f"  Win Rate:         {m.win_rate:.0f}%")
    print(f"  Avg Holding:      {m.avg_holding_period:.0f} days")
    print(f"  Early Exits:      {m.early_exits} / {m.total_positions}")
    print(f"  Conviction Wins:  {m.conviction_wins}")
    if result.trust is not None:
        print(f"  Trust:            {result.trust.score} ({result.trust.tier.value}, "
              f"via {result.trust.primary_provider})")
    print()
    for p in result.positions:
        label = p.token_symbol or p.token_address[:8]
        flag = " [EARLY EXIT]" if p.is_early_exit else ""
        print(f"  {label:<12} PnL ${p.realized_pnl:>12,.2f} ({p.realized_pnl_pct:>7.1f}%)  "
              f"tax ${p.patience_tax:>10,.2f}  held {p.holding_period_days}d{flag}")
    return 0


async def run_trust(args: argparse.Namespace) -> int:
    async with ConvictionService.from_config(metrics=get_metrics()) as service:
        trust = await service.trust_resolver.resolve(args.address, args.handle)

    entitlements = get_entitlements(trust)
    if args.json:
        payload = trust.to_dict()
        payload["entitlements"] = entitlements.to_dict()
        payload["nextUnlocks"] = [
            {"feature": g.feature, "requiredScore": g.required_score} for g in next_unlocks(trust)
        ]
        print(json.dumps(payload, indent=2))
        return 0

    print(f"Address:      {trust.address} ({trust.chain.value})")
    print(f"Trust Score:  {trust.score} ({trust.tier.value}, credibility {trust.credibility.value})")
    print(f"Primary:      {trust.primary_provider}")
    if trust.ethos:
        print(f"  Ethos:      raw {trust.ethos.raw_score:.0f} -> {trust.ethos.normalized_score}")
    if trust.fairscale:
        print(f"  FairScale:  {trust.fairscale.normalized_score} ({trust.fairscale.tier_label or '-'})")
    if trust.identity and (trust.identity.counter_address or trust.identity.social_handle):
        print(f"  Bridged:    {trust.identity.counter_address or '-'} / @{trust.identity.social_handle or '-'}")
    print(f"Access Tier:  {entitlements.access_tier.value}")
    for gate in next_unlocks(trust):
        print(f"  Next unlock: {gate.feature} at {gate.required_score}")
    if trust.degraded:
        print("  ⚠️  One or more providers were unavailable; score may be understated")
    return 0


def run_history(args: argparse.Namespace) -> int:
    store = AnalysisStore(args.db)
    rows = store.get_analyses_by_address(args.address, limit=args.limit)
    if not rows:
        print(f"No stored analyses for {args.address}")
        return 0
    for row in rows:
        print(f"  #{row['id']:<5} {row['analyzed_at']}  score {row['score']:>5.1f}  "
              f"{row['archetype']:<15} tax ${row['patience_tax']:,.0f}  "
              f"({row['total_positions']} positions, {row['chain']})")
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, ConvictionConfig.get_log_level(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.debug(f"Started at: {datetime.now(timezone.utc).isoformat()}")

    if args.command == "config":
        ConvictionConfig.print_config_summary()
        is_valid, _ = ConvictionConfig.validate_config()
        return 0 if is_valid else 1

    if ConvictionConfig.get_metrics_enabled():
        get_metrics().start_server()

    try:
        if args.command == "analyze":
            return asyncio.run(run_analyze(args))
        if args.command == "trust":
            return asyncio.run(run_trust(args))
        if args.command == "history":
            return run_history(args)
    except (ConvictionError, ValueError) as e:
        print(f"[Conviction] ERROR: {e}", file=sys.stderr)
        return 2
    return 1


if __name__ == "__main__":
    sys.exit(main())
