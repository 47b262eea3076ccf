"""
SQLite store for completed conviction analyses.

This is the persistence boundary: the engine never calls it. The CLI saves
an analysis after the engine returns, and reads history back by address.

save_analysis_with_positions writes both tables in a single transaction, so
a crash mid-write never leaves an analysis row without its positions.
save_analysis and save_positions commit separately.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .models import BridgedIdentity, Chain, ConvictionMetrics, PositionAnalysis

logger = logging.getLogger(__name__)


class AnalysisStore:
    """
    SQLite store for conviction analyses and their positions.

    Usage:
        store = AnalysisStore('/path/to/conviction.db')
        analysis_id = store.save_analysis(address, Chain.SOLANA, metrics, 90)
        store.save_positions(analysis_id, address, Chain.SOLANA, analyses)
        history = store.get_analyses_by_address(address)
    """

    ANALYSES_SCHEMA = """
    CREATE TABLE IF NOT EXISTS conviction_analyses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        address TEXT NOT NULL,
        chain TEXT NOT NULL CHECK(chain IN ('solana', 'base')),
        score REAL NOT NULL CHECK(score >= 0 AND score <= 100),
        percentile INTEGER NOT NULL,
        archetype TEXT NOT NULL,
        patience_tax REAL NOT NULL,
        upside_capture REAL NOT NULL,
        win_rate REAL NOT NULL DEFAULT 0,
        early_exits INTEGER NOT NULL DEFAULT 0,
        conviction_wins INTEGER NOT NULL DEFAULT 0,
        total_positions INTEGER NOT NULL DEFAULT 0,
        avg_holding_period REAL NOT NULL DEFAULT 0,
        time_horizon INTEGER NOT NULL DEFAULT 30,
        social_handle TEXT,
        counter_address TEXT,
        analyzed_at TIMESTAMP NOT NULL
    )
    """

    POSITIONS_SCHEMA = """
    CREATE TABLE IF NOT EXISTS position_analyses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        analysis_id INTEGER NOT NULL REFERENCES conviction_analyses(id) ON DELETE CASCADE,
        address TEXT NOT NULL,
        chain TEXT NOT NULL,
        token_address TEXT NOT NULL,
        token_symbol TEXT,
        realized_pnl REAL NOT NULL,
        realized_pnl_percent REAL NOT NULL,
        unrealized_pnl REAL,
        patience_tax REAL NOT NULL,
        max_missed_gain REAL NOT NULL,
        holding_period_days INTEGER NOT NULL,
        is_early_exit INTEGER NOT NULL,
        is_active INTEGER NOT NULL,
        details TEXT NOT NULL
    )
    """

    def __init__(self, db_path: str):
        """
        Initialize the store, creating the schema if needed.

        Args:
            db_path: Path to the sqlite file (parent directory is created)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                conn.execute(self.ANALYSES_SCHEMA)
                conn.execute(self.POSITIONS_SCHEMA)
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_analyses_address ON conviction_analyses(address, analyzed_at DESC)"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_positions_analysis ON position_analyses(analysis_id)"
                )
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _insert_analysis(self, conn: sqlite3.Connection, address: str, chain: Chain,
                         metrics: ConvictionMetrics, horizon_days: int,
                         identity: Optional[BridgedIdentity]) -> int:
        cursor = conn.execute(
            """
            INSERT INTO conviction_analyses (
                address, chain, score, percentile, archetype, patience_tax,
                upside_capture, win_rate, early_exits, conviction_wins,
                total_positions, avg_holding_period, time_horizon,
                social_handle, counter_address, analyzed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                address.lower() if chain == Chain.BASE else address,
                chain.value,
                round(metrics.score, 1),
                metrics.percentile,
                metrics.archetype.value,
                round(metrics.total_patience_tax, 2),
                round(metrics.upside_capture, 2),
                round(metrics.win_rate, 2),
                metrics.early_exits,
                metrics.conviction_wins,
                metrics.total_positions,
                round(metrics.avg_holding_period, 2),
                horizon_days,
                identity.social_handle if identity else None,
                identity.counter_address if identity else None,
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        return cursor.lastrowid

    def _insert_positions(self, conn: sqlite3.Connection, analysis_id: int, address: str,
                          chain: Chain, positions: Sequence[PositionAnalysis]) -> int:
        rows = [
            (
                analysis_id,
                address.lower() if chain == Chain.BASE else address,
                chain.value,
                p.token_address,
                p.token_symbol,
                round(p.realized_pnl, 2),
                round(p.realized_pnl_pct, 2),
                round(p.unrealized_pnl, 2) if p.unrealized_pnl is not None else None,
                round(p.patience_tax, 2),
                round(p.max_missed_gain_pct, 2),
                p.holding_period_days,
                int(p.is_early_exit),
                int(p.is_active),
                json.dumps(p.to_dict()),
            )
            for p in positions
        ]
        conn.executemany(
            """
            INSERT INTO position_analyses (
                analysis_id, address, chain, token_address, token_symbol,
                realized_pnl, realized_pnl_percent, unrealized_pnl, patience_tax,
                max_missed_gain, holding_period_days, is_early_exit, is_active, details
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        return len(rows)

    def save_analysis(
        self,
        address: str,
        chain: Chain,
        metrics: ConvictionMetrics,
        horizon_days: int,
        identity: Optional[BridgedIdentity] = None,
    ) -> int:
        """
        Store one wallet-level result.

        Returns:
            Row id of the new analysis
        """
        chain = Chain.parse(chain)
        conn = self._connect()
        try:
            with conn:
                analysis_id = self._insert_analysis(conn, address, chain, metrics, horizon_days, identity)
        finally:
            conn.close()

        logger.info(f"Saved analysis {analysis_id} for {address} ({chain.value})")
        return analysis_id

    def save_positions(
        self,
        analysis_id: int,
        address: str,
        chain: Chain,
        positions: Sequence[PositionAnalysis],
    ) -> int:
        """
        Store the per-position breakdown of an analysis.

        Returns:
            Number of rows written
        """
        chain = Chain.parse(chain)
        conn = self._connect()
        try:
            with conn:
                count = self._insert_positions(conn, analysis_id, address, chain, positions)
        finally:
            conn.close()
        return count

    def save_analysis_with_positions(
        self,
        address: str,
        chain: Chain,
        metrics: ConvictionMetrics,
        horizon_days: int,
        positions: Sequence[PositionAnalysis],
        identity: Optional[BridgedIdentity] = None,
    ) -> int:
        """
        Store an analysis and its positions in one transaction.

        If any position row fails, the analysis row is rolled back with it.

        Returns:
            Row id of the new analysis
        """
        chain = Chain.parse(chain)
        conn = self._connect()
        try:
            with conn:
                analysis_id = self._insert_analysis(conn, address, chain, metrics, horizon_days, identity)
                count = self._insert_positions(conn, analysis_id, address, chain, positions)
        finally:
            conn.close()

        logger.info(f"Saved analysis {analysis_id} with {count} positions for {address} ({chain.value})")
        return analysis_id

    def get_analyses_by_address(self, address: str, limit: int = 50) -> List[Dict[str, Any]]:
        """
        Past analyses for an address, newest first.

        EVM addresses match case-insensitively; Solana addresses exactly.
        """
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT * FROM conviction_analyses
                WHERE address = ? OR address = ?
                ORDER BY analyzed_at DESC, id DESC
                LIMIT ?
                """,
                (address, address.lower(), limit),
            ).fetchall()
        finally:
            conn.close()
        return [dict(row) for row in rows]

    def get_positions(self, analysis_id: int) -> List[Dict[str, Any]]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT details FROM position_analyses WHERE analysis_id = ? ORDER BY id",
                (analysis_id,),
            ).fetchall()
        finally:
            conn.close()
        return [json.loads(row["details"]) for row in rows]

    def verify_integrity(self) -> bool:
        """Run PRAGMA integrity_check on the database file."""
        conn = None
        try:
            conn = self._connect()
            result = conn.execute("PRAGMA integrity_check").fetchone()
            return result is not None and result[0] == "ok"
        except sqlite3.DatabaseError as e:
            logger.error(f"Integrity check error: {e}")
            return False
        finally:
            if conn is not None:
                conn.close()
