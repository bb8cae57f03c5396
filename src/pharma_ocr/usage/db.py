from __future__ import annotations

import os
import sqlite3
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from ..domain.models import PointBalances, UsageRecord
from ..logging import get_logger
from ..paths import find_project_root, var_dir


LOG = get_logger("usage-db")

DEFAULT_DB_FOLDER = "usage"
DEFAULT_DB_FILENAME = "usage.sqlite3"


SCHEMA_SQL = """
-- 1) One row per provider attempt
CREATE TABLE IF NOT EXISTS usage_records (
  usage_id          INTEGER PRIMARY KEY,
  provider          TEXT NOT NULL,
  model             TEXT,
  user_id           TEXT,
  tier              TEXT,
  success           INTEGER NOT NULL CHECK (success IN (0, 1)),
  error_kind        TEXT,
  response_time_ms  REAL NOT NULL,
  input_tokens      INTEGER NOT NULL DEFAULT 0,
  output_tokens     INTEGER NOT NULL DEFAULT 0,
  cost              REAL NOT NULL DEFAULT 0,
  created_at        REAL NOT NULL      -- unix epoch seconds
);
CREATE INDEX IF NOT EXISTS idx_usage_provider_time ON usage_records(provider, created_at);

-- 2) Plan-scoped point buckets per user
CREATE TABLE IF NOT EXISTS point_balances (
  user_id     TEXT PRIMARY KEY,
  basic       INTEGER NOT NULL DEFAULT 0 CHECK (basic >= 0),
  standard    INTEGER NOT NULL DEFAULT 0 CHECK (standard >= 0),
  business    INTEGER NOT NULL DEFAULT 0 CHECK (business >= 0),
  updated_at  TEXT DEFAULT (datetime('now'))
);
"""


class UsageDatabase:
    """SQLite-backed usage log, point balances and rate-limit counters.

    - Places DB under `<repo-root>/var/usage/usage.sqlite3` unless a path is given.
    - Ensures schema on first use.
    - Provides a context-managed connection method; every call opens its own
      connection so the store can be used from worker threads.
    """

    def __init__(self, db_path: Optional[str] = None, *, root_dir: Optional[str] = None) -> None:
        if db_path:
            self.db_path = os.path.abspath(db_path)
        else:
            self.db_path = os.path.join(var_dir(find_project_root(root_dir)), DEFAULT_DB_FOLDER, DEFAULT_DB_FILENAME)
        os.makedirs(os.path.dirname(self.db_path), exist_ok=True)
        LOG.info(f"Usage DB path: {self.db_path}")
        self._ensure_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=5.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.DatabaseError as exc:
                LOG.debug(f"Could not switch usage DB to WAL: {exc}")
            cur.executescript(SCHEMA_SQL)
            conn.commit()
            LOG.debug("Usage DB schema ensured.")

    # ---------- usage recorder ----------
    def record_usage(self, record: UsageRecord, *, at: Optional[float] = None) -> int:
        with self.connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO usage_records(
                  provider, model, user_id, tier, success, error_kind,
                  response_time_ms, input_tokens, output_tokens, cost, created_at
                ) VALUES (?,?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    record.provider,
                    record.model,
                    record.user_id,
                    record.tier,
                    1 if record.success else 0,
                    record.error_kind,
                    float(record.response_time_ms),
                    int(record.input_tokens),
                    int(record.output_tokens),
                    float(record.cost),
                    time.time() if at is None else at,
                ),
            )
            conn.commit()
            return int(cur.lastrowid)

    def count_requests(self, provider: str, window_seconds: float, *, now: Optional[float] = None) -> int:
        """Number of attempts against ``provider`` within the trailing window."""
        since = (time.time() if now is None else now) - float(window_seconds)
        with self.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM usage_records WHERE provider = ? AND created_at >= ?",
                (provider, since),
            ).fetchone()
        return int(row["n"] if row else 0)

    def provider_summary(self) -> List[Dict[str, Any]]:
        """Per-provider attempt counts, success rate, mean latency and total cost."""
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT provider,
                       COUNT(*)                     AS attempts,
                       SUM(success)                 AS successes,
                       AVG(response_time_ms)        AS avg_response_ms,
                       COALESCE(SUM(cost), 0)       AS total_cost
                FROM usage_records
                GROUP BY provider
                ORDER BY provider
                """
            ).fetchall()
        return [dict(r) for r in rows]

    # ---------- point balances ----------
    def get_balances(self, user_id: str) -> PointBalances:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT basic, standard, business FROM point_balances WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return PointBalances()
        return PointBalances(basic=int(row["basic"]), standard=int(row["standard"]), business=int(row["business"]))

    def set_balances(self, user_id: str, balances: PointBalances) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO point_balances(user_id, basic, standard, business, updated_at)
                VALUES (?,?,?,?, datetime('now'))
                ON CONFLICT(user_id) DO UPDATE SET
                  basic = excluded.basic,
                  standard = excluded.standard,
                  business = excluded.business,
                  updated_at = excluded.updated_at
                """,
                (user_id, int(balances.basic), int(balances.standard), int(balances.business)),
            )
            conn.commit()
        LOG.info(
            f"Balances for {user_id!r}: basic={balances.basic} standard={balances.standard} business={balances.business}"
        )
