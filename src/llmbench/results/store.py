"""SQLite results store.

Two tables: ``system_specs`` holds environment snapshots and
``benchmark_results`` holds one row per measurement, optionally referencing
the snapshot taken in the same invocation.

Timestamps are stored as ISO-8601 text in UTC, so lexical order is
chronological order.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from llmbench.constants import DEFAULT_DB_PATH
from llmbench.domain.environment import AcceleratorInfo, EnvironmentSnapshot, GPUDescriptor
from llmbench.domain.results import BenchmarkResult, ResultWithSnapshot
from llmbench.exceptions import StoreError

__all__ = ["SCHEMA", "ResultsStore"]

SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS system_specs (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  server_name TEXT NOT NULL,
  cpu_model TEXT NOT NULL,
  cpu_cores INTEGER NOT NULL,
  cpu_threads INTEGER NOT NULL,
  total_memory_gb REAL NOT NULL,
  os_type TEXT NOT NULL,
  os_version TEXT NOT NULL,
  motherboard TEXT,
  gpus TEXT NOT NULL,
  accelerator_info TEXT,
  timestamp TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS benchmark_results (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  model TEXT NOT NULL,
  tokens_per_second REAL NOT NULL,
  total_tokens INTEGER NOT NULL,
  duration_seconds REAL NOT NULL,
  timestamp TEXT NOT NULL,
  success INTEGER NOT NULL,
  error TEXT,
  system_specs_id INTEGER,
  FOREIGN KEY(system_specs_id) REFERENCES system_specs(id)
);

CREATE INDEX IF NOT EXISTS idx_benchmark_timestamp ON benchmark_results(timestamp);
CREATE INDEX IF NOT EXISTS idx_benchmark_model ON benchmark_results(model);
CREATE INDEX IF NOT EXISTS idx_system_specs_timestamp ON system_specs(timestamp);
"""

_RESULT_COLUMNS = (
    "r.id AS r_id, r.model, r.tokens_per_second, r.total_tokens, r.duration_seconds, "
    "r.timestamp AS r_timestamp, r.success, r.error, r.system_specs_id"
)
_SNAPSHOT_COLUMNS = (
    "s.id AS s_id, s.server_name, s.cpu_model, s.cpu_cores, s.cpu_threads, "
    "s.total_memory_gb, s.os_type, s.os_version, s.motherboard, s.gpus, "
    "s.accelerator_info, s.timestamp AS s_timestamp"
)

_IN_MEMORY = ":memory:"


def _iso(ts: datetime) -> str:
    # naive values are taken as UTC; offsets are normalised so text order is time order
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _coerce_limit(limit: Any) -> int | None:
    """Positive integer limit, or None for "no limit"."""
    if limit is None or isinstance(limit, bool):
        return None
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _result_from_row(row: sqlite3.Row) -> BenchmarkResult:
    return BenchmarkResult(
        id=row["r_id"],
        model=row["model"],
        tokens_per_second=row["tokens_per_second"],
        total_tokens=row["total_tokens"],
        duration_seconds=row["duration_seconds"],
        timestamp=datetime.fromisoformat(row["r_timestamp"]),
        success=bool(row["success"]),
        error=row["error"],
        snapshot_id=row["system_specs_id"],
    )


def _snapshot_from_row(row: sqlite3.Row) -> EnvironmentSnapshot:
    accelerator_json = row["accelerator_info"]
    return EnvironmentSnapshot(
        id=row["s_id"],
        server_name=row["server_name"],
        cpu_model=row["cpu_model"],
        cpu_cores=row["cpu_cores"],
        cpu_threads=row["cpu_threads"],
        total_memory_gb=row["total_memory_gb"],
        os_type=row["os_type"],
        os_version=row["os_version"],
        motherboard=row["motherboard"],
        gpus=[GPUDescriptor.model_validate(g) for g in json.loads(row["gpus"])],
        accelerator=(
            AcceleratorInfo.model_validate_json(accelerator_json) if accelerator_json else None
        ),
        timestamp=datetime.fromisoformat(row["s_timestamp"]),
    )


class ResultsStore:
    """Persistent store for benchmark results and environment snapshots.

    The connection is opened lazily on first use and the schema is ensured
    at the same time. One store object is created per process and passed to
    whatever needs it; ``close()`` (or leaving the ``with`` block) releases
    the connection.

    All persistence failures raise ``StoreError``.

    Example:
        >>> with ResultsStore(Path("benchmark_data.db")) as store:  # doctest: +SKIP
        ...     snapshot_id = store.save_snapshot(snapshot)
        ...     store.save_results(results, snapshot_id)
    """

    def __init__(self, path: Path | str = DEFAULT_DB_PATH):
        self.path = path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        if str(self.path) != _IN_MEMORY:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        conn.executescript(SCHEMA)
        conn.commit()
        logger.debug("Results store opened at {}", self.path)
        return conn

    @property
    def connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                try:
                    self._conn = self._connect()
                except (sqlite3.Error, OSError) as e:
                    raise StoreError(f"Cannot initialise results store at {self.path}: {e}") from e
            return self._conn

    def init(self) -> None:
        """Open the store and create tables and indexes if missing.

        Idempotent: existing tables and rows are left untouched.
        """
        with self._lock:
            conn = self.connection
            try:
                conn.executescript(SCHEMA)
                conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f"Cannot initialise results store schema: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> ResultsStore:
        self.init()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_snapshot(self, snapshot: EnvironmentSnapshot) -> int:
        """Persist a snapshot and return its new id."""
        gpus = json.dumps([g.model_dump() for g in snapshot.gpus])
        accelerator = snapshot.accelerator.model_dump_json() if snapshot.accelerator else None
        with self._lock:
            conn = self.connection
            try:
                with conn:
                    cursor = conn.execute(
                        "INSERT INTO system_specs(server_name,cpu_model,cpu_cores,cpu_threads,"
                        "total_memory_gb,os_type,os_version,motherboard,gpus,accelerator_info,"
                        "timestamp) VALUES(?,?,?,?,?,?,?,?,?,?,?)",
                        (
                            snapshot.server_name,
                            snapshot.cpu_model,
                            snapshot.cpu_cores,
                            snapshot.cpu_threads,
                            snapshot.total_memory_gb,
                            snapshot.os_type,
                            snapshot.os_version,
                            snapshot.motherboard,
                            gpus,
                            accelerator,
                            _iso(snapshot.timestamp),
                        ),
                    )
            except sqlite3.Error as e:
                raise StoreError(f"Failed to save system specs: {e}") from e
        snapshot_id = cursor.lastrowid
        assert snapshot_id is not None
        logger.debug("Saved system specs with id {}", snapshot_id)
        return snapshot_id

    def _snapshot_exists(self, conn: sqlite3.Connection, snapshot_id: int) -> bool:
        row = conn.execute("SELECT 1 FROM system_specs WHERE id=?", (snapshot_id,)).fetchone()
        return row is not None

    def save_results(
        self,
        results: Iterable[BenchmarkResult],
        snapshot_id: int | None = None,
    ) -> int:
        """Persist a batch of results in one transaction.

        Either every row is committed or none is. ``snapshot_id`` overrides
        each result's own ``snapshot_id``; a reference to a snapshot that
        does not exist is stored as NULL.

        Returns:
            Number of rows written.
        """
        batch = list(results)
        if not batch:
            return 0

        with self._lock:
            conn = self.connection
            try:
                rows = []
                checked: dict[int, bool] = {}
                for result in batch:
                    ref = snapshot_id if snapshot_id is not None else result.snapshot_id
                    if ref is not None:
                        if ref not in checked:
                            checked[ref] = self._snapshot_exists(conn, ref)
                            if not checked[ref]:
                                logger.warning("Unknown system specs id {}, storing NULL", ref)
                        ref = ref if checked[ref] else None
                    rows.append(
                        (
                            result.model,
                            result.tokens_per_second,
                            result.total_tokens,
                            result.duration_seconds,
                            _iso(result.timestamp),
                            int(result.success),
                            result.error,
                            ref,
                        )
                    )
                with conn:
                    conn.executemany(
                        "INSERT INTO benchmark_results(model,tokens_per_second,total_tokens,"
                        "duration_seconds,timestamp,success,error,system_specs_id) "
                        "VALUES(?,?,?,?,?,?,?,?)",
                        rows,
                    )
            except sqlite3.Error as e:
                raise StoreError(f"Failed to save benchmark results: {e}") from e

        logger.debug("Saved {} benchmark results", len(rows))
        return len(rows)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.connection.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"Results store query failed: {e}") from e

    def all_results(self) -> list[BenchmarkResult]:
        """Every stored result, newest first."""
        rows = self._query(
            f"SELECT {_RESULT_COLUMNS} FROM benchmark_results r "
            "ORDER BY r.timestamp DESC, r.id DESC"
        )
        return [_result_from_row(row) for row in rows]

    def results_by_model(self, model: str) -> list[BenchmarkResult]:
        rows = self._query(
            f"SELECT {_RESULT_COLUMNS} FROM benchmark_results r "
            "WHERE r.model=? ORDER BY r.timestamp DESC, r.id DESC",
            (model,),
        )
        return [_result_from_row(row) for row in rows]

    def results_with_snapshot(self, limit: Any = None) -> list[ResultWithSnapshot]:
        """Results joined with their snapshot, newest first.

        Results without a snapshot are included with ``snapshot=None``.

        Args:
            limit: Maximum rows. None, non-positive or non-numeric values
                mean no limit.
        """
        sql = (
            f"SELECT {_RESULT_COLUMNS}, {_SNAPSHOT_COLUMNS} FROM benchmark_results r "
            "LEFT JOIN system_specs s ON r.system_specs_id = s.id "
            "ORDER BY r.timestamp DESC, r.id DESC"
        )
        params: tuple[Any, ...] = ()
        effective = _coerce_limit(limit)
        if effective is not None:
            sql += " LIMIT ?"
            params = (effective,)

        joined = []
        for row in self._query(sql, params):
            result = _result_from_row(row)
            snapshot = _snapshot_from_row(row) if row["s_id"] is not None else None
            joined.append(ResultWithSnapshot(**result.model_dump(), snapshot=snapshot))
        return joined

    def latest_snapshot(self) -> EnvironmentSnapshot | None:
        rows = self._query(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM system_specs s "
            "ORDER BY s.timestamp DESC, s.id DESC LIMIT 1"
        )
        return _snapshot_from_row(rows[0]) if rows else None

    def all_snapshots(self) -> list[EnvironmentSnapshot]:
        rows = self._query(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM system_specs s ORDER BY s.timestamp DESC, s.id DESC"
        )
        return [_snapshot_from_row(row) for row in rows]
