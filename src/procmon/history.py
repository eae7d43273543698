"""Append-only SQLite history of process snapshots."""

import logging
import os
import sqlite3
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from procmon.errors import QueryError, StorageUnavailable
from procmon.models import ProcessSnapshot, ProcessStatus

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS process_snapshots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        process_name TEXT NOT NULL,
        pid INTEGER NOT NULL,
        cpu_usage REAL NOT NULL,
        memory_bytes INTEGER NOT NULL,
        thread_count INTEGER NOT NULL,
        status TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_timestamp ON process_snapshots(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_pid ON process_snapshots(pid)",
    "CREATE INDEX IF NOT EXISTS idx_process_name ON process_snapshots(process_name)",
)

_INSERT = (
    "INSERT INTO process_snapshots "
    "(timestamp, process_name, pid, cpu_usage, memory_bytes, thread_count, status) "
    "VALUES (?, ?, ?, ?, ?, ?, ?)"
)

_SELECT = (
    "SELECT id, timestamp, process_name, pid, cpu_usage, memory_bytes, thread_count, status "
    "FROM process_snapshots"
)


def encode_timestamp(value: datetime) -> str:
    """
    Encode an instant as a fixed-width UTC ISO-8601 string.

    Fixed width and a single offset keep text order identical to time order.
    Naive datetimes are taken as local time.
    """
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def decode_timestamp(text: str) -> datetime:
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        raise ValueError(f"timestamp without offset: {text!r}")
    return value.astimezone()


class HistoryStore:
    """
    Durable, append-only record of process snapshots.

    One writer appends a batch per sampling tick; readers in other processes
    see a consistent prefix of committed batches.
    """

    def __init__(self, conn: sqlite3.Connection, location: Path) -> None:
        self._conn = conn
        self._location = location

    @classmethod
    def open(cls, location: str | os.PathLike, readonly: bool = False) -> "HistoryStore":
        """
        Open or create the store at `location`.

        A read-only store must already exist; it is never created, migrated
        or switched to WAL, and any append through it fails.

        Raises:
            StorageUnavailable: The file or its directory cannot be created or opened.
        """
        path = Path(location)
        if readonly:
            return cls._open_readonly(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(path))
        except (OSError, sqlite3.Error) as exc:
            raise StorageUnavailable(f"Failed to open history database {path}: {exc}") from exc

        try:
            with conn:
                for statement in _SCHEMA:
                    conn.execute(statement)
        except sqlite3.Error as exc:
            conn.close()
            raise StorageUnavailable(f"Failed to initialise history database {path}: {exc}") from exc

        try:
            conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error:
            logger.debug("WAL journal mode unavailable for %s", path)

        logger.debug("opened history database %s", path)
        return cls(conn, path)

    @classmethod
    def _open_readonly(cls, path: Path) -> "HistoryStore":
        if not path.is_file():
            raise StorageUnavailable(f"History database not found: {path}")
        try:
            conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Failed to open history database {path}: {exc}") from exc
        logger.debug("opened history database %s read-only", path)
        return cls(conn, path)

    @property
    def location(self) -> Path:
        return self._location

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "HistoryStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def insert(self, snapshots: Sequence[ProcessSnapshot]) -> None:
        """
        Append `snapshots` as one atomic batch.

        Either every row is committed or none is. An empty batch is a no-op.

        Raises:
            StorageUnavailable: The batch could not be written.
        """
        if not snapshots:
            return

        rows = [
            (
                encode_timestamp(s.timestamp),
                s.name,
                s.pid,
                s.cpu_percent,
                s.memory_bytes,
                s.thread_count,
                s.status.value,
            )
            for s in snapshots
        ]
        try:
            with self._conn:
                self._conn.executemany(_INSERT, rows)
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"Failed to append {len(rows)} snapshot(s): {exc}") from exc
        logger.debug("appended %d snapshot(s)", len(rows))

    def query(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        name: str | None = None,
        pid: int | None = None,
    ) -> list[ProcessSnapshot]:
        """
        Return records matching every supplied filter, oldest first.

        Args:
            start: Inclusive lower time bound.
            end: Inclusive upper time bound.
            name: Substring the process name must contain.
            pid: Exact process id.

        Raises:
            QueryError: The query failed or a stored row is malformed.
        """
        clauses: list[str] = []
        params: list = []
        if start is not None:
            clauses.append("timestamp >= ?")
            params.append(encode_timestamp(start))
        if end is not None:
            clauses.append("timestamp <= ?")
            params.append(encode_timestamp(end))
        if name is not None:
            clauses.append("instr(process_name, ?) > 0")
            params.append(name)
        if pid is not None:
            clauses.append("pid = ?")
            params.append(pid)

        sql = _SELECT
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY timestamp ASC, id ASC"

        try:
            rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise QueryError(f"Database query failed: {exc}") from exc

        return [self._decode_row(row) for row in rows]

    def count(self) -> int:
        """Total number of stored records."""
        try:
            return self._conn.execute("SELECT COUNT(*) FROM process_snapshots").fetchone()[0]
        except sqlite3.Error as exc:
            raise QueryError(f"Database query failed: {exc}") from exc

    @staticmethod
    def _decode_row(row: tuple) -> ProcessSnapshot:
        row_id, timestamp, name, pid, cpu, memory, threads, status = row
        try:
            snapshot = ProcessSnapshot(
                timestamp=decode_timestamp(timestamp),
                pid=int(pid),
                name=str(name),
                cpu_percent=float(cpu),
                memory_bytes=int(memory),
                thread_count=int(threads),
                status=ProcessStatus.from_tag(status),
            )
        except (TypeError, ValueError) as exc:
            raise QueryError(f"Malformed history record (id={row_id}): {exc}") from exc
        if snapshot.memory_bytes < 0 or snapshot.cpu_percent < 0 or snapshot.thread_count < 1:
            raise QueryError(f"Malformed history record (id={row_id}): negative or zero counter")
        return snapshot
