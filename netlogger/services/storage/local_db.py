"""
Local SQLite Store

Append-only buffer of LogRecords awaiting remote sync.

Ordering is by the AUTOINCREMENT surrogate id only, never by timestamp, so
wall-clock changes cannot reorder the drain. Ids keep increasing after
clear_all() because AUTOINCREMENT keeps its sequence.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable

from netlogger.common.exceptions import StoreError
from netlogger.common.logging_setup import get_service_logger
from netlogger.services.capture.models import RECORD_COLUMNS, LogRecord

logger = get_service_logger("storage.local_db")

DEFAULT_DB_PATH = Path("/var/lib/netlogger/netlogger.db")


class LocalStore:
    """
    SQLite store for captured records.

    Every operation runs in its own transaction on its own connection, so
    the persistence scheduler and the sync worker can call in from
    different threads. delete_by_ids() only touches the ids it is given,
    which keeps rows appended after a drain fetched its chunk safe.
    """

    # SQLite parameter limit (safe for all builds)
    SQLITE_MAX_PARAMS = 999

    def __init__(self, db_path: Path | None = None):
        self.db_path = Path(db_path or DEFAULT_DB_PATH)

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema"""
        try:
            with self._get_connection() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS network_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        timestamp TEXT NOT NULL,

                        -- Device identity
                        device_id TEXT,
                        device_make TEXT,
                        device_model TEXT,

                        -- Signal
                        carrier_name TEXT,
                        network_type TEXT,
                        rsrp TEXT,
                        rsrq TEXT,
                        sinr TEXT,
                        pci TEXT,
                        downlink_speed TEXT,
                        uplink_speed TEXT,

                        -- Position
                        velocity TEXT,
                        latitude TEXT,
                        longitude TEXT
                    )
                """)
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e), operation="init") from e

        logger.info(f"Database initialized: {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager"""
        # timeout=10.0: fail instead of blocking forever on lock contention
        conn = sqlite3.connect(str(self.db_path), timeout=10.0)
        conn.row_factory = sqlite3.Row

        # WAL lets readers (UI, export) run alongside the appender
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA temp_store=MEMORY")

        try:
            yield conn
        finally:
            conn.close()

    def append(self, record: LogRecord) -> int:
        """
        Insert a record.

        Returns:
            The assigned surrogate id

        Raises:
            StoreError: If the write fails
        """
        placeholders = ", ".join("?" for _ in RECORD_COLUMNS)
        values = [getattr(record, column) for column in RECORD_COLUMNS]

        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    f"INSERT INTO network_logs ({', '.join(RECORD_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    values,
                )
                conn.commit()
                return cursor.lastrowid
        except sqlite3.Error as e:
            raise StoreError(str(e), operation="append") from e

    def _select(self, order: str, limit: int | None = None) -> list[LogRecord]:
        sql = f"SELECT * FROM network_logs ORDER BY id {order}"
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)

        try:
            with self._get_connection() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(str(e), operation="select") from e

        return [LogRecord.from_row(row) for row in rows]

    def recent(self, n: int = 10) -> list[LogRecord]:
        """Newest n records, most recent first (live display)"""
        if n <= 0:
            return []
        return self._select("DESC", n)

    def all(self) -> list[LogRecord]:
        """Every record, most recent first (export)"""
        return self._select("DESC")

    def oldest(self, k: int) -> list[LogRecord]:
        """The k lowest-id records, ascending (drain source)"""
        if k <= 0:
            return []
        return self._select("ASC", k)

    def delete_by_ids(self, ids: Iterable[int]) -> int:
        """
        Delete exactly the given ids in one transaction.

        Returns:
            Number of rows deleted
        """
        id_list = list(ids)
        if not id_list:
            return 0

        deleted = 0
        try:
            with self._get_connection() as conn:
                # Chunk to stay within SQLite parameter limit
                for chunk_start in range(0, len(id_list), self.SQLITE_MAX_PARAMS):
                    chunk = id_list[chunk_start:chunk_start + self.SQLITE_MAX_PARAMS]
                    placeholders = ",".join("?" for _ in chunk)
                    cursor = conn.execute(
                        f"DELETE FROM network_logs WHERE id IN ({placeholders})",
                        chunk,
                    )
                    deleted += cursor.rowcount
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e), operation="delete") from e

        return deleted

    def clear_all(self) -> int:
        """Delete every record. Returns the number removed."""
        try:
            with self._get_connection() as conn:
                cursor = conn.execute("DELETE FROM network_logs")
                conn.commit()
                deleted = cursor.rowcount
        except sqlite3.Error as e:
            raise StoreError(str(e), operation="clear") from e

        logger.info(f"Cleared {deleted} records from local store")
        return deleted

    def count(self) -> int:
        try:
            with self._get_connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM network_logs").fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError(str(e), operation="count") from e

    def get_stats(self) -> dict:
        """Get database statistics"""
        try:
            with self._get_connection() as conn:
                total, oldest_id, newest_id = conn.execute(
                    "SELECT COUNT(*), MIN(id), MAX(id) FROM network_logs"
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e), operation="stats") from e

        return {
            "total_records": total,
            "oldest_id": oldest_id,
            "newest_id": newest_id,
            "db_size_bytes": self.db_path.stat().st_size if self.db_path.exists() else 0,
        }
