"""Local persistent hash cache.

Maps content digest -> {name, folder, created_at} for every file that has
been transformed. This store is what gets replicated to and from a remote
instance by ``transbatch.sync``.
"""

import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .models import CacheEntry
from .utils import utc_now

logger = logging.getLogger(__name__)


def _ts(value: datetime) -> str:
    # Fixed-width ISO text sorts chronologically
    return value.isoformat(timespec="microseconds")


class HashCacheStore:
    """SQLite-backed hash cache.

    One row per digest; writes are upserts (last write wins on name, folder
    and timestamp). Thread-safe: every operation opens its own connection
    under a shared lock, and each write is one SQLite transaction.
    """

    def __init__(self, db_path: Path):
        """Initialize store with database path.

        Args:
            db_path: Path to SQLite database file (created if missing)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path), timeout=30)

    def _init_database(self):
        """Initialize SQLite schema."""
        with self._lock:
            conn = self._connect()
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS file_hashes (
                        hash TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        folder TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_created_at ON file_hashes(created_at)
                """)
                conn.commit()
            finally:
                conn.close()

    def upsert(
        self,
        digest: str,
        name: str,
        folder: str = "Root",
        created_at: Optional[datetime] = None,
    ) -> CacheEntry:
        """Insert or replace the entry for a digest."""
        entry = CacheEntry(hash=digest, name=name, folder=folder, created_at=created_at or utc_now())
        self.upsert_many([entry])
        return entry

    def upsert_many(self, entries: Iterable[CacheEntry]) -> int:
        """Upsert a batch of entries in one transaction.

        Returns:
            Number of rows written
        """
        rows = [(e.hash, e.name, e.folder, _ts(e.created_at)) for e in entries]
        if not rows:
            return 0
        with self._lock:
            conn = self._connect()
            try:
                conn.executemany(
                    """
                    INSERT INTO file_hashes (hash, name, folder, created_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(hash) DO UPDATE SET
                        name = excluded.name,
                        folder = excluded.folder,
                        created_at = excluded.created_at
                    """,
                    rows,
                )
                conn.commit()
            finally:
                conn.close()
        logger.debug("Upserted %d cache entries into %s", len(rows), self.db_path)
        return len(rows)

    def get(self, digest: str) -> Optional[CacheEntry]:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT hash, name, folder, created_at FROM file_hashes WHERE hash = ?",
                    (digest,),
                ).fetchone()
            finally:
                conn.close()
        return self._to_entry(row) if row else None

    def get_name(self, digest: str) -> Optional[str]:
        """Name recorded for a digest, if any."""
        entry = self.get(digest)
        return entry.name if entry else None

    def list_all(self) -> List[CacheEntry]:
        """All entries, newest first."""
        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute(
                    "SELECT hash, name, folder, created_at FROM file_hashes "
                    "ORDER BY created_at DESC, hash"
                ).fetchall()
            finally:
                conn.close()
        return [self._to_entry(row) for row in rows]

    def hashes(self) -> Set[str]:
        """Snapshot of every digest in the store."""
        with self._lock:
            conn = self._connect()
            try:
                return {row[0] for row in conn.execute("SELECT hash FROM file_hashes")}
            finally:
                conn.close()

    def count(self) -> int:
        with self._lock:
            conn = self._connect()
            try:
                return conn.execute("SELECT COUNT(*) FROM file_hashes").fetchone()[0]
            finally:
                conn.close()

    def delete(self, digest: str) -> bool:
        """Delete one entry. Returns True if it existed."""
        with self._lock:
            conn = self._connect()
            try:
                cursor = conn.execute("DELETE FROM file_hashes WHERE hash = ?", (digest,))
                conn.commit()
                return cursor.rowcount > 0
            finally:
                conn.close()

    def clear(self) -> int:
        """Delete every entry. Returns number of rows removed."""
        with self._lock:
            conn = self._connect()
            try:
                cursor = conn.execute("DELETE FROM file_hashes")
                conn.commit()
                removed = cursor.rowcount
            finally:
                conn.close()
        logger.info("Cleared %d entries from %s", removed, self.db_path)
        return removed

    @staticmethod
    def _to_entry(row) -> CacheEntry:
        digest, name, folder, created_at = row
        return CacheEntry(
            hash=digest,
            name=name,
            folder=folder,
            created_at=datetime.fromisoformat(created_at),
        )
