"""Sync target that is another hash cache file on disk."""

import logging
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote, urlparse

from ..cache_store import HashCacheStore
from ..errors import SyncTransportError
from ..models import CacheEntry, SyncSession

logger = logging.getLogger(__name__)


class LocalFileTransport:
    """
    Replica stored in a local SQLite file (file:// URL).

    Useful for shared network drives and for exercising push/pull without a
    database server. Authentication is a no-op.
    """

    def __init__(self, url: str):
        """
        Initialize local transport.

        Args:
            url: file:// URL pointing at the replica database file
        """
        self.url = url
        self.path = self._parse_uri(url)
        self.store: Optional[HashCacheStore] = None

    def connect(self) -> None:
        try:
            self.store = HashCacheStore(self.path)
        except Exception as e:
            raise SyncTransportError(f"Cannot open replica {self.path}: {e}") from e

    def authenticate(self, session: SyncSession) -> None:
        if session.auth_mode != "anonymous":
            logger.debug("Ignoring %s credentials for local replica", session.auth_mode)

    def upsert_many(self, entries: List[CacheEntry]) -> int:
        return self._require_store().upsert_many(entries)

    def select_all(self) -> List[CacheEntry]:
        return self._require_store().list_all()

    def close(self) -> None:
        self.store = None

    def _require_store(self) -> HashCacheStore:
        if self.store is None:
            raise SyncTransportError("Transport not connected")
        return self.store

    @staticmethod
    def _parse_uri(uri: str) -> Path:
        """
        Parse file:// URI to get the database path.

        Raises:
            ValueError: If not a file:// URI
        """
        parsed = urlparse(uri)
        if parsed.scheme != "file":
            raise ValueError(f"Expected file:// URI, got {uri}")
        path = unquote(parsed.path)
        if parsed.netloc:
            path = f"{parsed.netloc}{path}"
        if not path:
            raise ValueError(f"Invalid file:// URI: {uri}")
        return Path(path)
