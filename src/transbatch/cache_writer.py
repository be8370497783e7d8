"""Background write-back of new hash cache entries.

The pipeline must never wait on the cache, so new entries go through a
bounded queue drained by one worker thread. Failures and drops are counted
and logged instead of being raised.
"""

import logging
import queue
import threading
from typing import Optional

from .cache_store import HashCacheStore
from .constants import CACHE_QUEUE_SIZE
from .models import CacheEntry

logger = logging.getLogger(__name__)

_STOP = object()


class CacheWriter:
    """Fire-and-forget upserts into a HashCacheStore.

    Attributes:
        written: Entries stored successfully
        failed: Entries whose upsert raised
        dropped: Entries rejected because the queue was full or closed
    """

    def __init__(self, store: HashCacheStore, maxsize: int = CACHE_QUEUE_SIZE):
        self.store = store
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._closed = False
        self.written = 0
        self.failed = 0
        self.dropped = 0
        self._thread = threading.Thread(
            target=self._worker, name="transbatch-cache-writer", daemon=True
        )
        self._thread.start()

    def submit(self, entry: CacheEntry) -> bool:
        """Queue an entry without blocking. Returns False if it was dropped."""
        if self._closed:
            self.dropped += 1
            return False
        try:
            self._queue.put_nowait(entry)
        except queue.Full:
            self.dropped += 1
            logger.warning("Cache write queue full, dropping entry for %s", entry.name)
            return False
        return True

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                try:
                    self.store.upsert_many([item])
                    self.written += 1
                except Exception as e:
                    self.failed += 1
                    logger.warning("Cache write for %s failed: %s", item.name, e)
            finally:
                self._queue.task_done()

    def close(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop accepting entries; optionally wait for the queue to drain."""
        if self._closed:
            return
        self._closed = True
        # Blocking put: the stop marker must not be lost to a full queue
        self._queue.put(_STOP)
        if wait:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Cache writer still busy after %ss", timeout)

    def __enter__(self) -> "CacheWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
