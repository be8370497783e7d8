"""Per-input-root journal of digests that have already been transformed.

The history is independent of the shared hash cache: it lives next to the
input files, is rewritten atomically on every flush, and is owned by exactly
one run at a time (enforced with a portalocker lock file).
"""

from __future__ import annotations
import contextlib
import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, Set

import portalocker

from .constants import HISTORY_FILE
from .errors import HistoryLockedError
from .utils import atomic_write_text

logger = logging.getLogger(__name__)


class LocalHistorySet:
    """Set of handled digests persisted as one digest per line.

    Mutations only touch memory; ``flush()`` writes the whole set to disk
    via temp file + rename, so a crash leaves either the previous or the new
    file, never a partial one.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._digests: Set[str] = set()
        self._dirty = 0
        self._lock: Optional[portalocker.Lock] = None

    @classmethod
    def for_root(cls, input_root: Path) -> "LocalHistorySet":
        """History file scoped to an input directory."""
        return cls(Path(input_root) / HISTORY_FILE)

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def load(self) -> "LocalHistorySet":
        """Read digests from disk; a missing or unreadable file means empty."""
        if not self.path.exists():
            self._digests = set()
            return self
        try:
            with self.path.open(encoding="utf-8") as f:
                self._digests = {line.strip() for line in f if line.strip()}
        except OSError as e:
            logger.warning("Could not read history %s: %s", self.path, e)
            self._digests = set()
        self._dirty = 0
        logger.debug("Loaded %d history entries from %s", len(self._digests), self.path)
        return self

    def add(self, digest: str) -> None:
        if digest and digest not in self._digests:
            self._digests.add(digest)
            self._dirty += 1

    def update(self, digests: Iterable[str]) -> None:
        for digest in digests:
            self.add(digest)

    def __contains__(self, digest: object) -> bool:
        return digest in self._digests

    def __len__(self) -> int:
        return len(self._digests)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._digests))

    @property
    def pending(self) -> int:
        """Number of additions not yet flushed to disk."""
        return self._dirty

    def flush(self) -> None:
        """Atomically rewrite the history file with the current set."""
        atomic_write_text(self.path, "".join(f"{d}\n" for d in sorted(self._digests)))
        logger.debug("Flushed %d history entries to %s", len(self._digests), self.path)
        self._dirty = 0

    # ---- Run ownership -----------------------------------------------------

    def acquire(self) -> None:
        """Take exclusive ownership of this history for the current run.

        Raises:
            HistoryLockedError: If another process holds the lock
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock = portalocker.Lock(
            str(self.lock_path), "w", timeout=0, fail_when_locked=True
        )
        try:
            lock.acquire()
        except portalocker.exceptions.LockException:
            raise HistoryLockedError(str(self.path))
        self._lock = lock

    def release(self) -> None:
        if self._lock is not None:
            with contextlib.suppress(portalocker.exceptions.LockException):
                self._lock.release()
            self._lock = None

    def __enter__(self) -> "LocalHistorySet":
        self.acquire()
        return self.load()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
