"""Bounded-parallel content hashing.

Hashing is both disk- and CPU-bound, so fan-out is kept deliberately low.
Candidates are admitted one at a time; once ``max_in_flight`` tasks are
outstanding, admission blocks until one of them completes.
"""

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Set

from .constants import HASH_MAX_IN_FLIGHT
from .hashing import compute_file_digest
from .scanner import FileCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HashResult:
    """Digest of one candidate."""

    candidate: FileCandidate
    digest: str


class HashWorkerPool:
    """Compute digests for a stream of candidates with an admission gate.

    Results are delivered in completion order, not submission order.
    A candidate whose hashing fails is logged and dropped; it is neither
    retried nor reported as handled.

    Attributes:
        max_in_flight: Maximum number of concurrent hash tasks
        peak_in_flight: Highest concurrency observed during the last run
        failures: Candidates dropped during the last run
    """

    def __init__(
        self,
        max_in_flight: int = HASH_MAX_IN_FLIGHT,
        hash_fn: Callable[..., str] = compute_file_digest,
    ):
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {max_in_flight}")
        self.max_in_flight = max_in_flight
        self._hash_fn = hash_fn
        self._lock = threading.Lock()
        self._running = 0
        self.peak_in_flight = 0
        self.failures: List[FileCandidate] = []

    def _hash_one(self, candidate: FileCandidate) -> HashResult:
        with self._lock:
            self._running += 1
            self.peak_in_flight = max(self.peak_in_flight, self._running)
        try:
            logger.debug("Hashing %s", candidate.path)
            return HashResult(candidate=candidate, digest=self._hash_fn(candidate.path))
        finally:
            with self._lock:
                self._running -= 1

    def run(
        self,
        candidates: Iterable[FileCandidate],
        on_result: Optional[Callable[[HashResult], None]] = None,
    ) -> List[HashResult]:
        """Hash every candidate and return the successful results.

        Args:
            candidates: Files to hash, consumed lazily
            on_result: Optional callback invoked for each result as it completes

        Returns:
            HashResults in completion order
        """
        self.peak_in_flight = 0
        self.failures = []
        results: List[HashResult] = []
        in_flight: Set[Future] = set()
        owners = {}

        def collect(done: Set[Future]) -> None:
            for future in done:
                candidate = owners.pop(future)
                try:
                    result = future.result()
                except Exception as e:
                    logger.warning("Failed to hash %s: %s", candidate.path, e)
                    self.failures.append(candidate)
                    continue
                results.append(result)
                if on_result:
                    on_result(result)

        with ThreadPoolExecutor(
            max_workers=self.max_in_flight, thread_name_prefix="transbatch-hash"
        ) as executor:
            for candidate in candidates:
                # Backpressure: hold admission until a slot frees up
                while len(in_flight) >= self.max_in_flight:
                    done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                    collect(done)

                future = executor.submit(self._hash_one, candidate)
                owners[future] = candidate
                in_flight.add(future)

            logger.debug("All hash tasks queued, draining %d in flight", len(in_flight))
            while in_flight:
                done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                collect(done)

        return results
