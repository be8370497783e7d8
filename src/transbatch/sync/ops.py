"""Push, pull and connection test against a hash cache replica.

Each operation opens its own transport, authenticates, does its work and
closes the transport. The remote part runs on a worker thread and is
abandoned after ``session.timeout`` seconds with SyncTimeoutError; a pull
only touches the local store once the fetch has returned in time.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, List, Optional, TypeVar

from ..cache_store import HashCacheStore
from ..errors import SyncTimeoutError
from ..models import CacheEntry, SyncSession
from .base import CacheTransport
from .factory import make_transport

logger = logging.getLogger(__name__)

T = TypeVar("T")

TransportFactory = Callable[[SyncSession], CacheTransport]


def _with_timeout(operation: str, timeout: float, fn: Callable[[], T]) -> T:
    # Not a context manager: leaving the block must not wait on a hung call
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"transbatch-{operation}")
    try:
        future = executor.submit(fn)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            logger.warning("Remote %s exceeded %ss", operation, timeout)
            raise SyncTimeoutError(operation, timeout)
    finally:
        executor.shutdown(wait=False)


def _open(session: SyncSession, factory: TransportFactory) -> CacheTransport:
    transport = factory(session)
    try:
        transport.connect()
        transport.authenticate(session)
    except BaseException:
        transport.close()
        raise
    return transport


def push(
    store: HashCacheStore,
    session: SyncSession,
    factory: Optional[TransportFactory] = None,
) -> int:
    """Upsert every local entry into the replica.

    Returns:
        Number of entries pushed
    """
    factory = factory or make_transport

    def _push() -> int:
        entries = store.list_all()
        transport = _open(session, factory)
        try:
            if not entries:
                logger.info("Local cache is empty, nothing to push")
                return 0
            sent = transport.upsert_many(entries)
        finally:
            transport.close()
        logger.info("Pushed %d entries to %s", sent, session.url)
        return sent

    return _with_timeout("push", session.timeout, _push)


def pull(
    store: HashCacheStore,
    session: SyncSession,
    factory: Optional[TransportFactory] = None,
) -> int:
    """Upsert every replica entry into the local store.

    Returns:
        Number of entries pulled
    """
    factory = factory or make_transport

    def _fetch() -> List[CacheEntry]:
        transport = _open(session, factory)
        try:
            return transport.select_all()
        finally:
            transport.close()

    # Local write stays on the caller so a timed-out fetch leaves the store untouched
    entries = _with_timeout("pull", session.timeout, _fetch)
    written = store.upsert_many(entries)
    logger.info("Pulled %d entries from %s", written, session.url)
    return written


def test_connection(
    session: SyncSession,
    factory: Optional[TransportFactory] = None,
) -> str:
    """Connect and authenticate only; no data is transferred.

    Returns:
        Human-readable success message

    Raises:
        SyncAuthError, SyncTransportError, SyncTimeoutError
    """
    factory = factory or make_transport

    def _test() -> str:
        transport = _open(session, factory)
        transport.close()
        return f"Connection successful ({session.auth_mode} auth)"

    return _with_timeout("connection test", session.timeout, _test)


# Keep pytest from collecting the helper as a test when imported into test modules
test_connection.__test__ = False
