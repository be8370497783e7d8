"""Capability interface shared by every sync transport."""

from typing import List, Protocol

from ..models import CacheEntry, SyncSession


class CacheTransport(Protocol):
    """
    Protocol for hash cache replicas.

    All implementations must provide connect/authenticate/upsert_many/
    select_all/close. Merge policy (last write wins) is expressed by
    upsert_many overwriting existing records keyed by digest.
    """

    def connect(self) -> None:
        """
        Open the connection to the replica.

        Raises:
            SyncTransportError: If the replica is unreachable
        """
        ...

    def authenticate(self, session: SyncSession) -> None:
        """
        Authenticate with the session's credentials and select the namespace.

        Token first, then username/password, else anonymous.

        Raises:
            SyncAuthError: If the replica rejects the credentials
        """
        ...

    def upsert_many(self, entries: List[CacheEntry]) -> int:
        """
        Insert or overwrite entries keyed by digest.

        Returns:
            Number of entries sent
        """
        ...

    def select_all(self) -> List[CacheEntry]:
        """Read every entry from the replica."""
        ...

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        ...
