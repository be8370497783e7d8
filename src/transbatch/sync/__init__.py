"""Hash cache replication to a remote (or second local) store."""

from .base import CacheTransport
from .factory import make_transport, transport_kind
from .ops import pull, push, test_connection

__all__ = [
    "CacheTransport",
    "make_transport",
    "pull",
    "push",
    "test_connection",
    "transport_kind",
]
