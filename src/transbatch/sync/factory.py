"""Factory for creating sync transports."""

from .base import CacheTransport
from .http import HttpTransport
from .local import LocalFileTransport
from .ws import WebSocketTransport
from ..models import SyncSession


def transport_kind(url: str) -> str:
    """
    Classify a replica URL by scheme prefix.

    Returns:
        "ws" for socket streaming, "file" for a local replica, "http" otherwise
    """
    lowered = url.strip().lower()
    if lowered.startswith("ws"):
        return "ws"
    if lowered.startswith("file://"):
        return "file"
    return "http"


def make_transport(session: SyncSession) -> CacheTransport:
    """
    Create transport instance based on the session URL.

    Args:
        session: Sync session with URL and timeout

    Returns:
        An unconnected CacheTransport

    Raises:
        ValueError: If the URL is empty
    """
    url = session.url.strip()
    if not url:
        raise ValueError("Remote database URL not set")

    kind = transport_kind(url)
    if kind == "ws":
        return WebSocketTransport(url, timeout=session.timeout)
    elif kind == "file":
        return LocalFileTransport(url)
    else:
        if "://" not in url:
            url = f"http://{url}"
        return HttpTransport(url, timeout=session.timeout)
