"""Socket-streaming sync transport (SurrealDB JSON-RPC over WebSocket)."""

import itertools
import json
import logging
from typing import Any, Callable, List, Optional

from websockets.exceptions import WebSocketException
from websockets.sync.client import connect as ws_connect

from ..constants import REMOTE_TABLE
from ..errors import SyncAuthError, SyncTransportError
from ..models import CacheEntry, SyncSession

logger = logging.getLogger(__name__)

UPSERT_QUERY = (
    f"INSERT INTO {REMOTE_TABLE} $entries ON DUPLICATE KEY UPDATE "
    "name = $input.name, folder = $input.folder, created_at = $input.created_at;"
)


class RpcError(Exception):
    """Error object returned by the server for one RPC call."""

    def __init__(self, method: str, error: Any):
        self.method = method
        self.error = error
        message = error.get("message") if isinstance(error, dict) else str(error)
        super().__init__(f"{method}: {message}")


class WebSocketTransport:
    """
    Hash cache replica reached over a persistent WebSocket (ws:// or wss://).

    Authentication and namespace selection are bound to the connection, so
    all calls after authenticate() share them.
    """

    def __init__(self, url: str, timeout: float, connector: Optional[Callable[..., Any]] = None):
        """
        Initialize WebSocket transport.

        Args:
            url: ws:// or wss:// URL of the server; /rpc is appended if missing
            timeout: Open and receive timeout in seconds
            connector: Optional replacement for websockets' connect (tests)
        """
        url = url.rstrip("/")
        self.url = url if url.endswith("/rpc") else f"{url}/rpc"
        self.timeout = timeout
        self._connector = connector or ws_connect
        self._conn = None
        self._ids = itertools.count(1)

    def connect(self) -> None:
        try:
            self._conn = self._connector(self.url, open_timeout=self.timeout)
        except (OSError, WebSocketException, TimeoutError) as e:
            raise SyncTransportError(f"Cannot reach {self.url}: {e}") from e

    def authenticate(self, session: SyncSession) -> None:
        try:
            if session.auth_mode == "token":
                self._call("authenticate", [session.token])
            elif session.auth_mode == "password":
                self._call("signin", [{"user": session.username, "pass": session.password}])
        except RpcError as e:
            raise SyncAuthError(f"Authentication rejected by {self.url}: {e}") from e

        self._rpc("use", [session.namespace, session.database])
        logger.debug("Authenticated to %s (%s)", self.url, session.auth_mode)

    def upsert_many(self, entries: List[CacheEntry]) -> int:
        if not entries:
            return 0
        results = self._rpc("query", [UPSERT_QUERY, {"entries": [e.to_document() for e in entries]}])
        self._check_statements(results)
        return len(entries)

    def select_all(self) -> List[CacheEntry]:
        rows = self._rpc("select", [REMOTE_TABLE]) or []
        return [CacheEntry.from_document(row) for row in rows]

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except (OSError, WebSocketException) as e:
                logger.debug("Error closing %s: %s", self.url, e)
            self._conn = None

    # ---- Internals ----------------------------------------------------------

    def _rpc(self, method: str, params: list) -> Any:
        """RPC call where any server error is a transport failure."""
        try:
            return self._call(method, params)
        except RpcError as e:
            message = str(e).lower()
            if "permission" in message or "authentication" in message:
                raise SyncAuthError(f"Not authorized at {self.url}: {e}") from e
            raise SyncTransportError(f"RPC failed at {self.url}: {e}") from e

    def _call(self, method: str, params: list) -> Any:
        if self._conn is None:
            raise SyncTransportError("Transport not connected")
        request_id = next(self._ids)
        try:
            self._conn.send(json.dumps({"id": request_id, "method": method, "params": params}))
            while True:
                message = json.loads(self._conn.recv(timeout=self.timeout))
                # Live-query notifications carry no id; skip anything that is not our reply
                if message.get("id") == request_id:
                    break
        except (OSError, WebSocketException, TimeoutError, ValueError) as e:
            raise SyncTransportError(f"Connection to {self.url} failed during {method}: {e}") from e

        if message.get("error"):
            raise RpcError(method, message["error"])
        return message.get("result")

    def _check_statements(self, results: Any) -> None:
        for statement in results or []:
            if isinstance(statement, dict) and statement.get("status", "OK") != "OK":
                raise SyncTransportError(
                    f"Query failed at {self.url}: {str(statement.get('result'))[:200]}"
                )
