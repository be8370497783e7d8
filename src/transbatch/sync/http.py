"""Request/response sync transport (SurrealDB HTTP API)."""

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from ..constants import REMOTE_TABLE
from ..errors import SyncAuthError, SyncTransportError
from ..models import CacheEntry, SyncSession

logger = logging.getLogger(__name__)

# Keep individual /sql requests to a reasonable size
UPSERT_BATCH_SIZE = 500

UPSERT_STATEMENT = (
    "INSERT INTO {table} {documents} ON DUPLICATE KEY UPDATE "
    "name = $input.name, folder = $input.folder, created_at = $input.created_at;"
)


class HttpTransport:
    """
    Hash cache replica reached over plain HTTP(S).

    Every call is an independent request; the bearer token obtained at
    authentication is attached to each one.
    """

    def __init__(self, url: str, timeout: float, session: Optional[requests.Session] = None):
        """
        Initialize HTTP transport.

        Args:
            url: Base URL of the database server (http:// or https://)
            timeout: Per-request timeout in seconds
            session: Optional requests session (injected in tests)
        """
        self.base_url = url.rstrip("/")
        self.timeout = timeout
        self._http = session
        self._headers: Dict[str, str] = {"Accept": "application/json"}

    def connect(self) -> None:
        if self._http is None:
            self._http = requests.Session()
        response = self._request("GET", "/health")
        if not response.ok:
            raise SyncTransportError(
                f"Database at {self.base_url} is not healthy (HTTP {response.status_code})"
            )

    def authenticate(self, session: SyncSession) -> None:
        self._headers.update({
            "surreal-ns": session.namespace,
            "surreal-db": session.database,
            # Older servers only understand the short names
            "NS": session.namespace,
            "DB": session.database,
        })

        if session.auth_mode == "token":
            self._headers["Authorization"] = f"Bearer {session.token}"
        elif session.auth_mode == "password":
            response = self._request(
                "POST",
                "/signin",
                json={
                    "ns": session.namespace,
                    "db": session.database,
                    "user": session.username,
                    "pass": session.password,
                },
            )
            if response.status_code in (400, 401, 403):
                raise SyncAuthError(
                    f"Sign-in rejected for user '{session.username}' at {self.base_url}"
                )
            self._raise_for_status(response)
            token = self._json(response).get("token")
            if not token:
                raise SyncAuthError(f"No token in sign-in response from {self.base_url}")
            self._headers["Authorization"] = f"Bearer {token}"

        # Cheap statement to prove the credentials work against this namespace
        self._query("RETURN true;")
        logger.debug("Authenticated to %s (%s)", self.base_url, session.auth_mode)

    def upsert_many(self, entries: List[CacheEntry]) -> int:
        sent = 0
        for start in range(0, len(entries), UPSERT_BATCH_SIZE):
            batch = entries[start:start + UPSERT_BATCH_SIZE]
            documents = json.dumps([e.to_document() for e in batch])
            self._query(UPSERT_STATEMENT.format(table=REMOTE_TABLE, documents=documents))
            sent += len(batch)
        return sent

    def select_all(self) -> List[CacheEntry]:
        results = self._query(f"SELECT * FROM {REMOTE_TABLE};")
        rows = (results[-1].get("result") or []) if results else []
        return [CacheEntry.from_document(row) for row in rows]

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    # ---- Internals ----------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        if self._http is None:
            raise SyncTransportError("Transport not connected")
        headers = dict(self._headers)
        headers.update(kwargs.pop("headers", {}))
        try:
            return self._http.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise SyncTransportError(f"Cannot reach {self.base_url}: {e}") from e

    def _query(self, sql: str) -> List[Dict[str, Any]]:
        response = self._request(
            "POST", "/sql", data=sql.encode("utf-8"), headers={"Content-Type": "text/plain"}
        )
        if response.status_code in (401, 403):
            raise SyncAuthError(f"Not authorized at {self.base_url}: {response.text[:200]}")
        self._raise_for_status(response)

        results = self._json(response)
        if not isinstance(results, list):
            raise SyncTransportError(f"Unexpected /sql response: {str(results)[:200]}")
        for statement in results:
            if statement.get("status") != "OK":
                detail = statement.get("result") or statement.get("detail") or statement
                message = str(detail)
                if "not enough permissions" in message.lower() or "authentication" in message.lower():
                    raise SyncAuthError(f"Query rejected by {self.base_url}: {message[:200]}")
                raise SyncTransportError(f"Query failed at {self.base_url}: {message[:200]}")
        return results

    def _raise_for_status(self, response: requests.Response) -> None:
        if not response.ok:
            raise SyncTransportError(
                f"HTTP {response.status_code} from {self.base_url}: {response.text[:200]}"
            )

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SyncTransportError(f"Invalid JSON from server: {e}") from e
