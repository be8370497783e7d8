"""Core data models for transbatch."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import REMOTE_DATABASE, REMOTE_NAMESPACE, SYNC_TIMEOUT
from .utils import utc_now


# ============= Hash Cache =============

class CacheEntry(BaseModel):
    """One transformed file in the shared hash cache, keyed by digest."""

    hash: str
    name: str
    folder: str = "Root"
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        # Naive timestamps from older stores are taken as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_document(self) -> dict:
        """Wire form used by the remote store (record id is the digest)."""
        return {
            "id": self.hash,
            "hash": self.hash,
            "name": self.name,
            "folder": self.folder,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_document(cls, doc: dict) -> "CacheEntry":
        """Build an entry from a remote document, tolerating missing fields."""
        digest = doc.get("hash") or _record_key(doc.get("id", ""))
        data = {"hash": digest, "name": doc.get("name", "")}
        if doc.get("folder"):
            data["folder"] = doc["folder"]
        if doc.get("created_at"):
            data["created_at"] = doc["created_at"]
        return cls(**data)


def _record_key(record_id: str) -> str:
    """Strip the table prefix and brackets from a record id like file_hashes:⟨abc⟩."""
    key = str(record_id).split(":", 1)[-1]
    return key.strip("⟨⟩`")


# ============= Sync =============

class SyncSession(BaseModel):
    """Connection parameters for one push/pull/test call.

    A bearer token takes priority over username/password; with neither the
    connection is anonymous.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    token: str = ""
    username: str = ""
    password: str = ""
    timeout: float = SYNC_TIMEOUT
    namespace: str = REMOTE_NAMESPACE
    database: str = REMOTE_DATABASE

    @property
    def auth_mode(self) -> str:
        """One of "token", "password" or "anonymous"."""
        if self.token:
            return "token"
        if self.username and self.password:
            return "password"
        return "anonymous"


# ============= Run Results =============

class RunReport(BaseModel):
    """Outcome of one pipeline run, reported to the caller."""

    discovered: int = 0
    skipped_existing: int = 0
    skipped_history: int = 0
    hash_failures: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: List[str] = Field(default_factory=list)
    credits_used: int = 0
    cache_writes_failed: int = 0
    cache_writes_dropped: int = 0
    history_path: Optional[str] = None

    @property
    def skipped(self) -> int:
        return self.skipped_existing + self.skipped_history

    @property
    def nothing_to_do(self) -> bool:
        """Every discovered file was already handled; nothing attempted or deferred."""
        return self.attempted == 0 and self.hash_failures == 0
