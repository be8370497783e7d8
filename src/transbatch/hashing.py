"""Content hashing for deduplication.

A file's digest is its identity: two files with the same bytes share a digest
no matter where they live or what they are called. The digest is also the
record id in the shared hash cache, so it is kept as bare hex.
"""

from pathlib import Path
import hashlib
import re


CHUNK_SIZE = 8192

_HEX64 = re.compile(r"^[0-9a-f]{64}$")


def compute_file_digest(path: Path) -> str:
    """Compute SHA256 hash of file contents.

    Args:
        path: Path to file to hash

    Returns:
        64-character lowercase hex digest
    """
    sha256 = hashlib.sha256()
    with Path(path).open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def is_valid_digest(value: str) -> bool:
    """Check that a string looks like a digest produced by compute_file_digest."""
    return bool(_HEX64.fullmatch(value or ""))


__all__ = [
    "compute_file_digest",
    "is_valid_digest",
]
