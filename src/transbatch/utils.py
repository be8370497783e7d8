"""Utility functions for transbatch."""

from datetime import datetime, timezone
from pathlib import Path
import os
import tempfile


def atomic_write_text(path: Path, text: str) -> None:
    """Atomically write UTF-8 text; see atomic_write_bytes."""
    atomic_write_bytes(path, text.encode("utf-8"))


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Atomically write bytes to file with crash safety.

    1. Writes to temp file with fsync to ensure content is on disk
    2. Atomic rename to target path (appears all-at-once)
    3. Fsync parent directory to ensure rename is durable

    Directory fsync is best-effort (not supported on Windows).

    Args:
        path: Target file path
        data: Content to write
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file must live in the same directory for os.replace to be atomic
    with tempfile.NamedTemporaryFile(
        mode="wb",
        delete=False,
        dir=path.parent,
        prefix=f".{path.name}.tmp-",
        suffix=""
    ) as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
        tmp = Path(f.name)

    try:
        os.replace(tmp, path)
        _fsync_dir(path.parent)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def _fsync_dir(path: Path) -> None:
    try:
        flags = os.O_RDONLY
        if hasattr(os, "O_DIRECTORY"):
            flags |= os.O_DIRECTORY

        dirfd = os.open(str(path), flags)
        try:
            os.fsync(dirfd)
        finally:
            os.close(dirfd)
    except OSError:
        # Expected on Windows or filesystems without directory fsync
        pass


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso_date(value: datetime) -> str:
    """Format a datetime for table display.

    Examples:
        2025-08-26T02:51:17.317839+00:00 -> "2025-08-26 02:51:17"
    """
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
