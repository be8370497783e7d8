"""Input discovery: enumerate eligible image files under a root."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .constants import IMAGE_EXTENSIONS
from .ignore import IgnoreSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileCandidate:
    """An input file found by the scanner."""

    path: Path           # absolute
    relative_path: str   # POSIX, relative to the scan root

    def output_path(self, output_dir: Path) -> Path:
        """Mirrored location of this file under output_dir."""
        return Path(output_dir) / self.relative_path


def is_image(name: str) -> bool:
    """True if the file name carries one of the supported image extensions."""
    _, ext = os.path.splitext(name)
    return ext[1:].lower() in IMAGE_EXTENSIONS


def _matches_include(path: str, include: List[str]) -> bool:
    return any(path == inc or path.startswith(inc) for inc in include)


def scan_directory(
    root: Path,
    include: Optional[Iterable[str]] = None,
    extra_ignores: Iterable[str] = (),
) -> List[FileCandidate]:
    """Walk root and return every eligible image, in a stable order.

    Hidden entries, output/error folders and non-image files are skipped.
    Unreadable subdirectories are skipped silently.

    Args:
        root: Directory to scan
        include: Optional allow-list of absolute paths; a file is kept only if
            its absolute path equals or starts with one of them
        extra_ignores: Additional gitignore-style patterns

    Returns:
        List of FileCandidate, directories before their subdirectories,
        names sorted within each directory
    """
    root = Path(root).resolve()
    spec = IgnoreSpec(root, extra=extra_ignores)
    include_list = [str(p) for p in include] if include is not None else None

    def _on_error(err: OSError) -> None:
        logger.debug("Skipping unreadable directory %s: %s", err.filename, err)

    candidates: List[FileCandidate] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        # Prune in place so os.walk never descends into ignored directories
        dirnames[:] = sorted(
            d for d in dirnames
            if spec.should_traverse(f"{rel_dir}/{d}" if rel_dir else d)
        )

        for name in sorted(filenames):
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if not is_image(name) or spec.is_ignored(rel):
                continue
            abs_path = current / name
            if include_list is not None and not _matches_include(str(abs_path), include_list):
                continue
            candidates.append(FileCandidate(path=abs_path, relative_path=rel))

    logger.debug("Scanned %s: %d candidates", root, len(candidates))
    return candidates
