"""Gitignore-style pattern matching for the input scanner."""

from pathlib import Path
from typing import Iterable

from pathspec import PathSpec
from pathspec.patterns import GitWildMatchPattern

from .constants import DEFAULT_OUTPUT_DIR, ERROR_DIR, IGNORE_FILE, OUTPUT_DIR_SUFFIX


# Default patterns to always ignore
DEFAULTS = [
    # Hidden files and directories (history file, .git, editor state, ...)
    ".*",

    # Pipeline output and failure folders
    f"{DEFAULT_OUTPUT_DIR}/",
    f"{ERROR_DIR}/",
    f"*{OUTPUT_DIR_SUFFIX}/",

    # Reduced copies of large uploads left behind by an interrupted run
    "*.tmp.jpg",
]


class IgnoreSpec:
    """Manages gitignore-style patterns for input exclusion."""

    def __init__(self, root: Path, extra: Iterable[str] = ()):
        """Initialize ignore spec with default and custom patterns.

        Args:
            root: Input root directory
            extra: Additional patterns to include
        """
        self.root = root
        patterns = list(DEFAULTS)

        # Load root-level .transbatchignore if it exists
        ignore_file = root / IGNORE_FILE
        if ignore_file.exists():
            for line in ignore_file.read_text().splitlines():
                line = line.strip()
                if line and not line.startswith("#"):
                    patterns.append(line)

        patterns.extend(extra)

        self.spec = PathSpec.from_lines(GitWildMatchPattern, patterns)

    def is_ignored(self, relpath: str) -> bool:
        """Check if a root-relative POSIX path should be ignored."""
        return self.spec.match_file(relpath)

    def should_traverse(self, dirpath: str) -> bool:
        """Check if a directory should be descended into during scanning.

        Args:
            dirpath: Root-relative directory path in POSIX format

        Returns:
            True if the directory should be traversed
        """
        # Trailing slash so directory-only patterns match
        if not dirpath.endswith("/"):
            dirpath = dirpath + "/"

        return not self.spec.match_file(dirpath)
