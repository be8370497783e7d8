"""transbatch: deduplicating batch client for a remote image translation service."""

from .constants import TRANSBATCH_VERSION

__version__ = TRANSBATCH_VERSION
