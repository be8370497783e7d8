"""Custom exceptions for transbatch.

This module defines typed exceptions for better error handling and clearer
error messages throughout the application.
"""


class TransbatchError(RuntimeError):
    """Base class for all transbatch errors."""
    pass


# Configuration Errors
class ConfigError(TransbatchError):
    """Missing or invalid configuration."""
    pass


# Run Errors
class RunError(TransbatchError):
    """Base class for failures that abort a whole run."""
    pass


class NoImagesError(RunError):
    """No eligible image files under the input root."""

    def __init__(self, root: str):
        self.root = root
        super().__init__(
            f"No images found in {root} (or none selected). "
            f"Supported extensions: jpg, jpeg, png, webp."
        )


class OutputDirectoryError(RunError):
    """Output directory could not be created."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Cannot create output directory {path}: {reason}")


class HistoryLockedError(RunError):
    """Another run already owns the history file for this input root."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"History file {path} is locked by another run. "
            f"Wait for it to finish before starting a new one."
        )


# Transform Errors
class TransformFailedError(TransbatchError):
    """Remote transformation failed after the retry budget was exhausted."""

    def __init__(self, message: str, status: int = 0, body: str = "", attempts: int = 0):
        self.status = status
        self.body = body
        self.attempts = attempts
        super().__init__(message)


# Sync Errors
class SyncError(TransbatchError):
    """Base class for cache replication errors."""
    pass


class SyncAuthError(SyncError):
    """Remote store rejected the credentials."""
    pass


class SyncTransportError(SyncError):
    """Remote store unreachable or returned an unexpected response."""
    pass


class SyncTimeoutError(SyncError):
    """Sync operation exceeded its time budget."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f"Remote {operation} timed out after {timeout:g}s. "
            f"Check that the database URL is reachable."
        )
