"""
Exception hierarchy for the file ledger.

Fatal errors (configuration, watch setup) abort the process at startup.
Extraction and store errors are contained to the item or operation that
raised them.
"""

from typing import Optional


class FileLedgerError(Exception):
    """Base class for all file ledger errors."""


class ConfigLoadError(FileLedgerError):
    """Configuration file could not be read, parsed or validated."""


class WatchError(FileLedgerError):
    """Directory watch could not be established."""


class WatchInitError(WatchError):
    """Observer could not be created."""


class WatchPathError(WatchError):
    """Target directory could not be watched."""


class ExtractError(FileLedgerError):
    """Metadata could not be derived for a path."""

    reason = "stat failed for"

    def __init__(self, path: str, cause: Optional[OSError] = None):
        self.path = path
        self.cause = cause
        detail = f": {cause.strerror or cause}" if cause else ""
        super().__init__(f"{self.reason} {path}{detail}")


class ExtractNotFoundError(ExtractError):
    reason = "file not found"


class ExtractPermissionError(ExtractError):
    reason = "permission denied for"


class StatFailedError(ExtractError):
    reason = "stat failed for"


class StoreError(FileLedgerError):
    """Ledger could not be read or written."""


class LedgerWriteError(StoreError):
    """Updated ledger could not be written to durable storage."""


class LedgerCorruptError(StoreError):
    """Existing ledger artifact could not be parsed."""
