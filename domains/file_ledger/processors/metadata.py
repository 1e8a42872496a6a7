"""
Metadata extraction for observed paths.

Derives the ledger record for a path from a single stat call.
"""

import os

from loguru import logger

from app.models.schemas import FileRecord
from app.utils.errors import (
    ExtractNotFoundError,
    ExtractPermissionError,
    StatFailedError,
)


class MetadataExtractor:
    """Builds FileRecords from filesystem metadata."""

    def extract(self, path: str) -> FileRecord:
        """
        Stat ``path`` and build its record.

        Args:
            path: Path reported by the event source

        Returns:
            FileRecord with the file's current size

        Raises:
            ExtractNotFoundError: Path vanished before it could be processed
            ExtractPermissionError: Metadata is not readable
            StatFailedError: Any other stat failure
        """
        try:
            stats = os.stat(path)
        except FileNotFoundError as e:
            raise ExtractNotFoundError(path, e) from e
        except PermissionError as e:
            raise ExtractPermissionError(path, e) from e
        except OSError as e:
            raise StatFailedError(path, e) from e

        record = FileRecord(path=path, size=stats.st_size)
        logger.debug(f"Extracted {path} ({record.size} bytes)")
        return record
