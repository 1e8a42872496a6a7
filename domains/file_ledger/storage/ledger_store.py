"""Durable JSON ledger of observed file records.

Every append re-reads the whole ledger, adds one record and rewrites the
whole file. The rewrite goes to a staging file beside the ledger which is
fsynced and then promoted with ``os.replace``, so a reader only ever sees
the previous or the next complete ledger. All of this runs under one lock.
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Iterable, List

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from app.models.schemas import FileRecord
from app.utils.errors import LedgerCorruptError, LedgerWriteError

_RECORDS = TypeAdapter(List[FileRecord])


def parse_records(text: str) -> List[FileRecord]:
    """Parse serialized ledger text into records, preserving order."""

    try:
        data = json.loads(text)
    except ValueError as e:
        raise LedgerCorruptError(f"Ledger is not valid JSON: {e}") from e

    # ``null`` is what an empty ledger marshals to in some writers.
    if data is None:
        return []

    try:
        return _RECORDS.validate_python(data)
    except ValidationError as e:
        raise LedgerCorruptError(f"Ledger has invalid records: {e}") from e


def serialize_records(records: Iterable[FileRecord]) -> str:
    """Serialize records as an indented JSON array of objects."""

    payload = [record.model_dump() for record in records]
    return json.dumps(payload, indent=2) + "\n"


def dump_records(path: Path, records: Iterable[FileRecord]) -> None:
    """Write ``records`` to ``path`` via a fsynced staging file."""

    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(tmp_path, "w", encoding="utf-8") as handle:
            handle.write(serialize_records(records))
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    _fsync_directory(path.parent)


def _fsync_directory(directory: Path) -> None:
    # Persists the rename itself; not supported on every platform.
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


class LedgerStore:
    """Shared ledger safe for concurrent appenders within one process."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[FileRecord]:
        """Return the committed ledger, empty if it does not exist yet."""

        with self._lock:
            return self._read()

    def append(self, record: FileRecord) -> None:
        """Add ``record`` to the ledger and persist the full ledger.

        Raises:
            LedgerCorruptError: The existing ledger cannot be parsed. It is
                left untouched.
            LedgerWriteError: The updated ledger could not be written. The
                previously committed ledger is still in place.
        """

        with self._lock:
            records = self._read()
            records.append(record)

            try:
                dump_records(self._path, records)
            except OSError as e:
                raise LedgerWriteError(
                    f"Failed to write ledger {self._path}: {e}"
                ) from e

            logger.debug(f"Ledger {self._path} now holds {len(records)} records")

    def _read(self) -> List[FileRecord]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise LedgerCorruptError(f"Failed to read ledger {self._path}: {e}") from e
        except UnicodeDecodeError as e:
            raise LedgerCorruptError(f"Ledger {self._path} is not valid UTF-8: {e}") from e

        try:
            return parse_records(text)
        except LedgerCorruptError as e:
            raise LedgerCorruptError(f"{self._path}: {e}") from e
