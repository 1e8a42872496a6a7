"""
File system event source for the file ledger.

Monitors the target directory and forwards file changes to the dispatcher.
Uses watchdog library for cross-platform file system event monitoring.
"""

from pathlib import Path
from typing import Callable, Optional

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from app.models.schemas import ChangeEvent, ChangeKind
from app.utils.errors import WatchInitError, WatchPathError
from app.utils.helpers import normalise_path


class LedgerEventHandler(FileSystemEventHandler):
    """Translates watchdog events into ChangeEvents."""

    def __init__(
        self,
        on_event: Callable[[ChangeEvent], None],
        on_error: Callable[[BaseException], None],
    ):
        """
        Initialize event handler.

        Args:
            on_event: Receives every file change (usually Dispatcher.submit)
            on_error: Receives advisory errors (usually Dispatcher.report_error)
        """
        super().__init__()
        self.on_event = on_event
        self.on_error = on_error

    def dispatch(self, event: FileSystemEvent) -> None:
        """Dispatch an event, reporting handler failures as advisory errors."""
        try:
            super().dispatch(event)
        except Exception as e:
            self.on_error(e)

    def _emit(self, kind: ChangeKind, event: FileSystemEvent) -> None:
        # Directory events are not file changes.
        if event.is_directory:
            return
        path = event.src_path
        if isinstance(path, bytes):
            path = path.decode()
        self.on_event(ChangeEvent(path=path, kind=kind))

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file creation."""
        self._emit(ChangeKind.CREATED, event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file modification."""
        self._emit(ChangeKind.MODIFIED, event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle file deletion."""
        self._emit(ChangeKind.OTHER, event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file move/rename."""
        self._emit(ChangeKind.OTHER, event)


class FileSystemEventSource:
    """Owns the watchdog observer for the target directory."""

    def __init__(
        self,
        target: Path,
        recursive: bool = False,
        use_polling: bool = False,
        poll_interval: float = 1.0,
    ):
        self.target = normalise_path(Path(target))
        self.recursive = recursive
        self.use_polling = use_polling
        self.poll_interval = poll_interval
        self.observer: Optional[BaseObserver] = None

    def _create_observer(self) -> BaseObserver:
        try:
            if self.use_polling:
                return PollingObserver(timeout=self.poll_interval)
            return Observer()
        except Exception as e:
            raise WatchInitError(f"Failed to create file system observer: {e}") from e

    def start(self, handler: FileSystemEventHandler) -> None:
        """
        Start watching the target directory.

        Raises:
            WatchPathError: Target is missing, not a directory or cannot be watched
            WatchInitError: Observer could not be created
        """
        if self.observer is not None:
            raise RuntimeError("event source already started")

        if not self.target.exists():
            raise WatchPathError(f"Target directory does not exist: {self.target}")
        if not self.target.is_dir():
            raise WatchPathError(f"Target is not a directory: {self.target}")

        observer = self._create_observer()

        try:
            observer.schedule(handler, str(self.target), recursive=self.recursive)
            observer.daemon = True
            observer.start()
        except OSError as e:
            raise WatchPathError(f"Failed to watch {self.target}: {e}") from e

        self.observer = observer
        kind = "polling" if self.use_polling else "native"
        logger.success(f"Started watching: {self.target} ({kind} observer)")

    def stop(self) -> None:
        """Stop watching. No events are delivered after this returns."""
        if self.observer is None:
            return

        self.observer.stop()
        self.observer.join()
        self.observer = None
        logger.info("File system observer stopped")
