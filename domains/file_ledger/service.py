"""
Ingestion pipeline for the file ledger.

Wires the event source, dispatcher, worker pool and ledger store together
and owns their lifecycle:

    idle -> running -> draining -> stopped

Shutdown is cooperative. The event source is stopped first so no new events
arrive, then the queue is closed behind any pending paths and the workers
are joined once they have drained it.
"""

import threading
from enum import Enum
from typing import Optional

from loguru import logger

from app.models.schemas import ChangeEvent
from app.utils.config import Settings
from app.utils.errors import StoreError
from domains.file_ledger.pipeline.dispatcher import Dispatcher, WorkQueue
from domains.file_ledger.pipeline.workers import WorkerPool
from domains.file_ledger.processors.metadata import MetadataExtractor
from domains.file_ledger.storage.ledger_store import LedgerStore
from domains.file_ledger.watchers.filesystem import (
    FileSystemEventSource,
    LedgerEventHandler,
)


class PipelineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class IngestionPipeline:
    """File change ingestion orchestrator."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[LedgerStore] = None,
        extractor: Optional[MetadataExtractor] = None,
        source: Optional[FileSystemEventSource] = None,
    ):
        """
        Initialize ingestion pipeline.

        Args:
            settings: Validated settings
            store: Ledger store (default: one at settings.storage_location)
            extractor: Metadata extractor (default: MetadataExtractor())
            source: Event source (default: watchdog on settings.target_directory)
        """
        self.settings = settings
        self.store = store or LedgerStore(settings.storage_location)
        self.extractor = extractor or MetadataExtractor()
        self.source = source or FileSystemEventSource(
            settings.target_directory,
            recursive=settings.recursive,
            use_polling=settings.use_polling,
            poll_interval=settings.poll_interval,
        )

        self.queue = WorkQueue(settings.concurrency_level)
        self.dispatcher = Dispatcher(self.queue)
        self.pool = WorkerPool(
            self.queue,
            self.extractor,
            self.store,
            size=settings.concurrency_level,
        )

        self._state = PipelineState.IDLE
        self._state_lock = threading.Lock()

    @property
    def state(self) -> PipelineState:
        return self._state

    def start(self, watch: bool = True) -> None:
        """
        Start workers and, unless ``watch`` is False, the event source.

        Raises:
            WatchPathError: Target directory cannot be watched
            WatchInitError: Observer could not be created
        """
        with self._state_lock:
            if self._state is not PipelineState.IDLE:
                raise RuntimeError(f"pipeline cannot start from state {self._state.value}")
            self._state = PipelineState.RUNNING

        self._report_ledger()
        self.pool.start()

        if not watch:
            return

        handler = LedgerEventHandler(self.dispatcher.submit, self.dispatcher.report_error)
        try:
            self.source.start(handler)
        except Exception:
            # Workers are already running; release them before propagating.
            self._drain()
            raise

    def submit(self, event: ChangeEvent) -> None:
        """Feed an event directly, bypassing the file system watcher."""
        self.dispatcher.submit(event)

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting events and wait for queued paths to be processed.

        Returns:
            True if every worker exited within ``timeout``
        """
        with self._state_lock:
            if self._state is PipelineState.IDLE:
                self._state = PipelineState.STOPPED
                return True
            if self._state is not PipelineState.RUNNING:
                return self.pool.alive == 0
            self._state = PipelineState.DRAINING

        logger.info("Stopping ingestion pipeline...")
        self.source.stop()
        return self._drain(timeout)

    def _drain(self, timeout: Optional[float] = None) -> bool:
        self._state = PipelineState.DRAINING
        self.dispatcher.close()
        drained = self.pool.join(timeout)

        if not drained:
            logger.warning(f"{self.pool.alive} workers still busy after {timeout}s")

        self._state = PipelineState.STOPPED
        stats = self.pool.stats.snapshot()
        logger.success(
            f"Ingestion pipeline stopped: {stats['recorded']} recorded, "
            f"{stats['skipped']} skipped, {stats['failed']} failed"
        )
        return drained

    def _report_ledger(self) -> None:
        try:
            existing = self.store.load()
        except StoreError as e:
            logger.warning(f"Existing ledger at {self.store.path} is unreadable: {e}")
            return

        if existing:
            logger.info(f"Loaded ledger {self.store.path} with {len(existing)} records")
        else:
            logger.info(f"Ledger {self.store.path} is empty, first append will create it")

    def __enter__(self) -> "IngestionPipeline":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
