"""
Fixed-size worker pool that turns queued paths into ledger records.

Failures are contained to the item that caused them: the worker logs and
moves on to the next path. Nothing is retried.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from app.utils.errors import ExtractError, StoreError
from domains.file_ledger.pipeline.dispatcher import WorkQueue
from domains.file_ledger.processors.metadata import MetadataExtractor
from domains.file_ledger.storage.ledger_store import LedgerStore


@dataclass
class PipelineStats:
    """Thread-safe counters for processed paths."""

    processed: int = 0
    recorded: int = 0
    skipped: int = 0
    failed: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, outcome: str) -> None:
        with self._lock:
            self.processed += 1
            setattr(self, outcome, getattr(self, outcome) + 1)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {
                "processed": self.processed,
                "recorded": self.recorded,
                "skipped": self.skipped,
                "failed": self.failed,
            }


class WorkerPool:
    """N threads pulling paths from a shared queue."""

    def __init__(
        self,
        work_queue: WorkQueue,
        extractor: MetadataExtractor,
        store: LedgerStore,
        size: int,
    ):
        """
        Initialize worker pool.

        Args:
            work_queue: Queue fed by the dispatcher
            extractor: Metadata extractor shared by all workers
            store: Ledger store shared by all workers
            size: Number of worker threads
        """
        if size < 1:
            raise ValueError(f"pool size must be positive, got {size}")
        self.queue = work_queue
        self.extractor = extractor
        self.store = store
        self.size = size
        self.stats = PipelineStats()
        self._threads: List[threading.Thread] = []

    @property
    def alive(self) -> int:
        return sum(1 for thread in self._threads if thread.is_alive())

    def start(self) -> None:
        """Start all worker threads."""
        if self._threads:
            raise RuntimeError("worker pool already started")

        for index in range(self.size):
            thread = threading.Thread(
                target=self._run,
                name=f"ledger-worker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

        logger.info(f"Started {self.size} ledger workers")

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for workers to drain the closed queue and exit.

        Returns:
            True if every worker exited, False if the timeout elapsed first
        """
        for thread in self._threads:
            thread.join(timeout)
        return self.alive == 0

    def process(self, path: str) -> None:
        """Extract and persist a single path."""
        try:
            record = self.extractor.extract(path)
        except ExtractError as e:
            logger.warning(f"Skipping {path}: {e}")
            self.stats.increment("skipped")
            return

        try:
            self.store.append(record)
        except StoreError as e:
            logger.error(f"Dropping record for {path}: {e}")
            self.stats.increment("failed")
            return

        logger.info(f"Recorded {record.path} ({record.size} bytes)")
        self.stats.increment("recorded")

    def _run(self) -> None:
        name = threading.current_thread().name
        logger.debug(f"{name} started")

        while True:
            path = self.queue.get()
            if path is None:
                break

            try:
                self.process(path)
            except Exception:
                logger.exception(f"{name} failed processing {path}")
                self.stats.increment("failed")

        logger.debug(f"{name} exiting")
