"""
Dispatch of change notifications onto the bounded work queue.

The Dispatcher runs in the event source's context. When the queue is full,
``submit`` blocks that context until a worker frees a slot.
"""

import queue
import threading
import time
from collections import deque
from typing import Deque, Optional

from loguru import logger

from app.models.schemas import ChangeEvent


class WorkQueue:
    """
    Bounded FIFO of paths that can be closed once producers are done.

    Closing refuses new puts but lets puts already waiting for a slot
    finish. ``get`` reports end of stream only when the queue is closed,
    empty and no put is still in flight, so no accepted path is lost.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items: Deque[str] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._pending_puts = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, path: str, timeout: Optional[float] = None) -> None:
        """
        Enqueue ``path``, blocking while the queue is full.

        Raises:
            RuntimeError: If the queue is already closed
            queue.Full: If ``timeout`` elapsed before a slot was free
        """
        with self._cond:
            if self._closed:
                raise RuntimeError("work queue is closed")

            self._pending_puts += 1
            try:
                deadline = None if timeout is None else time.monotonic() + timeout
                while len(self._items) >= self.capacity:
                    remaining = None if deadline is None else deadline - time.monotonic()
                    if remaining is not None and remaining <= 0:
                        raise queue.Full
                    self._cond.wait(remaining)
                self._items.append(path)
            finally:
                self._pending_puts -= 1
                self._cond.notify_all()

    def get(self) -> Optional[str]:
        """Dequeue the next path, or None once closed and drained."""
        with self._cond:
            while not self._items:
                if self._closed and self._pending_puts == 0:
                    return None
                self._cond.wait()
            path = self._items.popleft()
            self._cond.notify_all()
            return path

    def close(self) -> None:
        """Refuse new puts and wake consumers. Idempotent."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def qsize(self) -> int:
        with self._cond:
            return len(self._items)


class Dispatcher:
    """Filters change events and feeds relevant paths to the workers."""

    def __init__(self, work_queue: WorkQueue):
        """
        Initialize dispatcher.

        Args:
            work_queue: Queue shared with the worker pool
        """
        self.queue = work_queue
        self._lock = threading.Lock()
        self._accepting = True

    @property
    def accepting(self) -> bool:
        return self._accepting

    def submit(self, event: ChangeEvent) -> None:
        """Enqueue the event's path if it is a creation or modification."""
        if not event.is_relevant:
            return

        if not self._accepting:
            logger.debug(f"Dispatcher closed, ignoring {event.kind.value}: {event.path}")
            return

        logger.debug(f"Queueing {event.kind.value}: {event.path}")
        try:
            self.queue.put(event.path)
        except RuntimeError:
            logger.debug(f"Work queue closed, dropping {event.path}")

    def report_error(self, error: BaseException) -> None:
        """Log an event source error. The pipeline keeps running."""
        logger.warning(f"Watch error: {error}")

    def close(self) -> None:
        """Stop accepting events and signal end of stream to the workers."""
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False

        logger.info(f"Dispatcher closed with {self.queue.qsize()} paths pending")
        self.queue.close()
