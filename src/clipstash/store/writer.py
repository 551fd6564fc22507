"""Single-worker FIFO queue for fire-and-forget disk writes."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional, Tuple

LOGGER = logging.getLogger(__name__)

_Job = Optional[Tuple[str, Callable[[], None]]]


class BackgroundWriter:
    """Run submitted jobs one at a time, in submission order, on a worker thread.

    Failures are logged and never reach the submitter. Closing the writer lets
    queued jobs finish before the worker exits.
    """

    def __init__(self, name: str = "clipstash-writer") -> None:
        self._queue: queue.Queue[_Job] = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def closed(self) -> bool:
        """Return whether :meth:`close` has been called."""
        return self._closed

    def submit(self, label: str, job: Callable[[], None]) -> None:
        """Queue ``job`` for execution.

        Args:
            label: Short description used in failure logs.
            job: Callable performing the write.
        """
        with self._lock:
            if not self._closed:
                self._queue.put((label, job))
                return
        LOGGER.warning("Writer closed; running %s inline", label)
        self._execute(label, job)

    def flush(self) -> None:
        """Block until every job submitted so far has completed."""
        self._queue.join()

    def close(self, timeout: float | None = None) -> None:
        """Stop accepting jobs and wait for queued ones to finish."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(None)
        self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                self._execute(*item)
            finally:
                self._queue.task_done()

    def _execute(self, label: str, job: Callable[[], None]) -> None:
        try:
            job()
        except Exception:
            LOGGER.exception("Background write failed: %s", label)


__all__ = ["BackgroundWriter"]
