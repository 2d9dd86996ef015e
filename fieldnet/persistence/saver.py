"""Fire-and-forget snapshot saving on a single worker thread."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from ..core.errors import PersistenceFailure
from ..core.types import WeightSnapshot
from .stores import PersistenceAdapter

logger = logging.getLogger(__name__)


class BackgroundSaver:
    """Queue saves so that at most one runs at a time, in submission order.

    With ``background=False`` saves run inline on the caller's thread. Save
    errors are logged and never propagated to the training caller.
    """

    def __init__(self, store: PersistenceAdapter, *, background: bool = True) -> None:
        self.store = store
        self.background = background
        self.failures = 0
        self.completed = 0
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: list[Future] = []

    def submit(self, snapshot: WeightSnapshot) -> Optional[Future]:
        if not self.background:
            self._save(snapshot)
            return None
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="fieldnet-save"
                )
            future = self._executor.submit(self._save, snapshot)
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    def flush(self, timeout: float | None = None) -> None:
        """Block until every queued save has finished."""

        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.result(timeout=timeout)

    def close(self) -> None:
        self.flush()
        with self._lock:
            executor, self._executor = self._executor, None
            self._pending = []
        if executor is not None:
            executor.shutdown(wait=True)

    def _save(self, snapshot: WeightSnapshot) -> None:
        try:
            self.store.save(snapshot)
        except PersistenceFailure as exc:
            self.failures += 1
            logger.error("Failed to save weights: %s", exc)
            return
        self.completed += 1
        logger.debug("Persisted snapshot after %d samples", snapshot.update_count)


__all__ = ["BackgroundSaver"]
