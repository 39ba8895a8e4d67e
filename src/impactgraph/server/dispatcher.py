"""Bounded background execution of webhook work."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable
from concurrent.futures import Future, ThreadPoolExecutor

from impactgraph.config import WorkerConfig

logger = logging.getLogger("impactgraph.dispatcher")


class EventDispatcher:
    """Thread pool with a bounded backlog and caller-runs overflow.

    At most ``max_workers`` tasks run and ``queue_capacity`` more wait. When
    both are full the submitting thread runs the task itself, which slows
    the ingress down instead of dropping work.

    Tasks submitted with a dedup key are admitted once per key; the most
    recent ``dedup_window`` keys are remembered.
    """

    def __init__(self, config: WorkerConfig | None = None) -> None:
        self.config = config or WorkerConfig()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="impactgraph-worker"
        )
        self._permits = threading.BoundedSemaphore(
            self.config.max_workers + self.config.queue_capacity
        )
        self._seen: OrderedDict[Hashable, None] = OrderedDict()
        self._seen_lock = threading.Lock()
        self.caller_runs = 0

    def admit(self, key: Hashable) -> bool:
        """Record ``key``; False if it was already admitted."""
        with self._seen_lock:
            if key in self._seen:
                self._seen.move_to_end(key)
                return False
            self._seen[key] = None
            while len(self._seen) > self.config.dedup_window:
                self._seen.popitem(last=False)
            return True

    def submit(
        self,
        name: str,
        fn: Callable[..., object],
        *args: object,
        dedup_key: Hashable | None = None,
    ) -> bool:
        """Schedule ``fn(*args)``. Returns False if refused as a duplicate."""
        if dedup_key is not None and not self.admit(dedup_key):
            logger.info(f"Skipping duplicate event {name} {dedup_key}")
            return False

        if not self._permits.acquire(blocking=False):
            self.caller_runs += 1
            logger.warning(f"Worker pool saturated, running {name} on the caller")
            self._run(name, fn, *args)
            return True

        try:
            future = self._executor.submit(self._run, name, fn, *args)
        except RuntimeError:
            self._permits.release()
            raise
        future.add_done_callback(self._release)
        return True

    def _release(self, _future: Future) -> None:
        self._permits.release()

    def _run(self, name: str, fn: Callable[..., object], *args: object) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception(f"Task {name} failed")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
