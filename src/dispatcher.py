"""Keyed work queue feeding resource keys to the reconciler.

kopf delivers change events, but it does not retry event handlers and runs
them concurrently per object. The dispatcher turns those events into
reconcile calls with two guarantees: at most one call in flight per key, and
many keys reconciled in parallel. Requeues requested by the reconciler and
retries after errors are scheduled here too.
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor

from metrics import QUEUE_DEPTH
from models import ReconcileResult, ResourceKey

logger = logging.getLogger(__name__)

ReconcileFn = Callable[[str], ReconcileResult | None]
TimerFactory = Callable[..., threading.Timer]


class Dispatcher:
    """Thread-safe, coalescing, per-key serialized dispatcher.

    A key enqueued while it is already queued is dropped; a key enqueued
    while its reconcile is running is marked dirty and reconciled again as
    soon as the running call returns.
    """

    def __init__(
        self,
        reconcile_fn: ReconcileFn,
        max_workers: int = 4,
        backoff_base: float = 5.0,
        backoff_max: float = 300.0,
        executor: Executor | None = None,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            reconcile_fn: Called with a "namespace/name" key
            max_workers: Keys reconciled concurrently
            backoff_base: First retry delay after an error, in seconds
            backoff_max: Upper bound of the retry delay
            executor: Executor to run reconciles on (default: thread pool)
            timer_factory: threading.Timer compatible factory for delays
        """
        self._reconcile_fn = reconcile_fn
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="reconcile"
        )
        self._timer_factory = timer_factory
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

        self._lock = threading.Lock()
        self._queued: set[str] = set()
        self._running: set[str] = set()
        self._dirty: set[str] = set()
        self._timers: dict[str, tuple[float, threading.Timer]] = {}
        self._failures: dict[str, int] = {}
        self._stopped = False

    def backoff(self, failures: int) -> float:
        """Retry delay after a number of consecutive failures."""
        return min(self.backoff_base * 2 ** max(failures - 1, 0), self.backoff_max)

    def enqueue(self, key: ResourceKey | str, delay: float = 0) -> None:
        """Schedule a reconcile of key, now or after delay seconds."""
        key = str(key)
        with self._lock:
            if self._stopped:
                return
            if delay > 0:
                self._schedule_locked(key, delay)
            else:
                self._submit_locked(key)

    def _schedule_locked(self, key: str, delay: float) -> None:
        due = time.monotonic() + delay
        existing = self._timers.get(key)
        if existing is not None:
            if existing[0] <= due:
                return
            existing[1].cancel()

        timer = self._timer_factory(delay, self._fire, args=(key, due))
        timer.daemon = True
        self._timers[key] = (due, timer)
        timer.start()
        logger.debug("Reconcile of %s scheduled in %.1fs", key, delay)

    def _fire(self, key: str, due: float) -> None:
        with self._lock:
            existing = self._timers.get(key)
            if existing is not None and existing[0] == due:
                del self._timers[key]
        self.enqueue(key)

    def _submit_locked(self, key: str) -> None:
        if key in self._running:
            self._dirty.add(key)
            return
        if key in self._queued:
            return
        self._queued.add(key)
        QUEUE_DEPTH.set(len(self._queued))
        self._executor.submit(self._run, key)

    def _run(self, key: str) -> None:
        with self._lock:
            self._queued.discard(key)
            self._running.add(key)
            QUEUE_DEPTH.set(len(self._queued))

        requeue_after: float | None = None
        try:
            result = self._reconcile_fn(key)
        except Exception as e:
            with self._lock:
                failures = self._failures.get(key, 0) + 1
                self._failures[key] = failures
            requeue_after = self.backoff(failures)
            logger.error(
                "Reconcile of %s failed (attempt %d), retrying in %.1fs: %s",
                key,
                failures,
                requeue_after,
                e,
            )
        else:
            with self._lock:
                self._failures.pop(key, None)
            if result is not None:
                requeue_after = result.requeue_after

        with self._lock:
            self._running.discard(key)
            dirty = key in self._dirty
            self._dirty.discard(key)

        if dirty:
            self.enqueue(key)
        elif requeue_after is not None:
            self.enqueue(key, requeue_after)

    def failures(self, key: ResourceKey | str) -> int:
        with self._lock:
            return self._failures.get(str(key), 0)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting keys, cancel pending timers, drain in-flight calls."""
        with self._lock:
            self._stopped = True
            for _, timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._queued.clear()
            QUEUE_DEPTH.set(0)
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.info("Dispatcher stopped")
