from __future__ import annotations

import logging
import queue
import threading
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, TypeVar

LOG = logging.getLogger(__name__)

MAX_POOL_SIZE = 25

T = TypeVar("T")


class EvaluatorPool(Generic[T]):
    """Bounded pool of reusable, expensive-to-create evaluator handles.

    Handles are created lazily by ``factory`` until ``max_size`` exist;
    after that ``checkout`` blocks until another caller checks a handle
    back in. Safe to share between threads.
    """

    def __init__(self, factory: Callable[[], T], max_size: int = MAX_POOL_SIZE, prefill: int = 1) -> None:
        if max_size < 1 or max_size > MAX_POOL_SIZE:
            raise ValueError(f"Pool size must be between 1 and {MAX_POOL_SIZE} (inclusive), got {max_size}")
        if prefill < 0 or prefill > max_size:
            raise ValueError(f"prefill must be between 0 and {max_size}, got {prefill}")
        self._factory = factory
        self._max_size = max_size
        self._idle: queue.LifoQueue[T] = queue.LifoQueue(maxsize=max_size)
        self._lock = threading.Lock()
        self._created = 0
        for _ in range(prefill):
            self._reserve()
            self._idle.put_nowait(self._create())

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def created(self) -> int:
        return self._created

    @property
    def idle(self) -> int:
        return self._idle.qsize()

    def _reserve(self) -> bool:
        with self._lock:
            if self._created >= self._max_size:
                return False
            self._created += 1
            return True

    def _create(self) -> T:
        try:
            return self._factory()
        except Exception:
            with self._lock:
                self._created -= 1
            raise

    def checkout(self, timeout: float | None = None) -> T:
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass
        if self._reserve():
            LOG.debug("Growing evaluator pool to %s handles", self._created)
            return self._create()
        return self._idle.get(timeout=timeout)

    def checkin(self, handle: T) -> None:
        self._idle.put_nowait(handle)

    @contextmanager
    def lease(self, timeout: float | None = None) -> Iterator[T]:
        handle = self.checkout(timeout=timeout)
        try:
            yield handle
        finally:
            self.checkin(handle)
