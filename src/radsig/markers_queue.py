from __future__ import annotations

import threading
from collections import deque
from typing import Generic, Iterable, TypeVar

T = TypeVar("T")


class BatchedQueue(Generic[T]):
    """FIFO shared by one producer and one consumer, drained in batches.

    All state lives behind a single condition. Consumers block in ``get_batch``
    until items arrive, the producer closes the queue, or the run is aborted.
    Items are removed exactly once and in insertion order.
    """

    def __init__(self) -> None:
        self._items: deque[T] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._aborted = False
        self._n_markers = 0
        self._n_enqueued = 0

    @property
    def n_markers(self) -> int:
        """Estimated total number of markers, for progress reporting only."""
        with self._cond:
            return self._n_markers

    @n_markers.setter
    def n_markers(self, value: int) -> None:
        with self._cond:
            self._n_markers = int(value)

    @property
    def n_enqueued(self) -> int:
        with self._cond:
            return self._n_enqueued

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def aborted(self) -> bool:
        with self._cond:
            return self._aborted

    @property
    def finished(self) -> bool:
        """True once no further item will ever be returned."""
        with self._cond:
            return self._aborted or (self._closed and not self._items)

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def put(self, item: T) -> bool:
        return self.put_batch((item,))

    def put_batch(self, items: Iterable[T]) -> bool:
        """Append items in order. Returns False, dropping them, once aborted."""
        with self._cond:
            if self._aborted:
                return False
            if self._closed:
                raise RuntimeError("Cannot enqueue into a closed queue.")
            before = len(self._items)
            self._items.extend(items)
            added = len(self._items) - before
            if added:
                self._n_enqueued += added
                self._cond.notify_all()
            return True

    def get_batch(self, max_items: int, timeout: float | None = None) -> list[T]:
        """Remove up to ``max_items`` items in FIFO order.

        Waits up to ``timeout`` seconds for work when the queue is empty and
        still open. Returns an empty list on timeout or when finished.
        """
        if max_items <= 0:
            raise ValueError("max_items must be > 0")
        with self._cond:
            self._cond.wait_for(lambda: self._items or self._closed, timeout=timeout)
            if self._aborted:
                return []
            n = min(max_items, len(self._items))
            return [self._items.popleft() for _ in range(n)]

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def abort(self) -> None:
        """Close the queue and discard anything not yet delivered."""
        with self._cond:
            self._aborted = True
            self._closed = True
            self._items.clear()
            self._cond.notify_all()
