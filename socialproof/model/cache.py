from __future__ import annotations
import threading
from collections import deque
from typing import Deque, List, Optional

from ..config import MAX_CACHED_PAYMENTS
from .payment import Payment


class RecentPaymentsCache:
    """Bounded newest-first list of payments held in process memory.

    Lost on restart and not shared between workers. All access goes through
    one lock so concurrent writers cannot interleave a prepend with a
    truncation.
    """

    def __init__(self, capacity: int = MAX_CACHED_PAYMENTS) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._items: Deque[Payment] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def add(self, payment: Payment) -> None:
        # deque(maxlen) drops from the right end when full
        with self._lock:
            self._items.appendleft(payment)

    def list(self, limit: Optional[int] = None) -> List[Payment]:
        with self._lock:
            if limit is None:
                return list(self._items)
            n = max(0, min(limit, len(self._items)))
            return [self._items[i] for i in range(n)]

    def contains(self, payment_id: str) -> bool:
        with self._lock:
            return any(p.id == payment_id for p in self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
