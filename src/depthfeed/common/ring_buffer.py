from collections import deque
from typing import Deque, Generic, List, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Fixed-capacity FIFO that keeps the newest items.

    When full, appending evicts the oldest item and counts it as dropped.
    Meant for one producer and one consumer on the same event loop.
    """

    def __init__(self, capacity: int = 10000):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)
        self.dropped = 0

    def append(self, item: T) -> bool:
        """Returns False when an older item had to be evicted."""
        evicting = len(self._items) == self.capacity
        if evicting:
            self.dropped += 1
        self._items.append(item)
        return not evicting

    def drain(self, limit: int) -> List[T]:
        """Remove and return up to `limit` items, oldest first."""
        count = min(limit, len(self._items))
        return [self._items.popleft() for _ in range(count)]

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
