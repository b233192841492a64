"""Fixed-capacity circular histories for utilization graphs."""

from collections.abc import Sequence


class RingBuffer:
    """
    Circular store of the most recent ``capacity`` samples.

    Writing past capacity overwrites the oldest sample. Unwritten slots read
    as 0.0 so graphs always have a full width of data.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._slots: list[float] = [0.0] * capacity
        self._cursor = 0

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def cursor(self) -> int:
        """Index the next sample will be written to."""
        return self._cursor

    def push(self, value: float) -> None:
        self._slots[self._cursor] = value
        self._cursor = (self._cursor + 1) % self.capacity

    def latest(self) -> float:
        return self._slots[(self._cursor - 1) % self.capacity]

    def values(self) -> list[float]:
        """Samples in chronological order, oldest first."""
        capacity = self.capacity
        return [self._slots[(self._cursor + i) % capacity] for i in range(capacity)]


class SharedRingHistory:
    """
    A set of time-aligned rings sharing a single write cursor.

    Each call to :meth:`record` writes one sample per series at the shared
    cursor and advances it once, so every series stays on the same tick.
    Series that are missing from a record call are written as 0.0.
    """

    def __init__(self, capacity: int, series: int = 0) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._rings: list[list[float]] = [[0.0] * capacity for _ in range(series)]
        self._cursor = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def series_count(self) -> int:
        return len(self._rings)

    def record(self, values: Sequence[float]) -> None:
        """Write one tick of samples, growing the series set if needed."""
        while len(self._rings) < len(values):
            self._rings.append([0.0] * self._capacity)
        for index, ring in enumerate(self._rings):
            ring[self._cursor] = values[index] if index < len(values) else 0.0
        self._cursor = (self._cursor + 1) % self._capacity

    def series(self, index: int) -> list[float]:
        """Chronological samples of one series, oldest first."""
        if index < 0 or index >= len(self._rings):
            return [0.0] * self._capacity
        ring = self._rings[index]
        return [ring[(self._cursor + i) % self._capacity] for i in range(self._capacity)]

    def latest(self, index: int) -> float:
        if index < 0 or index >= len(self._rings):
            return 0.0
        return self._rings[index][(self._cursor - 1) % self._capacity]
