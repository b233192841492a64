"""CPU utilization sampling with per-core history."""

import logging

from uxmon.counters import KernelCounters
from uxmon.history import SharedRingHistory
from uxmon.models import CpuSnapshot, CpuTimes

logger = logging.getLogger(__name__)


def utilization(previous: CpuTimes, current: CpuTimes) -> float:
    """
    Non-idle fraction of the ticks elapsed between two readings.

    Returns 0.0 when no ticks elapsed or the counters went backwards.
    """
    total_delta = current.total - previous.total
    if total_delta <= 0:
        return 0.0
    idle_delta = current.idle - previous.idle
    return min(1.0, max(0.0, 1.0 - idle_delta / total_delta))


class CpuSampler:
    """
    Converts successive kernel CPU counters into utilization ratios.

    Index 0 of the history is the aggregate line; cores follow from index 1.
    All series share one write cursor so the graphs stay time-aligned.
    """

    def __init__(
        self,
        counters: KernelCounters,
        history_size: int = 120,
        max_cores: int = 128,
    ) -> None:
        """
        Initialize the CpuSampler.

        Args:
            counters: Counter reader to pull the kernel stat lines from.
            history_size: Samples kept per series.
            max_cores: Upper bound on the number of cores tracked.
        """
        self._counters = counters
        self._max_cores = max(1, max_cores)
        self._previous: list[CpuTimes] = []
        self._has_previous = False
        self._core_count = 1
        self._snapshot = CpuSnapshot(total=0.0, per_core=[0.0])
        self.history = SharedRingHistory(history_size)

    @property
    def core_count(self) -> int:
        """Detected cores, never less than one."""
        return self._core_count

    @property
    def snapshot(self) -> CpuSnapshot:
        """Result of the most recent tick."""
        return self._snapshot

    def sample(self) -> CpuSnapshot:
        """Take one tick: read counters, derive utilization, record history."""
        lines = self._counters.read_cpu_times()[: self._max_cores + 1]
        if not lines:
            logger.debug("CPU counters unavailable; recording an idle tick")
            snapshot = CpuSnapshot(total=0.0, per_core=[0.0] * self._core_count)
        else:
            current = [times for _, times in lines]
            if self._has_previous:
                values = [
                    utilization(self._previous[i], times) if i < len(self._previous) else 0.0
                    for i, times in enumerate(current)
                ]
            else:
                values = [0.0] * len(current)
            self._previous = current
            self._has_previous = True
            self._core_count = max(1, len(current) - 1)
            per_core = values[1:] or [0.0]
            snapshot = CpuSnapshot(total=values[0], per_core=per_core)

        self.history.record([snapshot.total, *snapshot.per_core])
        self._snapshot = snapshot
        return snapshot

    def total_history(self) -> list[float]:
        return self.history.series(0)

    def core_history(self, core: int) -> list[float]:
        """Chronological utilization of one core (0-based)."""
        return self.history.series(core + 1)
