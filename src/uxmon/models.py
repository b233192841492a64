"""Data models for uxmon."""

from dataclasses import dataclass, field
from enum import Enum

# Longest command name kept per process (kernel comm is 15, stat allows more)
MAX_COMMAND_LENGTH = 63

# Run states that mean the process is not currently schedulable
NOT_RUNNING_STATES = frozenset({"T", "t", "Z"})


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"


@dataclass(slots=True, frozen=True)
class CpuTimes:
    """Cumulative tick counters from one ``cpu`` line of the kernel stat file."""

    user: int
    nice: int
    system: int
    idle: int
    iowait: int
    irq: int
    softirq: int
    steal: int

    @property
    def total(self) -> int:
        """Sum of all eight fields."""
        return (
            self.user
            + self.nice
            + self.system
            + self.idle
            + self.iowait
            + self.irq
            + self.softirq
            + self.steal
        )

    @property
    def busy(self) -> int:
        """Ticks spent doing anything but idling."""
        return self.total - self.idle


@dataclass(slots=True)
class CpuSnapshot:
    """Utilization derived from one sampling tick, all values in [0, 1]."""

    total: float = 0.0
    per_core: list[float] = field(default_factory=list)

    @property
    def core_count(self) -> int:
        return len(self.per_core)


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """System memory summary in kB."""

    total_kb: int
    free_kb: int
    available_kb: int

    @property
    def used_kb(self) -> int:
        return max(0, self.total_kb - self.available_kb)

    @property
    def used_fraction(self) -> float:
        """Fraction of memory in use, 0.0 when the total is unknown."""
        if self.total_kb <= 0:
            return 0.0
        return min(1.0, self.used_kb / self.total_kb)

    @property
    def used_percent(self) -> float:
        return self.used_fraction * 100.0


@dataclass(slots=True, frozen=True)
class ProcessCounters:
    """Raw per-process values read in one pass over the process namespace."""

    pid: int
    command: str
    state: str  # 'R', 'S', 'T', 'Z', 'D', etc.
    utime: int
    stime: int
    nice: int
    uid: int
    rss_kb: int
    username: str = "unknown"

    @property
    def ticks(self) -> int:
        return self.utime + self.stime

    @property
    def is_running(self) -> bool:
        return self.state not in NOT_RUNNING_STATES


@dataclass(slots=True)
class ProcessRecord:
    """
    One live process in the current table.

    Mutable because the action executor and the resource policy update
    ``is_running`` and ``suspended_by_policy`` between scans.
    """

    pid: int
    username: str
    uid: int
    command: str
    nice: int
    user_ticks: int
    system_ticks: int
    rss_kb: int
    state: str
    cpu_percent: float = 0.0  # 100.0 == one core fully busy
    is_running: bool = True
    suspended_by_policy: bool = False

    @property
    def ticks(self) -> int:
        return self.user_ticks + self.system_ticks
