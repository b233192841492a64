"""Process table scanning and per-process CPU rate derivation."""

import logging
import time
from collections.abc import Callable

from uxmon.counters import KernelCounters, clock_ticks
from uxmon.models import ProcessCounters, ProcessRecord

logger = logging.getLogger(__name__)


def cpu_percent(
    previous_ticks: tuple[int, int],
    current_ticks: tuple[int, int],
    elapsed_ms: float,
    ticks_per_second: int,
) -> float:
    """
    CPU usage of one process between two scans.

    The combined ``utime + stime`` delta is floored at zero, so a reused PID
    or a counter reset never produces a negative rate.
    100.0 means one core was busy for the whole interval.
    """
    if elapsed_ms <= 0 or ticks_per_second <= 0:
        return 0.0
    delta = max(0, sum(current_ticks) - sum(previous_ticks))
    cpu_time_ms = delta * 1000.0 / ticks_per_second
    return cpu_time_ms * 100.0 / elapsed_ms


class ProcessScanner:
    """
    Rebuilds the process table on every scan.

    The previous scan's table is retained only to compute tick deltas and to
    carry the policy's sticky suspension flag forward; it is replaced in full
    each time, so processes that exit simply disappear.
    """

    def __init__(
        self,
        counters: KernelCounters,
        clock: Callable[[], float] = time.monotonic,
        nominal_interval_ms: float = 1500.0,
        ticks_per_second: int | None = None,
    ) -> None:
        self._counters = counters
        self._clock = clock
        self._nominal_interval_ms = nominal_interval_ms
        self._ticks_per_second = ticks_per_second or clock_ticks()
        self._table: dict[int, ProcessRecord] = {}
        self._previous_time: float | None = None

    @property
    def table(self) -> dict[int, ProcessRecord]:
        """Current table keyed by PID (unsorted)."""
        return self._table

    @property
    def count(self) -> int:
        return len(self._table)

    def find(self, pid: int) -> ProcessRecord | None:
        return self._table.get(pid)

    def scan(self, now: float | None = None) -> dict[int, ProcessRecord]:
        """
        Enumerate all processes and correlate them with the previous scan.

        Args:
            now: Monotonic time of the scan in seconds; read from the clock
                when omitted.

        Returns:
            The new table keyed by PID.
        """
        now = self._clock() if now is None else now
        if self._previous_time is None:
            elapsed_ms = self._nominal_interval_ms
        else:
            elapsed_ms = (now - self._previous_time) * 1000.0

        previous = self._table
        table: dict[int, ProcessRecord] = {}
        skipped = 0
        for pid in self._counters.pids():
            counters = self._counters.read_process(pid)
            if counters is None:
                skipped += 1
                continue
            table[pid] = self._build_record(counters, previous.get(pid), elapsed_ms)

        if skipped:
            logger.debug("Skipped %d processes that vanished mid-scan", skipped)
        self._table = table
        self._previous_time = now
        return table

    def _build_record(
        self,
        counters: ProcessCounters,
        previous: ProcessRecord | None,
        elapsed_ms: float,
    ) -> ProcessRecord:
        record = ProcessRecord(
            pid=counters.pid,
            username=counters.username,
            uid=counters.uid,
            command=counters.command,
            nice=counters.nice,
            user_ticks=counters.utime,
            system_ticks=counters.stime,
            rss_kb=counters.rss_kb,
            state=counters.state,
            is_running=counters.is_running,
        )
        if previous is not None:
            record.cpu_percent = cpu_percent(
                (previous.user_ticks, previous.system_ticks),
                (counters.utime, counters.stime),
                elapsed_ms,
                self._ticks_per_second,
            )
            record.suspended_by_policy = previous.suspended_by_policy
        return record
