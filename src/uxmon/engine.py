"""Polling context tying the samplers, policy and actions together."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from uxmon.actions import ProcessActions
from uxmon.config import MonitorConfig
from uxmon.counters import KernelCounters, TemperatureSensor
from uxmon.history import RingBuffer
from uxmon.models import CpuSnapshot, MemoryInfo, ProcessRecord, SortKey
from uxmon.policy import PriorityList, ResourcePolicy
from uxmon.sampler import CpuSampler
from uxmon.scanner import ProcessScanner

logger = logging.getLogger(__name__)


class PollTimer:
    """Logical timer checked against wall-clock time on every loop pass."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._last: float | None = None

    def due(self, now: float) -> bool:
        return self._last is None or now - self._last >= self.interval

    def mark(self, now: float) -> None:
        self._last = now


@dataclass(slots=True)
class TickResult:
    """What a single :meth:`MonitorEngine.tick` call refreshed."""

    cpu_sampled: bool = False
    processes_scanned: bool = False
    suspended: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.cpu_sampled or self.processes_scanned


class MonitorEngine:
    """
    Explicit context owned by the polling loop.

    Holds every piece of mutable monitoring state (histories, process table,
    priorities, auto-management flag) and exposes the commands the dashboard
    maps its keys onto. Single-threaded: all mutation happens inside
    :meth:`tick` or a command call.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        counters: KernelCounters | None = None,
        actions: ProcessActions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or MonitorConfig()
        self._clock = clock
        self.counters = counters or KernelCounters(self.config.proc_root, self.config.sys_root)
        self.actions = actions or ProcessActions(kill_grace=self.config.kill_grace)

        self.cpu_sampler = CpuSampler(
            self.counters,
            history_size=self.config.history_size,
            max_cores=self.config.max_cores,
        )
        self.scanner = ProcessScanner(
            self.counters,
            clock=clock,
            nominal_interval_ms=self.config.process_interval * 1000.0,
        )
        self.temperature = TemperatureSensor(self.counters)
        self.priorities = PriorityList(self.config.max_priority, self.config.priorities)
        self.policy = ResourcePolicy(
            self.actions,
            self.priorities,
            cpu_threshold=self.config.cpu_threshold,
            memory_threshold_kb=self.config.memory_threshold_kb,
        )
        if self.config.auto_manage:
            self.policy.set_enabled(True, {})

        self.memory_history = RingBuffer(self.config.history_size)
        self.memory: MemoryInfo | None = None
        self.temperature_c: float | None = None
        self.frequencies_mhz: list[float] = []
        self.sort_key = SortKey.CPU

        self._cpu_timer = PollTimer(self.config.cpu_interval)
        self._process_timer = PollTimer(self.config.process_interval)

    # ---- Read model ----

    @property
    def snapshot(self) -> CpuSnapshot:
        return self.cpu_sampler.snapshot

    @property
    def processes(self) -> dict[int, ProcessRecord]:
        return self.scanner.table

    @property
    def auto_manage(self) -> bool:
        return self.policy.enabled

    def suspended_processes(self) -> list[ProcessRecord]:
        return self.policy.suspended(self.scanner.table)

    def sorted_processes(self) -> list[ProcessRecord]:
        """Processes ordered by the selected key, descending, ties by PID."""
        if self.sort_key is SortKey.MEM:
            return sorted(self.processes.values(), key=lambda p: (-p.rss_kb, p.pid))
        return sorted(self.processes.values(), key=lambda p: (-p.cpu_percent, p.pid))

    # ---- Sampling ----

    def tick(self, now: float | None = None) -> TickResult:
        """Run whichever samplers are due at ``now``."""
        now = self._clock() if now is None else now
        result = TickResult()
        if self._cpu_timer.due(now):
            self._cpu_timer.mark(now)
            self.sample_cpu()
            result.cpu_sampled = True
        if self._process_timer.due(now):
            self._process_timer.mark(now)
            result.suspended = self.scan_processes(now)
            result.processes_scanned = True
        return result

    def sample_cpu(self) -> CpuSnapshot:
        """Fast-timer work: CPU, memory, temperature and clocks."""
        snapshot = self.cpu_sampler.sample()
        memory = self.counters.read_memory()
        if memory is not None:
            self.memory = memory
        self.memory_history.push(memory.used_fraction if memory is not None else 0.0)
        self.temperature_c = self.temperature.read_celsius()
        self.frequencies_mhz = self.counters.read_core_frequencies(self.cpu_sampler.core_count)
        return snapshot

    def scan_processes(self, now: float | None = None) -> list[int]:
        """Slow-timer work: rebuild the table, then apply the policy."""
        table = self.scanner.scan(now)
        if self.policy.enabled:
            return self.policy.evaluate(table)
        return []

    # ---- Commands ----

    def select_sort_key(self, key: SortKey) -> None:
        self.sort_key = key

    def add_priority(self, command: str) -> bool:
        added = self.priorities.add(command)
        if added:
            logger.info("Added priority command %r", command)
        return added

    def remove_last_priority(self) -> str | None:
        removed = self.priorities.remove_last()
        if removed is not None:
            logger.info("Removed priority command %r", removed)
        return removed

    def toggle_auto_manage(self) -> bool:
        """Flip auto-management; disabling resumes all suspended processes."""
        return self.policy.toggle(self.scanner.table)

    def resume_all(self) -> list[int]:
        return self.policy.resume_all(self.scanner.table)

    def terminate(self, pid: int) -> bool:
        if self.scanner.find(pid) is None:
            return False
        logger.info("Terminating pid %d", pid)
        return self.actions.terminate(pid)

    def toggle_run_state(self, pid: int) -> bool:
        """Stop or continue ``pid``; returns False for an unknown PID."""
        record = self.scanner.find(pid)
        if record is None:
            return False
        self.actions.toggle_run_state(record)
        return True

    def renice(self, pid: int, delta: int) -> int | None:
        record = self.scanner.find(pid)
        if record is None:
            return None
        applied = self.actions.renice(pid, delta)
        if applied is not None:
            record.nice = applied
        return applied
