"""
One-shot readers for kernel-exposed counters.

Every reader returns a fully parsed value or ``None`` when the metric is
unavailable. Missing files, vanished processes, permission errors and
malformed content all degrade to ``None`` for that metric only.

Memory, process enumeration, per-process identity and core clocks come from
psutil. The global CPU lines and the per-process tick counters are parsed
from the stat files directly, under the same ``psutil.PROCFS_PATH`` root.
"""

import logging
import os
from pathlib import Path

import psutil

from uxmon.models import MAX_COMMAND_LENGTH, CpuTimes, MemoryInfo, ProcessCounters

logger = logging.getLogger(__name__)

CPU_FIELD_COUNT = 8
THERMAL_KEYWORDS = ("cpu", "x86", "pkg", "soc", "core")
MAX_THERMAL_ZONES = 128

# Positions of fields after the closing parenthesis of the stat line.
# Field 3 (state) is the first token there, so field N sits at N - 3.
_STAT_STATE = 0
_STAT_UTIME = 14 - 3
_STAT_STIME = 15 - 3
_STAT_NICE = 19 - 3

_DEFAULT_CLOCK_TICKS = 100


def clock_ticks() -> int:
    """Kernel ticks per second used by the stat counters."""
    try:
        ticks = os.sysconf("SC_CLK_TCK")
    except (ValueError, OSError):
        return _DEFAULT_CLOCK_TICKS
    return ticks if ticks > 0 else _DEFAULT_CLOCK_TICKS


def parse_cpu_line(line: str) -> tuple[str, CpuTimes] | None:
    """Parse one ``cpu``/``cpuN`` line into its label and tick fields."""
    parts = line.split()
    if len(parts) < CPU_FIELD_COUNT + 1 or not parts[0].startswith("cpu"):
        return None
    try:
        values = [int(v) for v in parts[1 : CPU_FIELD_COUNT + 1]]
    except ValueError:
        return None
    return parts[0], CpuTimes(*values)


def parse_stat_line(pid: int, line: str) -> tuple[str, str, int, int, int] | None:
    """
    Parse a per-process stat line.

    The command name is parenthesized and may itself contain spaces or
    parentheses, so the split happens at the last ``)`` in the line and the
    remaining fields are read positionally.

    Returns:
        ``(command, state, utime, stime, nice)`` or None if malformed.
    """
    open_paren = line.find("(")
    close_paren = line.rfind(")")
    if open_paren < 0 or close_paren < open_paren:
        logger.debug("Malformed stat line for pid %d", pid)
        return None
    command = line[open_paren + 1 : close_paren][:MAX_COMMAND_LENGTH]
    fields = line[close_paren + 1 :].split()
    try:
        state = fields[_STAT_STATE]
        utime = int(fields[_STAT_UTIME])
        stime = int(fields[_STAT_STIME])
        nice = int(fields[_STAT_NICE])
    except (IndexError, ValueError):
        logger.debug("Truncated stat line for pid %d", pid)
        return None
    return command, state, utime, stime, nice


class KernelCounters:
    """
    Stateless access to the proc and sys filesystems.

    The proc root is psutil's ``PROCFS_PATH``; passing ``proc_root`` points
    psutil (and the stat readers here) at another tree. The sys root is only
    used for thermal zones.
    """

    def __init__(
        self,
        proc_root: str | Path | None = None,
        sys_root: str | Path = "/sys",
    ) -> None:
        if proc_root is not None:
            psutil.PROCFS_PATH = str(proc_root)
        self.sys_root = Path(sys_root)

    @property
    def proc_root(self) -> Path:
        return Path(psutil.PROCFS_PATH)

    def _read_text(self, path: Path) -> str | None:
        try:
            return path.read_text(errors="replace")
        except OSError as exc:
            logger.debug("Cannot read %s: %s", path, exc)
            return None

    # ---- CPU ----

    def read_cpu_times(self) -> list[tuple[str, CpuTimes]]:
        """
        Read the labelled CPU lines in file order.

        Scanning stops at the first line that is not a well-formed ``cpu``
        line, so interrupt and context-switch counters are never consumed.
        """
        text = self._read_text(self.proc_root / "stat")
        if text is None:
            return []
        lines: list[tuple[str, CpuTimes]] = []
        for raw in text.splitlines():
            parsed = parse_cpu_line(raw)
            if parsed is None:
                break
            lines.append(parsed)
        return lines

    def read_core_frequencies(self, core_count: int) -> list[float]:
        """
        Current clock per core in MHz.

        psutil reads the per-core scaling files and falls back to the
        cpuinfo ``cpu MHz`` lines itself. Cores it does not report get the
        overall clock, or 0.0 when nothing is exposed.
        """
        try:
            per_core = psutil.cpu_freq(percpu=True) or []
            overall = psutil.cpu_freq() if len(per_core) < core_count else None
        except (AttributeError, NotImplementedError, OSError, RuntimeError) as exc:
            logger.debug("Core frequencies unavailable: %s", exc)
            per_core, overall = [], None
        base = float(overall.current) if overall is not None else 0.0
        return [float(per_core[core].current) if core < len(per_core) else base for core in range(core_count)]

    # ---- Memory ----

    def read_memory(self) -> MemoryInfo | None:
        try:
            memory = psutil.virtual_memory()
        except (OSError, KeyError, ValueError, IndexError) as exc:
            logger.debug("Memory summary unavailable: %s", exc)
            return None
        return MemoryInfo(
            total_kb=memory.total // 1024,
            free_kb=memory.free // 1024,
            available_kb=memory.available // 1024,
        )

    # ---- Temperature ----

    def find_thermal_zone(self) -> Path | None:
        """First thermal zone whose type names a CPU-like sensor."""
        base = self.sys_root / "class/thermal"
        for index in range(MAX_THERMAL_ZONES):
            zone = base / f"thermal_zone{index}"
            kind = self._read_text(zone / "type")
            if kind is None:
                continue
            kind = kind.strip().lower()
            if any(keyword in kind for keyword in THERMAL_KEYWORDS):
                return zone / "temp"
        return None

    def read_millidegrees(self, path: Path) -> int | None:
        text = self._read_text(path)
        if text is None:
            return None
        try:
            return int(text.strip())
        except ValueError:
            return None

    # ---- Processes ----

    def pids(self) -> list[int]:
        """All numeric entries of the process namespace."""
        try:
            return psutil.pids()
        except (OSError, IndexError) as exc:
            logger.debug("Cannot list %s: %s", self.proc_root, exc)
            return []

    def read_process(self, pid: int) -> ProcessCounters | None:
        """
        Read identity and counters for one process.

        Returns None when the process vanished or its stat record is
        unusable. Owner and resident memory are optional: when psutil cannot
        read them the process is reported as root-owned with no resident
        memory.
        """
        line = self._read_text(self.proc_root / str(pid) / "stat")
        if line is None:
            return None
        parsed = parse_stat_line(pid, line)
        if parsed is None:
            return None
        command, state, utime, stime, nice = parsed

        uid = 0
        rss_kb = 0
        name = "unknown"
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                uid = proc.uids().real
                rss_kb = proc.memory_info().rss // 1024
                name = proc.username()
        except psutil.NoSuchProcess as exc:
            if not isinstance(exc, psutil.ZombieProcess):
                return None
            uid, rss_kb, name = 0, 0, "unknown"
        except (psutil.AccessDenied, OSError) as exc:
            logger.debug("Identity unavailable for pid %d: %s", pid, exc)
            uid, rss_kb, name = 0, 0, "unknown"

        return ProcessCounters(
            pid=pid,
            command=command,
            state=state,
            utime=utime,
            stime=stime,
            nice=nice,
            uid=uid,
            rss_kb=rss_kb,
            username=name,
        )


class TemperatureSensor:
    """
    CPU temperature from the first matching thermal zone.

    The zone is probed once at construction. Readings are smoothed with an
    exponential moving average; a failed read returns the last smoothed value.
    """

    def __init__(self, counters: KernelCounters, smoothing: float = 0.7) -> None:
        self._counters = counters
        self._smoothing = smoothing
        self._path = counters.find_thermal_zone()
        self._value: float | None = None
        if self._path is None:
            logger.info("No CPU thermal zone found; temperature unavailable")

    @property
    def available(self) -> bool:
        return self._path is not None

    def read_celsius(self) -> float | None:
        if self._path is None:
            return None
        millidegrees = self._counters.read_millidegrees(self._path)
        if millidegrees is None:
            return self._value
        sample = millidegrees / 1000.0
        if self._value is None:
            self._value = sample
        else:
            self._value = self._smoothing * self._value + (1.0 - self._smoothing) * sample
        return self._value
