"""Shared fixtures: a fake proc/sys tree and a recording action executor."""

import os
from pathlib import Path

import psutil
import pytest

from uxmon.counters import KernelCounters
from uxmon.models import ProcessRecord

PAGE_SIZE = os.sysconf("SC_PAGE_SIZE")
BOOT_TIME_LINE = "btime 1700000000\n"


class FakeHost:
    """Builds kernel counter files under a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.proc = root / "proc"
        self.sys = root / "sys"
        self.proc.mkdir()
        self.sys.mkdir()
        # psutil needs the boot time to open any process
        (self.proc / "stat").write_text(BOOT_TIME_LINE)

    def counters(self) -> KernelCounters:
        return KernelCounters(self.proc, self.sys)

    def write_stat(self, *cpu_lines: str, trailer: bool = True) -> None:
        text = "\n".join(cpu_lines) + "\n"
        if trailer:
            text += "intr 12345 0 0 0\nctxt 99999\n" + BOOT_TIME_LINE
        (self.proc / "stat").write_text(text)

    def write_meminfo(self, total_kb: int, free_kb: int, available_kb: int) -> None:
        (self.proc / "meminfo").write_text(
            f"MemTotal:       {total_kb} kB\n"
            f"MemFree:        {free_kb} kB\n"
            f"MemAvailable:   {available_kb} kB\n"
            "Buffers:          123456 kB\n"
            "Cached:          2345678 kB\n"
            "Active:          3456789 kB\n"
            "Inactive:        1234567 kB\n"
            "Shmem:             98765 kB\n"
            "Slab:             234567 kB\n"
            "SReclaimable:     123456 kB\n"
        )

    def add_process(
        self,
        pid: int,
        command: str,
        utime: int = 0,
        stime: int = 0,
        state: str = "S",
        nice: int = 0,
        uid: int = 1000,
        rss_kb: int = 1024,
        with_status: bool = True,
    ) -> None:
        directory = self.proc / str(pid)
        directory.mkdir(exist_ok=True)
        (directory / "stat").write_text(
            f"{pid} ({command}) {state} 1 {pid} {pid} 0 -1 4194304 100 0 0 0 "
            f"{utime} {stime} 0 0 20 {nice} 1 0 100 1000000 250 "
            "18446744073709551615 1 1 0 0 0 0 0 0 0 0 0 0 17 0 0 0 0 0 0\n"
        )
        if with_status:
            (directory / "status").write_text(
                f"Name:\t{command[:15]}\nState:\t{state}\n"
                f"Uid:\t{uid}\t{uid}\t{uid}\t{uid}\n"
                f"VmRSS:\t{rss_kb} kB\n"
            )
            rss_pages = rss_kb * 1024 // PAGE_SIZE
            (directory / "statm").write_text(f"{rss_pages * 4} {rss_pages} 0 0 0 {rss_pages} 0\n")

    def remove_process(self, pid: int) -> None:
        directory = self.proc / str(pid)
        for child in directory.iterdir():
            child.unlink()
        directory.rmdir()

    def add_thermal_zone(self, index: int, kind: str, millidegrees: int) -> Path:
        zone = self.sys / "class/thermal" / f"thermal_zone{index}"
        zone.mkdir(parents=True)
        (zone / "type").write_text(kind + "\n")
        (zone / "temp").write_text(f"{millidegrees}\n")
        return zone / "temp"


class RecordingActions:
    """Stand-in executor that records signals instead of sending them."""

    def __init__(self, refuse: set[int] | None = None) -> None:
        self.stopped: list[int] = []
        self.resumed: list[int] = []
        self.terminated: list[int] = []
        self.reniced: list[tuple[int, int]] = []
        self.refuse = refuse or set()

    def stop(self, pid: int) -> bool:
        if pid in self.refuse:
            return False
        self.stopped.append(pid)
        return True

    def resume(self, pid: int) -> bool:
        self.resumed.append(pid)
        return True

    def terminate(self, pid: int) -> bool:
        self.terminated.append(pid)
        return True

    def toggle_run_state(self, record: ProcessRecord) -> bool:
        if record.is_running:
            self.stop(record.pid)
        else:
            self.resume(record.pid)
        record.is_running = not record.is_running
        return record.is_running

    def renice(self, pid: int, delta: int) -> int | None:
        self.reniced.append((pid, delta))
        return min(19, max(-20, delta))


@pytest.fixture(autouse=True)
def restore_procfs_path(monkeypatch):
    """Undo any proc root a test points psutil at."""
    monkeypatch.setattr(psutil, "PROCFS_PATH", psutil.PROCFS_PATH)


@pytest.fixture
def host(tmp_path: Path, monkeypatch) -> FakeHost:
    fake = FakeHost(tmp_path)
    monkeypatch.setattr(psutil, "PROCFS_PATH", str(fake.proc))
    return fake


@pytest.fixture
def actions() -> RecordingActions:
    return RecordingActions()


def make_record(
    pid: int,
    command: str,
    cpu_percent: float = 0.0,
    rss_kb: int = 1024,
    uid: int = 1000,
    is_running: bool = True,
    suspended_by_policy: bool = False,
) -> ProcessRecord:
    """Build a process record with sensible defaults for policy tests."""
    return ProcessRecord(
        pid=pid,
        username="root" if uid == 0 else "user",
        uid=uid,
        command=command,
        nice=0,
        user_ticks=0,
        system_ticks=0,
        rss_kb=rss_kb,
        state="R" if is_running else "T",
        cpu_percent=cpu_percent,
        is_running=is_running,
        suspended_by_policy=suspended_by_policy,
    )
