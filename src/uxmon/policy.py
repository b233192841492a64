"""
Priority-based auto-suspend policy.

When a user-declared priority command is running, other heavy processes are
stopped so the priority work gets the CPU and memory. Suspension is sticky:
it persists across scans until resumed explicitly or until auto-management
is switched off.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Protocol

from uxmon.models import MAX_COMMAND_LENGTH, ProcessRecord

logger = logging.getLogger(__name__)

# Processes whose suspension would destabilize the host. Matched by substring.
CRITICAL_PROCESS_NAMES: tuple[str, ...] = (
    "systemd",
    "init",
    "kernel",
    "kthread",
    "ksoftirq",
    "kworker",
    "Xorg",
    "X",
    "wayland",
    "sway",
    "gnome-shell",
    "kwin",
    "mutter",
    "plasmashell",
    "xfwm4",
    "openbox",
    "i3",
    "dwm",
    "awesome",
    "gdm",
    "sddm",
    "lightdm",
    "login",
    "getty",
    "pulseaudio",
    "pipewire",
    "wireplumber",
    "alsa",
    "NetworkManager",
    "wpa_supplicant",
    "dhclient",
    "dhcpcd",
    "dbus",
    "dbus-daemon",
    "systemd-",
    "udevd",
    "upowerd",
    "polkitd",
    "rtkit",
    "accounts-daemon",
    "udisksd",
    "bluetoothd",
    "cupsd",
    "avahi",
    "ssh",
    "sshd",
    "cron",
    "crond",
    "atd",
    "rsyslogd",
    "syslog",
    "journald",
    "dockerd",
    "containerd",
    "kubelet",
    "libvirtd",
    "virtlogd",
    "qemu",
    "xfce4-session",
    "mate-session",
    "cinnamon-session",
    "lxsession",
    "lxqt-session",
    "gnome-session",
    "kde-session",
)


def matches(names: Iterable[str], candidate: str) -> bool:
    """True if any of ``names`` occurs as a substring of ``candidate``."""
    return any(name in candidate for name in names)


class SignalSender(Protocol):
    def stop(self, pid: int) -> bool: ...

    def resume(self, pid: int) -> bool: ...


class PriorityList:
    """Ordered, bounded set of command-name substrings marked as priority."""

    def __init__(self, capacity: int = 10, names: Iterable[str] = ()) -> None:
        self._capacity = capacity
        self._names: list[str] = []
        for name in names:
            self.add(name)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return len(self._names) >= self._capacity

    def add(self, name: str) -> bool:
        """Append a name; refuses empty names, duplicates and overflow."""
        name = name[:MAX_COMMAND_LENGTH]
        if not name or name in self._names or self.is_full:
            return False
        self._names.append(name)
        return True

    def remove_last(self) -> str | None:
        return self._names.pop() if self._names else None

    def matches(self, command: str) -> bool:
        return matches(self._names, command)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)


class ResourcePolicy:
    """
    Level-triggered suspend policy over the whole process table.

    Re-evaluated on every scan while enabled. The only memory it keeps is
    each record's ``suspended_by_policy`` flag, which the scanner carries
    across scans.
    """

    def __init__(
        self,
        actions: SignalSender,
        priorities: PriorityList,
        cpu_threshold: float = 10.0,
        memory_threshold_kb: int = 500_000,
        critical_names: Iterable[str] = CRITICAL_PROCESS_NAMES,
    ) -> None:
        self._actions = actions
        self.priorities = priorities
        self.cpu_threshold = cpu_threshold
        self.memory_threshold_kb = memory_threshold_kb
        self.critical_names = tuple(critical_names)
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def is_protected(self, record: ProcessRecord) -> bool:
        """Root-owned and system-critical processes are never suspended."""
        return record.uid == 0 or matches(self.critical_names, record.command)

    def exceeds_threshold(self, record: ProcessRecord) -> bool:
        return record.cpu_percent > self.cpu_threshold or record.rss_kb > self.memory_threshold_kb

    def priority_running(self, table: Mapping[int, ProcessRecord]) -> bool:
        return any(
            record.is_running and self.priorities.matches(record.command)
            for record in table.values()
        )

    def evaluate(self, table: Mapping[int, ProcessRecord]) -> list[int]:
        """
        Suspend heavy non-priority processes while a priority one runs.

        Nothing is resumed here, even when no priority process is running.

        Returns:
            PIDs suspended by this pass.
        """
        if not self._enabled or not self.priority_running(table):
            return []

        suspended: list[int] = []
        for record in table.values():
            if (
                self.priorities.matches(record.command)
                or self.is_protected(record)
                or not record.is_running
                or record.suspended_by_policy
                or not self.exceeds_threshold(record)
            ):
                continue
            if self._actions.stop(record.pid):
                record.suspended_by_policy = True
                suspended.append(record.pid)
                logger.info(
                    "Suspended %s (pid %d): cpu %.1f%%, rss %d kB",
                    record.command,
                    record.pid,
                    record.cpu_percent,
                    record.rss_kb,
                )
        return suspended

    def resume_all(self, table: Mapping[int, ProcessRecord]) -> list[int]:
        """Continue every process held by the policy and clear its flag."""
        resumed: list[int] = []
        for record in table.values():
            if not record.suspended_by_policy:
                continue
            self._actions.resume(record.pid)
            record.suspended_by_policy = False
            record.is_running = True
            resumed.append(record.pid)
        if resumed:
            logger.info("Resumed %d suspended processes", len(resumed))
        return resumed

    def set_enabled(self, enabled: bool, table: Mapping[int, ProcessRecord]) -> list[int]:
        """
        Switch auto-management on or off.

        Turning it off resumes every suspended process in the same call.

        Returns:
            PIDs resumed as a consequence.
        """
        self._enabled = enabled
        logger.info("Auto-management %s", "enabled" if enabled else "disabled")
        if enabled:
            return []
        return self.resume_all(table)

    def toggle(self, table: Mapping[int, ProcessRecord]) -> bool:
        self.set_enabled(not self._enabled, table)
        return self._enabled

    @staticmethod
    def suspended(table: Mapping[int, ProcessRecord]) -> list[ProcessRecord]:
        return [record for record in table.values() if record.suspended_by_policy]
