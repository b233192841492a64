"""Direct process control: terminate, stop/continue and renice."""

import logging
import time

import psutil

from uxmon.models import ProcessRecord

logger = logging.getLogger(__name__)

NICE_MIN = -20
NICE_MAX = 19


class ProcessActions:
    """
    Best-effort signal and priority operations on a PID.

    Handles NoSuchProcess, ZombieProcess and AccessDenied locally: a target
    that is already gone or that we may not touch is reported through the
    return value, never raised.
    """

    def __init__(self, kill_grace: float = 0.2) -> None:
        """
        Initialize ProcessActions.

        Args:
            kill_grace: Seconds to wait between the graceful and the
                forceful termination signal.
        """
        self.kill_grace = kill_grace

    def terminate(self, pid: int) -> bool:
        """
        Terminate a process, escalating to a forceful kill.

        Sends the graceful signal, waits ``kill_grace`` seconds, then sends
        the forceful signal unconditionally as a backstop. A target that is
        already gone counts as success; exit is not confirmed.
        """
        try:
            psutil.Process(pid).terminate()
        except psutil.NoSuchProcess:
            return True
        except psutil.AccessDenied:
            logger.warning("Permission denied terminating pid %d", pid)
            return False

        time.sleep(self.kill_grace)
        try:
            psutil.Process(pid).kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass
        logger.info("Terminated pid %d", pid)
        return True

    def stop(self, pid: int) -> bool:
        """Send the stop signal. Returns True if it was delivered."""
        try:
            psutil.Process(pid).suspend()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
            logger.debug("Cannot stop pid %d: %s", pid, exc)
            return False
        return True

    def resume(self, pid: int) -> bool:
        """Send the continue signal. Returns True if it was delivered."""
        try:
            psutil.Process(pid).resume()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
            logger.debug("Cannot resume pid %d: %s", pid, exc)
            return False
        return True

    def toggle_run_state(self, record: ProcessRecord) -> bool:
        """
        Stop a running process or continue a stopped one.

        ``record.is_running`` is flipped optimistically; the next scan
        corrects it either way.
        """
        if record.is_running:
            self.stop(record.pid)
            record.is_running = False
        else:
            self.resume(record.pid)
            record.is_running = True
        return record.is_running

    def renice(self, pid: int, delta: int) -> int | None:
        """
        Shift a process's nice value by ``delta``, clamped to [-20, 19].

        Returns:
            The nice value that was applied, or None if the current value
            could not be read or the change was refused.
        """
        try:
            process = psutil.Process(pid)
            current = process.nice()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return None

        target = min(NICE_MAX, max(NICE_MIN, current + delta))
        try:
            process.nice(target)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            logger.debug("Renice of pid %d to %d refused", pid, target)
            return None
        return target
