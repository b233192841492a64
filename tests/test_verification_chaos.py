"""Verification Test: Chaos Monkey - process churn while scanning the live host.

Processes exiting between enumeration and the detail read must be skipped
silently, and exited processes must never linger in the table.
"""

import multiprocessing
import random
import time

from uxmon.counters import KernelCounters
from uxmon.scanner import ProcessScanner


def dummy_worker(duration: float = 60.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_scanner_survives_process_termination(self):
        """
        Test that scans keep working while processes die mid-scan.

        Killed workers must be gone from the table after the next scan, and
        every rate must stay non-negative.
        """
        processes = []
        for _ in range(20):
            p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
            p.start()
            processes.append(p)

        scanner = ProcessScanner(KernelCounters())
        try:
            table = scanner.scan()
            for p in processes:
                assert p.pid in table

            victims = random.sample(processes, 10)
            for p in victims:
                p.terminate()
                scanner.scan()
            for p in victims:
                p.join(timeout=5.0)

            table = scanner.scan()
            for p in victims:
                assert p.pid not in table
            for p in processes:
                if p not in victims:
                    assert p.pid in table
            assert all(record.cpu_percent >= 0.0 for record in table.values())
        finally:
            for p in processes:
                if p.is_alive():
                    p.terminate()
            for p in processes:
                p.join(timeout=1.0)

    def test_rapid_process_creation_and_termination(self):
        """Test scanner stability during rapid process churn."""
        scanner = ProcessScanner(KernelCounters())
        start_time = time.time()
        scans = 0
        while time.time() - start_time < 2.0:
            p = multiprocessing.Process(target=dummy_worker, args=(0.05,))
            p.start()
            table = scanner.scan()
            assert isinstance(table, dict)
            p.join(timeout=2.0)
            scans += 1
        assert scans > 0
        assert scanner.count > 0
