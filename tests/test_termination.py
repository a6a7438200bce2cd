"""Termination strategy tests.

Test coverage:
- Graceful termination within the polling window
- Escalation to SIGKILL for children ignoring SIGTERM
- Process group signalling for new-session children
- Already-exited children
"""

from __future__ import annotations

import signal
import subprocess
import sys
import time
from pathlib import Path

import pytest

from shellrun.runtime.termination import IS_WINDOWS, signal_process, terminate_processes

pytestmark = pytest.mark.skipif(IS_WINDOWS, reason="POSIX signal semantics")


def _spawn(argv: list[str], **kwargs) -> subprocess.Popen:
    return subprocess.Popen(argv, stdout=subprocess.PIPE, **kwargs)


def _spawn_stubborn(fixtures_dir: Path, *args: str, **kwargs) -> subprocess.Popen:
    process = _spawn([sys.executable, str(fixtures_dir / "stubborn_child.py"), *args], **kwargs)
    # The handler is installed before "ready" is printed
    assert process.stdout.readline() == b"ready\n"
    return process


class TestTerminateProcesses:
    """Test graceful-then-forceful termination."""

    def test_graceful(self):
        process = _spawn(["sleep", "30"])
        try:
            killed = terminate_processes([process], polls=20, interval=0.05)
            assert killed == []
            assert process.returncode == -signal.SIGTERM
        finally:
            process.stdout.close()

    def test_escalates_to_kill(self, fixtures_dir: Path):
        process = _spawn_stubborn(fixtures_dir)
        try:
            start = time.monotonic()
            killed = terminate_processes([process], polls=4, interval=0.05)
            elapsed = time.monotonic() - start

            assert killed == [process.pid]
            assert process.returncode == -signal.SIGKILL
            assert elapsed < 2.0
        finally:
            process.stdout.close()

    def test_handled_term_exit_code(self, fixtures_dir: Path):
        process = _spawn_stubborn(fixtures_dir, "--on-term", "exit", "--exit-code", "3")
        try:
            killed = terminate_processes([process], polls=40, interval=0.05)
            assert killed == []
            assert process.returncode == 3
        finally:
            process.stdout.close()

    def test_mixed_targets(self, fixtures_dir: Path):
        polite = _spawn(["sleep", "30"])
        stubborn = _spawn_stubborn(fixtures_dir)
        try:
            killed = terminate_processes([polite, stubborn], polls=4, interval=0.05)
            assert killed == [stubborn.pid]
            assert polite.returncode == -signal.SIGTERM
            assert stubborn.returncode == -signal.SIGKILL
        finally:
            polite.stdout.close()
            stubborn.stdout.close()

    def test_process_group(self):
        process = _spawn(["sh", "-c", "sleep 30 & wait"], start_new_session=True)
        try:
            killed = terminate_processes([process], groups=[True], polls=20, interval=0.05)
            assert killed == []
            assert process.returncode is not None
        finally:
            process.stdout.close()


class TestSignalProcess:
    """Test signal delivery."""

    def test_exited_process(self):
        process = _spawn(["true"])
        process.wait()
        process.stdout.close()
        assert signal_process(process, signal.SIGTERM) is False

    def test_running_process(self):
        process = _spawn(["sleep", "30"])
        try:
            assert signal_process(process, signal.SIGKILL) is True
            process.wait(timeout=5)
            assert process.returncode == -signal.SIGKILL
        finally:
            process.stdout.close()
