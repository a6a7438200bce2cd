"""Graceful-then-forceful termination of child processes.

Termination strategy (shared by single commands and pipelines):
1. Send SIGTERM to every target (process group when started in a new session)
2. Poll all targets without blocking, up to ``polls`` times ``interval`` apart
3. Send SIGKILL to the survivors
4. Reap them, waiting at most ``kill_timeout``

A process that has already disappeared is treated as terminated.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import time
from collections.abc import Sequence

__all__ = [
    "IS_WINDOWS",
    "signal_process",
    "terminate_processes",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


def signal_process(
    process: subprocess.Popen,
    sig: int,
    *,
    group: bool = False,
) -> bool:
    """Deliver ``sig`` to a child (or its process group).

    Args:
        process: Target child
        sig: Signal number
        group: Signal the child's whole process group (POSIX only)

    Returns:
        False if the process no longer exists
    """
    if process.poll() is not None:
        return False
    pid = process.pid
    try:
        if group and not IS_WINDOWS:
            os.killpg(os.getpgid(pid), sig)
            logger.debug(f"Sent signal {sig} to process group of pid={pid}")
        elif IS_WINDOWS and sig != signal.SIGTERM:
            process.kill()
        else:
            process.send_signal(sig)
            logger.debug(f"Sent signal {sig} to pid={pid}")
    except ProcessLookupError:
        logger.debug(f"Process already exited pid={pid}")
        return False
    return True


def _kill_signal() -> int:
    return getattr(signal, "SIGKILL", signal.SIGTERM)


def terminate_processes(
    processes: Sequence[subprocess.Popen],
    *,
    groups: Sequence[bool] | None = None,
    polls: int = 30,
    interval: float = 0.1,
    kill_timeout: float = 1.0,
) -> list[int]:
    """Terminate ``processes`` gracefully, then forcefully.

    Args:
        processes: Children to stop
        groups: Per-process flag selecting process-group signalling
        polls: Status polls after SIGTERM
        interval: Seconds between polls
        kill_timeout: Seconds to wait for reaping after SIGKILL

    Returns:
        PIDs that had to be killed forcefully
    """
    if groups is None:
        groups = [False] * len(processes)
    targets = list(zip(processes, groups))

    for process, group in targets:
        signal_process(process, signal.SIGTERM, group=group)

    for _ in range(polls):
        if all(process.poll() is not None for process, _ in targets):
            break
        time.sleep(interval)

    survivors = [(p, g) for p, g in targets if p.poll() is None]
    killed: list[int] = []
    for process, group in survivors:
        logger.debug(f"Force killing subprocess pid={process.pid}")
        if signal_process(process, _kill_signal(), group=group):
            killed.append(process.pid)

    deadline = time.monotonic() + kill_timeout
    for process, _ in survivors:
        try:
            process.wait(timeout=max(0.0, deadline - time.monotonic()))
        except subprocess.TimeoutExpired:
            logger.warning(f"Subprocess did not exit after kill pid={process.pid}")

    return killed
