"""Pipe ownership and redirect resolution.

Each end of a Pipe is owned by exactly one party at a time: the parent until
it is handed to a child (and closed right after spawn) or taken over by a
StreamReader / input feeder, which then closes it.
"""

from __future__ import annotations

import logging
import os
from typing import Any

__all__ = ["Pipe", "open_input", "open_output", "close_fds"]

logger = logging.getLogger(__name__)


class Pipe:
    """Anonymous pipe whose ends are closed exactly once."""

    def __init__(self) -> None:
        self.read_fd: int | None
        self.write_fd: int | None
        self.read_fd, self.write_fd = os.pipe()

    def take_read(self) -> int:
        """Transfer ownership of the read end to the caller."""
        fd = self.read_fd
        if fd is None:
            raise ValueError("read end already closed or taken")
        self.read_fd = None
        return fd

    def take_write(self) -> int:
        """Transfer ownership of the write end to the caller."""
        fd = self.write_fd
        if fd is None:
            raise ValueError("write end already closed or taken")
        self.write_fd = None
        return fd

    def close_read(self) -> None:
        if self.read_fd is not None:
            fd, self.read_fd = self.read_fd, None
            _close(fd)

    def close_write(self) -> None:
        if self.write_fd is not None:
            fd, self.write_fd = self.write_fd, None
            _close(fd)

    def close(self) -> None:
        self.close_read()
        self.close_write()

    @property
    def closed(self) -> bool:
        return self.read_fd is None and self.write_fd is None

    def __repr__(self) -> str:
        return f"Pipe(read_fd={self.read_fd}, write_fd={self.write_fd})"


def _close(fd: int) -> None:
    try:
        os.close(fd)
    except OSError as e:
        logger.debug(f"Closing fd={fd} failed: {e}")


def close_fds(fds: list[int]) -> None:
    """Close every descriptor in ``fds`` and empty the list."""
    while fds:
        _close(fds.pop())


def _redirect_fd(target: Any, flags: int, owned: list[int]) -> int:
    if isinstance(target, int):
        return target
    if hasattr(target, "fileno"):
        return target.fileno()
    fd = os.open(os.fspath(target), flags, 0o644)
    owned.append(fd)
    return fd


def open_input(source: Any, owned: list[int]) -> int:
    """Resolve an input source to a descriptor for the child's stdin.

    Paths are opened read-only and recorded in ``owned`` so the caller closes
    them after spawn; descriptors and file objects stay owned by the caller.
    """
    return _redirect_fd(source, os.O_RDONLY, owned)


def open_output(sink: Any, owned: list[int]) -> int:
    """Resolve an output sink to a descriptor for the child's stdout/stderr.

    Paths are created or truncated (mode 0644).
    """
    return _redirect_fd(sink, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, owned)
