"""State and stream plumbing shared by RunningCommand and RunningPipeline.

Both runners redirect one stdin, one stdout and one stderr at their outer
boundary: either to a caller-supplied target or to an internal pipe whose
parent-side end is drained by a StreamReader (outputs) or written by an
input feeder thread (stdin).
"""

from __future__ import annotations

import functools
import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass, field

import anyio

from ..config import Config, get_config
from ..errors import CommandReturnFailure, ShellRunError
from ..options import ExecutionOptions
from .pipes import Pipe, close_fds, open_input, open_output
from .stream_reader import StreamReader

__all__ = ["BaseRunner", "Redirects", "format_diagnostic"]

logger = logging.getLogger(__name__)


def format_diagnostic(ran: str, stdout: bytes, stderr: bytes) -> str:
    """Build the message carried by CommandReturnFailure."""
    return (
        f"\n\n  RAN: {ran}\n\n"
        f"  STDOUT:\n{stdout.decode('utf-8', errors='replace')}\n"
        f"  STDERR:\n{stderr.decode('utf-8', errors='replace')}\n"
    )


@dataclass
class Redirects:
    """Child-side descriptors for the three standard streams.

    Attributes:
        stdin: Descriptor for the child's stdin
        stdout: Descriptor for the child's stdout
        stderr: Descriptor for the child's stderr (or subprocess.STDOUT)
        stdin_pipe: Internal stdin pipe (parent keeps the write end)
        stdout_pipe: Internal stdout pipe (parent keeps the read end)
        stderr_pipe: Internal stderr pipe (parent keeps the read end)
        owned: Descriptors opened from paths, closed after spawn
    """

    stdin: int
    stdout: int
    stderr: int
    stdin_pipe: Pipe | None = None
    stdout_pipe: Pipe | None = None
    stderr_pipe: Pipe | None = None
    owned: list[int] = field(default_factory=list)

    def release_child_ends(self) -> None:
        """Close the ends handed to children so EOF can be observed."""
        if self.stdin_pipe is not None:
            self.stdin_pipe.close_read()
        if self.stdout_pipe is not None:
            self.stdout_pipe.close_write()
        if self.stderr_pipe is not None:
            self.stderr_pipe.close_write()
        close_fds(self.owned)

    def close(self) -> None:
        """Close everything (spawn failed)."""
        for pipe in (self.stdin_pipe, self.stdout_pipe, self.stderr_pipe):
            if pipe is not None:
                pipe.close()
        close_fds(self.owned)


class BaseRunner:
    """Common runtime state of a command or pipeline.

    Attributes:
        options: Execution options
        config: Configuration (termination timings)
        started_at: Epoch seconds when spawning finished
        finished_at: Epoch seconds when waiting finished
        exit_code: Exit status, None until wait completes or if killed by a signal
        signal: Terminating signal number, if any
    """

    def __init__(self, options: ExecutionOptions | None = None, config: Config | None = None) -> None:
        self.options = options or ExecutionOptions()
        self.config = config or get_config()

        self.started_at: float | None = None
        self.finished_at: float | None = None
        self.exit_code: int | None = None
        self.signal: int | None = None

        self._stdout = bytearray()
        self._stderr = bytearray()
        self._readers: list[StreamReader] = []
        self._feeder: threading.Thread | None = None
        self._spawned = False
        self._waited = False

    # -------------------------------------------------------------------------
    # Result surface
    # -------------------------------------------------------------------------

    @property
    def stdout_data(self) -> bytes:
        return bytes(self._stdout)

    @property
    def stderr_data(self) -> bytes:
        return bytes(self._stderr)

    @property
    def wall_time(self) -> float | None:
        """Seconds between spawn and the end of wait."""
        if self.finished_at is None or self.started_at is None:
            return None
        return self.finished_at - self.started_at

    execution_time = wall_time

    @property
    def ok(self) -> bool:
        return self.exit_code in self.options.ok_codes

    @property
    def spawned(self) -> bool:
        return self._spawned

    @property
    def finished(self) -> bool:
        return self._waited

    # -------------------------------------------------------------------------
    # Waiting
    # -------------------------------------------------------------------------

    def wait(self, timeout: float | None = None) -> "BaseRunner":
        raise NotImplementedError

    async def wait_async(self, timeout: float | None = None) -> "BaseRunner":
        """Run wait() on a worker thread."""
        return await anyio.to_thread.run_sync(functools.partial(self.wait, timeout))

    def _begin_wait(self, timeout: float | None) -> float | None:
        """Validate state; return the effective timeout."""
        if not self._spawned:
            raise ShellRunError(f"{self!s} has not been started")
        return self.options.timeout if timeout is None else timeout

    def _record_exit(self, returncode: int | None) -> None:
        if returncode is None:
            self.exit_code = None
        elif returncode < 0:
            self.exit_code = None
            self.signal = -returncode
        else:
            self.exit_code = returncode
        self.finished_at = time.time()

    def _check_exit_code(self) -> None:
        if self.ok:
            return
        raise CommandReturnFailure(
            self.exit_code,
            format_diagnostic(str(self), self.stdout_data, self.stderr_data),
        )

    # -------------------------------------------------------------------------
    # Stream plumbing
    # -------------------------------------------------------------------------

    def _open_redirects(self) -> Redirects:
        """Resolve the outer stdin/stdout/stderr of this runner."""
        options = self.options
        owned: list[int] = []
        stdin_pipe = stdout_pipe = stderr_pipe = None
        try:
            if options.stdin is not None:
                stdin = open_input(options.stdin, owned)
            else:
                stdin_pipe = Pipe()
                stdin = stdin_pipe.read_fd

            if options.stdout is not None:
                stdout = open_output(options.stdout, owned)
            else:
                stdout_pipe = Pipe()
                stdout = stdout_pipe.write_fd

            if options.stderr_to_stdout:
                stderr = subprocess.STDOUT
            elif options.stderr is not None:
                stderr = open_output(options.stderr, owned)
            else:
                stderr_pipe = Pipe()
                stderr = stderr_pipe.write_fd
        except BaseException:
            for pipe in (stdin_pipe, stdout_pipe, stderr_pipe):
                if pipe is not None:
                    pipe.close()
            close_fds(owned)
            raise

        return Redirects(
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            stdin_pipe=stdin_pipe,
            stdout_pipe=stdout_pipe,
            stderr_pipe=stderr_pipe,
            owned=owned,
        )

    def _start_io(self, redirects: Redirects, name: str) -> None:
        """Start draining outputs, then feed literal input."""
        options = self.options
        if redirects.stdout_pipe is not None:
            self._readers.append(StreamReader(
                redirects.stdout_pipe.take_read(),
                self._on_stdout,
                bufsize=options.effective_bufsize("stdout"),
                name=f"{name}-stdout",
            ))
        if redirects.stderr_pipe is not None:
            self._readers.append(StreamReader(
                redirects.stderr_pipe.take_read(),
                self._on_stderr,
                bufsize=options.effective_bufsize("stderr"),
                name=f"{name}-stderr",
            ))

        if redirects.stdin_pipe is not None:
            fd = redirects.stdin_pipe.take_write()
            if options.stdin_bytes:
                self._feeder = threading.Thread(
                    target=self._feed_input,
                    args=(fd, options.stdin_bytes),
                    daemon=True,
                    name=f"shellrun-feeder-{name}",
                )
                self._feeder.start()
            else:
                os.close(fd)

    def _feed_input(self, fd: int, data: bytes) -> None:
        """Write the literal input payload and close the pipe."""
        view = memoryview(data)
        try:
            while view:
                written = os.write(fd, view)
                view = view[written:]
        except BrokenPipeError:
            logger.debug(f"Child closed stdin with {len(view)} bytes unwritten")
        finally:
            os.close(fd)

    def _finish_io(self, timeout: float | None = None) -> None:
        """Block until input is fed and every reader has drained, then mark the
        wait as finished.

        Args:
            timeout: Upper bound in seconds for the whole drain. Readers still
                running afterwards (a descendant of the child keeps the pipe
                open) are abandoned; their daemon threads close the read ends
                once the writer goes away.
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        def remaining() -> float | None:
            return None if deadline is None else max(0.0, deadline - time.monotonic())

        if self._feeder is not None:
            self._feeder.join(remaining())
            if self._feeder.is_alive():
                logger.warning(f"Abandoning input feeder of {self!s}")

        errors: list[Exception] = []
        for reader in self._readers:
            try:
                if not reader.wait(remaining()):
                    logger.warning(f"Abandoning output reader of {self!s}, pipe still held open")
            except Exception as e:
                errors.append(e)
        self._waited = True
        if errors:
            raise errors[0]

    def _on_stdout(self, chunk: bytes) -> None:
        if not self.options.no_stdout:
            self._stdout.extend(chunk)
        if self.options.on_stdout is not None:
            self.options.on_stdout(chunk)

    def _on_stderr(self, chunk: bytes) -> None:
        if not self.options.no_stderr:
            self._stderr.extend(chunk)
        if self.options.on_stderr is not None:
            self.options.on_stderr(chunk)
