"""Lifecycle of a single child process.

State machine: unspawned -> spawned -> exited | timed-out

- run(): spawn, then (unless background) wait with the configured timeout
- spawn(): wire stdin/stdout/stderr, launch the child, close child-side ends,
  start draining outputs and feeding literal input
- wait(): reap the child (escalating termination on timeout), drain all
  output, then enforce the accepted exit codes
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from ..arguments import Argument, compile_arguments
from ..config import Config
from ..errors import CommandTimeout, ShellRunError
from ..options import ExecutionOptions
from .base import BaseRunner
from .termination import terminate_processes

if TYPE_CHECKING:
    from .running_pipeline import RunningPipeline

__all__ = ["RunningCommand"]

logger = logging.getLogger(__name__)


class RunningCommand(BaseRunner):
    """One invocation of a program.

    Example:
        rc = RunningCommand("echo", "/bin/echo", [Positional("hello")])
        rc.run()
        rc.stdout_data  # b"hello\\n"

    Attributes:
        prog: Display name, passed to the child as argv[0]
        progpath: Resolved executable path
        args: Uncompiled arguments
    """

    def __init__(
        self,
        prog: str,
        progpath: str,
        args: Sequence[Argument] = (),
        options: ExecutionOptions | None = None,
        *,
        config: Config | None = None,
    ) -> None:
        super().__init__(options, config)
        self.prog = prog
        self.progpath = progpath
        self.args = tuple(args)

        self._argv: list[str] | None = None
        self._process: subprocess.Popen | None = None
        self._timed_out = False
        self._new_session = False
        self.pipeline: RunningPipeline | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def argv(self) -> list[str]:
        """Executable path followed by the compiled arguments.

        Arguments are compiled once; callable option values are resolved then.
        """
        if self._argv is None:
            tokens = compile_arguments(
                self.args,
                long_sep=self.options.long_sep,
                long_prefix=self.options.long_prefix,
            )
            self._argv = [self.progpath, *tokens]
        return self._argv

    @property
    def state(self) -> str:
        if not self._spawned:
            return "unspawned"
        if not self._waited:
            return "spawned"
        return "timed-out" if self._timed_out else "exited"

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def run(self) -> "RunningCommand":
        """Spawn and, unless running in background, wait for completion.

        Raises:
            CommandTimeout: If the timeout elapsed
            CommandReturnFailure: If the exit code is not accepted
        """
        if self.pipeline is not None:
            raise ShellRunError(f"{self!s} is a stage of {self.pipeline!s}")
        self.spawn()
        if not self.options.background:
            self.wait()
        return self

    def spawn(self) -> "RunningCommand":
        """Launch the child with this command's own redirections."""
        redirects = self._open_redirects()
        try:
            self._launch(
                stdin=redirects.stdin,
                stdout=redirects.stdout,
                stderr=redirects.stderr,
            )
        except BaseException:
            redirects.close()
            raise
        redirects.release_child_ends()
        self._start_io(redirects, name=f"pid{self.pid}")
        return self

    def _launch(
        self,
        *,
        stdin: int,
        stdout: int,
        stderr: int,
        env: Mapping[str, str] | None = None,
        cwd: Any = None,
        new_session: bool = False,
    ) -> subprocess.Popen:
        """Start the child on the given descriptors.

        ``env``/``cwd`` given here take precedence over this command's options
        (pipelines pass their own).
        """
        if self._spawned:
            raise ShellRunError(f"{self!s} has already been started")

        argv = self.argv
        env = env if env is not None else self.options.env
        cwd = cwd if cwd is not None else self.options.cwd
        new_session = new_session or self.options.new_session

        self._process = subprocess.Popen(
            [self.prog, *argv[1:]],
            executable=self.progpath,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            env=dict(env) if env is not None else None,
            cwd=os.fspath(cwd) if cwd is not None else None,
            close_fds=True,
            start_new_session=new_session,
        )
        self._new_session = new_session
        self._spawned = True
        self.started_at = time.time()

        logger.debug(
            f"Started subprocess pid={self._process.pid} "
            f"argv={' '.join(argv)} cwd={cwd}"
        )
        return self._process

    def wait(self, timeout: float | None = None) -> "RunningCommand":
        """Wait for the child and enforce the accepted exit codes.

        Only the first call blocks and may raise; later calls return at once.

        Args:
            timeout: Seconds to wait (defaults to the configured timeout)

        Raises:
            CommandTimeout: If termination had to be escalated
            CommandReturnFailure: If the exit code is not accepted
        """
        if self.pipeline is not None:
            raise ShellRunError(f"{self!s} is waited on by {self.pipeline!s}")
        timeout = self._begin_wait(timeout)
        if self._waited:
            return self

        self._wait_status(timeout)
        self._check_exit_code()
        return self

    def _wait_status(self, timeout: float | None) -> None:
        process = self._process
        assert process is not None

        try:
            returncode = process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self._timed_out = True
            logger.debug(f"Timeout after {timeout}s, terminating pid={process.pid}")
            terminate_processes(
                [process],
                groups=[self._new_session],
                polls=self.config.term_polls,
                interval=self.config.term_interval,
                kill_timeout=self.config.kill_timeout,
            )
            returncode = process.poll()
        self._record_exit(returncode)
        logger.debug(
            f"Subprocess completed pid={process.pid} "
            f"returncode={process.returncode}"
        )

        # Output is drained before the outcome is reported; after a timeout a
        # descendant may still hold the pipes, so the drain is bounded
        self._finish_io(self.config.kill_timeout if self._timed_out else None)

        if self._timed_out:
            raise CommandTimeout(timeout)

    def _mark_finished(self, timed_out: bool) -> None:
        """Record the outcome of a wait performed by the owning pipeline."""
        assert self._process is not None
        self._timed_out = timed_out
        self._waited = True
        self._record_exit(self._process.poll())

    # -------------------------------------------------------------------------
    # Display
    # -------------------------------------------------------------------------

    def __str__(self) -> str:
        return " ".join(self.argv)

    def __repr__(self) -> str:
        return f"<RunningCommand '{self}' state={self.state} pid={self.pid}>"
