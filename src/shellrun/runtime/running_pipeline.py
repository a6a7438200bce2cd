"""Orchestration of several RunningCommands connected by pipes.

Stage i's stdout feeds stage i+1's stdin. The pipeline's stdin options apply
to the first stage, its stdout options to the last one, and its stderr
target is shared by every stage. As in a POSIX shell without pipefail, the
pipeline's exit code is the last stage's exit code.
"""

from __future__ import annotations

import logging
import subprocess
import time
from typing import TYPE_CHECKING, Any

from ..config import Config
from ..errors import CommandNotFound, CommandTimeout, ShellRunError
from ..options import PIPELINE_OPTION_FIELDS, STAGE_OPTION_FIELDS, ExecutionOptions
from .base import BaseRunner
from .pipes import Pipe
from .running_command import RunningCommand
from .termination import terminate_processes

if TYPE_CHECKING:
    from ..shell import Command

__all__ = ["RunningPipeline"]

logger = logging.getLogger(__name__)


class RunningPipeline(BaseRunner):
    """An ordered group of commands run as ``a | b | c``.

    Example:
        with shell.pipeline(stdin_bytes="hello") as pipeline:
            pipeline.add(cat)
            pipeline.add(wc, "-c")
        pipeline.stdout_data  # b"5\\n"
    """

    def __init__(self, options: ExecutionOptions | None = None, *, config: Config | None = None) -> None:
        options = options or ExecutionOptions()
        options.check_allowed(PIPELINE_OPTION_FIELDS, "a pipeline")
        super().__init__(options, config)
        self._stages: list[RunningCommand] = []
        self._sealed = False
        self._timed_out = False

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    @property
    def stages(self) -> tuple[RunningCommand, ...]:
        return tuple(self._stages)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def register(self, runner: RunningCommand) -> RunningCommand:
        """Append ``runner`` as the next stage.

        Raises:
            ShellRunError: If the pipeline already started or the runner is in use
            InvalidArgument: If the runner sets options a stage may not set
        """
        if self._sealed:
            raise ShellRunError(f"cannot add stages to a started pipeline `{self}'")
        if runner.spawned or runner.pipeline is not None:
            raise ShellRunError(f"{runner!s} is already in use")
        runner.options.check_allowed(STAGE_OPTION_FIELDS, "a pipeline stage")
        runner.pipeline = self
        self._stages.append(runner)
        return runner

    def add(self, command: "Command", *args: Any, **kwargs: Any) -> RunningCommand:
        """Prepare ``command`` with the given arguments and register it."""
        return self.register(command.prepare(*args, **kwargs))

    def __enter__(self) -> "RunningPipeline":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if exc_type is None:
            self.run()
        return False

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    @property
    def pids(self) -> list[int | None]:
        return [stage.pid for stage in self._stages]

    @property
    def exit_codes(self) -> list[int | None]:
        """Exit code of every stage, in order."""
        return [stage.exit_code for stage in self._stages]

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

    def run(self) -> "RunningPipeline":
        """Seal the pipeline, spawn every stage and, unless background, wait.

        Raises:
            CommandNotFound: If no stage was registered
            CommandTimeout: If the timeout elapsed
            CommandReturnFailure: If the last stage's exit code is not accepted
        """
        self.spawn()
        if not self.options.background:
            self.wait()
        return self

    def spawn(self) -> "RunningPipeline":
        """Seal the pipeline and launch every stage without waiting."""
        if self._sealed:
            raise ShellRunError(f"pipeline `{self}' has already been started")
        if not self._stages:
            raise CommandNotFound("", "no commands")
        self._sealed = True

        stages = self._stages
        last = len(stages) - 1
        options = self.options

        redirects = self._open_redirects()
        links = [Pipe() for _ in range(last)]
        launched: list[subprocess.Popen] = []
        try:
            for i, stage in enumerate(stages):
                stdin = redirects.stdin if i == 0 else links[i - 1].read_fd
                stdout = redirects.stdout if i == last else links[i].write_fd
                launched.append(stage._launch(
                    stdin=stdin,
                    stdout=stdout,
                    stderr=redirects.stderr,
                    env=options.env,
                    cwd=options.cwd,
                    new_session=options.new_session,
                ))
                # The stage now holds these ends; later stages must not see them
                if i > 0:
                    links[i - 1].close_read()
                if i < last:
                    links[i].close_write()
        except BaseException:
            for link in links:
                link.close()
            redirects.close()
            self._abort(launched)
            raise

        redirects.release_child_ends()
        self._spawned = True
        self.started_at = time.time()
        logger.debug(f"Started pipeline pids={self.pids}: {self}")

        self._start_io(redirects, name=f"pipeline{self.pids[-1]}")
        return self

    def _abort(self, launched: list[subprocess.Popen]) -> None:
        """Kill and reap the stages started before a spawn failure."""
        for process in launched:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        for process in launched:
            process.wait()

    def wait(self, timeout: float | None = None) -> "RunningPipeline":
        """Wait for every stage and enforce the accepted exit codes.

        The timeout bounds the whole pipeline; when it elapses every stage
        gets the graceful-then-forceful treatment.

        Raises:
            CommandTimeout: If termination had to be escalated
            CommandReturnFailure: If the last stage's exit code is not accepted
        """
        timeout = self._begin_wait(timeout)
        if self._waited:
            return self

        self._wait_status(timeout)
        self._check_exit_code()
        return self

    def _wait_status(self, timeout: float | None) -> None:
        processes = [stage._process for stage in self._stages]
        deadline = None if timeout is None else time.monotonic() + timeout

        try:
            for process in processes:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                process.wait(timeout=remaining)
        except subprocess.TimeoutExpired:
            self._timed_out = True
            logger.debug(f"Timeout after {timeout}s, terminating pipeline pids={self.pids}")
            terminate_processes(
                processes,
                groups=[stage._new_session for stage in self._stages],
                polls=self.config.term_polls,
                interval=self.config.term_interval,
                kill_timeout=self.config.kill_timeout,
            )

        for stage in self._stages:
            stage._mark_finished(self._timed_out)
        last = self._stages[-1]
        self._record_exit(last._process.poll())
        logger.debug(f"Pipeline completed exit_codes={self.exit_codes}")

        self._finish_io(self.config.kill_timeout if self._timed_out else None)

        if self._timed_out:
            raise CommandTimeout(timeout)

    # -------------------------------------------------------------------------
    # Display
    # -------------------------------------------------------------------------

    def __str__(self) -> str:
        return " | ".join(str(stage) for stage in self._stages)

    def __repr__(self) -> str:
        return f"<RunningPipeline '{self}' state={self.state}>"
