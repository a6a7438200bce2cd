"""Shell and Command: the builder surface over the runtime.

    sh = Shell()
    git = sh.command("git")
    git("status", short=True)                    # git status --short
    git.bake("log", oneline=True)("-n", 3)       # git log --oneline -n 3
    sh.command("sleep").with_options(timeout=1)(4)   # raises CommandTimeout

    with sh.pipeline(stdin_bytes="hello") as p:
        p.add(sh.command("cat"))
        p.add(sh.command("wc"), "-c")
    p.stdout_data                                # b"5\\n"
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any

from .arguments import Argument, build_arguments
from .config import Config, get_config
from .options import ExecutionOptions
from .resolver import resolve_program
from .runtime import RunningCommand, RunningPipeline

__all__ = ["Shell", "Command"]


class Shell:
    """Holds the configuration (search path, termination timings) commands use.

    Args:
        config: Configuration to copy (defaults to the global one)
    """

    def __init__(self, config: Config | None = None) -> None:
        self.config = (config or get_config()).copy()

    @property
    def path(self) -> list[str]:
        """Ordered program search path."""
        return self.config.path

    @path.setter
    def path(self, value: str | Sequence[str]) -> None:
        if isinstance(value, (str, os.PathLike)):
            self.config.path = [os.fspath(value)]
        else:
            self.config.path = [os.fspath(entry) for entry in value]

    def command(self, prog: str | os.PathLike[str]) -> "Command":
        """Resolve ``prog`` and return a command template.

        Raises:
            CommandNotFound: If the program cannot be found
        """
        return Command(self, prog)

    cmd = command

    def pipeline(self, **options: Any) -> RunningPipeline:
        """Create an empty pipeline with pipeline-wide options.

        Use it as a context manager, or register stages and call run().
        """
        return RunningPipeline(ExecutionOptions().update(**options), config=self.config)

    def __repr__(self) -> str:
        return f"<Shell path={os.pathsep.join(self.path)}>"


class Command:
    """An un-run program plus baked arguments and options.

    Templates are immutable: bake() and with_options() return new instances.
    Calling a template runs a new RunningCommand.
    """

    def __init__(
        self,
        shell: Shell,
        prog: str | os.PathLike[str],
        *,
        progpath: str | None = None,
        args: Sequence[Argument] = (),
        options: ExecutionOptions | None = None,
    ) -> None:
        self.shell = shell
        self.prog = os.fspath(prog)
        self.progpath = progpath or resolve_program(self.prog, shell.path)
        self.args: tuple[Argument, ...] = tuple(args)
        self.options = options or ExecutionOptions()

    def _derive(self, args: Sequence[Argument], options: ExecutionOptions) -> "Command":
        return Command(
            self.shell,
            self.prog,
            progpath=self.progpath,
            args=args,
            options=options,
        )

    def bake(self, *args: Any, **kwargs: Any) -> "Command":
        """Return a new template with extra arguments baked in."""
        return self._derive(build_arguments(args, kwargs, base=self.args), self.options)

    def with_options(self, **options: Any) -> "Command":
        """Return a new template with the given execution options replaced."""
        return self._derive(self.args, self.options.update(**options))

    def prepare(self, *args: Any, **kwargs: Any) -> RunningCommand:
        """Build an unspawned RunningCommand (e.g. for a pipeline)."""
        return RunningCommand(
            self.prog,
            self.progpath,
            build_arguments(args, kwargs, base=self.args),
            self.options,
            config=self.shell.config,
        )

    def __call__(self, *args: Any, **kwargs: Any) -> RunningCommand:
        """Run the program with the given arguments.

        Raises:
            CommandTimeout: If the configured timeout elapsed
            CommandReturnFailure: If the exit code is not accepted
        """
        return self.prepare(*args, **kwargs).run()

    call = __call__

    def __repr__(self) -> str:
        return f"<Command '{self.progpath}'>"
