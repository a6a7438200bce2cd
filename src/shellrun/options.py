"""Execution options attached to commands and pipelines."""

from __future__ import annotations

import os
import types
from collections.abc import Callable, Iterable, Mapping
from dataclasses import MISSING, dataclass, field, fields, replace
from typing import IO, Any, Union

from .errors import InvalidArgument

__all__ = [
    "ExecutionOptions",
    "Redirect",
    "Sink",
    "STAGE_OPTION_FIELDS",
    "PIPELINE_OPTION_FIELDS",
]

# A path, a raw descriptor, or an object exposing fileno()
Redirect = Union[str, os.PathLike, int, IO[Any]]

# Receives each drained chunk
Sink = Callable[[bytes], None]

# Options a stage may set when it runs inside a pipeline
STAGE_OPTION_FIELDS = frozenset({"env", "cwd", "long_sep", "long_prefix", "new_session"})

# Options a pipeline may set for all of its stages
PIPELINE_OPTION_FIELDS = frozenset({
    "stdin",
    "stdin_bytes",
    "stdout",
    "stderr",
    "stderr_to_stdout",
    "background",
    "env",
    "timeout",
    "cwd",
    "ok_codes",
    "stdout_bufsize",
    "stderr_bufsize",
    "no_stdout",
    "no_stderr",
    "on_stdout",
    "on_stderr",
    "new_session",
})


def _normalize_ok_codes(value: Any) -> frozenset[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        codes: Iterable[Any] = (value,)
    elif isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
        codes = value
    else:
        raise InvalidArgument(f"unsupported ok_codes `{value!r}'")

    result = set()
    for code in codes:
        if not isinstance(code, int) or isinstance(code, bool):
            raise InvalidArgument(f"exit code must be an int, got `{code!r}'")
        result.add(code)
    if not result:
        raise InvalidArgument("ok_codes must not be empty")
    return frozenset(result)


def _check_redirect(name: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool):
        raise InvalidArgument(f"unsupported {name} `{value!r}'")
    if isinstance(value, int):
        if value < 0:
            raise InvalidArgument(f"{name} descriptor must not be negative")
        return
    if isinstance(value, (str, os.PathLike)) or hasattr(value, "fileno"):
        return
    raise InvalidArgument(f"unsupported {name} `{value!r}'")


@dataclass(frozen=True)
class ExecutionOptions:
    """How a command or pipeline is executed.

    Attributes:
        stdin: Input source (path, descriptor or file object)
        stdin_bytes: Literal payload written to the child's stdin
        stdout: Output sink replacing captured stdout
        stderr: Error sink replacing captured stderr
        stderr_to_stdout: Send stderr wherever stdout goes
        background: Return right after spawn; wait() must be called later
        env: Replaces (does not extend) the inherited environment (read-only)
        timeout: Seconds to wait before terminating the child
        cwd: Working directory of the child
        ok_codes: Exit codes treated as success
        stdout_bufsize: 0 = lines, N > 0 = N-byte chunks (with on_stdout)
        stderr_bufsize: Same for stderr (with on_stderr)
        no_stdout: Do not accumulate stdout internally
        no_stderr: Do not accumulate stderr internally
        on_stdout: Callback invoked with each stdout chunk
        on_stderr: Callback invoked with each stderr chunk
        long_sep: Separator between long option name and value (None = two tokens)
        long_prefix: Prefix for long option names
        new_session: Start the child in a new session and signal its process group
    """

    stdin: Redirect | None = None
    stdin_bytes: bytes | str | None = None
    stdout: Redirect | None = None
    stderr: Redirect | None = None
    stderr_to_stdout: bool = False
    background: bool = False
    env: Mapping[str, Any] | None = None
    timeout: float | None = None
    cwd: str | os.PathLike[str] | None = None
    ok_codes: frozenset[int] = field(default_factory=lambda: frozenset({0}))
    stdout_bufsize: int | None = 0
    stderr_bufsize: int | None = 0
    no_stdout: bool = False
    no_stderr: bool = False
    on_stdout: Sink | None = None
    on_stderr: Sink | None = None
    long_sep: str | None = "="
    long_prefix: str = "--"
    new_session: bool = False

    def __post_init__(self) -> None:
        # frozen: normalized values go through object.__setattr__
        set_ = object.__setattr__

        _check_redirect("stdin", self.stdin)
        _check_redirect("stdout", self.stdout)
        _check_redirect("stderr", self.stderr)

        if self.stdin is not None and self.stdin_bytes is not None:
            raise InvalidArgument("stdin and stdin_bytes are mutually exclusive")
        if self.stderr is not None and self.stderr_to_stdout:
            raise InvalidArgument("stderr and stderr_to_stdout are mutually exclusive")

        if isinstance(self.stdin_bytes, str):
            set_(self, "stdin_bytes", self.stdin_bytes.encode("utf-8"))
        elif isinstance(self.stdin_bytes, bytearray):
            set_(self, "stdin_bytes", bytes(self.stdin_bytes))
        elif self.stdin_bytes is not None and not isinstance(self.stdin_bytes, bytes):
            raise InvalidArgument(f"unsupported stdin_bytes `{self.stdin_bytes!r}'")

        if self.timeout is not None:
            if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)):
                raise InvalidArgument(f"unsupported timeout `{self.timeout!r}'")
            if self.timeout <= 0:
                raise InvalidArgument("timeout must be positive")

        for name in ("stdout_bufsize", "stderr_bufsize"):
            size = getattr(self, name)
            if size is None:
                continue
            if isinstance(size, bool) or not isinstance(size, int) or size < 0:
                raise InvalidArgument(f"{name} must be None or a non-negative int")

        for name in ("on_stdout", "on_stderr"):
            sink = getattr(self, name)
            if sink is not None and not callable(sink):
                raise InvalidArgument(f"{name} must be callable")

        if self.env is not None:
            if not isinstance(self.env, Mapping):
                raise InvalidArgument(f"unsupported env `{self.env!r}'")
            set_(self, "env", types.MappingProxyType({str(k): str(v) for k, v in self.env.items()}))

        set_(self, "ok_codes", _normalize_ok_codes(self.ok_codes))

    def __hash__(self) -> int:
        values = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "env" and value is not None:
                value = frozenset(value.items())
            values.append(value)
        return hash(tuple(values))

    def update(self, **changes: Any) -> "ExecutionOptions":
        """Return a copy with the given fields replaced (re-validated)."""
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise InvalidArgument(f"unsupported options `{', '.join(sorted(unknown))}'")
        return replace(self, **changes)

    def explicit_fields(self) -> set[str]:
        """Names of fields that differ from their defaults."""
        names = set()
        for f in fields(self):
            if f.default_factory is not MISSING:
                default = f.default_factory()
            else:
                default = f.default
            if getattr(self, f.name) != default:
                names.add(f.name)
        return names

    def check_allowed(self, allowed: frozenset[str], context: str) -> None:
        """Raise InvalidArgument if a field outside ``allowed`` is set."""
        extra = self.explicit_fields() - allowed
        if extra:
            raise InvalidArgument(
                f"unsupported options within {context} `{', '.join(sorted(extra))}'"
            )

    def effective_bufsize(self, stream: str) -> int | None:
        """Chunking policy for ``stream`` ("stdout" or "stderr").

        The configured size only applies when a sink is attached; otherwise
        chunks are best-effort.
        """
        if getattr(self, f"on_{stream}") is None:
            return None
        return getattr(self, f"{stream}_bufsize")
