"""Exception types raised by shellrun.

All errors derive from ShellRunError so callers can catch the whole family.
"""

from __future__ import annotations

__all__ = [
    "ShellRunError",
    "CommandNotFound",
    "CommandReturnFailure",
    "CommandTimeout",
    "InvalidArgument",
]


class ShellRunError(Exception):
    """Base error for the shellrun package."""
    pass


class CommandNotFound(ShellRunError):
    """The program could not be resolved to an executable file.

    Attributes:
        program: The name or path that was looked up
    """

    def __init__(self, program: str, message: str | None = None) -> None:
        self.program = program
        super().__init__(message or f"no command `{program}'")


class CommandReturnFailure(ShellRunError):
    """The child exited with a code outside the accepted set.

    Attributes:
        exit_code: Observed exit code (None when the child was killed by a signal)
        diagnostic: Program, arguments and captured output
    """

    def __init__(self, exit_code: int | None, diagnostic: str) -> None:
        self.exit_code = exit_code
        self.diagnostic = diagnostic
        super().__init__(diagnostic)


class CommandTimeout(ShellRunError):
    """The child was terminated because the wait timeout elapsed."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        super().__init__("execution expired")


class InvalidArgument(ShellRunError, ValueError):
    """Malformed argument or option specification."""
    pass
