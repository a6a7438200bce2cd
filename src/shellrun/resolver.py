"""Program path resolution against an explicit search list."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence

from .errors import CommandNotFound

__all__ = ["resolve_program", "is_executable_file"]

logger = logging.getLogger(__name__)


def is_executable_file(path: str) -> bool:
    """True if ``path`` is a regular file the current user may execute."""
    return os.path.isfile(path) and os.access(path, os.X_OK)


def resolve_program(prog: str | os.PathLike[str], search_path: Sequence[str]) -> str:
    """Map a program name to an absolute executable path.

    Absolute paths are checked as-is; anything else is joined with each
    directory of ``search_path`` in order and the first executable wins.

    Args:
        prog: Program name or absolute path
        search_path: Ordered directories to search

    Returns:
        Absolute path of the executable

    Raises:
        CommandNotFound: If nothing executable was found
    """
    prog = os.fspath(prog)
    if not prog:
        raise CommandNotFound(prog, "no command `'")

    if os.path.isabs(prog):
        if is_executable_file(prog):
            return prog
        raise CommandNotFound(prog)

    for directory in search_path:
        candidate = os.path.join(directory, prog)
        if is_executable_file(candidate):
            resolved = os.path.abspath(candidate)
            logger.debug(f"Resolved program {prog} -> {resolved}")
            return resolved

    raise CommandNotFound(prog)
