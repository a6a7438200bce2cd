"""Command-line argument compilation.

Call-site values are turned into a tagged representation first
(Positional / Named) and then compiled into argv tokens:

    Positional("status")              -> ["status"]
    Named("v", True)                  -> ["-v"]
    Named("all", True)                -> ["--all"]
    Named("n", 5)                     -> ["-n5"]
    Named("untracked-files", "no")    -> ["--untracked-files=no"]
    Named("depth", 1), long_sep=None  -> ["--depth", "1"]
    Named("force", False)             -> []
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from .errors import InvalidArgument

__all__ = [
    "Argument",
    "Positional",
    "Named",
    "compile_argument",
    "compile_arguments",
    "build_arguments",
]


@dataclass(frozen=True)
class Positional:
    """A bare argument, passed through as ``str(value)``."""

    value: Any


@dataclass(frozen=True)
class Named:
    """An option argument.

    Attributes:
        key: Option name without prefix ("v", "all", "untracked-files")
        value: True/False/None, a scalar, or a callable resolved at compile time
    """

    key: str
    value: Any = True

    def __post_init__(self) -> None:
        if not isinstance(self.key, str):
            raise InvalidArgument(
                f"unsupported option type `{self.key!r} ({type(self.key).__name__})'"
            )
        if not self.key:
            raise InvalidArgument("option name must not be empty")


Argument = Union[Positional, Named]


def compile_argument(
    arg: Argument,
    *,
    long_sep: str | None = "=",
    long_prefix: str = "--",
) -> list[str]:
    """Compile one argument into zero, one or two tokens.

    Args:
        arg: Argument to compile
        long_sep: Separator between a long option and its value; None emits
            the value as a separate token
        long_prefix: Prefix for options with multi-character names

    Returns:
        List of argv tokens
    """
    if isinstance(arg, Positional):
        return [str(arg.value)]
    if not isinstance(arg, Named):
        raise InvalidArgument(f"unsupported argument `{arg!r}'")

    value = arg.value
    if callable(value):
        value = value()
    if value is None or value is False:
        return []

    if len(arg.key) == 1:
        if value is True:
            return [f"-{arg.key}"]
        return [f"-{arg.key}{value}"]

    if value is True:
        return [f"{long_prefix}{arg.key}"]
    if long_sep is None:
        return [f"{long_prefix}{arg.key}", str(value)]
    return [f"{long_prefix}{arg.key}{long_sep}{value}"]


def compile_arguments(
    args: Iterable[Argument],
    *,
    long_sep: str | None = "=",
    long_prefix: str = "--",
) -> list[str]:
    """Compile a sequence of arguments into a flat token list."""
    tokens: list[str] = []
    for arg in args:
        tokens.extend(compile_argument(arg, long_sep=long_sep, long_prefix=long_prefix))
    return tokens


def build_arguments(
    args: Iterable[Any] = (),
    kwargs: Mapping[str, Any] | None = None,
    base: Iterable[Argument] = (),
) -> list[Argument]:
    """Convert call-site values into tagged arguments.

    Positional values become Positional, mappings contribute Named entries with
    their keys used verbatim, and keyword arguments contribute Named entries
    with underscores in long names turned into hyphens. Re-specifying an
    option replaces its value at the position where it first appeared.

    Args:
        args: Positional call-site values
        kwargs: Keyword call-site values
        base: Previously built arguments (e.g. baked ones) to extend

    Returns:
        New list of arguments
    """
    result: list[Argument] = []
    named_index: dict[str, int] = {}

    def add(arg: Argument) -> None:
        if isinstance(arg, Named):
            if arg.key in named_index:
                result[named_index[arg.key]] = arg
                return
            named_index[arg.key] = len(result)
        result.append(arg)

    for arg in base:
        add(arg)

    for value in args:
        if isinstance(value, (Positional, Named)):
            add(value)
        elif isinstance(value, Mapping):
            for key, item in value.items():
                add(Named(key, item))
        elif value is None:
            raise InvalidArgument("positional argument must not be None")
        else:
            add(Positional(value))

    for key, value in (kwargs or {}).items():
        add(Named(key.replace("_", "-") if len(key) > 1 else key, value))

    return result
