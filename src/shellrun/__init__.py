"""shellrun - compose and run shell-style commands and pipelines from Python.

Environment variables:
    SHELLRUN_PATH: program search path (default: PATH)
    SHELLRUN_TERM_POLLS / SHELLRUN_TERM_INTERVAL: grace window after SIGTERM
    SHELLRUN_LOG_DEBUG: debug logging to a temp file

Usage:
    from shellrun import Shell

    sh = Shell()
    ls = sh.command("ls")
    print(ls("-la").stdout_data.decode())
"""

__version__ = "0.1.0"

from .arguments import Named, Positional, build_arguments, compile_argument, compile_arguments
from .config import Config, get_config, load_config, reload_config
from .errors import (
    CommandNotFound,
    CommandReturnFailure,
    CommandTimeout,
    InvalidArgument,
    ShellRunError,
)
from .logging_config import setup_logging
from .options import ExecutionOptions
from .resolver import resolve_program
from .runtime import RunningCommand, RunningPipeline, StreamReader
from .shell import Command, Shell

__all__ = [
    "__version__",
    "Shell",
    "Command",
    "RunningCommand",
    "RunningPipeline",
    "StreamReader",
    "ExecutionOptions",
    "Positional",
    "Named",
    "build_arguments",
    "compile_argument",
    "compile_arguments",
    "resolve_program",
    "Config",
    "get_config",
    "load_config",
    "reload_config",
    "setup_logging",
    "ShellRunError",
    "CommandNotFound",
    "CommandReturnFailure",
    "CommandTimeout",
    "InvalidArgument",
]
