"""Runtime module for child process lifecycles and pipelines.

This module provides the single-process runner, the pipeline runner and the
background stream readers that drain their output.
"""

from __future__ import annotations

from .running_command import RunningCommand
from .running_pipeline import RunningPipeline
from .stream_reader import StreamReader

__all__ = [
    "RunningCommand",
    "RunningPipeline",
    "StreamReader",
]
