"""Process launch, process groups and stderr capture."""

from kitbridge.executor.launcher import (
    LaunchError,
    ScriptReader,
    ScriptWriter,
    Session,
    SessionError,
    build_command,
    launch,
)
from kitbridge.executor.registry import ProcessRegistry
from kitbridge.executor.stderr_buffer import StderrBuffer, StderrCapture

__all__ = [
    "LaunchError",
    "ProcessRegistry",
    "ScriptReader",
    "ScriptWriter",
    "Session",
    "SessionError",
    "StderrBuffer",
    "StderrCapture",
    "build_command",
    "launch",
]
