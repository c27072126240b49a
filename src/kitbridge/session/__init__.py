"""Reader and writer workers, controller and reaper for script sessions."""

from kitbridge.session.controller import SessionController, SessionState
from kitbridge.session.events import (
    HideWindow,
    OpenBrowser,
    PromptMessage,
    ProtocolError,
    ScriptError,
    ScriptExit,
    ShowArg,
    ShowDiv,
)
from kitbridge.session.reaper import PidSlot, ProcessReaper, SessionHandles
from kitbridge.session.reader import ReaderWorker
from kitbridge.session.recorder import ProtocolRecorder
from kitbridge.session.writer import WriterWorker

__all__ = [
    "HideWindow",
    "OpenBrowser",
    "PidSlot",
    "ProcessReaper",
    "PromptMessage",
    "ProtocolError",
    "ProtocolRecorder",
    "ReaderWorker",
    "ScriptError",
    "ScriptExit",
    "SessionController",
    "SessionHandles",
    "SessionState",
    "ShowArg",
    "ShowDiv",
    "WriterWorker",
]
