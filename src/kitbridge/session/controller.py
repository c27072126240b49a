"""Session controller — the UI's only handle on a running script."""

from __future__ import annotations

import enum
import logging
import queue
from collections.abc import Mapping, Sequence
from pathlib import Path

from kitbridge.config.models import KitbridgeConfig
from kitbridge.executor.launcher import SessionError, launch
from kitbridge.executor.registry import ProcessRegistry
from kitbridge.executor.stderr_buffer import StderrBuffer
from kitbridge.protocol.models import Submit
from kitbridge.session.events import (
    HideWindow,
    PromptMessage,
    ScriptExit,
    ShowArg,
    ShowDiv,
)
from kitbridge.session.reader import ReaderWorker
from kitbridge.session.reaper import PidSlot, ProcessReaper, SessionHandles
from kitbridge.session.recorder import ProtocolRecorder
from kitbridge.session.writer import OutboundQueue, WriterWorker

logger = logging.getLogger(__name__)


class SessionState(enum.StrEnum):
    """Prompt state as seen by the UI."""

    IDLE = "idle"
    PROMPTING = "prompting"


class SessionController:
    """Runs one script session at a time on behalf of a UI.

    The UI calls :meth:`poll` every tick and :meth:`submit` on user action;
    neither ever blocks on the child process.  State changes only in
    response to events drained from the reader, never because the user
    answered: after :meth:`submit` the last prompt stays current until the
    script speaks again.  When several prompts arrive unanswered, the most
    recent one wins.
    """

    def __init__(
        self,
        config: KitbridgeConfig | None = None,
        *,
        registry: ProcessRegistry | None = None,
        reaper: ProcessReaper | None = None,
    ) -> None:
        self._config = config if config is not None else KitbridgeConfig()
        self._registry = registry
        self._reaper = reaper or ProcessReaper(
            grace=self._config.session.term_grace,
            poll_interval=self._config.session.poll_interval,
            registry=registry,
        )
        self._handles: SessionHandles | None = None
        self._state = SessionState.IDLE
        self._active_prompt_id: str | None = None
        self._window_visible = False

    # ------------------------------------------------------------------ #
    # Public properties
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active_prompt_id(self) -> str | None:
        """Id of the prompt currently shown, or ``None`` when idle."""
        return self._active_prompt_id

    @property
    def window_visible(self) -> bool:
        return self._window_visible

    @property
    def is_active(self) -> bool:
        return self._handles is not None

    @property
    def pid(self) -> int | None:
        if self._handles is None:
            return None
        return self._handles.pid_slot.peek()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(
        self,
        executable_path: str | Path,
        *,
        args: Sequence[str] = (),
        env: Mapping[str, str] | None = None,
        cwd: str | Path | None = None,
    ) -> int:
        """Launch *executable_path* and wire up both workers.

        Returns the child's pid.

        Raises:
            SessionError: If a session is already active.
            LaunchError: If the script cannot be spawned.
        """
        if self._handles is not None:
            msg = f"A script session is already active (PID {self.pid})"
            raise SessionError(msg)

        cfg = self._config
        session = launch(
            executable_path,
            args=args,
            runtimes=cfg.runtimes,
            env=env,
            cwd=cwd,
            stderr_buffer=StderrBuffer(cfg.stderr.max_lines, cfg.stderr.max_bytes),
        )
        if self._registry is not None:
            self._registry.register(session.pid, session.script_path)

        recorder: ProtocolRecorder | None = None
        if cfg.session.record:
            try:
                recorder = ProtocolRecorder(session.script_path, cfg.transcripts_dir)
            except OSError as exc:
                logger.warning("Transcript disabled, cannot open file: %s", exc)

        script_writer, script_reader = session.split()
        inbound: queue.Queue[PromptMessage] = queue.Queue()
        outbound: OutboundQueue = queue.Queue()

        reader = ReaderWorker(
            script_reader,
            inbound,
            max_line_bytes=cfg.session.max_line_bytes,
            report_protocol_errors=cfg.session.report_protocol_errors,
            recorder=recorder,
        )
        writer = WriterWorker(
            script_writer,
            outbound,
            script_path=session.script_path,
            recorder=recorder,
        )
        self._handles = SessionHandles(
            pid_slot=PidSlot(session.pid),
            script_path=session.script_path,
            inbound=inbound,
            outbound=outbound,
            reader=reader,
            writer=writer,
            process=session.process,
            recorder=recorder,
        )
        self._clear_view()

        reader.start()
        writer.start()
        logger.debug("%s: session started (PID %d)", session.script_path, session.pid)
        return session.pid

    def cancel(self) -> bool:
        """Cancel the active session.  A no-op (returning ``False``) if none.

        Returns without waiting for the child to die; termination finishes
        in the background.
        """
        handles = self._handles
        if handles is None:
            return False
        self._handles = None
        self._clear_view()
        return self._reaper.cancel(handles)

    def reset(self) -> None:
        """Application reset: cancel any session and return to a blank view."""
        self.cancel()
        self._clear_view()

    def shutdown(self, timeout: float | None = None) -> bool:
        """Host exit: reset, then wait for background process terminations.

        Blocks for at most the configured grace period per session (or
        *timeout*).  Returns ``True`` if every terminated group is settled.
        """
        self.reset()
        return self._reaper.join(timeout)

    # ------------------------------------------------------------------ #
    # UI surface
    # ------------------------------------------------------------------ #

    def poll(self) -> list[PromptMessage]:
        """Drain every event queued by the reader without blocking."""
        handles = self._handles
        if handles is None or handles.inbound is None:
            return []

        events: list[PromptMessage] = []
        while True:
            try:
                event = handles.inbound.get_nowait()
            except queue.Empty:
                break
            events.append(event)
            self._apply(event)
            if isinstance(event, ScriptExit):
                self._teardown(handles)
                break
        return events

    def submit(self, prompt_id: str, value: str | None = None) -> bool:
        """Queue a ``submit`` for the script.

        The id is not checked against shown prompts.  Returns ``False``
        (and drops the message) when there is no live writer.
        """
        handles = self._handles
        if handles is None or handles.outbound is None:
            logger.debug("No active session, dropping submit for '%s'", prompt_id)
            return False
        if not handles.writer.is_alive():
            logger.debug(
                "%s: writer has stopped, dropping submit for '%s'",
                handles.script_path,
                prompt_id,
            )
            return False
        handles.outbound.put(Submit(id=prompt_id, value=value))
        return True

    # ------------------------------------------------------------------ #
    # Internal
    # ------------------------------------------------------------------ #

    def _apply(self, event: PromptMessage) -> None:
        match event:
            case ShowArg(id=prompt_id) | ShowDiv(id=prompt_id):
                if self._state is SessionState.PROMPTING:
                    logger.debug(
                        "Prompt '%s' superseded by '%s'",
                        self._active_prompt_id,
                        prompt_id,
                    )
                self._state = SessionState.PROMPTING
                self._active_prompt_id = prompt_id
                self._window_visible = True
            case HideWindow() | ScriptExit():
                self._clear_view()

    def _teardown(self, handles: SessionHandles) -> None:
        if self._handles is handles:
            self._handles = None
        self._reaper.cancel(handles, notify=False)

    def _clear_view(self) -> None:
        self._state = SessionState.IDLE
        self._active_prompt_id = None
        self._window_visible = False
