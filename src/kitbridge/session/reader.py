"""Reader worker — decode the script's stdout into UI events."""

from __future__ import annotations

import logging
import queue
import threading

from kitbridge.executor.launcher import ScriptReader
from kitbridge.protocol.codec import DecodeError, ParseIssueKind, decode
from kitbridge.protocol.models import Arg, Browse, Div, Exit, Hide, Message, Submit
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
from kitbridge.session.helpers import extract_error_message
from kitbridge.session.recorder import ProtocolRecorder

logger = logging.getLogger(__name__)

#: Maximum bytes per line from script stdout (1 MB).
DEFAULT_MAX_LINE_BYTES = 1_048_576

#: Seconds to wait for the child's exit status once stdout has closed.
_EXIT_STATUS_WAIT = 2.0

#: Seconds to wait for the stderr capture to finish after exit.
_STDERR_DRAIN_WAIT = 0.1


def to_prompt_message(message: Message) -> PromptMessage | None:
    """Project a child→host :data:`Message` onto the UI event it causes.

    Returns ``None`` for messages that have no UI meaning when sent by
    the child (``submit``).
    """
    match message:
        case Arg(id=prompt_id, placeholder=placeholder, choices=choices):
            return ShowArg(
                id=prompt_id,
                placeholder=placeholder,
                choices=tuple(
                    choice if choice.semantic_id else choice.with_semantic_id(index)
                    for index, choice in enumerate(choices)
                ),
            )
        case Div(id=prompt_id, html=html, tailwind=tailwind):
            return ShowDiv(id=prompt_id, html=html, tailwind=tailwind)
        case Hide():
            return HideWindow()
        case Browse(url=url):
            return OpenBrowser(url=url)
        case Exit(code=code, message=text):
            return ScriptExit(code=code, message=text)
        case Submit():
            return None
    return None


class ReaderWorker:
    """Owns the read half of a session on a dedicated thread.

    The only producer of the inbound queue.  Every successfully decoded
    line becomes at most one :data:`PromptMessage`, pushed in the order the
    script wrote it.  A bad line is logged and skipped.  The worker always
    finishes by pushing exactly one :class:`ScriptExit`.
    """

    def __init__(
        self,
        reader: ScriptReader,
        inbound: queue.Queue[PromptMessage],
        *,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        report_protocol_errors: bool = True,
        recorder: ProtocolRecorder | None = None,
    ) -> None:
        self._reader = reader
        self._inbound = inbound
        self._max_line_bytes = max_line_bytes
        self._report_protocol_errors = report_protocol_errors
        self._recorder = recorder
        self._thread = threading.Thread(
            target=self.run,
            name=f"reader-{reader.script_path}",
            daemon=True,
        )

    @property
    def script_path(self) -> str:
        return self._reader.script_path

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def run(self) -> None:
        """Read-decode-forward loop.  Never raises."""
        logger.debug("%s: reader started", self.script_path)
        try:
            exit_event = self._read_loop()
        except Exception:
            logger.exception("%s: reader loop error", self.script_path)
            exit_event = self._fallback_eof_events()
        finally:
            self._reader.close()

        for event in exit_event:
            self._inbound.put(event)
        logger.debug("%s: reader exiting", self.script_path)

    # ------------------------------------------------------------------ #
    # Internal
    # ------------------------------------------------------------------ #

    def _read_loop(self) -> list[PromptMessage]:
        """Forward events until the script exits; return the closing events."""
        while True:
            try:
                raw = self._reader.read_line(self._max_line_bytes + 1)
            except (OSError, ValueError) as exc:
                logger.warning("%s: error reading stdout: %s", self.script_path, exc)
                return self._eof_events()

            if not raw:
                logger.debug("%s: stdout closed (EOF)", self.script_path)
                return self._eof_events()

            if len(raw) > self._max_line_bytes:
                if not raw.endswith(b"\n"):
                    self._reader.skip_line()
                logger.warning(
                    "%s: line exceeds %d bytes, skipping",
                    self.script_path,
                    self._max_line_bytes,
                )
                continue

            line = raw.decode(errors="replace").strip()
            if not line:
                continue

            event = self._handle_line(line)
            if event is None:
                continue
            if isinstance(event, ScriptExit):
                return [event]
            self._inbound.put(event)

    def _handle_line(self, line: str) -> PromptMessage | None:
        try:
            message = decode(line)
        except DecodeError as exc:
            self._record(exc.message_type or "?", line)
            return self._on_decode_error(exc)

        self._record(message.type, line)
        event = to_prompt_message(message)
        if event is None:
            logger.warning(
                "%s: ignoring '%s' message sent by script",
                self.script_path,
                message.type,
            )
        return event

    def _on_decode_error(self, exc: DecodeError) -> PromptMessage | None:
        logger.warning(
            "%s: skipping line (%s): %s",
            self.script_path,
            exc,
            exc.raw_preview,
        )
        if not self._report_protocol_errors:
            return None

        match exc.kind:
            case ParseIssueKind.UNKNOWN_TYPE:
                summary = f"Unknown '{exc.message_type}' message type from script"
                severity = "warning"
            case ParseIssueKind.INVALID_PAYLOAD:
                summary = f"Invalid '{exc.message_type}' message payload from script"
                severity = "error"
            case _:
                return None

        details = [f"Script: {self.script_path}", f"Type: {exc.message_type}"]
        if exc.error:
            details.append(f"Error: {exc.error}")
        if exc.raw_preview:
            details.append(f"Preview: {exc.raw_preview}")
        return ProtocolError(
            summary=summary,
            details="\n".join(details),
            severity=severity,
            script_path=self.script_path,
        )

    def _fallback_eof_events(self) -> list[PromptMessage]:
        try:
            return self._eof_events()
        except Exception:
            logger.exception("%s: cannot collect exit status", self.script_path)
            return [ScriptExit()]

    def _eof_events(self) -> list[PromptMessage]:
        """Events to emit once stdout has closed: optional error, then exit."""
        exit_code = self._reader.wait_exit_code(timeout=_EXIT_STATUS_WAIT)
        logger.debug("%s: exit code %s", self.script_path, exit_code)

        events: list[PromptMessage] = []
        if exit_code is not None and exit_code != 0:
            stderr_text = ""
            if self._reader.stderr is not None:
                stderr_text = self._reader.stderr.get_contents(_STDERR_DRAIN_WAIT)
            events.append(
                ScriptError(
                    error_message=extract_error_message(stderr_text, exit_code),
                    stderr_output=stderr_text or None,
                    exit_code=exit_code,
                    script_path=self.script_path,
                )
            )
        events.append(ScriptExit())
        return events

    def _record(self, message_type: str, line: str) -> None:
        if self._recorder is not None:
            self._recorder.record("recv", message_type, line)
