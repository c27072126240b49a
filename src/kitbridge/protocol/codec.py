"""Line codec — one protocol message per line of JSON."""

from __future__ import annotations

import enum
import json
from typing import Any

from pydantic import TypeAdapter, ValidationError

from kitbridge.constants import MAX_RAW_LOG_PREVIEW
from kitbridge.protocol.models import KNOWN_TYPES, Message

_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)


class ParseIssueKind(enum.StrEnum):
    """Why a line could not be decoded."""

    PARSE_ERROR = "parse_error"
    MISSING_TYPE = "missing_type"
    UNKNOWN_TYPE = "unknown_type"
    INVALID_PAYLOAD = "invalid_payload"


class DecodeError(Exception):
    """A single protocol line could not be turned into a :data:`Message`.

    Callers log it and move on to the next line.
    """

    def __init__(
        self,
        kind: ParseIssueKind,
        raw_preview: str,
        message_type: str | None = None,
        error: str | None = None,
    ) -> None:
        self.kind = kind
        self.raw_preview = raw_preview
        self.message_type = message_type
        self.error = error
        super().__init__(self._describe())

    def _describe(self) -> str:
        match self.kind:
            case ParseIssueKind.PARSE_ERROR:
                return f"malformed JSON: {self.error}"
            case ParseIssueKind.MISSING_TYPE:
                return "message has no 'type' field"
            case ParseIssueKind.UNKNOWN_TYPE:
                return f"unknown message type '{self.message_type}'"
            case _:
                return f"invalid '{self.message_type}' payload: {self.error}"


def log_preview(raw: str, limit: int = MAX_RAW_LOG_PREVIEW) -> str:
    """Truncate *raw* so large payloads never end up in logs verbatim."""
    if len(raw) > limit:
        return raw[:limit]
    return raw


def encode(message: Message) -> str:
    """Serialize *message* to a single line of JSON (no trailing newline)."""
    line = message.model_dump_json(by_alias=True, exclude_none=True)
    if "\n" in line or "\r" in line:
        msg = "encoded message spans multiple lines"
        raise ValueError(msg)
    return line


def decode(line: str) -> Message:
    """Parse one line into a :data:`Message`.

    Raises:
        DecodeError: For any line that is not a valid, known message.
            Unknown extra fields on a known message are ignored.
    """
    preview = log_preview(line)

    try:
        raw: Any = json.loads(line)
    except json.JSONDecodeError as exc:
        raise DecodeError(ParseIssueKind.PARSE_ERROR, preview, error=str(exc)) from exc

    if not isinstance(raw, dict):
        raise DecodeError(
            ParseIssueKind.PARSE_ERROR,
            preview,
            error=f"expected a JSON object, got {type(raw).__name__}",
        )

    message_type = raw.get("type")
    if not isinstance(message_type, str):
        raise DecodeError(ParseIssueKind.MISSING_TYPE, preview)

    if message_type not in KNOWN_TYPES:
        raise DecodeError(ParseIssueKind.UNKNOWN_TYPE, preview, message_type=message_type)

    try:
        return _MESSAGE_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(s) for s in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise DecodeError(
            ParseIssueKind.INVALID_PAYLOAD,
            preview,
            message_type=message_type,
            error=errors,
        ) from exc
