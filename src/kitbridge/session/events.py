"""Pydantic v2 models for UI-facing prompt events."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

from kitbridge.protocol.models import Choice


class _EventBase(BaseModel):
    """Common config shared by every prompt event."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class ShowArg(_EventBase):
    """Display a choice prompt."""

    kind: Literal["show_arg"] = "show_arg"
    id: str = Field(description="Prompt instance id")
    placeholder: str
    choices: tuple[Choice, ...] = ()


class ShowDiv(_EventBase):
    """Display an HTML panel."""

    kind: Literal["show_div"] = "show_div"
    id: str = Field(description="Prompt instance id")
    html: str
    tailwind: str | None = None


class HideWindow(_EventBase):
    """Hide the window; the session stays alive."""

    kind: Literal["hide_window"] = "hide_window"


class OpenBrowser(_EventBase):
    """Open a URL outside the host."""

    kind: Literal["open_browser"] = "open_browser"
    url: str


class ScriptExit(_EventBase):
    """The script has finished; always the last event of a session."""

    kind: Literal["script_exit"] = "script_exit"
    code: int | None = Field(
        default=None,
        description="Exit code the script reported, if it sent an exit message",
    )
    message: str | None = None


class ScriptError(_EventBase):
    """The script exited with a non-zero status."""

    kind: Literal["script_error"] = "script_error"
    error_message: str = Field(description="Most relevant line from stderr")
    stderr_output: str | None = Field(
        default=None,
        description="Buffered tail of the script's stderr",
    )
    exit_code: int | None = None
    script_path: str


class ProtocolError(_EventBase):
    """A recoverable protocol diagnostic (unknown type or bad payload)."""

    kind: Literal["protocol_error"] = "protocol_error"
    summary: str
    details: str | None = None
    severity: Literal["warning", "error"] = "warning"
    script_path: str


def _event_discriminator(v: Any) -> str:
    """Extract the discriminator value from raw data or a model instance."""
    if isinstance(v, dict):
        return str(v.get("kind", ""))
    return str(getattr(v, "kind", ""))


PromptMessage = Annotated[
    Annotated[ShowArg, Tag("show_arg")]
    | Annotated[ShowDiv, Tag("show_div")]
    | Annotated[HideWindow, Tag("hide_window")]
    | Annotated[OpenBrowser, Tag("open_browser")]
    | Annotated[ScriptExit, Tag("script_exit")]
    | Annotated[ScriptError, Tag("script_error")]
    | Annotated[ProtocolError, Tag("protocol_error")],
    Discriminator(_event_discriminator),
]
"""Discriminated union of all events the reader forwards to the UI."""
