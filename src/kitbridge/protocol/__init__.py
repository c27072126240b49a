"""Script protocol: wire models and the line codec."""

from kitbridge.protocol.codec import (
    DecodeError,
    ParseIssueKind,
    decode,
    encode,
    log_preview,
)
from kitbridge.protocol.models import (
    Arg,
    Browse,
    Choice,
    Div,
    Exit,
    Hide,
    Message,
    Submit,
)

__all__ = [
    "Arg",
    "Browse",
    "Choice",
    "DecodeError",
    "Div",
    "Exit",
    "Hide",
    "Message",
    "ParseIssueKind",
    "Submit",
    "decode",
    "encode",
    "log_preview",
]
