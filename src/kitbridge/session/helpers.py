"""Shared helpers for turning script stderr into readable errors."""

from __future__ import annotations

import re

#: Line prefixes that usually carry the actual error of a failed script.
_ERROR_PREFIX_RE = re.compile(
    r"^(?:Error|TypeError|ReferenceError|SyntaxError|error|[A-Za-z]+Error):"
)

_MAX_MESSAGE_CHARS = 200


def format_stderr_preview(stderr_text: str, max_lines: int = 5) -> str:
    """Extract and format the last N non-empty lines from stderr output."""
    lines = [line for line in stderr_text.split("\n") if line.strip()]
    last = lines[-max_lines:] if len(lines) > max_lines else lines
    return "\n  ".join(last)


def extract_error_message(stderr_text: str, exit_code: int | None = None) -> str:
    """Pick the most useful single line out of a failed script's stderr."""
    lines = [line.strip() for line in stderr_text.splitlines()]

    for line in lines:
        if _ERROR_PREFIX_RE.match(line):
            return line
        if "error:" in line and not line.startswith("at "):
            return line

    for line in lines:
        if line:
            if len(line) > _MAX_MESSAGE_CHARS:
                return line[:_MAX_MESSAGE_CHARS] + "..."
            return line

    if exit_code is not None:
        return f"Script exited with code {exit_code}"
    return "Script execution failed"
