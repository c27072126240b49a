"""Shared constants for the kitbridge runtime."""

from __future__ import annotations

#: Maximum characters of a raw protocol line included in logs and diagnostics.
MAX_RAW_LOG_PREVIEW = 200

#: Message sent to a script when the user cancels the session.
CANCEL_EXIT_CODE = 1
CANCEL_EXIT_MESSAGE = "Cancelled by user"

#: Default interpreter argv by script file suffix.
DEFAULT_RUNTIMES: dict[str, list[str]] = {
    ".py": ["python3"],
    ".js": ["node"],
    ".ts": ["bun", "run"],
}
