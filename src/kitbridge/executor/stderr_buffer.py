"""Stderr capture — tee a script's stderr into the log and a ring buffer.

The buffer keeps the most recent output for post-mortem error reporting
when a script exits with a non-zero status.
"""

from __future__ import annotations

import collections
import logging
import threading
from typing import IO

logger = logging.getLogger(__name__)

#: Default maximum number of lines to buffer.
DEFAULT_MAX_LINES = 500

#: Default maximum total bytes to buffer (approximate).
DEFAULT_MAX_BYTES = 4 * 1024


class StderrBuffer:
    """Thread-safe ring buffer of stderr lines (newest last)."""

    def __init__(
        self,
        max_lines: int = DEFAULT_MAX_LINES,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        self._max_lines = max_lines
        self._max_bytes = max_bytes
        self._lines: collections.deque[str] = collections.deque()
        self._bytes = 0
        self._lock = threading.Lock()

    def push_line(self, line: str) -> None:
        """Append *line*, evicting the oldest lines to stay within limits."""
        size = len(line.encode())
        with self._lock:
            while self._lines and self._bytes + size > self._max_bytes:
                self._bytes -= len(self._lines.popleft().encode())
            while self._lines and len(self._lines) >= self._max_lines:
                self._bytes -= len(self._lines.popleft().encode())
            self._lines.append(line)
            self._bytes += size

    def get_contents(self) -> str:
        with self._lock:
            return "\n".join(self._lines)

    def get_last_n_lines(self, n: int) -> list[str]:
        with self._lock:
            return list(self._lines)[-n:] if n > 0 else []

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()
            self._bytes = 0

    @property
    def byte_count(self) -> int:
        return self._bytes

    def __len__(self) -> int:
        return len(self._lines)


class StderrCapture:
    """Background thread draining a stderr stream into a :class:`StderrBuffer`.

    Call :meth:`get_contents` with a timeout after the script exits so the
    snapshot includes everything the script wrote before closing stderr.
    """

    def __init__(
        self,
        stream: IO[bytes],
        script_path: str,
        buffer: StderrBuffer | None = None,
    ) -> None:
        self.buffer = buffer if buffer is not None else StderrBuffer()
        self._stream = stream
        self._script_path = script_path
        self._thread = threading.Thread(
            target=self._run,
            name=f"stderr-{script_path}",
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def wait(self, timeout: float) -> bool:
        """Wait for the stream to close.  Returns ``True`` if it did."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def get_contents(self, timeout: float = 0.1) -> str:
        self.wait(timeout)
        return self.buffer.get_contents()

    def _run(self) -> None:
        try:
            for raw in iter(self._stream.readline, b""):
                line = raw.decode(errors="replace").rstrip("\r\n")
                logger.debug("[%s] %s", self._script_path, line)
                self.buffer.push_line(line)
        except (OSError, ValueError) as exc:
            logger.warning("%s: stderr read error: %s", self._script_path, exc)
        finally:
            logger.debug("%s: stderr reader exiting", self._script_path)
