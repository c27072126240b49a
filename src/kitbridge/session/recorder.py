"""Protocol recorder — append-only JSONL transcript of script traffic."""

from __future__ import annotations

import json
import re
import threading
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Literal

from kitbridge.protocol.codec import log_preview

Direction = Literal["recv", "send"]

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9_-]+")


class ProtocolRecorder:
    """Records every protocol line exchanged with one script.

    Thread-safe: the reader and writer workers both record, and all writes
    are serialized through a ``threading.Lock``.
    Crash-safe: the file is flushed after every entry.
    """

    def __init__(self, script_path: str, transcripts_dir: Path) -> None:
        self._lock = threading.Lock()
        self._seq = 0
        self._closed = False
        self._transcript_id = uuid.uuid4().hex[:12]

        transcripts_dir.mkdir(parents=True, exist_ok=True)
        date_str = datetime.now(tz=UTC).strftime("%Y-%m-%d")
        stem = _UNSAFE_CHARS_RE.sub("-", Path(script_path).stem).strip("-") or "script"
        self._path = transcripts_dir / f"{date_str}_{stem}_{self._transcript_id}.jsonl"
        self._fh: IO[str] | None = self._path.open("a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def entry_count(self) -> int:
        return self._seq

    def record(self, direction: Direction, message_type: str, line: str) -> None:
        """Append one entry.  Silently dropped after :meth:`close`."""
        with self._lock:
            if self._closed or self._fh is None:
                return
            entry = {
                "ts": _iso_now(),
                "seq": self._seq,
                "direction": direction,
                "type": message_type,
                "preview": log_preview(line),
            }
            self._seq += 1
            self._fh.write(json.dumps(entry) + "\n")
            self._fh.flush()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._fh is not None and not self._fh.closed:
                self._fh.close()


def _iso_now() -> str:
    """Return the current UTC time as ISO 8601 with milliseconds."""
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
