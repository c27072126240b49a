"""Process registry — track live script pids for orphan cleanup."""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from kitbridge.executor.process import process_group_alive, terminate_process_group

logger = logging.getLogger(__name__)

#: Default state directory, relative to CWD so it's project-scoped.
STATE_DIR = Path(".kitbridge")
ACTIVE_PIDS_NAME = "active-pids.json"

#: Maximum valid PID on most systems (Linux default PID_MAX).
_PID_MAX = 4_194_304


class ProcessRegistry:
    """Thread-safe record of script processes started by this host.

    The table is mirrored to ``<state_dir>/active-pids.json`` after every
    change so that a later run can kill anything a crashed host left
    behind.
    """

    def __init__(self, state_dir: Path | None = None) -> None:
        self._state_dir = state_dir if state_dir is not None else STATE_DIR
        self._path = self._state_dir / ACTIVE_PIDS_NAME
        self._lock = threading.Lock()
        self._active: dict[int, dict[str, Any]] = {}

    @property
    def path(self) -> Path:
        return self._path

    def register(self, pid: int, script_path: str) -> None:
        with self._lock:
            self._active[pid] = {
                "pid": pid,
                "script_path": script_path,
                "started_at": datetime.now(tz=UTC).isoformat(),
            }
            self._persist()
        logger.debug("Registered PID %d (%s)", pid, script_path)

    def unregister(self, pid: int) -> None:
        with self._lock:
            if self._active.pop(pid, None) is None:
                return
            self._persist()
        logger.debug("Unregistered PID %d", pid)

    def active(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(info) for info in self._active.values()]

    def __len__(self) -> int:
        return len(self._active)

    def kill_all(self, grace: float = 0.25) -> int:
        """Terminate every tracked process group.  Returns how many were alive."""
        with self._lock:
            pids = list(self._active)
            self._active.clear()
            self._persist()

        killed = 0
        for pid in pids:
            if process_group_alive(pid):
                terminate_process_group(pid, grace)
                killed += 1
        return killed

    def cleanup_orphans(self, grace: float = 0.25) -> int:
        """Kill process groups recorded by a previous host run.

        Returns the number of groups that were still alive.
        """
        killed = 0
        for entry in self._read_persisted():
            pid = entry.get("pid")
            if not isinstance(pid, int) or pid <= 1 or pid > _PID_MAX:
                continue
            with self._lock:
                if pid in self._active:
                    continue
            if process_group_alive(pid):
                logger.info(
                    "Killing orphaned script %s (PID %d)",
                    entry.get("script_path", "?"),
                    pid,
                )
                terminate_process_group(pid, grace)
                killed += 1

        with self._lock:
            self._persist()
        return killed

    def _read_persisted(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable pid file %s", self._path)
            return []
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def _persist(self) -> None:
        """Write the table to disk (caller must hold the lock)."""
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(list(self._active.values())), encoding="utf-8"
            )
        except OSError as exc:
            logger.warning("Could not write pid file %s: %s", self._path, exc)
