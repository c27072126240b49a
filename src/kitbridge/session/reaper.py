"""Process reaper — cancellation and forced cleanup of a script session."""

from __future__ import annotations

import logging
import queue
import signal
import subprocess
import threading
import time
from dataclasses import dataclass

from kitbridge.constants import CANCEL_EXIT_CODE, CANCEL_EXIT_MESSAGE
from kitbridge.executor.process import await_group_exit, kill_process_group
from kitbridge.executor.registry import ProcessRegistry
from kitbridge.protocol.models import Exit
from kitbridge.session.events import PromptMessage
from kitbridge.session.reader import ReaderWorker
from kitbridge.session.recorder import ProtocolRecorder
from kitbridge.session.writer import CLOSE, OutboundQueue, WriterWorker

logger = logging.getLogger(__name__)

_KILL_REAP_WAIT = 5.0


class PidSlot:
    """Single owner slot for a session's pid.

    :meth:`take` moves the pid out atomically, so only the first of any
    number of concurrent cancellations ever signals it.
    """

    def __init__(self, pid: int) -> None:
        self._pid: int | None = pid
        self._lock = threading.Lock()

    def peek(self) -> int | None:
        return self._pid

    def take(self) -> int | None:
        with self._lock:
            pid, self._pid = self._pid, None
            return pid


@dataclass
class SessionHandles:
    """Everything a live session owns besides the pipes themselves."""

    pid_slot: PidSlot
    script_path: str
    inbound: queue.Queue[PromptMessage] | None
    outbound: OutboundQueue | None
    reader: ReaderWorker
    writer: WriterWorker
    process: subprocess.Popen[bytes] | None = None
    recorder: ProtocolRecorder | None = None


class ProcessReaper:
    """Ends sessions: polite exit message, then signals, then queue teardown.

    :meth:`cancel` only does non-blocking work on the caller's thread.  The
    grace period and any SIGKILL escalation run on a daemon thread per
    session; :meth:`join` waits for those at host shutdown.
    """

    def __init__(
        self,
        grace: float = 0.25,
        poll_interval: float = 0.05,
        registry: ProcessRegistry | None = None,
    ) -> None:
        self._grace = grace
        self._poll_interval = poll_interval
        self._registry = registry
        self._pending: set[threading.Thread] = set()
        self._lock = threading.Lock()

    def cancel(self, handles: SessionHandles, *, notify: bool = True) -> bool:
        """Tear down *handles* without waiting on the child.

        Steps:
            1. NOTIFY   -- best-effort ``exit`` message through the outbound queue
            2. SIGNAL   -- SIGTERM the process group
            3. DROP     -- close both queues and the transcript
            4. ESCALATE -- in the background, SIGKILL after the grace period
                           and release the pid

        Returns ``False`` when the session was already cancelled.
        """
        pid = handles.pid_slot.take()
        if pid is None:
            logger.debug("%s: already cancelled", handles.script_path)
            return False

        outbound = handles.outbound
        if notify and outbound is not None:
            outbound.put(Exit(code=CANCEL_EXIT_CODE, message=CANCEL_EXIT_MESSAGE))

        logger.info("Terminating %s (PGID %d)", handles.script_path, pid)
        delivered = kill_process_group(pid, signal.SIGTERM)

        if outbound is not None:
            outbound.put(CLOSE)
        handles.outbound = None
        handles.inbound = None
        if handles.recorder is not None:
            handles.recorder.close()

        if not delivered:
            self._release(pid)
            return True

        thread = threading.Thread(
            target=self._escalate,
            args=(pid, handles.script_path, handles.process),
            name=f"reaper-{pid}",
            daemon=True,
        )
        with self._lock:
            self._pending.add(thread)
        thread.start()
        return True

    def join(self, timeout: float | None = None) -> bool:
        """Wait for background terminations.  Returns ``True`` if none remain."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            threads = list(self._pending)
        for thread in threads:
            remaining = None
            if deadline is not None:
                remaining = max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        with self._lock:
            return not self._pending

    def _escalate(
        self,
        pid: int,
        script_path: str,
        process: subprocess.Popen[bytes] | None,
    ) -> None:
        reap = process.poll if process is not None else None
        try:
            if not await_group_exit(pid, self._grace, self._poll_interval, reap):
                logger.info("%s: killed after ignoring SIGTERM", script_path)
                if process is not None:
                    _reap_killed(process, script_path)
        finally:
            self._release(pid)
            with self._lock:
                self._pending.discard(threading.current_thread())

    def _release(self, pid: int) -> None:
        if self._registry is not None:
            self._registry.unregister(pid)


def _reap_killed(process: subprocess.Popen[bytes], script_path: str) -> None:
    """Collect a SIGKILLed leader so its pid stops counting as a live group."""
    try:
        process.wait(timeout=_KILL_REAP_WAIT)
    except subprocess.TimeoutExpired:
        logger.warning(
            "%s: process %d survived SIGKILL for %.0fs",
            script_path,
            process.pid,
            _KILL_REAP_WAIT,
        )
