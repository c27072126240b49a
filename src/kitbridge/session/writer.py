"""Writer worker — encode outbound messages onto the script's stdin."""

from __future__ import annotations

import logging
import queue
import threading

from kitbridge.executor.launcher import ScriptWriter
from kitbridge.protocol.codec import encode
from kitbridge.protocol.models import Message
from kitbridge.session.recorder import ProtocolRecorder

logger = logging.getLogger(__name__)


class _Close:
    """Sentinel telling the writer its queue has been dropped."""


CLOSE = _Close()

OutboundQueue = queue.Queue["Message | _Close"]


class WriterWorker:
    """Owns the write half of a session on a dedicated thread.

    The only consumer of the outbound queue.  Each message is written as
    one line and flushed before the next one is taken, because the script
    is usually blocked waiting for exactly that line.  A failed write ends
    the worker; nothing is retried.
    """

    def __init__(
        self,
        writer: ScriptWriter,
        outbound: OutboundQueue,
        *,
        script_path: str = "",
        recorder: ProtocolRecorder | None = None,
    ) -> None:
        self._writer = writer
        self._outbound = outbound
        self._script_path = script_path or f"pid-{writer.pid}"
        self._recorder = recorder
        self._thread = threading.Thread(
            target=self.run,
            name=f"writer-{self._script_path}",
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def run(self) -> None:
        """Receive-encode-write loop.  Never raises."""
        logger.debug("%s: writer started", self._script_path)
        try:
            while True:
                item = self._outbound.get()
                if isinstance(item, _Close):
                    logger.debug("%s: outbound queue closed", self._script_path)
                    break
                if not self._send(item):
                    break
        finally:
            self._writer.close()
            logger.debug("%s: writer exiting", self._script_path)

    def _send(self, message: Message) -> bool:
        try:
            line = encode(message)
        except ValueError as exc:
            logger.error("%s: cannot encode %s: %s", self._script_path, message.type, exc)
            return True

        try:
            self._writer.write_line(line)
        except (BrokenPipeError, ConnectionResetError, OSError, ValueError) as exc:
            logger.warning(
                "%s: write to stdin failed, writer stopping: %s",
                self._script_path,
                exc,
            )
            return False

        if self._recorder is not None:
            self._recorder.record("send", message.type, line)
        return True
