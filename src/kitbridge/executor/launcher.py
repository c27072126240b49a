"""Process launcher — spawn a script with piped stdio in its own process group."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import IO

from kitbridge.executor.stderr_buffer import StderrBuffer, StderrCapture

logger = logging.getLogger(__name__)


class LaunchError(Exception):
    """The script could not be spawned.  Terminal: no retry is attempted."""

    def __init__(self, executable: str, reason: str) -> None:
        self.executable = executable
        self.reason = reason
        super().__init__(f"Failed to spawn '{executable}': {reason}")


class SessionError(RuntimeError):
    """Misuse of a session's one-shot lifecycle operations."""


def build_command(
    executable_path: str | Path,
    args: Sequence[str] = (),
    runtimes: Mapping[str, Sequence[str]] | None = None,
) -> list[str]:
    """Return the argv used to run *executable_path*.

    A suffix listed in *runtimes* is run through that interpreter;
    anything else is executed directly.
    """
    path = str(executable_path)
    suffix = Path(path).suffix
    if runtimes and suffix in runtimes:
        return [*runtimes[suffix], path, *args]
    return [path, *args]


class ScriptWriter:
    """Exclusive owner of the script's stdin after :meth:`Session.split`."""

    def __init__(self, stream: IO[bytes], pid: int) -> None:
        self.stream = stream
        self.pid = pid

    def write_line(self, line: str) -> None:
        """Write one line and flush it to the pipe immediately."""
        self.stream.write(line.encode() + b"\n")
        self.stream.flush()

    def close(self) -> None:
        try:
            self.stream.close()
        except OSError:
            logger.debug("PID %d: stdin already closed", self.pid)


class ScriptReader:
    """Exclusive owner of the script's stdout after :meth:`Session.split`.

    Also carries what the reader needs for post-mortem reporting: the child
    handle (to collect its exit status) and the stderr capture.
    """

    def __init__(
        self,
        stream: IO[bytes],
        process: subprocess.Popen[bytes] | None,
        script_path: str,
        stderr: StderrCapture | None = None,
    ) -> None:
        self.stream = stream
        self.process = process
        self.script_path = script_path
        self.stderr = stderr

    def read_line(self, limit: int = -1) -> bytes:
        """Blocking read of one raw line; ``b""`` means end of stream.

        At most *limit* bytes are returned when *limit* is positive, in which
        case the result may stop short of the newline.
        """
        return self.stream.readline(limit)

    def skip_line(self, chunk_size: int = 65_536) -> int:
        """Discard input through the next newline in bounded chunks.

        Returns the number of bytes discarded.
        """
        skipped = 0
        while True:
            chunk = self.stream.readline(chunk_size)
            skipped += len(chunk)
            if not chunk or chunk.endswith(b"\n"):
                return skipped

    def wait_exit_code(self, timeout: float | None = None) -> int | None:
        """Reap the child and return its exit status, if known."""
        if self.process is None:
            return None
        try:
            return self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(
                "%s: stdout closed but process %d is still running",
                self.script_path,
                self.process.pid,
            )
            return None

    def close(self) -> None:
        try:
            self.stream.close()
        except OSError:
            logger.debug("%s: stdout already closed", self.script_path)


class Session:
    """A live script process together with its raw pipes.

    Until :meth:`split` is called this object owns stdin and stdout.
    ``split()`` hands them to exactly one writer and one reader; the
    pid stays available for cancellation.
    """

    def __init__(
        self,
        process: subprocess.Popen[bytes],
        script_path: str,
        stderr: StderrCapture | None = None,
    ) -> None:
        self.process = process
        self.pid = process.pid
        self.script_path = script_path
        self.stderr = stderr
        self._stdin: IO[bytes] | None = process.stdin
        self._stdout: IO[bytes] | None = process.stdout

    @property
    def is_split(self) -> bool:
        return self._stdin is None and self._stdout is None

    def split(self) -> tuple[ScriptWriter, ScriptReader]:
        """Transfer pipe ownership to a writer and a reader.  One-time only."""
        stdin, stdout = self._stdin, self._stdout
        if stdin is None or stdout is None:
            msg = f"Session for PID {self.pid} has already been split"
            raise SessionError(msg)
        self._stdin = None
        self._stdout = None

        logger.debug("Splitting session for PID %d", self.pid)
        writer = ScriptWriter(stdin, self.pid)
        reader = ScriptReader(stdout, self.process, self.script_path, self.stderr)
        return writer, reader


def launch(
    executable_path: str | Path,
    *,
    args: Sequence[str] = (),
    runtimes: Mapping[str, Sequence[str]] | None = None,
    env: Mapping[str, str] | None = None,
    cwd: str | Path | None = None,
    stderr_buffer: StderrBuffer | None = None,
) -> Session:
    """Spawn *executable_path* as an interactive script.

    The child gets piped stdin/stdout/stderr and is placed in a new
    session (so its pid is also its process-group id), letting the whole
    tree be signalled at once.

    Raises:
        LaunchError: On a missing interpreter or script, a permission
            problem, or resource exhaustion.
    """
    argv = build_command(executable_path, args, runtimes)
    script_path = str(executable_path)
    child_env = {**os.environ, **env} if env is not None else None

    try:
        process = subprocess.Popen(
            argv,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=child_env,
            cwd=cwd,
            start_new_session=True,
        )
    except FileNotFoundError as exc:
        logger.error("Command not found: %s", argv[0])
        raise LaunchError(argv[0], f"command not found ({exc.strerror})") from exc
    except PermissionError as exc:
        logger.error("Permission denied executing %s", argv[0])
        raise LaunchError(argv[0], f"permission denied ({exc.strerror})") from exc
    except OSError as exc:
        logger.error("Failed to spawn %s: %s", argv[0], exc)
        raise LaunchError(argv[0], str(exc)) from exc

    logger.info("Spawned %s (PID %d, PGID %d)", script_path, process.pid, process.pid)

    capture: StderrCapture | None = None
    if process.stderr is not None:
        capture = StderrCapture(process.stderr, script_path, stderr_buffer)
        capture.start()

    return Session(process, script_path, capture)
