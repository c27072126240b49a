"""Tests for the pid slot and the process reaper."""

from __future__ import annotations

import queue
import sys
import threading
import time
from pathlib import Path

from kitbridge.executor.launcher import launch
from kitbridge.executor.registry import ProcessRegistry
from kitbridge.session.events import PromptMessage
from kitbridge.session.reader import ReaderWorker
from kitbridge.session.reaper import PidSlot, ProcessReaper, SessionHandles
from kitbridge.session.writer import OutboundQueue, WriterWorker

_SLEEPER = "import time\ntime.sleep(60)\n"


def _handles(tmp_path: Path, body: str = _SLEEPER) -> SessionHandles:
    script = tmp_path / "script.py"
    script.write_text(body)
    session = launch(script, runtimes={".py": [sys.executable]})
    script_writer, script_reader = session.split()
    inbound: queue.Queue[PromptMessage] = queue.Queue()
    outbound: OutboundQueue = queue.Queue()
    handles = SessionHandles(
        pid_slot=PidSlot(session.pid),
        script_path=session.script_path,
        inbound=inbound,
        outbound=outbound,
        reader=ReaderWorker(script_reader, inbound),
        writer=WriterWorker(script_writer, outbound),
        process=session.process,
    )
    handles.reader.start()
    handles.writer.start()
    return handles


class TestPidSlot:
    def test_take_once(self) -> None:
        slot = PidSlot(123)
        assert slot.peek() == 123
        assert slot.take() == 123
        assert slot.take() is None
        assert slot.peek() is None

    def test_concurrent_take_yields_one_winner(self) -> None:
        slot = PidSlot(99)
        results: list[int | None] = []
        barrier = threading.Barrier(8)

        def _take() -> None:
            barrier.wait()
            results.append(slot.take())

        threads = [threading.Thread(target=_take) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(99) == 1
        assert results.count(None) == 7


class TestProcessReaper:
    def test_cancel_kills_and_drops_queues(self, tmp_path: Path) -> None:
        handles = _handles(tmp_path)
        assert handles.process is not None

        assert ProcessReaper(grace=1.0).cancel(handles)

        assert handles.process.wait(timeout=5) is not None
        assert handles.inbound is None
        assert handles.outbound is None
        handles.writer.join(timeout=2)
        handles.reader.join(timeout=5)
        assert not handles.writer.is_alive()
        assert not handles.reader.is_alive()

    def test_second_cancel_is_a_no_op(self, tmp_path: Path) -> None:
        handles = _handles(tmp_path)
        reaper = ProcessReaper(grace=0.5)
        assert reaper.cancel(handles)
        assert not reaper.cancel(handles)
        assert not reaper.cancel(handles, notify=False)

    def test_sigterm_ignoring_script_is_killed(self, tmp_path: Path) -> None:
        handles = _handles(
            tmp_path,
            "import signal, sys, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "sys.stdin.close()\n"
            "time.sleep(60)\n",
        )
        assert handles.process is not None
        assert ProcessReaper(grace=0.2).cancel(handles, notify=False)
        assert handles.process.wait(timeout=5) < 0

    def test_cancel_unregisters_pid(self, tmp_path: Path) -> None:
        registry = ProcessRegistry(tmp_path / "state")
        handles = _handles(tmp_path)
        pid = handles.pid_slot.peek()
        assert pid is not None
        registry.register(pid, handles.script_path)

        reaper = ProcessReaper(grace=0.5, registry=registry)
        reaper.cancel(handles)
        assert reaper.join(timeout=5)
        assert len(registry) == 0

    def test_cancel_does_not_wait_for_grace_period(self, tmp_path: Path) -> None:
        ready = tmp_path / "ready"
        handles = _handles(
            tmp_path,
            "import pathlib, signal, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            f"pathlib.Path({str(ready)!r}).touch()\n"
            "time.sleep(60)\n",
        )
        deadline = time.monotonic() + 10
        while not ready.exists() and time.monotonic() < deadline:
            time.sleep(0.01)
        assert handles.process is not None
        reaper = ProcessReaper(grace=2.0)

        started = time.monotonic()
        assert reaper.cancel(handles, notify=False)
        assert time.monotonic() - started < 0.1

        assert handles.process.poll() is None
        assert not reaper.join(timeout=0)
        assert reaper.join(timeout=10)
        assert handles.process.wait(timeout=5) < 0

    def test_join_without_pending_work(self) -> None:
        assert ProcessReaper().join(timeout=0)
