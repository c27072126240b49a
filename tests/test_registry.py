"""Tests for the persisted process registry and orphan cleanup."""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

from kitbridge.executor.process import process_group_alive
from kitbridge.executor.registry import ProcessRegistry


def _spawn_sleeper() -> subprocess.Popen[bytes]:
    proc = subprocess.Popen(
        [sys.executable, "-c", "import time; print('ready', flush=True); time.sleep(60)"],
        stdout=subprocess.PIPE,
        start_new_session=True,
    )
    assert proc.stdout is not None
    proc.stdout.readline()
    return proc


class TestRegistry:
    def test_register_persists(self, tmp_path: Path) -> None:
        registry = ProcessRegistry(tmp_path)
        registry.register(1234, "a.py")
        data = json.loads(registry.path.read_text())
        assert data[0]["pid"] == 1234
        assert data[0]["script_path"] == "a.py"
        assert "started_at" in data[0]
        assert len(registry) == 1

    def test_unregister(self, tmp_path: Path) -> None:
        registry = ProcessRegistry(tmp_path)
        registry.register(1234, "a.py")
        registry.unregister(1234)
        registry.unregister(1234)
        assert json.loads(registry.path.read_text()) == []
        assert registry.active() == []

    def test_state_dir_is_created(self, tmp_path: Path) -> None:
        registry = ProcessRegistry(tmp_path / "nested" / "state")
        registry.register(42, "x.py")
        assert registry.path.is_file()


class TestCleanupOrphans:
    def test_kills_orphan_from_previous_run(self, tmp_path: Path) -> None:
        proc = _spawn_sleeper()
        try:
            ProcessRegistry(tmp_path).register(proc.pid, "orphan.py")

            # A fresh registry stands in for the next host run.
            killed = ProcessRegistry(tmp_path).cleanup_orphans(grace=0.2)
            assert killed == 1
            proc.wait(timeout=5)
            assert not process_group_alive(proc.pid)
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()

    def test_skips_dead_and_invalid_entries(self, tmp_path: Path) -> None:
        proc = _spawn_sleeper()
        proc.kill()
        proc.wait()
        tmp_path.joinpath("active-pids.json").write_text(
            json.dumps(
                [
                    {"pid": proc.pid, "script_path": "dead.py"},
                    {"pid": 1, "script_path": "init"},
                    {"pid": "nope"},
                    "garbage",
                ]
            )
        )
        assert ProcessRegistry(tmp_path).cleanup_orphans(grace=0.1) == 0

    def test_skips_pids_owned_by_this_run(self, tmp_path: Path) -> None:
        proc = _spawn_sleeper()
        try:
            registry = ProcessRegistry(tmp_path)
            registry.register(proc.pid, "mine.py")
            assert registry.cleanup_orphans(grace=0.1) == 0
            assert proc.poll() is None
        finally:
            proc.kill()
            proc.wait()

    def test_unreadable_file_is_ignored(self, tmp_path: Path) -> None:
        tmp_path.joinpath("active-pids.json").write_text("{not json")
        assert ProcessRegistry(tmp_path).cleanup_orphans() == 0

    def test_kill_all(self, tmp_path: Path) -> None:
        proc = _spawn_sleeper()
        try:
            registry = ProcessRegistry(tmp_path)
            registry.register(proc.pid, "a.py")
            assert registry.kill_all(grace=0.2) == 1
            assert len(registry) == 0
            proc.wait(timeout=5)
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
