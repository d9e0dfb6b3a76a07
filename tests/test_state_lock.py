"""Tests for the shared state lock."""
import os

import pytest

from grove.errors import LockTimeoutError
from grove.registry import Registry
from grove.state.lock import LockInfo, StateLock
from grove.state.storage import StateStore


class TestStateLock:

    def test_hold_writes_and_clears_holder_note(self, tmp_path):
        lock = StateLock(tmp_path / "state.lock", timeout=1)

        assert not lock.is_held
        with lock.hold():
            assert lock.is_held
            info = lock.get_lock_info()
            assert info is not None
            assert info.pid == os.getpid()
        assert not lock.is_held
        assert lock.get_lock_info() is None

    def test_reentrant(self, tmp_path):
        lock = StateLock(tmp_path / "state.lock", timeout=1)
        with lock.hold():
            with lock.hold():
                assert lock.is_held
            assert lock.is_held
            assert lock.get_lock_info() is not None
        assert not lock.is_held

    def test_timeout_names_the_holder(self, tmp_path):
        holder = StateLock(tmp_path / "state.lock", timeout=1)
        waiter = StateLock(tmp_path / "state.lock", timeout=0.1)

        with holder.hold():
            with pytest.raises(LockTimeoutError) as exc:
                with waiter.hold():
                    pass
        assert exc.value.kind == "LockTimeout"
        assert exc.value.timeout == 0.1
        assert f"PID {os.getpid()}" in str(exc.value)

    def test_mutation_waits_for_other_holder(self, tmp_path):
        writer = Registry(StateStore(tmp_path / "state", lock_timeout=0.1))
        blocker = StateLock(tmp_path / "state" / "state.lock", timeout=1)

        with blocker.hold():
            with pytest.raises(LockTimeoutError):
                writer.register("a", "standalone", tmp_path / "a")
        writer.register("a", "standalone", tmp_path / "a")
        assert writer.contains("a")

    def test_lock_info_describe(self):
        info = LockInfo(pid=12, timestamp="2026-01-01T00:00:00", hostname="box")
        assert info.describe() == "PID 12 on box since 2026-01-01T00:00:00"
