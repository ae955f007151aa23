import os
import threading
import time

import pytest

from pytest_gatekeeper.errors import LockTimeoutError
from pytest_gatekeeper.state.lock import SentinelLock


@pytest.fixture
def lock(tmp_path):
    return SentinelLock(tmp_path / "state.lock")


def test_acquire_creates_sentinel_with_pid(lock):
    assert lock.acquire(timeout_s=0.1)
    assert lock.locked
    assert lock.path.read_text() == str(os.getpid())
    lock.release()
    assert not lock.locked


def test_second_acquire_times_out_while_held(lock, tmp_path):
    other = SentinelLock(tmp_path / "state.lock")
    assert lock.acquire(timeout_s=0.1)

    start = time.monotonic()
    assert other.acquire(timeout_s=0.1) is False
    elapsed = time.monotonic() - start

    assert 0.09 <= elapsed < 1.0
    lock.release()
    assert other.acquire(timeout_s=0.1)
    other.release()


def test_release_without_sentinel_is_a_noop(lock):
    lock.release()
    lock.release()
    assert not lock.locked


def test_held_releases_on_exception(lock):
    with pytest.raises(RuntimeError):
        with lock.held(timeout_s=0.1):
            assert lock.locked
            raise RuntimeError("boom")
    assert not lock.locked


def test_held_raises_lock_timeout(lock):
    lock.path.write_text("someone else")
    with pytest.raises(LockTimeoutError) as excinfo:
        with lock.held(timeout_s=0.05):
            pytest.fail("critical section must not run")
    assert str(lock.path) in str(excinfo.value)
    # A failed acquire never removes somebody else's sentinel
    assert lock.locked


def test_acquire_succeeds_once_holder_releases_midway(lock, tmp_path):
    lock.path.write_text("holder")
    releaser = threading.Timer(0.05, lambda: lock.path.unlink())
    releaser.start()
    try:
        assert SentinelLock(tmp_path / "state.lock").acquire(timeout_s=1.0)
    finally:
        releaser.join()
