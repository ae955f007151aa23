# src/pytest_gatekeeper/state/lock.py
from __future__ import annotations

import os
import random
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Tuple, Union

from pytest_gatekeeper.errors import LockTimeoutError
from pytest_gatekeeper.utils.timebox import Deadline


class SentinelLock:
    """
    Advisory cross-process lock: whoever creates the sentinel file holds it.

    There is no ownership tracking beyond the file's existence; every
    participant must go through acquire/release. The pid written into the
    sentinel is for humans only.
    """

    def __init__(self, path: Union[str, Path], *, backoff_ms: Tuple[float, float] = (5.0, 25.0)):
        self.path = Path(path)
        self.backoff_ms = backoff_ms

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        try:
            os.write(fd, str(os.getpid()).encode("ascii"))
        finally:
            os.close(fd)
        return True

    def acquire(self, timeout_s: float) -> bool:
        deadline = Deadline(timeout_s)
        while True:
            if self._try_create():
                return True
            if deadline.expired():
                return False
            lo, hi = self.backoff_ms
            delay_s = random.uniform(lo, hi) / 1000.0
            time.sleep(min(delay_s, deadline.remaining()))

    def release(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    @property
    def locked(self) -> bool:
        return self.path.exists()

    @contextmanager
    def held(self, timeout_s: float) -> Iterator[None]:
        """Critical section; raises LockTimeoutError if the lock is not acquired in time."""
        if not self.acquire(timeout_s):
            raise LockTimeoutError(str(self.path), timeout_s)
        try:
            yield
        finally:
            self.release()
