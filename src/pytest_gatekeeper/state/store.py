# src/pytest_gatekeeper/state/store.py
from __future__ import annotations

import os
import random
import time
import uuid
from pathlib import Path
from typing import Callable, Optional, Union

from pydantic import ValidationError

from pytest_gatekeeper.errors import WriteExhaustedError
from pytest_gatekeeper.io.load_json import dump_snapshot, parse_snapshot
from pytest_gatekeeper.schemas import StateSnapshot, empty_snapshot
from pytest_gatekeeper.state.lock import SentinelLock
from pytest_gatekeeper.utils.logging import NULL_LOGGER, Logger

STATE_FILE_NAME = ".pytest-gatekeeper-state.json"
LOCK_FILE_NAME = ".pytest-gatekeeper-state.lock"


class StateStore:
    """
    Durable {results, dependencies} snapshot shared by every worker process.

    Reads are lock-free and see either the previous or the next full
    snapshot, never a torn one: writes go to a temp file that is renamed
    over the canonical path. Read-modify-write cycles go through `mutate`,
    which holds the sentinel lock for the whole cycle.
    """

    def __init__(
        self,
        base_dir: Union[str, Path],
        *,
        lock_timeout_s: float = 5.0,
        write_retries: int = 3,
        log: Optional[Logger] = None,
    ):
        self.base_dir = Path(base_dir)
        self.state_path = self.base_dir / STATE_FILE_NAME
        self.lock = SentinelLock(self.base_dir / LOCK_FILE_NAME)
        self.lock_timeout_s = lock_timeout_s
        self.write_retries = max(1, int(write_retries))
        self.log = log or NULL_LOGGER

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def initialize(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.write(empty_snapshot())

    def cleanup(self) -> None:
        for path in (self.state_path, self.lock.path):
            try:
                path.unlink()
            except OSError:
                # End-of-run cleanup must never break reporting
                pass

    # -----------------------------
    # Read / write
    # -----------------------------
    def read(self) -> StateSnapshot:
        try:
            text = self.state_path.read_text(encoding="utf-8")
        except OSError:
            return empty_snapshot()
        try:
            return parse_snapshot(text)
        except (ValueError, ValidationError):
            # Not created yet, or caught mid-replace on a platform without atomic rename
            return empty_snapshot()

    def write(self, snapshot: StateSnapshot) -> None:
        payload = dump_snapshot(snapshot)
        last_error: Optional[OSError] = None

        for attempt in range(self.write_retries):
            tmp_path = self.state_path.with_name(
                f"{self.state_path.name}.tmp.{os.getpid()}.{uuid.uuid4().hex}"
            )
            try:
                tmp_path.write_text(payload, encoding="utf-8")
                os.replace(tmp_path, self.state_path)
                return
            except OSError as e:
                last_error = e
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
                self.log.warning(f"gatekeeper state write attempt {attempt + 1} failed: {e}")
                if attempt < self.write_retries - 1:
                    time.sleep(random.uniform(10.0, 60.0) / 1000.0)

        self.log.error(f"gatekeeper state write gave up after {self.write_retries} attempts")
        raise WriteExhaustedError(str(self.state_path), self.write_retries) from last_error

    def mutate(self, fn: Callable[[StateSnapshot], StateSnapshot]) -> StateSnapshot:
        """Lock, read, apply `fn`, write, unlock. Returns the written snapshot."""
        with self.lock.held(self.lock_timeout_s):
            updated = fn(self.read())
            self.write(updated)
            return updated
