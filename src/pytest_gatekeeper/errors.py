# src/pytest_gatekeeper/errors.py
from __future__ import annotations

from typing import Optional

from pytest_gatekeeper.graph.resolver import format_chain
from pytest_gatekeeper.schemas import FailedDependency


# -----------------------------
# Fatal: the coordination substrate is unavailable
# -----------------------------
class GatekeeperStateError(RuntimeError):
    pass


class LockTimeoutError(GatekeeperStateError):
    def __init__(self, lock_path: str, timeout_s: float):
        self.lock_path = lock_path
        self.timeout_s = timeout_s
        super().__init__(
            f"Failed to acquire lock for gatekeeper state ({lock_path}) within {timeout_s:.2f}s"
        )


class WriteExhaustedError(GatekeeperStateError):
    def __init__(self, state_path: str, attempts: int):
        self.state_path = state_path
        self.attempts = attempts
        super().__init__(f"Failed to write gatekeeper state after {attempts} attempts ({state_path})")


# -----------------------------
# Control flow: skip the calling test, never fail it
# -----------------------------
class DependencySkip(Exception):
    """Base for prerequisite outcomes that turn a test into a skip."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(reason)


def _first_line(error: Optional[str]) -> str:
    lines = (error or "").strip().splitlines()
    return lines[0] if lines else ""


class PrerequisiteFailed(DependencySkip):
    def __init__(self, failure: FailedDependency, *, include_error: bool = True):
        self.failure = failure
        error = _first_line(failure.error) if include_error else ""
        error_str = f": {error}" if error else ""
        reason = f"dependency '{failure.key}' failed{error_str}{format_chain(failure.chain)}"
        super().__init__(failure.key, reason)


class PrerequisiteTimedOut(DependencySkip):
    def __init__(self, key: str, timeout_ms: float):
        self.timeout_ms = timeout_ms
        reason = (
            f"dependency '{key}' did not complete within {int(timeout_ms)}ms "
            f"(gatekeeper may not exist)"
        )
        super().__init__(key, reason)
