from __future__ import annotations

from dataclasses import dataclass, field
import os


def _default_state_dir() -> str:
    return os.getcwd()


@dataclass(frozen=True)
class Settings:
    # Directory holding the state file and its lock sentinel.
    # Every worker of a run must point at the same directory.
    state_dir: str = field(default_factory=_default_state_dir)

    # How long a dependent test waits for its gatekeepers.
    wait_timeout_ms: float = 30000.0
    poll_interval_ms: float = 100.0

    # Lock acquisition bound; expiry is fatal.
    lock_timeout_ms: float = 5000.0
    write_retries: int = 3

    verbose: bool = False

    @property
    def wait_timeout_s(self) -> float:
        return self.wait_timeout_ms / 1000.0

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def lock_timeout_s(self) -> float:
        return self.lock_timeout_ms / 1000.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 1 else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    state_dir = os.getenv("GATEKEEPER_STATE_DIR", "").strip() or _default_state_dir()

    return Settings(
        state_dir=state_dir,
        wait_timeout_ms=_env_float("GATEKEEPER_WAIT_TIMEOUT_MS", 30000.0),
        poll_interval_ms=_env_float("GATEKEEPER_POLL_INTERVAL_MS", 100.0),
        lock_timeout_ms=_env_float("GATEKEEPER_LOCK_TIMEOUT_MS", 5000.0),
        write_retries=_env_int("GATEKEEPER_WRITE_RETRIES", 3),
        verbose=_env_bool("GATEKEEPER_VERBOSE", False),
    )
