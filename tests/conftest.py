"""
Shared fixtures for the gatekeeper tests.

Every test gets its own state directory; nothing touches the working
directory of the outer pytest run.
"""
from pathlib import Path

import pytest

from pytest_gatekeeper.config import Settings
from pytest_gatekeeper.coordinator import GateContext, GatekeeperCoordinator


pytest_plugins = ["pytester"]


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    path = tmp_path / "gatekeeper-state"
    path.mkdir()
    return path


@pytest.fixture
def fast_settings(state_dir: Path) -> Settings:
    """Short poll and lock bounds so waiting tests stay quick."""
    return Settings(
        state_dir=str(state_dir),
        wait_timeout_ms=2000.0,
        poll_interval_ms=10.0,
        lock_timeout_ms=500.0,
        write_retries=3,
    )


@pytest.fixture
def coordinator(fast_settings: Settings) -> GatekeeperCoordinator:
    coord = GatekeeperCoordinator(settings=fast_settings)
    coord.initialize()
    yield coord
    coord.cleanup()


@pytest.fixture
def gate(coordinator: GatekeeperCoordinator) -> GateContext:
    return GateContext(coordinator)
