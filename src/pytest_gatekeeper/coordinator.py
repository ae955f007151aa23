# src/pytest_gatekeeper/coordinator.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from pytest_gatekeeper.config import Settings
from pytest_gatekeeper.errors import PrerequisiteFailed, PrerequisiteTimedOut
from pytest_gatekeeper.graph.resolver import get_failed_dependency
from pytest_gatekeeper.io.normalize import normalize_keys
from pytest_gatekeeper.schemas import (
    DependencyCheck,
    FailedDependency,
    GatekeeperResult,
    GatekeeperSummary,
    StateSnapshot,
)
from pytest_gatekeeper.state.store import StateStore
from pytest_gatekeeper.utils.logging import NULL_LOGGER, Logger
from pytest_gatekeeper.utils.timebox import epoch_ms
from pytest_gatekeeper.wait import ResultWaiter

Keys = Union[str, Iterable[str]]


class GatekeeperCoordinator:
    """
    Cross-process gatekeeper state for one test run.

    One instance per process, constructed by whoever bootstraps the run
    and handed to the test integration. All instances pointing at the same
    directory see the same state.
    """

    def __init__(
        self,
        base_dir: Union[str, Path, None] = None,
        *,
        settings: Optional[Settings] = None,
        log: Optional[Logger] = None,
    ):
        self.settings = settings or Settings()
        self.log = log or NULL_LOGGER
        self.store = StateStore(
            base_dir if base_dir is not None else self.settings.state_dir,
            lock_timeout_s=self.settings.lock_timeout_s,
            write_retries=self.settings.write_retries,
            log=self.log,
        )
        self.waiter = ResultWaiter(self.get_result, poll_interval_s=self.settings.poll_interval_s)

    @property
    def base_dir(self) -> Path:
        return self.store.base_dir

    # -----------------------------
    # Run lifecycle
    # -----------------------------
    def initialize(self) -> None:
        self.store.initialize()
        self.log.info(f"gatekeeper state initialized at {self.store.state_path}")

    def cleanup(self) -> None:
        self.store.cleanup()

    # -----------------------------
    # Mutations (lock-guarded)
    # -----------------------------
    def register_gatekeeper(self, key: str, dependencies: Keys = ()) -> None:
        key = normalize_keys(key)[0]
        deps = normalize_keys(dependencies)

        def _apply(snapshot: StateSnapshot) -> StateSnapshot:
            if deps:
                return snapshot.with_dependencies(key, deps)
            return snapshot

        self.store.mutate(_apply)
        self.log.info(f"registered gatekeeper '{key}'" + (f" depending on {deps}" if deps else ""))

    def set_result(self, key: str, passed: bool, error: Optional[str] = None) -> None:
        # Last write wins; one writer per key per run is the caller's contract.
        key = normalize_keys(key)[0]
        result = GatekeeperResult(passed=bool(passed), error=error, timestamp=epoch_ms())
        self.store.mutate(lambda snapshot: snapshot.with_result(key, result))
        self.log.gatekeeper(key, result.passed, result.error)

    # -----------------------------
    # Lock-free reads
    # -----------------------------
    def snapshot(self) -> StateSnapshot:
        return self.store.read()

    def get_result(self, key: str) -> Optional[GatekeeperResult]:
        return self.store.read().results.get(key)

    def get_dependencies(self, key: str) -> List[str]:
        return list(self.store.read().dependencies.get(key) or [])

    def is_registered(self, key: str) -> bool:
        snapshot = self.store.read()
        return key in snapshot.results or key in snapshot.dependencies

    def get_all_results(self) -> Dict[str, GatekeeperResult]:
        return dict(self.store.read().results)

    def get_all_dependencies(self) -> Dict[str, List[str]]:
        return {k: list(v) for k, v in self.store.read().dependencies.items()}

    def get_summary(self) -> GatekeeperSummary:
        results = self.get_all_results().values()
        passed = sum(1 for r in results if r.passed)
        return GatekeeperSummary(total=len(results), passed=passed, failed=len(results) - passed)

    # -----------------------------
    # Waiting and resolution
    # -----------------------------
    def _timeout_s(self, timeout_ms: Optional[float]) -> float:
        if timeout_ms is None:
            return self.settings.wait_timeout_s
        return max(0.0, float(timeout_ms)) / 1000.0

    def _upstream_failed(self, key: str) -> bool:
        return self.get_failed_dependency([key]) is not None

    async def wait_for(
        self,
        keys: Keys,
        timeout_ms: Optional[float] = None,
        *,
        stop_on_failure: bool = False,
    ) -> Dict[str, Optional[GatekeeperResult]]:
        """
        Wait for every key's result concurrently. Keys still missing at the
        timeout map to None. With `stop_on_failure`, a key stops being awaited
        as soon as something it depends on is known to have failed.
        """
        give_up = self._upstream_failed if stop_on_failure else None
        return await self.waiter.wait_for_results(normalize_keys(keys), self._timeout_s(timeout_ms), give_up)

    def wait_for_sync(
        self,
        keys: Keys,
        timeout_ms: Optional[float] = None,
        *,
        stop_on_failure: bool = False,
    ) -> Dict[str, Optional[GatekeeperResult]]:
        give_up = self._upstream_failed if stop_on_failure else None
        return self.waiter.wait_for_results_sync(normalize_keys(keys), self._timeout_s(timeout_ms), give_up)

    def get_failed_dependency(self, keys: Keys) -> Optional[FailedDependency]:
        return get_failed_dependency(normalize_keys(keys), self.store.read())

    def all_dependencies_passed(self, keys: Keys) -> bool:
        return self.get_failed_dependency(keys) is None

    def check_dependencies(self, keys: Keys) -> DependencyCheck:
        """Non-skipping variant for conditional logic inside a test."""
        failed = self.get_failed_dependency(keys)
        if failed is None:
            return DependencyCheck(passed=True)
        return DependencyCheck(passed=False, failed_key=failed.key, failed_info=failed)


class GateContext:
    """
    Per-test view of the coordinator.

    Holds the test's transient "current gatekeeper key" between `mark_as`
    and `record_result`. Skips are signalled by raising a DependencySkip;
    the test integration turns them into framework skips.
    """

    def __init__(self, coordinator: GatekeeperCoordinator, *, default_timeout_ms: Optional[float] = None):
        self.coordinator = coordinator
        self.default_timeout_ms = (
            default_timeout_ms if default_timeout_ms is not None else coordinator.settings.wait_timeout_ms
        )
        self.current_key: Optional[str] = None
        self.depends_on_keys: List[str] = []

    def mark_as(self, key: str, dependencies: Keys = ()) -> None:
        if self.current_key is not None:
            raise ValueError(f"test is already the gatekeeper for '{self.current_key}'")

        key = normalize_keys(key)[0]
        deps = normalize_keys(dependencies)

        # A gatekeeper can itself be gated: do not run it on top of a known failure
        failed = self.coordinator.get_failed_dependency(deps) if deps else None

        # Edges are persisted either way so dependents can trace through an aborted gatekeeper
        self.coordinator.register_gatekeeper(key, deps)
        if failed is not None:
            raise PrerequisiteFailed(failed, include_error=False)
        self.current_key = key

    def _prepare(self, keys: tuple, timeout_ms: Optional[float]) -> tuple:
        names = normalize_keys(keys)
        for name in names:
            if name not in self.depends_on_keys:
                self.depends_on_keys.append(name)
        return names, (self.default_timeout_ms if timeout_ms is None else timeout_ms)

    def _check(self, names: List[str], found: Dict[str, Optional[GatekeeperResult]], timeout_ms: float) -> None:
        # Absent keys first; one that never reported because its own prerequisite failed names that failure
        for name in names:
            if found.get(name) is None:
                failed = self.coordinator.get_failed_dependency([name])
                if failed is not None:
                    raise PrerequisiteFailed(failed)
                raise PrerequisiteTimedOut(name, timeout_ms)

        failed = self.coordinator.get_failed_dependency(names)
        if failed is not None:
            raise PrerequisiteFailed(failed)

    def depends_on(self, *keys: str, timeout_ms: Optional[float] = None) -> None:
        """Block until `keys` report, then raise a DependencySkip if any of them is unusable."""
        names, timeout_ms = self._prepare(keys, timeout_ms)
        if not names:
            return
        found = self.coordinator.wait_for_sync(names, timeout_ms, stop_on_failure=True)
        self._check(names, found, timeout_ms)

    async def adepends_on(self, *keys: str, timeout_ms: Optional[float] = None) -> None:
        names, timeout_ms = self._prepare(keys, timeout_ms)
        if not names:
            return
        found = await self.coordinator.wait_for(names, timeout_ms, stop_on_failure=True)
        self._check(names, found, timeout_ms)

    def check_dependencies(self, *keys: str) -> DependencyCheck:
        if not keys:
            return DependencyCheck(passed=True)
        return self.coordinator.check_dependencies(keys)

    def record_result(self, passed: bool, error: Optional[str] = None) -> None:
        if self.current_key is None:
            return
        key, self.current_key = self.current_key, None
        self.coordinator.set_result(key, passed, error)

    def clear(self) -> None:
        self.current_key = None
