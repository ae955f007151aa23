# src/pytest_gatekeeper/plugin.py
"""
pytest integration: gatekeeper tests publish a named pass/fail result,
dependent tests wait for those results and are skipped (not failed) when a
prerequisite failed or never completed.

    def test_login(gatekeeper):
        gatekeeper.mark_as("auth", ["api"])
        ...

    def test_dashboard(gatekeeper):
        gatekeeper.depends_on("auth")
        ...

Works across pytest-xdist workers: every worker shares one state file.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Optional

import pytest
from dotenv import find_dotenv, load_dotenv

from pytest_gatekeeper.config import load_settings
from pytest_gatekeeper.coordinator import GateContext, GatekeeperCoordinator
from pytest_gatekeeper.errors import DependencySkip
from pytest_gatekeeper.report import DependencyReport
from pytest_gatekeeper.utils.logging import Logger

COORDINATOR_KEY = pytest.StashKey[GatekeeperCoordinator]()
REPORT_KEY = pytest.StashKey[DependencyReport]()
GATE_KEY = pytest.StashKey[GateContext]()

DEPENDS_ON_PROPERTY = "gatekeeper_depends_on"


# -----------------------------
# Configuration
# -----------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("gatekeeper", "gatekeeper test dependencies")
    group.addoption(
        "--gatekeeper-dir",
        default=None,
        help="Directory for the shared gatekeeper state file (default: $GATEKEEPER_STATE_DIR or cwd).",
    )
    group.addoption(
        "--gatekeeper-timeout",
        type=float,
        default=None,
        help="Default time in ms a dependent test waits for its gatekeepers (default: 30000).",
    )
    group.addoption(
        "--gatekeeper-keep-state",
        action="store_true",
        default=False,
        help="Do not delete the gatekeeper state file at the end of the run.",
    )
    group.addoption(
        "--gatekeeper-verbose",
        action="store_true",
        default=False,
        help="Print gatekeeper registrations, results and skips to stderr.",
    )


def _is_xdist_worker(config: pytest.Config) -> bool:
    return hasattr(config, "workerinput")


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "gatekeeper(key, depends_on=()): publish this test's outcome under `key`.",
    )
    config.addinivalue_line(
        "markers",
        "depends_on(*keys, timeout_ms=None): skip this test unless every gatekeeper in `keys` passed.",
    )

    load_dotenv(find_dotenv(usecwd=True))
    settings = load_settings()

    overrides: Dict[str, Any] = {}
    if config.getoption("gatekeeper_dir"):
        overrides["state_dir"] = config.getoption("gatekeeper_dir")
    if config.getoption("gatekeeper_timeout") is not None:
        overrides["wait_timeout_ms"] = config.getoption("gatekeeper_timeout")
    if config.getoption("gatekeeper_verbose"):
        overrides["verbose"] = True
    if overrides:
        settings = replace(settings, **overrides)

    log = Logger(verbose=settings.verbose)
    config.stash[COORDINATOR_KEY] = GatekeeperCoordinator(settings=settings, log=log)
    config.stash[REPORT_KEY] = DependencyReport()

    # The controller renders the summary; workers only forward reports
    if not _is_xdist_worker(config):
        config.pluginmanager.register(GatekeeperReporter(config), "gatekeeper-reporter")


def get_coordinator(config: pytest.Config) -> GatekeeperCoordinator:
    return config.stash[COORDINATOR_KEY]


# -----------------------------
# Run bootstrap / teardown
# -----------------------------
@pytest.hookimpl(tryfirst=True)
def pytest_sessionstart(session: pytest.Session) -> None:
    # Workers share the state the controller created
    if not _is_xdist_worker(session.config):
        get_coordinator(session.config).initialize()


def pytest_unconfigure(config: pytest.Config) -> None:
    coordinator = config.stash.get(COORDINATOR_KEY, None)
    if coordinator is None:
        return
    try:
        if not _is_xdist_worker(config) and not config.getoption("gatekeeper_keep_state"):
            coordinator.cleanup()
    finally:
        coordinator.log.close()
        reporter = config.pluginmanager.get_plugin("gatekeeper-reporter")
        if reporter is not None:
            config.pluginmanager.unregister(reporter)


# -----------------------------
# Per-test gate
# -----------------------------
@pytest.fixture
def gatekeeper(request: pytest.FixtureRequest) -> GateContext:
    """The current test's gate: `mark_as`, `depends_on`, `adepends_on`, `check_dependencies`."""
    gate = request.node.stash.get(GATE_KEY, None)
    if gate is None:
        gate = GateContext(get_coordinator(request.config))
        request.node.stash[GATE_KEY] = gate
    return gate


@pytest.fixture
def gatekeeper_coordinator(request: pytest.FixtureRequest) -> GatekeeperCoordinator:
    return get_coordinator(request.config)


def _apply_markers(item: pytest.Item, gate: GateContext) -> None:
    for marker in item.iter_markers("gatekeeper"):
        if not marker.args:
            raise pytest.UsageError(f"{item.nodeid}: @pytest.mark.gatekeeper needs a key")
        gate.mark_as(marker.args[0], marker.kwargs.get("depends_on", ()))
        # Closest marker wins
        break

    for marker in item.iter_markers("depends_on"):
        gate.depends_on(*marker.args, timeout_ms=marker.kwargs.get("timeout_ms"))


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_setup(item: pytest.Item) -> None:
    gate = GateContext(get_coordinator(item.config))
    item.stash[GATE_KEY] = gate
    try:
        _apply_markers(item, gate)
    except DependencySkip as e:
        pytest.skip(e.reason)


@pytest.hookimpl(wrapper=True)
def pytest_runtest_call(item: pytest.Item):
    try:
        return (yield)
    except DependencySkip as e:
        pytest.skip(e.reason)


def _error_text(report: pytest.TestReport, call: pytest.CallInfo) -> Optional[str]:
    if report.skipped:
        return "Skipped: " + _skip_reason(report)
    if call.excinfo is None:
        return None
    return call.excinfo.exconly()


@pytest.hookimpl(wrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    report = yield

    gate = item.stash.get(GATE_KEY, None)
    if gate is None:
        return report

    if gate.depends_on_keys and report.when in ("setup", "call"):
        report.user_properties.append((DEPENDS_ON_PROPERTY, list(gate.depends_on_keys)))

    if report.when == "call" or (report.when == "setup" and not report.passed):
        gate.record_result(report.passed, None if report.passed else _error_text(report, call))
    elif report.when == "teardown":
        gate.clear()

    return report


# -----------------------------
# Reporting
# -----------------------------
def _skip_reason(report: pytest.TestReport) -> str:
    longrepr = report.longrepr
    if isinstance(longrepr, tuple) and len(longrepr) == 3:
        reason = str(longrepr[2])
    else:
        reason = str(longrepr or "")
    if reason.startswith("Skipped: "):
        reason = reason[len("Skipped: "):]
    return reason


def _depends_on(report: pytest.TestReport) -> List[str]:
    for name, value in report.user_properties:
        if name == DEPENDS_ON_PROPERTY:
            return list(value)
    return []


class GatekeeperReporter:
    """Collects outcomes as reports arrive and prints the dependency summary at the end."""

    def __init__(self, config: pytest.Config):
        self.config = config
        self.report = config.stash[REPORT_KEY]

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if report.when == "teardown" or (report.when == "setup" and report.passed):
            return

        title = report.head_line or report.nodeid
        skip_reason = _skip_reason(report) if report.skipped else ""
        self.report.record(
            report.nodeid,
            title,
            report.outcome,
            skip_reason=skip_reason,
            depends_on=_depends_on(report),
            rerun=getattr(report, "rerun", 0) or 0,
        )
        if skip_reason:
            get_coordinator(self.config).log.skip(title, skip_reason)

    def pytest_terminal_summary(self, terminalreporter) -> None:
        coordinator = get_coordinator(self.config)
        summary = coordinator.get_summary()
        if summary.total == 0 and not self.report.dependents and not self.report.dependency_skips:
            return

        lines = self.report.render(summary, coordinator.get_all_results(), coordinator.get_all_dependencies())
        for line in lines:
            terminalreporter.write_line(line)

