from pytest_gatekeeper.schemas import GatekeeperResult, StateSnapshot


def make_result(passed: bool, error: str = None, timestamp: float = 1700000000000.0) -> GatekeeperResult:
    return GatekeeperResult(passed=passed, error=error, timestamp=timestamp)


def make_snapshot(results=None, dependencies=None) -> StateSnapshot:
    return StateSnapshot(
        results={k: make_result(*v) if isinstance(v, tuple) else v for k, v in (results or {}).items()},
        dependencies=dependencies or {},
    )
