# src/pytest_gatekeeper/graph/resolver.py
from __future__ import annotations

from typing import Iterable, List, Optional, Set, Tuple

from pytest_gatekeeper.schemas import FailedDependency, StateSnapshot


def get_failed_dependency(keys: Iterable[str], snapshot: StateSnapshot) -> Optional[FailedDependency]:
    """
    Depth-first search for the first failed key reachable from `keys`.

    Keys are visited in the order given and each key's dependencies in
    declaration order. The visited set spans the whole traversal, so a key
    reached twice (or through a cycle) is expanded only once.

    Returns None when nothing failed, which includes "nothing reported yet".
    """
    visited: Set[str] = set()
    # Each frame is (path to this level, remaining siblings at this level).
    stack: List[Tuple[List[str], List[str]]] = [([], list(keys))]

    while stack:
        path, pending = stack[-1]
        if not pending:
            stack.pop()
            continue

        key = pending.pop(0)
        if key in visited:
            continue
        visited.add(key)

        result = snapshot.results.get(key)
        if result is not None and not result.passed:
            return FailedDependency(key=key, error=result.error, chain=[*path, key])

        deps = snapshot.dependencies.get(key) or []
        if deps:
            stack.append(([*path, key], list(deps)))

    return None


def format_chain(chain: List[str]) -> str:
    if len(chain) <= 1:
        return ""
    return f" (chain: {' → '.join(chain)})"
