# src/pytest_gatekeeper/schemas.py
from __future__ import annotations

import json
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, constr


# -----------------------------
# Shared constraints
# -----------------------------
GatekeeperKey = constr(min_length=1)


# -----------------------------
# Durable state
# -----------------------------
class GatekeeperResult(BaseModel):
    """
    Outcome recorded by the gatekeeper that owns a key.
    timestamp is epoch milliseconds.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    passed: bool
    error: Optional[str] = Field(default=None, description="Failure message, if any.")
    timestamp: float


class StateSnapshot(BaseModel):
    """
    The whole persisted state. Unknown top-level keys in the file are ignored.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    results: Dict[GatekeeperKey, GatekeeperResult] = Field(default_factory=dict)
    dependencies: Dict[GatekeeperKey, List[GatekeeperKey]] = Field(default_factory=dict)

    def with_result(self, key: str, result: GatekeeperResult) -> "StateSnapshot":
        results = dict(self.results)
        results[key] = result
        return StateSnapshot(results=results, dependencies=dict(self.dependencies))

    def with_dependencies(self, key: str, dependencies: List[str]) -> "StateSnapshot":
        deps = dict(self.dependencies)
        deps[key] = list(dependencies)
        return StateSnapshot(results=dict(self.results), dependencies=deps)


# -----------------------------
# Query outputs
# -----------------------------
class FailedDependency(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    key: GatekeeperKey
    error: Optional[str] = None
    chain: List[GatekeeperKey] = Field(
        ..., description="Path from the queried key down to the failed key."
    )


class GatekeeperSummary(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    total: NonNegativeInt = 0
    passed: NonNegativeInt = 0
    failed: NonNegativeInt = 0


class DependencyCheck(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    passed: bool
    failed_key: Optional[str] = None
    failed_info: Optional[FailedDependency] = None


# -----------------------------
# Deterministic JSON helpers
# -----------------------------
def canonical_json(model: BaseModel) -> str:
    """
    Deterministic JSON serialization:
    - sort_keys=True ensures stable key order
    - separators remove whitespace
    - ensure_ascii=False preserves unicode
    """
    payload = model.model_dump(mode="json", exclude_none=True)
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def empty_snapshot() -> StateSnapshot:
    return StateSnapshot()
