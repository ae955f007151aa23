from __future__ import annotations

import json

from pytest_gatekeeper.schemas import StateSnapshot


def parse_snapshot(text: str) -> StateSnapshot:
    """Raises ValueError (json or pydantic) on anything that is not a valid snapshot."""
    return StateSnapshot.model_validate(json.loads(text))


def dump_snapshot(snapshot: StateSnapshot) -> str:
    payload = snapshot.model_dump(mode="json", exclude_none=True)
    return json.dumps(payload, ensure_ascii=False, indent=2)
