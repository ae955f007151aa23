from typing import Iterable, List, Union

def normalize_keys(keys: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(keys, str):
        keys = [keys]

    normalized: List[str] = []
    for key in keys:
        if not isinstance(key, str):
            raise TypeError(f"gatekeeper key must be a string, got {type(key).__name__}")
        key = key.strip()
        if not key:
            raise ValueError("gatekeeper key must be a non-empty string")
        if key not in normalized:
            normalized.append(key)

    return normalized
