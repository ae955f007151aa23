# src/pytest_gatekeeper/wait.py
from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

from pytest_gatekeeper.schemas import GatekeeperResult
from pytest_gatekeeper.utils.timebox import Deadline

ReadResult = Callable[[str], Optional[GatekeeperResult]]
GiveUp = Callable[[str], bool]


class ResultWaiter:
    """
    Polls for gatekeeper results until they appear or a timeout elapses.

    A key that never shows up maps to None. That is an outcome for the
    caller to interpret, not an error.
    """

    def __init__(self, read_result: ReadResult, *, poll_interval_s: float = 0.1):
        self.read_result = read_result
        self.poll_interval_s = poll_interval_s

    async def wait_for_result(
        self,
        key: str,
        timeout_s: float,
        give_up: Optional[GiveUp] = None,
    ) -> Optional[GatekeeperResult]:
        """`give_up(key)` returning True ends the wait early with None."""
        deadline = Deadline(timeout_s)
        while True:
            result = self.read_result(key)
            if result is not None:
                return result
            if deadline.expired() or (give_up is not None and give_up(key)):
                return None
            await asyncio.sleep(min(self.poll_interval_s, deadline.remaining()))

    async def wait_for_results(
        self,
        keys: List[str],
        timeout_s: float,
        give_up: Optional[GiveUp] = None,
    ) -> Dict[str, Optional[GatekeeperResult]]:
        found = await asyncio.gather(*(self.wait_for_result(key, timeout_s, give_up) for key in keys))
        return dict(zip(keys, found))

    def wait_for_results_sync(
        self,
        keys: List[str],
        timeout_s: float,
        give_up: Optional[GiveUp] = None,
    ) -> Dict[str, Optional[GatekeeperResult]]:
        return asyncio.run(self.wait_for_results(keys, timeout_s, give_up))
