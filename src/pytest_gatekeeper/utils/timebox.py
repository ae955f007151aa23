import time


class Deadline:
    """A point in monotonic time `timeout_s` seconds from construction."""
    def __init__(self, timeout_s: float):
        self.timeout_s = max(0.0, float(timeout_s))
        self.expires_at = time.monotonic() + self.timeout_s

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at


def epoch_ms() -> float:
    return time.time() * 1000.0
