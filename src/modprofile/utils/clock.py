import time


def now_ms() -> int:
    """wall clock in milliseconds since the epoch."""
    return int(time.time() * 1000)
