"""
Time helpers

All waitlist timestamps are epoch milliseconds on the server clock, stored as
BIGINT. Client-supplied times are only ever compared against this clock.
"""
import time


def now_ms() -> int:
    """Current server time in epoch milliseconds"""
    return int(time.time() * 1000)
