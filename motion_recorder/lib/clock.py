"""Wall-clock helpers shared by the normalizer and the session recorder."""

import time
from typing import Callable

Clock = Callable[[], int]


def epoch_millis() -> int:
    """Current wall-clock time in milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000
