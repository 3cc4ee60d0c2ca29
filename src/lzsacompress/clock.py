from __future__ import annotations
import time
from typing import Callable, Optional


def _perf_us() -> int:
    return time.perf_counter_ns() // 1000


def _wall_us() -> int:
    return time.time_ns() // 1000


class Clock:
    """Microsecond tick reader. Build one per process and hand it to whoever times things."""

    __slots__ = ("_source", "name")

    def __init__(self, source: Optional[Callable[[], int]] = None):
        if source is not None:
            self._source = source
            self.name = getattr(source, "__name__", "custom")
            return
        # perf_counter is monotonic; fall back to wall time on platforms with a coarse one
        info = time.get_clock_info("perf_counter")
        if info.monotonic and info.resolution <= 1e-3:
            self._source, self.name = _perf_us, "perf_counter"
        else:
            self._source, self.name = _wall_us, "time"

    def now(self) -> int:
        return int(self._source())
