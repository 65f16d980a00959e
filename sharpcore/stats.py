"""In-memory counters and timers for SharpCore.

Values live for the process lifetime. All access happens on the event
loop thread, so plain dict updates are atomic enough.
"""

import time
from typing import Any, Dict, Optional, Union

Number = Union[int, float]

START_TIME = "start-time"


class StatsRecorder:
    """Named counters and values.

    ``increment`` creates a missing counter at zero before adding;
    ``set`` overwrites. ``start-time`` is recorded with the monotonic
    clock so ``uptime()`` is immune to wall-clock changes.
    """

    def __init__(self):
        self._values: Dict[str, Any] = {}

    def increment(self, key: str, amount: Number = 1) -> Number:
        value = self._values.get(key, 0) + amount
        self._values[key] = value
        return value

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def mark_started(self) -> None:
        """Record the start time used by ``uptime()``."""
        self.set(START_TIME, time.monotonic())

    def uptime(self) -> Optional[float]:
        """Seconds since ``mark_started()``, or None if never started."""
        started = self._values.get(START_TIME)
        if started is None:
            return None
        return time.monotonic() - started

    def snapshot(self) -> Dict[str, Any]:
        """Copy of all values, safe to hand to display code."""
        return dict(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
