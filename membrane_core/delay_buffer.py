"""
Fixed-capacity history of (value, dt) samples for lagged lookups.
"""

import math
import numpy as np


class DelayBuffer:
    """
    Ring buffer answering "what was the value `delay` seconds ago?".

    Capacity is ceil(max_delay / min_time_step), enough to cover max_delay
    when every frame is the shortest allowed one. A lookup further back than
    the buffered span saturates to the oldest stored sample; an empty buffer
    reports 0.
    """

    def __init__(self, max_delay: float, min_time_step: float):
        if max_delay <= 0 or min_time_step <= 0:
            raise ValueError("max_delay and min_time_step must be positive")
        self.capacity = int(math.ceil(max_delay / min_time_step))
        self._values = np.zeros(self.capacity)
        self._dts = np.zeros(self.capacity)
        self._head = 0   # next slot to write
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def add_value(self, value: float, delta_time: float) -> None:
        self._values[self._head] = value
        self._dts[self._head] = delta_time
        self._head = (self._head + 1) % self.capacity
        self._count = min(self._count + 1, self.capacity)

    def _newest_first(self):
        idx = (self._head - 1 - np.arange(self._count)) % self.capacity
        return self._values[idx], self._dts[idx]

    def get_delayed_value(self, delay: float) -> float:
        """
        Walk back from the newest sample accumulating dt until the total
        reaches `delay` and return that sample's value.
        """
        if self._count == 0:
            return 0.0
        values, dts = self._newest_first()
        elapsed = np.cumsum(dts)
        # small slack so delays that are an exact multiple of dt land on
        # the matching sample despite float summation
        pos = int(np.searchsorted(elapsed, delay - 1e-15, side='left'))
        if pos >= self._count:
            pos = self._count - 1
        return float(values[pos])

    def get_oldest_value(self) -> float:
        if self._count == 0:
            return 0.0
        return float(self._values[(self._head - self._count) % self.capacity])

    def get_buffered_time(self) -> float:
        """Total dt currently spanned by the stored samples."""
        return float(self._newest_first()[1].sum()) if self._count else 0.0

    def clear(self) -> None:
        self._head = 0
        self._count = 0
