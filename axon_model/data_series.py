"""Membrane potential trace for charting."""

from typing import List, Optional, Tuple

import numpy as np


class MembranePotentialDataSeries:
    """
    Time/voltage samples of the membrane potential, x in ms since the first
    sample and y in mV.

    add_sample() stops accepting points once the trace covers `time_span`
    ms; chart_is_full then reports True until clear().

    Args:
        time_span: Width of the trace in ms
    """

    def __init__(self, time_span: float = 25.0):
        self.time_span = time_span
        self.x_points: List[float] = []
        self.y_points: List[float] = []
        self.chart_is_full = False
        self._time_of_first_point: Optional[float] = None

    def __len__(self):
        return len(self.x_points)

    def add_point(self, x: float, y: float) -> None:
        self.x_points.append(x)
        self.y_points.append(y)

    def add_sample(self, time: float, voltage: float) -> bool:
        """
        Add a model sample.

        Args:
            time: Model time in seconds
            voltage: Membrane potential in volts

        Returns:
            True if the sample was added
        """
        if self._time_of_first_point is None:
            self._time_of_first_point = time
        x = (time - self._time_of_first_point) * 1000.0
        if self.chart_is_full:
            return False
        if x > self.time_span:
            self.chart_is_full = True
            return False
        self.add_point(x, voltage * 1000.0)
        return True

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= len(self.x_points):
            raise IndexError(f"No data point exists at index {index}")

    def get_x(self, index: int) -> float:
        self._check_index(index)
        return self.x_points[index]

    def get_y(self, index: int) -> float:
        self._check_index(index)
        return self.y_points[index]

    def get_point(self, index: int) -> Tuple[float, float]:
        self._check_index(index)
        return self.x_points[index], self.y_points[index]

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        return np.asarray(self.x_points), np.asarray(self.y_points)

    def clear(self) -> None:
        self.x_points = []
        self.y_points = []
        self.chart_is_full = False
        self._time_of_first_point = None
