"""
Small 2D helpers shared by the particle, channel and membrane code.

Points are plain (x, y) tuples in nanometres with the axon cross-section
centred on the origin.
"""

import math
from typing import Sequence, Tuple

Point = Tuple[float, float]


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.hypot(x2 - x1, y2 - y1)


def polar(origin: Point, radius: float, angle: float) -> Point:
    """Point at `radius` from `origin` in direction `angle`."""
    return (origin[0] + radius * math.cos(angle),
            origin[1] + radius * math.sin(angle))


def normalize_angle(angle: float) -> float:
    """Wrap an angle into [-pi, pi)."""
    return (angle + math.pi) % (2.0 * math.pi) - math.pi


def cubic_bezier(points: Sequence[Point], t: float) -> Point:
    """
    Evaluate a cubic Bezier curve given as (p0, c1, c2, p1) at t in [0, 1].
    """
    (x0, y0), (x1, y1), (x2, y2), (x3, y3) = points
    u = 1.0 - t
    x = u ** 3 * x0 + 3 * u ** 2 * t * x1 + 3 * u * t ** 2 * x2 + t ** 3 * x3
    y = u ** 3 * y0 + 3 * u ** 2 * t * y1 + 3 * u * t ** 2 * y2 + t ** 3 * y3
    return (x, y)
