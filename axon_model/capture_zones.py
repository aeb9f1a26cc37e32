"""
Regions next to a channel mouth from which free particles get captured.
"""

import math
from typing import Iterable, NamedTuple, Optional

from .geometry import Point, distance, normalize_angle, polar


class CaptureZoneScanResult(NamedTuple):
    closest_free_particle: Optional[object]
    num_particles_in_zone: int


class CaptureZone:
    """
    Base class for capture zones. The zone moves and turns with its channel
    through set_origin_point() and set_rotational_angle().
    """

    is_null = False

    def __init__(self, origin_point: Point = (0.0, 0.0), rotational_angle: float = 0.0):
        self.origin_point = origin_point
        self.rotational_angle = rotational_angle

    def set_origin_point(self, point: Point) -> None:
        self.origin_point = point

    def set_rotational_angle(self, angle: float) -> None:
        self.rotational_angle = angle

    def is_point_in_zone(self, x: float, y: float) -> bool:
        raise NotImplementedError

    def assign_new_particle_location(self, particle, rng) -> None:
        """Place a newly created particle somewhere inside the zone."""
        raise NotImplementedError

    def scan_for_capture(self, particles: Iterable, particle_type) -> CaptureZoneScanResult:
        """
        Find the free particle of `particle_type` nearest the zone origin and
        count how many such particles lie inside the zone.
        """
        closest = None
        closest_distance = math.inf
        count = 0
        ox, oy = self.origin_point
        for particle in particles:
            if particle.particle_type is not particle_type or not particle.is_available_for_capture():
                continue
            if not self.is_point_in_zone(particle.x, particle.y):
                continue
            count += 1
            d = distance(ox, oy, particle.x, particle.y)
            if d < closest_distance:
                closest = particle
                closest_distance = d
        return CaptureZoneScanResult(closest, count)


class NullCaptureZone(CaptureZone):
    """A zone containing nothing, for channels that never scan for particles."""

    is_null = True

    def is_point_in_zone(self, x: float, y: float) -> bool:
        return False

    def assign_new_particle_location(self, particle, rng) -> None:
        raise ValueError("a NullCaptureZone has no area to place particles in")

    def scan_for_capture(self, particles, particle_type) -> CaptureZoneScanResult:
        return CaptureZoneScanResult(None, 0)


class WedgeCaptureZone(CaptureZone):
    """
    Pie slice of `radius` centred on the channel, pointing along the channel
    rotation plus `fixed_rotational_offset` and spanning `angle_of_extent`.
    """

    def __init__(self, origin_point: Point, radius: float, fixed_rotational_offset: float,
                 angle_of_extent: float, rotational_angle: float = 0.0):
        super().__init__(origin_point, rotational_angle)
        self.radius = radius
        self.fixed_rotational_offset = fixed_rotational_offset
        self.angle_of_extent = angle_of_extent

    @property
    def center_angle(self) -> float:
        return self.rotational_angle + self.fixed_rotational_offset

    def is_point_in_zone(self, x: float, y: float) -> bool:
        ox, oy = self.origin_point
        if distance(ox, oy, x, y) > self.radius:
            return False
        if x == ox and y == oy:
            return True
        offset = normalize_angle(math.atan2(y - oy, x - ox) - self.center_angle)
        return abs(offset) <= self.angle_of_extent / 2.0

    def assign_new_particle_location(self, particle, rng) -> None:
        angle = self.center_angle + (rng.random() - 0.5) * self.angle_of_extent
        particle.set_position(*polar(self.origin_point, self.radius * 0.9, angle))
