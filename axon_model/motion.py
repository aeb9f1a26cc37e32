"""
Motion strategies for particles.

move() never swaps the strategy on the particle itself; it returns a
MotionUpdate naming the strategy for the next frame, an optional new fade
strategy and, for channel traversals, how the traversal ended.
"""

import math
from enum import Enum
from typing import NamedTuple, Optional

from .fade import FadeStrategy, TimedFadeOutStrategy
from .geometry import distance, polar

DEFAULT_MAX_VELOCITY = 40000.0  # nm per second of sim time


class MembraneCrossingDirection(Enum):
    IN_TO_OUT = 'in_to_out'
    OUT_TO_IN = 'out_to_in'


class TransitOutcome(Enum):
    CROSSED = 'crossed'        # reached the far side of the membrane
    ABANDONED = 'abandoned'    # turned back or never entered the channel


class MotionUpdate(NamedTuple):
    strategy: 'MotionStrategy'
    fade: Optional[FadeStrategy] = None
    transit: Optional[TransitOutcome] = None


class MotionStrategy:
    """Base class for motion strategies."""

    is_traversal = False

    def move(self, particle, dt: float) -> MotionUpdate:
        """
        Move the particle for a frame of length dt (s).

        Returns:
            MotionUpdate with the strategy to use next
        """
        raise NotImplementedError


class StillnessMotionStrategy(MotionStrategy):

    def move(self, particle, dt: float) -> MotionUpdate:
        return MotionUpdate(self)


class LinearMotionStrategy(MotionStrategy):
    """Constant velocity (nm/s). Handy for driving particles in tests."""

    def __init__(self, vx: float, vy: float):
        self.vx = vx
        self.vy = vy

    def move(self, particle, dt: float) -> MotionUpdate:
        particle.set_position(particle.x + self.vx * dt, particle.y + self.vy * dt)
        return MotionUpdate(self)


class SpeedChangeLinearMotionStrategy(MotionStrategy):
    """
    Straight-line motion whose speed is scaled once, after
    `time_at_first_speed` seconds.
    """

    def __init__(self, vx: float, vy: float, speed_scale_factor: float,
                 time_at_first_speed: float):
        self.vx = vx
        self.vy = vy
        self.speed_scale_factor = speed_scale_factor
        self.countdown = time_at_first_speed
        self._scaled = False

    def move(self, particle, dt: float) -> MotionUpdate:
        particle.set_position(particle.x + self.vx * dt, particle.y + self.vy * dt)
        if not self._scaled:
            self.countdown -= dt
            if self.countdown <= 0:
                self.vx *= self.speed_scale_factor
                self.vy *= self.speed_scale_factor
                self._scaled = True
        return MotionUpdate(self)


class SlowBrownianMotionStrategy(MotionStrategy):
    """
    Background jitter: hop a short random distance away from the home
    location, then back, at random intervals.
    """

    MIN_JUMP_DISTANCE = 0.1      # nm
    MAX_JUMP_DISTANCE = 1.0
    MIN_TIME_TO_NEXT_JUMP = 0.0009  # s
    MAX_TIME_TO_NEXT_JUMP = 0.0015

    def __init__(self, home_x: float, home_y: float, rng):
        self.home = (home_x, home_y)
        self.rng = rng
        self._displaced = False
        self.time_until_next_jump = self._next_jump_time()

    def _next_jump_time(self) -> float:
        return self.MIN_TIME_TO_NEXT_JUMP + self.rng.random() * (
            self.MAX_TIME_TO_NEXT_JUMP - self.MIN_TIME_TO_NEXT_JUMP)

    def move(self, particle, dt: float) -> MotionUpdate:
        self.time_until_next_jump -= dt
        if self.time_until_next_jump <= 0:
            if self._displaced:
                particle.set_position(*self.home)
            else:
                jump = self.MIN_JUMP_DISTANCE + self.rng.random() * (
                    self.MAX_JUMP_DISTANCE - self.MIN_JUMP_DISTANCE)
                particle.set_position(*polar(self.home, jump, self.rng.random() * 2 * math.pi))
            self._displaced = not self._displaced
            self.time_until_next_jump = self._next_jump_time()
        return MotionUpdate(self)


class RandomWalkMotionStrategy(MotionStrategy):
    """
    Bounded diffusion inside the annulus inner_radius <= r <= outer_radius
    around the axon centre, i.e. on one side of the membrane.

    The particle drifts with a randomly re-drawn velocity and reflects off
    the annulus edges.
    """

    MIN_SPEED = 500.0   # nm/s
    MAX_SPEED = 5000.0
    VELOCITY_UPDATE_PERIOD = 0.0005  # s

    def __init__(self, inner_radius: float, outer_radius: float, rng):
        if outer_radius <= inner_radius:
            raise ValueError("outer_radius must exceed inner_radius")
        self.inner_radius = inner_radius
        self.outer_radius = outer_radius
        self.rng = rng
        self.vx = 0.0
        self.vy = 0.0
        self.velocity_countdown = 0.0

    def _redraw_velocity(self) -> None:
        speed = self.MIN_SPEED + self.rng.random() * (self.MAX_SPEED - self.MIN_SPEED)
        angle = self.rng.random() * 2 * math.pi
        self.vx = speed * math.cos(angle)
        self.vy = speed * math.sin(angle)
        self.velocity_countdown = self.VELOCITY_UPDATE_PERIOD * (0.5 + self.rng.random())

    def contains(self, x: float, y: float) -> bool:
        return self.inner_radius <= math.hypot(x, y) <= self.outer_radius

    def move(self, particle, dt: float) -> MotionUpdate:
        self.velocity_countdown -= dt
        if self.velocity_countdown <= 0:
            self._redraw_velocity()

        nx = particle.x + self.vx * dt
        ny = particle.y + self.vy * dt
        r = math.hypot(nx, ny)
        if not self.inner_radius <= r <= self.outer_radius:
            if r > 0:
                ux, uy = nx / r, ny / r
                v_radial = self.vx * ux + self.vy * uy
                self.vx -= 2 * v_radial * ux
                self.vy -= 2 * v_radial * uy
            nx = particle.x + self.vx * dt
            ny = particle.y + self.vy * dt
            r = math.hypot(nx, ny)
            if r > 0 and not self.inner_radius <= r <= self.outer_radius:
                scale = min(max(r, self.inner_radius), self.outer_radius) / r
                nx, ny = nx * scale, ny * scale
        particle.set_position(nx, ny)
        return MotionUpdate(self)


class WanderAwayThenFadeMotionStrategy(MotionStrategy):
    """
    Drift away from `away_point` at a random speed, then start fading out
    once `pre_fade_time` has elapsed.
    """

    MIN_SPEED = 500.0   # nm/s
    MAX_SPEED = 5000.0
    VELOCITY_UPDATE_PERIOD = 0.0025  # s

    def __init__(self, away_point, x: float, y: float, pre_fade_time: float,
                 fade_out_duration: float, rng):
        self.away_point = away_point
        self.pre_fade_countdown = pre_fade_time
        self.fade_out_duration = fade_out_duration
        self.rng = rng
        self._fading = False
        self.velocity_countdown = self.rng.random() * self.VELOCITY_UPDATE_PERIOD
        self._update_velocity(x, y)

    def _update_velocity(self, x: float, y: float) -> None:
        away_angle = (math.atan2(y - self.away_point[1], x - self.away_point[0])
                      + (self.rng.random() - 0.5) * math.pi)
        speed = self.MIN_SPEED + self.rng.random() * (self.MAX_SPEED - self.MIN_SPEED)
        self.vx = speed * math.cos(away_angle)
        self.vy = speed * math.sin(away_angle)

    def move(self, particle, dt: float) -> MotionUpdate:
        particle.set_position(particle.x + self.vx * dt, particle.y + self.vy * dt)

        self.velocity_countdown -= dt
        if self.velocity_countdown <= 0:
            self._update_velocity(particle.x, particle.y)
            self.velocity_countdown = self.VELOCITY_UPDATE_PERIOD

        fade = None
        if not self._fading:
            self.pre_fade_countdown -= dt
            if self.pre_fade_countdown <= 0:
                self._fading = True
                fade = TimedFadeOutStrategy(self.fade_out_duration)
        return MotionUpdate(self, fade=fade)


class MembraneTraversalMotionStrategy(MotionStrategy):
    """
    Directed motion through a channel along precomputed waypoints at
    `max_velocity`.
    """

    is_traversal = True

    def __init__(self, channel, start_x: float, start_y: float, rng,
                 max_velocity: float = DEFAULT_MAX_VELOCITY):
        self.channel = channel
        self.rng = rng
        self.max_velocity = max_velocity
        self.traversal_points = self._create_traversal_points(start_x, start_y)
        self.destination_index = 0
        self.vx = 0.0
        self.vy = 0.0
        self._set_course(start_x, start_y)

    def _create_traversal_points(self, start_x: float, start_y: float):
        raise NotImplementedError

    def _opening_points(self, reach: float):
        ctr = self.channel.center_location
        angle = self.channel.rotational_angle
        return polar(ctr, reach, angle), polar(ctr, reach, angle + math.pi)

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)

    def _set_course(self, x: float, y: float) -> None:
        if self.destination_index >= len(self.traversal_points):
            return
        dest_x, dest_y = self.traversal_points[self.destination_index]
        d = distance(x, y, dest_x, dest_y)
        if d == 0:
            self.vx = self.vy = 0.0
            return
        self.vx = (dest_x - x) / d * self.max_velocity
        self.vy = (dest_y - y) / d * self.max_velocity

    def _advance(self, particle, dt: float) -> bool:
        """Move toward the current waypoint; True once it is reached."""
        dest_x, dest_y = self.traversal_points[self.destination_index]
        if distance(particle.x, particle.y, dest_x, dest_y) <= self.speed * dt:
            particle.set_position(dest_x, dest_y)
            self.destination_index += 1
            self._set_course(dest_x, dest_y)
            return True
        particle.set_position(particle.x + self.vx * dt, particle.y + self.vy * dt)
        return False

    def _wander_off(self, particle) -> MotionUpdate:
        wander = WanderAwayThenFadeMotionStrategy(
            self.channel.center_location, particle.x, particle.y, 0.0, 0.002, self.rng)
        return MotionUpdate(wander, transit=TransitOutcome.ABANDONED)


class TraverseChannelAndFadeMotionStrategy(MembraneTraversalMotionStrategy):
    """
    Two-waypoint passage through a single-gate channel. If the channel shuts
    before the particle gets inside, the particle wanders off instead.
    """

    def __init__(self, channel, start_x: float, start_y: float, rng,
                 max_velocity: float = DEFAULT_MAX_VELOCITY):
        self.channel_entered = False
        super().__init__(channel, start_x, start_y, rng, max_velocity)

    def _create_traversal_points(self, start_x, start_y):
        outer, inner = self._opening_points(self.channel.channel_height * 0.65)
        if distance(start_x, start_y, *inner) < distance(start_x, start_y, *outer):
            return [inner, outer]
        return [outer, inner]

    def move(self, particle, dt: float) -> MotionUpdate:
        if not self.channel_entered:
            self.channel_entered = self.channel.is_point_in_channel(particle.x, particle.y)

        if not (self.channel.is_open() or self.channel_entered):
            return self._wander_off(particle)

        if self._advance(particle, dt) and self.destination_index == len(self.traversal_points):
            exit_strategy = WanderAwayThenFadeMotionStrategy(
                self.channel.center_location, particle.x, particle.y, 0.0, 0.002, self.rng)
            return MotionUpdate(exit_strategy, transit=TransitOutcome.CROSSED)
        return MotionUpdate(self)


class DualGateChannelTraversalMotionStrategy(MembraneTraversalMotionStrategy):
    """
    Three-waypoint passage through a channel with an inactivation gate:
    mouth, just above the gate, far mouth. If the gate closes while the
    particle is inside, it bounces back out the way it came.
    """

    INACTIVATION_BOUNCE_THRESHOLD = 0.5

    def __init__(self, channel, start_x: float, start_y: float, rng,
                 max_velocity: float = DEFAULT_MAX_VELOCITY):
        self.bouncing = False
        super().__init__(channel, start_x, start_y, rng, max_velocity)

    def _create_traversal_points(self, start_x, start_y):
        ctr = self.channel.center_location
        angle = self.channel.rotational_angle
        r = self.channel.channel_height * 0.5
        outer, inner = self._opening_points(r)
        above_gate = polar(ctr, r * 0.5, angle + math.pi)
        if distance(start_x, start_y, *inner) < distance(start_x, start_y, *outer):
            return [inner, above_gate, outer]
        return [outer, above_gate, inner]

    def move(self, particle, dt: float) -> MotionUpdate:
        if self.destination_index == 0:
            if not self.channel.is_open():
                return self._wander_off(particle)
            self._advance(particle, dt)
        elif self.destination_index == 1:
            if (not self.bouncing and
                    self.channel.inactivation_amount > self.INACTIVATION_BOUNCE_THRESHOLD):
                self.traversal_points[2] = self.traversal_points[0]
                self.bouncing = True
            if self._advance(particle, dt) and self.bouncing:
                self.vx *= 0.5
                self.vy *= 0.5
        elif self._advance(particle, dt):
            return self._exit(particle)
        return MotionUpdate(self)

    def _exit(self, particle) -> MotionUpdate:
        speed_factor = 0.3 + self.rng.random() * 0.2 if self.bouncing else 0.5 + self.rng.random() * 0.3
        if self.bouncing:
            rotation = (self.rng.random() - 0.5) * math.pi
        else:
            open_fraction = 1.0 - self.channel.inactivation_amount
            if self.rng.random() > 0.3:
                max_rotation = math.pi * 0.4
                min_rotation = max_rotation - open_fraction * math.pi * 0.3
            else:
                max_rotation = -math.pi * 0.4
                min_rotation = max_rotation + open_fraction * math.pi * 0.1
            rotation = min_rotation + self.rng.random() * (max_rotation - min_rotation)

        cos_r, sin_r = math.cos(rotation), math.sin(rotation)
        vx = (self.vx * cos_r - self.vy * sin_r) * speed_factor
        vy = (self.vx * sin_r + self.vy * cos_r) * speed_factor
        if self.bouncing:
            return MotionUpdate(SpeedChangeLinearMotionStrategy(vx, vy, 1.0, 0.0),
                                fade=TimedFadeOutStrategy(0.003),
                                transit=TransitOutcome.ABANDONED)
        return MotionUpdate(SpeedChangeLinearMotionStrategy(vx, vy, 0.2, 0.0002),
                            fade=TimedFadeOutStrategy(0.003),
                            transit=TransitOutcome.CROSSED)
