"""
Geometry of the axon (cross-section plus the receding body drawn behind it)
and the action potential travelling along the body toward the cross-section.
"""

import math
from typing import NamedTuple, Optional, Tuple

from .geometry import Point, cubic_bezier, distance, polar
from .state import AxonMembraneState, TravelingActionPotentialState

BODY_LENGTH_FACTOR = 1.5       # body length as a multiple of the diameter
BODY_TILT_ANGLE = math.pi / 4


class ActionPotentialShape(NamedTuple):
    """
    Outline of the travelling pulse for display.

    kind is 'curve' while travelling (points holds the four cubic Bezier
    control points) and 'circle' while lingering at the cross-section
    (centre in points[0], radius in radius).
    """
    kind: str
    points: Tuple[Point, ...]
    radius: float = 0.0


class TravelingActionPotential:
    """
    A pulse moving down the axon body. Travelling, then lingering around the
    cross-section, then done.
    """

    TRAVELING_TIME = 0.0020                 # s
    LINGER_AT_CROSS_SECTION_TIME = 0.0005

    def __init__(self, axon_membrane: 'AxonMembrane'):
        self.axon_membrane = axon_membrane
        self.travel_time_countdown = self.TRAVELING_TIME
        self.linger_countdown = 0.0

    def is_traveling(self) -> bool:
        return self.travel_time_countdown > 0

    def is_lingering(self) -> bool:
        return self.travel_time_countdown <= 0 and self.linger_countdown > 0

    def is_finished(self) -> bool:
        return self.travel_time_countdown <= 0 and self.linger_countdown <= 0

    def step_in_time(self, dt: float) -> bool:
        """
        Returns:
            True on the frame the pulse reaches the cross-section
        """
        if self.travel_time_countdown > 0:
            self.travel_time_countdown -= dt
            if self.travel_time_countdown <= 0:
                self.linger_countdown = self.LINGER_AT_CROSS_SECTION_TIME
                return True
        elif self.linger_countdown > 0:
            self.linger_countdown -= dt
        return False

    def get_shape(self) -> Optional[ActionPotentialShape]:
        if self.travel_time_countdown > 0:
            travel = 1.0 - self.travel_time_countdown / self.TRAVELING_TIME
            start = self.axon_membrane.evaluate_curve_a(travel)
            end = self.axon_membrane.evaluate_curve_b(travel)
            mid = ((start[0] + end[0]) / 2, (start[1] + end[1]) / 2)
            span = distance(start[0], start[1], end[0], end[1])
            perpendicular = math.atan2(end[1] - start[1], end[0] - start[0]) + math.pi / 2
            ctrl1 = polar(mid, span * 0.7 * travel ** 1.8, perpendicular + math.pi / 6)
            ctrl2 = polar(mid, span * 0.7 * travel ** 0.8, perpendicular - math.pi / 6)
            return ActionPotentialShape('curve', (start, ctrl1, ctrl2, end))
        if self.linger_countdown > 0:
            growth = (1 - abs(self.linger_countdown / self.LINGER_AT_CROSS_SECTION_TIME - 0.5) * 2) * 0.04 + 1
            radius = self.axon_membrane.outer_radius * growth
            return ActionPotentialShape('circle', ((0.0, 0.0),), radius)
        return None

    def get_state(self) -> TravelingActionPotentialState:
        return TravelingActionPotentialState(self.travel_time_countdown, self.linger_countdown)

    def set_state(self, state: TravelingActionPotentialState) -> None:
        self.travel_time_countdown = state.travel_time_countdown
        self.linger_countdown = state.linger_countdown


class AxonMembrane:
    """
    The membrane ring of the cross-section, centred on the origin, and the
    axon body receding toward a vanishing point up and to the right.
    """

    def __init__(self, cross_section_diameter: float = 150.0, membrane_thickness: float = 4.0):
        self.cross_section_diameter = cross_section_diameter
        self.membrane_thickness = membrane_thickness
        self.traveling_action_potential: Optional[TravelingActionPotential] = None
        self._build_body()

    @property
    def radius(self) -> float:
        return self.cross_section_diameter / 2.0

    @property
    def inner_radius(self) -> float:
        return self.radius - self.membrane_thickness / 2.0

    @property
    def outer_radius(self) -> float:
        return self.radius + self.membrane_thickness / 2.0

    def _build_body(self) -> None:
        body_length = self.cross_section_diameter * BODY_LENGTH_FACTOR
        self.vanishing_point = polar((0.0, 0.0), body_length, BODY_TILT_ANGLE)

        theta = BODY_TILT_ANGLE + math.pi * 0.45
        self.intersection_point_a = polar((0.0, 0.0), self.outer_radius, theta)
        self.intersection_point_b = polar((0.0, 0.0), self.outer_radius, theta + math.pi)

        a, b, v = self.intersection_point_a, self.intersection_point_b, self.vanishing_point
        a_to_v = math.atan2(v[1] - a[1], v[0] - a[0])
        a_len = distance(a[0], a[1], v[0], v[1])
        ctrl_a1 = polar(a, a_len * 0.33, a_to_v + 0.15)
        ctrl_a2 = polar(a, a_len * 0.67, a_to_v - 0.5)

        v_to_b = math.atan2(b[1] - v[1], b[0] - v[0])
        b_len = distance(b[0], b[1], v[0], v[1])
        ctrl_b1 = polar(v, b_len * 0.33, v_to_b + 0.1)
        ctrl_b2 = polar(v, b_len * 0.67, v_to_b - 0.25)

        # both curves run from the vanishing point to the cross-section
        self.curve_a = (v, ctrl_a2, ctrl_a1, a)
        self.curve_b = (v, ctrl_b1, ctrl_b2, b)

    def evaluate_curve_a(self, t: float) -> Point:
        return cubic_bezier(self.curve_a, t)

    def evaluate_curve_b(self, t: float) -> Point:
        return cubic_bezier(self.curve_b, t)

    def initiate_traveling_action_potential(self) -> bool:
        """Start a pulse down the body; False if one is already under way."""
        if self.traveling_action_potential is not None:
            return False
        self.traveling_action_potential = TravelingActionPotential(self)
        return True

    def remove_traveling_action_potential(self) -> None:
        self.traveling_action_potential = None

    def step_in_time(self, dt: float) -> bool:
        """
        Returns:
            True on the frame a travelling pulse reaches the cross-section
        """
        ap = self.traveling_action_potential
        if ap is None:
            return False
        reached = ap.step_in_time(dt)
        if ap.is_finished():
            self.traveling_action_potential = None
        return reached

    def get_traveling_action_potential_shape(self) -> Optional[ActionPotentialShape]:
        ap = self.traveling_action_potential
        return ap.get_shape() if ap is not None else None

    def get_state(self) -> AxonMembraneState:
        ap = self.traveling_action_potential
        return AxonMembraneState(ap.get_state() if ap is not None else None)

    def set_state(self, state: AxonMembraneState) -> None:
        if state.traveling_action_potential is None:
            self.traveling_action_potential = None
            return
        if self.traveling_action_potential is None:
            self.traveling_action_potential = TravelingActionPotential(self)
        self.traveling_action_potential.set_state(state.traveling_action_potential)

    def reset(self) -> None:
        self.traveling_action_potential = None
