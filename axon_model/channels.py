"""
Membrane channels: the four channel variants, their gate state machines and
the timers that decide when a channel asks for an ion to pass through it.

Variants are selected by MembraneChannelTypes through
create_membrane_channel(); the rest of the model only talks to the
MembraneChannel interface.
"""

import logging
import math
from enum import Enum

from .capture_zones import NullCaptureZone, WedgeCaptureZone
from .geometry import polar
from .motion import (
    DEFAULT_MAX_VELOCITY,
    MembraneCrossingDirection,
    TraverseChannelAndFadeMotionStrategy,
    DualGateChannelTraversalMotionStrategy,
)
from .particles import ParticleType
from .state import MembraneChannelState

logger = logging.getLogger(__name__)


class MembraneChannelTypes(Enum):
    SODIUM_LEAKAGE_CHANNEL = 'sodium_leak'
    SODIUM_GATED_CHANNEL = 'sodium_gated'
    POTASSIUM_LEAKAGE_CHANNEL = 'potassium_leak'
    POTASSIUM_GATED_CHANNEL = 'potassium_gated'


class GateState(Enum):
    CLOSED = 'closed'
    OPENING = 'opening'
    OPEN = 'open'
    INACTIVATING = 'inactivating'
    INACTIVATED = 'inactivated'
    RESETTING = 'resetting'
    CLOSING = 'closing'


class MembraneChannel:
    """
    Base class for membrane channels.

    A channel sits on the membrane at `center_location`, with
    `rotational_angle` pointing from its interior mouth to its exterior
    mouth. Openness and inactivation are both in [0, 1]; the channel passes
    ions only while openness > 0.2 and inactivation < 0.7.
    """

    channel_type = None
    has_inactivation_gate = False
    particle_velocity = DEFAULT_MAX_VELOCITY

    OPENNESS_THRESHOLD = 0.2
    INACTIVATION_THRESHOLD = 0.7

    def __init__(self, index: int, hh_model, rng, membrane_thickness: float = 4.0,
                 min_time_step: float = (1.0 / 60.0) / 3000.0):
        self.index = index
        self.hh_model = hh_model
        self.rng = rng
        self.min_time_step = min_time_step
        self.channel_width = membrane_thickness * 0.5
        self.channel_height = membrane_thickness * 1.2
        self.center_location = (0.0, 0.0)
        self.rotational_angle = 0.0

        self.openness = 0.0
        self.inactivation_amount = 0.0
        self.gate_state = GateState.CLOSED
        self.state_transition_timer = 0.0

        self.min_inter_capture_time = math.inf
        self.max_inter_capture_time = math.inf
        self.capture_countdown_timer = math.inf

        self.interior_capture_zone = NullCaptureZone()
        self.exterior_capture_zone = NullCaptureZone()

        self.particle_source = None
        self._in_transit = {direction: None for direction in MembraneCrossingDirection}

    # ------------------------------------------------------------------
    # Members each variant provides
    # ------------------------------------------------------------------

    def get_particle_type_to_capture(self) -> ParticleType:
        raise NotImplementedError

    def choose_crossing_direction(self) -> MembraneCrossingDirection:
        raise NotImplementedError

    def _update_gate(self, dt: float) -> None:
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError

    def create_traversal_strategy(self, x: float, y: float, max_velocity: float):
        return TraverseChannelAndFadeMotionStrategy(self, x, y, self.rng, max_velocity)

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def set_center_location(self, point) -> None:
        self.center_location = point
        self.interior_capture_zone.set_origin_point(point)
        self.exterior_capture_zone.set_origin_point(point)

    def set_rotational_angle(self, angle: float) -> None:
        self.rotational_angle = angle
        self.interior_capture_zone.set_rotational_angle(angle)
        self.exterior_capture_zone.set_rotational_angle(angle)

    def _set_capture_zones(self, interior, exterior) -> None:
        self.interior_capture_zone = interior
        self.exterior_capture_zone = exterior
        self.set_center_location(self.center_location)
        self.set_rotational_angle(self.rotational_angle)

    def is_point_in_channel(self, x: float, y: float) -> bool:
        dx = x - self.center_location[0]
        dy = y - self.center_location[1]
        cos_a, sin_a = math.cos(self.rotational_angle), math.sin(self.rotational_angle)
        along = dx * cos_a + dy * sin_a
        across = -dx * sin_a + dy * cos_a
        return abs(along) <= self.channel_height / 2 and abs(across) <= self.channel_width / 2

    def get_source_capture_zone(self, direction: MembraneCrossingDirection):
        if direction is MembraneCrossingDirection.OUT_TO_IN:
            return self.exterior_capture_zone
        return self.interior_capture_zone

    def get_source_opening_location(self, direction: MembraneCrossingDirection,
                                    standoff: float = 0.0):
        """Point just outside the mouth an ion enters through."""
        angle = self.rotational_angle
        if direction is MembraneCrossingDirection.IN_TO_OUT:
            angle += math.pi
        return polar(self.center_location, self.channel_height / 2 + standoff, angle)

    # ------------------------------------------------------------------
    # Time evolution
    # ------------------------------------------------------------------

    def is_open(self) -> bool:
        return (self.openness > self.OPENNESS_THRESHOLD
                and self.inactivation_amount < self.INACTIVATION_THRESHOLD)

    def step_in_time(self, dt: float) -> None:
        self._update_gate(dt)
        if math.isinf(self.capture_countdown_timer):
            return
        if self.is_open():
            self.capture_countdown_timer -= dt
            if self.capture_countdown_timer <= 0:
                self.restart_capture_countdown_timer(capture_now=True)
        else:
            self.capture_countdown_timer = math.inf

    def restart_capture_countdown_timer(self, capture_now: bool) -> None:
        if math.isfinite(self.min_inter_capture_time) and math.isfinite(self.max_inter_capture_time):
            self.capture_countdown_timer = self.min_inter_capture_time + self.rng.random() * (
                self.max_inter_capture_time - self.min_inter_capture_time)
        else:
            self.capture_countdown_timer = math.inf
        if capture_now:
            self.request_capture()

    def request_capture(self) -> None:
        """Ask the particle source for an ion, unless one is already crossing this way."""
        if self.particle_source is None:
            return
        direction = self.choose_crossing_direction()
        if self._in_transit[direction] is not None:
            return
        self.particle_source.request_particle_through_channel(
            self.get_particle_type_to_capture(), self, self.particle_velocity, direction)

    # ------------------------------------------------------------------
    # Transit bookkeeping
    # ------------------------------------------------------------------

    def can_accept_transit(self, direction: MembraneCrossingDirection) -> bool:
        return self._in_transit[direction] is None

    def begin_transit(self, direction: MembraneCrossingDirection, particle) -> None:
        if self._in_transit[direction] is not None:
            raise ValueError(f"channel {self.index} already has a particle crossing {direction.name}")
        self._in_transit[direction] = particle

    def end_transit(self, direction: MembraneCrossingDirection) -> None:
        self._in_transit[direction] = None

    def get_particle_in_transit(self, direction: MembraneCrossingDirection):
        return self._in_transit[direction]

    def clear_transits(self) -> None:
        for direction in self._in_transit:
            self._in_transit[direction] = None

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def get_state(self) -> MembraneChannelState:
        return MembraneChannelState(self.openness, self.inactivation_amount,
                                    self.gate_state, self.state_transition_timer)

    def set_state(self, state: MembraneChannelState) -> None:
        self.openness = state.openness
        self.inactivation_amount = state.inactivation_amount
        self.gate_state = state.gate_state
        self.state_transition_timer = state.state_transition_timer

    def __repr__(self):
        return (f"{type(self).__name__}(index={self.index}, state={self.gate_state.name}, "
                f"openness={self.openness:.3f}, inactivation={self.inactivation_amount:.3f})")


class GatedChannel(MembraneChannel):
    """
    Voltage-gated channel. Openness follows a gating product read from the
    membrane model with a small random lag (the stagger delay) so that
    channels around the membrane do not all open on the same frame.

    The product is measured above its resting value, so a membrane at rest
    leaves every gated channel closed.
    """

    fully_open_level = 1.0
    max_stagger_steps = 5

    def __init__(self, index, hh_model, rng, membrane_thickness=4.0,
                 min_time_step=(1.0 / 60.0) / 3000.0):
        super().__init__(index, hh_model, rng, membrane_thickness, min_time_step)
        self.stagger_delay = 0.0
        self.previous_normalized_conductance = 0.0

    def _delayed_product(self, delay: float) -> float:
        raise NotImplementedError

    def _resting_product(self) -> float:
        raise NotImplementedError

    def calculate_normalized_conductance(self) -> float:
        activation = max(abs(self._delayed_product(self.stagger_delay)) - self._resting_product(), 0.0)
        return round(min(activation / self.fully_open_level, 1.0), 4)

    def update_stagger_delay(self) -> None:
        self.stagger_delay = self.rng.random() * self.min_time_step * self.max_stagger_steps

    def reset(self) -> None:
        self.openness = 0.0
        self.inactivation_amount = 0.0
        self.gate_state = GateState.CLOSED
        self.state_transition_timer = 0.0
        self.capture_countdown_timer = math.inf
        self.clear_transits()
        self.update_stagger_delay()
        self.previous_normalized_conductance = self.calculate_normalized_conductance()


class SodiumDualGatedChannel(GatedChannel):
    """
    Sodium channel with an activation gate and a ball-and-chain inactivation
    gate, driven by m^3 h.

    CLOSED -> OPENING -> OPEN -> INACTIVATING -> INACTIVATED -> RESETTING -> CLOSED
    """

    channel_type = MembraneChannelTypes.SODIUM_GATED_CHANNEL
    has_inactivation_gate = True

    fully_open_level = 0.25
    max_stagger_steps = 5
    ACTIVATION_DECISION_THRESHOLD = 0.002
    FULLY_INACTIVE_DECISION_THRESHOLD = 0.98
    INACTIVE_TO_RESETTING_TIME = 0.001   # s
    RESETTING_TO_IDLE_TIME = 0.001
    MIN_INTER_CAPTURE_TIME = 0.00002
    MAX_INTER_CAPTURE_TIME = 0.0001

    def __init__(self, index, hh_model, rng, membrane_thickness=4.0,
                 min_time_step=(1.0 / 60.0) / 3000.0, max_velocity=DEFAULT_MAX_VELOCITY):
        super().__init__(index, hh_model, rng, membrane_thickness, min_time_step)
        self.particle_velocity = max_velocity
        self.min_inter_capture_time = self.MIN_INTER_CAPTURE_TIME
        self.max_inter_capture_time = self.MAX_INTER_CAPTURE_TIME
        self._set_capture_zones(
            NullCaptureZone(),
            WedgeCaptureZone(self.center_location, self.channel_width * 5, 0.0, math.pi * 0.7))
        self.reset()

    def _delayed_product(self, delay):
        return self.hh_model.get_delayed_m3h(delay)

    def _resting_product(self):
        return self.hh_model.get_resting_m3h()

    @staticmethod
    def map_openness_to_normalized_conductance(conductance: float) -> float:
        return 1.0 - (conductance - 1.0) ** 20

    def get_particle_type_to_capture(self):
        return ParticleType.SODIUM_ION

    def choose_crossing_direction(self):
        return MembraneCrossingDirection.OUT_TO_IN

    def create_traversal_strategy(self, x, y, max_velocity):
        return DualGateChannelTraversalMotionStrategy(self, x, y, self.rng, max_velocity)

    def _update_gate(self, dt):
        conductance = self.calculate_normalized_conductance()
        state = self.gate_state

        if state is GateState.CLOSED:
            if conductance > self.ACTIVATION_DECISION_THRESHOLD:
                self.openness = self.map_openness_to_normalized_conductance(conductance)
                self.gate_state = GateState.OPENING

        elif state in (GateState.OPENING, GateState.OPEN):
            if self.is_open() and math.isinf(self.capture_countdown_timer):
                self.restart_capture_countdown_timer(capture_now=True)
            if self.previous_normalized_conductance > conductance:
                self.gate_state = GateState.INACTIVATING
                self.openness = 1.0
            else:
                self.openness = self.map_openness_to_normalized_conductance(conductance)
                if self.openness >= 0.999:
                    self.gate_state = GateState.OPEN

        elif state is GateState.INACTIVATING:
            if self.inactivation_amount < self.FULLY_INACTIVE_DECISION_THRESHOLD:
                self.inactivation_amount = 1.0 - conductance ** 7
            else:
                self.inactivation_amount = 1.0
                self.gate_state = GateState.INACTIVATED
                self.state_transition_timer = self.INACTIVE_TO_RESETTING_TIME

        elif state is GateState.INACTIVATED:
            self.state_transition_timer -= dt
            if self.state_transition_timer < 0:
                self.gate_state = GateState.RESETTING
                self.state_transition_timer = self.RESETTING_TO_IDLE_TIME

        elif state is GateState.RESETTING:
            self.state_transition_timer -= dt
            if self.state_transition_timer >= 0:
                progress = self.state_transition_timer / self.RESETTING_TO_IDLE_TIME - 1.0
                self.openness = 1.0 - progress ** 10
                self.inactivation_amount = 1.0 - progress ** 20
            else:
                self.openness = 0.0
                self.inactivation_amount = 0.0
                self.update_stagger_delay()
                self.gate_state = GateState.CLOSED
                logger.debug("sodium channel %d reset to closed", self.index)

        self.previous_normalized_conductance = conductance


class PotassiumGatedChannel(GatedChannel):
    """
    Delayed-rectifier potassium channel driven by n^4. No inactivation;
    openness tracks conductance directly.
    """

    channel_type = MembraneChannelTypes.POTASSIUM_GATED_CHANNEL

    fully_open_level = 0.35
    max_stagger_steps = 10
    MIN_INTER_CAPTURE_TIME = 0.00005
    MAX_INTER_CAPTURE_TIME = 0.00020

    def __init__(self, index, hh_model, rng, membrane_thickness=4.0,
                 min_time_step=(1.0 / 60.0) / 3000.0, max_velocity=DEFAULT_MAX_VELOCITY):
        super().__init__(index, hh_model, rng, membrane_thickness, min_time_step)
        self.particle_velocity = max_velocity
        self.min_inter_capture_time = self.MIN_INTER_CAPTURE_TIME
        self.max_inter_capture_time = self.MAX_INTER_CAPTURE_TIME
        self._set_capture_zones(
            WedgeCaptureZone(self.center_location, self.channel_width * 5, math.pi, math.pi * 0.5),
            NullCaptureZone())
        self.reset()

    def _delayed_product(self, delay):
        return self.hh_model.get_delayed_n4(delay)

    def _resting_product(self):
        return self.hh_model.get_resting_n4()

    def get_particle_type_to_capture(self):
        return ParticleType.POTASSIUM_ION

    def choose_crossing_direction(self):
        return MembraneCrossingDirection.IN_TO_OUT

    def _update_gate(self, dt):
        conductance = self.calculate_normalized_conductance()
        previous_openness = self.openness
        self.openness = round(1.0 - (conductance - 1.0) ** 2, 2)

        if self.openness <= 0:
            if self.gate_state is not GateState.CLOSED:
                self.update_stagger_delay()
            self.gate_state = GateState.CLOSED
        elif self.openness >= 1.0:
            self.gate_state = GateState.OPEN
        elif self.openness > previous_openness or self.gate_state is GateState.CLOSED:
            self.gate_state = GateState.OPENING
        elif self.openness < previous_openness:
            self.gate_state = GateState.CLOSING

        if self.is_open() and math.isinf(self.capture_countdown_timer):
            self.restart_capture_countdown_timer(capture_now=True)
        self.previous_normalized_conductance = conductance


class LeakChannel(MembraneChannel):
    """Always fully open, no voltage dependence, no capture zones."""

    def reset(self) -> None:
        self.openness = 1.0
        self.inactivation_amount = 0.0
        self.gate_state = GateState.OPEN
        self.state_transition_timer = 0.0
        self.clear_transits()
        self.restart_capture_countdown_timer(capture_now=False)

    def _update_gate(self, dt):
        pass


class SodiumLeakageChannel(LeakChannel):
    """
    Sodium leak whose capture rate follows the leak current measured from
    rest. A resting or depolarised membrane leaks at the nominal rate; the
    further it is hyperpolarised, the more often an ion leaks in.
    """

    channel_type = MembraneChannelTypes.SODIUM_LEAKAGE_CHANNEL
    particle_velocity = 7000.0

    NOMINAL_LEAK_LEVEL = 0.005
    PEAK_NEGATIVE_CURRENT = 3.44
    ABSOLUTE_MIN_INTER_CAPTURE_TIME = 0.0002
    VARIABLE_MIN_INTER_CAPTURE_TIME = 0.002
    CAPTURE_TIME_RANGE = 0.005

    def __init__(self, index, hh_model, rng, membrane_thickness=4.0,
                 min_time_step=(1.0 / 60.0) / 3000.0):
        super().__init__(index, hh_model, rng, membrane_thickness, min_time_step)
        self.previous_normalized_leak_current = 0.0
        self.reset()

    def reset(self) -> None:
        self.previous_normalized_leak_current = 0.0
        self.update_particle_capture_rate(self.NOMINAL_LEAK_LEVEL)
        super().reset()

    def update_particle_capture_rate(self, normalized_rate: float) -> None:
        """
        Args:
            normalized_rate: 0 for the slowest capture rate, 1 for the fastest
        """
        if normalized_rate <= 0.001:
            self.min_inter_capture_time = math.inf
            self.max_inter_capture_time = math.inf
            self.restart_capture_countdown_timer(capture_now=False)
            return
        slack = 1.0 - normalized_rate
        self.min_inter_capture_time = (self.ABSOLUTE_MIN_INTER_CAPTURE_TIME
                                       + slack * self.VARIABLE_MIN_INTER_CAPTURE_TIME)
        self.max_inter_capture_time = self.min_inter_capture_time + slack * self.CAPTURE_TIME_RANGE
        if self.capture_countdown_timer > self.max_inter_capture_time:
            self.restart_capture_countdown_timer(capture_now=False)

    def _update_gate(self, dt):
        normalized = round(self.hh_model.get_l_current_from_rest() / self.PEAK_NEGATIVE_CURRENT, 2)
        if normalized <= 0.01:
            normalized = max(normalized, -1.0)
            if normalized != self.previous_normalized_leak_current:
                self.previous_normalized_leak_current = normalized
                self.update_particle_capture_rate(max(abs(normalized), self.NOMINAL_LEAK_LEVEL))

    def get_particle_type_to_capture(self):
        return ParticleType.SODIUM_ION

    def choose_crossing_direction(self):
        if self.previous_normalized_leak_current == 0 and self.rng.random() < 0.2:
            return MembraneCrossingDirection.IN_TO_OUT
        return MembraneCrossingDirection.OUT_TO_IN


class PotassiumLeakageChannel(LeakChannel):

    channel_type = MembraneChannelTypes.POTASSIUM_LEAKAGE_CHANNEL
    particle_velocity = 5000.0

    MIN_INTER_CAPTURE_TIME = 0.002
    MAX_INTER_CAPTURE_TIME = 0.004

    def __init__(self, index, hh_model, rng, membrane_thickness=4.0,
                 min_time_step=(1.0 / 60.0) / 3000.0):
        super().__init__(index, hh_model, rng, membrane_thickness, min_time_step)
        self.min_inter_capture_time = self.MIN_INTER_CAPTURE_TIME
        self.max_inter_capture_time = self.MAX_INTER_CAPTURE_TIME
        self.reset()

    def get_particle_type_to_capture(self):
        return ParticleType.POTASSIUM_ION

    def choose_crossing_direction(self):
        if self.rng.random() < 0.2:
            return MembraneCrossingDirection.OUT_TO_IN
        return MembraneCrossingDirection.IN_TO_OUT


CHANNEL_CLASSES = {
    MembraneChannelTypes.SODIUM_LEAKAGE_CHANNEL: SodiumLeakageChannel,
    MembraneChannelTypes.SODIUM_GATED_CHANNEL: SodiumDualGatedChannel,
    MembraneChannelTypes.POTASSIUM_LEAKAGE_CHANNEL: PotassiumLeakageChannel,
    MembraneChannelTypes.POTASSIUM_GATED_CHANNEL: PotassiumGatedChannel,
}


def create_membrane_channel(channel_type, index: int, hh_model, rng, config) -> MembraneChannel:
    """
    Build a channel of the given type.

    Args:
        channel_type: MembraneChannelTypes member or its string value
        index: Fixed position of the channel in the model's channel list
        hh_model: Source of gating products and leak current
        rng: numpy Generator used for every random decision
        config: NeuronConfig supplying sizes, frame length and velocity

    Raises:
        ValueError: If channel_type is not a known channel type.
    """
    try:
        channel_type = MembraneChannelTypes(channel_type)
    except ValueError:
        raise ValueError(
            f"Unknown channel type: '{channel_type}'. "
            f"Valid options are {[t.value for t in MembraneChannelTypes]}."
        )
    cls = CHANNEL_CLASSES[channel_type]
    kwargs = dict(membrane_thickness=config.membrane_thickness,
                  min_time_step=config.min_clock_dt)
    if issubclass(cls, GatedChannel):
        kwargs['max_velocity'] = config.max_particle_velocity
    return cls(index, hh_model, rng, **kwargs)
