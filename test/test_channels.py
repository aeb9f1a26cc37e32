"""
Tests for membrane channels and capture zones.

Run with: pytest test/test_channels.py
"""

import math

import pytest

from axon_model import (
    NeuronConfig,
    MembraneChannelTypes,
    GateState,
    MembraneChannel,
    SodiumDualGatedChannel,
    PotassiumGatedChannel,
    SodiumLeakageChannel,
    PotassiumLeakageChannel,
    MembraneCrossingDirection,
    CaptureZone,
    NullCaptureZone,
    WedgeCaptureZone,
    Particle,
    ParticleType,
    MembraneChannelState,
    create_membrane_channel,
)
from axon_model.motion import TraverseChannelAndFadeMotionStrategy

DT = 1e-5


def place(channel, angle=0.0, radius=75.0):
    """Put a channel on the membrane at `angle`, pointing outward."""
    channel.set_center_location((radius * math.cos(angle), radius * math.sin(angle)))
    channel.set_rotational_angle(angle)
    return channel


class RecordingSource:
    """Particle source that only records the requests it receives."""

    def __init__(self):
        self.requests = []

    def request_particle_through_channel(self, particle_type, channel, max_velocity, direction):
        self.requests.append((particle_type, channel.index, direction))
        return None


# ============================================================================
# SECTION 1: CAPTURE ZONES
# ============================================================================

class TestCaptureZones:
    """Wedge and null capture zones."""

    def test_base_zone_not_implemented(self):
        zone = CaptureZone()
        with pytest.raises(NotImplementedError):
            zone.is_point_in_zone(0.0, 0.0)
        with pytest.raises(NotImplementedError):
            zone.assign_new_particle_location(Particle(ParticleType.SODIUM_ION), None)

    def test_wedge_contains(self):
        zone = WedgeCaptureZone((75.0, 0.0), 10.0, 0.0, math.pi / 2)
        assert zone.is_point_in_zone(80.0, 0.0)
        assert zone.is_point_in_zone(80.0, 4.0)
        assert not zone.is_point_in_zone(70.0, 0.0)     # behind the origin
        assert not zone.is_point_in_zone(90.0, 0.0)     # beyond the radius
        assert not zone.is_point_in_zone(76.0, 5.0)     # outside the extent

    def test_wedge_follows_rotation(self):
        zone = WedgeCaptureZone((0.0, 0.0), 10.0, math.pi, math.pi / 2)
        assert zone.is_point_in_zone(-5.0, 0.0)
        zone.set_rotational_angle(math.pi / 2)
        assert zone.is_point_in_zone(0.0, -5.0)
        assert not zone.is_point_in_zone(-5.0, 0.0)

    def test_wedge_places_new_particles_inside(self, rng):
        zone = WedgeCaptureZone((75.0, 0.0), 10.0, 0.0, math.pi * 0.7)
        for _ in range(20):
            particle = Particle(ParticleType.SODIUM_ION)
            zone.assign_new_particle_location(particle, rng)
            assert zone.is_point_in_zone(particle.x, particle.y)
            assert math.hypot(particle.x - 75.0, particle.y) == pytest.approx(9.0)

    def test_scan_for_capture(self):
        zone = WedgeCaptureZone((75.0, 0.0), 10.0, 0.0, math.pi)
        near = Particle(ParticleType.SODIUM_ION, 77.0, 0.0)
        far = Particle(ParticleType.SODIUM_ION, 82.0, 0.0)
        other_type = Particle(ParticleType.POTASSIUM_ION, 76.0, 0.0)
        captured = Particle(ParticleType.SODIUM_ION, 76.0, 0.0)
        captured.captured = True
        outside = Particle(ParticleType.SODIUM_ION, 60.0, 0.0)

        result = zone.scan_for_capture([far, near, other_type, captured, outside],
                                       ParticleType.SODIUM_ION)
        assert result.closest_free_particle is near
        assert result.num_particles_in_zone == 2

    def test_null_zone(self, rng):
        zone = NullCaptureZone()
        assert zone.is_null
        assert not zone.is_point_in_zone(0.0, 0.0)
        result = zone.scan_for_capture([Particle(ParticleType.SODIUM_ION)], ParticleType.SODIUM_ION)
        assert result.closest_free_particle is None
        assert result.num_particles_in_zone == 0
        with pytest.raises(ValueError):
            zone.assign_new_particle_location(Particle(ParticleType.SODIUM_ION), rng)


# ============================================================================
# SECTION 2: CHANNEL FACTORY AND BASE CLASS
# ============================================================================

class TestChannelFactory:
    """create_membrane_channel and the abstract channel."""

    @pytest.mark.parametrize("channel_type,cls", [
        (MembraneChannelTypes.SODIUM_GATED_CHANNEL, SodiumDualGatedChannel),
        (MembraneChannelTypes.POTASSIUM_GATED_CHANNEL, PotassiumGatedChannel),
        (MembraneChannelTypes.SODIUM_LEAKAGE_CHANNEL, SodiumLeakageChannel),
        (MembraneChannelTypes.POTASSIUM_LEAKAGE_CHANNEL, PotassiumLeakageChannel),
    ])
    def test_creates_each_type(self, channel_type, cls, scripted_membrane, rng):
        channel = create_membrane_channel(channel_type, 3, scripted_membrane, rng, NeuronConfig())
        assert isinstance(channel, cls)
        assert channel.index == 3
        assert channel.channel_type is channel_type

    def test_accepts_string_value(self, scripted_membrane, rng):
        channel = create_membrane_channel('potassium_leak', 0, scripted_membrane, rng, NeuronConfig())
        assert isinstance(channel, PotassiumLeakageChannel)

    def test_unknown_type(self, scripted_membrane, rng):
        with pytest.raises(ValueError):
            create_membrane_channel('calcium_gated', 0, scripted_membrane, rng, NeuronConfig())

    def test_base_channel_not_implemented(self, scripted_membrane, rng):
        channel = MembraneChannel(0, scripted_membrane, rng)
        with pytest.raises(NotImplementedError):
            channel.get_particle_type_to_capture()
        with pytest.raises(NotImplementedError):
            channel.choose_crossing_direction()
        with pytest.raises(NotImplementedError):
            channel.step_in_time(DT)

    def test_geometry(self, scripted_membrane, rng):
        channel = place(PotassiumLeakageChannel(0, scripted_membrane, rng), angle=math.pi / 2)
        assert channel.is_point_in_channel(0.0, 75.0)
        assert channel.is_point_in_channel(0.0, 77.0)
        assert not channel.is_point_in_channel(2.0, 75.0)
        mouth = channel.get_source_opening_location(MembraneCrossingDirection.OUT_TO_IN)
        assert mouth[0] == pytest.approx(0.0, abs=1e-9)
        assert mouth[1] == pytest.approx(75.0 + channel.channel_height / 2)

    def test_transit_slots(self, scripted_membrane, rng):
        channel = PotassiumLeakageChannel(0, scripted_membrane, rng)
        particle = Particle(ParticleType.POTASSIUM_ION)
        direction = MembraneCrossingDirection.IN_TO_OUT

        assert channel.can_accept_transit(direction)
        channel.begin_transit(direction, particle)
        assert not channel.can_accept_transit(direction)
        assert channel.can_accept_transit(MembraneCrossingDirection.OUT_TO_IN)
        assert channel.get_particle_in_transit(direction) is particle
        with pytest.raises(ValueError):
            channel.begin_transit(direction, Particle(ParticleType.POTASSIUM_ION))

        channel.end_transit(direction)
        assert channel.can_accept_transit(direction)

    def test_state_round_trip(self, scripted_membrane, rng):
        channel = SodiumDualGatedChannel(0, scripted_membrane, rng)
        state = MembraneChannelState(0.4, 0.9, GateState.INACTIVATED, 0.0005)
        channel.set_state(state)
        assert channel.get_state() == state
        assert channel.openness == 0.4
        assert channel.gate_state is GateState.INACTIVATED


# ============================================================================
# SECTION 3: GATED CHANNELS
# ============================================================================

class TestSodiumDualGatedChannel:
    """Activation, inactivation and reset of the sodium gate."""

    def test_closed_at_rest(self, scripted_membrane, rng):
        channel = SodiumDualGatedChannel(0, scripted_membrane, rng)
        for _ in range(10):
            channel.step_in_time(DT)
        assert channel.gate_state is GateState.CLOSED
        assert channel.openness == 0.0
        assert not channel.is_open()

    def test_full_gate_cycle(self, scripted_membrane, rng):
        channel = SodiumDualGatedChannel(0, scripted_membrane, rng)

        scripted_membrane.m3h = 0.25
        channel.step_in_time(DT)
        assert channel.gate_state is GateState.OPENING
        assert channel.openness == pytest.approx(1.0)

        channel.step_in_time(DT)
        assert channel.gate_state is GateState.OPEN
        assert channel.is_open()

        scripted_membrane.m3h = 0.125
        channel.step_in_time(DT)
        assert channel.gate_state is GateState.INACTIVATING

        channel.step_in_time(DT)
        assert channel.inactivation_amount == pytest.approx(1.0 - 0.5 ** 7)
        assert not channel.is_open()

        channel.step_in_time(DT)
        assert channel.gate_state is GateState.INACTIVATED
        assert channel.inactivation_amount == 1.0

        scripted_membrane.m3h = 0.0
        seen = set()
        for _ in range(400):
            channel.step_in_time(DT)
            seen.add(channel.gate_state)
            if channel.gate_state is GateState.CLOSED:
                break
        assert GateState.RESETTING in seen
        assert channel.gate_state is GateState.CLOSED
        assert channel.openness == 0.0
        assert channel.inactivation_amount == 0.0

    def test_requests_capture_on_opening(self, scripted_membrane, rng):
        channel = place(SodiumDualGatedChannel(0, scripted_membrane, rng))
        source = RecordingSource()
        channel.particle_source = source

        scripted_membrane.m3h = 0.25
        channel.step_in_time(DT)
        channel.step_in_time(DT)
        assert source.requests[0] == (ParticleType.SODIUM_ION, 0, MembraneCrossingDirection.OUT_TO_IN)

        for _ in range(50):
            channel.step_in_time(DT)
        # capture timer keeps firing while the channel stays open
        assert len(source.requests) > 1

    def test_exterior_capture_zone(self, scripted_membrane, rng):
        channel = place(SodiumDualGatedChannel(0, scripted_membrane, rng))
        zone = channel.get_source_capture_zone(MembraneCrossingDirection.OUT_TO_IN)
        assert zone is channel.exterior_capture_zone
        assert zone.is_point_in_zone(80.0, 0.0)
        assert channel.interior_capture_zone.is_null

    @pytest.mark.numerical
    def test_gating_bounds_under_random_drive(self, scripted_membrane, rng):
        channel = SodiumDualGatedChannel(0, scripted_membrane, rng)
        for _ in range(2000):
            scripted_membrane.m3h = rng.random() * 0.3
            channel.step_in_time(1e-4)
            assert 0.0 <= channel.openness <= 1.0
            assert 0.0 <= channel.inactivation_amount <= 1.0


class TestPotassiumGatedChannel:
    """Potassium openness follows n^4."""

    def test_opening_and_closing(self, scripted_membrane, rng):
        channel = PotassiumGatedChannel(0, scripted_membrane, rng)

        scripted_membrane.n4 = 0.35
        channel.step_in_time(DT)
        assert channel.openness == 1.0
        assert channel.gate_state is GateState.OPEN

        scripted_membrane.n4 = 0.175
        channel.step_in_time(DT)
        assert channel.openness == 0.75
        assert channel.gate_state is GateState.CLOSING

        scripted_membrane.n4 = 0.0
        channel.step_in_time(DT)
        assert channel.openness == 0.0
        assert channel.gate_state is GateState.CLOSED

    def test_captures_interior_potassium(self, scripted_membrane, rng):
        channel = place(PotassiumGatedChannel(0, scripted_membrane, rng))
        source = RecordingSource()
        channel.particle_source = source
        scripted_membrane.n4 = 0.35
        channel.step_in_time(DT)
        assert source.requests[0] == (ParticleType.POTASSIUM_ION, 0, MembraneCrossingDirection.IN_TO_OUT)
        assert channel.interior_capture_zone.is_point_in_zone(70.0, 0.0)

    @pytest.mark.numerical
    def test_gating_bounds_under_random_drive(self, scripted_membrane, rng):
        channel = PotassiumGatedChannel(0, scripted_membrane, rng)
        for _ in range(2000):
            scripted_membrane.n4 = rng.random() * 0.5
            channel.step_in_time(1e-4)
            assert 0.0 <= channel.openness <= 1.0
            assert channel.inactivation_amount == 0.0

    @pytest.mark.physiological
    def test_gated_channels_closed_on_resting_membrane(self, hh_model, rng):
        channels = [SodiumDualGatedChannel(0, hh_model, rng), PotassiumGatedChannel(1, hh_model, rng)]
        for _ in range(100):
            hh_model.step(DT)
            for channel in channels:
                channel.step_in_time(DT)
        for channel in channels:
            assert channel.gate_state is GateState.CLOSED
            assert channel.openness == 0.0


# ============================================================================
# SECTION 4: LEAK CHANNELS
# ============================================================================

class TestLeakChannels:
    """Always-open channels with timer-driven captures."""

    def test_always_open(self, scripted_membrane, rng):
        for cls in (SodiumLeakageChannel, PotassiumLeakageChannel):
            channel = cls(0, scripted_membrane, rng)
            for _ in range(10):
                channel.step_in_time(DT)
            assert channel.openness == 1.0
            assert channel.inactivation_amount == 0.0
            assert channel.gate_state is GateState.OPEN
            assert channel.interior_capture_zone.is_null
            assert channel.exterior_capture_zone.is_null

    def test_potassium_leak_capture_interval(self, scripted_membrane, rng):
        channel = PotassiumLeakageChannel(0, scripted_membrane, rng)
        source = RecordingSource()
        channel.particle_source = source
        for _ in range(int(0.02 / 1e-4)):
            channel.step_in_time(1e-4)
        # one capture every 2-4 ms over 20 ms
        assert 4 <= len(source.requests) <= 10

    def test_sodium_leak_rate_follows_leak_current(self, scripted_membrane, rng):
        channel = SodiumLeakageChannel(0, scripted_membrane, rng)
        slow_max = channel.max_inter_capture_time

        scripted_membrane.l_current = -3.44
        channel.step_in_time(DT)
        assert channel.previous_normalized_leak_current == -1.0
        assert channel.max_inter_capture_time < slow_max
        assert channel.min_inter_capture_time == pytest.approx(
            SodiumLeakageChannel.ABSOLUTE_MIN_INTER_CAPTURE_TIME)
        assert channel.choose_crossing_direction() is MembraneCrossingDirection.OUT_TO_IN

    @pytest.mark.physiological
    def test_sodium_leak_nominal_on_resting_membrane(self, hh_model, rng):
        channel = SodiumLeakageChannel(0, hh_model, rng)
        nominal = (channel.min_inter_capture_time, channel.max_inter_capture_time)
        for _ in range(500):
            hh_model.step(DT)
            channel.step_in_time(DT)
        assert channel.previous_normalized_leak_current == 0.0
        assert (channel.min_inter_capture_time, channel.max_inter_capture_time) == nominal
        directions = {channel.choose_crossing_direction() for _ in range(200)}
        assert MembraneCrossingDirection.IN_TO_OUT in directions

    @pytest.mark.physiological
    def test_sodium_leak_speeds_up_when_hyperpolarised(self, hh_model, rng):
        channel = SodiumLeakageChannel(0, hh_model, rng)
        nominal_max = channel.max_inter_capture_time
        hh_model.set_voltage_clamp(-80.0)
        hh_model.step(DT)
        channel.step_in_time(DT)
        assert channel.previous_normalized_leak_current == -1.0
        assert channel.max_inter_capture_time < nominal_max

    def test_traversal_strategy(self, scripted_membrane, rng):
        channel = place(SodiumLeakageChannel(0, scripted_membrane, rng))
        strategy = channel.create_traversal_strategy(80.0, 0.0, 7000.0)
        assert isinstance(strategy, TraverseChannelAndFadeMotionStrategy)
        assert strategy.is_traversal
