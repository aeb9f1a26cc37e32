"""
Tests for particles, their motion and fade strategies, and the lifecycle
manager that captures, transports and retires them.

Run with: pytest test/test_particles.py
"""

import math

import pytest

from axon_model import (
    Particle,
    ParticleType,
    PlaybackParticle,
    FadeStrategy,
    NullFadeStrategy,
    NULL_FADE_STRATEGY,
    TimedFadeInStrategy,
    TimedFadeOutStrategy,
    MotionStrategy,
    StillnessMotionStrategy,
    LinearMotionStrategy,
    SpeedChangeLinearMotionStrategy,
    SlowBrownianMotionStrategy,
    RandomWalkMotionStrategy,
    WanderAwayThenFadeMotionStrategy,
    MembraneTraversalMotionStrategy,
    TraverseChannelAndFadeMotionStrategy,
    DualGateChannelTraversalMotionStrategy,
    TransitOutcome,
    ParticleLifecycleManager,
    MembraneCrossingDirection,
    SodiumDualGatedChannel,
    PotassiumGatedChannel,
    SodiumLeakageChannel,
)
from axon_model.particles import PARTICLE_COLORS

DT = 1e-5


def placed(channel):
    channel.set_center_location((75.0, 0.0))
    channel.set_rotational_angle(0.0)
    return channel


def run_until_transit_ends(particle, max_frames=5000, dt=DT, before_step=None):
    for _ in range(max_frames):
        if before_step is not None:
            before_step()
        outcome = particle.step_in_time(dt)
        if outcome is not None:
            return outcome
    return None


# ============================================================================
# SECTION 1: PARTICLES
# ============================================================================

class TestParticle:
    """Particle state and playback mementos."""

    def test_memento_round_trip(self):
        particle = Particle(ParticleType.POTASSIUM_ION, 12.5, -3.0, radius=0.75, opacity=0.4)
        playback = PlaybackParticle()
        playback.restore_from_memento(particle.get_memento())

        assert playback.position == particle.position
        assert playback.opacity == particle.opacity
        assert playback.particle_type is particle.particle_type
        assert playback.radius == particle.radius
        assert playback.representation_color == particle.representation_color

    def test_colors(self):
        assert Particle(ParticleType.SODIUM_ION).representation_color == PARTICLE_COLORS[ParticleType.SODIUM_ION]
        assert PARTICLE_COLORS[ParticleType.SODIUM_ION] != PARTICLE_COLORS[ParticleType.POTASSIUM_ION]

    def test_opacity_is_clipped(self):
        particle = Particle(ParticleType.SODIUM_ION)
        particle.set_opacity(1.5)
        assert particle.opacity == 1.0
        particle.set_opacity(-0.5)
        assert particle.opacity == 0.0

    def test_availability_for_capture(self, scripted_membrane, rng):
        particle = Particle(ParticleType.SODIUM_ION, 80.0, 0.0)
        assert particle.is_available_for_capture()

        particle.captured = True
        assert not particle.is_available_for_capture()

        particle.captured = False
        channel = placed(SodiumLeakageChannel(0, scripted_membrane, rng))
        particle.set_motion_strategy(channel.create_traversal_strategy(80.0, 0.0, 7000.0))
        assert not particle.is_available_for_capture()


# ============================================================================
# SECTION 2: FADE STRATEGIES
# ============================================================================

class TestFadeStrategies:
    """Fade strategies return the strategy for the next frame."""

    def test_base_not_implemented(self):
        with pytest.raises(NotImplementedError):
            FadeStrategy().update_opacity(Particle(ParticleType.SODIUM_ION), DT)

    def test_null_is_singleton(self):
        assert NullFadeStrategy() is NULL_FADE_STRATEGY
        particle = Particle(ParticleType.SODIUM_ION, opacity=0.3)
        assert NULL_FADE_STRATEGY.update_opacity(particle, 1.0) is NULL_FADE_STRATEGY
        assert particle.opacity == 0.3

    def test_fade_in(self):
        particle = Particle(ParticleType.SODIUM_ION, opacity=0.0)
        fade = TimedFadeInStrategy(1.0)

        assert fade.update_opacity(particle, 0.5) is fade
        assert particle.opacity == pytest.approx(0.5)

        assert fade.update_opacity(particle, 0.5) is NULL_FADE_STRATEGY
        assert particle.opacity == 1.0

    def test_fade_out(self):
        particle = Particle(ParticleType.SODIUM_ION)
        fade = TimedFadeOutStrategy(1.0)

        fade.update_opacity(particle, 0.5)
        assert particle.opacity == pytest.approx(0.5)
        assert fade.should_continue_existing(particle)

        fade.update_opacity(particle, 0.5)
        assert particle.opacity == 0.0
        assert not fade.should_continue_existing(particle)

    def test_fade_out_never_brightens(self):
        particle = Particle(ParticleType.SODIUM_ION, opacity=0.2)
        TimedFadeOutStrategy(1.0).update_opacity(particle, 0.25)
        assert particle.opacity == pytest.approx(0.2)

    def test_invalid_fade_time(self):
        with pytest.raises(ValueError):
            TimedFadeInStrategy(0.0)
        with pytest.raises(ValueError):
            TimedFadeOutStrategy(-1.0)

    def test_faded_particle_stops_existing(self):
        particle = Particle(ParticleType.SODIUM_ION)
        particle.set_fade_strategy(TimedFadeOutStrategy(1.0))
        particle.step_in_time(0.5)
        assert particle.continue_existing
        particle.step_in_time(0.5)
        assert not particle.continue_existing


# ============================================================================
# SECTION 3: MOTION STRATEGIES
# ============================================================================

class TestMotionStrategies:
    """Free motion strategies."""

    def test_base_not_implemented(self):
        with pytest.raises(NotImplementedError):
            MotionStrategy().move(Particle(ParticleType.SODIUM_ION), DT)

    def test_traversal_base_not_implemented(self, scripted_membrane, rng):
        channel = placed(SodiumLeakageChannel(0, scripted_membrane, rng))
        with pytest.raises(NotImplementedError):
            MembraneTraversalMotionStrategy(channel, 80.0, 0.0, rng)

    def test_stillness(self):
        particle = Particle(ParticleType.SODIUM_ION, 1.0, 2.0)
        strategy = StillnessMotionStrategy()
        update = strategy.move(particle, 1.0)
        assert update.strategy is strategy
        assert update.fade is None and update.transit is None
        assert particle.position == (1.0, 2.0)

    def test_linear(self):
        particle = Particle(ParticleType.SODIUM_ION)
        particle.set_motion_strategy(LinearMotionStrategy(100.0, -50.0))
        particle.step_in_time(0.1)
        assert particle.x == pytest.approx(10.0)
        assert particle.y == pytest.approx(-5.0)

    def test_speed_change(self):
        particle = Particle(ParticleType.SODIUM_ION)
        particle.set_motion_strategy(SpeedChangeLinearMotionStrategy(10.0, 0.0, 2.0, 1.0))
        particle.step_in_time(0.5)
        particle.step_in_time(0.5)
        assert particle.x == pytest.approx(10.0)
        particle.step_in_time(0.5)
        assert particle.x == pytest.approx(20.0)

    def test_slow_brownian_stays_home(self, rng):
        particle = Particle(ParticleType.POTASSIUM_ION, 30.0, 0.0)
        particle.set_motion_strategy(SlowBrownianMotionStrategy(30.0, 0.0, rng))
        moved = False
        for _ in range(2000):
            particle.step_in_time(1e-5)
            assert math.hypot(particle.x - 30.0, particle.y) <= 1.0 + 1e-9
            moved = moved or particle.position != (30.0, 0.0)
        assert moved

    def test_random_walk_stays_in_annulus(self, rng):
        strategy = RandomWalkMotionStrategy(10.0, 50.0, rng)
        particle = Particle(ParticleType.SODIUM_ION, 30.0, 0.0)
        particle.set_motion_strategy(strategy)
        for _ in range(5000):
            particle.step_in_time(1e-4)
            r = math.hypot(particle.x, particle.y)
            assert 10.0 - 1e-9 <= r <= 50.0 + 1e-9

    def test_random_walk_invalid_bounds(self, rng):
        with pytest.raises(ValueError):
            RandomWalkMotionStrategy(50.0, 10.0, rng)

    def test_wander_away_starts_fade_once(self, rng):
        particle = Particle(ParticleType.SODIUM_ION, 80.0, 0.0)
        strategy = WanderAwayThenFadeMotionStrategy((75.0, 0.0), 80.0, 0.0, 0.001, 0.002, rng)
        fades = []
        for _ in range(300):
            update = strategy.move(particle, 1e-5)
            assert update.strategy is strategy
            if update.fade is not None:
                fades.append(update.fade)
        assert len(fades) == 1
        assert isinstance(fades[0], TimedFadeOutStrategy)


class TestTraversalStrategies:
    """Directed motion through channels."""

    def test_traverse_leak_channel(self, scripted_membrane, rng):
        channel = placed(SodiumLeakageChannel(0, scripted_membrane, rng))
        particle = Particle(ParticleType.SODIUM_ION, 80.0, 0.0)
        particle.set_motion_strategy(channel.create_traversal_strategy(80.0, 0.0, 7000.0))

        assert run_until_transit_ends(particle) is TransitOutcome.CROSSED
        assert particle.x < 75.0
        assert isinstance(particle.motion_strategy, WanderAwayThenFadeMotionStrategy)

    def test_closed_channel_is_abandoned(self, scripted_membrane, rng):
        channel = placed(PotassiumGatedChannel(0, scripted_membrane, rng))
        assert not channel.is_open()
        particle = Particle(ParticleType.POTASSIUM_ION, 68.0, 0.0)
        particle.set_motion_strategy(TraverseChannelAndFadeMotionStrategy(channel, 68.0, 0.0, rng))

        assert particle.step_in_time(DT) is TransitOutcome.ABANDONED
        assert not particle.motion_strategy.is_traversal

    def test_dual_gate_crossing(self, scripted_membrane, rng):
        channel = placed(SodiumDualGatedChannel(0, scripted_membrane, rng))
        scripted_membrane.m3h = 0.25
        channel.step_in_time(DT)
        channel.step_in_time(DT)
        assert channel.is_open()

        particle = Particle(ParticleType.SODIUM_ION, 84.0, 0.0)
        particle.set_motion_strategy(channel.create_traversal_strategy(84.0, 0.0, 40000.0))
        assert isinstance(particle.motion_strategy, DualGateChannelTraversalMotionStrategy)

        assert run_until_transit_ends(particle) is TransitOutcome.CROSSED
        assert particle.x < 75.0
        assert isinstance(particle.motion_strategy, SpeedChangeLinearMotionStrategy)
        assert isinstance(particle.fade_strategy, TimedFadeOutStrategy)

    def test_dual_gate_bounces_when_inactivated(self, scripted_membrane, rng):
        channel = placed(SodiumDualGatedChannel(0, scripted_membrane, rng))
        scripted_membrane.m3h = 0.25
        channel.step_in_time(DT)
        channel.step_in_time(DT)

        particle = Particle(ParticleType.SODIUM_ION, 84.0, 0.0)
        strategy = channel.create_traversal_strategy(84.0, 0.0, 40000.0)
        particle.set_motion_strategy(strategy)

        def inactivate_inside():
            if strategy.destination_index == 1:
                channel.inactivation_amount = 0.6

        assert run_until_transit_ends(particle, before_step=inactivate_inside) is TransitOutcome.ABANDONED
        assert strategy.bouncing
        assert particle.x > 75.0


# ============================================================================
# SECTION 4: LIFECYCLE MANAGER
# ============================================================================

class TestParticleLifecycleManager:
    """Capture, transport, concentrations and populations."""

    def test_nominal_concentrations(self, particle_manager):
        assert particle_manager.get_concentration(ParticleType.SODIUM_ION, True) == pytest.approx(10.0)
        assert particle_manager.get_concentration(ParticleType.SODIUM_ION, False) == pytest.approx(145.0)
        assert particle_manager.get_concentration(ParticleType.POTASSIUM_ION, True) == pytest.approx(140.0)
        assert particle_manager.get_concentration(ParticleType.POTASSIUM_ION, False) == pytest.approx(4.0)
        assert particle_manager.get_ion_count(ParticleType.SODIUM_ION, True) == 10000

    def test_set_concentration(self, particle_manager):
        particle_manager.set_concentration(ParticleType.POTASSIUM_ION, False, 5.5)
        assert particle_manager.get_ion_count(ParticleType.POTASSIUM_ION, False) == 5500

    def test_capture_reuses_free_particle_in_zone(self, particle_manager, scripted_membrane, rng):
        channel = placed(SodiumDualGatedChannel(0, scripted_membrane, rng))
        free = particle_manager.add_free_particle(ParticleType.SODIUM_ION, 80.0, 0.0)

        captured = particle_manager.request_particle_through_channel(
            ParticleType.SODIUM_ION, channel, 40000.0, MembraneCrossingDirection.OUT_TO_IN)
        assert captured is free
        assert free.captured
        assert free.is_in_transit()
        assert channel.get_particle_in_transit(MembraneCrossingDirection.OUT_TO_IN) is free
        assert len(particle_manager.transient_particles) == 1

    def test_captured_free_particle_completes_crossing(self, particle_manager, scripted_membrane, rng):
        channel = placed(SodiumDualGatedChannel(0, scripted_membrane, rng))
        scripted_membrane.m3h = 0.25
        channel.step_in_time(DT)
        channel.step_in_time(DT)
        assert channel.is_open()

        na_in = particle_manager.get_ion_count(ParticleType.SODIUM_ION, True)
        na_out = particle_manager.get_ion_count(ParticleType.SODIUM_ION, False)
        free = particle_manager.add_free_particle(ParticleType.SODIUM_ION, 80.0, 0.0)
        assert particle_manager.request_particle_through_channel(
            ParticleType.SODIUM_ION, channel, 40000.0, MembraneCrossingDirection.OUT_TO_IN) is free

        for _ in range(1000):
            particle_manager.step_in_time(DT)
            particle_manager.finalize_concentrations()
            if not free.is_in_transit():
                break
        assert not free.is_in_transit()
        assert not free.captured
        assert free.x < 75.0
        assert particle_manager.get_ion_count(ParticleType.SODIUM_ION, True) == na_in + 1
        assert particle_manager.get_ion_count(ParticleType.SODIUM_ION, False) == na_out - 1
        assert channel.get_particle_in_transit(MembraneCrossingDirection.OUT_TO_IN) is None
        assert not isinstance(free.motion_strategy, RandomWalkMotionStrategy)

    def test_only_one_particle_in_transit_per_direction(self, particle_manager, scripted_membrane, rng):
        channel = placed(SodiumDualGatedChannel(0, scripted_membrane, rng))
        first = particle_manager.request_particle_through_channel(
            ParticleType.SODIUM_ION, channel, 40000.0, MembraneCrossingDirection.OUT_TO_IN)
        second = particle_manager.request_particle_through_channel(
            ParticleType.SODIUM_ION, channel, 40000.0, MembraneCrossingDirection.OUT_TO_IN)
        assert first is not None
        assert second is None
        assert len(particle_manager.transient_particles) == 1

    def test_new_particle_placed_in_zone(self, particle_manager, scripted_membrane, rng):
        channel = placed(SodiumDualGatedChannel(0, scripted_membrane, rng))
        particle = particle_manager.request_particle_through_channel(
            ParticleType.SODIUM_ION, channel, 40000.0, MembraneCrossingDirection.OUT_TO_IN)
        assert channel.exterior_capture_zone.is_point_in_zone(particle.x, particle.y)
        assert particle.opacity == 0.0
        assert isinstance(particle.fade_strategy, TimedFadeInStrategy)

    def test_new_particle_at_mouth_for_null_zone(self, particle_manager, scripted_membrane, rng):
        channel = placed(SodiumLeakageChannel(0, scripted_membrane, rng))
        particle = particle_manager.request_particle_through_channel(
            ParticleType.SODIUM_ION, channel, 7000.0, MembraneCrossingDirection.OUT_TO_IN)
        mouth = channel.get_source_opening_location(MembraneCrossingDirection.OUT_TO_IN, standoff=2.0)
        assert math.hypot(particle.x - mouth[0], particle.y - mouth[1]) <= channel.channel_width

    def test_particle_limit(self, small_config, axon_membrane, scripted_membrane, rng):
        small_config.max_transient_particles = 0
        manager = ParticleLifecycleManager(small_config, axon_membrane, rng)
        channel = placed(SodiumDualGatedChannel(0, scripted_membrane, rng))
        assert manager.request_particle_through_channel(
            ParticleType.SODIUM_ION, channel, 40000.0, MembraneCrossingDirection.OUT_TO_IN) is None
        assert channel.can_accept_transit(MembraneCrossingDirection.OUT_TO_IN)

    @pytest.mark.transport
    def test_conservation_across_traversals(self, particle_manager, scripted_membrane, rng):
        """Every completed sodium crossing moves exactly one ion inward."""
        channel = placed(SodiumDualGatedChannel(0, scripted_membrane, rng))
        channel.particle_source = particle_manager
        scripted_membrane.m3h = 0.25

        na_in = particle_manager.get_ion_count(ParticleType.SODIUM_ION, True)
        na_out = particle_manager.get_ion_count(ParticleType.SODIUM_ION, False)
        changed_frames = 0
        for _ in range(300):
            channel.step_in_time(DT)
            particle_manager.step_in_time(DT)
            if particle_manager.finalize_concentrations():
                changed_frames += 1
            in_transit = [p for p in particle_manager.transient_particles if p.is_in_transit()]
            assert len(in_transit) <= 1
            total = (particle_manager.get_ion_count(ParticleType.SODIUM_ION, True)
                     + particle_manager.get_ion_count(ParticleType.SODIUM_ION, False))
            assert total == na_in + na_out

        gained = particle_manager.get_ion_count(ParticleType.SODIUM_ION, True) - na_in
        assert gained > 0
        assert gained == changed_frames
        assert particle_manager.get_ion_count(ParticleType.SODIUM_ION, False) == na_out - gained

    @pytest.mark.transport
    def test_abandoned_traversal_changes_nothing(self, particle_manager, scripted_membrane, rng):
        channel = placed(PotassiumGatedChannel(0, scripted_membrane, rng))
        channel.particle_source = particle_manager
        k_in = particle_manager.get_ion_count(ParticleType.POTASSIUM_ION, True)

        scripted_membrane.n4 = 0.35
        channel.step_in_time(DT)
        particle = channel.get_particle_in_transit(MembraneCrossingDirection.IN_TO_OUT)
        assert particle is not None

        scripted_membrane.n4 = 0.0
        channel.step_in_time(DT)
        particle_manager.step_in_time(DT)
        assert not particle_manager.finalize_concentrations()

        assert not particle.is_in_transit()
        assert not particle.captured
        assert channel.can_accept_transit(MembraneCrossingDirection.IN_TO_OUT)
        assert particle_manager.get_ion_count(ParticleType.POTASSIUM_ION, True) == k_in

    def test_background_particles_do_not_count(self, particle_manager):
        particle_manager.add_background_particles()
        assert len(particle_manager.background_particles) == 20
        before = particle_manager.get_ion_count(ParticleType.SODIUM_ION, True)
        for _ in range(200):
            particle_manager.step_in_time(1e-4)
            particle_manager.finalize_concentrations()
        assert particle_manager.get_ion_count(ParticleType.SODIUM_ION, True) == before
        assert len(particle_manager.background_particles) == 20

    def test_far_particles_are_retired(self, particle_manager, scripted_membrane, rng):
        channel = placed(SodiumDualGatedChannel(0, scripted_membrane, rng))
        particle = particle_manager.request_particle_through_channel(
            ParticleType.SODIUM_ION, channel, 40000.0, MembraneCrossingDirection.OUT_TO_IN)
        particle.set_motion_strategy(LinearMotionStrategy(1e9, 0.0))
        particle_manager.step_in_time(1e-3)
        assert particle_manager.transient_particles == []
        assert channel.can_accept_transit(MembraneCrossingDirection.OUT_TO_IN)

    def test_all_ions_simulated(self, particle_manager):
        particle_manager.reset()
        assert len(particle_manager.background_particles) == 20
        assert particle_manager.transient_particles == []

        particle_manager.set_all_ions_simulated(True)
        assert particle_manager.background_particles == []
        assert len(particle_manager.transient_particles) == 20
        for particle in particle_manager.transient_particles:
            assert isinstance(particle.motion_strategy, RandomWalkMotionStrategy)

        particle_manager.set_all_ions_simulated(False)
        assert len(particle_manager.background_particles) == 20
        for _ in range(100):
            particle_manager.step_in_time(1e-5)
        assert particle_manager.transient_particles == []

    def test_restore_transient_particles(self, particle_manager):
        source = [Particle(ParticleType.SODIUM_ION, 80.0, float(i)) for i in range(3)]
        particle_manager.restore_transient_particles([p.get_memento() for p in source])

        restored = particle_manager.transient_particles
        assert [p.position for p in restored] == [p.position for p in source]
        assert all(isinstance(p.motion_strategy, StillnessMotionStrategy) for p in restored)

        for _ in range(100):
            particle_manager.step_in_time(1e-5)
        assert particle_manager.transient_particles == []

    def test_mementos(self, particle_manager):
        particle_manager.add_free_particle(ParticleType.POTASSIUM_ION, 20.0, 0.0)
        mementos = particle_manager.get_mementos()
        assert isinstance(mementos, tuple)
        assert mementos[0].particle_type is ParticleType.POTASSIUM_ION
        assert mementos[0].x == 20.0
