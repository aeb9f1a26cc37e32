"""
The axon cross-section model: membrane, channels, particles and the
Hodgkin-Huxley membrane driving them, stepped one frame at a time under
record and playback control.
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from membrane_core.hodgkin_huxley import HodgkinHuxleyIntegrator
from .axon_membrane import ActionPotentialShape, AxonMembrane
from .channels import MembraneChannel, MembraneChannelTypes, create_membrane_channel
from .config import NeuronConfig
from .geometry import polar
from .lifecycle import ParticleLifecycleManager
from .particles import Particle, ParticleType, PlaybackParticle
from .record_playback import RecordAndPlaybackModel
from .state import NeuronModelState

logger = logging.getLogger(__name__)


class NeuronModel(RecordAndPlaybackModel):
    """
    One axon cross-section.

    Each frame runs, in order: the travelling action potential and the HH
    membrane, every channel by index, every particle, then the
    concentration update. The returned snapshot is what Record stores.

    Args:
        config: Model configuration (defaults if None)
        hh_model: Membrane model to use instead of building one from config
    """

    def __init__(self, config: Optional[NeuronConfig] = None, hh_model=None):
        self.config = config if config is not None else NeuronConfig()
        super().__init__(self.config.max_recorded_points,
                         self.config.history_overflow_policy,
                         self.config.end_of_playback_behavior)
        cfg = self.config
        self.rng = np.random.default_rng(cfg.seed)

        if hh_model is None:
            hh_model = HodgkinHuxleyIntegrator(
                params=cfg.hh_params,
                integrator=cfg.integrator,
                backend=cfg.backend,
                max_substep=cfg.max_substep_ms,
                max_delay=cfg.max_gating_delay,
                min_time_step=cfg.min_clock_dt,
                stimulus_amplitude=cfg.stimulus_amplitude_mv,
                rest_tolerance=cfg.rest_tolerance_mv,
                refractory_period=cfg.refractory_period_ms,
            )
        self.hh_model = hh_model

        self.axon_membrane = AxonMembrane(cfg.cross_section_diameter, cfg.membrane_thickness)
        self.particle_manager = ParticleLifecycleManager(cfg, self.axon_membrane, self.rng)
        self.channels: Tuple[MembraneChannel, ...] = self._create_channels()
        self.playback_particles: Tuple[PlaybackParticle, ...] = ()
        self._shown_state: Optional[NeuronModelState] = None

        self.particle_manager.reset()
        logger.info("neuron model built with %d channels", len(self.channels))

    def _create_channels(self) -> Tuple[MembraneChannel, ...]:
        """
        Spread the channels evenly around the membrane with the types
        interleaved, each pointing outward.
        """
        cfg = self.config
        counts = (
            (MembraneChannelTypes.SODIUM_GATED_CHANNEL, cfg.num_gated_sodium_channels),
            (MembraneChannelTypes.POTASSIUM_GATED_CHANNEL, cfg.num_gated_potassium_channels),
            (MembraneChannelTypes.SODIUM_LEAKAGE_CHANNEL, cfg.num_sodium_leak_channels),
            (MembraneChannelTypes.POTASSIUM_LEAKAGE_CHANNEL, cfg.num_potassium_leak_channels),
        )
        slots = []
        for order, (channel_type, count) in enumerate(counts):
            for k in range(count):
                slots.append(((k + 0.5) / count, order, channel_type))
        slots.sort(key=lambda slot: (slot[0], slot[1]))

        channels = []
        total = len(slots)
        for index, (_, _, channel_type) in enumerate(slots):
            channel = create_membrane_channel(channel_type, index, self.hh_model, self.rng, cfg)
            angle = 2 * math.pi * index / total
            channel.set_center_location(polar((0.0, 0.0), self.axon_membrane.radius, angle))
            channel.set_rotational_angle(angle)
            channel.particle_source = self.particle_manager
            channels.append(channel)
        return tuple(channels)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step_in_time(self, dt: float) -> NeuronModelState:
        if self.axon_membrane.step_in_time(dt):
            self.hh_model.stimulate()
        self.hh_model.step(dt)

        for channel in self.channels:
            channel.step_in_time(dt)

        self.particle_manager.step_in_time(dt)
        self.particle_manager.finalize_concentrations()

        return self.get_state()

    def get_state(self) -> NeuronModelState:
        manager = self.particle_manager
        return NeuronModelState(
            axon_membrane_state=self.axon_membrane.get_state(),
            hodgkin_huxley_state=self.hh_model.get_state(),
            membrane_potential=self.get_membrane_potential(),
            sodium_interior_concentration=manager.get_concentration(ParticleType.SODIUM_ION, True),
            sodium_exterior_concentration=manager.get_concentration(ParticleType.SODIUM_ION, False),
            potassium_interior_concentration=manager.get_concentration(ParticleType.POTASSIUM_ION, True),
            potassium_exterior_concentration=manager.get_concentration(ParticleType.POTASSIUM_ION, False),
            channel_states=tuple(channel.get_state() for channel in self.channels),
            particle_mementos=manager.get_mementos(),
        )

    # ------------------------------------------------------------------
    # Stimulus
    # ------------------------------------------------------------------

    def is_stimulus_initiation_locked_out(self) -> bool:
        """True while a pulse is travelling, during playback, or away from rest."""
        return (self.axon_membrane.traveling_action_potential is not None
                or self.is_playback()
                or not self.hh_model.is_at_rest())

    def initiate_stimulus_pulse(self) -> bool:
        """
        Send an action potential down the axon; the membrane is stimulated
        when it reaches the cross-section.

        Returns:
            False if the stimulus was locked out
        """
        if self.is_stimulus_initiation_locked_out():
            logger.debug("stimulus pulse locked out")
            return False
        return self.axon_membrane.initiate_traveling_action_potential()

    def stimulate(self) -> bool:
        return self.initiate_stimulus_pulse()

    def get_traveling_action_potential_shape(self) -> Optional[ActionPotentialShape]:
        return self.axon_membrane.get_traveling_action_potential_shape()

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def get_membrane_potential(self) -> float:
        """Membrane potential in volts."""
        return self.hh_model.get_membrane_voltage()

    def get_sodium_interior_concentration(self) -> float:
        return self.particle_manager.get_concentration(ParticleType.SODIUM_ION, True)

    def get_sodium_exterior_concentration(self) -> float:
        return self.particle_manager.get_concentration(ParticleType.SODIUM_ION, False)

    def get_potassium_interior_concentration(self) -> float:
        return self.particle_manager.get_concentration(ParticleType.POTASSIUM_ION, True)

    def get_potassium_exterior_concentration(self) -> float:
        return self.particle_manager.get_concentration(ParticleType.POTASSIUM_ION, False)

    def is_concentration_changed(self) -> bool:
        return self.particle_manager.concentration_changed

    def get_channel_openness(self) -> Tuple[float, ...]:
        return tuple(channel.openness for channel in self.channels)

    def get_channel_inactivation(self) -> Tuple[float, ...]:
        return tuple(channel.inactivation_amount for channel in self.channels)

    def get_transient_particles(self) -> Tuple[Particle, ...]:
        return tuple(self.particle_manager.transient_particles)

    def get_background_particles(self) -> Tuple[Particle, ...]:
        return tuple(self.particle_manager.background_particles)

    def get_playback_particles(self) -> Tuple[PlaybackParticle, ...]:
        return self.playback_particles

    def set_all_ions_simulated(self, all_ions_simulated: bool) -> None:
        self.particle_manager.set_all_ions_simulated(all_ions_simulated)

    def is_all_ions_simulated(self) -> bool:
        return self.particle_manager.all_ions_simulated

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def set_playback_state(self, state: NeuronModelState) -> None:
        """Show a recorded instant. Transient particles give way to playback particles."""
        self._shown_state = state
        self.axon_membrane.set_state(state.axon_membrane_state)
        self.hh_model.set_state(state.hodgkin_huxley_state)
        for channel, channel_state in zip(self.channels, state.channel_states):
            channel.set_state(channel_state)

        manager = self.particle_manager
        manager.set_concentration(ParticleType.SODIUM_ION, True, state.sodium_interior_concentration)
        manager.set_concentration(ParticleType.SODIUM_ION, False, state.sodium_exterior_concentration)
        manager.set_concentration(ParticleType.POTASSIUM_ION, True, state.potassium_interior_concentration)
        manager.set_concentration(ParticleType.POTASSIUM_ION, False, state.potassium_exterior_concentration)

        manager.remove_all_transient_particles()
        self.playback_particles = tuple(PlaybackParticle(memento) for memento in state.particle_mementos)

    def handle_record_started_during_playback(self) -> None:
        self._resume_from_playback()

    def set_mode_live(self) -> None:
        if self.is_playback():
            self._resume_from_playback()
        super().set_mode_live()

    def _resume_from_playback(self) -> None:
        """Turn the shown playback particles back into simulated ones."""
        if self._shown_state is not None:
            self.particle_manager.restore_transient_particles(self._shown_state.particle_mementos)
            self._shown_state = None
        self.playback_particles = ()

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Back to rest with no particles in flight and an empty history."""
        self.hh_model.reset()
        self.axon_membrane.reset()
        self.particle_manager.reset()
        for channel in self.channels:
            channel.reset()
        self.playback_particles = ()
        self._shown_state = None
        self.reset_all()
        logger.info("neuron model reset")
