"""
Creation, capture, transport and retirement of particles, plus the ion
counts behind the four concentrations.
"""

import logging
import math
from typing import Dict, List, Optional

from .fade import NULL_FADE_STRATEGY, TimedFadeInStrategy, TimedFadeOutStrategy
from .geometry import polar
from .motion import (
    MembraneCrossingDirection,
    RandomWalkMotionStrategy,
    SlowBrownianMotionStrategy,
    StillnessMotionStrategy,
    TransitOutcome,
)
from .particles import Particle, ParticleType

logger = logging.getLogger(__name__)

FADE_IN_TIME = 0.0005     # s
FADE_OUT_TIME = 0.0005
# transient particles further than this many radii from the centre are dropped
MAX_DISTANCE_IN_RADII = 2.5
# exterior diffusion extends this many radii from the centre
EXTERIOR_EXTENT_IN_RADII = 1.6
# keep free particles this far clear of the membrane
MEMBRANE_CLEARANCE = 1.5  # nm


class ParticleLifecycleManager:
    """
    Owns the transient particles (individually simulated, visible) and the
    background particles (decorative jitter only).

    Concentrations are derived from integer ion counts per type and side.
    Counts change only when a transient particle completes a crossing, by
    moving one ion from the source side to the destination side, so the
    total per ion type never changes. Background particles are never
    counted.
    """

    def __init__(self, config, axon_membrane, rng):
        self.config = config
        self.axon_membrane = axon_membrane
        self.rng = rng
        self.transient_particles: List[Particle] = []
        self.background_particles: List[Particle] = []
        self.all_ions_simulated = False
        self.concentration_changed = False
        self._pending_crossings = []
        self._interior_counts: Dict[ParticleType, int] = {}
        self._exterior_counts: Dict[ParticleType, int] = {}
        self.reset_concentrations()

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    @property
    def interior_bounds(self):
        return (0.0, self.axon_membrane.inner_radius - MEMBRANE_CLEARANCE)

    @property
    def exterior_bounds(self):
        return (self.axon_membrane.outer_radius + MEMBRANE_CLEARANCE,
                self.axon_membrane.radius * EXTERIOR_EXTENT_IN_RADII)

    def _bounds(self, interior: bool):
        return self.interior_bounds if interior else self.exterior_bounds

    def _random_location(self, interior: bool):
        inner, outer = self._bounds(interior)
        # uniform over the annulus area
        r = math.sqrt(inner ** 2 + self.rng.random() * (outer ** 2 - inner ** 2))
        return polar((0.0, 0.0), r, self.rng.random() * 2 * math.pi)

    def _diffusion_strategy(self, interior: bool) -> RandomWalkMotionStrategy:
        return RandomWalkMotionStrategy(*self._bounds(interior), self.rng)

    # ------------------------------------------------------------------
    # Concentrations
    # ------------------------------------------------------------------

    def reset_concentrations(self) -> None:
        per_ion = self.config.concentration_per_ion
        self._interior_counts = {
            ParticleType.SODIUM_ION: int(round(self.config.nominal_sodium_interior / per_ion)),
            ParticleType.POTASSIUM_ION: int(round(self.config.nominal_potassium_interior / per_ion)),
        }
        self._exterior_counts = {
            ParticleType.SODIUM_ION: int(round(self.config.nominal_sodium_exterior / per_ion)),
            ParticleType.POTASSIUM_ION: int(round(self.config.nominal_potassium_exterior / per_ion)),
        }
        self._pending_crossings = []
        self.concentration_changed = False

    def get_ion_count(self, particle_type: ParticleType, interior: bool) -> int:
        counts = self._interior_counts if interior else self._exterior_counts
        return counts[particle_type]

    def get_concentration(self, particle_type: ParticleType, interior: bool) -> float:
        """Concentration in mM."""
        return self.get_ion_count(particle_type, interior) * self.config.concentration_per_ion

    def set_concentration(self, particle_type: ParticleType, interior: bool, value: float) -> None:
        counts = self._interior_counts if interior else self._exterior_counts
        counts[particle_type] = int(round(value / self.config.concentration_per_ion))

    def finalize_concentrations(self) -> bool:
        """
        Apply the crossings completed this frame.

        Returns:
            True if any concentration changed
        """
        for particle_type, direction in self._pending_crossings:
            if direction is MembraneCrossingDirection.OUT_TO_IN:
                self._exterior_counts[particle_type] -= 1
                self._interior_counts[particle_type] += 1
            else:
                self._interior_counts[particle_type] -= 1
                self._exterior_counts[particle_type] += 1
        self.concentration_changed = bool(self._pending_crossings)
        self._pending_crossings = []
        return self.concentration_changed

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def add_free_particle(self, particle_type: ParticleType, x: float, y: float,
                          interior: Optional[bool] = None) -> Particle:
        """
        Add a freely diffusing transient particle at (x, y). The side is
        inferred from the position unless given.
        """
        if interior is None:
            interior = math.hypot(x, y) < self.axon_membrane.radius
        particle = Particle(particle_type, x, y, radius=self.config.particle_radius)
        particle.set_motion_strategy(self._diffusion_strategy(interior))
        self.transient_particles.append(particle)
        return particle

    def request_particle_through_channel(self, particle_type: ParticleType, channel,
                                         max_velocity: float,
                                         direction: MembraneCrossingDirection) -> Optional[Particle]:
        """
        Send a particle of `particle_type` through `channel`.

        The closest free particle in the channel's source-side capture zone is
        used if there is one; otherwise a new particle is created in the zone
        (or at the channel mouth when the channel has no zone).

        Returns:
            The particle now in transit, or None if the request was dropped
        """
        if not channel.can_accept_transit(direction):
            return None

        zone = channel.get_source_capture_zone(direction)
        particle = zone.scan_for_capture(self.transient_particles, particle_type).closest_free_particle
        if particle is None:
            if len(self.transient_particles) >= self.config.max_transient_particles:
                logger.debug("transient particle limit reached, dropping request from channel %d",
                             channel.index)
                return None
            particle = Particle(particle_type, radius=self.config.particle_radius, opacity=0.0)
            if zone.is_null:
                lateral = (self.rng.random() - 0.5) * channel.channel_width
                mouth = channel.get_source_opening_location(direction, standoff=2.0)
                particle.set_position(*polar(mouth, lateral, channel.rotational_angle + math.pi / 2))
            else:
                zone.assign_new_particle_location(particle, self.rng)
            self.transient_particles.append(particle)

        particle.captured = True
        particle.transit = (channel, direction)
        particle.set_motion_strategy(channel.create_traversal_strategy(particle.x, particle.y, max_velocity))
        particle.set_fade_strategy(TimedFadeInStrategy(FADE_IN_TIME))
        channel.begin_transit(direction, particle)
        return particle

    def _finish_transit(self, particle: Particle, outcome: TransitOutcome) -> None:
        channel, direction = particle.transit
        particle.transit = None
        particle.captured = False
        channel.end_transit(direction)

        crossed = outcome is TransitOutcome.CROSSED
        if crossed:
            self._pending_crossings.append((particle.particle_type, direction))
        ends_inside = (direction is MembraneCrossingDirection.OUT_TO_IN) == crossed
        if self.all_ions_simulated:
            particle.set_motion_strategy(self._diffusion_strategy(ends_inside))
            particle.set_fade_strategy(NULL_FADE_STRATEGY)
            particle.set_opacity(1.0)

    # ------------------------------------------------------------------
    # Time evolution
    # ------------------------------------------------------------------

    def step_in_time(self, dt: float) -> None:
        """Move and fade every particle, then drop the ones that are gone."""
        for particle in self.transient_particles:
            outcome = particle.step_in_time(dt)
            if outcome is not None and particle.transit is not None:
                self._finish_transit(particle, outcome)
        for particle in self.background_particles:
            particle.step_in_time(dt)

        limit = self.axon_membrane.radius * MAX_DISTANCE_IN_RADII
        survivors = []
        for particle in self.transient_particles:
            if particle.continue_existing and math.hypot(particle.x, particle.y) <= limit:
                survivors.append(particle)
            elif particle.transit is not None:
                particle.transit[0].end_transit(particle.transit[1])
                particle.transit = None
        self.transient_particles = survivors

    # ------------------------------------------------------------------
    # Populations
    # ------------------------------------------------------------------

    def add_background_particles(self) -> None:
        count = self.config.num_background_particles_per_type
        for particle_type in ParticleType:
            for interior in (True, False):
                for _ in range(count):
                    x, y = self._random_location(interior)
                    particle = Particle(particle_type, x, y, radius=self.config.particle_radius)
                    particle.set_motion_strategy(SlowBrownianMotionStrategy(x, y, self.rng))
                    self.background_particles.append(particle)

    def remove_background_particles(self) -> None:
        self.background_particles = []

    def _add_free_population(self) -> None:
        for particle_type in ParticleType:
            for interior in (True, False):
                for _ in range(self.config.num_free_particles_per_side):
                    particle = self.add_free_particle(particle_type, *self._random_location(interior),
                                                      interior=interior)
                    particle.set_opacity(0.0)
                    particle.set_fade_strategy(TimedFadeInStrategy(FADE_IN_TIME))

    def set_all_ions_simulated(self, all_ions_simulated: bool) -> None:
        """
        Switch between showing only ions crossing the membrane (plus
        decorative background) and simulating a free population on both
        sides.
        """
        if all_ions_simulated == self.all_ions_simulated:
            return
        self.all_ions_simulated = all_ions_simulated
        logger.info("all ions simulated: %s", all_ions_simulated)
        if all_ions_simulated:
            self.remove_background_particles()
            self._add_free_population()
        else:
            for particle in self.transient_particles:
                if not particle.captured:
                    particle.set_fade_strategy(TimedFadeOutStrategy(FADE_OUT_TIME))
            self.add_background_particles()

    def remove_all_transient_particles(self) -> None:
        for particle in self.transient_particles:
            if particle.transit is not None:
                particle.transit[0].end_transit(particle.transit[1])
                particle.transit = None
        self.transient_particles = []

    def restore_transient_particles(self, mementos) -> None:
        """
        Replace the transient population with still particles rebuilt from
        playback mementos. They fade out, since their motion was not
        recorded.
        """
        self.remove_all_transient_particles()
        for memento in mementos:
            particle = Particle(memento.particle_type, memento.x, memento.y,
                                radius=memento.radius, opacity=memento.opacity)
            particle.set_motion_strategy(StillnessMotionStrategy())
            particle.set_fade_strategy(TimedFadeOutStrategy(FADE_OUT_TIME))
            self.transient_particles.append(particle)
        if self.all_ions_simulated:
            self._add_free_population()

    def get_mementos(self):
        return tuple(particle.get_memento() for particle in self.transient_particles)

    def reset(self) -> None:
        self.remove_all_transient_particles()
        self.remove_background_particles()
        self.reset_concentrations()
        if self.all_ions_simulated:
            self._add_free_population()
        else:
            self.add_background_particles()
