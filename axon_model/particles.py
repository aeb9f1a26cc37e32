"""
Ions moving around the axon cross-section and their playback stand-ins.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .fade import FadeStrategy, NULL_FADE_STRATEGY
from .motion import MotionStrategy, StillnessMotionStrategy, TransitOutcome

Color = Tuple[int, int, int]

DEFAULT_PARTICLE_RADIUS = 0.75  # nm


class ParticleType(Enum):
    SODIUM_ION = 'sodium'
    POTASSIUM_ION = 'potassium'


PARTICLE_COLORS = {
    ParticleType.SODIUM_ION: (255, 85, 0),
    ParticleType.POTASSIUM_ION: (0, 240, 100),
}


@dataclass(frozen=True)
class ParticlePlaybackMemento:
    """Visual state of one particle at one recorded instant."""
    x: float
    y: float
    opacity: float
    particle_type: ParticleType
    radius: float
    color: Color


class Particle:
    """
    A simulated ion.

    Motion and fading are delegated to the current strategies; both are
    swapped by assigning whatever the strategy returns after each frame.
    """

    def __init__(self, particle_type: ParticleType, x: float = 0.0, y: float = 0.0,
                 radius: float = DEFAULT_PARTICLE_RADIUS, opacity: float = 1.0):
        self.particle_type = particle_type
        self.x = x
        self.y = y
        self.radius = radius
        self.opacity = opacity
        self.motion_strategy: MotionStrategy = StillnessMotionStrategy()
        self.fade_strategy: FadeStrategy = NULL_FADE_STRATEGY
        self.captured = False
        self.continue_existing = True
        # (channel, direction) while a traversal is under way
        self.transit = None

    @property
    def representation_color(self) -> Color:
        return PARTICLE_COLORS[self.particle_type]

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def set_position(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def set_opacity(self, opacity: float) -> None:
        self.opacity = min(max(opacity, 0.0), 1.0)

    def set_motion_strategy(self, strategy: MotionStrategy) -> None:
        self.motion_strategy = strategy

    def set_fade_strategy(self, strategy: FadeStrategy) -> None:
        self.fade_strategy = strategy

    def is_in_transit(self) -> bool:
        return self.transit is not None

    def is_available_for_capture(self) -> bool:
        return (self.continue_existing and not self.captured
                and not self.motion_strategy.is_traversal)

    def step_in_time(self, dt: float) -> Optional[TransitOutcome]:
        """
        Move, then fade.

        Returns:
            How a channel traversal ended if it ended this frame, else None
        """
        update = self.motion_strategy.move(self, dt)
        self.motion_strategy = update.strategy
        if update.fade is not None:
            self.fade_strategy = update.fade
        self.fade_strategy = self.fade_strategy.update_opacity(self, dt)
        if not self.fade_strategy.should_continue_existing(self):
            self.continue_existing = False
        return update.transit

    def get_memento(self) -> ParticlePlaybackMemento:
        return ParticlePlaybackMemento(self.x, self.y, self.opacity, self.particle_type,
                                       self.radius, self.representation_color)

    def __repr__(self):
        return (f"Particle({self.particle_type.name}, x={self.x:.2f}, y={self.y:.2f}, "
                f"opacity={self.opacity:.2f})")


class PlaybackParticle:
    """Display-only particle rebuilt from a memento during playback."""

    def __init__(self, memento: Optional[ParticlePlaybackMemento] = None):
        self.x = 0.0
        self.y = 0.0
        self.opacity = 1.0
        self.particle_type = ParticleType.SODIUM_ION
        self.radius = DEFAULT_PARTICLE_RADIUS
        self.representation_color = PARTICLE_COLORS[self.particle_type]
        if memento is not None:
            self.restore_from_memento(memento)

    def restore_from_memento(self, memento: ParticlePlaybackMemento) -> None:
        self.x = memento.x
        self.y = memento.y
        self.opacity = memento.opacity
        self.particle_type = memento.particle_type
        self.radius = memento.radius
        self.representation_color = memento.color

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)
