"""
Opacity strategies for particles.

update_opacity() returns the strategy the particle should use from the next
frame on, so a finished fade-in hands back NULL_FADE_STRATEGY instead of
reaching into the particle to replace itself.
"""


class FadeStrategy:
    """Base class for fade strategies."""

    def update_opacity(self, particle, dt: float) -> 'FadeStrategy':
        """
        Adjust particle opacity for a frame of length dt (s).

        Returns:
            The fade strategy to use next
        """
        raise NotImplementedError

    def should_continue_existing(self, particle) -> bool:
        return True


class NullFadeStrategy(FadeStrategy):
    """Leaves opacity untouched. Use the NULL_FADE_STRATEGY singleton."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def update_opacity(self, particle, dt: float) -> FadeStrategy:
        return self

    def __repr__(self):
        return 'NullFadeStrategy()'


NULL_FADE_STRATEGY = NullFadeStrategy()


class TimedFadeInStrategy(FadeStrategy):
    """
    Linear ramp from the particle's current opacity up to `target_opacity`
    over `fade_time` seconds.
    """

    def __init__(self, fade_time: float, target_opacity: float = 1.0):
        if fade_time <= 0:
            raise ValueError(f"fade_time must be positive, got {fade_time}")
        self.fade_time = fade_time
        self.target_opacity = min(max(target_opacity, 0.0), 1.0)
        self.countdown = fade_time
        self._start_opacity = None

    def update_opacity(self, particle, dt: float) -> FadeStrategy:
        if self._start_opacity is None:
            self._start_opacity = min(particle.opacity, self.target_opacity)
        self.countdown -= dt
        if self.countdown <= 0:
            particle.set_opacity(self.target_opacity)
            return NULL_FADE_STRATEGY
        progress = 1.0 - self.countdown / self.fade_time
        particle.set_opacity(self._start_opacity
                             + (self.target_opacity - self._start_opacity) * progress)
        return self


class TimedFadeOutStrategy(FadeStrategy):
    """
    Linear ramp down to zero over `fade_time` seconds. Opacity never goes up
    even if the particle was already dimmer than the ramp.
    """

    def __init__(self, fade_time: float):
        if fade_time <= 0:
            raise ValueError(f"fade_time must be positive, got {fade_time}")
        self.fade_time = fade_time
        self.countdown = fade_time

    def update_opacity(self, particle, dt: float) -> FadeStrategy:
        self.countdown -= dt
        ramp = min(max(self.countdown / self.fade_time, 0.0), 1.0)
        particle.set_opacity(min(ramp, particle.opacity))
        return self

    def should_continue_existing(self, particle) -> bool:
        return particle.opacity > 0
