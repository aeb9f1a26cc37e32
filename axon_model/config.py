"""
Configuration threaded through the axon model at construction time.
"""

from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Optional

from membrane_core.models import HHParameters


@dataclass
class NeuronConfig:
    """
    Every tunable constant of the axon model.

    Times are seconds of simulated time unless noted; lengths are nm.
    The clock-derived frame lengths are computed from `clock_frame_rate`
    so a single instance describes one consistent simulation.
    """
    # Clock
    clock_frame_rate: float = 60.0
    time_span: float = 25.0

    # Membrane electrophysiology
    hh_params: HHParameters = field(default_factory=HHParameters)
    integrator: str = 'rk4'
    backend: str = 'numpy'
    max_substep_ms: float = 0.005
    max_gating_delay: float = 0.001
    stimulus_amplitude_mv: float = 15.0
    rest_tolerance_mv: float = 2.0
    refractory_period_ms: float = 15.0

    # Geometry
    cross_section_diameter: float = 150.0
    membrane_thickness: float = 4.0

    # Channels
    num_gated_sodium_channels: int = 20
    num_gated_potassium_channels: int = 25
    num_sodium_leak_channels: int = 3
    num_potassium_leak_channels: int = 7

    # Particles
    max_particle_velocity: float = 40000.0
    max_transient_particles: int = 400
    num_background_particles_per_type: int = 100
    num_free_particles_per_side: int = 30
    particle_radius: float = 0.75

    # Ion concentrations (mM)
    nominal_sodium_exterior: float = 145.0
    nominal_sodium_interior: float = 10.0
    nominal_potassium_exterior: float = 4.0
    nominal_potassium_interior: float = 140.0
    concentration_per_ion: float = 0.001

    # Record and playback
    max_recorded_points: int = 5000
    history_overflow_policy: str = 'stop'
    end_of_playback_behavior: str = 'pause'

    seed: Optional[int] = None

    @property
    def min_clock_dt(self) -> float:
        return (1.0 / self.clock_frame_rate) / 3000.0

    @property
    def max_clock_dt(self) -> float:
        return (1.0 / self.clock_frame_rate) / 1000.0

    @property
    def default_clock_dt(self) -> float:
        return (self.min_clock_dt + self.max_clock_dt) * 0.55

    @property
    def cross_section_radius(self) -> float:
        return self.cross_section_diameter / 2.0

    @property
    def total_channels(self) -> int:
        return (self.num_gated_sodium_channels + self.num_gated_potassium_channels
                + self.num_sodium_leak_channels + self.num_potassium_leak_channels)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'NeuronConfig':
        """
        Create a configuration from a dictionary.

        Raises:
            ValueError: If `d` contains a key that is not a config field.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown config key(s): {sorted(unknown)}")
        d = dict(d)
        if isinstance(d.get('hh_params'), dict):
            d['hh_params'] = HHParameters.from_dict(d['hh_params'])
        return cls(**d)
