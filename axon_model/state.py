"""
Immutable snapshots of the axon model, recorded once per instant and
restored during playback.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from membrane_core.hodgkin_huxley import MembraneState
from .particles import ParticlePlaybackMemento


@dataclass(frozen=True)
class MembraneChannelState:
    openness: float
    inactivation_amount: float
    gate_state: object                 # channels.GateState
    state_transition_timer: float = 0.0


@dataclass(frozen=True)
class TravelingActionPotentialState:
    travel_time_countdown: float
    linger_countdown: float


@dataclass(frozen=True)
class AxonMembraneState:
    traveling_action_potential: Optional[TravelingActionPotentialState] = None


@dataclass(frozen=True)
class NeuronModelState:
    """
    Everything needed to show, or resume from, one recorded instant.

    channel_states is indexed by channel index, in the same order as
    NeuronModel.channels.
    """
    axon_membrane_state: AxonMembraneState
    hodgkin_huxley_state: MembraneState
    membrane_potential: float          # volts
    sodium_interior_concentration: float
    sodium_exterior_concentration: float
    potassium_interior_concentration: float
    potassium_exterior_concentration: float
    channel_states: Tuple[MembraneChannelState, ...]
    particle_mementos: Tuple[ParticlePlaybackMemento, ...]
