"""
Axon model - membrane channels, ion particles and record/playback control
built on the membrane_core Hodgkin-Huxley integrator.
"""

from .config import NeuronConfig

from .particles import (
    ParticleType,
    Particle,
    ParticlePlaybackMemento,
    PlaybackParticle
)

from .fade import (
    FadeStrategy,
    NullFadeStrategy,
    NULL_FADE_STRATEGY,
    TimedFadeInStrategy,
    TimedFadeOutStrategy
)

from .motion import (
    MembraneCrossingDirection,
    TransitOutcome,
    MotionUpdate,
    MotionStrategy,
    StillnessMotionStrategy,
    LinearMotionStrategy,
    SpeedChangeLinearMotionStrategy,
    SlowBrownianMotionStrategy,
    RandomWalkMotionStrategy,
    WanderAwayThenFadeMotionStrategy,
    MembraneTraversalMotionStrategy,
    TraverseChannelAndFadeMotionStrategy,
    DualGateChannelTraversalMotionStrategy
)

from .capture_zones import (
    CaptureZone,
    CaptureZoneScanResult,
    NullCaptureZone,
    WedgeCaptureZone
)

from .channels import (
    MembraneChannelTypes,
    GateState,
    MembraneChannel,
    GatedChannel,
    SodiumDualGatedChannel,
    PotassiumGatedChannel,
    LeakChannel,
    SodiumLeakageChannel,
    PotassiumLeakageChannel,
    create_membrane_channel
)

from .axon_membrane import (
    ActionPotentialShape,
    AxonMembrane,
    TravelingActionPotential
)

from .state import (
    MembraneChannelState,
    TravelingActionPotentialState,
    AxonMembraneState,
    NeuronModelState
)

from .lifecycle import ParticleLifecycleManager

from .record_playback import (
    HistoryOverflowPolicy,
    EndOfPlaybackBehavior,
    DataPoint,
    Mode,
    Live,
    Record,
    Playback,
    RecordAndPlaybackModel
)

from .data_series import MembranePotentialDataSeries

from .neuron_model import NeuronModel

__all__ = [
    'NeuronConfig',

    # Particles
    'ParticleType',
    'Particle',
    'ParticlePlaybackMemento',
    'PlaybackParticle',

    # Fade and motion
    'FadeStrategy',
    'NullFadeStrategy',
    'NULL_FADE_STRATEGY',
    'TimedFadeInStrategy',
    'TimedFadeOutStrategy',
    'MembraneCrossingDirection',
    'TransitOutcome',
    'MotionUpdate',
    'MotionStrategy',
    'StillnessMotionStrategy',
    'LinearMotionStrategy',
    'SpeedChangeLinearMotionStrategy',
    'SlowBrownianMotionStrategy',
    'RandomWalkMotionStrategy',
    'WanderAwayThenFadeMotionStrategy',
    'MembraneTraversalMotionStrategy',
    'TraverseChannelAndFadeMotionStrategy',
    'DualGateChannelTraversalMotionStrategy',

    # Capture zones and channels
    'CaptureZone',
    'CaptureZoneScanResult',
    'NullCaptureZone',
    'WedgeCaptureZone',
    'MembraneChannelTypes',
    'GateState',
    'MembraneChannel',
    'GatedChannel',
    'SodiumDualGatedChannel',
    'PotassiumGatedChannel',
    'LeakChannel',
    'SodiumLeakageChannel',
    'PotassiumLeakageChannel',
    'create_membrane_channel',

    # Membrane and state
    'ActionPotentialShape',
    'AxonMembrane',
    'TravelingActionPotential',
    'MembraneChannelState',
    'TravelingActionPotentialState',
    'AxonMembraneState',
    'NeuronModelState',

    # Orchestration
    'ParticleLifecycleManager',
    'HistoryOverflowPolicy',
    'EndOfPlaybackBehavior',
    'DataPoint',
    'Mode',
    'Live',
    'Record',
    'Playback',
    'RecordAndPlaybackModel',
    'MembranePotentialDataSeries',
    'NeuronModel',
]
