"""
Single entry point for building an axon model.

Selects the Hodgkin-Huxley backend and integrator and returns a ready
NeuronModel.
"""

from dataclasses import replace
from typing import Optional, Union, Dict, Any

from axon_model import NeuronConfig, NeuronModel, NeuronModelState, MembranePotentialDataSeries
from membrane_core import HHParameters


def Simulator(backend: str = 'numpy',
              config: Optional[Union[NeuronConfig, Dict[str, Any]]] = None,
              integrator: Optional[str] = None,
              seed: Optional[int] = None) -> NeuronModel:
    """
    Create an axon model with the specified membrane backend.

    This is a factory function; the model it returns is stepped with
    model.step(dt), dt in seconds of simulated time.

    Args:
        backend: 'numpy' or 'numba'
        config: NeuronConfig, or a dict accepted by NeuronConfig.from_dict
            (defaults if None)
        integrator: Integration method, overriding the config
            - numpy: 'euler', 'rk4', 'rk4rl', 'rk45-scipy'
            - numba: only 'rk4'
        seed: Random seed, overriding the config

    Returns:
        NeuronModel instance

    Examples:
        >>> model = Simulator(backend='numpy', seed=1)
        >>> model.start_recording()
        >>> model.stimulate()
        >>> for _ in range(1000):
        ...     model.step(model.config.default_clock_dt)
    """
    backend = backend.lower()
    if backend not in ('numpy', 'numba'):
        raise ValueError(
            f"Unknown backend: '{backend}'. "
            f"Valid options are 'numpy' or 'numba'."
        )

    if config is None:
        config = NeuronConfig()
    elif isinstance(config, dict):
        config = NeuronConfig.from_dict(config)

    overrides = {'backend': backend}
    if integrator is not None:
        overrides['integrator'] = integrator
    if seed is not None:
        overrides['seed'] = seed
    return NeuronModel(replace(config, **overrides))


__all__ = [
    'Simulator',
    'NeuronConfig',
    'NeuronModel',
    'NeuronModelState',
    'MembranePotentialDataSeries',
    'HHParameters',
]
