"""
Membrane core - Hodgkin-Huxley equations, integrators and the stateful
integrator that drives the axon model.
"""

from .models import (
    HHParameters,
    HHState,
    alpha_m_func,
    alpha_h_func,
    alpha_n_func,
    beta_m_func,
    beta_h_func,
    beta_n_func,
    steady_state_gates,
    gating_products,
    compute_currents,
    derivatives,
    rush_larsen_gating_step
)

from .integrators import (
    IntegratorBase,
    ForwardEuler,
    RK4,
    RK4RushLarsen,
    RK45Scipy,
    create_integrator
)

from .delay_buffer import DelayBuffer

from .hodgkin_huxley import (
    HodgkinHuxleyIntegrator,
    MembraneState
)

__all__ = [
    # Models
    'HHParameters',
    'HHState',
    'alpha_m_func',
    'alpha_h_func',
    'alpha_n_func',
    'beta_m_func',
    'beta_h_func',
    'beta_n_func',
    'steady_state_gates',
    'gating_products',
    'compute_currents',
    'derivatives',
    'rush_larsen_gating_step',

    # Integrators
    'IntegratorBase',
    'ForwardEuler',
    'RK4',
    'RK4RushLarsen',
    'RK45Scipy',
    'create_integrator',

    # Stateful model
    'DelayBuffer',
    'HodgkinHuxleyIntegrator',
    'MembraneState',
]
