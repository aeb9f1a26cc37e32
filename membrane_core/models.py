"""
Hodgkin-Huxley membrane equations for the axon cross-section.

Units follow the classic squid-axon convention: mV, ms, uA/cm^2 and
mS/cm^2, with the membrane resting near -65 mV.
"""

import numpy as np
from typing import Dict, Tuple
from dataclasses import dataclass, asdict, fields


@dataclass
class HHParameters:
    """
    Electrical parameters of the membrane patch.

    Conductances are the maximal (fully open) values; the integrator lets
    callers change them at runtime, capacitance stays fixed.
    """
    # Membrane capacitance (uF/cm^2)
    C_m: float = 1.0

    # Maximal conductances (mS/cm^2)
    g_Na: float = 120.0
    g_K: float = 36.0
    g_L: float = 0.3

    # Reversal potentials (mV)
    E_Na: float = 50.0
    E_K: float = -77.0
    E_L: float = -54.387

    # Potential the membrane settles at with no input (mV)
    V_rest: float = -65.0

    def to_dict(self) -> Dict[str, float]:
        """Convert parameters to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> 'HHParameters':
        """Create parameters from dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown parameter(s): {sorted(unknown)}")
        return cls(**d)


@dataclass
class HHState:
    """
    Mutable integration vector [V, m, h, n] for one membrane patch.
    """
    data: np.ndarray  # shape: (4,)

    @property
    def V(self) -> float:
        """Membrane potential (mV)."""
        return self.data[0]

    @V.setter
    def V(self, value):
        self.data[0] = value

    @property
    def m(self) -> float:
        """Sodium activation gate."""
        return self.data[1]

    @m.setter
    def m(self, value):
        self.data[1] = value

    @property
    def h(self) -> float:
        """Sodium inactivation gate."""
        return self.data[2]

    @h.setter
    def h(self, value):
        self.data[2] = value

    @property
    def n(self) -> float:
        """Potassium activation gate."""
        return self.data[3]

    @n.setter
    def n(self, value):
        self.data[3] = value

    def copy(self) -> 'HHState':
        return HHState(self.data.copy())

    def clip_gates(self) -> None:
        """Keep the three gating variables inside [0, 1]."""
        np.clip(self.data[1:], 0.0, 1.0, out=self.data[1:])

    @staticmethod
    def resting_state(params: HHParameters = None, dtype=np.float64) -> 'HHState':
        """
        Build the state at the resting potential with every gate at its
        steady-state value.
        """
        V_rest = params.V_rest if params is not None else HHParameters.V_rest
        m_inf, h_inf, n_inf = steady_state_gates(V_rest)
        return HHState(np.array([V_rest, m_inf, h_inf, n_inf], dtype=dtype))


# Gating rate functions, Hodgkin & Huxley 1952 (shifted so rest is -65 mV).
# The two alpha functions with removable singularities use the limit value
# when the argument is within 1e-4 of the pole.

def _linoid(x, scale: float, limit: float):
    x = np.asarray(x, dtype=np.float64)
    near_pole = np.abs(x) < 1e-4
    safe_x = np.where(near_pole, 1.0, x)
    return np.where(near_pole, limit, scale * safe_x / (1.0 - np.exp(-safe_x / 10.0)))


def alpha_m_func(V):
    """alpha_m = 0.1 (V + 40) / (1 - exp(-(V + 40) / 10))"""
    return _linoid(V + 40.0, 0.1, 1.0)


def beta_m_func(V):
    """beta_m = 4 exp(-(V + 65) / 18)"""
    return 4.0 * np.exp(-(V + 65.0) / 18.0)


def alpha_h_func(V):
    """alpha_h = 0.07 exp(-(V + 65) / 20)"""
    return 0.07 * np.exp(-(V + 65.0) / 20.0)


def beta_h_func(V):
    """beta_h = 1 / (1 + exp(-(V + 35) / 10))"""
    return 1.0 / (1.0 + np.exp(-(V + 35.0) / 10.0))


def alpha_n_func(V):
    """alpha_n = 0.01 (V + 55) / (1 - exp(-(V + 55) / 10))"""
    return _linoid(V + 55.0, 0.01, 0.1)


def beta_n_func(V):
    """beta_n = 0.125 exp(-(V + 65) / 80)"""
    return 0.125 * np.exp(-(V + 65.0) / 80.0)


def steady_state_gates(V) -> Tuple[float, float, float]:
    """
    Steady-state (m_inf, h_inf, n_inf) at a clamped voltage.
    """
    a_m, b_m = alpha_m_func(V), beta_m_func(V)
    a_h, b_h = alpha_h_func(V), beta_h_func(V)
    a_n, b_n = alpha_n_func(V), beta_n_func(V)
    return (float(a_m / (a_m + b_m)),
            float(a_h / (a_h + b_h)),
            float(a_n / (a_n + b_n)))


def gating_products(state: HHState) -> Tuple[float, float]:
    """
    Return (m^3 h, n^4), the open probabilities of the sodium and
    potassium conductances.
    """
    return (float(state.m ** 3 * state.h), float(state.n ** 4))


def compute_currents(state: HHState, params: HHParameters) -> Dict[str, float]:
    """
    Ionic currents for the given state, outward positive.

    Returns:
        Dictionary with keys 'I_Na', 'I_K', 'I_L' and 'I_ion' (their sum)
    """
    V = state.V
    I_Na = params.g_Na * (state.m ** 3) * state.h * (V - params.E_Na)
    I_K = params.g_K * (state.n ** 4) * (V - params.E_K)
    I_L = params.g_L * (V - params.E_L)
    return {
        'I_Na': float(I_Na),
        'I_K': float(I_K),
        'I_L': float(I_L),
        'I_ion': float(I_Na + I_K + I_L),
    }


def derivatives(state: HHState, I_ext: float, params: HHParameters) -> np.ndarray:
    """
    Time derivatives of [V, m, h, n].

    Args:
        state: Current state
        I_ext: Injected current (uA/cm^2)
        params: Membrane parameters

    Returns:
        Array with the same shape as state.data
    """
    V, m, h, n = state.data

    dm = alpha_m_func(V) * (1.0 - m) - beta_m_func(V) * m
    dh = alpha_h_func(V) * (1.0 - h) - beta_h_func(V) * h
    dn = alpha_n_func(V) * (1.0 - n) - beta_n_func(V) * n

    I_ion = (params.g_Na * m ** 3 * h * (V - params.E_Na)
             + params.g_K * n ** 4 * (V - params.E_K)
             + params.g_L * (V - params.E_L))
    dV = (I_ext - I_ion) / params.C_m

    return np.array([dV, dm, dh, dn], dtype=state.data.dtype)


def rush_larsen_gating_step(state: HHState, dt: float) -> HHState:
    """
    Exponential (Rush-Larsen) update of the gates at fixed voltage.

    Each gate obeys dx/dt = alpha (1 - x) - beta x, whose exact solution
    over dt is x_inf + (x - x_inf) exp(-dt / tau_x).

    Args:
        state: Current state
        dt: Time step (ms)

    Returns:
        New state with the same V and updated gates
    """
    V = state.V
    new_state = state.copy()
    for idx, (alpha, beta) in enumerate(((alpha_m_func, beta_m_func),
                                         (alpha_h_func, beta_h_func),
                                         (alpha_n_func, beta_n_func)), start=1):
        a, b = alpha(V), beta(V)
        x_inf = a / (a + b)
        tau = 1.0 / (a + b)
        new_state.data[idx] = x_inf + (state.data[idx] - x_inf) * np.exp(-dt / tau)
    return new_state
