"""
Single-step ODE integrators for the membrane equations.

Every integrator advances one sub-step; splitting a frame into sub-steps
is the job of HodgkinHuxleyIntegrator.
"""

import numpy as np
from .models import HHState, HHParameters, derivatives, rush_larsen_gating_step

try:
    from scipy.integrate import RK45
    SCIPY_AVAILABLE = True
except ImportError:
    SCIPY_AVAILABLE = False


class IntegratorBase:
    """Base class for ODE integrators."""

    name = 'base'

    def __init__(self, params: HHParameters):
        self.params = params

    def step(self, state: HHState, dt: float, I_ext: float = 0.0) -> HHState:
        """
        Advance state by one sub-step.

        Args:
            state: Current state
            dt: Sub-step (ms)
            I_ext: Injected current (uA/cm^2)

        Returns:
            New state
        """
        raise NotImplementedError


class ForwardEuler(IntegratorBase):
    """
    Forward Euler, first order. Only stable for very small sub-steps.
    """

    name = 'euler'

    def step(self, state: HHState, dt: float, I_ext: float = 0.0) -> HHState:
        return HHState(state.data + dt * derivatives(state, I_ext, self.params))


def _rk4_increment(state: HHState, dt: float, I_ext: float, params: HHParameters) -> np.ndarray:
    k1 = derivatives(state, I_ext, params)
    k2 = derivatives(HHState(state.data + 0.5 * dt * k1), I_ext, params)
    k3 = derivatives(HHState(state.data + 0.5 * dt * k2), I_ext, params)
    k4 = derivatives(HHState(state.data + dt * k3), I_ext, params)
    return (dt / 6.0) * (k1 + 2 * k2 + 2 * k3 + k4)


class RK4(IntegratorBase):
    """
    Classic fourth-order Runge-Kutta. Default for the axon model.
    """

    name = 'rk4'

    def step(self, state: HHState, dt: float, I_ext: float = 0.0) -> HHState:
        return HHState(state.data + _rk4_increment(state, dt, I_ext, self.params))


class RK4RushLarsen(IntegratorBase):
    """
    RK4 for voltage, Rush-Larsen for the gates.

    The gates are advanced exponentially at the post-step voltage, which
    keeps them inside [0, 1] even for coarse sub-steps.
    """

    name = 'rk4rl'

    def step(self, state: HHState, dt: float, I_ext: float = 0.0) -> HHState:
        V_new = state.V + _rk4_increment(state, dt, I_ext, self.params)[0]

        gates_at_new_v = state.copy()
        gates_at_new_v.V = V_new
        result = rush_larsen_gating_step(gates_at_new_v, dt)
        result.V = V_new
        return result


class RK45Scipy(IntegratorBase):
    """
    Dormand-Prince via scipy.integrate.RK45, pinned to a single fixed step
    so it is interchangeable with the other integrators.
    """

    name = 'rk45-scipy'

    def __init__(self, params: HHParameters):
        super().__init__(params)
        if not SCIPY_AVAILABLE:
            raise ImportError(
                "scipy is not installed. Install it with: pip install scipy"
            )

    def step(self, state: HHState, dt: float, I_ext: float = 0.0) -> HHState:
        def func(t, y):
            return derivatives(HHState(y), I_ext, self.params)

        solver = RK45(func, 0.0, state.data.copy(), dt, max_step=dt, first_step=dt)
        # a rejected first step shrinks it, so keep going until t_bound
        while solver.status == 'running':
            solver.step()
        if solver.status == 'failed':
            raise RuntimeError(f"RK45 failed to advance the membrane state by {dt} ms")
        return HHState(np.asarray(solver.y, dtype=state.data.dtype))


INTEGRATORS = {
    ForwardEuler.name: ForwardEuler,
    RK4.name: RK4,
    RK4RushLarsen.name: RK4RushLarsen,
    RK45Scipy.name: RK45Scipy,
}


def create_integrator(name: str, params: HHParameters) -> IntegratorBase:
    """
    Build an integrator by name ('euler', 'rk4', 'rk4rl' or 'rk45-scipy').
    """
    try:
        cls = INTEGRATORS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown integrator type: '{name}'. "
            f"Valid options are {sorted(INTEGRATORS)}."
        )
    return cls(params)
