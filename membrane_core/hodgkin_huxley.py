"""
Stateful Hodgkin-Huxley integrator driving the axon membrane.

Frames arrive in seconds of simulated time; the equations run in ms. Each
frame is split into equal sub-steps no longer than `max_substep` so the
stiff gating equations stay stable whatever frame length the caller picks.
"""

import logging
import math
import warnings
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

from .models import HHParameters, HHState, compute_currents, gating_products
from .integrators import create_integrator
from .delay_buffer import DelayBuffer

logger = logging.getLogger(__name__)

# Frames needing more sub-steps than this are almost certainly a units slip
# (ms passed where seconds are expected).
SUBSTEP_WARNING_COUNT = 10000


@dataclass(frozen=True)
class MembraneState:
    """Immutable snapshot of the integrator, restorable with set_state()."""
    membrane_voltage: float              # volts
    m: float
    h: float
    n: float
    elapsed_time: float                  # ms
    time_since_action_potential: float   # ms, inf when no stimulus yet
    conductances: Tuple[float, float, float]  # (g_Na, g_K, g_L)


class HodgkinHuxleyIntegrator:
    """
    Membrane voltage plus the m, h and n gates of one axon patch.

    Besides the state itself the integrator keeps the gating products m^3 h
    and n^4 cached after each frame, along with a short history of each so
    channels can read them with a lag.
    """

    def __init__(self,
                 params: Optional[HHParameters] = None,
                 integrator: str = 'rk4',
                 backend: str = 'numpy',
                 max_substep: float = 0.005,
                 max_delay: float = 0.001,
                 min_time_step: float = (1.0 / 60.0) / 3000.0,
                 stimulus_amplitude: float = 15.0,
                 rest_tolerance: float = 2.0,
                 refractory_period: float = 15.0):
        """
        Args:
            params: Membrane parameters (defaults if None)
            integrator: 'euler', 'rk4', 'rk4rl' or 'rk45-scipy'
            backend: 'numpy' or 'numba' (numba always uses RK4)
            max_substep: Longest internal step (ms)
            max_delay: Longest lag served by the delay buffers (s)
            min_time_step: Shortest frame the caller will use (s)
            stimulus_amplitude: Depolarisation applied by stimulate() (mV)
            rest_tolerance: Distance from V_rest still counted as rest (mV)
            refractory_period: Time after a stimulus during which the
                membrane is never treated as resting (ms)
        """
        if max_substep <= 0:
            raise ValueError(f"max_substep must be positive, got {max_substep}")

        self.params = replace(params) if params is not None else HHParameters()
        self.max_substep = max_substep
        self.stimulus_amplitude = stimulus_amplitude
        self.rest_tolerance = rest_tolerance
        self.refractory_period = refractory_period

        backend = backend.lower()
        if backend == 'numpy':
            self.integrator = create_integrator(integrator, self.params)
            self._kernel = None
        elif backend == 'numba':
            if integrator.lower() != 'rk4':
                warnings.warn(
                    f"numba backend only implements RK4, ignoring integrator='{integrator}'",
                    UserWarning
                )
            try:
                from .kernels import rk4_substeps
            except ImportError:
                raise ImportError(
                    "numba backend requires numba. Install with: pip install numba"
                )
            self.integrator = None
            self._kernel = rk4_substeps
        else:
            raise ValueError(
                f"Unknown backend: '{backend}'. Valid options are 'numpy' or 'numba'."
            )
        self.backend = backend

        self._m3h_buffer = DelayBuffer(max_delay, min_time_step)
        self._n4_buffer = DelayBuffer(max_delay, min_time_step)

        self._resting = HHState.resting_state(self.params)
        self._resting_m3h, self._resting_n4 = gating_products(self._resting)

        self._clamp_value = None
        self.reset()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Return to the resting steady state and forget all history."""
        self.state = self._resting.copy()
        self.elapsed_time = 0.0
        self.time_since_action_potential = math.inf
        self._m3h, self._n4 = gating_products(self.state)
        self._m3h_buffer.clear()
        self._n4_buffer.clear()

    def step(self, dt: float) -> None:
        """
        Advance by dt seconds of simulated time.

        Args:
            dt: Frame length (s). Zero is a no-op.
        """
        if dt < 0:
            raise ValueError(f"dt must be non-negative, got {dt}")
        if dt == 0:
            return

        dt_ms = dt * 1000.0
        n_sub = max(1, int(math.ceil(dt_ms / self.max_substep - 1e-9)))
        if n_sub > SUBSTEP_WARNING_COUNT:
            warnings.warn(
                f"Frame of {dt} s needs {n_sub} sub-steps; "
                f"dt is expected in seconds of simulated time."
            )
        sub_dt = dt_ms / n_sub

        if self._kernel is not None:
            from .kernels import pack_params
            self.state = HHState(self._kernel(self.state.data, sub_dt, n_sub, 0.0,
                                              pack_params(self.params)))
        else:
            for _ in range(n_sub):
                self.state = self.integrator.step(self.state, sub_dt)
                self.state.clip_gates()

        if self._clamp_value is not None:
            self.state.V = self._clamp_value

        self.elapsed_time += dt_ms
        if math.isfinite(self.time_since_action_potential):
            self.time_since_action_potential += dt_ms

        self._m3h, self._n4 = gating_products(self.state)
        self._m3h_buffer.add_value(self._m3h, dt)
        self._n4_buffer.add_value(self._n4, dt)

    def is_at_rest(self) -> bool:
        """True outside the refractory window with V near its resting value."""
        if self.time_since_action_potential < self.refractory_period:
            return False
        return abs(float(self.state.V) - self.params.V_rest) <= self.rest_tolerance

    def stimulate(self) -> bool:
        """
        Depolarise the membrane by `stimulus_amplitude` if it is at rest.

        Returns:
            True if the stimulus was applied, False if it was ignored
            because an action potential is already under way.
        """
        if not self.is_at_rest():
            logger.debug("stimulus ignored, membrane not at rest (V=%.2f mV)",
                         float(self.state.V))
            return False
        self.state.V = self.state.V + self.stimulus_amplitude
        self.time_since_action_potential = 0.0
        return True

    # ------------------------------------------------------------------
    # Voltage clamp
    # ------------------------------------------------------------------

    def set_voltage_clamp(self, value_mv: float) -> None:
        """Hold V at value_mv at the end of every frame."""
        self._clamp_value = float(value_mv)
        self.state.V = self._clamp_value

    def clear_voltage_clamp(self) -> None:
        self._clamp_value = None

    def is_voltage_clamped(self) -> bool:
        return self._clamp_value is not None

    # ------------------------------------------------------------------
    # Conductances
    # ------------------------------------------------------------------

    def set_conductances(self, g_na: float, g_k: float, g_leak: float) -> None:
        self.params.g_Na = float(g_na)
        self.params.g_K = float(g_k)
        self.params.g_L = float(g_leak)

    def get_conductances(self) -> Tuple[float, float, float]:
        return (self.params.g_Na, self.params.g_K, self.params.g_L)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_membrane_voltage(self) -> float:
        """Membrane potential in volts."""
        return float(self.state.V) / 1000.0

    def get_membrane_voltage_mv(self) -> float:
        return float(self.state.V)

    def get_resting_voltage(self) -> float:
        """Resting potential in volts."""
        return self.params.V_rest / 1000.0

    def get_m3h(self) -> float:
        return self._m3h

    def get_n4(self) -> float:
        return self._n4

    def get_delayed_m3h(self, delay: float) -> float:
        """m^3 h as it was `delay` seconds ago (current value if delay <= 0)."""
        if delay <= 0:
            return self._m3h
        return self._m3h_buffer.get_delayed_value(delay)

    def get_delayed_n4(self, delay: float) -> float:
        """n^4 as it was `delay` seconds ago (current value if delay <= 0)."""
        if delay <= 0:
            return self._n4
        return self._n4_buffer.get_delayed_value(delay)

    def get_resting_m3h(self) -> float:
        return self._resting_m3h

    def get_resting_n4(self) -> float:
        return self._resting_n4

    def get_na_current(self) -> float:
        return compute_currents(self.state, self.params)['I_Na']

    def get_k_current(self) -> float:
        return compute_currents(self.state, self.params)['I_K']

    def get_l_current(self) -> float:
        return compute_currents(self.state, self.params)['I_L']

    def get_l_current_from_rest(self) -> float:
        """
        Leak current measured from the resting potential, g_L (V - V_rest).

        Zero at rest, positive when depolarised, negative when
        hyperpolarised.
        """
        return self.params.g_L * (float(self.state.V) - self.params.V_rest)

    def get_elapsed_time(self) -> float:
        """Simulated time since the last reset (ms)."""
        return self.elapsed_time

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def get_state(self) -> MembraneState:
        return MembraneState(
            membrane_voltage=self.get_membrane_voltage(),
            m=float(self.state.m),
            h=float(self.state.h),
            n=float(self.state.n),
            elapsed_time=self.elapsed_time,
            time_since_action_potential=self.time_since_action_potential,
            conductances=self.get_conductances(),
        )

    def set_state(self, state: MembraneState) -> None:
        """
        Restore a snapshot taken with get_state(). The delay buffers are
        cleared since their history does not belong to the restored instant.
        """
        self.state = HHState(np.array([state.membrane_voltage * 1000.0,
                                       state.m, state.h, state.n]))
        self.elapsed_time = state.elapsed_time
        self.time_since_action_potential = state.time_since_action_potential
        self.set_conductances(*state.conductances)
        self._m3h, self._n4 = gating_products(self.state)
        self._m3h_buffer.clear()
        self._n4_buffer.clear()
