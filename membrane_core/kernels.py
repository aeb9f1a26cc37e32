"""
Numba-jitted sub-stepping kernel.

Used by HodgkinHuxleyIntegrator when backend='numba': a whole frame of
RK4 sub-steps runs in one compiled call instead of a Python loop.
"""

import numpy as np
from numba import njit


@njit(cache=True)
def _rates(V):
    x = V + 40.0
    if abs(x) < 1e-4:
        a_m = 1.0
    else:
        a_m = 0.1 * x / (1.0 - np.exp(-x / 10.0))
    b_m = 4.0 * np.exp(-(V + 65.0) / 18.0)
    a_h = 0.07 * np.exp(-(V + 65.0) / 20.0)
    b_h = 1.0 / (1.0 + np.exp(-(V + 35.0) / 10.0))
    x = V + 55.0
    if abs(x) < 1e-4:
        a_n = 0.1
    else:
        a_n = 0.01 * x / (1.0 - np.exp(-x / 10.0))
    b_n = 0.125 * np.exp(-(V + 65.0) / 80.0)
    return a_m, b_m, a_h, b_h, a_n, b_n


@njit(cache=True)
def _derivs(y, I_ext, p):
    # p = [C_m, g_Na, g_K, g_L, E_Na, E_K, E_L]
    V, m, h, n = y[0], y[1], y[2], y[3]
    a_m, b_m, a_h, b_h, a_n, b_n = _rates(V)
    out = np.empty(4)
    I_ion = (p[1] * m ** 3 * h * (V - p[4])
             + p[2] * n ** 4 * (V - p[5])
             + p[3] * (V - p[6]))
    out[0] = (I_ext - I_ion) / p[0]
    out[1] = a_m * (1.0 - m) - b_m * m
    out[2] = a_h * (1.0 - h) - b_h * h
    out[3] = a_n * (1.0 - n) - b_n * n
    return out


@njit(cache=True)
def rk4_substeps(y0, dt, n_steps, I_ext, p):
    """
    Run n_steps RK4 sub-steps of size dt from y0 = [V, m, h, n].

    Gates are clipped to [0, 1] after every sub-step. Returns a new array.
    """
    y = y0.copy()
    for _ in range(n_steps):
        k1 = _derivs(y, I_ext, p)
        k2 = _derivs(y + 0.5 * dt * k1, I_ext, p)
        k3 = _derivs(y + 0.5 * dt * k2, I_ext, p)
        k4 = _derivs(y + dt * k3, I_ext, p)
        y = y + (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
        for i in range(1, 4):
            if y[i] < 0.0:
                y[i] = 0.0
            elif y[i] > 1.0:
                y[i] = 1.0
    return y


def pack_params(params) -> np.ndarray:
    """Flatten HHParameters into the array layout the kernel expects."""
    return np.array([params.C_m, params.g_Na, params.g_K, params.g_L,
                     params.E_Na, params.E_K, params.E_L], dtype=np.float64)
