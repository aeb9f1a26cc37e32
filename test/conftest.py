"""
Pytest fixtures and configuration for the axon model tests.
"""

import pytest
import numpy as np

from membrane_core import HodgkinHuxleyIntegrator, MembraneState
from axon_model import NeuronConfig, NeuronModel, AxonMembrane, ParticleLifecycleManager


class ScriptedMembrane:
    """
    Stand-in for HodgkinHuxleyIntegrator whose gating products are set by
    the test instead of integrated.
    """

    def __init__(self, m3h=0.0, n4=0.0, l_current=0.0, voltage=-0.065):
        self.m3h = m3h
        self.n4 = n4
        self.l_current = l_current
        self.voltage = voltage
        self.stimulus_count = 0

    def step(self, dt):
        pass

    def reset(self):
        self.m3h = 0.0
        self.n4 = 0.0

    def stimulate(self):
        self.stimulus_count += 1
        return True

    def is_at_rest(self):
        return True

    def get_delayed_m3h(self, delay):
        return self.m3h

    def get_delayed_n4(self, delay):
        return self.n4

    def get_resting_m3h(self):
        return 0.0

    def get_resting_n4(self):
        return 0.0

    def get_l_current(self):
        return self.l_current

    def get_l_current_from_rest(self):
        return self.l_current

    def get_membrane_voltage(self):
        return self.voltage

    def get_state(self):
        return MembraneState(self.voltage, 0.0, 0.0, 0.0, 0.0, float('inf'), (120.0, 36.0, 0.3))

    def set_state(self, state):
        self.voltage = state.membrane_voltage


@pytest.fixture
def small_config():
    """Fixture providing a seeded config with few decorative particles."""
    return NeuronConfig(num_background_particles_per_type=5,
                        num_free_particles_per_side=5,
                        seed=1234)


@pytest.fixture
def rng():
    """Fixture providing a seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def hh_model():
    """Fixture providing a resting Hodgkin-Huxley integrator."""
    return HodgkinHuxleyIntegrator()


@pytest.fixture
def scripted_membrane():
    """Fixture providing a membrane with scripted gating products."""
    return ScriptedMembrane()


@pytest.fixture
def scripted_membrane_factory():
    """Fixture providing the scripted membrane class for tests needing several."""
    return ScriptedMembrane


@pytest.fixture
def neuron_model(small_config):
    """Fixture providing a full axon model at rest."""
    return NeuronModel(small_config)


@pytest.fixture
def axon_membrane(small_config):
    return AxonMembrane(small_config.cross_section_diameter, small_config.membrane_thickness)


@pytest.fixture
def particle_manager(small_config, axon_membrane, rng):
    """Fixture providing a lifecycle manager with no particles yet."""
    return ParticleLifecycleManager(small_config, axon_membrane, rng)


@pytest.fixture(params=['euler', 'rk4', 'rk4rl'])
def all_integrators(request):
    """Fixture providing an HH integrator for each built-in method."""
    return HodgkinHuxleyIntegrator(integrator=request.param, max_substep=0.005)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "physiological: mark test as checking physiological behavior"
    )
    config.addinivalue_line(
        "markers", "numerical: mark test as checking numerical properties"
    )
    config.addinivalue_line(
        "markers", "playback: mark test as checking record and playback"
    )
    config.addinivalue_line(
        "markers", "transport: mark test as checking ion capture and transport"
    )
    config.addinivalue_line(
        "markers", "scipy: mark test as requiring scipy"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
