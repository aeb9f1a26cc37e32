"""
Example: Basic axon cross-section simulation

This script stimulates the axon, records the resulting action potential,
plays the recording back and plots the membrane potential, the ion
concentrations and a snapshot of the cross-section.
"""

import os

import numpy as np
import matplotlib.pyplot as plt

from axon_model import MembranePotentialDataSeries, ParticleType
from axon_model.particles import PARTICLE_COLORS
from simulator import Simulator


def basic_demo():
    """Run a stimulated axon and plot what happens."""

    print("=" * 60)
    print("Axon Cross-Section Simulation - Basic Demo")
    print("=" * 60)
    print()

    model = Simulator(backend='numpy', integrator='rk4', seed=7)
    dt = model.config.default_clock_dt
    T = 0.030  # s of simulated time
    n_frames = int(np.ceil(T / dt))

    print(f"Simulated duration: {T * 1000:.1f} ms")
    print(f"Frame length: {dt * 1e6:.2f} µs ({n_frames} frames)")
    print(f"Channels: {len(model.channels)}")
    print()

    params = model.hh_model.params
    print("Membrane parameters:")
    print(f"  C_m = {params.C_m} µF/cm²")
    print(f"  g_Na = {params.g_Na} mS/cm²")
    print(f"  g_K = {params.g_K} mS/cm²")
    print(f"  g_L = {params.g_L} mS/cm²")
    print()

    series = MembranePotentialDataSeries(time_span=model.config.time_span)
    model.start_recording()
    model.stimulate()

    print("Running simulation...")
    times = np.zeros(n_frames)
    concentrations = np.zeros((n_frames, 4))
    for i in range(n_frames):
        model.step(dt)
        series.add_sample(model.get_time(), model.get_membrane_potential())
        times[i] = model.get_time() * 1000.0
        concentrations[i] = (model.get_sodium_interior_concentration(),
                             model.get_sodium_exterior_concentration(),
                             model.get_potassium_interior_concentration(),
                             model.get_potassium_exterior_concentration())
    print("Simulation complete!")
    print()

    x, v = series.to_arrays()
    print("Voltage statistics:")
    print(f"  Min: {v.min():.2f} mV")
    print(f"  Max: {v.max():.2f} mV")
    print(f"  Final: {model.get_membrane_potential() * 1000:.2f} mV")
    print(f"  Recorded points: {model.get_num_recorded_points()}")
    print(f"  Transient particles: {len(model.get_transient_particles())}")
    print()

    print("Concentration change over the run (mM):")
    labels = ['Na interior', 'Na exterior', 'K interior', 'K exterior']
    for label, delta in zip(labels, concentrations[-1] - concentrations[0]):
        print(f"  {label}: {delta:+.3f}")
    print()

    # Play the recording back and compare
    print("Playing back the recording...")
    model.set_playback(1.0)
    model.rewind()
    replayed = []
    while model.get_time() < model.get_max_recorded_time():
        model.step(dt)
        replayed.append(model.get_membrane_potential() * 1000.0)
    print(f"  Replayed {len(replayed)} frames, peak {max(replayed):.2f} mV")
    print()

    print("Generating plots...")
    os.makedirs('plots', exist_ok=True)
    fig, axes = plt.subplots(2, 1, figsize=(12, 8), sharex=True)
    axes[0].plot(x, v, 'b-', linewidth=1.5)
    axes[0].set_ylabel('Membrane potential (mV)')
    axes[0].set_title('Membrane Potential and Ion Concentrations')
    axes[0].grid(True, alpha=0.3)

    for j, label in enumerate(labels):
        axes[1].plot(times, concentrations[:, j] - concentrations[0, j], label=label)
    axes[1].set_xlabel('Time (ms)')
    axes[1].set_ylabel('Change (mM)')
    axes[1].grid(True, alpha=0.3)
    axes[1].legend()

    plt.savefig('plots/axon_simulation_basic.png', dpi=150, bbox_inches='tight')
    print("Plot saved as: axon_simulation_basic.png")
    print()

    print("Demo complete!")
    return model


def cross_section_demo(model):
    """Draw the membrane, channels and particles at the last shown instant."""

    print()
    print("=" * 60)
    print("Cross-Section Snapshot")
    print("=" * 60)
    print()

    fig, ax = plt.subplots(figsize=(8, 8))
    membrane = model.axon_membrane
    theta = np.linspace(0, 2 * np.pi, 400)
    for r in (membrane.inner_radius, membrane.outer_radius):
        ax.plot(r * np.cos(theta), r * np.sin(theta), 'k-', linewidth=0.8)

    for channel in model.channels:
        cx, cy = channel.center_location
        ax.plot(cx, cy, 's', markersize=4,
                color=plt.cm.viridis(channel.openness), alpha=0.9)

    particles = list(model.get_background_particles())
    particles += list(model.get_transient_particles()) or list(model.get_playback_particles())
    for particle_type in ParticleType:
        pts = np.array([p.position for p in particles if p.particle_type is particle_type])
        if len(pts):
            ax.scatter(pts[:, 0], pts[:, 1], s=4, color=np.array(PARTICLE_COLORS[particle_type]) / 255.0,
                       label=particle_type.value)

    ax.set_aspect('equal')
    ax.set_xlabel('x (nm)')
    ax.set_ylabel('y (nm)')
    ax.set_title('Axon Cross-Section')
    ax.legend()

    plt.savefig('plots/axon_cross_section.png', dpi=150, bbox_inches='tight')
    print("Plot saved as: axon_cross_section.png")
    print()


if __name__ == "__main__":
    model = basic_demo()
    cross_section_demo(model)

    print()
    print("All demos complete!")
    print("Close the plot windows to exit.")
    plt.show()
