"""
Diagnostics for simulation state.

Cheap summaries used for logging and for checking a run: conserved-ish
quantities (mass, momentum, energy) and the system's center of mass.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .types import Particle


def total_mass(particles: Sequence[Particle]) -> float:
    """Sum of particle masses."""
    return math.fsum(p.mass for p in particles)


def center_of_mass(particles: Sequence[Particle]) -> tuple[float, float]:
    """
    Mass-weighted mean position.

    Returns:
        (x, y), or (0.0, 0.0) for an empty or massless system
    """
    mass = total_mass(particles)
    if mass == 0:
        return 0.0, 0.0
    x = math.fsum(p.x * p.mass for p in particles) / mass
    y = math.fsum(p.y * p.mass for p in particles) / mass
    return x, y


def total_momentum(particles: Sequence[Particle]) -> tuple[float, float]:
    """Sum of m * v."""
    px = math.fsum(p.vx * p.mass for p in particles)
    py = math.fsum(p.vy * p.mass for p in particles)
    return px, py


def kinetic_energy(particles: Sequence[Particle]) -> float:
    """Sum of m * |v|^2 / 2."""
    return 0.5 * math.fsum(p.mass * (p.vx * p.vx + p.vy * p.vy) for p in particles)


def potential_energy(
    particles: Sequence[Particle],
    gravitational_constant: float,
    softening: float = 1e-5,
) -> float:
    """
    Gravitational potential energy by direct summation.

    -G * m_i * m_j / (d_ij + softening) over unordered pairs. O(n^2) memory.
    """
    n = len(particles)
    if n < 2:
        return 0.0

    xs = np.array([p.x for p in particles], dtype=np.float64)
    ys = np.array([p.y for p in particles], dtype=np.float64)
    masses = np.array([p.mass for p in particles], dtype=np.float64)

    i, j = np.triu_indices(n, k=1)
    dist = np.hypot(xs[i] - xs[j], ys[i] - ys[j]) + softening
    with np.errstate(divide="ignore"):
        terms = masses[i] * masses[j] / dist
    terms[~np.isfinite(terms)] = 0.0
    return float(-gravitational_constant * terms.sum())


def simulation_summary(
    particles: Sequence[Particle],
    gravitational_constant: float,
    softening: float = 1e-5,
) -> dict[str, float]:
    """
    Compute the standard diagnostics in one call.

    Returns:
        Dictionary with mass, center of mass, momentum and energies
    """
    cx, cy = center_of_mass(particles)
    px, py = total_momentum(particles)
    ke = kinetic_energy(particles)
    pe = potential_energy(particles, gravitational_constant, softening)
    return {
        "particle_count": float(len(particles)),
        "total_mass": total_mass(particles),
        "center_of_mass_x": cx,
        "center_of_mass_y": cy,
        "momentum_x": px,
        "momentum_y": py,
        "kinetic_energy": ke,
        "potential_energy": pe,
        "total_energy": ke + pe,
    }


__all__ = [
    "total_mass",
    "center_of_mass",
    "total_momentum",
    "kinetic_energy",
    "potential_energy",
    "simulation_summary",
]
