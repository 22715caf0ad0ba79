"""
Initial conditions for the galaxy simulation.

Samples a rotating disk: positions are uniform over the disk area and every
particle gets the tangential speed of an approximately circular orbit.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from .types import Particle
from .validation import validate_count, validate_non_negative, validate_positive


def sample_disk(
    n: int,
    radius: float,
    gravitational_constant: float,
    *,
    mass: float = 1.0,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> list[Particle]:
    """
    Sample n particles on a disk centered at the origin.

    The radius is drawn as sqrt(u) * radius so the surface density is
    uniform. Velocities are perpendicular to the radius (counter-clockwise)
    with speed sqrt(G * M / (r + 1)), M being the total mass of the disk.

    Args:
        n: Number of particles
        radius: Disk radius
        gravitational_constant: G used for the orbital speed
        mass: Mass of every particle
        rng: Random generator. Takes precedence over seed.
        seed: Seed for a new generator when rng is None

    Returns:
        List of n particles

    Raises:
        InvalidConfigError: If n, radius or mass is out of range
    """
    n = validate_count("n", n)
    radius = validate_positive("radius", radius)
    mass = validate_positive("mass", mass)
    gravitational_constant = validate_non_negative(
        "gravitational_constant", gravitational_constant
    )

    if rng is None:
        rng = np.random.default_rng(seed)

    r = np.sqrt(rng.random(n)) * radius
    angle = rng.random(n) * 2 * math.pi
    speed = np.sqrt(gravitational_constant * n * mass / (r + 1))

    cos_a = np.cos(angle)
    sin_a = np.sin(angle)

    return [
        Particle(
            x=float(r[i] * cos_a[i]),
            y=float(r[i] * sin_a[i]),
            vx=float(-sin_a[i] * speed[i]),
            vy=float(cos_a[i] * speed[i]),
            mass=mass,
        )
        for i in range(n)
    ]


__all__ = ["sample_disk"]
