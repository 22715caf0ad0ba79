"""
Run configuration for the galaxy simulation.

All parameters consumed by the step loop live in one dataclass so they can
be validated together before any work is done.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from .validation import (
    validate_count,
    validate_non_negative,
    validate_positive,
    validate_steps,
)


@dataclass
class SimulationConfig:
    """
    Parameters of a simulation run.

    Attributes:
        particle_count: Number of particles sampled for the initial disk
        disk_radius: Radius of the initial disk
        world_size: Side length of the square root region, centered at the origin
        theta: Barnes-Hut acceptance threshold (0 = exact, 0.5 = balanced)
        gravitational_constant: G
        dt: Time step
        steps: Total number of steps
        snapshot_every: Snapshot cadence in steps
        softening: Distance added to every separation
        image_size: Snapshot raster side length in pixels
        output_dir: Snapshot directory
        seed: Seed for the initial-condition sampler (None = nondeterministic)
        workers: Threads used for force evaluation
        use_barnes_hut: Use the quadtree; False selects direct summation
    """

    particle_count: int = 500
    disk_radius: float = 1000.0
    world_size: float = 4000.0
    theta: float = 0.5
    gravitational_constant: float = 0.1
    dt: float = 0.1
    steps: int = 5000
    snapshot_every: int = 10
    softening: float = 1e-5
    image_size: int = 800
    output_dir: Union[str, Path] = "snapshots"
    seed: Optional[int] = None
    workers: int = 1
    use_barnes_hut: bool = True

    def validate(self) -> SimulationConfig:
        """
        Check every parameter.

        Returns:
            self (for chaining)

        Raises:
            InvalidConfigError: If any parameter is out of range.
        """
        self.particle_count = validate_count("particle_count", self.particle_count)
        self.disk_radius = validate_positive("disk_radius", self.disk_radius)
        self.world_size = validate_positive("world_size", self.world_size)
        self.theta = validate_non_negative("theta", self.theta)
        self.gravitational_constant = validate_non_negative(
            "gravitational_constant", self.gravitational_constant
        )
        self.dt = validate_positive("dt", self.dt)
        self.steps = validate_steps(self.steps)
        self.snapshot_every = validate_count("snapshot_every", self.snapshot_every)
        self.softening = validate_non_negative("softening", self.softening)
        self.image_size = validate_count("image_size", self.image_size)
        self.workers = validate_count("workers", self.workers)
        return self

    def replace(self, **changes: Any) -> SimulationConfig:
        """Return a validated copy with some fields changed."""
        return dataclasses.replace(self, **changes).validate()

    def to_dict(self) -> dict[str, Any]:
        """Plain dict of all fields."""
        data = dataclasses.asdict(self)
        data["output_dir"] = str(self.output_dir)
        return data


__all__ = ["SimulationConfig"]
