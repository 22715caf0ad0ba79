"""
Common types for the galaxy simulation.

This module provides the fundamental types used across the package:
- Particle: point mass with position, velocity and mass
- EventType: Simulation lifecycle events
- Event: Event payload for callbacks
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Callable, Optional, Sequence, TypedDict, Union


class EventType(IntEnum):
    """
    Simulation lifecycle events.

    - start: The step loop has begun
    - tick: Fired once per completed step
    - end: The step loop finished or was stopped
    """

    start = 0
    tick = 1
    end = 2


class Event(TypedDict, total=False):
    """Event payload passed to event listeners."""

    type: EventType
    step: int
    steps: int
    kinetic_energy: Optional[float]


class Particle:
    """
    Point mass tracked by the simulation.

    Attributes:
        x, y: Position
        vx, vy: Velocity
        mass: Mass (positive)
        is_star: Marker carried with the particle, not used by the dynamics
    """

    __slots__ = ("x", "y", "vx", "vy", "mass", "is_star")

    def __init__(
        self,
        x: float = 0.0,
        y: float = 0.0,
        vx: float = 0.0,
        vy: float = 0.0,
        mass: float = 1.0,
        is_star: bool = False,
    ) -> None:
        self.x = float(x)
        self.y = float(y)
        self.vx = float(vx)
        self.vy = float(vy)
        self.mass = float(mass)
        self.is_star = bool(is_star)

    @property
    def position(self) -> tuple[float, float]:
        """Position as an (x, y) tuple."""
        return (self.x, self.y)

    @position.setter
    def position(self, value: Sequence[float]) -> None:
        self.x, self.y = float(value[0]), float(value[1])

    @property
    def velocity(self) -> tuple[float, float]:
        """Velocity as a (vx, vy) tuple."""
        return (self.vx, self.vy)

    @velocity.setter
    def velocity(self, value: Sequence[float]) -> None:
        self.vx, self.vy = float(value[0]), float(value[1])

    def copy(self) -> Particle:
        """Return an independent copy of this particle."""
        return Particle(self.x, self.y, self.vx, self.vy, self.mass, self.is_star)

    def __repr__(self) -> str:
        return (
            f"Particle(x={self.x:.2f}, y={self.y:.2f}, "
            f"vx={self.vx:.3f}, vy={self.vy:.3f}, mass={self.mass:g})"
        )


# Snapshot hook: called with the particle list and the step index
SnapshotCallback = Callable[[Sequence[Particle], int], None]

ParticleLike = Union[Particle, dict[str, Any]]
"""Input type for particles: Particle objects or dicts of Particle fields."""


__all__ = [
    "EventType",
    "Event",
    "Particle",
    "ParticleLike",
    "SnapshotCallback",
]
