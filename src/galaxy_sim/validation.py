"""
Input validation utilities for the galaxy simulation.

Provides centralized validation functions for configuration values and
particle lists. Raises descriptive exceptions on invalid input, before the
step loop begins.
"""

from __future__ import annotations

import math
from typing import Any, Sequence


class ValidationError(ValueError):
    """Base exception for simulation validation errors."""

    pass


class InvalidConfigError(ValidationError):
    """Raised when a configuration parameter is out of range."""

    pass


class InvalidParticleError(ValidationError):
    """Raised when a particle is malformed."""

    pass


def validate_positive(name: str, value: float) -> float:
    """
    Validate that a real parameter is finite and strictly positive.

    Args:
        name: Parameter name used in the error message
        value: Value to check

    Returns:
        The value as float

    Raises:
        InvalidConfigError: If value is not finite or <= 0
    """
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        raise InvalidConfigError(f"{name} must be positive, got {value}")
    return value


def validate_non_negative(name: str, value: float) -> float:
    """
    Validate that a real parameter is finite and >= 0.

    Raises:
        InvalidConfigError: If value is not finite or < 0
    """
    value = float(value)
    if not math.isfinite(value) or value < 0:
        raise InvalidConfigError(f"{name} must be non-negative, got {value}")
    return value


def validate_count(name: str, value: int) -> int:
    """
    Validate that an integer count is >= 1.

    Raises:
        InvalidConfigError: If value is not an integer or < 1
    """
    if isinstance(value, bool) or int(value) != value:
        raise InvalidConfigError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise InvalidConfigError(f"{name} must be >= 1, got {value}")
    return int(value)


def validate_steps(steps: int) -> int:
    """Validate the total step count."""
    return validate_count("steps", steps)


def validate_particles(
    particles: Sequence[Any],
    strict: bool = True,
) -> list[tuple[int, str]]:
    """
    Validate particle masses and coordinates.

    Args:
        particles: Sequence of Particle objects
        strict: If True, raises on invalid. If False, returns list of issues.

    Returns:
        List of (particle_index, issue_description) tuples

    Raises:
        InvalidParticleError: If strict=True and any particle has a
            non-positive mass or a non-finite coordinate
    """
    issues: list[tuple[int, str]] = []

    for i, p in enumerate(particles):
        if not p.mass > 0:
            issues.append((i, f"Particle {i}: mass must be positive, got {p.mass}"))
        if not all(math.isfinite(v) for v in (p.x, p.y, p.vx, p.vy)):
            issues.append((i, f"Particle {i}: position and velocity must be finite"))

    if strict and issues:
        msg = "Invalid particles:\n" + "\n".join(issue[1] for issue in issues)
        raise InvalidParticleError(msg)

    return issues


__all__ = [
    "ValidationError",
    "InvalidConfigError",
    "InvalidParticleError",
    "validate_positive",
    "validate_non_negative",
    "validate_count",
    "validate_steps",
    "validate_particles",
]
