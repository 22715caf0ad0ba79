"""
galaxy-sim: Barnes-Hut gravitational n-body simulation in Python.

This package simulates a set of point masses in 2D, using a quadtree to
approximate gravity in O(n log n) per step.

Components:
- spatial: Quadtree with incremental mass / center-of-mass aggregation
- simulation: Step loop (build tree, evaluate forces, semi-implicit Euler)
- initial: Rotating disk initial conditions
- export: Raster snapshots of particle positions
- metrics: Mass, momentum and energy diagnostics
"""

__version__ = "0.1.0"

# Base class for step-driven simulations
from .base import IterativeSimulation

# Configuration
from .config import SimulationConfig

# Snapshot export
from .export import SnapshotWriter, rasterize, save_snapshot, snapshot_path

# Initial conditions
from .initial import sample_disk

# Diagnostics
from .metrics import (
    center_of_mass,
    kinetic_energy,
    potential_energy,
    simulation_summary,
    total_mass,
    total_momentum,
)

# Simulation
from .simulation import GalaxySimulation, direct_forces

# Spatial data structures
from .spatial import BoundingBox, NodeState, QuadTree, QuadTreeNode
from .types import (
    Event,
    EventType,
    Particle,
    ParticleLike,
    SnapshotCallback,
)

# Validation
from .validation import (
    InvalidConfigError,
    InvalidParticleError,
    ValidationError,
)

__all__ = [
    # Version
    "__version__",
    # Types
    "Event",
    "EventType",
    "Particle",
    "ParticleLike",
    "SnapshotCallback",
    # Configuration
    "SimulationConfig",
    # Base class
    "IterativeSimulation",
    # Simulation
    "GalaxySimulation",
    "direct_forces",
    # Spatial
    "BoundingBox",
    "NodeState",
    "QuadTree",
    "QuadTreeNode",
    # Initial conditions
    "sample_disk",
    # Export
    "rasterize",
    "snapshot_path",
    "save_snapshot",
    "SnapshotWriter",
    # Metrics
    "total_mass",
    "center_of_mass",
    "total_momentum",
    "kinetic_energy",
    "potential_energy",
    "simulation_summary",
    # Validation
    "ValidationError",
    "InvalidConfigError",
    "InvalidParticleError",
]
