"""
Export functionality for simulation snapshots.

This module renders particle positions to raster images:
- rasterize: particles -> uint8 array
- save_snapshot: write one PNG under a step-indexed name
- SnapshotWriter: callable hook for GalaxySimulation(snapshot=...)

Example usage:
    from galaxy_sim import GalaxySimulation, SimulationConfig
    from galaxy_sim.export import SnapshotWriter

    config = SimulationConfig(particle_count=300, steps=200, seed=7)
    sim = GalaxySimulation.from_config(config, snapshot=SnapshotWriter.from_config(config))
    sim.run()
"""

from .snapshot import SnapshotWriter, rasterize, save_snapshot, snapshot_path

__all__ = [
    "rasterize",
    "snapshot_path",
    "save_snapshot",
    "SnapshotWriter",
]
