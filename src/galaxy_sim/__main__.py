"""
Run a galaxy simulation from the command line.

Usage:
    python -m galaxy_sim [options]

Examples:
    python -m galaxy_sim
    python -m galaxy_sim --particles 2000 --steps 1000 --seed 42
    python -m galaxy_sim --theta 0.8 --workers 4 --output-dir build/snapshots
    python -m galaxy_sim --steps 50 --no-snapshots -v
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from .config import SimulationConfig
from .export import SnapshotWriter
from .metrics import simulation_summary
from .simulation import GalaxySimulation
from .validation import ValidationError

logger = logging.getLogger("galaxy_sim")


def build_parser() -> argparse.ArgumentParser:
    """Command-line options, one per configuration field."""
    defaults = SimulationConfig()
    parser = argparse.ArgumentParser(
        prog="galaxy-sim",
        description="Barnes-Hut simulation of a rotating disk of particles",
    )
    parser.add_argument("--particles", type=int, default=defaults.particle_count,
                        help="number of particles (default: %(default)s)")
    parser.add_argument("--disk-radius", type=float, default=defaults.disk_radius,
                        help="radius of the initial disk (default: %(default)s)")
    parser.add_argument("--world-size", type=float, default=defaults.world_size,
                        help="side length of the root region (default: %(default)s)")
    parser.add_argument("--theta", type=float, default=defaults.theta,
                        help="Barnes-Hut acceptance threshold (default: %(default)s)")
    parser.add_argument("-G", "--gravitational-constant", type=float,
                        default=defaults.gravitational_constant,
                        help="gravitational constant (default: %(default)s)")
    parser.add_argument("--dt", type=float, default=defaults.dt,
                        help="time step (default: %(default)s)")
    parser.add_argument("--steps", type=int, default=defaults.steps,
                        help="number of steps (default: %(default)s)")
    parser.add_argument("--snapshot-every", type=int, default=defaults.snapshot_every,
                        help="steps between snapshots (default: %(default)s)")
    parser.add_argument("--softening", type=float, default=defaults.softening,
                        help="softening length (default: %(default)s)")
    parser.add_argument("--image-size", type=int, default=defaults.image_size,
                        help="snapshot size in pixels (default: %(default)s)")
    parser.add_argument("--output-dir", default=str(defaults.output_dir),
                        help="snapshot directory (default: %(default)s)")
    parser.add_argument("--seed", type=int, default=None,
                        help="random seed for the initial disk")
    parser.add_argument("--workers", type=int, default=defaults.workers,
                        help="threads for force evaluation (default: %(default)s)")
    parser.add_argument("--direct", action="store_true",
                        help="use exact O(n^2) summation instead of the quadtree")
    parser.add_argument("--no-snapshots", action="store_true",
                        help="do not write snapshot images")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="enable debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> SimulationConfig:
    """Build and validate a configuration from parsed options."""
    return SimulationConfig(
        particle_count=args.particles,
        disk_radius=args.disk_radius,
        world_size=args.world_size,
        theta=args.theta,
        gravitational_constant=args.gravitational_constant,
        dt=args.dt,
        steps=args.steps,
        snapshot_every=args.snapshot_every,
        softening=args.softening,
        image_size=args.image_size,
        output_dir=args.output_dir,
        seed=args.seed,
        workers=args.workers,
        use_barnes_hut=not args.direct,
    ).validate()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
    except ValidationError as e:
        parser.error(str(e))

    snapshot = None if args.no_snapshots else SnapshotWriter.from_config(config)
    sim = GalaxySimulation.from_config(config, snapshot=snapshot)

    try:
        sim.run()
    except KeyboardInterrupt:
        logger.warning("Stopped at step %d", sim.step)
        return 130

    summary = simulation_summary(sim.particles, config.gravitational_constant, config.softening)
    logger.info(
        "Kinetic energy %.6g, potential energy %.6g, total %.6g",
        summary["kinetic_energy"],
        summary["potential_energy"],
        summary["total_energy"],
    )
    if snapshot is not None:
        logger.info("Wrote %d snapshots to %s", len(snapshot.written), snapshot.directory)
    return 0


if __name__ == "__main__":
    sys.exit(main())
