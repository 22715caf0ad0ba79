"""
Barnes-Hut galaxy simulation.

Each step runs a fixed pipeline:
- BUILD: a fresh quadtree is built from the current particle positions
- EVALUATE: the acceleration on every particle is read from the frozen tree
- INTEGRATE: semi-implicit Euler, v += a*dt then x += v*dt, applied to all
  particles only after every acceleration of the step is known
"""

from __future__ import annotations

import logging
import signal
import threading
import warnings
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Sequence

import numpy as np
from joblib import Parallel, delayed

from .base import IterativeSimulation
from .config import SimulationConfig
from .initial import sample_disk
from .metrics import kinetic_energy
from .spatial.quadtree import BoundingBox, QuadTree
from .types import Event, EventType, Particle, ParticleLike, SnapshotCallback

logger = logging.getLogger(__name__)


def _forces_for(tree: QuadTree, particles: Sequence[Particle]) -> list[tuple[float, float]]:
    """Accelerations for a chunk of particles (runs on a worker thread)."""
    return [tree.compute_force(p) for p in particles]


@contextmanager
def _deferred_interrupt(on_interrupt: Callable[[], None]) -> Iterator[None]:
    """
    Route SIGINT to ``on_interrupt`` instead of raising KeyboardInterrupt.

    Signal handlers can only be installed from the main thread; elsewhere
    the block runs with the existing handler.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.signal(signal.SIGINT, lambda signum, frame: on_interrupt())
    try:
        yield
    finally:
        signal.signal(
            signal.SIGINT,
            previous if previous is not None else signal.default_int_handler,
        )


def direct_forces(
    particles: Sequence[Particle],
    gravitational_constant: float,
    softening: float = 1e-5,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Exact O(n^2) accelerations by direct summation.

    Uses the same softened kernel as the tree walk, so with theta = 0 both
    agree to rounding.

    Returns:
        (ax, ay) arrays in particle order
    """
    n = len(particles)
    if n == 0:
        return np.zeros(0), np.zeros(0)

    xs = np.array([p.x for p in particles], dtype=np.float64)
    ys = np.array([p.y for p in particles], dtype=np.float64)
    masses = np.array([p.mass for p in particles], dtype=np.float64)

    # dx[i, j] points from particle i toward particle j
    dx = xs[np.newaxis, :] - xs[:, np.newaxis]
    dy = ys[np.newaxis, :] - ys[:, np.newaxis]
    dist = np.hypot(dx, dy) + softening

    with np.errstate(divide="ignore", invalid="ignore"):
        coeff = gravitational_constant * masses[np.newaxis, :] / (dist * dist * dist)
    np.fill_diagonal(coeff, 0.0)
    coeff[~np.isfinite(coeff)] = 0.0

    return (coeff * dx).sum(axis=1), (coeff * dy).sum(axis=1)


class GalaxySimulation(IterativeSimulation):
    """
    Gravitational n-body simulation driven by a Barnes-Hut quadtree.

    The root region is a square of side ``world_size`` centered at the
    origin. Particles that drift outside it are left out of the tree, so they
    exert no force on anything. They are still evaluated against the tree
    and feel the pull of the particles that remain inside.

    Example:
        sim = GalaxySimulation.from_config(
            SimulationConfig(particle_count=200, steps=100, seed=1),
            snapshot=SnapshotWriter("snapshots"),
        )
        sim.run()

        for p in sim.particles:
            print(p.position)
    """

    def __init__(
        self,
        *,
        particles: Optional[Sequence[ParticleLike]] = None,
        config: Optional[SimulationConfig] = None,
        snapshot: Optional[SnapshotCallback] = None,
        on_start: Optional[Callable[[Optional[Event]], None]] = None,
        on_tick: Optional[Callable[[Optional[Event]], None]] = None,
        on_end: Optional[Callable[[Optional[Event]], None]] = None,
        **overrides: Any,
    ) -> None:
        """
        Initialize the simulation.

        Args:
            particles: Initial particles; the simulation owns and mutates them
            config: Run configuration
            snapshot: Called as snapshot(particles, step) every
                ``snapshot_every`` steps. None disables snapshots.
            on_start: Callback for start event
            on_tick: Callback for tick event
            on_end: Callback for end event
            **overrides: SimulationConfig fields to override
        """
        super().__init__(
            particles=particles,
            config=config,
            on_start=on_start,
            on_tick=on_tick,
            on_end=on_end,
            **overrides,
        )
        self._snapshot: Optional[SnapshotCallback] = snapshot
        self._last_tree: Optional[QuadTree] = None
        self._dropped: int = 0

    @classmethod
    def from_config(
        cls,
        config: SimulationConfig,
        *,
        rng: Optional[np.random.Generator] = None,
        **kwargs: Any,
    ) -> GalaxySimulation:
        """
        Create a simulation whose particles are sampled from a disk.

        Args:
            config: Run configuration (particle_count, disk_radius, seed, ...)
            rng: Random generator; defaults to one seeded with ``config.seed``
            **kwargs: Passed to the constructor (snapshot, callbacks)
        """
        config.validate()
        particles = sample_disk(
            config.particle_count,
            config.disk_radius,
            config.gravitational_constant,
            rng=rng,
            seed=config.seed,
        )
        return cls(particles=particles, config=config, **kwargs)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> Optional[SnapshotCallback]:
        """Get the snapshot hook."""
        return self._snapshot

    @snapshot.setter
    def snapshot(self, value: Optional[SnapshotCallback]) -> None:
        self._snapshot = value

    @property
    def last_tree(self) -> Optional[QuadTree]:
        """Tree built during the most recent step (None before the first)."""
        return self._last_tree

    @property
    def dropped(self) -> int:
        """Particles left out of the tree on the most recent step."""
        return self._dropped

    @property
    def root_bounds(self) -> BoundingBox:
        return BoundingBox(0.0, 0.0, self._config.world_size)

    # -------------------------------------------------------------------------
    # Step pipeline
    # -------------------------------------------------------------------------

    def build_tree(self) -> QuadTree:
        """Build a quadtree over the current particle positions."""
        cfg = self._config
        tree = QuadTree(
            cfg.world_size,
            theta=cfg.theta,
            gravitational_constant=cfg.gravitational_constant,
            softening=cfg.softening,
        )
        for p in self._particles:
            tree.insert(p)
        return tree

    def compute_forces(self, tree: Optional[QuadTree] = None) -> tuple[np.ndarray, np.ndarray]:
        """
        Compute the acceleration on every particle.

        Neither the tree nor any particle is modified, so with ``workers > 1``
        the particles are split into contiguous chunks evaluated on threads.

        Args:
            tree: Tree to query. Built from current positions if None.
                Ignored when ``use_barnes_hut`` is False.

        Returns:
            (ax, ay) arrays in particle order
        """
        cfg = self._config
        particles = self._particles
        n = len(particles)

        if not cfg.use_barnes_hut:
            return direct_forces(particles, cfg.gravitational_constant, cfg.softening)

        if tree is None:
            tree = self.build_tree()

        ax = np.zeros(n, dtype=np.float64)
        ay = np.zeros(n, dtype=np.float64)
        workers = min(cfg.workers, n)

        if workers > 1:
            bounds = np.linspace(0, n, workers + 1, dtype=int)
            chunks = Parallel(n_jobs=workers, prefer="threads")(
                delayed(_forces_for)(tree, particles[start:end])
                for start, end in zip(bounds[:-1], bounds[1:])
            )
            i = 0
            for chunk in chunks:
                for fx, fy in chunk:
                    ax[i] = fx
                    ay[i] = fy
                    i += 1
        else:
            for i, p in enumerate(particles):
                ax[i], ay[i] = tree.compute_force(p)

        return ax, ay

    def integrate(self, ax: np.ndarray, ay: np.ndarray) -> None:
        """
        Semi-implicit Euler update of every particle.

        New states are computed for the whole system before any particle is
        written. If the write-back is interrupted, every particle is restored
        to its state before the call and the exception propagates.
        """
        dt = self._config.dt
        particles = self._particles
        state = np.array(
            [(p.x, p.y, p.vx, p.vy) for p in particles], dtype=np.float64
        ).reshape(-1, 4)

        vx = state[:, 2] + ax * dt
        vy = state[:, 3] + ay * dt
        x = state[:, 0] + vx * dt
        y = state[:, 1] + vy * dt
        updated = np.column_stack((x, y, vx, vy)).tolist()

        try:
            for p, (px, py, pvx, pvy) in zip(particles, updated):
                p.vx, p.vy, p.x, p.y = pvx, pvy, px, py
        except BaseException:
            for p, (px, py, pvx, pvy) in zip(particles, state.tolist()):
                p.x, p.y, p.vx, p.vy = px, py, pvx, pvy
            raise

    def tick(self) -> bool:
        """
        Perform one simulation step.

        Returns:
            True once the configured number of steps has been completed.
        """
        cfg = self._config
        if self._step >= cfg.steps:
            return True

        tree: Optional[QuadTree] = None
        if cfg.use_barnes_hut:
            tree = self.build_tree()
            self._last_tree = tree
            self._dropped = tree.dropped_count
            logger.debug(
                "step %d: tree built, %d stored, %d dropped",
                self._step,
                tree.particle_count,
                tree.dropped_count,
            )

        ax, ay = self.compute_forces(tree)
        self.integrate(ax, ay)

        step = self._step
        if step % cfg.snapshot_every == 0:
            logger.info("Step %d/%d", step, cfg.steps)
            if self._snapshot is not None:
                self._snapshot(self._particles, step)

        self._step += 1
        self.trigger(
            {
                "type": EventType.tick,
                "step": self._step,
                "steps": cfg.steps,
                "kinetic_energy": kinetic_energy(self._particles),
            }
        )

        return self._step >= cfg.steps

    def run(self, **overrides: Any) -> GalaxySimulation:
        """
        Run the step loop from step 0.

        Stops after ``steps`` steps, when stop() is called from a callback,
        or on interrupt. While the loop runs on the main thread, SIGINT only
        requests a stop; the current step completes and KeyboardInterrupt is
        raised after the end event. A KeyboardInterrupt raised inside a step
        rolls the particles back to the start of that step.

        Args:
            **overrides: SimulationConfig fields to change before running

        Returns:
            self for chaining

        Raises:
            TypeError: If an override names no configuration field.
            InvalidConfigError: If the configuration is invalid.
            InvalidParticleError: If any particle is malformed.
        """
        if overrides:
            self._config = self._config.replace(**overrides)
        self.validate()
        cfg = self._config

        if cfg.use_barnes_hut:
            root = self.root_bounds
            outside = sum(1 for p in self._particles if not root.contains(p.x, p.y))
            if outside:
                warnings.warn(
                    f"{outside} particle(s) lie outside the root region "
                    f"(size {cfg.world_size}) and exert no force",
                    stacklevel=2,
                )

        self._step = 0
        self._running = True
        logger.info(
            "Starting simulation: %d particles, %d steps, dt=%g, theta=%g",
            len(self._particles),
            cfg.steps,
            cfg.dt,
            cfg.theta,
        )
        self.trigger({"type": EventType.start, "step": 0, "steps": cfg.steps})

        interrupted = False

        def request_stop() -> None:
            nonlocal interrupted
            interrupted = True
            self.stop()

        try:
            with _deferred_interrupt(request_stop):
                self.kick()
            if interrupted:
                raise KeyboardInterrupt
        except KeyboardInterrupt:
            logger.warning("Interrupted after %d/%d steps", self._step, cfg.steps)
            raise
        finally:
            self._running = False
            self.trigger({"type": EventType.end, "step": self._step, "steps": cfg.steps})

        logger.info("Finished %d/%d steps", self._step, cfg.steps)
        return self


__all__ = ["GalaxySimulation", "direct_forces"]
