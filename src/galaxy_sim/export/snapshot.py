"""
Raster snapshots of particle positions.

Particles are drawn as single white pixels on a black square image. World
coordinates are scaled so the root region fills the image, with the origin
at the image center.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence, Union

import numpy as np
from matplotlib import image as mpimg

if TYPE_CHECKING:
    from ..config import SimulationConfig
    from ..types import Particle

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def rasterize(
    particles: Sequence[Particle],
    image_size: int = 800,
    world_size: float = 4000.0,
) -> np.ndarray:
    """
    Render particle positions into a grayscale raster.

    Pixel column is int(size/2 + x * size/world_size), row likewise from y.
    Particles landing outside the image are skipped.

    Args:
        particles: Particles to draw
        image_size: Image side length in pixels
        world_size: World-space side length mapped onto the image

    Returns:
        uint8 array of shape (image_size, image_size), 255 where a particle is
    """
    image = np.zeros((image_size, image_size), dtype=np.uint8)
    if not particles:
        return image

    scale = image_size / world_size
    half = image_size / 2
    xs = np.array([p.x for p in particles], dtype=np.float64)
    ys = np.array([p.y for p in particles], dtype=np.float64)

    # Truncate toward zero, matching an int() cast
    px = np.trunc(half + xs * scale)
    py = np.trunc(half + ys * scale)
    inside = (px >= 0) & (py >= 0) & (px < image_size) & (py < image_size)

    image[py[inside].astype(np.intp), px[inside].astype(np.intp)] = 255
    return image


def snapshot_path(directory: PathLike, step: int) -> Path:
    """File name for a step, e.g. snapshots/snap_0040.png."""
    return Path(directory) / f"snap_{step:04d}.png"


def save_snapshot(
    particles: Sequence[Particle],
    step: int,
    directory: PathLike = "snapshots",
    image_size: int = 800,
    world_size: float = 4000.0,
) -> Path:
    """
    Rasterize particles and write the image as PNG.

    The directory is created if needed. Write errors propagate.

    Returns:
        Path of the written file
    """
    path = snapshot_path(directory, step)
    path.parent.mkdir(parents=True, exist_ok=True)
    image = rasterize(particles, image_size, world_size)
    mpimg.imsave(path, image, cmap="gray", vmin=0, vmax=255, format="png")
    logger.debug("wrote snapshot %s", path)
    return path


class SnapshotWriter:
    """
    Snapshot hook writing one PNG per call.

    Instances are callables with the (particles, step) signature expected by
    GalaxySimulation.

    Example:
        writer = SnapshotWriter("snapshots", image_size=800, world_size=4000.0)
        sim = GalaxySimulation(particles=particles, snapshot=writer)
        sim.run()
        print(writer.written[-1])
    """

    def __init__(
        self,
        directory: PathLike = "snapshots",
        image_size: int = 800,
        world_size: float = 4000.0,
    ) -> None:
        self.directory = Path(directory)
        self.image_size = int(image_size)
        self.world_size = float(world_size)
        self.written: list[Path] = []

    @classmethod
    def from_config(
        cls, config: SimulationConfig, directory: Optional[PathLike] = None
    ) -> SnapshotWriter:
        """Writer matching a configuration's image size, world size and output dir."""
        return cls(
            directory if directory is not None else config.output_dir,
            image_size=config.image_size,
            world_size=config.world_size,
        )

    def __call__(self, particles: Sequence[Particle], step: int) -> None:
        path = save_snapshot(
            particles,
            step,
            directory=self.directory,
            image_size=self.image_size,
            world_size=self.world_size,
        )
        self.written.append(path)

    def __repr__(self) -> str:
        return f"SnapshotWriter(directory={str(self.directory)!r}, image_size={self.image_size})"


__all__ = ["rasterize", "snapshot_path", "save_snapshot", "SnapshotWriter"]
