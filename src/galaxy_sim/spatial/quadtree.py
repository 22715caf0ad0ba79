"""
Quadtree implementation for Barnes-Hut gravity approximation.

The quadtree recursively subdivides 2D space into quadrants and keeps the
total mass and center of mass of every subtree up to date as particles are
inserted, enabling O(n log n) approximate n-body force calculations.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, List, Optional, Sequence, Tuple

from ..types import Particle

DEFAULT_SOFTENING = 1e-5

# Below this depth the region is smaller than float resolution allows us to
# split meaningfully; coincident particles share one leaf instead.
MAX_DEPTH = 48


class NodeState(IntEnum):
    """What a quadtree node currently holds."""

    EMPTY = 0
    LEAF = 1
    INTERNAL = 2


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned square region.

    Attributes:
        center_x, center_y: Center of the square
        size: Full side length
    """

    center_x: float
    center_y: float
    size: float

    @property
    def half_size(self) -> float:
        return self.size / 2

    def contains(self, x: float, y: float) -> bool:
        """Check if point (x, y) is within this region (boundary included)."""
        half = self.size / 2
        return abs(x - self.center_x) <= half and abs(y - self.center_y) <= half

    def quadrant(self, index: int) -> BoundingBox:
        """
        Get the child region for a quadrant index.

        Returns:
            Box of half the size for 0=bottom-left, 1=bottom-right,
            2=top-left, 3=top-right
        """
        quarter = self.size / 4
        cx = self.center_x + (quarter if index & 1 else -quarter)
        cy = self.center_y + (quarter if index & 2 else -quarter)
        return BoundingBox(cx, cy, self.size / 2)

    def nearest_quadrant(self, x: float, y: float) -> int:
        """Quadrant index chosen by comparing against the center."""
        east = x >= self.center_x
        north = y >= self.center_y
        return (2 if north else 0) + (1 if east else 0)


@dataclass
class QuadTreeNode:
    """
    A node in the quadtree.

    Attributes:
        bounds: Region covered by this node
        depth: Distance from the root
        state: EMPTY, LEAF (holds particle) or INTERNAL (holds four children)
        mass: Total mass of particles in this subtree
        center_of_mass_x/y: Center of mass of particles in this subtree
        particle: Single particle if this is a leaf
        shared: Further particles coincident with `particle` at MAX_DEPTH
        children: Four child quadrants [BL, BR, TL, TR] if internal
    """

    bounds: BoundingBox
    depth: int = 0
    state: NodeState = NodeState.EMPTY

    # Aggregated properties
    mass: float = 0.0
    center_of_mass_x: float = 0.0
    center_of_mass_y: float = 0.0

    # Content
    particle: Optional[Particle] = None
    shared: List[Particle] = field(default_factory=list)
    children: Optional[List[QuadTreeNode]] = None

    def is_empty(self) -> bool:
        """True if this node contains no particles."""
        return self.state is NodeState.EMPTY

    def is_leaf(self) -> bool:
        """True if this node holds a particle directly."""
        return self.state is NodeState.LEAF

    def is_internal(self) -> bool:
        """True if this node has four children."""
        return self.state is NodeState.INTERNAL

    @property
    def center_of_mass(self) -> Tuple[float, float]:
        return (self.center_of_mass_x, self.center_of_mass_y)

    def contains(self, x: float, y: float) -> bool:
        """Check if point (x, y) is within this node's region."""
        return self.bounds.contains(x, y)

    def insert(self, particle: Particle) -> bool:
        """
        Insert a particle into this subtree.

        Particles outside this node's region are ignored.

        Returns:
            True if the particle was stored, False if it was outside.
        """
        if not self.bounds.contains(particle.x, particle.y):
            return False
        self._insert(particle)
        return True

    def _insert(self, particle: Particle) -> None:
        if self.state is NodeState.EMPTY:
            self.particle = particle
            self.state = NodeState.LEAF
            self.mass = particle.mass
            self.center_of_mass_x = particle.x
            self.center_of_mass_y = particle.y
            return

        if self.state is NodeState.LEAF:
            if self.depth >= MAX_DEPTH:
                self.shared.append(particle)
                self._accumulate(particle)
                return
            self.subdivide()

        self._insert_into_child(particle)
        self._accumulate(particle)

    def _accumulate(self, particle: Particle) -> None:
        """Fold a newly stored particle into the running mass and COM."""
        old_mass = self.mass
        self.mass = old_mass + particle.mass
        self.center_of_mass_x = (
            self.center_of_mass_x * old_mass + particle.x * particle.mass
        ) / self.mass
        self.center_of_mass_y = (
            self.center_of_mass_y * old_mass + particle.y * particle.mass
        ) / self.mass

    def subdivide(self) -> None:
        """
        Split a leaf into four quadrants and push its particle down.

        Aggregates are unchanged since the particle stays in this subtree.
        """
        if self.state is not NodeState.LEAF:
            raise RuntimeError(f"cannot subdivide a node in state {self.state.name}")

        existing = self.particle
        self.children = [
            QuadTreeNode(self.bounds.quadrant(i), depth=self.depth + 1) for i in range(4)
        ]
        self.particle = None
        self.state = NodeState.INTERNAL

        if existing is not None:
            self._insert_into_child(existing)

    def child_for(self, x: float, y: float) -> QuadTreeNode:
        """
        Get the child that receives a point.

        The first child (BL, BR, TL, TR) whose region contains the point wins,
        so points on a shared edge go to exactly one child. If rounding makes
        every child reject a point this node accepted, it is clamped into the
        quadrant on its side of the center.
        """
        assert self.children is not None
        for child in self.children:
            if child.bounds.contains(x, y):
                return child
        return self.children[self.bounds.nearest_quadrant(x, y)]

    def _insert_into_child(self, particle: Particle) -> None:
        self.child_for(particle.x, particle.y)._insert(particle)

    def _holds(self, particle: Particle) -> bool:
        if self.state is not NodeState.LEAF:
            return False
        if self.particle is particle:
            return True
        return any(p is particle for p in self.shared)

    def compute_force(
        self,
        particle: Particle,
        theta: float,
        gravitational_constant: float,
        softening: float = DEFAULT_SOFTENING,
    ) -> Tuple[float, float]:
        """
        Calculate approximate gravitational acceleration on a particle.

        Uses the Barnes-Hut criterion: if a subtree is small compared to its
        distance (size/distance < theta), treat it as a single mass at its
        center of mass.

        Args:
            particle: The particle to calculate force on
            theta: Acceptance threshold (0 = exact pairwise sum)
            gravitational_constant: G
            softening: Distance added to every separation

        Returns:
            (ax, ay) pointing toward the attracting mass
        """
        if self.mass == 0 or self._holds(particle):
            return 0.0, 0.0

        dx = self.center_of_mass_x - particle.x
        dy = self.center_of_mass_y - particle.y
        dist = math.sqrt(dx * dx + dy * dy) + softening

        if self.state is not NodeState.INTERNAL or (
            dist > 0 and self.bounds.size / dist < theta
        ):
            if dist == 0:
                return 0.0, 0.0
            # a = G * M / d^2 along dir / d
            accel = gravitational_constant * self.mass / (dist * dist)
            return accel * dx / dist, accel * dy / dist

        # Node is too close - recurse into children
        fx, fy = 0.0, 0.0
        if self.children:
            for child in self.children:
                if child is not None:
                    cfx, cfy = child.compute_force(
                        particle, theta, gravitational_constant, softening
                    )
                    fx += cfx
                    fy += cfy

        return fx, fy

    def iter_nodes(self) -> Iterator[QuadTreeNode]:
        """Yield this node and all descendants (pre-order)."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def iter_particles(self) -> Iterator[Particle]:
        """Yield every particle stored in this subtree."""
        for node in self.iter_nodes():
            if node.state is NodeState.LEAF:
                assert node.particle is not None
                yield node.particle
                yield from node.shared


class QuadTree:
    """
    Barnes-Hut quadtree for approximate gravity calculations.

    The tree covers a fixed square region. Each insertion updates the mass
    and center of mass of every node along its path, so the tree is ready
    for force queries as soon as the last particle is inserted.

    Usage:
        tree = QuadTree(size=4000.0, theta=0.5, gravitational_constant=0.1)
        for p in particles:
            tree.insert(p)

        # Acceleration on a particle
        ax, ay = tree.compute_force(p)

    The theta parameter controls the accuracy/speed tradeoff:
    - theta = 0: Exact calculation (no approximation)
    - theta = 0.5: Good balance (recommended)
    - theta = 1.0+: Fast but less accurate
    """

    def __init__(
        self,
        size: float,
        center: Tuple[float, float] = (0.0, 0.0),
        theta: float = 0.5,
        gravitational_constant: float = 1.0,
        softening: float = DEFAULT_SOFTENING,
    ):
        """
        Initialize quadtree.

        Args:
            size: Side length of the square root region
            center: Center of the root region
            theta: Barnes-Hut threshold (0 = exact, higher = more approximation)
            gravitational_constant: G used by compute_force()
            softening: Distance added to every separation
        """
        self.root = QuadTreeNode(BoundingBox(float(center[0]), float(center[1]), float(size)))
        self.theta = theta
        self.gravitational_constant = gravitational_constant
        self.softening = softening
        self.particle_count = 0
        self.dropped_count = 0

    @property
    def mass(self) -> float:
        """Total mass stored in the tree."""
        return self.root.mass

    @property
    def center_of_mass(self) -> Tuple[float, float]:
        return self.root.center_of_mass

    def insert(self, particle: Particle) -> bool:
        """
        Insert a particle into the quadtree.

        Returns:
            False if the particle lies outside the root region and was dropped.
        """
        if self.root.insert(particle):
            self.particle_count += 1
            return True
        self.dropped_count += 1
        return False

    def compute_force(self, particle: Particle) -> Tuple[float, float]:
        """Approximate acceleration on a particle from everything in the tree."""
        return self.root.compute_force(
            particle, self.theta, self.gravitational_constant, self.softening
        )

    def node_count(self) -> int:
        return sum(1 for _ in self.root.iter_nodes())

    def depth(self) -> int:
        """Depth of the deepest node."""
        return max(node.depth for node in self.root.iter_nodes())

    @classmethod
    def from_particles(
        cls,
        particles: Sequence[Particle],
        size: Optional[float] = None,
        center: Optional[Tuple[float, float]] = None,
        padding: float = 10.0,
        theta: float = 0.5,
        gravitational_constant: float = 1.0,
        softening: float = DEFAULT_SOFTENING,
    ) -> QuadTree:
        """
        Build a quadtree from a list of particles.

        Args:
            particles: Particles to insert, in order
            size: Side length of the root region. If None, the smallest
                square covering all particles plus padding is used.
            center: Center of the root region. Defaults to the origin when
                size is given, otherwise to the center of the particles.
            padding: Padding around the bounding box when size is None
            theta: Barnes-Hut threshold
            gravitational_constant: G
            softening: Distance added to every separation

        Returns:
            QuadTree with all particles inserted
        """
        if size is None:
            if particles:
                min_x = min(p.x for p in particles) - padding
                min_y = min(p.y for p in particles) - padding
                max_x = max(p.x for p in particles) + padding
                max_y = max(p.y for p in particles) + padding
            else:
                min_x, min_y, max_x, max_y = 0.0, 0.0, 100.0, 100.0
            size = max(max_x - min_x, max_y - min_y)
            if center is None:
                center = ((min_x + max_x) / 2, (min_y + max_y) / 2)

        tree = cls(
            size,
            center=center if center is not None else (0.0, 0.0),
            theta=theta,
            gravitational_constant=gravitational_constant,
            softening=softening,
        )

        for p in particles:
            tree.insert(p)

        return tree


__all__ = [
    "BoundingBox",
    "NodeState",
    "QuadTree",
    "QuadTreeNode",
    "DEFAULT_SOFTENING",
    "MAX_DEPTH",
]
