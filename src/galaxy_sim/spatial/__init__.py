"""
Spatial data structures for gravity calculations.

Provides the quadtree implementation for Barnes-Hut O(n log n) force approximation.
"""

from .quadtree import BoundingBox, NodeState, QuadTree, QuadTreeNode

__all__ = ["BoundingBox", "NodeState", "QuadTree", "QuadTreeNode"]
