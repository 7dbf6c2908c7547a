"""
Core geometry, spatial indexing and problem data structures.

This module provides:
    - ProblemInstance and Placement dataclasses
    - The line/circle occlusion predicate and its vectorized forms
    - A bounding-volume hierarchy over circular occluders
    - The candidate grid used by greedy construction
    - Thread-pool fan-out helpers
"""

from concerto.core.problem import (
    ProblemInstance,
    Placement,
    MUSICIAN_RADIUS,
    MIN_SEPARATION,
)
from concerto.core.geometry import (
    distance2,
    line_circle_intersection,
    segments_blocked,
    observers_blocked,
    targets_blocked,
)
from concerto.core.spatial import BoundingVolumeHierarchy
from concerto.core.grid import CandidateGrid
from concerto.core.parallel import parallel_map

__all__ = [
    "ProblemInstance",
    "Placement",
    "MUSICIAN_RADIUS",
    "MIN_SEPARATION",
    "distance2",
    "line_circle_intersection",
    "segments_blocked",
    "observers_blocked",
    "targets_blocked",
    "BoundingVolumeHierarchy",
    "CandidateGrid",
    "parallel_map",
]
