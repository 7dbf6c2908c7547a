"""
Occlusion geometry for musician placement.

This module provides the line-of-sight predicate used everywhere in the
engine: a segment from an attendee to a musician is blocked when it crosses
a circular occluder (another musician or a pillar).

Scalar and vectorized (NumPy) forms are provided. They implement the same
rule:
    - Project the occluder center onto the segment.
    - A projection parameter outside [0, 1] never blocks.
    - Otherwise the segment is blocked iff the squared distance between the
      center and its projection is <= radius^2 (tangent counts as blocked).
"""

from typing import Sequence, Tuple, Union
import numpy as np

PointLike = Union[Sequence[float], np.ndarray, Tuple[float, float]]


def distance2(a: PointLike, b: PointLike) -> float:
    """Squared Euclidean distance between two 2D points."""
    dx = float(a[0]) - float(b[0])
    dy = float(a[1]) - float(b[1])
    return dx * dx + dy * dy


def line_circle_intersection(
    line_start: PointLike,
    line_end: PointLike,
    circle_center: PointLike,
    radius: float,
) -> bool:
    """
    Check whether a closed segment intersects a closed disk.

    Args:
        line_start: Segment start (x, y), usually the attendee.
        line_end: Segment end (x, y), usually the musician.
        circle_center: Center of the occluding circle.
        radius: Radius of the occluding circle.

    Returns:
        True if the segment is blocked by the circle.

    Example:
        >>> line_circle_intersection((0, 0), (10, 0), (5, 5), 5.1)
        True
        >>> line_circle_intersection((0, 0), (10, 0), (5, 5), 4.9)
        False
    """
    sx, sy = float(line_start[0]), float(line_start[1])
    lx = float(line_end[0]) - sx
    ly = float(line_end[1]) - sy
    cx = float(circle_center[0]) - sx
    cy = float(circle_center[1]) - sy

    # Zero-length segments are a caller error and raise ZeroDivisionError
    t = (cx * lx + cy * ly) / (lx * lx + ly * ly)
    if t < 0.0 or t > 1.0:
        return False

    dx = cx - t * lx
    dy = cy - t * ly
    return dx * dx + dy * dy <= radius * radius


def segments_blocked(
    starts: np.ndarray,
    ends: np.ndarray,
    center: PointLike,
    radius: float,
) -> np.ndarray:
    """
    Vectorized occlusion test of N segments against a single circle.

    Args:
        starts: (N, 2) segment start points
        ends: (N, 2) or (2,) segment end points (broadcast against starts)
        center: Circle center (x, y)
        radius: Circle radius

    Returns:
        Boolean array (N,), True where the segment is blocked.
    """
    starts = np.asarray(starts, dtype=np.float64)
    ends = np.asarray(ends, dtype=np.float64)
    center = np.asarray(center, dtype=np.float64)

    line = ends - starts
    to_center = center - starts

    line_len_sq = np.einsum('...i,...i->...', line, line)
    dot = np.einsum('...i,...i->...', to_center, line)
    with np.errstate(divide='ignore', invalid='ignore'):
        t = dot / line_len_sq

    closest = to_center - t[..., None] * line
    dist_sq = np.einsum('...i,...i->...', closest, closest)

    return (t >= 0.0) & (t <= 1.0) & (dist_sq <= radius * radius)


def observers_blocked(
    observers: np.ndarray,
    target: PointLike,
    centers: np.ndarray,
    radii: Union[float, np.ndarray],
) -> np.ndarray:
    """
    Occlusion matrix for segments observer -> target against many circles.

    Args:
        observers: (A, 2) observer positions (attendees)
        target: The point being looked at (x, y)
        centers: (C, 2) occluder centers
        radii: Scalar or (C,) occluder radii

    Returns:
        Boolean array (A, C), True where circle c blocks observer a.
    """
    observers = np.asarray(observers, dtype=np.float64).reshape(-1, 2)
    centers = np.asarray(centers, dtype=np.float64).reshape(-1, 2)
    target = np.asarray(target, dtype=np.float64)
    radii = np.broadcast_to(np.asarray(radii, dtype=np.float64), (centers.shape[0],))

    line = target[None, :] - observers                      # (A, 2)
    line_len_sq = np.einsum('ai,ai->a', line, line)         # (A,)
    to_center = centers[None, :, :] - observers[:, None, :]  # (A, C, 2)

    dot = np.einsum('aci,ai->ac', to_center, line)
    with np.errstate(divide='ignore', invalid='ignore'):
        t = dot / line_len_sq[:, None]

    closest = to_center - t[..., None] * line[:, None, :]
    dist_sq = np.einsum('aci,aci->ac', closest, closest)

    return (t >= 0.0) & (t <= 1.0) & (dist_sq <= (radii * radii)[None, :])


def targets_blocked(
    observers: np.ndarray,
    targets: np.ndarray,
    center: PointLike,
    radius: float,
) -> np.ndarray:
    """
    Occlusion matrix for every (target, observer) segment against one circle.

    Used to find which (grid position, attendee) pairs a new occluder blocks.

    Args:
        observers: (A, 2) observer positions
        targets: (N, 2) target positions
        center: Occluder center
        radius: Occluder radius

    Returns:
        Boolean array (N, A).
    """
    observers = np.asarray(observers, dtype=np.float64).reshape(-1, 2)
    targets = np.asarray(targets, dtype=np.float64).reshape(-1, 2)
    center = np.asarray(center, dtype=np.float64)

    line = targets[:, None, :] - observers[None, :, :]   # (N, A, 2)
    to_center = center[None, :] - observers               # (A, 2)

    line_len_sq = np.einsum('nai,nai->na', line, line)
    dot = np.einsum('nai,ai->na', line, to_center)
    with np.errstate(divide='ignore', invalid='ignore'):
        t = dot / line_len_sq

    closest = to_center[None, :, :] - t[..., None] * line
    dist_sq = np.einsum('nai,nai->na', closest, closest)

    return (t >= 0.0) & (t <= 1.0) & (dist_sq <= radius * radius)
