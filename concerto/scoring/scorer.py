"""
Score model: total attendee happiness for a placement.

For one attendee and one musician of instrument k at position p:

    impact = ceil(1_000_000 * taste[k] / |attendee - p|^2)

An (attendee, musician) pair contributes nothing when another placed musician
(a circle of radius 5) or a pillar blocks the line of sight. On problems with
pillars every impact is additionally multiplied by the musician's closeness
factor ``1 + sum(1 / dist)`` over the other musicians playing the same
instrument. Volumes scale impacts linearly. Each pair term is rounded up
before summation, so the total is an exact integer.

Scoring is embarrassingly parallel across attendees: attendees are split into
chunks, each chunk produces per-musician partial sums, and the partial sums
are added up.
"""

import math
from typing import Optional, Sequence
import numpy as np

from concerto.core.geometry import distance2, observers_blocked
from concerto.core.parallel import chunk_ranges, chunk_size_for, parallel_map
from concerto.core.problem import MUSICIAN_RADIUS, Placement, ProblemInstance
from concerto.scoring.collider import Collider

IMPACT_SCALE = 1_000_000

SCORE_METHODS = ("exact", "index")


def calculate_impact(
    attendee: Sequence[float],
    taste: float,
    placement: Sequence[float],
) -> int:
    """
    Impact of one musician on one attendee, ignoring occlusion.

    Args:
        attendee: Attendee position (x, y)
        taste: Attendee's taste for the musician's instrument
        placement: Musician position (x, y)

    Returns:
        ceil(1e6 * taste / squared distance)
    """
    return int(math.ceil(IMPACT_SCALE * float(taste) / distance2(placement, attendee)))


def impact_array(
    attendees: np.ndarray,
    tastes: np.ndarray,
    point: Sequence[float],
) -> np.ndarray:
    """Vectorized ``calculate_impact`` for many attendees and one point (float)."""
    diff = attendees - np.asarray(point, dtype=np.float64)
    d2 = diff[..., 0] * diff[..., 0] + diff[..., 1] * diff[..., 1]
    return np.ceil(IMPACT_SCALE * tastes / d2)


def closeness_factors(problem: ProblemInstance, placement: Placement) -> np.ndarray:
    """
    Closeness factor of every musician.

    ``1 + sum(1 / distance)`` over the other placed musicians sharing the
    same instrument. Unplaced musicians get 1.0.

    Returns:
        (M,) float array
    """
    factors = np.ones(problem.num_musicians)
    placed = placement.placed_mask
    positions = placement.positions

    for instrument in problem.instruments:
        members = np.flatnonzero((problem.musicians == instrument) & placed)
        if len(members) < 2:
            continue
        pts = positions[members]
        diff = pts[:, None, :] - pts[None, :, :]
        dist = np.sqrt(diff[..., 0] ** 2 + diff[..., 1] ** 2)
        with np.errstate(divide='ignore'):
            inv = np.where(dist > 0, 1.0 / dist, 0.0)
        factors[members] = 1.0 + inv.sum(axis=1)

    return factors


def _exact_visibility(
    problem: ProblemInstance,
    placement: Placement,
    rows: range,
) -> np.ndarray:
    """(rows, M) visibility block using brute-force vectorized occlusion."""
    attendees = problem.attendees[rows.start:rows.stop]
    visible = np.zeros((len(attendees), problem.num_musicians), dtype=bool)

    placed = np.flatnonzero(placement.placed_mask)
    positions = placement.positions[placed]
    centers = np.vstack([problem.pillars, positions])
    radii = np.concatenate([problem.pillar_radii, np.full(len(placed), MUSICIAN_RADIUS)])
    offset = problem.num_pillars

    for j, musician in enumerate(placed):
        keep = np.ones(len(centers), dtype=bool)
        keep[offset + j] = False
        if keep.any():
            blocked = observers_blocked(
                attendees, positions[j], centers[keep], radii[keep]
            ).any(axis=1)
        else:
            blocked = np.zeros(len(attendees), dtype=bool)
        visible[:, musician] = ~blocked

    return visible


def visibility_matrix(
    problem: ProblemInstance,
    placement: Placement,
    method: str = "exact",
    rows: Optional[range] = None,
) -> np.ndarray:
    """
    Which attendees can hear which musicians.

    Args:
        problem: The problem instance
        placement: Musician placement
        method: "exact" (vectorized brute force) or "index" (BVH collider)
        rows: Optional attendee range (default: all attendees)

    Returns:
        Boolean array (rows, M); unplaced musicians are never visible.
    """
    if method not in SCORE_METHODS:
        raise ValueError(f"Unknown score method: {method}. Available: {list(SCORE_METHODS)}")
    if rows is None:
        rows = range(problem.num_attendees)
    if method == "index":
        return Collider(problem, placement).visibility(rows)
    return _exact_visibility(problem, placement, rows)


def _check_placement(problem: ProblemInstance, placement: Placement) -> None:
    if len(placement) != problem.num_musicians:
        raise ValueError(
            f"Placement has {len(placement)} musicians, "
            f"problem has {problem.num_musicians}"
        )


def _multipliers(
    problem: ProblemInstance,
    placement: Placement,
    volumes: Optional[np.ndarray],
) -> np.ndarray:
    """Per-musician factor applied to the raw impact before rounding."""
    if volumes is None:
        volumes = placement.volume_array()
    else:
        volumes = np.clip(np.asarray(volumes, dtype=np.float64), 0.0, 10.0)
        if volumes.shape[0] != problem.num_musicians:
            raise ValueError(
                f"{volumes.shape[0]} volumes for {problem.num_musicians} musicians"
            )

    # Closeness only applies to pillar problems (legacy rule)
    if problem.has_pillars:
        return volumes * closeness_factors(problem, placement)
    return volumes


def _chunk_contributions(
    problem: ProblemInstance,
    placement: Placement,
    multipliers: np.ndarray,
    rows: range,
    method: str,
    collider: Optional[Collider] = None,
) -> np.ndarray:
    """Per-musician happiness contributed by a block of attendees."""
    contributions = np.zeros(problem.num_musicians, dtype=np.int64)
    placed = np.flatnonzero(placement.placed_mask)
    if len(placed) == 0 or len(rows) == 0:
        return contributions

    if collider is not None:
        visible = collider.visibility(rows)[:, placed]
    else:
        visible = _exact_visibility(problem, placement, rows)[:, placed]

    attendees = problem.attendees[rows.start:rows.stop]
    tastes = problem.tastes[rows.start:rows.stop][:, problem.musicians[placed]]

    diff = attendees[:, None, :] - placement.positions[placed][None, :, :]
    d2 = diff[..., 0] * diff[..., 0] + diff[..., 1] * diff[..., 1]
    impact = np.ceil(IMPACT_SCALE * tastes / d2)
    terms = np.ceil(multipliers[placed][None, :] * impact)

    contributions[placed] = np.where(visible, terms, 0.0).astype(np.int64).sum(axis=0)
    return contributions


def musician_contributions(
    problem: ProblemInstance,
    placement: Placement,
    volumes: Optional[np.ndarray] = None,
    method: str = "exact",
    workers: Optional[int] = 1,
) -> np.ndarray:
    """
    Happiness contributed by each musician, summed over attendees.

    The entries add up to :func:`score`.

    Args:
        problem: The problem instance
        placement: Musician placement
        volumes: Optional (M,) volumes overriding ``placement.volumes``
        method: Occlusion method, "exact" or "index"
        workers: Thread count for the attendee fan-out

    Returns:
        (M,) int64 array
    """
    _check_placement(problem, placement)
    if method not in SCORE_METHODS:
        raise ValueError(f"Unknown score method: {method}. Available: {list(SCORE_METHODS)}")

    total = np.zeros(problem.num_musicians, dtype=np.int64)
    if problem.num_attendees == 0 or placement.is_empty:
        return total

    multipliers = _multipliers(problem, placement, volumes)
    collider = Collider(problem, placement) if method == "index" else None

    chunks = chunk_ranges(
        problem.num_attendees,
        chunk_size_for(placement.num_placed * max(1, problem.num_pillars + placement.num_placed)),
    )
    partials = parallel_map(
        lambda rows: _chunk_contributions(
            problem, placement, multipliers, rows, method, collider
        ),
        chunks,
        workers,
    )
    for partial in partials:
        total += partial
    return total


def score(
    problem: ProblemInstance,
    placement: Placement,
    volumes: Optional[np.ndarray] = None,
    method: str = "exact",
    workers: Optional[int] = 1,
) -> int:
    """
    Total happiness of all attendees.

    Args:
        problem: The problem instance
        placement: Musician placement; unplaced musicians are ignored
        volumes: Optional (M,) volumes overriding ``placement.volumes``
        method: Occlusion method, "exact" or "index"
        workers: Thread count for the attendee fan-out

    Returns:
        Integer score (may be negative).

    Example:
        >>> problem = ProblemInstance(
        ...     room_width=100, room_height=100,
        ...     stage_width=50, stage_height=50, stage_bottom_left=(25, 25),
        ...     musicians=[0], attendees=[[0, 0]], tastes=[[100.0]],
        ... )
        >>> score(problem, Placement([[30.0, 40.0]]))
        40000
    """
    return int(musician_contributions(problem, placement, volumes, method, workers).sum())


def attendee_happiness(
    problem: ProblemInstance,
    placement: Placement,
    attendee_index: int,
    volumes: Optional[np.ndarray] = None,
    method: str = "exact",
) -> int:
    """Happiness of a single attendee."""
    _check_placement(problem, placement)
    if placement.is_empty:
        return 0
    multipliers = _multipliers(problem, placement, volumes)
    collider = Collider(problem, placement) if method == "index" else None
    rows = range(attendee_index, attendee_index + 1)
    return int(
        _chunk_contributions(problem, placement, multipliers, rows, method, collider).sum()
    )
