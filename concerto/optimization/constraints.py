"""
Placement validity rules.

A placement is valid when every musician:
    - is placed (finite coordinates),
    - keeps at least MIN_SEPARATION from every stage edge,
    - keeps at least MIN_SEPARATION from every other musician.
"""

from typing import List, Optional, Sequence
import numpy as np
from scipy.spatial import cKDTree

from concerto.core.problem import MIN_SEPARATION, Placement, ProblemInstance


def find_invalid_positions(
    problem: ProblemInstance,
    placement: Placement,
    musicians: Optional[Sequence[int]] = None,
) -> List[int]:
    """
    Find musicians that break a placement rule.

    Args:
        problem: The problem instance
        placement: Placement to check
        musicians: Only report these musicians (all by default); they are
            still checked against every other musician

    Returns:
        Sorted list of offending musician indices.

    Raises:
        ValueError: If the placement size doesn't match the problem

    Example:
        >>> find_invalid_positions(problem, Placement([[30, 60], [35, 60]]))
        [0, 1]
    """
    if len(placement) != problem.num_musicians:
        raise ValueError(
            f"Placement has {len(placement)} musicians, "
            f"problem has {problem.num_musicians}"
        )

    positions = placement.positions
    placed = placement.placed_mask
    invalid = ~placed

    min_x, min_y, max_x, max_y = problem.placeable_bounds(MIN_SEPARATION)
    with np.errstate(invalid='ignore'):
        outside = (
            (positions[:, 0] < min_x) | (positions[:, 0] > max_x)
            | (positions[:, 1] < min_y) | (positions[:, 1] > max_y)
        )
    invalid |= outside & placed

    placed_idx = np.flatnonzero(placed)
    if len(placed_idx) > 1:
        tree = cKDTree(positions[placed_idx])
        for a, b in tree.query_pairs(MIN_SEPARATION):
            diff = positions[placed_idx[a]] - positions[placed_idx[b]]
            if diff[0] * diff[0] + diff[1] * diff[1] < MIN_SEPARATION * MIN_SEPARATION:
                invalid[placed_idx[a]] = True
                invalid[placed_idx[b]] = True

    result = np.flatnonzero(invalid)
    if musicians is not None:
        wanted = set(int(m) for m in musicians)
        return [int(m) for m in result if int(m) in wanted]
    return [int(m) for m in result]


def is_valid_placement(problem: ProblemInstance, placement: Placement) -> bool:
    """True when no musician breaks a placement rule."""
    return not find_invalid_positions(problem, placement)


def validate_placement(problem: ProblemInstance, placement: Placement) -> None:
    """
    Check a placement against the rules.

    Raises:
        ValueError: Listing the offending musicians
    """
    invalid = find_invalid_positions(problem, placement)
    if invalid:
        shown = ", ".join(str(m) for m in invalid[:20])
        more = f" (and {len(invalid) - 20} more)" if len(invalid) > 20 else ""
        raise ValueError(f"Invalid positions for musicians: {shown}{more}")
