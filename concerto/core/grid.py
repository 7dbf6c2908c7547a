"""
Candidate grid of musician positions.

The greedy constructor only considers a finite set of stage positions: a
regular grid laid over the stage interior (inset by the musician clearance).
Each grid position carries a ``taken`` flag that is set once a musician is
placed within the minimum separation of it.
"""

import logging
import math
from typing import Optional, Sequence
import numpy as np
from scipy.spatial import cKDTree

from concerto.core.problem import MIN_SEPARATION, ProblemInstance

logger = logging.getLogger(__name__)

# Grid spacing is grown/shrunk by this factor until the count fits
SPACING_STEP = 1.01
MIN_SPACING = 1e-6


def _axis_count(length: float, spacing: float) -> int:
    return int(math.floor(length / spacing + 1e-9)) + 1


def grid_budget(
    problem: ProblemInstance,
    density: float = 50.0,
    min_per_musician: int = 4,
) -> int:
    """
    Target number of candidate positions for a problem.

    ``density * attendees / max(max_instrument, 1)``, but never fewer than
    ``min_per_musician`` positions per musician.
    """
    budget = int(density * problem.num_attendees / max(problem.max_instrument, 1))
    return max(budget, min_per_musician * problem.num_musicians, 1)


class CandidateGrid:
    """
    Ordered set of candidate positions with a parallel ``taken`` array.

    Attributes:
        points: (N, 2) candidate positions
        taken: (N,) boolean, True once a position is unusable
        spacing: Distance between neighbouring positions (None if unknown)

    Example:
        >>> grid = CandidateGrid.build(problem)
        >>> newly_taken = grid.mark_taken_near(grid.points[0])
        >>> grid.num_free < len(grid)
        True
    """

    def __init__(self, points: np.ndarray, spacing: Optional[float] = None):
        self.points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if len(self.points) == 0:
            raise ValueError("Candidate grid is empty")
        self.taken = np.zeros(len(self.points), dtype=bool)
        self.spacing = spacing
        self._tree = cKDTree(self.points)

    @classmethod
    def build(
        cls,
        problem: ProblemInstance,
        density: float = 50.0,
        min_per_musician: int = 4,
        clearance: float = MIN_SEPARATION,
    ) -> "CandidateGrid":
        """
        Lay a regular grid over the stage interior.

        The spacing starts from the area-per-point estimate and is grown by
        1% until the point count fits the budget, then shrunk while there are
        fewer than ``min_per_musician`` points per musician.

        Args:
            problem: The problem instance
            density: Budget multiplier (see :func:`grid_budget`)
            min_per_musician: Lower bound on points per musician
            clearance: Inset from the stage edges

        Returns:
            CandidateGrid with all positions free

        Raises:
            ValueError: If the stage interior is empty
        """
        min_x, min_y, max_x, max_y = problem.placeable_bounds(clearance)
        width = max_x - min_x
        height = max_y - min_y
        if width < 0 or height < 0:
            raise ValueError(
                f"Stage {problem.stage_width}x{problem.stage_height} leaves no room "
                f"for musicians with clearance {clearance}"
            )

        budget = grid_budget(problem, density, min_per_musician)
        floor = min_per_musician * problem.num_musicians

        def count(s: float) -> int:
            return _axis_count(width, s) * _axis_count(height, s)

        spacing = max(math.sqrt(width * height / budget), (width + height) / budget, MIN_SPACING)
        while count(spacing) > budget:
            spacing *= SPACING_STEP
        if width > 0 or height > 0:
            while count(spacing) < floor and spacing > MIN_SPACING:
                spacing /= SPACING_STEP

        nx = _axis_count(width, spacing)
        ny = _axis_count(height, spacing)
        # Center the lattice inside the interior
        off_x = min_x + (width - (nx - 1) * spacing) / 2.0
        off_y = min_y + (height - (ny - 1) * spacing) / 2.0

        xs = off_x + spacing * np.arange(nx)
        ys = off_y + spacing * np.arange(ny)
        gx, gy = np.meshgrid(xs, ys, indexing="ij")
        points = np.column_stack([gx.ravel(), gy.ravel()])

        logger.debug(
            "candidate grid: %d points (%dx%d), spacing %.3f, budget %d",
            len(points), nx, ny, spacing, budget,
        )
        return cls(points, spacing)

    def __len__(self) -> int:
        return int(self.points.shape[0])

    @property
    def free_mask(self) -> np.ndarray:
        return ~self.taken

    @property
    def num_free(self) -> int:
        return int((~self.taken).sum())

    def free_indices(self) -> np.ndarray:
        return np.flatnonzero(~self.taken)

    def mark_taken(self, indices: Sequence[int]) -> None:
        self.taken[np.asarray(indices, dtype=np.int64)] = True

    def positions_near(self, point: Sequence[float], radius: float = MIN_SEPARATION) -> np.ndarray:
        """Indices of positions with squared distance <= radius^2 to point."""
        point = np.asarray(point, dtype=np.float64)
        # Slightly inflated ball, then the exact squared-distance rule
        candidates = np.asarray(
            self._tree.query_ball_point(point, radius * (1.0 + 1e-9) + 1e-12), dtype=np.int64
        )
        if len(candidates) == 0:
            return candidates
        diff = self.points[candidates] - point
        d2 = diff[:, 0] * diff[:, 0] + diff[:, 1] * diff[:, 1]
        return np.sort(candidates[d2 <= radius * radius])

    def mark_taken_near(self, point: Sequence[float], radius: float = MIN_SEPARATION) -> np.ndarray:
        """
        Take every position within ``radius`` of ``point``.

        Returns:
            Sorted indices of the positions in range (including ones that
            were already taken).
        """
        near = self.positions_near(point, radius)
        self.taken[near] = True
        return near

    def reset(self) -> None:
        self.taken[:] = False
