"""
Packed diamond lattice over the stage.

The lattice interleaves two rectangular families of points ("even" and
"odd"), addressed by fine integer coordinates ``(i, j)`` with ``i + j``
even::

    (0,2)     (2,2)     (4,2)
         (1,1)     (3,1)
    (0,0)     (2,0)     (4,0)

Cell sizes are chosen so diagonal neighbours are at least two radii apart,
so any set of distinct lattice points satisfies the musician separation
rule by construction.
"""

import math
from typing import Optional, Sequence, Tuple
import numpy as np
from scipy.spatial import cKDTree

from concerto.core.problem import ProblemInstance

LATTICE_RADIUS = 5.002
LATTICE_PADDING = 5.002

Coord = Tuple[int, int]


class DiamondLattice:
    """
    Diamond lattice with ``0 <= i <= 2*nx`` and ``0 <= j <= 2*ny``.

    Attributes:
        min_x: x of fine coordinate i = 0
        min_y: y of fine coordinate j = 0
        cell_width: x distance between fine coordinates i and i + 1
        cell_height: y distance between fine coordinates j and j + 1
        nx: Number of coarse cells along x
        ny: Number of coarse cells along y
    """

    def __init__(
        self,
        min_x: float,
        min_y: float,
        cell_width: float,
        cell_height: float,
        nx: int,
        ny: int,
    ):
        if nx < 0 or ny < 0:
            raise ValueError(f"Lattice size must be non-negative, got {nx}x{ny}")
        self.min_x = float(min_x)
        self.min_y = float(min_y)
        self.cell_width = float(cell_width)
        self.cell_height = float(cell_height)
        self.nx = int(nx)
        self.ny = int(ny)
        self._coords = self._all_coordinates()
        self._tree: Optional[cKDTree] = None

    @classmethod
    def fit(
        cls,
        problem: ProblemInstance,
        radius: float = LATTICE_RADIUS,
        padding: float = LATTICE_PADDING,
    ) -> "DiamondLattice":
        """
        Fit the densest lattice of radius-``radius`` circles on the stage.

        Lattice points keep ``padding + radius`` away from the stage edges.

        Raises:
            ValueError: If the stage is too small for a single point
        """
        x0, y0 = problem.stage_bottom_left
        min_x = x0 + padding + radius
        min_y = y0 + padding + radius
        width = problem.stage_width - 2.0 * (padding + radius)
        height = problem.stage_height - 2.0 * (padding + radius)
        if width < 0 or height < 0:
            raise ValueError(
                f"Stage {problem.stage_width}x{problem.stage_height} is too small "
                f"for a lattice of radius {radius}"
            )

        # Two rows of the same family are 2 * radius * sqrt(2) apart
        coarseness = radius * 2.0 * math.sqrt(2.0)
        nx = int(width // coarseness)
        ny = int(height // coarseness)
        cell_width = width / nx / 2.0 if nx > 0 else 0.0
        cell_height = height / ny / 2.0 if ny > 0 else 0.0
        return cls(min_x, min_y, cell_width, cell_height, nx, ny)

    def _all_coordinates(self) -> np.ndarray:
        ii, jj = np.meshgrid(
            np.arange(2 * self.nx + 1), np.arange(2 * self.ny + 1), indexing="ij"
        )
        keep = (ii + jj) % 2 == 0
        coords = np.column_stack([ii[keep], jj[keep]])
        # Row-major in j, then i
        order = np.lexsort((coords[:, 0], coords[:, 1]))
        return coords[order].astype(np.int64)

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------

    @property
    def shape(self) -> Tuple[int, int]:
        """Shape of an occupancy table indexed by fine coordinates."""
        return (2 * self.nx + 1, 2 * self.ny + 1)

    def __len__(self) -> int:
        return int(self._coords.shape[0])

    @property
    def diagonal(self) -> float:
        """Length of the lattice diagonal in fine coordinate units."""
        return math.hypot(2 * self.nx, 2 * self.ny)

    def coordinates(self) -> np.ndarray:
        """(K, 2) array of every valid fine coordinate."""
        return self._coords.copy()

    def contains(self, coord: Sequence[int]) -> bool:
        i, j = int(coord[0]), int(coord[1])
        return 0 <= i <= 2 * self.nx and 0 <= j <= 2 * self.ny and (i + j) % 2 == 0

    # ------------------------------------------------------------------
    # Mapping to the stage
    # ------------------------------------------------------------------

    def to_point(self, coord: Sequence[int]) -> Tuple[float, float]:
        return (
            self.min_x + self.cell_width * int(coord[0]),
            self.min_y + self.cell_height * int(coord[1]),
        )

    def to_points(self, coords: np.ndarray) -> np.ndarray:
        coords = np.asarray(coords, dtype=np.float64).reshape(-1, 2)
        return np.column_stack([
            self.min_x + self.cell_width * coords[:, 0],
            self.min_y + self.cell_height * coords[:, 1],
        ])

    def nearest(self, point: Sequence[float], k: int = 1) -> np.ndarray:
        """
        The ``k`` lattice coordinates closest to ``point``, nearest first.

        Returns:
            (min(k, len), 2) int array
        """
        if self._tree is None:
            self._tree = cKDTree(self.to_points(self._coords))
        k = max(1, min(int(k), len(self)))
        _, idx = self._tree.query(np.asarray(point, dtype=np.float64), k=k)
        return self._coords[np.atleast_1d(idx)]

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def displace(self, coord: Sequence[int], displacement: Sequence[int]) -> Coord:
        """
        Move ``coord`` by ``displacement``, clamped to the lattice.

        Clamping can break parity; the x coordinate (or y on a one-column
        lattice) is then stepped back inside.
        """
        i = min(max(int(coord[0]) + int(displacement[0]), 0), 2 * self.nx)
        j = min(max(int(coord[1]) + int(displacement[1]), 0), 2 * self.ny)
        if (i + j) % 2 != 0:
            if self.nx > 0:
                i = i - 1 if i > 0 else i + 1
            elif self.ny > 0:
                j = j - 1 if j > 0 else j + 1
        return (i, j)

    @staticmethod
    def random_displacement(rng: np.random.Generator, distance: float) -> Coord:
        """
        Random parity-preserving step of roughly ``distance`` fine units.

        Never returns (0, 0): a zero step becomes a random diagonal.
        """
        angle = rng.uniform(0.0, 2.0 * math.pi)
        dx = int(round(distance * math.cos(angle)))
        dy = int(round(distance * math.sin(angle)))
        if (dx + dy) % 2 != 0:
            dx += 1 if rng.random() < 0.5 else -1
        if dx == 0 and dy == 0:
            dx = 1 if rng.random() < 0.5 else -1
            dy = 1 if rng.random() < 0.5 else -1
        return (dx, dy)

    @staticmethod
    def diagonal_steps() -> np.ndarray:
        """The four nearest-neighbour steps."""
        return np.array([[1, 1], [1, -1], [-1, 1], [-1, -1]], dtype=np.int64)
