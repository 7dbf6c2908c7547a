"""
Simulated annealing on the packed diamond lattice.

Every musician occupies one lattice coordinate; an occupancy table maps
coordinates back to musicians. Each step displaces a random musician by a
Pareto-distributed distance, either moving it to an empty coordinate or
swapping it with the musician already there, re-scores the whole placement
and accepts or reverts the change (Metropolis rule).
"""

from dataclasses import dataclass
import logging
import math
import time
from typing import Optional, Tuple, Union
import numpy as np

from concerto.core.problem import Placement, ProblemInstance
from concerto.optimization.base import Solver
from concerto.optimization.lattice import LATTICE_PADDING, LATTICE_RADIUS, DiamondLattice

logger = logging.getLogger(__name__)

EMPTY = -1


@dataclass
class Move:
    """Move ``musician`` to ``location``."""
    musician: int
    location: Tuple[int, int]

    def apply(self, coords: np.ndarray, occupancy: np.ndarray) -> "Move":
        """Apply in place and return the inverse change."""
        old = (int(coords[self.musician, 0]), int(coords[self.musician, 1]))
        occupancy[old] = EMPTY
        coords[self.musician] = self.location
        occupancy[self.location] = self.musician
        return Move(self.musician, old)


@dataclass
class Swap:
    """Exchange the coordinates of two musicians."""
    musician_a: int
    musician_b: int

    def apply(self, coords: np.ndarray, occupancy: np.ndarray) -> "Swap":
        loc_a = (int(coords[self.musician_a, 0]), int(coords[self.musician_a, 1]))
        loc_b = (int(coords[self.musician_b, 0]), int(coords[self.musician_b, 1]))
        coords[self.musician_a] = loc_b
        coords[self.musician_b] = loc_a
        occupancy[loc_a] = self.musician_b
        occupancy[loc_b] = self.musician_a
        return self


Change = Union[Move, Swap]


def cooling(x: float, plateau: float = 0.7) -> float:
    """
    Temperature for progress ``x`` in [0, 1].

    Cubic decay from 1 at x = 0 to 0 at x = 1 with zero slope at
    ``plateau``, clamped to [0, 1].
    """
    p = plateau
    b = 1.0 / (p ** 3 + (1.0 - p) ** 3)
    a = b * (1.0 - p) ** 3
    return min(max(a - b * (x - p) ** 3, 0.0), 1.0)


def pareto(rng: np.random.Generator, alpha: float, xmin: float) -> float:
    """Pareto sample with shape ``alpha`` and scale ``xmin``."""
    return (rng.pareto(alpha) + 1.0) * xmin


class AnnealerSolver(Solver):
    """
    Lattice annealer.

    Args:
        steps_per_musician: Step budget per musician
        time_limit: Wall-clock budget in seconds
        reseed: Ignore the seed positions and start from a random subset
            of the lattice
        radius: Lattice circle radius
        padding: Extra distance kept from the stage edges

    Example:
        >>> solver = AnnealerSolver(steps_per_musician=50, rng=np.random.default_rng(0))
        >>> solution = solver.solve(problem, greedy_placement)
    """

    PARAMETERS = {
        "steps_per_musician": int,
        "time_limit": float,
        "reseed": bool,
    }

    def __init__(
        self,
        steps_per_musician: int = 500,
        time_limit: float = 1200.0,
        reseed: bool = False,
        radius: float = LATTICE_RADIUS,
        padding: float = LATTICE_PADDING,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.steps_per_musician = steps_per_musician
        self.time_limit = time_limit
        self.reseed = reseed
        self.radius = radius
        self.padding = padding

        self.lattice: Optional[DiamondLattice] = None
        self.coords: Optional[np.ndarray] = None
        self.occupancy: Optional[np.ndarray] = None
        self.volumes: Optional[np.ndarray] = None
        self.current_score = 0
        self.best_score = 0
        self.best_coords: Optional[np.ndarray] = None
        self.temperature_scale = 0.0
        self.acceptance_scale = 1.0
        self.max_steps = 0
        self.step_i = 0
        self.accepted = 0
        self._started = 0.0

    @classmethod
    def from_config(cls, config=None, rng=None) -> "AnnealerSolver":
        if config is None:
            return cls(rng=rng)
        section = config.annealer
        return cls(
            steps_per_musician=section.steps_per_musician,
            time_limit=section.time_limit,
            reseed=section.reseed,
            radius=section.radius,
            padding=section.padding,
            rng=rng,
            score_method=config.scoring.method,
            workers=config.scoring.workers,
        )

    def name(self) -> str:
        return "annealer"

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self, problem: ProblemInstance, placement: Optional[Placement] = None) -> None:
        """
        Place every musician on the lattice, starting from ``placement``.

        Raises:
            ValueError: If the seed is missing, empty or has the wrong
                musician count, or the lattice is too small
        """
        if placement is None or (problem.num_musicians > 0 and placement.is_empty):
            raise ValueError("annealer needs a non-empty seed placement")
        if len(placement) != problem.num_musicians:
            raise ValueError(
                f"Seed placement has {len(placement)} musicians, "
                f"problem has {problem.num_musicians}"
            )

        self.problem = problem
        self.lattice = DiamondLattice.fit(problem, self.radius, self.padding)
        num_musicians = problem.num_musicians
        if len(self.lattice) < num_musicians:
            raise ValueError(
                f"Lattice has {len(self.lattice)} points for {num_musicians} musicians"
            )

        self.occupancy = np.full(self.lattice.shape, EMPTY, dtype=np.int64)
        self.coords = np.zeros((num_musicians, 2), dtype=np.int64)
        self.volumes = None if placement.volumes is None else placement.volumes.copy()

        if self.reseed:
            self._place_random(np.arange(num_musicians))
        else:
            self._snap(placement)

        self.current_score = self.score(self._placement())
        self.best_score = self.current_score
        self.best_coords = self.coords.copy()

        self.temperature_scale = self.lattice.diagonal / 3.0
        self.acceptance_scale = num_musicians / max(abs(self.current_score), 1)
        self.max_steps = num_musicians * self.steps_per_musician
        self.step_i = 0
        self.accepted = 0
        self._started = time.monotonic()

        logger.debug(
            "annealer(%s): initialized, %d lattice points, %d steps, score %d",
            problem.problem_id, len(self.lattice), self.max_steps, self.current_score,
        )

    def _place_random(self, musicians: np.ndarray) -> None:
        free = np.array(
            [c for c in self.lattice.coordinates() if self.occupancy[c[0], c[1]] == EMPTY]
        ).reshape(-1, 2)
        chosen = self.rng.choice(len(free), size=len(musicians), replace=False)
        for m, k in zip(musicians, chosen):
            self.coords[m] = free[k]
            self.occupancy[free[k][0], free[k][1]] = m

    def _snap(self, placement: Placement) -> None:
        # Seeded musicians take the nearest free coordinate, in index order
        placed = placement.placed_mask
        for m in np.flatnonzero(placed):
            point = placement.positions[m]
            k = 8
            while True:
                candidates = self.lattice.nearest(point, k)
                free = [c for c in candidates if self.occupancy[c[0], c[1]] == EMPTY]
                if free:
                    self.coords[m] = free[0]
                    self.occupancy[free[0][0], free[0][1]] = m
                    break
                if len(candidates) >= len(self.lattice):
                    raise RuntimeError("No free lattice coordinate left")
                k *= 4
        unplaced = np.flatnonzero(~placed)
        if len(unplaced) > 0:
            self._place_random(unplaced)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def _placement(self, coords: Optional[np.ndarray] = None) -> Placement:
        if coords is None:
            coords = self.coords
        return Placement(self.lattice.to_points(coords), self.volumes)

    def temperature(self) -> float:
        if self.max_steps <= 1:
            return 0.0
        return cooling(self.step_i / (self.max_steps - 1))

    def _neighbor(self, musician: int, distance: float) -> Change:
        displacement = self.lattice.random_displacement(self.rng, distance)
        target = self.lattice.displace(self.coords[musician], displacement)
        occupant = int(self.occupancy[target])
        if occupant != EMPTY and occupant != musician:
            return Swap(musician, occupant)
        return Move(musician, target)

    def is_done(self) -> bool:
        if self.step_i >= self.max_steps:
            return True
        return time.monotonic() - self._started > self.time_limit

    def solve_step(self) -> Tuple[Placement, bool]:
        self._require_initialized()
        if self.is_done():
            return self._placement(self.best_coords), True

        temperature = self.temperature()
        scale = max(1, math.ceil(temperature * self.temperature_scale))
        # Heavier tail at high temperature
        distance = pareto(self.rng, math.exp(2.0 - temperature), scale)
        distance = min(distance, 4.0 * self.lattice.diagonal + 2.0)

        musician = int(self.rng.integers(self.problem.num_musicians))
        change = self._neighbor(musician, distance)
        inverse = change.apply(self.coords, self.occupancy)

        new_score = self.score(self._placement())
        delta = new_score - self.current_score
        if delta > 0:
            accept = True
        elif temperature <= 0.0:
            accept = False
        else:
            accept = self.rng.random() < math.exp(delta * self.acceptance_scale / temperature)

        if accept:
            self.current_score = new_score
            self.accepted += 1
            if new_score > self.best_score:
                self.best_score = new_score
                self.best_coords = self.coords.copy()
        else:
            inverse.apply(self.coords, self.occupancy)

        logger.debug(
            "annealer(%s): step %d T=%.3f distance=%.1f delta=%d accepted=%s",
            self.problem.problem_id, self.step_i, temperature, distance, delta, accept,
        )

        self.step_i += 1
        if self.is_done():
            logger.debug(
                "annealer(%s): done after %d steps, best %d",
                self.problem.problem_id, self.step_i, self.best_score,
            )
            return self._placement(self.best_coords), True
        return self._placement(), False

    def check_consistency(self) -> None:
        """
        Verify that the occupancy table and musician coordinates agree.

        Raises:
            RuntimeError: If a coordinate is shared, a musician is off the
                lattice, or the table disagrees with the coordinates
        """
        self._require_initialized()
        seen = set()
        for m, (i, j) in enumerate(self.coords.tolist()):
            if not self.lattice.contains((i, j)):
                raise RuntimeError(f"Musician {m} is off the lattice at {(i, j)}")
            if (i, j) in seen:
                raise RuntimeError(f"Coordinate {(i, j)} is shared")
            seen.add((i, j))
            if self.occupancy[i, j] != m:
                raise RuntimeError(
                    f"Occupancy at {(i, j)} is {self.occupancy[i, j]}, expected {m}"
                )
        occupied = int((self.occupancy != EMPTY).sum())
        if occupied != len(self.coords):
            raise RuntimeError(
                f"{occupied} occupied coordinates for {len(self.coords)} musicians"
            )
