"""
Greedy constructive placement.

One musician is committed per step: the instrument whose impact map offers
the highest score at its best free grid position wins, and its lowest-index
remaining musician goes there. Nearby grid positions become taken and the
pairs newly occluded by the musician are subtracted from the impact maps of
instruments that still have musicians to place.
"""

import logging
from typing import Dict, List, Optional, Tuple
import numpy as np

from concerto.core.grid import CandidateGrid
from concerto.core.parallel import parallel_map
from concerto.core.problem import MIN_SEPARATION, Placement, ProblemInstance
from concerto.optimization.base import Solver
from concerto.scoring.impact_map import ImpactMap, PillarBlockageMap

logger = logging.getLogger(__name__)


class GreedySolver(Solver):
    """
    Greedy constructor over a candidate grid.

    Args:
        density: Candidate grid budget multiplier
        min_per_musician: Lower bound on grid points per musician

    Example:
        >>> solver = GreedySolver()
        >>> solution = solver.solve(problem)
        >>> solution.placement.is_complete
        True
    """

    PARAMETERS = {
        "density": float,
        "min_per_musician": int,
    }

    def __init__(self, density: float = 50.0, min_per_musician: int = 4, **kwargs):
        super().__init__(**kwargs)
        self.density = density
        self.min_per_musician = min_per_musician

        self.grid: Optional[CandidateGrid] = None
        self.pillar_blockage: Optional[PillarBlockageMap] = None
        self.impact_maps: Dict[int, ImpactMap] = {}
        self.musician_blocked: Optional[np.ndarray] = None
        self.positions: Optional[np.ndarray] = None
        self.remaining_musicians: List[int] = []

    @classmethod
    def from_config(cls, config=None, rng=None) -> "GreedySolver":
        if config is None:
            return cls(rng=rng)
        return cls(
            density=config.grid.density,
            min_per_musician=config.grid.min_per_musician,
            rng=rng,
            score_method=config.scoring.method,
            workers=config.scoring.workers,
        )

    def name(self) -> str:
        return "greedy"

    def get_impact_map(self, instrument: int) -> Optional[ImpactMap]:
        return self.impact_maps.get(instrument)

    def initialize(self, problem: ProblemInstance, placement: Optional[Placement] = None) -> None:
        """
        Build the candidate grid, the pillar blockage and the impact maps.

        Raises:
            ValueError: If a seed placement has the wrong musician count or
                placed musicians, or the stage leaves no candidate positions
        """
        if placement is not None and len(placement) != problem.num_musicians:
            raise ValueError(
                f"Seed placement has {len(placement)} musicians, "
                f"problem has {problem.num_musicians}"
            )
        if placement is not None and not placement.is_empty:
            raise ValueError("greedy must start from an empty placement")

        self.problem = problem
        self.grid = CandidateGrid.build(problem, self.density, self.min_per_musician)
        self.positions = np.full((problem.num_musicians, 2), np.nan)
        self.remaining_musicians = list(range(problem.num_musicians))
        self.musician_blocked = np.zeros((len(self.grid), problem.num_attendees), dtype=bool)

        logger.debug("greedy(%s): computing pillar blockage map", problem.problem_id)
        self.pillar_blockage = PillarBlockageMap.build(problem, self.grid, self.workers)
        logger.debug(
            "greedy(%s): %d blocked pairs",
            problem.problem_id, self.pillar_blockage.num_blocked_pairs,
        )

        # Instruments are built concurrently; each build runs serially inside
        instruments = problem.instruments
        maps = parallel_map(
            lambda i: ImpactMap.build(i, problem, self.grid, self.pillar_blockage),
            instruments,
            self.workers,
        )
        self.impact_maps = dict(zip(instruments, maps))
        logger.debug(
            "greedy(%s): initialized, %d grid positions, %d instruments",
            problem.problem_id, len(self.grid), len(instruments),
        )

    def _placement(self) -> Placement:
        return Placement(self.positions.copy())

    def solve_step(self) -> Tuple[Placement, bool]:
        """
        Commit one musician.

        Raises:
            RuntimeError: If not initialized, or no free grid position is
                left while musicians remain
        """
        self._require_initialized()
        if not self.remaining_musicians:
            return self._placement(), True

        remaining: Dict[int, List[int]] = {}
        for m in self.remaining_musicians:
            remaining.setdefault(int(self.problem.musicians[m]), []).append(m)

        # Highest best score wins; ties go to the lowest instrument id
        best_instrument = None
        best_score = None
        for instrument in sorted(remaining):
            impact_map = self.impact_maps[instrument]
            if impact_map.best_pos is None:
                continue
            if best_score is None or impact_map.best_score > best_score:
                best_score = impact_map.best_score
                best_instrument = instrument
        if best_instrument is None:
            raise RuntimeError(
                f"No free candidate position left for "
                f"{len(self.remaining_musicians)} musicians"
            )

        musician = remaining[best_instrument][0]
        best_pos = self.impact_maps[best_instrument].best_pos
        point = self.grid.points[best_pos]
        self.positions[musician] = point
        self.remaining_musicians.remove(musician)
        remaining[best_instrument].remove(musician)

        newly_taken = self.grid.mark_taken_near(point, MIN_SEPARATION)

        # Read-only phase, then sequential mutation
        blocked_pairs = ImpactMap.calculate_blocked_positions(
            point, self.problem, self.grid, self.musician_blocked, self.workers
        )
        if len(blocked_pairs) > 0:
            self.musician_blocked[blocked_pairs[:, 0], blocked_pairs[:, 1]] = True

        for instrument, musicians in remaining.items():
            if not musicians:
                continue
            self.impact_maps[instrument].update(
                self.problem, self.grid, newly_taken, blocked_pairs, self.pillar_blockage
            )

        logger.debug(
            "greedy(%s): placed musician %d (instrument %d) at (%.2f, %.2f), %d left",
            self.problem.problem_id, musician, best_instrument, point[0], point[1],
            len(self.remaining_musicians),
        )
        return self._placement(), not self.remaining_musicians
