"""
Refiners that improve a finished placement.

    - ShakeSolver: hill-climbs by nudging one musician at a time
    - VolumeMixer: turns each musician all the way up or all the way down

Both need a seed placement and are meant to run at the end of a chain, e.g.
``"greedy+shake+mix"``.
"""

import logging
from typing import Optional, Tuple
import numpy as np

from concerto.core.problem import VOLUME_MAX, VOLUME_MIN, Placement, ProblemInstance
from concerto.optimization.base import Solver
from concerto.optimization.constraints import find_invalid_positions
from concerto.scoring.scorer import musician_contributions

logger = logging.getLogger(__name__)

# N, S, E, W, NE, SE, NW, SW
DIRECTIONS = np.array([
    [0.0, 1.0], [0.0, -1.0], [1.0, 0.0], [-1.0, 0.0],
    [1.0, 1.0], [1.0, -1.0], [-1.0, 1.0], [-1.0, -1.0],
])


def _check_seed(name: str, problem: ProblemInstance, placement: Optional[Placement]) -> None:
    if placement is None or (problem.num_musicians > 0 and placement.is_empty):
        raise ValueError(f"{name} needs a non-empty seed placement")
    if len(placement) != problem.num_musicians:
        raise ValueError(
            f"Seed placement has {len(placement)} musicians, "
            f"problem has {problem.num_musicians}"
        )


class ShakeSolver(Solver):
    """
    Coordinate hill-climber.

    Each step tries the 8 compass nudges of size ``delta`` for musicians in
    order, and stops at the first valid move that strictly improves the
    score. The search resumes from that musician and direction on the next
    step. A full cycle without improvement (or ``max_cycles`` cycles)
    finishes the solver.

    Args:
        delta: Nudge length along each axis
        max_cycles: Maximum number of full passes over the musicians
    """

    PARAMETERS = {
        "delta": float,
        "max_cycles": int,
    }

    def __init__(self, delta: float = 0.01, max_cycles: int = 100, **kwargs):
        super().__init__(**kwargs)
        self.delta = delta
        self.max_cycles = max_cycles
        self.placement: Optional[Placement] = None
        self.current_score = 0

    def name(self) -> str:
        return "shake"

    def initialize(self, problem: ProblemInstance, placement: Optional[Placement] = None) -> None:
        _check_seed(self.name(), problem, placement)
        self.problem = problem
        self.placement = placement.copy()
        self.current_score = self.score(self.placement)
        self._musician = 0
        self._direction = 0
        self._improved = False
        self._cycles = 0
        self._done = False

    def solve_step(self) -> Tuple[Placement, bool]:
        self._require_initialized()
        positions = self.placement.positions
        placed = self.placement.placed_mask

        while not self._done:
            for m in range(self._musician, len(self.placement)):
                if not placed[m]:
                    self._direction = 0
                    continue
                for d in range(self._direction, len(DIRECTIONS)):
                    old = positions[m].copy()
                    positions[m] = old + self.delta * DIRECTIONS[d]
                    if find_invalid_positions(self.problem, self.placement, [m]):
                        positions[m] = old
                        continue
                    new_score = self.score(self.placement)
                    if new_score <= self.current_score:
                        positions[m] = old
                        continue

                    logger.debug("shake: %d => %d", self.current_score, new_score)
                    self.current_score = new_score
                    self._musician, self._direction = m, d
                    self._improved = True
                    return self.placement.copy(), False
                self._direction = 0

            self._cycles += 1
            if self._improved and self._cycles < self.max_cycles:
                logger.debug("shake: new cycle")
                self._musician = 0
                self._direction = 0
                self._improved = False
            else:
                logger.debug("shake: done after %d cycles", self._cycles)
                self._done = True

        return self.placement.copy(), True


class VolumeMixer(Solver):
    """
    Pick the best of volume 0, volume 10 and the seed volume per musician.

    A musician's contribution does not depend on the other musicians'
    volumes, so choosing each volume independently never lowers the score.
    """

    def name(self) -> str:
        return "mix"

    def initialize(self, problem: ProblemInstance, placement: Optional[Placement] = None) -> None:
        _check_seed(self.name(), problem, placement)
        self.problem = problem
        self.placement = placement.copy()

    def solve_step(self) -> Tuple[Placement, bool]:
        self._require_initialized()
        seed_volumes = self.placement.volume_array()
        n = len(self.placement)

        options = [
            seed_volumes,
            np.full(n, VOLUME_MIN),
            np.full(n, VOLUME_MAX),
        ]
        gains = np.stack([
            musician_contributions(
                self.problem, self.placement, volumes, self.score_method, self.workers
            )
            for volumes in options
        ])
        # argmax keeps the seed volume on ties
        choice = np.argmax(gains, axis=0)
        volumes = np.choose(choice, options) if n > 0 else np.zeros(0)

        logger.debug(
            "mix(%s): %d full volume, %d silent, %d others",
            self.problem.problem_id,
            int((volumes == VOLUME_MAX).sum()),
            int((volumes == VOLUME_MIN).sum()),
            int(((volumes != VOLUME_MAX) & (volumes != VOLUME_MIN)).sum()),
        )
        return Placement(self.placement.positions.copy(), volumes), True
