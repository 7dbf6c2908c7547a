"""
Incrementally maintained impact tables for greedy construction.

An :class:`ImpactMap` stores, for one instrument, the total impact a
musician of that instrument would have at every candidate grid position,
given the occluders placed so far. When a musician is committed the greedy
constructor:

    1. computes the (position, attendee) pairs the new occluder blocks
       (read-only, parallel over grid chunks), then
    2. subtracts those pairs from every impact map (sequential mutation).

The best free position is rescanned when the previous best was taken or lost
score, or when another touched position overtook it. Tastes may be negative,
so subtracting a blocked pair can raise a position's score.
"""

import logging
from typing import Optional, Sequence
import numpy as np

from concerto.core.geometry import targets_blocked
from concerto.core.grid import CandidateGrid
from concerto.core.parallel import chunk_ranges, chunk_size_for, concat_rows, parallel_map
from concerto.core.problem import MUSICIAN_RADIUS, ProblemInstance
from concerto.scoring.scorer import IMPACT_SCALE

logger = logging.getLogger(__name__)


def _impact_block(problem: ProblemInstance, instrument: int, points: np.ndarray) -> np.ndarray:
    """(n, A) int64 impacts of one instrument at ``points`` for every attendee."""
    diff = points[:, None, :] - problem.attendees[None, :, :]
    d2 = diff[..., 0] * diff[..., 0] + diff[..., 1] * diff[..., 1]
    tastes = problem.tastes[:, instrument]
    return np.ceil(IMPACT_SCALE * tastes[None, :] / d2).astype(np.int64)


class PillarBlockageMap:
    """
    Which (grid position, attendee) pairs are occluded by a pillar.

    Attributes:
        blocked: (N, A) boolean matrix
    """

    def __init__(self, blocked: np.ndarray):
        self.blocked = np.asarray(blocked, dtype=bool)
        self.blocked.setflags(write=False)

    @classmethod
    def build(
        cls,
        problem: ProblemInstance,
        grid: CandidateGrid,
        workers: Optional[int] = 1,
    ) -> "PillarBlockageMap":
        """Test every pair against every pillar (parallel over grid chunks)."""
        shape = (len(grid), problem.num_attendees)
        if not problem.has_pillars or problem.num_attendees == 0:
            return cls(np.zeros(shape, dtype=bool))

        def block(rows: range) -> np.ndarray:
            points = grid.points[rows.start:rows.stop]
            result = np.zeros((len(points), problem.num_attendees), dtype=bool)
            for center, radius in zip(problem.pillars, problem.pillar_radii):
                result |= targets_blocked(problem.attendees, points, center, radius)
            return result

        chunks = chunk_ranges(len(grid), chunk_size_for(problem.num_attendees))
        blocked = concat_rows(parallel_map(block, chunks, workers), problem.num_attendees)
        logger.debug("pillar blockage: %d blocked pairs", int(blocked.sum()))
        return cls(blocked)

    def is_sound_blocked(self, pos: int, attendee: int) -> bool:
        return bool(self.blocked[pos, attendee])

    @property
    def num_blocked_pairs(self) -> int:
        return int(self.blocked.sum())


class ImpactMap:
    """
    Impact of one instrument at every candidate position.

    Attributes:
        instrument: Instrument id
        scores: (N,) int64 total impact per grid position
        best_pos: Index of the best free position, or None if none is free
        best_score: Score at ``best_pos`` (None if none is free)
    """

    def __init__(self, instrument: int, scores: np.ndarray, grid: CandidateGrid):
        self.instrument = int(instrument)
        self.scores = np.asarray(scores, dtype=np.int64)
        self.best_pos: Optional[int] = None
        self.best_score: Optional[int] = None
        self.recompute_best(grid)

    @classmethod
    def build(
        cls,
        instrument: int,
        problem: ProblemInstance,
        grid: CandidateGrid,
        pillar_blockage: PillarBlockageMap,
        workers: Optional[int] = 1,
    ) -> "ImpactMap":
        """
        Sum, per grid position, the impact on every attendee not pillar-blocked.

        Args:
            instrument: Instrument id
            problem: The problem instance
            grid: Candidate grid
            pillar_blockage: Pillar occlusion of every (position, attendee)
            workers: Thread count for the fan-out over grid chunks
        """
        if problem.num_attendees == 0:
            return cls(instrument, np.zeros(len(grid), dtype=np.int64), grid)

        def block(rows: range) -> np.ndarray:
            impact = _impact_block(problem, instrument, grid.points[rows.start:rows.stop])
            impact[pillar_blockage.blocked[rows.start:rows.stop]] = 0
            return impact.sum(axis=1)

        chunks = chunk_ranges(len(grid), chunk_size_for(problem.num_attendees))
        scores = np.concatenate(parallel_map(block, chunks, workers))
        return cls(instrument, scores, grid)

    def recompute_best(self, grid: CandidateGrid) -> None:
        """Full scan for the best free position (lowest index on ties)."""
        free = grid.free_indices()
        if len(free) == 0:
            self.best_pos = None
            self.best_score = None
            return
        k = int(np.argmax(self.scores[free]))
        self.best_pos = int(free[k])
        self.best_score = int(self.scores[self.best_pos])

    @staticmethod
    def calculate_blocked_positions(
        new_pos: Sequence[float],
        problem: ProblemInstance,
        grid: CandidateGrid,
        already_blocked: Optional[np.ndarray] = None,
        workers: Optional[int] = 1,
    ) -> np.ndarray:
        """
        Pairs newly occluded by a musician placed at ``new_pos``.

        Only free grid positions are considered. Pairs flagged in
        ``already_blocked`` (an (N, A) boolean matrix) are skipped, so a pair
        is reported at most once over a whole greedy run.

        Returns:
            (K, 2) int64 array of (position index, attendee index) rows.
        """
        free = grid.free_indices()
        if len(free) == 0 or problem.num_attendees == 0:
            return np.zeros((0, 2), dtype=np.int64)

        def block(rows: range) -> np.ndarray:
            idx = free[rows.start:rows.stop]
            hit = targets_blocked(problem.attendees, grid.points[idx], new_pos, MUSICIAN_RADIUS)
            if already_blocked is not None:
                hit &= ~already_blocked[idx]
            pos, attendee = np.nonzero(hit)
            return np.column_stack([idx[pos], attendee]).astype(np.int64)

        chunks = chunk_ranges(len(free), chunk_size_for(problem.num_attendees))
        return concat_rows(parallel_map(block, chunks, workers), 2, dtype=np.int64)

    def update(
        self,
        problem: ProblemInstance,
        grid: CandidateGrid,
        newly_taken: Sequence[int],
        blocked_pairs: np.ndarray,
        pillar_blockage: PillarBlockageMap,
    ) -> None:
        """
        Subtract this instrument's impact for every newly blocked pair.

        Pairs already blocked by a pillar were never counted and are skipped.
        The best position is rescanned only if it was taken, lost score, or a
        touched free position now matches or beats it.
        """
        invalidated = self.best_pos is not None and self.best_pos in set(
            int(i) for i in newly_taken
        )

        pairs = np.asarray(blocked_pairs, dtype=np.int64).reshape(-1, 2)
        if len(pairs) > 0:
            pairs = pairs[~pillar_blockage.blocked[pairs[:, 0], pairs[:, 1]]]
        if len(pairs) > 0:
            pos, attendee = pairs[:, 0], pairs[:, 1]
            diff = grid.points[pos] - problem.attendees[attendee]
            d2 = diff[:, 0] * diff[:, 0] + diff[:, 1] * diff[:, 1]
            impact = np.ceil(
                IMPACT_SCALE * problem.tastes[attendee, self.instrument] / d2
            ).astype(np.int64)
            np.subtract.at(self.scores, pos, impact)
            if self.best_pos is not None and not invalidated:
                touched = np.unique(pos)
                touched_scores = self.scores[touched]
                if np.any(touched == self.best_pos):
                    invalidated = True
                elif np.any(touched_scores > self.best_score) or np.any(
                    (touched_scores == self.best_score) & (touched < self.best_pos)
                ):
                    # A negative taste raised this position
                    invalidated = True

        if invalidated or self.best_pos is None:
            self.recompute_best(grid)
