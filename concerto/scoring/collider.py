"""
Index-backed occlusion queries.

The collider indexes every occluder circle (pillars first, then placed
musicians) in a bounding-volume hierarchy and answers "is this musician
hidden from this attendee?" by testing only the circles whose boxes the line
of sight crosses.
"""

from dataclasses import dataclass
from typing import List, Optional
import numpy as np

from concerto.core.geometry import line_circle_intersection
from concerto.core.problem import MUSICIAN_RADIUS, Placement, ProblemInstance
from concerto.core.spatial import BoundingVolumeHierarchy


@dataclass(frozen=True)
class Obstacle:
    """An occluder in the index: ``kind`` is "pillar" or "musician"."""
    kind: str
    index: int


class Collider:
    """
    Occlusion oracle over pillars and placed musicians.

    Args:
        problem: The problem instance
        placement: Current musician placement (unplaced musicians are skipped)
        leaf_size: BVH leaf size
    """

    def __init__(
        self,
        problem: ProblemInstance,
        placement: Placement,
        leaf_size: int = 4,
    ):
        self.problem = problem
        self.leaf_size = leaf_size
        self._bvh: Optional[BoundingVolumeHierarchy] = None
        self.update(placement, rebuild=True)

    @property
    def pillar_count(self) -> int:
        return self.problem.num_pillars

    def update(self, placement: Placement, rebuild: bool = False) -> None:
        """
        Point the collider at a new placement.

        The index is refit in place when the same musicians are placed as
        before, and rebuilt otherwise (or when ``rebuild`` is set).
        """
        if len(placement) != self.problem.num_musicians:
            raise ValueError(
                f"Placement has {len(placement)} musicians, "
                f"problem has {self.problem.num_musicians}"
            )
        placed = np.flatnonzero(placement.placed_mask)
        self.positions = placement.positions.copy()
        centers = np.vstack([self.problem.pillars, placement.positions[placed]])
        radii = np.concatenate([
            self.problem.pillar_radii,
            np.full(len(placed), MUSICIAN_RADIUS),
        ])

        same_set = (
            self._bvh is not None
            and len(placed) == len(self._placed)
            and np.array_equal(placed, self._placed)
        )
        if rebuild or not same_set:
            self._bvh = BoundingVolumeHierarchy(centers, radii, self.leaf_size)
        else:
            self._bvh.refit(centers, radii)

        self._placed = placed
        self._node_of_musician = {int(m): self.pillar_count + k for k, m in enumerate(placed)}
        self._centers = centers
        self._radii = radii

    def lookup_obstacle(self, circle_index: int) -> Obstacle:
        if circle_index < self.pillar_count:
            return Obstacle("pillar", circle_index)
        return Obstacle("musician", int(self._placed[circle_index - self.pillar_count]))

    def candidates(self, attendee_index: int, musician_index: int) -> List[int]:
        """Circle indices whose bounding box the line of sight crosses."""
        start = self.problem.attendees[attendee_index]
        end = self.positions[musician_index]
        return self._bvh.query_segment((start[0], start[1]), (end[0], end[1]))

    def is_hidden(self, attendee_index: int, musician_index: int) -> bool:
        """
        Check whether any other occluder blocks the attendee's view.

        Raises:
            ValueError: If the musician is not placed
        """
        own = self._node_of_musician.get(musician_index)
        if own is None:
            raise ValueError(f"Musician {musician_index} is not placed")

        attendee = self.problem.attendees[attendee_index]
        musician = self.positions[musician_index]
        for circle in self.candidates(attendee_index, musician_index):
            if circle == own:
                continue
            if line_circle_intersection(
                attendee, musician, self._centers[circle], self._radii[circle]
            ):
                return True
        return False

    def visibility(self, attendee_rows: range) -> np.ndarray:
        """(rows, M) visibility block; unplaced musicians are never visible."""
        visible = np.zeros((len(attendee_rows), self.problem.num_musicians), dtype=bool)
        for r, a in enumerate(attendee_rows):
            for m in self._placed:
                visible[r, m] = not self.is_hidden(a, int(m))
        return visible
