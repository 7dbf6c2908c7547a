"""
Bounding-volume hierarchy over circular occluders.

The hierarchy answers segment queries ("which circles could block the line
of sight from this attendee to that musician?") with a superset of the true
hits. Candidates are then tested exactly with
:func:`concerto.core.geometry.line_circle_intersection`.

Nodes are laid out in pre-order, so every child index is larger than its
parent index. ``refit`` relies on this to propagate bounds bottom-up with a
single reverse sweep.
"""

from typing import List, Optional, Tuple
import numpy as np


def _segment_hits_box(
    ox: float, oy: float,
    dx: float, dy: float,
    min_x: float, min_y: float,
    max_x: float, max_y: float,
    max_t: float,
) -> bool:
    """Slab test of the segment origin + t * direction, t in [0, max_t]."""
    t_near = 0.0
    t_far = max_t

    if dx == 0.0:
        if ox < min_x or ox > max_x:
            return False
    else:
        t1 = (min_x - ox) / dx
        t2 = (max_x - ox) / dx
        if t1 > t2:
            t1, t2 = t2, t1
        t_near = max(t_near, t1)
        t_far = min(t_far, t2)
        if t_near > t_far:
            return False

    if dy == 0.0:
        if oy < min_y or oy > max_y:
            return False
    else:
        t1 = (min_y - oy) / dy
        t2 = (max_y - oy) / dy
        if t1 > t2:
            t1, t2 = t2, t1
        t_near = max(t_near, t1)
        t_far = min(t_far, t2)
        if t_near > t_far:
            return False

    return True


class BoundingVolumeHierarchy:
    """
    Axis-aligned bounding-box tree over circles.

    Attributes:
        leaf_size: Maximum number of circles stored in a leaf
        order: Permutation of circle indices; leaves reference slices of it
        depth: Depth of the deepest leaf (root has depth 1)

    Example:
        >>> bvh = BoundingVolumeHierarchy(np.array([[5.0, 5.0]]), np.array([1.0]))
        >>> bvh.query((0.0, 0.0), (10.0, 10.0))
        [0]
    """

    def __init__(
        self,
        centers: np.ndarray,
        radii: np.ndarray,
        leaf_size: int = 4,
    ):
        if leaf_size < 1:
            raise ValueError(f"leaf_size must be >= 1, got {leaf_size}")
        self.leaf_size = leaf_size
        self.build(centers, radii)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def build(self, centers: np.ndarray, radii: np.ndarray) -> None:
        """
        (Re)build the hierarchy from scratch in O(N log N).

        Args:
            centers: (N, 2) circle centers
            radii: (N,) circle radii (or a scalar)
        """
        centers = np.asarray(centers, dtype=np.float64).reshape(-1, 2)
        radii = np.broadcast_to(
            np.asarray(radii, dtype=np.float64), (centers.shape[0],)
        ).copy()

        if not np.all(np.isfinite(centers)):
            raise ValueError("BVH circles must have finite centers")

        self._centers = centers
        self._radii = radii
        self._box_min = centers - radii[:, None]
        self._box_max = centers + radii[:, None]
        self.order = np.arange(len(centers))

        self._node_min: List[np.ndarray] = []
        self._node_max: List[np.ndarray] = []
        self._left: List[int] = []
        self._right: List[int] = []
        self._start: List[int] = []
        self._end: List[int] = []
        self.depth = 0

        if len(centers) > 0:
            self._build_node(0, len(centers), 1)

        self._node_min_arr = np.array(self._node_min).reshape(-1, 2)
        self._node_max_arr = np.array(self._node_max).reshape(-1, 2)
        self._sync_lists()

    def _build_node(self, start: int, end: int, level: int) -> int:
        node = len(self._left)
        idx = self.order[start:end]
        self._node_min.append(self._box_min[idx].min(axis=0))
        self._node_max.append(self._box_max[idx].max(axis=0))
        self._left.append(-1)
        self._right.append(-1)
        self._start.append(start)
        self._end.append(end)
        self.depth = max(self.depth, level)

        if end - start <= self.leaf_size:
            return node

        # Median split along the longest axis of the centroid box
        centroids = self._centers[idx]
        extent = centroids.max(axis=0) - centroids.min(axis=0)
        axis = int(np.argmax(extent))
        mid = (start + end) // 2
        part = np.argpartition(centroids[:, axis], mid - start)
        self.order[start:end] = idx[part]

        self._left[node] = self._build_node(start, mid, level + 1)
        self._right[node] = self._build_node(mid, end, level + 1)
        return node

    def refit(self, centers: np.ndarray, radii: Optional[np.ndarray] = None) -> None:
        """
        Update node bounds after the circles moved, keeping the topology.

        Cheap compared to ``build`` but the tree quality degrades when the
        circles move far; rebuild in that case.

        Args:
            centers: (N, 2) new circle centers, same N as the last build
            radii: Optional (N,) new radii; previous radii are kept if None
        """
        centers = np.asarray(centers, dtype=np.float64).reshape(-1, 2)
        if centers.shape[0] != self._centers.shape[0]:
            raise ValueError(
                f"refit expects {self._centers.shape[0]} circles, got {centers.shape[0]}"
            )
        if radii is not None:
            self._radii = np.broadcast_to(
                np.asarray(radii, dtype=np.float64), (centers.shape[0],)
            ).copy()
        if not np.all(np.isfinite(centers)):
            raise ValueError("BVH circles must have finite centers")

        self._centers = centers
        self._box_min = centers - self._radii[:, None]
        self._box_max = centers + self._radii[:, None]

        for node in range(len(self._left) - 1, -1, -1):
            left, right = self._left[node], self._right[node]
            if left < 0:
                idx = self.order[self._start[node]:self._end[node]]
                self._node_min_arr[node] = self._box_min[idx].min(axis=0)
                self._node_max_arr[node] = self._box_max[idx].max(axis=0)
            else:
                self._node_min_arr[node] = np.minimum(
                    self._node_min_arr[left], self._node_min_arr[right]
                )
                self._node_max_arr[node] = np.maximum(
                    self._node_max_arr[left], self._node_max_arr[right]
                )

        self._sync_lists()

    def _sync_lists(self) -> None:
        # Plain lists are much faster than NumPy scalars in the traversal loop
        self._min_list = self._node_min_arr.tolist()
        self._max_list = self._node_max_arr.tolist()
        self._order_list = self.order.tolist()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        origin: Tuple[float, float],
        direction: Tuple[float, float],
        max_t: float = 1.0,
    ) -> List[int]:
        """
        Return indices of circles whose bounding box the segment crosses.

        The segment is ``origin + t * direction`` for t in [0, max_t]; with
        the default ``max_t=1`` and ``direction = end - origin`` this is the
        closed segment from origin to end.

        Args:
            origin: Segment start (x, y)
            direction: Segment direction (x, y)
            max_t: Upper bound on the segment parameter

        Returns:
            Sorted list of candidate circle indices.
        """
        if not self._left:
            return []

        ox, oy = float(origin[0]), float(origin[1])
        dx, dy = float(direction[0]), float(direction[1])
        mins, maxs = self._min_list, self._max_list

        result = []
        stack = [0]
        while stack:
            node = stack.pop()
            lo, hi = mins[node], maxs[node]
            if not _segment_hits_box(ox, oy, dx, dy, lo[0], lo[1], hi[0], hi[1], max_t):
                continue
            left = self._left[node]
            if left < 0:
                result.extend(self._order_list[self._start[node]:self._end[node]])
            else:
                stack.append(self._right[node])
                stack.append(left)

        result.sort()
        return result

    def query_segment(
        self,
        start: Tuple[float, float],
        end: Tuple[float, float],
    ) -> List[int]:
        """Candidates for the closed segment from ``start`` to ``end``."""
        return self.query(start, (end[0] - start[0], end[1] - start[1]), 1.0)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return int(self._centers.shape[0])

    @property
    def num_nodes(self) -> int:
        return len(self._left)

    @property
    def bounds(self) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """(min, max) corners of the root box, or None for an empty tree."""
        if not self._left:
            return None
        return self._node_min_arr[0].copy(), self._node_max_arr[0].copy()

    def node_bounds(self, node: int) -> Tuple[np.ndarray, np.ndarray]:
        return self._node_min_arr[node].copy(), self._node_max_arr[node].copy()

    def is_leaf(self, node: int) -> bool:
        return self._left[node] < 0

    def children(self, node: int) -> Tuple[int, int]:
        return self._left[node], self._right[node]

    def leaf_indices(self, node: int) -> List[int]:
        return self._order_list[self._start[node]:self._end[node]]
