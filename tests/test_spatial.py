"""
Tests for concerto.core.spatial.
"""

import pytest
import numpy as np


def _brute_force_hits(centers, radii, start, end):
    """Indices of circles that truly block the segment."""
    from concerto.core.geometry import line_circle_intersection

    return {
        k for k in range(len(centers))
        if line_circle_intersection(start, end, centers[k], radii[k])
    }


class TestBoundingVolumeHierarchy:
    """Tests for BoundingVolumeHierarchy."""

    @pytest.fixture
    def circles(self):
        """Random circle set."""
        rng = np.random.default_rng(3)
        centers = rng.uniform(0, 200, size=(60, 2))
        radii = rng.uniform(1, 6, size=60)
        return centers, radii

    def test_single_circle(self):
        """Test the simplest hit."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        bvh = BoundingVolumeHierarchy(np.array([[5.0, 5.0]]), np.array([1.0]))

        assert bvh.query((0.0, 0.0), (10.0, 10.0)) == [0]
        assert bvh.query_segment((0.0, 20.0), (20.0, 20.0)) == []

    def test_empty_tree(self):
        """Test that an empty hierarchy answers nothing."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        bvh = BoundingVolumeHierarchy(np.zeros((0, 2)), np.zeros(0))

        assert len(bvh) == 0
        assert bvh.num_nodes == 0
        assert bvh.bounds is None
        assert bvh.query_segment((0, 0), (100, 100)) == []

    def test_query_is_superset(self, circles):
        """Test that every true hit is among the candidates."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        centers, radii = circles
        bvh = BoundingVolumeHierarchy(centers, radii)
        rng = np.random.default_rng(11)

        for _ in range(200):
            start, end = rng.uniform(-20, 220, size=(2, 2))
            candidates = set(bvh.query_segment(start, end))
            assert _brute_force_hits(centers, radii, start, end) <= candidates

    def test_query_sorted(self, circles):
        """Test that candidates come back sorted and unique."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        centers, radii = circles
        bvh = BoundingVolumeHierarchy(centers, radii)

        result = bvh.query_segment((0, 0), (200, 200))

        assert result == sorted(set(result))

    def test_refit_keeps_superset(self, circles):
        """Test queries after moving the circles."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        centers, radii = circles
        bvh = BoundingVolumeHierarchy(centers, radii)
        rng = np.random.default_rng(5)

        moved = centers + rng.normal(0, 30, size=centers.shape)
        bvh.refit(moved)

        for _ in range(200):
            start, end = rng.uniform(-50, 250, size=(2, 2))
            candidates = set(bvh.query_segment(start, end))
            assert _brute_force_hits(moved, radii, start, end) <= candidates

    def test_refit_with_new_radii(self, circles):
        """Test that refit accepts new radii and grows the root box."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        centers, radii = circles
        bvh = BoundingVolumeHierarchy(centers, radii)
        lo, hi = bvh.bounds

        bvh.refit(centers, radii + 10.0)
        new_lo, new_hi = bvh.bounds

        assert np.all(new_lo <= lo - 10.0 + 1e-9)
        assert np.all(new_hi >= hi + 10.0 - 1e-9)

    def test_refit_count_mismatch(self, circles):
        """Test that refit rejects a different number of circles."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        centers, radii = circles
        bvh = BoundingVolumeHierarchy(centers, radii)

        with pytest.raises(ValueError):
            bvh.refit(centers[:-1])

    def test_non_finite_rejected(self):
        """Test that NaN centers are rejected."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        with pytest.raises(ValueError):
            BoundingVolumeHierarchy(np.array([[np.nan, 0.0]]), np.array([1.0]))

    def test_invalid_leaf_size(self):
        """Test leaf size validation."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        with pytest.raises(ValueError):
            BoundingVolumeHierarchy(np.zeros((1, 2)), np.ones(1), leaf_size=0)

    @pytest.mark.parametrize("leaf_size", [1, 2, 4, 16])
    def test_structure(self, circles, leaf_size):
        """Test that leaves partition the circles and children enclose."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        centers, radii = circles
        bvh = BoundingVolumeHierarchy(centers, radii, leaf_size=leaf_size)

        seen = []
        for node in range(bvh.num_nodes):
            lo, hi = bvh.node_bounds(node)
            if bvh.is_leaf(node):
                leaf = bvh.leaf_indices(node)
                assert 1 <= len(leaf) <= leaf_size
                seen.extend(leaf)
            else:
                for child in bvh.children(node):
                    assert child > node
                    c_lo, c_hi = bvh.node_bounds(child)
                    assert np.all(c_lo >= lo) and np.all(c_hi <= hi)

        assert sorted(seen) == list(range(len(centers)))

    def test_scalar_radius(self):
        """Test that a scalar radius is broadcast."""
        from concerto.core.spatial import BoundingVolumeHierarchy

        bvh = BoundingVolumeHierarchy(np.array([[0.0, 0.0], [10.0, 0.0]]), 5.0)
        lo, hi = bvh.bounds

        np.testing.assert_allclose(lo, [-5.0, -5.0])
        np.testing.assert_allclose(hi, [15.0, 5.0])
