"""
Tests for concerto.core.problem and concerto.core.parallel.
"""

import pytest
import numpy as np


class TestProblemInstance:
    """Tests for ProblemInstance."""

    def test_derived_properties(self, pillar_problem):
        """Test counts and bounds."""
        assert pillar_problem.num_musicians == 6
        assert pillar_problem.num_attendees == 30
        assert pillar_problem.num_pillars == 2
        assert pillar_problem.has_pillars
        assert pillar_problem.instruments == [0, 1, 2]
        assert pillar_problem.stage_bounds == (100.0, 100.0, 300.0, 300.0)
        assert pillar_problem.placeable_bounds() == (110.0, 110.0, 290.0, 290.0)

    def test_arrays_read_only(self, small_problem):
        """Test that problem arrays can't be mutated."""
        with pytest.raises(ValueError):
            small_problem.attendees[0, 0] = 1.0
        with pytest.raises(ValueError):
            small_problem.musicians[0] = 2

    def test_dict_round_trip(self, pillar_problem):
        """Test the contest JSON layout."""
        from concerto.core.problem import ProblemInstance

        data = pillar_problem.to_dict()
        restored = ProblemInstance.from_dict(data, problem_id="copy")

        assert data["attendees"][0].keys() == {"x", "y", "tastes"}
        assert restored.problem_id == "copy"
        np.testing.assert_array_equal(restored.attendees, pillar_problem.attendees)
        np.testing.assert_array_equal(restored.tastes, pillar_problem.tastes)
        np.testing.assert_array_equal(restored.pillars, pillar_problem.pillars)
        np.testing.assert_array_equal(restored.pillar_radii, pillar_problem.pillar_radii)

    def test_from_dict_without_pillars(self):
        """Test a minimal problem description."""
        from concerto.core.problem import ProblemInstance

        problem = ProblemInstance.from_dict({
            "room_width": 100, "room_height": 100,
            "stage_width": 40, "stage_height": 40, "stage_bottom_left": [30, 50],
            "musicians": [0, 1],
            "attendees": [{"x": 10, "y": 10, "tastes": [1.0, 2.0]}],
        })

        assert problem.num_pillars == 0
        assert not problem.has_pillars
        assert problem.tastes.shape == (1, 2)

    @pytest.mark.parametrize("kwargs", [
        {"tastes": [[1.0], [2.0]]},
        {"musicians": [0, 3]},
        {"musicians": [-1]},
        {"pillars": [[1.0, 1.0]]},
        {"stage_width": -5},
    ])
    def test_validation(self, kwargs):
        """Test inconsistent problems."""
        from concerto.core.problem import ProblemInstance

        base = dict(
            room_width=100, room_height=100,
            stage_width=40, stage_height=40, stage_bottom_left=(30, 50),
            musicians=[0, 1], attendees=[[10.0, 10.0]], tastes=[[1.0, 2.0]],
        )
        base.update(kwargs)

        with pytest.raises(ValueError):
            ProblemInstance(**base)


class TestPlacement:
    """Tests for Placement."""

    def test_empty(self):
        """Test an all-unplaced placement."""
        from concerto.core.problem import Placement

        placement = Placement.empty(3)

        assert len(placement) == 3
        assert placement.is_empty
        assert not placement.is_complete
        assert placement.num_placed == 0

    def test_volumes_clamped(self):
        """Test volume defaults and clamping."""
        from concerto.core.problem import Placement

        assert list(Placement([[1, 1], [2, 2]]).volume_array()) == [1.0, 1.0]
        assert list(Placement([[1, 1], [2, 2]], [-3.0, 12.0]).volumes) == [0.0, 10.0]

    def test_volume_count_mismatch(self):
        """Test that one volume per musician is required."""
        from concerto.core.problem import Placement

        with pytest.raises(ValueError):
            Placement([[1, 1], [2, 2]], [1.0])

    def test_copy_is_independent(self):
        """Test that copies don't share arrays."""
        from concerto.core.problem import Placement

        original = Placement([[1.0, 1.0]], [2.0])
        clone = original.copy()
        clone.positions[0, 0] = 9.0
        clone.volumes[0] = 5.0

        assert original.positions[0, 0] == 1.0
        assert original.volumes[0] == 2.0

    def test_dict_round_trip(self):
        """Test the solution layout."""
        from concerto.core.problem import Placement

        placement = Placement([[1.0, 2.0], [3.0, 4.0]], [0.0, 10.0])
        data = placement.to_dict()
        restored = Placement.from_dict(data)

        assert data["placements"][1] == {"x": 3.0, "y": 4.0}
        np.testing.assert_array_equal(restored.positions, placement.positions)
        np.testing.assert_array_equal(restored.volumes, placement.volumes)


class TestParallel:
    """Tests for the fan-out helpers."""

    def test_chunk_ranges(self):
        """Test that chunks cover the range in order."""
        from concerto.core.parallel import chunk_ranges

        chunks = chunk_ranges(10, 4)

        assert chunks == [range(0, 4), range(4, 8), range(8, 10)]
        assert chunk_ranges(0, 4) == []

    def test_chunk_size_for(self):
        """Test the rows-per-chunk budget."""
        from concerto.core.parallel import chunk_size_for

        assert chunk_size_for(1000, budget=10_000) == 10
        assert chunk_size_for(0) == 2_000_000
        assert chunk_size_for(10 ** 9) == 1

    @pytest.mark.parametrize("workers", [1, 4, None])
    def test_parallel_map_preserves_order(self, workers):
        """Test ordered results for every worker setting."""
        from concerto.core.parallel import parallel_map

        assert parallel_map(lambda x: x * x, range(20), workers) == [x * x for x in range(20)]

    def test_parallel_map_propagates_errors(self):
        """Test that worker exceptions reach the caller."""
        from concerto.core.parallel import parallel_map

        def fail(x):
            raise KeyError(x)

        with pytest.raises(KeyError):
            parallel_map(fail, [1, 2, 3], workers=2)

    def test_resolve_workers(self):
        """Test worker count normalization."""
        from concerto.core.parallel import resolve_workers

        assert resolve_workers(1) == 1
        assert resolve_workers(-3) == 1
        assert resolve_workers(None) >= 1
        assert resolve_workers(0) >= 1

    def test_concat_rows_empty(self):
        """Test stacking no blocks."""
        from concerto.core.parallel import concat_rows

        result = concat_rows([], 2, dtype=np.int64)

        assert result.shape == (0, 2)
        assert result.dtype == np.int64
