"""
Tests for concerto.optimization.constraints.
"""

import pytest
import numpy as np


@pytest.fixture
def square_problem():
    """Four musicians on a 100x100 stage at the origin."""
    from concerto.core.problem import ProblemInstance

    return ProblemInstance(
        room_width=300, room_height=300,
        stage_width=100, stage_height=100, stage_bottom_left=(0, 0),
        musicians=[0, 1, 0, 1],
        attendees=[[200.0, 200.0]], tastes=[[10.0, 20.0]],
    )


class TestFindInvalidPositions:
    """Tests for find_invalid_positions."""

    def test_valid_placement(self, square_problem):
        """Test a legal placement."""
        from concerto.core.problem import Placement
        from concerto.optimization.constraints import find_invalid_positions, is_valid_placement

        placement = Placement([[20, 20], [40, 20], [20, 40], [40, 40]])

        assert find_invalid_positions(square_problem, placement) == []
        assert is_valid_placement(square_problem, placement)

    def test_too_close(self, square_problem):
        """Test that both musicians of a close pair are reported."""
        from concerto.core.problem import Placement
        from concerto.optimization.constraints import find_invalid_positions

        placement = Placement([[30, 60], [35, 60], [60, 20], [80, 80]])

        assert find_invalid_positions(square_problem, placement) == [0, 1]

    def test_exact_separation_allowed(self, square_problem):
        """Test the boundary cases: exactly 10 apart and exactly 10 from the edge."""
        from concerto.core.problem import Placement
        from concerto.optimization.constraints import find_invalid_positions

        placement = Placement([[10, 10], [20, 10], [90, 90], [90, 80]])

        assert find_invalid_positions(square_problem, placement) == []

    def test_near_edge(self, square_problem):
        """Test musicians inside the edge clearance."""
        from concerto.core.problem import Placement
        from concerto.optimization.constraints import find_invalid_positions

        placement = Placement([[9.99, 50], [50, 50], [50, 90.01], [120, 120]])

        assert find_invalid_positions(square_problem, placement) == [0, 2, 3]

    def test_unplaced(self, square_problem):
        """Test that unplaced musicians are invalid."""
        from concerto.core.problem import Placement
        from concerto.optimization.constraints import find_invalid_positions

        placement = Placement([[20, 20], [np.nan, np.nan], [20, 40], [40, 40]])

        assert find_invalid_positions(square_problem, placement) == [1]

    def test_subset(self, square_problem):
        """Test reporting only selected musicians."""
        from concerto.core.problem import Placement
        from concerto.optimization.constraints import find_invalid_positions

        placement = Placement([[30, 60], [35, 60], [60, 20], [80, 80]])

        assert find_invalid_positions(square_problem, placement, [1, 2]) == [1]
        assert find_invalid_positions(square_problem, placement, [3]) == []

    def test_size_mismatch(self, square_problem):
        """Test that a placement of the wrong length is rejected."""
        from concerto.core.problem import Placement
        from concerto.optimization.constraints import find_invalid_positions

        with pytest.raises(ValueError):
            find_invalid_positions(square_problem, Placement([[20, 20]]))


class TestValidatePlacement:
    """Tests for validate_placement."""

    def test_raises_with_indices(self, square_problem):
        """Test the error message."""
        from concerto.core.problem import Placement
        from concerto.optimization.constraints import validate_placement

        placement = Placement([[30, 60], [35, 60], [60, 20], [80, 80]])

        with pytest.raises(ValueError, match="musicians: 0, 1$"):
            validate_placement(square_problem, placement)

    def test_truncates_long_lists(self):
        """Test that long offender lists are shortened."""
        from concerto.core.problem import Placement, ProblemInstance
        from concerto.optimization.constraints import validate_placement

        problem = ProblemInstance(
            room_width=300, room_height=300,
            stage_width=100, stage_height=100, stage_bottom_left=(0, 0),
            musicians=[0] * 25, attendees=[[200.0, 200.0]], tastes=[[1.0]],
        )

        with pytest.raises(ValueError, match=r"\(and 5 more\)"):
            validate_placement(problem, Placement.empty(25))

    def test_passes(self, square_problem):
        """Test that a legal placement passes silently."""
        from concerto.core.problem import Placement
        from concerto.optimization.constraints import validate_placement

        validate_placement(square_problem, Placement([[20, 20], [40, 20], [20, 40], [40, 40]]))
