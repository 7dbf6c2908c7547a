"""
Tests for concerto.scoring.impact_map.

The incremental tables are checked against brute-force recomputation.
"""

import math

import pytest
import numpy as np


def _brute_force_scores(problem, grid, instrument, occluders):
    """Impact at every grid position, recomputed from scratch."""
    from concerto.core.geometry import line_circle_intersection

    scores = np.zeros(len(grid), dtype=np.int64)
    circles = [(c, r) for c, r in zip(problem.pillars, problem.pillar_radii)]
    circles += [(c, 5.0) for c in occluders]
    for p, point in enumerate(grid.points):
        total = 0
        for a, attendee in enumerate(problem.attendees):
            if any(line_circle_intersection(attendee, point, c, r) for c, r in circles):
                continue
            d2 = (point[0] - attendee[0]) ** 2 + (point[1] - attendee[1]) ** 2
            total += math.ceil(1_000_000 * problem.tastes[a, instrument] / d2)
        scores[p] = total
    return scores


@pytest.fixture
def pillar_grid(pillar_problem):
    """A coarse grid over the pillar problem's stage."""
    from concerto.core.grid import CandidateGrid

    return CandidateGrid.build(pillar_problem, density=3.0)


class TestPillarBlockageMap:
    """Tests for PillarBlockageMap."""

    def test_matches_brute_force(self, pillar_problem, pillar_grid):
        """Test every (position, attendee) pair against every pillar."""
        from concerto.core.geometry import line_circle_intersection
        from concerto.scoring.impact_map import PillarBlockageMap

        blockage = PillarBlockageMap.build(pillar_problem, pillar_grid)

        for p, point in enumerate(pillar_grid.points):
            for a, attendee in enumerate(pillar_problem.attendees):
                expected = any(
                    line_circle_intersection(attendee, point, c, r)
                    for c, r in zip(pillar_problem.pillars, pillar_problem.pillar_radii)
                )
                assert blockage.is_sound_blocked(p, a) == expected

    def test_no_pillars(self, small_problem):
        """Test that nothing is blocked without pillars."""
        from concerto.core.grid import CandidateGrid
        from concerto.scoring.impact_map import PillarBlockageMap

        grid = CandidateGrid.build(small_problem, density=3.0)
        blockage = PillarBlockageMap.build(small_problem, grid)

        assert blockage.blocked.shape == (len(grid), small_problem.num_attendees)
        assert blockage.num_blocked_pairs == 0

    def test_read_only(self, pillar_problem, pillar_grid):
        """Test that the blockage matrix can't be mutated."""
        from concerto.scoring.impact_map import PillarBlockageMap

        blockage = PillarBlockageMap.build(pillar_problem, pillar_grid)

        with pytest.raises(ValueError):
            blockage.blocked[0, 0] = True

    def test_workers_agree(self, pillar_problem, pillar_grid):
        """Test that the threaded build matches the serial one."""
        from concerto.scoring.impact_map import PillarBlockageMap

        serial = PillarBlockageMap.build(pillar_problem, pillar_grid, workers=1)
        threaded = PillarBlockageMap.build(pillar_problem, pillar_grid, workers=4)

        np.testing.assert_array_equal(serial.blocked, threaded.blocked)


class TestImpactMap:
    """Tests for ImpactMap."""

    def test_build_matches_brute_force(self, pillar_problem, pillar_grid):
        """Test the initial table of each instrument."""
        from concerto.scoring.impact_map import ImpactMap, PillarBlockageMap

        blockage = PillarBlockageMap.build(pillar_problem, pillar_grid)

        for instrument in pillar_problem.instruments:
            impact_map = ImpactMap.build(instrument, pillar_problem, pillar_grid, blockage)
            expected = _brute_force_scores(pillar_problem, pillar_grid, instrument, [])
            np.testing.assert_array_equal(impact_map.scores, expected)

    def test_best_is_lowest_index_maximum(self, small_problem):
        """Test the best-position scan."""
        from concerto.core.grid import CandidateGrid
        from concerto.scoring.impact_map import ImpactMap

        grid = CandidateGrid(np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [3.0, 0.0]]))
        impact_map = ImpactMap(0, np.array([5, 9, 9, 1]), grid)

        assert impact_map.best_pos == 1
        assert impact_map.best_score == 9

        grid.mark_taken([1])
        impact_map.recompute_best(grid)
        assert impact_map.best_pos == 2

        grid.mark_taken([0, 2, 3])
        impact_map.recompute_best(grid)
        assert impact_map.best_pos is None
        assert impact_map.best_score is None

    def test_incremental_matches_recomputation(self, pillar_problem, pillar_grid):
        """Test that subtracting blocked pairs equals rebuilding from scratch."""
        from concerto.scoring.impact_map import ImpactMap, PillarBlockageMap

        problem, grid = pillar_problem, pillar_grid
        blockage = PillarBlockageMap.build(problem, grid)
        maps = {i: ImpactMap.build(i, problem, grid, blockage) for i in problem.instruments}
        musician_blocked = np.zeros((len(grid), problem.num_attendees), dtype=bool)

        rng = np.random.default_rng(0)
        committed = []
        for _ in range(4):
            pos = int(rng.choice(grid.free_indices()))
            point = grid.points[pos].copy()
            committed.append(point)

            newly_taken = grid.mark_taken_near(point)
            pairs = ImpactMap.calculate_blocked_positions(
                point, problem, grid, already_blocked=musician_blocked
            )
            if len(pairs) > 0:
                assert not musician_blocked[pairs[:, 0], pairs[:, 1]].any()
                musician_blocked[pairs[:, 0], pairs[:, 1]] = True
            for impact_map in maps.values():
                impact_map.update(problem, grid, newly_taken, pairs, blockage)

        free = grid.free_indices()
        for instrument, impact_map in maps.items():
            expected = _brute_force_scores(problem, grid, instrument, committed)
            np.testing.assert_array_equal(impact_map.scores[free], expected[free])

            # Best position is the maximum over free positions
            assert impact_map.best_pos in set(free.tolist())
            assert impact_map.best_score == impact_map.scores[free].max()
            assert impact_map.best_pos == free[np.argmax(impact_map.scores[free])]

    def test_negative_taste_raises_new_best(self):
        """Test that a position lifted by a blocked negative-taste pair becomes the best."""
        from concerto.core.grid import CandidateGrid
        from concerto.core.problem import ProblemInstance
        from concerto.scoring.impact_map import ImpactMap, PillarBlockageMap

        problem = ProblemInstance(
            room_width=100, room_height=100,
            stage_width=40, stage_height=40, stage_bottom_left=(30, 50),
            musicians=[0], attendees=[[0.0, 0.0]], tastes=[[-100.0]],
        )
        grid = CandidateGrid(np.array([[0.0, 10.0], [0.0, 20.0], [0.0, 30.0]]))
        blockage = PillarBlockageMap(np.zeros((3, 1), dtype=bool))
        impact_map = ImpactMap(0, np.array([50, 40, 30]), grid)
        assert impact_map.best_pos == 0

        # ceil(1e6 * -100 / 400) = -250000, subtracted from position 1
        impact_map.update(problem, grid, [], np.array([[1, 0]]), blockage)

        assert impact_map.scores[1] == 250040
        assert impact_map.best_pos == 1
        assert impact_map.best_score == 250040

    def test_tie_with_lower_index_takes_best(self):
        """Test that a lifted position tying the best wins on lower index."""
        from concerto.core.grid import CandidateGrid
        from concerto.core.problem import ProblemInstance
        from concerto.scoring.impact_map import ImpactMap, PillarBlockageMap

        problem = ProblemInstance(
            room_width=100, room_height=100,
            stage_width=40, stage_height=40, stage_bottom_left=(30, 50),
            musicians=[0], attendees=[[0.0, 0.0]], tastes=[[-100.0]],
        )
        grid = CandidateGrid(np.array([[0.0, 10.0], [0.0, 20.0]]))
        blockage = PillarBlockageMap(np.zeros((2, 1), dtype=bool))
        # ceil(1e6 * -100 / 100) = -1000000
        impact_map = ImpactMap(0, np.array([-999990, 10]), grid)
        assert impact_map.best_pos == 1

        impact_map.update(problem, grid, [], np.array([[0, 0]]), blockage)

        assert impact_map.scores[0] == 10
        assert impact_map.best_pos == 0

    def test_blocked_positions_only_free(self, small_problem):
        """Test that taken positions never appear in blocked pairs."""
        from concerto.core.grid import CandidateGrid
        from concerto.scoring.impact_map import ImpactMap

        grid = CandidateGrid.build(small_problem, density=3.0)
        grid.mark_taken(np.arange(0, len(grid), 2))

        pairs = ImpactMap.calculate_blocked_positions((200.0, 110.0), small_problem, grid)

        assert pairs.dtype == np.int64
        assert pairs.shape[1] == 2
        assert not grid.taken[pairs[:, 0]].any()

    def test_blocked_positions_all_taken(self, small_problem):
        """Test the empty result when the grid is full."""
        from concerto.core.grid import CandidateGrid
        from concerto.scoring.impact_map import ImpactMap

        grid = CandidateGrid.build(small_problem, density=3.0)
        grid.mark_taken(np.arange(len(grid)))

        pairs = ImpactMap.calculate_blocked_positions((200.0, 110.0), small_problem, grid)

        assert pairs.shape == (0, 2)
