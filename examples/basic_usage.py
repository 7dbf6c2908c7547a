#!/usr/bin/env python3
"""
Basic usage example for the Concerto musician placement engine.

This script demonstrates the core functionality of the concerto package:
1. Building a problem instance
2. Scoring a hand-made placement
3. Running greedy construction and refining chains
4. Visualizing results
"""

import sys
import os

# Add concerto package to path (for development)
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import numpy as np
from pathlib import Path

from concerto import (
    ConcertoConfig,
    Placement,
    ProblemInstance,
    optimize_placement,
    score,
    validate_placement,
)
from concerto.config import configure_logging
from concerto.optimization import GreedySolver, run_comparison
from concerto.visualization import (
    plot_comparison,
    plot_impact_map,
    plot_placement,
    save_figure,
)


def make_concert_hall(
    num_musicians: int = 12,
    num_attendees: int = 200,
    num_instruments: int = 4,
    with_pillars: bool = True,
    seed: int = 42,
) -> ProblemInstance:
    """A 1000x800 hall with the stage at the back and the crowd in front."""
    rng = np.random.default_rng(seed)

    attendees = np.column_stack([
        rng.uniform(20, 980, size=num_attendees),
        rng.uniform(20, 420, size=num_attendees),
    ])
    tastes = rng.normal(300, 400, size=(num_attendees, num_instruments))
    musicians = rng.integers(0, num_instruments, size=num_musicians)

    pillars = np.zeros((0, 2))
    radii = np.zeros(0)
    if with_pillars:
        pillars = np.array([[300.0, 460.0], [700.0, 460.0]])
        radii = np.array([15.0, 15.0])

    return ProblemInstance(
        room_width=1000,
        room_height=800,
        stage_width=400,
        stage_height=200,
        stage_bottom_left=(300, 520),
        musicians=musicians,
        attendees=attendees,
        tastes=tastes,
        pillars=pillars,
        pillar_radii=radii,
        problem_id="concert-hall",
    )


def example_scoring():
    """Example: Score a hand-made placement."""
    print("=" * 60)
    print("SCORING EXAMPLE")
    print("=" * 60)

    problem = make_concert_hall(with_pillars=False)

    # Musicians in a row along the front of the stage
    xs = np.linspace(320, 680, problem.num_musicians)
    placement = Placement(np.column_stack([xs, np.full_like(xs, 540.0)]))
    validate_placement(problem, placement)

    print(f"\n   Musicians: {problem.num_musicians}")
    print(f"   Attendees: {problem.num_attendees}")
    print(f"   Score (exact): {score(problem, placement):,}")
    print(f"   Score (index): {score(problem, placement, method='index'):,}")

    return problem, placement


def example_greedy(output_dir: Path):
    """Example: Greedy construction and its impact maps."""
    print("\n" + "=" * 60)
    print("GREEDY CONSTRUCTION EXAMPLE")
    print("=" * 60)

    problem = make_concert_hall()

    solver = GreedySolver(density=20.0)
    solver.initialize(problem)
    print(f"\n1. Candidate grid: {len(solver.grid)} positions")
    print(f"   Pillar-blocked pairs: {solver.pillar_blockage.num_blocked_pairs}")

    print("\n2. Placing musicians...")
    done = False
    while not done:
        placement, done = solver.solve_step()
    print(f"   Score: {solver.score(placement):,}")

    instrument = problem.instruments[0]
    ax = plot_impact_map(problem, solver.grid, solver.get_impact_map(instrument))
    save_figure(ax.figure, output_dir / "impact_map.png")

    ax = plot_placement(problem, placement, title="Greedy", score=solver.score(placement))
    save_figure(ax.figure, output_dir / "greedy.png")

    return problem, placement


def example_chains(output_dir: Path):
    """Example: Refine greedy placements with solver chains."""
    print("\n" + "=" * 60)
    print("SOLVER CHAIN EXAMPLE")
    print("=" * 60)

    problem = make_concert_hall()
    config = ConcertoConfig.for_quick_runs()
    config.seed = 42

    result = optimize_placement(problem, "greedy+annealer+mix", config=config, verbose=True)
    print(f"\n   Volumes: {result.placement.volumes}")

    results = run_comparison(
        problem,
        ["greedy", "greedy+mix", "greedy+shake{delta=5}+mix", "greedy+annealer+mix"],
        seed=42,
        config=config,
        verbose=True,
    )
    plot_comparison(results, output_path=output_dir / "comparison.png")

    return problem, result


def main():
    """Run all examples."""
    print("CONCERTO MUSICIAN PLACEMENT EXAMPLES")
    print("=" * 60)

    configure_logging("WARNING")
    output_dir = Path("outputs")

    example_scoring()
    example_greedy(output_dir)
    example_chains(output_dir)

    print("\n" + "=" * 60)
    print("All examples completed!")
    print(f"Figures saved to {output_dir}/")
    print("=" * 60)


if __name__ == "__main__":
    main()
