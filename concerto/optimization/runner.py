"""
Optimization runner for musician placement.

This module provides high-level functions for running solvers on placement
problems and comparing them.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
import time
import numpy as np

from concerto.config.settings import ConcertoConfig
from concerto.core.problem import Placement, ProblemInstance
from concerto.optimization.base import Solver, create_solver
from concerto.scoring.scorer import score


@dataclass
class OptimizationResult:
    """
    Result of an optimization run.

    Attributes:
        placement: Final musician placement
        score: Score of the final placement
        solver_name: Name of the solver (chain) used
        num_steps: Number of solver steps taken
        runtime_seconds: Wall-clock time for optimization
        trace_score: Scores sampled during optimization
        success: Whether optimization succeeded
        message: Status message
    """
    placement: Placement
    score: int
    solver_name: str = "unknown"
    num_steps: int = 0
    runtime_seconds: float = 0.0
    trace_score: List[int] = field(default_factory=list)
    success: bool = True
    message: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            **self.placement.to_dict(),
            "score": self.score,
            "solver_name": self.solver_name,
            "num_steps": self.num_steps,
            "runtime_seconds": self.runtime_seconds,
            "trace_score": list(self.trace_score),
            "success": self.success,
            "message": self.message,
        }


def optimize_placement(
    problem: ProblemInstance,
    solver: Union[str, Solver] = "greedy",
    seed_placement: Optional[Placement] = None,
    rng: Optional[np.random.Generator] = None,
    config: Optional[ConcertoConfig] = None,
    verbose: bool = False,
    trace_every: int = 10,
) -> OptimizationResult:
    """
    Run a solver on a placement problem.

    This is the main entry point for optimizing musician placement. Errors
    raised by the solver propagate to the caller.

    Args:
        problem: The problem instance
        solver: Solver name (e.g. "greedy", "greedy+annealer{steps_per_musician=50}")
            or a Solver instance
        seed_placement: Optional starting placement (required by refiners)
        rng: Random generator (default: from ``config.seed``)
        config: Configuration (default: ConcertoConfig())
        verbose: Print progress information
        trace_every: Record the score every N steps (0 disables the trace)

    Returns:
        OptimizationResult with the final placement and its score

    Example:
        >>> result = optimize_placement(problem, "greedy+mix")
        >>> print(f"Score: {result.score:,}")
    """
    if config is None:
        config = ConcertoConfig()
    if rng is None:
        rng = config.make_rng()
    if isinstance(solver, str):
        solver = create_solver(solver, rng=rng, config=config)

    if verbose:
        print("Musician Placement Optimization")
        print(f"  Problem: {problem.problem_id}")
        print(f"  Musicians: {problem.num_musicians}")
        print(f"  Attendees: {problem.num_attendees}")
        print(f"  Pillars: {problem.num_pillars}")
        print(f"  Solver: {solver.name()}")

    t0 = time.time()
    trace: List[int] = []

    solver.initialize(problem, seed_placement)
    steps = 0
    while True:
        placement, done = solver.solve_step()
        steps += 1
        if done:
            break
        if trace_every > 0 and steps % trace_every == 0:
            trace.append(score(problem, placement, method=solver.score_method))
            if verbose and steps % (trace_every * config.runner.log_every) == 0:
                print(f"  step {steps}: score {trace[-1]:,}")

    final_score = solver.score(placement)
    trace.append(final_score)
    runtime = time.time() - t0

    if verbose:
        print(f"  Final score: {final_score:,}")
        print(f"  Steps: {steps}")
        print(f"  Runtime: {runtime:.2f}s")

    return OptimizationResult(
        placement=placement,
        score=final_score,
        solver_name=solver.name(),
        num_steps=steps,
        runtime_seconds=runtime,
        trace_score=trace,
        success=True,
        message="Optimization completed successfully",
    )


def run_comparison(
    problem: ProblemInstance,
    solvers: Optional[List[str]] = None,
    seed: int = 42,
    config: Optional[ConcertoConfig] = None,
    verbose: bool = True,
) -> Dict[str, OptimizationResult]:
    """
    Run multiple solvers and compare results.

    Args:
        problem: The problem instance
        solvers: List of solver names (default: greedy and two chains)
        seed: Random seed; every solver gets a generator seeded with it
        config: Configuration shared by all runs
        verbose: Print progress

    Returns:
        Dict mapping solver name to OptimizationResult
    """
    if solvers is None:
        solvers = ["greedy", "greedy+mix", "greedy+annealer"]

    results = {}

    for solver_name in solvers:
        if verbose:
            print(f"\n{'='*50}")
            print(f"Running {solver_name}")
            print(f"{'='*50}")

        result = optimize_placement(
            problem,
            solver=solver_name,
            rng=np.random.default_rng(seed),
            config=config,
            verbose=verbose,
        )

        results[solver_name] = result

        if verbose:
            print(f"  Final score: {result.score:,}")
            print(f"  Runtime: {result.runtime_seconds:.2f}s")

    # Print summary
    if verbose:
        print(f"\n{'='*50}")
        print("COMPARISON SUMMARY")
        print(f"{'='*50}")
        sorted_results = sorted(results.items(), key=lambda x: x[1].score, reverse=True)
        for i, (name, res) in enumerate(sorted_results, 1):
            print(f"  {i}. {name:24s} {res.score:>16,}  ({res.runtime_seconds:.2f}s)")

    return results
