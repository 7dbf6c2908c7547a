"""
Musician placement optimization module.

This module provides:
    - Solver, Chain and create_solver: the solver interface and factory
    - GreedySolver: greedy construction over a candidate grid
    - AnnealerSolver and DiamondLattice: simulated annealing on a packed lattice
    - ShakeSolver and VolumeMixer: refiners for finished placements
    - Placement validity checks
    - Runner functions
"""

from concerto.optimization.base import (
    Solver,
    Solution,
    Chain,
    create_solver,
    available_solvers,
)
from concerto.optimization.constraints import (
    find_invalid_positions,
    is_valid_placement,
    validate_placement,
)
from concerto.optimization.greedy import GreedySolver
from concerto.optimization.lattice import DiamondLattice
from concerto.optimization.annealer import AnnealerSolver
from concerto.optimization.refiners import ShakeSolver, VolumeMixer
from concerto.optimization.runner import (
    optimize_placement,
    run_comparison,
    OptimizationResult,
)

__all__ = [
    "Solver",
    "Solution",
    "Chain",
    "create_solver",
    "available_solvers",
    "find_invalid_positions",
    "is_valid_placement",
    "validate_placement",
    "GreedySolver",
    "DiamondLattice",
    "AnnealerSolver",
    "ShakeSolver",
    "VolumeMixer",
    "optimize_placement",
    "run_comparison",
    "OptimizationResult",
]
