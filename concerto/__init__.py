"""
Concerto - musician placement scoring and optimization engine.

This package places musicians on a stage to maximize the happiness of the
attendees listening to them, taking occlusion by other musicians and by
pillars into account.

Main modules:
    - concerto.core: Problem data, occlusion geometry and spatial indexing
    - concerto.scoring: Score model and incremental impact maps
    - concerto.optimization: Greedy, annealing and refining solvers, runners
    - concerto.visualization: Static plotting utilities
    - concerto.config: Configuration management

Quick start:
    >>> from concerto import ProblemInstance, optimize_placement
    >>>
    >>> problem = ProblemInstance.from_dict(data)
    >>> result = optimize_placement(problem, solver="greedy+mix")
    >>> print(f"Score: {result.score:,}")
"""

__version__ = "0.1.0"
__author__ = "Concerto Team"

# Core exports
from concerto.core.problem import ProblemInstance, Placement
from concerto.core.geometry import line_circle_intersection

# Scoring exports
from concerto.scoring.scorer import score, musician_contributions

# Optimization exports
from concerto.optimization.base import create_solver
from concerto.optimization.constraints import validate_placement
from concerto.optimization.runner import optimize_placement, OptimizationResult

# Config exports
from concerto.config.settings import ConcertoConfig

__all__ = [
    # Version
    "__version__",
    # Core
    "ProblemInstance",
    "Placement",
    "line_circle_intersection",
    # Scoring
    "score",
    "musician_contributions",
    # Optimization
    "create_solver",
    "validate_placement",
    "optimize_placement",
    "OptimizationResult",
    # Config
    "ConcertoConfig",
]
