"""
Solver interface, the Chain combinator and the solver factory.

Every solver is a small state machine driven step by step:

    solver.initialize(problem, seed_placement)
    while True:
        placement, done = solver.solve_step()
        if done:
            break

Solvers are named by short strings. ``create_solver`` understands
``"+"``-joined names (run in sequence, each seeding the next) and per-solver
parameters in braces, e.g. ``"greedy+annealer{steps_per_musician=50}"``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
import re
from typing import Dict, List, Optional, Tuple
import numpy as np

from concerto.core.problem import Placement, ProblemInstance
from concerto.scoring.scorer import score as score_placement

logger = logging.getLogger(__name__)


@dataclass
class Solution:
    """A finished placement and its score."""
    placement: Placement
    score: int


class Solver(ABC):
    """
    Base class for placement solvers.

    Subclasses declare their tunable parameters in ``PARAMETERS`` (name ->
    type); ``set_parameters`` only accepts those.

    Args:
        rng: Random generator for stochastic solvers (fresh one if None)
        score_method: Occlusion method used when scoring ("exact" or "index")
        workers: Thread count for data-parallel phases
    """

    PARAMETERS: Dict[str, type] = {}

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        score_method: str = "exact",
        workers: Optional[int] = 1,
    ):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.score_method = score_method
        self.workers = workers
        self.problem: Optional[ProblemInstance] = None

    @classmethod
    def from_config(cls, config=None, rng: Optional[np.random.Generator] = None) -> "Solver":
        """Build with defaults taken from a ConcertoConfig (or built-in defaults)."""
        if config is None:
            return cls(rng=rng)
        return cls(rng=rng, score_method=config.scoring.method, workers=config.scoring.workers)

    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def initialize(self, problem: ProblemInstance, placement: Optional[Placement] = None) -> None:
        """Prepare to solve ``problem``, optionally from a seed placement."""
        pass

    @abstractmethod
    def solve_step(self) -> Tuple[Placement, bool]:
        """Advance by one step; returns the current placement and a done flag."""
        pass

    def set_parameters(self, parameters: Dict[str, float]) -> None:
        """
        Override tunable parameters by name.

        Raises:
            ValueError: If a parameter is not declared in ``PARAMETERS``
        """
        for key, value in parameters.items():
            if key not in self.PARAMETERS:
                raise ValueError(
                    f"Solver {self.name()} doesn't accept parameter '{key}'. "
                    f"Available: {sorted(self.PARAMETERS)}"
                )
            setattr(self, key, self.PARAMETERS[key](value))

    def score(self, placement: Placement) -> int:
        return score_placement(
            self.problem, placement, method=self.score_method, workers=self.workers
        )

    def _require_initialized(self) -> None:
        if self.problem is None:
            raise RuntimeError(f"Solver {self.name()} is not initialized")

    def solve(
        self,
        problem: ProblemInstance,
        placement: Optional[Placement] = None,
    ) -> Solution:
        """Run to completion and score the final placement."""
        self.initialize(problem, placement)
        while True:
            result, done = self.solve_step()
            if done:
                return Solution(placement=result, score=self.score(result))


class Chain(Solver):
    """
    Run ``first`` to completion, then ``second`` seeded with its output.

    The step that finishes ``first`` reports ``done=False``; ``second`` is
    initialized right away and takes over from the next step.
    """

    def __init__(self, first: Solver, second: Solver):
        super().__init__(first.rng, first.score_method, first.workers)
        self.first = first
        self.second = second
        self._in_first = True

    def name(self) -> str:
        return f"{self.first.name()}+{self.second.name()}"

    @property
    def active(self) -> Solver:
        return self.first if self._in_first else self.second

    def initialize(self, problem: ProblemInstance, placement: Optional[Placement] = None) -> None:
        self.problem = problem
        self._in_first = True
        self.first.initialize(problem, placement)

    def solve_step(self) -> Tuple[Placement, bool]:
        self._require_initialized()
        if not self._in_first:
            return self.second.solve_step()

        result, done = self.first.solve_step()
        if done:
            logger.debug("chain(%s): switching to %s", self.problem.problem_id, self.second.name())
            self.second.initialize(self.problem, result)
            self._in_first = False
        return result, False


def _solver_registry() -> Dict[str, type]:
    # Imported here because the solver modules import this one
    from concerto.optimization.annealer import AnnealerSolver
    from concerto.optimization.greedy import GreedySolver
    from concerto.optimization.refiners import ShakeSolver, VolumeMixer

    return {
        "annealer": AnnealerSolver,
        "greedy": GreedySolver,
        "mix": VolumeMixer,
        "shake": ShakeSolver,
    }


def available_solvers() -> List[str]:
    return sorted(_solver_registry())


_SOLVER_RE = re.compile(r"^\s*([a-z0-9_]+)\s*(?:\{(.*)\})?\s*$")


def _parse_value(text: str):
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"Solver parameter value '{text}' is not a number") from None


def parse_solver_name(text: str) -> Tuple[str, Dict[str, float]]:
    """
    Split ``"name{key=value,...}"`` into the name and a parameter dict.

    Raises:
        ValueError: On malformed names or parameters
    """
    match = _SOLVER_RE.match(text)
    if match is None:
        raise ValueError(f"Invalid solver name '{text}'")
    name, body = match.group(1), match.group(2)

    parameters: Dict[str, float] = {}
    if body is not None and body.strip():
        for item in body.split(","):
            if "=" not in item:
                raise ValueError(f"Invalid parameter '{item}', expected name=value")
            key, value = item.split("=", 1)
            parameters[key.strip()] = _parse_value(value)
    return name, parameters


def create_solver(
    solver_name: str,
    rng: Optional[np.random.Generator] = None,
    config=None,
) -> Solver:
    """
    Build a solver (or a chain of solvers) from its name.

    Args:
        solver_name: Solver name, e.g. "greedy", "greedy+annealer{steps_per_musician=50}"
        rng: Random generator shared by every solver in the chain
        config: Optional ConcertoConfig providing solver defaults

    Returns:
        Solver instance

    Raises:
        ValueError: If a solver or parameter is unknown

    Example:
        >>> solver = create_solver("greedy+mix")
        >>> solver.name()
        'greedy+mix'
    """
    registry = _solver_registry()
    if rng is None:
        rng = np.random.default_rng()

    solvers = []
    for part in solver_name.split("+"):
        name, parameters = parse_solver_name(part)
        if name not in registry:
            raise ValueError(f"Unknown solver: {name}. Available: {sorted(registry)}")
        solver = registry[name].from_config(config, rng)
        solver.set_parameters(parameters)
        solvers.append(solver)

    chain = solvers[0]
    for solver in solvers[1:]:
        chain = Chain(chain, solver)
    return chain
