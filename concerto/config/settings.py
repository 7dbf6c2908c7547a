"""
Configuration settings.

This module provides typed configuration classes for all Concerto settings,
supporting loading from YAML/JSON files.
"""

from dataclasses import asdict, dataclass, field
import logging
from pathlib import Path
from typing import Optional, Tuple, Union
import json
import numpy as np


def _import_yaml():
    try:
        import yaml
    except ImportError:
        raise ImportError(
            "Concerto YAML configs need PyYAML. Install with: pip install pyyaml"
        ) from None
    return yaml


@dataclass
class ScoringConfig:
    """
    Score model settings.

    Attributes:
        method: Occlusion method, "exact" (vectorized brute force) or
            "index" (bounding-volume hierarchy)
        workers: Thread count for data-parallel phases (None = all CPUs)
    """
    method: str = "exact"
    workers: Optional[int] = 1


@dataclass
class GridConfig:
    """
    Candidate grid settings for the greedy constructor.

    Attributes:
        density: Grid budget multiplier; the grid holds about
            ``density * attendees / max(max_instrument, 1)`` positions
        min_per_musician: Lower bound on positions per musician
    """
    density: float = 50.0
    min_per_musician: int = 4


@dataclass
class RunnerConfig:
    """
    Progress reporting for ``optimize_placement``.

    Attributes:
        log_every: In verbose runs, print every N-th recorded trace score.
            A trace score is recorded every ``trace_every`` solver steps,
            whatever the solver (a greedy step places one musician, an
            annealer step tries one change).
    """
    log_every: int = 10


@dataclass
class AnnealerConfig:
    """
    Lattice annealer settings.

    Attributes:
        steps_per_musician: Step budget per musician
        time_limit: Wall-clock budget in seconds
        reseed: Start from a random subset of the lattice instead of the seed
        radius: Lattice circle radius
        padding: Extra distance kept from the stage edges
    """
    steps_per_musician: int = 500
    time_limit: float = 1200.0
    reseed: bool = False
    radius: float = 5.002
    padding: float = 5.002


@dataclass
class VisualizationConfig:
    """
    Visualization settings.

    Attributes:
        output_dir: Directory for output files
        dpi: Resolution for saved images
        figsize: Default figure size (width, height)
        cmap: Colormap for impact maps
    """
    output_dir: str = "outputs"
    dpi: int = 150
    figsize: Tuple[int, int] = (10, 8)
    cmap: str = "viridis"


@dataclass
class ConcertoConfig:
    """
    Main Concerto configuration.

    This is the top-level configuration class that contains all settings
    for the musician placement engine.

    Attributes:
        scoring: Score model settings
        grid: Candidate grid settings
        runner: Progress reporting for optimize_placement
        annealer: Lattice annealer settings
        visualization: Visualization settings
        solver: Default solver name (see ``create_solver``)
        seed: Random seed for reproducible runs (None = fresh entropy)
        log_level: Logging level name
    """
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    grid: GridConfig = field(default_factory=GridConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    annealer: AnnealerConfig = field(default_factory=AnnealerConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)
    solver: str = "greedy"
    seed: Optional[int] = None
    log_level: str = "WARNING"

    def validate(self) -> None:
        """
        Check values that the solvers can't recover from.

        Raises:
            ValueError: If a setting is out of range
        """
        if self.scoring.method not in ("exact", "index"):
            raise ValueError(f"Unknown score method: {self.scoring.method}")
        if self.grid.density <= 0:
            raise ValueError(f"grid.density must be positive, got {self.grid.density}")
        if self.grid.min_per_musician < 1:
            raise ValueError(
                f"grid.min_per_musician must be >= 1, got {self.grid.min_per_musician}"
            )
        if self.annealer.steps_per_musician < 0:
            raise ValueError(
                f"annealer.steps_per_musician must be >= 0, "
                f"got {self.annealer.steps_per_musician}"
            )
        if self.runner.log_every < 1:
            raise ValueError(f"runner.log_every must be >= 1, got {self.runner.log_every}")
        if self.annealer.radius <= 0:
            raise ValueError(f"annealer.radius must be positive, got {self.annealer.radius}")

    def make_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    def to_dict(self) -> dict:
        """
        Nested plain dict of every section.

        ``figsize`` becomes a list so ``yaml.safe_load`` can read it back.
        """
        data = asdict(self)
        data['visualization']['figsize'] = list(self.visualization.figsize)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ConcertoConfig":
        """
        Create from dictionary.

        Raises:
            ValueError: If a section contains unknown keys or bad values
        """
        data = data or {}
        try:
            scoring = ScoringConfig(**data.get('scoring', {}))
            grid = GridConfig(**data.get('grid', {}))
            runner = RunnerConfig(**data.get('runner', {}))
            annealer = AnnealerConfig(**data.get('annealer', {}))
            visualization = VisualizationConfig(**data.get('visualization', {}))
        except TypeError as e:
            raise ValueError(f"Malformed configuration: {e}") from e

        if isinstance(visualization.figsize, list):
            visualization.figsize = tuple(visualization.figsize)

        config = cls(
            scoring=scoring,
            grid=grid,
            runner=runner,
            annealer=annealer,
            visualization=visualization,
            solver=data.get('solver', "greedy"),
            seed=data.get('seed'),
            log_level=data.get('log_level', "WARNING"),
        )
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ConcertoConfig":
        """Read a Concerto YAML file (an empty document gives the defaults)."""
        yaml = _import_yaml()
        with Path(path).open('r') as f:
            return cls.from_dict(yaml.safe_load(f))

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "ConcertoConfig":
        with Path(path).open('r') as f:
            return cls.from_dict(json.load(f))

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Write the sections in declaration order."""
        yaml = _import_yaml()
        with Path(path).open('w') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def to_json(self, path: Union[str, Path]) -> None:
        with Path(path).open('w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def for_quick_runs(cls) -> "ConcertoConfig":
        """Preset with small budgets, for tests and demos."""
        return cls(
            grid=GridConfig(density=10.0),
            annealer=AnnealerConfig(steps_per_musician=20, time_limit=60.0),
        )


_READERS = {
    '.yaml': ConcertoConfig.from_yaml,
    '.yml': ConcertoConfig.from_yaml,
    '.json': ConcertoConfig.from_json,
}


def load_config(path: Optional[Union[str, Path]] = None) -> ConcertoConfig:
    """
    Read a Concerto config file, or return the defaults when ``path`` is None.

    The reader is picked from the suffix (.yaml, .yml, .json).

    Raises:
        FileNotFoundError: If ``path`` doesn't exist
        ValueError: On an unsupported suffix or invalid settings
    """
    if path is None:
        return ConcertoConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Concerto config not found: {path}")

    reader = _READERS.get(path.suffix.lower())
    if reader is None:
        raise ValueError(
            f"Unsupported configuration format '{path.suffix}' for {path.name}; "
            f"use one of {sorted(_READERS)}"
        )
    return reader(path)


def configure_logging(level: Union[int, str] = logging.WARNING) -> None:
    """
    Set the level of the ``concerto`` loggers and attach a stderr handler.

    Args:
        level: Logging level (name or number)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger("concerto")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
