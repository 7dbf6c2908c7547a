"""
Configuration management for Concerto.

This module provides dataclass-based configuration models with JSON/YAML
loading, plus logging setup.
"""

from concerto.config.settings import (
    ConcertoConfig,
    ScoringConfig,
    GridConfig,
    RunnerConfig,
    AnnealerConfig,
    VisualizationConfig,
    load_config,
    configure_logging,
)

__all__ = [
    "ConcertoConfig",
    "ScoringConfig",
    "GridConfig",
    "RunnerConfig",
    "AnnealerConfig",
    "VisualizationConfig",
    "load_config",
    "configure_logging",
]
