"""
Score model and incremental impact tables.

This module provides:
    - score / attendee_happiness / musician_contributions: the score model
    - Collider: index-backed occlusion queries
    - ImpactMap and PillarBlockageMap: per-position tables for greedy search
"""

from concerto.scoring.scorer import (
    IMPACT_SCALE,
    calculate_impact,
    closeness_factors,
    visibility_matrix,
    score,
    attendee_happiness,
    musician_contributions,
)
from concerto.scoring.collider import Collider, Obstacle
from concerto.scoring.impact_map import ImpactMap, PillarBlockageMap

__all__ = [
    "IMPACT_SCALE",
    "calculate_impact",
    "closeness_factors",
    "visibility_matrix",
    "score",
    "attendee_happiness",
    "musician_contributions",
    "Collider",
    "Obstacle",
    "ImpactMap",
    "PillarBlockageMap",
]
