"""
Visualization tools for musician placement.

This module provides:
    - Static plotting functions for placements and impact maps
    - Score trace and comparison plots
"""

from concerto.visualization.plotting import (
    draw_musicians,
    plot_placement,
    plot_impact_map,
    plot_score_trace,
    plot_comparison,
    save_figure,
)

__all__ = [
    "draw_musicians",
    "plot_placement",
    "plot_impact_map",
    "plot_score_trace",
    "plot_comparison",
    "save_figure",
]
