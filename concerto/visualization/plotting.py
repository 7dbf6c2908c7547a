"""
Static plotting functions for musician placement visualization.
"""

from typing import Dict, Optional, Tuple, Union
from pathlib import Path
import numpy as np
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches

from concerto.core.grid import CandidateGrid
from concerto.core.problem import MUSICIAN_RADIUS, Placement, ProblemInstance
from concerto.scoring.impact_map import ImpactMap


def draw_musicians(
    ax: plt.Axes,
    problem: ProblemInstance,
    placement: Placement,
    show_labels: bool = False,
) -> None:
    """
    Draw placed musicians as radius-5 circles coloured by instrument.

    Args:
        ax: Matplotlib axes to draw on
        problem: The problem instance (for instrument ids)
        placement: Musician placement; unplaced musicians are skipped
        show_labels: Whether to show musician index labels
    """
    instruments = problem.instruments
    colors = plt.cm.tab20(np.linspace(0, 1, max(len(instruments), 1)))
    color_of = {inst: colors[k % len(colors)] for k, inst in enumerate(instruments)}
    volumes = placement.volume_array()

    for m in np.flatnonzero(placement.placed_mask):
        x, y = placement.positions[m]
        instrument = int(problem.musicians[m])
        # Silent musicians are drawn hollow
        ax.add_patch(mpatches.Circle(
            (x, y), MUSICIAN_RADIUS,
            facecolor=color_of[instrument] if volumes[m] > 0 else 'none',
            edgecolor='black', linewidth=0.5, zorder=10,
        ))
        if show_labels:
            ax.annotate(
                f'{m}', (x, y), fontsize=6, ha='center', va='center', zorder=11,
            )


def plot_placement(
    problem: ProblemInstance,
    placement: Optional[Placement] = None,
    ax: Optional[plt.Axes] = None,
    title: Optional[str] = None,
    score: Optional[int] = None,
    show_attendees: bool = True,
    show_labels: bool = False,
) -> plt.Axes:
    """
    Plot the room, stage, pillars, attendees and musicians.

    Args:
        problem: The problem instance
        placement: Optional musician placement
        ax: Matplotlib axes (creates new figure if None)
        title: Optional title
        score: Optional score to show in the title
        show_attendees: Whether to draw attendees
        show_labels: Whether to label musicians

    Returns:
        Matplotlib axes
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 8))

    ax.add_patch(mpatches.Rectangle(
        (0, 0), problem.room_width, problem.room_height,
        fill=False, edgecolor='black', linewidth=1.5,
    ))
    ax.add_patch(mpatches.Rectangle(
        problem.stage_bottom_left, problem.stage_width, problem.stage_height,
        facecolor='wheat', edgecolor='saddlebrown', alpha=0.6,
    ))

    for center, radius in zip(problem.pillars, problem.pillar_radii):
        ax.add_patch(mpatches.Circle(
            center, radius, facecolor='dimgray', edgecolor='black', alpha=0.8,
        ))

    if show_attendees and problem.num_attendees > 0:
        ax.scatter(
            problem.attendees[:, 0], problem.attendees[:, 1],
            s=4, c='steelblue', alpha=0.6, label='Attendees',
        )

    if placement is not None:
        draw_musicians(ax, problem, placement, show_labels)

    if title or score is not None:
        text = title or "Placement"
        if score is not None:
            text = f"{text}\nScore: {score:,}"
        ax.set_title(text, fontweight='bold')

    ax.set_xlim(0, problem.room_width)
    ax.set_ylim(0, problem.room_height)
    ax.set_aspect('equal')
    ax.set_xlabel('X')
    ax.set_ylabel('Y')

    return ax


def plot_impact_map(
    problem: ProblemInstance,
    grid: CandidateGrid,
    impact_map: ImpactMap,
    ax: Optional[plt.Axes] = None,
    cmap: str = 'viridis',
    show_colorbar: bool = True,
) -> plt.Axes:
    """
    Plot the impact score of one instrument at every candidate position.

    Taken positions are drawn in grey; the best free position is marked.

    Args:
        problem: The problem instance
        grid: Candidate grid
        impact_map: Impact map of one instrument
        ax: Matplotlib axes
        cmap: Colormap for scores
        show_colorbar: Whether to show colorbar

    Returns:
        Matplotlib axes
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 8))

    free = grid.free_mask
    if (~free).any():
        ax.scatter(
            grid.points[~free, 0], grid.points[~free, 1],
            s=6, c='lightgray', label='Taken',
        )
    if free.any():
        sc = ax.scatter(
            grid.points[free, 0], grid.points[free, 1],
            s=6, c=impact_map.scores[free], cmap=cmap,
        )
        if show_colorbar:
            plt.colorbar(sc, ax=ax, label='Impact', shrink=0.7)

    if impact_map.best_pos is not None:
        bx, by = grid.points[impact_map.best_pos]
        ax.plot(bx, by, '*', color='red', markersize=12, label='Best')

    min_x, min_y, max_x, max_y = problem.stage_bounds
    ax.add_patch(mpatches.Rectangle(
        (min_x, min_y), max_x - min_x, max_y - min_y,
        fill=False, edgecolor='saddlebrown', linewidth=1.5,
    ))

    ax.set_title(f'Instrument {impact_map.instrument} impact', fontweight='bold')
    ax.set_aspect('equal')
    ax.set_xlabel('X')
    ax.set_ylabel('Y')

    return ax


def plot_score_trace(
    trace_score: Union[list, np.ndarray],
    output_path: Optional[Union[str, Path]] = None,
    title: str = "Optimization Progress",
) -> plt.Figure:
    """
    Plot the score trace of a single optimization run.

    Args:
        trace_score: Scores sampled during optimization
        output_path: Optional path to save figure
        title: Figure title

    Returns:
        Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=(10, 5))

    samples = list(range(1, len(trace_score) + 1))

    ax.plot(samples, trace_score, 'b-', linewidth=2)
    ax.set_xlabel('Sample')
    ax.set_ylabel('Score')
    ax.set_title(title, fontweight='bold')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if output_path:
        save_figure(fig, output_path)

    return fig


def plot_comparison(
    results: Dict[str, "OptimizationResult"],
    output_path: Optional[Union[str, Path]] = None,
    figsize: Tuple[int, int] = (14, 5),
) -> plt.Figure:
    """
    Create comparison plot of multiple solver runs.

    Args:
        results: Mapping of solver name to OptimizationResult
        output_path: Optional path to save figure
        figsize: Figure size

    Returns:
        Matplotlib figure
    """
    fig, axes = plt.subplots(1, 2, figsize=figsize)

    # Sort by score (descending)
    results_sorted = sorted(results.items(), key=lambda t: t[1].score, reverse=True)

    # Left: Bar chart of final scores
    ax1 = axes[0]
    names = [name for name, _ in results_sorted]
    scores = [res.score for _, res in results_sorted]
    colors = plt.cm.viridis(np.linspace(0.2, 0.8, max(len(names), 1)))

    ax1.barh(range(len(names)), scores, color=colors[:len(names)])
    ax1.set_yticks(range(len(names)))
    ax1.set_yticklabels(names)
    ax1.set_xlabel('Score')
    ax1.set_title('Final Score by Solver', fontweight='bold')
    ax1.invert_yaxis()
    ax1.grid(axis='x', alpha=0.3)

    # Right: Score traces
    ax2 = axes[1]
    colors_cycle = plt.cm.tab10(np.linspace(0, 1, 10))

    for i, (name, res) in enumerate(results.items()):
        if len(res.trace_score) > 0:
            x = np.linspace(0, 1, len(res.trace_score))
            ax2.plot(x, res.trace_score, label=name, linewidth=2, color=colors_cycle[i % 10])

    ax2.set_xlabel('Progress (fraction of steps)')
    ax2.set_ylabel('Score')
    ax2.set_title('Score Traces', fontweight='bold')
    if results:
        ax2.legend(loc='lower right', fontsize=8)
    ax2.grid(True, alpha=0.3)
    ax2.set_xlim(0, 1)

    plt.tight_layout()

    if output_path:
        save_figure(fig, output_path, dpi=200)

    return fig


def save_figure(
    fig: plt.Figure,
    output_path: Union[str, Path],
    dpi: int = 150,
) -> Path:
    """Save a figure, creating the parent directory if needed."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=dpi, bbox_inches='tight')
    return output_path
