"""
Shared fixtures for the concerto test suite.
"""

import pytest
import numpy as np


def build_problem(
    num_musicians: int = 6,
    num_attendees: int = 30,
    num_instruments: int = 3,
    pillars=None,
    pillar_radii=None,
    seed: int = 0,
):
    """Random problem: 200x200 stage in a 400x400 room, attendees around it."""
    from concerto.core.problem import ProblemInstance

    rng = np.random.default_rng(seed)

    # Attendees in the band below and left of the stage
    xs = rng.uniform(5, 395, size=num_attendees)
    ys = rng.uniform(5, 90, size=num_attendees)
    flip = rng.random(num_attendees) < 0.5
    attendees = np.where(flip[:, None], np.column_stack([ys, xs]), np.column_stack([xs, ys]))

    musicians = np.arange(num_musicians) % num_instruments
    tastes = rng.uniform(-200, 1000, size=(num_attendees, num_instruments))

    return ProblemInstance(
        room_width=400,
        room_height=400,
        stage_width=200,
        stage_height=200,
        stage_bottom_left=(100, 100),
        musicians=musicians,
        attendees=attendees,
        tastes=tastes,
        pillars=np.zeros((0, 2)) if pillars is None else pillars,
        pillar_radii=np.zeros(0) if pillar_radii is None else pillar_radii,
        problem_id=f"random-{seed}",
    )


@pytest.fixture
def problem_factory():
    """Access to ``build_problem`` for tests that need custom sizes."""
    return build_problem


@pytest.fixture
def small_problem():
    """Six musicians of three instruments, no pillars."""
    return build_problem()


@pytest.fixture
def pillar_problem():
    """Six musicians of three instruments with two pillars between stage and crowd."""
    return build_problem(
        pillars=np.array([[150.0, 95.0], [95.0, 250.0]]),
        pillar_radii=np.array([4.0, 6.0]),
        seed=1,
    )


@pytest.fixture
def two_musician_problem():
    """One attendee at the origin with taste 100 for instrument 0."""
    from concerto.core.problem import ProblemInstance

    return ProblemInstance(
        room_width=2000,
        room_height=2000,
        stage_width=1000,
        stage_height=1000,
        stage_bottom_left=(500, 500),
        musicians=[0, 0],
        attendees=[[0.0, 0.0]],
        tastes=[[100.0]],
        problem_id="two-musicians",
    )
