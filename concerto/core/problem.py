"""
Problem and placement data structures.

This module defines the two data structures shared by every part of the
engine:
    - ProblemInstance: the room, stage, musicians, attendees and pillars
    - Placement: one position (and optional volume) per musician
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import numpy as np

# Every musician is a circle of this radius when occluding other musicians
MUSICIAN_RADIUS = 5.0

# Minimum distance between two musicians, and between a musician and the
# stage edge
MIN_SEPARATION = 10.0

VOLUME_MIN = 0.0
VOLUME_MAX = 10.0
VOLUME_DEFAULT = 1.0


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass
class ProblemInstance:
    """
    A musician placement problem.

    The instance is immutable once built: all arrays are made read-only in
    ``__post_init__``.

    Attributes:
        room_width: Width of the room
        room_height: Height of the room
        stage_width: Width of the stage
        stage_height: Height of the stage
        stage_bottom_left: (x, y) of the stage's bottom-left corner
        musicians: (M,) instrument id of each musician
        attendees: (A, 2) attendee positions
        tastes: (A, K) taste of each attendee for each instrument
        pillars: (P, 2) pillar centers
        pillar_radii: (P,) pillar radii
        problem_id: Optional identifier used in logs and results

    Example:
        >>> problem = ProblemInstance(
        ...     room_width=100, room_height=100,
        ...     stage_width=40, stage_height=40, stage_bottom_left=(30, 50),
        ...     musicians=[0, 0], attendees=[[50, 10]], tastes=[[100.0]],
        ... )
        >>> problem.num_musicians
        2
    """
    room_width: float
    room_height: float
    stage_width: float
    stage_height: float
    stage_bottom_left: Tuple[float, float]
    musicians: np.ndarray
    attendees: np.ndarray
    tastes: np.ndarray
    pillars: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    pillar_radii: np.ndarray = field(default_factory=lambda: np.zeros(0))
    problem_id: str = "unknown"

    def __post_init__(self):
        self.room_width = float(self.room_width)
        self.room_height = float(self.room_height)
        self.stage_width = float(self.stage_width)
        self.stage_height = float(self.stage_height)
        self.stage_bottom_left = (
            float(self.stage_bottom_left[0]),
            float(self.stage_bottom_left[1]),
        )

        self.musicians = _readonly(np.asarray(self.musicians, dtype=np.int64).reshape(-1))
        self.attendees = _readonly(
            np.asarray(self.attendees, dtype=np.float64).reshape(-1, 2)
        )
        tastes = np.asarray(self.tastes, dtype=np.float64)
        if len(self.attendees) == 0:
            # Keep one (empty) column per instrument so column lookups stay valid
            width = int(self.musicians.max()) + 1 if len(self.musicians) else 0
            tastes = np.zeros((0, width))
        self.tastes = _readonly(tastes.reshape(len(self.attendees), -1))
        self.pillars = _readonly(np.asarray(self.pillars, dtype=np.float64).reshape(-1, 2))
        self.pillar_radii = _readonly(
            np.asarray(self.pillar_radii, dtype=np.float64).reshape(-1)
        )

        self.validate()

    def validate(self) -> None:
        """
        Check internal consistency.

        Raises:
            ValueError: If array shapes disagree or instrument ids fall
                outside the taste vectors
        """
        if self.stage_width < 0 or self.stage_height < 0:
            raise ValueError(
                f"Stage size must be non-negative, got "
                f"{self.stage_width}x{self.stage_height}"
            )
        if self.tastes.shape[0] != self.attendees.shape[0]:
            raise ValueError(
                f"tastes has {self.tastes.shape[0]} rows but there are "
                f"{self.attendees.shape[0]} attendees"
            )
        if self.pillars.shape[0] != self.pillar_radii.shape[0]:
            raise ValueError(
                f"{self.pillars.shape[0]} pillar centers but "
                f"{self.pillar_radii.shape[0]} radii"
            )
        if self.num_musicians > 0:
            if self.musicians.min() < 0:
                raise ValueError("Instrument ids must be non-negative")
            if self.num_attendees > 0 and self.max_instrument >= self.tastes.shape[1]:
                raise ValueError(
                    f"Instrument {self.max_instrument} has no taste column "
                    f"(tastes have {self.tastes.shape[1]} columns)"
                )

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def num_musicians(self) -> int:
        return int(self.musicians.shape[0])

    @property
    def num_attendees(self) -> int:
        return int(self.attendees.shape[0])

    @property
    def num_pillars(self) -> int:
        return int(self.pillars.shape[0])

    @property
    def has_pillars(self) -> bool:
        """Pillar problems also enable the closeness factor."""
        return self.num_pillars > 0

    @property
    def instruments(self) -> List[int]:
        """Sorted distinct instrument ids used by the musicians."""
        return sorted(int(i) for i in np.unique(self.musicians))

    @property
    def max_instrument(self) -> int:
        return int(self.musicians.max()) if self.num_musicians > 0 else 0

    @property
    def num_instruments(self) -> int:
        return int(self.tastes.shape[1])

    @property
    def stage_bounds(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y) of the stage."""
        x0, y0 = self.stage_bottom_left
        return (x0, y0, x0 + self.stage_width, y0 + self.stage_height)

    def placeable_bounds(
        self, clearance: float = MIN_SEPARATION
    ) -> Tuple[float, float, float, float]:
        """Stage bounds shrunk by the musician clearance."""
        min_x, min_y, max_x, max_y = self.stage_bounds
        return (min_x + clearance, min_y + clearance, max_x - clearance, max_y - clearance)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Convert to the contest JSON layout."""
        return {
            "room_width": self.room_width,
            "room_height": self.room_height,
            "stage_width": self.stage_width,
            "stage_height": self.stage_height,
            "stage_bottom_left": list(self.stage_bottom_left),
            "musicians": self.musicians.tolist(),
            "attendees": [
                {"x": float(a[0]), "y": float(a[1]), "tastes": t.tolist()}
                for a, t in zip(self.attendees, self.tastes)
            ],
            "pillars": [
                {"center": [float(c[0]), float(c[1])], "radius": float(r)}
                for c, r in zip(self.pillars, self.pillar_radii)
            ],
        }

    @classmethod
    def from_dict(cls, data: dict, problem_id: str = "unknown") -> "ProblemInstance":
        """Create from the contest JSON layout."""
        attendees = data.get("attendees", [])
        pillars = data.get("pillars", [])
        return cls(
            room_width=data["room_width"],
            room_height=data["room_height"],
            stage_width=data["stage_width"],
            stage_height=data["stage_height"],
            stage_bottom_left=tuple(data["stage_bottom_left"]),
            musicians=data["musicians"],
            attendees=np.array([[a["x"], a["y"]] for a in attendees]).reshape(-1, 2),
            tastes=np.array([a["tastes"] for a in attendees]),
            pillars=np.array([p["center"] for p in pillars]).reshape(-1, 2),
            pillar_radii=np.array([p["radius"] for p in pillars]),
            problem_id=problem_id,
        )


@dataclass
class Placement:
    """
    Positions (and optional volumes) of every musician.

    A row of NaN coordinates marks an unplaced musician. Volumes default to
    1.0 when absent and are clamped to [0, 10].

    Attributes:
        positions: (M, 2) musician positions
        volumes: Optional (M,) volume multipliers
    """
    positions: np.ndarray
    volumes: Optional[np.ndarray] = None

    def __post_init__(self):
        self.positions = np.array(self.positions, dtype=np.float64).reshape(-1, 2)
        if self.volumes is not None:
            volumes = np.array(self.volumes, dtype=np.float64).reshape(-1)
            if volumes.shape[0] != self.positions.shape[0]:
                raise ValueError(
                    f"{volumes.shape[0]} volumes for {self.positions.shape[0]} musicians"
                )
            self.volumes = np.clip(volumes, VOLUME_MIN, VOLUME_MAX)

    @classmethod
    def empty(cls, num_musicians: int) -> "Placement":
        """All musicians unplaced."""
        return cls(np.full((num_musicians, 2), np.nan))

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    @property
    def placed_mask(self) -> np.ndarray:
        return ~np.isnan(self.positions).any(axis=1)

    @property
    def num_placed(self) -> int:
        return int(self.placed_mask.sum())

    @property
    def is_complete(self) -> bool:
        return bool(self.placed_mask.all())

    @property
    def is_empty(self) -> bool:
        """True when no musician is placed (or there are no musicians)."""
        return self.num_placed == 0

    def volume_array(self) -> np.ndarray:
        """Volumes with the default filled in."""
        if self.volumes is None:
            return np.full(len(self), VOLUME_DEFAULT)
        return self.volumes

    def copy(self) -> "Placement":
        return Placement(
            self.positions.copy(),
            None if self.volumes is None else self.volumes.copy(),
        )

    def to_dict(self) -> dict:
        """Convert to the contest solution layout."""
        data = {
            "placements": [
                {"x": float(p[0]), "y": float(p[1])} for p in self.positions
            ],
        }
        if self.volumes is not None:
            data["volumes"] = self.volumes.tolist()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Placement":
        """Create from the contest solution layout."""
        positions = np.array(
            [[p["x"], p["y"]] for p in data.get("placements", [])], dtype=np.float64
        ).reshape(-1, 2)
        return cls(positions, data.get("volumes"))
