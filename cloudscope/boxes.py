"""Detected object boxes and their velocities."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

import numpy as np

from cloudscope.mathutil import Quaternion


@dataclass
class Velocity:
    """Planar velocity in metres per second."""

    vx: float = 0.0
    vy: float = 0.0

    def __add__(self, other: "Velocity") -> "Velocity":
        if not isinstance(other, Velocity):
            return NotImplemented
        return Velocity(self.vx + other.vx, self.vy + other.vy)


def _zeros3() -> np.ndarray:
    return np.zeros(3, dtype=float)


@dataclass
class ObjectBox:
    """An oriented box around a detected object, with tracking state."""

    trans: np.ndarray = field(default_factory=_zeros3)
    rotation: Quaternion = field(default_factory=Quaternion)
    size: np.ndarray = field(default_factory=_zeros3)  # width, height, depth

    id: int = 0
    x: float = 0.0  # longitudinal distance, metres
    y: float = 0.0  # lateral distance, metres
    vx: float = 0.0
    vy: float = 0.0

    track_x: float = 0.0  # reference point used for tracking
    track_y: float = 0.0

    predict_x: float = 0.0  # predicted position, used when lost
    predict_y: float = 0.0

    ax: float = 0.0
    ay: float = 0.0

    heading: float = 0.0  # degrees, north is 0, clockwise
    length: float = 0.0
    width: float = 0.0
    height: float = 0.0

    # 0 unknown, 1 animal, 2 person, 3 bicycle, 4 vehicle, 5 rock, 6 mound, 7 other
    obj_type: int = 0
    age: int = 0

    probability: int = 0
    attribute: int = 0  # 0 detected this frame, 1 predicted
    move_state: int = 0  # 0 static, 1 moving

    lost: int = 0
    label: bool = False

    velocity_queue: deque = field(default_factory=deque)