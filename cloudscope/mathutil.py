"""Rotation, quaternion and pose helpers used by the perception code."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

DEG_TO_RAD = math.pi / 180.0
RAD_TO_DEG = 180.0 / math.pi

_EPS = 1e-10


@dataclass(frozen=True)
class Quaternion:
    """A Hamilton quaternion stored as (w, x, y, z)."""

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @property
    def vec(self) -> np.ndarray:
        """The imaginary part as a 3-vector."""
        return np.array([self.x, self.y, self.z], dtype=float)

    def as_array(self) -> np.ndarray:
        """The coefficients in (w, x, y, z) order."""
        return np.array([self.w, self.x, self.y, self.z], dtype=float)

    def __neg__(self) -> "Quaternion":
        return Quaternion(-self.w, -self.x, -self.y, -self.z)

    def norm(self) -> float:
        return math.sqrt(self.w**2 + self.x**2 + self.y**2 + self.z**2)

    def normalized(self) -> "Quaternion":
        """Return the quaternion scaled to unit length."""
        n = self.norm()
        if n == 0.0:
            raise ValueError("cannot normalize a zero quaternion")
        return Quaternion(self.w / n, self.x / n, self.y / n, self.z / n)

    def to_rotation_matrix(self) -> np.ndarray:
        """The 3x3 rotation matrix of this (unit) quaternion."""
        w, x, y, z = self.w, self.x, self.y, self.z
        return np.array(
            [
                [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
                [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
                [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
            ]
        )


def _as_vector(values, length: int) -> np.ndarray:
    arr = np.asarray(values, dtype=float).reshape(-1)
    if arr.shape[0] < length:
        raise ValueError(f"expected at least {length} values, got {arr.shape[0]}")
    return arr


def pose6d_to_affine(pose) -> np.ndarray:
    """Build a 4x4 transform from (x, y, z, roll, pitch, yaw)."""
    p = _as_vector(pose, 6)
    a, b = math.cos(p[5]), math.sin(p[5])
    c, d = math.cos(p[4]), math.sin(p[4])
    e, f = math.cos(p[3]), math.sin(p[3])
    de, df = d * e, d * f
    return np.array(
        [
            [a * c, a * df - b * e, b * f + a * de, p[0]],
            [b * c, a * e + b * df, b * de - a * f, p[1]],
            [-d, c * f, c * e, p[2]],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )


def affine_to_pose6d(affine) -> np.ndarray:
    """Recover (x, y, z, roll, pitch, yaw) from a 4x4 transform."""
    m = np.asarray(affine, dtype=float)
    return np.array(
        [
            m[0, 3],
            m[1, 3],
            m[2, 3],
            math.atan2(m[2, 1], m[2, 2]),
            math.asin(-m[2, 0]),
            math.atan2(m[1, 0], m[0, 0]),
        ]
    )


def axis_to_quat(axis, theta: float) -> Quaternion:
    """Quaternion for a rotation of ``theta`` about a unit ``axis``."""
    a = _as_vector(axis, 3)
    magnitude = math.sin(theta / 2.0)
    return Quaternion(
        math.cos(theta / 2.0), a[0] * magnitude, a[1] * magnitude, a[2] * magnitude
    )


def vec_to_quat(vec) -> Quaternion:
    """Quaternion for a rotation vector (axis times angle)."""
    v = _as_vector(vec, 3)[:3]
    theta = float(np.linalg.norm(v))
    if theta < _EPS:
        return Quaternion()
    return axis_to_quat(v / theta, theta)


def enforce_symmetry(mat) -> np.ndarray:
    """Return the symmetric part of a square matrix."""
    m = np.asarray(mat, dtype=float)
    return 0.5 * (m + m.T)


def rpy_to_rotation(rpy) -> np.ndarray:
    """Rotation matrix Rz(yaw) @ Ry(pitch) @ Rx(roll)."""
    r, p, y = _as_vector(rpy, 3)[:3]
    rz = np.array([[math.cos(y), -math.sin(y), 0.0], [math.sin(y), math.cos(y), 0.0], [0.0, 0.0, 1.0]])
    ry = np.array([[math.cos(p), 0.0, math.sin(p)], [0.0, 1.0, 0.0], [-math.sin(p), 0.0, math.cos(p)]])
    rx = np.array([[1.0, 0.0, 0.0], [0.0, math.cos(r), -math.sin(r)], [0.0, math.sin(r), math.cos(r)]])
    return rz @ ry @ rx


def rotation_to_rpy(rotation) -> np.ndarray:
    """Roll, pitch and yaw of a rotation matrix."""
    m = np.asarray(rotation, dtype=float)
    pitch = math.atan2(-m[2, 0], math.sqrt(m[2, 1] ** 2 + m[2, 2] ** 2))
    cp = math.cos(pitch)
    roll = math.atan2(m[2, 1] / cp, m[2, 2] / cp)
    yaw = math.atan2(m[1, 0] / cp, m[0, 0] / cp)
    return np.array([roll, pitch, yaw])


def quat_to_rpy(q: Quaternion) -> np.ndarray:
    """Roll, pitch and yaw of a quaternion."""
    return rotation_to_rpy(q.to_rotation_matrix())


def rpy_to_quat(rpy) -> Quaternion:
    """Quaternion for roll, pitch and yaw angles."""
    r, p, y = _as_vector(rpy, 3)[:3]
    cy, sy = math.cos(y * 0.5), math.sin(y * 0.5)
    cp, sp = math.cos(p * 0.5), math.sin(p * 0.5)
    cr, sr = math.cos(r * 0.5), math.sin(r * 0.5)
    return Quaternion(
        w=cr * cp * cy + sr * sp * sy,
        x=sr * cp * cy - cr * sp * sy,
        y=cr * sp * cy + sr * cp * sy,
        z=cr * cp * sy - sr * sp * cy,
    )


def quat_to_euler(q: Quaternion) -> np.ndarray:
    """Single-precision Euler angles, returned as (roll, pitch, yaw)."""
    f = np.float32
    qw, qx, qy, qz = f(q.w), f(q.x), f(q.y), f(q.z)
    one, two = f(1.0), f(2.0)
    with np.errstate(invalid="ignore"):
        roll = np.arctan2(two * (qw * qz + qx * qy), one - two * (qz * qz + qx * qx))
        yaw = np.arcsin(two * (qw * qx - qy * qz))
        pitch = np.arctan2(two * (qw * qy + qz * qx), one - two * (qy * qy + qx * qx))
    return np.array([float(roll), float(pitch), float(yaw)])


def skew(v) -> np.ndarray:
    """Skew-symmetric cross-product matrix of a 3-vector."""
    a = _as_vector(v, 3)
    return np.array(
        [[0.0, -a[2], a[1]], [a[2], 0.0, -a[0]], [-a[1], a[0], 0.0]]
    )


def positify(q: Quaternion) -> Quaternion:
    """Return the equivalent quaternion with a non-negative scalar part."""
    return q if q.w >= 0.0 else -q


def delta_q(theta) -> Quaternion:
    """Small-angle quaternion for a rotation vector (not normalized)."""
    half = _as_vector(theta, 3)[:3] / 2.0
    return Quaternion(1.0, half[0], half[1], half[2])


def rad2deg(radians):
    """Convert radians (scalar or array) to degrees."""
    if isinstance(radians, (int, float)):
        return radians * RAD_TO_DEG
    return np.asarray(radians, dtype=float) * RAD_TO_DEG


def deg2rad(degrees):
    """Convert degrees (scalar or array) to radians."""
    if isinstance(degrees, (int, float)):
        return degrees * DEG_TO_RAD
    return np.asarray(degrees, dtype=float) * DEG_TO_RAD


def q_left(q: Quaternion) -> np.ndarray:
    """Matrix L(q) with L(q) @ p == q * p in (w, x, y, z) order."""
    qq = positify(q)
    ans = np.empty((4, 4))
    ans[0, 0] = qq.w
    ans[0, 1:] = -qq.vec
    ans[1:, 0] = qq.vec
    ans[1:, 1:] = qq.w * np.eye(3) + skew(qq.vec)
    return ans


def q_right(q: Quaternion) -> np.ndarray:
    """Matrix R(q) with R(q) @ p == p * q in (w, x, y, z) order."""
    qq = positify(q)
    ans = np.empty((4, 4))
    ans[0, 0] = qq.w
    ans[0, 1:] = -qq.vec
    ans[1:, 0] = qq.vec
    ans[1:, 1:] = qq.w * np.eye(3) - skew(qq.vec)
    return ans


def r_left(axis) -> np.ndarray:
    """Left Jacobian-style matrix of a rotation vector."""
    v = _as_vector(axis, 3)[:3]
    theta = float(np.linalg.norm(v))
    if theta < _EPS:
        return np.eye(3)
    a = v / theta
    s = math.sin(theta) / theta
    c = (1.0 - math.cos(theta)) / theta
    return s * np.eye(3) + (1.0 - s) * np.outer(a, a) + c * skew(a)


def r_inv_left(axis) -> np.ndarray:
    """Inverse left Jacobian of a rotation vector."""
    v = _as_vector(axis, 3)[:3]
    theta = float(np.linalg.norm(v))
    if theta < _EPS:
        return np.eye(3)
    half = theta / 2.0
    a = v / theta
    s = half * math.cos(half) / math.sin(half)
    return s * np.eye(3) + (1.0 - s) * np.outer(a, a) - half * skew(a)


def rad_in_range(radians: float) -> float:
    """Wrap an angle into [-pi, pi]."""
    while radians < -math.pi:
        radians += 2 * math.pi
    while radians > math.pi:
        radians -= 2 * math.pi
    return radians