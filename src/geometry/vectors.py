"""
Vector and transform helpers.

Shared numpy helpers for ray construction, hit testing and triangulation.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


def as_vector(value) -> np.ndarray:
    """Coerce a 3-sequence to a float vector."""
    vector = np.asarray(value, dtype=float).reshape(-1)
    if vector.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {vector.shape}")
    return vector


def normalize(vector: np.ndarray, eps: float = 1e-12) -> Optional[np.ndarray]:
    """Return the unit vector, or None for a zero-length input."""
    norm = float(np.linalg.norm(vector))
    if norm < eps or not np.isfinite(norm):
        return None
    return vector / norm


def translation_of(transform: np.ndarray) -> np.ndarray:
    """Translation column of a 4x4 transform."""
    return np.array(transform[:3, 3], dtype=float)


def transform_point(transform: np.ndarray, point: np.ndarray) -> np.ndarray:
    """Apply a 4x4 transform to a point."""
    return transform[:3, :3] @ point + transform[:3, 3]


def transform_vector(transform: np.ndarray, vector: np.ndarray) -> np.ndarray:
    """Apply the linear part of a 4x4 transform to a direction."""
    return transform[:3, :3] @ vector


def invert_transform(transform: np.ndarray) -> np.ndarray:
    return np.linalg.inv(transform)


def euler_to_rotation_matrix(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """Convert Euler angles (radians, applied roll->pitch->yaw about x, y, z)."""
    r, p, y = roll, pitch, yaw

    rx = np.array([[1, 0, 0], [0, np.cos(r), -np.sin(r)], [0, np.sin(r), np.cos(r)]])
    ry = np.array([[np.cos(p), 0, np.sin(p)], [0, 1, 0], [-np.sin(p), 0, np.cos(p)]])
    rz = np.array([[np.cos(y), -np.sin(y), 0], [np.sin(y), np.cos(y), 0], [0, 0, 1]])

    return rz @ ry @ rx


def look_at_rotation(eye, target, up=(0.0, 1.0, 0.0)) -> np.ndarray:
    """
    Camera rotation (camera-to-world) that points local -Z from eye at target.

    Raises:
        ValueError: If eye and target coincide or the view is parallel to up.
    """
    forward = normalize(as_vector(target) - as_vector(eye))
    if forward is None:
        raise ValueError("eye and target must differ")
    right = normalize(np.cross(forward, as_vector(up)))
    if right is None:
        raise ValueError("view direction is parallel to up")
    true_up = np.cross(right, forward)
    rotation = np.eye(3)
    rotation[:, 0] = right
    rotation[:, 1] = true_up
    rotation[:, 2] = -forward
    return rotation


def clamp_distance(origin: np.ndarray, point: np.ndarray, max_distance: float) -> np.ndarray:
    """
    Pull `point` back toward `origin` so it is at most `max_distance` away.
    """
    offset = point - origin
    distance = float(np.linalg.norm(offset))
    if distance <= max_distance or distance == 0.0:
        return np.array(point, dtype=float)
    return origin + offset * (max_distance / distance)
