"""
Ray construction from annotated pixels.

A ray starts at the camera position of a captured frame and points through
the annotated pixel, unprojected at the far clipping distance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from models.frame import CameraFrame, ViewProjection
from .vectors import as_vector, normalize, transform_point


@dataclass(frozen=True, eq=False)
class Ray:
    """
    A half-line in world space.

    Attributes:
        origin: Start point (camera position).
        direction: Unit direction.
    """
    origin: np.ndarray
    direction: np.ndarray

    @classmethod
    def from_points(cls, origin, through) -> Optional["Ray"]:
        """Ray from `origin` through `through`; None if the points coincide."""
        origin = as_vector(origin)
        direction = normalize(as_vector(through) - origin)
        if direction is None:
            return None
        return cls(origin=origin, direction=direction)

    @classmethod
    def from_direction(cls, origin, direction) -> Optional["Ray"]:
        """Ray with a (not necessarily unit) direction; None for a zero direction."""
        unit = normalize(as_vector(direction))
        if unit is None:
            return None
        return cls(origin=as_vector(origin), direction=unit)

    def point_at(self, t: float) -> np.ndarray:
        """Point at parametric distance t along the ray."""
        return self.origin + self.direction * t


def ray_from_pixel(
    pixel: Tuple[float, float],
    projection: ViewProjection,
    frame: Optional[CameraFrame],
) -> Optional[Ray]:
    """
    Build the world-space ray through a pixel of a captured frame.

    Args:
        pixel: (u, v) pixel location in the frame's image.
        projection: Projection parameters used if the frame carries none.
        frame: The captured frame; must carry a valid camera transform.

    Returns:
        The ray, or None when the frame is missing or has no valid transform.
    """
    if frame is None or not frame.has_transform:
        logging.debug("ray_from_pixel: frame has no valid transform")
        return None

    view = frame.projection or projection
    camera_pos = frame.camera_position
    # Unproject to the far clipping plane in camera space, then into the world.
    far_point = transform_point(frame.transform, view.unproject(pixel))

    direction = normalize(far_point - camera_pos)
    if direction is None:
        return None
    return Ray(origin=camera_pos, direction=direction)
