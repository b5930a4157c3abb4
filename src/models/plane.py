"""
Plane model for detected planar surfaces.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True, eq=False)
class Plane:
    """
    A bounded rectangle in world space supplied by the tracking layer.

    In the plane's local frame the surface is y = 0 and the normal points
    along +Y. The rectangle spans center +/- half_extent on the local x and
    z axes.

    Attributes:
        plane_id: Stable identifier assigned by the tracking layer.
        transform: 4x4 plane-to-world transform.
        center: Rectangle center (x, z) in plane-local coordinates.
        half_extent: Rectangle half sizes (x, z) in plane-local units.
    """
    plane_id: str
    transform: np.ndarray
    center: Tuple[float, float] = (0.0, 0.0)
    half_extent: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        transform = np.asarray(self.transform, dtype=float)
        if transform.shape != (4, 4):
            raise ValueError(f"Plane transform must be 4x4, got {transform.shape}")
        transform.setflags(write=False)
        object.__setattr__(self, "transform", transform)
        object.__setattr__(self, "center", (float(self.center[0]), float(self.center[1])))
        object.__setattr__(
            self, "half_extent", (float(self.half_extent[0]), float(self.half_extent[1]))
        )

    @classmethod
    def from_extent(
        cls,
        plane_id: str,
        transform: np.ndarray,
        center: Tuple[float, float],
        extent: Tuple[float, float],
    ) -> "Plane":
        """Create a plane from its full (x, z) extent."""
        return cls(
            plane_id=plane_id,
            transform=transform,
            center=center,
            half_extent=(extent[0] / 2.0, extent[1] / 2.0),
        )

    @classmethod
    def horizontal(
        cls,
        plane_id: str,
        position,
        extent: Tuple[float, float],
    ) -> "Plane":
        """Create an axis-aligned horizontal plane centered at a world position."""
        transform = np.eye(4)
        transform[:3, 3] = np.asarray(position, dtype=float)
        return cls.from_extent(plane_id, transform, (0.0, 0.0), extent)

    @property
    def extent(self) -> Tuple[float, float]:
        """Full (x, z) extent."""
        return (self.half_extent[0] * 2.0, self.half_extent[1] * 2.0)

    @property
    def world_to_local(self) -> np.ndarray:
        return np.linalg.inv(self.transform)

    def contains_local(self, x: float, z: float, tolerance: float = 0.0) -> bool:
        """
        Check whether a plane-local (x, z) point lies within the rectangle.

        Args:
            x: Local x coordinate.
            z: Local z coordinate.
            tolerance: Fraction of the full extent added on each side.
        """
        hx, hz = self.half_extent
        ex, ez = self.extent
        return (
            abs(x - self.center[0]) <= hx + ex * tolerance
            and abs(z - self.center[1]) <= hz + ez * tolerance
        )
