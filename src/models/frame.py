"""
CameraFrame and ViewProjection models for captured tracking snapshots.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class ViewProjection:
    """
    Pinhole projection parameters of the image annotators mark.

    The camera looks down its local -Z axis with +Y up; pixel rows grow
    downward, so the v axis is flipped when unprojecting.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        fx: Horizontal focal length in pixels.
        fy: Vertical focal length in pixels.
        cx: Principal point x in pixels.
        cy: Principal point y in pixels.
        far: Far clipping distance used when unprojecting.
    """
    width: int = 1920
    height: int = 1440
    fx: float = 1590.0
    fy: float = 1590.0
    cx: float = 960.0
    cy: float = 720.0
    far: float = 100.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ViewProjection":
        """Adapter: Create from config dictionary."""
        width = int(d.get("width", 1920))
        height = int(d.get("height", 1440))
        return cls(
            width=width,
            height=height,
            fx=float(d.get("fx", 1590.0)),
            fy=float(d.get("fy", d.get("fx", 1590.0))),
            cx=float(d.get("cx", width / 2.0)),
            cy=float(d.get("cy", height / 2.0)),
            far=float(d.get("far", 100.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "fx": self.fx,
            "fy": self.fy,
            "cx": self.cx,
            "cy": self.cy,
            "far": self.far,
        }

    def scaled(self, width: int, height: int) -> "ViewProjection":
        """Return this projection rescaled to an image of a different resolution."""
        sx = width / float(self.width)
        sy = height / float(self.height)
        return ViewProjection(
            width=width,
            height=height,
            fx=self.fx * sx,
            fy=self.fy * sy,
            cx=self.cx * sx,
            cy=self.cy * sy,
            far=self.far,
        )

    def unproject(self, pixel: Tuple[float, float], depth: Optional[float] = None) -> np.ndarray:
        """
        Unproject a pixel into camera coordinates at the given depth.

        Defaults to the far clipping distance.
        """
        z = self.far if depth is None else depth
        u, v = float(pixel[0]), float(pixel[1])
        x = (u - self.cx) / self.fx * z
        y = -(v - self.cy) / self.fy * z
        return np.array([x, y, -z], dtype=float)

    def project(self, camera_point) -> Optional[Tuple[float, float]]:
        """
        Project a camera-space point to pixel coordinates.

        Returns None for points on or behind the image plane.
        """
        x, y, z = (float(c) for c in camera_point)
        if z >= 0.0:
            return None
        depth = -z
        return (self.cx + self.fx * x / depth, self.cy - self.fy * y / depth)


@dataclass(frozen=True, eq=False)
class CameraFrame:
    """
    Snapshot of tracking state at one instant.

    Attributes:
        transform: 4x4 camera-to-world transform, or None when tracking had
            no valid pose for this frame.
        feature_points: Sparse (N, 3) feature point cloud in world space.
        projection: Projection parameters of the captured image. None means
            the configured default applies.
        timestamp: Unix timestamp when the frame was captured.
    """
    transform: Optional[np.ndarray] = None
    feature_points: Optional[np.ndarray] = None
    projection: Optional[ViewProjection] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.transform is not None:
            transform = np.asarray(self.transform, dtype=float)
            if transform.shape != (4, 4):
                raise ValueError(f"transform must be 4x4, got {transform.shape}")
            transform.setflags(write=False)
            object.__setattr__(self, "transform", transform)
        if self.feature_points is not None:
            points = np.asarray(self.feature_points, dtype=float).reshape(-1, 3)
            points.setflags(write=False)
            object.__setattr__(self, "feature_points", points)

    @classmethod
    def from_pose(
        cls,
        rotation: np.ndarray,
        position,
        feature_points=None,
        projection: Optional[ViewProjection] = None,
        timestamp: Optional[float] = None,
    ) -> "CameraFrame":
        """Create a frame from a 3x3 rotation and a camera position."""
        transform = np.eye(4)
        transform[:3, :3] = np.asarray(rotation, dtype=float)
        transform[:3, 3] = np.asarray(position, dtype=float)
        return cls(
            transform=transform,
            feature_points=feature_points,
            projection=projection,
            timestamp=time.time() if timestamp is None else timestamp,
        )

    @property
    def has_transform(self) -> bool:
        """Whether this frame carries a usable camera pose."""
        return self.transform is not None and bool(np.all(np.isfinite(self.transform)))

    @property
    def camera_position(self) -> Optional[np.ndarray]:
        """Camera position in world space."""
        if not self.has_transform:
            return None
        return np.array(self.transform[:3, 3])

    @property
    def num_feature_points(self) -> int:
        if self.feature_points is None:
            return 0
        return len(self.feature_points)
