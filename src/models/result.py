"""
Localization result types.

A resolution attempt produces exactly one of PlaneHit, FeatureHit,
StereoHit or NoHit. Callers dispatch on `kind` (or isinstance) so every
resolution path is handled explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import numpy as np

from .plane import Plane


class HitKind(str, Enum):
    """How a position was resolved."""
    PLANE = "plane"
    FEATURE = "feature"
    STEREO = "stereo"
    NONE = "none"


@dataclass(frozen=True, eq=False)
class PlaneHit:
    """
    Ray hit inside the bounds of a detected plane.

    Attributes:
        position: World-space hit point.
        plane: The plane that was hit.
        distance: Parametric distance along the (unit) ray.
    """
    position: np.ndarray
    plane: Plane
    distance: float

    kind = HitKind.PLANE

    @property
    def hit_a_plane(self) -> bool:
        return True


@dataclass(frozen=True, eq=False)
class FeatureHit:
    """
    Ray hit against the sparse feature point cloud.

    Attributes:
        position: Projection of the feature point onto the ray.
        feature_point: The feature point that was selected.
        distance_to_ray_origin: Distance from ray origin to `position`.
        feature_distance_to_ray: Perpendicular distance of the feature to the ray.
    """
    position: np.ndarray
    feature_point: np.ndarray
    distance_to_ray_origin: float
    feature_distance_to_ray: float

    kind = HitKind.FEATURE
    plane = None

    @property
    def hit_a_plane(self) -> bool:
        return False


@dataclass(frozen=True, eq=False)
class StereoHit:
    """
    Position triangulated from two annotations on two camera poses.

    Attributes:
        position: Midpoint of the closest points on both rays.
        separation: Distance between the two closest points.
        annotator_id: Annotator whose two responses were used.
        image_ids: Image identifiers of the two responses.
    """
    position: np.ndarray
    separation: float
    annotator_id: str = ""
    image_ids: tuple = ()

    kind = HitKind.STEREO
    plane = None

    @property
    def hit_a_plane(self) -> bool:
        return False


@dataclass(frozen=True)
class NoHit:
    """No usable position; `reason` explains which path gave up last."""
    reason: str = ""

    kind = HitKind.NONE
    plane = None
    position = None

    @property
    def hit_a_plane(self) -> bool:
        return False


LocalizationResult = Union[PlaneHit, FeatureHit, StereoHit, NoHit]


def is_hit(result: Optional[LocalizationResult]) -> bool:
    """True when a result carries a position."""
    return result is not None and result.kind is not HitKind.NONE
