"""
Ray hit testing against the sparse feature point cloud.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .rays import Ray


@dataclass(frozen=True, eq=False)
class FeatureHitResult:
    """
    A feature point accepted by a hit test.

    Attributes:
        position: Projection of the feature point onto the ray.
        distance_to_ray_origin: Distance from the ray origin to `position`.
        feature_point: The feature point itself.
        feature_distance_to_ray: Perpendicular distance from the point to the ray.
    """
    position: np.ndarray
    distance_to_ray_origin: float
    feature_point: np.ndarray
    feature_distance_to_ray: float


def _as_points(points) -> np.ndarray:
    if points is None:
        return np.empty((0, 3))
    return np.asarray(points, dtype=float).reshape(-1, 3)


def hit_test_features(
    ray: Ray,
    points,
    cone_angle_deg: float,
    min_distance: float = 0.0,
    max_distance: float = math.inf,
    max_results: int = 1,
) -> List[FeatureHitResult]:
    """
    Find feature points inside a cone around the ray.

    Args:
        ray: World-space ray.
        points: (N, 3) feature points.
        cone_angle_deg: Full opening angle of the cone (capped at 360).
        min_distance: Minimum distance along the ray.
        max_distance: Maximum distance along the ray.
        max_results: Number of results to keep.

    Returns:
        Accepted points sorted by increasing distance along the ray,
        truncated to `max_results`.
    """
    pts = _as_points(points)
    if len(pts) == 0 or max_results <= 0:
        return []

    max_angle = math.radians(min(cone_angle_deg, 360.0) / 2.0)

    origin_to_feature = pts - ray.origin
    along = origin_to_feature @ ray.direction
    projected = ray.origin + np.outer(along, ray.direction)
    projected_distance = np.linalg.norm(projected - ray.origin, axis=1)
    perpendicular = np.linalg.norm(np.cross(origin_to_feature, ray.direction), axis=1)
    lengths = np.linalg.norm(origin_to_feature, axis=1)

    keep = (projected_distance >= min_distance) & (projected_distance <= max_distance) & (lengths > 0)

    cos_angle = np.ones(len(pts))
    cos_angle[keep] = along[keep] / lengths[keep]
    angle = np.arccos(np.clip(cos_angle, -1.0, 1.0))
    keep &= angle <= max_angle

    indices = np.flatnonzero(keep)
    order = indices[np.argsort(projected_distance[indices], kind="stable")]

    return [
        FeatureHitResult(
            position=projected[i],
            distance_to_ray_origin=float(projected_distance[i]),
            feature_point=np.array(pts[i]),
            feature_distance_to_ray=float(perpendicular[i]),
        )
        for i in order[:max_results]
    ]


def hit_test_closest_feature(ray: Ray, points) -> Optional[FeatureHitResult]:
    """
    Project the feature point closest to the ray (any angle) onto the ray.

    Returns None when there are no feature points.
    """
    pts = _as_points(points)
    if len(pts) == 0:
        return None

    perpendicular = np.linalg.norm(np.cross(ray.origin - pts, ray.direction), axis=1)
    idx = int(np.argmin(perpendicular))
    feature = pts[idx]

    along = float(np.dot(ray.direction, feature - ray.origin))
    position = ray.point_at(along)
    return FeatureHitResult(
        position=position,
        distance_to_ray_origin=float(np.linalg.norm(position - ray.origin)),
        feature_point=np.array(feature),
        feature_distance_to_ray=float(perpendicular[idx]),
    )
