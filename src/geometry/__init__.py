"""
Geometry for turning pixel annotations into world positions.

All functions here are pure: they read their arguments and return new
values, so they can be called from any thread.
"""

from .rays import Ray, ray_from_pixel
from .plane_hits import (
    hit_test_infinite_horizontal_plane,
    hit_test_planes,
    intersect_plane,
    snap_to_plane,
)
from .feature_hits import FeatureHitResult, hit_test_closest_feature, hit_test_features
from .stereo import StereoSolution, closest_approach, triangulate
from .vectors import clamp_distance, euler_to_rotation_matrix, look_at_rotation, normalize

__all__ = [
    "Ray",
    "ray_from_pixel",
    "hit_test_infinite_horizontal_plane",
    "hit_test_planes",
    "intersect_plane",
    "snap_to_plane",
    "FeatureHitResult",
    "hit_test_closest_feature",
    "hit_test_features",
    "StereoSolution",
    "closest_approach",
    "triangulate",
    "clamp_distance",
    "euler_to_rotation_matrix",
    "look_at_rotation",
    "normalize",
]
