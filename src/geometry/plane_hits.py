"""
Ray/plane hit testing against bounded planar surfaces.

Each plane is tested in its own local frame, where the surface is y = 0 and
the normal is +Y. Only hits inside the plane rectangle count; the snapping
tolerance is applied separately by `snap_to_plane`.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

import numpy as np

from models.plane import Plane
from models.result import PlaneHit
from .rays import Ray
from .vectors import transform_point, transform_vector


# Rays pointing up, or almost parallel to the floor, never hit an infinite horizontal plane.
MIN_DOWNWARD_COMPONENT = 0.03


def _world_to_local(plane: Plane) -> Optional[np.ndarray]:
    """Inverse of the plane transform, or None for a singular transform."""
    try:
        return plane.world_to_local
    except np.linalg.LinAlgError:
        logging.debug(f"Plane {plane.plane_id} has a singular transform; skipped")
        return None


def intersect_plane(
    ray: Ray,
    plane: Plane,
    parallel_epsilon: float = 1e-6,
) -> Optional[Tuple[float, np.ndarray]]:
    """
    Intersect a ray with a bounded plane.

    Args:
        ray: World-space ray.
        plane: Plane to test.
        parallel_epsilon: Minimum |local y| of the direction; smaller means
            the ray runs parallel to the plane.

    Returns:
        (t, world_point) for an in-bounds hit in front of the ray origin,
        otherwise None.
    """
    world_to_local = _world_to_local(plane)
    if world_to_local is None:
        return None
    local_origin = transform_point(world_to_local, ray.origin)
    local_direction = transform_vector(world_to_local, ray.direction)

    if abs(local_direction[1]) < parallel_epsilon:
        return None

    t = -local_origin[1] / local_direction[1]
    if not np.isfinite(t) or t <= 0:
        return None

    local_hit = local_origin + local_direction * t
    if not plane.contains_local(local_hit[0], local_hit[2]):
        return None

    return float(t), transform_point(plane.transform, local_hit)


def hit_test_planes(
    ray: Ray,
    planes: Iterable[Plane],
    parallel_epsilon: float = 1e-6,
) -> Optional[PlaneHit]:
    """
    Return the nearest in-bounds plane hit along the ray, or None.
    """
    best: Optional[PlaneHit] = None
    for plane in planes:
        hit = intersect_plane(ray, plane, parallel_epsilon)
        if hit is None:
            continue
        t, point = hit
        if best is None or t < best.distance:
            best = PlaneHit(position=point, plane=plane, distance=t)

    if best is not None:
        logging.debug(f"Plane hit: plane={best.plane.plane_id} t={best.distance:.3f}")
    return best


def hit_test_infinite_horizontal_plane(
    ray: Ray,
    plane_y: float,
    min_downward: float = MIN_DOWNWARD_COMPONENT,
) -> Optional[np.ndarray]:
    """
    Intersect a ray with the unbounded horizontal plane y = plane_y.

    Planes above the camera and near-parallel rays are rejected.
    """
    if ray.direction[1] > -min_downward:
        return None
    t = (plane_y - ray.origin[1]) / ray.direction[1]
    if t <= 0:
        return None
    return ray.point_at(t)


def snap_to_plane(
    position: np.ndarray,
    plane: Plane,
    tolerance: float = 0.1,
    vertical_allowance: float = 0.05,
    epsilon: float = 0.001,
) -> Optional[np.ndarray]:
    """
    Move an already-placed position onto a nearby plane.

    The plane rectangle is grown by `tolerance` (fraction of the extent) on
    each side. A position that lies within that rectangle and between
    `epsilon` and `vertical_allowance` from the surface is projected onto it.

    Returns:
        The snapped world position, or None if no move applies.
    """
    world_to_local = _world_to_local(plane)
    if world_to_local is None:
        return None
    local = transform_point(world_to_local, np.asarray(position, dtype=float))
    if not plane.contains_local(local[0], local[2], tolerance=tolerance):
        return None

    distance_to_plane = abs(local[1])
    if distance_to_plane <= epsilon or distance_to_plane >= vertical_allowance:
        return None

    snapped_local = np.array([local[0], 0.0, local[2]])
    return transform_point(plane.transform, snapped_local)
