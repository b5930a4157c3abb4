"""
Two-view triangulation by closest approach of two rays.

For rays A + t*a and B + s*b with c = B - A, the closest points are

    D = A + a * (-(a.b)(b.c) + (a.c)(b.b)) / ((a.a)(b.b) - (a.b)^2)
    E = B + b * ((a.b)(a.c) - (b.c)(a.a)) / ((a.a)(b.b) - (a.b)^2)

and the estimate is their midpoint. Near-parallel rays drive the
denominator to zero, so `triangulate` rejects them before trusting D and E.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .rays import Ray


@dataclass(frozen=True, eq=False)
class StereoSolution:
    """
    Closest approach between two rays.

    Attributes:
        point: Midpoint of the two closest points.
        point_on_first: Closest point D on the first ray's line.
        point_on_second: Closest point E on the second ray's line.
        t: Parameter of D along the first ray.
        s: Parameter of E along the second ray.
        separation: |D - E|.
        ray_angle_deg: Angle between the two ray directions.
    """
    point: np.ndarray
    point_on_first: np.ndarray
    point_on_second: np.ndarray
    t: float
    s: float
    separation: float
    ray_angle_deg: float


def _angle_between_deg(a: np.ndarray, b: np.ndarray) -> float:
    cos_angle = float(np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b)))
    return math.degrees(math.acos(max(-1.0, min(1.0, cos_angle))))


def closest_approach(first: Ray, second: Ray) -> Optional[StereoSolution]:
    """
    Closed-form closest points between the lines through two rays.

    Returns None only when the denominator is exactly zero (parallel
    directions); no other sanity checks are applied.
    """
    A, a = first.origin, first.direction
    B, b = second.origin, second.direction
    c = B - A

    aa = float(np.dot(a, a))
    bb = float(np.dot(b, b))
    ab = float(np.dot(a, b))
    ac = float(np.dot(a, c))
    bc = float(np.dot(b, c))

    denominator = aa * bb - ab * ab
    if denominator == 0.0:
        return None

    t = (-ab * bc + ac * bb) / denominator
    s = (ab * ac - bc * aa) / denominator
    D = A + a * t
    E = B + b * s

    return StereoSolution(
        point=(D + E) / 2.0,
        point_on_first=D,
        point_on_second=E,
        t=t,
        s=s,
        separation=float(np.linalg.norm(D - E)),
        ray_angle_deg=_angle_between_deg(a, b),
    )


def triangulate(
    first: Ray,
    second: Ray,
    min_ray_angle_deg: float = 1.0,
    max_separation: float = 0.5,
    require_in_front: bool = True,
) -> Optional[StereoSolution]:
    """
    Triangulate a point from two rays, rejecting unreliable geometry.

    Args:
        first: Ray from the first annotation.
        second: Ray from the second annotation.
        min_ray_angle_deg: Rays closer to parallel than this are rejected.
        max_separation: Maximum allowed |D - E| between the closest points.
        require_in_front: Reject solutions behind either ray origin.

    Returns:
        The solution, or None if it was rejected.
    """
    angle = _angle_between_deg(first.direction, second.direction)
    if angle < min_ray_angle_deg or angle > 180.0 - min_ray_angle_deg:
        logging.debug(f"[STEREO] rejected: rays nearly parallel (angle={angle:.3f} deg)")
        return None

    solution = closest_approach(first, second)
    if solution is None or not np.all(np.isfinite(solution.point)):
        logging.debug("[STEREO] rejected: degenerate closest approach")
        return None

    if require_in_front and (solution.t <= 0 or solution.s <= 0):
        logging.debug(
            f"[STEREO] rejected: closest points behind camera (t={solution.t:.3f}, s={solution.s:.3f})"
        )
        return None

    if solution.separation > max_separation:
        logging.debug(
            f"[STEREO] rejected: separation {solution.separation:.3f} > {max_separation:.3f}"
        )
        return None

    return solution
