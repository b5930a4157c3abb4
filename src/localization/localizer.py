"""
Localizer: turns a pixel annotation on a captured frame into a world position.

Single-view resolution tries, in order:
1. The nearest in-bounds hit against the detected planes.
2. (optional) The nearest feature point inside a cone around the ray.
3. (optional) The feature point closest to the ray, projected onto it.

Two-view resolution triangulates the rays of two annotations.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

import numpy as np

from geometry.feature_hits import hit_test_closest_feature, hit_test_features
from geometry.plane_hits import hit_test_planes
from geometry.rays import ray_from_pixel
from geometry.stereo import triangulate
from geometry.vectors import clamp_distance
from models.config import Config, LocalizationConfig, StereoConfig
from models.frame import CameraFrame, ViewProjection
from models.plane import Plane
from models.result import FeatureHit, LocalizationResult, NoHit, StereoHit
from tracking.plane_registry import PlaneRegistry


PlaneSource = Union[PlaneRegistry, Callable[[], Iterable[Plane]], Sequence[Plane]]


class Localizer:
    """
    Resolves pixel annotations against the reconstructed scene.

    The localizer holds no per-job state; planes are read from the plane
    source on every call, so results always reflect the latest geometry.

    Example:
        localizer = Localizer(LocalizationConfig(), StereoConfig(), ViewProjection(), registry)
        result = localizer.locate((960, 720), frame)
        if result.position is not None:
            place_marker(result.position)
    """

    def __init__(
        self,
        config: LocalizationConfig,
        stereo_config: StereoConfig,
        projection: ViewProjection,
        planes: Optional[PlaneSource] = None,
    ):
        self._config = config
        self._stereo_config = stereo_config
        self._projection = projection
        self._planes = planes if planes is not None else []

    @property
    def config(self) -> LocalizationConfig:
        return self._config

    @property
    def projection(self) -> ViewProjection:
        return self._projection

    def current_planes(self) -> Sequence[Plane]:
        """Snapshot of the planes to test against."""
        source = self._planes
        if isinstance(source, PlaneRegistry):
            return source.planes()
        if callable(source):
            return list(source())
        return list(source)

    def locate(self, pixel: Tuple[float, float], frame: Optional[CameraFrame]) -> LocalizationResult:
        """
        Resolve a single annotation.

        Args:
            pixel: (u, v) pixel location in the frame's image.
            frame: Captured frame the pixel refers to (None if unknown).

        Returns:
            PlaneHit, FeatureHit, or NoHit.
        """
        ray = ray_from_pixel(pixel, self._projection, frame)
        if ray is None:
            return NoHit("no_transform")

        plane_hit = hit_test_planes(ray, self.current_planes(), self._config.parallel_epsilon)
        if plane_hit is not None:
            return plane_hit

        points = frame.feature_points
        if self._config.allow_feature_hit and points is not None:
            results = hit_test_features(
                ray,
                points,
                cone_angle_deg=self._config.feature_cone_angle_deg,
                min_distance=self._config.feature_min_distance,
                max_distance=self._config.feature_max_distance,
                max_results=self._config.feature_max_results,
            )
            if results:
                return self._feature_hit(results[0])

        if self._config.allow_closest_feature_fallback and points is not None:
            closest = hit_test_closest_feature(ray, points)
            if closest is not None:
                return self._feature_hit(closest)

        return NoHit("no_surface")

    def locate_stereo(
        self,
        first_pixel: Tuple[float, float],
        first_frame: Optional[CameraFrame],
        second_pixel: Tuple[float, float],
        second_frame: Optional[CameraFrame],
        annotator_id: str = "",
        image_ids: tuple = (),
    ) -> LocalizationResult:
        """
        Triangulate two annotations made on two different frames.

        Returns:
            StereoHit, or NoHit if either ray is missing or the pair was rejected.
        """
        first = ray_from_pixel(first_pixel, self._projection, first_frame)
        second = ray_from_pixel(second_pixel, self._projection, second_frame)
        if first is None or second is None:
            return NoHit("no_transform")

        solution = triangulate(
            first,
            second,
            min_ray_angle_deg=self._stereo_config.min_ray_angle_deg,
            max_separation=self._stereo_config.max_separation,
            require_in_front=self._stereo_config.require_in_front,
        )
        if solution is None:
            return NoHit("stereo_rejected")

        logging.info(
            f"[STEREO] annotator={annotator_id} images={list(image_ids)} "
            f"separation={solution.separation:.3f} angle={solution.ray_angle_deg:.1f}deg"
        )
        return StereoHit(
            position=solution.point,
            separation=solution.separation,
            annotator_id=annotator_id,
            image_ids=tuple(image_ids),
        )

    def placement_position(self, result: LocalizationResult, frame: Optional[CameraFrame]) -> Optional[np.ndarray]:
        """
        Final marker position for a result, kept within range of the camera.
        """
        if result.position is None:
            return None
        if frame is None or not frame.has_transform:
            return np.array(result.position, dtype=float)
        return clamp_distance(
            frame.camera_position,
            np.asarray(result.position, dtype=float),
            self._config.max_placement_distance,
        )

    @staticmethod
    def _feature_hit(hit) -> FeatureHit:
        return FeatureHit(
            position=hit.position,
            feature_point=hit.feature_point,
            distance_to_ray_origin=hit.distance_to_ray_origin,
            feature_distance_to_ray=hit.feature_distance_to_ray,
        )


def create_localizer_from_config(config: Config, planes: Optional[PlaneSource] = None) -> Localizer:
    """
    Factory function to create a Localizer from the typed application config.

    Args:
        config: Application config.
        planes: Plane registry (or any plane source) to hit test against.
    """
    return Localizer(
        config=config.localization,
        stereo_config=config.stereo,
        projection=config.projection,
        planes=planes,
    )
