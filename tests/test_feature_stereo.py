"""
Tests for feature-point hit testing and two-view triangulation.
"""

import numpy as np
import pytest

from geometry.feature_hits import hit_test_closest_feature, hit_test_features
from geometry.rays import Ray
from geometry.stereo import closest_approach, triangulate


@pytest.fixture
def forward_ray():
    """Ray from the origin along -Z."""
    return Ray.from_direction((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))


@pytest.fixture
def feature_cloud():
    return np.array([
        [0.0, 0.0, -1.0],     # on the ray, 1 m
        [0.1, 0.0, -0.5],     # ~11.3 deg off axis, outside the 9 deg half-angle
        [0.05, 0.0, -1.5],    # ~1.9 deg off axis, 1.5 m
        [0.0, 0.0, -3.0],     # beyond max distance
        [0.0, 0.0, -0.1],     # closer than min distance
        [0.0, 0.0, 1.0],      # behind the camera
    ])


class TestFeatureHits:
    def test_results_sorted_by_distance(self, forward_ray, feature_cloud):
        """Accepted points come back nearest first."""
        results = hit_test_features(forward_ray, feature_cloud, 18.0, 0.2, 2.0, max_results=5)

        assert len(results) == 2
        distances = [r.distance_to_ray_origin for r in results]
        assert distances == sorted(distances)
        assert distances[0] == pytest.approx(1.0)
        assert distances[1] == pytest.approx(1.5)

    def test_results_are_subset_of_input(self, forward_ray, feature_cloud):
        results = hit_test_features(forward_ray, feature_cloud, 18.0, 0.2, 2.0, max_results=5)
        for result in results:
            assert any(np.allclose(result.feature_point, p) for p in feature_cloud)

    def test_position_is_projection_onto_ray(self, forward_ray, feature_cloud):
        results = hit_test_features(forward_ray, feature_cloud, 18.0, 0.2, 2.0, max_results=5)

        np.testing.assert_allclose(results[1].position, [0.0, 0.0, -1.5], atol=1e-12)
        assert results[1].feature_distance_to_ray == pytest.approx(0.05)

    def test_max_results_truncates(self, forward_ray, feature_cloud):
        results = hit_test_features(forward_ray, feature_cloud, 18.0, 0.2, 2.0, max_results=1)
        assert len(results) == 1
        np.testing.assert_allclose(results[0].feature_point, [0.0, 0.0, -1.0])

    def test_wider_cone_accepts_more(self, forward_ray, feature_cloud):
        results = hit_test_features(forward_ray, feature_cloud, 30.0, 0.2, 2.0, max_results=5)
        assert len(results) == 3
        assert results[0].distance_to_ray_origin == pytest.approx(0.5, abs=1e-9)

    def test_empty_cloud(self, forward_ray):
        assert hit_test_features(forward_ray, np.empty((0, 3)), 18.0) == []
        assert hit_test_features(forward_ray, None, 18.0) == []


class TestClosestFeature:
    def test_picks_point_nearest_to_ray(self, forward_ray):
        points = np.array([[1.0, 0.0, -1.0], [0.2, 0.0, -5.0]])
        result = hit_test_closest_feature(forward_ray, points)

        np.testing.assert_allclose(result.feature_point, [0.2, 0.0, -5.0])
        np.testing.assert_allclose(result.position, [0.0, 0.0, -5.0], atol=1e-12)
        assert result.feature_distance_to_ray == pytest.approx(0.2)

    def test_empty_cloud(self, forward_ray):
        assert hit_test_closest_feature(forward_ray, []) is None


class TestTriangulate:
    def test_parallel_rays_rejected(self):
        """Parallel rays never produce a position."""
        first = Ray.from_direction((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        second = Ray.from_direction((0.0, 1.0, 0.0), (1.0, 0.0, 0.0))

        assert closest_approach(first, second) is None
        assert triangulate(first, second) is None

    def test_intersecting_rays_meet_at_target(self):
        target = np.array([1.0, 1.0, -2.0])
        first = Ray.from_points((0.0, 0.0, 0.0), target)
        second = Ray.from_points((2.0, 0.0, 0.0), target)

        solution = triangulate(first, second)

        np.testing.assert_allclose(solution.point, target, atol=1e-9)
        assert solution.separation == pytest.approx(0.0, abs=1e-9)

    def test_skew_rays_use_midpoint(self):
        first = Ray.from_direction((-1.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        second = Ray.from_direction((0.0, 0.2, 1.0), (0.0, 0.0, -1.0))

        solution = triangulate(first, second)

        np.testing.assert_allclose(solution.point_on_first, [0.0, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(solution.point_on_second, [0.0, 0.2, 0.0], atol=1e-12)
        np.testing.assert_allclose(solution.point, [0.0, 0.1, 0.0], atol=1e-12)
        assert solution.separation == pytest.approx(0.2)

    def test_separation_limit(self):
        first = Ray.from_direction((-1.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        second = Ray.from_direction((0.0, 0.2, 1.0), (0.0, 0.0, -1.0))

        assert triangulate(first, second, max_separation=0.1) is None

    def test_closest_points_are_perpendicular(self):
        """D - E is orthogonal to both ray directions."""
        first = Ray.from_direction((0.0, 0.0, 0.0), (1.0, 0.2, 0.1))
        second = Ray.from_direction((0.0, 1.0, 0.0), (0.3, -0.1, 1.0))

        solution = closest_approach(first, second)
        gap = solution.point_on_first - solution.point_on_second

        assert float(np.dot(gap, first.direction)) == pytest.approx(0.0, abs=1e-9)
        assert float(np.dot(gap, second.direction)) == pytest.approx(0.0, abs=1e-9)

    def test_behind_camera_rejected(self):
        first = Ray.from_direction((-1.0, 0.0, 0.0), (-1.0, 0.0, 0.0))
        second = Ray.from_direction((0.0, 0.2, 1.0), (0.0, 0.0, -1.0))

        assert triangulate(first, second) is None
        assert triangulate(first, second, require_in_front=False) is not None

    def test_small_angle_rejected(self):
        angle = np.radians(0.5)
        first = Ray.from_direction((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        second = Ray.from_direction((0.1, 0.0, 0.0), (-np.sin(angle), 0.0, -np.cos(angle)))

        assert triangulate(first, second) is None
        assert triangulate(first, second, min_ray_angle_deg=0.1) is not None
