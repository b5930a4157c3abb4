"""
Tests for single-view and two-view localization.
"""

import numpy as np
import pytest

from conftest import make_frame, pixel_of
from localization.localizer import Localizer, create_localizer_from_config
from models.config import Config, LocalizationConfig, StereoConfig
from models.frame import ViewProjection
from models.plane import Plane
from models.result import FeatureHit, HitKind, NoHit, PlaneHit, StereoHit, is_hit
from tracking.plane_registry import PlaneRegistry


@pytest.fixture
def registry(floor_plane):
    planes = PlaneRegistry()
    planes.add(floor_plane)
    return planes


def _localizer(planes=None, **overrides):
    return Localizer(
        LocalizationConfig(**overrides),
        StereoConfig(),
        ViewProjection(),
        planes if planes is not None else [],
    )


class TestLocate:
    def test_plane_hit(self, registry, front_frame):
        """A mark on the floor resolves to the floor point."""
        target = np.array([0.5, 0.0, 0.3])
        result = _localizer(registry).locate(pixel_of(target, front_frame), front_frame)

        assert isinstance(result, PlaneHit)
        assert result.kind is HitKind.PLANE
        assert result.plane.plane_id == "floor"
        assert result.hit_a_plane
        np.testing.assert_allclose(result.position, target, atol=1e-9)

    def test_no_planes_no_features(self, front_frame):
        result = _localizer().locate((960.0, 720.0), front_frame)

        assert isinstance(result, NoHit)
        assert result.reason == "no_surface"
        assert result.position is None
        assert not is_hit(result)

    def test_missing_transform(self, registry, lost_frame):
        result = _localizer(registry).locate((960.0, 720.0), lost_frame)
        assert result.reason == "no_transform"

    def test_unknown_frame(self, registry):
        assert _localizer(registry).locate((960.0, 720.0), None).reason == "no_transform"

    def test_plane_removed_between_calls(self, registry, front_frame):
        """Planes are read on every call."""
        localizer = _localizer(registry)
        assert is_hit(localizer.locate((960.0, 720.0), front_frame))

        registry.remove("floor")

        assert not is_hit(localizer.locate((960.0, 720.0), front_frame))

    def test_feature_hit_disabled_by_default(self):
        frame = make_frame((0.0, 0.6, 0.8), feature_points=[[0.0, 0.0, 0.0]])
        assert not is_hit(_localizer().locate((960.0, 720.0), frame))

    def test_feature_hit_when_enabled(self):
        frame = make_frame((0.0, 0.6, 0.8), feature_points=[[0.0, 0.0, 0.0]])
        result = _localizer(allow_feature_hit=True).locate((960.0, 720.0), frame)

        assert isinstance(result, FeatureHit)
        assert result.plane is None
        assert not result.hit_a_plane
        np.testing.assert_allclose(result.position, [0.0, 0.0, 0.0], atol=1e-9)

    def test_plane_takes_precedence_over_features(self, registry):
        frame = make_frame((0.0, 0.6, 0.8), feature_points=[[0.0, 0.3, 0.4]])
        result = _localizer(registry, allow_feature_hit=True).locate((960.0, 720.0), frame)
        assert result.kind is HitKind.PLANE

    def test_closest_feature_fallback(self):
        """Off-cone features are used only when the fallback is enabled."""
        frame = make_frame((0.0, 0.6, 0.8), feature_points=[[1.0, 0.0, 0.0]])

        assert not is_hit(_localizer(allow_feature_hit=True).locate((960.0, 720.0), frame))

        result = _localizer(allow_closest_feature_fallback=True).locate((960.0, 720.0), frame)
        assert isinstance(result, FeatureHit)
        np.testing.assert_allclose(result.position, [0.0, 0.0, 0.0], atol=1e-9)
        assert result.feature_distance_to_ray == pytest.approx(1.0)

    def test_callable_plane_source(self, floor_plane, front_frame):
        localizer = _localizer(lambda: [floor_plane])
        assert localizer.locate((960.0, 720.0), front_frame).kind is HitKind.PLANE


class TestLocateStereo:
    def test_two_views_triangulate(self, front_frame, side_frame):
        target = np.array([0.2, 0.3, -0.1])
        result = _localizer().locate_stereo(
            pixel_of(target, front_frame), front_frame,
            pixel_of(target, side_frame), side_frame,
            annotator_id="alice",
            image_ids=("a", "b"),
        )

        assert isinstance(result, StereoHit)
        assert result.annotator_id == "alice"
        assert result.image_ids == ("a", "b")
        np.testing.assert_allclose(result.position, target, atol=1e-6)

    def test_same_view_twice_rejected(self, front_frame):
        result = _localizer().locate_stereo((960.0, 720.0), front_frame, (960.0, 720.0), front_frame)
        assert result.reason == "stereo_rejected"

    def test_missing_transform(self, front_frame, lost_frame):
        result = _localizer().locate_stereo((960.0, 720.0), front_frame, (960.0, 720.0), lost_frame)
        assert result.reason == "no_transform"


class TestPlacementPosition:
    def test_far_position_is_clamped(self):
        frame = make_frame((0.0, 0.0, 0.0), target=(0.0, 0.0, -1.0))
        result = StereoHit(position=np.array([0.0, 0.0, -20.0]), separation=0.0)

        position = _localizer().placement_position(result, frame)

        np.testing.assert_allclose(position, [0.0, 0.0, -10.0])

    def test_no_hit_has_no_position(self, front_frame):
        assert _localizer().placement_position(NoHit("no_surface"), front_frame) is None


class TestFactory:
    def test_create_from_config(self, registry, front_frame):
        config = Config.from_dict({"localization": {"allow_feature_hit": True}})
        localizer = create_localizer_from_config(config, registry)

        assert localizer.config.allow_feature_hit is True
        assert len(localizer.current_planes()) == 1
