"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from geometry.vectors import look_at_rotation  # noqa: E402
from models.config import JobsConfig, LocalizationConfig, StereoConfig  # noqa: E402
from models.frame import CameraFrame, ViewProjection  # noqa: E402
from models.plane import Plane  # noqa: E402


def make_frame(position, target=(0.0, 0.0, 0.0), feature_points=None, projection=None, up=(0.0, 1.0, 0.0)):
    """Frame whose camera sits at `position` and looks at `target`."""
    rotation = look_at_rotation(position, target, up)
    return CameraFrame.from_pose(
        rotation,
        position,
        feature_points=feature_points,
        projection=projection,
        timestamp=0.0,
    )


def pixel_of(point, frame, projection=None):
    """Pixel where a world point appears in a frame."""
    view = frame.projection or projection or ViewProjection()
    camera_point = np.linalg.inv(frame.transform) @ np.append(np.asarray(point, dtype=float), 1.0)
    return view.project(camera_point[:3])


@pytest.fixture
def projection():
    """Default view projection (1920x1440, principal point at the center)."""
    return ViewProjection()


@pytest.fixture
def front_frame():
    """Camera 1.5 m up and 2 m back, looking at the origin."""
    return make_frame((0.0, 1.5, 2.0))


@pytest.fixture
def side_frame():
    """Camera 1.5 m up and 2 m to the right, looking at the origin."""
    return make_frame((2.0, 1.5, 0.0))


@pytest.fixture
def lost_frame():
    """Frame captured while tracking had no pose."""
    return CameraFrame(transform=None, timestamp=0.0)


@pytest.fixture
def floor_plane():
    """4 m x 4 m horizontal plane at y = 0 centered on the origin."""
    return Plane.horizontal("floor", (0.0, 0.0, 0.0), (4.0, 4.0))


@pytest.fixture
def localization_config():
    return LocalizationConfig()


@pytest.fixture
def stereo_config():
    return StereoConfig()


@pytest.fixture
def jobs_config():
    return JobsConfig(timeout_seconds=120.0, max_responses=10)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
projection:
  width: 1920
  height: 1440
  fx: 1590.0
  fy: 1590.0

localization:
  allow_feature_hit: false
  feature_cone_angle_deg: 18.0

jobs:
  timeout_seconds: 120
  max_responses: 10

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "projection": {
            "width": 1920,
            "height": 1440,
            "fx": 1590.0,
            "fy": 1590.0,
            "cx": 960.0,
            "cy": 720.0,
            "far": 100.0,
        },
        "localization": {
            "allow_feature_hit": False,
            "feature_cone_angle_deg": 18.0,
            "feature_min_distance": 0.2,
            "feature_max_distance": 2.0,
            "feature_max_results": 1,
            "allow_closest_feature_fallback": False,
            "max_placement_distance": 10.0,
            "parallel_epsilon": 1e-6,
        },
        "stereo": {
            "min_ray_angle_deg": 1.0,
            "max_separation": 0.5,
            "require_in_front": True,
        },
        "jobs": {
            "timeout_seconds": 120,
            "max_responses": 10,
        },
        "snapping": {
            "tolerance": 0.1,
            "vertical_allowance": 0.05,
            "epsilon": 0.001,
        },
        "engine": {
            "poll_interval": 0.01,
            "stats_log_interval": 60,
            "expiry_check_interval": 1.0,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
