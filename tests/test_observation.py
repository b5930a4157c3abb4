"""
Tests for the observation layer.
"""

from typing import Optional

import numpy as np
import pytest

from observation.base import EventKind, EventSource, EventSourceConfig, SessionEvent
from observation.scenario_source import ScenarioSource, ScenarioSourceConfig, parse_frame, parse_plane


class MockSource(EventSource):
    """Mock event source for testing."""

    def __init__(self, config: EventSourceConfig, events: list = None):
        super().__init__(config)
        self._events = events or []
        self._pos = 0

    def open(self) -> None:
        self._is_open = True
        self._pos = 0
        self._event_index = 0

    def read(self) -> Optional[SessionEvent]:
        if not self._is_open or self._pos >= len(self._events):
            return None
        event = self._events[self._pos]
        self._pos += 1
        self._event_index += 1
        return event

    def close(self) -> None:
        self._is_open = False


@pytest.fixture
def scenario_data():
    return {
        "projection": {"width": 1920, "height": 1440, "fx": 1590.0, "fy": 1590.0},
        "frames": {
            "front": {"position": [0.0, 1.5, 2.0], "look_at": [0.0, 0.0, 0.0]},
            "lost": {"transform": None},
        },
        "planes": {
            "floor": {"position": [0.0, 0.0, 0.0], "extent": [4.0, 4.0]},
        },
        "steps": [
            {"plane": "floor"},
            {"open_job": {"job_id": "j1", "object": "keys", "frame": "front", "image_id": "img1"}},
            {"snapshot": {"job_id": "j1", "frame": "lost", "image_id": "img2"}},
            {"annotations": {"job_id": "j1", "responses": [
                {"annotator_id": "alice", "image_id": "img1", "point": [0.0, 0.0, 0.0]},
                {"annotator_id": "bob", "image_id": "img2", "pixel": [10, 20]},
            ]}},
            {"remove_plane": "floor"},
            {"reset": {}},
        ],
    }


class TestEventSource:
    def test_context_manager_and_iteration(self):
        events = [SessionEvent(kind=EventKind.RESET, index=i) for i in range(3)]
        with MockSource(EventSourceConfig(source_id="mock"), events) as source:
            assert source.is_open
            assert [e.index for e in source] == [0, 1, 2]
            assert source.event_index == 3
        assert not source.is_open

    def test_iterating_closed_source_raises(self):
        source = MockSource(EventSourceConfig())
        with pytest.raises(RuntimeError):
            list(source)


class TestScenarioSource:
    def test_steps_in_order(self, scenario_data):
        with ScenarioSource(ScenarioSourceConfig(data=scenario_data)) as source:
            events = list(source)

        assert [e.kind for e in events] == [
            EventKind.PLANE,
            EventKind.OPEN_JOB,
            EventKind.SNAPSHOT,
            EventKind.ANNOTATIONS,
            EventKind.REMOVE_PLANE,
            EventKind.RESET,
        ]
        assert events[0].plane.plane_id == "floor"
        assert events[1].object_description == "keys"
        assert events[1].image_id == "img1"
        assert not events[2].frame.has_transform
        assert events[4].plane_id == "floor"

    def test_point_is_projected_to_pixel(self, scenario_data):
        """Responses given as world points are converted to pixels."""
        with ScenarioSource(ScenarioSourceConfig(data=scenario_data)) as source:
            annotations = [e for e in source if e.kind is EventKind.ANNOTATIONS][0]

        alice, bob = annotations.responses
        assert alice.pixel == pytest.approx((960.0, 720.0))
        assert bob.pixel == (10.0, 20.0)

    def test_frames_inherit_scenario_projection(self, scenario_data):
        scenario_data["projection"] = {"width": 640, "height": 480, "fx": 500.0, "fy": 500.0}
        scenario_data["frames"]["wide"] = {
            "position": [0.0, 1.5, 2.0],
            "look_at": [0.0, 0.0, 0.0],
            "projection": {"width": 1280, "height": 960, "fx": 900.0, "fy": 900.0},
        }
        scenario_data["steps"].append({"snapshot": {"job_id": "j1", "frame": "wide", "image_id": "img3"}})
        with ScenarioSource(ScenarioSourceConfig(data=scenario_data)) as source:
            events = list(source)

        assert events[1].frame.projection.width == 640
        assert events[1].frame.projection.cx == pytest.approx(320.0)
        assert events[-1].frame.projection.width == 1280

    def test_frames_without_scenario_projection_have_none(self, scenario_data):
        """Without a scenario projection the engine's configured default applies."""
        del scenario_data["projection"]
        with ScenarioSource(ScenarioSourceConfig(data=scenario_data)) as source:
            events = list(source)

        assert events[1].frame.projection is None

    def test_unknown_frame_fails_on_open(self, scenario_data):
        scenario_data["steps"].append({"snapshot": {"job_id": "j1", "frame": "nope"}})
        with pytest.raises(ValueError):
            ScenarioSource(ScenarioSourceConfig(data=scenario_data)).open()

    def test_unknown_step_fails_on_open(self, scenario_data):
        scenario_data["steps"].append({"teleport": {}})
        with pytest.raises(ValueError):
            ScenarioSource(ScenarioSourceConfig(data=scenario_data)).open()

    def test_point_on_lost_frame_fails(self, scenario_data):
        scenario_data["steps"].append({"annotations": {"job_id": "j1", "responses": [
            {"annotator_id": "carol", "image_id": "img2", "point": [0.0, 0.0, 0.0]},
        ]}})
        with pytest.raises(ValueError):
            ScenarioSource(ScenarioSourceConfig(data=scenario_data)).open()

    def test_missing_file(self, tmp_path):
        source = ScenarioSource(ScenarioSourceConfig.from_path(str(tmp_path / "missing.yaml")))
        with pytest.raises(RuntimeError):
            source.open()

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "tiny.yaml"
        path.write_text("""
projection:
  width: 960
  height: 720
  fx: 795.0
steps:
  - reset: {}
""")
        source = ScenarioSource(ScenarioSourceConfig.from_path(str(path)))
        source.open()

        assert source.source_id == "tiny"
        assert source.num_events == 1
        assert source.projection.cx == pytest.approx(480.0)
        source.close()


class TestParsers:
    def test_frame_from_euler(self):
        frame = parse_frame({"position": [1.0, 2.0, 3.0], "euler_deg": [0.0, 0.0, 0.0]})
        np.testing.assert_allclose(frame.transform, [
            [1.0, 0.0, 0.0, 1.0],
            [0.0, 1.0, 0.0, 2.0],
            [0.0, 0.0, 1.0, 3.0],
            [0.0, 0.0, 0.0, 1.0],
        ])

    def test_frame_with_feature_points(self):
        frame = parse_frame({"position": [0.0, 0.0, 0.0], "feature_points": [[0, 0, -1], [0, 0, -2]]})
        assert frame.num_feature_points == 2

    def test_plane_from_transform(self):
        transform = np.eye(4).tolist()
        plane = parse_plane("p", {"transform": transform, "center": [0.5, 0.0], "extent": [2.0, 1.0]})
        assert plane.center == (0.5, 0.0)
        assert plane.half_extent == (1.0, 0.5)

    def test_plane_without_pose_raises(self):
        with pytest.raises(ValueError):
            parse_plane("p", {"transform": None})
