"""
ScenarioSource: replays a recorded session from a YAML file.

A scenario declares named frames and planes up front and then an ordered
list of steps. Example:

    projection: {width: 1920, height: 1440, fx: 1590, fy: 1590}
    frames:
      front:
        position: [0, 1.5, 2]
        look_at: [0, 0, 0]
        feature_points: [[0, 0, 0], [0.1, 0, 0]]
      lost:
        transform: null          # tracking had no pose
    planes:
      floor:
        position: [0, 0, 0]
        extent: [4, 4]
    steps:
      - plane: floor
      - open_job: {job_id: j1, object: keys, frame: front, image_id: img1}
      - snapshot: {job_id: j1, frame: lost, image_id: img2}
      - annotations:
          job_id: j1
          responses:
            - {annotator_id: alice, image_id: img1, pixel: [960, 720]}
            - {annotator_id: bob, image_id: img1, point: [0, 0, 0]}
      - remove_plane: floor
      - reset: {}

A response may give `point` (a world position) instead of `pixel`; the
pixel is then computed by projecting the point into the referenced frame.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from geometry.vectors import euler_to_rotation_matrix, invert_transform, look_at_rotation, transform_point
from models.frame import CameraFrame, ViewProjection
from models.job import Response
from models.plane import Plane
from .base import EventKind, EventSource, EventSourceConfig, SessionEvent


@dataclass
class ScenarioSourceConfig(EventSourceConfig):
    """
    Configuration for ScenarioSource.

    Attributes:
        path: Path to the scenario YAML file.
        data: Already-parsed scenario (used instead of `path` when set).
    """
    path: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def from_path(cls, path: str) -> "ScenarioSourceConfig":
        return cls(source_id=os.path.splitext(os.path.basename(path))[0], path=path)


def _parse_transform(spec: Dict[str, Any]) -> Optional[np.ndarray]:
    """Build a 4x4 pose from `transform`, `look_at` or `euler_deg` keys."""
    if "transform" in spec:
        if spec["transform"] is None:
            return None
        return np.asarray(spec["transform"], dtype=float).reshape(4, 4)

    position = np.asarray(spec.get("position", [0.0, 0.0, 0.0]), dtype=float)
    if "look_at" in spec:
        rotation = look_at_rotation(position, spec["look_at"], spec.get("up", (0.0, 1.0, 0.0)))
    else:
        roll, pitch, yaw = (math.radians(float(a)) for a in spec.get("euler_deg", [0.0, 0.0, 0.0]))
        rotation = euler_to_rotation_matrix(roll, pitch, yaw)

    transform = np.eye(4)
    transform[:3, :3] = rotation
    transform[:3, 3] = position
    return transform


def parse_frame(
    spec: Dict[str, Any],
    default_timestamp: float = 0.0,
    default_projection: Optional[ViewProjection] = None,
) -> CameraFrame:
    """Build a CameraFrame from a scenario frame entry."""
    if spec.get("projection"):
        projection = ViewProjection.from_dict(spec["projection"])
    else:
        projection = default_projection
    return CameraFrame(
        transform=_parse_transform(spec),
        feature_points=spec.get("feature_points"),
        projection=projection,
        timestamp=float(spec.get("timestamp", default_timestamp)),
    )


def parse_plane(plane_id: str, spec: Dict[str, Any]) -> Plane:
    """Build a Plane from a scenario plane entry."""
    transform = _parse_transform(spec)
    if transform is None:
        raise ValueError(f"Plane {plane_id} needs a transform")
    extent = spec.get("extent", [0.0, 0.0])
    return Plane.from_extent(
        plane_id=plane_id,
        transform=transform,
        center=tuple(spec.get("center", [0.0, 0.0])),
        extent=(float(extent[0]), float(extent[1])),
    )


class ScenarioSource(EventSource):
    """
    Event source that replays the steps of a YAML scenario.

    Frames and planes referenced by name are resolved when the file is
    opened; unknown names raise ValueError at open time so a bad scenario
    fails before anything is replayed.
    """

    def __init__(self, config: ScenarioSourceConfig):
        super().__init__(config)
        self._scenario_config = config
        self._events: List[SessionEvent] = []
        self._pos = 0
        self._projection = ViewProjection()

    @property
    def projection(self) -> ViewProjection:
        """Scenario-wide projection (the default when the file has none)."""
        return self._projection

    @property
    def num_events(self) -> int:
        return len(self._events)

    def open(self) -> None:
        data = self._scenario_config.data
        if data is None:
            path = self._scenario_config.path
            if not path or not os.path.exists(path):
                raise RuntimeError(f"Scenario file not found: {path}")
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}

        self._events = self._parse(data)
        self._pos = 0
        self._event_index = 0
        self._is_open = True
        logging.info(f"Scenario '{self.source_id}' loaded: {len(self._events)} step(s)")

    def read(self) -> Optional[SessionEvent]:
        if not self._is_open or self._pos >= len(self._events):
            return None
        event = self._events[self._pos]
        self._pos += 1
        self._event_index += 1
        return event

    def close(self) -> None:
        self._is_open = False

    def _parse(self, data: Dict[str, Any]) -> List[SessionEvent]:
        # Frames without their own projection inherit the scenario's, if declared
        scenario_projection: Optional[ViewProjection] = None
        if data.get("projection"):
            scenario_projection = ViewProjection.from_dict(data["projection"])
            self._projection = scenario_projection

        frames = {
            str(name): parse_frame(spec or {}, float(i), scenario_projection)
            for i, (name, spec) in enumerate((data.get("frames") or {}).items())
        }
        planes = {
            str(name): parse_plane(str(name), spec or {})
            for name, spec in (data.get("planes") or {}).items()
        }
        # image id -> frame, for responses given as world points
        images: Dict[str, CameraFrame] = {}

        events: List[SessionEvent] = []
        for index, step in enumerate(data.get("steps") or []):
            if not isinstance(step, dict) or len(step) != 1:
                raise ValueError(f"Step {index} must be a mapping with exactly one key")
            (name, body), = step.items()
            try:
                kind = EventKind(name)
            except ValueError:
                raise ValueError(f"Step {index}: unknown step '{name}'")
            events.append(self._parse_step(index, kind, body, frames, planes, images))
        return events

    def _parse_step(
        self,
        index: int,
        kind: EventKind,
        body: Any,
        frames: Dict[str, CameraFrame],
        planes: Dict[str, Plane],
        images: Dict[str, CameraFrame],
    ) -> SessionEvent:
        if kind is EventKind.RESET:
            return SessionEvent(kind=kind, index=index)

        if kind is EventKind.PLANE:
            plane_id = str(body)
            if plane_id not in planes:
                raise ValueError(f"Step {index}: unknown plane '{plane_id}'")
            return SessionEvent(kind=kind, plane=planes[plane_id], plane_id=plane_id, index=index)

        if kind is EventKind.REMOVE_PLANE:
            return SessionEvent(kind=kind, plane_id=str(body), index=index)

        body = body or {}
        job_id = str(body["job_id"])

        if kind in (EventKind.OPEN_JOB, EventKind.SNAPSHOT):
            frame_name = str(body["frame"])
            if frame_name not in frames:
                raise ValueError(f"Step {index}: unknown frame '{frame_name}'")
            frame = frames[frame_name]
            image_id = str(body.get("image_id", f"{job_id}-{frame_name}-{index}"))
            images[image_id] = frame
            return SessionEvent(
                kind=kind,
                job_id=job_id,
                object_description=str(body.get("object", body.get("object_description", ""))),
                frame=frame,
                image_id=image_id,
                index=index,
            )

        responses = tuple(
            self._parse_response(index, r, images) for r in body.get("responses") or []
        )
        return SessionEvent(kind=kind, job_id=job_id, responses=responses, index=index)

    def _parse_response(
        self,
        index: int,
        record: Dict[str, Any],
        images: Dict[str, CameraFrame],
    ) -> Response:
        if "point" not in record:
            return Response.from_dict(record)

        image_id = str(record["image_id"])
        frame = images.get(image_id)
        if frame is None or not frame.has_transform:
            raise ValueError(f"Step {index}: cannot project onto image '{image_id}'")
        projection = frame.projection or self._projection
        camera_point = transform_point(invert_transform(frame.transform), np.asarray(record["point"], dtype=float))
        pixel = projection.project(camera_point)
        if pixel is None:
            raise ValueError(f"Step {index}: point is behind the camera of image '{image_id}'")
        return Response(
            annotator_id=str(record.get("annotator_id", "")),
            image_id=image_id,
            pixel=pixel,
        )
