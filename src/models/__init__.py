"""
Typed models for the object locator.

Frames, planes, jobs and responses are the inputs; localization results and
placement events are the outputs.
"""

from .frame import CameraFrame, ViewProjection
from .plane import Plane
from .job import Job, JobStatus, Response
from .result import (
    FeatureHit,
    HitKind,
    LocalizationResult,
    NoHit,
    PlaneHit,
    StereoHit,
    is_hit,
)
from .events import (
    AnnotationEvent,
    MarkerMovedEvent,
    PlacementEvent,
    PlacementFailedEvent,
)
from .config import (
    Config,
    EngineConfig,
    JobsConfig,
    LocalizationConfig,
    SnappingConfig,
    StereoConfig,
)

__all__ = [
    # Capture
    "CameraFrame",
    "ViewProjection",
    "Plane",
    # Jobs
    "Job",
    "JobStatus",
    "Response",
    # Results
    "FeatureHit",
    "HitKind",
    "LocalizationResult",
    "NoHit",
    "PlaneHit",
    "StereoHit",
    "is_hit",
    # Events
    "AnnotationEvent",
    "MarkerMovedEvent",
    "PlacementEvent",
    "PlacementFailedEvent",
    # Config
    "Config",
    "EngineConfig",
    "JobsConfig",
    "LocalizationConfig",
    "SnappingConfig",
    "StereoConfig",
]
