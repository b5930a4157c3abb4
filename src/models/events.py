"""
Event models exchanged with the annotation transport and the renderer.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from .job import Response
from .result import HitKind, LocalizationResult


def _as_list(vector: Optional[np.ndarray]) -> Optional[List[float]]:
    if vector is None:
        return None
    return [float(v) for v in np.asarray(vector).ravel()]


@dataclass(frozen=True)
class AnnotationEvent:
    """
    An annotation-transport event for one job.

    Carries the complete current response set for the job, not a delta.

    Attributes:
        job_id: Job the responses belong to.
        responses: Every response recorded for the job so far.
    """
    job_id: str
    responses: Tuple[Response, ...] = ()

    @classmethod
    def from_responses(cls, job_id: str, responses: Iterable[Response]) -> "AnnotationEvent":
        return cls(job_id=job_id, responses=tuple(responses))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AnnotationEvent":
        """Adapter: Create from a transport record."""
        return cls(
            job_id=str(d["job_id"]),
            responses=tuple(Response.from_dict(r) for r in d.get("responses", []) or []),
        )


@dataclass(frozen=True, eq=False)
class PlacementEvent:
    """
    Emitted when a job resolves to a world position.

    Attributes:
        job_id: Job that was placed.
        object_description: Object the user asked for.
        position: World position where the marker goes.
        camera_transform: Camera-to-world transform of the frame used.
        result: The localization result that produced the position.
        timestamp: Unix timestamp of the placement.
    """
    job_id: str
    object_description: str
    position: np.ndarray
    camera_transform: Optional[np.ndarray]
    result: LocalizationResult
    timestamp: float = field(default_factory=time.time)

    @property
    def hit_kind(self) -> HitKind:
        return self.result.kind

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        plane = self.result.plane
        return {
            "job_id": self.job_id,
            "object_description": self.object_description,
            "position": _as_list(self.position),
            "hit_kind": self.result.kind.value,
            "plane_id": plane.plane_id if plane is not None else None,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class PlacementFailedEvent:
    """
    The "could not place" signal for an abandoned job.

    Attributes:
        job_id: Job that failed.
        object_description: Object the user asked for.
        reason: Why the job was abandoned ("timeout", "response_limit", ...).
        timestamp: Unix timestamp of the failure.
    """
    job_id: str
    object_description: str
    reason: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "object_description": self.object_description,
            "reason": self.reason,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, eq=False)
class MarkerMovedEvent:
    """
    Emitted when a placed marker snaps onto a nearby plane.

    Attributes:
        job_id: Job whose marker moved.
        plane_id: Plane the marker was snapped onto.
        old_position: Position before snapping.
        position: Position after snapping.
    """
    job_id: str
    plane_id: str
    old_position: np.ndarray
    position: np.ndarray

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "plane_id": self.plane_id,
            "old_position": _as_list(self.old_position),
            "position": _as_list(self.position),
        }
