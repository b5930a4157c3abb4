"""
Job and Response models for outstanding localization requests.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from .frame import CameraFrame


class JobStatus(str, Enum):
    """Lifecycle of a localization job."""
    WAITING_FOR_INITIAL_RESPONSE = "waitingForInitialResponse"
    WAITING_FOR_POSITION = "waitingForPosition"
    WAITING_FOR_ADDITIONAL_RESPONSE = "waitingForAdditionalResponse"
    PLACED = "placed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.PLACED, JobStatus.FAILED)


@dataclass(frozen=True)
class Response:
    """
    One annotator's pixel mark on one captured image.

    Attributes:
        annotator_id: Identifier of the remote annotator.
        image_id: Identifier of the image (CameraFrame) that was marked.
        pixel: (u, v) location in that image's pixel coordinates.
    """
    annotator_id: str
    image_id: str
    pixel: Tuple[float, float]

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Response":
        """Adapter: Create from a transport record."""
        pixel = d.get("pixel")
        if pixel is None:
            pixel = (d["x"], d["y"])
        return cls(
            annotator_id=str(d.get("annotator_id", d.get("annotator", ""))),
            image_id=str(d["image_id"]),
            pixel=(float(pixel[0]), float(pixel[1])),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "annotator_id": self.annotator_id,
            "image_id": self.image_id,
            "pixel": [self.pixel[0], self.pixel[1]],
        }


@dataclass
class Job:
    """
    One outstanding request to locate a named object.

    Attributes:
        job_id: Unique identifier.
        object_description: Name/description of the object sought.
        frames: Captured frames keyed by image identifier.
        responses: Current response set (rebuilt on every annotation event).
        status: Current lifecycle status.
        created_at: Unix timestamp when the job was opened.
        updated_at: Unix timestamp of the last mutation.
    """
    job_id: str
    object_description: str
    frames: Dict[str, CameraFrame] = field(default_factory=dict)
    responses: List[Response] = field(default_factory=list)
    status: JobStatus = JobStatus.WAITING_FOR_INITIAL_RESPONSE
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def image_ids(self) -> List[str]:
        return list(self.frames.keys())

    @property
    def annotator_ids(self) -> List[str]:
        """Distinct annotators in order of first appearance."""
        seen: List[str] = []
        for response in self.responses:
            if response.annotator_id not in seen:
                seen.append(response.annotator_id)
        return seen

    def age(self, now: float) -> float:
        """Seconds since the job was opened."""
        return now - self.created_at
