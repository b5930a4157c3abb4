"""
EventSource interface for pluggable session event sources.

This defines the contract that all event sources must implement, enabling
the localization engine to be driven by any producer:
- Recorded scenario files
- A live tracking session bridge
- Annotation transport listeners
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple

from models.frame import CameraFrame
from models.job import Response
from models.plane import Plane


class EventKind(str, Enum):
    """Kinds of session events an EventSource can produce."""
    OPEN_JOB = "open_job"
    SNAPSHOT = "snapshot"
    ANNOTATIONS = "annotations"
    PLANE = "plane"
    REMOVE_PLANE = "remove_plane"
    RESET = "reset"


@dataclass(frozen=True)
class SessionEvent:
    """
    One input to the localization engine.

    Only the attributes relevant to `kind` are set.

    Attributes:
        kind: What happened.
        job_id: Target job (open_job, snapshot, annotations).
        object_description: Object sought (open_job).
        frame: Captured frame (open_job, snapshot).
        image_id: Identifier of the captured frame (open_job, snapshot).
        responses: Complete response set (annotations).
        plane: Added or updated plane (plane).
        plane_id: Removed plane (remove_plane).
        index: Position of the event in the source.
    """
    kind: EventKind
    job_id: Optional[str] = None
    object_description: str = ""
    frame: Optional[CameraFrame] = None
    image_id: Optional[str] = None
    responses: Tuple[Response, ...] = ()
    plane: Optional[Plane] = None
    plane_id: Optional[str] = None
    index: int = 0


@dataclass
class EventSourceConfig:
    """
    Base configuration for event sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "scenario", "session-01").
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    metadata: Dict[str, Any] = field(default_factory=dict)


class EventSource(ABC):
    """
    Abstract base class for session event sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to initialize the source
        3. Call read() repeatedly to get events
        4. Call close() to release resources

    Can also be used as a context manager:
        with ScenarioSource(config) as source:
            for event in source:
                engine_apply(event)
    """

    def __init__(self, config: EventSourceConfig):
        self._config = config
        self._is_open = False
        self._event_index = 0

    @property
    def source_id(self) -> str:
        """Unique identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready to read."""
        return self._is_open

    @property
    def event_index(self) -> int:
        """Number of events read since open."""
        return self._event_index

    @abstractmethod
    def open(self) -> None:
        """
        Open/initialize the event source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """
        pass

    @abstractmethod
    def read(self) -> Optional[SessionEvent]:
        """
        Read the next event from the source.

        Returns:
            The next SessionEvent, or None when the source is exhausted.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the source. Safe to call multiple times."""
        pass

    def __enter__(self) -> "EventSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[SessionEvent]:
        """
        Iterate over events from the source.

        The source must be open before iterating.
        """
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while True:
            event = self.read()
            if event is None:
                break
            yield event
