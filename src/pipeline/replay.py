"""
Drive a LocalizationEngine from an EventSource.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import List

from models.events import AnnotationEvent
from observation.base import EventKind, EventSource, SessionEvent
from .engine import LocalizationEngine


def dispatch_event(engine: LocalizationEngine, event: SessionEvent) -> Future:
    """Queue one session event on the engine and return its Future."""
    if event.kind is EventKind.OPEN_JOB:
        return engine.open_job(
            event.object_description,
            event.frame,
            image_id=event.image_id,
            job_id=event.job_id,
        )
    if event.kind is EventKind.SNAPSHOT:
        return engine.add_snapshot(event.job_id, event.frame, image_id=event.image_id)
    if event.kind is EventKind.ANNOTATIONS:
        return engine.submit(AnnotationEvent.from_responses(event.job_id, event.responses))
    if event.kind is EventKind.PLANE:
        return engine.update_plane(event.plane)
    if event.kind is EventKind.REMOVE_PLANE:
        return engine.remove_plane(event.plane_id)
    if event.kind is EventKind.RESET:
        return engine.reset()
    raise ValueError(f"Unsupported event kind: {event.kind}")


def replay(source: EventSource, engine: LocalizationEngine) -> List[Future]:
    """
    Queue every event of an open source on the engine, in order.

    The engine executes them in the same order; callers wait on the returned
    futures (or engine.wait_until_idle()) for completion.
    """
    futures: List[Future] = []
    for event in source:
        logging.debug(f"Replaying step {event.index}: {event.kind.value}")
        futures.append(dispatch_event(engine, event))
    return futures
