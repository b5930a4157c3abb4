"""
Job manager: the job/response state machine.

Owns the table of active jobs. Every mutating operation runs under one
lock, so annotation events for a job are evaluated one at a time and a
stale rebuild can never overwrite a later one.

Status flow:
    waitingForInitialResponse -> waitingForAdditionalResponse -> placed
    waitingForInitialResponse -> placed (first response resolves)
    waitingForAdditionalResponse -> failed (timeout or response limit)

Placed and failed jobs are removed from the table and ignore later events.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from localization.localizer import Localizer
from models.config import JobsConfig
from models.events import PlacementEvent, PlacementFailedEvent
from models.frame import CameraFrame
from models.job import Job, JobStatus, Response
from models.result import LocalizationResult, is_hit
from .resolution import resolve, responses_by_image


StatusListener = Callable[[str, JobStatus], None]
PlacementListener = Callable[[PlacementEvent], None]
FailureListener = Callable[[PlacementFailedEvent], None]


def _new_id() -> str:
    return uuid.uuid4().hex


class JobManager:
    """
    Tracks outstanding localization jobs and resolves them as responses arrive.

    This manager is responsible for:
    - Opening jobs and attaching snapshots to them
    - Re-evaluating a job on every annotation event
    - Emitting status changes, placements and failures to listeners
    - Abandoning jobs that time out or exceed the response limit

    Listeners are called after the lock is released, in the order the
    notifications were produced.
    """

    def __init__(
        self,
        localizer: Localizer,
        config: Optional[JobsConfig] = None,
        on_status: Optional[StatusListener] = None,
        on_placed: Optional[PlacementListener] = None,
        on_failed: Optional[FailureListener] = None,
    ):
        self._localizer = localizer
        self._config = config or JobsConfig()
        self._on_status = on_status
        self._on_placed = on_placed
        self._on_failed = on_failed
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()

        logging.info(
            f"Job manager initialized (timeout={self._config.timeout_seconds}s, "
            f"max_responses={self._config.max_responses})"
        )

    @property
    def config(self) -> JobsConfig:
        return self._config

    def set_listeners(
        self,
        on_status: Optional[StatusListener] = None,
        on_placed: Optional[PlacementListener] = None,
        on_failed: Optional[FailureListener] = None,
    ) -> None:
        """Replace the status, placement and failure listeners."""
        self._on_status = on_status
        self._on_placed = on_placed
        self._on_failed = on_failed

    def open_job(
        self,
        object_description: str,
        initial_frame: CameraFrame,
        image_id: Optional[str] = None,
        job_id: Optional[str] = None,
        now: Optional[float] = None,
    ) -> Job:
        """
        Open a job seeded with one captured frame.

        Args:
            object_description: Name of the object to find.
            initial_frame: Frame shown to annotators first.
            image_id: Identifier for the frame (generated if omitted).
            job_id: Identifier for the job (generated if omitted).
            now: Creation time (defaults to time.time()).

        Raises:
            ValueError: If a job with the same id is already active.
        """
        now = time.time() if now is None else now
        job_id = job_id or _new_id()
        image_id = image_id or _new_id()

        with self._lock:
            if job_id in self._jobs:
                raise ValueError(f"Job {job_id} is already active")
            job = Job(
                job_id=job_id,
                object_description=object_description,
                frames={image_id: initial_frame},
                created_at=now,
                updated_at=now,
            )
            self._jobs[job_id] = job

        logging.info(f"[JOB] opened job_id={job_id} object='{object_description}' image={image_id}")
        self._emit_status(job_id, job.status)
        return job

    def add_snapshot(self, job_id: str, frame: CameraFrame, image_id: Optional[str] = None) -> Optional[str]:
        """
        Attach another captured frame to an open job.

        Returns:
            The frame's image identifier, or None if the job is unknown or finished.
        """
        image_id = image_id or _new_id()
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                logging.debug(f"[JOB] snapshot ignored for inactive job_id={job_id}")
                return None
            job.frames[image_id] = frame
            job.updated_at = time.time()

        logging.debug(f"[JOB] snapshot job_id={job_id} image={image_id}")
        return image_id

    def submit_response(
        self,
        job_id: str,
        responses: Union[Response, Sequence[Response]],
        now: Optional[float] = None,
    ) -> Optional[LocalizationResult]:
        """
        Re-evaluate a job with its complete current response set.

        The job's response list is replaced, not merged: callers pass every
        response recorded for the job so far (a single Response is accepted
        as a set of one).

        Returns:
            The localization result if the job was placed, otherwise None.
        """
        if isinstance(responses, Response):
            responses = [responses]
        responses = list(responses)
        now = time.time() if now is None else now
        notifications: List[Callable[[], None]] = []

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                logging.debug(f"[JOB] responses ignored for inactive job_id={job_id}")
                return None

            if not responses:
                logging.debug(f"[JOB] empty response set ignored for job_id={job_id}")
                return None

            job.responses = responses
            job.updated_at = now
            self._log_orphans(job)

            previous_status = job.status
            job.status = JobStatus.WAITING_FOR_POSITION
            try:
                result, frame = resolve(job.frames, job.responses, self._localizer)
            except Exception:
                job.status = previous_status
                raise

            if is_hit(result):
                event = self._place(job, result, frame, now)
                notifications.append(lambda: self._emit_status(job_id, JobStatus.PLACED))
                notifications.append(lambda: self._emit_placed(event))
                placed_result: Optional[LocalizationResult] = result
            else:
                placed_result = None
                job.status = JobStatus.WAITING_FOR_ADDITIONAL_RESPONSE
                notifications.append(
                    lambda: self._emit_status(job_id, JobStatus.WAITING_FOR_ADDITIONAL_RESPONSE)
                )
                logging.info(
                    f"[JOB] unresolved job_id={job_id} responses={len(job.responses)} "
                    f"annotators={len(job.annotator_ids)} reason={result.reason}"
                )
                if len(job.responses) >= self._config.max_responses:
                    failed = self._fail(job, "response_limit", now)
                    notifications.append(lambda: self._emit_status(job_id, JobStatus.FAILED))
                    notifications.append(lambda: self._emit_failed(failed))

        for notify in notifications:
            notify()
        return placed_result

    def fail_job(self, job_id: str, reason: str, now: Optional[float] = None) -> Optional[PlacementFailedEvent]:
        """Abandon an open job; returns the failure event, or None if inactive."""
        now = time.time() if now is None else now
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return None
            event = self._fail(job, reason, now)

        self._emit_status(job_id, JobStatus.FAILED)
        self._emit_failed(event)
        return event

    def expire_stale(self, now: Optional[float] = None) -> List[PlacementFailedEvent]:
        """Fail every job open longer than the configured timeout."""
        now = time.time() if now is None else now
        with self._lock:
            stale = [
                job for job in self._jobs.values()
                if job.age(now) > self._config.timeout_seconds
            ]
            events = [self._fail(job, "timeout", now) for job in stale]

        for event in events:
            self._emit_status(event.job_id, JobStatus.FAILED)
            self._emit_failed(event)
        return events

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def active_jobs(self) -> List[Job]:
        """Jobs that are still waiting for a position."""
        with self._lock:
            return list(self._jobs.values())

    def reset(self) -> int:
        """
        Discard every active job without completing it.

        Returns:
            Number of jobs discarded.
        """
        with self._lock:
            count = len(self._jobs)
            self._jobs.clear()
        logging.info(f"[JOB] reset: discarded {count} active job(s)")
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def _place(
        self,
        job: Job,
        result: LocalizationResult,
        frame: Optional[CameraFrame],
        now: float,
    ) -> PlacementEvent:
        job.status = JobStatus.PLACED
        del self._jobs[job.job_id]

        position = self._localizer.placement_position(result, frame)
        camera_transform = np.array(frame.transform) if frame is not None and frame.has_transform else None
        logging.info(
            f"[PLACE] job_id={job.job_id} object='{job.object_description}' "
            f"kind={result.kind.value} position={np.round(position, 3).tolist()}"
        )
        return PlacementEvent(
            job_id=job.job_id,
            object_description=job.object_description,
            position=position,
            camera_transform=camera_transform,
            result=result,
            timestamp=now,
        )

    def _fail(self, job: Job, reason: str, now: float) -> PlacementFailedEvent:
        job.status = JobStatus.FAILED
        self._jobs.pop(job.job_id, None)
        logging.warning(
            f"[JOB] failed job_id={job.job_id} object='{job.object_description}' reason={reason}"
        )
        return PlacementFailedEvent(
            job_id=job.job_id,
            object_description=job.object_description,
            reason=reason,
            timestamp=now,
        )

    def _log_orphans(self, job: Job) -> None:
        orphans = [image_id for image_id in responses_by_image(job.responses) if image_id not in job.frames]
        if orphans:
            logging.warning(f"[JOB] job_id={job.job_id} responses reference unknown images: {orphans}")

    def _emit_status(self, job_id: str, status: JobStatus) -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(job_id, status)
        except Exception as e:
            logging.warning(f"Status listener error: {e}")

    def _emit_placed(self, event: PlacementEvent) -> None:
        if self._on_placed is None:
            return
        try:
            self._on_placed(event)
        except Exception as e:
            logging.warning(f"Placement listener error: {e}")

    def _emit_failed(self, event: PlacementFailedEvent) -> None:
        if self._on_failed is None:
            return
        try:
            self._on_failed(event)
        except Exception as e:
            logging.warning(f"Failure listener error: {e}")
