"""
Localization engine for the object locator.

The engine is the single writer for job and plane state. Tracking updates,
annotation events and user requests arrive from independent threads; each
is queued as a command and executed in arrival order on one worker thread.
Callers get a Future for every command.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import CancelledError, Future
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from geometry.plane_hits import snap_to_plane
from jobs.manager import JobManager
from models.config import EngineConfig, SnappingConfig
from models.events import AnnotationEvent, MarkerMovedEvent, PlacementEvent, PlacementFailedEvent
from models.frame import CameraFrame
from models.job import Job, JobStatus
from models.plane import Plane
from runtime.context import RuntimeContext
from tracking.plane_registry import PlaneRegistry


@dataclass
class EngineStats:
    """Runtime statistics for the engine."""
    commands_processed: int = 0
    annotation_events: int = 0
    jobs_opened: int = 0
    jobs_placed: int = 0
    jobs_failed: int = 0
    markers_moved: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)
    last_expiry_check_time: float = field(default_factory=time.time)


@dataclass
class _Command:
    name: str
    fn: Callable[[], Any]
    future: Future


class LocalizationEngine:
    """
    Serializes all job and plane mutations on one worker thread.

    This engine:
    - Opens jobs, attaches snapshots and applies annotation events in order
    - Applies plane updates and snaps placed markers onto nearby planes
    - Hands placements, failures and status changes to registered callbacks
    - Periodically expires stale jobs and logs statistics

    Callbacks run on the worker thread and must not block; a renderer
    should hand results over to its own thread.

    Example:
        engine = create_engine_from_config(ctx)
        engine.add_placement_callback(renderer.enqueue_marker)
        engine.start()
        job = engine.open_job("keys", frame).result()
        engine.submit(AnnotationEvent.from_responses(job.job_id, responses))
    """

    def __init__(
        self,
        job_manager: JobManager,
        planes: PlaneRegistry,
        config: Optional[EngineConfig] = None,
        snapping: Optional[SnappingConfig] = None,
    ):
        self.job_manager = job_manager
        self.planes = planes
        self.config = config or EngineConfig()
        self.snapping = snapping or SnappingConfig()
        self.stats = EngineStats()

        self._queue: "queue.Queue[_Command]" = queue.Queue()
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._markers: Dict[str, np.ndarray] = {}

        self._placement_callbacks: List[Callable[[PlacementEvent], None]] = []
        self._failure_callbacks: List[Callable[[PlacementFailedEvent], None]] = []
        self._status_callbacks: List[Callable[[str, JobStatus], None]] = []
        self._marker_callbacks: List[Callable[[MarkerMovedEvent], None]] = []

        self.job_manager.set_listeners(
            on_status=self._handle_status,
            on_placed=self._handle_placed,
            on_failed=self._handle_failed,
        )

    def add_placement_callback(self, callback: Callable[[PlacementEvent], None]) -> None:
        """Add a callback for resolved positions (the renderer's marker input)."""
        self._placement_callbacks.append(callback)

    def add_failure_callback(self, callback: Callable[[PlacementFailedEvent], None]) -> None:
        """Add a callback for the "could not place" signal."""
        self._failure_callbacks.append(callback)

    def add_status_callback(self, callback: Callable[[str, JobStatus], None]) -> None:
        """Add a callback for job status changes (external bookkeeping)."""
        self._status_callbacks.append(callback)

    def add_marker_callback(self, callback: Callable[[MarkerMovedEvent], None]) -> None:
        """Add a callback for markers snapped onto nearby planes."""
        self._marker_callbacks.append(callback)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def markers(self) -> Dict[str, np.ndarray]:
        """Placed marker positions keyed by job id (copy)."""
        return {job_id: np.array(pos) for job_id, pos in self._markers.items()}

    # Commands

    def open_job(
        self,
        object_description: str,
        frame: CameraFrame,
        image_id: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> "Future[Job]":
        """Queue a new job seeded with one frame."""
        return self._enqueue(
            "open_job",
            lambda: self._do_open_job(object_description, frame, image_id, job_id),
        )

    def add_snapshot(
        self,
        job_id: str,
        frame: CameraFrame,
        image_id: Optional[str] = None,
    ) -> "Future[Optional[str]]":
        """Queue a snapshot for an open job; resolves to the image id or None."""
        return self._enqueue("add_snapshot", lambda: self.job_manager.add_snapshot(job_id, frame, image_id))

    def submit(self, event: AnnotationEvent) -> Future:
        """Queue an annotation event; resolves to the result if the job was placed."""
        return self._enqueue("annotations", lambda: self._do_submit(event))

    def update_plane(self, plane: Plane) -> "Future[List[MarkerMovedEvent]]":
        """Queue a plane add/update; resolves to the markers it moved."""
        return self._enqueue("update_plane", lambda: self._do_update_plane(plane))

    def remove_plane(self, plane_id: str) -> "Future[Optional[Plane]]":
        """Queue a plane removal."""
        return self._enqueue("remove_plane", lambda: self.planes.remove(plane_id))

    def reset(self) -> "Future[int]":
        """
        Queue a hard reset of the session.

        Discards every active job, plane and marker. Commands queued later for
        discarded jobs become no-ops.
        """
        return self._enqueue("reset", self._do_reset)

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every command queued so far has run.

        Returns False on timeout, or when no worker thread is running to
        reach the barrier (never started, stopped, or died while waiting).
        """
        if not self._worker_alive():
            return False
        marker = self._enqueue("barrier", lambda: None)
        deadline = None if timeout is None else time.time() + timeout
        step = max(self.config.poll_interval * 10, 0.05)

        while True:
            wait = step if deadline is None else min(step, deadline - time.time())
            try:
                marker.result(timeout=max(wait, 0.0))
                return True
            except FuturesTimeoutError:
                pass
            except CancelledError:
                return False
            if not self._worker_alive() or (deadline is not None and time.time() >= deadline):
                marker.cancel()
                return False

    # Lifecycle

    def start(self) -> None:
        """Run the engine loop on a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._running = True
        self._thread = threading.Thread(target=self._loop, name="localization-engine", daemon=True)
        self._thread.start()

    def run(self) -> None:
        """
        Run the command loop until stopped.

        Executes queued commands in order and runs periodic tasks between them.
        """
        self._running = True
        self._loop()

    def _loop(self) -> None:
        self.stats = EngineStats()
        logging.info("Localization engine started")

        try:
            while self._running:
                try:
                    command = self._queue.get(timeout=self.config.poll_interval)
                except queue.Empty:
                    command = None

                if command is not None:
                    self._execute(command)
                    self._queue.task_done()

                self._handle_periodic_tasks()
        except Exception as e:
            logging.error(f"Localization engine error: {e}")
        finally:
            self._cleanup()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Signal the loop to stop and wait for the worker thread."""
        self._running = False
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

    def process_pending(self) -> int:
        """
        Run every queued command on the calling thread.

        For callers that drive the engine without a worker thread.

        Returns:
            Number of commands executed.
        """
        executed = 0
        while True:
            try:
                command = self._queue.get_nowait()
            except queue.Empty:
                break
            self._execute(command)
            self._queue.task_done()
            executed += 1
        self._handle_periodic_tasks()
        return executed

    # Internals

    def _worker_alive(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def _enqueue(self, name: str, fn: Callable[[], Any]) -> Future:
        future: Future = Future()
        self._queue.put(_Command(name=name, fn=fn, future=future))
        return future

    def _execute(self, command: _Command) -> None:
        if not command.future.set_running_or_notify_cancel():
            return
        try:
            result = command.fn()
        except Exception as e:
            logging.error(f"Command '{command.name}' failed: {e}")
            command.future.set_exception(e)
        else:
            command.future.set_result(result)
        self.stats.commands_processed += 1

    def _do_open_job(
        self,
        object_description: str,
        frame: CameraFrame,
        image_id: Optional[str],
        job_id: Optional[str],
    ) -> Job:
        job = self.job_manager.open_job(object_description, frame, image_id=image_id, job_id=job_id)
        self.stats.jobs_opened += 1
        return job

    def _do_submit(self, event: AnnotationEvent):
        self.stats.annotation_events += 1
        return self.job_manager.submit_response(event.job_id, list(event.responses))

    def _do_update_plane(self, plane: Plane) -> List[MarkerMovedEvent]:
        self.planes.add(plane)

        moved: List[MarkerMovedEvent] = []
        for job_id, position in list(self._markers.items()):
            snapped = snap_to_plane(
                position,
                plane,
                tolerance=self.snapping.tolerance,
                vertical_allowance=self.snapping.vertical_allowance,
                epsilon=self.snapping.epsilon,
            )
            if snapped is None:
                continue
            self._markers[job_id] = snapped
            event = MarkerMovedEvent(
                job_id=job_id,
                plane_id=plane.plane_id,
                old_position=position,
                position=snapped,
            )
            moved.append(event)
            self.stats.markers_moved += 1
            logging.info(f"Marker for job_id={job_id} moved onto plane {plane.plane_id}")
            self._dispatch(self._marker_callbacks, event)

        return moved

    def _do_reset(self) -> int:
        discarded = self.job_manager.reset()
        self.planes.clear()
        self._markers.clear()
        logging.info("Session reset")
        return discarded

    def _handle_status(self, job_id: str, status: JobStatus) -> None:
        for callback in self._status_callbacks:
            try:
                callback(job_id, status)
            except Exception as e:
                logging.warning(f"Status callback error: {e}")

    def _handle_placed(self, event: PlacementEvent) -> None:
        self.stats.jobs_placed += 1
        self._markers[event.job_id] = np.array(event.position, dtype=float)
        self._dispatch(self._placement_callbacks, event)

    def _handle_failed(self, event: PlacementFailedEvent) -> None:
        self.stats.jobs_failed += 1
        self._dispatch(self._failure_callbacks, event)

    def _dispatch(self, callbacks: List[Callable[[Any], None]], event: Any) -> None:
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

    def _handle_periodic_tasks(self) -> None:
        """Run periodic tasks (job expiry, logging)."""
        now = time.time()

        if now - self.stats.last_expiry_check_time >= self.config.expiry_check_interval:
            self.job_manager.expire_stale(now)
            self.stats.last_expiry_check_time = now

        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Engine stats: active_jobs={len(self.job_manager)}, "
                f"opened={self.stats.jobs_opened}, placed={self.stats.jobs_placed}, "
                f"failed={self.stats.jobs_failed}, events={self.stats.annotation_events}, "
                f"planes={len(self.planes)}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        """Cancel commands that never ran."""
        self._running = False
        cancelled = 0
        while True:
            try:
                command = self._queue.get_nowait()
            except queue.Empty:
                break
            if command.future.cancel():
                cancelled += 1
            self._queue.task_done()
        if cancelled:
            logging.warning(f"Cancelled {cancelled} pending command(s)")
        logging.info("Localization engine stopped")


def create_engine_from_config(ctx: RuntimeContext) -> LocalizationEngine:
    """
    Factory function to create a LocalizationEngine from a runtime context.

    Args:
        ctx: RuntimeContext with config, plane registry and job manager.
    """
    return LocalizationEngine(
        job_manager=ctx.job_manager,
        planes=ctx.planes,
        config=ctx.config.engine,
        snapping=ctx.config.snapping,
    )
