from __future__ import annotations

from dataclasses import dataclass

from jobs.manager import JobManager
from localization.localizer import Localizer, create_localizer_from_config
from models.config import Config
from tracking.plane_registry import PlaneRegistry


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    planes: PlaneRegistry
    localizer: Localizer
    job_manager: JobManager


def create_runtime_context(config: Config) -> RuntimeContext:
    """Wire the plane registry, localizer and job manager for one session."""
    planes = PlaneRegistry()
    localizer = create_localizer_from_config(config, planes)
    job_manager = JobManager(localizer, config.jobs)
    return RuntimeContext(
        config=config,
        planes=planes,
        localizer=localizer,
        job_manager=job_manager,
    )
