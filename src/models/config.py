"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from .frame import ViewProjection


@dataclass
class LocalizationConfig:
    """Single-view localization (plane and feature hit testing)."""
    allow_feature_hit: bool = False
    feature_cone_angle_deg: float = 18.0
    feature_min_distance: float = 0.2
    feature_max_distance: float = 2.0
    feature_max_results: int = 1
    allow_closest_feature_fallback: bool = False
    max_placement_distance: float = 10.0
    parallel_epsilon: float = 1e-6

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LocalizationConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            allow_feature_hit=bool(d.get("allow_feature_hit", False)),
            feature_cone_angle_deg=float(d.get("feature_cone_angle_deg", 18.0)),
            feature_min_distance=float(d.get("feature_min_distance", 0.2)),
            feature_max_distance=float(d.get("feature_max_distance", 2.0)),
            feature_max_results=int(d.get("feature_max_results", 1)),
            allow_closest_feature_fallback=bool(d.get("allow_closest_feature_fallback", False)),
            max_placement_distance=float(d.get("max_placement_distance", 10.0)),
            parallel_epsilon=float(d.get("parallel_epsilon", 1e-6)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allow_feature_hit": self.allow_feature_hit,
            "feature_cone_angle_deg": self.feature_cone_angle_deg,
            "feature_min_distance": self.feature_min_distance,
            "feature_max_distance": self.feature_max_distance,
            "feature_max_results": self.feature_max_results,
            "allow_closest_feature_fallback": self.allow_closest_feature_fallback,
            "max_placement_distance": self.max_placement_distance,
            "parallel_epsilon": self.parallel_epsilon,
        }


@dataclass
class StereoConfig:
    """Two-view triangulation sanity limits."""
    min_ray_angle_deg: float = 1.0
    max_separation: float = 0.5
    require_in_front: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StereoConfig":
        return cls(
            min_ray_angle_deg=float(d.get("min_ray_angle_deg", 1.0)),
            max_separation=float(d.get("max_separation", 0.5)),
            require_in_front=bool(d.get("require_in_front", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_ray_angle_deg": self.min_ray_angle_deg,
            "max_separation": self.max_separation,
            "require_in_front": self.require_in_front,
        }


@dataclass
class JobsConfig:
    """Job lifecycle limits that decide when a job is abandoned."""
    timeout_seconds: float = 120.0
    max_responses: int = 10

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "JobsConfig":
        return cls(
            timeout_seconds=float(d.get("timeout_seconds", 120.0)),
            max_responses=int(d.get("max_responses", 10)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeout_seconds": self.timeout_seconds,
            "max_responses": self.max_responses,
        }


@dataclass
class SnappingConfig:
    """Policy for moving placed markers onto nearby planes."""
    tolerance: float = 0.1
    vertical_allowance: float = 0.05
    epsilon: float = 0.001

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SnappingConfig":
        return cls(
            tolerance=float(d.get("tolerance", 0.1)),
            vertical_allowance=float(d.get("vertical_allowance", 0.05)),
            epsilon=float(d.get("epsilon", 0.001)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tolerance": self.tolerance,
            "vertical_allowance": self.vertical_allowance,
            "epsilon": self.epsilon,
        }


@dataclass
class EngineConfig:
    """Localization engine loop timing."""
    poll_interval: float = 0.1
    stats_log_interval: float = 60.0
    expiry_check_interval: float = 1.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EngineConfig":
        return cls(
            poll_interval=float(d.get("poll_interval", 0.1)),
            stats_log_interval=float(d.get("stats_log_interval", 60.0)),
            expiry_check_interval=float(d.get("expiry_check_interval", 1.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poll_interval": self.poll_interval,
            "stats_log_interval": self.stats_log_interval,
            "expiry_check_interval": self.expiry_check_interval,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    projection: ViewProjection = field(default_factory=ViewProjection)
    localization: LocalizationConfig = field(default_factory=LocalizationConfig)
    stereo: StereoConfig = field(default_factory=StereoConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)
    snapping: SnappingConfig = field(default_factory=SnappingConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    log_path: str = "logs/object_locator.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            projection=ViewProjection.from_dict(d.get("projection", {}) or {}),
            localization=LocalizationConfig.from_dict(d.get("localization", {}) or {}),
            stereo=StereoConfig.from_dict(d.get("stereo", {}) or {}),
            jobs=JobsConfig.from_dict(d.get("jobs", {}) or {}),
            snapping=SnappingConfig.from_dict(d.get("snapping", {}) or {}),
            engine=EngineConfig.from_dict(d.get("engine", {}) or {}),
            log_path=d.get("log_path", "logs/object_locator.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "projection": self.projection.to_dict(),
            "localization": self.localization.to_dict(),
            "stereo": self.stereo.to_dict(),
            "jobs": self.jobs.to_dict(),
            "snapping": self.snapping.to_dict(),
            "engine": self.engine.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
