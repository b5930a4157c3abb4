"""
Object locator: resolves annotator pixel marks into world positions.

This script loads configuration, builds the localization engine and replays
a recorded session scenario through it, logging every placement, failure
and marker move.

Usage:
    python src/main.py --config config/config.yaml --scenario config/scenarios/example.yaml

Arguments:
    --config: Path to configuration file
    --scenario: Scenario YAML to replay
    --log-level: Override the configured log level
"""

import os
import sys
import argparse
import logging
import yaml
from typing import Dict, Any, Tuple, Optional

from models.config import Config
from models.events import MarkerMovedEvent, PlacementEvent, PlacementFailedEvent
from models.job import JobStatus
from observation.scenario_source import ScenarioSource, ScenarioSourceConfig
from ops.logging import setup_logging
from pipeline.engine import create_engine_from_config
from pipeline.replay import replay
from runtime.context import create_runtime_context

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
REPLAY_IDLE_TIMEOUT = 60.0


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if (
            os.path.exists(config_path)
            and os.path.abspath(config_path) != os.path.abspath(local_overrides_path)
            and os.path.abspath(config_path) != os.path.abspath(base_path)
        ):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Projection
    projection = config.get('projection', {}) or {}
    for key in ('width', 'height'):
        if key in projection and (not isinstance(projection[key], int) or projection[key] <= 0):
            return False, f"projection.{key} must be a positive integer"
    for key in ('fx', 'fy', 'far'):
        if key in projection and (not _is_number(projection[key]) or projection[key] <= 0):
            return False, f"projection.{key} must be a positive number"
    for key in ('cx', 'cy'):
        if key in projection and not _is_number(projection[key]):
            return False, f"projection.{key} must be a number"

    # Single-view localization
    localization = config.get('localization', {}) or {}
    for key in ('allow_feature_hit', 'allow_closest_feature_fallback'):
        if key in localization and not isinstance(localization[key], bool):
            return False, f"localization.{key} must be a boolean"
    if 'feature_cone_angle_deg' in localization:
        angle = localization['feature_cone_angle_deg']
        if not _is_number(angle) or not (0 < angle < 90):
            return False, "localization.feature_cone_angle_deg must be between 0 and 90"
    min_d = localization.get('feature_min_distance', 0.2)
    max_d = localization.get('feature_max_distance', 2.0)
    if not _is_number(min_d) or min_d < 0:
        return False, "localization.feature_min_distance must be a non-negative number"
    if not _is_number(max_d) or max_d <= min_d:
        return False, "localization.feature_max_distance must be greater than feature_min_distance"
    if 'feature_max_results' in localization:
        n = localization['feature_max_results']
        if not isinstance(n, int) or n <= 0:
            return False, "localization.feature_max_results must be a positive integer"
    for key in ('max_placement_distance', 'parallel_epsilon'):
        if key in localization and (not _is_number(localization[key]) or localization[key] <= 0):
            return False, f"localization.{key} must be a positive number"

    # Stereo
    stereo = config.get('stereo', {}) or {}
    if 'min_ray_angle_deg' in stereo:
        angle = stereo['min_ray_angle_deg']
        if not _is_number(angle) or not (0 <= angle < 90):
            return False, "stereo.min_ray_angle_deg must be between 0 and 90"
    if 'max_separation' in stereo and (not _is_number(stereo['max_separation']) or stereo['max_separation'] <= 0):
        return False, "stereo.max_separation must be a positive number"
    if 'require_in_front' in stereo and not isinstance(stereo['require_in_front'], bool):
        return False, "stereo.require_in_front must be a boolean"

    # Jobs
    jobs = config.get('jobs', {}) or {}
    if 'timeout_seconds' in jobs and (not _is_number(jobs['timeout_seconds']) or jobs['timeout_seconds'] <= 0):
        return False, "jobs.timeout_seconds must be a positive number"
    if 'max_responses' in jobs and (not isinstance(jobs['max_responses'], int) or jobs['max_responses'] <= 0):
        return False, "jobs.max_responses must be a positive integer"

    # Snapping
    snapping = config.get('snapping', {}) or {}
    for key in ('tolerance', 'vertical_allowance', 'epsilon'):
        if key in snapping and (not _is_number(snapping[key]) or snapping[key] < 0):
            return False, f"snapping.{key} must be a non-negative number"

    # Engine
    engine = config.get('engine', {}) or {}
    for key in ('poll_interval', 'stats_log_interval', 'expiry_check_interval'):
        if key in engine and (not _is_number(engine[key]) or engine[key] <= 0):
            return False, f"engine.{key} must be a positive number"

    # Logging
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Object Locator - remote annotation to world position')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--scenario', type=str, required=True,
                        help='Scenario YAML to replay')
    parser.add_argument('--log-level', type=str, choices=VALID_LOG_LEVELS,
                        help='Override the configured log level')
    args = parser.parse_args()

    config = load_config(args.config)
    if args.log_level:
        config['log_level'] = args.log_level

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    logging.info("Starting Object Locator")

    typed_config = Config.from_dict(config)
    ctx = create_runtime_context(typed_config)
    engine = create_engine_from_config(ctx)

    placements = []
    failures = []

    def on_placed(event: PlacementEvent):
        placements.append(event)
        logging.info(f"Marker placed: {event.to_dict()}")

    def on_failed(event: PlacementFailedEvent):
        failures.append(event)
        logging.info(f"Could not place: {event.to_dict()}")

    def on_marker_moved(event: MarkerMovedEvent):
        logging.info(f"Marker moved: {event.to_dict()}")

    def on_status(job_id: str, status: JobStatus):
        logging.debug(f"Job {job_id} status: {status.value}")

    engine.add_placement_callback(on_placed)
    engine.add_failure_callback(on_failed)
    engine.add_marker_callback(on_marker_moved)
    engine.add_status_callback(on_status)

    exit_code = 0
    engine.start()
    try:
        with ScenarioSource(ScenarioSourceConfig.from_path(args.scenario)) as source:
            futures = replay(source, engine)
        if not engine.wait_until_idle(timeout=REPLAY_IDLE_TIMEOUT):
            logging.error("Localization engine did not finish the scenario")
            exit_code = 1
        errors = [f.exception() for f in futures if f.done() and not f.cancelled() and f.exception()]
        for err in errors:
            logging.error(f"Scenario step failed: {err}")
        if errors:
            exit_code = 1
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    except (RuntimeError, ValueError, yaml.YAMLError) as e:
        logging.error(f"Failed to replay scenario: {e}")
        exit_code = 1
    finally:
        engine.stop()
        logging.info(
            f"Summary: placed={len(placements)}, failed={len(failures)}, "
            f"unresolved={len(ctx.job_manager)}, planes={len(ctx.planes)}"
        )
        logging.info("Object Locator stopped")

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
