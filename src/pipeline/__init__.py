"""
Pipeline module for the object locator.

The pipeline serializes every state change of a session:
- Job creation, snapshots and annotation events
- Plane updates and marker snapping
- Placement, failure and status notifications
"""

from .engine import EngineStats, LocalizationEngine, create_engine_from_config
from .replay import dispatch_event, replay

__all__ = [
    "EngineStats",
    "LocalizationEngine",
    "create_engine_from_config",
    "dispatch_event",
    "replay",
]
