"""
Observation layer for pluggable session event sources.

This layer abstracts where session events come from (recorded scenario,
live tracking bridge) from the localization engine. Each source implements
the EventSource interface and returns SessionEvent objects.
"""

from .base import EventKind, EventSource, EventSourceConfig, SessionEvent
from .scenario_source import ScenarioSource, ScenarioSourceConfig

__all__ = [
    "EventKind",
    "EventSource",
    "EventSourceConfig",
    "SessionEvent",
    "ScenarioSource",
    "ScenarioSourceConfig",
]
