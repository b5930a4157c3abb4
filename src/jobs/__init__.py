"""
Job tracking for localization requests.

JobManager owns the active jobs; resolve() is the pure decision function it
runs on every annotation event.
"""

from .manager import JobManager
from .resolution import group_by_annotator, resolve

__all__ = ["JobManager", "group_by_annotator", "resolve"]
