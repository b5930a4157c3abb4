"""
Tracking module.

Holds the planes reported by the AR tracking layer.
"""

from .plane_registry import PlaneRegistry

__all__ = ["PlaneRegistry"]
