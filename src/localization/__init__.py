"""
Localization of annotated pixels.

The Localizer combines plane, feature-point and stereo hit testing.
"""

from .localizer import Localizer, create_localizer_from_config

__all__ = ["Localizer", "create_localizer_from_config"]
