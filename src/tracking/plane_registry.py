"""
Registry of detected planes.

The tracking layer adds, updates and removes planes from its own thread;
hit testing reads consistent snapshots from any other thread.
"""

import logging
import threading
from typing import Dict, List, Optional

from models.plane import Plane


class PlaneRegistry:
    """
    Thread-safe store of the current set of planes keyed by plane_id.

    This registry is responsible for:
    - Upserting planes as the tracking layer refines them
    - Removing planes the tracking layer discards
    - Handing out immutable snapshots for hit testing
    """

    def __init__(self):
        self._planes: Dict[str, Plane] = {}
        self._lock = threading.Lock()

    def add(self, plane: Plane) -> None:
        """Add a plane, replacing any plane with the same identifier."""
        with self._lock:
            is_new = plane.plane_id not in self._planes
            self._planes[plane.plane_id] = plane
        if is_new:
            logging.info(f"Plane detected: id={plane.plane_id} extent={plane.extent}")
        else:
            logging.debug(f"Plane updated: id={plane.plane_id} extent={plane.extent}")

    def update(self, plane: Plane) -> None:
        """Update a plane's geometry (same as add)."""
        self.add(plane)

    def remove(self, plane_id: str) -> Optional[Plane]:
        """Remove a plane; returns the removed plane, or None if unknown."""
        with self._lock:
            plane = self._planes.pop(plane_id, None)
        if plane is not None:
            logging.info(f"Plane removed: id={plane_id}")
        return plane

    def get(self, plane_id: str) -> Optional[Plane]:
        with self._lock:
            return self._planes.get(plane_id)

    def planes(self) -> List[Plane]:
        """Snapshot of all current planes."""
        with self._lock:
            return list(self._planes.values())

    def clear(self) -> None:
        with self._lock:
            self._planes.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._planes)

    def __contains__(self, plane_id: str) -> bool:
        with self._lock:
            return plane_id in self._planes
