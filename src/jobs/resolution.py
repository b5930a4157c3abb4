"""
Resolution of a job's response set into a position.

Resolution is a pure function of (current response set, current frame set):
re-running it on every annotation event is always safe.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from localization.localizer import Localizer
from models.frame import CameraFrame
from models.job import Response
from models.result import LocalizationResult, NoHit, is_hit


def group_by_annotator(responses: Sequence[Response]) -> "OrderedDict[str, List[Response]]":
    """Group responses by annotator, keeping first-appearance order."""
    groups: "OrderedDict[str, List[Response]]" = OrderedDict()
    for response in responses:
        groups.setdefault(response.annotator_id, []).append(response)
    return groups


def resolve(
    frames: Mapping[str, CameraFrame],
    responses: Sequence[Response],
    localizer: Localizer,
) -> Tuple[LocalizationResult, Optional[CameraFrame]]:
    """
    Try to resolve a position from a job's responses.

    1. Single-view: the most recent response against planes/features.
    2. Two-view: for each annotator (first-appearance order) with at least
       two responses, triangulate their first two responses.

    Args:
        frames: Job frames keyed by image identifier.
        responses: Complete current response set, oldest first.
        localizer: Localizer to resolve with.

    Returns:
        (result, frame) where frame is the camera frame the placement is
        relative to, or None when nothing resolved.
    """
    if not responses:
        return NoHit("no_responses"), None

    latest = responses[-1]
    latest_frame = frames.get(latest.image_id)
    result = localizer.locate(latest.pixel, latest_frame)
    if is_hit(result):
        return result, latest_frame

    for annotator_id, annotator_responses in group_by_annotator(responses).items():
        if len(annotator_responses) < 2:
            continue
        first, second = annotator_responses[:2]
        second_frame = frames.get(second.image_id)
        stereo = localizer.locate_stereo(
            first.pixel,
            frames.get(first.image_id),
            second.pixel,
            second_frame,
            annotator_id=annotator_id,
            image_ids=(first.image_id, second.image_id),
        )
        if is_hit(stereo):
            return stereo, second_frame
        result = stereo

    return result, None


def responses_by_image(responses: Sequence[Response]) -> Dict[str, List[Response]]:
    """Group responses by the image they mark."""
    groups: Dict[str, List[Response]] = {}
    for response in responses:
        groups.setdefault(response.image_id, []).append(response)
    return groups
