"""
pose_utils.py - Shared keypoint types, landmark indices and geometry helpers.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np


# --- Keypoint Types ---
@dataclass(frozen=True)
class Keypoint:
    """A single 2D body landmark in normalized image coordinates."""
    x: float
    y: float
    visibility: float = 1.0
    z: float = 0.0  # Depth hint from the estimator, unused by the 2D analysis


# Sparse mapping from landmark index to keypoint, one per video frame.
KeypointFrame = Dict[int, Keypoint]


class Side(Enum):
    LEFT = "left"
    RIGHT = "right"


class PoseLandmark:
    """MediaPipe-style landmark indices used by the analysis."""
    NOSE = 0
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28


LANDMARK_COUNT = 33

# Left landmark -> right landmark for every bilateral joint the analysis tracks.
_LEFT_TO_RIGHT = {
    PoseLandmark.LEFT_SHOULDER: PoseLandmark.RIGHT_SHOULDER,
    PoseLandmark.LEFT_ELBOW: PoseLandmark.RIGHT_ELBOW,
    PoseLandmark.LEFT_WRIST: PoseLandmark.RIGHT_WRIST,
    PoseLandmark.LEFT_HIP: PoseLandmark.RIGHT_HIP,
    PoseLandmark.LEFT_KNEE: PoseLandmark.RIGHT_KNEE,
    PoseLandmark.LEFT_ANKLE: PoseLandmark.RIGHT_ANKLE,
}
MIRROR_MAP: Dict[int, int] = {**_LEFT_TO_RIGHT, **{right: left for left, right in _LEFT_TO_RIGHT.items()}}
RIGHT_LANDMARKS = frozenset(_LEFT_TO_RIGHT.values())
LEG_LANDMARKS = frozenset({
    PoseLandmark.LEFT_KNEE, PoseLandmark.RIGHT_KNEE,
    PoseLandmark.LEFT_ANKLE, PoseLandmark.RIGHT_ANKLE,
})


# --- Math & Geometry Utilities ---
def calculate_angle(a: Keypoint, b: Keypoint, c: Keypoint) -> float:
    """
    Calculate the angle at vertex ``b`` between rays ``b->a`` and ``b->c``.

    Point ordering convention:
    - a: First point (e.g., hip for shoulder abduction)
    - b: Middle point (e.g., shoulder) - angle is calculated here
    - c: Last point (e.g., elbow)

    Args:
        a: First point
        b: Vertex point
        c: Last point

    Returns:
        Angle in degrees, always within [0, 180]
    """
    radians = np.arctan2(c.y - b.y, c.x - b.x) - np.arctan2(a.y - b.y, a.x - b.x)
    angle = abs(float(np.degrees(radians)))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def vertical_reference(anchor: Keypoint) -> Keypoint:
    """Virtual point one unit straight above ``anchor`` (image y grows downwards)."""
    return Keypoint(anchor.x, anchor.y - 1.0, anchor.visibility)


# --- Landmark Access ---
def get_visible_point(frame: KeypointFrame, index: int, min_visibility: float = 0.5) -> Optional[Keypoint]:
    """Return the keypoint at ``index`` or None when it is absent or poorly visible."""
    point = frame.get(index)
    if point is None or point.visibility < min_visibility:
        return None
    return point


def get_visible_points(
    frame: KeypointFrame,
    indices: Iterable[int],
    min_visibility: float = 0.5
) -> Optional[List[Keypoint]]:
    """
    Fetch several landmarks at once.

    Returns:
        The keypoints in the requested order, or None if any of them is missing
    """
    points = []
    for index in indices:
        point = get_visible_point(frame, index, min_visibility)
        if point is None:
            return None
        points.append(point)
    return points


def missing_landmarks(frame: KeypointFrame, indices: Iterable[int], min_visibility: float = 0.5) -> List[int]:
    return [index for index in indices if get_visible_point(frame, index, min_visibility) is None]


# --- Side Mirroring ---
def mirror_index(index: int) -> int:
    return MIRROR_MAP.get(index, index)


def resolve_indices(indices: Sequence[int], side: Side) -> List[int]:
    """
    Translate canonical (left-side) landmark indices to the active side.

    Args:
        indices: Landmark indices in the left-side convention
        side: Side currently performing the exercise

    Returns:
        The indices mirrored to the right side when ``side`` is RIGHT, unchanged otherwise.
        Indices without a bilateral counterpart always pass through.
    """
    if side is Side.RIGHT:
        return [mirror_index(index) for index in indices]
    return list(indices)


def canonicalize_indices(indices: Sequence[int]) -> List[int]:
    """Map any right-side landmark index onto its left-side counterpart."""
    return [MIRROR_MAP[index] if index in RIGHT_LANDMARKS else index for index in indices]
