import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .config_utils import AnalysisSettings
from .exercise_config import LimbType
from .pose_utils import KeypointFrame, PoseLandmark, Side, calculate_angle, get_visible_points, resolve_indices

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LimbGeometry:
    """Left-side landmarks describing one bilateral limb."""
    proximal: int  # Joint the limb hangs from (shoulder / hip)
    middle: int
    distal: int  # End of the limb (wrist / ankle)
    anchor: int  # Torso point used for the reference angle

    @property
    def reference_angle_points(self) -> Tuple[int, int, int]:
        return (self.anchor, self.proximal, self.middle)


ARM_GEOMETRY = LimbGeometry(
    proximal=PoseLandmark.LEFT_SHOULDER,
    middle=PoseLandmark.LEFT_ELBOW,
    distal=PoseLandmark.LEFT_WRIST,
    anchor=PoseLandmark.LEFT_HIP,
)
LEG_GEOMETRY = LimbGeometry(
    proximal=PoseLandmark.LEFT_HIP,
    middle=PoseLandmark.LEFT_KNEE,
    distal=PoseLandmark.LEFT_ANKLE,
    anchor=PoseLandmark.LEFT_SHOULDER,
)


class LimbActivityScorer:
    """
    Decides which side of a bilateral limb pair is performing the exercise.

    Each side is scored by how much the limb moved away from its resting pose:
    how high the distal joint rose relative to the proximal joint, how far the
    limb reaches out horizontally, and how far the reference angle is from the
    anatomical rest angle. The active side only changes when one score beats
    the other by more than ``side_switch_threshold`` of their average, so
    near-equal scores never make the side flicker between frames.
    """

    def __init__(self, limb: LimbType = LimbType.ARM, settings: Optional[AnalysisSettings] = None):
        self.limb = limb
        self.settings = settings or AnalysisSettings()
        self.geometry = ARM_GEOMETRY if limb is LimbType.ARM else LEG_GEOMETRY
        self.rest_angle = self.settings.arm_rest_angle if limb is LimbType.ARM else self.settings.leg_rest_angle

    def score_side(self, frame: KeypointFrame, side: Side) -> Optional[float]:
        """
        Compute the movement score of one side.

        Args:
            frame: Keypoints of the current frame
            side: Side to score

        Returns:
            Movement score, or None if any landmark of the limb is missing
        """
        g = self.geometry
        indices = resolve_indices([g.proximal, g.middle, g.distal, g.anchor], side)
        points = get_visible_points(frame, indices, self.settings.min_visibility)
        if points is None:
            return None
        proximal, middle, distal, anchor = points

        elevation = proximal.y - distal.y
        extension = abs(distal.x - proximal.x)
        reference_angle = calculate_angle(anchor, proximal, middle)
        angle_deviation = abs(reference_angle - self.rest_angle) / 180.0

        return (
            self.settings.elevation_weight * elevation
            + self.settings.extension_weight * extension
            + self.settings.angle_weight * angle_deviation
        )

    def detect_active_side(self, frame: KeypointFrame, previous_side: Side) -> Side:
        """
        Pick the active side with hysteresis.

        Args:
            frame: Keypoints of the current frame
            previous_side: Side judged active on the previous frame

        Returns:
            The new active side; ``previous_side`` when either side is not fully
            visible or the scores are too close to call
        """
        left_score = self.score_side(frame, Side.LEFT)
        right_score = self.score_side(frame, Side.RIGHT)
        if left_score is None or right_score is None:
            return previous_side

        scale = max((abs(left_score) + abs(right_score)) / 2.0, self.settings.min_score_scale)
        relative_difference = abs(left_score - right_score) / scale
        if relative_difference <= self.settings.side_switch_threshold:
            return previous_side

        side = Side.LEFT if left_score > right_score else Side.RIGHT
        if side is not previous_side:
            logger.debug(
                f"Active side {previous_side.value} -> {side.value} "
                f"(left={left_score:.3f}, right={right_score:.3f})"
            )
        return side
