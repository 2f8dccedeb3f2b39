import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .base_analyzer import Phase
from .config_utils import AnalysisSettings, FormTolerances
from .exercise_config import FormCheck, FormRuleKind
from .pose_utils import (
    Keypoint,
    KeypointFrame,
    PoseLandmark,
    Side,
    calculate_angle,
    get_visible_points,
    resolve_indices,
    vertical_reference,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormRule:
    """Geometric test behind a FormRuleKind. The test returns True when form is violated."""
    landmarks: Tuple[int, ...]  # Left-side convention
    is_violated: Callable[[List[Keypoint], FormTolerances], bool]


def _wrist_above_shoulder(points: List[Keypoint], tol: FormTolerances) -> bool:
    shoulder, wrist = points
    return wrist.y < shoulder.y - tol.wrist_above_shoulder


def _elbow_below_shoulder(points: List[Keypoint], tol: FormTolerances) -> bool:
    shoulder, elbow = points
    return elbow.y > shoulder.y + tol.elbow_below_shoulder


def _knee_misaligned(points: List[Keypoint], tol: FormTolerances) -> bool:
    knee, ankle = points
    return abs(knee.x - ankle.x) > tol.knee_alignment


def _back_leaning(points: List[Keypoint], tol: FormTolerances) -> bool:
    shoulder, hip = points
    return calculate_angle(vertical_reference(hip), hip, shoulder) > tol.back_lean_degrees


def _elbow_bent(points: List[Keypoint], tol: FormTolerances) -> bool:
    shoulder, elbow, wrist = points
    return calculate_angle(shoulder, elbow, wrist) < tol.elbow_straight_min_angle


def _hips_uneven(points: List[Keypoint], tol: FormTolerances) -> bool:
    left_hip, right_hip = points
    return abs(left_hip.y - right_hip.y) > tol.hips_level


FORM_RULES: Dict[FormRuleKind, FormRule] = {
    FormRuleKind.WRIST_ABOVE_SHOULDER: FormRule(
        (PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_WRIST), _wrist_above_shoulder),
    FormRuleKind.ELBOW_BELOW_SHOULDER: FormRule(
        (PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_ELBOW), _elbow_below_shoulder),
    FormRuleKind.KNEE_ALIGNMENT: FormRule(
        (PoseLandmark.LEFT_KNEE, PoseLandmark.LEFT_ANKLE), _knee_misaligned),
    FormRuleKind.BACK_STRAIGHT: FormRule(
        (PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_HIP), _back_leaning),
    FormRuleKind.ELBOW_STRAIGHT: FormRule(
        (PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_ELBOW, PoseLandmark.LEFT_WRIST), _elbow_bent),
    FormRuleKind.HIPS_LEVEL: FormRule(
        (PoseLandmark.LEFT_HIP, PoseLandmark.RIGHT_HIP), _hips_uneven),
}


@dataclass(frozen=True)
class FormResult:
    form_ok: Optional[bool]  # None when some rule could not be evaluated and none failed
    message: Optional[str] = None
    failed_check: Optional[FormCheck] = None


class FormValidator:
    """Applies an exercise's configured form checks to the active side."""

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings or AnalysisSettings()
        self._reported_mismatches = set()

    def validate(
        self,
        frame: KeypointFrame,
        checks: Sequence[FormCheck],
        side: Side,
        phase: Phase
    ) -> FormResult:
        """
        Check form for the current frame.

        Form is only judged while the limb is MOVING; at rest and at the peak the
        configured violations do not apply and the frame passes. Checks whose
        condition matched no known rule are skipped.

        Args:
            frame: Keypoints of the current frame
            checks: Configured form checks (left-side convention)
            side: Active side the checks are resolved to
            phase: Phase of the current frame

        Returns:
            FormResult carrying the error message of the first failing check
        """
        if phase is not Phase.MOVING:
            return FormResult(form_ok=True)

        incomplete = False
        for check in checks:
            rule = FORM_RULES.get(check.kind)
            if rule is None:
                continue
            self._report_keypoint_mismatch(check, rule)
            points = get_visible_points(
                frame, resolve_indices(rule.landmarks, side), self.settings.min_visibility
            )
            if points is None:
                incomplete = True
                continue
            if rule.is_violated(points, self.settings.form_tolerances):
                return FormResult(form_ok=False, message=check.error_message, failed_check=check)

        return FormResult(form_ok=None if incomplete else True)

    def _report_keypoint_mismatch(self, check: FormCheck, rule: FormRule) -> None:
        # Rules always test their own landmarks; configured keypoints are informational.
        if not check.keypoints or set(check.keypoints) == set(rule.landmarks):
            return
        if check in self._reported_mismatches:
            return
        self._reported_mismatches.add(check)
        logger.debug(
            f"Form check '{check.condition}' lists keypoints {list(check.keypoints)}, "
            f"but the {check.kind.value} rule tests {list(rule.landmarks)}"
        )
