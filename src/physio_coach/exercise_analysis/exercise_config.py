"""
Exercise configuration: parsing, validation and side resolution.

Configurations arrive from the recommendation service (or the packaged default)
as camelCase JSON. Everything that the per-frame analysis would otherwise have
to re-derive from strings (exercise category, limb type, form rule kinds) is
resolved here, once, when the configuration is loaded.
"""
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config_utils import load_default_exercise_data, load_exercise_templates
from .pose_utils import LEG_LANDMARKS, RIGHT_LANDMARKS, Side, canonicalize_indices, resolve_indices

logger = logging.getLogger(__name__)


class PhysioCoachError(Exception):
    """Base class for errors raised by the analysis package."""


class InvalidExerciseConfigError(PhysioCoachError, ValueError):
    """Raised when an exercise configuration lacks required structure."""


class ExerciseCategory(Enum):
    EXTENSION_TYPE = "extension"  # Angle increases toward the peak (raises, abduction)
    FLEXION_TYPE = "flexion"  # Angle decreases toward the peak (curls)


class LimbType(Enum):
    ARM = "arm"
    LEG = "leg"


class FormRuleKind(Enum):
    WRIST_ABOVE_SHOULDER = "wrist_above_shoulder"
    ELBOW_BELOW_SHOULDER = "elbow_below_shoulder"
    KNEE_ALIGNMENT = "knee_alignment"
    BACK_STRAIGHT = "back_straight"
    ELBOW_STRAIGHT = "elbow_straight"
    HIPS_LEVEL = "hips_level"
    UNKNOWN = "unknown"


# Checked in order, first match wins.
_FORM_RULE_VOCABULARY: List[Tuple[FormRuleKind, Tuple[str, ...]]] = [
    (FormRuleKind.ELBOW_BELOW_SHOULDER, ("elbow below shoulder", "elbow drop", "elbow level")),
    (FormRuleKind.WRIST_ABOVE_SHOULDER, (
        "wrist higher than shoulder", "wrist above shoulder", "hand above shoulder", "hand higher than shoulder",
        "arm too high", "lift too high", "raised too high",
    )),
    (FormRuleKind.KNEE_ALIGNMENT, ("knee alignment", "knee over", "knee cav", "knees in")),
    (FormRuleKind.BACK_STRAIGHT, ("back straight", "lean", "hunch", "posture")),
    (FormRuleKind.ELBOW_STRAIGHT, ("arm straight", "straight arm", "elbow bent", "bent elbow", "bending elbow")),
    (FormRuleKind.HIPS_LEVEL, ("hip level", "hips level", "hip hike", "pelvis")),
]

_FLEXION_NAME_KEYWORDS = ("curl", "bicep", "squat", "pendulum", "swing")

# Used when a recommendation omits the ranges block.
_DEFAULT_TARGET_RANGES = {
    "startingPosition": [0, 45],
    "targetRange": [90, 180],
    "optimalPeak": [170, 180],
}


def classify_form_condition(condition: str) -> FormRuleKind:
    text = condition.lower()
    for kind, phrases in _FORM_RULE_VOCABULARY:
        if any(phrase in text for phrase in phrases):
            return kind
    return FormRuleKind.UNKNOWN


@dataclass(frozen=True)
class AngleDefinition:
    points: Tuple[int, int, int]  # (point_a, vertex, point_c)
    name: str = "Primary Movement Angle"


@dataclass(frozen=True)
class TargetRanges:
    starting_position: Tuple[float, float]
    target_range: Tuple[float, float]
    optimal_peak: Tuple[float, float]


@dataclass(frozen=True)
class RepThresholds:
    lifting_min: float
    lowering_max: float
    rest_max: float

    def is_ascending(self) -> bool:
        return self.lifting_min < self.lowering_max < self.rest_max

    def corrected(self) -> "RepThresholds":
        """Return the thresholds sorted into ascending order."""
        low, middle, high = sorted((self.lifting_min, self.lowering_max, self.rest_max))
        return RepThresholds(lifting_min=low, lowering_max=middle, rest_max=high)


@dataclass(frozen=True)
class FormCheck:
    condition: str
    error_message: str
    keypoints: Tuple[int, ...] = ()
    kind: FormRuleKind = FormRuleKind.UNKNOWN


@dataclass(frozen=True)
class ExerciseConfig:
    """Immutable description of one exercise, in the left-side landmark convention."""
    name: str
    primary_angle: AngleDefinition
    target_ranges: TargetRanges
    rep_thresholds: RepThresholds
    category: ExerciseCategory
    limb: LimbType
    description: str = ""
    steps: Tuple[str, ...] = ()
    target_keypoints: Tuple[int, ...] = ()
    form_checks: Tuple[FormCheck, ...] = ()
    secondary_angles: Tuple[AngleDefinition, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], apply_templates: bool = True) -> "ExerciseConfig":
        """
        Build a validated configuration from recommendation-service JSON.

        Args:
            data: Parsed JSON object (camelCase keys, as produced by the recommendation service)
            apply_templates: Override angle points, ranges and thresholds from a matching
                exercise template

        Returns:
            ExerciseConfig with ascending thresholds and left-side indices

        Raises:
            InvalidExerciseConfigError: If required structure is missing or malformed
        """
        if not isinstance(data, dict):
            raise InvalidExerciseConfigError("Exercise configuration must be a JSON object")
        data = dict(data)
        if apply_templates:
            data = apply_exercise_template(data)

        name = data.get("exerciseName", data.get("name"))
        if not isinstance(name, str) or not name.strip():
            raise InvalidExerciseConfigError("Exercise configuration is missing 'exerciseName'")
        name = name.strip()

        primary_angle = _parse_angle(_primary_angle_data(data), "primaryAngle")
        secondary_angles = tuple(
            _parse_angle(entry, f"secondaryAngles[{i}]", default_name=f"Secondary Angle {i + 1}")
            for i, entry in enumerate(_secondary_angle_data(data))
        )

        ranges_data = _object_field(data, "targetRanges")
        if not ranges_data or "startingPosition" not in ranges_data:
            logger.info(f"No target ranges for '{name}', using defaults")
            ranges_data = _DEFAULT_TARGET_RANGES
        target_ranges = TargetRanges(
            starting_position=_parse_range(ranges_data, "startingPosition"),
            target_range=_parse_range(ranges_data, "targetRange"),
            optimal_peak=_parse_range(ranges_data, "optimalPeak"),
        )

        rep_thresholds = _parse_thresholds(data.get("repThresholds"))
        if not rep_thresholds.is_ascending():
            corrected = rep_thresholds.corrected()
            logger.warning(
                f"Correcting invalid rep thresholds for '{name}': "
                f"{rep_thresholds} -> {corrected}"
            )
            rep_thresholds = corrected

        form_checks = tuple(
            _parse_form_check(entry, i) for i, entry in enumerate(data.get("formChecks") or [])
        )
        for check in form_checks:
            if check.kind is FormRuleKind.UNKNOWN:
                logger.debug(f"Form check '{check.condition}' matches no known rule and will be skipped")

        return cls(
            name=name,
            description=str(data.get("description", "")),
            steps=tuple(str(step) for step in data.get("steps") or []),
            target_keypoints=tuple(_canonical(data.get("targetKeypoints") or [], "targetKeypoints")),
            primary_angle=primary_angle,
            secondary_angles=secondary_angles,
            target_ranges=target_ranges,
            rep_thresholds=rep_thresholds,
            form_checks=form_checks,
            category=resolve_category(name, target_ranges, data.get("category")),
            limb=LimbType.LEG if any(p in LEG_LANDMARKS for p in primary_angle.points) else LimbType.ARM,
        )


# --- Parsing helpers ---
def _object_field(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Return ``data[key]`` as a dict, ``{}`` when missing or null."""
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidExerciseConfigError(f"'{key}' must be an object, got {type(value).__name__}")
    return value


def _primary_angle_data(data: Dict[str, Any]) -> Any:
    if "primaryAngle" in data:
        return data["primaryAngle"]
    calculations = _object_field(data, "angleCalculations")
    if "primaryAngle" not in calculations:
        raise InvalidExerciseConfigError("Exercise configuration is missing 'primaryAngle'")
    return calculations["primaryAngle"]


def _secondary_angle_data(data: Dict[str, Any]) -> List[Any]:
    if "secondaryAngles" in data:
        angles = data["secondaryAngles"] or []
    else:
        angles = _object_field(data, "angleCalculations").get("secondaryAngles") or []
    if not isinstance(angles, list):
        raise InvalidExerciseConfigError("'secondaryAngles' must be a list")
    return angles


def _to_index_list(values: Any, field_name: str) -> List[int]:
    if not isinstance(values, (list, tuple)):
        raise InvalidExerciseConfigError(f"'{field_name}' must be a list of landmark indices")
    try:
        return [int(v) for v in values]
    except (TypeError, ValueError):
        raise InvalidExerciseConfigError(f"'{field_name}' must contain integer landmark indices: {values!r}")


def _canonical(values: Any, field_name: str) -> List[int]:
    indices = _to_index_list(values, field_name)
    if any(index in RIGHT_LANDMARKS for index in indices):
        canonical = canonicalize_indices(indices)
        logger.warning(f"Mapping right-side indices in '{field_name}' to the left side: {indices} -> {canonical}")
        return canonical
    return indices


def _parse_angle(angle_data: Any, field_name: str, default_name: str = "Primary Movement Angle") -> AngleDefinition:
    if not isinstance(angle_data, dict) or "points" not in angle_data:
        raise InvalidExerciseConfigError(f"'{field_name}' is missing 'points'")
    points = _canonical(angle_data["points"], f"{field_name}.points")
    if len(points) != 3:
        raise InvalidExerciseConfigError(f"'{field_name}.points' needs exactly 3 landmarks, got {len(points)}")
    return AngleDefinition(points=tuple(points), name=str(angle_data.get("name", default_name)))


def _parse_range(ranges_data: Dict[str, Any], key: str) -> Tuple[float, float]:
    values = ranges_data.get(key)
    try:
        low, high = (float(v) for v in values)
    except (TypeError, ValueError):
        raise InvalidExerciseConfigError(f"'targetRanges.{key}' must be a [low, high] pair: {values!r}")
    return (min(low, high), max(low, high))


def _parse_thresholds(thresholds_data: Any) -> RepThresholds:
    if not isinstance(thresholds_data, dict):
        raise InvalidExerciseConfigError("Exercise configuration is missing 'repThresholds'")
    try:
        return RepThresholds(
            lifting_min=float(thresholds_data["liftingMin"]),
            lowering_max=float(thresholds_data["loweringMax"]),
            rest_max=float(thresholds_data["restMax"]),
        )
    except KeyError as e:
        raise InvalidExerciseConfigError(f"'repThresholds' is missing {e}")
    except (TypeError, ValueError):
        raise InvalidExerciseConfigError(f"'repThresholds' must hold numbers: {thresholds_data!r}")


def _parse_form_check(check_data: Any, position: int) -> FormCheck:
    if not isinstance(check_data, dict) or "condition" not in check_data:
        raise InvalidExerciseConfigError(f"'formChecks[{position}]' is missing 'condition'")
    condition = str(check_data["condition"])
    return FormCheck(
        condition=condition,
        error_message=str(check_data.get("errorMessage") or condition),
        keypoints=tuple(_canonical(check_data.get("keypoints") or [], f"formChecks[{position}].keypoints")),
        kind=classify_form_condition(condition),
    )


def resolve_category(
    name: str,
    target_ranges: TargetRanges,
    explicit: Optional[str] = None
) -> ExerciseCategory:
    """
    Decide whether the tracked angle grows or shrinks toward the peak.

    An explicit category wins; otherwise the peak range is compared with the
    starting range, and the exercise name is only consulted when the two
    ranges do not tell the direction apart.
    """
    if explicit:
        try:
            return ExerciseCategory(str(explicit).lower())
        except ValueError:
            raise InvalidExerciseConfigError(f"Unknown exercise category: {explicit!r}")
    start_mid = sum(target_ranges.starting_position) / 2
    peak_mid = sum(target_ranges.optimal_peak) / 2
    if peak_mid < start_mid:
        return ExerciseCategory.FLEXION_TYPE
    if peak_mid > start_mid:
        return ExerciseCategory.EXTENSION_TYPE
    lowered = name.lower()
    if any(keyword in lowered for keyword in _FLEXION_NAME_KEYWORDS):
        return ExerciseCategory.FLEXION_TYPE
    return ExerciseCategory.EXTENSION_TYPE


# --- Templates ---
def _template_matches(template: Dict[str, Any], lowered_name: str) -> bool:
    keywords_all = template.get("keywords_all")
    if keywords_all:
        return all(k in lowered_name for k in keywords_all)
    return any(k in lowered_name for k in template.get("keywords_any", []))


def apply_exercise_template(data: Dict[str, Any], templates: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Replace angle points, ranges and thresholds with those of a known exercise.

    Recommendations frequently get the landmark triple or the threshold order
    wrong for well-known exercises, so the packaged templates take precedence
    when the exercise name matches one of them.

    Args:
        data: Raw configuration dictionary
        templates: Template list, defaults to the packaged exercise_templates.json

    Returns:
        A new dictionary, or ``data`` itself if no template matched
    """
    name = data.get("exerciseName", data.get("name"))
    if not isinstance(name, str):
        return data
    if templates is None:
        templates = load_exercise_templates()
    lowered = name.lower()
    for template in templates:
        if not _template_matches(template, lowered):
            continue
        logger.info(f"Applying template '{template['key']}' to exercise '{name}'")
        corrected = dict(data)
        calculations = dict(_object_field(corrected, "angleCalculations"))
        if "primaryAngle" in corrected:
            primary = dict(_object_field(corrected, "primaryAngle"))
        else:
            primary = dict(_object_field(calculations, "primaryAngle"))
        primary["points"] = list(template["points"])
        if "primaryAngle" in corrected:
            corrected["primaryAngle"] = primary
        else:
            calculations["primaryAngle"] = primary
            corrected["angleCalculations"] = calculations
        corrected["targetRanges"] = template["targetRanges"]
        corrected["repThresholds"] = template["repThresholds"]
        return corrected
    return data


# --- Loading ---
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block, as LLM responses often carry one."""
    return _CODE_FENCE.sub("", text.strip())


def parse_exercise_config_text(text: str, apply_templates: bool = True) -> ExerciseConfig:
    """
    Parse a recommendation-service response into an ExerciseConfig.

    Accepts either the bare exercise object or the ``{"success": ..., "data": {...}}``
    envelope, optionally wrapped in a markdown code block.
    """
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise InvalidExerciseConfigError(f"Exercise configuration is not valid JSON: {e}")
    if isinstance(data, dict) and "success" in data:
        if not data["success"]:
            raise InvalidExerciseConfigError(f"Recommendation failed: {data.get('error', 'unknown error')}")
        data = data.get("data")
    return ExerciseConfig.from_dict(data, apply_templates=apply_templates)


def load_exercise_config(config_path: str = None, apply_templates: bool = True) -> ExerciseConfig:
    """Load an exercise config from a JSON file, or the packaged default exercise."""
    if config_path is None:
        return ExerciseConfig.from_dict(load_default_exercise_data(), apply_templates=apply_templates)
    with open(config_path, "r") as f:
        return parse_exercise_config_text(f.read(), apply_templates=apply_templates)


def default_exercise_config() -> ExerciseConfig:
    return load_exercise_config()


def config_from_template(key: str, templates: Optional[List[Dict[str, Any]]] = None) -> ExerciseConfig:
    """Build a configuration straight from a packaged template, e.g. ``'arm_curl'``."""
    if templates is None:
        templates = load_exercise_templates()
    for template in templates:
        if template["key"] == key:
            return ExerciseConfig.from_dict({
                "exerciseName": key.replace("_", " ").title(),
                "primaryAngle": {"points": template["points"]},
                "targetRanges": template["targetRanges"],
                "repThresholds": template["repThresholds"],
            }, apply_templates=False)
    raise InvalidExerciseConfigError(f"Unknown exercise template: {key!r}")


# --- Side resolution ---
@dataclass(frozen=True)
class ResolvedExercise:
    """Landmark indices of an ExerciseConfig translated to one side of the body."""
    side: Side
    angle_points: Tuple[int, int, int]
    target_keypoints: Tuple[int, ...] = ()
    secondary_angle_points: Tuple[Tuple[str, Tuple[int, int, int]], ...] = ()


class ExerciseConfigResolver:
    """Translates a config's canonical left-side indices to the detected active side."""

    def __init__(self, config: ExerciseConfig):
        self.config = config
        self._cache: Dict[Side, ResolvedExercise] = {}

    def resolve(self, side: Side) -> ResolvedExercise:
        if side not in self._cache:
            self._cache[side] = ResolvedExercise(
                side=side,
                angle_points=tuple(resolve_indices(self.config.primary_angle.points, side)),
                target_keypoints=tuple(resolve_indices(self.config.target_keypoints, side)),
                secondary_angle_points=tuple(
                    (angle.name, tuple(resolve_indices(angle.points, side)))
                    for angle in self.config.secondary_angles
                ),
            )
        return self._cache[side]

    @staticmethod
    def resolve_indices(indices: Sequence[int], side: Side) -> List[int]:
        return resolve_indices(indices, side)
