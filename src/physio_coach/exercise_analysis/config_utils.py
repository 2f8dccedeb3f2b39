import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.dirname(__file__)


@dataclass
class FormTolerances:
    """Numeric tolerances for the geometric form tests (normalized units unless noted)."""
    wrist_above_shoulder: float = 0.1
    elbow_below_shoulder: float = 0.05
    knee_alignment: float = 0.1
    back_lean_degrees: float = 20.0
    elbow_straight_min_angle: float = 150.0
    hips_level: float = 0.05


@dataclass
class AnalysisSettings:
    """Tunable constants of the frame analysis."""
    min_visibility: float = 0.5  # Landmarks below this visibility count as missing
    side_switch_threshold: float = 0.2  # Relative score difference needed to switch side
    min_score_scale: float = 0.05  # Floor for the score average used by the hysteresis
    elevation_weight: float = 1.0
    extension_weight: float = 0.5
    angle_weight: float = 1.0
    arm_rest_angle: float = 20.0
    leg_rest_angle: float = 180.0
    rep_debounce_seconds: float = 1.0
    distinguish_returning: bool = False
    form_tolerances: FormTolerances = field(default_factory=FormTolerances)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisSettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown analysis settings: {', '.join(sorted(unknown))}")
        values = {k: v for k, v in data.items() if k in known and k != "form_tolerances"}
        tolerance_data = data.get("form_tolerances", {}) or {}
        tolerance_fields = {f.name for f in fields(FormTolerances)}
        unknown_tolerances = set(tolerance_data) - tolerance_fields
        if unknown_tolerances:
            logger.warning(f"Ignoring unknown form tolerances: {', '.join(sorted(unknown_tolerances))}")
        tolerances = FormTolerances(**{k: v for k, v in tolerance_data.items() if k in tolerance_fields})
        return cls(form_tolerances=tolerances, **values)


def _load_json(config_path: str) -> Any:
    with open(config_path, "r") as f:
        return json.load(f)


def load_analysis_settings(config_path: str = None) -> AnalysisSettings:
    """Load analysis settings from JSON file."""
    if config_path is None:
        config_path = os.path.join(_CONFIG_DIR, "analysis_settings.json")
    return AnalysisSettings.from_dict(_load_json(config_path))


def load_exercise_templates(config_path: str = None) -> List[Dict[str, Any]]:
    if config_path is None:
        config_path = os.path.join(_CONFIG_DIR, "exercise_templates.json")
    return _load_json(config_path)["templates"]


def load_default_exercise_data(config_path: str = None) -> Dict[str, Any]:
    if config_path is None:
        config_path = os.path.join(_CONFIG_DIR, "default_exercise.json")
    return _load_json(config_path)
