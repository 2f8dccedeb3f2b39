"""
Exercise analysis package: limb detection, phase classification, rep counting and form validation.
"""

from .base_analyzer import AnalysisResult, BaseExerciseAnalyzer, Phase, TrackingSession
from .config_utils import AnalysisSettings, FormTolerances, load_analysis_settings
from .exercise_config import (
    ExerciseCategory,
    ExerciseConfig,
    ExerciseConfigResolver,
    FormRuleKind,
    InvalidExerciseConfigError,
    LimbType,
    PhysioCoachError,
    config_from_template,
    default_exercise_config,
    load_exercise_config,
    parse_exercise_config_text,
)
from .form_validator import FormResult, FormValidator
from .frame_pipeline import FrameAnalysisPipeline
from .limb_activity import LimbActivityScorer
from .phase_classifier import PhaseClassifier
from .pose_utils import Keypoint, KeypointFrame, PoseLandmark, Side, calculate_angle, resolve_indices
from .rep_counter import RepCounter, RepCounterState

__all__ = [
    'AnalysisResult',
    'AnalysisSettings',
    'BaseExerciseAnalyzer',
    'ExerciseCategory',
    'ExerciseConfig',
    'ExerciseConfigResolver',
    'FormResult',
    'FormRuleKind',
    'FormTolerances',
    'FormValidator',
    'FrameAnalysisPipeline',
    'InvalidExerciseConfigError',
    'Keypoint',
    'KeypointFrame',
    'LimbActivityScorer',
    'LimbType',
    'Phase',
    'PhaseClassifier',
    'PhysioCoachError',
    'PoseLandmark',
    'RepCounter',
    'RepCounterState',
    'Side',
    'TrackingSession',
    'calculate_angle',
    'config_from_template',
    'default_exercise_config',
    'load_analysis_settings',
    'load_exercise_config',
    'parse_exercise_config_text',
    'resolve_indices',
]
