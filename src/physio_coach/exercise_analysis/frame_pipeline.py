import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .base_analyzer import AnalysisResult, BaseExerciseAnalyzer, Phase, TrackingSession
from .config_utils import AnalysisSettings
from .exercise_config import ExerciseCategory, ExerciseConfig, ExerciseConfigResolver, LimbType, ResolvedExercise
from .form_validator import FormValidator
from .limb_activity import LimbActivityScorer
from .phase_classifier import PhaseClassifier
from .pose_utils import KeypointFrame, Side, calculate_angle, get_visible_points, missing_landmarks
from .rep_counter import RepCounter, RepUpdate

logger = logging.getLogger(__name__)


# --- Feedback Templates ---
class FeedbackGenerator:
    @staticmethod
    def insufficient_tracking(limb: LimbType):
        return f"Insufficient tracking: make sure your whole {limb.value} is visible to the camera"
    @staticmethod
    def analysis_error():
        return "Could not analyze this frame, please hold your position"
    @staticmethod
    def not_started():
        return "Press start when you are ready to begin"
    @staticmethod
    def ready(category: ExerciseCategory):
        if category is ExerciseCategory.FLEXION_TYPE:
            return "Ready to start! Bend slowly toward the target"
        return "Ready to start! Lift slowly toward the target"
    @staticmethod
    def keep_moving(label: str):
        return f"Keep {label}! You're getting there"
    @staticmethod
    def near_peak(category: ExerciseCategory):
        if category is ExerciseCategory.FLEXION_TYPE:
            return "Good! Try to bend a bit further for full range"
        return "Good! Try to lift a bit higher for full range"
    @staticmethod
    def returning():
        return "Good control! Return slowly and steadily"
    @staticmethod
    def at_peak():
        return "Excellent! Full range of motion achieved"
    @staticmethod
    def rep_completed(rep_count: int):
        return f"Rep {rep_count} completed! Return to the start and repeat"


@dataclass(frozen=True)
class _SessionUpdate:
    active_side: Side
    last_phase: Optional[Phase] = None  # None leaves phase and rep fields untouched
    rep: Optional[RepUpdate] = None


class _ExerciseComponents:
    """Per-config helpers, built once when a config is first seen."""

    def __init__(self, config: ExerciseConfig, settings: AnalysisSettings):
        self.config = config
        self.resolver = ExerciseConfigResolver(config)
        self.classifier = PhaseClassifier(config, settings)
        self.scorer = LimbActivityScorer(config.limb, settings)


class FrameAnalysisPipeline(BaseExerciseAnalyzer):
    """
    Turns one frame of keypoints into an AnalysisResult.

    Each frame runs: active side -> side-resolved indices -> primary angle ->
    phase -> rep counter -> form checks. Session changes are collected while
    the frame is analyzed and committed only once a result is assembled, so a
    frame with insufficient tracking, or one that fails unexpectedly, leaves the
    session exactly as it was. No exception crosses the frame boundary.
    """

    def __init__(self, settings: Optional[AnalysisSettings] = None, clock: Callable[[], float] = time.time):
        self.settings = settings or AnalysisSettings()
        self.rep_counter = RepCounter(self.settings.rep_debounce_seconds)
        self.form_validator = FormValidator(self.settings)
        self._clock = clock
        self._components: Optional[_ExerciseComponents] = None

    def _components_for(self, config: ExerciseConfig) -> _ExerciseComponents:
        if self._components is None or self._components.config is not config:
            self._components = _ExerciseComponents(config, self.settings)
        return self._components

    def get_required_landmarks(self, config: ExerciseConfig, side: Side) -> List[int]:
        return list(self._components_for(config).resolver.resolve(side).angle_points)

    def analyze_frame(
        self,
        frame: KeypointFrame,
        config: ExerciseConfig,
        session: TrackingSession,
        timestamp: Optional[float] = None
    ) -> AnalysisResult:
        if timestamp is None:
            timestamp = self._clock()
        try:
            result, update = self._analyze(frame, config, session, timestamp)
        except Exception:
            logger.exception("Frame analysis failed")
            return AnalysisResult(
                angle=None,
                active_side=session.active_side,
                phase=session.last_phase,
                rep_count=session.rep_count,
                form_ok=None,
                message=FeedbackGenerator.analysis_error(),
                tracking_ok=False,
            )
        if update is not None:
            self._commit(session, update)
        return result

    def _analyze(
        self,
        frame: KeypointFrame,
        config: ExerciseConfig,
        session: TrackingSession,
        timestamp: float
    ) -> Tuple[AnalysisResult, Optional[_SessionUpdate]]:
        components = self._components_for(config)

        # --- Active side and base angle ---
        side = components.scorer.detect_active_side(frame, session.active_side)
        resolved = components.resolver.resolve(side)
        angle_points = resolved.angle_points
        points = get_visible_points(frame, angle_points, self.settings.min_visibility)
        if points is None:
            logger.debug(f"Insufficient tracking, missing landmarks {missing_landmarks(frame, angle_points, self.settings.min_visibility)}")
            return AnalysisResult(
                angle=None,
                active_side=session.active_side,
                phase=session.last_phase,
                rep_count=session.rep_count,
                form_ok=None,
                message=FeedbackGenerator.insufficient_tracking(config.limb),
                tracking_ok=False,
            ), None
        angle = calculate_angle(*points)
        secondary_angles = self._secondary_angles(frame, resolved)

        # --- Phase ---
        classifier = components.classifier
        returning = session.has_reached_peak
        phase = classifier.classify(angle, returning=returning)

        if not session.exercise_started:
            return AnalysisResult(
                angle=angle,
                active_side=side,
                phase=phase,
                rep_count=session.rep_count,
                form_ok=None,
                message=FeedbackGenerator.not_started(),
                secondary_angles=secondary_angles,
            ), _SessionUpdate(active_side=side)

        # --- Reps and form ---
        rep_update = self.rep_counter.evaluate(
            session, phase, classifier.in_starting_position(angle), timestamp
        )
        form = self.form_validator.validate(frame, config.form_checks, side, phase)

        if form.form_ok is False:
            message = form.message
        elif rep_update.rep_completed:
            message = FeedbackGenerator.rep_completed(rep_update.rep_count)
        elif phase is Phase.AT_PEAK:
            message = FeedbackGenerator.at_peak()
        elif phase is Phase.READY:
            message = FeedbackGenerator.ready(config.category)
        elif phase is Phase.RETURNING or returning:
            message = FeedbackGenerator.returning()
        elif classifier.near_peak(angle):
            message = FeedbackGenerator.near_peak(config.category)
        else:
            message = FeedbackGenerator.keep_moving(classifier.movement_label(phase))

        if phase is not session.last_phase:
            logger.debug(f"Phase {session.last_phase.value} -> {phase.value} at {angle:.1f} deg")

        return AnalysisResult(
            angle=angle,
            active_side=side,
            phase=phase,
            rep_count=rep_update.rep_count,
            form_ok=form.form_ok,
            message=message,
            rep_completed=rep_update.rep_completed,
            secondary_angles=secondary_angles,
        ), _SessionUpdate(active_side=side, last_phase=phase, rep=rep_update)

    def _secondary_angles(self, frame: KeypointFrame, resolved: ResolvedExercise) -> Dict[str, float]:
        angles = {}
        for name, indices in resolved.secondary_angle_points:
            points = get_visible_points(frame, indices, self.settings.min_visibility)
            if points is not None:
                angles[name] = calculate_angle(*points)
        return angles

    def _commit(self, session: TrackingSession, update: _SessionUpdate) -> None:
        session.active_side = update.active_side
        if update.last_phase is not None:
            session.last_phase = update.last_phase
        if update.rep is not None:
            self.rep_counter.apply(session, update.rep)
