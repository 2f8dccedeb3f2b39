from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .exercise_config import ExerciseConfig
from .pose_utils import KeypointFrame, Side


class Phase(Enum):
    """Motion-cycle state of the tracked limb."""
    READY = "ready"
    MOVING = "moving"
    AT_PEAK = "at-peak"
    RETURNING = "returning"


@dataclass
class TrackingSession:
    """Rolling state of one exercise attempt, owned and mutated by the analysis pipeline."""
    active_side: Side = Side.LEFT
    last_phase: Phase = Phase.READY
    has_reached_peak: bool = False
    last_rep_timestamp: Optional[float] = None
    rep_count: int = 0
    exercise_started: bool = False

    def reset(self) -> None:
        """Start counting from scratch, e.g. after loading a new exercise or an explicit restart."""
        self.rep_count = 0
        self.has_reached_peak = False
        self.last_phase = Phase.READY
        self.last_rep_timestamp = None

    def start(self) -> None:
        self.exercise_started = True

    def stop(self) -> None:
        self.exercise_started = False


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of analyzing a single frame."""
    angle: Optional[float]
    active_side: Side
    phase: Phase
    rep_count: int
    form_ok: Optional[bool]  # None when form could not be judged
    message: str
    tracking_ok: bool = True
    rep_completed: bool = False
    secondary_angles: Dict[str, float] = field(default_factory=dict)  # Only the visible ones

    @property
    def display_angle(self) -> Optional[int]:
        return None if self.angle is None else int(round(self.angle))


class BaseExerciseAnalyzer(ABC):
    """Base class for per-frame exercise analysis implementations."""

    @abstractmethod
    def analyze_frame(
        self,
        frame: KeypointFrame,
        config: ExerciseConfig,
        session: TrackingSession,
        timestamp: Optional[float] = None
    ) -> AnalysisResult:
        """
        Analyze a single frame of exercise performance.

        Args:
            frame: Keypoints of the current video frame
            config: Exercise being performed
            session: Tracking state, updated in place
            timestamp: Frame time in seconds, defaults to the wall clock

        Returns:
            AnalysisResult for the frame
        """
        pass

    @abstractmethod
    def get_required_landmarks(self, config: ExerciseConfig, side: Side) -> List[int]:
        """Get the landmark indices needed to analyze ``config`` on ``side``."""
        pass
