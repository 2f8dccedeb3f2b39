from typing import Optional

from .base_analyzer import Phase
from .config_utils import AnalysisSettings
from .exercise_config import ExerciseCategory, ExerciseConfig

# Movement labels per category: (toward the peak, back to the start)
_MOVEMENT_LABELS = {
    ExerciseCategory.EXTENSION_TYPE: ("lifting", "lowering"),
    ExerciseCategory.FLEXION_TYPE: ("curling", "extending"),
}


class PhaseClassifier:
    """Classifies the current angle of an exercise into a motion phase."""

    def __init__(self, config: ExerciseConfig, settings: Optional[AnalysisSettings] = None):
        self.config = config
        self.settings = settings or AnalysisSettings()
        self.category = config.category
        self._peak_low, self._peak_high = config.target_ranges.optimal_peak
        self._lifting_min = config.rep_thresholds.lifting_min
        self._rest_max = config.rep_thresholds.rest_max

    def classify(self, angle: float, returning: bool = False) -> Phase:
        """
        Resolve the phase for one frame.

        Args:
            angle: Current primary angle in degrees
            returning: True once the peak has been reached in the current cycle

        Returns:
            Exactly one phase. Angles that fall between the ready and moving
            thresholds are reported as MOVING.
        """
        if self._peak_low <= angle <= self._peak_high:
            return Phase.AT_PEAK

        if self.category is ExerciseCategory.EXTENSION_TYPE:
            moving = angle > self._lifting_min
            ready = angle <= self._rest_max
        else:
            moving = angle < self._lifting_min
            ready = angle >= self._rest_max

        if ready and not moving:
            return Phase.READY
        if returning and self.settings.distinguish_returning:
            return Phase.RETURNING
        return Phase.MOVING

    def in_starting_position(self, angle: float) -> bool:
        low, high = self.config.target_ranges.starting_position
        return low <= angle <= high

    def near_peak(self, angle: float) -> bool:
        """Inside the working range but short of the optimal peak."""
        low, high = self.config.target_ranges.target_range
        return low <= angle <= high and not self._peak_low <= angle <= self._peak_high

    def movement_label(self, phase: Phase, returning: bool = False) -> Optional[str]:
        """Exercise-specific name of the movement, e.g. 'lifting' or 'curling'."""
        toward_peak, back_to_start = _MOVEMENT_LABELS[self.category]
        if phase is Phase.RETURNING or (phase is Phase.MOVING and returning):
            return back_to_start
        if phase is Phase.MOVING:
            return toward_peak
        return None
