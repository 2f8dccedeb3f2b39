import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .base_analyzer import Phase, TrackingSession

logger = logging.getLogger(__name__)


class RepCounterState(Enum):
    ARMED = "armed"  # Waiting for the next peak
    COOLING = "cooling"  # Peak reached, waiting for a return to the start


@dataclass(frozen=True)
class RepUpdate:
    """Rep-related session fields after one frame."""
    rep_count: int
    has_reached_peak: bool
    last_rep_timestamp: Optional[float]
    rep_completed: bool = False


class RepCounter:
    """
    Debounced peak-detection state machine.

    A rep is counted on the first AT_PEAK frame of a cycle, provided more than
    ``debounce_seconds`` passed since the previous rep. Reaching the peak, counted
    or not, puts the counter in COOLING until the limb comes back to the starting
    position, so holding the peak or flickering around it never adds reps.
    """

    def __init__(self, debounce_seconds: float = 1.0):
        self.debounce_seconds = debounce_seconds

    @staticmethod
    def state(session: TrackingSession) -> RepCounterState:
        return RepCounterState.COOLING if session.has_reached_peak else RepCounterState.ARMED

    def evaluate(self, session: TrackingSession, phase: Phase, back_at_start: bool, timestamp: float) -> RepUpdate:
        """
        Work out the rep fields for the current frame without touching the session.

        Args:
            session: Current tracking state
            phase: Phase of the current frame
            back_at_start: True when the angle is back in the starting position
            timestamp: Frame time in seconds

        Returns:
            RepUpdate to commit with :meth:`apply`
        """
        unchanged = RepUpdate(session.rep_count, session.has_reached_peak, session.last_rep_timestamp)
        if not session.exercise_started:
            return unchanged

        if phase is Phase.AT_PEAK:
            debounced = (
                session.last_rep_timestamp is None
                or timestamp - session.last_rep_timestamp > self.debounce_seconds
            )
            if self.state(session) is RepCounterState.ARMED and debounced:
                return RepUpdate(session.rep_count + 1, True, timestamp, rep_completed=True)
            return RepUpdate(session.rep_count, True, session.last_rep_timestamp)

        if back_at_start or phase is Phase.READY:
            return RepUpdate(session.rep_count, False, session.last_rep_timestamp)
        return unchanged

    @staticmethod
    def apply(session: TrackingSession, update: RepUpdate) -> None:
        if update.rep_completed:
            logger.debug(f"Rep {update.rep_count} completed")
        session.rep_count = update.rep_count
        session.has_reached_peak = update.has_reached_peak
        session.last_rep_timestamp = update.last_rep_timestamp

    def update(self, session: TrackingSession, phase: Phase, back_at_start: bool, timestamp: float) -> bool:
        """Evaluate and commit in one step. Returns True when a rep was completed."""
        result = self.evaluate(session, phase, back_at_start, timestamp)
        self.apply(session, result)
        return result.rep_completed
