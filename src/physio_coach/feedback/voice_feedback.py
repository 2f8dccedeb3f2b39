import logging
import queue
import threading
import time
from typing import Optional

import pyttsx3

from ..exercise_analysis.base_analyzer import AnalysisResult

logger = logging.getLogger(__name__)


class VoiceFeedback:
    """Spoken coaching cues for rep completions and form corrections."""

    def __init__(self, rate: int = 150, volume: float = 1.0, enabled: bool = True):
        """
        Initialize the voice feedback system.

        Args:
            rate: Speech rate (words per minute)
            volume: Speech volume (0.0 to 1.0)
            enabled: When False, feedback is still generated but never spoken
        """
        self.enabled = enabled
        self.engine = None
        self._tts_queue = queue.Queue()
        self._tts_thread = None
        if enabled:
            self.engine = pyttsx3.init()
            self.engine.setProperty('rate', rate)
            self.engine.setProperty('volume', volume)
            self._tts_thread = threading.Thread(target=self._tts_worker, daemon=True)
            self._tts_thread.start()

        self.last_feedback_time = 0.0
        self.feedback_cooldown = 4.0  # seconds
        self._last_feedback_message = None
        self._last_violation = None
        self._violation_persist_count = 0
        self._violation_debounce_threshold = 3  # frames

    def generate_feedback(self, result: AnalysisResult, current_time: Optional[float] = None) -> Optional[str]:
        """
        Pick the message worth speaking for this frame, if any.

        Rep completions are always announced. Form corrections are only spoken once
        the same violation persisted for a few frames, and tracking problems and
        corrections are rate limited by ``feedback_cooldown`` and never repeated
        back to back.

        Args:
            result: Analysis result of the current frame
            current_time: Time in seconds, defaults to the wall clock

        Returns:
            Message to speak, or None
        """
        if current_time is None:
            current_time = time.time()

        if result.rep_completed:
            self._violation_persist_count = 0
            self._last_violation = None
            return self._remember(f"Rep {result.rep_count}", current_time)

        if current_time - self.last_feedback_time < self.feedback_cooldown:
            return None

        if not result.tracking_ok:
            feedback = result.message
        elif result.form_ok is False:
            if result.message == self._last_violation:
                self._violation_persist_count += 1
            else:
                self._violation_persist_count = 1
                self._last_violation = result.message
            if self._violation_persist_count < self._violation_debounce_threshold:
                return None
            feedback = result.message
        else:
            self._violation_persist_count = 0
            self._last_violation = None
            return None

        # Only speak if feedback message changes
        if feedback == self._last_feedback_message:
            return None
        return self._remember(feedback, current_time)

    def _remember(self, feedback: str, current_time: float) -> str:
        self._last_feedback_message = feedback
        self.last_feedback_time = current_time
        return feedback

    def speak_async(self, message: str) -> None:
        """
        Queue the given message to be spoken by the background TTS thread.

        Args:
            message: Message to speak
        """
        if not self.enabled:
            logger.info(f"[VOICE] {message}")
            return
        self._tts_queue.put(message)

    def _tts_worker(self):
        while True:
            msg = self._tts_queue.get()
            if msg is None:
                break
            self.engine.say(msg)
            self.engine.runAndWait()

    def close(self) -> None:
        if self._tts_thread is not None:
            self._tts_queue.put(None)
