import logging
import threading
from typing import Optional

import cv2
import numpy as np

from .exercise_analysis.base_analyzer import AnalysisResult, TrackingSession
from .exercise_analysis.config_utils import AnalysisSettings
from .exercise_analysis.exercise_config import ExerciseConfig, default_exercise_config
from .exercise_analysis.frame_pipeline import FrameAnalysisPipeline
from .feedback.voice_feedback import VoiceFeedback
from .pose_detection.base_detector import BasePoseDetector

logger = logging.getLogger(__name__)

WINDOW_NAME = "PhysioCoach"


class PhysioCoachTrainer:
    """Main class tying pose detection, frame analysis and feedback together."""

    def __init__(
        self,
        config: Optional[ExerciseConfig] = None,
        settings: Optional[AnalysisSettings] = None,
        pose_detector: Optional[BasePoseDetector] = None,
        voice_feedback: Optional[VoiceFeedback] = None
    ):
        """
        Initialize the trainer.

        Args:
            config: Exercise to coach, defaults to the packaged default exercise
            settings: Analysis settings
            pose_detector: Pose estimator, defaults to MediaPipe
            voice_feedback: Spoken feedback, defaults to a disabled (log-only) instance
        """
        if pose_detector is None:
            from .pose_detection.mediapipe_detector import MediaPipePoseDetector
            pose_detector = MediaPipePoseDetector()
        self.pose_detector = pose_detector
        self.voice_feedback = voice_feedback or VoiceFeedback(enabled=False)
        self.pipeline = FrameAnalysisPipeline(settings)
        self.session = TrackingSession()
        self.config = None
        self.load_config(config or default_exercise_config())

        self._processing = threading.Lock()
        self.dropped_frames = 0
        self.cap = None
        self.is_running = False

    # --- Session control ---
    def load_config(self, config: ExerciseConfig) -> None:
        """Switch to a new exercise, starting the count from zero."""
        self.config = config
        self.session.reset()
        logger.info(f"Loaded exercise '{config.name}' ({config.category.value}, {config.limb.value})")

    def restart(self) -> None:
        self.session.reset()
        logger.info("Exercise restarted")

    def start_exercise(self) -> None:
        self.session.start()
        logger.info("Exercise started")

    def stop_exercise(self) -> None:
        self.session.stop()
        logger.info("Exercise stopped")

    def toggle_exercise(self) -> None:
        if self.session.exercise_started:
            self.stop_exercise()
        else:
            self.start_exercise()

    # --- Frame processing ---
    def process_frame(self, frame: np.ndarray, timestamp: Optional[float] = None) -> Optional[AnalysisResult]:
        """
        Detect the pose in one video frame and analyze it.

        Frames are processed one at a time. A frame that arrives while another is
        still being analyzed is dropped, never queued.

        Args:
            frame: Input frame (BGR)
            timestamp: Frame time in seconds, defaults to the wall clock

        Returns:
            AnalysisResult, or None if the frame was dropped
        """
        if not self._processing.acquire(blocking=False):
            self.dropped_frames += 1
            return None
        try:
            keypoints = self.pose_detector.detect(frame) or {}
            result = self.pipeline.analyze_frame(keypoints, self.config, self.session, timestamp)
        finally:
            self._processing.release()

        feedback = self.voice_feedback.generate_feedback(result)
        if feedback:
            self.voice_feedback.speak_async(feedback)
        return result

    # --- Capture loops ---
    def start(self, camera_id: int = 0) -> None:
        """
        Run the trainer on a live camera until 'q' is pressed.

        Args:
            camera_id: Camera device ID
        """
        self.cap = cv2.VideoCapture(camera_id)
        if not self.cap.isOpened():
            raise RuntimeError("Failed to open camera")
        # Keep only the newest frame so slow frames are dropped instead of buffered
        self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._run_loop()

    def run_video(self, video_path: str) -> None:
        self.cap = cv2.VideoCapture(video_path)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video: {video_path}")
        self.start_exercise()
        self._run_loop(use_video_clock=True)

    def _run_loop(self, use_video_clock: bool = False) -> None:
        self.is_running = True
        frame_count = 0
        try:
            while self.is_running:
                ret, frame = self.cap.read()
                if not ret:
                    break
                frame_count += 1
                timestamp = self.cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0 if use_video_clock else None
                result = self.process_frame(frame, timestamp)
                if result is not None:
                    self._display_results(frame, result)
                key = cv2.waitKey(1) & 0xFF
                if key == ord('q'):
                    break
                if key == ord('s'):
                    self.toggle_exercise()
                elif key == ord('r'):
                    self.restart()
        except KeyboardInterrupt:
            logger.info("KeyboardInterrupt received, exiting")
        finally:
            logger.info(f"Processed {frame_count} frames, dropped {self.dropped_frames}, reps {self.session.rep_count}")
            self.stop()

    def stop(self) -> None:
        """Stop the trainer and release resources."""
        self.is_running = False
        if self.cap is not None:
            self.cap.release()
            self.cap = None
        self.pose_detector.close()
        self.voice_feedback.close()
        cv2.destroyAllWindows()

    def _display_results(self, frame: np.ndarray, result: AnalysisResult) -> None:
        """
        Draw the analysis result on the frame and show it.

        Args:
            frame: Input frame
            result: Analysis result of the frame
        """
        if result.form_ok is False or not result.tracking_ok:
            message_color = (0, 0, 255)
        else:
            message_color = (0, 255, 0)
        angle_text = "--" if result.display_angle is None else f"{result.display_angle} deg"
        lines = [
            (f"Exercise: {self.config.name}", (0, 255, 0)),
            (f"Side: {result.active_side.value}  Angle: {angle_text}", (0, 255, 0)),
            (f"Phase: {result.phase.value}", (0, 255, 0)),
            (f"Reps: {result.rep_count}", (0, 255, 0)),
            (result.message, message_color),
        ]
        if not self.session.exercise_started:
            lines.append(("Press 's' to start, 'r' to restart, 'q' to quit", (0, 200, 255)))
        for idx, (text, color) in enumerate(lines):
            cv2.putText(frame, text, (10, 30 + 30 * idx), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2)
        cv2.imshow(WINDOW_NAME, frame)
