from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from .base_detector import BasePoseDetector
from ..exercise_analysis.pose_utils import Keypoint, KeypointFrame


class MediaPipePoseDetector(BasePoseDetector):
    """MediaPipe implementation of pose detection."""

    def __init__(self, min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5, model_complexity: int = 1):
        """
        Initialize the MediaPipe pose detector.

        Args:
            min_detection_confidence: Minimum confidence for pose detection
            min_tracking_confidence: Minimum confidence for pose tracking
            model_complexity: Complexity of the pose landmark model (0, 1, or 2)
        """
        self.mp_pose = mp.solutions.pose
        self.pose = self.mp_pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            smooth_landmarks=True,
            enable_segmentation=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence
        )

    def detect(self, frame: np.ndarray) -> Optional[KeypointFrame]:
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        results = self.pose.process(frame_rgb)

        if not results.pose_landmarks:
            return None

        # Visibility filtering is left to the analysis, which owns the threshold.
        return {
            idx: Keypoint(
                x=landmark.x,
                y=landmark.y,
                visibility=landmark.visibility,
                z=landmark.z,
            )
            for idx, landmark in enumerate(results.pose_landmarks.landmark)
        }

    def close(self) -> None:
        self.pose.close()
