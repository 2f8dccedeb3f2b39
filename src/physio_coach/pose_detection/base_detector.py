from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ..exercise_analysis.pose_utils import KeypointFrame


class BasePoseDetector(ABC):
    """Base class for pose detection implementations."""

    @abstractmethod
    def detect(self, frame: np.ndarray) -> Optional[KeypointFrame]:
        """
        Detect pose landmarks in the given frame.

        Args:
            frame: Input frame as numpy array (BGR)

        Returns:
            Keypoints indexed by landmark index, or None if no pose was found
        """
        pass

    def close(self) -> None:
        """Release detector resources."""
        pass
