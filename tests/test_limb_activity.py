import unittest

from physio_coach.exercise_analysis.config_utils import AnalysisSettings
from physio_coach.exercise_analysis.exercise_config import LimbType
from physio_coach.exercise_analysis.limb_activity import LimbActivityScorer
from physio_coach.exercise_analysis.pose_utils import Keypoint, Side

from pose_fixtures import add_arm, add_leg, arm_frame, both_arms_frame


class ArmSideDetectionTest(unittest.TestCase):
    def setUp(self):
        self.scorer = LimbActivityScorer(LimbType.ARM)

    def test_raised_arm_scores_higher(self):
        frame = both_arms_frame(20, 120)
        self.assertGreater(self.scorer.score_side(frame, Side.RIGHT), self.scorer.score_side(frame, Side.LEFT))

    def test_clearly_more_active_side_wins(self):
        frame = both_arms_frame(20, 90)
        self.assertIs(self.scorer.detect_active_side(frame, Side.LEFT), Side.RIGHT)
        frame = both_arms_frame(90, 20)
        self.assertIs(self.scorer.detect_active_side(frame, Side.RIGHT), Side.LEFT)

    def test_near_equal_scores_keep_previous_side(self):
        frame = both_arms_frame(30, 31)
        self.assertIs(self.scorer.detect_active_side(frame, Side.LEFT), Side.LEFT)
        self.assertIs(self.scorer.detect_active_side(frame, Side.RIGHT), Side.RIGHT)

    def test_hidden_side_keeps_previous_side(self):
        frame = arm_frame(150)
        self.assertIsNone(self.scorer.score_side(frame, Side.RIGHT))
        self.assertIs(self.scorer.detect_active_side(frame, Side.RIGHT), Side.RIGHT)

    def test_low_visibility_counts_as_hidden(self):
        frame = both_arms_frame(20, 120)
        frame[16] = Keypoint(frame[16].x, frame[16].y, 0.2)
        self.assertIs(self.scorer.detect_active_side(frame, Side.LEFT), Side.LEFT)

    def test_switch_threshold_is_configurable(self):
        frame = both_arms_frame(30, 45)
        strict = LimbActivityScorer(LimbType.ARM, AnalysisSettings(side_switch_threshold=10.0))
        self.assertIs(strict.detect_active_side(frame, Side.LEFT), Side.LEFT)


class LegSideDetectionTest(unittest.TestCase):
    def test_lifted_leg_is_active(self):
        scorer = LimbActivityScorer(LimbType.LEG)
        frame = add_leg({}, Side.LEFT, 120)
        add_leg(frame, Side.RIGHT, 180)
        self.assertIs(scorer.detect_active_side(frame, Side.RIGHT), Side.LEFT)

    def test_arm_landmarks_do_not_score_a_leg(self):
        scorer = LimbActivityScorer(LimbType.LEG)
        frame = add_arm({}, Side.LEFT, 90)
        self.assertIsNone(scorer.score_side(frame, Side.LEFT))


if __name__ == "__main__":
    unittest.main()
