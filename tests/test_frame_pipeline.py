import unittest

from physio_coach.exercise_analysis.base_analyzer import Phase, TrackingSession
from physio_coach.exercise_analysis.exercise_config import ExerciseConfig, config_from_template, default_exercise_config
from physio_coach.exercise_analysis.frame_pipeline import FrameAnalysisPipeline
from physio_coach.exercise_analysis.pose_utils import Keypoint, Side

from pose_fixtures import add_arm, arm_frame, curl_frame, raise_config_data


class FramePipelineTest(unittest.TestCase):
    def setUp(self):
        self.pipeline = FrameAnalysisPipeline()
        self.config = ExerciseConfig.from_dict(raise_config_data(), apply_templates=False)
        self.session = TrackingSession()
        self.session.start()

    def run_sequence(self, steps, config=None):
        return [
            self.pipeline.analyze_frame(arm_frame(angle), config or self.config, self.session, timestamp)
            for timestamp, angle in steps
        ]

    def test_single_rep_cycle(self):
        results = self.run_sequence([(0.0, 20), (0.5, 100), (1.0, 170), (1.6, 170), (2.2, 170), (2.7, 100), (3.2, 20)])
        self.assertEqual(
            [r.phase for r in results],
            [Phase.READY, Phase.MOVING, Phase.AT_PEAK, Phase.AT_PEAK, Phase.AT_PEAK, Phase.MOVING, Phase.READY],
        )
        self.assertEqual([r.rep_count for r in results], [0, 0, 1, 1, 1, 1, 1])
        self.assertEqual([r.rep_completed for r in results], [False, False, True, False, False, False, False])
        self.assertEqual(self.session.rep_count, 1)
        self.assertIs(self.session.last_phase, Phase.READY)
        self.assertFalse(self.session.has_reached_peak)

    def test_messages_follow_the_cycle(self):
        results = self.run_sequence([(0.0, 20), (0.5, 100), (1.0, 170), (1.6, 170), (2.7, 100)])
        self.assertEqual(results[0].message, "Ready to start! Lift slowly toward the target")
        self.assertEqual(results[1].message, "Keep lifting! You're getting there")
        self.assertEqual(results[2].message, "Rep 1 completed! Return to the start and repeat")
        self.assertEqual(results[3].message, "Excellent! Full range of motion achieved")
        self.assertEqual(results[4].message, "Good control! Return slowly and steadily")

    def test_working_range_short_of_peak_asks_for_more(self):
        results = self.run_sequence([(0.0, 20), (0.5, 100), (1.0, 140)])
        self.assertIs(results[2].phase, Phase.MOVING)
        self.assertEqual(results[1].message, "Keep lifting! You're getting there")
        self.assertEqual(results[2].message, "Good! Try to lift a bit higher for full range")

    def test_curl_short_of_peak_asks_to_bend_further(self):
        config = config_from_template("arm_curl")
        results = [
            self.pipeline.analyze_frame(curl_frame(angle), config, self.session, timestamp)
            for timestamp, angle in [(0.0, 175), (0.5, 110), (1.0, 75)]
        ]
        self.assertAlmostEqual(results[2].angle, 75.0, places=6)
        self.assertEqual(results[1].message, "Keep curling! You're getting there")
        self.assertEqual(results[2].message, "Good! Try to bend a bit further for full range")

    def test_secondary_angles_are_reported_when_visible(self):
        config = ExerciseConfig.from_dict(
            raise_config_data(secondaryAngles=[
                {"points": [11, 13, 15], "name": "Elbow"},
                {"points": [11, 23, 25], "name": "Trunk"},
            ]),
            apply_templates=False,
        )
        result = self.pipeline.analyze_frame(arm_frame(100), config, self.session, 0.0)
        self.assertEqual(list(result.secondary_angles), ["Elbow"])
        self.assertAlmostEqual(result.secondary_angles["Elbow"], 180.0, places=6)

    def test_secondary_angles_follow_the_active_side(self):
        config = ExerciseConfig.from_dict(
            raise_config_data(secondaryAngles=[{"points": [11, 13, 15], "name": "Elbow"}]),
            apply_templates=False,
        )
        frame = add_arm({}, Side.LEFT, 20)
        frame.update(curl_frame(90, side=Side.RIGHT))
        result = self.pipeline.analyze_frame(frame, config, TrackingSession(active_side=Side.RIGHT), 0.0)
        self.assertIs(result.active_side, Side.RIGHT)
        self.assertAlmostEqual(result.secondary_angles["Elbow"], 90.0, places=6)

    def test_second_rep_after_return(self):
        self.run_sequence([(0.0, 20), (1.0, 170), (2.0, 20), (3.0, 100), (3.5, 170)])
        self.assertEqual(self.session.rep_count, 2)
        self.assertEqual(self.session.last_rep_timestamp, 3.5)

    def test_result_angle_matches_pose(self):
        result = self.pipeline.analyze_frame(arm_frame(123.4), self.config, self.session, 0.0)
        self.assertAlmostEqual(result.angle, 123.4, places=6)
        self.assertEqual(result.display_angle, 123)
        self.assertTrue(result.tracking_ok)

    def test_missing_vertex_leaves_session_unchanged(self):
        self.run_sequence([(0.0, 20), (0.5, 100)])
        before = (self.session.active_side, self.session.last_phase, self.session.rep_count, self.session.has_reached_peak)
        frame = arm_frame(170)
        frame[11] = Keypoint(frame[11].x, frame[11].y, 0.1)
        result = self.pipeline.analyze_frame(frame, self.config, self.session, 1.0)
        self.assertFalse(result.tracking_ok)
        self.assertIsNone(result.angle)
        self.assertIsNone(result.form_ok)
        self.assertIs(result.phase, Phase.MOVING)
        self.assertIn("Insufficient tracking", result.message)
        self.assertEqual(
            (self.session.active_side, self.session.last_phase, self.session.rep_count, self.session.has_reached_peak),
            before,
        )

    def test_empty_frame_is_insufficient_tracking(self):
        result = self.pipeline.analyze_frame({}, self.config, self.session, 0.0)
        self.assertFalse(result.tracking_ok)
        self.assertEqual(result.rep_count, 0)

    def test_not_started_only_tracks(self):
        session = TrackingSession()
        frame = add_arm({}, Side.LEFT, 20)
        add_arm(frame, Side.RIGHT, 170)
        result = self.pipeline.analyze_frame(frame, self.config, session, 0.0)
        self.assertIs(result.phase, Phase.AT_PEAK)
        self.assertIs(result.active_side, Side.RIGHT)
        self.assertIsNone(result.form_ok)
        self.assertEqual(result.rep_count, 0)
        self.assertEqual(result.message, "Press start when you are ready to begin")
        self.assertIs(session.active_side, Side.RIGHT)
        self.assertIs(session.last_phase, Phase.READY)
        self.assertFalse(session.has_reached_peak)

    def test_right_arm_is_tracked(self):
        steps = [(0.0, 20), (0.5, 100), (1.0, 170)]
        for timestamp, angle in steps:
            frame = add_arm({}, Side.LEFT, 20)
            add_arm(frame, Side.RIGHT, angle)
            result = self.pipeline.analyze_frame(frame, self.config, self.session, timestamp)
        self.assertIs(result.active_side, Side.RIGHT)
        self.assertAlmostEqual(result.angle, 170.0, places=6)
        self.assertEqual(self.session.rep_count, 1)

    def test_form_failure_takes_message_priority(self):
        config = default_exercise_config()
        result = self.pipeline.analyze_frame(arm_frame(140), config, self.session, 0.0)
        self.assertIs(result.phase, Phase.MOVING)
        self.assertIs(result.form_ok, False)
        self.assertEqual(result.message, "Keep your arm horizontal, don't lift too high")

    def test_clock_is_used_without_timestamp(self):
        pipeline = FrameAnalysisPipeline(clock=lambda: 42.0)
        pipeline.analyze_frame(arm_frame(170), self.config, self.session)
        self.assertEqual(self.session.last_rep_timestamp, 42.0)

    def test_required_landmarks_follow_side(self):
        self.assertEqual(self.pipeline.get_required_landmarks(self.config, Side.RIGHT), [24, 12, 14])

    def test_errors_do_not_escape(self):
        with self.assertLogs("physio_coach.exercise_analysis.frame_pipeline", level="ERROR"):
            result = self.pipeline.analyze_frame(arm_frame(100), None, self.session, 0.0)
        self.assertFalse(result.tracking_ok)
        self.assertEqual(result.message, "Could not analyze this frame, please hold your position")
        self.assertEqual(self.session.rep_count, 0)


if __name__ == "__main__":
    unittest.main()
