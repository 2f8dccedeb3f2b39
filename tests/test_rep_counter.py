import unittest

from physio_coach.exercise_analysis.base_analyzer import Phase, TrackingSession
from physio_coach.exercise_analysis.rep_counter import RepCounter, RepCounterState


class RepCounterTest(unittest.TestCase):
    def setUp(self):
        self.counter = RepCounter(debounce_seconds=1.0)
        self.session = TrackingSession()
        self.session.start()

    def feed(self, steps):
        for timestamp, phase, back_at_start in steps:
            self.counter.update(self.session, phase, back_at_start, timestamp)

    def test_holding_the_peak_counts_once(self):
        self.feed([(0.1 * i, Phase.AT_PEAK, False) for i in range(31)])
        self.assertEqual(self.session.rep_count, 1)
        self.assertIs(RepCounter.state(self.session), RepCounterState.COOLING)

    def test_peaks_within_debounce_count_once(self):
        self.feed([
            (0.0, Phase.AT_PEAK, False),
            (0.3, Phase.READY, True),
            (0.6, Phase.AT_PEAK, False),
        ])
        self.assertEqual(self.session.rep_count, 1)

    def test_full_cycles_count_each_rep(self):
        self.feed([
            (0.0, Phase.READY, True),
            (0.5, Phase.MOVING, False),
            (1.0, Phase.AT_PEAK, False),
            (1.5, Phase.MOVING, False),
            (2.0, Phase.READY, True),
            (2.5, Phase.MOVING, False),
            (3.0, Phase.AT_PEAK, False),
        ])
        self.assertEqual(self.session.rep_count, 2)
        self.assertEqual(self.session.last_rep_timestamp, 3.0)

    def test_flicker_at_peak_without_return_counts_once(self):
        self.feed([
            (0.0, Phase.AT_PEAK, False),
            (1.5, Phase.MOVING, False),
            (3.0, Phase.AT_PEAK, False),
            (4.5, Phase.MOVING, False),
            (6.0, Phase.AT_PEAK, False),
        ])
        self.assertEqual(self.session.rep_count, 1)

    def test_nothing_counts_before_start(self):
        self.session.stop()
        self.feed([(0.0, Phase.AT_PEAK, False), (2.0, Phase.READY, True), (4.0, Phase.AT_PEAK, False)])
        self.assertEqual(self.session.rep_count, 0)
        self.assertFalse(self.session.has_reached_peak)

    def test_evaluate_does_not_touch_session(self):
        update = self.counter.evaluate(self.session, Phase.AT_PEAK, False, 5.0)
        self.assertTrue(update.rep_completed)
        self.assertEqual(update.rep_count, 1)
        self.assertEqual(self.session.rep_count, 0)
        self.assertIsNone(self.session.last_rep_timestamp)

    def test_reset_clears_counters(self):
        self.feed([(0.0, Phase.AT_PEAK, False)])
        self.session.reset()
        self.assertEqual(self.session.rep_count, 0)
        self.assertIs(self.session.last_phase, Phase.READY)
        self.assertIs(RepCounter.state(self.session), RepCounterState.ARMED)
        self.assertTrue(self.session.exercise_started)


if __name__ == "__main__":
    unittest.main()
