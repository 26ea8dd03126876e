import unittest

from squatcount.calibration import ToleranceBand
from squatcount.phases import PhaseClassifier
from squatcount.reps import STAND_UP_LABEL, SQUAT_LABEL, RepCounter, RepCycle

from tests.poses import misaligned, squatting, standing


def _counter() -> RepCounter:
    return RepCounter(PhaseClassifier(band=ToleranceBand.from_means(200.0, 200.0)))


class RepCounterTests(unittest.TestCase):
    def test_initial_state(self) -> None:
        counter = _counter()
        self.assertIs(counter.cycle, RepCycle.AWAITING_SQUAT)
        self.assertEqual(counter.rep_count, 0)
        self.assertIsNone(counter.phase_label)

    def test_squat_moves_to_awaiting_standup(self) -> None:
        counter = _counter()
        self.assertEqual(counter.step(squatting()), SQUAT_LABEL)
        self.assertIs(counter.cycle, RepCycle.AWAITING_STAND_UP)
        self.assertEqual(counter.phase_label, SQUAT_LABEL)
        self.assertEqual(counter.rep_count, 0)

    def test_standup_after_squat_counts_one_rep(self) -> None:
        counter = _counter()
        counter.step(squatting(), frame_idx=3)
        self.assertEqual(counter.step(standing(), frame_idx=7), STAND_UP_LABEL)
        self.assertEqual(counter.rep_count, 1)
        self.assertIs(counter.cycle, RepCycle.AWAITING_SQUAT)
        self.assertEqual(counter.phase_label, STAND_UP_LABEL)
        self.assertEqual(counter.reps, [{"rep": 1, "squat_frame": 3, "standup_frame": 7}])

    def test_standing_without_squat_never_counts(self) -> None:
        counter = _counter()
        for _ in range(5):
            self.assertIsNone(counter.step(standing()))
        self.assertEqual(counter.rep_count, 0)

    def test_no_double_count_without_new_squat(self) -> None:
        counter = _counter()
        counter.step(squatting())
        counter.step(standing())
        for _ in range(5):
            counter.step(standing())
        self.assertEqual(counter.rep_count, 1)
        counter.step(squatting())
        counter.step(standing())
        self.assertEqual(counter.rep_count, 2)

    def test_repeated_squat_frames_do_not_count(self) -> None:
        counter = _counter()
        counter.step(squatting())
        self.assertIsNone(counter.step(squatting()))
        self.assertIs(counter.cycle, RepCycle.AWAITING_STAND_UP)
        self.assertEqual(counter.rep_count, 0)

    def test_missing_or_misaligned_frames_keep_state(self) -> None:
        counter = _counter()
        counter.step(squatting())
        self.assertIsNone(counter.step(None))
        self.assertIsNone(counter.step(misaligned()))
        self.assertIs(counter.cycle, RepCycle.AWAITING_STAND_UP)
        self.assertEqual(counter.phase_label, SQUAT_LABEL)

    def test_reset_cycle_keeps_rep_count(self) -> None:
        counter = _counter()
        counter.step(squatting())
        counter.step(standing())
        counter.step(squatting())
        counter.reset_cycle()
        self.assertIs(counter.cycle, RepCycle.AWAITING_SQUAT)
        self.assertEqual(counter.rep_count, 1)
        self.assertIsNone(counter.step(standing()))
        self.assertEqual(counter.rep_count, 1)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
