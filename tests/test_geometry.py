import unittest

from squatcount import geometry
from squatcount.pose import BodyPart, KeypointSet

from tests.poses import make_keypoints, misaligned, standing


class SidesMatchTests(unittest.TestCase):
    def test_value_always_matches_itself(self) -> None:
        for value in (0.0, 1.0, 123.4, -50.0, 1e6):
            for tolerance in (0.0, 0.1, 0.3, 2.0):
                self.assertTrue(geometry.sides_match(value, value, tolerance), (value, tolerance))

    def test_zero_values_match(self) -> None:
        self.assertTrue(geometry.sides_match(0.0, 0.0, 0.2))

    def test_check_is_symmetric_in_both_bands(self) -> None:
        # 115 is inside 100 +/- 20 but 100 is outside 115 +/- 11.5 at 10%
        self.assertTrue(geometry.sides_match(115.0, 100.0, 0.2))
        self.assertFalse(geometry.sides_match(115.0, 100.0, 0.1))
        self.assertFalse(geometry.sides_match(100.0, 115.0, 0.1))

    def test_far_apart_values_do_not_match(self) -> None:
        self.assertFalse(geometry.sides_match(100.0, 300.0, 0.3))


class LimbsAlignedTests(unittest.TestCase):
    def test_level_pose_is_aligned(self) -> None:
        self.assertTrue(geometry.limbs_aligned(standing()))

    def test_uneven_hips_are_not_aligned(self) -> None:
        self.assertFalse(geometry.limbs_aligned(misaligned()))

    def test_ankles_use_tighter_tolerance(self) -> None:
        # 25% apart: inside the 0.3 knee/hip tolerance, outside the 0.2 ankle one
        self.assertTrue(geometry.limbs_aligned(make_keypoints(knee=(300.0, 375.0))))
        self.assertFalse(geometry.limbs_aligned(make_keypoints(ankle=(400.0, 500.0))))

    def test_knees_compared_per_side(self) -> None:
        self.assertFalse(geometry.limbs_aligned(make_keypoints(knee=(300.0, 100.0))))

    def test_any_missing_point_fails_closed(self) -> None:
        required = (
            BodyPart.RIGHT_ANKLE, BodyPart.LEFT_ANKLE,
            BodyPart.RIGHT_KNEE, BodyPart.LEFT_KNEE,
            BodyPart.RIGHT_HIP, BodyPart.LEFT_HIP,
        )
        for part in required:
            self.assertFalse(geometry.limbs_aligned(make_keypoints(omit=(part,))), part)

    def test_none_and_empty_sets_are_not_aligned(self) -> None:
        self.assertFalse(geometry.limbs_aligned(None))
        self.assertFalse(geometry.limbs_aligned(KeypointSet()))


class HeightHelperTests(unittest.TestCase):
    def test_leg_heights_are_ankle_minus_hip(self) -> None:
        kp = make_keypoints(hip=(302.0, 300.0), ankle=(400.0, 400.0))
        self.assertEqual(geometry.leg_heights(kp), (98.0, 100.0))

    def test_leg_heights_missing_point(self) -> None:
        self.assertIsNone(geometry.leg_heights(make_keypoints(omit=(BodyPart.LEFT_HIP,))))

    def test_hip_knee_heights_pair_own_side(self) -> None:
        kp = make_keypoints(hip=(210.0, 220.0), knee=(310.0, 320.0))
        self.assertEqual(geometry.hip_knee_heights(kp), ((210.0, 310.0), (220.0, 320.0)))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
