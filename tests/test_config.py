import unittest

from squatcount.config import PoseConfig, SessionConfig


class SessionConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = SessionConfig.from_env({})
        self.assertEqual(config, SessionConfig())
        self.assertAlmostEqual(config.poll_interval_sec, 0.2)
        self.assertEqual(config.calibration_samples, 3)

    def test_env_overrides(self) -> None:
        config = SessionConfig.from_env({
            "SQUATCOUNT_POLL_INTERVAL_SEC": "0.5",
            "SQUATCOUNT_CALIBRATION_DELAY_SEC": "0",
            "SQUATCOUNT_CALIBRATION_ATTEMPTS": "5",
            "SQUATCOUNT_STANDUP_MARGIN": " ",
        })
        self.assertAlmostEqual(config.poll_interval_sec, 0.5)
        self.assertEqual(config.calibration_delay_sec, 0.0)
        self.assertEqual(config.calibration_attempts, 5)
        self.assertAlmostEqual(config.standup_margin, 0.1)

    def test_unparseable_value_names_variable(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            SessionConfig.from_env({"SQUATCOUNT_CALIBRATION_SAMPLES": "three"})
        self.assertIn("SQUATCOUNT_CALIBRATION_SAMPLES", str(ctx.exception))

    def test_invalid_values_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SessionConfig(poll_interval_sec=0)
        with self.assertRaises(ValueError):
            SessionConfig(calibration_samples=3, calibration_min_valid=3)
        with self.assertRaises(ValueError):
            SessionConfig(calibration_attempts=0)


class PoseConfigTests(unittest.TestCase):
    def test_env_overrides(self) -> None:
        config = PoseConfig.from_env({
            "SQUATCOUNT_MIN_KEYPOINT_SCORE": "0.5",
            "SQUATCOUNT_MODEL_CACHE_DIR": "/tmp/cache",
        })
        self.assertEqual(config.min_keypoint_score, 0.5)
        self.assertEqual(config.model_cache_dir, "/tmp/cache")
        self.assertEqual(config.model_complexity, 1)

    def test_score_out_of_range_rejected(self) -> None:
        with self.assertRaises(ValueError):
            PoseConfig(min_keypoint_score=1.5)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
