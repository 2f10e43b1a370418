import math
import unittest

from rank_engine.constants import MAX_RANK_POINTS
from rank_engine.formulas import curve_score, one_rep_max, round_half_up, strength_to_weight_ratio


class TestOneRepMax(unittest.TestCase):
    def test_epley_estimate(self):
        self.assertAlmostEqual(one_rep_max(100, 5), 116.6667, places=3)

    def test_single_rep_is_the_lifted_weight(self):
        self.assertEqual(one_rep_max(100, 1), 100.0)

    def test_unavailable_inputs_return_none(self):
        self.assertIsNone(one_rep_max(100, 0))
        self.assertIsNone(one_rep_max(100, -3))
        self.assertIsNone(one_rep_max(-5, 5))
        self.assertIsNone(one_rep_max(None, 5))
        self.assertIsNone(one_rep_max(100, None))

    def test_zero_weight_is_allowed(self):
        self.assertEqual(one_rep_max(0, 5), 0.0)


class TestStrengthToWeightRatio(unittest.TestCase):
    def test_ratio(self):
        self.assertAlmostEqual(strength_to_weight_ratio(one_rep_max(100, 5), 80), 1.4583, places=3)

    def test_missing_bodyweight(self):
        self.assertIsNone(strength_to_weight_ratio(100, 0))
        self.assertIsNone(strength_to_weight_ratio(100, None))
        self.assertIsNone(strength_to_weight_ratio(None, 80))


class TestCurveScore(unittest.TestCase):
    def test_zero_user_ratio_scores_zero(self):
        self.assertEqual(curve_score(0.1, 3.0, 0), 0)
        self.assertEqual(curve_score(0.1, 3.0, -1), 0)

    def test_missing_elite_reference_scores_zero(self):
        self.assertEqual(curve_score(0.1, 0, 1.5), 0)
        self.assertEqual(curve_score(0.1, None, 1.5), 0)

    def test_elite_performance_reaches_max_points(self):
        self.assertEqual(curve_score(0.1, 2.0, 2.0), MAX_RANK_POINTS)

    def test_clamped_above_elite(self):
        self.assertEqual(curve_score(0.1, 2.0, 4.0), MAX_RANK_POINTS)

    def test_matches_log_curve(self):
        relative = (one_rep_max(100, 5) / 80) / 3.0
        self.assertAlmostEqual(relative, 0.486, places=3)
        expected = round_half_up(MAX_RANK_POINTS * math.log(1 + 0.1 * relative) / math.log(1.1))
        self.assertEqual(curve_score(0.1, 3.0, one_rep_max(100, 5) / 80), expected)

    def test_monotonic_in_user_ratio(self):
        scores = [curve_score(0.1, 2.0, r / 10) for r in range(0, 31)]
        self.assertEqual(scores, sorted(scores))

    def test_bounded(self):
        for alpha in (0.01, 0.1, 1.0, 5.0):
            for ratio in (0.01, 0.5, 1.0, 10.0):
                score = curve_score(alpha, 1.0, ratio)
                self.assertGreaterEqual(score, 0)
                self.assertLessEqual(score, MAX_RANK_POINTS)

    def test_non_positive_alpha_is_linear(self):
        self.assertEqual(curve_score(0, 2.0, 1.0), 2500)
        self.assertEqual(curve_score(-1, 4.0, 1.0), 1250)

    def test_custom_max_points(self):
        self.assertEqual(curve_score(0.1, 1.0, 1.0, max_points=100), 100)


class TestRoundHalfUp(unittest.TestCase):
    def test_halves_round_up(self):
        self.assertEqual(round_half_up(0.5), 1)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(2.49), 2)


if __name__ == "__main__":
    unittest.main()
