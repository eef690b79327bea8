"""
Tests for trend statistics: direction, volatility, momentum, strength
and seasonality.
"""

import os
import sys
import unittest

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from aggregator import PeriodBucket
from records import MONTH
from trend_statistics import (
    UP, DOWN, STABLE,
    analyze_seasonal_patterns, detect_peak_month, growth_rates, momentum,
    round_half_up, seasonality_signal, summarize_series, trend_direction,
    trend_strength, volatility,
)


class TestTrendDirection(unittest.TestCase):

    def test_symmetric_under_reversal(self):
        self.assertEqual(trend_direction([10, 10, 10, 20, 20, 20]), UP)
        self.assertEqual(trend_direction([20, 20, 20, 10, 10, 10]), DOWN)

    def test_short_series_stable(self):
        self.assertEqual(trend_direction([]), STABLE)
        self.assertEqual(trend_direction([5]), STABLE)

    def test_within_ten_percent_is_stable(self):
        self.assertEqual(trend_direction([100, 100, 105, 105]), STABLE)

    def test_zero_first_half(self):
        self.assertEqual(trend_direction([0, 0, 5, 5]), UP)
        self.assertEqual(trend_direction([0, 0, 0, 0]), STABLE)


class TestVolatilityAndGrowth(unittest.TestCase):

    def test_flat_series_has_no_volatility(self):
        self.assertEqual(volatility([5, 5, 5]), 0)
        self.assertEqual(volatility([]), 0)
        self.assertEqual(volatility([0, 0]), 0)

    def test_coefficient_of_variation(self):
        # mean 10, population stdev 5
        self.assertAlmostEqual(volatility([5, 15]), 0.5)

    def test_growth_rates_zero_base(self):
        self.assertEqual(growth_rates([0, 10, 20]), [0.0, 1.0])


class TestMomentum(unittest.TestCase):

    def test_needs_six_points(self):
        self.assertEqual(momentum([1, 2, 3, 4, 5]), 0)

    def test_relative_change(self):
        self.assertAlmostEqual(momentum([10, 10, 10, 20, 20, 20]), 1.0)

    def test_zero_older_mean(self):
        self.assertEqual(momentum([0, 0, 0, 5, 5, 5]), 0)


class TestTrendStrength(unittest.TestCase):

    def test_steady_series_is_strong(self):
        self.assertEqual(trend_strength([100] * 8), 10)

    def test_volatile_series_is_weak(self):
        self.assertEqual(trend_strength([100, 200, 100, 200, 100, 200]), 1)

    def test_bounded(self):
        for series in ([], [1], [1, 1000, 1], [50, 51, 52]):
            self.assertTrue(1 <= trend_strength(series) <= 10)

    def test_round_half_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(2.4), 2)


class TestSeasonality(unittest.TestCase):

    def test_single_month_spike_detected(self):
        values = [100.0] * 12
        values[6] = 1000.0  # July
        result = detect_peak_month(values, list(range(1, 13)))
        self.assertTrue(result.has_seasonality)
        self.assertEqual(result.peak_month, 7)

    def test_flat_year_not_seasonal(self):
        result = detect_peak_month([100.0] * 12, list(range(1, 13)))
        self.assertFalse(result.has_seasonality)
        self.assertIsNone(result.peak_month)

    def test_needs_twelve_periods(self):
        result = detect_peak_month([1, 100, 1], [1, 2, 3])
        self.assertFalse(result.has_seasonality)

    def test_coarse_signal(self):
        self.assertTrue(seasonality_signal([10, 100, 10, 100]))
        self.assertFalse(seasonality_signal([100, 101, 99, 100]))


class TestSummaries(unittest.TestCase):

    def test_summarize_series(self):
        summary = summarize_series([10, 10, 10, 20, 20, 20], [1, 1, 1, 1, 1, 1])
        self.assertEqual(summary.view_trend, UP)
        self.assertEqual(summary.engagement_trend, STABLE)
        self.assertEqual(summary.periods, 6)
        self.assertAlmostEqual(summary.momentum, 1.0)
        self.assertIn("volatility", summary.to_dict())

    def test_seasonal_patterns(self):
        buckets = [
            PeriodBucket("Music", 2024, 1, MONTH, views=100, likes=5),
            PeriodBucket("Gaming", 2024, 1, MONTH, views=300, likes=5),
            PeriodBucket("Music", 2024, 7, MONTH, views=1000, comments=10),
            PeriodBucket("Music", 2025, 7, MONTH, views=2000),
        ]
        patterns = analyze_seasonal_patterns(buckets)

        self.assertEqual(sorted(patterns["monthly_patterns"]), [1, 7])
        self.assertEqual(patterns["monthly_patterns"][1]["average_views"], 200)
        self.assertEqual(patterns["monthly_patterns"][1]["top_categories"], ["Gaming", "Music"])
        self.assertEqual(patterns["monthly_patterns"][7]["total_engagement"], 10)
        self.assertEqual(patterns["peak_months"][0], 7)
        self.assertEqual(patterns["low_months"][0], 1)
        self.assertEqual(patterns["yearly_trend"], UP)


if __name__ == "__main__":
    unittest.main()
