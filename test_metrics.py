"""
Tests for the metric primitives: rates, viral heuristics, velocity and
batch EngagementMetrics.
"""

import os
import sys
import unittest
from datetime import datetime, timedelta, timezone

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from records import EngagementRecord
from metrics import (
    calculate_engagement_metrics, comment_rate, engagement_rate, engagement_score,
    engagement_velocity, identify_viral_factors, like_rate, share_rate,
    viral_potential, viral_score,
)

NOW = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)


def _record(views=0, likes=0, comments=0, shares=0, **kwargs):
    return EngagementRecord(
        content_id=kwargs.pop("content_id", "c1"),
        platform=kwargs.pop("platform", "youtube"),
        views=views, likes=likes, comments=comments, shares=shares,
        **kwargs,
    )


class TestZeroViews(unittest.TestCase):
    """Zero views must zero every rate instead of dividing."""

    def test_all_rates_zero(self):
        record = _record(views=0, likes=5, comments=2, shares=1)
        for fn in (engagement_rate, like_rate, comment_rate, share_rate,
                   viral_potential, viral_score, engagement_score):
            self.assertEqual(fn(record), 0, fn.__name__)

    def test_negative_counters_clamped(self):
        record = _record(views=-10, likes=-3)
        self.assertEqual(record.views, 0)
        self.assertEqual(record.likes, 0)


class TestRates(unittest.TestCase):

    def test_engagement_rate_excludes_shares(self):
        record = _record(views=1000, likes=40, comments=10, shares=500)
        self.assertAlmostEqual(engagement_rate(record), 5.0)

    def test_individual_rates(self):
        record = _record(views=200, likes=10, comments=4, shares=2)
        self.assertAlmostEqual(like_rate(record), 5.0)
        self.assertAlmostEqual(comment_rate(record), 2.0)
        self.assertAlmostEqual(share_rate(record), 1.0)


class TestViralHeuristics(unittest.TestCase):

    def test_viral_potential_weights_shares_over_comments_over_likes(self):
        shares = viral_potential(_record(views=10000, shares=1))
        comments = viral_potential(_record(views=10000, comments=1))
        likes = viral_potential(_record(views=10000, likes=1))
        self.assertGreater(shares, comments)
        self.assertGreater(comments, likes)
        self.assertAlmostEqual(shares, 0.05)

    def test_viral_potential_clamped_to_one(self):
        self.assertEqual(viral_potential(_record(views=100, likes=50)), 1.0)

    def test_viral_score_average_of_three_terms(self):
        record = _record(views=100, likes=10, comments=5, shares=2)
        # (0.17 + 0.2 + 0.25) / 3
        self.assertAlmostEqual(viral_score(record), 0.62 / 3)

    def test_viral_score_clamped(self):
        record = _record(views=100, likes=30, comments=20, shares=50)
        self.assertEqual(viral_score(record), 1.0)

    def test_engagement_score_caps_at_one(self):
        self.assertEqual(engagement_score(_record(views=100, likes=30, comments=20, shares=10)), 1.0)
        self.assertEqual(engagement_score(_record(views=10000, likes=100, comments=10)), 0.12)


class TestVelocity(unittest.TestCase):

    def test_per_hour(self):
        record = _record(views=1000, likes=100, created_at=NOW - timedelta(hours=10))
        self.assertAlmostEqual(engagement_velocity(record, NOW), 10.0)

    def test_recent_records_use_one_hour_minimum(self):
        record = _record(views=1000, likes=50, created_at=NOW - timedelta(minutes=30))
        self.assertAlmostEqual(engagement_velocity(record, NOW), 50.0)

    def test_naive_now_treated_as_utc(self):
        record = _record(views=1000, likes=20, created_at=NOW - timedelta(hours=2))
        self.assertAlmostEqual(engagement_velocity(record, NOW.replace(tzinfo=None)), 10.0)


class TestViralFactors(unittest.TestCase):

    def test_factors_named_and_capped(self):
        record = _record(
            views=100, likes=10, shares=2,
            hashtags=("a", "b", "c", "d", "e", "f"),
            created_at=NOW - timedelta(hours=1000),
        )
        self.assertEqual(
            identify_viral_factors(record, NOW),
            ["High engagement rate", "High share rate", "Effective hashtag strategy"],
        )

    def test_rapid_spread(self):
        record = _record(views=100000, likes=100, created_at=NOW - timedelta(hours=2))
        self.assertIn("Rapid spread", identify_viral_factors(record, NOW))


class TestBatchMetrics(unittest.TestCase):

    def test_empty_batch(self):
        metrics = calculate_engagement_metrics([])
        self.assertEqual(metrics.engagement_rate, 0)
        self.assertEqual(metrics.viral_factor, 0)

    def test_totals_based_rates(self):
        metrics = calculate_engagement_metrics([
            _record(views=100, likes=10),
            _record(views=100, comments=10, content_id="c2"),
        ])
        self.assertEqual(metrics.like_rate, 5.0)
        self.assertEqual(metrics.comment_rate, 5.0)
        self.assertEqual(metrics.engagement_rate, 10.0)
        self.assertEqual(metrics.viral_factor, 1.0)

    def test_viral_factor_fraction(self):
        metrics = calculate_engagement_metrics([
            _record(views=100, likes=10),
            _record(views=1000000, likes=1, content_id="c2"),
        ])
        self.assertEqual(metrics.viral_factor, 0.5)

    def test_to_dict(self):
        data = calculate_engagement_metrics([_record(views=100, likes=10)]).to_dict()
        self.assertEqual(data["like_rate"], 10.0)
        self.assertIn("average_engagement_time", data)


if __name__ == "__main__":
    unittest.main()
