"""
Tests for the forecast scheduler: parallel independent jobs, error
isolation and the caller-owned loop.
"""

import os
import sys
import threading
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from prediction_store import Prediction, SOURCE_FALLBACK
from scheduler import ForecastScheduler, default_jobs


def _prediction(prediction_type, platform):
    return Prediction(
        type=prediction_type, platform=platform, predictions=[], accuracy=0.85,
        insights="", generated_at=datetime.now(timezone.utc), source=SOURCE_FALLBACK,
    )


class TestForecastScheduler(unittest.TestCase):

    def test_default_jobs_cover_every_pair(self):
        jobs = default_jobs()
        self.assertEqual(len(jobs), 6)
        self.assertIn(("tiktok", "seasonal"), jobs)

    def test_run_once_isolates_failures(self):
        forecaster = MagicMock()

        def predict(prediction_type, platform):
            if platform == "tiktok":
                raise RuntimeError("store unavailable")
            return _prediction(prediction_type, platform)

        forecaster.predict.side_effect = predict
        scheduler = ForecastScheduler(
            forecaster, jobs=[("youtube", "weekly"), ("tiktok", "weekly"), ("youtube", "monthly")],
            max_workers=2,
        )
        results = scheduler.run_once()

        self.assertEqual(len(results), 3)
        failed = [r for r in results if r.error]
        self.assertEqual([(r.platform, r.error) for r in failed], [("tiktok", "store unavailable")])
        self.assertEqual(forecaster.predict.call_count, 3)

    def test_no_jobs(self):
        self.assertEqual(ForecastScheduler(MagicMock(), jobs=[]).run_once(), [])

    def test_run_forever_stops_on_event(self):
        stop_event = threading.Event()
        scheduler = ForecastScheduler(MagicMock(), jobs=[])
        calls = []

        def run_once():
            calls.append(1)
            if len(calls) == 2:
                stop_event.set()
            return []

        scheduler.run_once = run_once
        runs = scheduler.run_forever(stop_event, interval_seconds=0.01)
        self.assertEqual(runs, 2)

    def test_preset_event_runs_nothing(self):
        stop_event = threading.Event()
        stop_event.set()
        scheduler = ForecastScheduler(MagicMock(), jobs=[("youtube", "weekly")])
        self.assertEqual(scheduler.run_forever(stop_event, interval_seconds=0.01), 0)


if __name__ == "__main__":
    unittest.main()
