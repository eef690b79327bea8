"""
Tests for the forecast generator: parsing, clamping, fallback, accuracy
and best-effort persistence. Uses a temporary SQLite record store and a
stub insight generator.
"""

import json
import os
import sqlite3
import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from records import EngagementRecord
from records.sqlite_store import SQLiteRecordStore, init_database, store_records
from insight_service import StubInsightGenerator
from prediction_store import (
    PredictionStore, SQLitePredictionStore, SOURCE_FALLBACK, SOURCE_INSIGHT_SERVICE,
)
from forecast_generator import (
    FALLBACK_CATEGORIES, HORIZONS, TrendForecaster, extract_json_array,
    normalize_predictions, score_accuracy,
)

NOW = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)  # ISO week 11


def _history():
    """Weekly records for two categories over the six weeks up to NOW."""
    records = []
    for weeks_ago in range(6):
        created = NOW - timedelta(weeks=weeks_ago)
        records.append(EngagementRecord(
            content_id=f"music-{weeks_ago}", platform="youtube", category="Music",
            views=1000 + (5 - weeks_ago) * 200, likes=50, comments=5, created_at=created,
        ))
        records.append(EngagementRecord(
            content_id=f"gaming-{weeks_ago}", platform="youtube", category="Gaming",
            views=800, likes=20, comments=2, created_at=created,
        ))
    return records


class UnavailablePredictionStore(PredictionStore):
    """A remote store that is down: every save fails."""

    def __init__(self):
        self.attempts = 0

    def save(self, prediction):
        self.attempts += 1
        raise RuntimeError("remote prediction store down")

    def list(self, platform=None, type=None, limit=10):
        return []


def _service_reply(items):
    payload = json.dumps(items)

    def reply(prompt):
        if "## Response format" in prompt:
            return f"Here is the forecast you asked for:\n{payload}\nLet me know if you need more."
        return "Music keeps climbing while Gaming holds steady."
    return reply


class ForecastTestCase(unittest.TestCase):

    def setUp(self):
        self.db_path = Path(tempfile.mktemp(suffix=".db"))
        init_database(self.db_path)
        store_records(_history(), db_path=self.db_path)
        self.record_store = SQLiteRecordStore(self.db_path)
        self.prediction_store = SQLitePredictionStore(self.db_path)

    def tearDown(self):
        if self.db_path.exists():
            self.db_path.unlink()

    def _forecaster(self, response=None, prediction_store="default"):
        if prediction_store == "default":
            prediction_store = self.prediction_store
        return TrendForecaster(
            self.record_store,
            insight_generator=StubInsightGenerator(response),
            prediction_store=prediction_store,
        )


class TestFallbackPath(ForecastTestCase):

    def test_service_failure_still_returns_prediction(self):
        prediction = self._forecaster(None).predict("weekly", "youtube", now=NOW)

        self.assertEqual(prediction.source, SOURCE_FALLBACK)
        self.assertTrue(1 <= len(prediction.predictions) <= 10)
        self.assertEqual([p.category for p in prediction.predictions], FALLBACK_CATEGORIES)
        for p in prediction.predictions:
            self.assertTrue(0 <= p.confidence <= 1)
            self.assertEqual(p.current_trend, 50)
            self.assertEqual(p.timeframe, "Next week")
        self.assertTrue(prediction.insights)

    def test_malformed_reply_uses_fallback(self):
        prediction = self._forecaster("I cannot forecast this.").predict("monthly", "youtube", now=NOW)
        self.assertEqual(prediction.source, SOURCE_FALLBACK)
        self.assertEqual(len(prediction.predictions), len(FALLBACK_CATEGORIES))

    def test_seasonal_fallback_respects_cap(self):
        prediction = self._forecaster(None).predict("seasonal", "youtube", now=NOW)
        cap = HORIZONS["seasonal"].confidence_cap
        self.assertTrue(all(p.confidence <= cap for p in prediction.predictions))

    def test_empty_history(self):
        prediction = self._forecaster(None).predict("weekly", "tiktok", now=NOW)
        self.assertEqual(prediction.accuracy, 0.85)
        self.assertEqual(len(prediction.predictions), len(FALLBACK_CATEGORIES))


class TestServicePath(ForecastTestCase):

    def test_parses_array_from_prose(self):
        reply = _service_reply([
            {"category": "Music", "current_trend": 70, "predicted_trend": 80,
             "confidence": 0.8, "factors": ["Momentum"], "timeframe": "Next week"},
            {"category": "Gaming", "current_trend": 40, "predicted_trend": 38,
             "confidence": 0.6, "factors": ["Flat views"]},
        ])
        prediction = self._forecaster(reply).predict("weekly", "youtube", now=NOW)

        self.assertEqual(prediction.source, SOURCE_INSIGHT_SERVICE)
        self.assertEqual([p.category for p in prediction.predictions], ["Music", "Gaming"])
        self.assertEqual(prediction.predictions[1].timeframe, "Next week")
        self.assertEqual(prediction.insights, "Music keeps climbing while Gaming holds steady.")

    def test_values_clamped(self):
        reply = _service_reply([
            {"category": "Music", "currentTrend": 150, "predictedTrend": -5,
             "confidence": 3, "factors": ["a", "b", "c", "d"]},
        ])
        p = self._forecaster(reply).predict("monthly", "youtube", now=NOW).predictions[0]

        self.assertEqual(p.current_trend, 100)
        self.assertEqual(p.predicted_trend, 0)
        self.assertEqual(p.confidence, HORIZONS["monthly"].confidence_cap)
        self.assertEqual(p.factors, ["a", "b", "c"])

    def test_capped_at_ten_categories(self):
        items = [
            {"category": f"Cat {i}", "current_trend": 50, "predicted_trend": 60, "confidence": 0.5}
            for i in range(15)
        ]
        prediction = self._forecaster(_service_reply(items)).predict("weekly", "youtube", now=NOW)
        self.assertEqual(len(prediction.predictions), 10)

    def test_prompt_carries_category_summaries(self):
        forecaster = self._forecaster(None)
        forecaster.predict("weekly", "youtube", now=NOW)
        prompt = forecaster.insight_generator.prompts[0]
        self.assertIn('"Music"', prompt)
        self.assertIn('"view_trend"', prompt)

    def test_seasonal_prompt_has_monthly_patterns(self):
        forecaster = self._forecaster(None)
        forecaster.predict("seasonal", "youtube", now=NOW)
        self.assertIn("seasonal_patterns", forecaster.insight_generator.prompts[0])

    def test_seasonal_history_limited_to_24_months(self):
        store_records([
            EngagementRecord("retro", "youtube", "Retro", views=500,
                             created_at=datetime(2023, 7, 20, tzinfo=timezone.utc)),
            EngagementRecord("archive", "youtube", "Archive", views=500,
                             created_at=datetime(2022, 9, 20, tzinfo=timezone.utc)),
        ], db_path=self.db_path)
        forecaster = self._forecaster(None)
        forecaster.predict("seasonal", "youtube", now=NOW)

        prompt = forecaster.insight_generator.prompts[0]
        self.assertIn('"Retro"', prompt)
        self.assertNotIn('"Archive"', prompt)


class TestPersistence(ForecastTestCase):

    def test_saved_and_replayed_newest_first(self):
        forecaster = self._forecaster(None)
        forecaster.predict("weekly", "youtube", now=NOW)
        forecaster.predict("monthly", "youtube", now=NOW + timedelta(hours=1))

        history = forecaster.history(platform="youtube")
        self.assertEqual([p.type for p in history], ["monthly", "weekly"])
        self.assertEqual(forecaster.history(platform="youtube", prediction_type="weekly")[0].type, "weekly")

    def test_save_failure_is_not_propagated(self):
        store = MagicMock()
        store.save.side_effect = sqlite3.OperationalError("disk I/O error")
        prediction = self._forecaster(None, prediction_store=store).predict("weekly", "youtube", now=NOW)

        store.save.assert_called_once()
        self.assertEqual(len(prediction.predictions), len(FALLBACK_CATEGORIES))

    def test_any_store_error_is_logged_not_raised(self):
        store = UnavailablePredictionStore()
        with self.assertLogs("forecast_generator", level="ERROR") as logs:
            prediction = self._forecaster(None, prediction_store=store).predict(
                "weekly", "youtube", now=NOW,
            )

        self.assertEqual(store.attempts, 1)
        self.assertEqual(prediction.source, SOURCE_FALLBACK)
        self.assertEqual(len(prediction.predictions), len(FALLBACK_CATEGORIES))
        self.assertIn("remote prediction store down", logs.output[0])

    def test_without_store(self):
        forecaster = self._forecaster(None, prediction_store=None)
        self.assertIsNotNone(forecaster.predict("weekly", "youtube", now=NOW))
        self.assertEqual(forecaster.history(), [])


class TestValidation(ForecastTestCase):

    def test_unknown_type(self):
        with self.assertRaises(ValueError):
            self._forecaster(None).predict("yearly", "youtube", now=NOW)

    def test_unknown_platform(self):
        with self.assertRaises(ValueError):
            self._forecaster(None).predict("weekly", "myspace", now=NOW)


class TestHelpers(unittest.TestCase):

    def test_first_well_formed_array(self):
        self.assertEqual(extract_json_array("text [1, 2] more [3]"), [1, 2])
        self.assertEqual(extract_json_array('[{"a": 1}]'), [{"a": 1}])
        self.assertIsNone(extract_json_array("no array here"))
        self.assertIsNone(extract_json_array("[broken"))
        self.assertIsNone(extract_json_array(""))

    def test_normalize_drops_invalid_items(self):
        items = [
            "not an object",
            {"current_trend": 10, "predicted_trend": 20},
            {"category": "Music", "current_trend": "n/a", "predicted_trend": 20},
            {"category": "Music", "current_trend": 10, "predicted_trend": 20},
            {"category": "Music", "current_trend": 30, "predicted_trend": 40},
        ]
        result = normalize_predictions(items, HORIZONS["weekly"])
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].current_trend, 10)
        self.assertEqual(result[0].confidence, 0)

    def test_accuracy_bounds(self):
        self.assertEqual(score_accuracy([]), 0.85)
        self.assertEqual(score_accuracy([100, 100, 100]), 0.85)
        self.assertEqual(score_accuracy([0, 0, 0, 1000]), 0.65)
        for series in ([1, 2], [5, 500, 5], [10, 11, 12, 13]):
            self.assertTrue(0.5 <= score_accuracy(series) <= 0.85)


if __name__ == "__main__":
    unittest.main()
