"""
Tests for the append-only prediction store.
"""

import os
import sqlite3
import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from prediction_store import CategoryPrediction, Prediction, SQLitePredictionStore

T0 = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)


def _prediction(prediction_type="weekly", platform="youtube", at=T0, accuracy=0.8):
    return Prediction(
        type=prediction_type,
        platform=platform,
        predictions=[CategoryPrediction("Music", 60, 70, 0.8, ["Momentum"], "Next week")],
        accuracy=accuracy,
        insights="Music is rising.",
        generated_at=at,
    )


class TestSQLitePredictionStore(unittest.TestCase):

    def setUp(self):
        self.db_path = Path(tempfile.mktemp(suffix=".db"))
        self.store = SQLitePredictionStore(self.db_path)

    def tearDown(self):
        if self.db_path.exists():
            self.db_path.unlink()

    def test_replay_matches_saved(self):
        saved = _prediction()
        self.store.save(saved)
        self.assertEqual(self.store.list()[0], saved)

    def test_newest_first_and_limit(self):
        for hours in range(5):
            self.store.save(_prediction(at=T0 + timedelta(hours=hours), accuracy=float(hours)))
        listed = self.store.list(limit=3)
        self.assertEqual([p.accuracy for p in listed], [4.0, 3.0, 2.0])

    def test_filters(self):
        self.store.save(_prediction("weekly", "youtube"))
        self.store.save(_prediction("monthly", "youtube"))
        self.store.save(_prediction("weekly", "tiktok"))

        self.assertEqual(len(self.store.list(platform="youtube")), 2)
        self.assertEqual(len(self.store.list(type="weekly")), 2)
        self.assertEqual(len(self.store.list(platform="tiktok", type="monthly")), 0)

    def test_append_only(self):
        self.store.save(_prediction())
        self.store.save(_prediction())
        conn = sqlite3.connect(str(self.db_path))
        count = conn.execute("SELECT COUNT(*) FROM predictions").fetchone()[0]
        conn.close()
        self.assertEqual(count, 2)

    def test_unreadable_rows_skipped(self):
        self.store.save(_prediction())
        conn = sqlite3.connect(str(self.db_path))
        conn.execute(
            "INSERT INTO predictions (type, platform, data, accuracy_score, created_at) "
            "VALUES ('weekly', 'youtube', 'not json', 0.5, ?)",
            ((T0 + timedelta(days=1)).isoformat(),),
        )
        conn.commit()
        conn.close()
        self.assertEqual(len(self.store.list()), 1)


if __name__ == "__main__":
    unittest.main()
