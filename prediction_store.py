"""
Prediction Store — append-only persistence of forecast runs.

Each run writes one row; rows are never updated. ``list`` replays them
newest first for history views and audits.
"""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import List, Optional

import config

logger = logging.getLogger(__name__)

WEEKLY = "weekly"
MONTHLY = "monthly"
SEASONAL = "seasonal"
PREDICTION_TYPES = (WEEKLY, MONTHLY, SEASONAL)

SOURCE_INSIGHT_SERVICE = "insight_service"
SOURCE_FALLBACK = "fallback"

PREDICTIONS_SCHEMA = """
CREATE TABLE IF NOT EXISTS predictions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL,
    platform TEXT NOT NULL,
    data TEXT NOT NULL,
    accuracy_score REAL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_predictions_lookup
    ON predictions(platform, type, created_at);
"""


@dataclass(frozen=True)
class CategoryPrediction:
    """One category's forecast. Trends are 0-100, confidence is 0-1."""
    category: str
    current_trend: float
    predicted_trend: float
    confidence: float
    factors: List[str] = field(default_factory=list)
    timeframe: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CategoryPrediction":
        return cls(
            category=data["category"],
            current_trend=float(data.get("current_trend", 0)),
            predicted_trend=float(data.get("predicted_trend", 0)),
            confidence=float(data.get("confidence", 0)),
            factors=list(data.get("factors") or []),
            timeframe=data.get("timeframe", ""),
        )


@dataclass(frozen=True)
class Prediction:
    """Output of one forecast run."""
    type: str
    platform: str
    predictions: List[CategoryPrediction]
    accuracy: float
    insights: str
    generated_at: datetime
    source: str = SOURCE_INSIGHT_SERVICE

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "platform": self.platform,
            "predictions": [p.to_dict() for p in self.predictions],
            "accuracy": self.accuracy,
            "insights": self.insights,
            "generated_at": self.generated_at.isoformat(),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Prediction":
        generated_at = datetime.fromisoformat(data["generated_at"])
        if generated_at.tzinfo is None:
            generated_at = generated_at.replace(tzinfo=timezone.utc)
        return cls(
            type=data["type"],
            platform=data["platform"],
            predictions=[CategoryPrediction.from_dict(p) for p in data.get("predictions", [])],
            accuracy=float(data.get("accuracy", 0)),
            insights=data.get("insights", ""),
            generated_at=generated_at,
            source=data.get("source", SOURCE_INSIGHT_SERVICE),
        )


class PredictionStore(ABC):
    """Append-only Prediction log the forecaster writes to."""

    @abstractmethod
    def save(self, prediction: Prediction) -> None:
        """Append one prediction. Never updates an existing one."""
        ...

    @abstractmethod
    def list(self, platform: Optional[str] = None, type: Optional[str] = None,
             limit: int = 10) -> List[Prediction]:
        """Return saved predictions, newest first."""
        ...


class SQLitePredictionStore(PredictionStore):
    """SQLite-backed, append-only Prediction log."""

    def __init__(self, db_path=None):
        self.db_path = db_path or config.DB_PATH
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA busy_timeout=5000")
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            conn.executescript(PREDICTIONS_SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def save(self, prediction: Prediction) -> None:
        """
        Append one prediction.

        Raises:
            sqlite3.Error: Propagated; the forecaster logs it and carries on.
        """
        conn = self._connect()
        try:
            conn.execute("""
                INSERT INTO predictions (type, platform, data, accuracy_score, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                prediction.type,
                prediction.platform,
                json.dumps(prediction.to_dict()),
                prediction.accuracy,
                prediction.generated_at.isoformat(),
            ))
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Saved {prediction.type} prediction for {prediction.platform}")

    def list(self, platform: Optional[str] = None, type: Optional[str] = None,
             limit: int = 10) -> List[Prediction]:
        """Return saved predictions, newest first."""
        clauses = []
        params = []
        if platform:
            clauses.append("platform = ?")
            params.append(platform)
        if type:
            clauses.append("type = ?")
            params.append(type)

        query = "SELECT data FROM predictions"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        predictions = []
        for row in rows:
            try:
                predictions.append(Prediction.from_dict(json.loads(row["data"])))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable prediction row: {e}")
        return predictions
