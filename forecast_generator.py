"""
Forecast Generator — category-level trend predictions per horizon.

One run is a single pass:
  1. Collect:      bucket the horizon's history and summarize each category
  2. Draft:        build a structured summary payload
  3. Externalize:  ask the insight service for a JSON array of predictions
  4. Parse:        take the first well-formed array, else the fallback list
  5. Score:        volatility-derived accuracy for the whole run
  6. Persist:      append the Prediction (best-effort)

A Prediction is always returned. Degradation shows up in the data
(source="fallback", generic factors, lower confidence), never as an error.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import config
from aggregator import (
    PeriodBucket, current_period, fetch_period_buckets, group_by_category,
)
from insight_service import InsightGenerator, create_insight_generator
from prediction_store import (
    CategoryPrediction, Prediction, PredictionStore,
    WEEKLY, MONTHLY, SEASONAL, PREDICTION_TYPES,
    SOURCE_INSIGHT_SERVICE, SOURCE_FALLBACK,
)
from records import RecordStore, WEEK, MONTH, as_utc, normalize_platform
from trend_statistics import SeriesSummary, analyze_seasonal_patterns, summarize_series, volatility

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Horizon:
    """Look-back window and confidence ceiling for one prediction type."""
    unit: str
    periods_back: int       # periods before the current one
    confidence_cap: float
    timeframe: str


HORIZONS = {
    WEEKLY: Horizon(unit=WEEK, periods_back=8, confidence_cap=0.95, timeframe="Next week"),
    MONTHLY: Horizon(unit=MONTH, periods_back=6, confidence_cap=0.9, timeframe="Next month"),
    SEASONAL: Horizon(unit=MONTH, periods_back=24, confidence_cap=0.85, timeframe="Next season"),
}

# ── Fallback ──
FALLBACK_CATEGORIES = ["Entertainment", "Music", "Gaming", "Education", "Technology"]
FALLBACK_CONFIDENCES = [0.9, 0.85, 0.8, 0.75, 0.7]
FALLBACK_FACTORS = ["Past performance", "Seasonal trends", "User engagement"]
FALLBACK_TREND = 50.0

# ── Accuracy heuristic ──
BASE_ACCURACY = 0.85
MAX_VOLATILITY_PENALTY = 0.2
MIN_ACCURACY = 0.5

MAX_FACTORS = 3

_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

SYSTEM_PROMPT = (
    "You are a social-media trend forecasting analyst. You read statistical "
    "summaries of category performance and return forecasts as strict JSON."
)


def score_accuracy(views: Sequence[float]) -> float:
    """max(0.5, 0.85 - min(volatility * 0.2, 0.2)) over the run's view history."""
    penalty = min(volatility(views) * 0.2, MAX_VOLATILITY_PENALTY)
    return round(max(MIN_ACCURACY, BASE_ACCURACY - penalty), 4)


def extract_json_array(text: str) -> Optional[list]:
    """
    Return the first well-formed JSON array in free text, or None.

    Tries the widest bracketed span first (the usual case of prose around
    one array), then scans each '[' for a decodable array.
    """
    if not text:
        return None

    match = _ARRAY_PATTERN.search(text)
    if match:
        try:
            value = json.loads(match.group(0))
            if isinstance(value, list):
                return value
        except json.JSONDecodeError:
            pass

    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char != "[":
            continue
        try:
            value, _ = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            continue
        if isinstance(value, list):
            return value
    return None


def _first(item: dict, *keys):
    for key in keys:
        if key in item:
            return item[key]
    return None


def _clamp(value, low: float, high: float) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return max(low, min(high, number))


def normalize_predictions(items: list, horizon: Horizon,
                          limit: Optional[int] = None) -> List[CategoryPrediction]:
    """
    Validate raw prediction objects into CategoryPredictions.

    Trends clamp to 0-100, confidence to [0, horizon cap], factors to three.
    Items without a category or numeric trends are dropped; duplicate
    categories keep the first occurrence.
    """
    limit = limit or config.MAX_PREDICTION_CATEGORIES
    predictions = []
    seen = set()

    for item in items:
        if not isinstance(item, dict):
            continue
        category = _first(item, "category", "name")
        if not isinstance(category, str) or not category.strip():
            continue
        category = category.strip()
        if category in seen:
            continue

        current = _clamp(_first(item, "current_trend", "currentTrend"), 0, 100)
        predicted = _clamp(_first(item, "predicted_trend", "predictedTrend"), 0, 100)
        if current is None or predicted is None:
            continue
        confidence = _clamp(item.get("confidence"), 0, horizon.confidence_cap)
        if confidence is None:
            confidence = 0.0

        factors = item.get("factors") or []
        if not isinstance(factors, list):
            factors = [factors]
        factors = [str(f) for f in factors if f][:MAX_FACTORS]

        timeframe = item.get("timeframe")
        if not isinstance(timeframe, str) or not timeframe.strip():
            timeframe = horizon.timeframe

        seen.add(category)
        predictions.append(CategoryPrediction(
            category=category,
            current_trend=round(current, 2),
            predicted_trend=round(predicted, 2),
            confidence=round(confidence, 2),
            factors=factors,
            timeframe=timeframe,
        ))
        if len(predictions) >= limit:
            break

    return predictions


def fallback_predictions(horizon: Horizon) -> List[CategoryPrediction]:
    """Deterministic baseline: fixed categories at trend 50, confidence 0.7-0.9."""
    return [
        CategoryPrediction(
            category=category,
            current_trend=FALLBACK_TREND,
            predicted_trend=FALLBACK_TREND,
            confidence=min(confidence, horizon.confidence_cap),
            factors=list(FALLBACK_FACTORS),
            timeframe=horizon.timeframe,
        )
        for category, confidence in zip(FALLBACK_CATEGORIES, FALLBACK_CONFIDENCES)
    ]


def summarize_categories(buckets: Sequence[PeriodBucket]) -> Dict[str, SeriesSummary]:
    """One SeriesSummary per category, in first-seen chronological order."""
    summaries = {}
    for category, series in group_by_category(buckets).items():
        months = [b.period for b in series] if series[0].unit == MONTH else None
        summaries[category] = summarize_series(
            views=[b.views for b in series],
            engagement=[b.engagement for b in series],
            months=months,
        )
    return summaries


class TrendForecaster:
    """
    Produces and records Predictions for (horizon, platform) pairs.

    Depends only on the InsightGenerator interface; whether the service
    answers or not, ``predict`` returns a complete Prediction.
    """

    def __init__(self, record_store: RecordStore,
                 insight_generator: Optional[InsightGenerator] = None,
                 prediction_store: Optional[PredictionStore] = None):
        self.record_store = record_store
        self.insight_generator = insight_generator or create_insight_generator()
        self.prediction_store = prediction_store

    def predict(self, prediction_type: str, platform: Optional[str],
                now: Optional[datetime] = None) -> Prediction:
        """
        Run one forecast.

        Raises:
            ValueError: Unknown prediction type or platform.
        """
        if prediction_type not in HORIZONS:
            raise ValueError(
                f"Unknown prediction type '{prediction_type}'. "
                f"Expected one of: {', '.join(PREDICTION_TYPES)}"
            )
        platform = normalize_platform(platform)
        platform_label = platform or "all"
        horizon = HORIZONS[prediction_type]
        now = as_utc(now) if now else datetime.now(timezone.utc)

        logger.info(f"Generating {prediction_type} trend predictions for {platform_label}")

        # 1. Collect
        buckets = self._collect(horizon, platform, now)
        summaries = summarize_categories(buckets)

        # 2. Draft
        payload = self._draft(prediction_type, platform_label, horizon, buckets, summaries)

        # 3-4. Externalize, parse or fall back
        predictions, source = self._externalize(prediction_type, platform_label, horizon, payload)

        # 5. Score
        accuracy = score_accuracy([b.views for b in buckets])

        prediction = Prediction(
            type=prediction_type,
            platform=platform_label,
            predictions=predictions,
            accuracy=accuracy,
            insights=self._insights(prediction_type, platform_label, predictions, source),
            generated_at=now,
            source=source,
        )

        # 6. Persist
        self._persist(prediction)

        logger.info(
            f"{prediction_type.capitalize()} prediction for {platform_label}: "
            f"{len(predictions)} categories, accuracy {accuracy:.2f} ({source})"
        )
        return prediction

    def history(self, platform: Optional[str] = None, prediction_type: Optional[str] = None,
                limit: int = 10) -> List[Prediction]:
        """Previously saved predictions, newest first."""
        if self.prediction_store is None:
            return []
        return self.prediction_store.list(
            platform=normalize_platform(platform), type=prediction_type, limit=limit,
        )

    # ── Pipeline steps ──

    def _collect(self, horizon: Horizon, platform: Optional[str],
                 now: datetime) -> List[PeriodBucket]:
        year, period = current_period(now, horizon.unit)
        return fetch_period_buckets(
            self.record_store, platform, horizon.unit, year, period, horizon.periods_back,
        )

    def _draft(self, prediction_type: str, platform: str, horizon: Horizon,
               buckets: Sequence[PeriodBucket], summaries: Dict[str, SeriesSummary]) -> Dict:
        payload = {
            "platform": platform,
            "horizon": prediction_type,
            "unit": horizon.unit,
            "bucket_count": len(buckets),
            "categories": {
                category: summary.to_dict() for category, summary in summaries.items()
            },
        }
        if prediction_type == SEASONAL:
            payload["seasonal_patterns"] = analyze_seasonal_patterns(buckets)
        return payload

    def _build_prompt(self, prediction_type: str, platform: str,
                      horizon: Horizon, payload: Dict) -> str:
        return f"""Forecast {prediction_type} category trends for {platform}.

## Analysis data
{json.dumps(payload, indent=2)}

## Response format
Respond with a JSON array only, one object per category:

[
  {{
    "category": "category name",
    "current_trend": current trend value (0-100),
    "predicted_trend": predicted trend value (0-100),
    "confidence": confidence (0-1),
    "factors": ["factor 1", "factor 2", "factor 3"],
    "timeframe": "{horizon.timeframe}"
  }}
]

## Guidance
- Base the forecast on the past data patterns above
- Account for seasonality and momentum
- Ground confidence in the statistical evidence (volatility, trend strength)
- At most {config.MAX_PREDICTION_CATEGORIES} categories, at most {MAX_FACTORS} factors each
"""

    def _externalize(self, prediction_type: str, platform: str, horizon: Horizon,
                     payload: Dict) -> Tuple[List[CategoryPrediction], str]:
        prompt = self._build_prompt(prediction_type, platform, horizon, payload)
        result = self.insight_generator.generate(
            prompt, system_prompt=SYSTEM_PROMPT, temperature=config.PREDICTION_TEMPERATURE,
        )

        if not result.ok:
            logger.warning(f"Using fallback predictions for {platform} {prediction_type}: {result.error}")
            return fallback_predictions(horizon), SOURCE_FALLBACK

        items = extract_json_array(result.text)
        if items is None:
            logger.warning(f"No JSON array in insight response for {platform} {prediction_type}; using fallback")
            return fallback_predictions(horizon), SOURCE_FALLBACK

        predictions = normalize_predictions(items, horizon)
        if not predictions:
            logger.warning(f"Insight response had no usable predictions for {platform} {prediction_type}; using fallback")
            return fallback_predictions(horizon), SOURCE_FALLBACK

        return predictions, SOURCE_INSIGHT_SERVICE

    def _insights(self, prediction_type: str, platform: str,
                  predictions: List[CategoryPrediction], source: str) -> str:
        # The service already failed once this run; don't wait on it again
        if source == SOURCE_INSIGHT_SERVICE:
            prompt = (
                f"Summarize the 3-4 most important insights from these {platform} "
                f"{prediction_type} predictions in under 300 characters: the trend to watch, "
                f"what drives the change, a strategic recommendation, and the main risk or "
                f"opportunity.\n\n{json.dumps([p.to_dict() for p in predictions], indent=2)}"
            )
            result = self.insight_generator.generate(prompt, temperature=config.INSIGHT_TEMPERATURE)
            if result.ok:
                return result.text.strip()
            logger.warning(f"Insight narrative unavailable, using template: {result.error}")

        return template_insights(prediction_type, platform, predictions)

    def _persist(self, prediction: Prediction) -> None:
        if self.prediction_store is None:
            return
        try:
            self.prediction_store.save(prediction)
        except Exception as e:
            logger.error(f"Failed to save {prediction.type} prediction for {prediction.platform}: {e}")


def template_insights(prediction_type: str, platform: str,
                      predictions: Sequence[CategoryPrediction]) -> str:
    """Deterministic narrative used when the insight service is unavailable."""
    if not predictions:
        return f"No {prediction_type} predictions available for {platform}."

    rising = sorted(predictions, key=lambda p: p.predicted_trend - p.current_trend, reverse=True)
    top = rising[0]
    change = top.predicted_trend - top.current_trend
    if change > 0:
        lead = f"{top.category} shows the strongest expected growth ({top.current_trend:.0f} -> {top.predicted_trend:.0f})"
    else:
        lead = "no category is expected to break out"

    return (
        f"The {prediction_type} forecast for {platform} covers {len(predictions)} categories; "
        f"{lead}. Average confidence is {sum(p.confidence for p in predictions) / len(predictions):.2f}."
    )
