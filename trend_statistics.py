"""
Trend Statistics — direction, volatility, momentum and seasonality of a series.

Operates on chronological numeric series (views or likes+comments per
bucket). Every function is total: series shorter than the window a
measure needs degrade to that measure's default instead of raising.

No LLM calls — purely statistical.
"""

import math
import statistics
from collections import Counter, defaultdict
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence

UP = "up"
DOWN = "down"
STABLE = "stable"

TREND_THRESHOLD = 0.10
SEASONAL_VOLATILITY_THRESHOLD = 0.3
SEASONAL_SPREAD_THRESHOLD = 0.02
MOMENTUM_WINDOW = 3
STRENGTH_WINDOW = 6


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def trend_direction(values: Sequence[float]) -> str:
    """
    Compare first-half mean with second-half mean.

    'up' above +10%, 'down' below -10%, otherwise 'stable'.
    """
    if len(values) < 2:
        return STABLE

    mid = len(values) // 2
    first_avg = _mean(values[:mid])
    second_avg = _mean(values[mid:])

    if first_avg == 0:
        return UP if second_avg > 0 else STABLE

    change = (second_avg - first_avg) / first_avg
    if change > TREND_THRESHOLD:
        return UP
    if change < -TREND_THRESHOLD:
        return DOWN
    return STABLE


def volatility(values: Sequence[float]) -> float:
    """Coefficient of variation: population stdev / mean."""
    if len(values) < 2:
        return 0.0
    avg = _mean(values)
    if avg <= 0:
        return 0.0
    return statistics.pstdev(values) / avg


def growth_rates(values: Sequence[float]) -> List[float]:
    """Period-over-period growth; a zero base contributes 0."""
    rates = []
    for previous, current in zip(values, values[1:]):
        rates.append((current - previous) / previous if previous else 0.0)
    return rates


def growth_volatility(values: Sequence[float]) -> float:
    """Population stdev of period-over-period growth rates."""
    rates = growth_rates(values)
    if len(rates) < 2:
        return 0.0
    return statistics.pstdev(rates)


def mean_absolute_growth(values: Sequence[float], window: int = STRENGTH_WINDOW) -> float:
    """Average absolute growth rate across the last ``window`` points."""
    rates = growth_rates(list(values)[-window:])
    if not rates:
        return 0.0
    return sum(abs(r) for r in rates) / len(rates)


def momentum(values: Sequence[float]) -> float:
    """
    Relative change of the last three points' mean against the three before.

    Needs six points; returns 0 with less history or a zero older mean.
    """
    if len(values) < MOMENTUM_WINDOW * 2:
        return 0.0

    recent = _mean(values[-MOMENTUM_WINDOW:])
    older = _mean(values[-MOMENTUM_WINDOW * 2:-MOMENTUM_WINDOW])
    if older <= 0:
        return 0.0
    return (recent - older) / older


def trend_strength(values: Sequence[float]) -> int:
    """
    Reliability score 1-10. Higher recent volatility means lower strength;
    this measures how dependable the trend is, not how big it is.
    """
    score = round_half_up(10 - mean_absolute_growth(values) * 100)
    return max(1, min(10, score))


def seasonality_signal(values: Sequence[float], months: Optional[Sequence[int]] = None) -> bool:
    """
    Coarse seasonality flag: volatility above 0.3.

    With calendar months supplied, values are first summed per month.
    """
    if months is not None and len(months) == len(values):
        per_month: Dict[int, float] = defaultdict(float)
        for month, value in zip(months, values):
            per_month[month] += value
        values = list(per_month.values())
    return volatility(values) > SEASONAL_VOLATILITY_THRESHOLD


@dataclass(frozen=True)
class Seasonality:
    """Peak-month result; ``peak_month`` is a calendar month (1-12), or None."""
    has_seasonality: bool = False
    peak_month: Optional[int] = None
    spread: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def detect_peak_month(values: Sequence[float], months: Sequence[int]) -> Seasonality:
    """
    Peak-month seasonality over a series spanning at least 12 periods.

    Averages the growth rate into each calendar month; a max-min spread
    above 2% flags seasonality and names the calendar month (1-12) with
    the largest average growth.
    """
    if len(values) < 12 or len(months) != len(values):
        return Seasonality()

    totals = [0.0] * 12
    counts = [0] * 12
    for index, rate in enumerate(growth_rates(values), start=1):
        slot = (months[index] - 1) % 12
        totals[slot] += rate
        counts[slot] += 1

    averages = [totals[i] / counts[i] if counts[i] else 0.0 for i in range(12)]
    spread = max(averages) - min(averages)

    if spread > SEASONAL_SPREAD_THRESHOLD:
        return Seasonality(True, averages.index(max(averages)) + 1, round(spread, 4))
    return Seasonality(False, None, round(spread, 4))


@dataclass(frozen=True)
class SeriesSummary:
    """Statistical summary for one category's bucket series."""
    view_trend: str
    engagement_trend: str
    volatility: float
    momentum: float
    seasonality: bool
    trend_strength: int
    periods: int
    peak_month: Optional[int] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["volatility"] = round(self.volatility, 4)
        data["momentum"] = round(self.momentum, 4)
        return data


def summarize_series(views: Sequence[float], engagement: Sequence[float],
                     months: Optional[Sequence[int]] = None) -> SeriesSummary:
    """Run every measure over a category's view and engagement series."""
    peak = detect_peak_month(views, months) if months else Seasonality()
    return SeriesSummary(
        view_trend=trend_direction(views),
        engagement_trend=trend_direction(engagement),
        volatility=volatility(views),
        momentum=momentum(views),
        seasonality=seasonality_signal(views, months) or peak.has_seasonality,
        trend_strength=trend_strength(views),
        periods=len(views),
        peak_month=peak.peak_month,
    )


def analyze_seasonal_patterns(buckets) -> Dict:
    """
    Month-of-year profile across monthly buckets (any years, any category).

    Returns per-month averages, the yearly direction, and the three
    strongest/weakest months by average views.
    """
    by_month = defaultdict(list)
    for bucket in buckets:
        by_month[bucket.period].append(bucket)

    monthly_patterns = {}
    for month in range(1, 13):
        month_buckets = by_month.get(month)
        if not month_buckets:
            continue
        category_views = Counter()
        for bucket in month_buckets:
            category_views[bucket.category] += bucket.views
        monthly_patterns[month] = {
            "average_views": round(_mean([b.views for b in month_buckets]), 2),
            "total_engagement": sum(b.engagement for b in month_buckets),
            "top_categories": [c for c, _ in category_views.most_common(5)],
        }

    ranked = sorted(monthly_patterns, key=lambda m: monthly_patterns[m]["average_views"], reverse=True)

    return {
        "monthly_patterns": monthly_patterns,
        "yearly_trend": trend_direction([p["average_views"] for p in monthly_patterns.values()]),
        "peak_months": ranked[:3],
        "low_months": list(reversed(ranked))[:3],
    }
