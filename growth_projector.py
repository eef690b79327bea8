"""
Growth Projector — channel growth rates, milestones and projections.

Works on an ordered history of GrowthSnapshots (oldest first); the last
two snapshots are ``current`` and ``previous``. Independent of the
forecast path: no store, no insight service.

Units: growth rates are percentages, acceleration is a ratio,
confidence is 30-95 (projections floor at 20).
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Union

from trend_statistics import (
    UP, DOWN, STABLE,
    Seasonality, detect_peak_month, growth_rates, growth_volatility,
    mean_absolute_growth, round_half_up, trend_strength,
)

logger = logging.getLogger(__name__)

WEEKS_PER_MONTH = 4.33
DAYS_PER_MONTH = 30
UNREACHABLE_DAYS = 999

MILESTONE_LADDER = (100_000, 500_000, 1_000_000)
MILESTONE_STEP = 1_000_000

PROJECTION_MONTHS = (1, 3, 6, 12)
PROJECTED_VIEWS_FACTOR = 0.9
MIN_PROJECTION_CONFIDENCE = 20

# Acceleration phase thresholds (single-period growth as a fraction)
RAPID_GROWTH = 0.05
STEADY_GROWTH = 0.02


@dataclass(frozen=True)
class GrowthSnapshot:
    """Channel counters at one point in time."""
    date: Union[date, datetime]
    subscriber_count: int
    video_count: int = 0
    avg_views: float = 0.0
    engagement_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "GrowthSnapshot":
        """Build from a JSON object (camelCase or snake_case keys)."""
        raw_date = data.get("date")
        if isinstance(raw_date, str):
            raw_date = datetime.fromisoformat(raw_date.replace("Z", "+00:00"))
        if raw_date is None:
            raise ValueError("snapshot is missing 'date'")

        def pick(snake, camel, default=0):
            value = data.get(snake, data.get(camel, default))
            return default if value is None else value

        return cls(
            date=raw_date,
            subscriber_count=int(pick("subscriber_count", "subscriberCount")),
            video_count=int(pick("video_count", "videoCount")),
            avg_views=float(pick("avg_views", "avgViews")),
            engagement_rate=float(pick("engagement_rate", "engagementRate")),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


@dataclass(frozen=True)
class ProjectedPoint:
    months: int
    subscriber_count: int
    avg_views: int
    engagement_rate: float
    confidence: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AccelerationPhase:
    date: str
    phase: str              # baseline | rapid | steady | slow | decline
    acceleration: float     # single-period growth, percent

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class GrowthMetrics:
    acceleration_phases: List[AccelerationPhase]
    volatility: float       # pstdev of growth rates, percent
    consistency: float      # percent of periods with positive growth
    seasonality: Seasonality

    def to_dict(self) -> dict:
        return {
            "acceleration_phases": [p.to_dict() for p in self.acceleration_phases],
            "volatility": round(self.volatility, 2),
            "consistency": round(self.consistency, 2),
            "seasonality": self.seasonality.to_dict(),
        }


@dataclass(frozen=True)
class GrowthProjection:
    current: GrowthSnapshot
    previous: Optional[GrowthSnapshot]
    monthly_growth_rate: float
    weekly_growth_rate: float
    trend: str
    trend_strength: int
    growth_acceleration: float
    next_milestone: int
    time_to_milestone: int
    confidence_score: int
    metrics: GrowthMetrics
    projections: Optional[List[ProjectedPoint]] = None
    history: List[GrowthSnapshot] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "current": self.current.to_dict(),
            "previous": self.previous.to_dict() if self.previous else None,
            "monthly_growth_rate": round(self.monthly_growth_rate, 2),
            "weekly_growth_rate": round(self.weekly_growth_rate, 2),
            "trend": self.trend,
            "trend_strength": self.trend_strength,
            "growth_acceleration": round(self.growth_acceleration, 2),
            "milestones": {
                "next_subscriber_milestone": self.next_milestone,
                "time_to_milestone": self.time_to_milestone,
                "confidence_score": self.confidence_score,
            },
            "metrics": self.metrics.to_dict(),
            "projections": (
                [p.to_dict() for p in self.projections] if self.projections is not None else None
            ),
            "history": [s.to_dict() for s in self.history],
        }


def _rate(current: float, previous: float) -> float:
    return (current - previous) / previous if previous else 0.0


def next_milestone(subscribers: int) -> int:
    """Next value in 100k, 500k, 1M, 2M, 3M, ... strictly above ``subscribers``."""
    for milestone in MILESTONE_LADDER:
        if subscribers < milestone:
            return milestone
    return (subscribers // MILESTONE_STEP + 1) * MILESTONE_STEP


def time_to_milestone(subscribers: int, milestone: int, monthly_growth_rate: float) -> int:
    """Days to reach ``milestone`` at the current monthly rate; 999 when not growing."""
    if monthly_growth_rate <= 0 or subscribers <= 0:
        return UNREACHABLE_DAYS
    monthly_gain = subscribers * (monthly_growth_rate / 100)
    return round_half_up((milestone - subscribers) / monthly_gain * DAYS_PER_MONTH)


def growth_acceleration(counts: Sequence[float]) -> float:
    """
    Most recent single-period growth over the growth two periods earlier.

    With fewer than four points the older rate is the recent one; a zero
    older rate means no acceleration (1).
    """
    if len(counts) < 2:
        return 1.0
    recent = _rate(counts[-1], counts[-2])
    older = _rate(counts[-3], counts[-4]) if len(counts) >= 4 else recent
    if older == 0:
        return 1.0
    return recent / older


def recent_trend(counts: Sequence[float]) -> str:
    """'up'/'down' when the last three points move strictly one way."""
    if len(counts) < 3:
        return STABLE
    a, b, c = counts[-3:]
    if c > b > a:
        return UP
    if c < b < a:
        return DOWN
    return STABLE


def confidence_score(strength: int, recent_volatility: float) -> int:
    return max(30, min(95, round_half_up(70 + strength * 2.5 - recent_volatility * 100)))


def acceleration_phases(history: Sequence[GrowthSnapshot]) -> List[AccelerationPhase]:
    phases = []
    for index, snapshot in enumerate(history):
        if index == 0:
            phases.append(AccelerationPhase(snapshot.date.isoformat(), "baseline", 0.0))
            continue
        growth = _rate(snapshot.subscriber_count, history[index - 1].subscriber_count)
        if growth > RAPID_GROWTH:
            phase = "rapid"
        elif growth > STEADY_GROWTH:
            phase = "steady"
        elif growth > 0:
            phase = "slow"
        else:
            phase = "decline"
        phases.append(AccelerationPhase(snapshot.date.isoformat(), phase, round(growth * 100, 2)))
    return phases


def growth_consistency(counts: Sequence[float]) -> float:
    """Percent of periods with positive growth; 50 with fewer than three points."""
    if len(counts) < 3:
        return 50.0
    rates = growth_rates(counts)
    return sum(1 for r in rates if r > 0) / len(rates) * 100


def project_forward(current: GrowthSnapshot, monthly_growth_rate: float,
                    confidence: int) -> List[ProjectedPoint]:
    """Compound the monthly rate 1, 3, 6 and 12 months ahead."""
    points = []
    for months in PROJECTION_MONTHS:
        factor = (1 + monthly_growth_rate / 100) ** months
        points.append(ProjectedPoint(
            months=months,
            subscriber_count=round_half_up(current.subscriber_count * factor),
            # Views grow slower than subscribers
            avg_views=round_half_up(current.avg_views * factor * PROJECTED_VIEWS_FACTOR),
            engagement_rate=round(max(0.01, current.engagement_rate * (1 + months * 0.001)), 4),
            confidence=max(MIN_PROJECTION_CONFIDENCE, confidence - months * 10),
        ))
    return points


def project_growth(history: Sequence[GrowthSnapshot],
                   include_projections: bool = False) -> GrowthProjection:
    """
    Analyze a snapshot history.

    Raises:
        ValueError: If ``history`` is empty.
    """
    if not history:
        raise ValueError("history must contain at least one snapshot")

    history = list(history)
    current = history[-1]
    previous = history[-2] if len(history) >= 2 else None
    counts = [s.subscriber_count for s in history]

    monthly_rate = _rate(current.subscriber_count, previous.subscriber_count) * 100 if previous else 0.0
    weekly_rate = monthly_rate / WEEKS_PER_MONTH

    strength = trend_strength(counts)
    confidence = confidence_score(strength, mean_absolute_growth(counts))
    milestone = next_milestone(current.subscriber_count)

    metrics = GrowthMetrics(
        acceleration_phases=acceleration_phases(history),
        volatility=growth_volatility(counts) * 100,
        consistency=growth_consistency(counts),
        seasonality=detect_peak_month(counts, [s.date.month for s in history]),
    )

    logger.debug(
        f"Growth over {len(history)} snapshots: {monthly_rate:.2f}%/month, "
        f"next milestone {milestone}"
    )

    return GrowthProjection(
        current=current,
        previous=previous,
        monthly_growth_rate=monthly_rate,
        weekly_growth_rate=weekly_rate,
        trend=recent_trend(counts),
        trend_strength=strength,
        growth_acceleration=growth_acceleration(counts),
        next_milestone=milestone,
        time_to_milestone=time_to_milestone(current.subscriber_count, milestone, monthly_rate),
        confidence_score=confidence,
        metrics=metrics,
        projections=project_forward(current, monthly_rate, confidence) if include_projections else None,
        history=history,
    )
