"""
Engagement Analyzer — the current period's engagement picture.

Combines metric primitives over the current week or month: overall and
per-platform rates, viral content, the engagement trend over recent
periods, rule-based recommendations and a narrative insight.
"""

import logging
import math
from collections import Counter, OrderedDict
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import config
from aggregator import current_period, lookback_windows
from insight_service import InsightGenerator, create_insight_generator
from metrics import (
    EngagementMetrics, VIRAL_SCORE_THRESHOLD,
    calculate_engagement_metrics, comment_rate, engagement_rate, engagement_score,
    engagement_velocity, identify_viral_factors, mean, viral_score,
)
from records import (
    EngagementRecord, PeriodRange, RecordFilter, RecordStore,
    WEEK, MONTH, as_utc, normalize_platform,
)

logger = logging.getLogger(__name__)

TREND_PERIODS = {WEEK: 8, MONTH: 6}
MAX_VIRAL_CONTENT = 10
MAX_RECOMMENDATIONS = 5
HIGH_SCORE_THRESHOLD = 0.5


@dataclass(frozen=True)
class ViralContent:
    content_id: str
    title: str
    platform: str
    viral_score: float
    engagement_velocity: float
    factors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["viral_score"] = round(self.viral_score, 4)
        data["engagement_velocity"] = round(self.engagement_velocity, 2)
        return data


@dataclass(frozen=True)
class PlatformEngagement:
    platform: str
    metrics: EngagementMetrics
    peak_engagement_time: str
    dominant_engagement_type: str       # likes | comments | shares
    audience_retention: float
    conversion_rate: float
    score_thresholds: Dict[str, float]

    def to_dict(self) -> dict:
        return {
            "platform": self.platform,
            "metrics": self.metrics.to_dict(),
            "characteristics": {
                "peak_engagement_time": self.peak_engagement_time,
                "dominant_engagement_type": self.dominant_engagement_type,
                "audience_retention": round(self.audience_retention, 2),
                "conversion_rate": round(self.conversion_rate, 2),
            },
            "benchmarks": self.score_thresholds,
        }


@dataclass(frozen=True)
class EngagementTrendPoint:
    period: str
    avg_engagement: float
    change_rate: float
    top_factors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "avg_engagement": round(self.avg_engagement, 4),
            "change_rate": round(self.change_rate, 2),
            "top_factors": self.top_factors,
        }


@dataclass(frozen=True)
class EngagementAnalysis:
    platform: Optional[str]
    timeframe: str
    overall_metrics: EngagementMetrics
    platform_breakdown: List[PlatformEngagement]
    viral_content: List[ViralContent]
    engagement_trends: List[EngagementTrendPoint]
    recommendations: List[str]
    insights: str
    record_count: int = 0

    def to_dict(self) -> dict:
        return {
            "platform": self.platform or "all",
            "timeframe": self.timeframe,
            "record_count": self.record_count,
            "overall_metrics": self.overall_metrics.to_dict(),
            "platform_breakdown": [p.to_dict() for p in self.platform_breakdown],
            "viral_content": [v.to_dict() for v in self.viral_content],
            "engagement_trends": [t.to_dict() for t in self.engagement_trends],
            "recommendations": self.recommendations,
            "insights": self.insights,
        }


# ── Platform characteristics ──

def peak_engagement_time(records: Sequence[EngagementRecord]) -> str:
    """Hour window (UTC) with the highest summed engagement score."""
    hour_scores = [0.0] * 24
    for record in records:
        if record.created_at is not None:
            hour_scores[record.created_at.hour] += engagement_score(record)
    peak = hour_scores.index(max(hour_scores))
    return f"{peak}:00-{peak + 1}:00"


def dominant_engagement_type(records: Sequence[EngagementRecord]) -> str:
    totals = OrderedDict([
        ("likes", sum(r.likes for r in records)),
        ("comments", sum(r.comments for r in records)),
        ("shares", sum(r.shares for r in records)),
    ])
    return max(totals, key=totals.get)


def audience_retention(records: Sequence[EngagementRecord]) -> float:
    """Proxy: twice the mean per-record engagement rate, capped at 100."""
    return min(mean(engagement_rate(r) for r in records) * 2, 100.0)


def score_thresholds(records: Sequence[EngagementRecord]) -> Dict[str, float]:
    """Engagement-score p90/p50/p10 by floor index."""
    scores = sorted(engagement_score(r) for r in records)

    def at(p):
        index = math.floor(len(scores) * p)
        return scores[index] if index < len(scores) else 0.0

    return {
        "top_performer_threshold": at(0.9),
        "average_performance": at(0.5),
        "low_performance_threshold": at(0.1),
    }


def analyze_platforms(records: Sequence[EngagementRecord]) -> List[PlatformEngagement]:
    by_platform: "OrderedDict[str, List[EngagementRecord]]" = OrderedDict()
    for record in records:
        by_platform.setdefault(record.platform, []).append(record)

    return [
        PlatformEngagement(
            platform=platform,
            metrics=calculate_engagement_metrics(platform_records),
            peak_engagement_time=peak_engagement_time(platform_records),
            dominant_engagement_type=dominant_engagement_type(platform_records),
            audience_retention=audience_retention(platform_records),
            conversion_rate=mean(comment_rate(r) for r in platform_records),
            score_thresholds=score_thresholds(platform_records),
        )
        for platform, platform_records in by_platform.items()
    ]


def identify_viral_content(records: Sequence[EngagementRecord],
                           now: Optional[datetime] = None) -> List[ViralContent]:
    """Records with viral_score above 0.6, best ten first."""
    scored = [(viral_score(r), r) for r in records]
    candidates = sorted(
        (pair for pair in scored if pair[0] > VIRAL_SCORE_THRESHOLD),
        key=lambda pair: pair[0],
        reverse=True,
    )[:MAX_VIRAL_CONTENT]

    return [
        ViralContent(
            content_id=record.content_id,
            title=record.title or "Untitled",
            platform=record.platform,
            viral_score=score,
            engagement_velocity=engagement_velocity(record, now),
            factors=identify_viral_factors(record, now),
        )
        for score, record in candidates
    ]


# ── Trend over recent periods ──

def _common_hashtags(records: Sequence[EngagementRecord], limit: int = 5) -> List[str]:
    counts = Counter(tag for r in records for tag in r.hashtags)
    return [tag for tag, _ in counts.most_common(limit)]


def _period_label(year: int, period: int, unit: str) -> str:
    return f"{year}-{period:02d}" if unit == MONTH else f"{year}-W{period:02d}"


def engagement_trends(store: RecordStore, platform: Optional[str], timeframe: str,
                      now: datetime) -> List[EngagementTrendPoint]:
    """
    Average engagement score per period over the last 8 weeks or 6 months.

    Empty periods are omitted. Each change rate compares against the
    previous listed period (0 for the first).
    """
    periods = TREND_PERIODS[timeframe]
    year, period = current_period(now, timeframe)
    records = store.fetch_records(RecordFilter(
        platform=platform,
        windows=lookback_windows(timeframe, year, period, periods - 1),
    ))

    grouped: Dict[tuple, List[EngagementRecord]] = {}
    for record in records:
        key = record.period_key(timeframe)
        if None in key or key > (year, period):
            continue
        grouped.setdefault(key, []).append(record)

    points = []
    previous = None
    for key in sorted(grouped)[-periods:]:
        period_records = grouped[key]
        avg = mean(engagement_score(r) for r in period_records)
        change = (avg - previous) / previous * 100 if previous else 0.0
        high_scoring = [r for r in period_records if engagement_score(r) > HIGH_SCORE_THRESHOLD]
        points.append(EngagementTrendPoint(
            period=_period_label(key[0], key[1], timeframe),
            avg_engagement=avg,
            change_rate=change,
            top_factors=_common_hashtags(high_scoring)[:3],
        ))
        previous = avg
    return points


# ── Recommendations and narrative ──

def engagement_recommendations(metrics: EngagementMetrics,
                               platforms: Sequence[PlatformEngagement],
                               viral: Sequence[ViralContent]) -> List[str]:
    recommendations = []

    if metrics.engagement_rate < 2:
        recommendations.append("Improve content quality and strengthen conversation with the audience")
    if metrics.viral_factor < 0.1:
        recommendations.append("Review shareable content formats and the hashtag strategy")

    for platform in platforms:
        if platform.metrics.engagement_rate < 1.5:
            recommendations.append(f"Improve the engagement strategy on {platform.platform}")

    if viral:
        factor_counts = Counter(f for v in viral for f in v.factors)
        if factor_counts:
            top_factor = factor_counts.most_common(1)[0][0]
            recommendations.append(f"Build more content around: {top_factor.lower()}")

    return recommendations[:MAX_RECOMMENDATIONS]


def _insight_prompt(metrics: EngagementMetrics, platforms: Sequence[PlatformEngagement],
                    viral: Sequence[ViralContent]) -> str:
    platform_lines = "\n".join(
        f"- {p.platform}: {p.metrics.engagement_rate}%" for p in platforms
    ) or "- no platform data"
    return f"""Generate the key strategic insight from this engagement analysis.

Overall metrics:
- Engagement rate: {metrics.engagement_rate}%
- Like rate: {metrics.like_rate}%
- Comment rate: {metrics.comment_rate}%
- Viral factor: {metrics.viral_factor}

Performance by platform:
{platform_lines}

Viral content items: {len(viral)}

In under 250 characters, suggest how to raise engagement."""


def fallback_insight(metrics: EngagementMetrics) -> str:
    return (
        f"The current engagement rate of {metrics.engagement_rate}% leaves room to improve. "
        f"Content built around each platform's strengths and audience participation "
        f"should lift engagement."
    )


def analyze_engagement(store: RecordStore, platform: Optional[str] = None,
                       timeframe: str = WEEK,
                       insight_generator: Optional[InsightGenerator] = None,
                       now: Optional[datetime] = None) -> EngagementAnalysis:
    """
    Analyze the current week or month.

    Raises:
        ValueError: Unknown timeframe or platform.
    """
    if timeframe not in TREND_PERIODS:
        raise ValueError(f"Unknown timeframe '{timeframe}'. Expected 'week' or 'month'")
    platform = normalize_platform(platform)
    now = as_utc(now) if now else datetime.now(timezone.utc)

    logger.info(f"Analyzing engagement metrics for {platform or 'all platforms'} ({timeframe})")

    year, period = current_period(now, timeframe)
    records = store.fetch_records(RecordFilter(
        platform=platform,
        windows=(PeriodRange(year=year, unit=timeframe, start=period, end=period),),
        limit=config.ANALYSIS_SAMPLE_SIZE,
        newest_first=True,
    ))

    overall = calculate_engagement_metrics(records)
    platforms = analyze_platforms(records)
    viral = identify_viral_content(records, now)
    trends = engagement_trends(store, platform, timeframe, now)
    recommendations = engagement_recommendations(overall, platforms, viral)

    insight_generator = insight_generator or create_insight_generator()
    result = insight_generator.generate(
        _insight_prompt(overall, platforms, viral), temperature=config.INSIGHT_TEMPERATURE,
    )
    if result.ok:
        insights = result.text.strip()
    else:
        logger.warning(f"Engagement insight unavailable, using template: {result.error}")
        insights = fallback_insight(overall)

    logger.info(
        f"Engagement analysis: {len(records)} records, {len(viral)} viral, "
        f"{len(trends)} trend periods"
    )

    return EngagementAnalysis(
        platform=platform,
        timeframe=timeframe,
        overall_metrics=overall,
        platform_breakdown=platforms,
        viral_content=viral,
        engagement_trends=trends,
        recommendations=recommendations,
        insights=insights,
        record_count=len(records),
    )
