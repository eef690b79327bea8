"""
Metric Primitives — pure engagement formulas over one record or aggregate.

Every function accepts anything with views/likes/comments/shares counters
(an EngagementRecord or a PeriodBucket). Zero views is expected, not
exceptional: all branches return 0 instead of dividing.

Units: rates are percentages (0-100+). viral_potential and viral_score
are 0-1 fractions.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from records import EngagementRecord, as_utc

# ── Viral potential weights ──
# Shares matter most, then comments, then likes. Fixed, not configurable.
SHARE_WEIGHT = 0.5
COMMENT_WEIGHT = 0.3
LIKE_WEIGHT = 0.2
VIRAL_POTENTIAL_SCALE = 1000

# Population filter for viral_factor
VIRAL_POTENTIAL_THRESHOLD = 0.7
# "Viral content" selection
VIRAL_SCORE_THRESHOLD = 0.6

# Seconds of attention assumed per engagement-rate point
ENGAGEMENT_TIME_BASELINE_SECONDS = 30


def _rate(count: int, views: int) -> float:
    return (count / views) * 100 if views > 0 else 0.0


def engagement_rate(record) -> float:
    """(likes + comments) / views * 100."""
    if record.views <= 0:
        return 0.0
    return ((record.likes + record.comments) / record.views) * 100


def like_rate(record) -> float:
    return _rate(record.likes, record.views)


def comment_rate(record) -> float:
    return _rate(record.comments, record.views)


def share_rate(record) -> float:
    return _rate(record.shares, record.views)


def viral_potential(record) -> float:
    """
    Share-weighted virality estimate in [0, 1].

    Feeds the viral_factor population filter (threshold 0.7).
    """
    views = record.views
    if views <= 0:
        return 0.0

    score = (
        (record.shares / views) * SHARE_WEIGHT +
        (record.comments / views) * COMMENT_WEIGHT +
        (record.likes / views) * LIKE_WEIGHT
    ) * VIRAL_POTENTIAL_SCALE

    return min(max(score, 0.0), 1.0)


def viral_score(record) -> float:
    """
    Composite viral heuristic in [0, 1].

    Distinct from viral_potential: feeds "viral content" selection
    (threshold 0.6).
    """
    views = record.views
    if views <= 0:
        return 0.0

    overall = (record.likes + record.comments + record.shares) / views
    share_impact = record.shares / views * 10
    comment_quality = record.comments / views * 5

    return min(max((overall + share_impact + comment_quality) / 3, 0.0), 1.0)


def engagement_velocity(record: EngagementRecord, now: Optional[datetime] = None) -> float:
    """Total engagement per hour since publishing (minimum one hour)."""
    total = record.likes + record.comments + record.shares
    if record.created_at is None:
        return float(total)

    now = as_utc(now) if now else datetime.now(timezone.utc)
    hours = max(1.0, (now - record.created_at).total_seconds() / 3600)
    return total / hours


def engagement_score(record) -> float:
    """
    Weighted engagement quality in [0, 1]; a 10% weighted rate scores 1.

    Comments count double, shares triple.
    """
    if record.views <= 0:
        return 0.0
    weighted_rate = ((record.likes + record.comments * 2 + record.shares * 3) / record.views) * 100
    return round(min(weighted_rate / 10, 1.0), 2)


def identify_viral_factors(record: EngagementRecord,
                           now: Optional[datetime] = None) -> List[str]:
    """Name up to three reasons a record is spreading."""
    factors = []

    if engagement_rate(record) > 5:
        factors.append("High engagement rate")

    if share_rate(record) > 1:
        factors.append("High share rate")

    if engagement_velocity(record, now) > 10:
        factors.append("Rapid spread")

    if len(record.hashtags) > 5:
        factors.append("Effective hashtag strategy")

    return factors[:3]


@dataclass(frozen=True)
class EngagementMetrics:
    """Batch-level engagement rates (percent) and viral factor (fraction)."""
    like_rate: float = 0.0
    comment_rate: float = 0.0
    share_rate: float = 0.0
    engagement_rate: float = 0.0
    viral_factor: float = 0.0
    average_engagement_time: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_engagement_metrics(records: Sequence) -> EngagementMetrics:
    """
    Aggregate rates over a batch of records.

    Rates use summed counters (total likes / total views); viral_factor is
    the share of records whose viral_potential exceeds 0.7.
    """
    if not records:
        return EngagementMetrics()

    total_views = sum(r.views for r in records)
    total_likes = sum(r.likes for r in records)
    total_comments = sum(r.comments for r in records)
    total_shares = sum(r.shares for r in records)

    likes = _rate(total_likes, total_views)
    comments = _rate(total_comments, total_views)
    shares = _rate(total_shares, total_views)

    viral_count = sum(1 for r in records if viral_potential(r) > VIRAL_POTENTIAL_THRESHOLD)
    viral_factor = viral_count / len(records)

    avg_time = sum(
        engagement_rate(r) * ENGAGEMENT_TIME_BASELINE_SECONDS for r in records
    ) / len(records)

    return EngagementMetrics(
        like_rate=round(likes, 2),
        comment_rate=round(comments, 2),
        share_rate=round(shares, 2),
        engagement_rate=round(likes + comments + shares, 2),
        viral_factor=round(viral_factor, 2),
        average_engagement_time=round(avg_time, 2),
    )


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean, 0 for an empty input."""
    values = list(values)
    return sum(values) / len(values) if values else 0.0
