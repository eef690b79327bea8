"""
Aggregator — groups raw engagement records into per-category period buckets.

Buckets are keyed by (category, ISO year, ISO week) or (category,
calendar year, month). Periods without records are omitted rather than
zero-filled, so downstream series can be sparse.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from records import (
    EngagementRecord, PeriodRange, RecordFilter, RecordStore,
    WEEK, MONTH, as_utc, iso_weeks_in_year,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodBucket:
    """Summed counters for one category in one period."""
    category: str
    year: int               # ISO year for weeks, calendar year for months
    period: int
    unit: str = WEEK
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    record_count: int = 0

    @property
    def key(self) -> Tuple[int, int]:
        return (self.year, self.period)

    @property
    def engagement(self) -> int:
        """likes + comments, the engagement series used by trend analysis."""
        return self.likes + self.comments

    @property
    def label(self) -> str:
        if self.unit == MONTH:
            return f"{self.year}-{self.period:02d}"
        return f"{self.year}-W{self.period:02d}"

    def as_record(self, platform: str = "") -> EngagementRecord:
        """View the bucket as one synthetic record (for metric primitives)."""
        return EngagementRecord(
            content_id=f"{self.category}:{self.label}",
            platform=platform,
            category=self.category,
            views=self.views,
            likes=self.likes,
            comments=self.comments,
            shares=self.shares,
            year=self.year if self.unit == MONTH else None,
            week_year=self.year if self.unit == WEEK else None,
            week_number=self.period if self.unit == WEEK else None,
            month_number=self.period if self.unit == MONTH else None,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def current_period(now: datetime, unit: str) -> Tuple[int, int]:
    """
    Return (year, period number) for a moment, matching stored records:
    (calendar year, month) for months, (ISO year, ISO week) for weeks.
    """
    now = as_utc(now)
    if unit == MONTH:
        return now.year, now.month
    iso_year, iso_week, _ = now.isocalendar()
    return iso_year, iso_week


def periods_in_year(unit: str, year: int) -> int:
    return 12 if unit == MONTH else iso_weeks_in_year(year)


def lookback_windows(unit: str, year: int, period: int,
                     periods_back: int) -> Tuple[PeriodRange, ...]:
    """
    Build the period windows for the current period plus ``periods_back``
    earlier ones.

    When the look-back crosses into earlier years, one window per year
    covers its tail (OR-combined by the store). ISO years with 53 weeks
    are accounted for.
    """
    windows = [PeriodRange(year=year, unit=unit, start=max(1, period - periods_back))]

    remaining = periods_back - (period - 1)
    while remaining > 0:
        year -= 1
        size = periods_in_year(unit, year)
        windows.append(PeriodRange(year=year, unit=unit, start=max(1, size - remaining + 1)))
        remaining -= size

    return tuple(windows)


def bucket_records(records: Sequence[EngagementRecord], unit: str = WEEK) -> List[PeriodBucket]:
    """
    Sum counters per (category, year, period).

    Returns buckets sorted by (year, period) ascending, then category.
    Records without period information are skipped.
    """
    totals: Dict[Tuple[str, int, int], Dict[str, int]] = {}

    for record in records:
        year, period = record.period_key(unit)
        if year is None or period is None:
            logger.debug(f"Skipping record {record.content_id}: no period data")
            continue

        key = (record.category_label, year, period)
        bucket = totals.setdefault(key, {
            "views": 0, "likes": 0, "comments": 0, "shares": 0, "record_count": 0,
        })
        bucket["views"] += record.views
        bucket["likes"] += record.likes
        bucket["comments"] += record.comments
        bucket["shares"] += record.shares
        bucket["record_count"] += 1

    buckets = [
        PeriodBucket(category=category, year=year, period=period, unit=unit, **counts)
        for (category, year, period), counts in totals.items()
    ]
    buckets.sort(key=lambda b: (b.year, b.period, b.category))
    return buckets


def group_by_category(buckets: Sequence[PeriodBucket]) -> "OrderedDict[str, List[PeriodBucket]]":
    """Split buckets into chronological per-category series."""
    grouped: "OrderedDict[str, List[PeriodBucket]]" = OrderedDict()
    for bucket in sorted(buckets, key=lambda b: (b.year, b.period)):
        grouped.setdefault(bucket.category, []).append(bucket)
    return grouped


def fetch_period_buckets(store: RecordStore, platform: Optional[str], unit: str,
                         year: int, period: int, periods_back: int) -> List[PeriodBucket]:
    """Fetch the look-back window from the store and bucket it."""
    record_filter = RecordFilter(
        platform=platform,
        windows=lookback_windows(unit, year, period, periods_back),
    )
    records = store.fetch_records(record_filter)
    logger.info(
        f"Aggregating {len(records)} records for {platform or 'all platforms'} "
        f"({periods_back} {unit}s back from {year}/{period})"
    )
    return bucket_records(records, unit)
