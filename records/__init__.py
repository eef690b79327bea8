"""
Records — read-only view of the engagement record store.

The engine never owns raw records; it reads immutable snapshots through
the RecordStore interface. Swap the concrete store (SQLite, warehouse,
API) without touching the analytics modules.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

YOUTUBE = "youtube"
TIKTOK = "tiktok"
SUPPORTED_PLATFORMS = (YOUTUBE, TIKTOK)

DEFAULT_CATEGORY = "Other"

WEEK = "week"
MONTH = "month"


def normalize_platform(platform: Optional[str]) -> Optional[str]:
    """Lower-case a platform name and reject anything unsupported."""
    if platform is None or platform == "":
        return None
    value = str(platform).strip().lower()
    if value not in SUPPORTED_PLATFORMS:
        raise ValueError(
            f"Unsupported platform '{platform}'. "
            f"Expected one of: {', '.join(SUPPORTED_PLATFORMS)}"
        )
    return value


def iso_weeks_in_year(year: int) -> int:
    """52 or 53; Dec 28 always falls in the last ISO week."""
    return date(year, 12, 28).isocalendar()[1]


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass(frozen=True)
class EngagementRecord:
    """One piece of content's counters at fetch time."""
    content_id: str
    platform: str                       # "youtube", "tiktok"
    category: Optional[str] = None      # absent -> bucketed as "Other"
    title: Optional[str] = None
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    created_at: Optional[datetime] = None
    hashtags: Tuple[str, ...] = field(default_factory=tuple)
    week_number: Optional[int] = None   # ISO week of created_at
    month_number: Optional[int] = None  # 1-12
    year: Optional[int] = None          # calendar year
    week_year: Optional[int] = None     # ISO year that owns week_number

    def __post_init__(self):
        for counter in ("views", "likes", "comments", "shares"):
            value = getattr(self, counter)
            object.__setattr__(self, counter, max(int(value or 0), 0))

        if self.created_at is not None:
            created = as_utc(self.created_at)
            object.__setattr__(self, "created_at", created)
            iso_year, iso_week, _ = created.isocalendar()
            if self.week_number is None:
                object.__setattr__(self, "week_number", iso_week)
            if self.week_year is None:
                object.__setattr__(self, "week_year", iso_year)
            if self.month_number is None:
                object.__setattr__(self, "month_number", created.month)
            if self.year is None:
                object.__setattr__(self, "year", created.year)

        object.__setattr__(self, "hashtags", tuple(self.hashtags or ()))

    def period_key(self, unit: str) -> Tuple[Optional[int], Optional[int]]:
        """(ISO year, ISO week) for weeks, (calendar year, month) for months."""
        if unit == MONTH:
            return self.year, self.month_number
        return self.week_year, self.week_number

    @property
    def category_label(self) -> str:
        return self.category or DEFAULT_CATEGORY

    @property
    def total_engagement(self) -> int:
        return self.likes + self.comments + self.shares


@dataclass(frozen=True)
class PeriodRange:
    """
    One (year, period) window. ``start``/``end`` are inclusive period
    numbers; ``end=None`` means open-ended. For weeks ``year`` is the ISO
    year, for months the calendar year.
    """
    year: int
    unit: str = WEEK                    # "week" | "month"
    start: int = 1
    end: Optional[int] = None


@dataclass(frozen=True)
class RecordFilter:
    """
    Filter passed to RecordStore.fetch_records.

    ``windows`` are OR-combined so a look-back can straddle a year boundary.
    """
    platform: Optional[str] = None
    category: Optional[str] = None
    windows: Tuple[PeriodRange, ...] = ()
    min_year: Optional[int] = None
    limit: Optional[int] = None
    newest_first: bool = False


class RecordStore(ABC):
    """Abstract source of engagement records."""

    @abstractmethod
    def fetch_records(self, record_filter: RecordFilter) -> List[EngagementRecord]:
        """Return records matching the filter."""
        ...
