"""
Benchmark Engine — nearest-rank percentile benchmarks of engagement rate.

Percentiles use index ceil(n * p) - 1 over the ascending-sorted rates
(no interpolation) so benchmarks reproduce exactly from the same sample.
A Benchmark is a point-in-time read, recomputed on demand.
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Tuple

import config
from metrics import engagement_rate, like_rate, comment_rate, mean
from platform_profiles import PlatformProfile, get_platform_profile
from records import EngagementRecord, RecordFilter, RecordStore

logger = logging.getLogger(__name__)

GRADE_DESCRIPTIONS = {
    "S": "Top 10% performance",
    "A": "Top 25% performance",
    "B": "Above the median",
    "C": "Average performance",
    "D": "Needs improvement",
}


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile over ascending values; 0 for empty input."""
    if not sorted_values:
        return 0.0
    index = math.ceil(len(sorted_values) * p) - 1
    index = max(0, min(index, len(sorted_values) - 1))
    return sorted_values[index]


@dataclass(frozen=True)
class Benchmark:
    """Engagement-rate percentiles and population averages (percent units)."""
    platform: str
    top10_percent: float = 0.0
    top25_percent: float = 0.0
    median: float = 0.0
    bottom25_percent: float = 0.0
    bottom10_percent: float = 0.0
    like_rate: float = 0.0
    comment_rate: float = 0.0
    engagement_rate: float = 0.0
    sample_size: int = 0

    def thresholds(self) -> List[Tuple[str, float]]:
        """Grade boundaries, best first."""
        return [
            ("S", self.top10_percent),
            ("A", self.top25_percent),
            ("B", self.median),
            ("C", self.bottom25_percent),
        ]

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, float):
                data[key] = round(value, 2)
        return data


def compute_benchmark(platform: str, records: Sequence[EngagementRecord]) -> Benchmark:
    """Build a Benchmark from a record population."""
    rates = sorted(engagement_rate(r) for r in records)

    return Benchmark(
        platform=platform,
        top10_percent=percentile(rates, 0.9),
        top25_percent=percentile(rates, 0.75),
        median=percentile(rates, 0.5),
        bottom25_percent=percentile(rates, 0.25),
        bottom10_percent=percentile(rates, 0.1),
        like_rate=mean(like_rate(r) for r in records),
        comment_rate=mean(comment_rate(r) for r in records),
        engagement_rate=mean(rates),
        sample_size=len(rates),
    )


def get_benchmarks(store: RecordStore, platform: str,
                   sample_size: Optional[int] = None) -> Benchmark:
    """Benchmark a platform against its most recent records."""
    sample_size = sample_size or config.BENCHMARK_SAMPLE_SIZE
    records = store.fetch_records(RecordFilter(
        platform=platform, limit=sample_size, newest_first=True,
    ))
    logger.info(f"Benchmarking {platform} over {len(records)} recent records")
    return compute_benchmark(platform, records)


def grade(value: float, benchmark: Benchmark) -> str:
    """Classify an engagement rate: S >= top10, A >= top25, B >= median, C >= bottom25, else D."""
    for letter, threshold in benchmark.thresholds():
        if value >= threshold:
            return letter
    return "D"


def next_grade_target(value: float, benchmark: Benchmark) -> Optional[Tuple[str, float]]:
    """Return (next grade, boundary to reach), or None when already S."""
    current = grade(value, benchmark)
    if current == "S":
        return None

    order = [letter for letter, _ in benchmark.thresholds()]
    boundaries = dict(benchmark.thresholds())
    if current == "D":
        return "C", boundaries["C"]
    target = order[order.index(current) - 1]
    return target, boundaries[target]


def grade_report(benchmark: Benchmark, value: Optional[float] = None) -> Dict:
    """Grade a value (default: the population average) with its next target."""
    value = benchmark.engagement_rate if value is None else value
    target = next_grade_target(value, benchmark)

    return {
        "grade_system": {
            "S": {"min": round(benchmark.top10_percent, 2), "description": GRADE_DESCRIPTIONS["S"]},
            "A": {"min": round(benchmark.top25_percent, 2), "max": round(benchmark.top10_percent, 2),
                  "description": GRADE_DESCRIPTIONS["A"]},
            "B": {"min": round(benchmark.median, 2), "max": round(benchmark.top25_percent, 2),
                  "description": GRADE_DESCRIPTIONS["B"]},
            "C": {"min": round(benchmark.bottom25_percent, 2), "max": round(benchmark.median, 2),
                  "description": GRADE_DESCRIPTIONS["C"]},
            "D": {"max": round(benchmark.bottom25_percent, 2), "description": GRADE_DESCRIPTIONS["D"]},
        },
        "your_grade": grade(value, benchmark),
        "next_level": (
            {"grade": target[0], "min_engagement_rate": round(target[1], 2)}
            if target else None
        ),
    }


def market_position(benchmark: Benchmark) -> str:
    current = benchmark.engagement_rate
    if current >= benchmark.top10_percent:
        return "market_leader"
    if current >= benchmark.top25_percent:
        return "strong_competitor"
    if current >= benchmark.median:
        return "average_performer"
    return "challenger"


def compare_to_industry(benchmark: Benchmark,
                        profile: Optional[PlatformProfile] = None) -> Dict:
    """Place a Benchmark's average engagement against industry standards."""
    profile = profile or get_platform_profile(benchmark.platform)
    if profile is None:
        return {"platform": benchmark.platform, "performance_level": "unknown"}

    standards = profile.standards
    current = benchmark.engagement_rate

    if current >= standards.excellent:
        level = "excellent"
    elif current >= standards.good:
        level = "good"
    elif current >= standards.average:
        level = "average"
    else:
        level = "poor"

    strong_points = []
    if benchmark.like_rate >= standards.like_rate:
        strong_points.append("High like rate")
    if benchmark.comment_rate >= standards.comment_rate:
        strong_points.append("Active comment rate")
    if current >= standards.good:
        strong_points.append("Strong overall engagement")

    improvement_areas = []
    if benchmark.like_rate < standards.like_rate:
        improvement_areas.append("Raise like rate")
    if benchmark.comment_rate < standards.comment_rate:
        improvement_areas.append("Encourage comments")
    if current < standards.average:
        improvement_areas.append("Lift overall engagement")

    gap_to_leader = max(0.0, profile.leader_engagement - current)
    if gap_to_leader > 2:
        effort = "high"
    elif gap_to_leader > 1:
        effort = "medium"
    else:
        effort = "low"

    return {
        "platform": benchmark.platform,
        "your_performance": round(current, 2),
        "performance_level": level,
        "gap_analysis": {
            "to_excellent": round(max(0.0, standards.excellent - current), 2),
            "to_good": round(max(0.0, standards.good - current), 2),
            "to_average": round(max(0.0, standards.average - current), 2),
        },
        "strong_points": strong_points,
        "improvement_areas": improvement_areas,
        "market_position": market_position(benchmark),
        "competitive_gap": {
            "gap_to_leader": round(gap_to_leader, 2),
            # months at +0.1 points per month
            "months_to_close": math.ceil(round(gap_to_leader * 10, 6)),
            "effort": effort,
        },
        "opportunities": [o for o in (profile.opportunity, "Cross-platform content adaptation") if o],
    }


def benchmark_recommendations(benchmark: Benchmark,
                              profile: Optional[PlatformProfile] = None) -> List[str]:
    """Rule-based recommendations from where the average sits."""
    profile = profile or get_platform_profile(benchmark.platform)
    current = benchmark.engagement_rate
    recommendations = []

    if current < benchmark.median:
        recommendations.append(f"Revisit the core engagement strategy on {benchmark.platform}")
        recommendations.append("Improve content quality and interaction with the audience")
    elif current < benchmark.top25_percent:
        recommendations.append("Differentiate content to break into the top 25%")
        recommendations.append("Analyze and reproduce the patterns of high performers")
    else:
        recommendations.append("Sustain top-tier performance and keep iterating")
        recommendations.append("Establish a category-leader position")

    if profile:
        focus_value = getattr(benchmark, profile.focus_metric)
        if focus_value < profile.focus_threshold and profile.focus_recommendation:
            recommendations.append(profile.focus_recommendation)
        if profile.platform_recommendation:
            recommendations.append(profile.platform_recommendation)

    return recommendations[:5]


def compare_platforms(benchmarks: Sequence[Benchmark]) -> Dict:
    """Cross-platform comparison; needs at least two benchmarks."""
    if len(benchmarks) < 2:
        return {"error": "At least 2 platforms required for comparison"}

    best = max(benchmarks, key=lambda b: b.engagement_rate)
    top_rate = best.engagement_rate

    gaps = []
    for b in benchmarks:
        gap = top_rate - b.engagement_rate
        gaps.append({
            "platform": b.platform,
            "gap": round(gap, 2),
            "percentage": round(gap / top_rate * 100, 1) if top_rate > 0 else 0.0,
        })

    recommendations = []
    largest = max(gaps, key=lambda g: g["gap"])
    if largest["gap"] > 1.0:
        recommendations.append(f"Prioritize strategy work on {largest['platform']}")
    recommendations.append("Tailor content to each platform's characteristics")
    recommendations.append("Roll out best practices from the strongest platform")

    return {
        "comparison": [
            {
                "platform": b.platform,
                "engagement_rate": round(b.engagement_rate, 2),
                "like_rate": round(b.like_rate, 2),
                "comment_rate": round(b.comment_rate, 2),
                "top_performer_threshold": round(b.top10_percent, 2),
            }
            for b in benchmarks
        ],
        "best_performing_platform": best.platform,
        "performance_gaps": gaps,
        "average_engagement": round(mean(b.engagement_rate for b in benchmarks), 2),
        "recommendations": recommendations,
    }


def benchmark_report(benchmark: Benchmark) -> Dict:
    """Benchmark plus grades, industry comparison and recommendations."""
    return {
        "benchmark": benchmark.to_dict(),
        "grades": grade_report(benchmark),
        "industry_comparison": compare_to_industry(benchmark),
        "recommendations": benchmark_recommendations(benchmark),
    }
