"""
Platform Profiles — loads and validates per-platform industry standards.

Benchmark comparisons read their thresholds from platform_profiles.yaml
rather than hardcoding them per platform.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

import yaml

import config


class ProfileValidationError(Exception):
    """Raised when a platform profile is missing required fields."""
    pass


REQUIRED_FIELDS = ["display_name", "standards", "leader_engagement", "focus_metric", "focus_threshold"]
REQUIRED_STANDARDS = ["excellent", "good", "average", "poor", "like_rate", "comment_rate"]


@dataclass(frozen=True)
class IndustryStandards:
    excellent: float
    good: float
    average: float
    poor: float
    like_rate: float
    comment_rate: float


@dataclass(frozen=True)
class PlatformProfile:
    platform: str
    display_name: str
    standards: IndustryStandards
    leader_engagement: float
    focus_metric: str
    focus_threshold: float
    focus_recommendation: str = ""
    platform_recommendation: str = ""
    opportunity: str = ""


def _validate_profile(data: dict, platform: str) -> None:
    """Validate that all required fields are present."""
    if not isinstance(data, dict):
        raise ProfileValidationError(f"Platform profile '{platform}' must be a mapping.")

    missing = [f for f in REQUIRED_FIELDS if f not in data]
    if missing:
        raise ProfileValidationError(
            f"Platform profile '{platform}' is missing required fields: {missing}"
        )

    standards = data["standards"] or {}
    missing_standards = [f for f in REQUIRED_STANDARDS if f not in standards]
    if missing_standards:
        raise ProfileValidationError(
            f"Platform profile '{platform}' standards are missing: {missing_standards}"
        )

    if data["focus_metric"] not in ("like_rate", "comment_rate", "engagement_rate"):
        raise ProfileValidationError(
            f"Platform profile '{platform}' has unknown focus_metric '{data['focus_metric']}'"
        )


def _build_profile(data: dict, platform: str) -> PlatformProfile:
    """Construct PlatformProfile from validated YAML data."""
    standards = data["standards"]
    return PlatformProfile(
        platform=platform,
        display_name=data["display_name"],
        standards=IndustryStandards(
            excellent=float(standards["excellent"]),
            good=float(standards["good"]),
            average=float(standards["average"]),
            poor=float(standards["poor"]),
            like_rate=float(standards["like_rate"]),
            comment_rate=float(standards["comment_rate"]),
        ),
        leader_engagement=float(data["leader_engagement"]),
        focus_metric=data["focus_metric"],
        focus_threshold=float(data["focus_threshold"]),
        focus_recommendation=data.get("focus_recommendation", ""),
        platform_recommendation=data.get("platform_recommendation", ""),
        opportunity=data.get("opportunity", ""),
    )


def load_platform_profiles(path: Optional[Path] = None) -> Dict[str, PlatformProfile]:
    """
    Load every platform profile from YAML.

    Raises:
        ProfileValidationError: If the file is empty or a profile is invalid.
        FileNotFoundError: If the YAML file does not exist.
    """
    path = Path(path or config.PLATFORM_PROFILES_PATH)
    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if not data:
        raise ProfileValidationError(f"Platform profile file '{path}' is empty.")

    profiles = {}
    for platform, profile_data in data.items():
        _validate_profile(profile_data, platform)
        profiles[platform] = _build_profile(profile_data, platform)
    return profiles


@lru_cache(maxsize=1)
def _default_profiles() -> Dict[str, PlatformProfile]:
    return load_platform_profiles()


def get_platform_profile(platform: str) -> Optional[PlatformProfile]:
    """Return the profile for a platform from the default file, or None."""
    return _default_profiles().get(platform)
