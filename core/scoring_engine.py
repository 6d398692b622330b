from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, Iterable, Optional

from core.records import AssetType

BASE_CREDITS = 5
STREAK_BONUS_EVERY = 5
MAX_STREAK_BONUS = 5
BASE_POINTS = 10
VISIT_COST_CREDITS = 1

TOP_CONTRIBUTOR_MULTIPLIER = 1.5
DEFAULT_MULTIPLIER = 1.0

# Backlink-class assets move less traffic than content and indexing assets.
TRAFFIC_WEIGHTS: Dict[AssetType, int] = {
    AssetType.BACKLINK: 10,
    AssetType.DIRECTORY_SUBMISSION: 10,
    AssetType.LOCAL_LISTING: 10,
    AssetType.ARTICLE: 50,
    AssetType.SOCIAL_POST: 50,
    AssetType.VIDEO_CONTENT: 50,
    AssetType.VIDEO_SCRIPT: 50,
    AssetType.SEARCH_SUBMISSION: 50,
    AssetType.ANALYTICS_SETUP: 0,
}

BACKLINK_TYPES = frozenset({AssetType.BACKLINK, AssetType.DIRECTORY_SUBMISSION, AssetType.LOCAL_LISTING})
POST_TYPES = frozenset({AssetType.ARTICLE, AssetType.SOCIAL_POST, AssetType.VIDEO_CONTENT})


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def next_streak(current: int, last_active: Optional[datetime], now: datetime) -> int:
    """Streak after an activity at `now`, counted in UTC calendar days."""
    if last_active is None:
        return 1
    gap_days = (now.date() - last_active.date()).days
    if gap_days == 0:
        return current
    if gap_days == 1:
        return current + 1
    return 1


def credits_for_streak(streak_days: int) -> int:
    bonus = min(max(streak_days, 0) // STREAK_BONUS_EVERY, MAX_STREAK_BONUS)
    return BASE_CREDITS + bonus


def points_for_rating(multiplier: Optional[float]) -> int:
    return round_half_up(BASE_POINTS * (multiplier or DEFAULT_MULTIPLIER))


def debit_credits(balance: Optional[int], amount: int = VISIT_COST_CREDITS) -> int:
    return max(0, (balance or 0) - amount)


def running_average(average: float, count: int, new_score: float) -> float:
    return (average * count + new_score) / (count + 1)


def estimate_traffic(asset_types: Iterable[AssetType]) -> int:
    return sum(TRAFFIC_WEIGHTS.get(t, 0) for t in asset_types)
