"""
Central feature-flag helpers.

Expensive or outward-facing generation can be switched off per deployment
without code changes.
"""

from __future__ import annotations

import os
from typing import Dict


DEFAULT_FLAGS: Dict[str, bool] = {
    # Image / video rendering inside campaigns
    "ENABLE_MEDIA_GENERATION": True,
    # Search-grounded website analysis
    "ENABLE_WEB_SEARCH_ANALYSIS": True,
    # Hourly weekly-rewards check when APScheduler runs
    "ENABLE_WEEKLY_REWARDS_JOB": True,
    # HTTP rate limiting
    "RATELIMIT_ENABLED": True,
}


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, None)
    if raw is None:
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def is_enabled(name: str) -> bool:
    return env_flag(name, DEFAULT_FLAGS.get(name, False))
