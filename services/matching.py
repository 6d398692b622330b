from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from core.config.campaign_prompts import MATCHING_PROMPT
from core.errors import ProviderError
from core.provider import ContentProvider
from core.records import MatchResult, User, Website

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 60
MAX_DAILY_MATCHES = 50
MAX_CANDIDATES = 100
DEFAULT_ENGAGEMENT_SECONDS = 30

MATCH_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "websiteId": {"type": "string"},
            "matchScore": {"type": "integer"},
            "reasoning": {"type": "string"},
            "predictedEngagementTime": {"type": "integer"},
        },
    },
}


def _provider() -> ContentProvider:
    from services.gemini_service import gemini_service
    return gemini_service


def _candidate(w: Website) -> Dict[str, Any]:
    return {
        "id": w.id,
        "url": w.url,
        "name": w.name,
        "niche": w.niche,
        "quality": w.quality_score,
        "audience": w.target_audience_profile,
        "interests": w.audience_interests,
        "tags": w.semantic_tags,
    }


def find_matches(
    user: User,
    websites: List[Website],
    user_history: Iterable[str] = (),
    credit_multiplier: float = 1.0,
    provider: Optional[ContentProvider] = None,
) -> List[MatchResult]:
    """Rank unvisited websites for a generator. Empty on any provider failure."""
    visited = set(user_history)
    unvisited = [w for w in websites if w.id not in visited]
    if not unvisited:
        return []

    candidates = unvisited[:MAX_CANDIDATES]
    by_id = {w.id: w for w in candidates}
    prompt = MATCHING_PROMPT.format(
        interests=", ".join(user.interests or []),
        sites=json.dumps([_candidate(w) for w in candidates]),
        limit=min(MAX_DAILY_MATCHES, len(candidates)),
    )

    provider = provider or _provider()
    try:
        raw = provider.generate_structured(prompt, MATCH_SCHEMA)
    except ProviderError as e:
        logger.warning("Matching failed for user %s: %s", user.id, e)
        return []
    if not isinstance(raw, list):
        logger.warning("Matching returned %s instead of a list", type(raw).__name__)
        return []

    results: List[MatchResult] = []
    for m in raw:
        if not isinstance(m, dict):
            continue
        website_id = m.get("websiteId")
        website = by_id.get(website_id) if isinstance(website_id, str) else None
        if website is None:
            continue
        try:
            score = min(100, int(float(m.get("matchScore") or 0) * credit_multiplier))
        except (TypeError, ValueError):
            continue
        try:
            engagement = int(m.get("predictedEngagementTime") or DEFAULT_ENGAGEMENT_SECONDS)
        except (TypeError, ValueError):
            engagement = DEFAULT_ENGAGEMENT_SECONDS
        if score < MATCH_THRESHOLD:
            continue
        results.append(
            MatchResult(
                website=website,
                match_score=score,
                reasoning=str(m.get("reasoning") or ""),
                predicted_engagement_time=engagement,
            )
        )
    return results[:MAX_DAILY_MATCHES]
