"""
Website registry: AI profiling of an owner's site plus the stored listing.

Analysis is best effort. When the provider is down or returns junk, the
site is still listed under a default profile named after its page title
(or hostname) so the owner is never blocked on the model.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

from core.config.campaign_prompts import WEBSITE_ANALYSIS_PROMPT
from core.errors import ProviderError, ValidationError
from core.provider import ContentProvider
from core.records import EngagementLevel, User, UserRole, Website, as_utc, new_id, to_iso, utc_now
from services.feature_flags import is_enabled
from services.store import STORAGE_KEYS, KeyValueStore

logger = logging.getLogger(__name__)

ANALYSIS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "Official website title"},
        "niche": {"type": "string", "description": "Primary category"},
        "qualityScore": {"type": "integer", "description": "0-100 quality rating"},
        "targetAudienceProfile": {"type": "string", "description": "Detailed audience summary"},
        "audienceAge": {"type": "string", "description": "Age range like 18-35"},
        "audienceGender": {"type": "string", "description": "Male/Female/Neutral"},
        "audienceInterests": {"type": "array", "items": {"type": "string"}, "description": "5-10 specific interests"},
        "audienceIntent": {"type": "string", "description": "Primary user intent"},
        "contentTypes": {"type": "array", "items": {"type": "string"}, "description": "All content types found"},
        "detectedCTAs": {"type": "array", "items": {"type": "string"}, "description": "Conversion elements"},
        "semanticTags": {"type": "array", "items": {"type": "string"}, "description": "10-15 tags for matching"},
        "metaDescription": {"type": "string"},
        "metaKeywords": {"type": "array", "items": {"type": "string"}},
        "engagementPrediction": {
            "type": "string",
            "enum": [e.value for e in EngagementLevel],
            "description": "Expected user engagement level",
        },
        "aiAnalysisSummary": {"type": "string", "description": "2-3 sentence summary"},
    },
    "required": [
        "name",
        "niche",
        "qualityScore",
        "targetAudienceProfile",
        "audienceInterests",
        "contentTypes",
        "semanticTags",
        "engagementPrediction",
        "aiAnalysisSummary",
    ],
}

# Keys the model may set on a Website; totals and ownership never come from the model.
PROFILE_KEYS = tuple(ANALYSIS_SCHEMA["properties"].keys())


def _provider() -> ContentProvider:
    from services.gemini_service import gemini_service
    return gemini_service


def _fetch_html(url: str, timeout: int = 8) -> Optional[str]:
    headers = {
        "User-Agent": "Mozilla/5.0 (compatible; TrafficMarketplace/1.0)",
        "Accept-Language": "en-US,en;q=0.9",
    }
    resp = requests.get(url, timeout=timeout, headers=headers, allow_redirects=True)
    if not resp.ok or not resp.text:
        return None
    return resp.text


def page_title(url: str) -> Optional[str]:
    try:
        html = _fetch_html(url)
    except requests.RequestException as e:
        logger.info("Title fetch failed for %s: %s", url, e)
        return None
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    if soup.title and soup.title.string:
        return soup.title.string.strip() or None
    return None


def _hostname(url: str) -> str:
    parsed = urlparse(url if "://" in url else f"https://{url}")
    return parsed.hostname or url


def default_profile(url: str, owner_description: str) -> Dict[str, Any]:
    return {
        "name": page_title(url) or _hostname(url),
        "niche": "Uncategorized",
        "qualityScore": 50,
        "targetAudienceProfile": owner_description or "General audience",
        "audienceInterests": ["general"],
        "contentTypes": ["Website"],
        "semanticTags": ["website"],
        "engagementPrediction": EngagementLevel.MEDIUM.value,
        "aiAnalysisSummary": f"Analysis unavailable. Owner description: {owner_description}",
        "detectedCTAs": [],
        "metaDescription": "",
        "metaKeywords": [],
    }


def _clean_profile(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ProviderError("Website analysis was not a JSON object")
    profile = {k: raw[k] for k in PROFILE_KEYS if raw.get(k) not in (None, "")}
    if "qualityScore" in profile:
        try:
            profile["qualityScore"] = max(0, min(100, int(profile["qualityScore"])))
        except (TypeError, ValueError):
            profile.pop("qualityScore")
    if profile.get("engagementPrediction") not in {e.value for e in EngagementLevel}:
        profile["engagementPrediction"] = EngagementLevel.MEDIUM.value
    return profile


def analyze_website(
    url: str,
    owner_description: str,
    target_audience: str,
    provider: Optional[ContentProvider] = None,
) -> Dict[str, Any]:
    """Return a camelCase profile dict for `url`; never raises on provider failure."""
    provider = provider or _provider()
    prompt = WEBSITE_ANALYSIS_PROMPT.format(url=url, description=owner_description, audience=target_audience)
    try:
        raw = provider.generate_structured(
            prompt, ANALYSIS_SCHEMA, use_search=is_enabled("ENABLE_WEB_SEARCH_ANALYSIS")
        )
        return _clean_profile(raw)
    except ProviderError as e:
        logger.warning("Website analysis failed for %s: %s", url, e)
        return default_profile(url, owner_description)


def add_website(
    store: KeyValueStore,
    owner: User,
    url: str,
    description: str,
    target_audience: str,
    provider: Optional[ContentProvider] = None,
    now: Optional[datetime] = None,
) -> Website:
    url = (url or "").strip()
    if not url:
        raise ValidationError("Website URL is required")
    if owner.role != UserRole.OWNER:
        raise ValidationError("Only website owners can list websites")

    profile = analyze_website(url, description, target_audience, provider=provider)
    website = Website.from_dict(
        {
            **profile,
            "id": new_id(),
            "ownerId": owner.id,
            "url": url,
            "name": profile.get("name") or _hostname(url),
            "description": description or "",
            "createdAt": to_iso(as_utc(now or utc_now())),
            "totalVisits": 0,
            "averageRating": 0.0,
        }
    )

    with store.locked():
        sites = store.get_list(STORAGE_KEYS["WEBSITES"])
        sites.append(website.to_dict())
        store.set_list(STORAGE_KEYS["WEBSITES"], sites)

    logger.info("Listed website %s (%s) for owner %s", website.id, website.url, owner.id)
    return website


def get_all_websites(store: KeyValueStore) -> List[Website]:
    return [Website.from_dict(w) for w in store.get_list(STORAGE_KEYS["WEBSITES"])]


def get_websites_by_owner(store: KeyValueStore, owner_id: str) -> List[Website]:
    return [w for w in get_all_websites(store) if w.owner_id == owner_id]


def get_site_by_id(store: KeyValueStore, website_id: str) -> Optional[Website]:
    for w in store.get_list(STORAGE_KEYS["WEBSITES"]):
        if w.get("id") == website_id:
            return Website.from_dict(w)
    return None
