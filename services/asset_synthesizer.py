"""
Asset synthesizer: turns one campaign action into one CampaignAsset.

Secondary text generation and media rendering are separate failure
domains. A failed text call leaves a short placeholder as content and a
failed image or video call leaves a text-only asset; neither raises.
"""

from __future__ import annotations

import functools
import logging
import re
import secrets
from typing import Optional
from urllib.parse import quote_plus

from core.campaign_actions import (
    TOOL_ACTIONS,
    AnalyticsSetup,
    CampaignAction,
    DirectorySubmission,
    LocalListing,
    PressRelease,
    SearchEngineSubmission,
    SeoArticle,
    SocialPost,
    UnknownAction,
    VideoContent,
    Web2Post,
)
from core.config import campaign_prompts as prompts
from core.errors import ProviderError
from core.provider import ContentProvider
from core.records import AssetType, CampaignAsset, MediaType, Website, epoch_ms, new_id, utc_now
from services.feature_flags import is_enabled

logger = logging.getLogger(__name__)

GENERATION_ERROR_TEXT = "Content generation error."


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", (text or "").lower()) or "site"


def _host_for(platform: str) -> str:
    return re.sub(r"[^a-z0-9.-]+", "", (platform or "").lower()) or "web"


def _token() -> str:
    return secrets.token_hex(3)


def _asset(kind: AssetType, platform: str, content: str, **extra) -> CampaignAsset:
    return CampaignAsset(
        id=new_id(),
        type=kind,
        platform=platform,
        content=content,
        created_at=epoch_ms(utc_now()),
        **extra,
    )


def _write(provider: ContentProvider, prompt: str, long_form: bool = False) -> str:
    try:
        return provider.generate_text(prompt, long_form=long_form)
    except ProviderError as e:
        logger.warning("Secondary generation failed: %s", e)
        return GENERATION_ERROR_TEXT


def _image(provider: ContentProvider, prompt: str, size: str) -> Optional[str]:
    if not is_enabled("ENABLE_MEDIA_GENERATION"):
        return None
    try:
        return provider.generate_image(prompt, size=size)
    except ProviderError as e:
        logger.warning("Image generation failed: %s", e)
        return None


def _video(provider: ContentProvider, prompt: str) -> Optional[str]:
    if not is_enabled("ENABLE_MEDIA_GENERATION"):
        return None
    try:
        return provider.generate_video(prompt)
    except ProviderError as e:
        logger.warning("Video generation failed: %s", e)
        return None


@functools.singledispatch
def build_asset(action: CampaignAction, website: Website, provider: ContentProvider) -> CampaignAsset:
    name = getattr(action, "name", "") or action.tool_name or "unknown"
    logger.warning("No synthesizer for campaign action %s; emitting placeholder", name)
    return _asset(AssetType.ARTICLE, "web", f"Unsupported campaign action: {name}")


build_asset.register(UnknownAction, build_asset.dispatch(object))


@build_asset.register(SocialPost)
def _social_post(action, website, provider):
    image = _image(provider, prompts.SOCIAL_IMAGE_PROMPT.format(message=action.message), website.preferred_image_size or "1K")
    tags = " ".join(action.hashtags)
    return _asset(
        AssetType.SOCIAL_POST,
        action.platform,
        f"{action.message}\n\nTags: {tags}".rstrip(),
        url=f"https://{_host_for(action.platform)}.com/post/gen-{_token()}",
        media_url=image,
        media_type=MediaType.IMAGE if image else None,
    )


@build_asset.register(VideoContent)
def _video_content(action, website, provider):
    prompt = action.visual_prompt or prompts.VIDEO_FALLBACK_PROMPT.format(name=website.name, title=action.title)
    video = _video(provider, prompt)
    return _asset(
        AssetType.VIDEO_CONTENT,
        action.platform,
        f"TITLE: {action.title}\n\nVISUAL: {action.visual_prompt}",
        url=f"https://{_host_for(action.platform)}.com/shorts/gen-{_token()}",
        media_url=video,
        media_type=MediaType.VIDEO if video else None,
    )


@build_asset.register(SeoArticle)
def _seo_article(action, website, provider):
    prompt = prompts.SEO_ARTICLE_PROMPT.format(
        topic=action.topic,
        name=website.name,
        url=website.url,
        keywords=", ".join(action.target_keywords),
        outline=action.outline or "your choice",
    )
    return _asset(AssetType.ARTICLE, "Internal Blog", _write(provider, prompt, long_form=True))


@build_asset.register(Web2Post)
def _web2_post(action, website, provider):
    prompt = prompts.WEB2_POST_PROMPT.format(
        platform=action.platform,
        title=action.title,
        focus=action.content,
        url=website.url,
        anchor=action.backlink_anchor,
    )
    return _asset(
        AssetType.ARTICLE,
        action.platform,
        _write(provider, prompt, long_form=True),
        url=f"https://{_host_for(action.platform)}.com/{_slug(website.name)}-update",
    )


@build_asset.register(PressRelease)
def _press_release(action, website, provider):
    prompt = prompts.PRESS_RELEASE_PROMPT.format(
        headline=action.headline, body=action.body, outlet=action.outlet, name=website.name
    )
    return _asset(
        AssetType.ARTICLE,
        action.outlet,
        _write(provider, prompt, long_form=True),
        url=f"https://pr-newswire.com/{epoch_ms(utc_now())}",
    )


@build_asset.register(DirectorySubmission)
def _directory_submission(action, website, provider):
    prompt = prompts.DIRECTORY_PROMPT.format(
        name=website.name,
        url=website.url,
        directory=action.directory_url,
        category=action.category,
        niche=website.niche,
    )
    text = _write(provider, prompt)
    return _asset(
        AssetType.DIRECTORY_SUBMISSION,
        "Directory",
        f"TARGET: {action.directory_url}\n\nSUBMISSION TEXT:\n{text}",
        url=f"{action.directory_url.rstrip('/')}/listing/{_slug(website.name)}",
    )


@build_asset.register(SearchEngineSubmission)
def _search_submission(action, website, provider):
    prompt = prompts.SITEMAP_PROMPT.format(url=website.url, today=utc_now().date().isoformat())
    return _asset(
        AssetType.SEARCH_SUBMISSION,
        action.engine,
        _write(provider, prompt),
        url=f"https://{_host_for(action.engine)}.com/webmasters/status",
    )


@build_asset.register(LocalListing)
def _local_listing(action, website, provider):
    prompt = prompts.LOCAL_LISTING_PROMPT.format(
        business=action.business_name or website.name,
        category=action.category,
        service=action.service,
        url=website.url,
    )
    return _asset(
        AssetType.LOCAL_LISTING,
        action.service,
        _write(provider, prompt),
        url=f"https://{_host_for(action.service)}.com/maps?q={quote_plus(action.business_name or website.name)}",
    )


@build_asset.register(AnalyticsSetup)
def _analytics_setup(action, website, provider):
    prompt = prompts.ANALYTICS_PROMPT.format(platform=action.platform, tracking_id=action.tracking_id)
    return _asset(
        AssetType.ANALYTICS_SETUP,
        action.platform,
        _write(provider, prompt),
        url="https://analytics.google.com/",
    )


_unregistered = sorted(
    cls.__name__ for cls in TOOL_ACTIONS.values() if build_asset.dispatch(cls) is build_asset.dispatch(object)
)
if _unregistered:
    raise RuntimeError(f"Campaign actions without a synthesizer: {', '.join(_unregistered)}")


def synthesize_asset(action: CampaignAction, website: Website, provider: Optional[ContentProvider] = None) -> CampaignAsset:
    if provider is None:
        from services.gemini_service import gemini_service as provider
    return build_asset(action, website, provider)
