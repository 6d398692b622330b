"""
Closed set of actions the campaign agent may request.

Each action is a frozen dataclass carrying its own argument bag, its tool
declaration (name, description, JSON-schema parameters) and a one-line
progress detail. `parse_action` turns a raw tool call into one of these;
unknown tool names become `UnknownAction` so the loop can keep going.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Tuple, Type

from core.records import camel_case

logger = logging.getLogger(__name__)


def _string(description: str | None = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "string"}
    if description:
        out["description"] = description
    return out


def _string_list() -> Dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}}


def _object(properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


@dataclass(frozen=True)
class CampaignAction:
    tool_name: ClassVar[str] = ""
    label: ClassVar[str] = "Traffic Action"
    description: ClassVar[str] = ""
    parameters: ClassVar[Dict[str, Any]] = {}

    @classmethod
    def declaration(cls) -> Dict[str, Any]:
        return {"name": cls.tool_name, "description": cls.description, "parameters": cls.parameters}

    @classmethod
    def from_args(cls, args: Mapping[str, Any] | None):
        args = dict(args or {})
        missing = [r for r in cls.parameters.get("required", []) if args.get(r) in (None, "", [])]
        if missing:
            logger.warning("Tool %s called without %s", cls.tool_name, ", ".join(missing))
        kwargs = {}
        for f in fields(cls):
            value = args.get(f.metadata.get("arg") or camel_case(f.name))
            if value is None:
                continue
            if isinstance(f.default, tuple):
                if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
                    value = [value]
                value = tuple(str(v) for v in value)
            else:
                value = str(value)
            kwargs[f.name] = value
        return cls(**kwargs)

    def detail(self) -> str:
        return "Processing..."


@dataclass(frozen=True)
class DirectorySubmission(CampaignAction):
    tool_name: ClassVar[str] = "submit_to_directory"
    label: ClassVar[str] = "Directory Submission"
    description: ClassVar[str] = "Submit website to a high-DA web directory"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {"directoryUrl": _string(), "category": _string(), "description": _string()},
        ["directoryUrl", "category", "description"],
    )

    directory_url: str = ""
    category: str = "General"
    description_text: str = field(default="", metadata={"arg": "description"})

    def detail(self) -> str:
        return f"Submitting to {self.directory_url or 'Niche Directory'}"


@dataclass(frozen=True)
class Web2Post(CampaignAction):
    tool_name: ClassVar[str] = "create_web2_post"
    label: ClassVar[str] = "Web 2.0 Blog Post"
    description: ClassVar[str] = "Create a blog post on platforms like Medium, Blogger, or WordPress"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {"platform": _string(), "title": _string(), "content": _string(), "backlinkAnchor": _string()},
        ["platform", "title", "content", "backlinkAnchor"],
    )

    platform: str = "Medium"
    title: str = ""
    content: str = ""
    backlink_anchor: str = ""

    def detail(self) -> str:
        return f"Publishing on {self.platform}"


@dataclass(frozen=True)
class SocialPost(CampaignAction):
    tool_name: ClassVar[str] = "post_to_social_media"
    label: ClassVar[str] = "Social Media Blast"
    description: ClassVar[str] = "Create and schedule a social media post with an image"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {"platform": _string(), "message": _string(), "hashtags": _string_list()},
        ["platform", "message", "hashtags"],
    )

    platform: str = "Twitter"
    message: str = ""
    hashtags: Tuple[str, ...] = ()

    def detail(self) -> str:
        return f"Posting to {self.platform}"


@dataclass(frozen=True)
class SeoArticle(CampaignAction):
    tool_name: ClassVar[str] = "generate_seo_article"
    label: ClassVar[str] = "SEO Content Gen"
    description: ClassVar[str] = "Generate a full SEO article for content marketing"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {"topic": _string(), "targetKeywords": _string_list(), "outline": _string()},
        ["topic", "targetKeywords"],
    )

    topic: str = ""
    target_keywords: Tuple[str, ...] = ()
    outline: str = ""

    def detail(self) -> str:
        return f"Drafting: {self.topic}"


@dataclass(frozen=True)
class PressRelease(CampaignAction):
    tool_name: ClassVar[str] = "submit_press_release"
    label: ClassVar[str] = "PR Distribution"
    description: ClassVar[str] = "Submit a press release to news aggregators"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {"headline": _string(), "body": _string(), "outlet": _string()},
        ["headline", "body", "outlet"],
    )

    headline: str = ""
    body: str = ""
    outlet: str = "PR Newswire"

    def detail(self) -> str:
        return f"Outlet: {self.outlet}"


@dataclass(frozen=True)
class SearchEngineSubmission(CampaignAction):
    tool_name: ClassVar[str] = "submit_to_search_engine"
    label: ClassVar[str] = "Search Indexing"
    description: ClassVar[str] = "Submit website URL to search engines for indexing"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {"engine": _string(), "sitemapUrl": _string()},
        ["engine", "sitemapUrl"],
    )

    engine: str = "Google"
    sitemap_url: str = ""

    def detail(self) -> str:
        return f"Pinging {self.engine}"


@dataclass(frozen=True)
class VideoContent(CampaignAction):
    tool_name: ClassVar[str] = "create_video_content"
    label: ClassVar[str] = "Video Creation"
    description: ClassVar[str] = "Generate a short promotional video"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {
            "platform": _string(),
            "title": _string(),
            "visualPrompt": _string("Description of the video scene to generate"),
        },
        ["platform", "title", "visualPrompt"],
    )

    platform: str = "YouTube"
    title: str = ""
    visual_prompt: str = ""

    def detail(self) -> str:
        return f"Scripting for {self.platform}"


@dataclass(frozen=True)
class LocalListing(CampaignAction):
    tool_name: ClassVar[str] = "create_local_listing"
    label: ClassVar[str] = "Local Map Listing"
    description: ClassVar[str] = "Create a business listing on map services"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {"service": _string(), "businessName": _string(), "category": _string()},
        ["service", "businessName", "category"],
    )

    service: str = "Google Maps"
    business_name: str = ""
    category: str = ""

    def detail(self) -> str:
        return f"Listing on {self.service}"


@dataclass(frozen=True)
class AnalyticsSetup(CampaignAction):
    tool_name: ClassVar[str] = "setup_analytics_tracking"
    label: ClassVar[str] = "Analytics Config"
    description: ClassVar[str] = "Configure analytics tools for the website"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {"platform": _string("e.g., Google Analytics, Facebook Pixel"), "trackingId": _string()},
        ["platform", "trackingId"],
    )

    platform: str = "Google Analytics"
    tracking_id: str = ""

    def detail(self) -> str:
        return f"Configuring {self.platform}"


@dataclass(frozen=True)
class FinishCampaign(CampaignAction):
    tool_name: ClassVar[str] = "finish_campaign"
    label: ClassVar[str] = "Campaign Complete"
    description: ClassVar[str] = "Call exactly once when every required action has been executed"
    parameters: ClassVar[Dict[str, Any]] = _object(
        {"summary": _string("One or two sentences describing what was done")},
        [],
    )

    summary: str = ""

    def detail(self) -> str:
        return self.summary or "All campaign actions executed."


@dataclass(frozen=True)
class UnknownAction(CampaignAction):
    name: str = ""
    args: Dict[str, Any] = field(default_factory=dict, compare=False)

    def detail(self) -> str:
        return f"Unsupported action: {self.name}" if self.name else "Processing..."


TOOL_ACTIONS: Dict[str, Type[CampaignAction]] = {
    cls.tool_name: cls
    for cls in (
        DirectorySubmission,
        Web2Post,
        SocialPost,
        SeoArticle,
        PressRelease,
        SearchEngineSubmission,
        VideoContent,
        LocalListing,
        AnalyticsSetup,
    )
}


def tool_catalog() -> List[Dict[str, Any]]:
    """Declarations offered to the model, the finish signal last."""
    return [cls.declaration() for cls in TOOL_ACTIONS.values()] + [FinishCampaign.declaration()]


def parse_action(name: str, args: Mapping[str, Any] | None) -> CampaignAction:
    if name == FinishCampaign.tool_name:
        return FinishCampaign.from_args(args)
    action_cls = TOOL_ACTIONS.get(name)
    if action_cls is None:
        return UnknownAction(name=name or "", args=dict(args or {}))
    return action_cls.from_args(args)
