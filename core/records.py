"""
Domain records stored in the key-value store.

Records serialize to the camelCase JSON shapes the web client already reads
(`ownerId`, `averageRating`, `detectedCTAs`, ...). Dates are ISO-8601 UTC
strings; campaign, step and asset timestamps are epoch milliseconds.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class UserRole(str, Enum):
    OWNER = "OWNER"
    GENERATOR = "GENERATOR"


class EngagementLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class CampaignStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class AssetType(str, Enum):
    ARTICLE = "article"
    SOCIAL_POST = "social_post"
    BACKLINK = "backlink"
    VIDEO_SCRIPT = "video_script"
    DIRECTORY_SUBMISSION = "directory_submission"
    VIDEO_CONTENT = "video_content"
    SEARCH_SUBMISSION = "search_submission"
    LOCAL_LISTING = "local_listing"
    ANALYTICS_SETUP = "analytics_setup"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


# --- time helpers ---

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    return as_utc(dt).isoformat().replace("+00:00", "Z")


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def epoch_ms(dt: datetime) -> int:
    return int(as_utc(dt).timestamp() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex


# --- serialization ---

_CAMEL_RE = re.compile(r"_([a-z])")


def camel_case(name: str) -> str:
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), name)


def _key(f) -> str:
    return f.metadata.get("key") or camel_case(f.name)


def _dump(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value


class Record:
    """Mixin giving dataclasses a camelCase dict round trip."""

    def to_dict(self) -> Dict[str, Any]:
        return {_key(f): _dump(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            key = _key(f)
            if key not in data:
                continue
            value = data[key]
            loader = f.metadata.get("load")
            if loader is not None and value is not None:
                value = loader(value)
            kwargs[f.name] = value
        return cls(**kwargs)


def _list_of(record_cls):
    return lambda items: [record_cls.from_dict(i) for i in items]


@dataclass
class User(Record):
    id: str
    name: str
    email: str
    role: UserRole = field(metadata={"load": UserRole})
    points: int = 0
    credits: int = 0
    streak_days: int = 0
    last_active_date: Optional[str] = None
    referral_code: str = ""
    referred_by: Optional[str] = None
    is_top_contributor: bool = False
    point_multiplier: float = 1.0
    last_weekly_update: Optional[int] = None
    interests: List[str] = field(default_factory=list)
    dislikes: List[str] = field(default_factory=list)
    organization: Optional[str] = None

    @property
    def is_generator(self) -> bool:
        return self.role == UserRole.GENERATOR


@dataclass
class Website(Record):
    id: str
    owner_id: str
    url: str
    name: str
    description: str = ""
    niche: str = "Uncategorized"
    quality_score: int = 50
    target_audience_profile: str = ""
    ai_analysis_summary: str = ""
    audience_age: Optional[str] = None
    audience_gender: Optional[str] = None
    audience_interests: List[str] = field(default_factory=list)
    audience_intent: Optional[str] = None
    semantic_tags: List[str] = field(default_factory=list)
    engagement_prediction: EngagementLevel = field(
        default=EngagementLevel.MEDIUM, metadata={"load": EngagementLevel}
    )
    content_types: List[str] = field(default_factory=list)
    detected_ctas: List[str] = field(default_factory=list, metadata={"key": "detectedCTAs"})
    meta_description: str = ""
    meta_keywords: List[str] = field(default_factory=list)
    preferred_image_size: str = "1K"
    created_at: Optional[str] = None
    total_visits: int = 0
    average_rating: float = 0.0
    ctr: Optional[float] = None


@dataclass
class Rating(Record):
    id: str
    user_id: str
    website_id: str
    score: int
    feedback: str = ""
    dwell_time_seconds: int = 0
    timestamp: Optional[str] = None


@dataclass
class CampaignStep(Record):
    id: str
    action: str
    detail: str
    timestamp: int
    status: StepStatus = field(default=StepStatus.SUCCESS, metadata={"load": StepStatus})


@dataclass
class CampaignAsset(Record):
    id: str
    type: AssetType = field(metadata={"load": AssetType})
    platform: str
    content: str
    url: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[MediaType] = field(default=None, metadata={"load": MediaType})
    created_at: int = 0


@dataclass
class Campaign(Record):
    id: str
    website_id: str
    status: CampaignStatus = field(metadata={"load": CampaignStatus})
    timestamp: int
    logs: List[CampaignStep] = field(default_factory=list, metadata={"load": _list_of(CampaignStep)})
    assets: List[CampaignAsset] = field(default_factory=list, metadata={"load": _list_of(CampaignAsset)})
    total_backlinks: int = 0
    total_posts: int = 0
    estimated_traffic: int = 0


@dataclass
class MatchResult(Record):
    website: Website = field(metadata={"load": Website.from_dict})
    match_score: int
    reasoning: str = ""
    predicted_engagement_time: int = 30
