from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import List, Optional

from core.event_bus import emit_event
from core.provider import ContentProvider
from core.records import (
    Campaign,
    CampaignAsset,
    CampaignStatus,
    CampaignStep,
    StepStatus,
    Website,
    epoch_ms,
    new_id,
    utc_now,
)
from core.scoring_engine import BACKLINK_TYPES, POST_TYPES, estimate_traffic
from services.campaign_agent import AgentState, StepCallback, run_traffic_campaign
from services.store import STORAGE_KEYS, KeyValueStore

logger = logging.getLogger(__name__)


class CampaignRecorder:
    """Collects agent events in emission order and forwards them to an observer."""

    def __init__(self, observer: Optional[StepCallback] = None) -> None:
        self.observer = observer
        self.logs: List[CampaignStep] = []
        self.assets: List[CampaignAsset] = []

    def __call__(self, step: CampaignStep, asset: Optional[CampaignAsset] = None) -> None:
        self.logs.append(step)
        if asset is not None:
            self.assets.append(asset)
        if self.observer is not None:
            self.observer(step, asset)

    def build(self, website_id: str, status: CampaignStatus, now: datetime) -> Campaign:
        backlinks = sum(1 for a in self.assets if a.type in BACKLINK_TYPES)
        posts = sum(1 for a in self.assets if a.type in POST_TYPES)
        return Campaign(
            id=new_id(),
            website_id=website_id,
            status=status,
            timestamp=epoch_ms(now),
            logs=list(self.logs),
            assets=list(self.assets),
            total_backlinks=backlinks,
            total_posts=posts,
            estimated_traffic=estimate_traffic(a.type for a in self.assets),
        )


def launch_campaign(
    store: KeyValueStore,
    website: Website,
    provider: Optional[ContentProvider] = None,
    on_step: Optional[StepCallback] = None,
    now: Optional[datetime] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Campaign:
    """Run the agent for `website`, then persist and return the resulting Campaign."""
    recorder = CampaignRecorder(on_step)
    recorder(
        CampaignStep(
            id="init",
            action="Initializing Agent",
            detail="Connecting to traffic networks...",
            timestamp=epoch_ms(now or utc_now()),
            status=StepStatus.PENDING,
        )
    )

    state = run_traffic_campaign(website, recorder, provider=provider, cancel_event=cancel_event)
    status = CampaignStatus.FAILED if state == AgentState.FAILED else CampaignStatus.COMPLETED
    campaign = recorder.build(website.id, status, now or utc_now())
    save_campaign(store, campaign)

    logger.info(
        "Campaign %s for %s finished: state=%s assets=%s traffic=%s",
        campaign.id, website.url, state.value, len(campaign.assets), campaign.estimated_traffic,
    )
    try:
        emit_event(
            "campaign_finished",
            "campaign_service",
            {
                "campaignId": campaign.id,
                "websiteId": website.id,
                "agentState": state.value,
                "assets": len(campaign.assets),
                "estimatedTraffic": campaign.estimated_traffic,
            },
            lane="campaigns",
            severity="warn" if status == CampaignStatus.FAILED else "info",
        )
    except Exception:
        logger.exception("Could not write audit event for campaign %s", campaign.id)
    return campaign


def save_campaign(store: KeyValueStore, campaign: Campaign) -> None:
    data = campaign.to_dict()
    with store.locked():
        campaigns = store.get_list(STORAGE_KEYS["CAMPAIGNS"])
        for i, existing in enumerate(campaigns):
            if existing.get("id") == campaign.id:
                campaigns[i] = data
                break
        else:
            campaigns.append(data)
        store.set_list(STORAGE_KEYS["CAMPAIGNS"], campaigns)


def get_campaigns_by_website(store: KeyValueStore, website_id: str) -> List[Campaign]:
    rows = [c for c in store.get_list(STORAGE_KEYS["CAMPAIGNS"]) if c.get("websiteId") == website_id]
    rows.sort(key=lambda c: c.get("timestamp") or 0, reverse=True)
    return [Campaign.from_dict(c) for c in rows]


def get_campaign_by_website(store: KeyValueStore, website_id: str) -> Optional[Campaign]:
    campaigns = get_campaigns_by_website(store, website_id)
    return campaigns[0] if campaigns else None
