import json
import threading
from datetime import timedelta

from conftest import FakeProvider, make_site, tool_turn
from core.errors import ProviderError
from core.records import CampaignStatus, StepStatus
from services import campaign_service
from services.store import STORAGE_KEYS, InMemoryStore

SITE = make_site("shop", "olivia")
FINISH = ("finish_campaign", {})


def test_campaign_totals_and_persistence(now):
    store = InMemoryStore()
    seen = []
    provider = FakeProvider(
        turns=[
            tool_turn(
                ("submit_to_directory", {"directoryUrl": "https://dir.example"}),
                ("generate_seo_article", {"topic": "t"}),
                ("post_to_social_media", {"message": "m"}),
            ),
            tool_turn(("setup_analytics_tracking", {"trackingId": "G-1"}), FINISH),
        ]
    )

    campaign = campaign_service.launch_campaign(
        store, SITE, provider=provider, on_step=lambda s, a=None: seen.append(s.action), now=now
    )

    assert campaign.status == CampaignStatus.COMPLETED
    assert campaign.total_backlinks == 1
    assert campaign.total_posts == 2
    assert campaign.estimated_traffic == 110
    assert campaign.logs[0].id == "init"
    assert campaign.logs[0].status == StepStatus.PENDING
    assert campaign.logs[-1].action == "Campaign Complete"
    assert seen[0] == "Initializing Agent"
    assert len(campaign.assets) == 4

    stored = campaign_service.get_campaign_by_website(store, "shop")
    assert stored.id == campaign.id
    assert stored.to_dict() == campaign.to_dict()


def test_failed_agent_marks_campaign_failed(now, events_file):
    store = InMemoryStore()
    provider = FakeProvider(turns=[ProviderError("down")])
    campaign = campaign_service.launch_campaign(store, SITE, provider=provider, now=now)
    assert campaign.status == CampaignStatus.FAILED
    assert campaign.assets == []
    events = [json.loads(line) for line in events_file.read_text().splitlines()]
    assert events[-1]["type"] == "campaign_finished"
    assert events[-1]["severity"] == "warn"
    assert events[-1]["payload"]["agentState"] == "failed"


def test_timed_out_and_cancelled_count_as_completed(now, monkeypatch):
    monkeypatch.setattr("services.campaign_agent.MAX_TURNS", 2)
    store = InMemoryStore()
    timed_out = campaign_service.launch_campaign(
        store, SITE, provider=FakeProvider(turns=[tool_turn(("post_to_social_media", {"message": "m"}))] * 3), now=now
    )
    assert timed_out.status == CampaignStatus.COMPLETED
    assert len(timed_out.assets) == 2

    cancel = threading.Event()
    cancel.set()
    cancelled = campaign_service.launch_campaign(
        store, SITE, provider=FakeProvider(), now=now + timedelta(minutes=1), cancel_event=cancel
    )
    assert cancelled.status == CampaignStatus.COMPLETED
    assert [s.id for s in cancelled.logs] == ["init"]


def test_latest_campaign_and_history(now):
    store = InMemoryStore()
    first = campaign_service.launch_campaign(store, SITE, provider=FakeProvider(turns=[tool_turn(FINISH)]), now=now)
    second = campaign_service.launch_campaign(
        store, SITE, provider=FakeProvider(turns=[tool_turn(FINISH)]), now=now + timedelta(hours=1)
    )
    assert campaign_service.get_campaign_by_website(store, "shop").id == second.id
    assert [c.id for c in campaign_service.get_campaigns_by_website(store, "shop")] == [second.id, first.id]
    assert campaign_service.get_campaign_by_website(store, "other") is None


def test_save_campaign_upserts(now):
    store = InMemoryStore()
    campaign = campaign_service.launch_campaign(store, SITE, provider=FakeProvider(turns=[tool_turn(FINISH)]), now=now)
    campaign.estimated_traffic = 999
    campaign_service.save_campaign(store, campaign)
    rows = store.get_list(STORAGE_KEYS["CAMPAIGNS"])
    assert len(rows) == 1
    assert rows[0]["estimatedTraffic"] == 999


def test_malformed_tool_arguments_still_persist_campaign(now):
    store = InMemoryStore()
    provider = FakeProvider(
        turns=[
            tool_turn(("submit_to_directory", {"directoryUrl": "https://dir.example"})),
            tool_turn(("post_to_social_media", {"message": "m", "hashtags": 5})),
            tool_turn(FINISH),
        ]
    )
    campaign = campaign_service.launch_campaign(store, SITE, provider=provider, now=now)

    assert campaign.status == CampaignStatus.COMPLETED
    assert len(campaign.assets) == 2
    assert campaign_service.get_campaign_by_website(store, "shop").id == campaign.id


def test_audit_failure_still_returns_saved_campaign(now, unwritable_events):
    store = InMemoryStore()
    provider = FakeProvider(turns=[tool_turn(("generate_seo_article", {"topic": "t"}), FINISH)])
    campaign = campaign_service.launch_campaign(store, SITE, provider=provider, now=now)
    assert campaign.status == CampaignStatus.COMPLETED
    assert campaign_service.get_campaign_by_website(store, "shop").id == campaign.id
