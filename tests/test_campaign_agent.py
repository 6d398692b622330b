import threading

from conftest import FakeProvider, make_site, tool_turn
from core.campaign_actions import FinishCampaign, tool_catalog
from core.config.campaign_prompts import CONTINUE_DIRECTIVE, OPENING_DIRECTIVE
from core.errors import ProviderError
from core.provider import ProviderTurn
from core.records import AssetType, StepStatus
from services import campaign_agent
from services.campaign_agent import AgentState, CampaignAgent

SOCIAL = ("post_to_social_media", {"platform": "Twitter", "message": "New drop", "hashtags": ["style"]})
ARTICLE = ("generate_seo_article", {"topic": "Summer trends", "targetKeywords": ["linen"]})
DIRECTORY = ("submit_to_directory", {"directoryUrl": "https://dir.example", "category": "Shopping", "description": "Shop"})
FINISH = ("finish_campaign", {"summary": "Three channels covered."})


class Collector:
    def __init__(self):
        self.events = []

    def __call__(self, step, asset=None):
        self.events.append((step, asset))

    @property
    def assets(self):
        return [a for _, a in self.events if a is not None]


def _run(provider, **kw):
    collector = Collector()
    state = CampaignAgent(make_site("shop", "olivia"), collector, provider=provider, **kw).run()
    return state, collector


def test_finish_tool_completes_campaign():
    provider = FakeProvider(turns=[tool_turn(SOCIAL, ARTICLE), tool_turn(DIRECTORY), tool_turn(FINISH)])
    state, collector = _run(provider)

    assert state == AgentState.COMPLETED
    assert [a.type for a in collector.assets] == [AssetType.SOCIAL_POST, AssetType.ARTICLE, AssetType.DIRECTORY_SUBMISSION]
    last_step, last_asset = collector.events[-1]
    assert last_step.action == FinishCampaign.label
    assert last_step.detail == "Three channels covered."
    assert last_asset is None


def test_finish_is_offered_last_in_catalog():
    names = [t["name"] for t in tool_catalog()]
    assert names[-1] == "finish_campaign"
    assert len(names) == len(set(names)) == 10


def test_steps_follow_call_order_within_a_turn():
    provider = FakeProvider(turns=[tool_turn(DIRECTORY, SOCIAL, ARTICLE), tool_turn(FINISH)])
    state, collector = _run(provider)
    assert state == AgentState.COMPLETED
    assert [s.action for s, _ in collector.events[:3]] == ["Directory Submission", "Social Media Blast", "SEO Content Gen"]


def test_tool_results_feed_next_turn():
    provider = FakeProvider(turns=[tool_turn(SOCIAL), tool_turn(FINISH)])
    _run(provider)
    sent = provider.session.sent
    assert sent[0] == OPENING_DIRECTIVE
    results = sent[1]
    assert len(results) == 1
    assert results[0].call.name == "post_to_social_media"
    assert results[0].response["result"] == "Success: Asset created."


def test_text_reply_does_not_end_loop():
    provider = FakeProvider(turns=[ProviderTurn(text="CAMPAIGN_COMPLETE"), tool_turn(FINISH)])
    state, collector = _run(provider)
    assert state == AgentState.COMPLETED
    assert provider.session.sent[1] == CONTINUE_DIRECTIVE


def test_turn_budget_times_out_with_partial_results():
    provider = FakeProvider(turns=[tool_turn(SOCIAL)] * 5)
    state, collector = _run(provider, max_turns=3)
    assert state == AgentState.TIMED_OUT
    assert len(collector.assets) == 3
    assert len(provider.session.sent) == 3


def test_synthesis_failure_keeps_other_assets(monkeypatch):
    real = campaign_agent.synthesize_asset

    def flaky(action, website, provider=None):
        if action.tool_name == "generate_seo_article":
            raise RuntimeError("renderer crashed")
        return real(action, website, provider)

    monkeypatch.setattr(campaign_agent, "synthesize_asset", flaky)
    provider = FakeProvider(turns=[tool_turn(SOCIAL, ARTICLE, DIRECTORY), tool_turn(FINISH)])
    state, collector = _run(provider)

    assert state == AgentState.COMPLETED
    statuses = [s.status for s, _ in collector.events[:3]]
    assert statuses == [StepStatus.SUCCESS, StepStatus.ERROR, StepStatus.SUCCESS]
    assert collector.events[1][1] is None
    assert len(collector.assets) == 2
    error_result = provider.session.sent[1][1]
    assert "error" in error_result.response


def test_provider_turn_error_fails_campaign():
    provider = FakeProvider(turns=[tool_turn(SOCIAL), ProviderError("connection reset")])
    state, collector = _run(provider)
    assert state == AgentState.FAILED
    assert len(collector.assets) == 1


def test_session_start_failure_fails_without_events():
    provider = FakeProvider(fail_session=True)
    state, collector = _run(provider)
    assert state == AgentState.FAILED
    assert collector.events == []


def test_cancel_before_first_turn():
    cancel = threading.Event()
    cancel.set()
    provider = FakeProvider(turns=[tool_turn(SOCIAL)])
    state, collector = _run(provider, cancel_event=cancel)
    assert state == AgentState.CANCELLED
    assert provider.session.sent == []


def test_unknown_tool_yields_placeholder_asset():
    provider = FakeProvider(turns=[tool_turn(("launch_rocket", {"target": "moon"})), tool_turn(FINISH)])
    state, collector = _run(provider)
    assert state == AgentState.COMPLETED
    asset = collector.assets[0]
    assert asset.type == AssetType.ARTICLE
    assert asset.platform == "web"
    assert "launch_rocket" in asset.content


def test_scalar_hashtags_are_wrapped():
    bad_social = ("post_to_social_media", {"platform": "Twitter", "message": "New drop", "hashtags": 5})
    provider = FakeProvider(turns=[tool_turn(DIRECTORY), tool_turn(bad_social), tool_turn(FINISH)])
    state, collector = _run(provider)

    assert state == AgentState.COMPLETED
    assert [a.type for a in collector.assets] == [AssetType.DIRECTORY_SUBMISSION, AssetType.SOCIAL_POST]
    assert collector.assets[1].content.endswith("Tags: 5")


def test_unparseable_call_becomes_error_step(monkeypatch):
    real_parse = campaign_agent.parse_action

    def parse(name, args):
        if name == "create_web2_post":
            raise TypeError("'int' object is not iterable")
        return real_parse(name, args)

    monkeypatch.setattr(campaign_agent, "parse_action", parse)
    broken = ("create_web2_post", {"platform": "Medium", "title": 5})
    provider = FakeProvider(turns=[tool_turn(broken, SOCIAL), tool_turn(FINISH)])
    state, collector = _run(provider)

    assert state == AgentState.COMPLETED
    first_step, first_asset = collector.events[0]
    assert first_step.status == StepStatus.ERROR
    assert first_step.action == "create_web2_post"
    assert first_asset is None
    assert [a.type for a in collector.assets] == [AssetType.SOCIAL_POST]

    results = provider.session.sent[1]
    assert results[0].response["error"].startswith("Invalid arguments")
    assert results[1].response["result"] == "Success: Asset created."
