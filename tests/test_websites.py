import pytest
import requests

from conftest import FakeProvider, make_user
from core.errors import ProviderError, ValidationError
from core.records import EngagementLevel, UserRole
from services import websites
from services.store import InMemoryStore

PROFILE = {
    "name": "Linen Lane",
    "niche": "Fashion Ecommerce",
    "qualityScore": 140,
    "targetAudienceProfile": "Women 25-40 into slow fashion",
    "audienceInterests": ["linen", "sustainability"],
    "contentTypes": ["Product Pages", "Blog"],
    "semanticTags": ["fashion", "linen"],
    "engagementPrediction": "High",
    "aiAnalysisSummary": "A boutique linen store.",
    "detectedCTAs": ["Buy Now"],
    "totalVisits": 500,
}


@pytest.fixture
def no_network(monkeypatch):
    def refuse(url, timeout=8):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(websites, "_fetch_html", refuse)


def test_add_website_uses_analysis(now):
    store = InMemoryStore()
    owner = make_user("olivia", role=UserRole.OWNER)
    site = websites.add_website(
        store, owner, "https://linen.example", "Linen shop", "Women 25-40", provider=FakeProvider(structured=PROFILE), now=now
    )

    assert site.name == "Linen Lane"
    assert site.quality_score == 100
    assert site.engagement_prediction == EngagementLevel.HIGH
    assert site.detected_ctas == ["Buy Now"]
    assert site.total_visits == 0
    assert site.average_rating == 0.0
    assert site.owner_id == "olivia"
    assert websites.get_site_by_id(store, site.id).to_dict() == site.to_dict()
    assert [w.id for w in websites.get_websites_by_owner(store, "olivia")] == [site.id]


def test_analysis_failure_falls_back_to_page_title(monkeypatch):
    monkeypatch.setattr(websites, "_fetch_html", lambda url, timeout=8: "<html><title> Linen Lane | Home </title></html>")
    profile = websites.analyze_website(
        "https://linen.example", "Linen shop", "Women", provider=FakeProvider(structured=ProviderError("quota"))
    )
    assert profile["name"] == "Linen Lane | Home"
    assert profile["niche"] == "Uncategorized"
    assert profile["qualityScore"] == 50
    assert profile["engagementPrediction"] == "Medium"


def test_analysis_failure_offline_uses_hostname(no_network):
    profile = websites.analyze_website(
        "https://shop.linen.example/path", "", "", provider=FakeProvider(structured=ProviderError("quota"))
    )
    assert profile["name"] == "shop.linen.example"
    assert profile["targetAudienceProfile"] == "General audience"


def test_non_object_analysis_is_treated_as_failure(no_network):
    profile = websites.analyze_website("https://linen.example", "d", "a", provider=FakeProvider(structured=["nope"]))
    assert profile["niche"] == "Uncategorized"


def test_search_flag_controls_grounding(monkeypatch):
    seen = {}

    class Recorder(FakeProvider):
        def generate_structured(self, prompt, schema, use_search=False):
            seen["use_search"] = use_search
            return PROFILE

    monkeypatch.setenv("ENABLE_WEB_SEARCH_ANALYSIS", "false")
    websites.analyze_website("https://linen.example", "d", "a", provider=Recorder())
    assert seen["use_search"] is False


def test_only_owners_list_websites(now):
    generator = make_user("gabe")
    with pytest.raises(ValidationError):
        websites.add_website(InMemoryStore(), generator, "https://x.example", "", "", provider=FakeProvider(structured=PROFILE))


def test_empty_url_rejected():
    owner = make_user("olivia", role=UserRole.OWNER)
    with pytest.raises(ValidationError):
        websites.add_website(InMemoryStore(), owner, "  ", "", "", provider=FakeProvider(structured=PROFILE))


def test_missing_site_is_none():
    assert websites.get_site_by_id(InMemoryStore(), "nope") is None
    assert websites.get_all_websites(InMemoryStore()) == []
