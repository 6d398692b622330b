import os

# Must be set before app.py is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_RUNTIME_DB_CREATE_ALL"] = "1"
os.environ["RATELIMIT_ENABLED"] = "false"
os.environ["ENABLE_APSCHEDULER"] = "false"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ.pop("GEMINI_API_KEY", None)

from datetime import datetime, timezone

import pytest

from core.errors import ProviderError
from core.provider import ContentProvider, ProviderTurn, ToolCall, ToolSession
from core.records import User, UserRole, Website, to_iso
from services.store import STORAGE_KEYS, InMemoryStore


class ScriptedSession(ToolSession):
    """Replays a fixed list of turns; an Exception entry is raised instead of returned."""

    def __init__(self, turns):
        self.turns = list(turns)
        self.sent = []

    def _next(self, sent):
        self.sent.append(sent)
        if not self.turns:
            return ProviderTurn(text="Still working on it.")
        turn = self.turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        return turn

    def send_message(self, text):
        return self._next(text)

    def send_tool_results(self, results):
        return self._next(list(results))


class FakeProvider(ContentProvider):
    def __init__(
        self,
        turns=(),
        structured=None,
        text="Generated copy.",
        image="data:image/png;base64,AAAA",
        video="https://video.example/clip.mp4",
        chat_reply="Happy to help.",
        fail=(),
        fail_session=False,
    ):
        self.session = ScriptedSession(turns)
        self.structured = structured
        self.text = text
        self.image = image
        self.video = video
        self.chat_reply = chat_reply
        self.fail = set(fail)
        self.fail_session = fail_session
        self.calls = []

    def _check(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise ProviderError(f"{name} unavailable")

    def generate_structured(self, prompt, schema, use_search=False):
        self._check("generate_structured")
        if isinstance(self.structured, Exception):
            raise self.structured
        if callable(self.structured):
            return self.structured(prompt)
        return self.structured

    def generate_text(self, prompt, long_form=False):
        self._check("generate_text")
        return self.text

    def generate_image(self, prompt, size="1K"):
        self._check("generate_image")
        return self.image

    def generate_video(self, prompt):
        self._check("generate_video")
        return self.video

    def start_tool_session(self, system_prompt, tools):
        self._check("start_tool_session")
        if self.fail_session:
            raise ProviderError("session refused")
        self.system_prompt = system_prompt
        self.tools = tools
        return self.session

    def chat(self, history, message):
        self._check("chat")
        return self.chat_reply


def tool_turn(*calls):
    """ProviderTurn from (name, args) pairs."""
    return ProviderTurn(tool_calls=[ToolCall(name=n, args=a, id=f"call-{i}") for i, (n, a) in enumerate(calls)])


@pytest.fixture(autouse=True)
def events_file(tmp_path, monkeypatch):
    path = tmp_path / "events.jsonl"
    monkeypatch.setenv("MARKETPLACE_EVENTS_PATH", str(path))
    return path


@pytest.fixture
def unwritable_events(tmp_path, monkeypatch):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    monkeypatch.setenv("MARKETPLACE_EVENTS_PATH", str(blocker / "events.jsonl"))
    return blocker


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_user(user_id, role=UserRole.GENERATOR, **kw):
    kw.setdefault("name", user_id.title())
    kw.setdefault("email", f"{user_id}@example.com")
    return User(id=user_id, role=role, **kw)


def make_site(site_id, owner_id, **kw):
    kw.setdefault("url", f"https://{site_id}.example.com")
    kw.setdefault("name", site_id.title())
    return Website(id=site_id, owner_id=owner_id, **kw)


@pytest.fixture
def store(now):
    owner = make_user("olivia", role=UserRole.OWNER, credits=3)
    rater = make_user("gabe", credits=50, last_active_date=to_iso(now))
    site = make_site("shop", "olivia", niche="Fashion Ecommerce")
    return InMemoryStore(
        {
            STORAGE_KEYS["USERS"]: [owner.to_dict(), rater.to_dict()],
            STORAGE_KEYS["WEBSITES"]: [site.to_dict()],
        }
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def flask_app():
    from app import app, db
    import models

    app.config["TESTING"] = True
    with app.app_context():
        db.session.query(models.StoreEntry).delete()
        db.session.commit()
    yield app
    with app.app_context():
        db.session.rollback()
        db.session.query(models.StoreEntry).delete()
        db.session.commit()


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()
