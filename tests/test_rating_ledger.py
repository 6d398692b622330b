from datetime import timedelta

import pytest

from conftest import make_site, make_user
from core.records import Rating, User, UserRole, Website, to_iso
from core.session import SessionContext
from services import rating_ledger
from services.store import STORAGE_KEYS, InMemoryStore


def _user(store, user_id):
    return next(User.from_dict(u) for u in store.get_list(STORAGE_KEYS["USERS"]) if u["id"] == user_id)


def _site(store, site_id):
    return next(Website.from_dict(w) for w in store.get_list(STORAGE_KEYS["WEBSITES"]) if w["id"] == site_id)


def _rating(score, user_id="gabe", website_id="shop", rating_id=None):
    return Rating(id=rating_id or f"r-{score}", user_id=user_id, website_id=website_id, score=score, dwell_time_seconds=40)


def test_first_rating_settles_the_economy(store, now):
    session = SessionContext(user=_user(store, "gabe"))
    rating_ledger.add_rating(store, _rating(4), session=session, now=now)

    rater = _user(store, "gabe")
    assert rater.credits == 55
    assert rater.points == 10
    assert rater.streak_days == 0
    site = _site(store, "shop")
    assert site.total_visits == 1
    assert site.average_rating == 4
    assert _user(store, "olivia").credits == 2
    assert session.user.points == 10
    assert len(store.get_list(STORAGE_KEYS["RATINGS"])) == 1


def test_end_to_end_two_ratings_same_day(now):
    owner = make_user("olivia", role=UserRole.OWNER, credits=1)
    rater = make_user("gabe", credits=50)
    store = InMemoryStore(
        {
            STORAGE_KEYS["USERS"]: [owner.to_dict(), rater.to_dict()],
            STORAGE_KEYS["WEBSITES"]: [make_site("shop", "olivia").to_dict()],
        }
    )

    rating_ledger.add_rating(store, _rating(5, rating_id="a"), now=now)
    rating_ledger.add_rating(store, _rating(3, rating_id="b"), now=now + timedelta(hours=1))

    rater = _user(store, "gabe")
    assert rater.streak_days == 1
    assert rater.credits == 60
    assert rater.points == 20
    site = _site(store, "shop")
    assert site.total_visits == 2
    assert site.average_rating == 4
    assert _user(store, "olivia").credits == 0


def test_streak_grows_on_consecutive_days_and_resets_after_gap(store, now):
    rating_ledger.add_rating(store, _rating(4, rating_id="d0"), now=now)
    streak_day0 = _user(store, "gabe").streak_days
    rating_ledger.add_rating(store, _rating(4, rating_id="d1"), now=now + timedelta(days=1))
    assert _user(store, "gabe").streak_days == streak_day0 + 1
    rating_ledger.add_rating(store, _rating(4, rating_id="d4"), now=now + timedelta(days=4))
    assert _user(store, "gabe").streak_days == 1


def test_streak_bonus_credits(now):
    rater = make_user("gabe", credits=0, streak_days=4, last_active_date=to_iso(now - timedelta(days=1)))
    store = InMemoryStore(
        {
            STORAGE_KEYS["USERS"]: [make_user("olivia", role=UserRole.OWNER).to_dict(), rater.to_dict()],
            STORAGE_KEYS["WEBSITES"]: [make_site("shop", "olivia").to_dict()],
        }
    )
    rating_ledger.add_rating(store, _rating(2), now=now)
    user = _user(store, "gabe")
    assert user.streak_days == 5
    assert user.credits == 6


def test_top_contributor_multiplier_applies_to_points(now):
    rater = make_user("gabe", point_multiplier=1.5, is_top_contributor=True)
    store = InMemoryStore(
        {
            STORAGE_KEYS["USERS"]: [make_user("olivia", role=UserRole.OWNER).to_dict(), rater.to_dict()],
            STORAGE_KEYS["WEBSITES"]: [make_site("shop", "olivia").to_dict()],
        }
    )
    rating_ledger.add_rating(store, _rating(5), now=now)
    assert _user(store, "gabe").points == 15


def test_owner_credits_floor_at_zero(store, now):
    for i in range(6):
        rating_ledger.add_rating(store, _rating(3, rating_id=f"r{i}"), now=now)
    assert _user(store, "olivia").credits == 0
    assert _site(store, "shop").total_visits == 6


@pytest.mark.parametrize("scores", [[1], [5, 5, 5], [1, 5, 2, 4, 3]])
def test_average_stays_within_score_range(store, now, scores):
    for i, score in enumerate(scores):
        rating_ledger.add_rating(store, _rating(score, rating_id=f"s{i}"), now=now)
    site = _site(store, "shop")
    assert 1 <= site.average_rating <= 5
    assert site.average_rating == pytest.approx(sum(scores) / len(scores))


def test_unknown_rater_records_rating_and_site_stats(store, now):
    rating_ledger.add_rating(store, _rating(4, user_id="ghost"), now=now)
    assert _site(store, "shop").total_visits == 1
    assert _user(store, "gabe").points == 0


def test_update_website_stats_missing_site_returns_none(store):
    assert rating_ledger.update_website_stats(store, "nope", 3) is None


def test_ratings_by_site_newest_first(store, now):
    rating_ledger.add_rating(store, _rating(2, rating_id="old"), now=now)
    rating_ledger.add_rating(store, _rating(5, rating_id="new"), now=now + timedelta(minutes=5))
    ids = [r.id for r in rating_ledger.get_ratings_by_site(store, "shop")]
    assert ids == ["new", "old"]
    assert {r.id for r in rating_ledger.get_ratings_by_user(store, "gabe")} == {"old", "new"}


def test_rating_event_is_emitted(store, now, events_file):
    rating_ledger.add_rating(store, _rating(4), now=now)
    assert '"rating_recorded"' in events_file.read_text()


def test_audit_failure_does_not_fail_applied_rating(store, now, unwritable_events, caplog):
    result = rating_ledger.add_rating(store, _rating(4), now=now)
    assert result.id == "r-4"
    assert _user(store, "gabe").points == 10
    assert len(store.get_list(STORAGE_KEYS["RATINGS"])) == 1
    assert "Could not write audit event for rating r-4" in caplog.text
    assert not unwritable_events.is_dir()
