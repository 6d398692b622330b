from datetime import timedelta

from conftest import make_site, make_user
from core.records import Rating, User, UserRole
from core.session import SessionContext
from services import accounts, rating_ledger, reward_scheduler
from services.store import STORAGE_KEYS, InMemoryStore


def _stored(store, user_id):
    return next(User.from_dict(u) for u in store.get_list(STORAGE_KEYS["USERS"]) if u["id"] == user_id)


def test_new_generator_rates_earns_top_spot_and_multiplier(now):
    store = InMemoryStore(
        {
            STORAGE_KEYS["USERS"]: [make_user("olivia", role=UserRole.OWNER, credits=100).to_dict()],
            STORAGE_KEYS["WEBSITES"]: [make_site("shop", "olivia").to_dict()],
        }
    )
    session = SessionContext()
    gabe = accounts.register(store, "Gabe", "gabe@example.com", "GENERATOR", session=session, now=now)
    assert (gabe.credits, gabe.points) == (50, 0)

    for i in range(5):
        rating = Rating(id=f"r{i}", user_id=gabe.id, website_id="shop", score=4)
        rating_ledger.add_rating(store, rating, session=session, now=now + timedelta(minutes=i))

    rater = _stored(store, gabe.id)
    assert rater.points == 50
    assert rater.credits == 75
    assert rater.streak_days == 0
    assert _stored(store, "olivia").credits == 95

    reward_scheduler.trigger_weekly_rewards(store, session=session, now=now + timedelta(hours=1))
    assert _stored(store, gabe.id).point_multiplier == 1.5
    assert session.user.is_top_contributor is True

    rating_ledger.add_rating(
        store, Rating(id="r5", user_id=gabe.id, website_id="shop", score=5), session=session, now=now + timedelta(hours=2)
    )
    rater = _stored(store, gabe.id)
    assert rater.points == 65
    assert rater.credits == 80
    assert session.user.points == 65
