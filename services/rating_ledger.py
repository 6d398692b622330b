"""
Rating ledger.

Recording a rating appends the event, then settles the economy:
  rater   streak update, +credits (5 + streak bonus, bonus capped at 5),
          +points (10 x current multiplier, rounded half up)
  site    running average and visit count
  owner   -1 credit per received visit, never below zero

Store failures propagate; a half-applied economy update is worse than an error.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from core.event_bus import emit_event
from core.records import Rating, User, Website, as_utc, epoch_ms, parse_iso, to_iso, utc_now
from core.scoring_engine import (
    credits_for_streak,
    debit_credits,
    next_streak,
    points_for_rating,
    running_average,
)
from core.session import SessionContext
from services.store import STORAGE_KEYS, KeyValueStore

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _find(rows, record_id):
    for i, row in enumerate(rows):
        if row.get("id") == record_id:
            return i
    return -1


def add_rating(
    store: KeyValueStore,
    rating: Rating,
    session: Optional[SessionContext] = None,
    now: Optional[datetime] = None,
) -> Rating:
    now = as_utc(now or utc_now())
    if not rating.timestamp:
        rating.timestamp = to_iso(now)

    with store.locked():
        ratings = store.get_list(STORAGE_KEYS["RATINGS"])
        ratings.append(rating.to_dict())
        store.set_list(STORAGE_KEYS["RATINGS"], ratings)

        rater = _reward_rater(store, rating.user_id, session, now)
        site = update_website_stats(store, rating.website_id, rating.score, session)

    try:
        emit_event(
            "rating_recorded",
            "rating_ledger",
            {
                "ratingId": rating.id,
                "userId": rating.user_id,
                "websiteId": rating.website_id,
                "score": rating.score,
                "points": rater.points if rater else None,
                "streakDays": rater.streak_days if rater else None,
                "siteAverage": site.average_rating if site else None,
            },
        )
    except Exception:
        logger.exception("Could not write audit event for rating %s", rating.id)
    return rating


def _reward_rater(
    store: KeyValueStore, user_id: str, session: Optional[SessionContext], now: datetime
) -> Optional[User]:
    users = store.get_list(STORAGE_KEYS["USERS"])
    idx = _find(users, user_id)
    if idx == -1:
        logger.warning("Rating from unknown user %s; no rewards applied", user_id)
        return None

    user = User.from_dict(users[idx])
    last_active = parse_iso(user.last_active_date)
    user.streak_days = next_streak(user.streak_days or 0, last_active, now)
    user.last_active_date = to_iso(now)

    earned_credits = credits_for_streak(user.streak_days)
    earned_points = points_for_rating(user.point_multiplier)
    user.credits = (user.credits or 0) + earned_credits
    user.points = (user.points or 0) + earned_points

    users[idx] = {**users[idx], **user.to_dict()}
    store.set_list(STORAGE_KEYS["USERS"], users)
    if session is not None:
        session.refresh(user)

    logger.info(
        "User %s earned %s credits, %s points (streak=%s, multiplier=%s)",
        user.id, earned_credits, earned_points, user.streak_days, user.point_multiplier,
    )
    return user


def update_website_stats(
    store: KeyValueStore,
    website_id: str,
    score: int,
    session: Optional[SessionContext] = None,
) -> Optional[Website]:
    """Fold one score into the site's running average and charge its owner one credit."""
    with store.locked():
        sites = store.get_list(STORAGE_KEYS["WEBSITES"])
        idx = _find(sites, website_id)
        if idx == -1:
            logger.warning("Rating for unknown website %s; stats unchanged", website_id)
            return None

        site = Website.from_dict(sites[idx])
        site.average_rating = running_average(site.average_rating or 0.0, site.total_visits or 0, score)
        site.total_visits = (site.total_visits or 0) + 1
        sites[idx] = {**sites[idx], **site.to_dict()}
        store.set_list(STORAGE_KEYS["WEBSITES"], sites)

        users = store.get_list(STORAGE_KEYS["USERS"])
        owner_idx = _find(users, site.owner_id)
        if owner_idx != -1:
            owner = User.from_dict(users[owner_idx])
            owner.credits = debit_credits(owner.credits)
            users[owner_idx] = {**users[owner_idx], **owner.to_dict()}
            store.set_list(STORAGE_KEYS["USERS"], users)
            if session is not None:
                session.refresh(owner)
    return site


def get_ratings_by_user(store: KeyValueStore, user_id: str) -> List[Rating]:
    return [Rating.from_dict(r) for r in store.get_list(STORAGE_KEYS["RATINGS"]) if r.get("userId") == user_id]


def get_ratings_by_site(store: KeyValueStore, website_id: str) -> List[Rating]:
    """Newest first."""
    rows = [r for r in store.get_list(STORAGE_KEYS["RATINGS"]) if r.get("websiteId") == website_id]
    rows.sort(key=lambda r: epoch_ms(parse_iso(r.get("timestamp")) or EPOCH), reverse=True)
    return [Rating.from_dict(r) for r in rows]
