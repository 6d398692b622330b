"""
Weekly top-contributor rewards.

Every seven days the ten GENERATOR users with the most points (and more
than zero) become top contributors with a 1.5x multiplier on points they
earn afterwards; every other generator drops back to 1.0x. Ties keep store
order, which is registration order, so the earlier registration wins.

The recompute rewrites the whole user collection under the store's writer
lock. Store errors propagate to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from core.event_bus import emit_event
from core.records import User, as_utc, epoch_ms, from_epoch_ms, utc_now
from core.scoring_engine import DEFAULT_MULTIPLIER, TOP_CONTRIBUTOR_MULTIPLIER
from core.session import SessionContext
from services.store import STORAGE_KEYS, KeyValueStore

logger = logging.getLogger(__name__)

ONE_WEEK = timedelta(days=7)
TOP_CONTRIBUTOR_LIMIT = 10


def _last_update(store: KeyValueStore) -> Optional[datetime]:
    raw = store.get_value(STORAGE_KEYS["SYSTEM_LAST_UPDATE"])
    if raw in (None, ""):
        return None
    return from_epoch_ms(raw)


def check_and_run_weekly_rewards(
    store: KeyValueStore,
    session: Optional[SessionContext] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Run the recompute when more than a week has passed. Returns True when it ran."""
    now = as_utc(now or utc_now())
    with store.locked():
        last = _last_update(store)
        if last is None:
            store.set_value(STORAGE_KEYS["SYSTEM_LAST_UPDATE"], epoch_ms(now))
            return False
        if now - last <= ONE_WEEK:
            return False
        trigger_weekly_rewards(store, session=session, now=now)
    return True


def select_top_contributors(users: List[User], limit: int = TOP_CONTRIBUTOR_LIMIT) -> List[str]:
    generators = [u for u in users if u.is_generator]
    # sorted() is stable: equal points keep store order.
    ranked = sorted(generators, key=lambda u: u.points or 0, reverse=True)
    return [u.id for u in ranked if (u.points or 0) > 0][:limit]


def trigger_weekly_rewards(
    store: KeyValueStore,
    session: Optional[SessionContext] = None,
    now: Optional[datetime] = None,
) -> List[User]:
    """Recompute top contributors unconditionally and reset the weekly stamp."""
    now = as_utc(now or utc_now())
    stamp = epoch_ms(now)

    with store.locked():
        rows = store.get_list(STORAGE_KEYS["USERS"])
        users = [User.from_dict(r) for r in rows]
        top_ids = select_top_contributors(users)
        top = set(top_ids)
        logger.info("Running weekly rewards. Top IDs: %s", top_ids)

        for i, user in enumerate(users):
            if not user.is_generator:
                continue
            is_top = user.id in top
            user.is_top_contributor = is_top
            user.point_multiplier = TOP_CONTRIBUTOR_MULTIPLIER if is_top else DEFAULT_MULTIPLIER
            user.last_weekly_update = stamp
            rows[i] = {**rows[i], **user.to_dict()}

        store.set_list(STORAGE_KEYS["USERS"], rows)
        store.set_value(STORAGE_KEYS["SYSTEM_LAST_UPDATE"], stamp)

    if session is not None and session.user is not None:
        for user in users:
            session.refresh(user)

    try:
        emit_event("weekly_rewards", "reward_scheduler", {"topIds": top_ids, "generators": sum(u.is_generator for u in users)})
    except Exception:
        logger.exception("Could not write weekly rewards audit event")
    return users


def get_leaderboard(store: KeyValueStore, limit: int = TOP_CONTRIBUTOR_LIMIT) -> List[User]:
    users = [User.from_dict(r) for r in store.get_list(STORAGE_KEYS["USERS"])]
    generators = [u for u in users if u.is_generator]
    return sorted(generators, key=lambda u: u.points or 0, reverse=True)[:limit]


def get_next_weekly_update(store: KeyValueStore, now: Optional[datetime] = None) -> datetime:
    last = _last_update(store)
    if last is None:
        return as_utc(now or utc_now()) + ONE_WEEK
    return last + ONE_WEEK
