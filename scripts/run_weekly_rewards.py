#!/usr/bin/env python3
"""
Run the weekly top-contributor recompute against the configured database.
Without --force it only runs when seven days have passed since the last run.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import app
from core.records import to_iso
from services.reward_scheduler import (
    check_and_run_weekly_rewards,
    get_leaderboard,
    get_next_weekly_update,
    trigger_weekly_rewards,
)
from services.store import SqlStore


def main() -> int:
    parser = argparse.ArgumentParser(description="Recompute weekly top contributors.")
    parser.add_argument("--force", action="store_true", help="Recompute even if the week has not elapsed.")
    parser.add_argument("--show", action="store_true", help="Print the leaderboard afterwards.")
    args = parser.parse_args()

    with app.app_context():
        store = SqlStore()
        if args.force:
            users = trigger_weekly_rewards(store)
            top = [u for u in users if u.is_top_contributor]
            print(f"Recomputed: {len(top)} top contributor(s).")
        elif check_and_run_weekly_rewards(store):
            print("Weekly rewards were due and have run.")
        else:
            print(f"Not due. Next update at {to_iso(get_next_weekly_update(store))}.")

        if args.show:
            for rank, user in enumerate(get_leaderboard(store), start=1):
                marker = " *" if user.is_top_contributor else ""
                print(f"{rank:>2}. {user.name} ({user.points} pts, x{user.point_multiplier}){marker}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
