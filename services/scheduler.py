"""
Background jobs for the marketplace.

Tasks:
- weekly_rewards_check: every hour, run the weekly top-contributor recompute when due
- weekly_rewards_force: on demand only, recompute regardless of the stamp

Run a task directly with run_task(name); initialize_scheduler() wires the
interval jobs into an APScheduler BackgroundScheduler (UTC).
"""

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from services.feature_flags import is_enabled

logger = logging.getLogger(__name__)
_scheduler_started_at: Optional[datetime] = None
_apscheduler = None  # BackgroundScheduler, set in initialize_scheduler
_scheduler_lock = Lock()

TASKS = {
    "weekly_rewards_check": {"interval_minutes": 60, "description": "Weekly top-contributor recompute when 7 days have passed (hourly check)"},
    "weekly_rewards_force": {"on_demand": True, "description": "Weekly top-contributor recompute regardless of the last stamp"},
}


def run_task(name: str) -> Dict:
    if name == "weekly_rewards_check":
        try:
            from app import app
            from services.reward_scheduler import check_and_run_weekly_rewards
            from services.store import SqlStore
            with app.app_context():
                ran = check_and_run_weekly_rewards(SqlStore())
            return {"success": True, "message": "Weekly rewards ran" if ran else "Weekly rewards not due", "result": {"ran": ran}}
        except Exception as e:
            logger.warning("weekly_rewards_check failed: %s", e)
            return {"success": False, "message": str(e), "result": None}

    if name == "weekly_rewards_force":
        try:
            from app import app
            from services.reward_scheduler import trigger_weekly_rewards
            from services.store import SqlStore
            with app.app_context():
                users = trigger_weekly_rewards(SqlStore())
            top = [u.id for u in users if u.is_top_contributor]
            return {"success": True, "message": "Weekly rewards recomputed", "result": {"topIds": top}}
        except Exception as e:
            logger.warning("weekly_rewards_force failed: %s", e)
            return {"success": False, "message": str(e), "result": None}

    return {"success": False, "message": f"Unknown task: {name}", "result": None}


def run_all_due() -> List[Dict]:
    """Run every interval task once; on-demand tasks are skipped."""
    results = []
    for task_name, meta in TASKS.items():
        if meta.get("on_demand"):
            continue
        results.append({"task": task_name, **run_task(task_name)})
    return results


def initialize_scheduler() -> Dict:
    global _scheduler_started_at, _apscheduler
    from apscheduler.schedulers.background import BackgroundScheduler
    from apscheduler.triggers.interval import IntervalTrigger
    with _scheduler_lock:
        if _apscheduler and _apscheduler.running:
            return {"success": True, "started_at": _scheduler_started_at.isoformat() if _scheduler_started_at else None, "already_running": True}

        _apscheduler = BackgroundScheduler(timezone="UTC")
        if is_enabled("ENABLE_WEEKLY_REWARDS_JOB"):
            _apscheduler.add_job(
                lambda: run_task("weekly_rewards_check"),
                trigger=IntervalTrigger(minutes=TASKS["weekly_rewards_check"]["interval_minutes"]),
                id="weekly_rewards_check",
                replace_existing=True,
                max_instances=1,
            )
        else:
            logger.info("ENABLE_WEEKLY_REWARDS_JOB off; weekly rewards run only on login and feed access")
        _apscheduler.start()
        _scheduler_started_at = datetime.now(timezone.utc)
    logger.info("APScheduler started with %s job(s)", len(_apscheduler.get_jobs()))
    return {"success": True, "started_at": _scheduler_started_at.isoformat(), "mode": "apscheduler"}


def shutdown_scheduler() -> None:
    global _apscheduler
    with _scheduler_lock:
        if _apscheduler and _apscheduler.running:
            _apscheduler.shutdown(wait=False)
        _apscheduler = None


def get_scheduler_status() -> Dict:
    jobs = [{"name": name, **meta} for name, meta in TASKS.items()]
    return {
        "running": bool(_apscheduler and _apscheduler.running),
        "started_at": _scheduler_started_at.isoformat() if _scheduler_started_at else None,
        "jobs": jobs,
        "mode": "apscheduler",
    }
