from flask import request, jsonify, session
from app import app, db, limiter

import logging
import os
import secrets
from functools import wraps

from core.errors import NotAuthenticatedError, ValidationError
from core.event_bus import read_events
from core.records import Rating, UserRole, new_id, to_iso
from core.session import SessionContext
from services import accounts, assistant, campaign_service, matching, rating_ledger, reward_scheduler, websites
from services.scheduler import get_scheduler_status
from services.store import SqlStore

logger = logging.getLogger(__name__)


def _store():
    return SqlStore()


def _provider():
    """Content provider for request handlers; None means the shared Gemini client."""
    return None


def _session_context(store):
    user_id = session.get("user_id")
    user = accounts.get_user(store, user_id) if user_id else None
    if user_id and user is None:
        session.pop("user_id", None)
    return SessionContext(user=user)


def login_required(f):
    """Build the caller's SessionContext and pass it (with the store) to the view."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        store = _store()
        ctx = _session_context(store)
        if not ctx.is_authenticated:
            raise NotAuthenticatedError("Login required")
        return f(store, ctx, *args, **kwargs)
    return decorated_function


def admin_required(f):
    """Admin endpoints need the X-Admin-Token header to match ADMIN_TOKEN."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = os.environ.get("ADMIN_TOKEN", "")
        supplied = request.headers.get("X-Admin-Token", "")
        if not expected or not secrets.compare_digest(expected, supplied):
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def _body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _int_field(data, key, default=None):
    value = data.get(key, default)
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{key} must be a whole number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")


@app.route('/health')
def health():
    try:
        db.session.execute(db.text("SELECT 1"))
        return jsonify({"status": "ok", "db": "ok"}), 200
    except Exception as e:
        logging.warning("Health check failed: %s", e)
        return jsonify({"status": "degraded", "db": "error"}), 503


# --- accounts ---

@app.route('/api/auth/register', methods=['POST'])
@limiter.limit("10 per minute")
def api_register():
    data = _body()
    store = _store()
    ctx = SessionContext()
    user = accounts.register(
        store,
        data.get("name", ""),
        data.get("email", ""),
        data.get("role", UserRole.GENERATOR.value),
        interests=data.get("interests"),
        organization=data.get("organization"),
        referred_by=data.get("referredBy"),
        session=ctx,
    )
    session["user_id"] = user.id
    return jsonify({"user": user.to_dict()}), 201


@app.route('/api/auth/login', methods=['POST'])
@limiter.limit("10 per minute")
def api_login():
    data = _body()
    store = _store()
    ctx = SessionContext()
    user = accounts.login(store, data.get("email", ""), session=ctx)
    if user is None:
        return jsonify({"error": "Invalid credentials"}), 401
    session["user_id"] = user.id
    return jsonify({"user": user.to_dict()})


@app.route('/api/auth/logout', methods=['POST'])
def api_logout():
    ctx = _session_context(_store())
    accounts.logout(ctx)
    session.pop("user_id", None)
    return jsonify({"success": True})


@app.route('/api/me')
@login_required
def api_me(store, ctx):
    return jsonify({"user": ctx.user.to_dict()})


@app.route('/api/me', methods=['PUT'])
@login_required
def api_update_me(store, ctx):
    data = _body()
    user = accounts.update_profile(
        store,
        ctx,
        interests=data.get("interests"),
        dislikes=data.get("dislikes"),
        organization=data.get("organization"),
    )
    return jsonify({"user": user.to_dict()})


# --- websites ---

@app.route('/api/websites')
@login_required
def api_my_websites(store, ctx):
    sites = websites.get_websites_by_owner(store, ctx.user.id)
    return jsonify({"websites": [w.to_dict() for w in sites]})


@app.route('/api/websites', methods=['POST'])
@limiter.limit("5 per minute")
@login_required
def api_add_website(store, ctx):
    data = _body()
    website = websites.add_website(
        store,
        ctx.user,
        data.get("url", ""),
        data.get("description", ""),
        data.get("targetAudience", ""),
        provider=_provider(),
    )
    return jsonify({"website": website.to_dict()}), 201


@app.route('/api/websites/<website_id>')
def api_website(website_id):
    website = websites.get_site_by_id(_store(), website_id)
    if website is None:
        return jsonify({"error": "Website not found"}), 404
    return jsonify({"website": website.to_dict()})


@app.route('/api/websites/<website_id>/ratings')
def api_website_ratings(website_id):
    store = _store()
    if websites.get_site_by_id(store, website_id) is None:
        return jsonify({"error": "Website not found"}), 404
    ratings = rating_ledger.get_ratings_by_site(store, website_id)
    return jsonify({"ratings": [r.to_dict() for r in ratings]})


# --- traffic generation ---

@app.route('/api/feed')
@login_required
def api_feed(store, ctx):
    reward_scheduler.check_and_run_weekly_rewards(store, session=ctx)
    user = ctx.user
    visited = [r.website_id for r in rating_ledger.get_ratings_by_user(store, user.id)]
    candidates = [w for w in websites.get_all_websites(store) if w.owner_id != user.id]
    matches = matching.find_matches(
        user,
        candidates,
        user_history=visited,
        credit_multiplier=user.point_multiplier or 1.0,
        provider=_provider(),
    )
    return jsonify({"matches": [m.to_dict() for m in matches]})


@app.route('/api/ratings', methods=['POST'])
@login_required
def api_add_rating(store, ctx):
    data = _body()
    website_id = str(data.get("websiteId") or "")
    score = _int_field(data, "score")
    dwell = _int_field(data, "dwellTimeSeconds", 0)
    if not 1 <= score <= 5:
        raise ValidationError("score must be between 1 and 5")
    if dwell < 0:
        raise ValidationError("dwellTimeSeconds must not be negative")
    if websites.get_site_by_id(store, website_id) is None:
        return jsonify({"error": "Website not found"}), 404

    rating = Rating(
        id=new_id(),
        user_id=ctx.user.id,
        website_id=website_id,
        score=score,
        feedback=str(data.get("feedback") or ""),
        dwell_time_seconds=dwell,
    )
    rating_ledger.add_rating(store, rating, session=ctx)
    return jsonify({"rating": rating.to_dict(), "user": ctx.user.to_dict()}), 201


@app.route('/api/leaderboard')
def api_leaderboard():
    store = _store()
    ctx = _session_context(store)
    reward_scheduler.check_and_run_weekly_rewards(store, session=ctx)
    leaders = reward_scheduler.get_leaderboard(store)
    return jsonify({
        "leaders": [u.to_dict() for u in leaders],
        "nextUpdate": to_iso(reward_scheduler.get_next_weekly_update(store)),
    })


# --- campaigns ---

@app.route('/api/websites/<website_id>/campaigns', methods=['POST'])
@limiter.limit("3 per minute")
@login_required
def api_launch_campaign(store, ctx, website_id):
    website = websites.get_site_by_id(store, website_id)
    if website is None:
        return jsonify({"error": "Website not found"}), 404
    if website.owner_id != ctx.user.id:
        return jsonify({"error": "Only the website owner can launch campaigns"}), 403
    campaign = campaign_service.launch_campaign(store, website, provider=_provider())
    return jsonify({"campaign": campaign.to_dict()}), 201


@app.route('/api/websites/<website_id>/campaigns/latest')
@login_required
def api_latest_campaign(store, ctx, website_id):
    campaign = campaign_service.get_campaign_by_website(store, website_id)
    if campaign is None:
        return jsonify({"error": "No campaign yet"}), 404
    return jsonify({"campaign": campaign.to_dict()})


# --- assistant ---

@app.route('/api/assistant', methods=['POST'])
@limiter.limit("20 per minute")
def api_assistant():
    data = _body()
    message = str(data.get("message") or "").strip()
    if not message:
        raise ValidationError("message is required")
    history = data.get("history") if isinstance(data.get("history"), list) else []
    reply = assistant.send_message(history, message, provider=_provider())
    return jsonify({"reply": reply})


# --- admin ---

@app.route('/api/admin/weekly-rewards', methods=['POST'])
@admin_required
def api_admin_weekly_rewards():
    users = reward_scheduler.trigger_weekly_rewards(_store())
    return jsonify({
        "success": True,
        "topContributors": [u.id for u in users if u.is_top_contributor],
    })


@app.route('/api/admin/events')
@admin_required
def api_admin_events():
    limit = min(max(request.args.get("limit", 100, type=int), 1), 1000)
    lane = request.args.get("lane") or None
    return jsonify({"events": read_events(limit=limit, lane=lane)})


@app.route('/api/admin/scheduler')
@admin_required
def api_admin_scheduler():
    return jsonify(get_scheduler_status())
