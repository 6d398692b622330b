import os
from pathlib import Path
from dotenv import load_dotenv
# Load .env from the same directory as this file so it works from any cwd
load_dotenv(Path(__file__).resolve().parent / ".env")

import logging
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy.orm import DeclarativeBase
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from core.errors import NotAuthenticatedError, ValidationError
from services.feature_flags import env_flag, is_enabled

# Configure logging (default info; keep noisy transport libs quiet).
logging.basicConfig(level=logging.INFO)
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
logging.getLogger("requests").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("google_genai").setLevel(logging.WARNING)
logging.getLogger("werkzeug").setLevel(logging.INFO)

class Base(DeclarativeBase):
    pass

# 1. Initialize DB WITHOUT app first to prevent circular loops
db = SQLAlchemy(model_class=Base)

# 2. Create the app instance
app = Flask(__name__)

# Security: Uses .env secret, but provides a fallback for local dev
app.secret_key = os.environ.get("SESSION_SECRET", "dev_secret_key_traffic_marketplace")

# Configure the database
database_url = os.environ.get("DATABASE_URL", "sqlite:///traffic_marketplace.db")
app.config["SQLALCHEMY_DATABASE_URI"] = database_url
if not database_url.startswith("sqlite:"):
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
        "pool_recycle": 300,
        "pool_pre_ping": True,
    }

app.config["RATELIMIT_ENABLED"] = is_enabled("RATELIMIT_ENABLED")

# Startup env diagnostics (warnings only; never hard-crash startup).
_required_env = ["SESSION_SECRET", "DATABASE_URL"]
_recommended_env = ["GEMINI_API_KEY"]
for _name in _required_env:
    if not os.environ.get(_name):
        logging.warning("%s missing; using fallback/default where available.", _name)
for _name in _recommended_env:
    if not os.environ.get(_name):
        logging.info("%s not configured (analysis, matching and campaigns stay degraded).", _name)

# 3. Initialize extensions
db.init_app(app)
migrate = Migrate(app, db)

limiter = Limiter(key_func=get_remote_address, default_limits=["200 per day"])
limiter.init_app(app)


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({"error": e.message}), 400


@app.errorhandler(NotAuthenticatedError)
def handle_not_authenticated(e):
    return jsonify({"error": str(e) or "Login required"}), 401


# When we run as python app.py, __name__ is "__main__". "import routes" does
# "from app import app", which would load this file again as a second module.
# Make "app" resolve to this same module when we are the main script.
if __name__ == "__main__":
    import sys
    sys.modules["app"] = sys.modules["__main__"]

with app.app_context():
    import models
    # Runtime create_all is disabled in production; use Flask-Migrate:
    #   flask db upgrade
    if env_flag("ENABLE_RUNTIME_DB_CREATE_ALL"):
        db.create_all()
        logging.warning("ENABLE_RUNTIME_DB_CREATE_ALL=true used; migration workflow is recommended.")

# Keep routes import near the very bottom so the app object and extensions are fully initialized first.
import routes

# Start background APScheduler only when explicitly enabled for this process.
if env_flag("ENABLE_APSCHEDULER"):
    try:
        from services.scheduler import initialize_scheduler
        _sch = initialize_scheduler()
        logging.info("Scheduler initialized: %s", _sch)
    except Exception as _e:
        logging.warning("Scheduler init skipped: %s", _e)

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=False, use_reloader=False)
