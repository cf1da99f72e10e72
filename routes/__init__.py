"""Blueprint registration, public landing page, and the citizen dashboard."""
from flask import Blueprint, current_app, redirect, render_template, url_for
from flask_login import current_user, login_required

from utils.backend import fetch_or_default
from utils.complaint_filters import newest_first
from utils.decorators import citizen_api
from .admin import admin_bp
from .admin_directory import admin_directory_bp
from .auth import auth_bp
from .complaints import complaints_bp
from .sla import sla_bp
from .worker import worker_bp

main_bp = Blueprint("main", __name__)

STAT_KEYS = ("total_complaints", "pending", "in_progress", "completed", "declined")
MY_STAT_KEYS = {
    "total_complaints": "my_complaints",
    "pending": "my_pending",
    "in_progress": "my_in_progress",
    "completed": "my_completed",
    "declined": "my_declined",
}


def split_dashboard_stats(raw: dict) -> tuple[dict, dict]:
    """Global counters and the `my_*` counters of the logged-in citizen, zero-filled."""
    raw = raw or {}
    overall = {key: raw.get(key) or 0 for key in STAT_KEYS}
    mine = {key: raw.get(source) or 0 for key, source in MY_STAT_KEYS.items()}
    return overall, mine


@main_bp.route("/")
def index():
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))
    return render_template("index.html", page_title="Civic Saathi")


@main_bp.route("/dashboard")
@login_required
def dashboard():
    api = citizen_api()
    raw_stats = fetch_or_default(api.dashboard_stats, {}, "Dashboard stats unavailable")
    recent = newest_first(fetch_or_default(api.all_complaints, [], "Recent complaints unavailable"))

    stats, my_stats = split_dashboard_stats(raw_stats)
    limit = current_app.config.get("RECENT_COMPLAINTS_LIMIT", 4)
    return render_template(
        "dashboard.html",
        stats=stats,
        my_stats=my_stats,
        recent_complaints=recent[:limit],
        page_title="Dashboard",
    )


__all__ = [
    "main_bp",
    "auth_bp",
    "complaints_bp",
    "worker_bp",
    "admin_bp",
    "admin_directory_bp",
    "sla_bp",
]
