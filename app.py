"""Flask application factory for the Civic Saathi web client."""
import json
import os
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask, flash, g, redirect, render_template, request, url_for
from flask_login import logout_user

from extensions import backend, csrf, login_manager
from models import ADMIN_ROLE_LABELS, CitizenPrincipal
from utils.admin_api import AdminApi
from utils.admin_auth import AdminAuthError, AdminSession, load_credentials
from utils.backend import ApiError, AuthExpiredError
from utils.image_utils import sweep_stale_images
from utils.logger import init_logging
from utils.security import apply_security_headers
from utils.session_store import TOKEN_KEY, USER_KEY, FlaskSessionStore, MemoryStore
from utils.sla import PLACEHOLDER, build_sla_view, fmt_hours, parse_timestamp, priority_color, status_color

REALM_LOGIN_ENDPOINTS = {
    "citizen": "auth.login",
    "worker": "worker.login",
    "admin": "admin.login",
}


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(403)
    def forbidden(error):
        app.logger.warning("403 Forbidden", extra={"path": request.path, "method": request.method})
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        return render_template("errors/500.html"), 500

    @app.errorhandler(AuthExpiredError)
    def auth_expired(error: AuthExpiredError):
        app.logger.info("Session expired", extra={"realm": error.realm, "path": request.path})
        FlaskSessionStore().clear_realm(error.realm)
        if error.realm == "citizen":
            logout_user()
        flash(error.message, "warning")
        return redirect(url_for(REALM_LOGIN_ENDPOINTS.get(error.realm, "auth.login")))

    @app.errorhandler(ApiError)
    def backend_error(error: ApiError):
        app.logger.warning(
            "Unhandled backend error",
            extra={"path": request.path, "status": error.status, "error": error.message},
        )
        return render_template("errors/502.html", message=error.message), 502


def register_template_helpers(app: Flask) -> None:
    @app.template_filter("hours")
    def hours_filter(value):
        return fmt_hours(value)

    @app.template_filter("status_color")
    def status_color_filter(value):
        return status_color(value)

    @app.template_filter("priority_color")
    def priority_color_filter(value):
        return priority_color(value)

    @app.template_filter("status_label")
    def status_label_filter(value):
        return str(value or "").replace("_", " ").title() or PLACEHOLDER

    @app.template_filter("timestamp")
    def timestamp_filter(value, fmt: str = "%d %b %Y, %I:%M %p"):
        parsed = parse_timestamp(value)
        return parsed.strftime(fmt) if parsed else PLACEHOLDER

    @app.template_global("sla_view")
    def sla_view(complaint):
        return build_sla_view(complaint)

    @app.context_processor
    def inject_global_context():
        return {
            "admin_principal": g.get("admin"),
            "worker_principal": g.get("worker"),
            "admin_role_labels": ADMIN_ROLE_LABELS,
        }


def create_app(config_name: Optional[str] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    # Optional instance-specific overrides
    app.config.from_pyfile("config.py", silent=True)
    os.makedirs(app.config["COMPLAINT_UPLOAD_FOLDER"], exist_ok=True)

    logger = init_logging(app)
    app.logger = logger

    csrf.init_app(app)
    backend.init_app(app)
    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message_category = "warning"

    app.extensions["admin_credentials"] = load_credentials(app.config.get("ADMIN_CREDENTIALS_PATH"))

    @login_manager.user_loader
    def load_user(user_id):
        store = FlaskSessionStore()
        if not user_id or not store.get(TOKEN_KEY):
            return None
        principal = CitizenPrincipal.from_json(store.get(USER_KEY))
        if principal is None or principal.get_id() != str(user_id):
            return None
        if not principal.is_citizen:
            store.clear_realm("citizen")
            return None
        return principal

    from routes import admin_bp, admin_directory_bp, auth_bp, complaints_bp, main_bp, sla_bp, worker_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(complaints_bp)
    app.register_blueprint(worker_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(admin_directory_bp)
    app.register_blueprint(sla_bp)

    @app.route("/favicon.ico")
    def favicon():
        """Serve a favicon if present; otherwise return an empty response to avoid 404 noise."""
        static_ico = os.path.join(app.static_folder or "static", "favicon.ico")
        if os.path.exists(static_ico):
            return app.send_static_file("favicon.ico")
        return "", 204

    @app.cli.command("sla-escalate")
    @click.option("--dry-run", is_flag=True, help="Preview escalations without applying them.")
    def sla_escalate(dry_run: bool):
        """Trigger backend SLA auto-escalation as the root administrator (schedule this via cron)."""
        credentials = app.extensions["admin_credentials"]
        root = credentials.root_admin or {}
        store = MemoryStore()
        try:
            AdminSession(store, credentials).login(root.get("userId", ""), root.get("password", ""))
        except AdminAuthError:
            app.logger.error("SLA escalation skipped: no root admin in the credential table")
            raise click.ClickException("No root admin credentials configured")
        try:
            result = AdminApi(backend, store).trigger_escalation(dry_run=dry_run)
        except ApiError as exc:
            app.logger.exception("SLA escalation failed")
            raise click.ClickException(exc.message)
        app.logger.info("SLA escalation run", extra={"dry_run": dry_run, "result": result})
        click.echo(result.get("output") or json.dumps(result, indent=2))

    @app.cli.command("sweep-uploads")
    @click.option("--max-age-hours", type=int, default=None, help="Age after which a parked photo is abandoned.")
    def sweep_uploads(max_age_hours: Optional[int]):
        """Remove complaint photos left behind by drafts that were never submitted."""
        hours = max_age_hours if max_age_hours is not None else app.config["DRAFT_IMAGE_MAX_AGE_HOURS"]
        removed = sweep_stale_images(app.config["COMPLAINT_UPLOAD_FOLDER"], hours * 3600)
        app.logger.info("Stale uploads swept", extra={"removed": removed, "max_age_hours": hours})
        click.echo(f"Removed {removed} abandoned upload(s)")

    register_error_handlers(app)
    register_template_helpers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    return app


# Expose the Flask application for WSGI servers (e.g., gunicorn app:app).
app = create_app()


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    app.run(host="0.0.0.0", port=port, use_reloader=False)
