"""Worker portal: login, assignments, overdue tracking, and completion evidence."""
from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from wtforms import PasswordField, StringField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Length

from models import COMPLETED_STATUSES, IN_PROGRESS_STATUSES
from utils.backend import ApiError, AuthExpiredError, error_message, fetch_or_default
from utils.complaint_filters import filter_by_statuses, worker_stats
from utils.decorators import current_worker, worker_api, worker_required
from utils.image_utils import ALLOWED_IMAGE_EXTENSIONS, image_part
from utils.security import is_safe_redirect_url
from utils.session_store import WORKER_KEY, WORKER_TOKEN_KEY, FlaskSessionStore
from utils.sla import days_overdue, is_past_deadline, utcnow

worker_bp = Blueprint("worker", __name__, url_prefix="/worker")

IDENTITY_FIELDS = ("first_name", "last_name", "username", "email")


class WorkerLoginForm(FlaskForm):
    username = StringField("Username", validators=[DataRequired(), Length(max=150)])
    password = PasswordField("Password", validators=[DataRequired()])
    submit = SubmitField("Sign In")


class CompletionForm(FlaskForm):
    completion_note = TextAreaField("Completion Notes", validators=[DataRequired(), Length(max=2000)])
    completion_image = FileField(
        "Completion Photo",
        validators=[FileAllowed(list(ALLOWED_IMAGE_EXTENSIONS), "Images only")],
    )
    submit = SubmitField("Mark as Completed")


def merge_worker_identity(worker: dict, user: dict) -> dict:
    """Worker record with the user's identity fields folded in so a name is always available."""
    merged = dict(worker or {})
    for key in IDENTITY_FIELDS:
        merged[key] = (user or {}).get(key)
    return merged


@worker_bp.route("/login", methods=["GET", "POST"])
def login():
    if current_worker() is not None:
        return redirect(url_for("worker.dashboard"))

    form = WorkerLoginForm()
    if form.validate_on_submit():
        username = form.username.data.strip()
        try:
            response = worker_api().login(username, form.password.data) or {}
        except AuthExpiredError:
            response = {}
        except ApiError as exc:
            current_app.logger.info("Worker login failed", extra={"username": username, "status": exc.status})
            flash(error_message(exc.payload, "Login failed"), "danger")
            return render_template("worker/login.html", form=form, page_title="Worker Login"), 401

        token = response.get("token")
        if not token:
            flash("Invalid credentials provided.", "danger")
            return render_template("worker/login.html", form=form, page_title="Worker Login"), 401

        store = FlaskSessionStore()
        store.set(WORKER_TOKEN_KEY, token)
        record = merge_worker_identity(response.get("worker") or {}, response.get("user") or {})
        current = fetch_or_default(worker_api().current_worker, None, "Worker profile unavailable")
        if isinstance(current, dict):
            record = {**current, **{k: v for k, v in record.items() if v is not None}}
        store.set_json(WORKER_KEY, record)
        current_app.logger.info("Worker login", extra={"username": username})

        next_page = request.args.get("next")
        if next_page and is_safe_redirect_url(next_page):
            return redirect(next_page)
        return redirect(url_for("worker.dashboard"))

    return render_template("worker/login.html", form=form, page_title="Worker Login")


@worker_bp.route("/logout")
def logout():
    if current_worker() is not None:
        try:
            worker_api().logout()
        except ApiError as exc:
            current_app.logger.warning("Backend worker logout failed", extra={"error": exc.message})
    FlaskSessionStore().clear_realm("worker")
    flash("You have been logged out.", "success")
    return redirect(url_for("worker.login"))


@worker_bp.route("/")
@worker_bp.route("/dashboard")
@worker_required
def dashboard():
    api = worker_api()
    assignments = fetch_or_default(api.assigned_complaints, [], "Worker assignments unavailable")
    stats = fetch_or_default(api.dashboard_stats, None, "Worker stats unavailable")
    if not stats:
        stats = worker_stats(assignments, utcnow())
    limit = current_app.config.get("RECENT_COMPLAINTS_LIMIT", 4)
    return render_template(
        "worker/dashboard.html",
        stats=stats,
        recent_complaints=assignments[:limit],
        page_title="Worker Dashboard",
    )


@worker_bp.route("/assigned")
@worker_required
def assigned():
    complaints = fetch_or_default(worker_api().assigned_complaints, [], "Worker assignments unavailable")
    return render_template("worker/list.html", complaints=complaints, view="assigned", page_title="Assigned Complaints")


@worker_bp.route("/completed")
@worker_required
def completed():
    api = worker_api()
    try:
        complaints = api.completed_complaints()
    except AuthExpiredError:
        raise
    except ApiError as exc:
        current_app.logger.warning("Completed list unavailable, filtering assignments", extra={"error": exc.message})
        assignments = fetch_or_default(api.assigned_complaints, [], "Worker assignments unavailable")
        complaints = filter_by_statuses(assignments, COMPLETED_STATUSES)
    return render_template("worker/list.html", complaints=complaints, view="completed", page_title="Completed Complaints")


@worker_bp.route("/overdue")
@worker_required
def overdue():
    api = worker_api()
    now = utcnow()
    try:
        complaints = api.overdue_complaints()
    except AuthExpiredError:
        raise
    except ApiError as exc:
        current_app.logger.warning("Overdue list unavailable, filtering assignments", extra={"error": exc.message})
        assignments = fetch_or_default(api.assigned_complaints, [], "Worker assignments unavailable")
        complaints = [c for c in assignments if is_past_deadline(c, now)]
    rows = [{"complaint": c, "days_overdue": days_overdue(c.get("sla_deadline"), now)} for c in complaints]
    return render_template("worker/overdue.html", rows=rows, page_title="Overdue Complaints")


@worker_bp.route("/complaints/<complaint_id>", methods=["GET", "POST"])
@worker_required
def complaint_detail(complaint_id):
    api = worker_api()
    try:
        complaint = api.complaint_detail(complaint_id)
    except AuthExpiredError:
        raise
    except ApiError as exc:
        if exc.status == 404:
            abort(404)
        raise

    can_complete = str(complaint.get("status") or "").upper() in IN_PROGRESS_STATUSES
    form = CompletionForm()
    if form.validate_on_submit():
        if not can_complete:
            flash("Only assigned or in-progress complaints can be completed.", "warning")
            return redirect(url_for("worker.complaint_detail", complaint_id=complaint_id))
        photo = None
        if form.completion_image.data:
            try:
                photo = image_part(form.completion_image.data, current_app.config["MAX_IMAGE_UPLOAD_BYTES"])
            except ValueError as exc:
                form.completion_image.errors.append(str(exc))
        if not form.completion_image.errors:
            try:
                api.submit_completion(complaint_id, form.completion_note.data.strip(), photo)
            except AuthExpiredError:
                raise
            except ApiError as exc:
                flash(error_message(exc.payload, "Failed to submit completion"), "danger")
            else:
                current_app.logger.info(
                    "Worker completed complaint",
                    extra={"complaint_id": complaint_id, "worker": g.worker.username},
                )
                flash("Complaint marked as completed successfully!", "success")
                return redirect(url_for("worker.dashboard"))

    return render_template(
        "worker/complaint_detail.html",
        complaint=complaint,
        form=form,
        can_complete=can_complete,
        is_overdue=is_past_deadline(complaint, utcnow()),
        page_title=complaint.get("title") or "Complaint",
    )
