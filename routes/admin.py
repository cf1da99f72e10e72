"""Admin portal: login, scoped dashboards, complaint triage, and department overview."""
from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField, FileRequired
from wtforms import IntegerField, PasswordField, SelectField, StringField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from models import (
    ADMIN_QUICK_STATUSES,
    COMPLAINT_STATUSES,
    IN_PROGRESS_STATUSES,
    ROOT_ADMIN,
    SUB_ADMIN,
)
from utils.access import complaint_in_scope, filter_complaints, filter_departments
from utils.admin_auth import AdminAuthError
from utils.backend import ApiError, AuthExpiredError, fetch_or_default
from utils.complaint_filters import (
    EMPTY_ADMIN_STATS,
    admin_stats,
    apply_admin_filters,
    department_breakdown,
    distinct_values,
    filter_by_statuses,
    newest_first,
)
from utils.decorators import (
    admin_api,
    admin_accessible_departments,
    admin_credentials,
    admin_permission_required,
    admin_required,
    admin_roles_required,
    admin_session,
)
from utils.image_utils import ALLOWED_IMAGE_EXTENSIONS, image_part
from utils.security import is_safe_redirect_url

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


class AdminLoginForm(FlaskForm):
    user_id = StringField("Admin ID", validators=[DataRequired(), Length(max=150)])
    password = PasswordField("Password", validators=[DataRequired()])
    city_context = StringField("City (department admins)", validators=[Optional(), Length(max=100)])
    submit = SubmitField("Sign In")


class ActionNotesForm(FlaskForm):
    notes = TextAreaField("Notes", validators=[Optional(), Length(max=2000)])
    submit = SubmitField("Confirm")


class RejectForm(FlaskForm):
    reason = TextAreaField(
        "Reason",
        validators=[DataRequired("Please provide a reason for rejection"), Length(max=2000)],
    )
    submit = SubmitField("Reject Complaint")


class DeleteForm(FlaskForm):
    reason = TextAreaField(
        "Reason",
        validators=[DataRequired("Please provide a reason for deleting this complaint"), Length(max=2000)],
    )
    submit = SubmitField("Delete Complaint")


class AssignWorkerForm(ActionNotesForm):
    worker_id = StringField("Worker", validators=[DataRequired("Please select a worker")])
    sla_hours = IntegerField(
        "SLA (hours)",
        validators=[
            DataRequired("Please enter a valid SLA time (in hours)"),
            NumberRange(min=1, message="Please enter a valid SLA time (in hours)"),
        ],
    )


class ReassignDepartmentForm(ActionNotesForm):
    department_id = StringField("Department", validators=[DataRequired("Please select a department")])


class AssignOfficeForm(ActionNotesForm):
    office_id = StringField("Office", validators=[DataRequired("Please select an office")])


class QuickStatusForm(FlaskForm):
    status = SelectField("Status", choices=[(s, s.replace("_", " ").title()) for s in ADMIN_QUICK_STATUSES])
    submit = SubmitField("Update Status")


class MarkCompletedForm(ActionNotesForm):
    completion_image = FileField(
        "Completion Photo",
        validators=[
            FileRequired("Please upload a completion photo"),
            FileAllowed(list(ALLOWED_IMAGE_EXTENSIONS), "Images only"),
        ],
    )


def department_ref(complaint: dict):
    department = complaint.get("department")
    if isinstance(department, dict):
        return department.get("id")
    return department


def _scoped_complaint(complaint_id) -> dict:
    try:
        complaint = admin_api().complaint(complaint_id)
    except AuthExpiredError:
        raise
    except ApiError as exc:
        if exc.status == 404:
            abort(404)
        raise
    if not complaint_in_scope(g.admin, complaint):
        current_app.logger.warning(
            "Admin complaint outside scope",
            extra={"user_id": g.admin.user_id, "complaint_id": complaint_id},
        )
        abort(403)
    return complaint


def _flash_form_errors(form: FlaskForm) -> None:
    for errors in form.errors.values():
        for message in errors:
            flash(message, "danger")


def _run_action(complaint_id, action: str, call, success: str):
    try:
        call()
    except AuthExpiredError:
        raise
    except ApiError as exc:
        current_app.logger.warning(
            "Admin action failed",
            extra={"action": action, "complaint_id": complaint_id, "status": exc.status, "error": exc.message},
        )
        flash(f"Failed to {action.replace('_', ' ')}: {exc.message}", "danger")
        return False
    current_app.logger.info(
        "Admin action",
        extra={"action": action, "complaint_id": complaint_id, "user_id": g.admin.user_id},
    )
    flash(success, "success")
    return True


def _back_to_detail(complaint_id):
    return redirect(url_for("admin.complaint_detail", complaint_id=complaint_id))


def _scoped_complaints() -> list:
    complaints = fetch_or_default(admin_api().all_complaints, [], "Admin complaint list unavailable")
    return filter_complaints(g.admin, complaints)


@admin_bp.route("/login", methods=["GET", "POST"])
def login():
    session = admin_session()
    if session.restore() is not None:
        return redirect(url_for("admin.dashboard"))

    form = AdminLoginForm()
    if form.validate_on_submit():
        try:
            session.login(form.user_id.data, form.password.data, form.city_context.data)
        except AdminAuthError as exc:
            current_app.logger.info("Admin login failed", extra={"user_id": form.user_id.data})
            flash(str(exc), "danger")
            return render_template("admin/login.html", form=form, page_title="Admin Login"), 401

        next_page = request.args.get("next")
        if next_page and is_safe_redirect_url(next_page):
            return redirect(next_page)
        return redirect(url_for("admin.dashboard"))

    return render_template("admin/login.html", form=form, page_title="Admin Login")


@admin_bp.route("/logout")
def logout():
    admin_session().logout()
    flash("You have been logged out.", "success")
    return redirect(url_for("admin.login"))


@admin_bp.route("/")
@admin_bp.route("/dashboard")
@admin_required
def dashboard():
    raw = fetch_or_default(admin_api().dashboard_stats, {}, "Admin dashboard stats unavailable")
    if isinstance(raw, dict) and "total_complaints" in raw:
        stats = {**EMPTY_ADMIN_STATS, **raw}
    else:
        stats = admin_stats(_scoped_complaints())

    credentials = admin_credentials()
    departments = [credentials.department_label(d) for d in admin_accessible_departments()]
    return render_template(
        "admin/dashboard.html",
        stats=stats,
        context=credentials.profile_for(g.admin),
        departments_in_scope=departments,
        page_title="Admin Dashboard",
    )


@admin_bp.route("/complaints")
@admin_required
def complaints():
    scoped = newest_first(_scoped_complaints())
    filters = {
        "status": request.args.get("status", "all"),
        "department": request.args.get("department", "all"),
        "city": request.args.get("city", "all"),
        "search": request.args.get("search", ""),
    }
    return render_template(
        "admin/complaints.html",
        complaints=apply_admin_filters(scoped, **filters),
        total=len(scoped),
        filters=filters,
        statuses=COMPLAINT_STATUSES,
        departments=distinct_values(scoped, "department_name"),
        cities=distinct_values(scoped, "city"),
        page_title="Complaints",
    )


@admin_bp.route("/complaints/status/in-progress")
@admin_required
def complaints_in_progress():
    complaints = newest_first(filter_by_statuses(_scoped_complaints(), IN_PROGRESS_STATUSES))
    return render_template("admin/complaints_in_progress.html", complaints=complaints, page_title="In-Progress Complaints")


@admin_bp.route("/complaints/<complaint_id>")
@admin_required
def complaint_detail(complaint_id):
    complaint = _scoped_complaint(complaint_id)
    api = admin_api()
    logs = fetch_or_default(lambda: api.complaint_logs(complaint_id), [], "Complaint logs unavailable")

    dept_id = department_ref(complaint)
    workers = []
    if dept_id is not None:
        all_workers = fetch_or_default(api.workers, [], "Worker list unavailable")
        for worker in all_workers:
            if str(department_ref(worker)) == str(dept_id):
                stats = fetch_or_default(lambda: api.worker_statistics(worker.get("id")), None, "Worker statistics unavailable")
                workers.append({"worker": worker, "stats": stats or {}})
    departments = fetch_or_default(api.departments, [], "Department list unavailable")
    offices = fetch_or_default(
        lambda: api.offices_for_department(dept_id) if dept_id is not None else api.offices(),
        [],
        "Office list unavailable",
    )
    return render_template(
        "admin/complaint_detail.html",
        complaint=complaint,
        logs=logs,
        workers=workers,
        departments=departments,
        offices=offices,
        can_delete=g.admin.role in (ROOT_ADMIN, SUB_ADMIN),
        assign_form=AssignWorkerForm(),
        reject_form=RejectForm(),
        delete_form=DeleteForm(),
        reassign_form=ReassignDepartmentForm(),
        office_form=AssignOfficeForm(),
        status_form=QuickStatusForm(),
        complete_form=MarkCompletedForm(),
        verify_form=ActionNotesForm(),
        page_title=complaint.get("title") or "Complaint",
    )


@admin_bp.route("/complaints/<complaint_id>/verify", methods=["POST"])
@admin_permission_required("update_status")
def verify_complaint(complaint_id):
    _scoped_complaint(complaint_id)
    form = ActionNotesForm()
    if form.validate_on_submit():
        _run_action(
            complaint_id,
            "verify_complaint",
            lambda: admin_api().verify_complaint(complaint_id, {"verified": True}),
            "Complaint verified successfully!",
        )
    else:
        _flash_form_errors(form)
    return _back_to_detail(complaint_id)


@admin_bp.route("/complaints/<complaint_id>/reject", methods=["POST"])
@admin_permission_required("reject_complaints")
def reject_complaint(complaint_id):
    _scoped_complaint(complaint_id)
    form = RejectForm()
    if form.validate_on_submit():
        _run_action(
            complaint_id,
            "reject_complaint",
            lambda: admin_api().reject_complaint(complaint_id, form.reason.data.strip()),
            "Complaint rejected successfully",
        )
    else:
        _flash_form_errors(form)
    return _back_to_detail(complaint_id)


@admin_bp.route("/complaints/<complaint_id>/assign", methods=["POST"])
@admin_permission_required("assign_complaints")
def assign_worker(complaint_id):
    _scoped_complaint(complaint_id)
    form = AssignWorkerForm()
    if form.validate_on_submit():
        _run_action(
            complaint_id,
            "assign_complaint",
            lambda: admin_api().assign_to_worker(
                complaint_id, form.worker_id.data, (form.notes.data or "").strip(), form.sla_hours.data
            ),
            "Complaint assigned successfully",
        )
    else:
        _flash_form_errors(form)
    return _back_to_detail(complaint_id)


@admin_bp.route("/complaints/<complaint_id>/reassign", methods=["POST"])
@admin_permission_required("reassign_department")
def reassign_department(complaint_id):
    _scoped_complaint(complaint_id)
    form = ReassignDepartmentForm()
    if form.validate_on_submit():
        moved = _run_action(
            complaint_id,
            "assign_department",
            lambda: admin_api().reassign_department(complaint_id, form.department_id.data, (form.notes.data or "").strip()),
            "Department assigned successfully",
        )
        if moved:
            # The complaint may have left this admin's scope.
            return redirect(url_for("admin.complaints"))
    else:
        _flash_form_errors(form)
    return _back_to_detail(complaint_id)


@admin_bp.route("/complaints/<complaint_id>/assign-office", methods=["POST"])
@admin_permission_required("reassign_department")
def assign_office(complaint_id):
    _scoped_complaint(complaint_id)
    form = AssignOfficeForm()
    if form.validate_on_submit():
        _run_action(
            complaint_id,
            "assign_office",
            lambda: admin_api().assign_office(complaint_id, form.office_id.data, (form.notes.data or "").strip()),
            "Office assigned successfully",
        )
    else:
        _flash_form_errors(form)
    return _back_to_detail(complaint_id)


@admin_bp.route("/complaints/<complaint_id>/status", methods=["POST"])
@admin_permission_required("update_status")
def quick_status(complaint_id):
    _scoped_complaint(complaint_id)
    form = QuickStatusForm()
    if form.validate_on_submit():
        _run_action(
            complaint_id,
            "update_status",
            lambda: admin_api().update_status(complaint_id, form.status.data),
            "Status updated successfully",
        )
    else:
        _flash_form_errors(form)
    return _back_to_detail(complaint_id)


@admin_bp.route("/complaints/<complaint_id>/complete", methods=["POST"])
@admin_permission_required("update_status")
def mark_completed(complaint_id):
    _scoped_complaint(complaint_id)
    form = MarkCompletedForm()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return _back_to_detail(complaint_id)
    try:
        photo = image_part(form.completion_image.data, current_app.config["MAX_IMAGE_UPLOAD_BYTES"])
    except ValueError as exc:
        flash(str(exc), "danger")
        return _back_to_detail(complaint_id)
    _run_action(
        complaint_id,
        "mark_completed",
        lambda: admin_api().mark_completed(complaint_id, photo, (form.notes.data or "").strip()),
        "Complaint marked as completed",
    )
    return _back_to_detail(complaint_id)


@admin_bp.route("/complaints/<complaint_id>/delete", methods=["POST"])
@admin_roles_required(ROOT_ADMIN, SUB_ADMIN)
def delete_complaint(complaint_id):
    _scoped_complaint(complaint_id)
    form = DeleteForm()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return _back_to_detail(complaint_id)
    deleted = _run_action(
        complaint_id,
        "delete_complaint",
        lambda: admin_api().delete_complaint(complaint_id, form.reason.data.strip()),
        "Complaint deleted successfully",
    )
    if deleted:
        return redirect(url_for("admin.complaints"))
    return _back_to_detail(complaint_id)


@admin_bp.route("/departments")
@admin_roles_required(ROOT_ADMIN, SUB_ADMIN)
def departments():
    api = admin_api()
    visible = filter_departments(g.admin, fetch_or_default(api.departments, [], "Department list unavailable"))
    rows = department_breakdown(visible, _scoped_complaints())
    return render_template("admin/departments.html", departments=rows, page_title="Departments")
