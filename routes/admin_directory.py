"""Admin directory: field offices, worker accounts, and the daily attendance register."""
from datetime import date

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for
from flask_wtf import FlaskForm
from wtforms import PasswordField, SelectField, StringField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, Optional

from models import ROOT_ADMIN, WORKER_ROLES
from utils.access import (
    can_access_department,
    filter_department_records,
    filter_departments,
    pinned_department,
)
from utils.backend import ApiError, AuthExpiredError, error_message, fetch_or_default
from utils.complaint_filters import filter_offices, search_workers, worker_full_name
from utils.decorators import admin_api, admin_permission_required, admin_roles_required
from utils.security import PhoneNumber

admin_directory_bp = Blueprint("admin_directory", __name__, url_prefix="/admin")

ACTIVE_CHOICES = [("true", "Active"), ("false", "Inactive")]


class OfficeForm(FlaskForm):
    name = StringField("Office Name", validators=[DataRequired(), Length(max=200)])
    department_id = SelectField("Department", validators=[DataRequired("Please select a department")])
    city = StringField("City", validators=[DataRequired(), Length(max=100)])
    state = StringField("State", validators=[Optional(), Length(max=100)])
    address = TextAreaField("Address", validators=[DataRequired(), Length(max=500)])
    pincode = StringField("Pincode", validators=[Optional(), Length(max=10)])
    phone = StringField("Phone", validators=[PhoneNumber(required=False)])
    email = StringField("Email", validators=[Optional(), Email(), Length(max=150)])
    office_hours = StringField("Office Hours", validators=[Optional(), Length(max=100)])
    submit = SubmitField("Save Office")


class OfficeEditForm(OfficeForm):
    is_active = SelectField("Status", choices=ACTIVE_CHOICES, default="true")


class WorkerForm(FlaskForm):
    first_name = StringField("First Name", validators=[DataRequired(), Length(max=100)])
    last_name = StringField("Last Name", validators=[DataRequired(), Length(max=100)])
    email = StringField("Email", validators=[Optional(), Email(), Length(max=150)])
    phone = StringField("Phone", validators=[PhoneNumber(required=False)])
    department_id = SelectField("Department", validators=[DataRequired("Please select a department")])
    office_id = SelectField("Office", validate_choice=False, validators=[Optional()])
    role = SelectField(
        "Role",
        choices=[(r, r.replace("_", " ").title()) for r in WORKER_ROLES],
        default=WORKER_ROLES[0],
    )
    city = StringField("City", validators=[DataRequired(), Length(max=100)])
    state = StringField("State", validators=[Optional(), Length(max=100)])
    address = TextAreaField("Address", validators=[Optional(), Length(max=500)])
    submit = SubmitField("Save Worker")


class WorkerCreateForm(WorkerForm):
    username = StringField("Username", validators=[DataRequired(), Length(min=3, max=150)])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=6, max=128)])


class WorkerEditForm(WorkerForm):
    is_active = SelectField("Status", choices=ACTIVE_CHOICES, default="true")


class ConfirmForm(FlaskForm):
    submit = SubmitField("Confirm")


def _department_choices(form: FlaskForm, departments: list) -> None:
    """Fill the department select and lock it when the admin is pinned to one department."""
    pinned = pinned_department(g.admin)
    options = filter_departments(g.admin, departments)
    form.department_id.choices = [(str(d.get("id")), d.get("name") or str(d.get("id"))) for d in options]
    if pinned is not None:
        form.department_id.data = str(pinned)
        if not form.department_id.choices:
            form.department_id.choices = [(str(pinned), str(pinned))]
        form.department_id.render_kw = {"disabled": True}


def _office_choices(form: WorkerForm, department_id) -> None:
    offices = []
    if department_id:
        offices = fetch_or_default(
            lambda: admin_api().offices_for_department(department_id), [], "Department offices unavailable"
        )
    form.office_id.choices = [("", "No office")] + [(str(o.get("id")), o.get("name") or str(o.get("id"))) for o in offices]


def _office_payload(form: OfficeForm) -> dict:
    return {
        "name": form.name.data.strip(),
        "department_id": form.department_id.data,
        "city": form.city.data.strip(),
        "state": (form.state.data or "").strip(),
        "address": form.address.data.strip(),
        "pincode": (form.pincode.data or "").strip(),
        "phone": form.phone.data or "",
        "email": (form.email.data or "").strip(),
        "office_hours": (form.office_hours.data or "").strip(),
    }


def _worker_payload(form: WorkerForm) -> dict:
    return {
        "first_name": form.first_name.data.strip(),
        "last_name": form.last_name.data.strip(),
        "email": (form.email.data or "").strip(),
        "phone": form.phone.data or "",
        "department_id": form.department_id.data,
        "office_id": form.office_id.data or None,
        "role": form.role.data,
        "city": form.city.data.strip(),
        "state": (form.state.data or "").strip(),
        "address": (form.address.data or "").strip(),
    }


def _pin_submission(form: FlaskForm) -> None:
    """Disabled selects are not posted; restore the pinned department before validation."""
    pinned = pinned_department(g.admin)
    if pinned is not None:
        form.department_id.data = str(pinned)


def _guard_department(department_id, department_name=None) -> None:
    if not can_access_department(g.admin, department_id, department_name):
        current_app.logger.warning(
            "Admin department outside scope",
            extra={"user_id": g.admin.user_id, "department_id": department_id, "department_name": department_name},
        )
        abort(403)


def _record_department(record: dict):
    department = record.get("department")
    if isinstance(department, dict):
        return department.get("id")
    return record.get("department_id", department)


def _record_department_name(record: dict):
    department = record.get("department")
    if isinstance(department, dict):
        return department.get("name")
    return record.get("department_name")


def _guard_record(record: dict) -> None:
    _guard_department(_record_department(record), _record_department_name(record))


def _department_name(departments: list, department_id):
    for dept in departments:
        if str(dept.get("id")) == str(department_id):
            return dept.get("name")
    return None


def _load_or_404(call):
    try:
        record = call()
    except AuthExpiredError:
        raise
    except ApiError as exc:
        if exc.status == 404:
            abort(404)
        raise
    if not record:
        abort(404)
    return record


def _flash_form_errors(form: FlaskForm) -> None:
    for errors in form.errors.values():
        for message in errors:
            flash(message, "danger")


# Offices


@admin_directory_bp.route("/offices")
@admin_permission_required("manage_offices")
def offices():
    department = request.args.get("department", "")
    city = request.args.get("city", "")
    records = filter_department_records(
        g.admin, fetch_or_default(admin_api().offices, [], "Office list unavailable")
    )
    return render_template(
        "admin/offices.html",
        offices=filter_offices(records, department, city),
        total=len(records),
        filters={"department": department, "city": city},
        page_title="Offices",
    )


@admin_directory_bp.route("/offices/add", methods=["GET", "POST"])
@admin_permission_required("manage_offices")
def add_office():
    departments = fetch_or_default(admin_api().departments, [], "Department list unavailable")
    form = OfficeForm()
    _department_choices(form, departments)
    if request.method == "GET":
        form.state.data = current_app.config["DEFAULT_WORKER_STATE"]
        form.office_hours.data = "9:00 AM - 5:00 PM"
    else:
        _pin_submission(form)

    if form.validate_on_submit():
        _guard_department(form.department_id.data, _department_name(departments, form.department_id.data))
        try:
            admin_api().create_office(_office_payload(form))
        except AuthExpiredError:
            raise
        except ApiError as exc:
            flash(error_message(exc.payload, "Failed to create office"), "danger")
        else:
            current_app.logger.info(
                "Office created",
                extra={"user_id": g.admin.user_id, "office": form.name.data, "department_id": form.department_id.data},
            )
            flash("Office created successfully!", "success")
            return redirect(url_for("admin_directory.offices"))

    return render_template("admin/office_form.html", form=form, office=None, page_title="Add Office")


@admin_directory_bp.route("/offices/<office_id>", methods=["GET", "POST"])
@admin_permission_required("manage_offices")
def office_detail(office_id):
    api = admin_api()
    office = _load_or_404(lambda: api.office(office_id))
    _guard_record(office)

    departments = fetch_or_default(api.departments, [], "Department list unavailable")
    form = OfficeEditForm(
        data={
            **office,
            "department_id": str(_record_department(office) or ""),
            "is_active": "true" if office.get("is_active", True) else "false",
        }
    )
    _department_choices(form, departments)
    if request.method == "POST":
        _pin_submission(form)

    if form.validate_on_submit():
        _guard_department(form.department_id.data, _department_name(departments, form.department_id.data))
        payload = _office_payload(form)
        payload["is_active"] = form.is_active.data == "true"
        try:
            api.update_office(office_id, payload)
        except AuthExpiredError:
            raise
        except ApiError as exc:
            flash(error_message(exc.payload, "Failed to update office"), "danger")
        else:
            current_app.logger.info("Office updated", extra={"user_id": g.admin.user_id, "office_id": office_id})
            flash("Office updated successfully!", "success")
            return redirect(url_for("admin_directory.office_detail", office_id=office_id))
    elif request.method == "POST":
        _flash_form_errors(form)

    workers = fetch_or_default(lambda: api.workers_for_office(office_id), [], "Office workers unavailable")
    return render_template(
        "admin/office_detail.html",
        office=office,
        workers=workers,
        form=form,
        delete_form=ConfirmForm(),
        page_title=office.get("name") or "Office",
    )


@admin_directory_bp.route("/offices/<office_id>/delete", methods=["POST"])
@admin_permission_required("manage_offices")
def delete_office(office_id):
    api = admin_api()
    office = _load_or_404(lambda: api.office(office_id))
    _guard_record(office)
    form = ConfirmForm()
    if not form.validate_on_submit():
        abort(400)
    try:
        api.delete_office(office_id)
    except AuthExpiredError:
        raise
    except ApiError as exc:
        flash(error_message(exc.payload, "Failed to delete office"), "danger")
        return redirect(url_for("admin_directory.office_detail", office_id=office_id))
    current_app.logger.info("Office deleted", extra={"user_id": g.admin.user_id, "office_id": office_id})
    flash("Office deleted.", "success")
    return redirect(url_for("admin_directory.offices"))


# Workers


@admin_directory_bp.route("/workers")
@admin_permission_required("manage_workers")
def workers():
    api = admin_api()
    search = request.args.get("search", "")
    records = filter_department_records(g.admin, fetch_or_default(api.workers, [], "Worker list unavailable"))
    rows = []
    for worker in search_workers(records, search):
        statistics = fetch_or_default(
            lambda: api.worker_statistics(worker.get("id")), None, "Worker statistics unavailable"
        )
        rows.append({"worker": worker, "name": worker_full_name(worker), "statistics": statistics})
    return render_template(
        "admin/workers.html",
        rows=rows,
        total=len(records),
        search=search,
        can_delete_all=g.admin.role == ROOT_ADMIN,
        delete_form=ConfirmForm(),
        page_title="Workers",
    )


@admin_directory_bp.route("/workers/add", methods=["GET", "POST"])
@admin_permission_required("manage_workers")
def add_worker():
    departments = fetch_or_default(admin_api().departments, [], "Department list unavailable")
    form = WorkerCreateForm()
    _department_choices(form, departments)
    if request.method == "GET":
        form.state.data = current_app.config["DEFAULT_WORKER_STATE"]
    else:
        _pin_submission(form)
    selected = form.department_id.data or request.args.get("department_id")
    if selected and not form.department_id.data:
        form.department_id.data = selected
    _office_choices(form, selected)

    if form.validate_on_submit():
        _guard_department(form.department_id.data, _department_name(departments, form.department_id.data))
        payload = _worker_payload(form)
        payload.update(username=form.username.data.strip(), password=form.password.data)
        try:
            admin_api().create_worker(payload)
        except AuthExpiredError:
            raise
        except ApiError as exc:
            flash(error_message(exc.payload, "Failed to create worker"), "danger")
        else:
            current_app.logger.info(
                "Worker created",
                extra={"user_id": g.admin.user_id, "username": payload["username"], "department_id": payload["department_id"]},
            )
            flash("Worker created successfully!", "success")
            return redirect(url_for("admin_directory.workers"))

    return render_template("admin/worker_form.html", form=form, worker=None, page_title="Add Worker")


@admin_directory_bp.route("/workers/<worker_id>", methods=["GET", "POST"])
@admin_permission_required("manage_workers")
def worker_detail(worker_id):
    api = admin_api()
    worker = _load_or_404(lambda: api.worker(worker_id))
    department_id = _record_department(worker)
    _guard_record(worker)

    departments = fetch_or_default(api.departments, [], "Department list unavailable")
    office = worker.get("office")
    form = WorkerEditForm(
        data={
            **worker,
            "department_id": str(department_id or ""),
            "office_id": str((office.get("id") if isinstance(office, dict) else office) or ""),
            "is_active": "true" if worker.get("is_active", True) else "false",
        }
    )
    _department_choices(form, departments)
    if request.method == "POST":
        _pin_submission(form)
    _office_choices(form, form.department_id.data)

    if form.validate_on_submit():
        _guard_department(form.department_id.data, _department_name(departments, form.department_id.data))
        payload = _worker_payload(form)
        payload["is_active"] = form.is_active.data == "true"
        try:
            api.update_worker(worker_id, payload)
        except AuthExpiredError:
            raise
        except ApiError as exc:
            flash(error_message(exc.payload, "Failed to update worker"), "danger")
        else:
            current_app.logger.info("Worker updated", extra={"user_id": g.admin.user_id, "worker_id": worker_id})
            flash("Worker updated successfully!", "success")
            return redirect(url_for("admin_directory.worker_detail", worker_id=worker_id))
    elif request.method == "POST":
        _flash_form_errors(form)

    return render_template(
        "admin/worker_detail.html",
        worker=worker,
        name=worker_full_name(worker),
        statistics=fetch_or_default(lambda: api.worker_statistics(worker_id), None, "Worker statistics unavailable"),
        complaints=fetch_or_default(lambda: api.worker_complaints(worker_id), [], "Worker complaints unavailable"),
        form=form,
        delete_form=ConfirmForm(),
        page_title=worker_full_name(worker) or "Worker",
    )


@admin_directory_bp.route("/workers/<worker_id>/delete", methods=["POST"])
@admin_permission_required("manage_workers")
def delete_worker(worker_id):
    api = admin_api()
    worker = _load_or_404(lambda: api.worker(worker_id))
    _guard_record(worker)
    if not ConfirmForm().validate_on_submit():
        abort(400)
    try:
        api.delete_worker(worker_id)
    except AuthExpiredError:
        raise
    except ApiError as exc:
        flash(error_message(exc.payload, "Failed to delete worker"), "danger")
        return redirect(url_for("admin_directory.worker_detail", worker_id=worker_id))
    current_app.logger.info("Worker deleted", extra={"user_id": g.admin.user_id, "worker_id": worker_id})
    flash("Worker deleted.", "success")
    return redirect(url_for("admin_directory.workers"))


@admin_directory_bp.route("/workers/delete-all", methods=["POST"])
@admin_roles_required(ROOT_ADMIN)
def delete_all_workers():
    if not ConfirmForm().validate_on_submit():
        abort(400)
    try:
        admin_api().delete_all_workers()
    except AuthExpiredError:
        raise
    except ApiError as exc:
        flash(f"Failed to delete workers: {exc.message}", "danger")
        return redirect(url_for("admin_directory.workers"))
    current_app.logger.warning("All workers deleted", extra={"user_id": g.admin.user_id})
    flash("All workers have been deleted successfully", "success")
    return redirect(url_for("admin_directory.workers"))


# Attendance


def _attendance_filters() -> dict:
    values = request.values
    pinned = pinned_department(g.admin)
    return {
        "date": values.get("date") or date.today().isoformat(),
        "city": values.get("city") or g.admin.city_context or "",
        "department_id": str(pinned) if pinned is not None else values.get("department_id", ""),
    }


def _register_rows_in_scope(rows: list, departments: list) -> list:
    """Register rows name their department only, so the scoped catalogue is matched by name as well."""
    allowed_names = {str(d.get("name")).strip().lower() for d in departments if d.get("name")}
    matched = {id(row) for row in filter_department_records(g.admin, rows)}
    return [
        row
        for row in rows
        if isinstance(row, dict)
        and (id(row) in matched or str(row.get("department") or "").strip().lower() in allowed_names)
    ]


def _load_register(filters: dict, departments: list):
    register = fetch_or_default(
        lambda: admin_api().attendance_register(
            filters["date"], filters["city"] or None, filters["department_id"] or None
        ),
        None,
        "Attendance register unavailable",
    )
    if not isinstance(register, dict) or g.admin_scope.unrestricted:
        return register
    rows = _register_rows_in_scope(register.get("register") or [], departments)
    present = sum(1 for row in rows if row.get("status") == "PRESENT")
    return {
        **register,
        "register": rows,
        "total_workers": len(rows),
        "present_count": present,
        "absent_count": len(rows) - present,
    }


def _selected_workers(filters: dict, departments: list) -> list:
    selected = [w for w in request.form.getlist("worker_ids") if w]
    if not selected or g.admin_scope.unrestricted:
        return selected
    register = _load_register(filters, departments) or {}
    allowed = {str(row.get("worker_id")) for row in register.get("register") or []}
    kept = [w for w in selected if w in allowed]
    if len(kept) < len(selected):
        current_app.logger.warning(
            "Attendance selection outside scope",
            extra={"user_id": g.admin.user_id, "dropped": [w for w in selected if w not in allowed]},
        )
    return kept


@admin_directory_bp.route("/attendance", methods=["GET", "POST"])
@admin_permission_required("manage_attendance")
def attendance():
    api = admin_api()
    filters = _attendance_filters()
    form = ConfirmForm()
    catalogue = fetch_or_default(api.departments, [], "Department list unavailable")
    departments = filter_departments(g.admin, catalogue)
    if filters["department_id"]:
        _guard_department(filters["department_id"], _department_name(catalogue, filters["department_id"]))

    if request.method == "POST" and form.validate_on_submit():
        worker_ids = _selected_workers(filters, departments)
        if not worker_ids:
            flash("Please select at least one worker to mark present", "warning")
        else:
            try:
                api.bulk_mark_present(worker_ids, filters["date"])
            except AuthExpiredError:
                raise
            except ApiError as exc:
                current_app.logger.warning("Bulk attendance failed", extra={"error": exc.message})
                flash("Failed to mark attendance. Please try again.", "danger")
            else:
                current_app.logger.info(
                    "Attendance marked",
                    extra={"user_id": g.admin.user_id, "count": len(worker_ids), "date": filters["date"]},
                )
                flash(f"Successfully marked {len(worker_ids)} worker(s) as present", "success")
        return redirect(url_for("admin_directory.attendance", **{k: v for k, v in filters.items() if v}))

    return render_template(
        "admin/attendance.html",
        register=_load_register(filters, departments),
        filters=filters,
        departments=departments,
        department_locked=pinned_department(g.admin) is not None,
        form=form,
        page_title="Attendance",
    )
