"""Complaint intake, photo analysis, listing, and community upvotes blueprint."""
from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField, FileRequired
from wtforms import HiddenField, StringField, SubmitField
from wtforms.validators import Length, Optional

from utils.backend import ApiError, AuthExpiredError, DuplicateComplaintError, error_message, fetch_or_default
from utils.complaint_filters import (
    CITIZEN_TABS,
    STATUS_GROUP_TITLES,
    STATUS_GROUPS,
    filter_by_statuses,
    filter_by_tab,
    newest_first,
    tab_counts,
)
from utils.decorators import citizen_api
from utils.geocoding import GeocodingError, reverse_geocode
from utils.image_utils import ALLOWED_IMAGE_EXTENSIONS, discard_stored_image, load_stored_image, persist_image
from utils.intake import DRAFT_KEY, build_complaint_draft, submission_fields
from utils.session_store import FlaskSessionStore

complaints_bp = Blueprint("complaints", __name__, url_prefix="/complaints")


class ComplaintPhotoForm(FlaskForm):
    image = FileField(
        "Photo of the issue (jpg, png, webp)",
        validators=[FileRequired("Please upload a photo first."), FileAllowed(list(ALLOWED_IMAGE_EXTENSIONS), "Images only")],
    )
    latitude = HiddenField()
    longitude = HiddenField()
    location = HiddenField()
    city = HiddenField()
    state = HiddenField()
    submit = SubmitField("Analyze Photo")


class ComplaintReviewForm(FlaskForm):
    location = StringField("Location", validators=[Optional(), Length(max=500)])
    city = StringField("City", validators=[Optional(), Length(max=100)])
    state = StringField("State", validators=[Optional(), Length(max=100)])
    submit = SubmitField("Submit Complaint")


def _draft_store() -> FlaskSessionStore:
    return FlaskSessionStore()


def _load_draft():
    try:
        return _draft_store().get_json(DRAFT_KEY)
    except ValueError:
        _draft_store().remove(DRAFT_KEY)
        return None


def _drop_draft(draft) -> None:
    if draft:
        discard_stored_image(current_app.config["COMPLAINT_UPLOAD_FOLDER"], draft.get("image_file"))
    _draft_store().remove(DRAFT_KEY)


def _geocode(lat, lng) -> dict:
    if not lat or not lng:
        return {}
    try:
        return reverse_geocode(
            lat,
            lng,
            url=current_app.config["NOMINATIM_URL"],
            user_agent=current_app.config["NOMINATIM_USER_AGENT"],
            timeout=current_app.config["GEOCODE_TIMEOUT_SECONDS"],
        )
    except GeocodingError:
        return {}


@complaints_bp.route("/")
@login_required
def list_complaints():
    tab = request.args.get("tab", "all")
    if tab not in CITIZEN_TABS:
        tab = "all"
    complaints = newest_first(fetch_or_default(citizen_api().my_complaints, [], "My complaints unavailable"))
    return render_template(
        "complaints/list.html",
        complaints=filter_by_tab(complaints, tab),
        counts=tab_counts(complaints),
        tabs=CITIZEN_TABS,
        active_tab=tab,
        page_title="My Complaints",
    )


@complaints_bp.route("/status/<group>")
@login_required
def by_status(group):
    statuses = STATUS_GROUPS.get(group)
    if statuses is None:
        abort(404)
    complaints = fetch_or_default(citizen_api().all_complaints, [], "Complaint list unavailable")
    return render_template(
        "complaints/status.html",
        complaints=newest_first(filter_by_statuses(complaints, statuses)),
        group=group,
        page_title=STATUS_GROUP_TITLES[group],
    )


@complaints_bp.route("/new", methods=["GET", "POST"])
@login_required
def new_complaint():
    form = ComplaintPhotoForm()
    if form.validate_on_submit():
        upload_dir = current_app.config["COMPLAINT_UPLOAD_FOLDER"]
        try:
            stored = persist_image(form.image.data, upload_dir, current_app.config["MAX_IMAGE_UPLOAD_BYTES"])
        except ValueError as exc:
            form.image.errors.append(str(exc))
            return render_template("complaints/new.html", form=form, page_title="Report an Issue"), 400

        photo = load_stored_image(upload_dir, stored["file_name"], stored["original_name"])
        try:
            analysis = citizen_api().analyze_image(photo)
        except AuthExpiredError:
            discard_stored_image(upload_dir, stored["file_name"])
            raise
        except ApiError as exc:
            discard_stored_image(upload_dir, stored["file_name"])
            current_app.logger.warning("Image analysis failed", extra={"status": exc.status, "error": exc.message})
            flash(error_message(exc.payload, "Image analysis failed. Please try again."), "danger")
            return render_template("complaints/new.html", form=form, page_title="Report an Issue"), 502

        latitude, longitude = form.latitude.data or None, form.longitude.data or None
        geo = {"location": form.location.data, "city": form.city.data, "state": form.state.data}
        if not any(geo.values()):
            geo = _geocode(latitude, longitude)

        _drop_draft(_load_draft())
        draft = build_complaint_draft(analysis, geo, current_user.record, latitude, longitude)
        draft["image_file"] = stored["file_name"]
        draft["image_name"] = stored["original_name"]
        _draft_store().set_json(DRAFT_KEY, draft)
        current_app.logger.info(
            "Complaint photo analysed",
            extra={"user_id": current_user.get_id(), "department": draft.get("department_name")},
        )
        return redirect(url_for("complaints.review_complaint"))

    return render_template("complaints/new.html", form=form, page_title="Report an Issue")


@complaints_bp.route("/new/review", methods=["GET", "POST"])
@login_required
def review_complaint():
    draft = _load_draft()
    if not draft:
        flash("Please upload a photo first.", "warning")
        return redirect(url_for("complaints.new_complaint"))

    form = ComplaintReviewForm(data={k: draft.get(k) for k in ("location", "city", "state")})
    if form.validate_on_submit():
        draft.update(
            location=(form.location.data or "").strip(),
            city=(form.city.data or "").strip(),
            state=(form.state.data or "").strip(),
        )
        upload_dir = current_app.config["COMPLAINT_UPLOAD_FOLDER"]
        photo = load_stored_image(upload_dir, draft.get("image_file"), draft.get("image_name"))
        if photo is None:
            _drop_draft(draft)
            flash("The uploaded photo has expired. Please upload it again.", "warning")
            return redirect(url_for("complaints.new_complaint"))

        try:
            result = citizen_api().create_complaint(submission_fields(draft), photo) or {}
        except DuplicateComplaintError as exc:
            _drop_draft(draft)
            current_app.logger.info("Duplicate complaint refused", extra={"existing": exc.existing_complaint_id})
            return render_template("complaints/duplicate.html", duplicate=exc.payload, page_title="Already Reported")
        except AuthExpiredError:
            raise
        except ApiError as exc:
            current_app.logger.warning("Complaint submission failed", extra={"status": exc.status, "error": exc.message})
            flash(error_message(exc.payload, "Failed to submit complaint. Please try again."), "danger")
            return render_template("complaints/review.html", form=form, draft=draft, page_title="Review Complaint")

        _drop_draft(draft)
        if result.get("duplicate"):
            current_app.logger.info(
                "Duplicate complaint upvoted",
                extra={"existing": result.get("existing_complaint_id")},
            )
            return render_template("complaints/duplicate.html", duplicate=result, page_title="Duplicate Issue")

        current_app.logger.info("Complaint submitted", extra={"complaint_id": result.get("id")})
        return render_template("complaints/success.html", complaint=result, page_title="Complaint Submitted")

    return render_template("complaints/review.html", form=form, draft=draft, page_title="Review Complaint")


@complaints_bp.route("/new/cancel", methods=["POST"])
@login_required
def cancel_complaint():
    _drop_draft(_load_draft())
    return redirect(url_for("complaints.new_complaint"))


@complaints_bp.route("/geocode")
@login_required
def geocode():
    try:
        result = reverse_geocode(
            request.args.get("lat"),
            request.args.get("lng"),
            url=current_app.config["NOMINATIM_URL"],
            user_agent=current_app.config["NOMINATIM_USER_AGENT"],
            timeout=current_app.config["GEOCODE_TIMEOUT_SECONDS"],
        )
    except GeocodingError as exc:
        profile = current_user.record
        return jsonify({"error": str(exc), "location": "", "city": profile.get("city") or "", "state": profile.get("state") or ""}), 502
    return jsonify(result)


@complaints_bp.route("/<complaint_id>")
@login_required
def detail(complaint_id):
    api = citizen_api()
    try:
        complaint = api.complaint(complaint_id)
    except AuthExpiredError:
        raise
    except ApiError as exc:
        if exc.status == 404:
            abort(404)
        raise
    logs = fetch_or_default(lambda: api.complaint_logs(complaint_id), [], "Complaint logs unavailable")
    return render_template(
        "complaints/detail.html",
        complaint=complaint,
        logs=list(reversed(logs)),
        page_title=complaint.get("title") or "Complaint",
    )


@complaints_bp.route("/<complaint_id>/upvote", methods=["POST"])
@login_required
def upvote(complaint_id):
    try:
        citizen_api().upvote(complaint_id)
        flash("Thanks for supporting this complaint.", "success")
    except AuthExpiredError:
        raise
    except ApiError as exc:
        flash(error_message(exc.payload, "Failed to upvote"), "danger")
    return redirect(url_for("complaints.detail", complaint_id=complaint_id))
