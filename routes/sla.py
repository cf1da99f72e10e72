"""SLA management: compliance report, per-category time limits, and escalation runs."""
from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from flask_wtf import FlaskForm
from wtforms import BooleanField, IntegerField, SubmitField
from wtforms.validators import DataRequired, NumberRange

from utils.access import has_permission
from utils.backend import ApiError, AuthExpiredError, error_message
from utils.decorators import admin_api, admin_permission_required, admin_required

sla_bp = Blueprint("sla", __name__, url_prefix="/admin/sla")

SLA_TABS = ("report", "config")
TRIGGER_KEY = "sla_trigger_result"


class SlaConfigForm(FlaskForm):
    escalation_hours = IntegerField(
        "Escalate After (hours)",
        validators=[DataRequired("Enter a whole number of hours"), NumberRange(min=1, message="Hours must be at least 1")],
    )
    resolution_hours = IntegerField(
        "Resolve Within (hours)",
        validators=[DataRequired("Enter a whole number of hours"), NumberRange(min=1, message="Hours must be at least 1")],
    )
    submit = SubmitField("Save")


class EscalationForm(FlaskForm):
    dry_run = BooleanField("Preview only")
    submit = SubmitField("Run Escalation")


def compliance_rate(row: dict) -> int:
    """Share of active complaints still within their SLA (on time or warning); 100 when idle."""
    total = row.get("total") or 0
    if total <= 0:
        return 100
    on_track = (row.get("on_time") or 0) + (row.get("warning") or 0)
    return round(on_track / total * 100)


@sla_bp.route("/")
@admin_required
def overview():
    api = admin_api()
    tab = request.args.get("tab", "report")
    if tab not in SLA_TABS:
        tab = "report"

    error = None
    report, configs = {}, []
    try:
        report = api.sla_report()
        configs = api.sla_configs()
    except AuthExpiredError:
        raise
    except ApiError as exc:
        current_app.logger.warning("SLA data unavailable", extra={"status": exc.status, "error": exc.message})
        error = f"Failed to load SLA data: {error_message(exc.payload, exc.message)}"

    can_manage = has_permission(g.admin, "manage_sla")
    breakdown = [{**row, "compliance": compliance_rate(row)} for row in report.get("department_breakdown") or []]
    forms = {
        cfg.get("id"): SlaConfigForm(
            prefix=f"cfg-{cfg.get('id')}",
            data={"escalation_hours": cfg.get("escalation_hours"), "resolution_hours": cfg.get("resolution_hours")},
        )
        for cfg in configs
    } if can_manage else {}
    trigger_result = session.pop(TRIGGER_KEY, None)
    return render_template(
        "admin/sla.html",
        summary=report.get("summary") or {},
        breakdown=breakdown,
        configs=configs,
        config_forms=forms,
        escalation_form=EscalationForm() if can_manage else None,
        can_manage_sla=can_manage,
        trigger_result=trigger_result,
        active_tab=tab,
        error=error,
        page_title="SLA Management",
    )


@sla_bp.route("/configs/<config_id>", methods=["POST"])
@admin_permission_required("manage_sla")
def update_config(config_id):
    form = SlaConfigForm(prefix=f"cfg-{config_id}")
    if not form.validate_on_submit():
        for errors in form.errors.values():
            for message in errors:
                flash(message, "danger")
        return redirect(url_for("sla.overview", tab="config"))

    payload = {
        "escalation_hours": form.escalation_hours.data,
        "resolution_hours": form.resolution_hours.data,
    }
    try:
        admin_api().update_sla_config(config_id, payload)
    except AuthExpiredError:
        raise
    except ApiError as exc:
        flash(f"Failed to save: {error_message(exc.payload, exc.message)}", "danger")
    else:
        current_app.logger.info(
            "SLA config updated",
            extra={"user_id": g.admin.user_id, "config_id": config_id, **payload},
        )
        flash("SLA configuration saved.", "success")
    return redirect(url_for("sla.overview", tab="config"))


@sla_bp.route("/escalate", methods=["POST"])
@admin_permission_required("manage_sla")
def trigger_escalation():
    form = EscalationForm()
    if not form.validate_on_submit():
        flash("Invalid escalation request.", "danger")
        return redirect(url_for("sla.overview"))

    dry_run = bool(form.dry_run.data)
    try:
        result = admin_api().trigger_escalation(dry_run=dry_run)
    except AuthExpiredError:
        raise
    except ApiError as exc:
        current_app.logger.warning("SLA escalation failed", extra={"dry_run": dry_run, "error": exc.message})
        session[TRIGGER_KEY] = {"success": False, "error": error_message(exc.payload, exc.message), "dry_run": dry_run}
    else:
        current_app.logger.info("SLA escalation run", extra={"user_id": g.admin.user_id, "dry_run": dry_run})
        session[TRIGGER_KEY] = {"success": True, "output": result.get("output") or "", "dry_run": dry_run}
    return redirect(url_for("sla.overview"))
