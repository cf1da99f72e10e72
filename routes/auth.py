"""Citizen authentication blueprint."""
from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf import FlaskForm
from wtforms import PasswordField, StringField, SubmitField
from wtforms.validators import DataRequired, Email, EqualTo, Length, Optional

from models import CitizenPrincipal
from utils.backend import ApiError, AuthExpiredError, error_message
from utils.decorators import citizen_api
from utils.security import PhoneNumber, is_safe_redirect_url
from utils.session_store import TOKEN_KEY, USER_KEY, FlaskSessionStore

auth_bp = Blueprint("auth", __name__)

NOT_A_CITIZEN = "This account is not a citizen account. Please use the worker or admin portal."


class RegistrationForm(FlaskForm):
    first_name = StringField("First Name", validators=[DataRequired(), Length(max=150)])
    last_name = StringField("Last Name", validators=[DataRequired(), Length(max=150)])
    username = StringField("Username", validators=[DataRequired(), Length(max=150)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=8)])
    confirm_password = PasswordField(
        "Confirm Password", validators=[DataRequired(), EqualTo("password", message="Passwords do not match")]
    )
    phone = StringField("Phone Number", validators=[PhoneNumber(required=True)])
    city = StringField("City", validators=[Optional(), Length(max=100)])
    state = StringField("State", validators=[Optional(), Length(max=100)])
    submit = SubmitField("Create Account")


class LoginForm(FlaskForm):
    username = StringField("Username", validators=[DataRequired(), Length(max=150)])
    password = PasswordField("Password", validators=[DataRequired()])
    submit = SubmitField("Sign In")


def _start_session(token: str, record: dict) -> bool:
    """Persist the citizen token and user record; refuses privileged accounts."""
    store = FlaskSessionStore()
    store.set(TOKEN_KEY, token)
    api = citizen_api()
    try:
        record = api.current_user() or record
    except AuthExpiredError:
        store.clear_realm("citizen")
        raise
    except ApiError as exc:
        current_app.logger.warning("Citizen token validation failed", extra={"error": exc.message})
    principal = CitizenPrincipal(record)
    if not principal.is_citizen:
        store.clear_realm("citizen")
        current_app.logger.warning(
            "Privileged account refused on citizen portal",
            extra={"username": principal.username, "user_type": principal.user_type},
        )
        return False
    store.set_json(USER_KEY, principal.record)
    login_user(principal)
    return True


def _redirect_after_login():
    next_page = request.args.get("next")
    if next_page and is_safe_redirect_url(next_page):
        return redirect(next_page)
    return redirect(url_for("main.dashboard"))


@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))

    form = RegistrationForm()
    if form.validate_on_submit():
        payload = {
            "first_name": form.first_name.data.strip(),
            "last_name": form.last_name.data.strip(),
            "username": form.username.data.strip(),
            "email": form.email.data.lower().strip(),
            "password": form.password.data,
            "confirm_password": form.confirm_password.data,
            "phone": form.phone.data,
            "city": (form.city.data or "").strip(),
            "state": (form.state.data or "").strip(),
        }
        try:
            response = citizen_api().register(payload)
        except ApiError as exc:
            current_app.logger.info("Registration rejected", extra={"username": payload["username"], "status": exc.status})
            flash(error_message(exc.payload, "Registration failed"), "danger")
            return render_template("auth/register.html", form=form, page_title="Register"), 400

        token = (response or {}).get("token")
        if not token:
            flash("Registration successful. Please log in.", "success")
            return redirect(url_for("auth.login"))
        if not _start_session(token, response.get("user") or {}):
            flash(NOT_A_CITIZEN, "danger")
            return redirect(url_for("auth.login"))
        current_app.logger.info("Citizen registered", extra={"username": payload["username"]})
        flash("Welcome to Civic Saathi!", "success")
        return redirect(url_for("main.dashboard"))

    return render_template("auth/register.html", form=form, page_title="Register")


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("main.dashboard"))

    form = LoginForm()
    if form.validate_on_submit():
        username = form.username.data.strip()
        try:
            response = citizen_api().login(username, form.password.data)
        except AuthExpiredError:
            response = None
        except ApiError as exc:
            current_app.logger.info("Citizen login failed", extra={"username": username, "status": exc.status})
            flash(error_message(exc.payload, "Login failed"), "danger")
            return render_template("auth/login.html", form=form, page_title="Login"), 401

        token = (response or {}).get("token")
        if not token:
            flash("Invalid credentials provided.", "danger")
            return render_template("auth/login.html", form=form, page_title="Login"), 401

        if not _start_session(token, response.get("user") or {}):
            flash(NOT_A_CITIZEN, "danger")
            return render_template("auth/login.html", form=form, page_title="Login"), 403

        current_app.logger.info("Citizen login", extra={"username": username})
        return _redirect_after_login()

    return render_template("auth/login.html", form=form, page_title="Login")


@auth_bp.route("/logout")
@login_required
def logout():
    try:
        citizen_api().logout()
    except ApiError as exc:
        current_app.logger.warning("Backend logout failed", extra={"error": exc.message})
    FlaskSessionStore().clear_realm("citizen")
    logout_user()
    flash("You have been logged out.", "success")
    return redirect(url_for("auth.login"))
