"""Authorization decorators for the citizen, worker and admin realms."""
from functools import wraps
from typing import Optional

from flask import abort, current_app, flash, g, redirect, request, url_for

from extensions import backend
from models import WorkerPrincipal
from utils.access import accessible_departments, has_permission, scope_for
from utils.admin_api import AdminApi
from utils.admin_auth import AdminSession, CredentialTable
from utils.api import CitizenApi
from utils.session_store import WORKER_KEY, WORKER_TOKEN_KEY, FlaskSessionStore
from utils.worker_api import WorkerApi


def citizen_api() -> CitizenApi:
    return CitizenApi(backend, FlaskSessionStore())


def worker_api() -> WorkerApi:
    return WorkerApi(backend, FlaskSessionStore())


def admin_api() -> AdminApi:
    return AdminApi(backend, FlaskSessionStore())


def admin_credentials() -> CredentialTable:
    return current_app.extensions.get("admin_credentials") or CredentialTable()


def admin_session() -> AdminSession:
    return AdminSession(FlaskSessionStore(), admin_credentials())


def admin_accessible_departments() -> list:
    """Department ids the signed-in admin may act on; a root admin gets every department with its own login."""
    return accessible_departments(g.admin, admin_credentials().department_ids())


def current_worker() -> Optional[WorkerPrincipal]:
    store = FlaskSessionStore()
    if not store.get(WORKER_TOKEN_KEY):
        return None
    try:
        record = store.get_json(WORKER_KEY)
    except ValueError:
        store.clear_realm("worker")
        return None
    if not isinstance(record, dict):
        return None
    return WorkerPrincipal(record)


def _login_redirect(endpoint: str, message: str):
    flash(message, "warning")
    if request.method == "GET":
        return redirect(url_for(endpoint, next=request.full_path))
    return redirect(url_for(endpoint))


def admin_required(view_func):
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        principal = admin_session().restore()
        if principal is None:
            return _login_redirect("admin.login", "Please log in as an administrator.")
        g.admin = principal
        g.admin_scope = scope_for(principal)
        return view_func(*args, **kwargs)

    return wrapped


def admin_roles_required(*roles):
    allowed = set(roles)

    def decorator(view_func):
        @wraps(view_func)
        @admin_required
        def wrapped(*args, **kwargs):
            if g.admin.role in allowed:
                return view_func(*args, **kwargs)
            current_app.logger.warning(
                "Unauthorized admin role access attempt",
                extra={"user_id": g.admin.user_id, "role": g.admin.role, "path": request.path},
            )
            abort(403)

        return wrapped

    return decorator


def admin_permission_required(permission: str):
    def decorator(view_func):
        @wraps(view_func)
        @admin_required
        def wrapped(*args, **kwargs):
            if has_permission(g.admin, permission):
                return view_func(*args, **kwargs)
            current_app.logger.warning(
                "Admin permission denied",
                extra={"user_id": g.admin.user_id, "permission": permission, "path": request.path},
            )
            abort(403)

        return wrapped

    return decorator


def worker_required(view_func):
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        worker = current_worker()
        if worker is None:
            return _login_redirect("worker.login", "Please log in as a worker.")
        g.worker = worker
        return view_func(*args, **kwargs)

    return wrapped
