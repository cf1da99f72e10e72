"""Admin-facing backend endpoints.

Every call carries `X-Admin-Token` and `X-Admin-User` (the stored admin record, verbatim) when an
admin is logged in, plus the citizen `Authorization: Token` header when one happens to exist.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from utils.api import multipart
from utils.backend import Backend, unwrap_list
from utils.session_store import ADMIN_TOKEN_KEY, ADMIN_USER_KEY, TOKEN_KEY, SessionStore

EMPTY_WORKER_STATISTICS = {"active_assignments": 0, "completed_assignments": 0, "total_assignments": 0}


class AdminApi:
    realm = "admin"

    def __init__(self, backend: Backend, store: SessionStore) -> None:
        self.backend = backend
        self.store = store

    def auth_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        admin_token = self.store.get(ADMIN_TOKEN_KEY)
        admin_user = self.store.get(ADMIN_USER_KEY)
        if admin_token and admin_user:
            headers["X-Admin-Token"] = admin_token
            headers["X-Admin-User"] = admin_user
        token = self.store.get(TOKEN_KEY)
        if token:
            headers["Authorization"] = f"Token {token}"
        return headers

    def call(self, method: str, path: str, **kwargs) -> Any:
        return self.backend.request(method, path, realm=self.realm, headers=self.auth_headers(), **kwargs)

    # Complaints
    def all_complaints(self, params: Optional[Dict[str, Any]] = None) -> list:
        return unwrap_list(self.call("GET", "/complaints/all/", params=params))

    def complaint(self, complaint_id) -> Dict[str, Any]:
        return self.call("GET", f"/complaints/{complaint_id}/")

    def verify_complaint(self, complaint_id, data: Optional[Dict[str, Any]] = None) -> Any:
        return self.call("POST", f"/complaints/{complaint_id}/verify/", json=data or {})

    def reject_complaint(self, complaint_id, reason: str) -> Any:
        return self.call("POST", f"/complaints/{complaint_id}/reject/", json={"reason": reason})

    def assign_to_worker(self, complaint_id, worker_id, notes: str = "", sla_hours: Optional[int] = None) -> Any:
        payload = {"worker_id": worker_id, "notes": notes, "sla_hours": sla_hours}
        return self.call("POST", f"/complaints/{complaint_id}/assign/", json=payload)

    def update_status(self, complaint_id, status: str, notes: str = "", completion_image=None) -> Any:
        data, files = multipart({"status": status, "note": notes or None}, {"completion_image": completion_image})
        return self.call("POST", f"/complaints/{complaint_id}/update-status/", data=data, files=files or None)

    def mark_completed(self, complaint_id, completion_image, notes: str) -> Any:
        return self.update_status(complaint_id, "COMPLETED", notes, completion_image)

    def reassign_department(self, complaint_id, department_id, reason: str) -> Any:
        payload = {"department_id": department_id, "reason": reason}
        return self.call("POST", f"/complaints/{complaint_id}/reassign/", json=payload)

    def assign_office(self, complaint_id, office_id, notes: str = "") -> Any:
        payload = {"office_id": office_id, "notes": notes}
        return self.call("POST", f"/complaints/{complaint_id}/assign-office/", json=payload)

    def delete_complaint(self, complaint_id, reason: str) -> Any:
        return self.call("DELETE", f"/complaints/{complaint_id}/delete/", json={"reason": reason})

    def complaint_logs(self, complaint_id) -> list:
        return unwrap_list(self.call("GET", f"/complaints/{complaint_id}/logs/"))

    # Departments
    def departments(self) -> list:
        return unwrap_list(self.call("GET", "/departments/"))

    # Offices
    def offices(self, params: Optional[Dict[str, Any]] = None) -> list:
        return unwrap_list(self.call("GET", "/offices/", params=params))

    def offices_for_department(self, department_id) -> list:
        return self.offices({"department_id": department_id})

    def office(self, office_id) -> Optional[Dict[str, Any]]:
        """The backend has no single-office endpoint; pick it out of the list."""
        for office in self.offices():
            if str(office.get("id")) == str(office_id):
                return office
        return None

    def create_office(self, data: Dict[str, Any]) -> Any:
        return self.call("POST", "/offices/create/", json=data)

    def update_office(self, office_id, data: Dict[str, Any]) -> Any:
        return self.call("PUT", f"/offices/{office_id}/update/", json=data)

    def delete_office(self, office_id) -> Any:
        return self.call("DELETE", f"/offices/{office_id}/")

    # Workers
    def workers(self, params: Optional[Dict[str, Any]] = None) -> list:
        return unwrap_list(self.call("GET", "/workers/", params=params))

    def workers_for_office(self, office_id) -> list:
        return self.workers({"office": office_id})

    def worker(self, worker_id) -> Dict[str, Any]:
        return self.call("GET", f"/workers/{worker_id}/")

    def worker_statistics(self, worker_id) -> Dict[str, Any]:
        return self.call("GET", f"/workers/{worker_id}/statistics/") or dict(EMPTY_WORKER_STATISTICS)

    def worker_complaints(self, worker_id) -> list:
        return unwrap_list(self.call("GET", f"/workers/{worker_id}/complaints/"))

    def create_worker(self, data: Dict[str, Any]) -> Any:
        return self.call("POST", "/workers/create/", json=data)

    def update_worker(self, worker_id, data: Dict[str, Any]) -> Any:
        return self.call("PUT", f"/workers/{worker_id}/update/", json=data)

    def delete_worker(self, worker_id) -> Any:
        return self.call("DELETE", f"/workers/{worker_id}/")

    def delete_all_workers(self) -> Any:
        return self.call("POST", "/workers/delete-all/")

    # Attendance
    def attendance_register(self, date: str, city: Optional[str] = None, department_id=None) -> Dict[str, Any]:
        params = {"date": date, "city": city, "department_id": department_id}
        return self.call("GET", "/attendance/register/", params=params) or {}

    def bulk_mark_present(self, worker_ids: Iterable, date: str, now: Optional[datetime] = None) -> Any:
        check_in = (now or datetime.now()).strftime("%H:%M:%S")
        payload = {"worker_ids": list(worker_ids), "date": date, "check_in_time": check_in}
        return self.call("POST", "/attendance/bulk-mark/", json=payload)

    # Dashboard
    def dashboard_stats(self) -> Dict[str, Any]:
        return self.call("GET", "/dashboard/stats/") or {}

    # SLA
    def sla_configs(self) -> list:
        return unwrap_list(self.call("GET", "/sla/configs/"))

    def update_sla_config(self, config_id, data: Dict[str, Any]) -> Any:
        return self.call("PATCH", f"/sla/configs/{config_id}/", json=data)

    def sla_report(self) -> Dict[str, Any]:
        return self.call("GET", "/sla/report/") or {}

    def trigger_escalation(self, dry_run: bool = False) -> Dict[str, Any]:
        return self.call("POST", "/sla/trigger-escalation/", json={"dry_run": dry_run}) or {}
