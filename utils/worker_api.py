"""Worker-facing backend endpoints."""
from __future__ import annotations

from typing import Any, Dict

from utils.api import CitizenApi, multipart
from utils.backend import unwrap_list
from utils.session_store import WORKER_TOKEN_KEY


class WorkerApi(CitizenApi):
    realm = "worker"
    token_key = WORKER_TOKEN_KEY

    def login(self, username: str, password: str) -> Dict[str, Any]:
        return self.call("POST", "/worker/login/", json={"username": username, "password": password})

    def logout(self) -> Any:
        return self.call("POST", "/worker/logout/")

    def current_worker(self) -> Dict[str, Any]:
        return self.call("GET", "/worker/me/")

    def assigned_complaints(self) -> list:
        return unwrap_list(self.call("GET", "/worker/assignments/"))

    def completed_complaints(self) -> list:
        return unwrap_list(self.call("GET", "/worker/complaints/completed/"))

    def overdue_complaints(self) -> list:
        return unwrap_list(self.call("GET", "/worker/complaints/overdue/"))

    def complaint_detail(self, complaint_id) -> Dict[str, Any]:
        return self.call("GET", f"/worker/complaints/{complaint_id}/")

    def submit_completion(self, complaint_id, note: str, image=None) -> Any:
        data, files = multipart({"completion_note": note}, {"completion_image": image})
        return self.call("POST", f"/worker/complaints/{complaint_id}/complete/", data=data, files=files or None)

    def dashboard_stats(self) -> Dict[str, Any]:
        return self.call("GET", "/worker/dashboard/stats/") or {}
