"""Citizen-facing backend endpoints (auth, complaints, departments, dashboard)."""
from __future__ import annotations

from typing import Any, Dict, Optional

from utils.backend import Backend, unwrap_list
from utils.session_store import TOKEN_KEY, SessionStore


def file_part(upload) -> Optional[tuple]:
    """Turn a Werkzeug FileStorage (or a (name, bytes, mime) tuple) into a requests file part."""
    if upload is None:
        return None
    if isinstance(upload, tuple):
        return upload
    if not getattr(upload, "filename", None):
        return None
    upload.stream.seek(0)
    return (upload.filename, upload.stream, upload.mimetype or "application/octet-stream")


def multipart(fields: Dict[str, Any], file_fields: Dict[str, Any]) -> tuple[Dict[str, Any], Dict[str, Any]]:
    """Split form fields and uploads into requests `data`/`files`, dropping None values and empty uploads."""
    data = {k: v for k, v in fields.items() if v is not None}
    files = {}
    for name, upload in file_fields.items():
        part = file_part(upload)
        if part is not None:
            files[name] = part
    return data, files


class CitizenApi:
    realm = "citizen"
    token_key = TOKEN_KEY

    def __init__(self, backend: Backend, store: SessionStore) -> None:
        self.backend = backend
        self.store = store

    def auth_headers(self) -> Dict[str, str]:
        token = self.store.get(self.token_key)
        return {"Authorization": f"Token {token}"} if token else {}

    def call(self, method: str, path: str, **kwargs) -> Any:
        return self.backend.request(method, path, realm=self.realm, headers=self.auth_headers(), **kwargs)

    # Auth
    def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.call("POST", "/auth/register/", json=data)

    def login(self, username: str, password: str) -> Dict[str, Any]:
        return self.call("POST", "/auth/login/", json={"username": username, "password": password})

    def logout(self) -> Any:
        return self.call("POST", "/auth/logout/")

    def current_user(self) -> Dict[str, Any]:
        return self.call("GET", "/auth/me/")

    # Complaints
    def analyze_image(self, image) -> Dict[str, Any]:
        _, files = multipart({}, {"image": image})
        return self.call("POST", "/complaints/analyze-image/", files=files)

    def create_complaint(self, fields: Dict[str, Any], image=None) -> Dict[str, Any]:
        data, files = multipart(fields, {"image": image})
        return self.call("POST", "/complaints/create/", data=data, files=files or None)

    def my_complaints(self) -> list:
        return unwrap_list(self.call("GET", "/complaints/my/"))

    def all_complaints(self, params: Optional[Dict[str, Any]] = None) -> list:
        return unwrap_list(self.call("GET", "/complaints/all/", params=params))

    def complaint(self, complaint_id) -> Dict[str, Any]:
        return self.call("GET", f"/complaints/{complaint_id}/")

    def upvote(self, complaint_id) -> Dict[str, Any]:
        return self.call("POST", f"/complaints/{complaint_id}/upvote/")

    def complaint_logs(self, complaint_id) -> list:
        return unwrap_list(self.call("GET", f"/complaints/{complaint_id}/logs/"))

    # Departments
    def departments(self) -> list:
        return unwrap_list(self.call("GET", "/departments/"))

    # Dashboard
    def dashboard_stats(self) -> Dict[str, Any]:
        return self.call("GET", "/dashboard/stats/") or {}
