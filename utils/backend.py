"""HTTP gateway to the Civic Saathi REST backend and its error taxonomy."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised when the backend answers with an error status."""

    def __init__(self, message: str, status: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload


class BackendUnavailableError(ApiError):
    """Raised when the backend cannot be reached or times out."""


class AuthExpiredError(ApiError):
    """Raised on HTTP 401; carries the session realm that must be cleared."""

    def __init__(self, realm: str, message: str = "Session expired. Please log in again.", payload: Any = None) -> None:
        super().__init__(message, status=401, payload=payload)
        self.realm = realm


class DuplicateComplaintError(ApiError):
    """Raised on HTTP 409 when the backend reports an already-filed complaint."""

    def __init__(self, payload: Dict[str, Any]) -> None:
        super().__init__(payload.get("error") or payload.get("message") or "Duplicate complaint", status=409, payload=payload)

    @property
    def existing_complaint_id(self):
        return (self.payload or {}).get("existing_complaint_id")


def _decode(response: requests.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


def error_message(payload: Any, default: str) -> str:
    """Pull a human readable message out of a backend error body."""
    if isinstance(payload, dict):
        for key in ("error", "detail", "message"):
            value = payload.get(key)
            if value:
                return str(value)
        if payload and "raw" not in payload:
            parts = []
            for field, messages in payload.items():
                if isinstance(messages, list):
                    messages = " ".join(str(m) for m in messages)
                parts.append(f"{field}: {messages}")
            return "; ".join(parts)
    if isinstance(payload, str) and payload:
        return payload
    return default


def unwrap_list(payload: Any) -> List[Dict[str, Any]]:
    """Accept both paginated (`{"results": [...]}`) and bare list responses."""
    if isinstance(payload, dict) and "results" in payload:
        payload = payload.get("results")
    return payload if isinstance(payload, list) else []


class Backend:
    """Flask extension holding the shared `requests.Session` for backend calls."""

    def __init__(self, app=None) -> None:
        self.base_url = "http://localhost:8000/api"
        self.timeout = 15.0
        self.session: Optional[requests.Session] = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.base_url = (app.config.get("API_BASE_URL") or self.base_url).rstrip("/")
        self.timeout = float(app.config.get("API_TIMEOUT_SECONDS", self.timeout))
        if self.session is None:
            self.session = requests.Session()
            self.session.headers.update({"Accept": "application/json"})
        app.extensions["civic_backend"] = self

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        realm: str = "citizen",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if self.session is None:
            self.session = requests.Session()
        url = self.url_for(path)
        clean_params = {k: v for k, v in (params or {}).items() if v not in (None, "")} or None
        try:
            response = self.session.request(
                method.upper(),
                url,
                headers=headers or {},
                params=clean_params,
                json=json,
                data=data,
                files=files,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Backend unreachable", extra={"method": method, "path": path, "error": str(exc)})
            raise BackendUnavailableError(f"Backend unreachable: {exc}") from exc

        payload = _decode(response)
        status = response.status_code
        if status == 401:
            logger.info("Backend rejected credentials", extra={"path": path, "realm": realm})
            raise AuthExpiredError(realm, payload=payload)
        if status == 409 and isinstance(payload, dict) and payload.get("duplicate"):
            raise DuplicateComplaintError(payload)
        if status >= 400:
            message = error_message(payload, f"Request failed with status {status}")
            logger.warning(
                "Backend request failed",
                extra={"method": method, "path": path, "status": status, "error": message},
            )
            raise ApiError(message, status=status, payload=payload)
        return payload


def fetch_or_default(call: Callable[[], Any], default: Any, event: str) -> Any:
    """Run a read-only backend call; failures other than 401 are logged and replaced by `default`."""
    try:
        return call()
    except AuthExpiredError:
        raise
    except ApiError as exc:
        logger.warning(event, extra={"status": exc.status, "error": exc.message})
        return default
