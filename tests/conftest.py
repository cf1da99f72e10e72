import json

import pytest
import requests

from app import create_app
from extensions import backend
from utils.admin_auth import CredentialTable
from utils.session_store import MemoryStore

ALL_PERMISSIONS = [
    "view_complaints",
    "assign_complaints",
    "update_status",
    "reject_complaints",
    "reassign_department",
    "delete_complaints",
    "manage_offices",
    "manage_workers",
    "manage_attendance",
    "manage_sla",
]

CREDENTIALS = {
    "root_admin": {"userId": "root", "password": "rootpass", "permissions": ALL_PERMISSIONS},
    "sub_admins": [
        {
            "userId": "cluster",
            "password": "clusterpass",
            "clusterId": "c1",
            "clusterName": "Infrastructure Cluster",
            "departments": [1, 2],
            "permissions": ["view_complaints", "update_status", "manage_workers", "manage_attendance"],
        },
        {
            "userId": "streets",
            "password": "streetspass",
            "clusterId": "c2",
            "clusterName": "Streets Cluster",
            "departments": ["Roads"],
            "permissions": ["view_complaints", "manage_offices", "manage_attendance"],
        },
    ],
    "department_admins": [
        {
            "userId": "roads",
            "password": "roadspass",
            "departmentId": 3,
            "departmentName": "Roads",
            "multiCity": True,
            "permissions": ["view_complaints", "update_status", "manage_workers", "manage_attendance"],
        }
    ],
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.text = "" if payload is None else json.dumps(payload)
        self.content = self.text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


class FakeTransport:
    """Stands in for the backend `requests.Session`; routes are keyed by (METHOD, path)."""

    def __init__(self, base_url):
        self.base_url = base_url.rstrip("/")
        self.routes = {}
        self.calls = []
        self.headers = {}

    def add(self, method, path, payload=None, status=200):
        self.routes[(method.upper(), path)] = (status, payload)

    def fail(self, method, path):
        self.routes[(method.upper(), path)] = (None, requests.ConnectionError("connection refused"))

    def request(self, method, url, **kwargs):
        path = url[len(self.base_url):]
        self.calls.append({"method": method, "path": path, **kwargs})
        status, payload = self.routes.get((method, path), (404, {"detail": "Not found."}))
        if isinstance(payload, Exception):
            raise payload
        return FakeResponse(status, payload)

    def last_call(self, method, path):
        for call in reversed(self.calls):
            if call["method"] == method and call["path"] == path:
                return call
        return None


@pytest.fixture
def app():
    app = create_app("testing")
    app.extensions["admin_credentials"] = CredentialTable.from_mapping(CREDENTIALS)
    yield app


@pytest.fixture
def fake_backend(app, monkeypatch):
    transport = FakeTransport(backend.base_url)
    monkeypatch.setattr(backend, "session", transport)
    return transport


@pytest.fixture
def client(app, fake_backend):
    return app.test_client()


@pytest.fixture
def credentials():
    return CredentialTable.from_mapping(CREDENTIALS)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def login_admin(client):
    def _login(user_id="root", password="rootpass", city_context=""):
        return client.post(
            "/admin/login",
            data={"user_id": user_id, "password": password, "city_context": city_context},
        )

    return _login


@pytest.fixture
def login_citizen(client, fake_backend):
    def _login(user=None):
        user = user or {"id": 7, "username": "asha", "user_type": "CITIZEN", "city": "Jaipur", "state": "Rajasthan"}
        fake_backend.add("POST", "/auth/login/", {"token": "citizen-token", "user": user})
        fake_backend.add("GET", "/auth/me/", user)
        return client.post("/login", data={"username": user["username"], "password": "secret"})

    return _login
