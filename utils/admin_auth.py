"""Admin credential table and the admin session lifecycle.

Admins authenticate against a static JSON table shipped with the deployment, not against the
backend. A successful login persists a locally generated token and the matched admin record
through a `SessionStore`; every request re-hydrates the principal from that store.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models import (
    DEPARTMENT_ADMIN,
    ROOT_ADMIN,
    SUB_ADMIN,
    AdminPrincipal,
    admin_principal_from_record,
)
from utils.security import generate_admin_token
from utils.session_store import ADMIN_TOKEN_KEY, ADMIN_USER_KEY, SessionStore

logger = logging.getLogger(__name__)

LOGGED_OUT = "logged_out"
AUTHENTICATING = "authenticating"
LOGGED_IN = "logged_in"

ROOT_DISPLAY_NAME = "ULB Root Administrator"
INVALID_CREDENTIALS = "Invalid credentials"

# Never persisted or forwarded in X-Admin-User.
_SECRET_FIELDS = ("password",)


class AdminAuthError(Exception):
    """Raised when no credential table entry matches the submitted login."""


@dataclass
class CredentialTable:
    root_admin: Optional[Dict[str, Any]] = None
    sub_admins: List[Dict[str, Any]] = field(default_factory=list)
    department_admins: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "CredentialTable":
        data = data or {}
        root = data.get("root_admin")
        return cls(
            root_admin=dict(root) if isinstance(root, dict) else None,
            sub_admins=[dict(e) for e in data.get("sub_admins") or [] if isinstance(e, dict)],
            department_admins=[dict(e) for e in data.get("department_admins") or [] if isinstance(e, dict)],
        )

    def department_ids(self) -> List[Any]:
        return [entry.get("departmentId") for entry in self.department_admins if entry.get("departmentId") is not None]

    def department_label(self, department_id: Any) -> str:
        info = self.department_info(department_id) or {}
        return info.get("departmentName") or str(department_id)

    def department_info(self, department_id: Any) -> Optional[Dict[str, Any]]:
        for entry in self.department_admins:
            if str(entry.get("departmentId")) == str(department_id):
                return _public_record(entry)
        return None

    def cluster_info(self, cluster_id: Any) -> Optional[Dict[str, Any]]:
        for entry in self.sub_admins:
            if str(entry.get("clusterId")) == str(cluster_id):
                return _public_record(entry)
        return None

    def profile_for(self, principal: AdminPrincipal) -> Optional[Dict[str, Any]]:
        """Credential table entry (without secrets) for a cluster or department principal."""
        record = principal.record
        if record.get("clusterId") is not None:
            return self.cluster_info(record["clusterId"])
        if record.get("departmentId") is not None:
            return self.department_info(record["departmentId"])
        return None

    def match(self, user_id: str, password: str) -> Optional[Dict[str, Any]]:
        """Root first, then sub-admins, then department admins; first match wins."""
        candidates = []
        if self.root_admin:
            candidates.append((ROOT_ADMIN, self.root_admin))
        candidates.extend((SUB_ADMIN, entry) for entry in self.sub_admins)
        candidates.extend((DEPARTMENT_ADMIN, entry) for entry in self.department_admins)
        for role, entry in candidates:
            if entry.get("userId") == user_id and entry.get("password") == password:
                record = _public_record(entry)
                record["role"] = role
                return record
        return None


def _public_record(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in entry.items() if k not in _SECRET_FIELDS}


def load_credentials(path: str | None) -> CredentialTable:
    """Read the credential table; a missing or unreadable file yields an empty table."""
    if not path or not os.path.isfile(path):
        logger.warning("Admin credential table not found", extra={"path": path})
        return CredentialTable()
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError):
        logger.exception("Admin credential table could not be parsed")
        return CredentialTable()
    return CredentialTable.from_mapping(data)


class AdminSession:
    """State machine `logged_out -> authenticating -> logged_in` over a SessionStore."""

    def __init__(self, store: SessionStore, credentials: CredentialTable) -> None:
        self.store = store
        self.credentials = credentials
        self.state = LOGGED_OUT
        self.principal: Optional[AdminPrincipal] = None

    @property
    def token(self) -> Optional[str]:
        return self.store.get(ADMIN_TOKEN_KEY)

    @property
    def is_logged_in(self) -> bool:
        return self.state == LOGGED_IN and self.principal is not None

    def restore(self) -> Optional[AdminPrincipal]:
        """Re-hydrate from storage; a corrupt record clears storage silently."""
        raw_user = self.store.get(ADMIN_USER_KEY)
        token = self.store.get(ADMIN_TOKEN_KEY)
        if not raw_user or not token:
            self.state, self.principal = LOGGED_OUT, None
            return None
        try:
            principal = admin_principal_from_record(json.loads(raw_user))
        except (TypeError, ValueError):
            logger.warning("Invalid admin session cleared")
            self.store.remove_many((ADMIN_USER_KEY, ADMIN_TOKEN_KEY))
            self.state, self.principal = LOGGED_OUT, None
            return None
        self.state, self.principal = LOGGED_IN, principal
        return principal

    def login(self, user_id: str, password: str, city_context: str | None = None) -> AdminPrincipal:
        self.state = AUTHENTICATING
        record = self.credentials.match((user_id or "").strip(), password or "")
        if record is None:
            self.state, self.principal = LOGGED_OUT, None
            raise AdminAuthError(INVALID_CREDENTIALS)

        role = record["role"]
        if role == ROOT_ADMIN:
            record["displayName"] = ROOT_DISPLAY_NAME
            record["cityContext"] = None
        elif role == SUB_ADMIN:
            record["displayName"] = record.get("clusterName") or record.get("userId")
            record["cityContext"] = None
        else:
            record["displayName"] = record.get("departmentName") or record.get("userId")
            record["cityContext"] = (city_context or "").strip() or None

        principal = admin_principal_from_record(record)
        self.store.set(ADMIN_USER_KEY, json.dumps(record))
        self.store.set(ADMIN_TOKEN_KEY, generate_admin_token())
        self.state, self.principal = LOGGED_IN, principal
        logger.info("Admin login", extra={"user_id": principal.user_id, "role": role})
        return principal

    def logout(self) -> None:
        self.store.remove_many((ADMIN_USER_KEY, ADMIN_TOKEN_KEY))
        self.state, self.principal = LOGGED_OUT, None
