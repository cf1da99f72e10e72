"""Persistence adapters for client-side session records.

Every read and write of a session record goes through a `SessionStore`, so handlers never
touch the Flask session directly and tests can swap in `MemoryStore`.
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional

from flask import session

TOKEN_KEY = "token"
USER_KEY = "user"
ADMIN_TOKEN_KEY = "adminToken"
ADMIN_USER_KEY = "adminUser"
WORKER_TOKEN_KEY = "worker_token"
WORKER_KEY = "worker"

REALM_KEYS: Dict[str, tuple[str, str]] = {
    "citizen": (TOKEN_KEY, USER_KEY),
    "admin": (ADMIN_TOKEN_KEY, ADMIN_USER_KEY),
    "worker": (WORKER_TOKEN_KEY, WORKER_KEY),
}


class SessionStore(ABC):
    """String key/value storage with the browser-storage contract (plain strings, no expiry)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.remove(key)

    def clear_realm(self, realm: str) -> None:
        self.remove_many(REALM_KEYS.get(realm, ()))

    def get_json(self, key: str) -> Any:
        """Return the decoded record; raises ValueError when the stored text is corrupt."""
        raw = self.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))


class FlaskSessionStore(SessionStore):
    """Store backed by the signed Flask session cookie."""

    def get(self, key: str) -> Optional[str]:
        value = session.get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        session[key] = value
        session.permanent = True

    def remove(self, key: str) -> None:
        session.pop(key, None)


class MemoryStore(SessionStore):
    """In-process dict store for tests and CLI commands."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)
