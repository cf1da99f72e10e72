"""Role/scope authorization for admin principals.

The backend returns complaint lists unfiltered; this module decides what an admin is shown.
It is a rendering convenience, not a security boundary: the backend must enforce
authorization on its own.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from models import AdminPrincipal, DepartmentAdmin, RootAdmin, SubAdmin


@dataclass(frozen=True)
class AccessScope:
    """What a principal may see. `unrestricted` short-circuits every check."""

    unrestricted: bool = False
    department_ids: tuple = ()
    department_names: tuple = ()
    city: Optional[str] = None
    permissions: Optional[frozenset] = frozenset()

    @property
    def empty(self) -> bool:
        return not self.unrestricted and not self.department_ids and not self.department_names


NO_ACCESS = AccessScope()


def scope_for(principal: Optional[AdminPrincipal]) -> AccessScope:
    """The single place where admin roles are told apart."""
    if isinstance(principal, RootAdmin):
        return AccessScope(unrestricted=True, permissions=None)
    if isinstance(principal, SubAdmin):
        return AccessScope(
            department_ids=tuple(principal.departments),
            department_names=tuple(d for d in principal.departments if _is_name(d)),
            permissions=frozenset(principal.permissions),
        )
    if isinstance(principal, DepartmentAdmin):
        names = tuple(v for v in (principal.department_name, principal.department_id) if _is_name(v))
        ids = (principal.department_id,) if principal.department_id not in (None, "") else ()
        return AccessScope(
            department_ids=ids,
            department_names=names,
            city=principal.city_context or None,
            permissions=frozenset(principal.permissions),
        )
    return NO_ACCESS


def _is_name(value: Any) -> bool:
    """Names are non-numeric text; numeric strings are identifiers."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    return bool(text) and not text.isdigit()


def _same_id(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    return str(left).strip() == str(right).strip()


def _complaint_department_refs(complaint: Dict[str, Any]) -> tuple[list, list]:
    """Split a complaint's department fields into identifiers and names."""
    ids: list = []
    names: list = []
    department = complaint.get("department")
    if isinstance(department, dict):
        ids.append(department.get("id"))
        if department.get("name"):
            names.append(department.get("name"))
    elif department not in (None, ""):
        ids.append(department)
        if _is_name(department):
            names.append(department)
    if complaint.get("department_id") not in (None, ""):
        ids.append(complaint["department_id"])
    if _is_name(complaint.get("department_name")):
        names.append(complaint["department_name"])
    return ids, names


def department_matches(complaint: Dict[str, Any], scope: AccessScope) -> bool:
    """Exact identifier match, or case-insensitive substring match on a department name."""
    if scope.unrestricted:
        return True
    ids, names = _complaint_department_refs(complaint)
    for allowed in scope.department_ids:
        if any(_same_id(allowed, value) for value in ids):
            return True
    for allowed in scope.department_names:
        needle = allowed.strip().lower()
        if needle and any(needle in str(name).lower() for name in names):
            return True
    return False


def complaint_in_scope(principal: Optional[AdminPrincipal], complaint: Dict[str, Any]) -> bool:
    scope = scope_for(principal)
    if scope.unrestricted:
        return True
    if scope.empty or not isinstance(complaint, dict):
        return False
    if not department_matches(complaint, scope):
        return False
    if scope.city is not None:
        return complaint.get("city") == scope.city
    return True


def filter_complaints(principal: Optional[AdminPrincipal], complaints: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    scope = scope_for(principal)
    if scope.unrestricted:
        return list(complaints)
    if scope.empty:
        return []
    return [c for c in complaints if complaint_in_scope(principal, c)]


def has_permission(principal: Optional[AdminPrincipal], permission: str) -> bool:
    scope = scope_for(principal)
    if scope.unrestricted:
        return True
    return bool(scope.permissions) and permission in scope.permissions


def _department_ref(department_id: Any, department_name: Any = None) -> Dict[str, Any]:
    return {"department": department_id, "department_name": department_name}


def can_access_department(principal: Optional[AdminPrincipal], department_id: Any, department_name: Any = None) -> bool:
    """Same id-or-name rule as `filter_departments`, so a department offered in a form is also accepted."""
    scope = scope_for(principal)
    if scope.unrestricted:
        return True
    return department_matches(_department_ref(department_id, department_name), scope)


def accessible_departments(principal: Optional[AdminPrincipal], known_departments: Sequence[Any] = ()) -> List[Any]:
    """Department identifiers the principal may act on.

    `known_departments` is the full catalogue (from the credential table) used for root admins.
    """
    scope = scope_for(principal)
    if scope.unrestricted:
        return list(known_departments)
    return list(scope.department_ids)


def filter_departments(principal: Optional[AdminPrincipal], departments: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep backend department records the principal may see (matched by id or name)."""
    scope = scope_for(principal)
    if scope.unrestricted:
        return list(departments)
    kept = []
    for dept in departments:
        if department_matches(_department_ref(dept.get("id"), dept.get("name")), scope):
            kept.append(dept)
    return kept


def filter_department_records(principal: Optional[AdminPrincipal], records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Offices, workers and other department-owned records the principal may manage; no city rule."""
    scope = scope_for(principal)
    if scope.unrestricted:
        return list(records)
    if scope.empty:
        return []
    return [r for r in records if isinstance(r, dict) and department_matches(r, scope)]


def pinned_department(principal: Optional[AdminPrincipal]) -> Any:
    """Department id a principal is locked to when creating offices or workers, else None.

    A single department configured by name is not pinned; the select offers its matches instead.
    """
    scope = scope_for(principal)
    if not scope.unrestricted and len(scope.department_ids) == 1 and not _is_name(scope.department_ids[0]):
        return scope.department_ids[0]
    return None
