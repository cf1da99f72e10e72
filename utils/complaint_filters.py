"""List filtering and summary counts over already-fetched complaint, office and worker lists."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from models import (
    CLOSED_STATUSES,
    COMPLETED_STATUSES,
    DECLINED_STATUSES,
    IN_PROGRESS_STATUSES,
    PENDING_STATUSES,
)
from utils.sla import is_past_deadline, parse_timestamp

CITIZEN_TABS: tuple[str, ...] = ("all", "active", "completed", "declined")

STATUS_GROUPS: Dict[str, tuple[str, ...]] = {
    "pending": PENDING_STATUSES,
    "in-progress": IN_PROGRESS_STATUSES,
    "completed": COMPLETED_STATUSES,
}

STATUS_GROUP_TITLES: Dict[str, str] = {
    "pending": "Pending Complaints",
    "in-progress": "In-Progress Complaints",
    "completed": "Completed Complaints",
}


def _status(complaint: Dict[str, Any]) -> str:
    return str(complaint.get("status") or "").upper()


def filter_by_tab(complaints: Iterable[Dict[str, Any]], tab: str) -> List[Dict[str, Any]]:
    items = list(complaints)
    if tab == "active":
        return [c for c in items if _status(c) not in CLOSED_STATUSES]
    if tab == "completed":
        return [c for c in items if _status(c) in COMPLETED_STATUSES]
    if tab == "declined":
        return [c for c in items if _status(c) in DECLINED_STATUSES]
    return items


def tab_counts(complaints: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    items = list(complaints)
    return {tab: len(filter_by_tab(items, tab)) for tab in CITIZEN_TABS}


def filter_by_statuses(complaints: Iterable[Dict[str, Any]], statuses: Iterable[str]) -> List[Dict[str, Any]]:
    wanted = {s.upper() for s in statuses}
    return [c for c in complaints if _status(c) in wanted]


def newest_first(complaints: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    def _key(complaint):
        created = parse_timestamp(complaint.get("created_at"))
        return created.timestamp() if created else float("-inf")

    return sorted(complaints, key=_key, reverse=True)


def apply_admin_filters(
    complaints: Iterable[Dict[str, Any]],
    status: str = "all",
    department: str = "all",
    city: str = "all",
    search: str = "",
) -> List[Dict[str, Any]]:
    """The admin list page's dropdown and search filters."""
    filtered = list(complaints)
    if status and status != "all":
        filtered = [c for c in filtered if c.get("status") == status]
    if department and department != "all":
        filtered = [c for c in filtered if c.get("department_name") == department]
    if city and city != "all":
        filtered = [c for c in filtered if c.get("city") == city]
    needle = (search or "").strip().lower()
    if needle:
        filtered = [
            c
            for c in filtered
            if needle in str(c.get("title") or "").lower()
            or needle in str(c.get("description") or "").lower()
            or needle in str(c.get("id") or "").lower()
        ]
    return filtered


def distinct_values(complaints: Iterable[Dict[str, Any]], key: str) -> List[str]:
    return sorted({str(c.get(key)) for c in complaints if c.get(key)})


def admin_stats(complaints: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    items = list(complaints)
    return {
        "total_complaints": len(items),
        "pending": sum(1 for c in items if _status(c) in ("PENDING", "SUBMITTED")),
        "in_progress": sum(1 for c in items if _status(c) in IN_PROGRESS_STATUSES),
        "completed": sum(1 for c in items if _status(c) == "COMPLETED"),
        "resolved": sum(1 for c in items if _status(c) == "RESOLVED"),
        "rejected": sum(1 for c in items if _status(c) in DECLINED_STATUSES),
    }


EMPTY_ADMIN_STATS: Dict[str, int] = admin_stats([])


def worker_stats(complaints: Iterable[Dict[str, Any]], now: datetime) -> Dict[str, int]:
    items = list(complaints)
    return {
        "assigned": len(items),
        "pending": sum(1 for c in items if _status(c) in ("ASSIGNED", "PENDING")),
        "completed": sum(1 for c in items if _status(c) in COMPLETED_STATUSES),
        "overdue": sum(1 for c in items if is_past_deadline(c, now)),
    }


def department_breakdown(departments: Iterable[Dict[str, Any]], complaints: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Per-department complaint counts keyed by department name."""
    rows: Dict[str, Dict[str, Any]] = {}
    for dept in departments:
        name = dept.get("name")
        if not name:
            continue
        rows[name] = {
            "id": dept.get("id"),
            "name": name,
            "total": 0,
            "pending": 0,
            "in_progress": 0,
            "completed": 0,
            "declined": 0,
        }
    for complaint in complaints:
        row: Optional[Dict[str, Any]] = rows.get(complaint.get("department_name"))
        if row is None:
            continue
        row["total"] += 1
        status = _status(complaint)
        if status in PENDING_STATUSES:
            row["pending"] += 1
        elif status in IN_PROGRESS_STATUSES:
            row["in_progress"] += 1
        elif status in COMPLETED_STATUSES:
            row["completed"] += 1
        elif status in DECLINED_STATUSES:
            row["declined"] += 1
    return list(rows.values())


def filter_offices(offices: Iterable[Dict[str, Any]], department: str = "", city: str = "") -> List[Dict[str, Any]]:
    """Case-insensitive substring filters on department name and city."""
    dept_needle = (department or "").strip().lower()
    city_needle = (city or "").strip().lower()
    return [
        o
        for o in offices
        if (not dept_needle or dept_needle in str(o.get("department_name") or "").lower())
        and (not city_needle or city_needle in str(o.get("city") or "").lower())
    ]


def worker_full_name(worker: Dict[str, Any]) -> str:
    full = " ".join(p for p in (worker.get("first_name"), worker.get("last_name")) if p).strip()
    return full or str(worker.get("username") or "")


def search_workers(workers: Iterable[Dict[str, Any]], search: str = "") -> List[Dict[str, Any]]:
    needle = (search or "").strip().lower()
    if not needle:
        return list(workers)
    return [
        w
        for w in workers
        if needle in f"{w.get('first_name') or ''} {w.get('last_name') or ''} {w.get('username') or ''}".lower()
    ]
