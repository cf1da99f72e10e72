from datetime import datetime, timezone

from utils.complaint_filters import (
    admin_stats,
    apply_admin_filters,
    department_breakdown,
    distinct_values,
    filter_by_statuses,
    filter_by_tab,
    filter_offices,
    newest_first,
    search_workers,
    tab_counts,
    worker_full_name,
    worker_stats,
)

COMPLAINTS = [
    {"id": 1, "title": "Pothole on MI Road", "status": "PENDING", "department_name": "Roads", "city": "Jaipur",
     "created_at": "2026-03-01T10:00:00Z"},
    {"id": 2, "title": "Streetlight out", "status": "IN_PROGRESS", "department_name": "Power", "city": "Jaipur",
     "created_at": "2026-03-05T10:00:00Z"},
    {"id": 3, "title": "Garbage pile", "status": "RESOLVED", "department_name": "Sanitation", "city": "Kota",
     "created_at": "2026-03-03T10:00:00Z"},
    {"id": 4, "title": "Broken bench", "status": "DECLINED", "department_name": "Parks", "city": "Kota"},
    {"id": 5, "title": "Leaking pipe", "status": "COMPLETED", "department_name": "Water", "city": "Jaipur",
     "created_at": "2026-03-04T10:00:00Z"},
]


def test_citizen_tabs():
    assert [c["id"] for c in filter_by_tab(COMPLAINTS, "active")] == [1, 2]
    assert [c["id"] for c in filter_by_tab(COMPLAINTS, "completed")] == [3, 5]
    assert tab_counts(COMPLAINTS) == {"all": 5, "active": 2, "completed": 2, "declined": 1}


def test_status_groups_are_case_insensitive():
    complaints = [{"status": "assigned"}, {"status": "PENDING"}]

    assert filter_by_statuses(complaints, ("ASSIGNED", "IN_PROGRESS")) == [{"status": "assigned"}]


def test_newest_first_puts_undated_last():
    assert [c["id"] for c in newest_first(COMPLAINTS)] == [2, 5, 3, 1, 4]


def test_admin_filters_combine():
    assert [c["id"] for c in apply_admin_filters(COMPLAINTS, city="Jaipur", search="pipe")] == [5]
    assert [c["id"] for c in apply_admin_filters(COMPLAINTS, status="DECLINED")] == [4]
    assert [c["id"] for c in apply_admin_filters(COMPLAINTS, search="3")] == [3]
    assert distinct_values(COMPLAINTS, "city") == ["Jaipur", "Kota"]


def test_admin_stats():
    assert admin_stats(COMPLAINTS) == {
        "total_complaints": 5,
        "pending": 1,
        "in_progress": 1,
        "completed": 1,
        "resolved": 1,
        "rejected": 1,
    }


def test_worker_stats_counts_overdue_assignments():
    now = datetime(2026, 3, 10, tzinfo=timezone.utc)
    assignments = [
        {"status": "ASSIGNED", "sla_deadline": "2026-03-08T00:00:00Z"},
        {"status": "IN_PROGRESS", "sla_deadline": "2026-03-12T00:00:00Z"},
        {"status": "COMPLETED", "sla_deadline": "2026-03-01T00:00:00Z"},
    ]

    assert worker_stats(assignments, now) == {"assigned": 3, "pending": 1, "completed": 1, "overdue": 1}


def test_department_breakdown():
    departments = [{"id": 1, "name": "Roads"}, {"id": 2, "name": "Power"}, {"id": 3}]

    rows = department_breakdown(departments, COMPLAINTS)

    assert [(r["name"], r["total"], r["pending"], r["in_progress"]) for r in rows] == [
        ("Roads", 1, 1, 0),
        ("Power", 1, 0, 1),
    ]


def test_office_filters():
    offices = [
        {"name": "North", "department_name": "Roads", "city": "Jaipur"},
        {"name": "South", "department_name": "Water Works", "city": "Kota"},
    ]

    assert filter_offices(offices, department="water") == [offices[1]]
    assert filter_offices(offices, city="JAI") == [offices[0]]
    assert filter_offices(offices) == offices


def test_worker_search_and_names():
    workers = [
        {"first_name": "Ravi", "last_name": "Meena", "username": "ravi.m"},
        {"first_name": "", "last_name": "", "username": "field7"},
    ]

    assert search_workers(workers, "MEENA") == [workers[0]]
    assert search_workers(workers, "field") == [workers[1]]
    assert worker_full_name(workers[0]) == "Ravi Meena"
    assert worker_full_name(workers[1]) == "field7"
