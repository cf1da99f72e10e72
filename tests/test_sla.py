from datetime import datetime, timedelta, timezone

import pytest

from utils.sla import (
    PALETTE,
    PLACEHOLDER,
    build_sla_view,
    days_overdue,
    derive_fallback,
    fmt_hours,
    is_past_deadline,
    parse_timestamp,
    priority_color,
    status_color,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _complaint(deadline_offset_hours, status="IN_PROGRESS", age_hours=30):
    return {
        "status": status,
        "created_at": (NOW - timedelta(hours=age_hours)).isoformat(),
        "sla_deadline": (NOW + timedelta(hours=deadline_offset_hours)).isoformat(),
    }


@pytest.mark.parametrize(
    "hours, expected",
    [
        (48, "2d 0h"),
        (50, "2d 2h"),
        (-73.5, "3d 2h"),
        (100.4, "4d 4h"),
    ],
)
def test_fmt_hours_days_for_two_days_or_more(hours, expected):
    assert fmt_hours(hours) == expected


@pytest.mark.parametrize("hours, expected", [(0, "0m"), (0.5, "30m"), (-0.25, "15m"), (0.999, "60m")])
def test_fmt_hours_minutes_below_one_hour(hours, expected):
    assert fmt_hours(hours) == expected


def test_fmt_hours_whole_and_fractional_hours():
    assert fmt_hours(5) == "5h"
    assert fmt_hours("12.5") == "12.5h"
    assert fmt_hours(-3) == "3h"


@pytest.mark.parametrize("value", [None, "soon", float("nan"), True, {}])
def test_fmt_hours_placeholder_for_unusable_input(value):
    assert fmt_hours(value) == PLACEHOLDER


def test_overdue_fallback():
    fallback = derive_fallback(_complaint(-5), NOW)

    assert fallback.status == "overdue"
    assert fallback.title == "SLA Deadline Overdue"
    assert fallback.is_overdue is True
    assert fallback.remaining_label == "Overdue By"
    assert fallback.remaining_display == "5h"
    assert fallback.age_hours == pytest.approx(30)


@pytest.mark.parametrize(
    "offset, status, title",
    [
        (10, "critical", "SLA Deadline Critical"),
        (30, "warning", "SLA Deadline Warning"),
        (72, "ok", "SLA Deadline Active"),
    ],
)
def test_fallback_buckets_by_hours_left(offset, status, title):
    fallback = derive_fallback(_complaint(offset), NOW)

    assert fallback.status == status
    assert fallback.title == title
    assert fallback.is_overdue is False
    assert fallback.remaining_label == "Time Remaining"
    assert fallback.remaining_display == f"{offset}h"


def test_completed_complaint_is_never_overdue():
    fallback = derive_fallback(_complaint(-40, status="RESOLVED"), NOW)

    assert fallback.status == "completed"
    assert fallback.is_completed is True
    assert fallback.is_overdue is False


def test_fallback_requires_a_parseable_deadline():
    assert derive_fallback({"status": "PENDING"}, NOW) is None
    assert derive_fallback({"status": "PENDING", "sla_deadline": "next tuesday"}, NOW) is None


def test_deadline_view_stats():
    view = build_sla_view(_complaint(-5), NOW)

    assert view.mode == "deadline"
    assert view.is_overdue is True
    labels = [box.label for box in view.stats]
    assert labels == ["Complaint Age", "Overdue By", "SLA Deadline"]
    assert view.stats[0].value == "30h"
    assert view.stats[1].value == "5h"


def test_backend_timer_wins_over_deadline():
    complaint = _complaint(100)
    complaint["sla_timer"] = {
        "status": "overdue",
        "title": "Resolution overdue",
        "icon": "🚨",
        "is_overdue": True,
        "hours_overdue": 5,
        "hours_elapsed": 77,
        "resolution_deadline": 72,
        "escalation_deadline": 48,
        "escalation_count": 2,
        "priority": 3,
        "priority_text": "High",
    }

    view = build_sla_view(complaint, NOW)

    assert view.mode == "timer"
    assert view.colors == PALETTE["overdue"]
    assert [(b.label, b.value) for b in view.stats] == [
        ("Allocated SLA", "3d 0h"),
        ("Complaint Age", "3d 5h"),
        ("Overdue By", "5h"),
        ("Escalation Window", "2d 0h"),
    ]
    assert view.priority_label == "High Priority"
    assert view.priority_color == "#dc2626"
    assert view.escalation_banner == "This complaint has been escalated 2 times"


def test_declined_timer_has_no_stat_boxes():
    view = build_sla_view({"sla_timer": {"status": "declined", "title": "Declined"}}, NOW)

    assert view.stats == []
    assert view.colors == PALETTE["declined"]
    assert view.escalation_banner is None


def test_timer_with_unknown_status_uses_ok_palette():
    view = build_sla_view({"sla_timer": {"status": "mystery", "hours_remaining": 3}}, NOW)

    assert view.colors == PALETTE["ok"]


def test_no_sla_state():
    view = build_sla_view({"status": "PENDING"}, NOW)

    assert view.mode == "none"
    assert view.has_sla is False


def test_view_is_deterministic_for_fixed_now():
    complaint = _complaint(10)

    assert build_sla_view(complaint, NOW) == build_sla_view(complaint, NOW)
    assert derive_fallback(complaint, NOW) == derive_fallback(complaint, NOW)


def test_badge_colors():
    assert status_color("resolved") == "#10b981"
    assert status_color("nonsense") == "#6b7280"
    assert status_color(None) == "#6b7280"
    assert priority_color(2) == "#ea580c"
    assert priority_color("x") == "#3b82f6"


def test_parse_timestamp_handles_zulu_and_naive_values():
    assert parse_timestamp("2026-03-10T12:00:00Z") == NOW
    assert parse_timestamp("2026-03-10T12:00:00") == NOW
    assert parse_timestamp("") is None


def test_worker_overdue_helpers():
    overdue = _complaint(-30, status="ASSIGNED")
    finished = _complaint(-30, status="COMPLETED")

    assert is_past_deadline(overdue, NOW) is True
    assert is_past_deadline(finished, NOW) is False
    assert is_past_deadline({"status": "ASSIGNED"}, NOW) is False
    assert days_overdue(overdue["sla_deadline"], NOW) == 2
    assert days_overdue(None, NOW) is None
