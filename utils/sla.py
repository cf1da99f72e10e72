"""SLA status derivation and presentation for complaint detail pages.

The backend computes `sla_timer` and is the source of truth whenever it is present. When a
complaint only carries a raw `sla_deadline`, `derive_fallback` re-derives a coarser status
from the deadline. Everything here is pure: callers pass `now` explicitly, and malformed
input degrades to placeholder text instead of raising.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from models import COMPLETED_STATUSES, IN_PROGRESS_STATUSES

PLACEHOLDER = "—"

PALETTE: Dict[str, Dict[str, str]] = {
    "completed": {"border": "#10b981", "glow": "rgba(16,185,129,0.15)", "badge": "#10b981", "text": "#10b981"},
    "declined": {"border": "#6b7280", "glow": "rgba(107,114,128,0.10)", "badge": "#6b7280", "text": "#6b7280"},
    "pending": {"border": "#3b82f6", "glow": "rgba(59,130,246,0.15)", "badge": "#3b82f6", "text": "#3b82f6"},
    "overdue": {"border": "#dc2626", "glow": "rgba(220,38,38,0.15)", "badge": "#dc2626", "text": "#dc2626"},
    "critical": {"border": "#ea580c", "glow": "rgba(234,88,12,0.15)", "badge": "#ea580c", "text": "#ea580c"},
    "warning": {"border": "#eab308", "glow": "rgba(234,179,8,0.15)", "badge": "#d97706", "text": "#d97706"},
    "ok": {"border": "#10b981", "glow": "rgba(16,185,129,0.15)", "badge": "#10b981", "text": "#10b981"},
}

PRIORITY_COLORS: Dict[int, str] = {1: "#3b82f6", 2: "#ea580c", 3: "#dc2626"}

REMAINING_COLORS: Dict[str, str] = {"critical": "#ea580c", "warning": "#d97706"}

OVERDUE_COLOR = "#dc2626"
COMPLETED_COLOR = "#10b981"

# Fallback buckets, evaluated in order against hours left until the deadline.
CRITICAL_WINDOW_HOURS = 24
WARNING_WINDOW_HOURS = 48

FALLBACK_BUCKETS: Dict[str, Dict[str, str]] = {
    "completed": {"title": "Completed on Time", "icon": "✅", "color": "#10b981"},
    "overdue": {"title": "SLA Deadline Overdue", "icon": "\U0001f6a8", "color": "#dc2626"},
    "critical": {"title": "SLA Deadline Critical", "icon": "⚠️", "color": "#ea580c"},
    "warning": {"title": "SLA Deadline Warning", "icon": "⏰", "color": "#eab308"},
    "ok": {"title": "SLA Deadline Active", "icon": "✅", "color": "#10b981"},
}

STATUS_BADGE_COLORS: Dict[str, str] = {
    "SUBMITTED": "#3b82f6",
    "FILTERING": "#8b5cf6",
    "PENDING": "#f59e0b",
    "ASSIGNED": "#8b5cf6",
    "IN_PROGRESS": "#8b5cf6",
    "COMPLETED": "#10b981",
    "RESOLVED": "#10b981",
    "DECLINED": "#6b7280",
    "REJECTED": "#ef4444",
    "SORTING": "#f59e0b",
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _as_hours(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(hours) or math.isinf(hours):
        return None
    return hours


def fmt_hours(value: Any) -> str:
    """Render a duration in hours as `45m`, `5h`, `12.5h` or `3d 4h`."""
    hours = _as_hours(value)
    if hours is None:
        return PLACEHOLDER
    magnitude = abs(hours)
    if magnitude < 1:
        return f"{_round_half_up(magnitude * 60)}m"
    if magnitude >= 48:
        return f"{math.floor(magnitude / 24)}d {_round_half_up(magnitude % 24)}h"
    if magnitude % 1 == 0:
        return f"{int(magnitude)}h"
    return f"{magnitude:.1f}h"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse backend ISO-8601 timestamps; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def status_color(status: Any) -> str:
    return STATUS_BADGE_COLORS.get(str(status or "").upper(), "#6b7280")


def priority_color(priority: Any) -> str:
    try:
        return PRIORITY_COLORS.get(int(priority), PRIORITY_COLORS[1])
    except (TypeError, ValueError):
        return PRIORITY_COLORS[1]


@dataclass(frozen=True)
class FallbackSla:
    status: str
    title: str
    icon: str
    color: str
    is_completed: bool
    is_overdue: bool
    hours_left: float
    age_hours: Optional[float]
    deadline: datetime

    @property
    def remaining_label(self) -> str:
        return "Overdue By" if self.is_overdue else "Time Remaining"

    @property
    def remaining_display(self) -> str:
        return f"{_round_half_up(abs(self.hours_left))}h"


def derive_fallback(complaint: Dict[str, Any], now: datetime) -> Optional[FallbackSla]:
    """Derive the deadline-only SLA status; None when no usable `sla_deadline` exists."""
    deadline = parse_timestamp((complaint or {}).get("sla_deadline"))
    if deadline is None:
        return None
    hours_left = hours_between(now, deadline)
    is_completed = str(complaint.get("status") or "").upper() in COMPLETED_STATUSES
    is_overdue = not is_completed and hours_left < 0

    if is_completed:
        bucket = "completed"
    elif hours_left < 0:
        bucket = "overdue"
    elif hours_left < CRITICAL_WINDOW_HOURS:
        bucket = "critical"
    elif hours_left < WARNING_WINDOW_HOURS:
        bucket = "warning"
    else:
        bucket = "ok"

    created_at = parse_timestamp(complaint.get("created_at"))
    age_hours = hours_between(created_at, now) if created_at else None
    meta = FALLBACK_BUCKETS[bucket]
    return FallbackSla(
        status=bucket,
        title=meta["title"],
        icon=meta["icon"],
        color=meta["color"],
        is_completed=is_completed,
        is_overdue=is_overdue,
        hours_left=hours_left,
        age_hours=age_hours,
        deadline=deadline,
    )


@dataclass(frozen=True)
class StatBox:
    label: str
    value: str
    sub: Optional[str] = None
    color: Optional[str] = None
    highlight: Optional[str] = None


@dataclass(frozen=True)
class SlaView:
    """Everything the SLA card template needs; `mode` is `timer`, `deadline` or `none`."""

    mode: str
    status: Optional[str] = None
    title: str = ""
    icon: str = "⏱️"
    colors: Dict[str, str] = field(default_factory=dict)
    stats: List[StatBox] = field(default_factory=list)
    priority_label: Optional[str] = None
    priority_color: Optional[str] = None
    escalation_count: int = 0
    deadline_display: Optional[str] = None
    is_overdue: bool = False

    @property
    def has_sla(self) -> bool:
        return self.mode != "none"

    @property
    def escalation_banner(self) -> Optional[str]:
        if self.escalation_count <= 0:
            return None
        plural = "s" if self.escalation_count > 1 else ""
        return f"This complaint has been escalated {self.escalation_count} time{plural}"


def _timer_view(timer: Dict[str, Any]) -> SlaView:
    status = str(timer.get("status") or "ok").lower()
    colors = PALETTE.get(status, PALETTE["ok"])
    stats: List[StatBox] = []
    if status != "declined":
        stats.append(StatBox("Allocated SLA", fmt_hours(timer.get("resolution_deadline")), "Total time allowed"))
        completed = status == "completed"
        stats.append(
            StatBox(
                "Complaint Age",
                fmt_hours(timer.get("hours_elapsed")),
                "Total time taken" if completed else "Time since submission",
                color=COMPLETED_COLOR if completed else None,
            )
        )
        if not completed:
            if timer.get("is_overdue"):
                stats.append(
                    StatBox(
                        "Overdue By",
                        fmt_hours(timer.get("hours_overdue")),
                        "Past SLA deadline",
                        color=OVERDUE_COLOR,
                        highlight=OVERDUE_COLOR,
                    )
                )
            else:
                stats.append(
                    StatBox(
                        "Time Remaining",
                        fmt_hours(timer.get("hours_remaining")),
                        "Until SLA deadline",
                        color=REMAINING_COLORS.get(status, COMPLETED_COLOR),
                    )
                )
        stats.append(StatBox("Escalation Window", fmt_hours(timer.get("escalation_deadline")), "Hours before escalation"))

    try:
        escalations = int(timer.get("escalation_count") or 0)
    except (TypeError, ValueError):
        escalations = 0
    priority_text = timer.get("priority_text")
    return SlaView(
        mode="timer",
        status=status,
        title=str(timer.get("title") or ""),
        icon=str(timer.get("icon") or "⏱️"),
        colors=colors,
        stats=stats,
        priority_label=f"{priority_text} Priority" if priority_text else None,
        priority_color=priority_color(timer.get("priority")),
        escalation_count=escalations,
        is_overdue=bool(timer.get("is_overdue")),
    )


def _deadline_view(fallback: FallbackSla) -> SlaView:
    stats = [StatBox("Complaint Age", fmt_hours(fallback.age_hours), "Time since submission")]
    if not fallback.is_completed:
        stats.append(
            StatBox(
                fallback.remaining_label,
                fallback.remaining_display,
                "Past SLA deadline" if fallback.is_overdue else "Until SLA deadline",
                color=OVERDUE_COLOR if fallback.is_overdue else None,
                highlight=OVERDUE_COLOR if fallback.is_overdue else None,
            )
        )
    deadline_display = fallback.deadline.strftime("%b %d, %I:%M %p")
    stats.append(StatBox("SLA Deadline", deadline_display))
    return SlaView(
        mode="deadline",
        status=fallback.status,
        title=fallback.title,
        icon=fallback.icon,
        colors={"border": fallback.color, "text": fallback.color, "badge": fallback.color, "glow": "rgba(79,70,229,0.12)"},
        stats=stats,
        deadline_display=deadline_display,
        is_overdue=fallback.is_overdue,
    )


def build_sla_view(complaint: Optional[Dict[str, Any]], now: Optional[datetime] = None) -> SlaView:
    """Pick the backend timer, the deadline fallback, or the neutral no-SLA state."""
    complaint = complaint or {}
    timer = complaint.get("sla_timer")
    if isinstance(timer, dict) and timer:
        return _timer_view(timer)
    fallback = derive_fallback(complaint, now or utcnow())
    if fallback is not None:
        return _deadline_view(fallback)
    return SlaView(mode="none", title="No SLA deadline has been assigned to this complaint yet.")


def is_past_deadline(complaint: Dict[str, Any], now: datetime) -> bool:
    """Worker-side overdue rule: deadline passed while still ASSIGNED/IN_PROGRESS."""
    deadline = parse_timestamp((complaint or {}).get("sla_deadline"))
    if deadline is None:
        return False
    return deadline < now and str(complaint.get("status") or "").upper() in IN_PROGRESS_STATUSES


def days_overdue(deadline_value: Any, now: datetime) -> Optional[int]:
    deadline = parse_timestamp(deadline_value)
    if deadline is None:
        return None
    return math.ceil((now - deadline).total_seconds() / 86400)
