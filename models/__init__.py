"""Client-side data model: complaint taxonomy, admin roles, and session principals."""
import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple

from flask_login import UserMixin


COMPLAINT_STATUSES: tuple[str, ...] = (
	"SUBMITTED",
	"FILTERING",
	"SORTING",
	"PENDING",
	"ASSIGNED",
	"IN_PROGRESS",
	"COMPLETED",
	"RESOLVED",
	"DECLINED",
	"REJECTED",
)

PENDING_STATUSES: tuple[str, ...] = ("SUBMITTED", "PENDING", "FILTERING", "SORTING")
IN_PROGRESS_STATUSES: tuple[str, ...] = ("ASSIGNED", "IN_PROGRESS")
COMPLETED_STATUSES: tuple[str, ...] = ("COMPLETED", "RESOLVED")
DECLINED_STATUSES: tuple[str, ...] = ("DECLINED", "REJECTED")
CLOSED_STATUSES: tuple[str, ...] = COMPLETED_STATUSES + DECLINED_STATUSES

# Statuses an admin may pick from the quick status control on the detail page.
ADMIN_QUICK_STATUSES: tuple[str, ...] = ("PENDING", "ASSIGNED", "IN_PROGRESS", "COMPLETED", "RESOLVED", "DECLINED")

ROOT_ADMIN = "ROOT_ADMIN"
SUB_ADMIN = "SUB_ADMIN"
DEPARTMENT_ADMIN = "DEPARTMENT_ADMIN"

ADMIN_ROLE_LABELS: Dict[str, str] = {
	ROOT_ADMIN: "Root Admin",
	SUB_ADMIN: "Sub-Admin",
	DEPARTMENT_ADMIN: "Dept Admin",
}

WORKER_ROLES: tuple[str, ...] = (
	"FIELD_WORKER",
	"SUPERVISOR",
	"TECHNICIAN",
	"ENGINEER",
)


class CitizenPrincipal(UserMixin):
	"""Citizen session as cached from `/auth/login/` or `/auth/me/`."""

	def __init__(self, record: Dict[str, Any]) -> None:
		self.record = dict(record or {})
		self.id = self.record.get("id")
		self.username = self.record.get("username") or ""
		self.user_type = (self.record.get("user_type") or "CITIZEN").upper()
		self.city = self.record.get("city") or ""
		self.state = self.record.get("state") or ""

	def get_id(self) -> str:
		return str(self.id if self.id is not None else self.username)

	@property
	def is_citizen(self) -> bool:
		return self.user_type == "CITIZEN"

	@property
	def display_name(self) -> str:
		full = " ".join(p for p in (self.record.get("first_name"), self.record.get("last_name")) if p)
		return full or self.username

	@classmethod
	def from_json(cls, raw: Optional[str]) -> Optional["CitizenPrincipal"]:
		if not raw:
			return None
		try:
			record = json.loads(raw)
		except ValueError:
			return None
		if not isinstance(record, dict):
			return None
		return cls(record)


class WorkerPrincipal:
	"""Worker session; the stored record merges worker and user identity fields."""

	def __init__(self, record: Dict[str, Any]) -> None:
		self.record = dict(record or {})
		self.id = self.record.get("id")
		self.username = self.record.get("username") or ""

	@property
	def display_name(self) -> str:
		full = " ".join(p for p in (self.record.get("first_name"), self.record.get("last_name")) if p)
		return full or self.username or "Worker"

	@property
	def department_name(self) -> str:
		return self.record.get("department_name") or ""


@dataclass(frozen=True)
class AdminPrincipal:
	"""Base of the admin principal variants; `role` tags the variant."""

	role: ClassVar[str] = ""

	user_id: str
	display_name: str = ""
	permissions: Tuple[str, ...] = ()
	city_context: Optional[str] = None
	record: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

	@property
	def role_label(self) -> str:
		return ADMIN_ROLE_LABELS.get(self.role, self.role)


@dataclass(frozen=True)
class RootAdmin(AdminPrincipal):
	role: ClassVar[str] = ROOT_ADMIN


@dataclass(frozen=True)
class SubAdmin(AdminPrincipal):
	role: ClassVar[str] = SUB_ADMIN

	cluster_id: Optional[str] = None
	cluster_name: str = ""
	departments: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class DepartmentAdmin(AdminPrincipal):
	role: ClassVar[str] = DEPARTMENT_ADMIN

	department_id: Any = None
	department_name: str = ""
	multi_city: bool = False


def admin_principal_from_record(record: Dict[str, Any]) -> AdminPrincipal:
	"""Rebuild the tagged principal from a persisted admin record.

	Raises ValueError when the record is not a mapping or names an unknown role.
	"""
	if not isinstance(record, dict):
		raise ValueError("Admin record must be an object")
	role = record.get("role")
	common = {
		"user_id": str(record.get("userId") or ""),
		"display_name": record.get("displayName") or "",
		"permissions": tuple(record.get("permissions") or ()),
		"city_context": record.get("cityContext") or None,
		"record": dict(record),
	}
	if role == ROOT_ADMIN:
		return RootAdmin(**common)
	if role == SUB_ADMIN:
		return SubAdmin(
			cluster_id=record.get("clusterId"),
			cluster_name=record.get("clusterName") or "",
			departments=tuple(record.get("departments") or ()),
			**common,
		)
	if role == DEPARTMENT_ADMIN:
		return DepartmentAdmin(
			department_id=record.get("departmentId"),
			department_name=record.get("departmentName") or "",
			multi_city=bool(record.get("multiCity")),
			**common,
		)
	raise ValueError(f"Unknown admin role: {role!r}")
