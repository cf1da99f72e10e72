"""Complaint intake draft: merges photo analysis, geolocation and the citizen profile."""
from typing import Any, Dict, Optional

DRAFT_KEY = "complaint_draft"


def build_complaint_draft(
    analysis: Optional[Dict[str, Any]],
    geo: Optional[Dict[str, str]],
    profile: Optional[Dict[str, Any]],
    latitude: Optional[str] = None,
    longitude: Optional[str] = None,
) -> Dict[str, Any]:
    """Geocoded location wins over the analysed scene description; geocoded city/state win over the profile."""
    analysis = analysis or {}
    geo = geo or {}
    profile = profile or {}
    return {
        "title": analysis.get("title") or "",
        "department_id": analysis.get("department_id") or "",
        "department_name": analysis.get("department_name") or "",
        "description": analysis.get("description") or "",
        "location": geo.get("location") or analysis.get("location") or "",
        "city": geo.get("city") or profile.get("city") or "",
        "state": geo.get("state") or profile.get("state") or "",
        "latitude": latitude or None,
        "longitude": longitude or None,
    }


def submission_fields(draft: Dict[str, Any]) -> Dict[str, Any]:
    """Backend `/complaints/create/` form fields for a reviewed draft."""
    return {
        "title": draft.get("title"),
        "description": draft.get("description"),
        "department": draft.get("department_id") or None,
        "location": draft.get("location"),
        "city": draft.get("city"),
        "state": draft.get("state"),
        "latitude": draft.get("latitude"),
        "longitude": draft.get("longitude"),
    }
