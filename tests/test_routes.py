import io
import json
import os

from PIL import Image

from utils.session_store import ADMIN_TOKEN_KEY, TOKEN_KEY, WORKER_KEY, WORKER_TOKEN_KEY


def _flashes(client):
    with client.session_transaction() as sess:
        return [message for _, message in sess.get("_flashes", [])]


def _session_value(client, key):
    with client.session_transaction() as sess:
        return sess.get(key)


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 80, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


# Admin realm


def test_admin_login_redirects_to_dashboard(client, login_admin):
    response = login_admin()

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/admin/dashboard")
    assert _session_value(client, ADMIN_TOKEN_KEY).startswith("admin_")


def test_admin_login_with_bad_password(client, login_admin):
    response = login_admin("root", "nope")

    assert response.status_code == 401
    assert b"Invalid credentials" in response.data
    assert _session_value(client, ADMIN_TOKEN_KEY) is None


def test_admin_pages_require_login(client):
    response = client.get("/admin/complaints")

    assert response.status_code == 302
    assert "/admin/login" in response.headers["Location"]


def test_admin_dashboard_renders(client, fake_backend, login_admin):
    fake_backend.add("GET", "/dashboard/stats/", {"total_complaints": 9, "pending": 2})
    login_admin()

    response = client.get("/admin/dashboard")

    assert response.status_code == 200
    assert "Content-Security-Policy" in response.headers


def test_department_admin_list_is_scoped_to_city(client, fake_backend, login_admin):
    fake_backend.add(
        "GET",
        "/complaints/all/",
        [
            {"id": 1, "title": "Pothole near station", "department": 3, "department_name": "Roads", "city": "Jaipur",
             "status": "PENDING"},
            {"id": 2, "title": "Cracked flyover", "department": 3, "department_name": "Roads", "city": "Mumbai",
             "status": "PENDING"},
            {"id": 3, "title": "Overflowing drain", "department": 7, "department_name": "Sewerage", "city": "Jaipur",
             "status": "PENDING"},
        ],
    )
    login_admin("roads", "roadspass", "Jaipur")

    response = client.get("/admin/complaints")

    assert response.status_code == 200
    assert b"Pothole near station" in response.data
    assert b"Cracked flyover" not in response.data
    assert b"Overflowing drain" not in response.data


def test_out_of_scope_complaint_is_forbidden(client, fake_backend, login_admin):
    fake_backend.add("GET", "/complaints/42/", {"id": 42, "department": 5, "department_name": "Water", "city": "Jaipur"})
    login_admin("roads", "roadspass")

    assert client.get("/admin/complaints/42").status_code == 403


def test_missing_complaint_is_not_found(client, login_admin):
    login_admin()

    assert client.get("/admin/complaints/404").status_code == 404


def test_role_and_permission_gates(client, login_admin):
    login_admin("roads", "roadspass")
    assert client.get("/admin/departments").status_code == 403
    client.get("/admin/logout")

    login_admin("cluster", "clusterpass")
    assert client.post("/admin/sla/escalate", data={"dry_run": "y"}).status_code == 403
    assert client.post("/admin/sla/configs/1", data={}).status_code == 403
    assert client.post("/admin/workers/delete-all").status_code == 403


def test_sla_report_is_read_only_without_manage_permission(client, fake_backend, login_admin):
    fake_backend.add("GET", "/sla/report/", {"summary": {"total_active": 4}, "department_breakdown": []})
    fake_backend.add(
        "GET",
        "/sla/configs/",
        [{"id": 1, "department_name": "Roads", "category_name": "Pothole", "escalation_hours": 24, "resolution_hours": 72}],
    )
    login_admin("cluster", "clusterpass")

    report = client.get("/admin/sla/")
    config = client.get("/admin/sla/?tab=config")

    assert report.status_code == 200
    assert b"/admin/sla/escalate" not in report.data
    assert config.status_code == 200
    assert b"Pothole" in config.data
    assert b"/admin/sla/configs/1" not in config.data


def test_sla_page_offers_escalation_to_managers(client, fake_backend, login_admin):
    login_admin()

    response = client.get("/admin/sla/")

    assert response.status_code == 200
    assert b"/admin/sla/escalate" in response.data


def test_dashboard_lists_departments_in_scope(client, login_admin):
    login_admin()
    assert b"Departments: Roads" in client.get("/admin/dashboard").data
    client.get("/admin/logout")

    login_admin("cluster", "clusterpass")
    assert b"Departments: 1, 2" in client.get("/admin/dashboard").data


def test_cluster_configured_by_name_can_add_office(client, fake_backend, login_admin):
    fake_backend.add("GET", "/departments/", [{"id": 5, "name": "Roads"}, {"id": 6, "name": "Water"}])
    fake_backend.add("POST", "/offices/create/", {"id": 11})
    login_admin("streets", "streetspass")

    form = client.get("/admin/offices/add")
    assert b"Roads" in form.data
    assert b"Water" not in form.data

    response = client.post(
        "/admin/offices/add",
        data={"name": "Ward 4 Office", "department_id": "5", "city": "Jaipur", "address": "MI Road"},
    )

    assert response.status_code == 302
    assert fake_backend.last_call("POST", "/offices/create/")["json"]["department_id"] == "5"


def test_cluster_configured_by_name_cannot_add_office_elsewhere(client, fake_backend, login_admin):
    fake_backend.add("GET", "/departments/", [{"id": 5, "name": "Roads"}, {"id": 6, "name": "Water"}])
    login_admin("streets", "streetspass")

    response = client.post(
        "/admin/offices/add",
        data={"name": "Ward 4 Office", "department_id": "6", "city": "Jaipur", "address": "MI Road"},
    )

    assert response.status_code == 200
    assert fake_backend.last_call("POST", "/offices/create/") is None


def test_cluster_configured_by_name_opens_matching_offices(client, fake_backend, login_admin):
    fake_backend.add(
        "GET",
        "/offices/",
        [
            {"id": 7, "name": "Ward 4 Office", "department": 5, "department_name": "Roads", "city": "Jaipur"},
            {"id": 8, "name": "Pump House", "department": 6, "department_name": "Water", "city": "Jaipur"},
        ],
    )
    login_admin("streets", "streetspass")

    assert client.get("/admin/offices/7").status_code == 200
    assert client.get("/admin/offices/8").status_code == 403


def test_reject_requires_reason(client, fake_backend, login_admin):
    fake_backend.add("GET", "/complaints/8/", {"id": 8, "department": 3, "city": "Jaipur"})
    login_admin()

    response = client.post("/admin/complaints/8/reject", data={"reason": ""})

    assert response.status_code == 302
    assert "Please provide a reason for rejection" in _flashes(client)
    assert fake_backend.last_call("POST", "/complaints/8/reject/") is None


def test_assign_worker_sends_admin_headers(client, fake_backend, login_admin):
    fake_backend.add("GET", "/complaints/8/", {"id": 8, "department": 3, "city": "Jaipur"})
    fake_backend.add("POST", "/complaints/8/assign/", {"success": True})
    login_admin()

    client.post("/admin/complaints/8/assign", data={"worker_id": "12", "sla_hours": "48", "notes": " urgent "})

    call = fake_backend.last_call("POST", "/complaints/8/assign/")
    assert call["json"] == {"worker_id": "12", "notes": "urgent", "sla_hours": 48}
    assert call["headers"]["X-Admin-Token"].startswith("admin_")
    assert json.loads(call["headers"]["X-Admin-User"])["role"] == "ROOT_ADMIN"
    assert "Complaint assigned successfully" in _flashes(client)


def test_expired_admin_session_is_cleared(client, fake_backend, login_admin):
    fake_backend.add("GET", "/complaints/all/", {"detail": "Invalid admin token"}, status=401)
    login_admin()

    response = client.get("/admin/complaints")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/admin/login")
    assert _session_value(client, ADMIN_TOKEN_KEY) is None


def test_sla_escalation_result_survives_redirect(client, fake_backend, login_admin):
    fake_backend.add("POST", "/sla/trigger-escalation/", {"output": "2 complaints escalated"})
    login_admin()

    response = client.post("/admin/sla/escalate", data={"dry_run": "y"})

    assert response.status_code == 302
    assert fake_backend.last_call("POST", "/sla/trigger-escalation/")["json"] == {"dry_run": True}
    assert _session_value(client, "sla_trigger_result") == {
        "success": True,
        "output": "2 complaints escalated",
        "dry_run": True,
    }


def test_attendance_needs_a_selection(client, fake_backend, login_admin):
    login_admin("roads", "roadspass", "Jaipur")

    response = client.post("/admin/attendance", data={"date": "2026-03-10"})

    assert response.status_code == 302
    assert "department_id=3" in response.headers["Location"]
    assert "city=Jaipur" in response.headers["Location"]
    assert "Please select at least one worker to mark present" in _flashes(client)
    assert fake_backend.last_call("POST", "/attendance/bulk-mark/") is None


def test_attendance_bulk_mark(client, fake_backend, login_admin):
    fake_backend.add(
        "GET",
        "/attendance/register/",
        {
            "register": [
                {"worker_id": 4, "worker_name": "Ravi Meena", "department": "Roads", "status": "ABSENT"},
                {"worker_id": 5, "worker_name": "Sita Rao", "department": "Roads", "status": "ABSENT"},
            ]
        },
    )
    fake_backend.add("POST", "/attendance/bulk-mark/", {"marked": 2})
    login_admin("roads", "roadspass")

    client.post("/admin/attendance", data={"date": "2026-03-10", "worker_ids": ["4", "5"]})

    payload = fake_backend.last_call("POST", "/attendance/bulk-mark/")["json"]
    assert payload["worker_ids"] == ["4", "5"]
    assert payload["date"] == "2026-03-10"
    assert "Successfully marked 2 worker(s) as present" in _flashes(client)


def test_attendance_rejects_department_outside_scope(client, fake_backend, login_admin):
    fake_backend.add("GET", "/departments/", [{"id": 1, "name": "Parks"}, {"id": 5, "name": "Water"}])
    login_admin("cluster", "clusterpass")

    assert client.get("/admin/attendance?department_id=5").status_code == 403
    assert fake_backend.last_call("GET", "/attendance/register/") is None


def test_attendance_register_is_scoped(client, fake_backend, login_admin):
    fake_backend.add("GET", "/departments/", [{"id": 1, "name": "Parks"}, {"id": 5, "name": "Water"}])
    fake_backend.add(
        "GET",
        "/attendance/register/",
        {
            "total_workers": 2,
            "present_count": 1,
            "absent_count": 1,
            "register": [
                {"worker_id": 4, "worker_name": "Ravi Meena", "department": "Parks", "status": "ABSENT"},
                {"worker_id": 9, "worker_name": "Mohan Das", "department": "Water", "status": "PRESENT"},
            ],
        },
    )
    login_admin("cluster", "clusterpass")

    response = client.get("/admin/attendance?date=2026-03-10")

    assert response.status_code == 200
    assert b"Ravi Meena" in response.data
    assert b"Mohan Das" not in response.data


def test_attendance_drops_workers_outside_scope(client, fake_backend, login_admin):
    fake_backend.add("GET", "/departments/", [{"id": 1, "name": "Parks"}, {"id": 5, "name": "Water"}])
    fake_backend.add(
        "GET",
        "/attendance/register/",
        {
            "register": [
                {"worker_id": 4, "department": "Parks", "status": "ABSENT"},
                {"worker_id": 9, "department": "Water", "status": "ABSENT"},
            ]
        },
    )
    fake_backend.add("POST", "/attendance/bulk-mark/", {"marked": 1})
    login_admin("cluster", "clusterpass")

    client.post("/admin/attendance", data={"date": "2026-03-10", "worker_ids": ["4", "9"]})

    assert fake_backend.last_call("POST", "/attendance/bulk-mark/")["json"]["worker_ids"] == ["4"]
    assert "Successfully marked 1 worker(s) as present" in _flashes(client)



# Citizen realm


def test_citizen_login_starts_session(client, login_citizen):
    response = login_citizen()

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/dashboard")
    assert _session_value(client, TOKEN_KEY) == "citizen-token"


def test_citizen_login_rejected_by_backend(client, fake_backend):
    fake_backend.add("POST", "/auth/login/", {"error": "Invalid credentials"}, status=400)

    response = client.post("/login", data={"username": "asha", "password": "wrong"})

    assert response.status_code == 401
    assert _session_value(client, TOKEN_KEY) is None


def test_privileged_account_refused_on_citizen_portal(client, login_citizen):
    response = login_citizen({"id": 9, "username": "boss", "user_type": "ADMIN"})

    assert response.status_code == 403
    assert _session_value(client, TOKEN_KEY) is None


def test_citizen_dashboard_renders(client, fake_backend, login_citizen):
    fake_backend.add("GET", "/dashboard/stats/", {"total_complaints": 4, "my_complaints": 1})
    fake_backend.add("GET", "/complaints/all/", [{"id": 1, "title": "Broken streetlight", "status": "PENDING"}])
    login_citizen()

    response = client.get("/dashboard")

    assert response.status_code == 200
    assert b"Broken streetlight" in response.data


def test_backend_401_logs_the_citizen_out(client, fake_backend, login_citizen):
    login_citizen()
    fake_backend.add("GET", "/complaints/my/", {"detail": "Invalid token."}, status=401)

    response = client.get("/complaints/")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")
    assert _session_value(client, TOKEN_KEY) is None
    assert client.get("/dashboard").status_code == 302


def test_duplicate_complaint_flow(app, client, fake_backend, login_citizen):
    fake_backend.add(
        "POST",
        "/complaints/analyze-image/",
        {"title": "Pothole", "department_id": 4, "department_name": "Roads", "description": "Deep pothole"},
    )
    fake_backend.add(
        "POST",
        "/complaints/create/",
        {"duplicate": True, "error": "A similar complaint already exists", "existing_complaint_id": 11},
        status=409,
    )
    login_citizen()

    response = client.post(
        "/complaints/new",
        data={
            "image": (io.BytesIO(_png_bytes()), "pothole.png"),
            "location": "MI Road",
            "city": "Jaipur",
            "state": "Rajasthan",
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/complaints/new/review")

    response = client.post("/complaints/new/review", data={"location": "MI Road", "city": "Jaipur", "state": "Rajasthan"})

    assert response.status_code == 200
    assert b"already been reported" in response.data
    sent = fake_backend.last_call("POST", "/complaints/create/")
    assert sent["data"]["department"] == 4
    assert sent["files"]["image"][0] == "pothole.png"
    assert os.listdir(app.config["COMPLAINT_UPLOAD_FOLDER"]) == []
    assert _session_value(client, "complaint_draft") is None


def test_review_without_draft_goes_back_to_upload(client, login_citizen):
    login_citizen()

    response = client.get("/complaints/new/review")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/complaints/new")


# Worker realm


def test_worker_login_and_dashboard(client, fake_backend):
    fake_backend.add(
        "POST",
        "/worker/login/",
        {
            "token": "worker-token",
            "worker": {"id": 3, "department_name": "Roads"},
            "user": {"first_name": "Ravi", "last_name": "Meena", "username": "ravi"},
        },
    )
    fake_backend.add("GET", "/worker/assignments/", [])

    response = client.post("/worker/login", data={"username": "ravi", "password": "secret"})

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/worker/dashboard")
    assert _session_value(client, WORKER_TOKEN_KEY) == "worker-token"
    assert json.loads(_session_value(client, WORKER_KEY))["first_name"] == "Ravi"

    dashboard = client.get("/worker/dashboard")
    assert dashboard.status_code == 200
    assert b"Ravi Meena" in dashboard.data
    assert fake_backend.last_call("GET", "/worker/assignments/")["headers"] == {"Authorization": "Token worker-token"}


def test_worker_pages_require_login(client):
    response = client.get("/worker/assigned")

    assert response.status_code == 302
    assert "/worker/login" in response.headers["Location"]
