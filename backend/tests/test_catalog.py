from app.models.audit_log import AuditLog
from app.models.user import ROLE_ADMIN

from conftest import MONDAY, WEDNESDAY, auth_headers


def test_admin_manages_activities(client, db, admin_headers, employee_headers):
    res = client.post(
        "/api/activities/",
        json={"code": "trav", "name": "Travel", "category": "TRAVEL", "billable_default": False},
        headers=admin_headers,
    )
    assert res.status_code == 201
    activity = res.json()
    assert activity["code"] == "TRAV"
    assert activity["billable_default"] is False

    res = client.post("/api/activities/", json={"code": "TRAV", "name": "Again"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["fields"] == {"code": "duplicate"}

    res = client.put(f"/api/activities/{activity['id']}", json={"active": False}, headers=admin_headers)
    assert res.json()["active"] is False
    assert client.get("/api/activities/", headers=employee_headers).json() == []
    listed = client.get("/api/activities/", params={"include_inactive": True}, headers=employee_headers).json()
    assert [a["code"] for a in listed] == ["TRAV"]

    assert db.query(AuditLog).filter(AuditLog.entity_type == "Activity").count() == 2


def test_catalog_writes_are_admin_only(client, supervisor_headers, employee_headers):
    body = {"code": "X", "name": "X"}
    assert client.post("/api/activities/", json=body, headers=supervisor_headers).status_code == 403
    assert client.post("/api/projects/", json=body, headers=employee_headers).status_code == 403
    assert client.post("/api/customers/", json={"name": "C"}, headers=supervisor_headers).status_code == 403


def test_invalid_activity_category(client, admin_headers):
    res = client.post("/api/activities/", json={"code": "Q", "name": "Q", "category": "NAP"}, headers=admin_headers)
    assert res.status_code == 422


def test_projects_and_customers(client, admin_headers, employee_headers):
    customer = client.post(
        "/api/customers/", json={"name": "Kommune", "default_rate": "700"}, headers=admin_headers
    ).json()
    res = client.post(
        "/api/projects/",
        json={"code": "K-1", "name": "Skole", "customer_id": customer["id"], "budget_hours": "120"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    project = res.json()

    assert client.post("/api/projects/", json={"code": "K-1", "name": "Dup"}, headers=admin_headers).status_code == 400

    listed = client.get("/api/projects/", params={"customer_id": customer["id"]}, headers=employee_headers).json()
    assert [p["id"] for p in listed] == [project["id"]]

    res = client.put(f"/api/projects/{project['id']}", json={"name": "Skole nord"}, headers=admin_headers)
    assert res.json()["name"] == "Skole nord"

    res = client.put(f"/api/customers/{customer['id']}", json={"contact_email": "post@kommune.no"}, headers=admin_headers)
    assert res.json()["contact_email"] == "post@kommune.no"
    assert client.get(f"/api/customers/{customer['id']}", headers=employee_headers).status_code == 200


def test_project_with_unknown_customer(client, admin_headers):
    res = client.post(
        "/api/projects/",
        json={"code": "Z", "name": "Z", "customer_id": "00000000-0000-0000-0000-000000000000"},
        headers=admin_headers,
    )
    assert res.status_code == 404


def test_deactivating_catalog_items(client, db, activity, project, admin_headers, supervisor_headers, employee_headers):
    assert client.delete(f"/api/activities/{activity.id}", headers=supervisor_headers).status_code == 403

    res = client.delete(f"/api/activities/{activity.id}", headers=admin_headers)
    assert res.status_code == 200
    assert client.get("/api/activities/", headers=employee_headers).json() == []
    # still resolvable for existing entries
    assert client.get(f"/api/activities/{activity.id}", headers=employee_headers).json()["active"] is False

    res = client.delete(f"/api/projects/{project.id}", headers=admin_headers)
    assert res.status_code == 200
    assert client.get("/api/projects/", headers=employee_headers).json() == []

    deletes = db.query(AuditLog).filter(AuditLog.action == "DELETE").all()
    assert sorted(a.entity_type for a in deletes) == ["Activity", "Project"]


def test_customer_with_active_projects_cannot_be_deactivated(client, customer, project, admin_headers):
    res = client.delete(f"/api/customers/{customer.id}", headers=admin_headers)
    assert res.status_code == 409
    assert res.json()["code"] == "invalid_state"

    client.delete(f"/api/projects/{project.id}", headers=admin_headers)
    res = client.delete(f"/api/customers/{customer.id}", headers=admin_headers)
    assert res.status_code == 200
    listed = client.get("/api/customers/", params={"include_inactive": True}, headers=admin_headers).json()
    assert [c["active"] for c in listed] == [False]


def test_deactivate_is_tenant_scoped(client, db, project, outsider):
    outsider.role = ROLE_ADMIN
    db.commit()
    res = client.delete(f"/api/projects/{project.id}", headers=auth_headers(outsider))
    assert res.status_code == 404


def test_project_time_entries(client, employee, other_employee, make_entry, project, employee_headers, supervisor_headers):
    own = make_entry(employee, day=MONDAY, project_id=project.id)
    make_entry(employee, day=WEDNESDAY, project_id=project.id)
    make_entry(other_employee, project_id=project.id)
    make_entry(employee)  # no project

    url = f"/api/projects/{project.id}/time-entries"
    assert len(client.get(url, headers=supervisor_headers).json()) == 3
    assert len(client.get(url, headers=employee_headers).json()) == 2

    res = client.get(url, params={"from": MONDAY.isoformat(), "to": MONDAY.isoformat()}, headers=employee_headers)
    assert [e["id"] for e in res.json()] == [str(own.id)]


def test_project_time_entries_hidden_from_other_tenant(client, employee, make_entry, project, outsider):
    make_entry(employee, project_id=project.id)
    res = client.get(f"/api/projects/{project.id}/time-entries", headers=auth_headers(outsider))
    assert res.status_code == 404
