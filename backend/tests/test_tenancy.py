from conftest import MONDAY, auth_headers


def test_other_company_sees_nothing(client, employee, outsider, make_entry, employee_headers, activity, project):
    entry = make_entry(employee)
    client.post(
        "/api/week-locks/submit", json={"week_start_date": MONDAY.isoformat()}, headers=employee_headers
    )
    headers = auth_headers(outsider)

    assert client.get("/api/time-entries/", headers=headers).json() == []
    assert client.get("/api/week-locks/", headers=headers).json() == []
    assert client.get("/api/activities/", headers=headers).json() == []
    assert client.get("/api/projects/", headers=headers).json() == []
    assert client.get("/api/week-locks/pending-count", headers=headers).json() == {"count": 0}

    assert client.get(f"/api/time-entries/{entry.id}", headers=headers).status_code == 404
    assert client.get(f"/api/activities/{activity.id}", headers=headers).status_code == 404


def test_other_company_cannot_act_on_foreign_rows(client, db, employee, outsider, make_entry, employee_headers):
    entry = make_entry(employee)
    lock = client.post(
        "/api/week-locks/submit", json={"week_start_date": MONDAY.isoformat()}, headers=employee_headers
    ).json()
    headers = auth_headers(outsider)

    res = client.post(f"/api/week-locks/{lock['id']}/approve", headers=headers)
    assert res.status_code == 404
    res = client.post(f"/api/week-locks/{lock['id']}/unlock", headers=headers)
    assert res.status_code == 404
    res = client.put(f"/api/time-entries/{entry.id}", json={"hours": "1"}, headers=headers)
    assert res.status_code == 404
    res = client.delete(f"/api/time-entries/{entry.id}", headers=headers)
    assert res.status_code == 404

    mine = client.get(f"/api/time-entries/{entry.id}", headers=employee_headers).json()
    assert mine["status"] == "SUBMITTED"


def test_cannot_book_against_foreign_project(client, db, other_company, employee_headers, activity):
    from app.models.catalog import Project

    foreign = Project(company_id=other_company.company_id, code="F-1", name="Foreign")
    db.add(foreign)
    db.commit()
    res = client.post(
        "/api/time-entries/",
        json={
            "activity_id": str(activity.id), "project_id": str(foreign.id),
            "date": MONDAY.isoformat(), "hours": "1",
        },
        headers=employee_headers,
    )
    assert res.status_code == 404


def test_same_code_allowed_in_different_companies(client, admin_headers, outsider, db, other_company):
    from app.models.user import User, ROLE_ADMIN
    from app.services.auth import get_password_hash

    other_admin = User(
        company_id=other_company.company_id, email="boss@ror.no",
        password_hash=get_password_hash("x" * 10), name="Rør Boss", role=ROLE_ADMIN,
    )
    db.add(other_admin)
    db.commit()

    body = {"code": "MONT", "name": "Montage"}
    assert client.post("/api/activities/", json=body, headers=admin_headers).status_code == 201
    assert client.post("/api/activities/", json=body, headers=auth_headers(other_admin)).status_code == 201
