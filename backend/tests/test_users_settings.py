from decimal import Decimal

from app.models.audit_log import AuditLog
from app.models.catalog import Customer
from app.models.settings import CompanySettings
from app.models.timesheet import TimeEntry
from app.models.user import User


def test_admin_creates_user_who_can_log_in(client, db, company, admin_headers):
    res = client.post(
        "/api/users/",
        json={"email": "Ny@Bygg.no", "password": "long-enough", "name": "Nina Ny", "role": "supervisor"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    data = res.json()
    assert data["email"] == "ny@bygg.no"
    assert data["company_id"] == str(company.company_id)

    login = client.post("/api/auth/login", json={"email": "ny@bygg.no", "password": "long-enough"})
    assert login.status_code == 200

    dup = client.post(
        "/api/users/",
        json={"email": "ny@bygg.no", "password": "long-enough", "name": "Again"},
        headers=admin_headers,
    )
    assert dup.status_code == 400
    assert db.query(User).filter(User.email == "ny@bygg.no").count() == 1


def test_user_listing_is_tenant_scoped(client, employee, outsider, supervisor_headers, employee_headers):
    names = [u["name"] for u in client.get("/api/users/", headers=supervisor_headers).json()]
    assert "Ola Nordmann" in names
    assert "Per Rørlegger" not in names
    assert client.get("/api/users/", headers=employee_headers).status_code == 403


def test_admin_updates_user(client, db, employee, other_employee, admin_headers, supervisor_headers):
    url = f"/api/users/{employee.user_id}"
    assert client.put(url, json={"name": "X"}, headers=supervisor_headers).status_code == 403

    res = client.put(url, json={"name": " Ola N. ", "role": "supervisor", "hourly_cost": "310"}, headers=admin_headers)
    assert res.status_code == 200
    data = res.json()
    assert data["name"] == "Ola N."
    assert data["role"] == "supervisor"
    assert Decimal(str(data["hourly_cost"])) == Decimal("310")

    res = client.put(url, json={"email": "KARI@bygg.no"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["fields"] == {"email": "duplicate"}

    assert client.put(url, json={"name": None}, headers=admin_headers).status_code == 400

    audit = db.query(AuditLog).filter(AuditLog.entity_type == "User", AuditLog.action == "UPDATE").one()
    assert audit.new_value["role"] == "supervisor"


def test_admin_cannot_demote_or_deactivate_self(client, admin, admin_headers):
    url = f"/api/users/{admin.user_id}"
    assert client.put(url, json={"role": "employee"}, headers=admin_headers).status_code == 400
    assert client.put(url, json={"is_active": False}, headers=admin_headers).status_code == 400
    assert client.delete(url, headers=admin_headers).status_code == 400
    assert client.put(url, json={"name": "Arne A."}, headers=admin_headers).status_code == 200


def test_deactivated_user_keeps_entries_but_cannot_log_in(client, db, employee, make_entry, employee_headers, admin_headers):
    make_entry(employee)
    res = client.delete(f"/api/users/{employee.user_id}", headers=admin_headers)
    assert res.status_code == 200

    db.expire_all()
    assert db.get(User, employee.user_id).is_active is False
    assert db.query(TimeEntry).filter(TimeEntry.user_id == employee.user_id).count() == 1
    assert client.get("/api/auth/me", headers=employee_headers).status_code == 401
    assert db.query(AuditLog).filter(AuditLog.entity_type == "User", AuditLog.action == "DELETE").count() == 1


def test_user_changes_are_tenant_scoped(client, outsider, admin_headers):
    url = f"/api/users/{outsider.user_id}"
    assert client.put(url, json={"name": "Hacked"}, headers=admin_headers).status_code == 404
    assert client.delete(url, headers=admin_headers).status_code == 404


def test_settings_defaults_and_update(client, admin_headers, employee_headers):
    res = client.get("/api/settings", headers=employee_headers)
    assert res.status_code == 200
    data = res.json()
    assert data["csv_delimiter"] == ";"
    assert float(data["vat_rate"]) == 25.0
    assert data["privileged_edit_locked_weeks"] is True
    assert data["allow_self_review"] is False

    assert client.put("/api/settings", json={"vat_rate": "15"}, headers=employee_headers).status_code == 403
    res = client.put("/api/settings", json={"vat_rate": "15", "allow_self_review": True}, headers=admin_headers)
    assert float(res.json()["vat_rate"]) == 15.0
    assert res.json()["allow_self_review"] is True

    assert client.put("/api/settings", json={"csv_delimiter": "xx"}, headers=admin_headers).status_code == 422


def test_settings_row_created_concurrently_is_reused(db, scope, company, monkeypatch):
    # another request created the row after our lookup missed it
    db.execute(CompanySettings.__table__.insert().values(
        company_id=company.company_id,
        csv_delimiter=",",
        vat_rate=12,
        privileged_edit_locked_weeks=False,
        allow_self_review=True,
    ))
    db.commit()

    original_get = db.get
    calls = {"n": 0}

    def stale_get(entity, ident, **kwargs):
        calls["n"] += 1
        return None if calls["n"] == 1 else original_get(entity, ident, **kwargs)

    monkeypatch.setattr(db, "get", stale_get)
    db.add(Customer(company_id=company.company_id, name="Ventende Kunde"))

    row = scope.settings()
    assert row.csv_delimiter == ","
    assert Decimal(row.vat_rate) == Decimal("12")
    assert row.allow_self_review is True

    # the caller's unflushed work survives the failed insert
    db.commit()
    assert db.query(Customer).filter(Customer.name == "Ventende Kunde").count() == 1
    assert db.query(CompanySettings).count() == 1
