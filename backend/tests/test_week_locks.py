from decimal import Decimal

import pytest

from app.exceptions import AlreadySubmittedError, InvalidStateError
from app.models.audit_log import AuditLog
from app.models.settings import CompanySettings
from app.models.timesheet import TimeEntry, WeekLock
from app.services import week_locks as svc

from conftest import MONDAY, NEXT_MONDAY, SUNDAY, WEDNESDAY, auth_headers


def _submit(client, headers, day=MONDAY):
    return client.post("/api/week-locks/submit", json={"week_start_date": day.isoformat()}, headers=headers)


def _entry(db, entry_id):
    db.expire_all()
    return db.get(TimeEntry, entry_id)


def test_full_week_cycle(client, db, employee, employee_headers, supervisor_headers, activity):
    # 1. draft entry, billable from activity default
    res = client.post(
        "/api/time-entries/",
        json={"activity_id": str(activity.id), "date": MONDAY.isoformat(), "hours": "8"},
        headers=employee_headers,
    )
    assert res.status_code == 201
    entry_id = res.json()["id"]
    assert res.json()["billable"] is True
    assert res.json()["status"] == "DRAFT"

    # 2. submit
    res = _submit(client, employee_headers)
    assert res.status_code == 200
    lock = res.json()
    assert lock["status"] == "SUBMITTED"
    assert lock["week_start_date"] == MONDAY.isoformat()
    entry = client.get(f"/api/time-entries/{entry_id}", headers=employee_headers).json()
    assert entry["status"] == "SUBMITTED"
    assert entry["submitted_at"] is not None

    # 3. new entry in the locked week
    res = client.post(
        "/api/time-entries/",
        json={"activity_id": str(activity.id), "date": WEDNESDAY.isoformat(), "hours": "2"},
        headers=employee_headers,
    )
    assert res.status_code == 409
    assert res.json()["code"] == "week_locked"

    # 4. reject
    res = client.post(
        f"/api/week-locks/{lock['id']}/reject", json={"comment": "Missing project code"}, headers=supervisor_headers
    )
    assert res.status_code == 200
    assert res.json()["status"] == "REJECTED"
    assert res.json()["comment"] == "Missing project code"
    entry = client.get(f"/api/time-entries/{entry_id}", headers=employee_headers).json()
    assert entry["status"] == "REJECTED"
    assert entry["reject_note"] == "Missing project code"

    # 5. unlock
    res = client.post(f"/api/week-locks/{lock['id']}/unlock", headers=supervisor_headers)
    assert res.status_code == 200
    assert res.json()["entries"] == 1
    db.expire_all()
    assert db.query(WeekLock).count() == 0
    entry = client.get(f"/api/time-entries/{entry_id}", headers=employee_headers).json()
    assert entry["status"] == "DRAFT"
    assert entry["reject_note"] is None

    actions = [a.action for a in db.query(AuditLog).order_by(AuditLog.created_at).all()]
    for action in ("CREATE", "SUBMIT", "REJECT", "UNLOCK"):
        assert action in actions


def test_submit_empty_week(client, employee_headers):
    res = _submit(client, employee_headers)
    assert res.status_code == 409
    assert res.json()["code"] == "empty_week"


def test_submit_normalizes_to_monday(client, employee, make_entry, employee_headers):
    make_entry(employee, day=SUNDAY)
    res = _submit(client, employee_headers, day=WEDNESDAY)
    assert res.status_code == 200
    assert res.json()["week_start_date"] == MONDAY.isoformat()


def test_submit_twice(client, db, employee, make_entry, employee_headers):
    make_entry(employee)
    assert _submit(client, employee_headers).status_code == 200
    res = _submit(client, employee_headers, day=SUNDAY)
    assert res.status_code == 409
    assert res.json()["code"] == "already_submitted"
    db.expire_all()
    assert db.query(WeekLock).count() == 1


def test_submit_approved_week(client, employee, make_entry, employee_headers, supervisor_headers):
    make_entry(employee)
    lock = _submit(client, employee_headers).json()
    client.post(f"/api/week-locks/{lock['id']}/approve", headers=supervisor_headers)
    res = _submit(client, employee_headers)
    assert res.status_code == 409
    assert res.json()["code"] == "already_approved"


def test_submit_only_moves_draft_entries_of_that_week(client, db, employee, make_entry, employee_headers):
    this_week = make_entry(employee, day=MONDAY)
    next_week = make_entry(employee, day=NEXT_MONDAY)
    _submit(client, employee_headers)
    assert _entry(db, this_week.id).status == "SUBMITTED"
    assert _entry(db, next_week.id).status == "DRAFT"


def test_resubmit_after_rejection_reuses_lock(client, db, employee, make_entry, employee_headers, supervisor_headers):
    entry = make_entry(employee)
    lock = _submit(client, employee_headers).json()
    client.post(f"/api/week-locks/{lock['id']}/reject", json={"comment": "Wrong day"}, headers=supervisor_headers)

    res = _submit(client, employee_headers)
    assert res.status_code == 200
    assert res.json()["id"] == lock["id"]
    assert res.json()["status"] == "SUBMITTED"
    assert res.json()["comment"] is None

    refreshed = _entry(db, entry.id)
    assert refreshed.status == "SUBMITTED"
    assert refreshed.reject_note is None
    assert db.query(WeekLock).count() == 1


def test_create_allowed_in_rejected_week(client, employee, make_entry, employee_headers, supervisor_headers, activity):
    make_entry(employee)
    lock = _submit(client, employee_headers).json()
    client.post(f"/api/week-locks/{lock['id']}/reject", json={"comment": "Add Friday"}, headers=supervisor_headers)
    res = client.post(
        "/api/time-entries/",
        json={"activity_id": str(activity.id), "date": "2024-03-08", "hours": "6"},
        headers=employee_headers,
    )
    assert res.status_code == 201


def test_owner_cannot_edit_or_delete_under_lock(client, employee, make_entry, employee_headers):
    entry = make_entry(employee)
    _submit(client, employee_headers)
    res = client.put(f"/api/time-entries/{entry.id}", json={"hours": "1"}, headers=employee_headers)
    assert res.status_code == 409
    assert res.json()["code"] == "invalid_state"
    res = client.delete(f"/api/time-entries/{entry.id}", headers=employee_headers)
    assert res.json()["code"] == "invalid_state"


def test_supervisor_may_edit_inside_locked_week_by_default(client, db, employee, make_entry, employee_headers, supervisor_headers):
    entry = make_entry(employee)
    _submit(client, employee_headers)
    res = client.put(f"/api/time-entries/{entry.id}", json={"hours": "6"}, headers=supervisor_headers)
    assert res.status_code == 200
    assert Decimal(res.json()["hours"]) == Decimal("6")
    assert res.json()["status"] == "SUBMITTED"


def test_supervisor_edit_blocked_when_policy_disabled(client, db, company, employee, make_entry, employee_headers, supervisor_headers):
    db.add(CompanySettings(company_id=company.company_id, privileged_edit_locked_weeks=False))
    db.commit()
    entry = make_entry(employee)
    _submit(client, employee_headers)
    res = client.put(f"/api/time-entries/{entry.id}", json={"hours": "6"}, headers=supervisor_headers)
    assert res.status_code == 409
    assert res.json()["code"] == "week_locked"


@pytest.mark.parametrize("action", ["approve", "reject"])
def test_review_requires_submitted_status(client, employee, make_entry, employee_headers, supervisor_headers, action):
    make_entry(employee)
    lock = _submit(client, employee_headers).json()
    client.post(f"/api/week-locks/{lock['id']}/approve", headers=supervisor_headers)

    res = client.post(f"/api/week-locks/{lock['id']}/{action}", json={"comment": "x"}, headers=supervisor_headers)
    assert res.status_code == 409
    assert res.json()["code"] == "invalid_state"


def test_reject_after_reject_is_invalid(client, employee, make_entry, employee_headers, supervisor_headers):
    make_entry(employee)
    lock = _submit(client, employee_headers).json()
    client.post(f"/api/week-locks/{lock['id']}/reject", json={"comment": "a"}, headers=supervisor_headers)
    res = client.post(f"/api/week-locks/{lock['id']}/approve", headers=supervisor_headers)
    assert res.json()["code"] == "invalid_state"


def test_reject_requires_comment(client, employee, make_entry, employee_headers, supervisor_headers):
    make_entry(employee)
    lock = _submit(client, employee_headers).json()
    res = client.post(f"/api/week-locks/{lock['id']}/reject", json={"comment": ""}, headers=supervisor_headers)
    assert res.status_code == 422
    res = client.post(f"/api/week-locks/{lock['id']}/reject", json={"comment": "   "}, headers=supervisor_headers)
    assert res.status_code == 400


def test_employee_cannot_review(client, employee, make_entry, employee_headers):
    make_entry(employee)
    lock = _submit(client, employee_headers).json()
    assert client.post(f"/api/week-locks/{lock['id']}/approve", headers=employee_headers).status_code == 403
    assert client.post(f"/api/week-locks/{lock['id']}/unlock", headers=employee_headers).status_code == 403


def test_self_review_forbidden_by_default(client, db, company, supervisor, make_entry, supervisor_headers):
    make_entry(supervisor)
    lock = _submit(client, supervisor_headers).json()
    res = client.post(f"/api/week-locks/{lock['id']}/approve", headers=supervisor_headers)
    assert res.status_code == 403

    settings = db.get(CompanySettings, company.company_id)
    settings.allow_self_review = True
    db.commit()
    res = client.post(f"/api/week-locks/{lock['id']}/approve", headers=supervisor_headers)
    assert res.status_code == 200


def test_approve_then_unlock_round_trip(client, db, employee, supervisor, make_entry, employee_headers, supervisor_headers):
    first = make_entry(employee, day=MONDAY)
    second = make_entry(employee, day=SUNDAY, hours="3")
    lock = _submit(client, employee_headers).json()

    res = client.post(f"/api/week-locks/{lock['id']}/approve", headers=supervisor_headers)
    assert res.json()["status"] == "APPROVED"
    assert res.json()["reviewer_id"] == str(supervisor.user_id)
    approved = _entry(db, first.id)
    assert approved.status == "APPROVED"
    assert approved.approver_id == supervisor.user_id
    assert approved.approved_at is not None

    res = client.post(f"/api/week-locks/{lock['id']}/unlock", headers=supervisor_headers)
    assert res.json()["entries"] == 2
    for entry_id in (first.id, second.id):
        e = _entry(db, entry_id)
        assert e.status == "DRAFT"
        assert e.submitted_at is None
        assert e.approved_at is None
        assert e.approver_id is None
        assert e.reject_note is None
    assert db.query(WeekLock).count() == 0

    # the week can go through the cycle again
    assert _submit(client, employee_headers).status_code == 200


def test_unlock_unknown_lock(client, supervisor_headers):
    res = client.post("/api/week-locks/00000000-0000-0000-0000-000000000000/unlock", headers=supervisor_headers)
    assert res.status_code == 404


def test_review_after_approval_is_invalid(db, scope, employee, supervisor, admin, make_entry):
    make_entry(employee)
    lock = svc.submit_week(scope, employee, MONDAY)
    svc.approve_week(scope, supervisor, lock.id)
    with pytest.raises(InvalidStateError):
        svc.reject_week(scope, admin, lock.id, "too late")


def test_conditional_update_blocks_stale_review(db, scope, employee, supervisor, admin, make_entry):
    entry = make_entry(employee)
    lock = svc.submit_week(scope, employee, MONDAY)
    assert lock.status == "SUBMITTED"

    # a concurrent reviewer approves; the loaded lock object still reads SUBMITTED
    db.query(WeekLock).filter(WeekLock.id == lock.id).update(
        {WeekLock.status: "APPROVED", WeekLock.reviewer_id: supervisor.user_id}, synchronize_session=False
    )
    with pytest.raises(InvalidStateError):
        svc.reject_week(scope, admin, lock.id, "too late")

    # the entry was not touched by the failed rejection
    assert _entry(db, entry.id).status == "SUBMITTED"


def test_duplicate_lock_insert_maps_to_already_submitted(db, scope, company, employee, make_entry, monkeypatch):
    make_entry(employee)
    # another request inserted the lock after our existence check
    db.add(WeekLock(company_id=company.company_id, user_id=employee.user_id, week_start_date=MONDAY, status="SUBMITTED"))
    db.commit()

    original_locks = scope.locks
    calls = {"n": 0}

    def stale_locks():
        calls["n"] += 1
        q = original_locks()
        # the first lookup in submit_week misses the row
        return q.filter(WeekLock.id.is_(None)) if calls["n"] == 1 else q

    monkeypatch.setattr(scope, "locks", stale_locks)
    with pytest.raises(AlreadySubmittedError):
        svc.submit_week(scope, employee, MONDAY)
    db.expire_all()
    assert db.query(WeekLock).count() == 1


def test_list_locks_and_pending_count(client, employee, other_employee, make_entry, employee_headers, supervisor_headers):
    make_entry(employee, hours="8")
    make_entry(employee, day=MONDAY, hours="2", billable=False)
    make_entry(other_employee)
    _submit(client, employee_headers)
    _submit(client, auth_headers(other_employee))

    res = client.get("/api/week-locks/", headers=supervisor_headers)
    assert res.status_code == 200
    locks = {lock["user_name"]: lock for lock in res.json()}
    assert set(locks) == {"Ola Nordmann", "Kari Nordmann"}
    assert locks["Ola Nordmann"]["total_hours"] == 10.0
    assert locks["Ola Nordmann"]["billable_hours"] == 8.0
    assert locks["Ola Nordmann"]["entry_count"] == 2

    mine = client.get("/api/week-locks/", headers=employee_headers).json()
    assert [lock["user_name"] for lock in mine] == ["Ola Nordmann"]

    assert client.get("/api/week-locks/pending-count", headers=supervisor_headers).json() == {"count": 2}
    assert client.get("/api/week-locks/pending-count", headers=employee_headers).status_code == 403
