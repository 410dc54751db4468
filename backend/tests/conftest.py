import os
import tempfile
from datetime import date
from decimal import Decimal

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_BACKEND"] = "local"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="crewhours-uploads-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from main import app
from app.database import Base, SessionLocal, engine, get_db
from app.models.catalog import Activity, Customer, Project
from app.models.timesheet import TimeEntry
from app.models.user import Company, User, ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_SUPERVISOR
from app.services import file_storage
from app.services.auth import create_access_token, get_password_hash
from app.services.tenant import TenantScope

# Monday 2024-03-04 .. Sunday 2024-03-10
MONDAY = date(2024, 3, 4)
WEDNESDAY = date(2024, 3, 6)
SUNDAY = date(2024, 3, 10)
NEXT_MONDAY = date(2024, 3, 11)

PASSWORD = "correct-horse-1"


@pytest.fixture
def db() -> Session:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


# Requests share the test's session so fixtures and assertions see the same data
@pytest.fixture
def client(db: Session) -> TestClient:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(file_storage, "UPLOAD_DIR", tmp_path)
    return tmp_path


def _company(db: Session, name: str, code: str) -> Company:
    company = Company(name=name, company_code=code)
    db.add(company)
    db.commit()
    return company


def _user(db: Session, company: Company, email: str, name: str, role: str) -> User:
    user = User(
        company_id=company.company_id,
        email=email,
        password_hash=get_password_hash(PASSWORD),
        name=name,
        role=role,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def company(db):
    return _company(db, "Bygg AS", "bygg")


@pytest.fixture
def other_company(db):
    return _company(db, "Rør AS", "ror")


@pytest.fixture
def employee(db, company):
    return _user(db, company, "ola@bygg.no", "Ola Nordmann", ROLE_EMPLOYEE)


@pytest.fixture
def other_employee(db, company):
    return _user(db, company, "kari@bygg.no", "Kari Nordmann", ROLE_EMPLOYEE)


@pytest.fixture
def supervisor(db, company):
    return _user(db, company, "sjef@bygg.no", "Siri Sjef", ROLE_SUPERVISOR)


@pytest.fixture
def admin(db, company):
    return _user(db, company, "admin@bygg.no", "Arne Admin", ROLE_ADMIN)


@pytest.fixture
def outsider(db, other_company):
    return _user(db, other_company, "per@ror.no", "Per Rørlegger", ROLE_SUPERVISOR)


@pytest.fixture
def activity(db, company):
    act = Activity(company_id=company.company_id, code="MONT", name="Montage", billable_default=True)
    db.add(act)
    db.commit()
    return act


@pytest.fixture
def internal_activity(db, company):
    act = Activity(
        company_id=company.company_id, code="INT", name="Internal meeting",
        category="INTERNAL", billable_default=False,
    )
    db.add(act)
    db.commit()
    return act


@pytest.fixture
def customer(db, company):
    cust = Customer(company_id=company.company_id, name="Kunde AS", default_rate=Decimal("650"))
    db.add(cust)
    db.commit()
    return cust


@pytest.fixture
def project(db, company, customer):
    proj = Project(
        company_id=company.company_id, customer_id=customer.id,
        code="P-100", name="Nybygg Storgata", default_rate=Decimal("800"),
    )
    db.add(proj)
    db.commit()
    return proj


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.user_id)}"}


@pytest.fixture
def employee_headers(employee):
    return auth_headers(employee)


@pytest.fixture
def supervisor_headers(supervisor):
    return auth_headers(supervisor)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def scope(db, company):
    return TenantScope(db, company.company_id)


@pytest.fixture
def make_entry(db, company, activity):
    """Insert a time entry directly, bypassing the lock checks."""

    def _make(user: User, day: date = WEDNESDAY, hours: str = "7.5", **kwargs) -> TimeEntry:
        values = {
            "company_id": company.company_id,
            "user_id": user.user_id,
            "activity_id": activity.id,
            "date": day,
            "hours": Decimal(hours),
            "billable": True,
            "status": "DRAFT",
        }
        values.update(kwargs)
        entry = TimeEntry(**values)
        db.add(entry)
        db.commit()
        return entry

    return _make
