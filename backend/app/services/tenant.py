"""
Tenant-scoped data access.

Every query the application issues starts from a ``TenantScope`` so the
company filter is applied in one place. Rows belonging to another company are
indistinguishable from rows that do not exist.
"""

import uuid
import logging
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, Query

from app.exceptions import NotFoundError
from app.models.audit_log import AuditLog
from app.models.catalog import Activity, Customer, Project
from app.models.settings import CompanySettings
from app.models.timesheet import Attachment, TimeEntry, WeekLock
from app.models.user import User

logger = logging.getLogger(__name__)


class TenantScope:
    def __init__(self, db: Session, company_id: uuid.UUID):
        self.db = db
        self.company_id = company_id

    # ── queries ──

    def users(self) -> Query:
        return self.db.query(User).filter(User.company_id == self.company_id)

    def customers(self) -> Query:
        return self.db.query(Customer).filter(Customer.company_id == self.company_id)

    def projects(self) -> Query:
        return self.db.query(Project).filter(Project.company_id == self.company_id)

    def activities(self) -> Query:
        return self.db.query(Activity).filter(Activity.company_id == self.company_id)

    def entries(self) -> Query:
        return self.db.query(TimeEntry).filter(TimeEntry.company_id == self.company_id)

    def locks(self) -> Query:
        return self.db.query(WeekLock).filter(WeekLock.company_id == self.company_id)

    def attachments(self) -> Query:
        return (
            self.db.query(Attachment)
            .join(TimeEntry, Attachment.time_entry_id == TimeEntry.id)
            .filter(TimeEntry.company_id == self.company_id)
        )

    def audit(self) -> Query:
        return self.db.query(AuditLog).filter(AuditLog.company_id == self.company_id)

    def week_entries(self, user_id: uuid.UUID, start: date, end: date) -> Query:
        return self.entries().filter(
            TimeEntry.user_id == user_id,
            TimeEntry.date >= start,
            TimeEntry.date <= end,
        )

    # ── lookups ──

    def get_user_or_404(self, user_id: uuid.UUID) -> User:
        user = self.users().filter(User.user_id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def get_customer_or_404(self, customer_id: uuid.UUID) -> Customer:
        customer = self.customers().filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError("Customer not found")
        return customer

    def get_project_or_404(self, project_id: uuid.UUID) -> Project:
        project = self.projects().filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError("Project not found")
        return project

    def get_activity_or_404(self, activity_id: uuid.UUID) -> Activity:
        activity = self.activities().filter(Activity.id == activity_id).first()
        if not activity:
            raise NotFoundError("Activity not found")
        return activity

    def get_entry_or_404(self, entry_id: uuid.UUID) -> TimeEntry:
        entry = self.entries().filter(TimeEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Time entry not found")
        return entry

    def get_lock_or_404(self, lock_id: uuid.UUID) -> WeekLock:
        lock = self.locks().filter(WeekLock.id == lock_id).first()
        if not lock:
            raise NotFoundError("Week lock not found")
        return lock

    def settings(self) -> CompanySettings:
        """Company settings, created with defaults on first access."""
        row = self.db.get(CompanySettings, self.company_id)
        if row is not None:
            return row
        row = CompanySettings(
            company_id=self.company_id,
            csv_delimiter=";",
            vat_rate=25,
            privileged_edit_locked_weeks=True,
            allow_self_review=False,
        )
        try:
            # savepoint so losing the race keeps the caller's pending work
            with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError:
            logger.info("Settings for company %s created concurrently, re-reading", self.company_id)
            row = (
                self.db.query(CompanySettings)
                .filter(CompanySettings.company_id == self.company_id)
                .populate_existing()
                .one()
            )
        return row
