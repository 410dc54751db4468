import uuid

from sqlalchemy import (
    Column, String, Text, Boolean, DateTime, Date, Integer, Numeric, Float, ForeignKey,
    CheckConstraint, Index, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


# Entry status
STATUS_DRAFT = "DRAFT"
STATUS_SUBMITTED = "SUBMITTED"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"

ENTRY_STATUSES = (STATUS_DRAFT, STATUS_SUBMITTED, STATUS_APPROVED, STATUS_REJECTED)

# Week lock status. A missing row means the week is unlocked.
LOCK_SUBMITTED = "SUBMITTED"
LOCK_APPROVED = "APPROVED"
LOCK_REJECTED = "REJECTED"

LOCK_STATUSES = (LOCK_SUBMITTED, LOCK_APPROVED, LOCK_REJECTED)


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey("companies.company_id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    activity_id = Column(Uuid, ForeignKey("activities.id"), nullable=False)

    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    hours = Column(Numeric(5, 2), nullable=False)
    billable = Column(Boolean, nullable=False, default=True)
    note = Column(Text, nullable=True)
    gps_lat = Column(Float, nullable=True)
    gps_lng = Column(Float, nullable=True)

    status = Column(String(20), nullable=False, default=STATUS_DRAFT)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approver_id = Column(Uuid, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    reject_note = Column(Text, nullable=True)

    # correlation id assigned by an offline client, used to make replays idempotent
    client_ref = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    project = relationship("Project")
    activity = relationship("Activity")
    attachments = relationship("Attachment", back_populates="time_entry")

    __table_args__ = (
        CheckConstraint("hours >= 0 AND hours <= 24", name="ck_time_entries_hours"),
        UniqueConstraint("user_id", "client_ref", name="uq_time_entries_user_client_ref"),
        Index("ix_time_entries_user_date", "user_id", "date"),
        Index("ix_time_entries_company_status", "company_id", "status"),
    )


class WeekLock(Base):
    __tablename__ = "week_locks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey("companies.company_id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    week_start_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=LOCK_SUBMITTED)
    comment = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewer_id = Column(Uuid, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "week_start_date", name="uq_week_locks_user_week"),
    )


class Attachment(Base):
    __tablename__ = "attachments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    time_entry_id = Column(Uuid, ForeignKey("time_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    storage_key = Column(String(1000), nullable=False)
    original_name = Column(String(500), nullable=False)
    mime_type = Column(String(200), nullable=False)
    size = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    time_entry = relationship("TimeEntry", back_populates="attachments")
