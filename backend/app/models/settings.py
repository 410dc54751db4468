from sqlalchemy import Column, String, Boolean, DateTime, Numeric, ForeignKey, Uuid
from sqlalchemy.sql import func

from app.database import Base


class CompanySettings(Base):
    """Per-company export and approval policy."""

    __tablename__ = "company_settings"

    company_id = Column(Uuid, ForeignKey("companies.company_id", ondelete="CASCADE"), primary_key=True)
    csv_delimiter = Column(String(1), nullable=False, default=";")
    vat_rate = Column(Numeric(5, 2), nullable=False, default=25)

    # Supervisors/admins may correct entries inside a submitted or approved
    # week without unlocking it first.
    privileged_edit_locked_weeks = Column(Boolean, nullable=False, default=True)
    # Reviewers may approve or reject their own week.
    allow_self_review = Column(Boolean, nullable=False, default=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
