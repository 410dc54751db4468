import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Numeric, ForeignKey, Uuid
from sqlalchemy.sql import func

from app.database import Base


# ---------------------------------------------------
# Roles
# ---------------------------------------------------

ROLE_EMPLOYEE = "employee"
ROLE_SUPERVISOR = "supervisor"
ROLE_ADMIN = "admin"

REVIEWER_ROLES = (ROLE_SUPERVISOR, ROLE_ADMIN)

USER_ROLE_ENUM = String(20)  # keep String to avoid enum migration issues


# ---------------------------------------------------
# Company (tenant)
# ---------------------------------------------------

class Company(Base):
    __tablename__ = "companies"

    company_id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    name = Column(String(200), nullable=False)
    company_code = Column(String(50), nullable=False, unique=True, index=True)
    org_number = Column(String(50), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


# ---------------------------------------------------
# User
# ---------------------------------------------------

class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    company_id = Column(
        Uuid,
        ForeignKey("companies.company_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(USER_ROLE_ENUM, nullable=False, default=ROLE_EMPLOYEE)

    # internal cost per hour, used on the salary export
    hourly_cost = Column(Numeric(10, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES
