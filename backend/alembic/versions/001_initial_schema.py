"""Initial schema: tenants, users, catalog, time entries and week locks

Revision ID: 001
Revises:
Create Date: 2026-03-02

Creates every table the API needs. UUID primary keys are generated in the
application; the database default is only a fallback for manual inserts.
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Tenants and users ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS companies (
            company_id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(200) NOT NULL,
            company_code VARCHAR(50) NOT NULL UNIQUE,
            org_number VARCHAR(50),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS ix_companies_company_code ON companies (company_code)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            user_id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(company_id) ON DELETE CASCADE,
            email VARCHAR(255) NOT NULL UNIQUE,
            password_hash VARCHAR(255) NOT NULL,
            name VARCHAR(200) NOT NULL,
            role VARCHAR(20) NOT NULL DEFAULT 'employee',
            hourly_cost NUMERIC(10,2),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS ix_users_email ON users (email)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_users_company_id ON users (company_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS company_settings (
            company_id UUID PRIMARY KEY REFERENCES companies(company_id) ON DELETE CASCADE,
            csv_delimiter VARCHAR(1) NOT NULL DEFAULT ';',
            vat_rate NUMERIC(5,2) NOT NULL DEFAULT 25,
            privileged_edit_locked_weeks BOOLEAN NOT NULL DEFAULT TRUE,
            allow_self_review BOOLEAN NOT NULL DEFAULT FALSE,
            updated_at TIMESTAMPTZ DEFAULT now()
        )
    """)

    # ── Catalog ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS customers (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(company_id) ON DELETE CASCADE,
            name VARCHAR(200) NOT NULL,
            org_number VARCHAR(50),
            contact_email VARCHAR(255),
            default_rate NUMERIC(10,2),
            active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_customers_company_id ON customers (company_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS projects (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(company_id) ON DELETE CASCADE,
            customer_id UUID REFERENCES customers(id) ON DELETE SET NULL,
            code VARCHAR(50) NOT NULL,
            name VARCHAR(200) NOT NULL,
            description TEXT,
            default_rate NUMERIC(10,2),
            budget_hours NUMERIC(10,2),
            active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now(),
            CONSTRAINT uq_projects_company_code UNIQUE (company_id, code)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_projects_company_id ON projects (company_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_projects_customer_id ON projects (customer_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS activities (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(company_id) ON DELETE CASCADE,
            code VARCHAR(50) NOT NULL,
            name VARCHAR(200) NOT NULL,
            category VARCHAR(30) NOT NULL DEFAULT 'WORK',
            billable_default BOOLEAN NOT NULL DEFAULT TRUE,
            rate_override NUMERIC(10,2),
            sort_order INTEGER NOT NULL DEFAULT 0,
            active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now(),
            CONSTRAINT uq_activities_company_code UNIQUE (company_id, code)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_activities_company_id ON activities (company_id)")

    # ── Time entries, attachments, week locks ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS time_entries (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(company_id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
            project_id UUID REFERENCES projects(id) ON DELETE SET NULL,
            activity_id UUID NOT NULL REFERENCES activities(id),
            date DATE NOT NULL,
            start_time VARCHAR(5),
            end_time VARCHAR(5),
            hours NUMERIC(5,2) NOT NULL,
            billable BOOLEAN NOT NULL DEFAULT TRUE,
            note TEXT,
            gps_lat DOUBLE PRECISION,
            gps_lng DOUBLE PRECISION,
            status VARCHAR(20) NOT NULL DEFAULT 'DRAFT',
            submitted_at TIMESTAMPTZ,
            approved_at TIMESTAMPTZ,
            approver_id UUID REFERENCES users(user_id) ON DELETE SET NULL,
            reject_note TEXT,
            client_ref VARCHAR(100),
            created_at TIMESTAMPTZ DEFAULT now(),
            updated_at TIMESTAMPTZ DEFAULT now(),
            CONSTRAINT ck_time_entries_hours CHECK (hours >= 0 AND hours <= 24),
            CONSTRAINT uq_time_entries_user_client_ref UNIQUE (user_id, client_ref)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_time_entries_user_date ON time_entries (user_id, date)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_time_entries_company_status ON time_entries (company_id, status)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS attachments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            time_entry_id UUID NOT NULL REFERENCES time_entries(id) ON DELETE CASCADE,
            storage_key VARCHAR(1000) NOT NULL,
            original_name VARCHAR(500) NOT NULL,
            mime_type VARCHAR(200) NOT NULL,
            size INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_attachments_time_entry_id ON attachments (time_entry_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS week_locks (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(company_id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
            week_start_date DATE NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'SUBMITTED',
            comment TEXT,
            submitted_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            reviewed_at TIMESTAMPTZ,
            reviewer_id UUID REFERENCES users(user_id) ON DELETE SET NULL,
            CONSTRAINT uq_week_locks_user_week UNIQUE (user_id, week_start_date)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_week_locks_company_id ON week_locks (company_id)")

    # ── Audit ──
    op.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL,
            user_id UUID,
            action VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id VARCHAR(255),
            old_value JSONB,
            new_value JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_log_company_id ON audit_log (company_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_log_user_id ON audit_log (user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_log_entity ON audit_log (entity_type, entity_id)")


def downgrade() -> None:
    for table in [
        "audit_log", "week_locks", "attachments", "time_entries",
        "activities", "projects", "customers", "company_settings", "users", "companies",
    ]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
