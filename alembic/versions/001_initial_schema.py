"""001 – Initial schema: departments, employees, leave ledger tables and enums.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17 10:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("leave_type", ["Sick", "Vacation", "Personal", "Unpaid"]),
    ("leave_status", ["Pending", "Approved", "Rejected", "Cancelled"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL UNIQUE,
            description TEXT,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code VARCHAR(20)  NOT NULL UNIQUE,
            first_name    VARCHAR(100) NOT NULL,
            last_name     VARCHAR(100) NOT NULL,
            email         VARCHAR(255) NOT NULL UNIQUE,
            position      VARCHAR(150),
            department_id UUID REFERENCES departments(id),
            hire_date     DATE,
            is_active     BOOLEAN DEFAULT TRUE,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_department ON employees(department_id)")

    # ── 3. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id                       UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id              UUID NOT NULL REFERENCES employees(id),
            year                     INTEGER NOT NULL,
            sick_leave_total         INTEGER NOT NULL,
            sick_leave_used          INTEGER NOT NULL DEFAULT 0,
            sick_leave_remaining     INTEGER NOT NULL,
            vacation_leave_total     INTEGER NOT NULL,
            vacation_leave_used      INTEGER NOT NULL DEFAULT 0,
            vacation_leave_remaining INTEGER NOT NULL,
            personal_leave_total     INTEGER NOT NULL,
            personal_leave_used      INTEGER NOT NULL DEFAULT 0,
            personal_leave_remaining INTEGER NOT NULL,
            unpaid_leave_used        INTEGER NOT NULL DEFAULT 0,
            created_at               TIMESTAMPTZ DEFAULT NOW(),
            updated_at               TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance_emp_year UNIQUE (employee_id, year),
            CONSTRAINT ck_leave_balance_used_non_negative CHECK (
                sick_leave_used >= 0 AND vacation_leave_used >= 0
                AND personal_leave_used >= 0 AND unpaid_leave_used >= 0
            )
        )
    """)

    # ── 4. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id      UUID NOT NULL REFERENCES employees(id),
            leave_type       leave_type NOT NULL,
            start_date       DATE NOT NULL,
            end_date         DATE NOT NULL,
            days_count       INTEGER NOT NULL,
            reason           TEXT NOT NULL,
            status           leave_status NOT NULL DEFAULT 'Pending',
            approved_by      UUID REFERENCES employees(id),
            approved_at      TIMESTAMPTZ,
            rejection_reason TEXT,
            cancelled_at     TIMESTAMPTZ,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (end_date >= start_date),
            CONSTRAINT ck_leave_request_days  CHECK (days_count > 0)
        )
    """)
    op.execute("CREATE INDEX idx_leave_req_emp_dates ON leave_requests(employee_id, start_date, end_date)")
    op.execute("CREATE INDEX idx_leave_req_status    ON leave_requests(status)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "leave_requests",
        "leave_balances",
        "employees",
        "departments",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
