"""001 – Initial schema: accounts, org structure, requests, ledger, inbox.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000+00:00
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
    ("user_role", ["employee", "manager", "hr_admin", "system_admin"]),
    ("department_role", ["member", "deputy", "head"]),
    ("request_status", ["pending", "approved", "rejected"]),
    ("request_kind", ["leave", "expense"]),
    ("leave_type", ["annual", "casual", "sick"]),
    (
        "expense_category",
        ["travel", "meals", "supplies", "equipment", "training", "other"],
    ),
    (
        "notification_type",
        [
            "leave_request",
            "expense_request",
            "leave_approved",
            "leave_rejected",
            "expense_approved",
            "expense_rejected",
        ],
    ),
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

    # ── 1. accounts ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE accounts (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            email        VARCHAR(255) NOT NULL UNIQUE,
            display_name VARCHAR(200),
            role         user_role NOT NULL DEFAULT 'employee',
            is_active    BOOLEAN DEFAULT TRUE,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE UNIQUE INDEX idx_accounts_email_lower ON accounts(LOWER(email))")

    # ── 2. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            account_id  UUID NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            token_hash  VARCHAR(512) NOT NULL,
            expires_at  TIMESTAMPTZ NOT NULL,
            is_revoked  BOOLEAN DEFAULT FALSE,
            ip_address  INET,
            user_agent  TEXT,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_user_sessions_account ON user_sessions(account_id)")
    op.execute("CREATE INDEX idx_user_sessions_token   ON user_sessions(token_hash)")

    # ── 3. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name              VARCHAR(150) NOT NULL UNIQUE,
            code              VARCHAR(20) UNIQUE,
            description       TEXT,
            manager_id        UUID,  -- FK added after employees table
            deputy_manager_id UUID,  -- FK added after employees table
            is_active         BOOLEAN DEFAULT TRUE,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_dept_head_not_deputy CHECK (
                manager_id IS NULL OR deputy_manager_id IS NULL
                OR manager_id <> deputy_manager_id
            )
        )
    """)

    # ── 4. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code   VARCHAR(20)  NOT NULL UNIQUE,
            first_name      VARCHAR(100) NOT NULL,
            last_name       VARCHAR(100) NOT NULL,
            email           VARCHAR(255) NOT NULL UNIQUE,
            job_title       VARCHAR(200),
            department_id   UUID REFERENCES departments(id),
            department_role department_role NOT NULL DEFAULT 'member',
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_department ON employees(department_id)")
    op.execute("CREATE INDEX idx_employees_email_lower ON employees(LOWER(email))")

    # Deferred FKs: departments.manager_id / deputy_manager_id → employees.id
    op.execute("""
        ALTER TABLE departments
            ADD CONSTRAINT fk_dept_manager
            FOREIGN KEY (manager_id) REFERENCES employees(id)
    """)
    op.execute("""
        ALTER TABLE departments
            ADD CONSTRAINT fk_dept_deputy
            FOREIGN KEY (deputy_manager_id) REFERENCES employees(id)
    """)
    op.execute("CREATE INDEX idx_departments_manager ON departments(manager_id)")

    # ── 5. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id),
            leave_type  leave_type NOT NULL,
            year        INTEGER NOT NULL,
            allowance   NUMERIC(6,1) NOT NULL DEFAULT 0,
            remaining   NUMERIC(6,1) NOT NULL DEFAULT 0,
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, leave_type, year)
        )
    """)

    # ── 6. leave_requests / expense_requests ──────────────────────────────
    approval_columns = """
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id   UUID NOT NULL REFERENCES employees(id),
            department_id UUID NOT NULL REFERENCES departments(id),
            submitted_by  UUID REFERENCES accounts(id),
            status        request_status NOT NULL DEFAULT 'pending',
            approver_note TEXT,
            approved_by   UUID REFERENCES accounts(id),
            approved_at   TIMESTAMPTZ,
            status_text   VARCHAR(255),
            notified      BOOLEAN DEFAULT FALSE,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW(),
    """
    op.execute(f"""
        CREATE TABLE leave_requests (
            {approval_columns}
            leave_type              leave_type NOT NULL,
            start_date              DATE NOT NULL,
            end_date                DATE NOT NULL,
            total_days              INTEGER NOT NULL,
            reason                  TEXT,
            medical_certificate_url VARCHAR(500),
            CONSTRAINT ck_leave_dates CHECK (end_date >= start_date)
        )
    """)
    op.execute(f"""
        CREATE TABLE expense_requests (
            {approval_columns}
            category    expense_category NOT NULL,
            amount      NUMERIC(12,2) NOT NULL,
            currency    VARCHAR(3) NOT NULL,
            description TEXT NOT NULL,
            receipt_url VARCHAR(500),
            CONSTRAINT ck_expense_amount_positive CHECK (amount > 0)
        )
    """)
    for table in ("leave_requests", "expense_requests"):
        op.execute(f"CREATE INDEX ix_{table}_employee_id   ON {table}(employee_id)")
        op.execute(f"CREATE INDEX ix_{table}_department_id ON {table}(department_id)")
        op.execute(f"CREATE INDEX idx_{table}_created      ON {table}(created_at DESC)")

    # ── 7. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id      UUID NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            type         notification_type NOT NULL,
            title        VARCHAR(200) NOT NULL,
            message      TEXT NOT NULL,
            is_read      BOOLEAN DEFAULT FALSE,
            request_type request_kind,
            request_id   UUID,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_user_created ON notifications(user_id, created_at)"
    )

    # ── 8. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES accounts(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id   ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity     ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    tables = [
        "audit_trail",
        "notifications",
        "expense_requests",
        "leave_requests",
        "leave_balances",
        "user_sessions",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop deferred FKs before dropping employees / departments
    op.execute("ALTER TABLE departments DROP CONSTRAINT IF EXISTS fk_dept_manager")
    op.execute("ALTER TABLE departments DROP CONSTRAINT IF EXISTS fk_dept_deputy")
    op.execute("DROP TABLE IF EXISTS employees CASCADE")
    op.execute("DROP TABLE IF EXISTS departments CASCADE")
    op.execute("DROP TABLE IF EXISTS accounts CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
