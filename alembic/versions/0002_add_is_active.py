"""Add is_active, backfill it by recency, and guard record immutability.

The newest record of each pair (updated_at, then created_at, then id,
all descending) becomes the active one; every other record is inactive.

Revision ID: 0002
Revises: 0001
Create Date: 2025-06-09
"""

from alembic import op

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

RECENCY_ORDER = "updated_at DESC, created_at DESC, id DESC"

_SQLITE_BACKFILL = f"""
    UPDATE rate_records
    SET is_active = CASE WHEN id = (
        SELECT newest.id FROM rate_records AS newest
        WHERE newest.from_currency = rate_records.from_currency
          AND newest.to_currency = rate_records.to_currency
        ORDER BY {RECENCY_ORDER}
        LIMIT 1
    ) THEN 1 ELSE 0 END
"""

_POSTGRES_BACKFILL = f"""
    WITH ranked AS (
        SELECT id, ROW_NUMBER() OVER (
            PARTITION BY from_currency, to_currency
            ORDER BY {RECENCY_ORDER}
        ) AS rn
        FROM rate_records
    )
    UPDATE rate_records AS r
    SET is_active = (ranked.rn = 1)
    FROM ranked
    WHERE ranked.id = r.id
"""

_SQLITE_TRIGGERS = [
    """
    CREATE TRIGGER trg_rate_records_immutable
    BEFORE UPDATE OF id, from_currency, to_currency, rate, created_at ON rate_records
    BEGIN
        SELECT RAISE(ABORT, 'rate records only allow is_active and updated_at to change');
    END
    """,
    """
    CREATE TRIGGER trg_rate_records_append_only
    BEFORE DELETE ON rate_records
    BEGIN
        SELECT RAISE(ABORT, 'rate records are append-only');
    END
    """,
]

_POSTGRES_GUARD = """
    CREATE OR REPLACE FUNCTION rate_records_guard() RETURNS trigger AS $$
    BEGIN
        IF TG_OP = 'DELETE' THEN
            RAISE EXCEPTION 'rate records are append-only'
                USING ERRCODE = 'integrity_constraint_violation';
        END IF;
        IF NEW.id <> OLD.id
           OR NEW.from_currency <> OLD.from_currency
           OR NEW.to_currency <> OLD.to_currency
           OR NEW.rate <> OLD.rate
           OR NEW.created_at <> OLD.created_at THEN
            RAISE EXCEPTION 'rate records only allow is_active and updated_at to change'
                USING ERRCODE = 'integrity_constraint_violation';
        END IF;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
"""


def upgrade() -> None:
    postgres = op.get_bind().dialect.name == "postgresql"

    if postgres:
        op.execute(
            "ALTER TABLE rate_records ADD COLUMN is_active BOOLEAN NOT NULL DEFAULT FALSE"
        )
        op.execute(
            "COMMENT ON COLUMN rate_records.is_active "
            "IS 'True marks the current rate of its currency pair'"
        )
    else:
        op.execute(
            "ALTER TABLE rate_records ADD COLUMN is_active INTEGER NOT NULL DEFAULT 0"
        )

    op.execute(
        "CREATE INDEX idx_rate_records_active "
        "ON rate_records (from_currency, to_currency, is_active, updated_at)"
    )
    op.execute(_POSTGRES_BACKFILL if postgres else _SQLITE_BACKFILL)

    if postgres:
        op.execute(_POSTGRES_GUARD)
        op.execute(
            "CREATE TRIGGER trg_rate_records_guard "
            "BEFORE UPDATE OR DELETE ON rate_records "
            "FOR EACH ROW EXECUTE FUNCTION rate_records_guard()"
        )
    else:
        for statement in _SQLITE_TRIGGERS:
            op.execute(statement)


def downgrade() -> None:
    postgres = op.get_bind().dialect.name == "postgresql"

    if postgres:
        op.execute("DROP TRIGGER IF EXISTS trg_rate_records_guard ON rate_records")
        op.execute("DROP FUNCTION IF EXISTS rate_records_guard()")
    else:
        op.execute("DROP TRIGGER IF EXISTS trg_rate_records_immutable")
        op.execute("DROP TRIGGER IF EXISTS trg_rate_records_append_only")

    op.execute("DROP INDEX IF EXISTS idx_rate_records_active")
    with op.batch_alter_table("rate_records") as batch_op:
        batch_op.drop_column("is_active")
