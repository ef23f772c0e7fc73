"""Create the rate_records ledger table.

Revision ID: 0001
Revises:
Create Date: 2025-06-02
"""

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        rate_type, ts_type = "NUMERIC(15, 6)", "TIMESTAMPTZ"
        id_type = 'TEXT COLLATE "C"'
    else:
        rate_type, ts_type, id_type = "TEXT", "TEXT", "TEXT"

    op.execute(
        f"""
        CREATE TABLE rate_records (
            id {id_type} PRIMARY KEY,
            from_currency VARCHAR(10) NOT NULL,
            to_currency VARCHAR(10) NOT NULL,
            rate {rate_type} NOT NULL CHECK (CAST(rate AS REAL) > 0),
            updated_by TEXT,
            created_at {ts_type} NOT NULL,
            updated_at {ts_type} NOT NULL,
            CHECK (from_currency <> to_currency)
        )
        """
    )


def downgrade() -> None:
    op.execute("DROP TABLE rate_records")
