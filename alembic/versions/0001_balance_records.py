"""balance records, one per calendar day

Revision ID: 0001_balance_records
Revises:
Create Date: 2026-01-13 00:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_balance_records"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "balance_records",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("record_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        # Day-uniqueness: the insert and the check are one atomic statement
        sa.UniqueConstraint("record_date", name="uq_balance_records_record_date"),
    )


def downgrade() -> None:
    op.drop_table("balance_records")
