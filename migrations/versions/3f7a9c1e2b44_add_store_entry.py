"""add store entry table

Revision ID: 3f7a9c1e2b44
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f7a9c1e2b44"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "store_entry",
        sa.Column("key", sa.String(length=120), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("key"),
    )
    with op.batch_alter_table("store_entry", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_store_entry_updated_at"), ["updated_at"], unique=False)


def downgrade():
    with op.batch_alter_table("store_entry", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_store_entry_updated_at"))
    op.drop_table("store_entry")
