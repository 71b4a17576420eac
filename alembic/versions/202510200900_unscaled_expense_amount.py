"""store expense amounts unscaled

Revision ID: 202510200900
Revises: 202510190900
Create Date: 2025-10-20 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202510200900"
down_revision = "202510190900"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("expenses") as batch_op:
        batch_op.alter_column(
            "amount",
            existing_type=sa.Numeric(14, 2),
            type_=sa.Numeric(),
            existing_nullable=False,
        )


def downgrade():
    with op.batch_alter_table("expenses") as batch_op:
        batch_op.alter_column(
            "amount",
            existing_type=sa.Numeric(),
            type_=sa.Numeric(14, 2),
            existing_nullable=False,
        )
