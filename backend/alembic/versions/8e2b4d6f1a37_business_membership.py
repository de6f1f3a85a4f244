"""business membership

Revision ID: 8e2b4d6f1a37
Revises: 3c1f9a7d2b10
Create Date: 2026-10-19 09:12:30.481205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8e2b4d6f1a37"
down_revision: Union[str, Sequence[str], None] = "3c1f9a7d2b10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("businesses") as batch_op:
        batch_op.add_column(sa.Column("description", sa.String(), nullable=True))
        batch_op.add_column(
            sa.Column("business_type", sa.String(), nullable=False, server_default="grocery")
        )

    op.create_table(
        "business_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="viewer"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("business_id", "user_id", name="uq_business_members_business_user"),
    )
    op.create_index(op.f("ix_business_members_id"), "business_members", ["id"], unique=False)
    op.create_index(op.f("ix_business_members_business_id"), "business_members", ["business_id"], unique=False)
    op.create_index(op.f("ix_business_members_user_id"), "business_members", ["user_id"], unique=False)

    # existing users get a membership in the business they already belong to
    op.execute(
        "INSERT INTO business_members (business_id, user_id, role) "
        "SELECT business_id, id, role FROM users WHERE business_id IS NOT NULL"
    )


def downgrade() -> None:
    op.drop_table("business_members")
    with op.batch_alter_table("businesses") as batch_op:
        batch_op.drop_column("business_type")
        batch_op.drop_column("description")
