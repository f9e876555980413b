"""add seq to enrollments

Revision ID: 8c4e2a91d6f3
Revises: 3b1f9c2d7a40
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8c4e2a91d6f3"
down_revision: str | Sequence[str] | None = "3b1f9c2d7a40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column(
        "enrollments",
        sa.Column("seq", sa.BigInteger(), sa.Identity(), nullable=False),
    )
    op.drop_index("ix_enrollments_student_enrolled_at", table_name="enrollments")
    op.create_index(
        "ix_enrollments_student_enrolled_at",
        "enrollments",
        ["student_id", "enrolled_at", "seq"],
    )


def downgrade() -> None:
    op.drop_index("ix_enrollments_student_enrolled_at", table_name="enrollments")
    op.create_index(
        "ix_enrollments_student_enrolled_at",
        "enrollments",
        ["student_id", "enrolled_at"],
    )
    op.drop_column("enrollments", "seq")
