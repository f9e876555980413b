"""create coursehub schema

Revision ID: 3b1f9c2d7a40
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1f9c2d7a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=128), nullable=False),
        sa.Column(
            "difficulty", sa.String(length=32), nullable=False, server_default="beginner"
        ),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column(
            "price", sa.Numeric(precision=10, scale=2), nullable=False, server_default="0"
        ),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("duration_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("instructor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "instructor_name", sa.String(length=255), nullable=False, server_default=""
        ),
        sa.Column(
            "tags",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "prerequisites",
            postgresql.ARRAY(sa.Text()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "outcomes", postgresql.ARRAY(sa.Text()), nullable=False, server_default="{}"
        ),
        sa.Column("published_at", sa.Integer(), nullable=True),
        sa.CheckConstraint("price >= 0", name="ck_courses_price_non_negative"),
    )
    op.create_index("ix_courses_status_category", "courses", ["status", "category"])

    op.create_table(
        "lessons",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "resources",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
    )
    op.create_index("ix_lessons_course_id", "lessons", ["course_id"])

    op.create_table(
        "enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="enrolled"
        ),
        sa.Column("percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column(
            "certificate_issued",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("rating_score", sa.Integer(), nullable=True),
        sa.Column("rating_review", sa.Text(), nullable=True),
        sa.Column("rated_at", sa.Integer(), nullable=True),
        sa.Column("transaction_id", sa.String(length=64), nullable=True, unique=True),
        sa.CheckConstraint(
            "percentage >= 0 AND percentage <= 100",
            name="ck_enrollments_percentage_range",
        ),
        sa.CheckConstraint(
            "rating_score IS NULL OR (rating_score BETWEEN 1 AND 5)",
            name="ck_enrollments_rating_score",
        ),
    )
    op.create_index(
        "uq_enrollments_active_student_course",
        "enrollments",
        ["student_id", "course_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'dropped'"),
    )
    op.create_index(
        "ix_enrollments_student_enrolled_at",
        "enrollments",
        ["student_id", "enrolled_at"],
    )

    op.create_table(
        "lesson_completions",
        sa.Column(
            "enrollment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("enrollments.id"),
            primary_key=True,
        ),
        sa.Column(
            "lesson_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lessons.id"),
            primary_key=True,
        ),
        sa.Column("completed_at", sa.Integer(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("lesson_completions")
    op.drop_index("ix_enrollments_student_enrolled_at", table_name="enrollments")
    op.drop_index("uq_enrollments_active_student_course", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_index("ix_lessons_course_id", table_name="lessons")
    op.drop_table("lessons")
    op.drop_index("ix_courses_status_category", table_name="courses")
    op.drop_table("courses")
