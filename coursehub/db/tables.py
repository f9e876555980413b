"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in coursehub/models/.
Repos convert between rows and dataclasses; nothing outside coursehub/repos
touches these classes.

Course enrollment count and rating aggregate have no columns here; they
are computed from enrollments when read.  enrollments.percentage is a
projection of lesson_completions, written only in the same transaction
that inserts a completion.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Identity,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from coursehub.db.engine import Base

# --- Catalog ---


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(128), nullable=False)
    difficulty: Mapped[str] = mapped_column(
        String(32), nullable=False, default="beginner"
    )  # beginner|intermediate|advanced
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="draft"
    )  # draft|published|archived
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    duration_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    instructor_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    instructor_name: Mapped[str] = mapped_column(
        String(255), nullable=False, default=""
    )
    tags: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=[])
    prerequisites: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, default=[]
    )
    outcomes: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False, default=[])
    published_at: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_courses_price_non_negative"),
        Index("ix_courses_status_category", "status", "category"),
    )


class LessonRow(Base):
    __tablename__ = "lessons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # [{"title": ..., "url": ..., "type": ...}, ...] in display order
    resources: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=[])


# --- Enrollment & progress ---


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False
    )
    enrolled_at: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="enrolled"
    )  # enrolled|in_progress|completed|dropped
    percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    completed_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    certificate_issued: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    rating_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_review: Mapped[str | None] = mapped_column(Text, nullable=True)
    rated_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True
    )
    # Insertion order.  enrolled_at has one-second resolution, so this
    # breaks ties between enrollments made in the same second.
    seq: Mapped[int] = mapped_column(BigInteger, Identity(), nullable=False)

    __table_args__ = (
        # At most one non-dropped enrollment per (student, course).  Two
        # API instances racing on the same enroll both reach INSERT; the
        # index makes the second one fail.
        Index(
            "uq_enrollments_active_student_course",
            "student_id",
            "course_id",
            unique=True,
            postgresql_where=text("status <> 'dropped'"),
        ),
        Index(
            "ix_enrollments_student_enrolled_at",
            "student_id",
            "enrolled_at",
            "seq",
        ),
        CheckConstraint(
            "percentage >= 0 AND percentage <= 100",
            name="ck_enrollments_percentage_range",
        ),
        CheckConstraint(
            "rating_score IS NULL OR (rating_score BETWEEN 1 AND 5)",
            name="ck_enrollments_rating_score",
        ),
    )


class LessonCompletionRow(Base):
    __tablename__ = "lesson_completions"

    # Composite key makes completing the same lesson twice impossible.
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("enrollments.id"), primary_key=True
    )
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lessons.id"), primary_key=True
    )
    completed_at: Mapped[int] = mapped_column(Integer, nullable=False)
