from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID, uuid4

COURSE_STATUSES = ("draft", "published", "archived")
DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")
RESOURCE_TYPES = ("pdf", "video", "article", "quiz", "assignment")


@dataclass(frozen=True, slots=True)
class Resource:
    title: str
    url: str
    type: str  # pdf|video|article|quiz|assignment


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    course_id: UUID
    order: int
    title: str
    content: str = ""
    video_url: str | None = None
    duration_minutes: int = 0
    resources: tuple[Resource, ...] = ()

    @staticmethod
    def new(
        *,
        course_id: UUID,
        order: int,
        title: str,
        content: str = "",
        video_url: str | None = None,
        duration_minutes: int = 0,
        resources: tuple[Resource, ...] = (),
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            course_id=course_id,
            order=order,
            title=title,
            content=content,
            video_url=video_url,
            duration_minutes=duration_minutes,
            resources=resources,
        )


@dataclass(frozen=True, slots=True)
class InstructorSummary:
    id: UUID
    name: str


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    description: str
    category: str
    instructor: InstructorSummary
    difficulty: str = "beginner"  # beginner|intermediate|advanced
    status: str = "draft"  # draft|published|archived
    price: Decimal = Decimal("0")
    currency: str = "USD"
    duration_hours: float = 0
    lessons: tuple[Lesson, ...] = ()
    tags: frozenset[str] = field(default_factory=frozenset)
    prerequisites: tuple[str, ...] = ()
    outcomes: tuple[str, ...] = ()
    published_at: int | None = None

    @staticmethod
    def new(
        *,
        title: str,
        description: str,
        category: str,
        instructor: InstructorSummary,
        difficulty: str = "beginner",
        price: Decimal = Decimal("0"),
        currency: str = "USD",
        duration_hours: float = 0,
        tags: frozenset[str] = frozenset(),
        prerequisites: tuple[str, ...] = (),
        outcomes: tuple[str, ...] = (),
    ) -> Course:
        # Every course starts life as a draft; publishing is a separate step.
        return Course(
            id=uuid4(),
            title=title,
            description=description,
            category=category,
            instructor=instructor,
            difficulty=difficulty,
            price=price,
            currency=currency,
            duration_hours=duration_hours,
            tags=tags,
            prerequisites=prerequisites,
            outcomes=outcomes,
        )

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def is_published(self) -> bool:
        return self.status == "published"

    def lesson(self, lesson_id: UUID) -> Lesson | None:
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        return None

    def lesson_ids(self) -> frozenset[UUID]:
        return frozenset(lesson.id for lesson in self.lessons)


@dataclass(frozen=True, slots=True)
class RatingSummary:
    average: float = 0.0
    count: int = 0


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """Course plus the figures derived from the enrollment store.

    enrollment_count and rating are computed at read time, so they can
    never drift from the enrollment records they summarize.
    """

    course: Course
    enrollment_count: int = 0
    rating: RatingSummary = RatingSummary()
