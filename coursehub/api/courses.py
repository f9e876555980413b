"""Course catalog, course management and enrollment endpoints.

Enrollment sequence:
  Client -> POST /v1/courses/{course_id}/enroll {transaction_id?}
  -> claim the receipt (atomic read-and-remove)
  -> EnrollmentService.enroll (404 / 412 / 409 / 402)
  -> 201 Enrolled

A receipt is claimed before the enrollment is created, so two enrolls
presenting the same transaction ID cannot both be paid by it.  If the
enroll is rejected (e.g. course unpublished in the meantime) the receipt
is written back and stays usable until its TTL runs out.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from coursehub.api.dependencies import (
    get_catalog_service,
    get_course_admin_service,
    get_enrollment_service,
    get_receipt_ledger,
    optional_user,
    require_any_role,
    require_user,
)
from coursehub.api.enrollments import EnrollmentOut, enrollment_out
from coursehub.core.config import SETTINGS
from coursehub.models.course import CatalogEntry, Lesson, Resource
from coursehub.models.principal import Principal
from coursehub.services.catalog_service import CatalogService, CourseFilter
from coursehub.services.course_admin_service import CourseAdminService
from coursehub.services.enrollment_service import EnrollmentService
from coursehub.services.errors import (
    AuthorizationError,
    LessonNotInCourseError,
    NotFoundError,
)
from coursehub.services.receipt_ledger import ReceiptLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["courses"])


# --- schemas ---


class ResourceSchema(BaseModel):
    title: str
    url: str
    type: str


class LessonOut(BaseModel):
    id: UUID
    order: int
    title: str
    duration_minutes: int
    video_url: str | None
    resources: list[ResourceSchema]


class LessonContentOut(LessonOut):
    course_id: UUID
    content: str


class InstructorOut(BaseModel):
    id: UUID
    name: str


class RatingSummaryOut(BaseModel):
    average: float
    count: int


class CourseOut(BaseModel):
    id: UUID
    title: str
    description: str
    category: str
    difficulty: str
    status: str
    price: Decimal
    currency: str
    duration_hours: float
    instructor: InstructorOut
    lessons: list[LessonOut]
    tags: list[str]
    prerequisites: list[str]
    outcomes: list[str]
    published_at: int | None
    enrollment_count: int
    rating: RatingSummaryOut


class CourseCreateIn(BaseModel):
    title: str
    description: str = ""
    category: str
    difficulty: str = "beginner"
    price: Decimal = Decimal("0")
    currency: str | None = None
    duration_hours: float = 0
    tags: list[str] = []
    prerequisites: list[str] = []
    outcomes: list[str] = []


class CourseUpdateIn(BaseModel):
    title: str | None = None
    description: str | None = None
    category: str | None = None
    difficulty: str | None = None
    price: Decimal | None = None
    currency: str | None = None
    duration_hours: float | None = None
    tags: list[str] | None = None
    prerequisites: list[str] | None = None
    outcomes: list[str] | None = None


class LessonCreateIn(BaseModel):
    title: str
    content: str = ""
    video_url: str | None = None
    duration_minutes: int = 0
    resources: list[ResourceSchema] = []


class EnrollIn(BaseModel):
    transaction_id: str | None = None


# --- conversions ---


def _lesson_fields(lesson: Lesson) -> dict[str, Any]:
    return {
        "id": lesson.id,
        "order": lesson.order,
        "title": lesson.title,
        "duration_minutes": lesson.duration_minutes,
        "video_url": lesson.video_url,
        "resources": [
            ResourceSchema(title=r.title, url=r.url, type=r.type)
            for r in lesson.resources
        ],
    }


def course_out(entry: CatalogEntry) -> CourseOut:
    course = entry.course
    return CourseOut(
        id=course.id,
        title=course.title,
        description=course.description,
        category=course.category,
        difficulty=course.difficulty,
        status=course.status,
        price=course.price,
        currency=course.currency,
        duration_hours=course.duration_hours,
        instructor=InstructorOut(id=course.instructor.id, name=course.instructor.name),
        lessons=[LessonOut(**_lesson_fields(ls)) for ls in course.lessons],
        tags=sorted(course.tags),
        prerequisites=list(course.prerequisites),
        outcomes=list(course.outcomes),
        published_at=course.published_at,
        enrollment_count=entry.enrollment_count,
        rating=RatingSummaryOut(
            average=entry.rating.average, count=entry.rating.count
        ),
    )


def _course_changes(body: CourseUpdateIn) -> dict[str, Any]:
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if "tags" in changes:
        changes["tags"] = frozenset(changes["tags"])
    for name in ("prerequisites", "outcomes"):
        if name in changes:
            changes[name] = tuple(changes[name])
    if "currency" in changes:
        changes["currency"] = changes["currency"].upper()
    return changes


# --- catalog ---


@router.get("", response_model=list[CourseOut])
async def list_courses(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
    category: str | None = None,
    difficulty: str | None = None,
    search: str | None = None,
) -> list[CourseOut]:
    entries = await catalog.list_courses(
        CourseFilter(category=category, difficulty=difficulty, search=search)
    )
    return [course_out(e) for e in entries]


# Declared before /{course_id} so the literal segments win.
@router.get("/mine", response_model=list[CourseOut])
async def list_my_courses(
    principal: Annotated[
        Principal, Depends(require_any_role({"instructor", "admin"}))
    ],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> list[CourseOut]:
    entries = await catalog.list_instructor_courses(principal, principal.user_id)
    return [course_out(e) for e in entries]


@router.get("/by-instructor/{instructor_id}", response_model=list[CourseOut])
async def list_instructor_courses(
    instructor_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> list[CourseOut]:
    entries = await catalog.list_instructor_courses(principal, instructor_id)
    return [course_out(e) for e in entries]


@router.get("/{course_id}", response_model=CourseOut)
async def get_course(
    course_id: UUID,
    principal: Annotated[Principal | None, Depends(optional_user)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CourseOut:
    return course_out(await catalog.get_course(course_id, principal))


# --- course management ---


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseCreateIn,
    principal: Annotated[
        Principal, Depends(require_any_role({"instructor", "admin"}))
    ],
    admin: Annotated[CourseAdminService, Depends(get_course_admin_service)],
) -> CourseOut:
    course = await admin.create_course(
        principal,
        title=body.title,
        description=body.description,
        category=body.category,
        difficulty=body.difficulty,
        price=body.price,
        currency=body.currency or SETTINGS.default_currency,
        duration_hours=body.duration_hours,
        tags=frozenset(body.tags),
        prerequisites=tuple(body.prerequisites),
        outcomes=tuple(body.outcomes),
    )
    return course_out(CatalogEntry(course=course))


@router.patch("/{course_id}", response_model=CourseOut)
async def update_course(
    course_id: UUID,
    body: CourseUpdateIn,
    principal: Annotated[Principal, Depends(require_user)],
    admin: Annotated[CourseAdminService, Depends(get_course_admin_service)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CourseOut:
    course = await admin.update_course(principal, course_id, _course_changes(body))
    return course_out(await catalog.get_course(course.id, principal))


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    admin: Annotated[CourseAdminService, Depends(get_course_admin_service)],
) -> None:
    await admin.delete_course(principal, course_id)


@router.post(
    "/{course_id}/lessons",
    response_model=LessonContentOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_lesson(
    course_id: UUID,
    body: LessonCreateIn,
    principal: Annotated[Principal, Depends(require_user)],
    admin: Annotated[CourseAdminService, Depends(get_course_admin_service)],
) -> LessonContentOut:
    lesson = await admin.add_lesson(
        principal,
        course_id,
        title=body.title,
        content=body.content,
        video_url=body.video_url,
        duration_minutes=body.duration_minutes,
        resources=tuple(
            Resource(title=r.title, url=r.url, type=r.type) for r in body.resources
        ),
    )
    return LessonContentOut(
        **_lesson_fields(lesson), course_id=lesson.course_id, content=lesson.content
    )


@router.delete(
    "/{course_id}/lessons/{lesson_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_lesson(
    course_id: UUID,
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    admin: Annotated[CourseAdminService, Depends(get_course_admin_service)],
) -> None:
    await admin.remove_lesson(principal, course_id, lesson_id)


@router.post("/{course_id}/publish", response_model=CourseOut)
async def publish_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    admin: Annotated[CourseAdminService, Depends(get_course_admin_service)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CourseOut:
    course = await admin.publish(principal, course_id)
    return course_out(await catalog.get_course(course.id, principal))


@router.post("/{course_id}/unpublish", response_model=CourseOut)
async def unpublish_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    admin: Annotated[CourseAdminService, Depends(get_course_admin_service)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CourseOut:
    course = await admin.unpublish(principal, course_id)
    return course_out(await catalog.get_course(course.id, principal))


@router.post("/{course_id}/archive", response_model=CourseOut)
async def archive_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    admin: Annotated[CourseAdminService, Depends(get_course_admin_service)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CourseOut:
    course = await admin.archive(principal, course_id)
    return course_out(await catalog.get_course(course.id, principal))


# --- lesson content ---


@router.get("/{course_id}/lessons/{lesson_id}", response_model=LessonContentOut)
async def get_lesson_content(
    course_id: UUID,
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
    enrollments: Annotated[EnrollmentService, Depends(get_enrollment_service)],
) -> LessonContentOut:
    course = (await catalog.get_course(course_id, principal)).course
    lesson = course.lesson(lesson_id)
    if lesson is None:
        raise LessonNotInCourseError(lesson_id, course_id)
    if not await enrollments.can_access_lesson_content(principal, course):
        raise AuthorizationError("enroll in this course to view its lessons")
    return LessonContentOut(
        **_lesson_fields(lesson), course_id=lesson.course_id, content=lesson.content
    )


# --- enrollment ---


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
    ledger: Annotated[ReceiptLedger, Depends(get_receipt_ledger)],
    body: EnrollIn | None = None,
) -> EnrollmentOut:
    receipt = None
    if body is not None and body.transaction_id:
        receipt = await ledger.claim(body.transaction_id)

    try:
        enrollment = await service.enroll(principal.user_id, course_id, receipt)
    except Exception:
        if receipt is not None:
            await ledger.record(receipt)
            logger.info(
                "Enroll in course=%s rejected; receipt %s returned",
                course_id,
                receipt.transaction_id,
                extra={"transaction_id": receipt.transaction_id},
            )
        raise

    if receipt is not None and enrollment.transaction_id != receipt.transaction_id:
        # Free course: the receipt was not needed, keep it redeemable.
        await ledger.record(receipt)
    return enrollment_out(enrollment)


@router.get("/{course_id}/enrollment", response_model=EnrollmentOut)
async def get_my_course_enrollment(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
) -> EnrollmentOut:
    enrollment = await service.find_enrollment(principal.user_id, course_id)
    if enrollment is None:
        raise NotFoundError(f"no active enrollment in course {course_id}")
    return enrollment_out(enrollment)


