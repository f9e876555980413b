"""Course recommendations for a free-text learning goal.

The external recommender ranks course IDs; this endpoint joins them with
the catalog and drops anything that is not a published course.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from coursehub.api.courses import CourseOut, course_out
from coursehub.api.dependencies import (
    get_catalog_service,
    get_recommendation_gateway,
    require_user,
)
from coursehub.models.principal import Principal
from coursehub.services.catalog_service import CatalogService
from coursehub.services.errors import CourseNotFoundError
from coursehub.services.recommendation_gateway import RecommendationGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/recommendations", tags=["recommendations"])


class RecommendationOut(BaseModel):
    course: CourseOut
    score: float
    reason: str


@router.get("", response_model=list[RecommendationOut])
async def recommend_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    gateway: Annotated[RecommendationGateway, Depends(get_recommendation_gateway)],
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
    goal: Annotated[str, Query(min_length=1, max_length=500)],
    limit: Annotated[int, Query(ge=1, le=20)] = 5,
) -> list[RecommendationOut]:
    ranked = await gateway.get_recommendations(goal, limit)

    results: list[RecommendationOut] = []
    for item in sorted(ranked, key=lambda r: r.score, reverse=True):
        try:
            # No principal: only published courses are recommendable.
            entry = await catalog.get_course(item.course_id)
        except CourseNotFoundError:
            logger.info("Dropping recommendation for unknown course=%s", item.course_id)
            continue
        results.append(
            RecommendationOut(
                course=course_out(entry), score=item.score, reason=item.reason
            )
        )
    return results[:limit]
