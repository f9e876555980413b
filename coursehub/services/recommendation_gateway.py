"""Client for the external course-recommendation service.

The recommender is a separate system: it takes a learner's goal in free
text and answers with ranked course references.  This module only moves
that request over HTTP and checks the response shape; relevance and
ranking belong to the recommender.

    POST {RECOMMENDER_URL}
    {"goal": "get into data engineering", "limit": 5}

    200 {"recommendations": [{"course_id": "…", "score": 0.92, "reason": "…"}]}
"""

from __future__ import annotations

import logging
from typing import Protocol
from uuid import UUID

import httpx

from coursehub.core.metrics import RECOMMENDATION_REQUESTS_TOTAL
from coursehub.models.recommendation import RankedCourse

logger = logging.getLogger(__name__)


class RecommendationUnavailableError(Exception):
    """The recommender could not be reached or answered with garbage."""


class RecommendationGateway(Protocol):
    async def get_recommendations(
        self, goal_text: str, limit: int = 5
    ) -> list[RankedCourse]: ...


class NullRecommendationGateway:
    """Used when no RECOMMENDER_URL is configured."""

    async def get_recommendations(
        self, goal_text: str, limit: int = 5
    ) -> list[RankedCourse]:
        RECOMMENDATION_REQUESTS_TOTAL.labels(result="disabled").inc()
        return []


class HttpRecommendationGateway:
    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._transport = transport

    async def get_recommendations(
        self, goal_text: str, limit: int = 5
    ) -> list[RankedCourse]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    self._url, json={"goal": goal_text, "limit": limit}
                )
                resp.raise_for_status()
                payload = resp.json()
            ranked = [
                RankedCourse(
                    course_id=UUID(str(item["course_id"])),
                    score=float(item.get("score", 0.0)),
                    reason=str(item.get("reason", "")),
                )
                for item in payload["recommendations"]
            ]
        except httpx.HTTPError as e:
            RECOMMENDATION_REQUESTS_TOTAL.labels(result="error").inc()
            logger.warning("Recommendation request failed: %s", e)
            raise RecommendationUnavailableError(str(e)) from e
        except (KeyError, TypeError, ValueError) as e:
            RECOMMENDATION_REQUESTS_TOTAL.labels(result="error").inc()
            logger.warning("Recommendation response malformed: %r", e)
            raise RecommendationUnavailableError("malformed response") from e

        RECOMMENDATION_REQUESTS_TOTAL.labels(result="ok").inc()
        ranked.sort(key=lambda r: r.score, reverse=True)
        return ranked[:limit]
