from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class RankedCourse:
    """One course reference returned by the recommendation gateway."""

    course_id: UUID
    score: float  # relevance, higher is better
    reason: str = ""
