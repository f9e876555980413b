from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller, extracted from a validated JWT.

    Built once per request by ``require_user`` and passed explicitly into
    every service call that needs to know who is acting.  There is no
    module-level "current user".

        user_id: subject from the JWT (student/instructor/admin id)
        name:    display name, used as the instructor summary on new courses
        roles:   platform roles (student, instructor, admin)
    """

    user_id: UUID
    roles: frozenset[str]
    name: str = ""

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return "admin" in self.roles

    def is_instructor(self) -> bool:
        return "instructor" in self.roles
