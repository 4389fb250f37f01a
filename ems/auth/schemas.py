"""Caller identity passed explicitly into every ledger operation."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict

from ems.common.constants import UserRole

# Role hierarchy — each role implicitly includes lower roles
ROLE_HIERARCHY: dict[UserRole, frozenset[UserRole]] = {
    UserRole.admin: frozenset({UserRole.admin, UserRole.manager, UserRole.employee}),
    UserRole.manager: frozenset({UserRole.manager, UserRole.employee}),
    UserRole.employee: frozenset({UserRole.employee}),
}


class Caller(BaseModel):
    """Authenticated caller: the acting employee and their role."""

    model_config = ConfigDict(frozen=True)

    employee_id: uuid.UUID
    role: UserRole = UserRole.employee

    def has_role(self, *roles: UserRole) -> bool:
        """True if the caller's role (expanded via hierarchy) covers any of *roles*."""
        effective = ROLE_HIERARCHY.get(self.role, frozenset({self.role}))
        return bool(effective.intersection(roles))

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @property
    def is_approver(self) -> bool:
        return self.has_role(UserRole.manager)
