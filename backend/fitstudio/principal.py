"""Principal abstraction for authenticated API callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .core.enums import CLASS_RUNNER_ROLES, SCHEDULER_ROLES, STAFF_ROLES, RoleName


@dataclass(frozen=True)
class Principal:
    """Identity and tenant resolved from the bearer token."""

    user_id: str
    tenant_id: str
    role: RoleName
    member_id: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_member(self) -> bool:
        return self.role == RoleName.MEMBER

    @property
    def can_schedule(self) -> bool:
        return self.role in SCHEDULER_ROLES

    @property
    def can_run_classes(self) -> bool:
        return self.role in CLASS_RUNNER_ROLES
