"""Role enums shared by the auth layer and services."""

from enum import Enum


class RoleName(str, Enum):
    """Roles carried in the bearer token ``role`` claim."""

    MEMBER = "member"
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    INSTRUCTOR = "instructor"
    FRONT_DESK = "front_desk"


STAFF_ROLES = frozenset(
    {
        RoleName.OWNER,
        RoleName.ADMIN,
        RoleName.MANAGER,
        RoleName.INSTRUCTOR,
        RoleName.FRONT_DESK,
    }
)

# Roles allowed to create, reshape or cancel class sessions.
SCHEDULER_ROLES = frozenset({RoleName.OWNER, RoleName.ADMIN, RoleName.MANAGER})

# Roles allowed to run a class (start, complete, no-show reconciliation).
CLASS_RUNNER_ROLES = SCHEDULER_ROLES | {RoleName.INSTRUCTOR}
