"""
Admin permission gate.

Every admin route declares the Action it performs through
`require_permission(action)`. The dependency resolves before the handler
body runs, so a denied caller never reaches a store lookup.
"""

from enum import Enum
from typing import Dict, FrozenSet

from fastapi import Depends, HTTPException, status

from app.models.admin import Admin
from app.utils.auth import get_current_admin

import logging
logger = logging.getLogger("app.permissions")


class Action(str, Enum):
    ADD_TEACHER = "addTeacher"
    GET_TEACHER = "getTeacher"
    EDIT_TEACHER = "editTeacher"
    DELETE_TEACHER = "deleteTeacher"

    ADD_WORKSHOP = "addWorkshop"
    GET_WORKSHOP = "getWorkshop"
    EDIT_WORKSHOP = "editWorkshop"
    DELETE_WORKSHOP = "deleteWorkshop"

    ADD_USER = "addUser"
    GET_USER = "getUser"
    EDIT_USER = "editUser"
    DELETE_USER = "deleteUser"


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    VIEWER = "viewer"


READ_ACTIONS = frozenset({Action.GET_TEACHER, Action.GET_WORKSHOP, Action.GET_USER})
DELETE_ACTIONS = frozenset({Action.DELETE_TEACHER, Action.DELETE_WORKSHOP, Action.DELETE_USER})

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Action]] = {
    Role.SUPERADMIN: frozenset(Action),
    Role.ADMIN: frozenset(Action) - DELETE_ACTIONS,
    Role.VIEWER: READ_ACTIONS,
}


def check_permission(admin: Admin, action: Action) -> bool:
    try:
        role = Role(admin.role)
    except ValueError:
        logger.warning("Admin %s has unknown role %r", admin.username, admin.role)
        return False
    return action in ROLE_PERMISSIONS[role]


def require_permission(action: Action):
    """Factory function to create permission check dependency"""
    def permission_dependency(admin: Admin = Depends(get_current_admin)) -> Admin:
        if not check_permission(admin, action):
            logger.info("Admin %s denied %s", admin.username, action.value)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {action.value}",
            )
        return admin
    return permission_dependency
