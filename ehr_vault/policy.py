"""
Access Policy — Role to permission resolution for record access.

Roles:
    admin   — every permission
    doctor  — read/write records and appointments
    nurse   — read/write records, read appointments
    patient — read own record only

The permission table is built once and never mutated. ``authorize`` is a
pure lookup; the caller must invoke it (or ``require``) before any call
into :class:`ehr_vault.vault.FieldCipher`.
"""
import logging
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Iterable, Union

from pydantic import BaseModel

from .exceptions import AccessDenied

logger = logging.getLogger("ehr.policy")


class Role(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    PATIENT = "patient"


class Permission(str, Enum):
    READ_RECORD = "read:record"
    WRITE_RECORD = "write:record"
    DELETE_RECORD = "delete:record"
    READ_APPOINTMENT = "read:appointment"
    WRITE_APPOINTMENT = "write:appointment"
    MANAGE_USERS = "manage:users"
    READ_AUDIT = "read:audit"


class Principal(BaseModel):
    """Authenticated actor. Its role is fixed for the request lifetime."""

    user_id: Union[int, str]
    role: Role

    model_config = {"frozen": True}


PermissionSet = Mapping[Role, frozenset]


def build_permission_set(
    table: Mapping[Union[Role, str], Iterable[Union[Permission, str]]]
) -> PermissionSet:
    """Freeze a role → permissions table.

    Roles missing from ``table`` are granted nothing.

    Raises:
        ValueError: If a role or permission name is unknown.
    """
    frozen = {role: frozenset() for role in Role}
    for role, permissions in table.items():
        frozen[Role(role)] = frozenset(Permission(p) for p in permissions)
    return MappingProxyType(frozen)


DEFAULT_PERMISSIONS: PermissionSet = build_permission_set({
    Role.ADMIN: list(Permission),
    Role.DOCTOR: [
        Permission.READ_RECORD,
        Permission.WRITE_RECORD,
        Permission.READ_APPOINTMENT,
        Permission.WRITE_APPOINTMENT,
    ],
    Role.NURSE: [
        Permission.READ_RECORD,
        Permission.WRITE_RECORD,
        Permission.READ_APPOINTMENT,
    ],
    Role.PATIENT: [
        Permission.READ_RECORD,
    ],
})


class AccessPolicy:
    """Admits or denies operations from a static permission table."""

    def __init__(self, permissions: Optional[PermissionSet] = None):
        if permissions is None:
            permissions = DEFAULT_PERMISSIONS
        self._permissions = build_permission_set(permissions)

    def permissions_for(self, role: Union[Role, str]) -> frozenset:
        """Return the frozen permission set of ``role``."""
        return self._permissions[Role(role)]

    def authorize(
        self, principal: Principal, permission: Union[Permission, str]
    ) -> bool:
        """Return True iff the principal's role grants ``permission``.

        Names outside :class:`Permission` are never granted.
        """
        try:
            permission = Permission(permission)
        except ValueError:
            return False
        return permission in self._permissions[principal.role]

    def require(
        self, principal: Principal, permission: Union[Permission, str]
    ) -> None:
        """Like :meth:`authorize`, but raise on refusal.

        Raises:
            ValueError: If ``permission`` is not a known permission name.
            AccessDenied: If the role does not grant ``permission``.
        """
        permission = Permission(permission)
        if not self.authorize(principal, permission):
            logger.warning(
                "Access denied: user=%s role=%s permission=%s",
                principal.user_id, principal.role.value, permission.value,
            )
            raise AccessDenied(principal.role.value, permission.value)
