"""
sessiontab/services/authorization.py

Purpose: Privilege resolution

- Default admin is admin everywhere
- Otherwise the membership role decides
- No membership means no privileges (fails closed)
"""

from enum import Enum
from typing import Optional

from sessiontab.core.exceptions import AuthorizationError
from sessiontab.core.logging import get_logger
from sessiontab.db.repository import Repository
from sessiontab.models.membership import Role
from sessiontab.models.person import Person

logger = get_logger(__name__)


class PrivilegeLevel(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    MEMBER = "member"
    ADMIN = "admin"


class AuthorizationGate:
    """The one place that decides whether someone may run admin actions."""

    def __init__(self, repository: Repository, default_admin_id: Optional[int] = None):
        self.repository = repository
        self.default_admin_id = default_admin_id

    def is_default_admin(self, person: Person) -> bool:
        return self.default_admin_id is not None and person.external_id == self.default_admin_id

    async def effective_role(self, person: Person, group_id: Optional[int]) -> PrivilegeLevel:
        """
        Resolve the person's privilege level in a group.

        Args:
            person: Caller
            group_id: Group the action targets (None outside any group)

        Returns:
            PrivilegeLevel
        """
        if self.is_default_admin(person):
            return PrivilegeLevel.ADMIN

        if group_id is None:
            return PrivilegeLevel.UNAUTHENTICATED

        membership = await self.repository.get_membership(person.id, group_id)
        if membership is None:
            return PrivilegeLevel.UNAUTHENTICATED
        if membership.role == Role.ADMIN:
            return PrivilegeLevel.ADMIN
        return PrivilegeLevel.MEMBER

    async def require_admin(self, person: Person, group_id: Optional[int]) -> None:
        """
        Raises:
            AuthorizationError: If the person is not admin for the group
        """
        level = await self.effective_role(person, group_id)
        if level != PrivilegeLevel.ADMIN:
            logger.warning(
                "Admin action refused",
                extra={"person_id": person.id, "group_id": group_id, "level": level.value}
            )
            raise AuthorizationError(details={"group_id": group_id, "level": level.value})
