"""
sessiontab/services/ledger_service.py

Purpose: Session balance ledger

- Membership create/update (balance preserved)
- Atomic balance adjustment
- Settlement (unclamped: overpaying leaves a credit)
- Invoice and group report (derived, never stored)
"""

from typing import Any, List, Optional

from sessiontab.core.exceptions import NotFoundError, ValidationError
from sessiontab.core.logging import LogContext, get_logger
from sessiontab.db.repository import Repository
from sessiontab.models.membership import Invoice, Membership, Role
from sessiontab.services.rate_service import RateTable
from utils.constants import REPORT_LINE, REPORT_SUFFIXES

logger = get_logger(__name__)


class LedgerEngine:
    def __init__(self, repository: Repository, rates: RateTable):
        self.repository = repository
        self.rates = rates

    async def upsert_membership(self, person_id: int, group_id: int, role: Role, name: str) -> Membership:
        """
        Registers a person in a group, or updates role and name if already
        registered. The balance is never touched here.

        Raises:
            ValidationError: If the name is blank
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name must not be empty")

        with LogContext(logger, person_id=person_id, group_id=group_id) as log:
            membership = await self.repository.upsert_membership(person_id, group_id, role, name)
            log.info(f"Membership saved as {role.value}")
            return membership

    async def get_membership(self, person_id: int, group_id: int) -> Membership:
        membership = await self.repository.get_membership(person_id, group_id)
        if membership is None:
            raise NotFoundError(
                "Membership not found",
                details={"person_id": person_id, "group_id": group_id}
            )
        return membership

    async def list_members(self, group_id: int) -> List[Membership]:
        return await self.repository.list_memberships_by_group(group_id)

    async def adjust_balance(
        self, person_id: int, group_id: int, delta: int, session: Any = None
    ) -> Membership:
        """
        Applies sessions_owed += delta in a single storage-level update.

        Args:
            session: Open transaction to join, if any

        Raises:
            NotFoundError: If the person is not a member of the group
        """
        membership = await self.repository.adjust_balance(person_id, group_id, delta, session=session)
        if membership is None:
            raise NotFoundError(
                "Membership not found",
                details={"person_id": person_id, "group_id": group_id}
            )
        logger.debug(
            f"Balance adjusted by {delta:+d} to {membership.sessions_owed}",
            extra={"person_id": person_id, "group_id": group_id}
        )
        return membership

    async def settle(self, person_id: int, group_id: int, count: int) -> Membership:
        """
        Records that the member paid for ``count`` sessions.

        Raises:
            ValidationError: If count is not a positive integer
            NotFoundError: If the membership does not exist
        """
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise ValidationError("Settled sessions must be a positive whole number", details={"count": count})

        with LogContext(logger, person_id=person_id, group_id=group_id) as log:
            membership = await self.adjust_balance(person_id, group_id, -count)
            log.info(f"Settled {count} sessions, balance now {membership.sessions_owed}")
            return membership

    async def invoice(self, person_id: int, group_id: int) -> Invoice:
        membership = await self.get_membership(person_id, group_id)
        rate = await self.rates.get_rate(group_id, membership.role)
        return Invoice(
            person_id=person_id,
            group_id=group_id,
            name=membership.name,
            role=membership.role,
            sessions_owed=membership.sessions_owed,
            rate_per_session=rate,
            total_debt=membership.sessions_owed * rate,
        )

    async def report(self, group_id: int, memberships: Optional[List[Membership]] = None) -> List[str]:
        """
        One line per member, ordered by display name.

        Lines read "<name> = <balance>" followed by a marker for credit or
        settled balances; plain owed balances carry no marker.
        """
        if memberships is None:
            memberships = await self.repository.list_memberships_by_group(group_id)

        return [
            REPORT_LINE.format(
                name=m.name,
                balance=m.sessions_owed,
                suffix=REPORT_SUFFIXES[m.balance_status],
            ).rstrip()
            for m in sorted(memberships, key=lambda m: m.name)
        ]
