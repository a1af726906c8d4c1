"""
sessiontab/services/attendance_service.py

Purpose: Attendance batches

- Credits one session to each listed member in a single transaction
- Unknown handles and non-members are skipped, not fatal
- Revert undoes a whole batch exactly once
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sessiontab.core.exceptions import AlreadyRevertedError, NotFoundError, ValidationError
from sessiontab.core.logging import LogContext, get_logger
from sessiontab.db.repository import Repository
from sessiontab.models.attendance import AttendanceBatch
from sessiontab.models.person import Person
from sessiontab.services.authorization import AuthorizationGate
from sessiontab.services.ledger_service import LedgerEngine
from utils.validation_utils import normalize_handle

logger = get_logger(__name__)


class AttendanceRecorder:
    def __init__(self, repository: Repository, ledger: LedgerEngine, gate: AuthorizationGate):
        self.repository = repository
        self.ledger = ledger
        self.gate = gate

    async def _resolve_members(self, group_id: int, candidates: Iterable[str]) -> Tuple[List[int], List[str]]:
        """Split candidate handles into credited person IDs and rejected handles."""
        member_ids: List[int] = []
        rejected: List[str] = []
        seen = set()

        for raw in candidates:
            handle = normalize_handle(raw)
            if not handle or handle.lower() in seen:
                continue
            seen.add(handle.lower())

            person = await self.repository.find_person_by_handle(handle)
            if person is None:
                rejected.append(handle)
                continue
            if not await self.repository.membership_exists(person.id, group_id):
                rejected.append(handle)
                continue
            if person.id not in member_ids:
                member_ids.append(person.id)

        return member_ids, rejected

    async def record_attendance(
        self, group_id: int, admin: Person, candidates: Iterable[str]
    ) -> Tuple[Optional[AttendanceBatch], int]:
        """
        Credits one session to every candidate that is a member of the group.

        Args:
            group_id: Group the session took place in
            admin: Person issuing the command
            candidates: Handles, with or without a leading @

        Returns:
            (batch, credited count); batch is None when nobody was credited

        Raises:
            AuthorizationError: If admin is not an admin of the group
            ValidationError: If no candidates were given
        """
        await self.gate.require_admin(admin, group_id)

        candidates = list(candidates)
        if not candidates:
            raise ValidationError("No usernames given")

        with LogContext(logger, person_id=admin.id, group_id=group_id) as log:
            member_ids, rejected = await self._resolve_members(group_id, candidates)
            if rejected:
                log.warning(f"Attendance skipped {len(rejected)} handle(s): {', '.join(rejected)}")

            if not member_ids:
                log.info("Attendance credited nobody; no batch stored")
                return None, 0

            async def _record(session):
                for person_id in member_ids:
                    await self.ledger.adjust_balance(person_id, group_id, 1, session=session)
                return await self.repository.create_attendance_batch(
                    group_id, admin.id, member_ids, session=session
                )

            batch = await self.repository.run_in_transaction(_record)
            log.info(
                f"Attendance batch {batch.id} credited {len(member_ids)} member(s)",
                extra={"batch_id": batch.id}
            )
            return batch, len(member_ids)

    async def revert_attendance(self, batch_id: int) -> AttendanceBatch:
        """
        Takes back the session credited by a batch.

        Raises:
            NotFoundError: If the batch does not exist
            AlreadyRevertedError: If the batch was reverted before (including
                by a concurrent call that won the race)
        """
        async def _revert(session):
            batch = await self.repository.get_attendance_batch(batch_id, session=session)
            if batch is None:
                raise NotFoundError("Attendance batch not found", details={"batch_id": batch_id})

            reverted_at = datetime.now(timezone.utc)
            if not await self.repository.mark_batch_reverted(batch_id, reverted_at, session=session):
                raise AlreadyRevertedError(details={"batch_id": batch_id})

            for person_id in batch.member_ids:
                await self.ledger.adjust_balance(person_id, batch.group_id, -1, session=session)

            return batch.model_copy(update={"is_reverted": True, "reverted_at": reverted_at})

        batch = await self.repository.run_in_transaction(_revert)
        logger.info(
            f"Attendance batch {batch_id} reverted for {len(batch.member_ids)} member(s)",
            extra={"batch_id": batch_id, "group_id": batch.group_id}
        )
        return batch

    async def latest_active_attendance(self, group_id: int) -> Optional[AttendanceBatch]:
        return await self.repository.get_latest_active_batch(group_id)
