"""
sessiontab/db/memory.py

Purpose: In-process Repository implementation

- Backs STORAGE_BACKEND=memory for local runs and the test suite
- Same contract as MongoRepository, including atomic transactions:
  transactions are serialized and rolled back through an undo log
"""

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from sessiontab.core.logging import get_logger
from sessiontab.db.repository import Repository
from sessiontab.models.attendance import AttendanceBatch
from sessiontab.models.membership import Membership, Role
from sessiontab.models.person import Group, Person

logger = get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryTransaction:
    """Undo log handed to transactional callbacks as their ``session``."""

    def __init__(self):
        self._undo: List[Callable[[], None]] = []

    def on_rollback(self, action: Callable[[], None]) -> None:
        self._undo.append(action)

    def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()


class InMemoryRepository(Repository):
    """Dict-backed repository. Records are stored as model copies."""

    def __init__(self):
        self._persons: Dict[int, Person] = {}
        self._groups: Dict[int, Group] = {}
        self._memberships: Dict[Tuple[int, int], Membership] = {}
        self._rates: Dict[Tuple[int, Role], float] = {}
        self._batches: Dict[int, AttendanceBatch] = {}
        self._ids = {
            "persons": itertools.count(1),
            "groups": itertools.count(1),
            "attendance_batches": itertools.count(1),
        }
        self._tx_lock: Optional[asyncio.Lock] = None
        self._tx_loop = None

    def _transaction_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._tx_lock is None or self._tx_loop is not loop:
            self._tx_lock = asyncio.Lock()
            self._tx_loop = loop
        return self._tx_lock

    # ---- persons -------------------------------------------------------

    async def get_or_create_person(self, external_id: int, name: str, handle: Optional[str]) -> Person:
        existing = await self.get_person_by_external_id(external_id)
        now = _utcnow()
        if existing:
            person = existing.model_copy(update={"name": name, "handle": handle, "updated_at": now})
        else:
            person = Person(
                id=next(self._ids["persons"]),
                external_id=external_id,
                name=name,
                handle=handle,
                created_at=now,
                updated_at=now,
            )
            logger.info("Created person", extra={"person_id": person.id})
        self._persons[person.id] = person
        return person.model_copy()

    async def get_person_by_external_id(self, external_id: int) -> Optional[Person]:
        for person in self._persons.values():
            if person.external_id == external_id:
                return person.model_copy()
        return None

    async def find_person_by_handle(self, handle: str) -> Optional[Person]:
        wanted = handle.lower()
        for person in self._persons.values():
            if person.handle and person.handle.lower() == wanted:
                return person.model_copy()
        return None

    # ---- groups --------------------------------------------------------

    async def get_or_create_group(self, external_id: int, title: str, kind: str) -> Group:
        existing = await self.get_group_by_external_id(external_id)
        now = _utcnow()
        if existing:
            group = existing.model_copy(update={"title": title, "kind": kind, "updated_at": now})
        else:
            group = Group(
                id=next(self._ids["groups"]),
                external_id=external_id,
                title=title,
                kind=kind,
                created_at=now,
                updated_at=now,
            )
            logger.info(f"Created group '{title}'", extra={"group_id": group.id})
        self._groups[group.id] = group
        return group.model_copy()

    async def get_group(self, group_id: int) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy() if group else None

    async def get_group_by_external_id(self, external_id: int) -> Optional[Group]:
        for group in self._groups.values():
            if group.external_id == external_id:
                return group.model_copy()
        return None

    async def list_groups(self) -> List[Group]:
        return [group.model_copy() for _, group in sorted(self._groups.items())]

    # ---- memberships ---------------------------------------------------

    async def get_membership(self, person_id: int, group_id: int) -> Optional[Membership]:
        membership = self._memberships.get((person_id, group_id))
        return membership.model_copy() if membership else None

    async def upsert_membership(self, person_id: int, group_id: int, role: Role, name: str) -> Membership:
        key = (person_id, group_id)
        now = _utcnow()
        existing = self._memberships.get(key)
        if existing:
            membership = existing.model_copy(update={"role": role, "name": name, "updated_at": now})
        else:
            membership = Membership(
                person_id=person_id,
                group_id=group_id,
                role=role,
                name=name,
                sessions_owed=0,
                created_at=now,
                updated_at=now,
            )
        self._memberships[key] = membership
        return membership.model_copy()

    async def list_memberships_by_group(self, group_id: int) -> List[Membership]:
        members = [m for (_, gid), m in self._memberships.items() if gid == group_id]
        return [m.model_copy() for m in sorted(members, key=lambda m: m.name)]

    async def membership_exists(self, person_id: int, group_id: int) -> bool:
        return (person_id, group_id) in self._memberships

    async def adjust_balance(
        self, person_id: int, group_id: int, delta: int, session: Any = None
    ) -> Optional[Membership]:
        key = (person_id, group_id)
        membership = self._memberships.get(key)
        if membership is None:
            return None
        membership.sessions_owed += delta
        membership.updated_at = _utcnow()
        if session is not None:
            session.on_rollback(lambda: self._undo_adjust(key, delta))
        return membership.model_copy()

    def _undo_adjust(self, key: Tuple[int, int], delta: int) -> None:
        membership = self._memberships.get(key)
        if membership is not None:
            membership.sessions_owed -= delta

    # ---- rates ---------------------------------------------------------

    async def get_rate(self, group_id: int, role: Role) -> Optional[float]:
        return self._rates.get((group_id, role))

    async def set_rate(self, group_id: int, role: Role, price: float) -> None:
        self._rates[(group_id, role)] = float(price)

    async def list_rates(self, group_id: int) -> Dict[Role, float]:
        return {role: price for (gid, role), price in self._rates.items() if gid == group_id}

    # ---- attendance ----------------------------------------------------

    async def create_attendance_batch(
        self, group_id: int, admin_id: int, member_ids: List[int], session: Any = None
    ) -> AttendanceBatch:
        batch = AttendanceBatch(
            id=next(self._ids["attendance_batches"]),
            group_id=group_id,
            admin_id=admin_id,
            member_ids=list(member_ids),
            created_at=_utcnow(),
        )
        self._batches[batch.id] = batch
        if session is not None:
            session.on_rollback(lambda: self._batches.pop(batch.id, None))
        return batch.model_copy(deep=True)

    async def get_attendance_batch(self, batch_id: int, session: Any = None) -> Optional[AttendanceBatch]:
        batch = self._batches.get(batch_id)
        return batch.model_copy(deep=True) if batch else None

    async def get_latest_active_batch(self, group_id: int) -> Optional[AttendanceBatch]:
        active = [
            b for b in self._batches.values()
            if b.group_id == group_id and not b.is_reverted
        ]
        if not active:
            return None
        latest = max(active, key=lambda b: (b.created_at, b.id))
        return latest.model_copy(deep=True)

    async def mark_batch_reverted(self, batch_id: int, reverted_at: datetime, session: Any = None) -> bool:
        batch = self._batches.get(batch_id)
        if batch is None or batch.is_reverted:
            return False
        batch.is_reverted = True
        batch.reverted_at = reverted_at
        if session is not None:
            session.on_rollback(lambda: self._undo_revert(batch_id))
        return True

    def _undo_revert(self, batch_id: int) -> None:
        batch = self._batches.get(batch_id)
        if batch is not None:
            batch.is_reverted = False
            batch.reverted_at = None

    # ---- plumbing ------------------------------------------------------

    async def run_in_transaction(self, callback: Callable[[Any], Awaitable[T]]) -> T:
        async with self._transaction_lock():
            transaction = MemoryTransaction()
            try:
                return await callback(transaction)
            except BaseException:
                transaction.rollback()
                logger.warning("In-memory transaction rolled back")
                raise

    async def ping(self) -> bool:
        return True
