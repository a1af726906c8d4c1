"""
sessiontab/db/mongo_repository.py

Purpose: Repository implementation on MongoDB (Motor)

- Integer IDs allocated from a counters collection
- Balances changed with $inc only, never read-modify-write
- Attendance record/revert run inside multi-document transactions
"""

import functools
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from sessiontab.core.exceptions import PersistenceError
from sessiontab.core.logging import get_logger
from sessiontab.db.repository import Repository
from sessiontab.models.attendance import AttendanceBatch
from sessiontab.models.membership import Membership, Role
from sessiontab.models.person import Group, Person

logger = get_logger(__name__)

T = TypeVar("T")


def translate_errors(func):
    """
    Turn driver errors into PersistenceError.

    Calls that run inside a transaction re-raise the raw driver error so
    with_transaction can still see the TransientTransactionError label
    and retry.
    """
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except PyMongoError as e:
            if kwargs.get("session") is not None:
                raise
            logger.error(f"MongoDB error in {func.__name__}: {e}", exc_info=True)
            raise PersistenceError(f"Storage failure in {func.__name__}") from e
    return wrapper


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _strip_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    return doc


def _to_membership(doc: Dict[str, Any]) -> Membership:
    doc = dict(doc)
    doc.pop("_id", None)
    return Membership(**doc)


class MongoRepository(Repository):
    """Repository backed by a Motor database handle."""

    def __init__(self, client: AsyncIOMotorClient, database: AsyncIOMotorDatabase):
        self._client = client
        self._db = database
        self.persons = database["persons"]
        self.groups = database["groups"]
        self.memberships = database["memberships"]
        self.rates = database["rates"]
        self.batches = database["attendance_batches"]
        self.counters = database["counters"]

    async def _next_id(self, name: str, session: Any = None) -> int:
        counter = await self.counters.find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return counter["seq"]

    # ---- persons -------------------------------------------------------

    @translate_errors
    async def get_or_create_person(self, external_id: int, name: str, handle: Optional[str]) -> Person:
        now = _utcnow()
        refreshed = await self.persons.find_one_and_update(
            {"external_id": external_id},
            {"$set": {"name": name, "handle": handle, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if refreshed:
            return Person(**_strip_id(refreshed))

        doc = {
            "_id": await self._next_id("persons"),
            "external_id": external_id,
            "name": name,
            "handle": handle,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.persons.insert_one(doc)
            logger.info("Created person", extra={"person_id": doc["_id"]})
        except DuplicateKeyError:
            # Another event for the same sender inserted first
            logger.warning(f"Person {external_id} created concurrently, re-reading")
            doc = await self.persons.find_one({"external_id": external_id})
        return Person(**_strip_id(doc))

    @translate_errors
    async def get_person_by_external_id(self, external_id: int) -> Optional[Person]:
        doc = await self.persons.find_one({"external_id": external_id})
        return Person(**_strip_id(doc)) if doc else None

    @translate_errors
    async def find_person_by_handle(self, handle: str) -> Optional[Person]:
        doc = await self.persons.find_one(
            {"handle": handle},
            collation={"locale": "en", "strength": 2},
        )
        return Person(**_strip_id(doc)) if doc else None

    # ---- groups --------------------------------------------------------

    @translate_errors
    async def get_or_create_group(self, external_id: int, title: str, kind: str) -> Group:
        now = _utcnow()
        refreshed = await self.groups.find_one_and_update(
            {"external_id": external_id},
            {"$set": {"title": title, "kind": kind, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if refreshed:
            return Group(**_strip_id(refreshed))

        doc = {
            "_id": await self._next_id("groups"),
            "external_id": external_id,
            "title": title,
            "kind": kind,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.groups.insert_one(doc)
            logger.info(f"Created group '{title}'", extra={"group_id": doc["_id"]})
        except DuplicateKeyError:
            doc = await self.groups.find_one({"external_id": external_id})
        return Group(**_strip_id(doc))

    @translate_errors
    async def get_group(self, group_id: int) -> Optional[Group]:
        doc = await self.groups.find_one({"_id": group_id})
        return Group(**_strip_id(doc)) if doc else None

    @translate_errors
    async def get_group_by_external_id(self, external_id: int) -> Optional[Group]:
        doc = await self.groups.find_one({"external_id": external_id})
        return Group(**_strip_id(doc)) if doc else None

    @translate_errors
    async def list_groups(self) -> List[Group]:
        cursor = self.groups.find({}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
        return [Group(**_strip_id(doc)) async for doc in cursor]

    # ---- memberships ---------------------------------------------------

    @translate_errors
    async def get_membership(self, person_id: int, group_id: int) -> Optional[Membership]:
        doc = await self.memberships.find_one({"person_id": person_id, "group_id": group_id})
        return _to_membership(doc) if doc else None

    @translate_errors
    async def upsert_membership(self, person_id: int, group_id: int, role: Role, name: str) -> Membership:
        now = _utcnow()
        doc = await self.memberships.find_one_and_update(
            {"person_id": person_id, "group_id": group_id},
            {
                "$set": {"role": role.value, "name": name, "updated_at": now},
                "$setOnInsert": {"sessions_owed": 0, "created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return _to_membership(doc)

    @translate_errors
    async def list_memberships_by_group(self, group_id: int) -> List[Membership]:
        cursor = self.memberships.find({"group_id": group_id}).sort("name", ASCENDING)
        return [_to_membership(doc) async for doc in cursor]

    @translate_errors
    async def membership_exists(self, person_id: int, group_id: int) -> bool:
        count = await self.memberships.count_documents(
            {"person_id": person_id, "group_id": group_id}, limit=1
        )
        return count > 0

    @translate_errors
    async def adjust_balance(
        self, person_id: int, group_id: int, delta: int, session: Any = None
    ) -> Optional[Membership]:
        doc = await self.memberships.find_one_and_update(
            {"person_id": person_id, "group_id": group_id},
            {"$inc": {"sessions_owed": delta}, "$set": {"updated_at": _utcnow()}},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return _to_membership(doc) if doc else None

    # ---- rates ---------------------------------------------------------

    @translate_errors
    async def get_rate(self, group_id: int, role: Role) -> Optional[float]:
        doc = await self.rates.find_one({"group_id": group_id, "role": role.value})
        return float(doc["rate_per_session"]) if doc else None

    @translate_errors
    async def set_rate(self, group_id: int, role: Role, price: float) -> None:
        now = _utcnow()
        await self.rates.update_one(
            {"group_id": group_id, "role": role.value},
            {
                "$set": {"rate_per_session": float(price), "updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )

    @translate_errors
    async def list_rates(self, group_id: int) -> Dict[Role, float]:
        cursor = self.rates.find({"group_id": group_id})
        return {Role(doc["role"]): float(doc["rate_per_session"]) async for doc in cursor}

    # ---- attendance ----------------------------------------------------

    @translate_errors
    async def create_attendance_batch(
        self, group_id: int, admin_id: int, member_ids: List[int], session: Any = None
    ) -> AttendanceBatch:
        doc = {
            "_id": await self._next_id("attendance_batches", session=session),
            "group_id": group_id,
            "admin_id": admin_id,
            "member_ids": list(member_ids),
            "created_at": _utcnow(),
            "is_reverted": False,
            "reverted_at": None,
        }
        await self.batches.insert_one(doc, session=session)
        return AttendanceBatch(**_strip_id(doc))

    @translate_errors
    async def get_attendance_batch(self, batch_id: int, session: Any = None) -> Optional[AttendanceBatch]:
        doc = await self.batches.find_one({"_id": batch_id}, session=session)
        return AttendanceBatch(**_strip_id(doc)) if doc else None

    @translate_errors
    async def get_latest_active_batch(self, group_id: int) -> Optional[AttendanceBatch]:
        doc = await self.batches.find_one(
            {"group_id": group_id, "is_reverted": False},
            sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
        )
        return AttendanceBatch(**_strip_id(doc)) if doc else None

    @translate_errors
    async def mark_batch_reverted(self, batch_id: int, reverted_at: datetime, session: Any = None) -> bool:
        result = await self.batches.update_one(
            {"_id": batch_id, "is_reverted": False},
            {"$set": {"is_reverted": True, "reverted_at": reverted_at}},
            session=session,
        )
        return result.modified_count == 1

    # ---- plumbing ------------------------------------------------------

    async def run_in_transaction(self, callback: Callable[[Any], Awaitable[T]]) -> T:
        try:
            async with await self._client.start_session() as session:
                return await session.with_transaction(callback)
        except PyMongoError as e:
            logger.error(f"Transaction failed: {e}", exc_info=True)
            raise PersistenceError("Storage transaction failed") from e

    async def ping(self) -> bool:
        try:
            await self._client.admin.command("ping")
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {str(e)}")
            return False
