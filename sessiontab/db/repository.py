"""
sessiontab/db/repository.py

Purpose: The single persistence seam

- Every service reads and writes through a Repository
- MongoRepository (production) and InMemoryRepository (local/tests) implement it
- Methods that take ``session`` join the caller's transaction when one is given
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from sessiontab.models.attendance import AttendanceBatch
from sessiontab.models.membership import Membership, Role
from sessiontab.models.person import Group, Person

T = TypeVar("T")


class Repository(ABC):
    """Storage operations the ledger core depends on."""

    # ---- persons -------------------------------------------------------

    @abstractmethod
    async def get_or_create_person(self, external_id: int, name: str, handle: Optional[str]) -> Person:
        """Insert the person or refresh name/handle of the existing row."""

    @abstractmethod
    async def get_person_by_external_id(self, external_id: int) -> Optional[Person]:
        ...

    @abstractmethod
    async def find_person_by_handle(self, handle: str) -> Optional[Person]:
        """Case-insensitive lookup by handle (without ``@``)."""

    # ---- groups --------------------------------------------------------

    @abstractmethod
    async def get_or_create_group(self, external_id: int, title: str, kind: str) -> Group:
        ...

    @abstractmethod
    async def get_group(self, group_id: int) -> Optional[Group]:
        ...

    @abstractmethod
    async def get_group_by_external_id(self, external_id: int) -> Optional[Group]:
        ...

    @abstractmethod
    async def list_groups(self) -> List[Group]:
        """All groups, oldest first."""

    # ---- memberships ---------------------------------------------------

    @abstractmethod
    async def get_membership(self, person_id: int, group_id: int) -> Optional[Membership]:
        ...

    @abstractmethod
    async def upsert_membership(self, person_id: int, group_id: int, role: Role, name: str) -> Membership:
        """Create the membership or overwrite role and name, keeping the balance."""

    @abstractmethod
    async def list_memberships_by_group(self, group_id: int) -> List[Membership]:
        """Memberships of a group ordered by display name."""

    @abstractmethod
    async def membership_exists(self, person_id: int, group_id: int) -> bool:
        ...

    @abstractmethod
    async def adjust_balance(
        self, person_id: int, group_id: int, delta: int, session: Any = None
    ) -> Optional[Membership]:
        """
        Atomically apply ``sessions_owed += delta``.

        Returns the updated membership, or None when no row matched.
        """

    # ---- rates ---------------------------------------------------------

    @abstractmethod
    async def get_rate(self, group_id: int, role: Role) -> Optional[float]:
        """Price per session, None when the rate was never set."""

    @abstractmethod
    async def set_rate(self, group_id: int, role: Role, price: float) -> None:
        ...

    @abstractmethod
    async def list_rates(self, group_id: int) -> Dict[Role, float]:
        ...

    # ---- attendance ----------------------------------------------------

    @abstractmethod
    async def create_attendance_batch(
        self, group_id: int, admin_id: int, member_ids: List[int], session: Any = None
    ) -> AttendanceBatch:
        ...

    @abstractmethod
    async def get_attendance_batch(self, batch_id: int, session: Any = None) -> Optional[AttendanceBatch]:
        ...

    @abstractmethod
    async def get_latest_active_batch(self, group_id: int) -> Optional[AttendanceBatch]:
        ...

    @abstractmethod
    async def mark_batch_reverted(self, batch_id: int, reverted_at: datetime, session: Any = None) -> bool:
        """
        Flip an active batch to reverted.

        Returns False when the batch was already reverted (or missing), so
        two racing reverts can never both win.
        """

    # ---- plumbing ------------------------------------------------------

    @abstractmethod
    async def run_in_transaction(self, callback: Callable[[Any], Awaitable[T]]) -> T:
        """
        Run ``callback(session)`` atomically.

        Either every write made through ``session`` commits or none does;
        the callback's exception propagates after rollback.
        """

    @abstractmethod
    async def ping(self) -> bool:
        ...
