"""
sessiontab/models/membership.py

Purpose: Membership ledger records

- Role enum shared by memberships and the rate schedule
- Membership: (person, group) -> role, display name, sessions_owed
- Invoice: derived view, never persisted
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Roles a member can register with. Only ADMIN carries privileges."""

    ADMIN = "admin"
    STUDENT = "student"
    ADULT = "adult"
    HALF_ADULT = "half_adult"

    @classmethod
    def from_str(cls, value: str) -> "Role":
        """Coerce callback/user text into a Role."""
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError) as error:
            raise ValueError(f"Unsupported role: {value}") from error


# Roles that carry a per-session price; admins are not charged
PRICED_ROLES = (Role.STUDENT, Role.ADULT, Role.HALF_ADULT)


class Membership(BaseModel):
    """
    A person's standing in one group.

    sessions_owed is the authoritative balance: positive means the member
    owes sessions, negative is credit, zero is settled.
    """

    person_id: int
    group_id: int
    role: Role
    name: str
    sessions_owed: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def balance_status(self) -> str:
        if self.sessions_owed > 0:
            return "owed"
        if self.sessions_owed < 0:
            return "credit"
        return "settled"


class Invoice(BaseModel):
    """What a member owes right now, priced at the group's current rate."""

    person_id: int
    group_id: int
    name: str
    role: Role
    sessions_owed: int
    rate_per_session: float = Field(..., ge=0)
    total_debt: float
