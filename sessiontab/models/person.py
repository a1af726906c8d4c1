"""
sessiontab/models/person.py

Purpose: Person and group records

- Person: chat identity (external ID, display name, handle)
- Group: chat where the bot tracks a squad
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Person(BaseModel):
    """A chat user. Created on first contact, refreshed on every later one."""

    id: int
    external_id: int = Field(..., description="Chat network user ID")
    name: str = ""
    handle: Optional[str] = Field(default=None, description="Username without the leading @")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Group(BaseModel):
    """A group chat in which the bot has been added."""

    id: int
    external_id: int = Field(..., description="Chat network chat ID")
    title: str = ""
    kind: str = "group"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
