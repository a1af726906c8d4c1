"""
sessiontab/models/attendance.py

Purpose: Attendance batch record

- One row per /attendance call that credited at least one member
- Lifecycle: active -> reverted (terminal)
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AttendanceBatch(BaseModel):
    id: int
    group_id: int
    admin_id: int = Field(..., description="Person ID of the admin who recorded it")
    member_ids: List[int] = Field(default_factory=list)
    created_at: datetime
    is_reverted: bool = False
    reverted_at: Optional[datetime] = None
