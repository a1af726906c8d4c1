"""
utils/time_utils.py

Purpose: Timestamp display for chat replies (always UTC)
"""

from datetime import datetime, timezone
from typing import Optional

DISPLAY_FORMAT = "%Y-%m-%d %H:%M"


def format_timestamp(dt: Optional[datetime], fmt: str = DISPLAY_FORMAT) -> str:
    if dt is None:
        return "-"
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return f"{dt.strftime(fmt)} UTC"
