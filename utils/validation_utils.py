"""
utils/validation_utils.py

Purpose: Input validation

- Price and session-count parsing from free text
- Handle normalization for attendance lists
- Callback data parsing
"""

import math
import re
from typing import List, Optional

from sessiontab.core.exceptions import ValidationError

# Persian/Arabic-Indic digits show up when members type on localized keyboards
_DIGIT_TRANSLATION = str.maketrans(
    "۰۱۲۳۴۵۶۷۸۹٠١٢٣٤٥٦٧٨٩",
    "01234567890123456789",
)


def normalize_digits(text: str) -> str:
    """
    Converts localized digits to ASCII and drops thousands separators.

    Args:
        text: Raw user input

    Returns:
        Normalized string
    """
    text = (text or "").strip().translate(_DIGIT_TRANSLATION)
    return text.replace(",", "").replace("٬", "").replace("_", "")


def parse_price(text: str) -> float:
    """
    Parses a price per session.

    Raises:
        ValidationError: If the text is not a number or is negative
    """
    cleaned = normalize_digits(text)
    try:
        price = float(cleaned)
    except ValueError as e:
        raise ValidationError("Rate must be a number", details={"input": text}) from e

    if not math.isfinite(price) or price < 0:
        raise ValidationError("Rate must be zero or positive", details={"input": text})

    return price


def parse_session_count(text: str) -> int:
    """
    Parses a positive whole number of sessions.

    Raises:
        ValidationError: If the text is not a positive integer
    """
    cleaned = normalize_digits(text)
    if not re.fullmatch(r"\d+", cleaned):
        raise ValidationError("Sessions must be a positive whole number", details={"input": text})

    count = int(cleaned)
    if count <= 0:
        raise ValidationError("Sessions must be a positive whole number", details={"input": text})

    return count


def validate_display_name(text: str) -> str:
    """
    Trims and checks a display name.

    Raises:
        ValidationError: If the name is empty after trimming
    """
    name = " ".join((text or "").split())
    if not name:
        raise ValidationError("Name must not be empty")
    return name


def normalize_handle(raw: str) -> Optional[str]:
    """
    Strips whitespace and a leading @ from a username.

    Returns:
        Handle, or None if nothing is left
    """
    handle = (raw or "").strip().lstrip("@").strip()
    return handle or None


def parse_callback_data(data: str) -> List[str]:
    """
    Splits "action:arg1:arg2" callback data.

    Returns:
        List of parts (first element is the action)
    """
    return [part for part in (data or "").split(":")]


def parse_int_arg(parts: List[str], index: int) -> Optional[int]:
    """
    Reads an integer argument from parsed callback data.

    Returns:
        The integer, or None if missing or malformed
    """
    if len(parts) <= index:
        return None
    try:
        return int(parts[index])
    except ValueError:
        return None
