import re
from typing import Optional

_FIRST_INTEGER = re.compile(r"\d+")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    """Trim, lower-case and collapse inner whitespace. None becomes an empty string."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value.strip().lower())


def parse_processing_days(processing_time: Optional[str]) -> int:
    """
    Extract the day count from a free-text processing time.

    The first integer wins, so "3-5 working days" yields 3. Text without any
    digits (or None) yields 0.
    """
    if not processing_time:
        return 0
    match = _FIRST_INTEGER.search(processing_time)
    return int(match.group(0)) if match else 0
