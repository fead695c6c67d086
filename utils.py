"""Utility functions for the Telegram Reply Graph Explorer."""

import math
import re
from datetime import datetime
from typing import Optional, Union

EPOCH = datetime(1970, 1, 1)

_INT_RE = re.compile(r"-?[0-9]+")


def parse_date(date_str: str) -> Optional[datetime]:
    """
    Parse a date string into a datetime object.

    Supports multiple Telegram date formats.

    Args:
        date_str: Date string to parse.

    Returns:
        Parsed datetime or None if unparseable.
    """
    if not date_str:
        return None

    formats = [
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%d",
    ]
    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt)
        except (ValueError, TypeError):
            continue
    return None


def parse_date_or_epoch(date_str: str) -> datetime:
    """Like :func:`parse_date` but falls back to the Unix epoch."""
    return parse_date(date_str) or EPOCH


def to_int(value) -> Optional[int]:
    """
    Coerce a JSON scalar to int.

    Booleans and non-integral floats are rejected; numeric strings are
    accepted since some exporters quote ids.

    Args:
        value: Raw JSON value.

    Returns:
        The integer, or None when *value* is not an integer.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INT_RE.fullmatch(value.strip()):
        return int(value.strip())
    return None


def clean_username(name: str) -> str:
    """
    Clean and normalize a username.

    Args:
        name: Raw username string.

    Returns:
        Cleaned username string.
    """
    if not name:
        return "Unknown"
    return str(name).strip()


def clamp(value: float, low: float, high: float) -> float:
    """Clamp *value* into ``[low, high]``."""
    return max(low, min(high, value))


def reaction_radius(reaction_count: int, low: float = 6.0, high: float = 20.0) -> float:
    """
    Visual node radius for a reaction count.

    Square-root damped so heavily reacted messages grow sublinearly.

    Args:
        reaction_count: Total reactions on the message.
        low: Minimum radius.
        high: Maximum radius.

    Returns:
        Radius in ``[low, high]``.
    """
    return clamp(low + math.sqrt(max(reaction_count, 0)) * 1.5, low, high)


def format_number(n: Union[int, float]) -> str:
    """
    Format a number with thousand separators.

    Args:
        n: Number to format.

    Returns:
        Formatted string, e.g. '1,234,567'.
    """
    return f"{int(n):,}"


def truncate_text(text: str, max_len: int = 100) -> str:
    """
    Truncate text to a maximum length, appending '...' if truncated.

    Args:
        text: Input text.
        max_len: Maximum character length.

    Returns:
        Potentially truncated string.
    """
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[:max_len].rstrip() + "..."
