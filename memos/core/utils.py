"""
Core Utilities.

Shared utility functions used across the package.
All modules should import utilities from this module.
"""

import html
import itertools
import random
import re
import string
from datetime import datetime, timezone

_ID_ALPHABET = string.ascii_lowercase + string.digits
_id_counter = itertools.count()
_TAG_RE = re.compile(r"<[^>]+>")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    All datetime values in the application should be timezone-naive
    and assumed to be UTC. This keeps snapshot round-trips exact.

    Returns:
        Current UTC time with tzinfo stripped
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """
    Convert a datetime to the naive-UTC form used throughout the app.

    Aware values (e.g. parsed from ``2024-01-01T09:00:00.000Z``) are shifted
    to UTC and stripped; naive values are assumed to be UTC already.
    """
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def generate_id(prefix: str) -> str:
    """
    Generate a process-unique entity id such as ``memo-1718000000000-k3j9x2a``.

    The millisecond timestamp plus a random suffix keeps ids unique across
    restarts; a process-wide counter is folded into the suffix so two ids
    minted in the same millisecond can never collide.
    """
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"{prefix}-{millis}-{suffix}{next(_id_counter):x}"


def strip_html(markup: str) -> str:
    """Return the plain text of an HTML fragment."""
    text = _TAG_RE.sub("", markup.replace("<br>", "\n").replace("</p>", "\n"))
    return html.unescape(text).strip()


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))
