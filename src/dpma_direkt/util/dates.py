from __future__ import annotations

from datetime import datetime
from typing import Optional

from dateutil import parser as date_parser


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse the dispatch endpoint's `creationTime`. Seen formats:
    - "2026-01-15T10:42:07.123+01:00"
    - "15.01.2026 10:42:07"

    Returns None for empty or unparseable values; the raw string is kept by the caller.
    """
    s = (value or "").strip()
    if not s:
        return None
    try:
        return date_parser.isoparse(s)
    except (ValueError, OverflowError):
        pass
    try:
        # German day-first dates
        return date_parser.parse(s, dayfirst=True)
    except (ValueError, OverflowError):
        return None
