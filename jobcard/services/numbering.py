from __future__ import annotations

import re
from datetime import date
from typing import Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import Session

from jobcard.models.estimate import Estimate
from jobcard.utils.helpers import today_utc

COUNTER_WIDTH = 5
_COUNTER_RE = re.compile(r"(\d+)$")


def _prefix() -> str:
    try:
        return current_app.config.get("ESTIMATE_NUMBER_PREFIX", "EST")
    except RuntimeError:
        # outside an app context (scripts, pure unit tests)
        return "EST"


def month_prefix(year: int, month: int, prefix: Optional[str] = None) -> str:
    return f"{prefix or _prefix()}-{year:04d}-{month:02d}-"


def format_estimate_number(year: int, month: int, counter: int, prefix: Optional[str] = None) -> str:
    return f"{month_prefix(year, month, prefix)}{counter:0{COUNTER_WIDTH}d}"


def parse_counter(number: Optional[str]) -> int:
    """Trailing counter of an estimate number; 0 when there is none."""
    m = _COUNTER_RE.search(number or "")
    return int(m.group(1)) if m else 0


def generate_estimate_number(session: Session, today: Optional[date] = None) -> str:
    """
    Next EST-YYYY-MM-NNNNN for the month of ``today``.

    Read-then-increment: two concurrent callers can get the same number. The
    unique index on estimates.estimate_number rejects the loser, and
    services.estimates retries allocation.
    """
    today = today or today_utc()
    prefix = month_prefix(today.year, today.month)
    latest = (
        session.query(func.max(Estimate.estimate_number))
        .filter(Estimate.estimate_number.like(f"{prefix}%"))
        .scalar()
    )
    return format_estimate_number(today.year, today.month, parse_counter(latest) + 1)
