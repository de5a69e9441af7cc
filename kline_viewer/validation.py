"""
Input validation for detail-view requests.

Everything here runs before a single request reaches the backend.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional

from .errors import MalformedInput
from .models import DateRange, DetailRequest

logger = logging.getLogger(__name__)

TS_CODE_PATTERN = re.compile(r'^[0-9A-Z]+(\.[A-Z]+)?$')


def parse_date(value: str, field: str) -> date:
    """Parse a YYYY-MM-DD string."""
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (ValueError, AttributeError):
        raise MalformedInput(f"Invalid date for {field}: {value!r}, expected YYYY-MM-DD",
                             field=field)


def validate_ts_code(value: Optional[str]) -> str:
    """Validate and normalize an instrument code such as 000001.SZ."""
    if value is None or not value.strip():
        raise MalformedInput("Instrument code must not be empty", field="tsCode")
    value = value.strip().upper()
    if not TS_CODE_PATTERN.match(value):
        raise MalformedInput(f"Invalid instrument code: {value}", field="tsCode")
    return value


def validate_date_range(start: Optional[str], end: Optional[str],
                        today: Optional[date] = None,
                        default_days: int = 365) -> DateRange:
    """Build a DateRange, filling defaults and rejecting start > end.

    A missing end defaults to today, a missing start to `default_days`
    before the end.
    """
    today = today or date.today()
    end_date = parse_date(end, "endDate") if end else today
    start_date = (parse_date(start, "startDate") if start
                  else end_date - timedelta(days=default_days))

    if start_date > end_date:
        logger.warning(f"Rejected date range {start_date} > {end_date}")
        raise MalformedInput("Start date must not be after end date",
                             field="startDate",
                             start_date=start_date.isoformat(),
                             end_date=end_date.isoformat())

    return DateRange(start_date=start_date, end_date=end_date)


def validate_detail_request(ts_code: Optional[str], start: Optional[str],
                            end: Optional[str], today: Optional[date] = None,
                            default_days: int = 365) -> DetailRequest:
    """Validate the navigation parameters of the detail view."""
    return DetailRequest(
        ts_code=validate_ts_code(ts_code),
        date_range=validate_date_range(start, end, today=today,
                                       default_days=default_days),
    )
