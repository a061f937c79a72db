"""BAS quarter calendar utilities."""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Dict, Iterator, Optional, Tuple

from clinic_bas.models import QuarterRange

logger = logging.getLogger(__name__)

QUARTERS = ("Q1", "Q2", "Q3", "Q4")

# Australian financial year, July to June.
FINANCIAL_YEAR_MONTHS: Dict[str, Tuple[int, int, int]] = {
    "Q1": (7, 8, 9),
    "Q2": (10, 11, 12),
    "Q3": (1, 2, 3),
    "Q4": (4, 5, 6),
}

CALENDAR_YEAR_MONTHS: Dict[str, Tuple[int, int, int]] = {
    "Q1": (1, 2, 3),
    "Q2": (4, 5, 6),
    "Q3": (7, 8, 9),
    "Q4": (10, 11, 12),
}


def is_financial_year(financial_year_start: str) -> bool:
    return str(financial_year_start).strip().lower() == "july"


def resolve_quarter(quarter: str, year: int, financial_year_start: str = "July") -> Optional[QuarterRange]:
    """Return the inclusive date range of ``quarter`` for the reporting ``year``.

    Under the July start, ``year`` names the July that opens the financial
    year, so Q3 and Q4 fall in the following calendar year. Any start other
    than July is treated as a calendar year. Unknown quarter labels give ``None``.
    """
    key = str(quarter).strip().upper()
    financial = is_financial_year(financial_year_start)
    months = (FINANCIAL_YEAR_MONTHS if financial else CALENDAR_YEAR_MONTHS).get(key)
    if months is None:
        logger.warning("Unknown BAS quarter %r", quarter)
        return None

    year = int(year)
    calendar_year = year + 1 if financial and key in ("Q3", "Q4") else year
    start = date(calendar_year, months[0], 1)
    last_day = calendar.monthrange(calendar_year, months[-1])[1]
    end = date(calendar_year, months[-1], last_day)
    return QuarterRange(quarter=key, year=year, start=start, end=end, months=months)


def iter_quarters(year: int, financial_year_start: str = "July") -> Iterator[QuarterRange]:
    """Yield the four quarters of the reporting year in order."""
    for quarter in QUARTERS:
        period = resolve_quarter(quarter, year, financial_year_start)
        if period is not None:
            yield period


def quarter_for_date(target: date, financial_year_start: str = "July") -> QuarterRange:
    """Return the quarter, labelled by reporting year, that contains ``target``."""
    if is_financial_year(financial_year_start):
        year = target.year if target.month >= 7 else target.year - 1
    else:
        year = target.year
    for period in iter_quarters(year, financial_year_start):
        if period.contains(target):
            return period
    raise ValueError(f"No quarter contains {target.isoformat()}")
