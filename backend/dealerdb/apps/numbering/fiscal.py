"""
Indian financial-year helpers.

A financial year runs 1 April to 31 March and is written with two-digit
years, e.g. 1 May 2024 falls in "24-25" and 15 Feb 2025 in "24-25" too.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Tuple, Union

FY_START_MONTH = 4

DateLike = Union[date, datetime, str, None]


def _as_date(value: DateLike) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def financial_year_start(value: DateLike = None) -> int:
    d = _as_date(value)
    return d.year if d.month >= FY_START_MONTH else d.year - 1


def financial_year(value: DateLike = None) -> str:
    start = financial_year_start(value)
    return f"{start % 100:02d}-{(start + 1) % 100:02d}"


def _parse(fy: Optional[str]) -> Optional[Tuple[int, int]]:
    if not fy or not isinstance(fy, str) or "-" not in fy:
        return None
    start, _, end = fy.partition("-")
    if not (start.isdigit() and end.isdigit() and len(start) == 2 and len(end) == 2):
        return None
    return 2000 + int(start), 2000 + int(end)


def financial_year_bounds(fy: Optional[str] = None) -> Tuple[date, date]:
    """
    First and last day of a financial year string.

    Anything unparseable falls back to the current financial year.
    """
    if is_valid_financial_year(fy):
        start_year = _parse(fy)[0]
    else:
        start_year = financial_year_start()
    return date(start_year, FY_START_MONTH, 1), date(start_year + 1, FY_START_MONTH - 1, 31)


def is_valid_financial_year(fy: Optional[str]) -> bool:
    parsed = _parse(fy)
    return parsed is not None and parsed[1] == parsed[0] + 1


def upcoming_financial_years(start_year: int, count: int = 5) -> List[str]:
    return [financial_year(date(start_year + i, FY_START_MONTH, 1)) for i in range(count)]
