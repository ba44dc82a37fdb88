from __future__ import annotations

from datetime import date

from dateutil import parser as date_parser


def parse_au_date(value: str) -> date:
    """
    Parse dates as the portal renders them (day first):
    - "17/10/2023"
    - "17 Oct 2023"
    - "2023-10-17" (ISO is always honoured as year-month-day)
    """
    if value is None:
        raise ValueError("parse_au_date: value is None")
    s = value.strip()
    if not s:
        raise ValueError("parse_au_date: empty string")
    try:
        return date.fromisoformat(s)
    except ValueError:
        pass
    dt = date_parser.parse(s, dayfirst=True, yearfirst=False)
    return dt.date()
