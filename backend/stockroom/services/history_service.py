# Overview: Pure filtering of sales/restock history for display.

from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Iterable, Sequence

from stockroom.time_utils import day_end_utc, day_start_utc, parse_iso_date, to_utc_naive, utcnow
from ..validation import ValidationError


def parse_date_bound(value: str | None, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)", details={"field": field})


def filter_history(
    records: Iterable,
    product_name: Callable[[int], str],
    *,
    text: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    tz_name: str = "UTC",
    now: datetime | None = None,
) -> list:
    """
    Filter sale or restock rows for the history tables.

    - text: case-insensitive substring of the customer/supplier name or of
      the resolved product name
    - date_from / date_to: whole calendar days in tz_name, both inclusive
      (00:00:00 of date_from through 23:59:59.999999 of date_to). A missing
      lower bound means no lower bound; a missing upper bound means now.
    - Rows without a timestamp only pass when no date bound is given.
    - Timezone-aware timestamps are compared in UTC like naive ones.

    The input is not modified; order is preserved.
    """
    if date_from and date_to and date_from > date_to:
        raise ValidationError("from must not be after to", details={"from": str(date_from), "to": str(date_to)})

    needle = (text or "").strip().casefold()
    dated = date_from is not None or date_to is not None
    lower = day_start_utc(date_from, tz_name) if date_from else None
    upper = day_end_utc(date_to, tz_name) if date_to else to_utc_naive(now or utcnow())

    kept = []
    for record in records:
        if needle:
            haystacks = (record.party_name or "", product_name(record.product_id))
            if not any(needle in h.casefold() for h in haystacks):
                continue

        if dated:
            ts = to_utc_naive(record.timestamp)
            if ts is None:
                continue
            if lower is not None and ts < lower:
                continue
            if ts > upper:
                continue

        kept.append(record)
    return kept


def display_rows(records: Sequence, product_name: Callable[[int], str]) -> list[dict]:
    """Record dicts with the product name resolved ("Unknown product" for orphans)."""
    return [dict(r.to_dict(), product_name=product_name(r.product_id)) for r in records]
