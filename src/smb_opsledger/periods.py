# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period helpers for SMB OpsLedger.

This module defines a Period value object and helpers to derive
reporting periods (fiscal year, YTD, MTD, last month, last fiscal year)
from the current fiscal year and CLI arguments, plus the date-range
predicates shared by the stores and the reporting engine.
"""

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

import pandas as pd

from .config import FiscalYear


@dataclass
class Period:
    """Represents a reporting period with a human-readable label."""

    start: date
    end: date
    label: str


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def period_fy(fy: FiscalYear) -> Period:
    """Full current fiscal year."""
    return Period(
        start=fy.start_date,
        end=fy.end_date,
        label=f"Fiscal year {fy.start_date.year}",
    )


def period_ytd(fy: FiscalYear) -> Period:
    """Year-to-date within the fiscal year."""
    today = _today()
    start = fy.start_date
    end = min(max(today, fy.start_date), fy.end_date)
    return Period(start=start, end=end, label="Year to date")


def period_mtd(fy: FiscalYear) -> Period:
    """Month-to-date within the fiscal year."""
    today = _today()

    # Outside the fiscal year: fall back to the full fiscal year.
    if today < fy.start_date or today > fy.end_date:
        return period_fy(fy)

    start = today.replace(day=1)
    return Period(start=start, end=today, label="Month to date")


def period_last_month(fy: FiscalYear) -> Period:
    """Full previous calendar month, clamped to the fiscal year if needed."""
    today = _today()

    if today.month == 1:
        year = today.year - 1
        month = 12
    else:
        year = today.year
        month = today.month - 1

    start = date(year, month, 1)
    end = date(year, month, monthrange(year, month)[1])

    if not ranges_overlap(start, end, fy.start_date, fy.end_date):
        return period_fy(fy)

    return Period(
        start=max(start, fy.start_date),
        end=min(end, fy.end_date),
        label="Last month",
    )


def period_last_fy(fy: FiscalYear) -> Period:
    """
    Previous fiscal year.

    The fiscal year boundaries are shifted back by one year, so a fiscal
    year running from 2025-07-01 to 2026-06-30 gives 2024-07-01 to
    2025-06-30.
    """
    start = _shift_year(fy.start_date, -1)
    end = _shift_year(fy.end_date, -1)
    return Period(
        start=start,
        end=end,
        label=f"Previous fiscal year ({start.year})",
    )


def _shift_year(day: date, years: int) -> date:
    target_year = day.year + years
    last_day = monthrange(target_year, day.month)[1]
    return day.replace(year=target_year, day=min(day.day, last_day))


def period_from_name(name: str, fy: FiscalYear) -> Period:
    """Resolve a predefined period name (fy, ytd, mtd, last-month, last-fy)."""
    if name == "fy":
        return period_fy(fy)
    if name == "ytd":
        return period_ytd(fy)
    if name == "mtd":
        return period_mtd(fy)
    if name == "last-month":
        return period_last_month(fy)
    if name == "last-fy":
        return period_last_fy(fy)
    raise ValueError(f"Unknown period: {name!r}")


def determine_period_from_args(
    args,
    fy: FiscalYear,
    default: str = "fy",
) -> Period:
    """
    Determine the reporting period to use based on CLI args and the fiscal year.

    Priority (highest to lowest):

        1. args.period (fy, ytd, mtd, last-month, last-fy)
        2. args.from_date / args.to_date (custom period)
        3. `default` (the configured [reports].default_period)
    """
    # 1) Predefined period wins over everything else
    if getattr(args, "period", None):
        return period_from_name(args.period, fy)

    # 2) Custom from/to dates
    from_raw: Optional[str] = getattr(args, "from_date", None)
    to_raw: Optional[str] = getattr(args, "to_date", None)

    if from_raw or to_raw:
        start = date.fromisoformat(from_raw) if from_raw else fy.start_date
        end = date.fromisoformat(to_raw) if to_raw else fy.end_date

        if end < start:
            raise ValueError("Custom period end date cannot be before start date.")

        label = f"Custom period ({start} → {end})"
        return Period(start=start, end=end, label=label)

    # 3) Configured default
    return period_from_name(default, fy)


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """
    Return True if the inclusive ranges [start_a, end_a] and [start_b, end_b]
    share at least one day.

    This covers every overlap case: either boundary of A falling inside B,
    or A spanning the whole of B.
    """
    return start_a <= end_b and end_a >= start_b


def filter_transactions_by_period(
    transactions: pd.DataFrame, start: date, end: date
) -> pd.DataFrame:
    """
    Filter a transactions DataFrame to keep only rows dated within [start, end].

    The `transactions` DataFrame is expected to contain a 'date' column of type
    datetime64[ns] (as produced by `transactions.load_transactions`).

    Parameters
    ----------
    transactions:
        DataFrame with at least a 'date' column.
    start, end:
        Inclusive boundaries. If start > end the result is empty.

    Returns
    -------
    pandas.DataFrame
        Filtered copy containing only rows within the period.
    """
    mask = (transactions["date"] >= pd.Timestamp(start)) & (
        transactions["date"] <= pd.Timestamp(end)
    )
    return transactions.loc[mask].copy()
