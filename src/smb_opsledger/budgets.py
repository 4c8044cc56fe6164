# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Budget store for SMB OpsLedger.

A budget is a target amount for one transaction category over an inclusive
date range [period_start, period_end]. Budgets are only read by the
reporting engine (budget vs. actual); transaction activity never changes
them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

import structlog

from .db import (
    TRANSACTION_CATEGORIES,
    DatabaseConfig,
    check_choice,
    connect,
    init_database,
    now_utc_iso,
    parse_optional_datetime,
    to_iso_date,
)
from .money import AmountLike, format_amount, from_cents, positive_cents

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Budget:
    """A category budget over an inclusive date range."""

    id: int
    name: str | None
    category: str
    amount: Decimal
    period_start: date
    period_end: date
    description: str | None
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "amount": format_amount(self.amount),
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class NewBudget:
    """Data required to create a budget."""

    category: str
    amount: AmountLike
    period_start: date
    period_end: date
    name: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class BudgetUpdate:
    """
    Fields that can be updated on an existing budget.

    Only non-None values are applied. When one period boundary changes, the
    resulting range is validated against the stored other boundary.
    """

    name: str | None = None
    category: str | None = None
    amount: AmountLike | None = None
    period_start: date | None = None
    period_end: date | None = None
    description: str | None = None


_BUDGET_COLUMNS = """
    id,
    name,
    category,
    amount_cents,
    period_start,
    period_end,
    description,
    created_at,
    updated_at
"""


def _row_to_budget(row: tuple) -> Budget:
    (
        budget_id,
        name,
        category,
        amount_cents,
        period_start_str,
        period_end_str,
        description,
        created_at_str,
        updated_at_str,
    ) = row

    return Budget(
        id=budget_id,
        name=name,
        category=category,
        amount=from_cents(amount_cents),
        period_start=date.fromisoformat(period_start_str),
        period_end=date.fromisoformat(period_end_str),
        description=description,
        created_at=parse_optional_datetime(created_at_str),
        updated_at=parse_optional_datetime(updated_at_str),
    )


def _check_period(start_iso: str, end_iso: str) -> None:
    if end_iso < start_iso:
        raise ValueError(
            f"Budget period_end ({end_iso}) cannot be before period_start ({start_iso})."
        )


def _select_budgets(cfg: DatabaseConfig, where_sql: str, params: tuple) -> list[Budget]:
    init_database(cfg)

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_BUDGET_COLUMNS} FROM budgets {where_sql} ORDER BY id ASC;",
            params,
        )
        rows = cur.fetchall()
    finally:
        conn.close()

    return [_row_to_budget(row) for row in rows]


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


def get_budget(cfg: DatabaseConfig, budget_id: int) -> Budget | None:
    """Load a single budget by id, or None if it does not exist."""
    budgets = _select_budgets(cfg, "WHERE id = ?", (budget_id,))
    return budgets[0] if budgets else None


def list_budgets(cfg: DatabaseConfig) -> list[Budget]:
    """List all budgets in insertion order."""
    return _select_budgets(cfg, "", ())


def get_budgets_by_category(cfg: DatabaseConfig, category: str) -> list[Budget]:
    return _select_budgets(cfg, "WHERE category = ?", (category,))


def get_budgets_by_date_range(cfg: DatabaseConfig, start: date, end: date) -> list[Budget]:
    """
    Budgets whose period overlaps [start, end].

    A budget is included when its start or its end falls inside the range,
    or when it spans the whole range.

    An inverted range (start > end) is treated as empty and returns no
    budgets, even for a budget whose period covers both dates. This keeps
    the lookup consistent with the reports, which return no budget lines
    for an inverted range.
    """
    return _select_budgets(
        cfg,
        "WHERE period_start <= ? AND period_end >= ? AND ? <= ?",
        (
            to_iso_date(end),
            to_iso_date(start),
            to_iso_date(start),
            to_iso_date(end),
        ),
    )


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------


def create_budget(cfg: DatabaseConfig, new_budget: NewBudget) -> Budget:
    """
    Insert a new budget.

    Raises
    ------
    ValueError
        If the category is unknown, the amount is not strictly positive,
        or period_end is before period_start.
    """
    check_choice(new_budget.category, TRANSACTION_CATEGORIES, "budget category")
    amount_cents = positive_cents(new_budget.amount, field="budget amount")
    start_iso = to_iso_date(new_budget.period_start)
    end_iso = to_iso_date(new_budget.period_end)
    _check_period(start_iso, end_iso)

    init_database(cfg)
    now_iso = now_utc_iso()

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO budgets (
                name,
                category,
                amount_cents,
                period_start,
                period_end,
                description,
                created_at,
                updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                new_budget.name,
                new_budget.category,
                amount_cents,
                start_iso,
                end_iso,
                new_budget.description,
                now_iso,
                now_iso,
            ),
        )
        budget_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    logger.info("budget_created", budget_id=budget_id, category=new_budget.category)

    result = get_budget(cfg, budget_id)
    if result is None:
        msg = f"Budget #{budget_id} was just inserted but could not be reloaded."
        raise RuntimeError(msg)
    return result


def update_budget(
    cfg: DatabaseConfig,
    budget_id: int,
    update: BudgetUpdate,
) -> Budget | None:
    """
    Apply a partial update to an existing budget.

    Returns
    -------
    Budget | None
        The updated budget, or None if no budget has this id.

    Raises
    ------
    ValueError
        If no fields are provided or a provided value is invalid.
    """
    fields: list[str] = []
    params: list[object] = []

    if update.name is not None:
        fields.append("name = ?")
        params.append(update.name)
    if update.category is not None:
        fields.append("category = ?")
        params.append(
            check_choice(update.category, TRANSACTION_CATEGORIES, "budget category")
        )
    if update.amount is not None:
        fields.append("amount_cents = ?")
        params.append(positive_cents(update.amount, field="budget amount"))
    if update.period_start is not None:
        fields.append("period_start = ?")
        params.append(to_iso_date(update.period_start))
    if update.period_end is not None:
        fields.append("period_end = ?")
        params.append(to_iso_date(update.period_end))
    if update.description is not None:
        fields.append("description = ?")
        params.append(update.description)

    if not fields:
        raise ValueError("No fields to update in BudgetUpdate.")

    existing = get_budget(cfg, budget_id)
    if existing is None:
        return None

    start = update.period_start if update.period_start is not None else existing.period_start
    end = update.period_end if update.period_end is not None else existing.period_end
    _check_period(to_iso_date(start), to_iso_date(end))

    fields.append("updated_at = ?")
    params.append(now_utc_iso())
    params.append(budget_id)

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"""
            UPDATE budgets
               SET {", ".join(fields)}
             WHERE id = ?;
            """,
            params,
        )
        found = cur.rowcount > 0
        conn.commit()
    finally:
        conn.close()

    if not found:
        return None

    logger.info("budget_updated", budget_id=budget_id)
    return get_budget(cfg, budget_id)


def delete_budget(cfg: DatabaseConfig, budget_id: int) -> bool:
    """
    Delete a budget.

    Returns
    -------
    bool
        True if a budget was deleted, False if the id was unknown.
    """
    init_database(cfg)

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute("DELETE FROM budgets WHERE id = ?;", (budget_id,))
        deleted = cur.rowcount > 0
        conn.commit()
    finally:
        conn.close()

    if deleted:
        logger.info("budget_deleted", budget_id=budget_id)
    return deleted
