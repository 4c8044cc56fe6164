# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Reporting engine for SMB OpsLedger.

This module computes the read-only financial reports of the application:

1. Cash flow
   ----------
   Paid income and paid expenses over an inclusive date range, their
   per-category breakdowns, and a daily series with one entry per calendar
   day of the range (days without activity are present with zeros).

2. Profit and loss
   ----------------
   Same filtering as the cash flow (paid transactions in range), reported
   as revenue / expenses / profit plus per-category breakdowns.

3. Budget vs. actual
   ------------------
   For every budget whose period overlaps the range, in budget insertion
   order, the paid amount of its category within the range (any
   transaction type) and the variance `budgeted - actual`.

4. Account balances
   -----------------
   All accounts, active or not, and the sum of their balances.

Each report is available as a pure function over in-memory data
(`*_from_frame`, `*_from_records`, `*_from_accounts`) and as a wrapper
that reads the stores (`get_*`). Only transactions whose status is "paid"
contribute to any total; the engine never changes a transaction status.

Aggregation is done on integer cents (pandas int64) and converted to
Decimal once per figure, so totals are exact and equal the sum of their
category breakdowns. An inverted range (start > end) is not an error: it
yields zero totals and an empty daily series.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

import pandas as pd
import structlog

from .accounts import Account, list_accounts
from .budgets import Budget, get_budgets_by_date_range
from .db import DatabaseConfig
from .money import format_amount, from_cents
from .periods import filter_transactions_by_period, ranges_overlap
from .transactions import empty_transactions_frame, load_transactions

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Report objects
# ---------------------------------------------------------------------------


def _amounts_to_dict(amounts: dict[str, Decimal]) -> dict[str, str]:
    return {key: format_amount(value) for key, value in amounts.items()}


@dataclass(frozen=True)
class DailyCashFlow:
    """Paid income and expense of a single calendar day."""

    date: date
    income: Decimal
    expense: Decimal
    net: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "date": self.date.isoformat(),
            "income": format_amount(self.income),
            "expense": format_amount(self.expense),
            "net": format_amount(self.net),
        }


@dataclass(frozen=True)
class CashFlowReport:
    """
    Cash flow over an inclusive date range.

    Invariants: `net_cash_flow == total_income - total_expense`, each total
    equals the sum of its category breakdown, and `daily_cash_flow` holds
    exactly one ascending entry per day of [start, end].
    """

    start: date
    end: date
    total_income: Decimal
    total_expense: Decimal
    net_cash_flow: Decimal
    income_by_category: dict[str, Decimal] = field(default_factory=dict)
    expense_by_category: dict[str, Decimal] = field(default_factory=dict)
    daily_cash_flow: list[DailyCashFlow] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-ready mapping (ISO dates, amounts as decimal strings)."""
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "total_income": format_amount(self.total_income),
            "total_expense": format_amount(self.total_expense),
            "net_cash_flow": format_amount(self.net_cash_flow),
            "income_by_category": _amounts_to_dict(self.income_by_category),
            "expense_by_category": _amounts_to_dict(self.expense_by_category),
            "daily_cash_flow": [day.to_dict() for day in self.daily_cash_flow],
        }


@dataclass(frozen=True)
class ProfitAndLoss:
    """Revenue, expenses and profit over an inclusive date range."""

    start: date
    end: date
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    revenue_by_category: dict[str, Decimal] = field(default_factory=dict)
    expenses_by_category: dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "revenue": format_amount(self.revenue),
            "expenses": format_amount(self.expenses),
            "profit": format_amount(self.profit),
            "revenue_by_category": _amounts_to_dict(self.revenue_by_category),
            "expenses_by_category": _amounts_to_dict(self.expenses_by_category),
        }


@dataclass(frozen=True)
class BudgetVsActualLine:
    """Comparison of one budget against the paid amount of its category."""

    budget_id: int
    name: str | None
    category: str
    budgeted: Decimal
    actual: Decimal
    variance: Decimal

    def to_dict(self) -> dict[str, object]:
        return {
            "budget_id": self.budget_id,
            "name": self.name,
            "category": self.category,
            "budgeted": format_amount(self.budgeted),
            "actual": format_amount(self.actual),
            "variance": format_amount(self.variance),
        }


@dataclass(frozen=True)
class AccountBalances:
    """All accounts and the sum of their balances."""

    total_balance: Decimal
    accounts: list[Account] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "total_balance": format_amount(self.total_balance),
            "accounts": [account.to_dict() for account in self.accounts],
        }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _normalize_frame(transactions: pd.DataFrame) -> pd.DataFrame:
    """
    Return a copy of `transactions` with a day-precision datetime 'date'
    column and int64 'amount_cents'.

    Frames produced by `load_transactions` already satisfy this; the
    conversion lets callers pass hand-built frames with ISO date strings.
    """
    if transactions.empty:
        return empty_transactions_frame()

    df = transactions.copy()
    if not pd.api.types.is_datetime64_any_dtype(df["date"]):
        df["date"] = pd.to_datetime(df["date"])
    df["date"] = df["date"].dt.normalize()
    df["amount_cents"] = df["amount_cents"].astype("int64")
    return df


def _paid_in_range(transactions: pd.DataFrame, start: date, end: date) -> pd.DataFrame:
    df = _normalize_frame(transactions)
    in_range = filter_transactions_by_period(df, start, end)
    return in_range.loc[in_range["status"] == "paid"]


def _sum_cents(frame: pd.DataFrame) -> int:
    return int(frame["amount_cents"].sum())


def _by_category(frame: pd.DataFrame) -> dict[str, Decimal]:
    """Sum amounts per category, in order of first appearance."""
    if frame.empty:
        return {}
    sums = frame.groupby("category", sort=False)["amount_cents"].sum()
    return {str(category): from_cents(int(cents)) for category, cents in sums.items()}


def _daily_cents(frame: pd.DataFrame, days: pd.DatetimeIndex) -> pd.Series:
    """Sum amounts per day, zero-filled over `days`."""
    per_day = frame.groupby("date")["amount_cents"].sum()
    return per_day.reindex(days, fill_value=0).astype("int64")


# ---------------------------------------------------------------------------
# Pure reports
# ---------------------------------------------------------------------------


def cash_flow_from_frame(
    transactions: pd.DataFrame, start: date, end: date
) -> CashFlowReport:
    """
    Compute the cash flow report from a transactions DataFrame.

    Parameters
    ----------
    transactions:
        DataFrame with columns date, type, status, category, amount_cents
        (as returned by `transactions.load_transactions`).
    start, end:
        Inclusive date range. `start == end` yields a single day.

    Returns
    -------
    CashFlowReport
    """
    paid = _paid_in_range(transactions, start, end)
    income = paid.loc[paid["type"] == "income"]
    expense = paid.loc[paid["type"] == "expense"]

    total_income = _sum_cents(income)
    total_expense = _sum_cents(expense)

    daily: list[DailyCashFlow] = []
    if start <= end:
        days = pd.date_range(start=start, end=end, freq="D")
        income_per_day = _daily_cents(income, days)
        expense_per_day = _daily_cents(expense, days)
        for day, income_cents, expense_cents in zip(
            days, income_per_day.tolist(), expense_per_day.tolist()
        ):
            daily.append(
                DailyCashFlow(
                    date=day.date(),
                    income=from_cents(income_cents),
                    expense=from_cents(expense_cents),
                    net=from_cents(income_cents - expense_cents),
                )
            )

    return CashFlowReport(
        start=start,
        end=end,
        total_income=from_cents(total_income),
        total_expense=from_cents(total_expense),
        net_cash_flow=from_cents(total_income - total_expense),
        income_by_category=_by_category(income),
        expense_by_category=_by_category(expense),
        daily_cash_flow=daily,
    )


def profit_and_loss_from_frame(
    transactions: pd.DataFrame, start: date, end: date
) -> ProfitAndLoss:
    """Compute the profit and loss statement from a transactions DataFrame."""
    paid = _paid_in_range(transactions, start, end)
    income = paid.loc[paid["type"] == "income"]
    expense = paid.loc[paid["type"] == "expense"]

    revenue = _sum_cents(income)
    expenses = _sum_cents(expense)

    return ProfitAndLoss(
        start=start,
        end=end,
        revenue=from_cents(revenue),
        expenses=from_cents(expenses),
        profit=from_cents(revenue - expenses),
        revenue_by_category=_by_category(income),
        expenses_by_category=_by_category(expense),
    )


def budget_vs_actual_from_records(
    budgets: list[Budget],
    transactions: pd.DataFrame,
    start: date,
    end: date,
) -> list[BudgetVsActualLine]:
    """
    Compare budgets with the paid amounts of their category.

    Parameters
    ----------
    budgets:
        Candidate budgets, in the order the result should follow. Budgets
        whose period does not overlap [start, end] are skipped.
    transactions:
        Transactions DataFrame (see `cash_flow_from_frame`).
    start, end:
        Inclusive query range. `actual` only counts paid transactions
        dated within this range, whatever the budget's own period.

    Returns
    -------
    list[BudgetVsActualLine]
        One line per overlapping budget, `variance = budgeted - actual`.
    """
    if start > end:
        return []

    paid = _paid_in_range(transactions, start, end)
    actual_by_category = paid.groupby("category")["amount_cents"].sum()

    lines: list[BudgetVsActualLine] = []
    for budget in budgets:
        if not ranges_overlap(budget.period_start, budget.period_end, start, end):
            continue
        actual = from_cents(int(actual_by_category.get(budget.category, 0)))
        lines.append(
            BudgetVsActualLine(
                budget_id=budget.id,
                name=budget.name,
                category=budget.category,
                budgeted=budget.amount,
                actual=actual,
                variance=budget.amount - actual,
            )
        )
    return lines


def account_balances_from_accounts(accounts: list[Account]) -> AccountBalances:
    """Sum the balances of the given accounts (active and inactive)."""
    total = sum((account.balance for account in accounts), Decimal("0.00"))
    return AccountBalances(total_balance=total, accounts=list(accounts))


# ---------------------------------------------------------------------------
# Store-backed reports
# ---------------------------------------------------------------------------


def get_cash_flow(cfg: DatabaseConfig, start: date, end: date) -> CashFlowReport:
    """Cash flow report for [start, end] read from the transaction store."""
    report = cash_flow_from_frame(load_transactions(cfg, start, end), start, end)
    logger.debug(
        "cash_flow_computed",
        start=start.isoformat(),
        end=end.isoformat(),
        net_cash_flow=format_amount(report.net_cash_flow),
    )
    return report


def get_profit_and_loss(cfg: DatabaseConfig, start: date, end: date) -> ProfitAndLoss:
    """Profit and loss statement for [start, end] read from the transaction store."""
    report = profit_and_loss_from_frame(load_transactions(cfg, start, end), start, end)
    logger.debug(
        "profit_and_loss_computed",
        start=start.isoformat(),
        end=end.isoformat(),
        profit=format_amount(report.profit),
    )
    return report


def get_budget_vs_actual(
    cfg: DatabaseConfig, start: date, end: date
) -> list[BudgetVsActualLine]:
    """Budget vs. actual for every budget overlapping [start, end]."""
    if start > end:
        return []
    budgets = get_budgets_by_date_range(cfg, start, end)
    lines = budget_vs_actual_from_records(
        budgets, load_transactions(cfg, start, end), start, end
    )
    logger.debug(
        "budget_vs_actual_computed",
        start=start.isoformat(),
        end=end.isoformat(),
        budgets=len(lines),
    )
    return lines


def get_account_balances(cfg: DatabaseConfig) -> AccountBalances:
    """All accounts (active and inactive) with their total balance."""
    return account_balances_from_accounts(list_accounts(cfg))
