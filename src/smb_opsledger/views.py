# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for SMB OpsLedger.

This module turns store records and report objects into pandas DataFrames
ready for console display (`DataFrame.to_string`) or CSV export.

Money columns are rendered as fixed two-decimal strings so that no float
conversion happens on the way out.

Statement-like views (profit and loss, cash flow summary) follow a simple
layout:

    display_order, level, line, category, amount

where level 0 rows are totals and level 1 rows are per-category details
listed under their total. display_order is renumbered 10, 20, 30, ...
"""

import pandas as pd

from .accounts import Account
from .budgets import Budget
from .money import format_amount
from .reports import AccountBalances, BudgetVsActualLine, CashFlowReport, ProfitAndLoss
from .transactions import Transaction, TransactionEntry

TRANSACTION_COLUMNS = [
    "id",
    "date",
    "type",
    "status",
    "category",
    "amount",
    "description",
    "due_date",
    "account_id",
    "customer_id",
    "work_order_id",
    "document_ref",
]
ACCOUNT_COLUMNS = ["id", "name", "type", "balance", "is_active", "description"]
BUDGET_COLUMNS = [
    "id",
    "name",
    "category",
    "amount",
    "period_start",
    "period_end",
    "description",
]
ENTRY_COLUMNS = ["id", "transaction_id", "account_id", "amount", "created_at"]
STATEMENT_COLUMNS = ["display_order", "level", "line", "category", "amount"]
DAILY_COLUMNS = ["date", "income", "expense", "net"]
BUDGET_VS_ACTUAL_COLUMNS = [
    "budget_id",
    "name",
    "category",
    "budgeted",
    "actual",
    "variance",
]


def _records_to_dataframe(records: list[dict[str, object]], columns: list[str]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame(records)
    return df[columns]


def _renumber_display_order(
    df: pd.DataFrame, start: int = 10, step: int = 10
) -> pd.DataFrame:
    """Reassign display_order to be strictly sequential: start, start+step, ...
    Preserves the current order of the lines (as it appears in df).
    """
    df = df.reset_index(drop=True)
    df["display_order"] = [start + i * step for i in range(len(df))]
    return df[STATEMENT_COLUMNS]


def _statement_section(label: str, total, by_category: dict) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = [
        {"level": 0, "line": label, "category": "", "amount": format_amount(total)}
    ]
    for category, amount in by_category.items():
        rows.append(
            {
                "level": 1,
                "line": label,
                "category": category,
                "amount": format_amount(amount),
            }
        )
    return rows


# ---------------------------------------------------------------------------
# Store records
# ---------------------------------------------------------------------------


def transactions_to_dataframe(transactions: list[Transaction]) -> pd.DataFrame:
    """One row per transaction, ISO dates and two-decimal amounts."""
    records = []
    for tx in transactions:
        data = tx.to_dict()
        records.append({col: data[col] for col in TRANSACTION_COLUMNS})
    return _records_to_dataframe(records, TRANSACTION_COLUMNS)


def accounts_to_dataframe(accounts: list[Account]) -> pd.DataFrame:
    records = []
    for account in accounts:
        data = account.to_dict()
        records.append({col: data[col] for col in ACCOUNT_COLUMNS})
    return _records_to_dataframe(records, ACCOUNT_COLUMNS)


def budgets_to_dataframe(budgets: list[Budget]) -> pd.DataFrame:
    records = []
    for budget in budgets:
        data = budget.to_dict()
        records.append({col: data[col] for col in BUDGET_COLUMNS})
    return _records_to_dataframe(records, BUDGET_COLUMNS)


def transaction_entries_to_dataframe(entries: list[TransactionEntry]) -> pd.DataFrame:
    records = [entry.to_dict() for entry in entries]
    return _records_to_dataframe(records, ENTRY_COLUMNS)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def cash_flow_summary_to_dataframe(report: CashFlowReport) -> pd.DataFrame:
    """
    Statement-like view of a cash flow report.

    Lines: Income (total then categories), Expense (total then categories),
    Net cash flow.
    """
    rows = _statement_section("Income", report.total_income, report.income_by_category)
    rows += _statement_section(
        "Expense", report.total_expense, report.expense_by_category
    )
    rows.append(
        {
            "level": 0,
            "line": "Net cash flow",
            "category": "",
            "amount": format_amount(report.net_cash_flow),
        }
    )
    return _renumber_display_order(pd.DataFrame(rows))


def cash_flow_daily_to_dataframe(report: CashFlowReport) -> pd.DataFrame:
    """One row per calendar day of the report range, ascending."""
    records = [day.to_dict() for day in report.daily_cash_flow]
    return _records_to_dataframe(records, DAILY_COLUMNS)


def profit_and_loss_to_dataframe(report: ProfitAndLoss) -> pd.DataFrame:
    """
    Statement-like view of a profit and loss report.

    Lines: Revenue (total then categories), Expenses (total then
    categories), Profit.
    """
    rows = _statement_section("Revenue", report.revenue, report.revenue_by_category)
    rows += _statement_section(
        "Expenses", report.expenses, report.expenses_by_category
    )
    rows.append(
        {
            "level": 0,
            "line": "Profit",
            "category": "",
            "amount": format_amount(report.profit),
        }
    )
    return _renumber_display_order(pd.DataFrame(rows))


def budget_vs_actual_to_dataframe(lines: list[BudgetVsActualLine]) -> pd.DataFrame:
    """One row per budget, in the order of the report."""
    records = [line.to_dict() for line in lines]
    return _records_to_dataframe(records, BUDGET_VS_ACTUAL_COLUMNS)


def account_balances_to_dataframe(report: AccountBalances) -> pd.DataFrame:
    """
    Accounts with their balances, followed by a "Total" row.

    The total row has no id and sums every listed account, active or not.
    """
    df = accounts_to_dataframe(report.accounts)
    total_row = pd.DataFrame(
        [
            {
                "id": "",
                "name": "Total",
                "type": "",
                "balance": format_amount(report.total_balance),
                "is_active": "",
                "description": "",
            }
        ],
        columns=ACCOUNT_COLUMNS,
    )
    if df.empty:
        return total_row
    return pd.concat([df, total_row], ignore_index=True)
