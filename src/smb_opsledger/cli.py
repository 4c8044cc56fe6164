# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for SMB OpsLedger.

This module wires together the building blocks of the financial module:

- global configuration (fiscal year, database, finance/report/display
  options),
- structured logging,
- the service layer (accounts, transactions, budgets, reports),
- CSV import and view helpers (tabular rendering, CSV export).

The CLI is intentionally thin: it does not implement financial logic
itself. It parses arguments, calls `finance_service`, and renders the
result as a console table, JSON document or CSV file.


Commands
--------

    accounts      list | show | create | update | delete |
                  balance | set-balance | balances
    transactions  list | show | create | update | delete | mark-paid |
                  payable | receivable | import | post | entries
    budgets       list | show | create | update | delete
    reports       cash-flow | profit-and-loss | budget-vs-actual |
                  account-balances

Reporting period
----------------

Commands working on a period (`transactions list`, `reports ...`) accept:

    --period {fy,ytd,mtd,last-month,last-fy}
    --from-date YYYY-MM-DD
    --to-date   YYYY-MM-DD

A predefined period wins over custom dates. Without any of them the
[reports].default_period from the configuration is used.

Output format
-------------

`--format table|json|csv` overrides [display].mode. JSON output contains
ISO dates and amounts as decimal strings. CSV files are written to
[display].output_dir (or `--output`).

Examples
--------

    python -m smb_opsledger.cli accounts create --name "Main bank" --type checking
    python -m smb_opsledger.cli accounts balance 1 150.00
    python -m smb_opsledger.cli transactions import data/transactions.csv
    python -m smb_opsledger.cli reports cash-flow --from-date 2025-01-01 \\
        --to-date 2025-01-31 --format json
"""

import argparse
import json
from datetime import date
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import structlog

from . import __version__
from .accounts import AccountUpdate, NewAccount
from .budgets import BudgetUpdate, NewBudget
from .config import (
    BALANCE_UPDATE_MODES,
    DISPLAY_MODES,
    LOG_LEVELS,
    REPORT_PERIODS,
    AppConfig,
    load_app_config,
)
from .db import (
    ACCOUNT_TYPES,
    TRANSACTION_CATEGORIES,
    TRANSACTION_STATUSES,
    TRANSACTION_TYPES,
    has_transactions,
    init_database,
)
from .finance_service import (
    account_balances,
    apply_balance_update,
    budget_vs_actual_for_period,
    cash_flow_for_period,
    create_account,
    create_budget,
    create_transaction,
    delete_account,
    delete_budget,
    delete_transaction,
    get_account,
    get_accounts_payable,
    get_accounts_receivable,
    get_budget,
    get_transaction,
    get_transaction_entries,
    list_accounts,
    list_budgets,
    list_transactions_for_period,
    mark_transaction_paid,
    post_transaction_to_account,
    profit_and_loss_for_period,
    update_account,
    update_budget,
    update_transaction,
)
from .io import import_transactions, read_transactions_csv, write_csv
from .logging_config import configure_from_app_config
from .periods import Period, determine_period_from_args
from .transactions import NewTransaction, TransactionsFilter, TransactionUpdate
from .views import (
    account_balances_to_dataframe,
    accounts_to_dataframe,
    budget_vs_actual_to_dataframe,
    budgets_to_dataframe,
    cash_flow_daily_to_dataframe,
    cash_flow_summary_to_dataframe,
    profit_and_loss_to_dataframe,
    transaction_entries_to_dataframe,
    transactions_to_dataframe,
)

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_period_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--period",
        choices=list(REPORT_PERIODS),
        help=(
            "Predefined reporting period. "
            "One of: fy, ytd, mtd, last-month, last-fy. "
            "If not provided, [reports].default_period from config is used."
        ),
    )
    parser.add_argument(
        "--from-date",
        dest="from_date",
        help=(
            "Custom period start date (YYYY-MM-DD). If provided without "
            "--to-date, the fiscal year end_date from config is used."
        ),
    )
    parser.add_argument(
        "--to-date",
        dest="to_date",
        help=(
            "Custom period end date (YYYY-MM-DD). If provided without "
            "--from-date, the fiscal year start_date from config is used."
        ),
    )


def _add_output_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=list(DISPLAY_MODES),
        help=(
            "Override the display.mode setting from the configuration file. "
            "'table' prints to stdout, 'json' prints a JSON document, "
            "'csv' writes a CSV file."
        ),
    )
    parser.add_argument(
        "--output",
        dest="output_dir",
        help=(
            "Output directory for CSV files. "
            "If omitted, [display].output_dir from config is used."
        ),
    )


def _add_transaction_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--type", choices=list(TRANSACTION_TYPES), required=required)
    parser.add_argument(
        "--category", choices=list(TRANSACTION_CATEGORIES), required=required
    )
    parser.add_argument(
        "--amount",
        required=required,
        help="Strictly positive amount with at most two decimals (e.g. 120.50).",
    )
    parser.add_argument(
        "--date", dest="tx_date", required=required, help="Transaction date (YYYY-MM-DD)."
    )
    parser.add_argument("--description", required=required)
    parser.add_argument("--status", choices=list(TRANSACTION_STATUSES))
    parser.add_argument("--due-date", dest="due_date", help="Due date (YYYY-MM-DD).")
    parser.add_argument("--account-id", dest="account_id", type=int)
    parser.add_argument("--customer-id", dest="customer_id", type=int)
    parser.add_argument("--work-order-id", dest="work_order_id", type=int)
    parser.add_argument("--notes")
    parser.add_argument(
        "--document-ref", dest="document_ref", help="Invoice or receipt number."
    )


def _add_budget_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument(
        "--category", choices=list(TRANSACTION_CATEGORIES), required=required
    )
    parser.add_argument("--amount", required=required, help="Target amount.")
    parser.add_argument(
        "--start", dest="period_start", required=required, help="Period start (YYYY-MM-DD)."
    )
    parser.add_argument(
        "--end", dest="period_end", required=required, help="Period end (YYYY-MM-DD)."
    )
    parser.add_argument("--name")
    parser.add_argument("--description")


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="smb-opsledger",
        description=(
            "SMB OpsLedger - Operations & Finance back office for SMBs. "
            "Manages financial accounts, income/expense transactions and "
            "budgets, and renders cash flow, profit and loss, budget vs. "
            "actual and account balance reports."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of smb_opsledger and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'smb_opsledger_config.toml' in the current directory "
            "is used."
        ),
    )
    ap.add_argument(
        "--log-level",
        dest="log_level",
        choices=list(LOG_LEVELS),
        help="Override the [logging].level setting from the configuration file.",
    )

    subparsers = ap.add_subparsers(
        dest="command",
        metavar="command",
        help="One of: accounts, transactions, budgets, reports.",
    )

    # ------------------------------------------------------------------
    # accounts
    # ------------------------------------------------------------------
    accounts_parser = subparsers.add_parser(
        "accounts", help="Manage financial accounts and their balances."
    )
    accounts_sub = accounts_parser.add_subparsers(
        dest="accounts_command", metavar="accounts-command"
    )

    p = accounts_sub.add_parser("list", help="List accounts.")
    p.add_argument(
        "--active-only",
        dest="active_only",
        action="store_true",
        help="Hide inactive accounts.",
    )
    _add_output_arguments(p)

    p = accounts_sub.add_parser("show", help="Show a single account.")
    p.add_argument("account_id", type=int)
    _add_output_arguments(p)

    p = accounts_sub.add_parser("create", help="Create an account (balance 0).")
    p.add_argument("--name", required=True)
    p.add_argument("--type", choices=list(ACCOUNT_TYPES), required=True)
    p.add_argument("--description")

    p = accounts_sub.add_parser("update", help="Update account fields.")
    p.add_argument("account_id", type=int)
    p.add_argument("--name")
    p.add_argument("--type", choices=list(ACCOUNT_TYPES))
    p.add_argument("--description")
    active_group = p.add_mutually_exclusive_group()
    active_group.add_argument(
        "--active", dest="is_active", action="store_const", const=True, default=None
    )
    active_group.add_argument(
        "--inactive", dest="is_active", action="store_const", const=False
    )

    p = accounts_sub.add_parser("delete", help="Delete an account.")
    p.add_argument("account_id", type=int)

    p = accounts_sub.add_parser(
        "balance",
        help=(
            "Update an account balance. The amount is a delta or the new "
            "balance depending on --mode / [finance].balance_update_mode."
        ),
    )
    p.add_argument("account_id", type=int)
    p.add_argument("amount")
    p.add_argument("--mode", choices=list(BALANCE_UPDATE_MODES))

    p = accounts_sub.add_parser(
        "set-balance", help="Replace an account balance with an absolute value."
    )
    p.add_argument("account_id", type=int)
    p.add_argument("amount")

    p = accounts_sub.add_parser(
        "balances", help="Show every account and the total balance."
    )
    _add_output_arguments(p)

    # ------------------------------------------------------------------
    # transactions
    # ------------------------------------------------------------------
    tx_parser = subparsers.add_parser(
        "transactions", help="Manage income and expense transactions."
    )
    tx_sub = tx_parser.add_subparsers(
        dest="transactions_command", metavar="transactions-command"
    )

    p = tx_sub.add_parser("list", help="List transactions for a reporting period.")
    _add_period_arguments(p)
    p.add_argument("--type", choices=list(TRANSACTION_TYPES))
    p.add_argument(
        "--status",
        dest="statuses",
        action="append",
        choices=list(TRANSACTION_STATUSES),
        help="Filter by status (repeatable).",
    )
    p.add_argument("--category", choices=list(TRANSACTION_CATEGORIES))
    p.add_argument("--customer-id", dest="customer_id", type=int)
    p.add_argument("--work-order-id", dest="work_order_id", type=int)
    p.add_argument("--account-id", dest="account_id", type=int)
    p.add_argument(
        "--description-contains",
        dest="description_contains",
        help="Case-insensitive substring to search in the description.",
    )
    p.add_argument("--limit", type=int)
    p.add_argument("--offset", type=int, default=0)
    p.add_argument(
        "--order-by",
        dest="order_by",
        choices=["id", "date", "amount", "category"],
        default="date",
    )
    p.add_argument(
        "--order-direction",
        dest="order_direction",
        choices=["asc", "desc", "ASC", "DESC"],
        default="asc",
    )
    _add_output_arguments(p)

    p = tx_sub.add_parser("show", help="Show a single transaction.")
    p.add_argument("transaction_id", type=int)
    _add_output_arguments(p)

    p = tx_sub.add_parser("create", help="Create a transaction.")
    _add_transaction_fields(p, required=True)

    p = tx_sub.add_parser("update", help="Update transaction fields.")
    p.add_argument("transaction_id", type=int)
    _add_transaction_fields(p, required=False)

    p = tx_sub.add_parser("delete", help="Delete a transaction.")
    p.add_argument("transaction_id", type=int)

    p = tx_sub.add_parser("mark-paid", help="Set a transaction status to paid.")
    p.add_argument("transaction_id", type=int)

    p = tx_sub.add_parser("payable", help="Pending or overdue expenses.")
    _add_output_arguments(p)

    p = tx_sub.add_parser("receivable", help="Pending or overdue income.")
    _add_output_arguments(p)

    p = tx_sub.add_parser("import", help="Import transactions from a CSV file.")
    p.add_argument("csv_path", metavar="CSV_PATH")

    p = tx_sub.add_parser(
        "post", help="Apply a paid transaction to an account balance."
    )
    p.add_argument("transaction_id", type=int)
    p.add_argument(
        "--account-id",
        dest="account_id",
        type=int,
        help="Target account. Defaults to the account linked to the transaction.",
    )

    p = tx_sub.add_parser("entries", help="List the postings of a transaction.")
    p.add_argument("transaction_id", type=int)
    _add_output_arguments(p)

    # ------------------------------------------------------------------
    # budgets
    # ------------------------------------------------------------------
    budgets_parser = subparsers.add_parser("budgets", help="Manage category budgets.")
    budgets_sub = budgets_parser.add_subparsers(
        dest="budgets_command", metavar="budgets-command"
    )

    p = budgets_sub.add_parser("list", help="List budgets.")
    _add_output_arguments(p)

    p = budgets_sub.add_parser("show", help="Show a single budget.")
    p.add_argument("budget_id", type=int)
    _add_output_arguments(p)

    p = budgets_sub.add_parser("create", help="Create a budget.")
    _add_budget_fields(p, required=True)

    p = budgets_sub.add_parser("update", help="Update budget fields.")
    p.add_argument("budget_id", type=int)
    _add_budget_fields(p, required=False)

    p = budgets_sub.add_parser("delete", help="Delete a budget.")
    p.add_argument("budget_id", type=int)

    # ------------------------------------------------------------------
    # reports
    # ------------------------------------------------------------------
    reports_parser = subparsers.add_parser("reports", help="Financial reports.")
    reports_sub = reports_parser.add_subparsers(
        dest="reports_command", metavar="reports-command"
    )

    p = reports_sub.add_parser("cash-flow", help="Paid income and expenses.")
    _add_period_arguments(p)
    p.add_argument(
        "--daily",
        action="store_true",
        help="Table/CSV output: render the daily series instead of the summary.",
    )
    _add_output_arguments(p)

    p = reports_sub.add_parser("profit-and-loss", help="Revenue, expenses, profit.")
    _add_period_arguments(p)
    _add_output_arguments(p)

    p = reports_sub.add_parser(
        "budget-vs-actual", help="Budgets compared with paid amounts."
    )
    _add_period_arguments(p)
    _add_output_arguments(p)

    p = reports_sub.add_parser(
        "account-balances", help="Every account and the total balance."
    )
    _add_output_arguments(p)

    return ap


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an optional CLI date argument (YYYY-MM-DD).

    Raises
    ------
    SystemExit
        If the date format is invalid.
    """
    if value is None:
        return None

    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        msg = f"Invalid date format: {value!r}. Expected YYYY-MM-DD."
        raise SystemExit(msg) from exc


def _not_found(kind: str, record_id: int) -> SystemExit:
    return SystemExit(f"{kind} #{record_id} not found.")


def _resolve_period(args: argparse.Namespace, config: AppConfig) -> Period:
    try:
        return determine_period_from_args(
            args, config.fiscal_year, default=config.default_period
        )
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc


def _print_period(period: Period) -> None:
    print(
        f"Applied period: {period.label} "
        f"({period.start.isoformat()} → {period.end.isoformat()})"
    )


def _render(
    args: argparse.Namespace,
    config: AppConfig,
    df: pd.DataFrame,
    payload: Any,
    stem: str,
    *,
    title: Optional[str] = None,
    period: Optional[Period] = None,
) -> None:
    """
    Render a result according to the selected output format.

    - table: optional title/period header, then the DataFrame.
    - json:  `payload` dumped as JSON (nothing else is printed).
    - csv:   the DataFrame written to the output directory.
    """
    output_format = getattr(args, "output_format", None) or config.display_mode

    if output_format == "json":
        print(json.dumps(payload, indent=2))
        return

    if output_format == "csv":
        output_dir = (
            Path(args.output_dir)
            if getattr(args, "output_dir", None)
            else config.output_dir
        )
        path = write_csv(df, output_dir, stem)
        print(f"Wrote {path} ({len(df)} rows)")
        return

    if period is not None:
        _print_period(period)
    if title:
        print()
        print(f"=== {title} ===")
    if df.empty:
        print("No rows found for the given criteria.")
        return
    print(df.to_string(index=False))


def _print_record(data: dict[str, Any]) -> None:
    width = max(len(key) for key in data) + 1
    for key, value in data.items():
        display = "" if value is None else value
        print(f"  {key + ':':<{width}} {display}")


def _show(args: argparse.Namespace, config: AppConfig, label: str, data: dict) -> None:
    output_format = getattr(args, "output_format", None) or config.display_mode
    if output_format == "json":
        print(json.dumps(data, indent=2))
        return
    print(f"{label}:")
    _print_record(data)


# ---------------------------------------------------------------------------
# accounts
# ---------------------------------------------------------------------------


def _handle_accounts_command(args: argparse.Namespace, config: AppConfig) -> None:
    """Dispatch function for the 'accounts' subcommands."""
    subcmd = getattr(args, "accounts_command", None)

    if subcmd == "list":
        accounts = list_accounts(config, active_only=args.active_only)
        _render(
            args,
            config,
            accounts_to_dataframe(accounts),
            [a.to_dict() for a in accounts],
            "accounts",
            title="Accounts",
        )
    elif subcmd == "show":
        account = get_account(config, args.account_id)
        if account is None:
            raise _not_found("Account", args.account_id)
        _show(args, config, f"Account #{account.id}", account.to_dict())
    elif subcmd == "create":
        account = create_account(
            config,
            NewAccount(name=args.name, type=args.type, description=args.description),
        )
        print(f"Created account #{account.id} ({account.name}).")
    elif subcmd == "update":
        account = update_account(
            config,
            args.account_id,
            AccountUpdate(
                name=args.name,
                type=args.type,
                description=args.description,
                is_active=args.is_active,
            ),
        )
        if account is None:
            raise _not_found("Account", args.account_id)
        print(f"Updated account #{account.id}.")
    elif subcmd == "delete":
        if not delete_account(config, args.account_id):
            raise _not_found("Account", args.account_id)
        print(f"Deleted account #{args.account_id}.")
    elif subcmd == "balance":
        account = apply_balance_update(config, args.account_id, args.amount, args.mode)
        if account is None:
            raise _not_found("Account", args.account_id)
        print(f"Account #{account.id} balance: {account.balance:.2f} {config.currency}")
    elif subcmd == "set-balance":
        account = apply_balance_update(
            config, args.account_id, args.amount, mode="absolute"
        )
        if account is None:
            raise _not_found("Account", args.account_id)
        print(f"Account #{account.id} balance: {account.balance:.2f} {config.currency}")
    elif subcmd == "balances":
        _render_account_balances(args, config)
    else:
        print(
            "No accounts subcommand specified. "
            "Available subcommands are: 'list', 'show', 'create', 'update', "
            "'delete', 'balance', 'set-balance', 'balances'."
        )


def _render_account_balances(args: argparse.Namespace, config: AppConfig) -> None:
    report = account_balances(config)
    _render(
        args,
        config,
        account_balances_to_dataframe(report),
        report.to_dict(),
        "account_balances",
        title=f"Account balances ({config.currency})",
    )


# ---------------------------------------------------------------------------
# transactions
# ---------------------------------------------------------------------------


def _transaction_update_from_args(args: argparse.Namespace) -> TransactionUpdate:
    return TransactionUpdate(
        type=args.type,
        status=args.status,
        category=args.category,
        amount=args.amount,
        description=args.description,
        date=_parse_optional_date(args.tx_date),
        due_date=_parse_optional_date(args.due_date),
        account_id=args.account_id,
        customer_id=args.customer_id,
        work_order_id=args.work_order_id,
        notes=args.notes,
        document_ref=args.document_ref,
    )


def _handle_transactions_list(args: argparse.Namespace, config: AppConfig) -> None:
    """
    Handle the 'transactions list' subcommand: list transactions for a period
    with optional filters.
    """
    period = _resolve_period(args, config)

    extra_filters = TransactionsFilter(
        type=args.type,
        statuses=tuple(args.statuses) if args.statuses else None,
        category=args.category,
        customer_id=args.customer_id,
        work_order_id=args.work_order_id,
        account_id=args.account_id,
        description_contains=args.description_contains,
    )

    transactions = list_transactions_for_period(
        config,
        period,
        extra_filters=extra_filters,
        limit=args.limit,
        offset=args.offset,
        order_by=(args.order_by, args.order_direction.upper()),
    )

    _render(
        args,
        config,
        transactions_to_dataframe(transactions),
        [t.to_dict() for t in transactions],
        "transactions",
        period=period,
    )


def _handle_transactions_import(args: argparse.Namespace, config: AppConfig) -> None:
    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        raise SystemExit(f"CSV file for import not found: {csv_path}")

    print(f"Importing transactions from {csv_path} into the database...")
    df_import = read_transactions_csv(csv_path)
    stats = import_transactions(df_import, config.database)
    print(
        f"Imported {stats.rows_inserted} transactions "
        f"({stats.income_rows} income, {stats.expense_rows} expense)."
    )


def _handle_transactions_command(args: argparse.Namespace, config: AppConfig) -> None:
    """Dispatch function for the 'transactions' subcommands."""
    subcmd = getattr(args, "transactions_command", None)

    if subcmd == "list":
        _handle_transactions_list(args, config)
    elif subcmd == "show":
        tx = get_transaction(config, args.transaction_id)
        if tx is None:
            raise _not_found("Transaction", args.transaction_id)
        _show(args, config, f"Transaction #{tx.id}", tx.to_dict())
    elif subcmd == "create":
        tx = create_transaction(
            config,
            NewTransaction(
                type=args.type,
                category=args.category,
                amount=args.amount,
                date=_parse_optional_date(args.tx_date),
                description=args.description,
                status=args.status or "pending",
                due_date=_parse_optional_date(args.due_date),
                account_id=args.account_id,
                customer_id=args.customer_id,
                work_order_id=args.work_order_id,
                notes=args.notes,
                document_ref=args.document_ref,
            ),
        )
        print(f"Created transaction #{tx.id} ({tx.type}, {tx.amount:.2f}).")
    elif subcmd == "update":
        tx = update_transaction(
            config, args.transaction_id, _transaction_update_from_args(args)
        )
        if tx is None:
            raise _not_found("Transaction", args.transaction_id)
        print(f"Updated transaction #{tx.id}.")
    elif subcmd == "delete":
        if not delete_transaction(config, args.transaction_id):
            raise _not_found("Transaction", args.transaction_id)
        print(f"Deleted transaction #{args.transaction_id}.")
    elif subcmd == "mark-paid":
        tx = mark_transaction_paid(config, args.transaction_id)
        if tx is None:
            raise _not_found("Transaction", args.transaction_id)
        print(f"Transaction #{tx.id} is now {tx.status}.")
    elif subcmd in {"payable", "receivable"}:
        if subcmd == "payable":
            transactions = get_accounts_payable(config)
            title = "Accounts payable"
        else:
            transactions = get_accounts_receivable(config)
            title = "Accounts receivable"
        _render(
            args,
            config,
            transactions_to_dataframe(transactions),
            [t.to_dict() for t in transactions],
            f"accounts_{subcmd}",
            title=title,
        )
    elif subcmd == "import":
        _handle_transactions_import(args, config)
    elif subcmd == "post":
        entry = post_transaction_to_account(
            config, args.transaction_id, account_id=args.account_id
        )
        if entry is None:
            raise SystemExit(
                f"Transaction #{args.transaction_id} or its target account not found."
            )
        print(
            f"Posted transaction #{entry.transaction_id} to account "
            f"#{entry.account_id} ({entry.amount:.2f} {config.currency})."
        )
    elif subcmd == "entries":
        entries = get_transaction_entries(config, args.transaction_id)
        _render(
            args,
            config,
            transaction_entries_to_dataframe(entries),
            [e.to_dict() for e in entries],
            "transaction_entries",
            title=f"Entries of transaction #{args.transaction_id}",
        )
    else:
        print(
            "No transactions subcommand specified. "
            "Available subcommands are: 'list', 'show', 'create', 'update', "
            "'delete', 'mark-paid', 'payable', 'receivable', 'import', 'post', "
            "'entries'."
        )


# ---------------------------------------------------------------------------
# budgets
# ---------------------------------------------------------------------------


def _handle_budgets_command(args: argparse.Namespace, config: AppConfig) -> None:
    """Dispatch function for the 'budgets' subcommands."""
    subcmd = getattr(args, "budgets_command", None)

    if subcmd == "list":
        budgets = list_budgets(config)
        _render(
            args,
            config,
            budgets_to_dataframe(budgets),
            [b.to_dict() for b in budgets],
            "budgets",
            title="Budgets",
        )
    elif subcmd == "show":
        budget = get_budget(config, args.budget_id)
        if budget is None:
            raise _not_found("Budget", args.budget_id)
        _show(args, config, f"Budget #{budget.id}", budget.to_dict())
    elif subcmd == "create":
        budget = create_budget(
            config,
            NewBudget(
                category=args.category,
                amount=args.amount,
                period_start=_parse_optional_date(args.period_start),
                period_end=_parse_optional_date(args.period_end),
                name=args.name,
                description=args.description,
            ),
        )
        print(f"Created budget #{budget.id} ({budget.category}, {budget.amount:.2f}).")
    elif subcmd == "update":
        budget = update_budget(
            config,
            args.budget_id,
            BudgetUpdate(
                name=args.name,
                category=args.category,
                amount=args.amount,
                period_start=_parse_optional_date(args.period_start),
                period_end=_parse_optional_date(args.period_end),
                description=args.description,
            ),
        )
        if budget is None:
            raise _not_found("Budget", args.budget_id)
        print(f"Updated budget #{budget.id}.")
    elif subcmd == "delete":
        if not delete_budget(config, args.budget_id):
            raise _not_found("Budget", args.budget_id)
        print(f"Deleted budget #{args.budget_id}.")
    else:
        print(
            "No budgets subcommand specified. "
            "Available subcommands are: 'list', 'show', 'create', 'update', 'delete'."
        )


# ---------------------------------------------------------------------------
# reports
# ---------------------------------------------------------------------------


def _handle_reports_command(args: argparse.Namespace, config: AppConfig) -> None:
    """Dispatch function for the 'reports' subcommands."""
    subcmd = getattr(args, "reports_command", None)

    if subcmd == "account-balances":
        _render_account_balances(args, config)
        return

    if subcmd not in {"cash-flow", "profit-and-loss", "budget-vs-actual"}:
        print(
            "No reports subcommand specified. "
            "Available subcommands are: 'cash-flow', 'profit-and-loss', "
            "'budget-vs-actual', 'account-balances'."
        )
        return

    period = _resolve_period(args, config)

    if subcmd == "cash-flow":
        report = cash_flow_for_period(config, period)
        if args.daily:
            df = cash_flow_daily_to_dataframe(report)
            stem = "cash_flow_daily"
        else:
            df = cash_flow_summary_to_dataframe(report)
            stem = "cash_flow"
        _render(
            args,
            config,
            df,
            report.to_dict(),
            stem,
            title=f"Cash flow ({config.currency})",
            period=period,
        )
    elif subcmd == "profit-and-loss":
        report = profit_and_loss_for_period(config, period)
        _render(
            args,
            config,
            profit_and_loss_to_dataframe(report),
            report.to_dict(),
            "profit_and_loss",
            title=f"Profit and loss ({config.currency})",
            period=period,
        )
    else:
        lines = budget_vs_actual_for_period(config, period)
        _render(
            args,
            config,
            budget_vs_actual_to_dataframe(lines),
            [line.to_dict() for line in lines],
            "budget_vs_actual",
            title=f"Budget vs. actual ({config.currency})",
            period=period,
        )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

_COMMAND_HANDLERS = {
    "accounts": _handle_accounts_command,
    "transactions": _handle_transactions_command,
    "budgets": _handle_budgets_command,
    "reports": _handle_reports_command,
}


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the SMB OpsLedger CLI.

    This function parses command-line arguments, loads the application
    configuration, configures logging, initializes the database and
    dispatches to the selected command. Invalid input reported by the
    services (ValueError) ends the program with an error message.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"smb_opsledger version {__version__}")
        return

    # 1) Load application configuration
    if args.config_path:
        config = load_app_config(args.config_path)
    else:
        config = load_app_config()

    # 2) Logging
    configure_from_app_config(config, args.log_level)

    # 3) Initialize the database (create file and schema if needed)
    init_database(config.database)

    command = getattr(args, "command", None)
    if command is None:
        parser.print_help()
        return

    if command == "reports" and not has_transactions(config.database):
        logger.warning(
            "database_empty", hint="use 'transactions import' to load data"
        )

    try:
        _COMMAND_HANDLERS[command](args, config)
    except ValueError as exc:
        raise SystemExit(f"Error: {exc}") from exc


if __name__ == "__main__":
    main()
