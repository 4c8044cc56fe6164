# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
High-level services for the financial module.

This module sits between:
- the stores (`accounts.py`, `transactions.py`, `budgets.py`) and the
  reporting engine (`reports.py`), and
- user-facing layers such as the CLI or an HTTP API.

Every function takes the global `AppConfig` rather than a bare
`DatabaseConfig`, so that callers never have to know where data lives or
which options are active.

Responsibilities
----------------
1) CRUD pass-throughs
   - Accounts, transactions and budgets.

2) Account balance updates
   - `apply_balance_update` interprets an amount either as a delta added
     to the balance or as the new absolute balance, according to
     [finance].balance_update_mode (or an explicit `mode` argument).

3) Transaction workflow
   - `mark_transaction_paid` advances a transaction to "paid".
   - `post_transaction_to_account` applies a paid transaction to an
     account balance (income adds, expense subtracts) and records the
     posting as a TransactionEntry. A transaction is posted at most once
     per account.

4) Reports for a reporting Period
   - Cash flow, profit and loss, budget vs. actual, account balances.

Design notes
------------
- Creating or editing a transaction never changes a balance. Balances move
  only through `apply_balance_update` and `post_transaction_to_account`.
- "Not found" is reported as None (or False for deletes); invalid input
  raises ValueError, as in the stores.
"""

from typing import Optional

import structlog

from .accounts import Account, AccountUpdate, NewAccount
from .accounts import create_account as _db_create_account
from .accounts import delete_account as _db_delete_account
from .accounts import get_account as _db_get_account
from .accounts import list_accounts as _db_list_accounts
from .accounts import set_account_balance as _db_set_account_balance
from .accounts import update_account as _db_update_account
from .accounts import update_account_balance as _db_update_account_balance
from .budgets import Budget, BudgetUpdate, NewBudget
from .budgets import create_budget as _db_create_budget
from .budgets import delete_budget as _db_delete_budget
from .budgets import get_budget as _db_get_budget
from .budgets import list_budgets as _db_list_budgets
from .budgets import update_budget as _db_update_budget
from .config import BALANCE_UPDATE_MODES, AppConfig
from .db import DatabaseConfig
from .money import AmountLike
from .periods import Period
from .reports import (
    AccountBalances,
    BudgetVsActualLine,
    CashFlowReport,
    ProfitAndLoss,
    get_account_balances,
    get_budget_vs_actual,
    get_cash_flow,
    get_profit_and_loss,
)
from .transactions import (
    NewTransaction,
    Transaction,
    TransactionEntry,
    TransactionsFilter,
    TransactionUpdate,
)
from .transactions import create_transaction as _db_create_transaction
from .transactions import delete_transaction as _db_delete_transaction
from .transactions import get_accounts_payable as _db_get_accounts_payable
from .transactions import get_accounts_receivable as _db_get_accounts_receivable
from .transactions import get_transaction as _db_get_transaction
from .transactions import get_transaction_entries as _db_get_transaction_entries
from .transactions import record_transaction_entry as _db_record_transaction_entry
from .transactions import search_transactions as _db_search_transactions
from .transactions import update_transaction as _db_update_transaction

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_db_config(app_config: AppConfig) -> DatabaseConfig:
    """Convenience helper to access the database configuration from an AppConfig."""
    return app_config.database


def _merge_filters(
    base: TransactionsFilter,
    override: Optional[TransactionsFilter],
) -> TransactionsFilter:
    """
    Merge two TransactionsFilter instances into a single one.

    The `base` filter is typically derived from a reporting period
    (start/end dates). The `override` filter usually comes from user input
    and refines it: each override value is used when it is not None,
    otherwise the base value is kept.
    """
    if override is None:
        return base

    def pick(name: str):
        value = getattr(override, name)
        return value if value is not None else getattr(base, name)

    return TransactionsFilter(
        start=pick("start"),
        end=pick("end"),
        type=pick("type"),
        statuses=pick("statuses"),
        category=pick("category"),
        customer_id=pick("customer_id"),
        work_order_id=pick("work_order_id"),
        account_id=pick("account_id"),
        description_contains=pick("description_contains"),
    )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def create_account(app_config: AppConfig, new_account: NewAccount) -> Account:
    return _db_create_account(_get_db_config(app_config), new_account)


def get_account(app_config: AppConfig, account_id: int) -> Optional[Account]:
    return _db_get_account(_get_db_config(app_config), account_id)


def list_accounts(app_config: AppConfig, *, active_only: bool = False) -> list[Account]:
    return _db_list_accounts(_get_db_config(app_config), active_only=active_only)


def update_account(
    app_config: AppConfig, account_id: int, update: AccountUpdate
) -> Optional[Account]:
    return _db_update_account(_get_db_config(app_config), account_id, update)


def delete_account(app_config: AppConfig, account_id: int) -> bool:
    return _db_delete_account(_get_db_config(app_config), account_id)


def apply_balance_update(
    app_config: AppConfig,
    account_id: int,
    amount: AmountLike,
    mode: Optional[str] = None,
) -> Optional[Account]:
    """
    Update an account balance using an explicit semantics.

    Parameters
    ----------
    app_config:
        Global application configuration.
    account_id:
        Account to update.
    amount:
        Either a signed delta ("delta" mode) or the new balance
        ("absolute" mode).
    mode:
        "delta" or "absolute". Defaults to [finance].balance_update_mode.

    Returns
    -------
    Account | None
        The updated account, or None if the account does not exist.

    Raises
    ------
    ValueError
        If the mode is unknown or the amount is invalid.
    """
    effective_mode = mode or app_config.balance_update_mode
    if effective_mode not in BALANCE_UPDATE_MODES:
        raise ValueError(
            f"Invalid balance update mode: {effective_mode!r}. "
            f"Expected one of: {', '.join(BALANCE_UPDATE_MODES)}."
        )

    db_cfg = _get_db_config(app_config)
    if effective_mode == "absolute":
        return _db_set_account_balance(db_cfg, account_id, amount)
    return _db_update_account_balance(db_cfg, account_id, amount)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def create_transaction(app_config: AppConfig, new: NewTransaction) -> Transaction:
    return _db_create_transaction(_get_db_config(app_config), new)


def get_transaction(app_config: AppConfig, transaction_id: int) -> Optional[Transaction]:
    return _db_get_transaction(_get_db_config(app_config), transaction_id)


def update_transaction(
    app_config: AppConfig, transaction_id: int, update: TransactionUpdate
) -> Optional[Transaction]:
    return _db_update_transaction(_get_db_config(app_config), transaction_id, update)


def delete_transaction(app_config: AppConfig, transaction_id: int) -> bool:
    return _db_delete_transaction(_get_db_config(app_config), transaction_id)


def search_transactions(
    app_config: AppConfig,
    filters: TransactionsFilter,
    *,
    limit: Optional[int] = None,
    offset: int = 0,
    order_by: tuple[str, str] = ("id", "ASC"),
) -> list[Transaction]:
    """Search transactions using a complete TransactionsFilter built by the caller."""
    return _db_search_transactions(
        _get_db_config(app_config),
        filters,
        limit=limit,
        offset=offset,
        order_by=order_by,
    )


def list_transactions_for_period(
    app_config: AppConfig,
    period: Period,
    extra_filters: Optional[TransactionsFilter] = None,
    *,
    limit: Optional[int] = None,
    offset: int = 0,
    order_by: tuple[str, str] = ("date", "ASC"),
) -> list[Transaction]:
    """
    List transactions dated within a reporting period.

    Parameters
    ----------
    app_config:
        Global application configuration.
    period:
        Reporting period defining the [start, end] boundaries (inclusive).
    extra_filters:
        Optional additional filters (type, statuses, category, links,
        description). They are merged with the period boundaries using
        `_merge_filters`.
    limit, offset, order_by:
        See `transactions.search_transactions`.
    """
    base_filter = TransactionsFilter(start=period.start, end=period.end)
    merged_filter = _merge_filters(base_filter, extra_filters)
    return search_transactions(
        app_config,
        merged_filter,
        limit=limit,
        offset=offset,
        order_by=order_by,
    )


def get_accounts_payable(app_config: AppConfig) -> list[Transaction]:
    return _db_get_accounts_payable(_get_db_config(app_config))


def get_accounts_receivable(app_config: AppConfig) -> list[Transaction]:
    return _db_get_accounts_receivable(_get_db_config(app_config))


def get_transaction_entries(
    app_config: AppConfig, transaction_id: int
) -> list[TransactionEntry]:
    return _db_get_transaction_entries(_get_db_config(app_config), transaction_id)


def mark_transaction_paid(
    app_config: AppConfig, transaction_id: int
) -> Optional[Transaction]:
    """
    Set a transaction status to "paid".

    Account balances are not touched; use `post_transaction_to_account`
    to apply the payment to an account.

    Raises
    ------
    ValueError
        If the transaction is cancelled.
    """
    existing = get_transaction(app_config, transaction_id)
    if existing is None:
        return None
    if existing.status == "cancelled":
        raise ValueError(f"Transaction #{transaction_id} is cancelled and cannot be paid.")
    if existing.status == "paid":
        return existing

    return update_transaction(app_config, transaction_id, TransactionUpdate(status="paid"))


def post_transaction_to_account(
    app_config: AppConfig,
    transaction_id: int,
    account_id: Optional[int] = None,
) -> Optional[TransactionEntry]:
    """
    Apply a paid transaction to an account balance.

    The signed amount is `+amount` for income and `-amount` for expenses.
    The posting is stored as a TransactionEntry and the balance change is
    written in the same database transaction.

    Parameters
    ----------
    app_config:
        Global application configuration.
    transaction_id:
        Transaction to post.
    account_id:
        Target account. Defaults to the account linked to the transaction.

    Returns
    -------
    TransactionEntry | None
        The new entry, or None if the transaction or the account does not
        exist.

    Raises
    ------
    ValueError
        If the transaction is not paid, has no target account, or was
        already posted to this account.
    """
    transaction = get_transaction(app_config, transaction_id)
    if transaction is None:
        return None

    target_account_id = account_id if account_id is not None else transaction.account_id
    if target_account_id is None:
        raise ValueError(
            f"Transaction #{transaction_id} is not linked to an account; "
            "an account id is required."
        )

    # Paid status and "once per account" are checked by the store inside
    # the same database transaction as the posting.
    signed_amount = transaction.amount if transaction.type == "income" else -transaction.amount
    entry = _db_record_transaction_entry(
        _get_db_config(app_config),
        transaction_id,
        target_account_id,
        signed_amount,
    )
    if entry is not None:
        logger.info(
            "transaction_posted",
            transaction_id=transaction_id,
            account_id=target_account_id,
        )
    return entry


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


def create_budget(app_config: AppConfig, new_budget: NewBudget) -> Budget:
    return _db_create_budget(_get_db_config(app_config), new_budget)


def get_budget(app_config: AppConfig, budget_id: int) -> Optional[Budget]:
    return _db_get_budget(_get_db_config(app_config), budget_id)


def list_budgets(app_config: AppConfig) -> list[Budget]:
    return _db_list_budgets(_get_db_config(app_config))


def update_budget(
    app_config: AppConfig, budget_id: int, update: BudgetUpdate
) -> Optional[Budget]:
    return _db_update_budget(_get_db_config(app_config), budget_id, update)


def delete_budget(app_config: AppConfig, budget_id: int) -> bool:
    return _db_delete_budget(_get_db_config(app_config), budget_id)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def cash_flow_for_period(app_config: AppConfig, period: Period) -> CashFlowReport:
    return get_cash_flow(_get_db_config(app_config), period.start, period.end)


def profit_and_loss_for_period(app_config: AppConfig, period: Period) -> ProfitAndLoss:
    return get_profit_and_loss(_get_db_config(app_config), period.start, period.end)


def budget_vs_actual_for_period(
    app_config: AppConfig, period: Period
) -> list[BudgetVsActualLine]:
    return get_budget_vs_actual(_get_db_config(app_config), period.start, period.end)


def account_balances(app_config: AppConfig) -> AccountBalances:
    return get_account_balances(_get_db_config(app_config))
