# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Transaction store for SMB OpsLedger.

A transaction is a single income or expense record, optionally linked to
a financial account, a customer and a work order. Its `status` is advanced
by callers (e.g. "mark as paid"); the store never changes it on its own.

Responsibilities
----------------
1) CRUD operations
   - `create_transaction`, `insert_transactions` (bulk, one connection),
     `get_transaction`, `update_transaction` (partial), `delete_transaction`.
   - Input is validated here, at write time: enumerations, strictly
     positive amounts with at most two decimals, ISO dates.

2) Queries
   - `search_transactions` accepts a typed `TransactionsFilter` combining
     date range (inclusive on both ends), type, statuses, category,
     customer, work order, account and description substring.
   - Single-criterion helpers (`get_transactions_by_type`, ...) and the
     open-items views `get_accounts_payable` / `get_accounts_receivable`.
   - `load_transactions` returns a DataFrame for the reporting engine,
     with amounts kept as integer cents.

3) Postings to accounts
   - `record_transaction_entry` stores a TransactionEntry and applies its
     signed amount to the account balance within one SQLite transaction.
   - `get_transaction_entries` lists the postings of a transaction.

Creating, updating or deleting a transaction never touches account
balances by itself.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

import pandas as pd
import structlog

from .db import (
    OPEN_STATUSES,
    TRANSACTION_CATEGORIES,
    TRANSACTION_STATUSES,
    TRANSACTION_TYPES,
    DatabaseConfig,
    check_choice,
    connect,
    init_database,
    now_utc_iso,
    parse_optional_date,
    parse_optional_datetime,
    to_iso_date,
)
from .money import (
    AmountLike,
    check_cents_range,
    format_amount,
    from_cents,
    positive_cents,
    to_cents,
)

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    """A stored income or expense record."""

    id: int
    type: str
    status: str
    category: str
    amount: Decimal
    description: str
    date: date
    due_date: date | None
    account_id: int | None
    customer_id: int | None
    work_order_id: int | None
    created_by: int | None
    notes: str | None
    document_ref: str | None
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-ready mapping (ISO dates, amount as decimal string)."""
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "category": self.category,
            "amount": format_amount(self.amount),
            "description": self.description,
            "date": self.date.isoformat(),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "account_id": self.account_id,
            "customer_id": self.customer_id,
            "work_order_id": self.work_order_id,
            "created_by": self.created_by,
            "notes": self.notes,
            "document_ref": self.document_ref,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class NewTransaction:
    """Data required to create a transaction."""

    type: str
    category: str
    amount: AmountLike
    date: date
    description: str
    status: str = "pending"
    due_date: date | None = None
    account_id: int | None = None
    customer_id: int | None = None
    work_order_id: int | None = None
    created_by: int | None = None
    notes: str | None = None
    document_ref: str | None = None


@dataclass(frozen=True)
class TransactionUpdate:
    """
    Fields that can be updated on an existing transaction.

    Each attribute is optional. Only non-None values are applied.
    """

    type: str | None = None
    status: str | None = None
    category: str | None = None
    amount: AmountLike | None = None
    description: str | None = None
    date: date | None = None
    due_date: date | None = None
    account_id: int | None = None
    customer_id: int | None = None
    work_order_id: int | None = None
    notes: str | None = None
    document_ref: str | None = None


@dataclass(frozen=True)
class TransactionsFilter:
    """
    Filters used to search transactions.

    The filters can be combined (logical AND). Date bounds are inclusive
    and compared as calendar dates.

    Attributes
    ----------
    start, end:
        Inclusive date bounds on the transaction `date`.
    type:
        "income" or "expense".
    statuses:
        Keep only transactions whose status is one of these values.
    category:
        Exact category match.
    customer_id, work_order_id, account_id:
        Exact match on the linked record.
    description_contains:
        Case-insensitive substring search on the description.
    """

    start: date | None = None
    end: date | None = None
    type: str | None = None
    statuses: tuple[str, ...] | None = None
    category: str | None = None
    customer_id: int | None = None
    work_order_id: int | None = None
    account_id: int | None = None
    description_contains: str | None = None


@dataclass(frozen=True)
class TransactionEntry:
    """A posting of a transaction to an account (signed amount)."""

    id: int
    transaction_id: int
    account_id: int
    amount: Decimal
    created_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "account_id": self.account_id,
            "amount": format_amount(self.amount),
            "created_at": self.created_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_TRANSACTION_COLUMNS = """
    id,
    type,
    status,
    category,
    amount_cents,
    description,
    date,
    due_date,
    account_id,
    customer_id,
    work_order_id,
    created_by,
    notes,
    document_ref,
    created_at,
    updated_at
"""

FRAME_COLUMNS = ["id", "date", "type", "status", "category", "amount_cents"]


def _row_to_transaction(row: tuple) -> Transaction:
    """
    Convert a database row into a Transaction.

    Expected row layout follows `_TRANSACTION_COLUMNS`.
    """
    (
        transaction_id,
        tx_type,
        status,
        category,
        amount_cents,
        description,
        date_str,
        due_date_str,
        account_id,
        customer_id,
        work_order_id,
        created_by,
        notes,
        document_ref,
        created_at_str,
        updated_at_str,
    ) = row

    return Transaction(
        id=transaction_id,
        type=tx_type,
        status=status,
        category=category,
        amount=from_cents(amount_cents),
        description=description,
        date=date.fromisoformat(date_str),
        due_date=parse_optional_date(due_date_str),
        account_id=account_id,
        customer_id=customer_id,
        work_order_id=work_order_id,
        created_by=created_by,
        notes=notes,
        document_ref=document_ref,
        created_at=parse_optional_datetime(created_at_str),
        updated_at=parse_optional_datetime(updated_at_str),
    )


def _row_to_entry(row: tuple) -> TransactionEntry:
    entry_id, transaction_id, account_id, amount_cents, created_at_str = row
    return TransactionEntry(
        id=entry_id,
        transaction_id=transaction_id,
        account_id=account_id,
        amount=from_cents(amount_cents),
        created_at=parse_optional_datetime(created_at_str),
    )


def _new_transaction_params(new: NewTransaction, now_iso: str) -> tuple:
    """Validate a NewTransaction and return the INSERT parameters."""
    check_choice(new.type, TRANSACTION_TYPES, "transaction type")
    check_choice(new.status, TRANSACTION_STATUSES, "transaction status")
    check_choice(new.category, TRANSACTION_CATEGORIES, "transaction category")
    if new.description is None:
        raise ValueError("Transaction description is required.")

    return (
        new.type,
        new.status,
        new.category,
        positive_cents(new.amount),
        str(new.description),
        to_iso_date(new.date),
        to_iso_date(new.due_date) if new.due_date is not None else None,
        new.account_id,
        new.customer_id,
        new.work_order_id,
        new.created_by,
        new.notes,
        new.document_ref,
        now_iso,
        now_iso,
    )


_INSERT_SQL = """
    INSERT INTO transactions (
        type,
        status,
        category,
        amount_cents,
        description,
        date,
        due_date,
        account_id,
        customer_id,
        work_order_id,
        created_by,
        notes,
        document_ref,
        created_at,
        updated_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""


def empty_transactions_frame() -> pd.DataFrame:
    """Return an empty DataFrame with the columns and dtypes of `load_transactions`."""
    return pd.DataFrame(
        {
            "id": pd.Series(dtype="int64"),
            "date": pd.Series(dtype="datetime64[ns]"),
            "type": pd.Series(dtype="object"),
            "status": pd.Series(dtype="object"),
            "category": pd.Series(dtype="object"),
            "amount_cents": pd.Series(dtype="int64"),
        }
    )


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------


def create_transaction(cfg: DatabaseConfig, new: NewTransaction) -> Transaction:
    """
    Insert a new transaction.

    Raises
    ------
    ValueError
        If an enumeration value, the amount or a date is invalid.
    """
    params = _new_transaction_params(new, now_utc_iso())

    init_database(cfg)
    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(_INSERT_SQL, params)
        transaction_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    logger.info(
        "transaction_created",
        transaction_id=transaction_id,
        type=new.type,
        status=new.status,
        category=new.category,
    )

    result = get_transaction(cfg, transaction_id)
    if result is None:
        msg = f"Transaction #{transaction_id} was just inserted but could not be reloaded."
        raise RuntimeError(msg)
    return result


def insert_transactions(cfg: DatabaseConfig, new_transactions: list[NewTransaction]) -> int:
    """
    Insert several transactions using a single connection.

    All rows are validated before anything is written, so an invalid row
    leaves the database untouched.

    Returns
    -------
    int
        Number of rows inserted.
    """
    now_iso = now_utc_iso()
    params = [_new_transaction_params(new, now_iso) for new in new_transactions]
    if not params:
        return 0

    init_database(cfg)
    conn = connect(cfg)
    try:
        conn.executemany(_INSERT_SQL, params)
        conn.commit()
    finally:
        conn.close()

    logger.info("transactions_inserted", rows=len(params))
    return len(params)


def update_transaction(
    cfg: DatabaseConfig,
    transaction_id: int,
    update: TransactionUpdate,
) -> Transaction | None:
    """
    Apply a partial update to an existing transaction.

    Returns
    -------
    Transaction | None
        The updated transaction, or None if no transaction has this id.

    Raises
    ------
    ValueError
        If no fields are provided or a provided value is invalid.
    """
    fields: list[str] = []
    params: list[object] = []

    if update.type is not None:
        fields.append("type = ?")
        params.append(check_choice(update.type, TRANSACTION_TYPES, "transaction type"))
    if update.status is not None:
        fields.append("status = ?")
        params.append(
            check_choice(update.status, TRANSACTION_STATUSES, "transaction status")
        )
    if update.category is not None:
        fields.append("category = ?")
        params.append(
            check_choice(update.category, TRANSACTION_CATEGORIES, "transaction category")
        )
    if update.amount is not None:
        fields.append("amount_cents = ?")
        params.append(positive_cents(update.amount))
    if update.description is not None:
        fields.append("description = ?")
        params.append(update.description)
    if update.date is not None:
        fields.append("date = ?")
        params.append(to_iso_date(update.date))
    if update.due_date is not None:
        fields.append("due_date = ?")
        params.append(to_iso_date(update.due_date))
    if update.account_id is not None:
        fields.append("account_id = ?")
        params.append(update.account_id)
    if update.customer_id is not None:
        fields.append("customer_id = ?")
        params.append(update.customer_id)
    if update.work_order_id is not None:
        fields.append("work_order_id = ?")
        params.append(update.work_order_id)
    if update.notes is not None:
        fields.append("notes = ?")
        params.append(update.notes)
    if update.document_ref is not None:
        fields.append("document_ref = ?")
        params.append(update.document_ref)

    if not fields:
        raise ValueError("No fields to update in TransactionUpdate.")

    fields.append("updated_at = ?")
    params.append(now_utc_iso())
    params.append(transaction_id)

    init_database(cfg)
    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"""
            UPDATE transactions
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

    logger.info("transaction_updated", transaction_id=transaction_id)
    return get_transaction(cfg, transaction_id)


def delete_transaction(cfg: DatabaseConfig, transaction_id: int) -> bool:
    """
    Delete a transaction (and its entries).

    Balances of accounts the transaction was posted to are left unchanged.

    Returns
    -------
    bool
        True if a transaction was deleted, False if the id was unknown.
    """
    init_database(cfg)

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute("DELETE FROM transactions WHERE id = ?;", (transaction_id,))
        deleted = cur.rowcount > 0
        conn.commit()
    finally:
        conn.close()

    if deleted:
        logger.info("transaction_deleted", transaction_id=transaction_id)
    return deleted


# ---------------------------------------------------------------------------
# Read & search
# ---------------------------------------------------------------------------


def get_transaction(cfg: DatabaseConfig, transaction_id: int) -> Transaction | None:
    """Load a single transaction by id, or None if it does not exist."""
    init_database(cfg)

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_TRANSACTION_COLUMNS} FROM transactions WHERE id = ?;",
            (transaction_id,),
        )
        row = cur.fetchone()
    finally:
        conn.close()

    if row is None:
        return None
    return _row_to_transaction(row)


def search_transactions(
    cfg: DatabaseConfig,
    filters: TransactionsFilter,
    *,
    limit: int | None = None,
    offset: int = 0,
    order_by: tuple[str, str] = ("id", "ASC"),
) -> list[Transaction]:
    """
    Search transactions using the given filters.

    Parameters
    ----------
    filters:
        Criteria combined with AND. An empty filter returns everything.
    limit, offset:
        Optional pagination settings. If limit is None, all rows are returned.
    order_by:
        Sorting instructions as (column, direction). Supported columns:
        "id", "date", "amount", "category". Direction must be "ASC" or "DESC".
        The default keeps insertion order.
    """
    init_database(cfg)

    where_clauses: list[str] = ["1 = 1"]
    params: list[object] = []

    if filters.start is not None:
        where_clauses.append("date >= ?")
        params.append(to_iso_date(filters.start))
    if filters.end is not None:
        where_clauses.append("date <= ?")
        params.append(to_iso_date(filters.end))

    if filters.type is not None:
        where_clauses.append("type = ?")
        params.append(filters.type)

    if filters.statuses is not None:
        if not filters.statuses:
            return []
        placeholders = ", ".join("?" for _ in filters.statuses)
        where_clauses.append(f"status IN ({placeholders})")
        params.extend(filters.statuses)

    if filters.category is not None:
        where_clauses.append("category = ?")
        params.append(filters.category)

    if filters.customer_id is not None:
        where_clauses.append("customer_id = ?")
        params.append(filters.customer_id)
    if filters.work_order_id is not None:
        where_clauses.append("work_order_id = ?")
        params.append(filters.work_order_id)
    if filters.account_id is not None:
        where_clauses.append("account_id = ?")
        params.append(filters.account_id)

    if filters.description_contains is not None:
        where_clauses.append("LOWER(description) LIKE ?")
        params.append(f"%{filters.description_contains.lower()}%")

    # Validate and build ORDER BY clause
    allowed_order_columns = {"id", "date", "amount", "category"}
    order_column, order_direction = order_by
    if order_column not in allowed_order_columns:
        raise ValueError(f"Invalid order_by column: {order_column!r}")
    order_direction_upper = order_direction.upper()
    if order_direction_upper not in {"ASC", "DESC"}:
        raise ValueError(f"Invalid order_by direction: {order_direction!r}")

    order_expr = "amount_cents" if order_column == "amount" else order_column
    order_clause = f"ORDER BY {order_expr} {order_direction_upper}, id {order_direction_upper}"

    limit_clause = ""
    if limit is not None:
        limit_clause = " LIMIT ? OFFSET ?"
        params.extend([limit, offset])

    query = f"""
        SELECT {_TRANSACTION_COLUMNS}
          FROM transactions
         WHERE {' AND '.join(where_clauses)}
         {order_clause}
         {limit_clause};
    """

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(query, params)
        rows = cur.fetchall()
    finally:
        conn.close()

    return [_row_to_transaction(row) for row in rows]


def list_transactions(cfg: DatabaseConfig) -> list[Transaction]:
    """Return all transactions in insertion order."""
    return search_transactions(cfg, TransactionsFilter())


def get_transactions_by_type(cfg: DatabaseConfig, tx_type: str) -> list[Transaction]:
    return search_transactions(cfg, TransactionsFilter(type=tx_type))


def get_transactions_by_status(cfg: DatabaseConfig, status: str) -> list[Transaction]:
    return search_transactions(cfg, TransactionsFilter(statuses=(status,)))


def get_transactions_by_category(cfg: DatabaseConfig, category: str) -> list[Transaction]:
    return search_transactions(cfg, TransactionsFilter(category=category))


def get_transactions_by_customer(cfg: DatabaseConfig, customer_id: int) -> list[Transaction]:
    return search_transactions(cfg, TransactionsFilter(customer_id=customer_id))


def get_transactions_by_work_order(
    cfg: DatabaseConfig, work_order_id: int
) -> list[Transaction]:
    return search_transactions(cfg, TransactionsFilter(work_order_id=work_order_id))


def get_transactions_by_account(cfg: DatabaseConfig, account_id: int) -> list[Transaction]:
    return search_transactions(cfg, TransactionsFilter(account_id=account_id))


def get_transactions_by_date_range(
    cfg: DatabaseConfig, start: date, end: date
) -> list[Transaction]:
    """Transactions dated within [start, end], both bounds inclusive."""
    return search_transactions(cfg, TransactionsFilter(start=start, end=end))


def get_accounts_payable(cfg: DatabaseConfig) -> list[Transaction]:
    """Unsettled expenses: expense transactions that are pending or overdue."""
    return search_transactions(
        cfg, TransactionsFilter(type="expense", statuses=OPEN_STATUSES)
    )


def get_accounts_receivable(cfg: DatabaseConfig) -> list[Transaction]:
    """Unsettled income: income transactions that are pending or overdue."""
    return search_transactions(
        cfg, TransactionsFilter(type="income", statuses=OPEN_STATUSES)
    )


def load_transactions(
    cfg: DatabaseConfig,
    start: date | None = None,
    end: date | None = None,
) -> pd.DataFrame:
    """
    Load transactions as a DataFrame for the reporting engine.

    Parameters
    ----------
    start, end:
        Optional inclusive date bounds.

    Returns
    -------
    pandas.DataFrame
        Columns:
        - id           (int64)
        - date         (datetime64[ns])
        - type         (str)
        - status       (str)
        - category     (str)
        - amount_cents (int64)

        Amounts stay in integer cents so that aggregation is exact. If no
        transactions match, an empty DataFrame with the same columns and
        dtypes is returned.
    """
    init_database(cfg)

    where_clauses: list[str] = ["1 = 1"]
    params: list[object] = []
    if start is not None:
        where_clauses.append("date >= ?")
        params.append(start.isoformat())
    if end is not None:
        where_clauses.append("date <= ?")
        params.append(end.isoformat())

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT id, date, type, status, category, amount_cents
              FROM transactions
             WHERE {' AND '.join(where_clauses)}
             ORDER BY id;
            """,
            params,
        )
        rows = cur.fetchall()
    finally:
        conn.close()

    if not rows:
        return empty_transactions_frame()

    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["date"] = pd.to_datetime(df["date"], format="%Y-%m-%d")
    df["amount_cents"] = df["amount_cents"].astype("int64")
    return df


# ---------------------------------------------------------------------------
# Transaction entries (postings to accounts)
# ---------------------------------------------------------------------------


def get_transaction_entries(
    cfg: DatabaseConfig, transaction_id: int
) -> list[TransactionEntry]:
    """List the postings recorded for a transaction, oldest first."""
    init_database(cfg)

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, transaction_id, account_id, amount_cents, created_at
              FROM transaction_entries
             WHERE transaction_id = ?
             ORDER BY id;
            """,
            (transaction_id,),
        )
        rows = cur.fetchall()
    finally:
        conn.close()

    return [_row_to_entry(row) for row in rows]


def record_transaction_entry(
    cfg: DatabaseConfig,
    transaction_id: int,
    account_id: int,
    amount: AmountLike,
) -> TransactionEntry | None:
    """
    Post a signed amount of a paid transaction to an account.

    The checks, the entry row and the balance change all run in the same
    SQLite transaction (BEGIN IMMEDIATE), so either everything happens or
    nothing does, and two concurrent posts of the same transaction to the
    same account cannot both succeed. A unique index on
    (transaction_id, account_id) backs the "once per account" rule.

    Returns
    -------
    TransactionEntry | None
        The new entry, or None if the transaction or the account does
        not exist.

    Raises
    ------
    ValueError
        If the amount is invalid, the transaction is not paid, it was
        already posted to this account, or the resulting balance would be
        out of range.
    """
    amount_cents = to_cents(amount)
    now_iso = now_utc_iso()

    init_database(cfg)
    conn = connect(cfg)
    try:
        conn.execute("BEGIN IMMEDIATE;")
        cur = conn.cursor()

        cur.execute("SELECT status FROM transactions WHERE id = ?;", (transaction_id,))
        tx_row = cur.fetchone()
        cur.execute("SELECT balance_cents FROM accounts WHERE id = ?;", (account_id,))
        account_row = cur.fetchone()
        if tx_row is None or account_row is None:
            conn.rollback()
            logger.warning(
                "transaction_entry_target_missing",
                transaction_id=transaction_id,
                account_id=account_id,
            )
            return None

        if tx_row[0] != "paid":
            raise ValueError(
                f"Only paid transactions can be posted "
                f"(transaction #{transaction_id} is {tx_row[0]})."
            )

        cur.execute(
            """
            SELECT 1
              FROM transaction_entries
             WHERE transaction_id = ? AND account_id = ?;
            """,
            (transaction_id, account_id),
        )
        if cur.fetchone() is not None:
            raise ValueError(
                f"Transaction #{transaction_id} was already posted to "
                f"account #{account_id}."
            )

        check_cents_range(account_row[0] + amount_cents, "account balance")

        try:
            cur.execute(
                """
                INSERT INTO transaction_entries (
                    transaction_id,
                    account_id,
                    amount_cents,
                    created_at
                )
                VALUES (?, ?, ?, ?);
                """,
                (transaction_id, account_id, amount_cents, now_iso),
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError(
                f"Transaction #{transaction_id} was already posted to "
                f"account #{account_id}."
            ) from exc
        entry_id = cur.lastrowid

        cur.execute(
            """
            UPDATE accounts
               SET balance_cents = balance_cents + ?,
                   updated_at    = ?
             WHERE id = ?;
            """,
            (amount_cents, now_iso, account_id),
        )
        conn.commit()
    except (sqlite3.Error, ValueError):
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.info(
        "transaction_entry_recorded",
        transaction_id=transaction_id,
        account_id=account_id,
        amount=format_amount(from_cents(amount_cents)),
    )

    return TransactionEntry(
        id=entry_id,
        transaction_id=transaction_id,
        account_id=account_id,
        amount=from_cents(amount_cents),
        created_at=parse_optional_datetime(now_iso),
    )
