# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Account store for SMB OpsLedger.

A financial account is a named money container (checking account, cash box,
credit card...) with a running balance. It is distinct from a user login.

Responsibilities:
- Create, load, list, update and delete accounts.
- Mutate the balance through two explicit operations:
    * `update_account_balance` adds a signed delta to the current balance,
    * `set_account_balance` replaces the balance with an absolute value.
  The delta is applied in SQL (`balance_cents = balance_cents + ?`) inside
  an IMMEDIATE transaction, so concurrent writers never lose an update to
  a read-modify-write race. Balances are bounded like any other amount
  (see `money.MAX_AMOUNT_CENTS`).

The balance is never recomputed from the transaction history.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog

from .db import (
    ACCOUNT_TYPES,
    DatabaseConfig,
    check_choice,
    connect,
    init_database,
    now_utc_iso,
    parse_optional_datetime,
)
from .money import AmountLike, check_cents_range, format_amount, from_cents, to_cents

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Account:
    """A financial account with its current running balance."""

    id: int
    name: str
    type: str
    balance: Decimal
    description: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, object]:
        """
        Return a JSON-ready mapping.

        The balance is always rendered with two decimal places, so a balance
        of 120 is serialized as "120.00".
        """
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "balance": format_amount(self.balance),
            "description": self.description,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class NewAccount:
    """Data required to create an account. The balance always starts at 0."""

    name: str
    type: str
    description: str | None = None


@dataclass(frozen=True)
class AccountUpdate:
    """
    Fields that can be updated on an existing account.

    Only non-None values are applied. The balance is deliberately absent:
    it changes only through `update_account_balance` / `set_account_balance`.
    """

    name: str | None = None
    type: str | None = None
    description: str | None = None
    is_active: bool | None = None


_ACCOUNT_COLUMNS = """
    id,
    name,
    type,
    balance_cents,
    description,
    is_active,
    created_at,
    updated_at
"""


def _row_to_account(row: tuple) -> Account:
    """
    Convert a database row into an Account.

    Expected row layout:
      (id, name, type, balance_cents, description, is_active,
       created_at, updated_at)
    """
    (
        account_id,
        name,
        account_type,
        balance_cents,
        description,
        is_active_int,
        created_at_str,
        updated_at_str,
    ) = row

    return Account(
        id=account_id,
        name=name,
        type=account_type,
        balance=from_cents(balance_cents),
        description=description,
        is_active=bool(is_active_int),
        created_at=parse_optional_datetime(created_at_str),
        updated_at=parse_optional_datetime(updated_at_str),
    )


def _check_name(name: str) -> str:
    if not name or not name.strip():
        raise ValueError("Account name cannot be empty.")
    return name.strip()


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


def get_account(cfg: DatabaseConfig, account_id: int) -> Account | None:
    """Load a single account by id, or None if it does not exist."""
    init_database(cfg)

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = ?;",
            (account_id,),
        )
        row = cur.fetchone()
    finally:
        conn.close()

    if row is None:
        return None
    return _row_to_account(row)


def list_accounts(cfg: DatabaseConfig, *, active_only: bool = False) -> list[Account]:
    """
    List accounts in insertion order.

    Parameters
    ----------
    active_only:
        If True, inactive accounts are left out. Defaults to False
        (balances reports include inactive accounts).
    """
    init_database(cfg)

    where_sql = "WHERE is_active = 1" if active_only else ""

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts {where_sql} ORDER BY id ASC;"
        )
        rows = cur.fetchall()
    finally:
        conn.close()

    return [_row_to_account(row) for row in rows]


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------


def create_account(cfg: DatabaseConfig, new_account: NewAccount) -> Account:
    """
    Create a new account with a zero balance and `is_active=True`.

    Raises
    ------
    ValueError
        If the name is empty or the account type is unknown.
    """
    name = _check_name(new_account.name)
    check_choice(new_account.type, ACCOUNT_TYPES, "account type")

    init_database(cfg)
    now_iso = now_utc_iso()

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO accounts (
                name,
                type,
                balance_cents,
                description,
                is_active,
                created_at,
                updated_at
            )
            VALUES (?, ?, 0, ?, 1, ?, ?);
            """,
            (name, new_account.type, new_account.description, now_iso, now_iso),
        )
        account_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    logger.info("account_created", account_id=account_id, type=new_account.type)

    result = get_account(cfg, account_id)
    if result is None:
        msg = f"Account #{account_id} was just inserted but could not be reloaded."
        raise RuntimeError(msg)
    return result


def update_account(
    cfg: DatabaseConfig,
    account_id: int,
    update: AccountUpdate,
) -> Account | None:
    """
    Apply a partial update to an existing account.

    Returns
    -------
    Account | None
        The updated account, or None if no account has this id.

    Raises
    ------
    ValueError
        If no fields are provided or a provided value is invalid.
    """
    fields: list[str] = []
    params: list[object] = []

    if update.name is not None:
        fields.append("name = ?")
        params.append(_check_name(update.name))
    if update.type is not None:
        fields.append("type = ?")
        params.append(check_choice(update.type, ACCOUNT_TYPES, "account type"))
    if update.description is not None:
        fields.append("description = ?")
        params.append(update.description)
    if update.is_active is not None:
        fields.append("is_active = ?")
        params.append(1 if update.is_active else 0)

    if not fields:
        raise ValueError("No fields to update in AccountUpdate.")

    fields.append("updated_at = ?")
    params.append(now_utc_iso())
    params.append(account_id)

    init_database(cfg)
    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"""
            UPDATE accounts
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

    logger.info("account_updated", account_id=account_id)
    return get_account(cfg, account_id)


def update_account_balance(
    cfg: DatabaseConfig,
    account_id: int,
    delta: AmountLike,
) -> Account | None:
    """
    Add a signed `delta` to the account balance.

    Starting from 0, applying +150 then -30 leaves a balance of 120.

    Returns
    -------
    Account | None
        The account after the update, or None if no account has this id.

    Raises
    ------
    ValueError
        If `delta` is not a valid amount, or the resulting balance would
        exceed the largest accepted amount.
    """
    delta_cents = to_cents(delta)

    init_database(cfg)
    conn = connect(cfg)
    try:
        conn.execute("BEGIN IMMEDIATE;")
        cur = conn.cursor()
        cur.execute("SELECT balance_cents FROM accounts WHERE id = ?;", (account_id,))
        row = cur.fetchone()
        found = row is not None
        if found:
            check_cents_range(row[0] + delta_cents, "account balance")
            cur.execute(
                """
                UPDATE accounts
                   SET balance_cents = balance_cents + ?,
                       updated_at    = ?
                 WHERE id = ?;
                """,
                (delta_cents, now_utc_iso(), account_id),
            )
        conn.commit()
    except (sqlite3.Error, ValueError):
        conn.rollback()
        raise
    finally:
        conn.close()

    if not found:
        logger.warning("account_not_found", account_id=account_id)
        return None

    logger.info(
        "account_balance_adjusted",
        account_id=account_id,
        delta=format_amount(from_cents(delta_cents)),
    )
    return get_account(cfg, account_id)


def set_account_balance(
    cfg: DatabaseConfig,
    account_id: int,
    new_balance: AmountLike,
) -> Account | None:
    """
    Replace the account balance with an absolute value.

    This is the explicit counterpart of `update_account_balance` for callers
    that hold the intended final balance (e.g. after a bank reconciliation).

    Returns
    -------
    Account | None
        The account after the update, or None if no account has this id.
    """
    balance_cents = to_cents(new_balance)

    init_database(cfg)
    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            UPDATE accounts
               SET balance_cents = ?,
                   updated_at    = ?
             WHERE id = ?;
            """,
            (balance_cents, now_utc_iso(), account_id),
        )
        found = cur.rowcount > 0
        conn.commit()
    finally:
        conn.close()

    if not found:
        logger.warning("account_not_found", account_id=account_id)
        return None

    logger.info(
        "account_balance_set",
        account_id=account_id,
        balance=format_amount(from_cents(balance_cents)),
    )
    return get_account(cfg, account_id)


def delete_account(cfg: DatabaseConfig, account_id: int) -> bool:
    """
    Delete an account.

    Transactions linked to the account keep existing with `account_id`
    set to NULL; its transaction entries are removed.

    Returns
    -------
    bool
        True if an account was deleted, False if the id was unknown.
    """
    init_database(cfg)

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute("DELETE FROM accounts WHERE id = ?;", (account_id,))
        deleted = cur.rowcount > 0
        conn.commit()
    finally:
        conn.close()

    if deleted:
        logger.info("account_deleted", account_id=account_id)
    return deleted
