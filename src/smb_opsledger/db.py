# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Database layer for SMB OpsLedger.

This module owns the SQLite connection handling and the schema shared by the
financial stores (`accounts.py`, `transactions.py`, `budgets.py`). It is
responsible for:

- Initializing the database schema (idempotent).
- Opening connections with foreign keys enabled.
- Defining the closed sets of values used across the financial module
  (account types, transaction types, statuses and categories) and the
  helpers that validate them at write time.
- Converting dates and timestamps to and from their ISO text form.

------------------------------------------------------------------------------
Schema Overview
------------------------------------------------------------------------------

1) accounts
   Named money containers (bank accounts, cash box, credit card...).

   - id             INTEGER PRIMARY KEY AUTOINCREMENT
   - name           TEXT    NOT NULL
   - type           TEXT    NOT NULL  -- checking | savings | investment |
                                         cash | credit | other
   - balance_cents  INTEGER NOT NULL DEFAULT 0
   - description    TEXT
   - is_active      INTEGER NOT NULL DEFAULT 1
   - created_at     TEXT    NOT NULL  -- ISO datetime, UTC
   - updated_at     TEXT    NOT NULL

   The balance is a running total. It is never recomputed from the
   transaction history: it only changes through explicit balance updates
   or when a transaction is posted to the account (transaction_entries).

2) transactions
   Income and expense records.

   - id             INTEGER PRIMARY KEY AUTOINCREMENT
   - type           TEXT    NOT NULL  -- income | expense
   - status         TEXT    NOT NULL  -- pending | paid | overdue | cancelled
   - category       TEXT    NOT NULL
   - amount_cents   INTEGER NOT NULL  -- strictly positive
   - description    TEXT    NOT NULL
   - date           TEXT    NOT NULL  -- ISO date 'YYYY-MM-DD'
   - due_date       TEXT
   - account_id     INTEGER           -- optional link to accounts.id
   - customer_id    INTEGER
   - work_order_id  INTEGER
   - created_by     INTEGER
   - notes          TEXT
   - document_ref   TEXT              -- invoice / receipt number
   - created_at     TEXT    NOT NULL
   - updated_at     TEXT    NOT NULL

3) transaction_entries
   Postings of a transaction to an account (signed amount applied to the
   account balance when the entry was recorded).

   - id              INTEGER PRIMARY KEY AUTOINCREMENT
   - transaction_id  INTEGER NOT NULL  -- transactions.id (cascade)
   - account_id      INTEGER NOT NULL  -- accounts.id (cascade)
   - amount_cents    INTEGER NOT NULL
   - created_at      TEXT    NOT NULL

   A transaction is posted at most once per account: UNIQUE index on
   (transaction_id, account_id).

4) budgets
   Spending (or revenue) targets per category over a date range.

   - id             INTEGER PRIMARY KEY AUTOINCREMENT
   - name           TEXT
   - category       TEXT    NOT NULL
   - amount_cents   INTEGER NOT NULL
   - period_start   TEXT    NOT NULL
   - period_end     TEXT    NOT NULL
   - description    TEXT
   - created_at     TEXT    NOT NULL
   - updated_at     TEXT    NOT NULL

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- Money is stored as signed integer cents; see `money.py`.
- Dates are stored as ISO text, so lexical comparison in SQL is also a
  calendar comparison.
- Foreign key enforcement is explicitly enabled on every connection.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Literal

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for SMB OpsLedger.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


# ---------------------------------------------------------------------------
# Closed value sets
# ---------------------------------------------------------------------------

AccountType = Literal["checking", "savings", "investment", "cash", "credit", "other"]
TransactionType = Literal["income", "expense"]
TransactionStatus = Literal["pending", "paid", "overdue", "cancelled"]
TransactionCategory = Literal[
    "sales",
    "service",
    "taxes",
    "payroll",
    "rent",
    "utilities",
    "supplies",
    "maintenance",
    "insurance",
    "other",
]

ACCOUNT_TYPES: tuple[str, ...] = (
    "checking",
    "savings",
    "investment",
    "cash",
    "credit",
    "other",
)
TRANSACTION_TYPES: tuple[str, ...] = ("income", "expense")
TRANSACTION_STATUSES: tuple[str, ...] = ("pending", "paid", "overdue", "cancelled")
TRANSACTION_CATEGORIES: tuple[str, ...] = (
    "sales",
    "service",
    "taxes",
    "payroll",
    "rent",
    "utilities",
    "supplies",
    "maintenance",
    "insurance",
    "other",
)

# Statuses of transactions that are still open (not settled, not cancelled).
OPEN_STATUSES: tuple[str, ...] = ("pending", "overdue")


def check_choice(value: str, allowed: tuple[str, ...], field: str) -> str:
    """
    Validate that `value` belongs to `allowed` and return it.

    Raises
    ------
    ValueError
        If the value is not one of the allowed values.
    """
    if value not in allowed:
        msg = f"Invalid {field}: {value!r}. Expected one of: {', '.join(allowed)}."
        raise ValueError(msg)
    return value


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    conn = sqlite3.connect(cfg.path)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Create tables and indexes if they do not exist yet.

    This function is idempotent and can be called multiple times safely.
    """
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS accounts (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            name          TEXT    NOT NULL,
            type          TEXT    NOT NULL,
            balance_cents INTEGER NOT NULL DEFAULT 0,
            description   TEXT,
            is_active     INTEGER NOT NULL DEFAULT 1,
            created_at    TEXT    NOT NULL,
            updated_at    TEXT    NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            type          TEXT    NOT NULL,
            status        TEXT    NOT NULL DEFAULT 'pending',
            category      TEXT    NOT NULL,
            amount_cents  INTEGER NOT NULL,
            description   TEXT    NOT NULL,
            date          TEXT    NOT NULL,  -- ISO date 'YYYY-MM-DD'
            due_date      TEXT,
            account_id    INTEGER,
            customer_id   INTEGER,
            work_order_id INTEGER,
            created_by    INTEGER,
            notes         TEXT,
            document_ref  TEXT,
            created_at    TEXT    NOT NULL,
            updated_at    TEXT    NOT NULL,

            FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE SET NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transaction_entries (
            id             INTEGER PRIMARY KEY AUTOINCREMENT,
            transaction_id INTEGER NOT NULL,
            account_id     INTEGER NOT NULL,
            amount_cents   INTEGER NOT NULL,
            created_at     TEXT    NOT NULL,

            FOREIGN KEY (transaction_id) REFERENCES transactions(id)
                ON DELETE CASCADE,
            FOREIGN KEY (account_id) REFERENCES accounts(id)
                ON DELETE CASCADE
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS budgets (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            name          TEXT,
            category      TEXT    NOT NULL,
            amount_cents  INTEGER NOT NULL,
            period_start  TEXT    NOT NULL,
            period_end    TEXT    NOT NULL,
            description   TEXT,
            created_at    TEXT    NOT NULL,
            updated_at    TEXT    NOT NULL
        );
        """
    )

    # Indexes
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_transactions_date
            ON transactions(date);
        """
    )
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_transaction_entries_transaction
            ON transaction_entries(transaction_id);
        """
    )
    conn.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS idx_transaction_entries_unique_posting
            ON transaction_entries(transaction_id, account_id);
        """
    )
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_budgets_category
            ON budgets(category);
        """
    )

    conn.commit()


def to_iso_date(value) -> str:
    """Convert a date-like value to ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(str(value).strip()).isoformat()


def parse_optional_date(value: str | None) -> date | None:
    """Parse an ISO date column value, keeping NULL as None."""
    return date.fromisoformat(value) if value is not None else None


def parse_optional_datetime(value: str | None) -> datetime | None:
    """Parse an ISO datetime column value, keeping NULL as None."""
    return datetime.fromisoformat(value) if value is not None else None


def now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if it does not exist.
    - Creates tables and indexes if they are missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


def has_transactions(cfg: DatabaseConfig) -> bool:
    """
    Return True if the database contains at least one transaction.

    Useful to warn the user when a report is requested on an empty database.
    """
    init_database(cfg)

    conn = connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute("SELECT 1 FROM transactions LIMIT 1;")
        return cur.fetchone() is not None
    finally:
        conn.close()
