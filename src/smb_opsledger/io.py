# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for SMB OpsLedger.

This module handles reading transactions from a CSV file, importing them
into the transaction store, and writing report DataFrames to CSV files.

Expected input format
---------------------

Column names are case-insensitive. Required columns:

    date, type, category, amount, description

- ``date``:        transaction date (YYYY-MM-DD)
- ``type``:        "income" or "expense"
- ``category``:    one of the transaction categories (sales, rent, ...)
- ``amount``:      strictly positive amount with at most two decimals
- ``description``: free text label

Optional columns:

    status, due_date, account_id, customer_id, work_order_id, notes,
    document_ref

A missing or empty ``status`` defaults to "pending". The column ``label`` is
accepted as an alias for ``description``. Any other column is ignored.

Amounts are read as text and converted to Decimal, never to float, so that
``19.99`` is stored as exactly 1999 cents.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import pandas as pd
import structlog

from .db import DatabaseConfig
from .money import to_decimal
from .transactions import NewTransaction, insert_transactions

logger = structlog.get_logger(__name__)

REQUIRED_COLUMNS = ["date", "type", "category", "amount", "description"]
OPTIONAL_COLUMNS = [
    "status",
    "due_date",
    "account_id",
    "customer_id",
    "work_order_id",
    "notes",
    "document_ref",
]
_ID_COLUMNS = ("account_id", "customer_id", "work_order_id")


@dataclass(frozen=True)
class ImportStats:
    """
    Summary of an import of transactions into the database.

    Attributes
    ----------
    rows_inserted:
        Number of transactions inserted.
    income_rows, expense_rows:
        Split of the inserted rows by transaction type.
    """

    rows_inserted: int
    income_rows: int
    expense_rows: int


def _blank(value) -> bool:
    return value is None or (not isinstance(value, str) and pd.isna(value)) or (
        isinstance(value, str) and not value.strip()
    )


def read_transactions_csv(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    """
    Read transactions from a CSV file and normalize them.

    Parameters
    ----------
    path:
        Path to the CSV file containing transactions.

    Returns
    -------
    pandas.DataFrame
        A DataFrame with the required columns followed by every optional
        column (missing optional columns are filled with None):

            - date        (datetime64[ns])
            - type        (str, lower-case)
            - category    (str, lower-case)
            - amount      (str, validated decimal text)
            - description (str)
            - status, due_date, account_id, customer_id, work_order_id,
              notes, document_ref

    Raises
    ------
    ValueError
        If required columns are missing or a date/amount cannot be parsed.
    """
    df = pd.read_csv(path, dtype=str)

    # Normalize column names to lowercase (to make the check case-insensitive)
    df.columns = [c.lower().strip() for c in df.columns]
    cols = set(df.columns)

    if "label" in cols and "description" not in cols:
        df = df.rename(columns={"label": "description"})
        cols = set(df.columns)

    missing = [c for c in REQUIRED_COLUMNS if c not in cols]
    if missing:
        raise ValueError(
            "Invalid transactions CSV structure. Missing column(s): "
            f"{', '.join(missing)}. Expected at least: {', '.join(REQUIRED_COLUMNS)} "
            "(column names are case-insensitive; 'label' is accepted as an alias "
            "for 'description')."
        )

    d = df.copy()

    try:
        d["date"] = pd.to_datetime(d["date"], format="%Y-%m-%d", errors="raise")
    except ValueError as exc:
        raise ValueError("Invalid values in 'date' column.") from exc
    if d["date"].isna().any():
        raise ValueError("Missing values in 'date' column.")

    for position, raw_amount in enumerate(d["amount"].tolist()):
        try:
            to_decimal("" if _blank(raw_amount) else raw_amount)
        except ValueError as exc:
            raise ValueError(
                f"Invalid amount {raw_amount!r} on CSV row {position + 1}."
            ) from exc

    d["amount"] = d["amount"].str.strip()
    d["type"] = d["type"].astype(str).str.strip().str.lower()
    d["category"] = d["category"].astype(str).str.strip().str.lower()
    d["description"] = d["description"].fillna("").astype(str)

    for col in OPTIONAL_COLUMNS:
        if col not in d.columns:
            d[col] = None

    return d[REQUIRED_COLUMNS + OPTIONAL_COLUMNS].copy()


def _optional_text(value) -> Optional[str]:
    return None if _blank(value) else str(value).strip()


def _optional_int(value, column: str) -> Optional[int]:
    if _blank(value):
        return None
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid integer in '{column}' column: {value!r}.") from exc


def dataframe_to_new_transactions(df: pd.DataFrame) -> list[NewTransaction]:
    """Convert a normalized transactions DataFrame into NewTransaction objects."""
    new_transactions: list[NewTransaction] = []
    for row in df.to_dict(orient="records"):
        due_raw = row.get("due_date")
        due_date = None if _blank(due_raw) else pd.Timestamp(due_raw).date()
        status = _optional_text(row.get("status"))

        new_transactions.append(
            NewTransaction(
                type=str(row["type"]),
                category=str(row["category"]),
                amount=str(row["amount"]),
                date=pd.Timestamp(row["date"]).date(),
                description=str(row["description"]),
                status=status.lower() if status else "pending",
                due_date=due_date,
                account_id=_optional_int(row.get("account_id"), "account_id"),
                customer_id=_optional_int(row.get("customer_id"), "customer_id"),
                work_order_id=_optional_int(row.get("work_order_id"), "work_order_id"),
                notes=_optional_text(row.get("notes")),
                document_ref=_optional_text(row.get("document_ref")),
            )
        )
    return new_transactions


def import_transactions(df: pd.DataFrame, cfg: DatabaseConfig) -> ImportStats:
    """
    Import normalized transactions into the database.

    Every row is validated (enumerations, amounts, dates) before anything is
    written; a single invalid row aborts the whole import with ValueError.

    Parameters
    ----------
    df:
        DataFrame as returned by `read_transactions_csv`.
    cfg:
        Database configuration.

    Returns
    -------
    ImportStats
    """
    new_transactions = dataframe_to_new_transactions(df)
    rows_inserted = insert_transactions(cfg, new_transactions)

    stats = ImportStats(
        rows_inserted=rows_inserted,
        income_rows=sum(1 for t in new_transactions if t.type == "income"),
        expense_rows=sum(1 for t in new_transactions if t.type == "expense"),
    )
    logger.info(
        "transactions_imported",
        rows_inserted=stats.rows_inserted,
        income_rows=stats.income_rows,
        expense_rows=stats.expense_rows,
    )
    return stats


def write_csv(
    df: pd.DataFrame,
    output_dir: Union[str, "os.PathLike[str]"],
    stem: str,
    *,
    timestamp: Optional[datetime] = None,
) -> Path:
    """
    Write a DataFrame to `<output_dir>/<stem>_<timestamp>.csv`.

    The output directory is created if needed.

    Returns
    -------
    pathlib.Path
        Path of the written file.
    """
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    stamp = (timestamp or datetime.now()).strftime("%Y-%m-%d-%H-%M-%S")
    path = out_dir / f"{stem}_{stamp}.csv"
    df.to_csv(path, index=False)

    logger.debug("csv_written", path=str(path), rows=len(df))
    return path
