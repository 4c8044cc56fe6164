import sqlite3
from datetime import date, datetime
from pathlib import Path

import pytest

from smb_opsledger.db import (
    TRANSACTION_CATEGORIES,
    DatabaseConfig,
    check_choice,
    has_transactions,
    init_database,
    to_iso_date,
)
from smb_opsledger.transactions import NewTransaction, create_transaction


def make_tmp_db_cfg(tmp_path) -> DatabaseConfig:
    """Helper to build a DatabaseConfig pointing to a temporary SQLite file."""
    db_path = tmp_path / "test_db.sqlite"
    return DatabaseConfig(engine="sqlite", path=db_path)


def test_init_database_creates_file_and_schema(tmp_path):
    """init_database should create the SQLite file and an empty schema."""
    cfg = make_tmp_db_cfg(tmp_path)

    assert not cfg.path.exists()
    init_database(cfg)
    assert cfg.path.exists()

    conn = sqlite3.connect(cfg.path)
    try:
        tables = {
            row[0]
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table';"
            )
        }
    finally:
        conn.close()

    assert {"accounts", "transactions", "transaction_entries", "budgets"} <= tables

    # A freshly initialized database should not contain any transaction.
    assert has_transactions(cfg) is False


def test_init_database_is_idempotent_and_creates_parent_dirs(tmp_path):
    cfg = DatabaseConfig(engine="sqlite", path=tmp_path / "nested" / "db" / "x.sqlite")

    init_database(cfg)
    init_database(cfg)

    assert cfg.path.exists()


def test_has_transactions_after_insert(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    create_transaction(
        cfg,
        NewTransaction(
            type="income",
            category="sales",
            amount="10.00",
            date=date(2025, 1, 1),
            description="Sale",
        ),
    )
    assert has_transactions(cfg) is True


def test_unsupported_engine_is_rejected(tmp_path):
    cfg = DatabaseConfig(engine="postgres", path=tmp_path / "db.sqlite")

    with pytest.raises(ValueError, match="Unsupported database engine"):
        init_database(cfg)


def test_check_choice():
    assert check_choice("rent", TRANSACTION_CATEGORIES, "category") == "rent"
    with pytest.raises(ValueError, match="Invalid category"):
        check_choice("groceries", TRANSACTION_CATEGORIES, "category")


def test_to_iso_date_accepts_dates_datetimes_and_strings():
    assert to_iso_date(date(2024, 1, 5)) == "2024-01-05"
    assert to_iso_date(datetime(2024, 1, 5, 17, 30)) == "2024-01-05"
    assert to_iso_date(" 2024-01-05 ") == "2024-01-05"
    with pytest.raises(ValueError):
        to_iso_date("05/01/2024")


def test_database_config_accepts_path_objects(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    assert isinstance(cfg.path, Path)
