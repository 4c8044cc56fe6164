import sqlite3
from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from smb_opsledger.accounts import (
    NewAccount,
    create_account,
    delete_account,
    get_account,
    update_account_balance,
)
from smb_opsledger.db import DatabaseConfig, connect
from smb_opsledger.transactions import (
    NewTransaction,
    TransactionsFilter,
    TransactionUpdate,
    create_transaction,
    delete_transaction,
    get_accounts_payable,
    get_accounts_receivable,
    get_transaction,
    get_transaction_entries,
    get_transactions_by_category,
    get_transactions_by_customer,
    get_transactions_by_date_range,
    get_transactions_by_status,
    get_transactions_by_type,
    get_transactions_by_account,
    get_transactions_by_work_order,
    insert_transactions,
    list_transactions,
    load_transactions,
    record_transaction_entry,
    search_transactions,
    update_transaction,
)


def make_tmp_db_cfg(tmp_path) -> DatabaseConfig:
    """Helper to build a DatabaseConfig pointing to a temporary SQLite file."""
    return DatabaseConfig(engine="sqlite", path=tmp_path / "transactions.sqlite")


def _new(**overrides) -> NewTransaction:
    data = {
        "type": "income",
        "category": "sales",
        "amount": "100.00",
        "date": date(2024, 1, 5),
        "description": "Invoice 001",
    }
    data.update(overrides)
    return NewTransaction(**data)


def test_create_transaction_defaults(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)

    tx = create_transaction(cfg, _new(customer_id=7, document_ref="INV-001"))

    assert tx.status == "pending"
    assert tx.amount == Decimal("100.00")
    assert tx.date == date(2024, 1, 5)
    assert tx.due_date is None
    assert tx.customer_id == 7
    assert tx.document_ref == "INV-001"
    assert get_transaction(cfg, tx.id) == tx

    data = tx.to_dict()
    assert data["amount"] == "100.00"
    assert data["date"] == "2024-01-05"


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": 0},
        {"amount": "-5"},
        {"amount": "abc"},
        {"amount": "1.234"},
        {"type": "transfer"},
        {"status": "refunded"},
        {"category": "groceries"},
        {"description": None},
    ],
)
def test_create_transaction_rejects_invalid_input(tmp_path, overrides):
    cfg = make_tmp_db_cfg(tmp_path)

    with pytest.raises(ValueError):
        create_transaction(cfg, _new(**overrides))

    assert list_transactions(cfg) == []


def test_single_criterion_filters(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    sale = create_transaction(
        cfg, _new(customer_id=1, work_order_id=10, status="paid")
    )
    rent = create_transaction(
        cfg,
        _new(type="expense", category="rent", amount="40", date=date(2024, 1, 10)),
    )
    service = create_transaction(
        cfg,
        _new(category="service", customer_id=2, date=date(2024, 2, 1), status="overdue"),
    )

    assert [t.id for t in get_transactions_by_type(cfg, "income")] == [sale.id, service.id]
    assert [t.id for t in get_transactions_by_status(cfg, "pending")] == [rent.id]
    assert [t.id for t in get_transactions_by_category(cfg, "rent")] == [rent.id]
    assert [t.id for t in get_transactions_by_customer(cfg, 2)] == [service.id]
    assert [t.id for t in get_transactions_by_work_order(cfg, 10)] == [sale.id]


def test_get_transactions_by_account(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    account = create_account(cfg, NewAccount(name="Bank", type="checking"))
    linked = create_transaction(cfg, _new(account_id=account.id))
    create_transaction(cfg, _new())

    assert [t.id for t in get_transactions_by_account(cfg, account.id)] == [linked.id]


def test_date_range_is_inclusive_on_both_ends(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    for day in (1, 5, 10, 11):
        create_transaction(cfg, _new(date=date(2024, 1, day)))

    in_range = get_transactions_by_date_range(cfg, date(2024, 1, 5), date(2024, 1, 10))

    assert [t.date.day for t in in_range] == [5, 10]
    assert get_transactions_by_date_range(cfg, date(2024, 1, 10), date(2024, 1, 5)) == []


def test_accounts_payable_and_receivable(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    open_invoice = create_transaction(cfg, _new(status="pending"))
    late_invoice = create_transaction(cfg, _new(status="overdue"))
    create_transaction(cfg, _new(status="paid"))
    create_transaction(cfg, _new(status="cancelled"))
    bill = create_transaction(cfg, _new(type="expense", category="utilities"))
    create_transaction(cfg, _new(type="expense", category="rent", status="paid"))

    assert [t.id for t in get_accounts_receivable(cfg)] == [open_invoice.id, late_invoice.id]
    assert [t.id for t in get_accounts_payable(cfg)] == [bill.id]


def test_search_transactions_combines_filters(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    create_transaction(cfg, _new(description="Boiler repair", category="service"))
    target = create_transaction(
        cfg,
        _new(description="BOILER parts", type="expense", category="supplies", status="paid"),
    )
    create_transaction(cfg, _new(description="Boiler parts", type="expense", category="supplies"))

    found = search_transactions(
        cfg,
        TransactionsFilter(
            type="expense", statuses=("paid",), description_contains="boiler"
        ),
    )

    assert [t.id for t in found] == [target.id]
    assert search_transactions(cfg, TransactionsFilter(statuses=())) == []


def test_search_transactions_ordering_and_pagination(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    small = create_transaction(cfg, _new(amount="5", date=date(2024, 3, 1)))
    large = create_transaction(cfg, _new(amount="500", date=date(2024, 1, 1)))
    medium = create_transaction(cfg, _new(amount="50", date=date(2024, 2, 1)))

    by_amount = search_transactions(
        cfg, TransactionsFilter(), order_by=("amount", "desc")
    )
    assert [t.id for t in by_amount] == [large.id, medium.id, small.id]

    by_date = search_transactions(
        cfg, TransactionsFilter(), order_by=("date", "ASC"), limit=2, offset=1
    )
    assert [t.id for t in by_date] == [medium.id, small.id]

    with pytest.raises(ValueError):
        search_transactions(cfg, TransactionsFilter(), order_by=("description", "ASC"))
    with pytest.raises(ValueError):
        search_transactions(cfg, TransactionsFilter(), order_by=("date", "UP"))


def test_update_transaction_partial(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    tx = create_transaction(cfg, _new(notes="first"))

    updated = update_transaction(
        cfg, tx.id, TransactionUpdate(status="paid", amount="120.50")
    )

    assert updated.status == "paid"
    assert updated.amount == Decimal("120.50")
    assert updated.notes == "first"
    assert updated.description == tx.description


def test_update_transaction_errors(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    tx = create_transaction(cfg, _new())

    with pytest.raises(ValueError, match="No fields to update"):
        update_transaction(cfg, tx.id, TransactionUpdate())
    with pytest.raises(ValueError):
        update_transaction(cfg, tx.id, TransactionUpdate(amount="-1"))
    with pytest.raises(ValueError):
        update_transaction(cfg, tx.id, TransactionUpdate(status="lost"))

    assert update_transaction(cfg, 999, TransactionUpdate(status="paid")) is None
    assert get_transaction(cfg, tx.id).status == "pending"


def test_transactions_do_not_touch_account_balances(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    account = create_account(cfg, NewAccount(name="Bank", type="checking"))

    tx = create_transaction(cfg, _new(status="paid", account_id=account.id))
    update_transaction(cfg, tx.id, TransactionUpdate(amount="999"))
    delete_transaction(cfg, tx.id)

    assert get_account(cfg, account.id).balance == Decimal("0")


def test_delete_transaction(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    tx = create_transaction(cfg, _new())

    assert delete_transaction(cfg, tx.id) is True
    assert get_transaction(cfg, tx.id) is None
    assert delete_transaction(cfg, tx.id) is False


def test_deleting_an_account_unlinks_its_transactions(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    account = create_account(cfg, NewAccount(name="Old bank", type="checking"))
    tx = create_transaction(cfg, _new(account_id=account.id))

    delete_account(cfg, account.id)

    assert get_transaction(cfg, tx.id).account_id is None


def test_load_transactions_empty_frame_has_typed_columns(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)

    df = load_transactions(cfg, date(2024, 1, 1), date(2024, 12, 31))

    assert df.empty
    assert list(df.columns) == ["id", "date", "type", "status", "category", "amount_cents"]
    assert pd.api.types.is_datetime64_any_dtype(df["date"])
    assert df["amount_cents"].dtype == "int64"


def test_load_transactions_keeps_integer_cents(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    create_transaction(cfg, _new(amount="19.99", date=date(2024, 1, 1)))
    create_transaction(cfg, _new(amount="0.01", date=date(2024, 6, 1)))

    df = load_transactions(cfg, date(2024, 1, 1), date(2024, 1, 31))

    assert len(df) == 1
    assert df["amount_cents"].tolist() == [1999]
    assert df["date"].iloc[0] == pd.Timestamp("2024-01-01")
    assert len(load_transactions(cfg)) == 2


def test_insert_transactions_is_all_or_nothing(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)

    with pytest.raises(ValueError):
        insert_transactions(cfg, [_new(), _new(amount="-1")])
    assert list_transactions(cfg) == []

    assert insert_transactions(cfg, [_new(), _new(type="expense", category="rent")]) == 2
    assert len(list_transactions(cfg)) == 2
    assert insert_transactions(cfg, []) == 0


def test_record_transaction_entry_moves_balance(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    account = create_account(cfg, NewAccount(name="Bank", type="checking"))
    tx = create_transaction(
        cfg, _new(type="expense", category="rent", amount="40", status="paid")
    )

    entry = record_transaction_entry(cfg, tx.id, account.id, "-40")

    assert entry is not None
    assert entry.amount == Decimal("-40.00")
    assert get_account(cfg, account.id).balance == Decimal("-40")
    assert get_transaction_entries(cfg, tx.id) == [entry]


def test_record_transaction_entry_unknown_targets(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    account = create_account(cfg, NewAccount(name="Bank", type="checking"))
    tx = create_transaction(cfg, _new())

    assert record_transaction_entry(cfg, tx.id, 999, "10") is None
    assert record_transaction_entry(cfg, 999, account.id, "10") is None

    assert get_transaction_entries(cfg, tx.id) == []
    assert get_account(cfg, account.id).balance == Decimal("0")


@pytest.mark.parametrize("amount", ["1e30", "NaN", "100000000000000000"])
def test_malformed_or_oversized_amounts_raise_value_error(tmp_path, amount):
    cfg = make_tmp_db_cfg(tmp_path)
    tx = create_transaction(cfg, _new())

    with pytest.raises(ValueError):
        create_transaction(cfg, _new(amount=amount))
    with pytest.raises(ValueError):
        update_transaction(cfg, tx.id, TransactionUpdate(amount=amount))
    with pytest.raises(ValueError):
        insert_transactions(cfg, [_new(amount=amount)])

    assert [t.id for t in list_transactions(cfg)] == [tx.id]
    assert get_transaction(cfg, tx.id).amount == Decimal("100.00")


def test_record_transaction_entry_requires_paid_status(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    account = create_account(cfg, NewAccount(name="Bank", type="checking"))
    tx = create_transaction(cfg, _new(status="pending"))

    with pytest.raises(ValueError, match="Only paid"):
        record_transaction_entry(cfg, tx.id, account.id, "100")

    assert get_transaction_entries(cfg, tx.id) == []
    assert get_account(cfg, account.id).balance == Decimal("0")


def test_record_transaction_entry_posts_once_per_account(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    bank = create_account(cfg, NewAccount(name="Bank", type="checking"))
    till = create_account(cfg, NewAccount(name="Till", type="cash"))
    tx = create_transaction(cfg, _new(status="paid"))

    first = record_transaction_entry(cfg, tx.id, bank.id, "100")
    with pytest.raises(ValueError, match="already posted"):
        record_transaction_entry(cfg, tx.id, bank.id, "100")
    other = record_transaction_entry(cfg, tx.id, till.id, "100")

    assert get_transaction_entries(cfg, tx.id) == [first, other]
    assert get_account(cfg, bank.id).balance == Decimal("100")
    assert get_account(cfg, till.id).balance == Decimal("100")


def test_duplicate_posting_is_rejected_by_the_schema(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    account = create_account(cfg, NewAccount(name="Bank", type="checking"))
    tx = create_transaction(cfg, _new(status="paid"))
    record_transaction_entry(cfg, tx.id, account.id, "100")

    conn = connect(cfg)
    try:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO transaction_entries "
                "(transaction_id, account_id, amount_cents, created_at) "
                "VALUES (?, ?, ?, ?);",
                (tx.id, account.id, 10000, "2024-01-05T00:00:00+00:00"),
            )
    finally:
        conn.close()


def test_record_transaction_entry_keeps_balance_in_range(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    account = create_account(cfg, NewAccount(name="Bank", type="checking"))
    update_account_balance(cfg, account.id, "9999999999999")
    tx = create_transaction(cfg, _new(status="paid", amount="5"))

    with pytest.raises(ValueError, match="out of range"):
        record_transaction_entry(cfg, tx.id, account.id, "5")

    assert get_transaction_entries(cfg, tx.id) == []
    assert get_account(cfg, account.id).balance == Decimal("9999999999999")
