from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

import smb_opsledger.finance_service as svc
from smb_opsledger.accounts import NewAccount
from smb_opsledger.budgets import NewBudget
from smb_opsledger.config import AppConfig, FiscalYear, LoggingConfig
from smb_opsledger.db import DatabaseConfig
from smb_opsledger.periods import Period
from smb_opsledger.transactions import NewTransaction, TransactionsFilter

JANUARY = Period(start=date(2024, 1, 1), end=date(2024, 1, 31), label="January")


def make_app_config(tmp_path, balance_update_mode: str = "delta") -> AppConfig:
    """Helper to build an AppConfig backed by a temporary SQLite file."""
    return AppConfig(
        fiscal_year=FiscalYear(start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)),
        currency="USD",
        database=DatabaseConfig(engine="sqlite", path=tmp_path / "service.sqlite"),
        balance_update_mode=balance_update_mode,
        default_period="fy",
        logging=LoggingConfig(level="WARNING", format="console"),
        display_mode="table",
        output_dir=tmp_path / "output",
    )


def _tx(app_config, **overrides):
    data = {
        "type": "income",
        "category": "sales",
        "amount": "100",
        "date": date(2024, 1, 5),
        "description": "Invoice",
    }
    data.update(overrides)
    return svc.create_transaction(app_config, NewTransaction(**data))


def test_apply_balance_update_uses_configured_mode(tmp_path):
    app_config = make_app_config(tmp_path)
    account = svc.create_account(app_config, NewAccount(name="Bank", type="checking"))

    svc.apply_balance_update(app_config, account.id, 150)
    updated = svc.apply_balance_update(app_config, account.id, -30)
    assert updated.balance == Decimal("120")

    absolute_config = replace(app_config, balance_update_mode="absolute")
    updated = svc.apply_balance_update(absolute_config, account.id, "75.25")
    assert updated.balance == Decimal("75.25")


def test_apply_balance_update_explicit_mode(tmp_path):
    app_config = make_app_config(tmp_path, balance_update_mode="absolute")
    account = svc.create_account(app_config, NewAccount(name="Till", type="cash"))
    svc.apply_balance_update(app_config, account.id, 10)

    updated = svc.apply_balance_update(app_config, account.id, 5, mode="delta")

    assert updated.balance == Decimal("15")
    assert svc.apply_balance_update(app_config, 999, 5) is None
    with pytest.raises(ValueError, match="Invalid balance update mode"):
        svc.apply_balance_update(app_config, account.id, 5, mode="multiply")


def test_mark_transaction_paid(tmp_path):
    app_config = make_app_config(tmp_path)
    tx = _tx(app_config)

    paid = svc.mark_transaction_paid(app_config, tx.id)

    assert paid.status == "paid"
    assert svc.mark_transaction_paid(app_config, tx.id) == paid
    assert svc.mark_transaction_paid(app_config, 999) is None

    cancelled = _tx(app_config, status="cancelled")
    with pytest.raises(ValueError, match="cancelled"):
        svc.mark_transaction_paid(app_config, cancelled.id)


def test_post_transaction_to_account(tmp_path):
    app_config = make_app_config(tmp_path)
    account = svc.create_account(app_config, NewAccount(name="Bank", type="checking"))
    income = _tx(app_config, status="paid", account_id=account.id)
    expense = _tx(
        app_config, type="expense", category="rent", amount="40", status="paid"
    )

    svc.post_transaction_to_account(app_config, income.id)
    entry = svc.post_transaction_to_account(app_config, expense.id, account.id)

    assert entry.amount == Decimal("-40")
    assert entry.account_id == account.id
    assert svc.get_account(app_config, account.id).balance == Decimal("60")
    assert svc.get_transaction_entries(app_config, expense.id) == [entry]


def test_post_transaction_rules(tmp_path):
    app_config = make_app_config(tmp_path)
    account = svc.create_account(app_config, NewAccount(name="Bank", type="checking"))
    pending = _tx(app_config, account_id=account.id)
    unlinked = _tx(app_config, status="paid")
    paid = _tx(app_config, status="paid", account_id=account.id)

    with pytest.raises(ValueError, match="Only paid"):
        svc.post_transaction_to_account(app_config, pending.id)
    with pytest.raises(ValueError, match="account id is required"):
        svc.post_transaction_to_account(app_config, unlinked.id)

    svc.post_transaction_to_account(app_config, paid.id)
    with pytest.raises(ValueError, match="already posted"):
        svc.post_transaction_to_account(app_config, paid.id)

    assert svc.post_transaction_to_account(app_config, 999, account.id) is None
    assert svc.post_transaction_to_account(app_config, unlinked.id, 999) is None
    assert svc.get_account(app_config, account.id).balance == Decimal("100")


def test_list_transactions_for_period_merges_filters(tmp_path):
    app_config = make_app_config(tmp_path)
    late = _tx(app_config, date=date(2024, 1, 20))
    early = _tx(app_config, date=date(2024, 1, 2))
    _tx(app_config, date=date(2024, 2, 2))
    _tx(app_config, type="expense", category="rent", date=date(2024, 1, 3))

    listed = svc.list_transactions_for_period(app_config, JANUARY)
    assert [t.date.day for t in listed] == [2, 3, 20]

    incomes = svc.list_transactions_for_period(
        app_config, JANUARY, TransactionsFilter(type="income")
    )
    assert [t.id for t in incomes] == [early.id, late.id]

    narrowed = svc.list_transactions_for_period(
        app_config, JANUARY, TransactionsFilter(start=date(2024, 1, 10))
    )
    assert [t.id for t in narrowed] == [late.id]


def test_reports_for_period(tmp_path):
    app_config = make_app_config(tmp_path)
    _tx(app_config, status="paid")
    _tx(app_config, type="expense", category="rent", amount="40", status="paid")
    svc.create_budget(
        app_config,
        NewBudget(
            category="rent",
            amount="100",
            period_start=date(2024, 1, 1),
            period_end=date(2024, 1, 31),
        ),
    )

    cash_flow = svc.cash_flow_for_period(app_config, JANUARY)
    pnl = svc.profit_and_loss_for_period(app_config, JANUARY)
    lines = svc.budget_vs_actual_for_period(app_config, JANUARY)

    assert cash_flow.net_cash_flow == Decimal("60")
    assert len(cash_flow.daily_cash_flow) == 31
    assert pnl.profit == Decimal("60")
    assert [line.variance for line in lines] == [Decimal("60")]
    assert svc.account_balances(app_config).total_balance == Decimal("0")
