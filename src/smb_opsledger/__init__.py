# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SMB OpsLedger
-------------

The financial module of an operations back office for Small and
Medium-sized Businesses (SMBs): service work orders, customers and a
catalog live around it, while this package keeps track of the money.

Main capabilities:
- financial accounts (bank, cash, credit...) with running balances and
  explicit delta / absolute balance updates,
- income and expense transactions with statuses, categories and links to
  accounts, customers and work orders,
- accounts payable / receivable views,
- posting of paid transactions to account balances,
- per-category budgets over date ranges,
- reports: cash flow (with a daily series), profit and loss,
  budget vs. actual, account balances,
- exact money arithmetic (integer cents, Decimal),
- a SQLite database as the single source of truth,
- CSV import and CSV/JSON export through the command-line interface.

Version: 0.1.0

Usage:
    python -m smb_opsledger.cli --help
"""

__all__ = ["accounts", "transactions", "budgets", "reports", "finance_service"]

__version__ = "0.1.0"
