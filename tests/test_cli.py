import json

import pytest

from smb_opsledger import cli


def write_config(tmp_path) -> str:
    path = tmp_path / "smb_opsledger_config.toml"
    path.write_text(
        """
[fiscal_year]
start_date = "2024-01-01"
end_date = "2024-12-31"

[database]
path = "ledger.sqlite"

[display]
output_dir = "out"
""",
        encoding="utf-8",
    )
    return str(path)


def run(config_path: str, *argv: str) -> None:
    cli.main(["--config", config_path, *argv])


def test_version_flag(capsys):
    cli.main(["--version"])
    assert "smb_opsledger version" in capsys.readouterr().out


def test_account_lifecycle_with_json_output(tmp_path, capsys):
    config_path = write_config(tmp_path)

    run(config_path, "accounts", "create", "--name", "Bank", "--type", "checking")
    run(config_path, "accounts", "balance", "1", "150")
    run(config_path, "accounts", "balance", "1", "-30")
    capsys.readouterr()

    run(config_path, "accounts", "show", "1", "--format", "json")
    data = json.loads(capsys.readouterr().out)

    assert data["name"] == "Bank"
    assert data["balance"] == "120.00"


def test_reports_json_output_is_clean(tmp_path, capsys):
    config_path = write_config(tmp_path)
    run(
        config_path,
        "transactions", "create",
        "--type", "income", "--category", "sales", "--amount", "100",
        "--date", "2024-01-05", "--description", "Sale", "--status", "paid",
    )
    run(
        config_path,
        "transactions", "create",
        "--type", "expense", "--category", "rent", "--amount", "40",
        "--date", "2024-01-05", "--description", "Rent", "--status", "paid",
    )
    capsys.readouterr()

    run(
        config_path,
        "reports", "cash-flow",
        "--from-date", "2024-01-01", "--to-date", "2024-01-10",
        "--format", "json",
    )
    report = json.loads(capsys.readouterr().out)

    assert report["total_income"] == "100.00"
    assert report["total_expense"] == "40.00"
    assert report["net_cash_flow"] == "60.00"
    assert len(report["daily_cash_flow"]) == 10


def test_transactions_csv_import_and_export(tmp_path, capsys):
    config_path = write_config(tmp_path)
    csv_path = tmp_path / "transactions.csv"
    csv_path.write_text(
        "date,type,category,amount,description,status\n"
        "2024-02-01,income,service,250.50,Repair,paid\n",
        encoding="utf-8",
    )

    run(config_path, "transactions", "import", str(csv_path))
    run(config_path, "reports", "profit-and-loss", "--period", "fy", "--format", "csv")

    out = capsys.readouterr().out
    assert "Wrote" in out
    written = list((tmp_path / "out").glob("profit_and_loss_*.csv"))
    assert len(written) == 1


def test_empty_table_output(tmp_path, capsys):
    config_path = write_config(tmp_path)

    run(config_path, "budgets", "list")

    assert "No rows found for the given criteria." in capsys.readouterr().out


def test_unknown_record_exits(tmp_path):
    config_path = write_config(tmp_path)

    with pytest.raises(SystemExit, match="Transaction #42 not found"):
        run(config_path, "transactions", "show", "42")


def test_invalid_input_exits_with_error(tmp_path):
    config_path = write_config(tmp_path)

    with pytest.raises(SystemExit, match="Error: "):
        run(
            config_path,
            "budgets", "create",
            "--category", "rent", "--amount", "100",
            "--start", "2024-02-01", "--end", "2024-01-01",
        )


def test_out_of_range_amount_exits_with_error(tmp_path):
    config_path = write_config(tmp_path)
    run(config_path, "accounts", "create", "--name", "Bank", "--type", "checking")

    with pytest.raises(SystemExit, match="Error: .*out of range"):
        run(config_path, "accounts", "balance", "1", "1e30")
    with pytest.raises(SystemExit, match="Error: "):
        run(
            config_path,
            "transactions", "create",
            "--type", "income", "--category", "sales", "--amount", "1e30",
            "--date", "2024-01-05", "--description", "Sale",
        )
