# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SMB OpsLedger.

This module is responsible for:
- loading the main application configuration from a TOML file,
- validating the closed sets of options (balance update mode, default
  reporting period, log level and format, display mode),
- exposing typed dataclasses used by the rest of the application.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .db import DatabaseConfig

DEFAULT_CONFIG_FILE = "smb_opsledger_config.toml"

BALANCE_UPDATE_MODES = ("delta", "absolute")
REPORT_PERIODS = ("fy", "ytd", "mtd", "last-month", "last-fy")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS = ("console", "json")
DISPLAY_MODES = ("table", "json", "csv")


@dataclass(frozen=True)
class FiscalYear:
    """Represents a fiscal year with a start and end date."""

    start_date: date
    end_date: date


@dataclass(frozen=True)
class LoggingConfig:
    """Log level and renderer used by `logging_config.configure_logging`."""

    level: str
    format: str


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for SMB OpsLedger.

    This aggregates:
    - the fiscal year definition,
    - the presentation currency,
    - the database configuration (where accounts, transactions and
      budgets are stored),
    - finance options (how an account balance update is interpreted),
    - the default reporting period,
    - logging and display options.
    """

    fiscal_year: FiscalYear
    currency: str
    database: DatabaseConfig
    balance_update_mode: str
    default_period: str
    logging: LoggingConfig
    display_mode: str
    output_dir: Path


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """Return a TOML table by name, or an empty mapping if absent or malformed."""
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def _choice(value: Any, allowed: tuple[str, ...], key: str) -> str:
    text = str(value)
    if text not in allowed:
        raise ValueError(
            f"Invalid value for '{key}' in the configuration: {text!r}. "
            f"Expected one of: {', '.join(allowed)}."
        )
    return text


def _parse_fiscal_year(config_data: Mapping[str, Any]) -> FiscalYear:
    """
    Extract and validate the fiscal year from raw TOML configuration data.

    Args:
        config_data: Parsed TOML root dictionary.

    Returns:
        A FiscalYear instance.

    Raises:
        ValueError: if the fiscal year section or dates are missing/invalid.
    """
    fiscal_data = config_data.get("fiscal_year") or {}
    if not isinstance(fiscal_data, Mapping):
        raise ValueError("Config file is missing [fiscal_year] table.")

    try:
        start_raw = fiscal_data["start_date"]
        end_raw = fiscal_data["end_date"]
    except KeyError as exc:
        raise ValueError(
            "Config file is missing [fiscal_year].start_date or end_date."
        ) from exc

    try:
        start = date.fromisoformat(str(start_raw))
        end = date.fromisoformat(str(end_raw))
    except ValueError as exc:
        raise ValueError(
            "Invalid fiscal year dates, expected YYYY-MM-DD format."
        ) from exc

    if end < start:
        raise ValueError("Fiscal year end_date cannot be before start_date.")

    return FiscalYear(start_date=start, end_date=end)


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the SMB OpsLedger application configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [fiscal_year]
        Defines the fiscal year start and end dates (required).

    [accounting]
        Defines the presentation currency (default "USD").

    [database]
        Defines the database engine and the SQLite file path.

    [finance]
        `balance_update_mode`: "delta" (amount is added to the current
        balance) or "absolute" (amount replaces the balance). Default "delta".

    [reports]
        `default_period`: period used when the CLI receives no period
        arguments (fy, ytd, mtd, last-month, last-fy). Default "fy".

    [logging]
        `level` (DEBUG, INFO, WARNING, ERROR) and `format` (console, json).

    [display]
        `mode` (table, json, csv) and `output_dir` for CSV exports.

    Notes
    -----
    All file paths in the TOML are resolved relative to the directory of
    the TOML file itself.

    Parameters
    ----------
    config_path : str, optional
        Path to the TOML configuration file. Defaults to
        `smb_opsledger_config.toml` in the current directory.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    ValueError
        If a section contains an invalid value.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Fiscal year
    fiscal_year = _parse_fiscal_year(raw)

    # 2) Accounting section
    accounting_section = _section(raw, "accounting")
    currency = str(accounting_section.get("currency") or "USD")

    # 3) Database section
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or "data/db/smb_opsledger.sqlite"
    db_path = (base_dir / str(db_path_raw)).resolve()

    database_config = DatabaseConfig(engine=db_engine, path=db_path)

    # 4) Finance options
    finance_section = _section(raw, "finance")
    balance_update_mode = _choice(
        finance_section.get("balance_update_mode", "delta"),
        BALANCE_UPDATE_MODES,
        "finance.balance_update_mode",
    )

    # 5) Reports options
    reports_section = _section(raw, "reports")
    default_period = _choice(
        reports_section.get("default_period", "fy"),
        REPORT_PERIODS,
        "reports.default_period",
    )

    # 6) Logging options
    logging_section = _section(raw, "logging")
    logging_config = LoggingConfig(
        level=_choice(
            str(logging_section.get("level", "WARNING")).upper(),
            LOG_LEVELS,
            "logging.level",
        ),
        format=_choice(
            logging_section.get("format", "console"),
            LOG_FORMATS,
            "logging.format",
        ),
    )

    # 7) Display options
    display_section = _section(raw, "display")
    display_mode = _choice(
        display_section.get("mode", "table"), DISPLAY_MODES, "display.mode"
    )
    output_dir_raw = display_section.get("output_dir") or "data/output"
    output_dir = (base_dir / str(output_dir_raw)).resolve()

    return AppConfig(
        fiscal_year=fiscal_year,
        currency=currency,
        database=database_config,
        balance_update_mode=balance_update_mode,
        default_period=default_period,
        logging=logging_config,
        display_mode=display_mode,
        output_dir=output_dir,
    )
