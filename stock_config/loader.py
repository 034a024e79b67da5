"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Reads YAML files and parses them into the frozen dataclasses of
``stock_config.schema``.  Callers go through ``stock_config.get_config``.

Invariants enforced
-------------------
* Unknown keys are rejected with ``ValueError`` so that a typo never
  silently falls back to a default.
* The tolerance is parsed as ``Decimal`` from its string form, never
  through float.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad value types  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    NumberingConfig,
    StockLedgerConfig,
    VarianceConfig,
)

DATABASE_URL_ENV = "STOCK_LEDGER_DATABASE_URL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; ``overlay`` wins."""
    result = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge(result[key], value)
        else:
            result[key] = value
    return result


def _section(cls: type, data: dict[str, Any] | None, name: str) -> dict[str, Any]:
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError(f"{name}: expected a mapping, got {type(data).__name__}")
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"{name}: unknown keys {unknown}")
    return data


def parse_database(data: dict[str, Any] | None) -> DatabaseConfig:
    return DatabaseConfig(**_section(DatabaseConfig, data, "database"))


def parse_numbering(data: dict[str, Any] | None) -> NumberingConfig:
    config = NumberingConfig(**_section(NumberingConfig, data, "numbering"))
    if config.padding < 1:
        raise ValueError(f"numbering.padding must be >= 1, got {config.padding}")
    return config


def parse_variance(data: dict[str, Any] | None) -> VarianceConfig:
    data = _section(VarianceConfig, data, "variance")
    raw = data.get("tolerance_percent", "0")
    try:
        tolerance = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"variance.tolerance_percent is not a number: {raw!r}") from None
    if tolerance < 0:
        raise ValueError(f"variance.tolerance_percent must be >= 0, got {tolerance}")
    return VarianceConfig(tolerance_percent=tolerance)


def parse_logging(data: dict[str, Any] | None) -> LoggingConfig:
    return LoggingConfig(**_section(LoggingConfig, data, "logging"))


def parse_config(data: dict[str, Any]) -> StockLedgerConfig:
    unknown = sorted(set(data) - {"database", "numbering", "variance", "logging"})
    if unknown:
        raise ValueError(f"unknown configuration sections {unknown}")
    return StockLedgerConfig(
        database=parse_database(data.get("database")),
        numbering=parse_numbering(data.get("numbering")),
        variance=parse_variance(data.get("variance")),
        logging=parse_logging(data.get("logging")),
    )
