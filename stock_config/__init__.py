"""
stock_config -- single public entrypoint for stock ledger configuration.

Responsibility:
    ``get_config()`` returns the frozen ``StockLedgerConfig`` built from the
    packaged ``defaults.yaml``, an optional override file, and the
    ``STOCK_LEDGER_DATABASE_URL`` environment variable, in that order of
    precedence (last wins).

Architecture position:
    Configuration -- sits above ``stock_kernel``.  The kernel never imports
    from here; services and the operations facade receive config values
    through their constructors.

Failure modes:
    - ``FileNotFoundError`` for a missing override file.
    - ``ValueError`` for unknown keys or bad values.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from stock_config.loader import DATABASE_URL_ENV, load_yaml_file, merge, parse_config
from stock_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    NumberingConfig,
    StockLedgerConfig,
    VarianceConfig,
)

_logger = logging.getLogger("stock_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> StockLedgerConfig:
    """Load the effective configuration."""
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = merge(data, load_yaml_file(Path(path)))

    config = parse_config(data)

    env = os.environ if environ is None else environ
    url = env.get(DATABASE_URL_ENV)
    if url:
        config = replace(config, database=replace(config.database, url=url))

    _logger.info(
        "stock_config_loaded",
        extra={
            "override_path": str(path) if path is not None else None,
            "database_dialect": config.database.url.split(":", 1)[0],
            "variance_tolerance_percent": config.variance.tolerance_percent,
        },
    )
    return config


__all__ = [
    "DatabaseConfig",
    "LoggingConfig",
    "NumberingConfig",
    "StockLedgerConfig",
    "VarianceConfig",
    "get_config",
]
