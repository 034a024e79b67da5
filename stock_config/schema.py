"""
Stock ledger configuration schema.

Frozen dataclasses the loader fills from YAML.  Every field has a default
so that a partial file only overrides what it names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30

    @property
    def pool_options(self) -> dict[str, int]:
        return {
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
        }


@dataclass(frozen=True)
class NumberingConfig:
    """Document number prefixes; numbers look like ``DEL-2024-001``."""

    delivery_prefix: str = "DEL"
    issue_prefix: str = "ISS"
    transfer_prefix: str = "TRF"
    ncr_prefix: str = "NCR"
    padding: int = 3


@dataclass(frozen=True)
class VarianceConfig:
    # 0 means every non-zero price difference raises an NCR
    tolerance_percent: Decimal = Decimal("0")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class StockLedgerConfig:
    """Root configuration object."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    variance: VarianceConfig = field(default_factory=VarianceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
