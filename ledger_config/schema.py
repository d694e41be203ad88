"""
Configuration schema (``ledger_config.schema``).

Frozen dataclasses for the parsed YAML configuration.  Pure data, ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ledger_kernel.domain.reference import PercentageTable


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerConfig:
    """The complete runtime configuration."""

    database: DatabaseConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    # Seed values for the commission_percentages table
    percentages: PercentageTable | None = None
    config_path: Path | None = None
