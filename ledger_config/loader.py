"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``ledger_config.schema`` dataclasses.  Runtime callers go through
``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Percentage defaults are validated as a complete ``PercentageTable``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database.url``  -> ``KeyError``.
* Invalid percentage table  -> ``InvalidPercentageTableError`` /
  ``MissingPercentageError``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import DatabaseConfig, LedgerConfig, LoggingConfig
from ledger_kernel.domain.reference import PercentageTable

# Overrides database.url when set
DATABASE_URL_ENV = "LEDGER_DATABASE_URL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    url = os.environ.get(DATABASE_URL_ENV) or data["url"]
    return DatabaseConfig(
        url=url,
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_pre_ping=bool(data.get("pool_pre_ping", True)),
        pool_timeout=int(data.get("pool_timeout", 30)),
        pool_recycle=int(data.get("pool_recycle", 1800)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown log level: {level}")
    return LoggingConfig(level=level)


def parse_percentages(data: dict[str, Any] | None) -> PercentageTable | None:
    if not data:
        return None
    return PercentageTable.from_mapping(data)


def parse_config(data: dict[str, Any], config_path: Path | None = None) -> LedgerConfig:
    """Build a LedgerConfig from an already-loaded YAML mapping."""
    if "database" not in data:
        raise KeyError("Configuration is missing the 'database' section")
    return LedgerConfig(
        database=parse_database(data["database"]),
        logging=parse_logging(data.get("logging") or {}),
        percentages=parse_percentages(data.get("percentages")),
        config_path=config_path,
    )


def load_config(path: Path) -> LedgerConfig:
    return parse_config(load_yaml_file(path), config_path=path)
