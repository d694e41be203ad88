"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration; ``bootstrap()`` applies it (engine, logging, ORM
    guards).

Architecture position:
    Configuration sits above ``ledger_kernel``.  The kernel MUST NEVER
    import from ``ledger_config``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` / ``KeyError`` -- structural validation failures.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.engine import Engine

from ledger_config.loader import load_config
from ledger_config.schema import DatabaseConfig, LedgerConfig, LoggingConfig

_logger = logging.getLogger("ledger_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to
            ledger_config/sets/default.yaml.

    Returns:
        Frozen LedgerConfig.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = load_config(path)
    _logger.info(
        "config_loaded",
        extra={
            "config_path": str(path),
            "dialect": config.database.url.split(":", 1)[0],
            "has_percentages": config.percentages is not None,
        },
    )
    return config


def bootstrap(config: LedgerConfig) -> Engine:
    """Initialise logging, the module-level engine and the ORM guards."""
    from ledger_kernel.db.engine import init_engine_from_url
    from ledger_kernel.db.immutability import register_immutability_listeners
    from ledger_kernel.logging_config import configure_logging

    configure_logging(level=logging.getLevelName(config.logging.level))

    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    register_immutability_listeners()
    return engine


__all__ = [
    "DatabaseConfig",
    "LedgerConfig",
    "LoggingConfig",
    "bootstrap",
    "get_active_config",
]
