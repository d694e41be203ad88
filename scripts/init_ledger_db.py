#!/usr/bin/env python3
"""
Create the ledger schema and seed the commission percentages from the
active configuration.  Optionally records opening prices.

Usage:
  python3 scripts/init_ledger_db.py [--config PATH] [--drop]
      [--price METRIC_ID:PRICE:NET_PRICE ...]

The database URL comes from the config file (or LEDGER_DATABASE_URL).
"""

import argparse
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

ACTOR = "system"


def _parse_price(value: str) -> tuple[UUID, Decimal, Decimal]:
    try:
        metric_id, price, net_price = value.split(":")
        return UUID(metric_id), Decimal(price), Decimal(net_price)
    except (ValueError, InvalidOperation) as exc:
        raise argparse.ArgumentTypeError(
            f"expected METRIC_ID:PRICE:NET_PRICE, got {value!r}"
        ) from exc


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create ledger tables and seed reference data")
    p.add_argument("--config", type=Path, default=None, help="YAML config (default: ledger_config/sets/default.yaml)")
    p.add_argument("--drop", action="store_true", help="Drop all ledger tables first")
    p.add_argument(
        "--price",
        action="append",
        type=_parse_price,
        default=[],
        metavar="METRIC_ID:PRICE:NET_PRICE",
        help="Record an opening price (repeatable)",
    )
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    from ledger_config import bootstrap, get_active_config
    from ledger_kernel.db.engine import create_tables, drop_tables, session_scope
    from ledger_kernel.services.reference_data_service import ReferenceDataService

    config = get_active_config(args.config)
    bootstrap(config)

    if args.drop:
        print("Dropping tables...")
        drop_tables()
    print("Creating tables...")
    create_tables()

    with session_scope() as session:
        reference = ReferenceDataService(session)
        if config.percentages is not None:
            table = reference.set_percentages(config.percentages.as_dict(), actor=ACTOR)
            print(f"  percentages: {table.as_dict()}")
        else:
            print("  no percentages in config; commission_percentages left as is")
        for metric_id, price, net_price in args.price:
            reference.record_price(metric_id, price, net_price, actor=ACTOR)
            print(f"  price {metric_id}: {price} (net {net_price})")

    print("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
