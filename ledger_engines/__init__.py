"""
Module: ledger_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain and ledger_kernel.logging_config.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic.
    - Every engine invocation is traced via ``@traced_engine``.
"""

from ledger_engines.commission import (
    CommissionBreakdown,
    CommissionCalculator,
    CommissionShare,
)
from ledger_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "CommissionBreakdown",
    "CommissionCalculator",
    "CommissionShare",
    "compute_input_fingerprint",
    "traced_engine",
]
