"""
Ledger Kernel - stock movement and commission settlement core

A transactional stock ledger for multi-tier distribution with:
- Price snapshots captured at movement creation
- Deferred, single-shot settlement per movement
- Per-metric running balance chaining
- Append-only commission records
"""

__version__ = "0.1.0"
