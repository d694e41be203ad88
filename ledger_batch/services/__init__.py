"""Batch services."""

from ledger_batch.services.coordinator import BatchCoordinator

__all__ = ["BatchCoordinator"]
