"""Batch defaults for the reconciliation job."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_RECONCILE_BATCH_SIZE = 500


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    batch_size: int = DEFAULT_RECONCILE_BATCH_SIZE


def get_reconcile_config() -> ReconcileConfig:
    return ReconcileConfig()
