"""Assemble the unified dataset from a populated store.

:func:`build_unified_dataset` is a pure function of the store: running it
twice on the same store yields equal datasets apart from ``built_at``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import List, Optional

from . import log
from .models import DataStore, ReconcileWarning
from .scouts import build_scout_views
from .store import InvalidStoreError
from .troop import (
    build_health_checks,
    build_site_orders,
    build_transfer_breakdowns,
    build_varieties,
    compute_troop_totals,
    reconcile_donations,
)
from .views import DatasetMetadata, UnifiedDataset


_REQUIRED_REGISTRIES = (
    ("orders", dict),
    ("transfers", list),
    ("scouts", dict),
    ("scout_ids", dict),
    ("allocations", list),
    ("virtual_cookie_shares", dict),
    ("warnings", list),
    ("imports", list),
)


def _validate_store(store: DataStore) -> None:
    for name, expected in _REQUIRED_REGISTRIES:
        value = getattr(store, name, None)
        if not isinstance(value, expected):
            raise InvalidStoreError(f"Data store is missing its '{name}' registry")


def build_unified_dataset(store: DataStore, *, built_at: Optional[datetime] = None) -> UnifiedDataset:
    """Run every aggregation pass over ``store`` and return the result.

    The store is only read. Warnings raised while building (for instance an
    allocation naming an unknown seller) are returned in the metadata next
    to the import warnings, not added to the store.

    Args:
        store (DataStore): Store populated by the importers.
        built_at (datetime | None): Build timestamp override; defaults to the
            current UTC time.

    Returns:
        UnifiedDataset: Seller views, troop totals, and reporting aggregates.

    Raises:
        InvalidStoreError: If a registry the builder reads is absent.
    """

    _validate_store(store)

    build_warnings: List[ReconcileWarning] = []
    scouts = build_scout_views(store, build_warnings)
    site_orders = build_site_orders(store, scouts)
    troop_totals = compute_troop_totals(store, scouts, site_orders)
    warnings = [*store.warnings, *build_warnings]

    metadata = DatasetMetadata(
        built_at=built_at if built_at is not None else datetime.now(UTC),
        troop_number=store.troop_number,
        troop_name=store.troop_name,
        council_id=store.council_id,
        sources=list(store.imports),
        warnings=warnings,
        health_checks=build_health_checks(warnings),
        scout_count=len(scouts),
        order_count=sum(len(view.orders) for view in scouts.values()),
    )
    dataset = UnifiedDataset(
        scouts=scouts,
        troop_totals=troop_totals,
        transfer_breakdowns=build_transfer_breakdowns(store),
        varieties=build_varieties(store, scouts),
        cookie_share=reconcile_donations(store),
        site_orders=site_orders,
        booth_reservations=list(store.reservations),
        booth_locations=list(store.booth_locations),
        metadata=metadata,
    )
    log.info(
        "Built dataset for troop %s: %d seller(s), %d order(s), %d warning(s)",
        store.troop_number,
        metadata.scout_count,
        metadata.order_count,
        len(warnings),
    )
    return dataset


__all__ = ["build_unified_dataset"]
