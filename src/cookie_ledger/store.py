"""Merge engine shared by every importer.

All writes into a :class:`~cookie_ledger.models.DataStore` go through this
module: order identity resolution with optional per-source enrichment,
scout upserts that never forget a known value, transfer creation with a
single classification at construction time, and allocation de-duplication.
"""

from __future__ import annotations

from dataclasses import fields as dataclass_fields
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from . import log
from .classifier import classify_transfer
from .constants import DataSource, WarningType
from .cookies import physical_only, physical_total
from .models import (
    Allocation,
    DataStore,
    ImportRecord,
    Order,
    ReconcileWarning,
    ScoutRecord,
    Transfer,
)
from .parsers import warn


class ReconcileError(Exception):
    """Base class for errors raised by the reconciliation engine."""


class MissingReferenceError(ReconcileError):
    """Raised when a referenced order or scout is not in the store."""


class InvalidStoreError(ReconcileError):
    """Raised when a data store lacks a registry the builder depends on."""


EnrichmentFn = Callable[[Order, Mapping[str, Any]], None]

_ORDER_FIELDS = frozenset(f.name for f in dataclass_fields(Order)) - {"order_number", "sources", "raw"}
_SCOUT_FIELDS = frozenset(f.name for f in dataclass_fields(ScoutRecord)) - {"name"}

# Fields a council report may contribute to an order it did not create.
COUNCIL_REPORT_FIELDS = (
    "scout_id",
    "gsusa_id",
    "grade_level",
    "cases",
    "troop_id",
    "service_unit",
    "council",
    "district",
)


def _validate_order_fields(values: Mapping[str, Any]) -> None:
    unknown = set(values) - _ORDER_FIELDS
    if unknown:
        raise KeyError(f"Unknown order field(s): {', '.join(sorted(unknown))}")


def merge_or_create_order(
    store: DataStore,
    order_number: str,
    values: Mapping[str, Any],
    source: DataSource,
    raw: Optional[Mapping[str, Any]] = None,
    enrich: Optional[EnrichmentFn] = None,
) -> Order:
    """Create an order on first sight or merge a later sighting into it.

    A new order starts from the :class:`Order` defaults (zeroed counts, empty
    variety map, troop ownership) with ``source`` as its only provenance
    entry. An existing order gains ``source`` in its provenance list unless
    already present, keeps ``raw`` under that source's audit slot, and then
    either passes through ``enrich`` or has every supplied field overwritten.

    Args:
        store (DataStore): Store receiving the order.
        order_number (str): Order identity.
        values (Mapping[str, Any]): Partial order fields from this source.
        source (DataSource): Feed contributing the fields.
        raw (Mapping[str, Any] | None): Untouched source payload for audit.
        enrich (Callable | None): Source-specific whitelist merge used
            instead of the default overwrite.

    Returns:
        Order: The created or updated order.

    Raises:
        KeyError: If ``values`` names a field that orders do not have.
    """

    _validate_order_fields(values)
    existing = store.orders.get(order_number)

    if existing is None:
        order = Order(order_number=order_number, **dict(values))
        order.sources.append(source)
        if raw is not None:
            order.raw[source.value] = dict(raw)
        store.orders[order_number] = order
        log.debug("Created order '%s' from %s", order_number, source.value)
        return order

    if source not in existing.sources:
        existing.sources.append(source)
    if raw is not None:
        existing.raw[source.value] = dict(raw)

    if enrich is not None:
        enrich(existing, values)
    else:
        for name, value in values.items():
            setattr(existing, name, value)
    log.debug("Merged %s fields into order '%s'", source.value, order_number)
    return existing


def enrich_from_council_report(existing: Order, values: Mapping[str, Any]) -> None:
    """Copy only seller identity, case count, and organization onto an order."""

    for name in COUNCIL_REPORT_FIELDS:
        value = values.get(name)
        if value is not None:
            setattr(existing, name, value)


def enrich_from_mirror(existing: Order, values: Mapping[str, Any]) -> None:
    """Overwrite an order with a council-side copy unless the export has it.

    Once the individual-seller export has supplied an order, its counts and
    status stand; the copy only adds provenance.
    """

    if DataSource.DC in existing.sources:
        return
    for name, value in values.items():
        setattr(existing, name, value)


def get_order(store: DataStore, order_number: str) -> Order:
    """Return the order registered under ``order_number``.

    Raises:
        MissingReferenceError: If no such order was imported.
    """

    try:
        return store.orders[order_number]
    except KeyError as exc:
        log.warning("Order lookup failed for '%s'", order_number)
        raise MissingReferenceError(f"Unknown order number: {order_number}") from exc


def _index_scout_id(store: DataStore, scout: ScoutRecord) -> None:
    if scout.scout_id is None:
        return
    current = store.scout_ids.get(scout.scout_id)
    if current is None:
        store.scout_ids[scout.scout_id] = scout.name
    elif current != scout.name:
        log.warning(
            "Seller id %s already belongs to '%s'; keeping it over '%s'",
            scout.scout_id,
            current,
            scout.name,
        )


def upsert_scout(store: DataStore, name: str, **values: Any) -> ScoutRecord:
    """Create a scout entry on first sight and copy later non-null fields.

    Args:
        store (DataStore): Store holding the scout registry.
        name (str): Seller display name, the registry key.
        **values: Identity fields; ``None`` values are ignored so that a
            less informed source never erases what another source knew.

    Returns:
        ScoutRecord: The registry entry.

    Raises:
        KeyError: If a keyword does not name a scout field.
    """

    unknown = set(values) - _SCOUT_FIELDS
    if unknown:
        raise KeyError(f"Unknown scout field(s): {', '.join(sorted(unknown))}")

    scout = store.scouts.get(name)
    if scout is None:
        scout = ScoutRecord(name=name)
        store.scouts[name] = scout
    for field_name, value in values.items():
        if value is not None:
            setattr(scout, field_name, value)
    _index_scout_id(store, scout)
    return scout


def register_scout(store: DataStore, scout_id: Any, first_name: Any, last_name: Any) -> Optional[ScoutRecord]:
    """Register a seller seen in an allocation feed by id and name.

    The numeric id is only set when the entry does not already carry one.
    Entries with no id or no name are ignored.
    """

    name = f"{first_name or ''} {last_name or ''}".strip()
    try:
        numeric_id = int(scout_id) if scout_id not in (None, "") else None
    except (TypeError, ValueError):
        numeric_id = None
    if not numeric_id or not name:
        return None

    scout = store.scouts.get(name)
    if scout is None:
        return upsert_scout(
            store,
            name,
            first_name=str(first_name or ""),
            last_name=str(last_name or ""),
            scout_id=numeric_id,
        )
    if scout.scout_id is None:
        scout.scout_id = numeric_id
        _index_scout_id(store, scout)
    return scout


def find_scout_by_id(store: DataStore, scout_id: int) -> Optional[ScoutRecord]:
    """Resolve a seller through the numeric id index."""

    name = store.scout_ids.get(scout_id)
    return store.scouts.get(name) if name is not None else None


def record_warning(
    store: DataStore,
    warning_type: WarningType,
    message: str,
    **context: Any,
) -> ReconcileWarning:
    """Log a data-quality issue and keep it on the store."""

    return warn(store.warnings, warning_type, message, **context)


def add_transfer(
    store: DataStore,
    transfer_type: Optional[str],
    *,
    varieties: Optional[Mapping[str, int]] = None,
    packages: Optional[int] = None,
    order_number: str = "",
    from_party: str = "",
    to_party: str = "",
    date: Optional[str] = None,
    amount: Decimal = Decimal("0"),
    virtual_booth: bool = False,
    booth_divider: bool = False,
    direct_ship_divider: bool = False,
    status: str = "",
    source: Optional[DataSource] = None,
) -> Transfer:
    """Classify a transfer once and append it to the store.

    Physical packages and varieties are derived from ``varieties`` by
    leaving out the donation variety. Classification fallbacks are recorded
    as store warnings.
    """

    classification = classify_transfer(
        transfer_type,
        virtual_booth=virtual_booth,
        booth_divider=booth_divider,
        direct_ship_divider=direct_ship_divider,
        from_party=from_party,
        troop_number=store.troop_number,
        troop_name=store.troop_name,
    )
    if classification.warning_type is not None:
        store.warnings.append(
            ReconcileWarning(
                type=classification.warning_type,
                message=classification.message or "",
                source=source.value if source else None,
                reference=order_number or None,
                value=classification.raw_type,
            )
        )

    variety_map: Dict[str, int] = dict(varieties or {})
    transfer = Transfer(
        type=classification.raw_type,
        category=classification.category,
        order_number=order_number,
        from_party=from_party,
        to_party=to_party,
        date=date,
        packages=packages if packages is not None else sum(variety_map.values()),
        physical_packages=physical_total(variety_map),
        varieties=variety_map,
        physical_varieties=physical_only(variety_map),
        amount=amount,
        virtual_booth=virtual_booth,
        booth_divider=booth_divider,
        direct_ship_divider=direct_ship_divider,
        status=status,
        source=source,
    )
    store.transfers.append(transfer)
    return transfer


def add_allocation(store: DataStore, allocation: Allocation) -> bool:
    """Append an allocation unless its channel, divider key and seller were seen.

    Returns:
        bool: ``True`` when the allocation was added, ``False`` for a repeat.
    """

    key = (allocation.channel, allocation.divider_key, allocation.scout_id)
    if key in store.allocation_keys:
        log.debug("Skipping repeated allocation %s", key)
        return False
    store.allocation_keys.add(key)
    store.allocations.append(allocation)
    return True


def record_import(
    store: DataStore,
    source: DataSource,
    records: int,
    *,
    label: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> ImportRecord:
    """Append one provenance entry for a completed import."""

    entry = ImportRecord(
        source=source,
        timestamp=timestamp if timestamp is not None else datetime.now(UTC),
        records=records,
        label=label,
    )
    store.imports.append(entry)
    log.info("Imported %d record(s) from %s", records, source.value)
    return entry


__all__ = [
    "ReconcileError",
    "MissingReferenceError",
    "InvalidStoreError",
    "COUNCIL_REPORT_FIELDS",
    "merge_or_create_order",
    "enrich_from_council_report",
    "enrich_from_mirror",
    "get_order",
    "upsert_scout",
    "register_scout",
    "find_scout_by_id",
    "record_warning",
    "add_transfer",
    "add_allocation",
    "record_import",
]
