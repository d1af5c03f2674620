"""Run every importer over a data directory and build the unified dataset.

A data directory follows this layout::

    <data_dir>/sc-troop.json          troop identity snapshot
    <data_dir>/sync/sc-*.json         council API snapshots
    <data_dir>/sync/dc-export.xlsx    individual-seller order export
    <data_dir>/in/*ReportExport*.xlsx council summary report
    <data_dir>/in/*CookieOrders*.xlsx flat transfer ledger

Importers always run in the order below, since later feeds overwrite fields
set by earlier ones. A missing file is skipped, and so is a file whose shape
is not the expected export, with a warning. A failing importer is logged
and recorded as a warning, and the run carries on with the next feed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

from . import log
from .allocations import (
    import_booth_dividers,
    import_booth_locations,
    import_direct_ship_divider,
    import_reservations,
    import_virtual_cookie_shares,
)
from .constants import DEFAULT_COUNCIL_ID, WarningType
from .data_manager import ConfigSettings, load_json, load_sheet_rows
from .importers import (
    import_council_report,
    import_digital_cookie,
    import_orders_search,
    import_transfer_ledger,
    is_digital_cookie_format,
    is_orders_search_format,
)
from .models import DataStore, create_data_store
from .store import record_warning
from .unified import build_unified_dataset
from .views import UnifiedDataset


SYNC_DIRECTORY = "sync"
LEGACY_DIRECTORY = "in"

TROOP_FILE = "sc-troop.json"
COOKIE_ID_MAP_FILE = "sc-cookie-id-map.json"
ORDERS_FILE = "sc-orders.json"
DIRECT_SHIP_FILE = "sc-direct-ship.json"
COOKIE_SHARES_FILE = "sc-cookie-shares.json"
RESERVATIONS_FILE = "sc-reservations.json"
BOOTH_ALLOCATIONS_FILE = "sc-booth-allocations.json"
BOOTH_LOCATIONS_FILE = "sc-booth-locations.json"
DC_EXPORT_FILE = "dc-export.xlsx"
REPORT_EXPORT_PATTERN = "*ReportExport*.xlsx"
TRANSFER_EXPORT_PATTERN = "*CookieOrders*.xlsx"


def _values(payload: Any) -> List[Any]:
    """Keyed snapshots (``{id: entry}``) are imported as their entry list."""

    if payload is None:
        return []
    if isinstance(payload, Mapping):
        return list(payload.values())
    return list(payload)


def _find_legacy_file(directory: Path, pattern: str) -> Optional[Path]:
    if not directory.is_dir():
        return None
    matches = sorted(directory.glob(pattern))
    return matches[0] if matches else None


def _run_import(store: DataStore, label: str, importer: Callable[..., int], *args: Any) -> bool:
    """Run one importer, turning a failure into a recorded warning."""

    try:
        importer(store, *args)
    except Exception as exc:
        log.error("Import of %s failed: %s", label, exc)
        record_warning(
            store,
            WarningType.IMPORT_FAILED,
            f"Import of {label} failed: {exc}",
            source=label,
            value=type(exc).__name__,
        )
        return False
    return True


def _skip_source(store: DataStore, label: str, reason: str) -> None:
    record_warning(store, WarningType.SOURCE_SKIPPED, f"Skipped {label}: {reason}", source=label)


def _import_dc_export(store: DataStore, path: Path) -> int:
    rows = load_sheet_rows(path)
    if not is_digital_cookie_format(rows):
        _skip_source(store, path.name, "individual-seller export not recognized")
        return 0
    return import_digital_cookie(store, rows)


def load_troop_identity(store: DataStore, data_dir: Path) -> None:
    """Fill in troop number and name from ``sc-troop.json`` where not configured."""

    troop = load_json(data_dir / TROOP_FILE)
    if not isinstance(troop, Mapping):
        return
    role = troop.get("role") or {}
    if not store.troop_number and role.get("troop_id"):
        store.troop_number = str(role["troop_id"])
    if not store.troop_name and role.get("troop_name"):
        store.troop_name = str(role["troop_name"])


def populate_store(store: DataStore, data_dir: Path) -> DataStore:
    """Import every source file found under ``data_dir`` into ``store``.

    Args:
        store (DataStore): Store to fill; may already carry troop identity.
        data_dir (Path): Data directory laid out as described above.

    Returns:
        DataStore: The same store, for chaining.
    """

    data_dir = Path(data_dir).expanduser()
    sync_dir = data_dir / SYNC_DIRECTORY
    legacy_dir = data_dir / LEGACY_DIRECTORY

    load_troop_identity(store, data_dir)
    if not store.troop_number:
        record_warning(
            store,
            WarningType.TROOP_IDENTITY_UNKNOWN,
            "Troop number unknown; troop-to-troop direction falls back to the transfer ledger",
        )

    id_map = load_json(sync_dir / COOKIE_ID_MAP_FILE)
    if isinstance(id_map, Mapping):
        store.cookie_id_map = {str(key): str(value) for key, value in id_map.items()}

    orders = load_json(sync_dir / ORDERS_FILE)
    orders_imported = False
    if orders is not None and not is_orders_search_format(orders):
        _skip_source(store, ORDERS_FILE, "orders-search response not recognized")
    elif orders is not None:
        orders_imported = _run_import(store, ORDERS_FILE, import_orders_search, orders)

    feeds = (
        (DIRECT_SHIP_FILE, import_direct_ship_divider, lambda payload: payload),
        (COOKIE_SHARES_FILE, import_virtual_cookie_shares, _values),
        (RESERVATIONS_FILE, import_reservations, lambda payload: payload),
        (BOOTH_ALLOCATIONS_FILE, import_booth_dividers, _values),
        (BOOTH_LOCATIONS_FILE, import_booth_locations, lambda payload: payload),
    )
    for file_name, importer, shape in feeds:
        payload = load_json(sync_dir / file_name)
        if payload is not None:
            _run_import(store, file_name, importer, shape(payload))

    dc_export = sync_dir / DC_EXPORT_FILE
    if dc_export.exists():
        _run_import(store, DC_EXPORT_FILE, _import_dc_export, dc_export)

    report = _find_legacy_file(legacy_dir, REPORT_EXPORT_PATTERN)
    if report is not None:
        _run_import(store, report.name, lambda s: import_council_report(s, load_sheet_rows(report)))

    ledger = _find_legacy_file(legacy_dir, TRANSFER_EXPORT_PATTERN)
    if ledger is not None and orders_imported:
        _skip_source(store, ledger.name, "orders-search data already imported")
    elif ledger is not None:
        _run_import(store, ledger.name, lambda s: import_transfer_ledger(s, load_sheet_rows(ledger)))

    if not store.imports:
        log.warning("No source files found under %s", data_dir)
    return store


def run_pipeline(data_dir: Optional[Path] = None, settings: Optional[ConfigSettings] = None) -> UnifiedDataset:
    """Import all sources and build the unified dataset.

    Troop identity from ``settings`` takes precedence over identity found in
    the data. ``data_dir`` defaults to the configured data directory.

    Raises:
        ValueError: If neither ``data_dir`` nor ``settings`` is given.
    """

    if data_dir is None:
        if settings is None:
            raise ValueError("run_pipeline needs a data directory or settings")
        data_dir = settings.data_dir

    store = create_data_store(
        troop_number=settings.troop_number if settings else None,
        troop_name=settings.troop_name if settings else None,
        council_id=settings.council_id if settings else DEFAULT_COUNCIL_ID,
    )
    populate_store(store, Path(data_dir))
    return build_unified_dataset(store)


__all__ = [
    "load_troop_identity",
    "populate_store",
    "run_pipeline",
]
