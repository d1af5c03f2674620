"""Shared pytest fixtures and utilities for cookie ledger tests."""

from __future__ import annotations

import json
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence

import openpyxl
import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from cookie_ledger import allocations, importers  # noqa: E402
from cookie_ledger.constants import DCColumn  # noqa: E402
from cookie_ledger.models import DataStore, create_data_store  # noqa: E402

TROOP_NUMBER = "3990"
TROOP_NAME = "Troop 3990"
SITE_NAME = "Troop3990 Site"

# Council API cookie ids.
TM, CD, TRE, LEM, CSHARE = 4, 1, 3, 34, 37

_CONFIG_TEMPLATE = (
    "[Troop]\n"
    "Number = {troop_number}\n"
    "Name = {troop_name}\n"
    "Council = {council}\n\n"
    "[Data]\n"
    "Directory = {directory}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    data_dir: Path


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root path."""

    return PROJECT_ROOT


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------


def dc_row(
    order_number: str,
    first_name: str,
    last_name: str,
    order_type: str,
    *,
    total: int,
    amount: str,
    payment: str = "CAPTURED",
    status: str = "Completed",
    date: str = "2025-02-01",
    donation: int = 0,
    **varieties: int,
) -> Dict[str, Any]:
    """Build one individual-seller export row.

    Variety counts are passed by export column name with spaces replaced by
    underscores, e.g. ``Thin_Mints=3``.
    """

    row: Dict[str, Any] = {
        DCColumn.ORDER_NUMBER.value: order_number,
        DCColumn.FIRST_NAME.value: first_name,
        DCColumn.LAST_NAME.value: last_name,
        DCColumn.ORDER_DATE.value: date,
        DCColumn.ORDER_TYPE.value: order_type,
        DCColumn.TOTAL_PACKAGES.value: total,
        DCColumn.REFUNDED_PACKAGES.value: 0,
        DCColumn.SALE_AMOUNT.value: amount,
        DCColumn.ORDER_STATUS.value: status,
        DCColumn.PAYMENT_STATUS.value: payment,
        DCColumn.DONATION.value: donation,
    }
    for column, count in varieties.items():
        row[column.replace("_", " ")] = count
    return row


def cookies(**counts: int) -> List[Dict[str, int]]:
    """Build an API cookie array from ``name=quantity`` pairs using the ids above."""

    ids = {"TM": TM, "CD": CD, "TRE": TRE, "LEM": LEM, "CSHARE": CSHARE}
    return [{"id": ids[name], "quantity": quantity} for name, quantity in counts.items()]


def sc_order(
    order_number: str,
    transfer_type: str,
    from_party: str,
    to_party: str,
    cookie_list: Sequence[Mapping[str, int]],
    *,
    date: str = "2025-01-15",
    **flags: Any,
) -> Dict[str, Any]:
    """Build one orders-search feed entry."""

    entry: Dict[str, Any] = {
        "order_number": order_number,
        "transfer_type": transfer_type,
        "from": from_party,
        "to": to_party,
        "date": date,
        "cookies": list(cookie_list),
        "total": "0",
    }
    entry.update(flags)
    return entry


def fixture_dc_rows() -> List[Dict[str, Any]]:
    """Individual-seller orders for two sellers and the troop site."""

    return [
        dc_row("ORD-001", "Jane", "Doe", "In-Person Delivery", total=5, amount="$30.00",
               date="2025-02-01", Thin_Mints=3, Trefoils=2),
        dc_row("ORD-002", "Jane", "Doe", "Cookies In Hand", total=2, amount="$12.00",
               payment="CASH", date="2025-02-02", Thin_Mints=2),
        dc_row("ORD-003", "Jane", "Doe", "Donation", total=1, amount="$6.00",
               date="2025-02-03", donation=1),
        dc_row("ORD-004", "Bob", "Smith", "Shipped to Customer", total=3, amount="$18.00",
               date="2025-02-04", Caramel_deLites=3),
        dc_row("ORD-005", "Bob", "Smith", "In-Person Delivery", total=4, amount="$24.00",
               status="Approved for Delivery", date="2025-02-05", Thin_Mints=2, Lemonades=2),
        dc_row("ORD-006", "Troop3990", "Site", "Cookies In Hand", total=10, amount="$60.00",
               payment="CASH", date="2025-02-06", Thin_Mints=5, Trefoils=5),
        dc_row("ORD-007", "Troop3990", "Site", "Shipped to Customer", total=6, amount="$36.00",
               date="2025-02-07", Thin_Mints=3, Caramel_deLites=3),
    ]


def fixture_sc_orders() -> Dict[str, Any]:
    """Orders-search payload: council delivery, pickups, a return, a virtual booth credit."""

    return {
        "orders": [
            sc_order("100001", "C2T", "Council", TROOP_NUMBER, cookies(TM=20, TRE=15, LEM=10, CD=5),
                     date="2025-01-10"),
            sc_order("200001", "T2G", TROOP_NUMBER, "Jane Doe", cookies(TM=8, TRE=7), date="2025-01-15"),
            sc_order("200002", "T2G", TROOP_NUMBER, "Bob Smith", cookies(TM=5, LEM=3, CD=2), date="2025-01-16"),
            sc_order("200003", "G2T", "Jane Doe", TROOP_NUMBER, cookies(TRE=2), date="2025-02-10"),
            sc_order("200004", "T2G", SITE_NAME, "Bob Smith", cookies(TM=3, TRE=2), date="2025-02-12",
                     virtual_booth=True),
        ]
    }


def fixture_direct_ship() -> Dict[str, Any]:
    return {"girls": [{"id": 102, "first_name": "Bob", "last_name": "Smith", "cookies": cookies(TM=1, CD=2)}]}


def fixture_booth_dividers() -> List[Dict[str, Any]]:
    return [
        {
            "reservationId": "R-1",
            "booth": {"booth_id": "B-9", "store_name": "Corner Grocer"},
            "timeslot": {"date": "2025-02-08", "start_time": "10:00", "end_time": "12:00"},
            "divider": {
                "girls": [
                    {"id": 101, "first_name": "Jane", "last_name": "Doe", "cookies": cookies(TM=2, TRE=2, CSHARE=1)},
                ]
            },
        }
    ]


def build_fixture_store() -> DataStore:
    """Import the full fixture in pipeline order and return the store."""

    store = create_data_store(troop_number=TROOP_NUMBER, troop_name=TROOP_NAME)
    importers.import_orders_search(store, fixture_sc_orders())
    allocations.import_direct_ship_divider(store, fixture_direct_ship())
    allocations.import_booth_dividers(store, fixture_booth_dividers())
    importers.import_digital_cookie(store, fixture_dc_rows())
    return store


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> DataStore:
    """Return an empty store for this troop."""

    return create_data_store(troop_number=TROOP_NUMBER, troop_name=TROOP_NAME)


@pytest.fixture
def fixture_store() -> DataStore:
    """Return a store populated with the end-to-end fixture."""

    return build_fixture_store()


# ---------------------------------------------------------------------------
# File fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def xlsx_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that writes header-keyed rows into a single-sheet workbook."""

    def _create_xlsx(
        rows: Sequence[Mapping[str, Any]],
        *,
        filename: str = "export.xlsx",
        directory: Optional[Path] = None,
        headers: Optional[Sequence[str]] = None,
    ) -> Path:
        base_dir = directory if directory is not None else tmp_path
        base_dir.mkdir(parents=True, exist_ok=True)
        if headers is None:
            headers = []
            for row in rows:
                for key in row:
                    if key not in headers:
                        headers.append(key)
        wb = openpyxl.Workbook()
        sheet = wb.active
        sheet.append(list(headers))
        for row in rows:
            sheet.append([row.get(header) for header in headers])
        path = base_dir / filename
        wb.save(path)
        return path

    return _create_xlsx


@pytest.fixture
def json_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that writes a JSON payload into ``directory``."""

    def _create_json(payload: Any, filename: str, *, directory: Optional[Path] = None) -> Path:
        base_dir = directory if directory is not None else tmp_path
        base_dir.mkdir(parents=True, exist_ok=True)
        path = base_dir / filename
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _create_json


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config files on demand."""

    def _create_config(
        *,
        directory: str = "data",
        troop_number: str = TROOP_NUMBER,
        troop_name: str = TROOP_NAME,
        council: str = "623",
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                troop_number=troop_number,
                troop_name=troop_name,
                council=council,
                directory=directory,
            )
        )
        data_dir = Path(directory) if Path(directory).is_absolute() else bundle_dir / directory
        return ConfigBundle(directory=bundle_dir, config_path=config_path, data_dir=data_dir.resolve())

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path
