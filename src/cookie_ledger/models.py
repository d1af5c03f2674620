"""Persisted entities held by the in-memory data store.

These dataclasses describe what the importers write. Nothing computed by the
dataset builder is ever stored on them; derived values live in
:mod:`cookie_ledger.views` and are rebuilt on every aggregation pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from .constants import (
    AllocationChannel,
    DataSource,
    OrderType,
    Owner,
    PaymentMethod,
    TransferCategory,
    WarningType,
)


@dataclass
class ReconcileWarning:
    """A recoverable data-quality issue recorded during import or build."""

    type: WarningType
    message: str
    source: Optional[str] = None
    reference: Optional[str] = None
    value: Any = None


@dataclass
class Order:
    """One customer transaction keyed by its order number."""

    order_number: str
    scout: str = ""
    first_name: str = ""
    last_name: str = ""
    scout_id: Optional[int] = None
    gsusa_id: Optional[str] = None
    grade_level: Optional[str] = None
    date: Optional[str] = None
    owner: Owner = Owner.TROOP
    order_type: Optional[OrderType] = None
    source_order_type: str = ""
    packages: int = 0
    physical_packages: int = 0
    donations: int = 0
    cases: int = 0
    amount: Decimal = Decimal("0")
    status: str = ""
    payment_status: str = ""
    payment_method: Optional[PaymentMethod] = None
    varieties: Dict[str, int] = field(default_factory=dict)
    troop_id: Optional[str] = None
    service_unit: Optional[str] = None
    council: Optional[str] = None
    district: Optional[str] = None
    sources: List[DataSource] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class Transfer:
    """One inventory movement between council, troop, and sellers."""

    type: str
    category: TransferCategory
    order_number: str = ""
    from_party: str = ""
    to_party: str = ""
    date: Optional[str] = None
    packages: int = 0
    physical_packages: int = 0
    varieties: Dict[str, int] = field(default_factory=dict)
    physical_varieties: Dict[str, int] = field(default_factory=dict)
    amount: Decimal = Decimal("0")
    virtual_booth: bool = False
    booth_divider: bool = False
    direct_ship_divider: bool = False
    status: str = ""
    source: Optional[DataSource] = None


@dataclass
class ScoutRecord:
    """Cross-source identity of a seller, keyed by display name."""

    name: str
    first_name: str = ""
    last_name: str = ""
    scout_id: Optional[int] = None
    gsusa_id: Optional[str] = None
    grade_level: Optional[str] = None
    service_unit: Optional[str] = None
    troop_id: Optional[str] = None
    council: Optional[str] = None
    district: Optional[str] = None


@dataclass
class Allocation:
    """Sale credit given to a seller through a troop-level channel."""

    channel: AllocationChannel
    scout_id: int
    divider_key: str
    packages: int = 0
    donations: int = 0
    varieties: Dict[str, int] = field(default_factory=dict)
    source: Optional[DataSource] = None
    order_id: Optional[str] = None
    reservation_id: Optional[str] = None
    store_name: str = ""
    date: Optional[str] = None
    start_time: str = ""
    end_time: str = ""


@dataclass
class BoothReservation:
    """A booth time slot reserved by the troop."""

    reservation_id: str
    troop_id: str = ""
    booth_id: str = ""
    store_name: str = ""
    address: str = ""
    reservation_type: str = ""
    is_distributed: bool = False
    is_virtually_distributed: bool = False
    date: Optional[str] = None
    start_time: str = ""
    end_time: str = ""
    packages: int = 0
    physical_packages: int = 0
    varieties: Dict[str, int] = field(default_factory=dict)


@dataclass
class BoothLocation:
    """A booth site with its address and open time slots."""

    booth_id: str
    store_name: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    reservation_type: str = ""
    notes: str = ""
    available_dates: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ImportRecord:
    """Provenance entry appended by each importer on completion."""

    source: DataSource
    timestamp: datetime
    records: int
    label: Optional[str] = None


@dataclass
class DataStore:
    """In-memory repository of canonical entities for one reconciliation run.

    Scouts are keyed by display name; ``scout_ids`` indexes the same records
    by numeric seller id so that allocation feeds, which only carry ids, can
    be joined without relying on names.
    """

    orders: Dict[str, Order] = field(default_factory=dict)
    transfers: List[Transfer] = field(default_factory=list)
    scouts: Dict[str, ScoutRecord] = field(default_factory=dict)
    scout_ids: Dict[int, str] = field(default_factory=dict)
    allocations: List[Allocation] = field(default_factory=list)
    allocation_keys: Set[Tuple[AllocationChannel, str, int]] = field(default_factory=set)
    reservations: List[BoothReservation] = field(default_factory=list)
    booth_locations: List[BoothLocation] = field(default_factory=list)
    virtual_cookie_shares: Dict[int, int] = field(default_factory=dict)
    cookie_id_map: Dict[str, str] = field(default_factory=dict)
    troop_number: Optional[str] = None
    troop_name: Optional[str] = None
    council_id: Optional[str] = None
    imports: List[ImportRecord] = field(default_factory=list)
    warnings: List[ReconcileWarning] = field(default_factory=list)


def create_data_store(
    *,
    troop_number: Optional[str] = None,
    troop_name: Optional[str] = None,
    council_id: Optional[str] = None,
) -> DataStore:
    """Return an empty store, optionally seeded with the troop identity."""

    return DataStore(troop_number=troop_number, troop_name=troop_name, council_id=council_id)


__all__ = [
    "ReconcileWarning",
    "Order",
    "Transfer",
    "ScoutRecord",
    "Allocation",
    "BoothReservation",
    "BoothLocation",
    "ImportRecord",
    "DataStore",
    "create_data_store",
]
