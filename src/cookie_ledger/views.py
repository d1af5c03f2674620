"""Computed view types returned by the dataset builder.

Views are rebuilt from the store on every aggregation pass and never written
back into it. Per-seller views are filled in place by successive passes;
troop-level results are frozen once computed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from .constants import AllocationChannel, OrderType, TransferCategory
from .models import (
    Allocation,
    BoothLocation,
    BoothReservation,
    ImportRecord,
    Order,
    ReconcileWarning,
    Transfer,
)


@dataclass
class ChannelCredit:
    """Sale credit a seller received through one allocation channel."""

    packages: int = 0
    donations: int = 0
    varieties: Dict[str, int] = field(default_factory=dict)
    allocations: List[Allocation] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.packages + self.donations


@dataclass(frozen=True)
class InventoryIssue:
    """A variety a seller sold more of than they picked up."""

    variety: str
    inventory: int
    sales: int
    shortfall: int


@dataclass
class StatusCounts:
    needs_approval: int = 0
    pending: int = 0
    completed: int = 0
    unknown: int = 0


@dataclass
class Financials:
    """Money a seller collected and still owes for picked-up packages.

    ``cash_owed`` is all cash collected plus the value of inventory not yet
    covered by a sale, so it is never below ``cash_collected``.
    """

    cash_collected: Decimal = Decimal("0")
    electronic_payments: Decimal = Decimal("0")
    inventory_value: Decimal = Decimal("0")
    unsold_value: Decimal = Decimal("0")
    cash_owed: Decimal = Decimal("0")


@dataclass
class ScoutTotals:
    """Per-seller package and money totals.

    ``total_sold`` is always ``delivered + shipped + donations + credited``.
    ``inventory`` is the signed per-variety remainder; ``inventory_on_hand``
    sums only the positive remainders. The proceeds fields stay zero until
    the troop rate is known.
    """

    orders: int = 0
    delivered: int = 0
    shipped: int = 0
    donations: int = 0
    credited: int = 0
    credited_revenue: Decimal = Decimal("0")
    total_sold: int = 0
    proceeds_deduction: Decimal = Decimal("0")
    troop_proceeds: Decimal = Decimal("0")
    inventory: int = 0
    inventory_on_hand: int = 0
    inventory_display: Dict[str, int] = field(default_factory=dict)
    financials: Financials = field(default_factory=Financials)
    status_counts: StatusCounts = field(default_factory=StatusCounts)


def _empty_credit() -> Dict[AllocationChannel, ChannelCredit]:
    return {channel: ChannelCredit() for channel in AllocationChannel}


@dataclass
class ScoutView:
    """Everything known about one seller after joining orders, transfers, and allocations."""

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
    is_site: bool = False
    orders: List[Order] = field(default_factory=list)
    inventory: Dict[str, int] = field(default_factory=dict)
    inventory_total: int = 0
    credited: Dict[AllocationChannel, ChannelCredit] = field(default_factory=_empty_credit)
    virtual_cookie_shares: int = 0
    totals: ScoutTotals = field(default_factory=ScoutTotals)
    negative_inventory: List[InventoryIssue] = field(default_factory=list)


@dataclass(frozen=True)
class ScoutCounts:
    total: int
    active: int
    inactive: int
    with_negative_inventory: int


@dataclass(frozen=True)
class TroopTotals:
    """Troop-wide package flow, inventory, and proceeds projection."""

    orders: int
    sold: int
    revenue: Decimal
    council_received: int
    troop_outgoing: int
    girl_pickup: int
    virtual_booth: int
    booth_divider: int
    direct_ship_divider: int
    returns: int
    site_orders_physical: int
    site_orders_from_stock: int
    inventory: int
    packages_sold_from_stock: int
    donations: int
    direct_ship: int
    packages_credited: int
    per_girl_average: int
    proceeds_rate: Decimal
    gross_proceeds: Decimal
    proceeds_exempt_packages: int
    proceeds_deduction: Decimal
    troop_proceeds: Decimal
    girl_delivery: int
    girl_inventory: int
    booth_sales_packages: int
    booth_sales_donations: int
    scouts: ScoutCounts


@dataclass
class SiteOrderEntry:
    order_number: str
    order_type: Optional[OrderType]
    packages: int
    date: Optional[str] = None
    allocated: int = 0


@dataclass(frozen=True)
class SiteOrderCategory:
    """Troop-owned orders of one channel against what dividers allocated."""

    orders: List[SiteOrderEntry]
    total: int
    allocated: int
    unallocated: int
    has_warning: bool


@dataclass(frozen=True)
class SiteOrders:
    booth_sale: SiteOrderCategory
    direct_ship: SiteOrderCategory
    girl_delivery: SiteOrderCategory


@dataclass(frozen=True)
class TransferBreakdowns:
    """Transfers grouped for reporting, newest first, with physical totals."""

    c2t: List[Transfer]
    t2g: List[Transfer]
    g2t: List[Transfer]
    c2t_total: int
    t2g_total: int
    g2t_total: int
    by_category: Dict[TransferCategory, List[Transfer]]
    category_totals: Dict[TransferCategory, int]


@dataclass(frozen=True)
class VarietyReport:
    by_cookie: Dict[str, int]
    inventory: Dict[str, int]
    total: int


@dataclass(frozen=True)
class DonationReconciliation:
    """Cookie Share totals from the individual export versus manual council entries."""

    dc_total: int
    dc_manual_entry: int
    sc_manual_entries: int
    reconciled: bool


@dataclass(frozen=True)
class HealthChecks:
    warnings_count: int
    unknown_order_types: int
    unknown_payment_methods: int
    unknown_transfer_types: int

    @property
    def is_blocking(self) -> bool:
        """Unknown order types make per-seller totals unreliable for reporting."""

        return self.unknown_order_types > 0


@dataclass(frozen=True)
class DatasetMetadata:
    built_at: datetime
    troop_number: Optional[str]
    troop_name: Optional[str]
    council_id: Optional[str]
    sources: List[ImportRecord]
    warnings: List[ReconcileWarning]
    health_checks: HealthChecks
    scout_count: int
    order_count: int


@dataclass(frozen=True)
class UnifiedDataset:
    """The single reconciled result handed to reporting."""

    scouts: Dict[str, ScoutView]
    troop_totals: TroopTotals
    transfer_breakdowns: TransferBreakdowns
    varieties: VarietyReport
    cookie_share: DonationReconciliation
    site_orders: SiteOrders
    booth_reservations: List[BoothReservation]
    booth_locations: List[BoothLocation]
    metadata: DatasetMetadata


__all__ = [
    "ChannelCredit",
    "InventoryIssue",
    "StatusCounts",
    "Financials",
    "ScoutTotals",
    "ScoutView",
    "ScoutCounts",
    "TroopTotals",
    "SiteOrderEntry",
    "SiteOrderCategory",
    "SiteOrders",
    "TransferBreakdowns",
    "VarietyReport",
    "DonationReconciliation",
    "HealthChecks",
    "DatasetMetadata",
    "UnifiedDataset",
]
