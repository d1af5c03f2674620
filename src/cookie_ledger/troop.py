"""Troop-level passes of the dataset builder.

These passes run after every seller view is complete. They read the store
and the finished views and return frozen results. The troop totals pass
also fills in each seller's share of the proceeds.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List

from . import log
from .classifier import consumes_inventory, is_auto_synced_donation
from .constants import (
    AllocationChannel,
    DC_ORDER_PREFIX,
    OrderType,
    SALE_CATEGORIES,
    SITE_ORDER_LAST_NAME,
    T2G_CATEGORIES,
    TROOP_INVENTORY_IN_CATEGORIES,
    TransferCategory,
    WarningType,
)
from .cookies import (
    PHYSICAL_VARIETIES,
    PROCEEDS_EXEMPT_PACKAGES,
    per_girl_average,
    proceeds_rate,
)
from .models import Allocation, DataStore, ReconcileWarning, Transfer
from .scouts import ScoutViews, apply_proceeds, count_scouts, is_individual_order
from .views import (
    DonationReconciliation,
    HealthChecks,
    SiteOrderCategory,
    SiteOrderEntry,
    SiteOrders,
    TransferBreakdowns,
    TroopTotals,
    VarietyReport,
)


def _category_total(transfers: Iterable[Transfer], category: TransferCategory) -> int:
    return sum(abs(t.physical_packages) for t in transfers if t.category == category)


def _newest_first(transfers: Iterable[Transfer]) -> List[Transfer]:
    # Undated transfers sort last; ties keep import order.
    return sorted(transfers, key=lambda t: t.date or "", reverse=True)


# Site orders -------------------------------------------------------------------


class _Pool:
    """FIFO pool of allocated packages handed out to site orders in date order."""

    def __init__(self, amounts: Iterable[int]) -> None:
        self.remaining = sum(amounts)

    def take(self, wanted: int) -> int:
        taken = min(wanted, self.remaining)
        self.remaining -= taken
        return taken


def _matches_order(allocation: Allocation, order_number: str) -> bool:
    return allocation.order_id in (order_number, f"{DC_ORDER_PREFIX}{order_number}")


def _category(entries: List[SiteOrderEntry], allocated: int) -> SiteOrderCategory:
    total = sum(entry.packages for entry in entries)
    return SiteOrderCategory(
        orders=entries,
        total=total,
        allocated=allocated,
        unallocated=max(0, total - allocated),
        has_warning=total > allocated,
    )


def build_site_orders(store: DataStore, scouts: ScoutViews) -> SiteOrders:
    """Compare troop-owned site orders with what dividers allocated to sellers.

    Site orders are split by channel and walked oldest first. Direct-ship
    orders take allocations naming their order number; orders no allocation
    names share what is left of the whole direct-ship allocation. Booth and
    delivery orders draw from their pools in turn.
    Donation-only orders never need allocating and are left out.
    """

    site_orders = [order for view in scouts.values() if view.is_site for order in view.orders]
    site_orders.sort(key=lambda order: (order.date or "", order.order_number))

    ds_allocations = [a for a in store.allocations if a.channel == AllocationChannel.DIRECT_SHIP]
    booth_allocated = sum(a.packages for a in store.allocations if a.channel == AllocationChannel.BOOTH)
    ds_allocated = sum(a.packages for a in ds_allocations)
    vb_allocated = _category_total(store.transfers, TransferCategory.VIRTUAL_BOOTH_ALLOCATION)

    booth_pool = _Pool([booth_allocated])
    vb_pool = _Pool([vb_allocated])

    booth: List[SiteOrderEntry] = []
    direct_ship: List[SiteOrderEntry] = []
    girl_delivery: List[SiteOrderEntry] = []

    for order in site_orders:
        if order.order_type == OrderType.DONATION:
            continue
        entry = SiteOrderEntry(
            order_number=order.order_number,
            order_type=order.order_type,
            packages=order.physical_packages,
            date=order.date,
        )
        if order.order_type == OrderType.DIRECT_SHIP:
            matched = sum(a.packages for a in ds_allocations if _matches_order(a, order.order_number))
            entry.allocated = min(entry.packages, matched)
            direct_ship.append(entry)
        elif order.order_type == OrderType.BOOTH:
            entry.allocated = booth_pool.take(entry.packages)
            booth.append(entry)
        else:
            entry.allocated = vb_pool.take(entry.packages)
            girl_delivery.append(entry)

    ds_pool = _Pool([max(0, ds_allocated - sum(entry.allocated for entry in direct_ship))])
    for entry in direct_ship:
        if not entry.allocated:
            entry.allocated = ds_pool.take(entry.packages)

    result = SiteOrders(
        booth_sale=_category(booth, booth_allocated),
        direct_ship=_category(direct_ship, ds_allocated),
        girl_delivery=_category(girl_delivery, vb_allocated),
    )
    for name, category in (
        ("booth sale", result.booth_sale),
        ("direct ship", result.direct_ship),
        ("girl delivery", result.girl_delivery),
    ):
        if category.has_warning:
            log.info("%d %s site package(s) not yet allocated to sellers", category.unallocated, name)
    return result


# Troop totals ------------------------------------------------------------------


def compute_troop_totals(store: DataStore, scouts: ScoutViews, site_orders: SiteOrders) -> TroopTotals:
    """Compute troop inventory, package credit, and the proceeds projection.

    Packages sent to other troops are reported in ``troop_outgoing`` but are
    not taken out of ``inventory``. Once the proceeds rate is known each
    seller's share is filled in through :func:`apply_proceeds`.

    Args:
        store (DataStore): The populated store.
        scouts (Dict[str, ScoutView]): Finished seller views.
        site_orders (SiteOrders): Result of :func:`build_site_orders`.

    Returns:
        TroopTotals: Frozen troop-wide totals.
    """

    transfers = store.transfers
    council_received = _category_total(transfers, TransferCategory.COUNCIL_TO_TROOP)
    troop_outgoing = _category_total(transfers, TransferCategory.TROOP_OUTGOING)
    girl_pickup = _category_total(transfers, TransferCategory.GIRL_PICKUP)
    virtual_booth = _category_total(transfers, TransferCategory.VIRTUAL_BOOTH_ALLOCATION)
    booth_divider = _category_total(transfers, TransferCategory.BOOTH_SALES_ALLOCATION)
    direct_ship_divider = _category_total(transfers, TransferCategory.DIRECT_SHIP_ALLOCATION)
    returns = _category_total(transfers, TransferCategory.GIRL_RETURN)

    site_orders_physical = sum(
        order.physical_packages
        for view in scouts.values()
        if view.is_site
        for order in view.orders
        if order.order_type in (OrderType.DELIVERY, OrderType.BOOTH)
    )
    site_orders_from_stock = site_orders.girl_delivery.unallocated

    inventory = (
        council_received
        - girl_pickup
        - virtual_booth
        - booth_divider
        - site_orders_from_stock
        + returns
    )
    sold_from_stock = girl_pickup + virtual_booth + booth_divider + site_orders_from_stock - returns

    sellers = [view for view in scouts.values() if not view.is_site]
    donations = sum(view.totals.donations for view in sellers) + sum(
        credit.donations for view in sellers for credit in view.credited.values()
    )
    direct_ship = sum(view.totals.shipped for view in scouts.values())
    packages_credited = council_received + donations + direct_ship

    counts = count_scouts(scouts)
    average = per_girl_average(packages_credited, counts.active)
    rate = proceeds_rate(average)
    gross = Decimal(packages_credited) * rate
    exempt = sum(
        min(view.totals.total_sold, PROCEEDS_EXEMPT_PACKAGES) for view in sellers if view.totals.total_sold > 0
    )
    apply_proceeds(scouts, rate)
    deduction = sum((view.totals.proceeds_deduction for view in scouts.values()), Decimal("0"))

    sales = [t for t in transfers if t.category in SALE_CATEGORIES]

    if inventory < 0:
        log.warning("Troop inventory is negative (%d packages)", inventory)

    return TroopTotals(
        orders=sum(1 for order in store.orders.values() if is_individual_order(order)),
        sold=sum(abs(t.packages) for t in sales),
        revenue=sum((abs(t.amount) for t in sales), Decimal("0")),
        council_received=council_received,
        troop_outgoing=troop_outgoing,
        girl_pickup=girl_pickup,
        virtual_booth=virtual_booth,
        booth_divider=booth_divider,
        direct_ship_divider=direct_ship_divider,
        returns=returns,
        site_orders_physical=site_orders_physical,
        site_orders_from_stock=site_orders_from_stock,
        inventory=inventory,
        packages_sold_from_stock=sold_from_stock,
        donations=donations,
        direct_ship=direct_ship,
        packages_credited=packages_credited,
        per_girl_average=average,
        proceeds_rate=rate,
        gross_proceeds=gross,
        proceeds_exempt_packages=exempt,
        proceeds_deduction=deduction,
        troop_proceeds=gross - deduction,
        girl_delivery=sum(
            view.totals.delivered + view.credited[AllocationChannel.VIRTUAL_BOOTH].packages for view in sellers
        ),
        girl_inventory=sum(view.totals.inventory_on_hand for view in sellers),
        booth_sales_packages=sum(view.credited[AllocationChannel.BOOTH].packages for view in sellers),
        booth_sales_donations=sum(view.credited[AllocationChannel.BOOTH].donations for view in sellers),
        scouts=counts,
    )


# Reporting aggregates ----------------------------------------------------------


def build_transfer_breakdowns(store: DataStore) -> TransferBreakdowns:
    """Group transfers for reporting, newest first."""

    by_category: Dict[TransferCategory, List[Transfer]] = {}
    for transfer in store.transfers:
        by_category.setdefault(transfer.category, []).append(transfer)
    by_category = {category: _newest_first(items) for category, items in by_category.items()}

    c2t = by_category.get(TransferCategory.COUNCIL_TO_TROOP, [])
    t2g = by_category.get(TransferCategory.GIRL_PICKUP, [])
    g2t = by_category.get(TransferCategory.GIRL_RETURN, [])
    return TransferBreakdowns(
        c2t=c2t,
        t2g=t2g,
        g2t=g2t,
        c2t_total=sum(abs(t.physical_packages) for t in c2t),
        t2g_total=sum(abs(t.physical_packages) for t in t2g),
        g2t_total=sum(abs(t.physical_packages) for t in g2t),
        by_category=by_category,
        category_totals={
            category: sum(abs(t.physical_packages) for t in items) for category, items in by_category.items()
        },
    )


def _add(target: Dict[str, int], varieties: Dict[str, int], sign: int = 1) -> None:
    for variety, count in varieties.items():
        if count:
            target[variety] = target.get(variety, 0) + sign * abs(count)


def build_varieties(store: DataStore, scouts: ScoutViews) -> VarietyReport:
    """Packages sold and troop stock remaining, per physical variety.

    Sales cover seller orders filled from stock, every direct-ship order, and
    allocation credit given to real sellers.
    """

    sold: Dict[str, int] = {}
    for view in scouts.values():
        for order in view.orders:
            if consumes_inventory(order.owner, order.order_type) or order.order_type == OrderType.DIRECT_SHIP:
                _add(sold, {k: v for k, v in order.varieties.items() if k in PHYSICAL_VARIETIES})
        if view.is_site:
            continue
        for credit in view.credited.values():
            _add(sold, {k: v for k, v in credit.varieties.items() if k in PHYSICAL_VARIETIES})

    inventory: Dict[str, int] = {}
    for transfer in store.transfers:
        if transfer.category in TROOP_INVENTORY_IN_CATEGORIES:
            _add(inventory, transfer.physical_varieties)
        elif transfer.category in T2G_CATEGORIES:
            _add(inventory, transfer.physical_varieties, sign=-1)

    by_cookie = {variety: sold[variety] for variety in PHYSICAL_VARIETIES if sold.get(variety, 0) > 0}
    return VarietyReport(
        by_cookie=by_cookie,
        inventory={variety: inventory[variety] for variety in PHYSICAL_VARIETIES if variety in inventory},
        total=sum(by_cookie.values()),
    )


def reconcile_donations(store: DataStore) -> DonationReconciliation:
    """Compare Cookie Share needing manual entry with what was entered manually.

    Donations the council system receives automatically are excluded from
    the manual side; manual council entries are donation records not
    mirrored from an individual-seller order.
    """

    dc_total = 0
    dc_manual = 0
    for order in store.orders.values():
        if not is_individual_order(order) or order.last_name == SITE_ORDER_LAST_NAME:
            continue
        dc_total += order.donations
        if not is_auto_synced_donation(order.source_order_type, order.payment_status):
            dc_manual += order.donations

    sc_manual = sum(
        abs(transfer.packages)
        for transfer in store.transfers
        if transfer.category == TransferCategory.DONATION_RECORD
        and not transfer.order_number.startswith(DC_ORDER_PREFIX)
    )

    if dc_manual != sc_manual:
        log.info("Cookie Share needs manual entry: %d expected, %d entered", dc_manual, sc_manual)
    return DonationReconciliation(
        dc_total=dc_total,
        dc_manual_entry=dc_manual,
        sc_manual_entries=sc_manual,
        reconciled=dc_manual == sc_manual,
    )


def build_health_checks(warnings: List[ReconcileWarning]) -> HealthChecks:
    """Count unknown-code warnings, one per occurrence."""

    def count(warning_type: WarningType) -> int:
        return sum(1 for warning in warnings if warning.type == warning_type)

    return HealthChecks(
        warnings_count=len(warnings),
        unknown_order_types=count(WarningType.UNKNOWN_ORDER_TYPE),
        unknown_payment_methods=count(WarningType.UNKNOWN_PAYMENT_METHOD),
        unknown_transfer_types=count(WarningType.UNKNOWN_TRANSFER_TYPE),
    )


__all__ = [
    "build_site_orders",
    "compute_troop_totals",
    "build_transfer_breakdowns",
    "build_varieties",
    "reconcile_donations",
    "build_health_checks",
]
