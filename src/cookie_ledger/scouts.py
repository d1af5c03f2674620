"""Per-seller passes of the dataset builder.

Each pass reads the store and fills :class:`~cookie_ledger.views.ScoutView`
objects in place; the store itself is never written. Passes run in a fixed
order: initialization, order attachment, inventory, allocations, totals.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from . import log
from .classifier import classify_order_status, consumes_inventory
from .constants import (
    AllocationChannel,
    DataSource,
    OrderStatus,
    OrderType,
    Owner,
    PaymentMethod,
    SCOUT_PHYSICAL_CATEGORIES,
    SITE_ORDER_LAST_NAME,
    TransferCategory,
    WarningType,
)
from .cookies import COOKIE_SHARE, PHYSICAL_VARIETIES, PROCEEDS_EXEMPT_PACKAGES, physical_revenue, revenue
from .models import Allocation, DataStore, Order, ReconcileWarning
from .parsers import WarningSink, warn
from .views import ChannelCredit, Financials, InventoryIssue, ScoutCounts, ScoutView, StatusCounts


ScoutViews = Dict[str, ScoutView]

_IDENTITY_FIELDS = (
    "gsusa_id",
    "grade_level",
    "service_unit",
    "troop_id",
    "council",
    "district",
)


def _split_name(name: str) -> Tuple[str, str]:
    first, _, last = name.strip().partition(" ")
    return first, last.strip()


def is_individual_order(order: Order) -> bool:
    """Orders that came from the individual-seller export belong to a seller view."""

    return DataSource.DC in order.sources and bool(order.scout)


def initialize_scouts(store: DataStore) -> ScoutViews:
    """Create one view per seller.

    Sellers are taken first from individual-seller orders, then from the
    scout registry for sellers who only appear in transfers or allocation
    feeds. A seller whose last name is the site marker is flagged as the
    troop's site pseudo-seller.

    Args:
        store (DataStore): The populated store.

    Returns:
        Dict[str, ScoutView]: Views keyed by seller display name.
    """

    scouts: ScoutViews = {}

    for order in store.orders.values():
        if not is_individual_order(order):
            continue
        view = scouts.get(order.scout)
        if view is None:
            view = ScoutView(
                name=order.scout,
                first_name=order.first_name,
                last_name=order.last_name,
                is_site=order.last_name == SITE_ORDER_LAST_NAME,
            )
            scouts[order.scout] = view
        if view.scout_id is None and order.scout_id is not None:
            view.scout_id = order.scout_id
        for name in _IDENTITY_FIELDS:
            value = getattr(order, name, None)
            if value and getattr(view, name) is None:
                setattr(view, name, value)

    for record in store.scouts.values():
        view = scouts.get(record.name)
        if view is None:
            first, last = _split_name(record.name)
            view = ScoutView(
                name=record.name,
                first_name=record.first_name or first,
                last_name=record.last_name or last,
            )
            view.is_site = view.last_name == SITE_ORDER_LAST_NAME
            scouts[record.name] = view
        if view.scout_id is None:
            view.scout_id = record.scout_id
        for name in _IDENTITY_FIELDS:
            value = getattr(record, name)
            if value is not None and getattr(view, name) is None:
                setattr(view, name, value)

    log.debug("Initialized %d seller view(s)", len(scouts))
    return scouts


def attach_orders(store: DataStore, scouts: ScoutViews) -> None:
    """Attach every individual-seller order to its seller, in import order."""

    for order in store.orders.values():
        if not is_individual_order(order):
            continue
        scouts[order.scout].orders.append(order)


def attach_inventory(store: DataStore, scouts: ScoutViews) -> None:
    """Add pickups to, and subtract returns from, each seller's inventory.

    Only physical varieties move; a transfer naming a party that is not a
    known seller is ignored.
    """

    for transfer in store.transfers:
        if transfer.category not in SCOUT_PHYSICAL_CATEGORIES:
            continue
        if transfer.category == TransferCategory.GIRL_PICKUP:
            view, sign = scouts.get(transfer.to_party), 1
        else:
            view, sign = scouts.get(transfer.from_party), -1
        if view is None:
            continue
        for variety, count in transfer.physical_varieties.items():
            view.inventory[variety] = view.inventory.get(variety, 0) + sign * abs(count)
        view.inventory_total += sign * abs(transfer.physical_packages)


def _credit(credit: ChannelCredit, allocation: Allocation) -> None:
    credit.packages += allocation.packages
    credit.donations += allocation.donations
    for variety, count in allocation.varieties.items():
        credit.varieties[variety] = credit.varieties.get(variety, 0) + count
    credit.allocations.append(allocation)


def attach_allocations(store: DataStore, scouts: ScoutViews, warnings: WarningSink = None) -> None:
    """Credit sellers with troop-level sales split to them.

    Virtual-booth credit comes from the transfer ledger and is matched by
    the receiving party's name. Booth and direct-ship credit comes from the
    divider allocations and is matched by numeric seller id. An allocation
    whose id resolves to no seller is reported rather than dropped silently.
    """

    by_id: Dict[int, ScoutView] = {view.scout_id: view for view in scouts.values() if view.scout_id is not None}

    for transfer in store.transfers:
        if transfer.category != TransferCategory.VIRTUAL_BOOTH_ALLOCATION:
            continue
        view = scouts.get(transfer.to_party)
        if view is None:
            continue
        varieties = {variety: abs(count) for variety, count in transfer.varieties.items()}
        allocation = Allocation(
            channel=AllocationChannel.VIRTUAL_BOOTH,
            scout_id=view.scout_id or 0,
            divider_key=transfer.order_number,
            packages=abs(transfer.physical_packages),
            donations=varieties.get(COOKIE_SHARE, 0),
            varieties=varieties,
            source=transfer.source or DataSource.SC,
            order_id=transfer.order_number or None,
            date=transfer.date,
        )
        _credit(view.credited[AllocationChannel.VIRTUAL_BOOTH], allocation)

    for allocation in store.allocations:
        view = by_id.get(allocation.scout_id)
        if view is None:
            name = store.scout_ids.get(allocation.scout_id)
            view = scouts.get(name) if name is not None else None
        if view is None:
            warn(
                warnings,
                WarningType.UNMATCHED_ALLOCATION,
                f"No seller with id {allocation.scout_id} for {allocation.channel.value} allocation",
                source=allocation.source.value if allocation.source else None,
                reference=allocation.divider_key,
                value=allocation.scout_id,
            )
            continue
        _credit(view.credited[allocation.channel], allocation)

    for scout_id, quantity in store.virtual_cookie_shares.items():
        view = by_id.get(scout_id)
        if view is not None:
            view.virtual_cookie_shares += quantity


def _count_statuses(orders: List[Order]) -> StatusCounts:
    counts = StatusCounts()
    for order in orders:
        status = classify_order_status(order.status)
        if status == OrderStatus.NEEDS_APPROVAL:
            counts.needs_approval += 1
        elif status == OrderStatus.PENDING:
            counts.pending += 1
        elif status == OrderStatus.COMPLETED:
            counts.completed += 1
        else:
            counts.unknown += 1
    return counts


def _financials(view: ScoutView, inventory_orders: List[Order]) -> Financials:
    """Money collected by the seller against the value of what they picked up.

    Payments on orders filled from the seller's own stock are valued at the
    physical packages they moved; shipped and donated packages never drew on
    that stock. Orders without a recognized payment method count as cash.
    """

    cash_collected = Decimal("0")
    for order in view.orders:
        if order.owner is Owner.GIRL and order.payment_method in (None, PaymentMethod.CASH):
            cash_collected += order.amount

    electronic = Decimal("0")
    cash_from_inventory = Decimal("0")
    for order in inventory_orders:
        if order.payment_method in (None, PaymentMethod.CASH):
            cash_from_inventory += physical_revenue(order.varieties)
        else:
            electronic += physical_revenue(order.varieties)

    positive_inventory = {variety: count for variety, count in view.inventory.items() if count > 0}
    inventory_value = physical_revenue(positive_inventory)
    unsold_value = max(Decimal("0"), inventory_value - electronic - cash_from_inventory)
    return Financials(
        cash_collected=cash_collected,
        electronic_payments=electronic,
        inventory_value=inventory_value,
        unsold_value=unsold_value,
        cash_owed=cash_collected + unsold_value,
    )


def compute_scout_totals(view: ScoutView) -> None:
    """Fill ``view.totals`` and ``view.negative_inventory`` from attached data."""

    totals = view.totals
    totals.orders = len(view.orders)

    sales: Dict[str, int] = {}
    inventory_orders: List[Order] = []
    for order in view.orders:
        if consumes_inventory(order.owner, order.order_type):
            totals.delivered += order.physical_packages
            inventory_orders.append(order)
            for variety in PHYSICAL_VARIETIES:
                count = order.varieties.get(variety, 0)
                if count:
                    sales[variety] = sales.get(variety, 0) + count
        elif order.order_type == OrderType.DIRECT_SHIP:
            totals.shipped += order.physical_packages
        totals.donations += order.donations

    totals.credited = sum(credit.total for credit in view.credited.values())
    totals.credited_revenue = sum((revenue(credit.varieties) for credit in view.credited.values()), Decimal("0"))
    totals.total_sold = totals.delivered + totals.shipped + totals.donations + totals.credited

    display: Dict[str, int] = {}
    issues: List[InventoryIssue] = []
    for variety in PHYSICAL_VARIETIES:
        picked_up = view.inventory.get(variety, 0)
        sold = sales.get(variety, 0)
        if not picked_up and not sold:
            continue
        remaining = picked_up - sold
        display[variety] = remaining
        if remaining < 0:
            issues.append(InventoryIssue(variety=variety, inventory=picked_up, sales=sold, shortfall=-remaining))

    totals.inventory_display = display
    totals.inventory = sum(display.values())
    totals.inventory_on_hand = sum(count for count in display.values() if count > 0)
    totals.financials = _financials(view, inventory_orders)
    totals.status_counts = _count_statuses(view.orders)
    view.negative_inventory = issues

    if issues:
        log.warning(
            "Seller '%s' sold more than picked up for: %s",
            view.name,
            ", ".join(issue.variety for issue in issues),
        )


def apply_proceeds(scouts: ScoutViews, rate: Decimal) -> None:
    """Split troop proceeds at ``rate`` per package across the sellers.

    The first ``PROCEEDS_EXEMPT_PACKAGES`` a seller sold earn the troop
    nothing. The site pseudo-seller and sellers with no sales get no
    exemption.
    """

    for view in scouts.values():
        totals = view.totals
        gross = Decimal(totals.total_sold) * rate
        if view.is_site or totals.total_sold <= 0:
            totals.proceeds_deduction = Decimal("0")
        else:
            totals.proceeds_deduction = Decimal(min(totals.total_sold, PROCEEDS_EXEMPT_PACKAGES)) * rate
        totals.troop_proceeds = gross - totals.proceeds_deduction


def count_scouts(scouts: ScoutViews) -> ScoutCounts:
    """Count real sellers; the site pseudo-seller is left out."""

    sellers = [view for view in scouts.values() if not view.is_site]
    active = sum(1 for view in sellers if view.totals.total_sold > 0)
    return ScoutCounts(
        total=len(sellers),
        active=active,
        inactive=len(sellers) - active,
        with_negative_inventory=sum(1 for view in sellers if view.negative_inventory),
    )


def build_scout_views(store: DataStore, warnings: Optional[List[ReconcileWarning]] = None) -> ScoutViews:
    """Run every per-seller pass and return the finished views."""

    scouts = initialize_scouts(store)
    attach_orders(store, scouts)
    attach_inventory(store, scouts)
    attach_allocations(store, scouts, warnings)
    for view in scouts.values():
        compute_scout_totals(view)
    return scouts


__all__ = [
    "is_individual_order",
    "initialize_scouts",
    "attach_orders",
    "attach_inventory",
    "attach_allocations",
    "compute_scout_totals",
    "apply_proceeds",
    "count_scouts",
    "build_scout_views",
]
