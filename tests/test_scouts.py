"""Tests for the per-seller passes of the dataset builder."""

from __future__ import annotations

from decimal import Decimal

from conftest import cookies, dc_row, sc_order

from cookie_ledger import importers, scouts  # noqa: E402
from cookie_ledger.constants import AllocationChannel, DataSource, WarningType  # noqa: E402
from cookie_ledger.cookies import THIN_MINTS, TREFOILS  # noqa: E402
from cookie_ledger.models import Allocation  # noqa: E402
from cookie_ledger.store import add_allocation, upsert_scout  # noqa: E402


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


def test_sellers_come_from_orders_and_registry(store):
    importers.import_digital_cookie(
        store,
        [
            dc_row("ORD-1", "Jane", "Doe", "Donation", total=1, amount="6", donation=1),
            dc_row("ORD-2", "Troop3990", "Site", "Cookies In Hand", total=4, amount="24", Thin_Mints=4),
        ],
    )
    upsert_scout(store, "Amy Lee", scout_id=205, grade_level="5")

    views = scouts.initialize_scouts(store)

    assert list(views) == ["Jane Doe", "Troop3990 Site", "Amy Lee"]
    assert views["Troop3990 Site"].is_site
    assert not views["Jane Doe"].is_site
    assert views["Amy Lee"].first_name == "Amy"
    assert views["Amy Lee"].last_name == "Lee"
    assert views["Amy Lee"].scout_id == 205
    assert views["Amy Lee"].grade_level == "5"


def test_seller_id_backfills_without_overwriting(store):
    """An id known from the report wins; the registry only fills a gap."""

    importers.import_digital_cookie(
        store, [dc_row("ORD-1", "Jane", "Doe", "Donation", total=1, amount="6", donation=1)]
    )
    store.orders["ORD-1"].scout_id = 101
    store.scouts["Jane Doe"].scout_id = 999

    views = scouts.initialize_scouts(store)

    assert views["Jane Doe"].scout_id == 101


def test_builder_does_not_write_to_store(fixture_store):
    before_scouts = {name: vars(record).copy() for name, record in fixture_store.scouts.items()}
    before_warnings = list(fixture_store.warnings)

    scouts.build_scout_views(fixture_store, [])

    assert {name: vars(record) for name, record in fixture_store.scouts.items()} == before_scouts
    assert fixture_store.warnings == before_warnings


# ---------------------------------------------------------------------------
# Inventory and totals
# ---------------------------------------------------------------------------


def test_inventory_is_pickups_minus_returns(store):
    importers.import_orders_search(
        store,
        [
            sc_order("1", "T2G", "3990", "Jane Doe", cookies(TM=8, TRE=7)),
            sc_order("2", "G2T", "Jane Doe", "3990", cookies(TRE=2)),
        ],
    )
    views = scouts.initialize_scouts(store)
    scouts.attach_inventory(store, views)

    assert views["Jane Doe"].inventory == {THIN_MINTS: 8, TREFOILS: 5}
    assert views["Jane Doe"].inventory_total == 13


def test_overselling_a_variety_is_reported_not_clamped(store):
    """A negative variety lowers the signed total but never the display total."""

    importers.import_orders_search(store, [sc_order("1", "T2G", "3990", "Jane Doe", cookies(TM=2, TRE=4))])
    importers.import_digital_cookie(
        store,
        [dc_row("ORD-1", "Jane", "Doe", "In-Person Delivery", total=5, amount="30", Thin_Mints=5)],
    )

    view = scouts.build_scout_views(store)["Jane Doe"]

    assert view.totals.inventory_display == {THIN_MINTS: -3, TREFOILS: 4}
    assert view.totals.inventory == 1
    assert view.totals.inventory_on_hand == 4
    assert len(view.negative_inventory) == 1
    issue = view.negative_inventory[0]
    assert (issue.variety, issue.inventory, issue.sales, issue.shortfall) == (THIN_MINTS, 2, 5, 3)


def test_total_sold_is_the_sum_of_its_parts(fixture_store):
    for view in scouts.build_scout_views(fixture_store).values():
        totals = view.totals
        assert totals.total_sold == totals.delivered + totals.shipped + totals.donations + totals.credited
        assert totals.credited == sum(c.packages + c.donations for c in view.credited.values())
        assert totals.financials.cash_owed >= totals.financials.cash_collected
        assert totals.financials.unsold_value >= 0


def test_credited_revenue_prices_every_channel(fixture_store):
    views = scouts.build_scout_views(fixture_store)

    assert views["Jane Doe"].totals.credited_revenue == Decimal("30")
    assert views["Bob Smith"].totals.credited_revenue == Decimal("48")


def test_proceeds_stay_zero_until_the_rate_is_applied(fixture_store):
    views = scouts.build_scout_views(fixture_store)
    assert views["Jane Doe"].totals.proceeds_deduction == Decimal("0")

    scouts.apply_proceeds(views, Decimal("0.90"))

    jane = views["Jane Doe"].totals
    assert jane.proceeds_deduction == Decimal("11.70")
    assert jane.troop_proceeds == Decimal("0")


def test_status_counts(fixture_store):
    views = scouts.build_scout_views(fixture_store)

    jane = views["Jane Doe"].totals.status_counts
    bob = views["Bob Smith"].totals.status_counts
    assert (jane.completed, jane.pending) == (3, 0)
    assert (bob.completed, bob.pending) == (1, 1)


# ---------------------------------------------------------------------------
# Allocations
# ---------------------------------------------------------------------------


def test_allocations_join_through_seller_id(store):
    upsert_scout(store, "Jane Doe", first_name="Jane", last_name="Doe", scout_id=101)
    add_allocation(store, Allocation(channel=AllocationChannel.BOOTH, scout_id=101, divider_key="R-1",
                                     packages=4, donations=1, varieties={THIN_MINTS: 4}))
    store.virtual_cookie_shares[101] = 2

    views = scouts.initialize_scouts(store)
    scouts.attach_allocations(store, views)

    credit = views["Jane Doe"].credited[AllocationChannel.BOOTH]
    assert (credit.packages, credit.donations, credit.total) == (4, 1, 5)
    assert views["Jane Doe"].virtual_cookie_shares == 2


def test_allocation_for_unknown_seller_is_reported(store):
    add_allocation(store, Allocation(channel=AllocationChannel.DIRECT_SHIP, scout_id=555, divider_key="direct-ship",
                                     packages=2, source=DataSource.DIRECT_SHIP_DIVIDER))
    warnings = []

    views = scouts.build_scout_views(store, warnings)

    assert views == {}
    assert [w.type for w in warnings] == [WarningType.UNMATCHED_ALLOCATION]
    assert warnings[0].value == 555


def test_virtual_booth_credit_comes_from_transfers(store):
    importers.import_orders_search(
        store,
        [sc_order("77", "T2G", "Troop3990 Site", "Bob Smith", cookies(TM=3, TRE=2, CSHARE=1), virtual_booth=True)],
    )
    views = scouts.build_scout_views(store)

    credit = views["Bob Smith"].credited[AllocationChannel.VIRTUAL_BOOTH]
    assert (credit.packages, credit.donations) == (5, 1)
    assert credit.allocations[0].divider_key == "77"
    assert views["Bob Smith"].totals.credited == 6


def test_financials_for_cash_and_card_orders(fixture_store):
    jane = scouts.build_scout_views(fixture_store)["Jane Doe"].totals.financials

    assert jane.cash_collected == Decimal("12")
    assert jane.electronic_payments == Decimal("30")
    assert jane.inventory_value == Decimal("78")
    assert jane.unsold_value == Decimal("36")
    assert jane.cash_owed == Decimal("48")
