"""Tests for the order and transfer importers."""

from __future__ import annotations

from decimal import Decimal

from conftest import TROOP_NUMBER, cookies, dc_row, sc_order

from cookie_ledger import importers, scouts  # noqa: E402
from cookie_ledger.constants import (  # noqa: E402
    DataSource,
    OrderType,
    Owner,
    PaymentMethod,
    TransferCategory,
    WarningType,
)
from cookie_ledger.cookies import CARAMEL_DELITES, COOKIE_SHARE, THIN_MINTS, TREFOILS  # noqa: E402
from cookie_ledger.models import create_data_store  # noqa: E402


# ---------------------------------------------------------------------------
# Individual-seller export
# ---------------------------------------------------------------------------


def test_import_digital_cookie_builds_orders_and_scouts(store):
    rows = [
        dc_row("ORD-1", "Jane", "Doe", "In-Person Delivery", total=5, amount="$30.00", Thin_Mints=3, Trefoils=2),
        dc_row("ORD-2", "Jane", "Doe", "Donation", total=2, amount="$12.00", donation=2),
    ]

    assert importers.import_digital_cookie(store, rows) == 2

    delivery = store.orders["ORD-1"]
    assert delivery.scout == "Jane Doe"
    assert delivery.owner is Owner.GIRL
    assert delivery.order_type is OrderType.DELIVERY
    assert delivery.payment_method is PaymentMethod.CREDIT_CARD
    assert delivery.amount == Decimal("30.00")
    assert delivery.varieties == {THIN_MINTS: 3, TREFOILS: 2}
    assert delivery.date == "2025-02-01"

    donation = store.orders["ORD-2"]
    assert donation.packages == 2
    assert donation.physical_packages == 0
    assert donation.donations == 2
    assert donation.varieties == {COOKIE_SHARE: 2}

    assert "Jane Doe" in store.scouts
    assert store.imports[-1].source is DataSource.DC
    assert store.imports[-1].records == 2


def test_packages_always_split_into_physical_and_donations(store):
    rows = [dc_row("ORD-1", "Jane", "Doe", "In-Person Delivery", total=6, amount="36", donation=1, Thin_Mints=5)]
    importers.import_digital_cookie(store, rows)

    order = store.orders["ORD-1"]
    assert order.packages == order.physical_packages + order.donations


def test_refunded_packages_reduce_the_total(store):
    row = dc_row("ORD-1", "Jane", "Doe", "In-Person Delivery", total=5, amount="30", Thin_Mints=5)
    row["Refunded Packages"] = 2
    importers.import_digital_cookie(store, [row])

    assert store.orders["ORD-1"].packages == 3


def test_site_rows_are_owned_by_the_troop(store):
    rows = [dc_row("ORD-9", "Troop3990", "Site", "Cookies In Hand", total=10, amount="60", Thin_Mints=10)]
    importers.import_digital_cookie(store, rows)

    order = store.orders["ORD-9"]
    assert order.owner is Owner.TROOP
    assert order.order_type is OrderType.BOOTH


def test_unknown_order_type_and_payment_are_warned(store):
    """Unknown codes stay on the order as ``None`` and are counted once each."""

    rows = [dc_row("ORD-1", "Jane", "Doe", "Drone Drop", total=1, amount="6", payment="IOU", Thin_Mints=1)]
    importers.import_digital_cookie(store, rows)

    order = store.orders["ORD-1"]
    assert order.order_type is None
    assert order.payment_method is None
    assert [w.type for w in store.warnings] == [WarningType.UNKNOWN_ORDER_TYPE, WarningType.UNKNOWN_PAYMENT_METHOD]


def test_rows_without_order_number_are_skipped(store):
    row = dc_row("", "Jane", "Doe", "Donation", total=1, amount="6", donation=1)
    assert importers.import_digital_cookie(store, [row]) == 0
    assert store.orders == {}


def test_digital_cookie_format_needs_seller_and_order_columns():
    assert importers.is_digital_cookie_format([dc_row("ORD-1", "Jane", "Doe", "Donation", total=1, amount="6")])
    assert not importers.is_digital_cookie_format([])
    assert not importers.is_digital_cookie_format([{"Order Number": "1", "Total": 5}])


def test_orders_search_format_accepts_list_or_response_object():
    assert importers.is_orders_search_format([])
    assert importers.is_orders_search_format({"orders": []})
    assert not importers.is_orders_search_format({"error": "session expired"})
    assert not importers.is_orders_search_format("orders")


# ---------------------------------------------------------------------------
# Council report
# ---------------------------------------------------------------------------


def _report_row(order_id: str, **values):
    row = {
        "OrderID": order_id,
        "GirlName": "Jane Doe",
        "GirlID": "101",
        "GSUSAID": "G-55",
        "GradeLevel": "4",
        "OrderDate": "2025-02-01",
        "Total": "0/5",
        "TroopID": TROOP_NUMBER,
        "ServiceUnitDesc": "SU 12",
        "CouncilDesc": "Lakeshore Council",
        "ParamTitle": "Troop = 3990; District = Lakeside",
        "C6": "0/5",
    }
    row.update(values)
    return row


def test_council_report_enriches_without_overwriting_core_fields(store):
    importers.import_digital_cookie(
        store,
        [dc_row("ORD-1", "Jane", "Doe", "In-Person Delivery", total=3, amount="18", Thin_Mints=3)],
    )
    importers.import_council_report(store, [_report_row("ORD-1")])

    order = store.orders["ORD-1"]
    assert order.packages == 3
    assert order.varieties == {THIN_MINTS: 3}
    assert order.scout_id == 101
    assert order.gsusa_id == "G-55"
    assert order.district == "Lakeside"
    assert order.sources == [DataSource.DC, DataSource.SC_REPORT]

    scout = store.scouts["Jane Doe"]
    assert scout.scout_id == 101
    assert scout.council == "Lakeshore Council"
    assert store.scout_ids[101] == "Jane Doe"


def test_council_report_creates_orders_it_alone_knows(store):
    importers.import_council_report(store, [_report_row("ORD-5", Total="1/0", C6="1/0")])

    order = store.orders["ORD-5"]
    assert order.packages == 12
    assert order.cases == 1
    assert order.sources == [DataSource.SC_REPORT]


# ---------------------------------------------------------------------------
# Transfer ledger
# ---------------------------------------------------------------------------


def _ledger_row(transfer_type: str, order_number: str, to_party: str, from_party: str, **codes):
    row = {"TYPE": transfer_type, "ORDER #": order_number, "TO": to_party, "FROM": from_party,
           "DATE": "01/20/2025", "TOTAL": sum(codes.values()), "TOTAL $": "$0.00"}
    row.update(codes)
    return row


def test_transfer_ledger_infers_troop_and_registers_sellers():
    store = create_data_store()
    rows = [
        _ledger_row("C2T", "1", TROOP_NUMBER, "Council", TM=24),
        _ledger_row("T2G", "2", "Jane Doe", TROOP_NUMBER, TM=6),
        _ledger_row("G2T", "3", TROOP_NUMBER, "Jane Doe", TM=1),
        _ledger_row("T2T", "4", "Troop 1200", TROOP_NUMBER, TM=2),
    ]

    assert importers.import_transfer_ledger(store, rows) == 4
    assert store.troop_number == TROOP_NUMBER
    assert [t.category for t in store.transfers] == [
        TransferCategory.COUNCIL_TO_TROOP,
        TransferCategory.GIRL_PICKUP,
        TransferCategory.GIRL_RETURN,
        TransferCategory.TROOP_OUTGOING,
    ]
    assert store.transfers[0].date == "2025-01-20"
    assert list(store.scouts) == ["Jane Doe"]
    assert store.imports[-1].label == "transfer ledger"


def test_transfer_ledger_mirrors_donation_records_onto_orders(store):
    rows = [_ledger_row("COOKIE_SHARE", "D123", "Jane Doe", TROOP_NUMBER, CShare=-2)]
    importers.import_transfer_ledger(store, rows)

    order = store.orders["123"]
    assert order.donations == 2
    assert order.status == importers.MIRRORED_ORDER_STATUS
    assert store.transfers[0].category is TransferCategory.DONATION_RECORD


def test_transfer_ledger_keeps_orders_from_the_individual_export(store):
    """A donation record imported after the export only adds provenance."""

    importers.import_digital_cookie(
        store,
        [dc_row("1234", "Jane", "Doe", "In-Person Delivery", total=6, amount="$36.00", donation=1, Thin_Mints=5)],
    )
    importers.import_transfer_ledger(store, [_ledger_row("COOKIE_SHARE", "D1234", "Jane Doe", TROOP_NUMBER, CShare=1)])

    order = store.orders["1234"]
    assert order.physical_packages == 5
    assert order.donations == 1
    assert order.varieties[THIN_MINTS] == 5
    assert order.status == "Completed"
    assert order.amount == Decimal("36.00")
    assert order.sources == [DataSource.DC, DataSource.SC]

    totals = scouts.build_scout_views(store)["Jane Doe"].totals
    assert totals.delivered == 5
    assert totals.donations == 1
    assert totals.total_sold == 6


# ---------------------------------------------------------------------------
# Orders-search feed
# ---------------------------------------------------------------------------


def test_orders_search_accepts_response_object_or_bare_list(store):
    entry = sc_order("1", "C2T", "Council", TROOP_NUMBER, cookies(TM=12))
    assert importers.import_orders_search(store, {"orders": [entry]}) == 1
    assert importers.import_orders_search(store, [entry]) == 1
    assert importers.import_orders_search(store, None) == 0
    assert len(store.transfers) == 2


def test_orders_search_sets_divider_flags(store):
    payload = [
        sc_order("1", "T2G", TROOP_NUMBER, "Bob Smith", cookies(TM=3), virtual_booth=True),
        sc_order("2", "T2G", TROOP_NUMBER, "Bob Smith", cookies(TM=2), smart_divider_id="SD-1"),
        sc_order("3", "T2G", TROOP_NUMBER, "Bob Smith", cookies(CD=1)),
    ]
    importers.import_orders_search(store, payload)

    assert [t.category for t in store.transfers] == [
        TransferCategory.VIRTUAL_BOOTH_ALLOCATION,
        TransferCategory.BOOTH_SALES_ALLOCATION,
        TransferCategory.GIRL_PICKUP,
    ]
    assert store.transfers[2].physical_varieties == {CARAMEL_DELITES: 1}
    assert "Bob Smith" in store.scouts


def test_orders_search_mirrors_individual_orders_and_export_wins(store):
    """The export imported afterwards overwrites the mirrored council copy."""

    importers.import_orders_search(
        store,
        [sc_order("D42", "D", "3990", "Jane Doe", cookies(TM=2), total="-12.00")],
    )
    mirrored = store.orders["42"]
    assert mirrored.status == importers.MIRRORED_ORDER_STATUS
    assert mirrored.amount == Decimal("12.00")

    importers.import_digital_cookie(
        store,
        [dc_row("42", "Jane", "Doe", "In-Person Delivery", total=2, amount="$12.00", Thin_Mints=2)],
    )
    order = store.orders["42"]
    assert order.status == "Completed"
    assert order.sources == [DataSource.SC_API, DataSource.DC]
    assert set(order.raw) == {"SC-API", "DC"}


def test_orders_search_unknown_type_is_counted_not_raised(store):
    importers.import_orders_search(store, [sc_order("9", "??", "x", "y", cookies(TM=1))])

    assert store.transfers[0].category is TransferCategory.UNCLASSIFIED
    assert [w.type for w in store.warnings] == [WarningType.UNKNOWN_TRANSFER_TYPE]
