"""Tests for the allocation, reservation, and booth-location importers."""

from __future__ import annotations

from conftest import cookies, fixture_booth_dividers, fixture_direct_ship

from cookie_ledger import allocations  # noqa: E402
from cookie_ledger.constants import AllocationChannel, DataSource, WarningType  # noqa: E402
from cookie_ledger.cookies import CARAMEL_DELITES, COOKIE_SHARE, THIN_MINTS, TREFOILS  # noqa: E402


def test_direct_ship_blob_allocates_per_seller(store):
    assert allocations.import_direct_ship_divider(store, fixture_direct_ship()) == 1

    allocation = store.allocations[0]
    assert allocation.channel is AllocationChannel.DIRECT_SHIP
    assert allocation.scout_id == 102
    assert allocation.divider_key == allocations.DIRECT_SHIP_DIVIDER_KEY
    assert allocation.packages == 3
    assert allocation.varieties == {THIN_MINTS: 1, CARAMEL_DELITES: 2}
    assert allocation.order_id is None
    assert store.scouts["Bob Smith"].scout_id == 102
    assert store.imports[-1].source is DataSource.DIRECT_SHIP_DIVIDER


def test_direct_ship_order_list_keys_by_order(store):
    payload = [
        {"orderId": "D77", "divider": {"girls": [{"id": 102, "first_name": "Bob", "last_name": "Smith",
                                                  "cookies": cookies(TM=2)}]}},
        {"orderId": "D78", "divider": {"girls": [{"id": 102, "first_name": "Bob", "last_name": "Smith",
                                                  "cookies": cookies(TM=1)}]}},
    ]
    assert allocations.import_direct_ship_divider(store, payload) == 2
    assert [a.order_id for a in store.allocations] == ["D77", "D78"]


def test_repeated_divider_fetch_does_not_double_count(store):
    """Importing the same divider state twice leaves credited totals unchanged."""

    allocations.import_booth_dividers(store, fixture_booth_dividers())
    allocations.import_booth_dividers(store, fixture_booth_dividers())

    assert len(store.allocations) == 1
    allocation = store.allocations[0]
    assert allocation.channel is AllocationChannel.BOOTH
    assert allocation.packages == 4
    assert allocation.donations == 1
    assert allocation.varieties == {THIN_MINTS: 2, TREFOILS: 2, COOKIE_SHARE: 1}
    assert allocation.store_name == "Corner Grocer"
    assert allocation.date == "2025-02-08"
    assert allocation.start_time == "10:00"
    assert allocation.reservation_id == "R-1"


def test_booth_divider_reads_nested_booth_context(store):
    entry = {
        "reservationId": "R-2",
        "booth": {"booth": {"store_name": "Library"}, "timeslot": {"date": "2025-03-01"}},
        "divider": {"girls": [{"id": 101, "first_name": "Jane", "last_name": "Doe", "cookies": cookies(TRE=3)}]},
    }
    allocations.import_booth_dividers(store, [entry])

    assert store.allocations[0].store_name == "Library"
    assert store.allocations[0].date == "2025-03-01"


def test_divider_entries_without_id_or_packages_are_skipped(store):
    payload = {
        "girls": [
            {"id": None, "first_name": "No", "last_name": "Id", "cookies": cookies(TM=1)},
            {"id": 103, "first_name": "Zero", "last_name": "Packages", "cookies": []},
        ]
    }
    assert allocations.import_direct_ship_divider(store, payload) == 0
    assert store.allocations == []


def test_unknown_cookie_in_divider_is_warned(store):
    payload = {"girls": [{"id": 101, "first_name": "Jane", "last_name": "Doe",
                          "cookies": [{"id": 999, "quantity": 2}, {"id": 4, "quantity": 1}]}]}
    allocations.import_direct_ship_divider(store, payload)

    assert store.allocations[0].packages == 1
    assert [w.type for w in store.warnings] == [WarningType.UNKNOWN_COOKIE_ID]


def test_virtual_cookie_shares_skip_booth_backed_entries(store):
    entries = [
        {"girls": [{"id": 101, "first_name": "Jane", "last_name": "Doe", "quantity": 2}]},
        {"girls": [{"id": 101, "first_name": "Jane", "last_name": "Doe", "quantity": "1"}]},
        {"smart_divider_id": "SD-1", "girls": [{"id": 101, "quantity": 5}]},
    ]
    assert allocations.import_virtual_cookie_shares(store, entries) == 2
    assert store.virtual_cookie_shares == {101: 3}


def test_reservations_are_replaced_from_feed(store):
    payload = {
        "reservations": [
            {
                "id": "R-1",
                "troop_id": "3990",
                "booth": {"booth_id": "B-9", "store_name": "Corner Grocer", "is_distributed": True},
                "timeslot": {"date": "2025-02-08", "start_time": "10:00", "end_time": "12:00"},
                "cookies": cookies(TM=10, CSHARE=2),
            }
        ]
    }
    assert allocations.import_reservations(store, payload) == 1

    reservation = store.reservations[0]
    assert reservation.is_distributed
    assert reservation.packages == 12
    assert reservation.physical_packages == 10
    assert reservation.date == "2025-02-08"


def test_booth_locations_normalize_both_naming_styles(store):
    payload = [
        {
            "id": 7,
            "store_name": "Corner Grocer",
            "address": {"street": "1 Main St", "city": "Springfield", "state": "IL", "zip": "62701"},
            "availableDates": [{"date": "2025-02-08", "timeSlots": [{"startTime": "10:00", "endTime": "12:00"}]}],
        },
        {"booth_id": "8", "name": "Library", "address": {"address_1": "2 Oak Ave", "postal_code": "62702"}},
    ]
    assert allocations.import_booth_locations(store, payload) == 2

    first, second = store.booth_locations
    assert first.booth_id == "7"
    assert first.zip_code == "62701"
    assert first.available_dates == [
        {"date": "2025-02-08", "time_slots": [{"start_time": "10:00", "end_time": "12:00"}]}
    ]
    assert second.store_name == "Library"
    assert second.street == "2 Oak Ave"
    assert second.zip_code == "62702"


def test_single_booth_location_object_is_accepted(store):
    assert allocations.import_booth_locations(store, {"id": 1, "store_name": "Mall"}) == 1
    assert store.booth_locations[0].store_name == "Mall"
