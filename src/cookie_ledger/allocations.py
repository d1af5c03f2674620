"""Importers for the allocation, reservation, and booth-location feeds.

Divider feeds split troop-level sales (booth sales, direct ship) across
sellers after the fact. Each seller share becomes one
:class:`~cookie_ledger.models.Allocation`, de-duplicated by divider and
seller id so that repeated fetches of the same divider state do not credit
a seller twice.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from . import log
from .constants import AllocationChannel, DataSource
from .cookies import COOKIE_SHARE, physical_total
from .models import Allocation, BoothLocation, BoothReservation, DataStore
from .parsers import parse_api_varieties, parse_date, parse_int
from .store import add_allocation, record_import, register_scout


Payload = Union[Mapping[str, Any], List[Any], None]

# Divider key for the single troop-wide direct-ship divider blob.
DIRECT_SHIP_DIVIDER_KEY = "direct-ship"


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _seller_allocation(
    store: DataStore,
    girl: Mapping[str, Any],
    *,
    channel: AllocationChannel,
    divider_key: str,
    source: DataSource,
    **context: Any,
) -> Optional[Allocation]:
    """Turn one seller entry of a divider into an allocation.

    Returns ``None`` for entries without a numeric seller id or without any
    packages. The seller is registered so that allocations for sellers with
    no other sighting are not lost.
    """

    scout_id = parse_int(girl.get("id"), store.warnings, field="girl id")
    if not scout_id:
        log.debug("Skipping divider entry without a seller id in %s", divider_key)
        return None

    varieties, total = parse_api_varieties(
        girl.get("cookies"),
        store.warnings,
        id_map=store.cookie_id_map,
        reference=divider_key,
    )
    if total == 0:
        return None

    register_scout(store, scout_id, girl.get("first_name"), girl.get("last_name"))
    return Allocation(
        channel=channel,
        scout_id=scout_id,
        divider_key=divider_key,
        packages=physical_total(varieties),
        donations=varieties.get(COOKIE_SHARE, 0),
        varieties=varieties,
        source=source,
        **context,
    )


def import_direct_ship_divider(store: DataStore, payload: Payload) -> int:
    """Import direct-ship divider allocations.

    The feed arrives either as one troop-wide blob (``{"girls": [...]}``)
    or as a list of per-order dividers (``{"orderId", "divider": {...}}``).

    Returns:
        int: Number of allocations added.
    """

    if not payload:
        return 0

    if isinstance(payload, Mapping):
        dividers = [(DIRECT_SHIP_DIVIDER_KEY, None, payload)]
    else:
        dividers = []
        for entry in payload:
            order_id = _text(entry.get("orderId") or entry.get("id"))
            divider = entry.get("divider") or entry
            dividers.append((order_id or DIRECT_SHIP_DIVIDER_KEY, order_id or None, divider))

    added = 0
    for divider_key, order_id, divider in dividers:
        for girl in divider.get("girls") or []:
            allocation = _seller_allocation(
                store,
                girl,
                channel=AllocationChannel.DIRECT_SHIP,
                divider_key=divider_key,
                source=DataSource.DIRECT_SHIP_DIVIDER,
                order_id=order_id,
            )
            if allocation is not None and add_allocation(store, allocation):
                added += 1

    record_import(store, DataSource.DIRECT_SHIP_DIVIDER, added)
    return added


def import_booth_dividers(store: DataStore, entries: Payload) -> int:
    """Import booth sales divider allocations, one divider per reservation.

    Booth context may sit at ``entry["booth"]`` directly or nested one level
    deeper when the entry carries the full reservation.
    """

    added = 0
    for entry in entries or []:
        reservation_id = _text(entry.get("reservationId") or entry.get("reservation_id"))
        divider = entry.get("divider") or {}
        raw_booth = entry.get("booth") or {}
        booth = raw_booth if raw_booth.get("booth_id") else (raw_booth.get("booth") or raw_booth)
        timeslot = raw_booth.get("timeslot") or entry.get("timeslot") or {}

        for girl in divider.get("girls") or []:
            allocation = _seller_allocation(
                store,
                girl,
                channel=AllocationChannel.BOOTH,
                divider_key=reservation_id,
                source=DataSource.BOOTH_DIVIDER,
                reservation_id=reservation_id or None,
                store_name=_text(booth.get("store_name") or booth.get("booth_name") or booth.get("location")),
                date=parse_date(timeslot.get("date"), store.warnings, reference=reservation_id),
                start_time=_text(timeslot.get("start_time") or timeslot.get("startTime")),
                end_time=_text(timeslot.get("end_time") or timeslot.get("endTime")),
            )
            if allocation is not None and add_allocation(store, allocation):
                added += 1

    record_import(store, DataSource.BOOTH_DIVIDER, added)
    return added


def import_virtual_cookie_shares(store: DataStore, entries: Payload) -> int:
    """Accumulate manually entered virtual Cookie Share quantities per seller.

    Entries tied to a booth divider are skipped because booth donations
    already arrive through the booth divider allocations.
    """

    seen = 0
    for entry in entries or []:
        if entry.get("smart_divider_id"):
            continue
        for girl in entry.get("girls") or []:
            scout_id = parse_int(girl.get("id"), store.warnings, field="girl id")
            if not scout_id:
                continue
            register_scout(store, scout_id, girl.get("first_name"), girl.get("last_name"))
            quantity = parse_int(girl.get("quantity"), store.warnings, field="quantity")
            store.virtual_cookie_shares[scout_id] = store.virtual_cookie_shares.get(scout_id, 0) + quantity
            seen += 1

    record_import(store, DataSource.VIRTUAL_COOKIE_SHARE, seen)
    return seen


def import_reservations(store: DataStore, payload: Payload) -> int:
    """Replace the store's booth reservations with the feed's contents."""

    if isinstance(payload, Mapping):
        reservations = payload.get("reservations") or []
    else:
        reservations = list(payload or [])

    parsed: List[BoothReservation] = []
    for raw in reservations:
        booth = raw.get("booth") or {}
        timeslot = raw.get("timeslot") or {}
        reservation_id = _text(raw.get("id") or raw.get("reservation_id"))
        varieties, total = parse_api_varieties(
            raw.get("cookies"),
            store.warnings,
            id_map=store.cookie_id_map,
            reference=reservation_id,
        )
        parsed.append(
            BoothReservation(
                reservation_id=reservation_id,
                troop_id=_text(raw.get("troop_id")),
                booth_id=_text(booth.get("booth_id")),
                store_name=_text(booth.get("store_name")),
                address=_text(booth.get("address")),
                reservation_type=_text(booth.get("reservation_type")),
                is_distributed=bool(booth.get("is_distributed")),
                is_virtually_distributed=bool(booth.get("is_virtually_distributed")),
                date=parse_date(timeslot.get("date"), store.warnings, reference=reservation_id),
                start_time=_text(timeslot.get("start_time")),
                end_time=_text(timeslot.get("end_time")),
                packages=total,
                physical_packages=physical_total(varieties),
                varieties=varieties,
            )
        )

    if parsed:
        store.reservations = parsed
    record_import(store, DataSource.RESERVATIONS, len(parsed))
    return len(parsed)


def normalize_booth_location(raw: Mapping[str, Any]) -> BoothLocation:
    """Normalize one booth-location entry from either API naming style."""

    address = raw.get("address") or {}
    available_dates: List[Dict[str, Any]] = []
    for day in raw.get("availableDates") or []:
        slots = [
            {
                "start_time": _text(slot.get("start_time") or slot.get("startTime")),
                "end_time": _text(slot.get("end_time") or slot.get("endTime")),
            }
            for slot in day.get("timeSlots") or []
        ]
        available_dates.append({"date": _text(day.get("date")), "time_slots": slots})

    return BoothLocation(
        booth_id=_text(raw.get("id") or raw.get("booth_id")),
        store_name=_text(raw.get("store_name") or raw.get("name")),
        street=_text(address.get("street") or address.get("address_1")),
        city=_text(address.get("city")),
        state=_text(address.get("state")),
        zip_code=_text(address.get("zip") or address.get("postal_code")),
        reservation_type=_text(raw.get("reservation_type")),
        notes=_text(raw.get("notes")),
        available_dates=available_dates,
    )


def import_booth_locations(store: DataStore, payload: Payload) -> int:
    """Replace the store's booth locations with the feed's contents."""

    if isinstance(payload, Mapping):
        payload = [payload]
    locations = [normalize_booth_location(raw) for raw in (payload or [])]
    if locations:
        store.booth_locations = locations
    record_import(store, DataSource.BOOTH_LOCATIONS, len(locations))
    return len(locations)


__all__ = [
    "DIRECT_SHIP_DIVIDER_KEY",
    "import_direct_ship_divider",
    "import_booth_dividers",
    "import_virtual_cookie_shares",
    "import_reservations",
    "normalize_booth_location",
    "import_booth_locations",
]
