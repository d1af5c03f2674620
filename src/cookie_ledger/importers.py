"""Importers for the order and transfer feeds.

Each importer walks the already-deserialized rows of one feed, normalizes
them through :mod:`cookie_ledger.parsers`, and writes into the store via the
merge engine. Importers do not catch their own errors: an exception stops
the remaining rows of that feed and propagates to the caller, leaving the
rows already written in place.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from . import log
from .classifier import (
    classify_order,
    classify_payment_method,
    is_council_to_troop,
    matches_troop,
)
from .constants import (
    DC_ORDER_PREFIX,
    SITE_ORDER_LAST_NAME,
    DataSource,
    DCColumn,
    ReportColumn,
    TransferColumn,
    TransferType,
    WarningType,
)
from .cookies import COOKIE_SHARE, physical_total
from .models import DataStore
from .parsers import (
    extract_district,
    parse_api_varieties,
    parse_cases_packages,
    parse_date,
    parse_dc_varieties,
    parse_int,
    parse_money,
    parse_report_varieties,
    parse_transfer_varieties,
)
from .store import (
    add_transfer,
    enrich_from_council_report,
    enrich_from_mirror,
    merge_or_create_order,
    record_import,
    record_warning,
    upsert_scout,
)


Row = Mapping[str, Any]

MIRRORED_ORDER_STATUS = "In SC Only"

# Columns every individual-seller export carries.
DC_REQUIRED_COLUMNS = (DCColumn.FIRST_NAME.value, DCColumn.ORDER_NUMBER.value)


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


def _mirror_individual_order(
    store: DataStore,
    order_number: str,
    scout: str,
    date: Optional[str],
    varieties: Dict[str, int],
    amount: Decimal,
    source: DataSource,
    raw: Row,
) -> None:
    """Record a council-side copy of an individual-seller order.

    The council system prefixes these order numbers with ``D``; the prefix
    is dropped so the copy merges with the export's own order. An order the
    export already supplied keeps its fields.
    """

    number = order_number[len(DC_ORDER_PREFIX):]
    donations = abs(varieties.get(COOKIE_SHARE, 0))
    physical = abs(physical_total(varieties))
    merge_or_create_order(
        store,
        number,
        {
            "scout": scout,
            "date": date,
            "packages": physical + donations,
            "physical_packages": physical,
            "donations": donations,
            "amount": abs(amount),
            "status": MIRRORED_ORDER_STATUS,
            "varieties": {key: abs(count) for key, count in varieties.items()},
        },
        source,
        raw,
        enrich=enrich_from_mirror,
    )


def is_digital_cookie_format(rows: List[Row]) -> bool:
    """Recognize the individual-seller export by its first row's columns."""

    if not rows:
        return False
    return all(column in rows[0] for column in DC_REQUIRED_COLUMNS)


def import_digital_cookie(store: DataStore, rows: Iterable[Row]) -> int:
    """Import the individual-seller order export.

    Every row becomes (or overwrites) an order keyed by its order number.
    Rows for the site pseudo-seller are owned by the troop. Unknown order
    types and payment statuses are kept on the order as ``None`` and
    recorded as warnings for the health checks.

    Args:
        store (DataStore): Store receiving the orders.
        rows (Iterable[Mapping[str, Any]]): Header-keyed export rows.

    Returns:
        int: Number of rows imported.
    """

    warnings = store.warnings
    count = 0
    for row in rows:
        order_number = _text(row.get(DCColumn.ORDER_NUMBER.value))
        if not order_number:
            log.debug("Skipping export row without an order number")
            continue

        first_name = _text(row.get(DCColumn.FIRST_NAME.value))
        last_name = _text(row.get(DCColumn.LAST_NAME.value))
        scout = f"{first_name} {last_name}".strip()
        is_site = last_name == SITE_ORDER_LAST_NAME

        total = parse_int(row.get(DCColumn.TOTAL_PACKAGES.value), warnings, field="total packages", reference=order_number)
        refunded = parse_int(row.get(DCColumn.REFUNDED_PACKAGES.value), warnings, field="refunded packages", reference=order_number)
        donations = parse_int(row.get(DCColumn.DONATION.value), warnings, field="donation", reference=order_number)
        packages = total - refunded

        varieties = parse_dc_varieties(row, warnings, reference=order_number)
        if donations > 0:
            varieties[COOKIE_SHARE] = donations

        order_type_text = _text(row.get(DCColumn.ORDER_TYPE.value))
        payment_status = _text(row.get(DCColumn.PAYMENT_STATUS.value))
        owner, order_type = classify_order(is_site, order_type_text)
        if order_type is None:
            record_warning(
                store,
                WarningType.UNKNOWN_ORDER_TYPE,
                f"Unknown order type '{order_type_text}' on order {order_number}",
                source=DataSource.DC.value,
                reference=order_number,
                value=order_type_text,
            )
        payment_method = classify_payment_method(payment_status)
        if payment_method is None:
            record_warning(
                store,
                WarningType.UNKNOWN_PAYMENT_METHOD,
                f"Unknown payment status '{payment_status}' on order {order_number}",
                source=DataSource.DC.value,
                reference=order_number,
                value=payment_status,
            )

        merge_or_create_order(
            store,
            order_number,
            {
                "scout": scout,
                "first_name": first_name,
                "last_name": last_name,
                "date": parse_date(row.get(DCColumn.ORDER_DATE.value), warnings, reference=order_number),
                "owner": owner,
                "order_type": order_type,
                "source_order_type": order_type_text,
                "packages": packages,
                "physical_packages": packages - donations,
                "donations": donations,
                "amount": parse_money(row.get(DCColumn.SALE_AMOUNT.value), warnings, reference=order_number),
                "status": _text(row.get(DCColumn.ORDER_STATUS.value)),
                "payment_status": payment_status,
                "payment_method": payment_method,
                "varieties": varieties,
            },
            DataSource.DC,
            row,
        )
        if scout:
            upsert_scout(store, scout, first_name=first_name, last_name=last_name)
        count += 1

    record_import(store, DataSource.DC, count)
    return count


def import_council_report(store: DataStore, rows: Iterable[Row]) -> int:
    """Import the council summary report.

    Report rows enrich orders already known from the individual export with
    seller identity, case counts, and organization, without touching the
    export's own order details. Orders seen only in the report are created
    from the report's values.
    """

    warnings = store.warnings
    count = 0
    for row in rows:
        order_number = _text(row.get(ReportColumn.ORDER_ID.value)) or _text(row.get(ReportColumn.REF_NUMBER.value))
        if not order_number:
            continue
        scout = _text(row.get(ReportColumn.GIRL_NAME.value))

        varieties, total_cases, total_packages = parse_report_varieties(row, warnings, reference=order_number)
        _, field_total = parse_cases_packages(row.get(ReportColumn.TOTAL.value), warnings, reference=order_number)
        packages = field_total if field_total > 0 else total_packages

        scout_id = parse_int(row.get(ReportColumn.GIRL_ID.value), warnings, field="girl id", reference=order_number) or None
        gsusa_id = _optional_text(row.get(ReportColumn.GSUSA_ID.value))
        grade_level = _optional_text(row.get(ReportColumn.GRADE_LEVEL.value))
        troop_id = _optional_text(row.get(ReportColumn.TROOP_ID.value))
        service_unit = _optional_text(row.get(ReportColumn.SERVICE_UNIT.value))
        council = _optional_text(row.get(ReportColumn.COUNCIL.value))
        district = extract_district(row.get(ReportColumn.PARAM_TITLE.value))

        merge_or_create_order(
            store,
            order_number,
            {
                "scout": scout,
                "scout_id": scout_id,
                "gsusa_id": gsusa_id,
                "grade_level": grade_level,
                "date": parse_date(row.get(ReportColumn.ORDER_DATE.value), warnings, reference=order_number),
                "packages": packages,
                "physical_packages": physical_total(varieties),
                "donations": varieties.get(COOKIE_SHARE, 0),
                "cases": total_cases,
                "varieties": varieties,
                "troop_id": troop_id,
                "service_unit": service_unit,
                "council": council,
                "district": district,
            },
            DataSource.SC_REPORT,
            row,
            enrich=enrich_from_council_report,
        )
        if scout:
            upsert_scout(
                store,
                scout,
                scout_id=scout_id,
                gsusa_id=gsusa_id,
                grade_level=grade_level,
                service_unit=service_unit,
                troop_id=troop_id,
                council=council,
                district=district,
            )
        count += 1

    record_import(store, DataSource.SC_REPORT, count)
    return count


def import_transfer_ledger(store: DataStore, rows: Iterable[Row]) -> int:
    """Import the flat transfer ledger export.

    The troop number is inferred from the recipient of the first
    council-to-troop row when the store does not know it yet. Sellers are
    registered from pickups, returns, and donation records that name this
    troop as the other party.
    """

    warnings = store.warnings
    count = 0
    for row in rows:
        transfer_type = _text(row.get(TransferColumn.TYPE.value))
        order_number = _text(row.get(TransferColumn.ORDER_NUMBER.value))
        to_party = _text(row.get(TransferColumn.TO.value))
        from_party = _text(row.get(TransferColumn.FROM.value))

        if is_council_to_troop(transfer_type) and to_party and not store.troop_number:
            store.troop_number = to_party
            log.info("Troop number inferred from council transfer: %s", to_party)

        varieties = parse_transfer_varieties(row, warnings, reference=order_number)
        date = parse_date(row.get(TransferColumn.DATE.value), warnings, reference=order_number)
        amount = parse_money(row.get(TransferColumn.TOTAL_AMOUNT.value), warnings, reference=order_number)

        add_transfer(
            store,
            transfer_type,
            varieties=varieties,
            packages=parse_int(row.get(TransferColumn.TOTAL.value), warnings, field="total", reference=order_number),
            order_number=order_number,
            from_party=from_party,
            to_party=to_party,
            date=date,
            amount=amount,
            source=DataSource.SC,
        )

        is_donation_record = TransferType.COOKIE_SHARE.value in transfer_type
        if is_donation_record and order_number.startswith(DC_ORDER_PREFIX):
            _mirror_individual_order(store, order_number, to_party, date, varieties, amount, DataSource.SC, row)

        from_troop = matches_troop(from_party, store.troop_number, store.troop_name)
        to_troop = matches_troop(to_party, store.troop_number, store.troop_name)
        if transfer_type == TransferType.T2G.value and from_troop and to_party and not to_troop:
            upsert_scout(store, to_party)
        elif transfer_type == TransferType.G2T.value and to_troop and from_party and not from_troop:
            upsert_scout(store, from_party)
        elif is_donation_record and from_troop and to_party:
            upsert_scout(store, to_party)
        count += 1

    record_import(store, DataSource.SC, count, label="transfer ledger")
    return count


def _order_list(payload: Union[Mapping[str, Any], List[Any], None]) -> List[Mapping[str, Any]]:
    if payload is None:
        return []
    if isinstance(payload, Mapping):
        return list(payload.get("orders") or [])
    return list(payload)


def is_orders_search_format(payload: Any) -> bool:
    """Accept a bare order list or a response object holding one under ``orders``."""

    if isinstance(payload, Mapping):
        payload = payload.get("orders")
    return isinstance(payload, list)


def import_orders_search(store: DataStore, payload: Union[Mapping[str, Any], List[Any], None]) -> int:
    """Import the council orders-search feed.

    Accepts either the raw response object (``{"orders": [...]}``) or the
    bare order list. Each entry becomes one classified transfer; entries for
    mirrored individual-seller orders (``D`` prefix) also merge into that
    order.

    Args:
        store (DataStore): Store receiving the transfers.
        payload (Mapping | list | None): Feed payload.

    Returns:
        int: Number of entries imported.
    """

    warnings = store.warnings
    count = 0
    for entry in _order_list(payload):
        transfer_type = _text(entry.get("transfer_type") or entry.get("type") or entry.get("orderType"))
        order_number = _text(entry.get("order_number") or entry.get("orderNumber"))
        to_party = _text(entry.get("to"))
        from_party = _text(entry.get("from"))

        varieties, total_packages = parse_api_varieties(
            entry.get("cookies"),
            warnings,
            id_map=store.cookie_id_map,
            reference=order_number,
        )
        date = parse_date(entry.get("date") or entry.get("createdDate"), warnings, reference=order_number)
        total = entry.get("total")
        if total is None:
            total = entry.get("totalPrice")
        amount = abs(parse_money(total, warnings, reference=order_number))
        virtual_booth = bool(entry.get("virtual_booth"))

        add_transfer(
            store,
            transfer_type,
            varieties=varieties,
            packages=total_packages,
            order_number=order_number,
            from_party=from_party,
            to_party=to_party,
            date=date,
            amount=amount,
            virtual_booth=virtual_booth,
            booth_divider=bool(entry.get("smart_divider_id")) and not virtual_booth,
            status=_text(entry.get("status")),
            source=DataSource.SC_API,
        )

        if order_number.startswith(DC_ORDER_PREFIX):
            _mirror_individual_order(store, order_number, to_party, date, varieties, amount, DataSource.SC_API, entry)

        if transfer_type == TransferType.T2G.value and to_party and to_party != from_party:
            upsert_scout(store, to_party)
        if transfer_type == TransferType.G2T.value and from_party and to_party != from_party:
            upsert_scout(store, from_party)
        if TransferType.COOKIE_SHARE.value in transfer_type and to_party:
            upsert_scout(store, to_party)
        count += 1

    record_import(store, DataSource.SC_API, count)
    return count


__all__ = [
    "MIRRORED_ORDER_STATUS",
    "DC_REQUIRED_COLUMNS",
    "is_digital_cookie_format",
    "is_orders_search_format",
    "import_digital_cookie",
    "import_council_report",
    "import_transfer_ledger",
    "import_orders_search",
]
