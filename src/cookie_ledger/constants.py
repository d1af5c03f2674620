"""Enumerations and identifiers shared across the reconciliation modules.

Centralises the closed code sets used by the importers, the transfer
classifier, and the dataset builder so that every layer agrees on the
meaning of an owner, order type, transfer category, or column name.
"""

from __future__ import annotations

from enum import Enum


class Owner(str, Enum):
    """Who an order belongs to: an individual seller or the troop itself."""

    GIRL = "GIRL"
    TROOP = "TROOP"


class OrderType(str, Enum):
    """Fulfillment channel of an individual-seller order."""

    DELIVERY = "DELIVERY"
    IN_HAND = "IN_HAND"
    DIRECT_SHIP = "DIRECT_SHIP"
    DONATION = "DONATION"
    BOOTH = "BOOTH"


class PaymentMethod(str, Enum):
    """Normalized payment method of an individual-seller order."""

    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    VENMO = "VENMO"


class OrderStatus(str, Enum):
    """Coarse status buckets used for per-seller order counts."""

    NEEDS_APPROVAL = "NEEDS_APPROVAL"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    UNKNOWN = "UNKNOWN"


class TransferType(str, Enum):
    """Raw transfer type codes emitted by the council system."""

    C2T = "C2T"
    C2T_P = "C2T(P)"
    T2T = "T2T"
    T2G = "T2G"
    G2T = "G2T"
    D = "D"
    COOKIE_SHARE = "COOKIE_SHARE"
    COOKIE_SHARE_D = "COOKIE_SHARE_D"
    DIRECT_SHIP = "DIRECT_SHIP"
    PLANNED = "PLANNED"


class TransferCategory(str, Enum):
    """Accounting category assigned to every transfer exactly once."""

    COUNCIL_TO_TROOP = "COUNCIL_TO_TROOP"
    TROOP_OUTGOING = "TROOP_OUTGOING"
    GIRL_PICKUP = "GIRL_PICKUP"
    GIRL_RETURN = "GIRL_RETURN"
    VIRTUAL_BOOTH_ALLOCATION = "VIRTUAL_BOOTH_ALLOCATION"
    BOOTH_SALES_ALLOCATION = "BOOTH_SALES_ALLOCATION"
    DIRECT_SHIP_ALLOCATION = "DIRECT_SHIP_ALLOCATION"
    ORDER_RECORD = "ORDER_RECORD"
    DONATION_RECORD = "DONATION_RECORD"
    BOOTH_DONATION_RECORD = "BOOTH_DONATION_RECORD"
    DIRECT_SHIP = "DIRECT_SHIP"
    PLANNED = "PLANNED"
    UNCLASSIFIED = "UNCLASSIFIED"


class AllocationChannel(str, Enum):
    """Troop-level channel through which a seller receives sale credit."""

    BOOTH = "BOOTH"
    DIRECT_SHIP = "DIRECT_SHIP"
    VIRTUAL_BOOTH = "VIRTUAL_BOOTH"


class DataSource(str, Enum):
    """Provenance tags recorded on orders and in the import log."""

    DC = "DC"
    SC = "SC"
    SC_REPORT = "SC-Report"
    SC_API = "SC-API"
    DIRECT_SHIP_DIVIDER = "SC-DirectShipDivider"
    BOOTH_DIVIDER = "SC-BoothDivider"
    VIRTUAL_COOKIE_SHARE = "SC-VirtualCookieShare"
    RESERVATIONS = "SC-Reservations"
    BOOTH_LOCATIONS = "SC-BoothLocations"


class WarningType(str, Enum):
    """Kinds of recoverable data-quality issues collected during a run."""

    UNKNOWN_ORDER_TYPE = "UNKNOWN_ORDER_TYPE"
    UNKNOWN_PAYMENT_METHOD = "UNKNOWN_PAYMENT_METHOD"
    UNKNOWN_TRANSFER_TYPE = "UNKNOWN_TRANSFER_TYPE"
    UNKNOWN_COOKIE_ID = "UNKNOWN_COOKIE_ID"
    INVALID_NUMBER = "INVALID_NUMBER"
    INVALID_DATE = "INVALID_DATE"
    TROOP_IDENTITY_UNKNOWN = "TROOP_IDENTITY_UNKNOWN"
    SOURCE_SKIPPED = "SOURCE_SKIPPED"
    IMPORT_FAILED = "IMPORT_FAILED"
    UNMATCHED_ALLOCATION = "UNMATCHED_ALLOCATION"


# Site pseudo-seller: troop-owned orders carry this last name.
SITE_ORDER_LAST_NAME = "Site"
# Individual-seller orders are mirrored in the council system with this prefix.
DC_ORDER_PREFIX = "D"
DEFAULT_COUNCIL_ID = "623"

# Council-to-troop detection: closed code set plus one prefix family.
C2T_CODES: frozenset[str] = frozenset({TransferType.C2T.value, TransferType.C2T_P.value})
C2T_PREFIX_FAMILY = "C2T-"

DONATION_RECORD_TYPES: frozenset[str] = frozenset(
    {TransferType.COOKIE_SHARE.value, TransferType.COOKIE_SHARE_D.value}
)

STATIC_TRANSFER_CATEGORIES: dict[str, TransferCategory] = {
    TransferType.D.value: TransferCategory.ORDER_RECORD,
    TransferType.DIRECT_SHIP.value: TransferCategory.DIRECT_SHIP,
    TransferType.PLANNED.value: TransferCategory.PLANNED,
}

T2G_CATEGORIES: frozenset[TransferCategory] = frozenset(
    {
        TransferCategory.GIRL_PICKUP,
        TransferCategory.VIRTUAL_BOOTH_ALLOCATION,
        TransferCategory.BOOTH_SALES_ALLOCATION,
        TransferCategory.DIRECT_SHIP_ALLOCATION,
    }
)

TROOP_INVENTORY_IN_CATEGORIES: frozenset[TransferCategory] = frozenset(
    {TransferCategory.COUNCIL_TO_TROOP, TransferCategory.GIRL_RETURN}
)

SCOUT_PHYSICAL_CATEGORIES: frozenset[TransferCategory] = frozenset(
    {TransferCategory.GIRL_PICKUP, TransferCategory.GIRL_RETURN}
)

# Transfers counted as packages sold out of troop stock.
SALE_CATEGORIES: frozenset[TransferCategory] = T2G_CATEGORIES


class DCColumn(str, Enum):
    """Column headers of the individual-seller order export."""

    ORDER_NUMBER = "Order Number"
    FIRST_NAME = "Girl First Name"
    LAST_NAME = "Girl Last Name"
    ORDER_DATE = "Order Date (Central Time)"
    ORDER_TYPE = "Order Type"
    TOTAL_PACKAGES = "Total Packages (Includes Donate & Gift)"
    REFUNDED_PACKAGES = "Refunded Packages"
    SALE_AMOUNT = "Current Sale Amount"
    ORDER_STATUS = "Order Status"
    PAYMENT_STATUS = "Payment Status"
    DONATION = "Donation"


class ReportColumn(str, Enum):
    """Column headers of the council summary report export."""

    ORDER_ID = "OrderID"
    REF_NUMBER = "RefNumber"
    GIRL_NAME = "GirlName"
    GIRL_ID = "GirlID"
    GSUSA_ID = "GSUSAID"
    GRADE_LEVEL = "GradeLevel"
    ORDER_DATE = "OrderDate"
    TOTAL = "Total"
    TROOP_ID = "TroopID"
    SERVICE_UNIT = "ServiceUnitDesc"
    COUNCIL = "CouncilDesc"
    PARAM_TITLE = "ParamTitle"


class TransferColumn(str, Enum):
    """Column headers of the flat transfer ledger export."""

    TYPE = "TYPE"
    ORDER_NUMBER = "ORDER #"
    TO = "TO"
    FROM = "FROM"
    DATE = "DATE"
    TOTAL = "TOTAL"
    TOTAL_AMOUNT = "TOTAL $"


__all__ = [
    "Owner",
    "OrderType",
    "PaymentMethod",
    "OrderStatus",
    "TransferType",
    "TransferCategory",
    "AllocationChannel",
    "DataSource",
    "WarningType",
    "DCColumn",
    "ReportColumn",
    "TransferColumn",
    "SITE_ORDER_LAST_NAME",
    "DC_ORDER_PREFIX",
    "DEFAULT_COUNCIL_ID",
    "C2T_CODES",
    "C2T_PREFIX_FAMILY",
    "DONATION_RECORD_TYPES",
    "STATIC_TRANSFER_CATEGORIES",
    "T2G_CATEGORIES",
    "TROOP_INVENTORY_IN_CATEGORIES",
    "SCOUT_PHYSICAL_CATEGORIES",
    "SALE_CATEGORIES",
]
