"""Classification rules for transfers and individual-seller orders.

:func:`classify_transfer` is the single place that decides how a movement of
packages affects troop and seller accounting. It is a total function over
its inputs: unknown codes come back as :attr:`TransferCategory.UNCLASSIFIED`
with the raw code attached so that callers can count them without mixing
them into a real bucket.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from . import log
from .constants import (
    C2T_CODES,
    C2T_PREFIX_FAMILY,
    DONATION_RECORD_TYPES,
    STATIC_TRANSFER_CATEGORIES,
    OrderStatus,
    OrderType,
    Owner,
    PaymentMethod,
    TransferCategory,
    TransferType,
    WarningType,
)
from .parsers import extract_digits


@dataclass(frozen=True)
class Classification:
    """Result of classifying one transfer.

    ``warning_type`` and ``message`` are set when the category is a fallback:
    an unclassified code, or a troop-to-troop transfer whose direction could
    not be resolved.
    """

    category: TransferCategory
    raw_type: str
    warning_type: Optional[WarningType] = None
    message: Optional[str] = None

    @property
    def is_unclassified(self) -> bool:
        return self.category is TransferCategory.UNCLASSIFIED


def is_council_to_troop(transfer_type: Optional[str]) -> bool:
    """Return ``True`` for the known council-to-troop codes and their ``C2T-`` family."""

    if not transfer_type:
        return False
    return transfer_type in C2T_CODES or transfer_type.startswith(C2T_PREFIX_FAMILY)


def matches_troop(party: Optional[str], troop_number: Optional[str], troop_name: Optional[str]) -> bool:
    """Decide whether a transfer party names this troop.

    The council system reports parties either as the bare troop number or as
    a label such as ``"Troop 3990"``; both forms match the number. A troop
    name matches case-insensitively.
    """

    if not party:
        return False
    party = party.strip()
    if troop_number:
        if party == troop_number:
            return True
        digits = extract_digits(party)
        if digits and digits == extract_digits(troop_number):
            return True
    if troop_name and party.lower() == troop_name.strip().lower():
        return True
    return False


def _classify_troop_to_troop(
    raw_type: str,
    from_party: Optional[str],
    troop_number: Optional[str],
    troop_name: Optional[str],
) -> Classification:
    if matches_troop(from_party, troop_number, troop_name):
        return Classification(TransferCategory.TROOP_OUTGOING, raw_type)
    if not troop_number and not troop_name:
        message = f"T2T transfer from '{from_party or '(empty)'}' has no troop identity to compare; treated as incoming"
        log.warning(message)
        return Classification(
            TransferCategory.COUNCIL_TO_TROOP,
            raw_type,
            warning_type=WarningType.TROOP_IDENTITY_UNKNOWN,
            message=message,
        )
    return Classification(TransferCategory.COUNCIL_TO_TROOP, raw_type)


def _classify_troop_to_girl(virtual_booth: bool, booth_divider: bool, direct_ship_divider: bool) -> TransferCategory:
    if virtual_booth:
        return TransferCategory.VIRTUAL_BOOTH_ALLOCATION
    if booth_divider:
        return TransferCategory.BOOTH_SALES_ALLOCATION
    if direct_ship_divider:
        return TransferCategory.DIRECT_SHIP_ALLOCATION
    return TransferCategory.GIRL_PICKUP


def classify_transfer(
    transfer_type: Optional[str],
    *,
    virtual_booth: bool = False,
    booth_divider: bool = False,
    direct_ship_divider: bool = False,
    from_party: Optional[str] = None,
    troop_number: Optional[str] = None,
    troop_name: Optional[str] = None,
) -> Classification:
    """Assign exactly one accounting category to a transfer.

    Rules apply in priority order: council-to-troop codes, troop-to-troop
    direction, troop-to-girl divider flags, girl returns, donation records,
    the static one-to-one codes, and finally the unclassified fallback.

    Args:
        transfer_type (str | None): Raw type code from the source feed.
        virtual_booth (bool): Transfer came from the virtual booth divider.
        booth_divider (bool): Transfer came from a booth sales divider.
        direct_ship_divider (bool): Transfer came from the direct-ship divider.
        from_party (str | None): Sending party, used for troop-to-troop.
        troop_number (str | None): Known numeric troop identity.
        troop_name (str | None): Known troop name.

    Returns:
        Classification: Category plus any fallback warning.
    """

    raw_type = (transfer_type or "").strip()

    if is_council_to_troop(raw_type):
        return Classification(TransferCategory.COUNCIL_TO_TROOP, raw_type)
    if raw_type == TransferType.T2T.value:
        return _classify_troop_to_troop(raw_type, from_party, troop_number, troop_name)
    if raw_type == TransferType.T2G.value:
        return Classification(_classify_troop_to_girl(virtual_booth, booth_divider, direct_ship_divider), raw_type)
    if raw_type == TransferType.G2T.value:
        return Classification(TransferCategory.GIRL_RETURN, raw_type)
    if raw_type in DONATION_RECORD_TYPES:
        category = TransferCategory.BOOTH_DONATION_RECORD if booth_divider else TransferCategory.DONATION_RECORD
        return Classification(category, raw_type)

    mapped = STATIC_TRANSFER_CATEGORIES.get(raw_type)
    if mapped is not None:
        return Classification(mapped, raw_type)

    message = f"Unknown transfer type '{raw_type or '(empty)'}' left unclassified"
    log.warning(message)
    return Classification(
        TransferCategory.UNCLASSIFIED,
        raw_type,
        warning_type=WarningType.UNKNOWN_TRANSFER_TYPE,
        message=message,
    )


def classify_order(is_site: bool, order_type_text: Optional[str]) -> Tuple[Owner, Optional[OrderType]]:
    """Classify an individual-seller export order into owner and order type.

    Returns ``None`` as the order type when the text matches no known
    channel; callers record the warning.
    """

    owner = Owner.TROOP if is_site else Owner.GIRL
    text = (order_type_text or "").strip()
    lowered = text.lower()

    if text == "Donation":
        return owner, OrderType.DONATION
    if "shipped" in lowered:
        return owner, OrderType.DIRECT_SHIP
    if "cookies in hand" in lowered:
        return owner, OrderType.BOOTH if is_site else OrderType.IN_HAND
    if "in-person delivery" in lowered or "in person delivery" in lowered or "pick up" in lowered:
        return owner, OrderType.DELIVERY
    return owner, None


def classify_payment_method(payment_status: Optional[str]) -> Optional[PaymentMethod]:
    """Map a raw payment status to a payment method, ``None`` when unknown."""

    status = (payment_status or "").strip().upper()
    if status == "CASH":
        return PaymentMethod.CASH
    if "VENMO" in status:
        return PaymentMethod.VENMO
    if status in ("CAPTURED", "AUTHORIZED"):
        return PaymentMethod.CREDIT_CARD
    return None


def classify_order_status(status: Optional[str]) -> OrderStatus:
    """Bucket a raw order status for the per-seller status counts."""

    if not status:
        return OrderStatus.UNKNOWN
    if "Needs Approval" in status:
        return OrderStatus.NEEDS_APPROVAL
    if status == "Status Delivered" or any(word in status for word in ("Completed", "Delivered", "Shipped")):
        return OrderStatus.COMPLETED
    if "Pending" in status or "Approved for Delivery" in status:
        return OrderStatus.PENDING
    return OrderStatus.UNKNOWN


def consumes_inventory(owner: Owner, order_type: Optional[OrderType]) -> bool:
    """Seller orders filled from the seller's own picked-up packages."""

    return owner is Owner.GIRL and order_type in (OrderType.DELIVERY, OrderType.IN_HAND)


def is_auto_synced_donation(order_type_text: Optional[str], payment_status: Optional[str]) -> bool:
    """Orders the council system receives automatically, without manual entry."""

    text = order_type_text or ""
    return ("Shipped" in text or text == "Donation") and (payment_status or "") == "CAPTURED"


__all__ = [
    "Classification",
    "is_council_to_troop",
    "matches_troop",
    "classify_transfer",
    "classify_order",
    "classify_payment_method",
    "classify_order_status",
    "consumes_inventory",
    "is_auto_synced_donation",
]
