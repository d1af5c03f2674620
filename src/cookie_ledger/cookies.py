"""Cookie variety registry and price/proceeds arithmetic.

Every variety-level fact used by the parsers and the dataset builder is
derived from :data:`COOKIE_REGISTRY`: display names, prices, the column
or code each source system uses for the variety, and whether the variety is
a physical package or the virtual Cookie Share donation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Mapping, Optional, Tuple


PACKAGES_PER_CASE = 12

# First packages per active seller that earn no troop proceeds.
PROCEEDS_EXEMPT_PACKAGES = 50

# (minimum per-girl average, rate) from highest band down.
PROCEEDS_RATE_BANDS: Tuple[Tuple[int, Decimal], ...] = (
    (350, Decimal("0.95")),
    (200, Decimal("0.90")),
    (0, Decimal("0.85")),
)


@dataclass(frozen=True)
class CookieVariety:
    """Static description of one cookie variety across all source systems."""

    key: str
    display_name: str
    price: Decimal
    physical: bool
    dc_column: Optional[str]
    api_id: Optional[int]
    report_code: Optional[str]
    transfer_code: Optional[str]
    aliases: Tuple[str, ...] = ()


THIN_MINTS = "THIN_MINTS"
CARAMEL_DELITES = "CARAMEL_DELITES"
PEANUT_BUTTER_PATTIES = "PEANUT_BUTTER_PATTIES"
PEANUT_BUTTER_SANDWICH = "PEANUT_BUTTER_SANDWICH"
TREFOILS = "TREFOILS"
ADVENTUREFULS = "ADVENTUREFULS"
LEMONADES = "LEMONADES"
EXPLOREMORES = "EXPLOREMORES"
CARAMEL_CHOCOLATE_CHIP = "CARAMEL_CHOCOLATE_CHIP"
COOKIE_SHARE = "COOKIE_SHARE"


COOKIE_REGISTRY: Tuple[CookieVariety, ...] = (
    CookieVariety(THIN_MINTS, "Thin Mints", Decimal("6"), True, "Thin Mints", 4, "C6", "TM",
                  ("Thin Mint",)),
    CookieVariety(CARAMEL_DELITES, "Caramel deLites", Decimal("6"), True, "Caramel deLites", 1, "C8", "CD",
                  ("Caramel deLite",)),
    CookieVariety(PEANUT_BUTTER_PATTIES, "Peanut Butter Patties", Decimal("6"), True, "Peanut Butter Patties",
                  2, "C7", "PBP", ("Peanut Butter Patty",)),
    CookieVariety(PEANUT_BUTTER_SANDWICH, "Peanut Butter Sandwich", Decimal("6"), True, "Peanut Butter Sandwich",
                  5, "C9", "PBS", ("Peanut Butter Sandwiches",)),
    CookieVariety(TREFOILS, "Trefoils", Decimal("6"), True, "Trefoils", 3, "C5", "TRE", ("Trefoil",)),
    CookieVariety(ADVENTUREFULS, "Adventurefuls", Decimal("6"), True, "Adventurefuls", 48, "C2", "ADV",
                  ("Adventureful",)),
    CookieVariety(LEMONADES, "Lemonades", Decimal("6"), True, "Lemonades", 34, "C4", "LEM", ("Lemonade",)),
    CookieVariety(EXPLOREMORES, "Exploremores", Decimal("6"), True, "Exploremores", 56, "C3", "EXP",
                  ("Exploremore",)),
    CookieVariety(CARAMEL_CHOCOLATE_CHIP, "Caramel Chocolate Chip", Decimal("7"), True, "Caramel Chocolate Chip",
                  52, "C11", "GFC", ("Caramel Chocolate Chips",)),
    CookieVariety(COOKIE_SHARE, "Cookie Share", Decimal("6"), False, None, 37, "C1", "CShare"),
)

VARIETIES_BY_KEY: Dict[str, CookieVariety] = {variety.key: variety for variety in COOKIE_REGISTRY}
PHYSICAL_VARIETIES: Tuple[str, ...] = tuple(variety.key for variety in COOKIE_REGISTRY if variety.physical)

API_ID_MAP: Dict[str, str] = {
    str(variety.api_id): variety.key for variety in COOKIE_REGISTRY if variety.api_id is not None
}
REPORT_CODE_MAP: Dict[str, str] = {
    variety.report_code: variety.key for variety in COOKIE_REGISTRY if variety.report_code is not None
}
TRANSFER_CODE_MAP: Dict[str, str] = {
    variety.transfer_code: variety.key for variety in COOKIE_REGISTRY if variety.transfer_code is not None
}
DC_COLUMN_MAP: Dict[str, str] = {
    variety.dc_column: variety.key for variety in COOKIE_REGISTRY if variety.dc_column is not None
}


def _build_name_index() -> Dict[str, str]:
    index: Dict[str, str] = {}
    for variety in COOKIE_REGISTRY:
        for name in (variety.display_name, variety.key, *variety.aliases):
            index[name.strip().lower()] = variety.key
    return index


_NAME_INDEX = _build_name_index()


def normalize_variety_name(name: object) -> Optional[str]:
    """Resolve any known spelling of a variety to its registry key.

    Args:
        name (object): Display name, alias, or registry key in any case.

    Returns:
        str | None: Registry key, or ``None`` when the name is unknown.
    """

    if name is None:
        return None
    return _NAME_INDEX.get(str(name).strip().lower())


def price_of(key: str) -> Decimal:
    """Return the per-package price of a variety, zero when unknown."""

    variety = VARIETIES_BY_KEY.get(key)
    return variety.price if variety else Decimal("0")


def revenue(varieties: Mapping[str, int]) -> Decimal:
    """Price every package in a variety map and return the total."""

    total = Decimal("0")
    for key, count in varieties.items():
        if count:
            total += price_of(key) * count
    return total


def physical_revenue(varieties: Mapping[str, int]) -> Decimal:
    """Price only physical packages, leaving the donation variety out."""

    return revenue({key: count for key, count in varieties.items() if key != COOKIE_SHARE})


def physical_total(varieties: Mapping[str, int]) -> int:
    """Sum package counts across physical varieties."""

    return sum(count for key, count in varieties.items() if key != COOKIE_SHARE)


def physical_only(varieties: Mapping[str, int]) -> Dict[str, int]:
    """Return a copy of ``varieties`` without the donation variety."""

    return {key: count for key, count in varieties.items() if key != COOKIE_SHARE}


def per_girl_average(packages_credited: int, active_sellers: int) -> int:
    """Average credited packages per active seller, rounded half up."""

    if active_sellers <= 0:
        return 0
    average = Decimal(packages_credited) / Decimal(active_sellers)
    return int(average.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def proceeds_rate(average: int) -> Decimal:
    """Look up the per-package proceeds rate for a per-girl average.

    Args:
        average (int): Credited packages per active seller.

    Returns:
        Decimal: Rate from the first band whose threshold ``average`` meets.
    """

    for threshold, rate in PROCEEDS_RATE_BANDS:
        if average >= threshold:
            return rate
    return PROCEEDS_RATE_BANDS[-1][1]


__all__ = [
    "PACKAGES_PER_CASE",
    "PROCEEDS_EXEMPT_PACKAGES",
    "PROCEEDS_RATE_BANDS",
    "CookieVariety",
    "COOKIE_REGISTRY",
    "COOKIE_SHARE",
    "VARIETIES_BY_KEY",
    "PHYSICAL_VARIETIES",
    "API_ID_MAP",
    "REPORT_CODE_MAP",
    "TRANSFER_CODE_MAP",
    "DC_COLUMN_MAP",
    "normalize_variety_name",
    "price_of",
    "revenue",
    "physical_revenue",
    "physical_total",
    "physical_only",
    "per_girl_average",
    "proceeds_rate",
]
