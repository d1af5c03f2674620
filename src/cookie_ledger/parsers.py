"""Field parsers that normalize loosely typed source values.

Source feeds deliver numbers and dates as strings, floats, Excel serials or
blanks. The helpers here turn them into canonical Python values and never
raise for malformed input: a bad value becomes zero (or ``None`` for dates)
and a :class:`~cookie_ledger.models.ReconcileWarning` is appended to the
caller-supplied ``warnings`` list.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from . import log
from .constants import WarningType
from .cookies import (
    API_ID_MAP,
    DC_COLUMN_MAP,
    PACKAGES_PER_CASE,
    REPORT_CODE_MAP,
    TRANSFER_CODE_MAP,
)
from .models import ReconcileWarning


WarningSink = Optional[List[ReconcileWarning]]

EXCEL_EPOCH = datetime(1899, 12, 30)
_DISTRICT_PATTERN = re.compile(r"District = ([^;]+)")
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%m/%d/%Y %I:%M %p", "%m/%d/%Y %H:%M")


def warn(
    warnings: WarningSink,
    warning_type: WarningType,
    message: str,
    *,
    source: Optional[str] = None,
    reference: Optional[str] = None,
    value: Any = None,
) -> ReconcileWarning:
    """Log a data-quality issue and append it to ``warnings`` when given.

    Args:
        warnings (list[ReconcileWarning] | None): Sink collecting the issue.
        warning_type (WarningType): Category of the issue.
        message (str): Human readable description.
        source (str | None): Feed the value came from.
        reference (str | None): Order number or other row identity.
        value (Any): Offending raw value.

    Returns:
        ReconcileWarning: The recorded warning.
    """

    record = ReconcileWarning(
        type=warning_type,
        message=message,
        source=source,
        reference=reference,
        value=value,
    )
    log.warning("%s: %s", warning_type.value, message)
    if warnings is not None:
        warnings.append(record)
    return record


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _invalid_number(warnings: WarningSink, field: str, value: Any, reference: Optional[str]) -> None:
    warn(
        warnings,
        WarningType.INVALID_NUMBER,
        f"Non-numeric {field} {value!r} treated as 0",
        reference=reference,
        value=value,
    )


def _finite_decimal(value: Any, strip: str = "") -> Optional[Decimal]:
    """Read ``value`` as a finite ``Decimal``; ``None`` when it is not one."""

    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, float):
        number = Decimal(str(value))
    else:
        text = str(value).strip().replace(",", "")
        for symbol in strip:
            text = text.replace(symbol, "")
        try:
            number = Decimal(text)
        except (InvalidOperation, ValueError):
            return None
    return number if number.is_finite() else None


def parse_int(value: Any, warnings: WarningSink = None, *, field: str = "value", reference: Optional[str] = None) -> int:
    """Parse an integer count, treating blanks as zero.

    Strings may carry thousands separators or a trailing ``.0`` as produced
    by spreadsheet exports. Anything else that cannot be read as a finite
    number, ``NaN`` and infinities included, is reported and treated as zero.

    Args:
        value (Any): Raw cell or JSON value.
        warnings (list[ReconcileWarning] | None): Sink for parse warnings.
        field (str): Field name used in the warning message.
        reference (str | None): Row identity used in the warning.

    Returns:
        int: Parsed value truncated toward zero, or ``0``.
    """

    if _is_blank(value):
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    number = _finite_decimal(value)
    if number is None:
        _invalid_number(warnings, field, value, reference)
        return 0
    return int(number)


def parse_money(value: Any, warnings: WarningSink = None, *, field: str = "amount", reference: Optional[str] = None) -> Decimal:
    """Parse a currency value such as ``"$1,234.50"`` into a ``Decimal``.

    Non-finite amounts are reported and treated as zero like any other
    unreadable value.
    """

    if _is_blank(value):
        return Decimal("0")
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    number = _finite_decimal(value, strip="$")
    if number is None:
        _invalid_number(warnings, field, value, reference)
        return Decimal("0")
    return number


def parse_cases_packages(value: Any, warnings: WarningSink = None, *, reference: Optional[str] = None) -> Tuple[int, int]:
    """Split a ``"cases/packages"`` cell into ``(cases, total packages)``.

    A bare number is read as packages. The returned total converts the cases
    at :data:`~cookie_ledger.cookies.PACKAGES_PER_CASE` packages each.
    """

    if _is_blank(value):
        return 0, 0
    text = str(value).strip()
    if "/" not in text:
        return 0, parse_int(text, warnings, field="packages", reference=reference)
    cases_raw, packages_raw = text.split("/", 1)
    cases = parse_int(cases_raw, warnings, field="cases", reference=reference)
    packages = parse_int(packages_raw, warnings, field="packages", reference=reference)
    return cases, cases * PACKAGES_PER_CASE + packages


def parse_excel_date(serial: Any) -> Optional[str]:
    """Convert an Excel serial day number to an ISO date string."""

    if isinstance(serial, bool) or not isinstance(serial, (int, float)) or serial <= 0:
        return None
    return (EXCEL_EPOCH + timedelta(days=float(serial))).date().isoformat()


def parse_date(value: Any, warnings: WarningSink = None, *, reference: Optional[str] = None) -> Optional[str]:
    """Normalize a date from any supported source format to ``YYYY-MM-DD``.

    Accepts ``datetime``/``date`` objects (as returned by openpyxl), Excel
    serial numbers, ISO-8601 strings with or without a time part, and US
    ``M/D/YYYY`` strings.

    Returns:
        str | None: ISO date, or ``None`` for blank or unreadable values.
    """

    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return parse_excel_date(value)

    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue

    warn(warnings, WarningType.INVALID_DATE, f"Unreadable date {value!r}", reference=reference, value=value)
    return None


def extract_district(title: Any) -> Optional[str]:
    """Pull the district name out of a report parameter title."""

    if _is_blank(title):
        return None
    match = _DISTRICT_PATTERN.search(str(title))
    return match.group(1).strip() if match else None


def extract_digits(value: Any) -> str:
    """Return only the digit characters of ``value``."""

    return "".join(ch for ch in str(value or "") if ch.isdigit())


def parse_dc_varieties(row: Mapping[str, Any], warnings: WarningSink = None, *, reference: Optional[str] = None) -> Dict[str, int]:
    """Read per-variety counts from an individual-seller export row."""

    varieties: Dict[str, int] = {}
    for column, key in DC_COLUMN_MAP.items():
        count = parse_int(row.get(column), warnings, field=column, reference=reference)
        if count > 0:
            varieties[key] = count
    return varieties


def parse_report_varieties(
    row: Mapping[str, Any], warnings: WarningSink = None, *, reference: Optional[str] = None
) -> Tuple[Dict[str, int], int, int]:
    """Read the ``C1``..``C11`` variety columns of a council report row.

    Returns:
        tuple[dict[str, int], int, int]: Variety counts in packages, total
            absolute cases, and total absolute packages.
    """

    varieties: Dict[str, int] = {}
    total_cases = 0
    total_packages = 0
    for code, key in REPORT_CODE_MAP.items():
        cases, packages = parse_cases_packages(row.get(code), warnings, reference=reference)
        if packages > 0:
            varieties[key] = packages
        total_cases += abs(cases)
        total_packages += abs(packages)
    return varieties, total_cases, total_packages


def parse_transfer_varieties(row: Mapping[str, Any], warnings: WarningSink = None, *, reference: Optional[str] = None) -> Dict[str, int]:
    """Read signed per-variety counts from the transfer ledger's abbreviation columns."""

    varieties: Dict[str, int] = {}
    for code, key in TRANSFER_CODE_MAP.items():
        count = parse_int(row.get(code), warnings, field=code, reference=reference)
        if count != 0:
            varieties[key] = count
    return varieties


def parse_api_varieties(
    cookies: Optional[Iterable[Mapping[str, Any]]],
    warnings: WarningSink = None,
    *,
    id_map: Optional[Mapping[str, str]] = None,
    reference: Optional[str] = None,
) -> Tuple[Dict[str, int], int]:
    """Read an API cookie array of ``{id|cookieId, quantity}`` entries.

    Quantities are stored as absolute values since the council system signs
    them by direction. Unknown cookie ids are reported and skipped.

    Args:
        cookies (Iterable[Mapping] | None): Raw cookie entries.
        warnings (list[ReconcileWarning] | None): Sink for parse warnings.
        id_map (Mapping[str, str] | None): Overrides for the static id map,
            as fetched from the council system for the current season.
        reference (str | None): Order or divider identity for warnings.

    Returns:
        tuple[dict[str, int], int]: Variety counts and their total.
    """

    lookup = dict(API_ID_MAP)
    if id_map:
        lookup.update({str(key): value for key, value in id_map.items()})

    varieties: Dict[str, int] = {}
    total = 0
    for cookie in cookies or []:
        cookie_id = cookie.get("id")
        if cookie_id is None:
            cookie_id = cookie.get("cookieId")
        if cookie_id is None:
            continue
        quantity = abs(parse_int(cookie.get("quantity"), warnings, field="quantity", reference=reference))
        if quantity == 0:
            continue
        key = lookup.get(str(cookie_id))
        if key is None:
            warn(
                warnings,
                WarningType.UNKNOWN_COOKIE_ID,
                f"Unknown cookie id {cookie_id} with quantity {quantity}",
                reference=reference,
                value=cookie_id,
            )
            continue
        varieties[key] = varieties.get(key, 0) + quantity
        total += quantity
    return varieties, total


__all__ = [
    "WarningSink",
    "warn",
    "parse_int",
    "parse_money",
    "parse_cases_packages",
    "parse_excel_date",
    "parse_date",
    "extract_district",
    "extract_digits",
    "parse_dc_varieties",
    "parse_report_varieties",
    "parse_transfer_varieties",
    "parse_api_varieties",
]
