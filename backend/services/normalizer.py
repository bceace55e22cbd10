"""
Intake CRM - Legacy record normalizer

Single source of truth for reshaping portal rows, shared by the listing
proxy (many rows) and the single-customer inspection refresh (one row).

Output shape:
    {
        "customer":   {id, first_name, last_name, phone_1, phone_2,
                       email_1, email_2, is_realtor},
        "inspection": {id, date, date_raw, fee, general, mitigation,
                       four_point, customer_role},
        "property":   {id, property_type, street_address, city, state,
                       square_footage}
    }
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional


PROPERTY_TYPES = {
    1: "Single-Family Home",
    2: "Multi-Unit Building",
    3: "Townhouse/Villa",
    4: "Condominium",
    5: "Commercial Building",
}

CUSTOMER_ROLES = {
    "primary_customer": "Primary Customer",
    "secondary_customer": "Secondary Customer",
    "primary_agent": "Primary Agent",
    "secondary_agent": "Secondary Agent",
}

DEFAULT_STATE = "FL"

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M %p",
    "%m-%d-%Y",
    "%b %d, %Y",
    "%B %d, %Y",
)

_NON_DIGITS = re.compile(r"\D")


# ==================== PAYLOAD SHAPES ====================

def unwrap_payload(payload: Any) -> List[Dict[str, Any]]:
    """
    Turn any upstream payload shape into a list of legacy rows.

    Accepted shapes:
      - {"success": true, "data": {...}}
      - {"success": true, "data": [{...}, ...]}
      - [{...}, ...]
      - {...}
    Anything else yields an empty list.
    """
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]

    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    return []


# ==================== SCALAR HELPERS ====================

def to_int(value: Any) -> Optional[int]:
    """Lenient integer cast. Returns None for unparseable input."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


def to_bool(value: Any) -> Optional[bool]:
    """None stays None, anything else is True only when it reads as integer 1."""
    if value is None:
        return None
    return to_int(value) == 1


def format_phone(value: Any) -> Any:
    """
    (XXX) XXX-XXXX for 10 digits, +1 (XXX) XXX-XXXX for 11 digits starting
    with 1. Other lengths come back unchanged, empty input as None.
    """
    if not value:
        return None
    digits = _NON_DIGITS.sub("", str(value))
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits[0] == "1":
        return f"+1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    return value


def parse_date(value: Any) -> Optional[datetime]:
    """Parse the mixed date formats the portal emits."""
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_dates(value: Any) -> tuple:
    """(display "MM/DD/YY", machine "YYYY-MM-DD") from one parse, or (None, None)."""
    parsed = parse_date(value)
    if parsed is None:
        return None, None
    return parsed.strftime("%m/%d/%y"), parsed.strftime("%Y-%m-%d")


def _to_decimal(value: Any) -> Optional[Decimal]:
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def format_currency(value: Any) -> Optional[str]:
    """"$1,234.50" style. None or "" gives None."""
    if value is None or value == "":
        return None
    amount = _to_decimal(value)
    if amount is None or not amount.is_finite():
        return None
    amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"${amount:,.2f}"


def format_square_footage(value: Any) -> Optional[str]:
    """Whole number with thousands separator ("1,850")."""
    if value is None:
        return None
    amount = _to_decimal(value)
    if amount is None or not amount.is_finite():
        return None
    amount = amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{amount:,.0f}"


def lower_email(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).lower()


def property_type_label(value: Any) -> Optional[str]:
    """Unknown ids map to None."""
    if value is None:
        return None
    return PROPERTY_TYPES.get(to_int(value))


def customer_role_label(value: Any) -> Any:
    """Unknown roles pass through unchanged."""
    if value is None:
        return None
    return CUSTOMER_ROLES.get(value, value)


# ==================== RECORD NORMALIZATION ====================

def normalize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Reshape one legacy row. Pure function: the input is not modified."""
    date_display, date_raw = format_dates(item.get("inspection_date"))
    state = item.get("state")

    return {
        "customer": {
            "id": to_int(item.get("customer_id")),
            "first_name": item.get("first_name"),
            "last_name": item.get("last_name"),
            "phone_1": format_phone(item.get("phone_number")),
            "phone_2": format_phone(item.get("phone_number_2")),
            "email_1": lower_email(item.get("email")),
            "email_2": lower_email(item.get("email_2")),
            "is_realtor": to_bool(item.get("is_realtor")),
        },
        "inspection": {
            "id": to_int(item.get("inspection_number")),
            "date": date_display,
            "date_raw": date_raw,
            "fee": format_currency(item.get("total_fee")),
            "general": to_bool(item.get("general_inspection")),
            "mitigation": to_bool(item.get("mitigation")),
            "four_point": to_bool(item.get("four_point")),
            "customer_role": customer_role_label(item.get("customer_role")),
        },
        "property": {
            "id": to_int(item.get("property_id")),
            "property_type": property_type_label(item.get("property_type_id")),
            "street_address": item.get("street_address"),
            "city": item.get("city"),
            "state": state if state is not None else DEFAULT_STATE,
            "square_footage": format_square_footage(item.get("square_footage")),
        },
    }


def normalize(payload: Any) -> List[Dict[str, Any]]:
    """
    Normalize a full listing payload or a single-customer payload.

    A single record is wrapped into a one-element list first, so both call
    sites go through the same path.
    """
    return [normalize_item(item) for item in unwrap_payload(payload)]
