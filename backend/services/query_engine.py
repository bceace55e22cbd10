"""
Intake CRM - In-memory query engine

Filter / search / sort / paginate over normalized portal rows already loaded
from the cache. Never touches storage or the network.
"""

from datetime import date, datetime
from math import ceil
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, field_validator


PER_PAGE_OPTIONS = [10, 25, 50, 100]
DEFAULT_PER_PAGE = 25

SORT_FIELDS = ["date_raw", "last_name", "fee"]
DEFAULT_SORT_FIELD = "date_raw"
SORT_DIRECTIONS = ["asc", "desc"]
DEFAULT_SORT_DIR = "desc"

SEARCH_FIELDS = (
    ("customer", "first_name"),
    ("customer", "last_name"),
    ("customer", "email_1"),
    ("customer", "email_2"),
    ("customer", "phone_1"),
    ("customer", "phone_2"),
    ("property", "street_address"),
    ("property", "city"),
)

_TRUE_STRINGS = {"1", "true", "on", "yes"}


def _lenient_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


class QueryParams(BaseModel):
    """
    Caller parameters. Unrecognized values fall back to defaults instead of
    failing validation.
    """
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    search: str = ""
    sort_by: str = DEFAULT_SORT_FIELD
    sort_dir: str = DEFAULT_SORT_DIR
    older_months: int = 0
    realtor_only: bool = False

    @field_validator("page", mode="before")
    @classmethod
    def _page(cls, v):
        return max(1, _lenient_int(v, 1))

    @field_validator("per_page", mode="before")
    @classmethod
    def _per_page(cls, v):
        value = _lenient_int(v, DEFAULT_PER_PAGE)
        return value if value in PER_PAGE_OPTIONS else DEFAULT_PER_PAGE

    @field_validator("search", mode="before")
    @classmethod
    def _search(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("sort_by", mode="before")
    @classmethod
    def _sort_by(cls, v):
        value = "" if v is None else str(v)
        return value if value in SORT_FIELDS else DEFAULT_SORT_FIELD

    @field_validator("sort_dir", mode="before")
    @classmethod
    def _sort_dir(cls, v):
        value = "" if v is None else str(v).lower()
        return value if value in SORT_DIRECTIONS else DEFAULT_SORT_DIR

    @field_validator("older_months", mode="before")
    @classmethod
    def _older_months(cls, v):
        return _lenient_int(v, 0)

    @field_validator("realtor_only", mode="before")
    @classmethod
    def _realtor_only(cls, v):
        if isinstance(v, bool):
            return v
        if v is None:
            return False
        return str(v).strip().lower() in _TRUE_STRINGS


# ==================== DERIVED FIELDS ====================

def months_between(start: date, end: date) -> int:
    """Whole months from start to end, 0 when start is in the future."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(0, months)


def months_since(date_raw: Optional[str], today: date) -> Optional[int]:
    if not date_raw:
        return None
    try:
        inspected = datetime.strptime(date_raw, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None
    return months_between(inspected, today)


def fee_number(fee: Optional[str]) -> Optional[float]:
    """"$1,234.50" -> 1234.5"""
    if fee is None:
        return None
    try:
        return float(str(fee).replace(",", "").replace("$", ""))
    except ValueError:
        return None


def with_derived_fields(record: Dict[str, Any], today: date) -> Dict[str, Any]:
    """Copy of the row with months_since and fee_num on the inspection."""
    inspection = dict(record.get("inspection") or {})
    inspection["months_since"] = months_since(inspection.get("date_raw"), today)
    inspection["fee_num"] = fee_number(inspection.get("fee"))
    return {**record, "inspection": inspection}


# ==================== FILTERS ====================

def is_realtor(record: Dict[str, Any]) -> bool:
    return (record.get("customer") or {}).get("is_realtor") is True


def search_haystack(record: Dict[str, Any]) -> str:
    parts = []
    for section, field in SEARCH_FIELDS:
        value = (record.get(section) or {}).get(field)
        parts.append("" if value is None else str(value))
    return " ".join(parts).lower()


def matches_search(record: Dict[str, Any], needle: str) -> bool:
    return needle.lower() in search_haystack(record)


def older_than(record: Dict[str, Any], months: int) -> bool:
    elapsed = (record.get("inspection") or {}).get("months_since")
    return elapsed is not None and elapsed >= months


# ==================== SORT ====================

def sort_value(record: Dict[str, Any], sort_by: str) -> Any:
    """Sort key, or None when the row has no value for it."""
    if sort_by == "last_name":
        value = (record.get("customer") or {}).get("last_name")
        return str(value).lower() if value else None
    if sort_by == "fee":
        inspection = record.get("inspection") or {}
        if "fee_num" in inspection:
            return inspection["fee_num"]
        return fee_number(inspection.get("fee"))
    return (record.get("inspection") or {}).get("date_raw") or None


def sort_records(records: Sequence[Dict[str, Any]], sort_by: str, sort_dir: str) -> List[Dict[str, Any]]:
    """
    Stable sort. Rows without a value sort last in both directions; among
    themselves they keep their incoming order.
    """
    present = [r for r in records if sort_value(r, sort_by) is not None]
    missing = [r for r in records if sort_value(r, sort_by) is None]
    present.sort(key=lambda r: sort_value(r, sort_by), reverse=(sort_dir == "desc"))
    return present + missing


# ==================== PAGINATION ====================

def paginate(records: Sequence[Dict[str, Any]], page: int, per_page: int, source: str = "cache") -> Dict[str, Any]:
    """Slice one page and build the meta block."""
    total = len(records)
    offset = (page - 1) * per_page
    paged = list(records[offset:offset + per_page])

    return {
        "data": paged,
        "meta": {
            "total": total,
            "page": page,
            "perPage": per_page,
            "lastPage": ceil(max(1, total) / max(1, per_page)),
            "from": offset + 1 if paged else 0,
            "to": offset + len(paged) if paged else 0,
            "source": source,
        },
    }


def query(
    records: Optional[Sequence[Dict[str, Any]]],
    params: QueryParams,
    today: Optional[date] = None,
    derive: bool = True,
) -> Dict[str, Any]:
    """
    Dashboard pass: derive recency and numeric fee, filter, search, sort and
    paginate. Derived fields live only on the returned copies.
    """
    today = today or date.today()
    rows = list(records or [])

    if params.realtor_only:
        rows = [r for r in rows if is_realtor(r)]

    if derive:
        rows = [with_derived_fields(r, today) for r in rows]

    if params.older_months > 0:
        rows = [r for r in rows if older_than(r, params.older_months)]

    if params.search:
        rows = [r for r in rows if matches_search(r, params.search)]

    rows = sort_records(rows, params.sort_by, params.sort_dir)

    result = paginate(rows, params.page, params.per_page, source="cache")
    result["meta"].update({
        "olderMonths": params.older_months,
        "search": params.search,
        "sortBy": params.sort_by,
        "sortDir": params.sort_dir,
        "realtorOnly": params.realtor_only,
    })
    return result
