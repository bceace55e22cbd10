"""
Intake CRM — Query Engine Tests
Filter / search / sort / paginate over cached rows.
Run: cd backend && pytest tests/test_query_engine.py -v
"""

from datetime import date

from services.query_engine import (
    DEFAULT_PER_PAGE,
    QueryParams,
    fee_number,
    months_between,
    months_since,
    paginate,
    query,
    sort_records,
)

TODAY = date(2025, 6, 15)


def _row(cid, last_name=None, fee=None, date_raw=None, realtor=False, city="Tampa", email=None):
    return {
        "customer": {"id": cid, "first_name": "Pat", "last_name": last_name,
                     "email_1": email, "phone_1": "(555) 123-4567", "is_realtor": realtor},
        "inspection": {"id": cid * 10, "fee": fee, "date_raw": date_raw},
        "property": {"street_address": f"{cid} Palm Ave", "city": city},
    }


def _ids(rows):
    return [r["customer"]["id"] for r in rows]


# ═══════════════════════════════════════════════════════════════
# 1. PARAMETERS
# ═══════════════════════════════════════════════════════════════

class TestQueryParams:
    """Unrecognized values fall back to defaults."""

    def test_defaults(self):
        params = QueryParams()
        assert params.page == 1
        assert params.per_page == DEFAULT_PER_PAGE
        assert params.sort_by == "date_raw"
        assert params.sort_dir == "desc"
        assert params.older_months == 0
        assert params.realtor_only is False

    def test_none_values_use_defaults(self):
        params = QueryParams(page=None, per_page=None, search=None, sort_by=None, sort_dir=None)
        assert params.page == 1
        assert params.per_page == DEFAULT_PER_PAGE
        assert params.search == ""

    def test_invalid_values_fall_back(self):
        params = QueryParams(page="abc", per_page="7", sort_by="email", sort_dir="sideways", older_months="x")
        assert params.page == 1
        assert params.per_page == DEFAULT_PER_PAGE
        assert params.sort_by == "date_raw"
        assert params.sort_dir == "desc"
        assert params.older_months == 0

    def test_page_clamped_to_one(self):
        assert QueryParams(page="-3").page == 1

    def test_string_values_accepted(self):
        params = QueryParams(page="2", per_page="50", sort_by="fee", sort_dir="ASC",
                             older_months="6", realtor_only="1", search="  tampa ")
        assert params.page == 2
        assert params.per_page == 50
        assert params.sort_by == "fee"
        assert params.sort_dir == "asc"
        assert params.older_months == 6
        assert params.realtor_only is True
        assert params.search == "tampa"


# ═══════════════════════════════════════════════════════════════
# 2. DERIVED FIELDS
# ═══════════════════════════════════════════════════════════════

class TestDerivedFields:

    def test_months_between_whole_months(self):
        assert months_between(date(2024, 12, 15), TODAY) == 6
        assert months_between(date(2024, 12, 16), TODAY) == 5

    def test_future_date_is_zero(self):
        assert months_between(date(2026, 1, 1), TODAY) == 0

    def test_months_since_unparseable(self):
        assert months_since(None, TODAY) is None
        assert months_since("03/05/24", TODAY) is None

    def test_fee_number(self):
        assert fee_number("$1,234.50") == 1234.5
        assert fee_number(None) is None
        assert fee_number("n/a") is None

    def test_source_rows_untouched(self):
        rows = [_row(1, fee="$10.00", date_raw="2024-01-01")]
        query(rows, QueryParams(), today=TODAY)
        assert "months_since" not in rows[0]["inspection"]
        assert "fee_num" not in rows[0]["inspection"]


# ═══════════════════════════════════════════════════════════════
# 3. FILTER / SEARCH / SORT
# ═══════════════════════════════════════════════════════════════

class TestFilters:

    def test_realtor_only(self):
        rows = [_row(1, realtor=True), _row(2), _row(3, realtor=None)]
        result = query(rows, QueryParams(realtor_only=True), today=TODAY)
        assert _ids(result["data"]) == [1]

    def test_older_months_inclusive(self):
        rows = [
            _row(1, date_raw="2024-12-15"),   # 6 months
            _row(2, date_raw="2025-01-15"),   # 5 months
            _row(3),                          # no date
        ]
        result = query(rows, QueryParams(older_months=6), today=TODAY)
        assert _ids(result["data"]) == [1]

    def test_search_is_case_insensitive_substring(self):
        rows = [_row(1, last_name="Reyes"), _row(2, last_name="Smith", city="ORLANDO")]
        assert _ids(query(rows, QueryParams(search="reY"), today=TODAY)["data"]) == [1]
        assert _ids(query(rows, QueryParams(search="orlando"), today=TODAY)["data"]) == [2]

    def test_search_covers_email_and_address(self):
        rows = [_row(1, email="ana@example.com"), _row(2)]
        assert _ids(query(rows, QueryParams(search="example.com"), today=TODAY)["data"]) == [1]
        assert _ids(query(rows, QueryParams(search="2 palm"), today=TODAY)["data"]) == [2]


class TestSorting:

    def test_fee_ascending_missing_last(self):
        rows = [_row(1, fee="$50.00"), _row(2, fee=None), _row(3, fee="$10.00")]
        result = query(rows, QueryParams(sort_by="fee", sort_dir="asc"), today=TODAY)
        assert [r["inspection"]["fee"] for r in result["data"]] == ["$10.00", "$50.00", None]

    def test_fee_descending_missing_last(self):
        rows = [_row(1, fee="$50.00"), _row(2, fee=None), _row(3, fee="$10.00")]
        result = query(rows, QueryParams(sort_by="fee", sort_dir="desc"), today=TODAY)
        assert [r["inspection"]["fee"] for r in result["data"]] == ["$50.00", "$10.00", None]

    def test_fee_compares_numerically(self):
        rows = [_row(1, fee="$9.00"), _row(2, fee="$1,000.00")]
        result = query(rows, QueryParams(sort_by="fee", sort_dir="asc"), today=TODAY)
        assert _ids(result["data"]) == [1, 2]

    def test_last_name_case_insensitive(self):
        rows = [_row(1, last_name="smith"), _row(2, last_name="Adams"), _row(3, last_name="baker")]
        assert _ids(sort_records(rows, "last_name", "asc")) == [2, 3, 1]

    def test_default_sort_newest_inspection_first(self):
        rows = [_row(1, date_raw="2023-01-01"), _row(2, date_raw="2025-01-01"), _row(3)]
        result = query(rows, QueryParams(), today=TODAY)
        assert _ids(result["data"]) == [2, 1, 3]

    def test_stable_for_ties(self):
        rows = [_row(1, fee="$5.00"), _row(2, fee="$5.00"), _row(3, fee="$5.00")]
        assert _ids(sort_records(rows, "fee", "asc")) == [1, 2, 3]
        assert _ids(sort_records(rows, "fee", "desc")) == [1, 2, 3]


# ═══════════════════════════════════════════════════════════════
# 4. PAGINATION
# ═══════════════════════════════════════════════════════════════

class TestPaginate:

    def test_first_page(self):
        rows = [_row(i) for i in range(1, 31)]
        result = paginate(rows, 1, 25, source="live")
        assert len(result["data"]) == 25
        assert result["meta"] == {
            "total": 30, "page": 1, "perPage": 25, "lastPage": 2,
            "from": 1, "to": 25, "source": "live",
        }

    def test_last_partial_page(self):
        rows = [_row(i) for i in range(1, 31)]
        meta = paginate(rows, 2, 25)["meta"]
        assert (meta["from"], meta["to"]) == (26, 30)

    def test_beyond_last_page_is_empty(self):
        rows = [_row(i) for i in range(1, 4)]
        result = paginate(rows, 5, 10)
        assert result["data"] == []
        assert result["meta"]["from"] == 0
        assert result["meta"]["to"] == 0
        assert result["meta"]["lastPage"] == 1

    def test_empty_collection(self):
        meta = paginate([], 1, 10)["meta"]
        assert meta["total"] == 0
        assert meta["lastPage"] == 1
        assert (meta["from"], meta["to"]) == (0, 0)

    def test_query_meta_echoes_params(self):
        params = QueryParams(search="x", sort_by="fee", sort_dir="asc", older_months=3, realtor_only=True)
        meta = query([], params, today=TODAY)["meta"]
        assert meta["search"] == "x"
        assert meta["sortBy"] == "fee"
        assert meta["sortDir"] == "asc"
        assert meta["olderMonths"] == 3
        assert meta["realtorOnly"] is True
