"""
Intake CRM — Record Filter Tests
Usable-row rule and dedupe against local customers.
Run: cd backend && pytest tests/test_record_filter.py -v
"""

import asyncio

from services.record_filter import (
    acceptable,
    dedupe,
    filter_acceptable,
    legacy_ids,
    reject_existing_customers,
)


def _db_op(coro):
    """Run async DB operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _row(customer_id=7, inspection_id=99, **contacts):
    customer = {"id": customer_id, "phone_1": None, "phone_2": None, "email_1": None, "email_2": None}
    customer.update(contacts)
    return {"customer": customer, "inspection": {"id": inspection_id}, "property": {}}


# ═══════════════════════════════════════════════════════════════
# 1. ACCEPTABILITY
# ═══════════════════════════════════════════════════════════════

class TestAcceptable:

    def test_no_contact_fields_rejected(self):
        assert acceptable(_row()) is False

    def test_phone_and_inspection_accepted(self):
        assert acceptable(_row(phone_1="(555) 123-4567")) is True

    def test_any_single_contact_field_is_enough(self):
        assert acceptable(_row(email_2="b@x.com")) is True
        assert acceptable(_row(phone_2="(555) 000-1111")) is True

    def test_missing_inspection_rejected(self):
        assert acceptable(_row(inspection_id=None, email_1="a@x.com")) is False

    def test_empty_strings_do_not_count(self):
        assert acceptable(_row(phone_1="", email_1="")) is False

    def test_filter_keeps_order(self):
        rows = [_row(1, email_1="a@x.com"), _row(2), _row(3, phone_1="(555) 123-4567")]
        assert [r["customer"]["id"] for r in filter_acceptable(rows)] == [1, 3]


# ═══════════════════════════════════════════════════════════════
# 2. DEDUPE
# ═══════════════════════════════════════════════════════════════

class TestDedupe:

    def test_drops_exactly_existing_ids(self):
        rows = [_row(1), _row(2), _row(3)]
        kept = dedupe(rows, {2})
        assert [r["customer"]["id"] for r in kept] == [1, 3]

    def test_null_ids_never_dropped(self):
        rows = [_row(None), _row(5)]
        kept = dedupe(rows, {5})
        assert len(kept) == 1
        assert kept[0]["customer"]["id"] is None

    def test_legacy_ids_skip_nulls(self):
        assert legacy_ids([_row(1), _row(None), _row(1), _row(4)]) == {1, 4}


class TestRejectExistingCustomers:
    """Dedupe against stored customers."""

    def test_drops_rows_already_converted(self, mock_db):
        _db_op(mock_db.customers.insert_one({"id": "c-1", "legacy_id": 2}))
        rows = [_row(1), _row(2), _row(None)]

        kept = _db_op(reject_existing_customers(rows, "req1"))

        assert [r["customer"]["id"] for r in kept] == [1, None]

    def test_nothing_stored_keeps_all(self, mock_db):
        rows = [_row(1), _row(2)]
        assert _db_op(reject_existing_customers(rows)) == rows
