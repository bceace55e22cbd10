"""
Intake CRM — Payload Validation Tests
Intake payload clean-up and contact record rules.
Run: cd backend && pytest tests/test_models.py -v
"""

import pytest
from pydantic import ValidationError

from models import (
    ContactRecordCreate,
    CustomerIntake,
    CustomerLinksUpdate,
    IntakeContactRecord,
    is_valid_email_format,
)


def _payload(**customer):
    base = {"first_name": "Ana", "last_name": "Reyes", "is_realtor": False}
    base.update(customer)
    return {
        "token": "tok",
        "legacy_customer_id": 7,
        "customer": base,
        "property": {"square_footage": "2,400"},
        "inspection": {"fee": " $ 1,050.00", "date": "12/31/24", "date_raw": "2024-12-31"},
    }


# ═══════════════════════════════════════════════════════════════
# 1. INTAKE PAYLOAD
# ═══════════════════════════════════════════════════════════════

class TestIntakePreparation:
    """Values are cleaned before validation."""

    def test_email_trimmed_and_lowered(self):
        data = CustomerIntake(**_payload(email_1="  Ana@Example.COM "))
        assert data.customer.email_1 == "ana@example.com"

    def test_phone_reduced_to_digits(self):
        data = CustomerIntake(**_payload(phone_1="+1 (555) 123-4567", phone_2=""))
        assert data.customer.phone_1 == "15551234567"
        assert data.customer.phone_2 is None

    def test_square_footage_and_fee(self):
        data = CustomerIntake(**_payload())
        assert data.property.square_footage == 2400
        assert data.inspection.fee == "1050.00"

    def test_realtor_coerced(self):
        assert CustomerIntake(**_payload(is_realtor="on")).customer.is_realtor is True
        assert CustomerIntake(**_payload(is_realtor="0")).customer.is_realtor is False

    def test_customer_fields_nest_property(self):
        fields = CustomerIntake(**_payload()).customer_fields()
        assert fields["latest_inspection"]["property"]["square_footage"] == 2400
        assert "social_media_links" not in fields


class TestIntakeRejections:

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            CustomerIntake(**_payload(email_1="not-an-email"))

    def test_short_phone(self):
        with pytest.raises(ValidationError):
            CustomerIntake(**_payload(phone_1="12-34"))

    def test_missing_last_name(self):
        payload = _payload()
        del payload["customer"]["last_name"]
        with pytest.raises(ValidationError):
            CustomerIntake(**payload)

    def test_bad_fee(self):
        payload = _payload()
        payload["inspection"]["fee"] = "12.345"
        with pytest.raises(ValidationError):
            CustomerIntake(**payload)

    def test_bad_display_date(self):
        payload = _payload()
        payload["inspection"]["date"] = "2024-12-31"
        with pytest.raises(ValidationError):
            CustomerIntake(**payload)

    def test_legacy_id_positive(self):
        payload = _payload()
        payload["legacy_customer_id"] = 0
        with pytest.raises(ValidationError):
            CustomerIntake(**payload)

    def test_email_format_helper(self):
        assert is_valid_email_format("a@b.co") is True
        assert is_valid_email_format("") is False
        assert is_valid_email_format("a@b") is False


# ═══════════════════════════════════════════════════════════════
# 2. CONTACT RECORDS
# ═══════════════════════════════════════════════════════════════

class TestContactRecords:

    def test_occurred_at_from_date_and_time(self):
        record = ContactRecordCreate(contact_type="phone_call", date="2024-05-02", time="09:05")
        assert record.to_record()["occurred_at"] == "2024-05-02T09:05:00"
        assert record.to_record()["call_outcome"] is None

    def test_unknown_contact_type(self):
        with pytest.raises(ValidationError):
            ContactRecordCreate(contact_type="fax", date="2024-05-02", time="09:05")

    def test_unknown_outcome(self):
        with pytest.raises(ValidationError):
            ContactRecordCreate(contact_type="phone_call", call_outcome="maybe", date="2024-05-02", time="09:05")

    def test_bad_time(self):
        with pytest.raises(ValidationError):
            ContactRecordCreate(contact_type="email", date="2024-05-02", time="9am")

    def test_notes_limit(self):
        with pytest.raises(ValidationError):
            ContactRecordCreate(contact_type="email", date="2024-05-02", time="09:00", notes="x" * 2001)

    def test_intake_record_needs_date_and_time_together(self):
        with pytest.raises(ValidationError):
            IntakeContactRecord(contact_type="mail", date="2024-05-02")

    def test_intake_record_defaults_to_midnight(self):
        occurred_at = IntakeContactRecord(contact_type="mail").to_record()["occurred_at"]
        assert occurred_at.endswith("T00:00:00")


class TestLinksUpdate:

    def test_valid_links(self):
        data = CustomerLinksUpdate(social_media_links=["https://facebook.com/ana", None])
        assert data.social_media_links[0] == "https://facebook.com/ana"

    def test_null_clears(self):
        assert CustomerLinksUpdate(social_media_links=None).social_media_links is None

    def test_invalid_link(self):
        with pytest.raises(ValidationError):
            CustomerLinksUpdate(social_media_links=["facebook dot com"])
