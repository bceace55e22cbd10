"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Intake CRM - Customer models                                                ║
║                                                                              ║
║  RULES:                                                                      ║
║  - A customer is matched by legacy_id (unique, from the portal)              ║
║  - Emails stored trimmed + lowercased, phones stored as digits only          ║
║  - Payloads are cleaned up BEFORE validation, rejected before any write      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import re
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

from services.normalizer import parse_date
from .contact_record import IntakeContactRecord


EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
PHONE_DIGITS_PATTERN = r'^\d{7,15}$'
FEE_PATTERN = r'^\d+(\.\d{1,2})?$'

_TRUE_VALUES = {"1", "true", "on", "yes"}


def is_valid_email_format(email: str) -> bool:
    """Basic email format check"""
    if not email:
        return False
    return bool(re.match(EMAIL_PATTERN, email))


def coerce_bool(value) -> bool:
    """Form-style boolean: unknown values read as False."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_VALUES


def digits_only(value) -> str:
    return re.sub(r'\D+', '', str(value))


def blank_to_none(value):
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


class IntakeCustomerFields(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email_1: Optional[str] = Field(None, max_length=255)
    email_2: Optional[str] = Field(None, max_length=255)
    phone_1: Optional[str] = Field(None, pattern=PHONE_DIGITS_PATTERN)
    phone_2: Optional[str] = Field(None, pattern=PHONE_DIGITS_PATTERN)
    is_realtor: bool

    @field_validator('email_1', 'email_2')
    @classmethod
    def validate_email(cls, v):
        if v is not None and not is_valid_email_format(v):
            raise ValueError(f"Invalid email format: {v}")
        return v


class IntakeProperty(BaseModel):
    id: Optional[int] = Field(None, ge=1)
    property_type: Optional[str] = Field(None, max_length=100)
    street_address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=120)
    state: Optional[str] = Field(None, max_length=2)
    square_footage: Optional[int] = Field(None, ge=0)


class IntakeInspection(BaseModel):
    id: Optional[int] = Field(None, ge=1)
    customer_role: Optional[str] = Field(None, max_length=100)
    date: Optional[str] = None        # "MM/DD/YY"
    date_raw: Optional[str] = None    # "YYYY-MM-DD"
    fee: Optional[str] = Field(None, pattern=FEE_PATTERN)
    general: Optional[bool] = None
    mitigation: Optional[bool] = None
    four_point: Optional[bool] = None

    @field_validator('date')
    @classmethod
    def validate_display_date(cls, v):
        if v is None:
            return v
        try:
            datetime.strptime(v, "%m/%d/%y")
        except ValueError:
            raise ValueError(f"Invalid inspection date (expected MM/DD/YY): {v}")
        return v

    @field_validator('date_raw')
    @classmethod
    def validate_raw_date(cls, v):
        if v is None:
            return v
        if parse_date(v) is None:
            raise ValueError(f"Invalid inspection date: {v}")
        return v


class CustomerIntake(BaseModel):
    """
    Intake submission: normalized portal row as reviewed by staff, plus the
    contact attempts made during the intake call.
    """
    token: str = Field(..., min_length=1, max_length=100)
    legacy_customer_id: int = Field(..., ge=1)
    customer: IntakeCustomerFields
    property: IntakeProperty
    inspection: IntakeInspection
    contact_records: Optional[List[IntakeContactRecord]] = None

    @model_validator(mode='before')
    @classmethod
    def prepare_for_validation(cls, data):
        """Clean emails, phones, flags, square footage and fee before validation."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        customer = data.get('customer')
        if isinstance(customer, dict):
            customer = dict(customer)
            for key in ('email_1', 'email_2'):
                value = blank_to_none(customer.get(key))
                customer[key] = str(value).strip().lower() if value is not None else None
            for key in ('phone_1', 'phone_2'):
                value = blank_to_none(customer.get(key))
                customer[key] = digits_only(value) if value is not None else None
            if 'is_realtor' in customer:
                customer['is_realtor'] = coerce_bool(customer['is_realtor'])
            data['customer'] = customer

        prop = data.get('property')
        if isinstance(prop, dict):
            prop = dict(prop)
            footage = blank_to_none(prop.get('square_footage'))
            if footage is not None:
                cleaned = str(footage).replace(',', '')
                prop['square_footage'] = int(cleaned) if cleaned.isdigit() else cleaned
            else:
                prop['square_footage'] = None
            data['property'] = prop

        inspection = data.get('inspection')
        if isinstance(inspection, dict):
            inspection = dict(inspection)
            fee = blank_to_none(inspection.get('fee'))
            if fee is not None:
                inspection['fee'] = str(fee).replace(',', '').replace('$', '').replace(' ', '')
            else:
                inspection['fee'] = None
            data['inspection'] = inspection

        return data

    def customer_fields(self) -> dict:
        """Fields written on the customer document."""
        latest_inspection = self.inspection.model_dump()
        latest_inspection['property'] = self.property.model_dump()
        return {
            "first_name": self.customer.first_name,
            "last_name": self.customer.last_name,
            "phone_1": self.customer.phone_1,
            "phone_2": self.customer.phone_2,
            "email_1": self.customer.email_1,
            "email_2": self.customer.email_2,
            "is_realtor": self.customer.is_realtor,
            "latest_inspection": latest_inspection,
        }


class CustomerLinksUpdate(BaseModel):
    social_media_links: Optional[List[Optional[str]]] = None

    @field_validator('social_media_links')
    @classmethod
    def validate_links(cls, v):
        if v is None:
            return v
        for link in v:
            if link is None:
                continue
            parsed = urlparse(link)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(f"Invalid URL: {link}")
        return v


class InspectionRefreshRequest(BaseModel):
    customer_id: str = Field(..., min_length=1)
    legacy_id: int
