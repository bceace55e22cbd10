"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Intake CRM - Contact record models                                          ║
║                                                                              ║
║  One contact attempt against a customer: call, text, email or mail.          ║
║  occurred_at = date (YYYY-MM-DD) + time (HH:MM), stored as naive ISO         ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class ContactType(str, Enum):
    PHONE_CALL = "phone_call"
    TEXT_MESSAGE = "text_message"
    EMAIL = "email"
    MAIL = "mail"


class CallOutcome(str, Enum):
    BUSY = "busy"
    CONNECTED = "connected"
    LEFT_VOICEMAIL = "left_voicemail"
    NO_ANSWER = "no_answer"
    WRONG_NUMBER = "wrong_number"


class CallDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


def parse_contact_date(value: str) -> str:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").strftime("%Y-%m-%d")
    except ValueError:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value}")


def parse_contact_time(value: str) -> str:
    try:
        return datetime.strptime(value.strip(), "%H:%M").strftime("%H:%M")
    except ValueError:
        raise ValueError(f"Invalid time (expected HH:MM): {value}")


class ContactRecordBase(BaseModel):
    """Shared contact fields; subclasses supply occurred_at()."""
    contact_type: ContactType
    call_outcome: Optional[CallOutcome] = None
    call_direction: Optional[CallDirection] = None
    notes: Optional[str] = Field(None, max_length=2000)

    def to_record(self) -> dict:
        """Plain dict ready for storage."""
        return {
            "contact_type": self.contact_type.value,
            "call_outcome": self.call_outcome.value if self.call_outcome else None,
            "call_direction": self.call_direction.value if self.call_direction else None,
            "occurred_at": self.occurred_at(),
            "notes": self.notes,
        }


class ContactRecordCreate(ContactRecordBase):
    """Contact logged from the customer page: date and time are required."""
    date: str
    time: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return parse_contact_date(v)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        return parse_contact_time(v)

    def occurred_at(self) -> str:
        return f"{self.date}T{self.time}:00"


class IntakeContactRecord(ContactRecordBase):
    """
    Contact attached to an intake. Date and time are required together;
    when both are missing the contact is dated today at midnight.
    """
    date: Optional[str] = None
    time: Optional[str] = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return parse_contact_date(v) if v else None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        return parse_contact_time(v) if v else None

    @model_validator(mode="after")
    def date_and_time_together(self):
        if bool(self.date) != bool(self.time):
            raise ValueError("date and time must be provided together")
        return self

    def occurred_at(self) -> str:
        if self.date and self.time:
            return f"{self.date}T{self.time}:00"
        return datetime.now().strftime("%Y-%m-%dT00:00:00")
