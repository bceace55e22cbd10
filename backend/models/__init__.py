"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Intake CRM - Models Package                                                 ║
║                                                                              ║
║  from models import CustomerIntake, ContactRecordCreate, etc.                ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Contact records
from .contact_record import (
    ContactType,
    CallOutcome,
    CallDirection,
    ContactRecordCreate,
    IntakeContactRecord,
)

# Customers
from .customer import (
    CustomerIntake,
    CustomerLinksUpdate,
    InspectionRefreshRequest,
    is_valid_email_format,
)

__all__ = [
    "ContactType",
    "CallOutcome",
    "CallDirection",
    "ContactRecordCreate",
    "IntakeContactRecord",
    "CustomerIntake",
    "CustomerLinksUpdate",
    "InspectionRefreshRequest",
    "is_valid_email_format",
]
