"""
Intake CRM - shared test fixtures
MongoDB is replaced by mongomock-motor, the portal by httpx.MockTransport.
"""

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from config import set_db
from services.cache_store import reset_caches
from services.portal_client import PortalClient, set_portal_client


@pytest.fixture(autouse=True)
def clean_state():
    """Every test starts with empty caches and no injected collaborators."""
    reset_caches()
    set_portal_client(None)
    yield
    reset_caches()
    set_portal_client(None)
    set_db(None)


@pytest.fixture
def mock_db():
    database = AsyncMongoMockClient()["intake_test"]
    set_db(database)
    yield database
    set_db(None)


@pytest.fixture
def sleeps():
    """Backoff delays requested by the portal client."""
    return []


@pytest.fixture
def make_portal(sleeps):
    """Build a PortalClient answering through the given handler."""
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    def factory(handler, install=True):
        client = PortalClient(
            latest_url="https://portal.test/customers/latest",
            refresh_url="https://portal.test/customers/refreshLatestInspection",
            transport=httpx.MockTransport(handler),
            sleep=fake_sleep,
        )
        if install:
            set_portal_client(client)
        return client

    return factory


@pytest.fixture
def legacy_row():
    """Raw portal row builder with sensible defaults."""
    def build(**overrides):
        row = {
            "customer_id": 7,
            "first_name": "Ana",
            "last_name": "Reyes",
            "phone_number": "5551234567",
            "phone_number_2": None,
            "email": "Ana.Reyes@Example.com",
            "email_2": None,
            "is_realtor": 0,
            "inspection_number": 99,
            "inspection_date": "2024-03-05",
            "total_fee": "1234.5",
            "general_inspection": 1,
            "mitigation": 0,
            "four_point": "1",
            "customer_role": "primary_customer",
            "property_id": 3,
            "property_type_id": 4,
            "street_address": "12 Palm Ave",
            "city": "Tampa",
            "state": None,
            "square_footage": 1850,
        }
        row.update(overrides)
        return row

    return build
