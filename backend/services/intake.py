"""
Intake CRM - Intake workflow

Turns a cached portal row into a local customer:
  1. start:   find the row for a legacy id, mint a short-lived token
  2. create:  the form reads the row back with the token
  3. store:   upsert the customer + contact records in one write
Also hosts the contact-record log and the single-customer inspection refresh.
"""

import logging
from typing import Any, Dict, List, Optional

import config
from config import generate_token, new_request_id
from models.contact_record import ContactRecordCreate
from models.customer import CustomerIntake
from services import customer_repository
from services.cache_store import INTAKE_PREFIX, intake_tokens
from services.customer_feed import cached_rows, warm_cache
from services.event_logger import log_event
from services.normalizer import normalize
from services.portal_client import get_portal_client
from services.record_filter import filter_acceptable

logger = logging.getLogger("intake")


class RecordNotFound(LookupError):
    """No usable portal row (or local customer) for the requested id."""


def find_row(rows: List[Dict[str, Any]], legacy_id: int) -> Optional[Dict[str, Any]]:
    for row in rows:
        if (row.get("customer") or {}).get("id") == legacy_id:
            return row
    return None


# ==================== HANDOFF ====================

async def start_intake(legacy_id: int, req_id: Optional[str] = None) -> str:
    """
    Mint an intake token for the cached row of legacy_id.
    An empty cache is warmed once; RecordNotFound if the row is still missing.
    """
    req_id = req_id or new_request_id()
    logger.info(f"[intake:start] req_id={req_id} legacy_id={legacy_id}")

    rows = list(cached_rows() or [])
    row = find_row(rows, legacy_id)

    if row is None and not rows:
        logger.info(f"[intake:warm] req_id={req_id} reason=empty_cache")
        await warm_cache(req_id)
        row = find_row(list(cached_rows() or []), legacy_id)

    if row is None:
        logger.warning(f"[intake:not_found] req_id={req_id} legacy_id={legacy_id}")
        raise RecordNotFound(f"Customer {legacy_id} not found in source data.")

    token = generate_token()
    intake_tokens.put(INTAKE_PREFIX + token, row, config.INTAKE_TOKEN_TTL_MINUTES * 60)
    logger.info(f"[intake:token] req_id={req_id} legacy_id={legacy_id}")
    return token


def get_intake_row(token: str) -> Optional[Dict[str, Any]]:
    """Row bound to a token; re-readable until it expires."""
    if not token:
        return None
    return intake_tokens.get(INTAKE_PREFIX + token)


# ==================== STORE ====================

async def store_customer(data: CustomerIntake, user: Dict[str, Any], req_id: Optional[str] = None) -> Dict[str, Any]:
    """Create or update the customer and attach the intake contact records."""
    req_id = req_id or new_request_id()
    records = [r.to_record() for r in (data.contact_records or [])]

    logger.info(
        f"[intake:store] req_id={req_id} legacy_id={data.legacy_customer_id} "
        f"contact_records={len(records)}"
    )

    customer = await customer_repository.upsert_customer_with_contacts(
        data.legacy_customer_id,
        data.customer_fields(),
        records,
        user_id=user.get("id"),
    )

    await log_event(
        action="customer_intake",
        entity_type="customer",
        entity_id=customer["id"],
        user=user.get("id", "system"),
        req_id=req_id,
        details={"contact_records": len(records)},
        related={"legacy_id": data.legacy_customer_id},
    )
    return customer


async def log_contact(
    customer: Dict[str, Any],
    data: ContactRecordCreate,
    user: Dict[str, Any],
    req_id: Optional[str] = None,
) -> Dict[str, Any]:
    req_id = req_id or new_request_id()
    contact = await customer_repository.append_contact_record(
        customer, data.to_record(), user_id=user.get("id")
    )
    logger.info(
        f"[contacts:logged] req_id={req_id} customer={customer['id']} "
        f"type={contact['contact_type']} occurred_at={contact['occurred_at']}"
    )

    await log_event(
        action="contact_logged",
        entity_type="contact_record",
        entity_id=contact["id"],
        user=user.get("id", "system"),
        req_id=req_id,
        details={"contact_type": contact["contact_type"]},
        related={"customer_id": customer["id"]},
    )
    return contact


# ==================== INSPECTION REFRESH ====================

async def refresh_latest_inspection(
    customer_id: str,
    legacy_id: int,
    user: Dict[str, Any],
    req_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Pull one customer's latest inspection from the portal and store it as
    latest_inspection (inspection fields + nested property).
    Raises UpstreamError, or RecordNotFound when the customer or a usable
    row is missing.
    """
    req_id = req_id or new_request_id()
    logger.info(f"[latestInspection:start] req_id={req_id} customer_id={customer_id} legacy_id={legacy_id}")

    customer = await customer_repository.get_customer(customer_id)
    if not customer:
        raise RecordNotFound(f"Customer {customer_id} not found.")

    raw = await get_portal_client().fetch_one(legacy_id, req_id)
    rows = filter_acceptable(normalize(raw))
    if not rows:
        logger.warning(f"[latestInspection:empty] req_id={req_id} legacy_id={legacy_id}")
        raise RecordNotFound(f"No usable inspection returned for legacy customer {legacy_id}.")

    latest = dict(rows[0]["inspection"])
    latest["property"] = rows[0]["property"]
    await customer_repository.update_latest_inspection(customer_id, latest)

    await log_event(
        action="inspection_refreshed",
        entity_type="customer",
        entity_id=customer_id,
        user=user.get("id", "system"),
        req_id=req_id,
        details={"inspection_id": latest.get("id")},
        related={"legacy_id": legacy_id},
    )
    logger.info(f"[latestInspection:done] req_id={req_id} inspection_id={latest.get('id')}")
    return latest
