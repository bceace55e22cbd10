"""
Intake CRM - Event Logger

Centralized audit trail for customer-facing writes.
Single function to call from any route/service.
"""

import uuid
from config import get_db, now_iso


async def log_event(
    action: str,
    entity_type: str,
    entity_id: str,
    user: str = "system",
    req_id: str = "",
    details: dict = None,
    related: dict = None
):
    """
    Write a single event to the event_log collection.

    Args:
        action: e.g. customer_intake, contact_logged, inspection_refreshed
        entity_type: customer | contact_record
        entity_id: ID of the primary entity
        user: id of the user performing the action
        req_id: correlation id of the operation that produced the event
        details: free-form dict (legacy_id, contact_type, counts, etc.)
        related: linked entity IDs (customer_id, legacy_id, etc.)
    """
    await get_db().event_log.insert_one({
        "id": str(uuid.uuid4()),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "user": user,
        "req_id": req_id,
        "details": details or {},
        "related": related or {},
        "created_at": now_iso()
    })
