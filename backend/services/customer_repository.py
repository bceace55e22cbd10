"""
Intake CRM - Customer storage

All MongoDB access for local customers. Contact records are embedded in the
customer document so that the customer upsert, the new contact records and
the last-contact summary land in one single-document write.
"""

import logging
import re
import uuid
from math import ceil
from typing import Any, Dict, Iterable, List, Optional, Set

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import get_db, now_iso

logger = logging.getLogger("customer_repository")

UPSERT_ATTEMPTS = 3

CUSTOMER_PROJECTION = {"_id": 0}
LISTING_PROJECTION = {"_id": 0, "contact_records": 0}


def with_full_name(customer: Dict[str, Any]) -> Dict[str, Any]:
    first = customer.get("first_name") or ""
    last = customer.get("last_name") or ""
    customer["full_name"] = f"{first} {last}".strip()
    return customer


def newest_contact(records: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Most recent contact record by occurred_at (ISO strings sort lexically)."""
    newest = None
    for record in records:
        if not record.get("occurred_at"):
            continue
        if newest is None or record["occurred_at"] > newest["occurred_at"]:
            newest = record
    return newest


# ==================== LOOKUPS ====================

async def find_existing_legacy_ids(candidate_ids: Set[int]) -> Set[int]:
    """One batched query for every candidate legacy id."""
    if not candidate_ids:
        return set()
    found = await get_db().customers.find(
        {"legacy_id": {"$in": sorted(candidate_ids)}},
        {"_id": 0, "legacy_id": 1}
    ).to_list(len(candidate_ids))
    return {int(doc["legacy_id"]) for doc in found if doc.get("legacy_id") is not None}


async def find_customer_by_legacy_id(legacy_id: int) -> Optional[Dict[str, Any]]:
    return await get_db().customers.find_one({"legacy_id": int(legacy_id)}, CUSTOMER_PROJECTION)


async def get_customer(customer_id: str) -> Optional[Dict[str, Any]]:
    return await get_db().customers.find_one({"id": customer_id}, CUSTOMER_PROJECTION)


# ==================== WRITES ====================

async def upsert_customer_with_contacts(
    legacy_id: int,
    fields: Dict[str, Any],
    contact_records: List[Dict[str, Any]],
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create or update the customer matched by legacy_id, append contact
    records and refresh the last-contact summary.

    Each pass is one single-document write: insert_one for a new customer,
    find_one_and_update on the stored id otherwise. When another session
    inserts the same legacy id first, the unique index rejects our insert
    and the next pass updates the stored document, so contact records always
    carry the id of the document they live in. Field values: last write wins.
    """
    for attempt in range(1, UPSERT_ATTEMPTS + 1):
        existing = await find_customer_by_legacy_id(legacy_id)
        if existing is None:
            customer = await _insert_customer(legacy_id, fields, contact_records, user_id)
        else:
            customer = await _update_customer(existing, fields, contact_records, user_id)

        if customer is not None:
            logger.info(
                f"[customers:upsert] customer={customer['id']} legacy_id={legacy_id} "
                f"created={existing is None} contacts_added={len(contact_records)} attempt={attempt}"
            )
            return customer

        logger.warning(f"[customers:upsert_conflict] legacy_id={legacy_id} attempt={attempt}")

    raise PyMongoError(f"Could not store customer for legacy id {legacy_id}: concurrent writes.")


async def _insert_customer(
    legacy_id: int,
    fields: Dict[str, Any],
    contact_records: List[Dict[str, Any]],
    user_id: Optional[str],
) -> Optional[Dict[str, Any]]:
    """New customer document, or None when the legacy id was taken meanwhile."""
    customer_id = str(uuid.uuid4())
    now = now_iso()
    new_records = [build_contact_record(customer_id, r, user_id, now) for r in contact_records]

    doc = dict(fields)
    doc.update({
        "id": customer_id,
        "legacy_id": legacy_id,
        "social_media_links": [],
        "contact_records": new_records,
        "created_at": now,
        "updated_at": now,
    })
    doc.update(summary_after(None, new_records))

    try:
        await get_db().customers.insert_one(doc)
    except DuplicateKeyError:
        return None
    return await get_customer(customer_id)


async def _update_customer(
    existing: Dict[str, Any],
    fields: Dict[str, Any],
    contact_records: List[Dict[str, Any]],
    user_id: Optional[str],
) -> Optional[Dict[str, Any]]:
    """Update the stored document in place; None if it is gone."""
    customer_id = existing["id"]
    now = now_iso()
    new_records = [build_contact_record(customer_id, r, user_id, now) for r in contact_records]

    update_fields = dict(fields)
    update_fields["updated_at"] = now
    update_fields.update(summary_after(existing, new_records))

    update: Dict[str, Any] = {"$set": update_fields}
    if new_records:
        update["$push"] = {"contact_records": {"$each": new_records}}

    return await get_db().customers.find_one_and_update(
        {"id": customer_id, "legacy_id": existing["legacy_id"]},
        update,
        projection=CUSTOMER_PROJECTION,
        return_document=ReturnDocument.AFTER,
    )


async def append_contact_record(
    customer: Dict[str, Any],
    record: Dict[str, Any],
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Append one contact record and refresh the summary in the same write."""
    now = now_iso()
    contact = build_contact_record(customer["id"], record, user_id, now)

    update_fields = {"updated_at": now}
    summary = summary_after(customer, [contact])
    if summary:
        update_fields.update(summary)

    await get_db().customers.update_one(
        {"id": customer["id"]},
        {"$push": {"contact_records": contact}, "$set": update_fields}
    )
    return contact


async def update_latest_inspection(customer_id: str, latest_inspection: Dict[str, Any]) -> None:
    await get_db().customers.update_one(
        {"id": customer_id},
        {"$set": {"latest_inspection": latest_inspection, "updated_at": now_iso()}}
    )


async def update_social_media_links(customer_id: str, links: Optional[List[str]]) -> None:
    await get_db().customers.update_one(
        {"id": customer_id},
        {"$set": {"social_media_links": links, "updated_at": now_iso()}}
    )


def build_contact_record(
    customer_id: str,
    record: Dict[str, Any],
    user_id: Optional[str],
    created_at: str,
) -> Dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "customer_id": customer_id,
        "user_id": user_id,
        "contact_type": record["contact_type"],
        "call_outcome": record.get("call_outcome"),
        "call_direction": record.get("call_direction"),
        "occurred_at": record["occurred_at"],
        "notes": record.get("notes"),
        "meta": {},
        "created_at": created_at,
    }


def summary_after(existing: Optional[Dict[str, Any]], new_records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """last_contact_* fields when a new record is newer than the stored summary."""
    latest = newest_contact(new_records)
    if latest is None:
        return {}
    current = (existing or {}).get("last_contact_at")
    if current and current >= latest["occurred_at"]:
        return {}
    return {
        "last_contact_at": latest["occurred_at"],
        "last_contact_type": latest["contact_type"],
    }


# ==================== LISTING ====================

SORTABLE_FIELDS = [
    "last_name",
    "phone_1",
    "email_1",
    "is_realtor",
    "last_contact_at",
    "created_at",
    "updated_at",
]


async def list_customers(
    search: str = "",
    sort_field: str = "created_at",
    direction: int = -1,
    page: int = 1,
    per_page: int = 10,
) -> Dict[str, Any]:
    """Paginated local customers, searchable by name, email and phone."""
    query: Dict[str, Any] = {}
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"first_name": {"$regex": pattern, "$options": "i"}},
            {"last_name": {"$regex": pattern, "$options": "i"}},
            {"email_1": {"$regex": pattern, "$options": "i"}},
            {"phone_1": {"$regex": pattern, "$options": "i"}},
        ]

    skip = (page - 1) * per_page
    db = get_db()
    customers = await db.customers.find(query, LISTING_PROJECTION) \
        .sort(sort_field, direction) \
        .skip(skip) \
        .limit(per_page) \
        .to_list(per_page)
    total = await db.customers.count_documents(query)

    return {
        "data": [with_full_name(c) for c in customers],
        "current_page": page,
        "per_page": per_page,
        "total": total,
        "last_page": max(1, ceil(total / per_page)),
    }
