"""
Intake CRM - Record filter

Two rules applied to normalized portal rows:
  - usable: at least one contact method AND an inspection number
  - unclaimed: no local customer already holds the row's legacy id
"""

import logging
from typing import Any, Dict, Iterable, List, Set

from services import customer_repository

logger = logging.getLogger("record_filter")

CONTACT_FIELDS = ("phone_1", "phone_2", "email_1", "email_2")


def acceptable(record: Dict[str, Any]) -> bool:
    """True when the row has a contact method and an inspection id."""
    customer = record.get("customer") or {}
    inspection = record.get("inspection") or {}

    has_contact = any(customer.get(field) for field in CONTACT_FIELDS)
    has_inspection = bool(inspection.get("id"))

    return has_contact and has_inspection


def filter_acceptable(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [record for record in records if acceptable(record)]


def legacy_ids(records: Iterable[Dict[str, Any]]) -> Set[int]:
    """Distinct non-null customer ids across the rows."""
    ids = set()
    for record in records:
        legacy_id = (record.get("customer") or {}).get("id")
        if legacy_id is not None:
            ids.add(int(legacy_id))
    return ids


def dedupe(records: Iterable[Dict[str, Any]], existing_ids: Set[int]) -> List[Dict[str, Any]]:
    """
    Drop rows whose customer id is already claimed locally.
    Rows without a customer id are never treated as duplicates.
    """
    kept = []
    for record in records:
        legacy_id = (record.get("customer") or {}).get("id")
        if legacy_id is not None and int(legacy_id) in existing_ids:
            continue
        kept.append(record)
    return kept


async def reject_existing_customers(records: List[Dict[str, Any]], req_id: str = "") -> List[Dict[str, Any]]:
    """Dedupe against storage with a single batched lookup."""
    candidate_ids = legacy_ids(records)
    if not candidate_ids:
        return list(records)

    existing = await customer_repository.find_existing_legacy_ids(candidate_ids)
    kept = dedupe(records, existing)

    if existing:
        logger.info(
            f"[filter:dedupe] req_id={req_id} candidates={len(candidate_ids)} "
            f"existing={len(existing)} dropped={len(records) - len(kept)}"
        )
    return kept
