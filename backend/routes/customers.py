"""
Intake CRM - Routes Customers
Intake handoff, intake store, local listing and detail.
"""

import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import PyMongoError

from config import new_request_id
from models.customer import CustomerIntake, CustomerLinksUpdate
from routes.auth import get_current_user
from services import customer_repository
from services.event_logger import log_event
from services.intake import RecordNotFound, get_intake_row, start_intake, store_customer

logger = logging.getLogger("customers")

router = APIRouter(tags=["Customers"])

CONTACTS_PER_PAGE = 5
DEFAULT_CUSTOMERS_PER_PAGE = 10


def parse_sort_order(raw) -> int:
    """1 / -1, or "asc" / anything else (desc)."""
    if raw is None:
        return -1
    text = str(raw).strip()
    try:
        return 1 if int(text) == 1 else -1
    except ValueError:
        return 1 if text.lower() == "asc" else -1


def positive_int(raw, default: int) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


# ==================== INTAKE ====================

@router.get("/customer/intake/{legacy_id}")
async def intake_start(legacy_id: int, user: dict = Depends(get_current_user)):
    """Bind the cached portal row to a token and point to the create form."""
    try:
        token = await start_intake(legacy_id, req_id=new_request_id())
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    return {"token": token, "redirect": f"/customer/create?token={token}"}


@router.get("/customer/create")
async def intake_form(token: str = "", user: dict = Depends(get_current_user)):
    """Initial form data for an intake token."""
    row = get_intake_row(token)
    if row is None:
        return {
            "token": None,
            "initial": None,
            "message": "Session expired. Please start intake again.",
        }
    return {"token": token, "initial": row}


@router.post("/customers")
async def intake_store(data: CustomerIntake, user: dict = Depends(get_current_user)):
    """Create or update the customer from a reviewed intake."""
    req_id = new_request_id()
    try:
        customer = await store_customer(data, user, req_id=req_id)
    except PyMongoError as exc:
        logger.error(
            f"[intake:store_failed] req_id={req_id} error={exc} "
            f"payload={data.model_dump(mode='json')}"
        )
        raise HTTPException(
            status_code=500,
            detail="There was an error creating the customer. Please try again."
        )

    return {
        "success": True,
        "message": "Customer saved.",
        "customer": customer_repository.with_full_name(customer),
    }


# ==================== LISTING / DETAIL ====================

@router.get("/customers")
async def list_customers(
    search: Optional[str] = None,
    per_page: Optional[str] = None,
    page: Optional[str] = None,
    sort_field: Optional[str] = None,
    sort_order: Optional[str] = None,
    user: dict = Depends(get_current_user)
):
    """Local customers, searchable and sortable."""
    search = (search or "").strip()
    per_page_value = positive_int(per_page, DEFAULT_CUSTOMERS_PER_PAGE)
    page_value = positive_int(page, 1)

    field = (sort_field or "").strip()
    if field not in customer_repository.SORTABLE_FIELDS:
        field = "created_at"
    order = parse_sort_order(sort_order)

    customers = await customer_repository.list_customers(
        search=search,
        sort_field=field,
        direction=order,
        page=page_value,
        per_page=per_page_value,
    )
    return {
        "customers": customers,
        "filters": {
            "search": search,
            "per_page": per_page_value,
            "sort_field": field,
            "sort_order": order,
        },
    }


@router.get("/customer/{customer_id}")
async def show_customer(
    customer_id: str,
    contacts_page: Optional[str] = None,
    user: dict = Depends(get_current_user)
):
    """Customer detail with its contact records, newest first."""
    customer = await customer_repository.get_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    records = sorted(
        customer.pop("contact_records", None) or [],
        key=lambda r: r.get("occurred_at") or "",
        reverse=True,
    )
    page = positive_int(contacts_page, 1)
    offset = (page - 1) * CONTACTS_PER_PAGE
    fields = ("id", "contact_type", "call_outcome", "call_direction", "occurred_at", "notes")

    return {
        "customer": customer_repository.with_full_name(customer),
        "contacts": {
            "data": [{k: r.get(k) for k in fields} for r in records[offset:offset + CONTACTS_PER_PAGE]],
            "current_page": page,
            "per_page": CONTACTS_PER_PAGE,
            "total": len(records),
            "last_page": max(1, ceil(len(records) / CONTACTS_PER_PAGE)),
        },
    }


@router.put("/customer/{customer_id}")
async def update_customer(
    customer_id: str,
    data: CustomerLinksUpdate,
    user: dict = Depends(get_current_user)
):
    """Replace the customer's social media links."""
    customer = await customer_repository.get_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    await customer_repository.update_social_media_links(customer_id, data.social_media_links)

    await log_event(
        action="customer_links_updated",
        entity_type="customer",
        entity_id=customer_id,
        user=user.get("id", "system"),
        req_id=new_request_id(),
        details={"links": len(data.social_media_links or [])},
    )
    return {"success": True, "message": "Customer updated."}
