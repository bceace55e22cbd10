"""
Intake CRM - Routes Contact records
"""

from fastapi import APIRouter, Depends, HTTPException

from config import new_request_id
from models.contact_record import ContactRecordCreate
from routes.auth import get_current_user
from services import customer_repository
from services.intake import log_contact

router = APIRouter(prefix="/customer", tags=["ContactRecords"])


@router.post("/{customer_id}/records")
async def create_contact_record(
    customer_id: str,
    data: ContactRecordCreate,
    user: dict = Depends(get_current_user)
):
    """Log one contact attempt and refresh the customer's last-contact summary."""
    customer = await customer_repository.get_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    contact = await log_contact(customer, data, user, req_id=new_request_id())
    return {"success": True, "message": "Contact logged.", "contact": contact}
