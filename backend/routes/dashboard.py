"""
Intake CRM - Routes Dashboard
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from config import new_request_id
from routes.auth import get_current_user
from services.customer_feed import dashboard
from services.query_engine import QueryParams

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("")
async def get_dashboard(
    page: Optional[str] = None,
    per_page: Optional[str] = Query(None, alias="perPage"),
    older_months: Optional[str] = Query(None, alias="olderMonths"),
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_dir: Optional[str] = Query(None, alias="sortDir"),
    realtor_only: Optional[str] = Query(None, alias="realtorOnly"),
    user: dict = Depends(get_current_user)
):
    """Unconverted portal customers: filter, search, sort, paginate."""
    params = QueryParams(
        page=page,
        per_page=per_page,
        older_months=older_months,
        search=search,
        sort_by=sort_by,
        sort_dir=sort_dir,
        realtor_only=realtor_only,
    )
    return await dashboard(params, req_id=new_request_id())
