"""
Intake CRM - Routes Proxy (legacy portal)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from config import new_request_id
from models.customer import InspectionRefreshRequest
from routes.auth import get_current_user
from services.customer_feed import latest_customers
from services.intake import RecordNotFound, refresh_latest_inspection
from services.portal_client import UpstreamError
from services.query_engine import QueryParams

logger = logging.getLogger("proxy")

router = APIRouter(prefix="/proxy", tags=["Proxy"])

UPSTREAM_FAILED = {"error": "Upstream request failed"}


@router.get("/customer-latest")
async def customer_latest(
    page: str = "1",
    per_page: str = Query("25", alias="perPage"),
):
    """Latest portal customers not yet converted, cached or live."""
    req_id = new_request_id()
    params = QueryParams(page=page, per_page=per_page)

    try:
        return await latest_customers(params, req_id=req_id)
    except UpstreamError:
        return JSONResponse(status_code=502, content=UPSTREAM_FAILED)


@router.post("/latest-inspection-refresh")
async def latest_inspection_refresh(
    data: InspectionRefreshRequest,
    user: dict = Depends(get_current_user)
):
    """Re-pull one customer's latest inspection snapshot from the portal."""
    req_id = new_request_id()

    try:
        latest = await refresh_latest_inspection(data.customer_id, data.legacy_id, user, req_id=req_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except UpstreamError as exc:
        logger.error(f"[latestInspection:failed] req_id={req_id} code={exc.code} status={exc.status}")
        return JSONResponse(status_code=502, content=UPSTREAM_FAILED)

    return {"success": True, "latest_inspection": latest}
