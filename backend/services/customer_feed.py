"""
Intake CRM - Latest customers feed

Serves normalized portal rows from the process cache:
  - hit:  dedupe + paginate, then fire a background refresh (never awaited)
  - miss: fetch the portal synchronously, normalize, filter, cache, paginate

The dashboard reads the same cache and runs its own query pass on top.
"""

import asyncio
import logging
import time
from datetime import date
from typing import Any, Dict, List, Optional

import config
from config import new_request_id
from services.cache_store import customer_latest_cache
from services.normalizer import normalize
from services.portal_client import UpstreamError, get_portal_client
from services.query_engine import QueryParams, paginate, query
from services.record_filter import filter_acceptable, reject_existing_customers

logger = logging.getLogger("customer_feed")

# Strong references so detached refresh tasks are not garbage collected
_background_tasks = set()


def _elapsed_ms(started: float) -> int:
    return round((time.monotonic() - started) * 1000)


def _first_sample(rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not rows:
        return None
    return {
        "customer": rows[0]["customer"].get("id"),
        "inspection": rows[0]["inspection"].get("id"),
    }


def cached_rows() -> Optional[tuple]:
    """Normalized rows from the cache, or None when absent/expired."""
    return customer_latest_cache.get()


def store_rows(rows: List[Dict[str, Any]], req_id: str) -> None:
    customer_latest_cache.put(tuple(rows), config.CUSTOMER_CACHE_TTL_MINUTES * 60)
    logger.info(f"[proxy:normalized_cached] req_id={req_id} normalized_count={len(rows)}")


async def build_rows(raw_items: List[Dict[str, Any]], req_id: str) -> List[Dict[str, Any]]:
    """Normalize, keep usable rows, drop rows already converted locally."""
    rows = filter_acceptable(normalize(raw_items))
    return await reject_existing_customers(rows, req_id)


# ==================== REFRESH PATHS ====================

async def refresh_cache(req_id: str) -> List[Dict[str, Any]]:
    """
    Full refresh (with retry). Raises UpstreamError; the cache is only
    written after a successful fetch.
    """
    raw = await get_portal_client().fetch_latest(req_id)
    rows = await build_rows(raw, req_id)
    store_rows(rows, req_id)
    return rows


async def warm_cache(req_id: str) -> bool:
    """
    Opportunistic refresh: single attempt, short timeouts.
    Upstream failures are logged and reported as False, never raised.
    """
    try:
        raw = await get_portal_client().warm_latest(req_id)
    except UpstreamError as exc:
        logger.warning(f"[proxy:warm_failed] req_id={req_id} code={exc.code} error={exc}")
        return False

    rows = await build_rows(raw, req_id)
    store_rows(rows, req_id)
    logger.info(f"[proxy:warm_done] req_id={req_id} count={len(rows)}")
    return True


async def _background_refresh(req_id: str) -> None:
    try:
        await warm_cache(req_id)
    except Exception as exc:
        logger.error(f"[proxy:bg_refresh_failed] req_id={req_id} error={exc}")


def schedule_background_refresh(req_id: str) -> asyncio.Task:
    """Detach a warm refresh from the current request."""
    task = asyncio.create_task(_background_refresh(req_id))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    logger.info(f"[proxy:bg_refresh_scheduled] req_id={req_id}")
    return task


# ==================== CONSUMERS ====================

async def latest_customers(params: QueryParams, req_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Paginated envelope {data, meta} for the latest customers proxy.
    Raises UpstreamError on a cache miss when the portal cannot be reached.
    """
    req_id = req_id or new_request_id()
    started = time.monotonic()
    page, per_page = params.page, params.per_page

    logger.info(f"[proxy:start] req_id={req_id} page={page} perPage={per_page}")

    cached = cached_rows()
    if cached is not None:
        rows = await reject_existing_customers(list(cached), req_id)
        result = paginate(rows, page, per_page, source="cache")

        logger.info(
            f"[proxy:cache_hit] req_id={req_id} total={result['meta']['total']} "
            f"count={len(result['data'])} first_sample={_first_sample(result['data'])}"
        )
        schedule_background_refresh(req_id)
        logger.info(f"[proxy:done] req_id={req_id} source=cache ms={_elapsed_ms(started)}")
        return result

    logger.info(f"[proxy:cache_miss] req_id={req_id}")

    try:
        rows = await refresh_cache(req_id)
    except UpstreamError as exc:
        logger.error(
            f"[proxy:upstream_failed] req_id={req_id} code={exc.code} "
            f"status={exc.status} ms={_elapsed_ms(started)} error={exc}"
        )
        raise

    result = paginate(rows, page, per_page, source="live")
    logger.info(
        f"[proxy:paginate] req_id={req_id} total={result['meta']['total']} "
        f"count={len(result['data'])} first_sample={_first_sample(result['data'])}"
    )
    logger.info(f"[proxy:done] req_id={req_id} source=live ms={_elapsed_ms(started)}")
    return result


async def dashboard(
    params: QueryParams,
    req_id: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Dashboard rows + meta. An empty cache is warmed once, never fatal."""
    req_id = req_id or new_request_id()
    started = time.monotonic()

    logger.info(
        f"[dashboard:start] req_id={req_id} page={params.page} perPage={params.per_page} "
        f"olderMonths={params.older_months} search={params.search!r} "
        f"sortBy={params.sort_by} sortDir={params.sort_dir}"
    )

    rows = list(cached_rows() or [])
    if not rows:
        logger.warning(f"[dashboard:cache_miss] req_id={req_id}")
        await warm_cache(req_id)
        rows = list(cached_rows() or [])

    rows = await reject_existing_customers(rows, req_id)
    result = query(rows, params, today=today)

    logger.info(
        f"[dashboard:render] req_id={req_id} rows={len(result['data'])} "
        f"total={result['meta']['total']} ms_total={_elapsed_ms(started)}"
    )
    return {"rows": result["data"], "meta": result["meta"]}
