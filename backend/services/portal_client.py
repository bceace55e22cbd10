"""
Intake CRM - Legacy portal client

Calls the legacy portal API:
  - latest customers listing (full refresh: 2 attempts, 300ms apart)
  - latest customers listing, background warm (single attempt, short timeouts)
  - refresh one customer's latest inspection (2 attempts, 250ms apart)

Network failures raise UpstreamUnreachable, non-2xx answers UpstreamRejected.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

import config
from services.normalizer import unwrap_payload

logger = logging.getLogger("portal_client")

FULL_REFRESH_TIMEOUT = httpx.Timeout(8.0, connect=3.0)
WARM_TIMEOUT = httpx.Timeout(5.0, connect=2.0)
SINGLE_CUSTOMER_TIMEOUT = httpx.Timeout(10.0, connect=3.0)

FULL_REFRESH_ATTEMPTS = 2
FULL_REFRESH_BACKOFF = 0.3
SINGLE_CUSTOMER_ATTEMPTS = 2
SINGLE_CUSTOMER_BACKOFF = 0.25


class UpstreamError(RuntimeError):
    """Portal request failure with structured metadata."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.status = status
        self.details = details or {}


class UpstreamUnreachable(UpstreamError):
    """Connection error or timeout."""


class UpstreamRejected(UpstreamError):
    """Portal answered with a non-success status or an unreadable body."""


class PortalClient:
    """Async client for the legacy portal endpoints."""

    def __init__(
        self,
        latest_url: Optional[str] = None,
        refresh_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=asyncio.sleep,
    ):
        self.latest_url = latest_url or config.PORTAL_CUSTOMER_LATEST_URL
        self.refresh_url = refresh_url or config.PORTAL_REFRESH_INSPECTION_URL
        self._transport = transport
        self._sleep = sleep

    async def _get(
        self,
        url: str,
        *,
        timeout: httpx.Timeout,
        attempts: int,
        backoff: float,
        req_id: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        last_error: Optional[UpstreamError] = None

        for attempt in range(1, attempts + 1):
            started = time.monotonic()
            try:
                async with httpx.AsyncClient(
                    timeout=timeout,
                    transport=self._transport,
                    headers={"Accept": "application/json"},
                ) as client:
                    resp = await client.get(url, params=params)

                elapsed_ms = round((time.monotonic() - started) * 1000)
                logger.info(
                    f"[portal:response] req_id={req_id} status={resp.status_code} "
                    f"attempt={attempt} ms={elapsed_ms}"
                )

                if resp.is_success:
                    try:
                        return resp.json()
                    except ValueError as exc:
                        raise UpstreamRejected(
                            "Portal returned an unreadable body.",
                            code="INVALID_JSON",
                            status=resp.status_code,
                            details={"url": url, "body_len": len(resp.content)},
                        ) from exc

                last_error = UpstreamRejected(
                    f"Portal request failed with HTTP {resp.status_code}.",
                    code="HTTP_ERROR",
                    status=resp.status_code,
                    details={"url": url, "body_len": len(resp.content)},
                )
                logger.warning(
                    f"[portal:not_ok] req_id={req_id} status={resp.status_code} "
                    f"body_len={len(resp.content)}"
                )

            except httpx.TimeoutException as exc:
                last_error = UpstreamUnreachable(
                    "Portal request timed out.",
                    code="TIMEOUT",
                    details={"url": url, "error": str(exc)},
                )
                logger.warning(f"[portal:timeout] req_id={req_id} attempt={attempt} url={url}")

            except httpx.TransportError as exc:
                last_error = UpstreamUnreachable(
                    "Portal request failed due to a network error.",
                    code="NETWORK_ERROR",
                    details={"url": url, "error": str(exc)},
                )
                logger.warning(f"[portal:network_error] req_id={req_id} attempt={attempt} error={exc}")

            if attempt < attempts:
                await self._sleep(backoff)

        raise last_error

    async def fetch_latest(self, req_id: str = "") -> List[Dict[str, Any]]:
        """Full refresh of the latest customers listing."""
        payload = await self._get(
            self.latest_url,
            timeout=FULL_REFRESH_TIMEOUT,
            attempts=FULL_REFRESH_ATTEMPTS,
            backoff=FULL_REFRESH_BACKOFF,
            req_id=req_id,
        )
        return unwrap_payload(payload)

    async def warm_latest(self, req_id: str = "") -> List[Dict[str, Any]]:
        """Opportunistic listing fetch: one attempt, short timeouts."""
        payload = await self._get(
            self.latest_url,
            timeout=WARM_TIMEOUT,
            attempts=1,
            backoff=0,
            req_id=req_id,
        )
        return unwrap_payload(payload)

    async def fetch_one(self, legacy_customer_id: int, req_id: str = "") -> List[Dict[str, Any]]:
        """Latest inspection snapshot for one legacy customer."""
        payload = await self._get(
            self.refresh_url,
            timeout=SINGLE_CUSTOMER_TIMEOUT,
            attempts=SINGLE_CUSTOMER_ATTEMPTS,
            backoff=SINGLE_CUSTOMER_BACKOFF,
            req_id=req_id,
            params={"legacy_customer_id": legacy_customer_id},
        )
        return unwrap_payload(payload)


_client: Optional[PortalClient] = None


def get_portal_client() -> PortalClient:
    """Return the shared PortalClient, creating it on first use."""
    global _client
    if _client is None:
        _client = PortalClient()
    return _client


def set_portal_client(client: Optional[PortalClient]) -> None:
    """Inject a client for testing."""
    global _client
    _client = client
