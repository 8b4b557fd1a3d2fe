"""
Client of the external smart talent matching function.

The matching itself runs remotely; this client only shapes the request and
classifies failures.
"""

from typing import Any, Dict, Optional

import httpx

from framework.config import settings
from framework.exceptions.handler import BackendError, BackendTimeoutError, BusinessException
from framework.logging.logger import get_logger

logger = get_logger("smart_match")


class SmartMatchClient:
    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.AI_MATCHING_URL
        self.api_key = api_key or settings.AI_MATCHING_API_KEY
        self.timeout = timeout or settings.AI_REQUEST_TIMEOUT_SECONDS
        self._client: Optional[httpx.AsyncClient] = None
        self._transport = transport

    async def start(self) -> None:
        """Start hook for AISystemInitializer."""
        if not self.url:
            raise BusinessException("AI_MATCHING_URL is not configured", code=500)
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers, transport=self._transport)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def match(self, candidate: Dict[str, Any], job: Dict[str, Any], tenant_id: Optional[int] = None) -> Dict[str, Any]:
        """Score a candidate against a job; returns the function's JSON body."""
        await self.start()
        payload = {"candidate": candidate, "job": job, "tenant_id": tenant_id}
        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise BackendTimeoutError("Smart matching timed out", detail=str(e)) from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Smart matching returned {e.response.status_code}")
            raise BackendError(
                f"Smart matching failed with status {e.response.status_code}",
                detail=e.response.text[:500],
            ) from e
        except httpx.HTTPError as e:
            raise BackendError("Smart matching unreachable", detail=str(e)) from e

        try:
            result = response.json()
        except ValueError as e:
            raise BackendError("Smart matching returned an invalid body", detail=response.text[:500]) from e
        if not isinstance(result, dict):
            raise BackendError("Smart matching returned an invalid body", detail=response.text[:500])
        logger.info(f"Smart match scored {result.get('score')} for tenant {tenant_id}")
        return result
