import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from .errors import RelayFailed
from .models import RelayReceipt, TaskRecord

logger = logging.getLogger("task_relay.relay")


class RelayClient:
    """Delivers task records to the n8n webhook as JSON."""

    def __init__(
        self,
        webhook_url: Optional[str],
        timeout: Optional[float] = None,
        max_attempts: int = 1,
        backoff_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._transport = transport

    async def send(self, record: TaskRecord) -> RelayReceipt:
        if not self.webhook_url:
            raise RelayFailed("N8N_WEBHOOK_URL is not configured")

        payload = record.to_payload()
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(initial=self.backoff_seconds, max=60),
            retry=retry_if_exception_type(RelayFailed),
        ):
            with attempt:
                n = attempt.retry_state.attempt_number
                if n > 1:
                    logger.info("retrying relay task_id=%s attempt=%d", record.id, n)
                status_code = await self._post(payload)
        return RelayReceipt(task_id=record.id, status_code=status_code)

    async def _post(self, payload: Dict[str, Any]) -> int:
        headers = {"Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(self.webhook_url, json=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("relay transport error task_id=%s: %r", payload.get("id"), e)
            raise RelayFailed(str(e) or f"n8n request failed: {type(e).__name__}") from e

        if not r.is_success:
            logger.warning("relay rejected task_id=%s status=%s", payload.get("id"), r.status_code)
            raise RelayFailed(f"n8n error: {r.status_code}", status_code=r.status_code)
        return r.status_code
