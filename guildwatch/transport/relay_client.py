"""HTTP relay from an Observer to a remote Notifier.

Each record is posted once. Timeouts and transport errors become failed
results on the Observer side; nothing is retried.
"""

from __future__ import annotations

from typing import Optional

import httpx

from guildwatch.constants import DEFAULT_RELAY_TIMEOUT_S, RELAY_PATH
from guildwatch.core.errors import DeliveryFailure, RelayTimeout
from guildwatch.core.models import DeliveryResult, DeliveryStatus, NotificationRecord
from guildwatch.logging_config import get_logger

logger = get_logger(__name__)


class RemoteRelay:
    """Delivery strategy that posts records to ``{base_url}/send-notification``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = DEFAULT_RELAY_TIMEOUT_S,
        label: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.label = label
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def describe(self) -> str:
        return f"relay ({self.base_url})"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_s,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def dispatch(self, record: NotificationRecord) -> DeliveryResult:
        try:
            response = await self._get_client().post(RELAY_PATH, json=record.to_wire())
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            error = RelayTimeout(f"Notifier did not answer within {self.timeout_s:.1f}s")
            error.__cause__ = exc
            logger.error("Failed to notify Notifier: %s", error, agent=self.label, user=record.username)
            return DeliveryResult.failure(error)
        except httpx.HTTPStatusError as exc:
            error = DeliveryFailure(f"Notifier rejected notification (HTTP {exc.response.status_code})")
            error.__cause__ = exc
            logger.error("Failed to notify Notifier: %s", error, agent=self.label, user=record.username)
            return DeliveryResult.failure(error)
        except (httpx.HTTPError, ValueError) as exc:
            error = DeliveryFailure(f"Relay call failed: {exc}")
            error.__cause__ = exc
            logger.error("Failed to notify Notifier: %s", error, agent=self.label, user=record.username)
            return DeliveryResult.failure(error)

        return self._parse_response(payload, record)

    def _parse_response(self, payload: object, record: NotificationRecord) -> DeliveryResult:
        if not isinstance(payload, dict):
            return DeliveryResult.failure(DeliveryFailure(f"Unexpected relay response: {payload!r}"))

        message = str(payload.get("message", ""))
        try:
            status = DeliveryStatus(payload.get("status"))
        except ValueError:
            return DeliveryResult.failure(DeliveryFailure(f"Unknown relay status: {payload.get('status')!r}"))

        if status is DeliveryStatus.SUCCESS:
            logger.info("Sent notification to Notifier", agent=self.label, user=record.username)
            return DeliveryResult.success(message or "Notification sent")
        if status is DeliveryStatus.QUEUED:
            logger.info("Notifier queued notification", agent=self.label, user=record.username)
            return DeliveryResult.pending(message or "Notification queued")

        logger.error("Notifier failed to deliver: %s", message, agent=self.label, user=record.username)
        return DeliveryResult.failure(DeliveryFailure(message or "Notifier reported an error"))
