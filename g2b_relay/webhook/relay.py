"""Webhook relay: delivers procurement datasets to the configured endpoint.

Each send is a single POST with bearer auth and a fixed timeout. There is
no retry: failures are reported through ``RelayResult`` and logged, never
raised, so callers can report a partial result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

from g2b_relay.errors import ConfigurationError
from g2b_relay.models import (
    DataKind,
    Dataset,
    DeliveryEvent,
    DeliveryEventType,
    RelayMetadata,
    WebhookPayload,
)
from g2b_relay.webhook.models import RelayResult

if TYPE_CHECKING:
    from g2b_relay.audit.delivery_log import DeliveryLog
    from g2b_relay.config import Settings

logger = logging.getLogger(__name__)

PAYLOAD_SOURCE = "G2B_API"
TEST_PAYLOAD_SOURCE = "G2B_API_TEST"
USER_AGENT = "G2B-Webhook-Service/1.0"

_MAX_LOGGED_BODY = 500


def _utc_now() -> datetime:
    return datetime.now(UTC)


class WebhookRelay:
    """POSTs dataset envelopes to a single webhook URL."""

    def __init__(
        self,
        url: str | None,
        api_key: str = "",
        timeout: float = 30.0,
        test_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        delivery_log: DeliveryLog | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not url:
            raise ConfigurationError("WEBHOOK_URL is not configured")
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._test_timeout = test_timeout
        self._transport = transport
        self._delivery_log = delivery_log
        self._clock = clock or _utc_now

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        delivery_log: DeliveryLog | None = None,
    ) -> WebhookRelay:
        return cls(
            url=settings.webhook_url,
            api_key=settings.webhook_api_key,
            timeout=settings.webhook_timeout,
            test_timeout=settings.webhook_test_timeout,
            transport=transport,
            delivery_log=delivery_log,
        )

    @property
    def url(self) -> str:
        return self._url

    def build_payload(self, data: Any, metadata: dict[str, Any] | None) -> WebhookPayload:
        return WebhookPayload(
            timestamp=self._clock().isoformat(),
            source=PAYLOAD_SOURCE,
            data=data,
            metadata=metadata,
        )

    async def send(self, data: Any, metadata: dict[str, Any] | None = None) -> RelayResult:
        """Deliver ``data`` with ``metadata``; returns a failed result instead of raising."""
        try:
            body = self.build_payload(data, metadata).model_dump(mode="json")
        except (TypeError, ValueError) as exc:
            # PydanticSerializationError is a ValueError
            result = RelayResult(
                success=False, reason=f"payload not serializable: {type(exc).__name__}: {exc}",
            )
        else:
            result = await self._post(body, self._timeout)
        if result.success:
            logger.info("Webhook delivery succeeded: HTTP %s", result.status_code)
        else:
            logger.error(
                "Webhook delivery failed: %s (status=%s, body=%s)",
                result.reason, result.status_code, result.response_body,
            )
        kind = metadata.get("type") if isinstance(metadata, dict) else None
        await self._record(
            DeliveryEventType.RELAY_SUCCESS if result.success else DeliveryEventType.RELAY_FAILURE,
            result,
            kind=kind if isinstance(kind, str) else None,
        )
        return result

    async def send_dataset(self, kind: DataKind, dataset: Dataset) -> RelayResult:
        metadata = RelayMetadata(
            type=kind.value,
            totalCount=dataset.totalCount,
            pageNo=dataset.pageNo,
            numOfRows=dataset.numOfRows,
        )
        return await self.send(dataset.model_dump(mode="json"), metadata.model_dump())

    async def test_connection(self) -> RelayResult:
        """Send a fixed diagnostic payload using the shorter test timeout."""
        now = self._clock().isoformat()
        payload = {
            "timestamp": now,
            "source": TEST_PAYLOAD_SOURCE,
            "message": "Webhook 연결 테스트",
            "data": {"test": True, "timestamp": now},
        }
        result = await self._post(payload, self._test_timeout)
        if result.success:
            logger.info("Webhook connection test succeeded: HTTP %s", result.status_code)
        else:
            logger.error("Webhook connection test failed: %s", result.reason)
        await self._record(DeliveryEventType.CONNECTION_TEST, result)
        return result

    async def _post(self, body: dict[str, Any], timeout: float) -> RelayResult:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
            "User-Agent": USER_AGENT,
        }
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    self._url, json=body, headers=headers, timeout=timeout,
                )
        except httpx.TimeoutException:
            return RelayResult(success=False, reason=f"timed out after {timeout:g}s")
        except httpx.HTTPError as exc:
            return RelayResult(success=False, reason=f"{type(exc).__name__}: {exc}")

        if resp.is_success:
            return RelayResult(success=True, status_code=resp.status_code)
        return RelayResult(
            success=False,
            reason=f"HTTP {resp.status_code}",
            status_code=resp.status_code,
            response_body=resp.text[:_MAX_LOGGED_BODY],
        )

    async def _record(
        self,
        event_type: DeliveryEventType,
        result: RelayResult,
        kind: str | None = None,
    ) -> None:
        if not self._delivery_log:
            return
        event = DeliveryEvent(
            event_type=event_type,
            kind=kind,
            success=result.success,
            details={
                "status_code": result.status_code,
                "reason": result.reason,
            },
        )
        try:
            await asyncio.to_thread(self._delivery_log.log, event)
        except OSError:
            logger.exception("Failed to write delivery log entry")
