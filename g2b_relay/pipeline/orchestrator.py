"""Fetch → fallback → relay orchestration.

For one data kind per call:
1. Fetch the requested page through the G2B client
2. On any fetch error substitute mock data (no retry)
3. Relay the dataset to the webhook
4. Summarize counts and relay outcome for the caller
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel

from g2b_relay.errors import ExternalAPIError
from g2b_relay.g2b import mock_data
from g2b_relay.models import (
    BidSearchParams,
    ContractSearchParams,
    DataKind,
    Dataset,
    DeliveryEvent,
    DeliveryEventType,
)

if TYPE_CHECKING:
    from g2b_relay.audit.delivery_log import DeliveryLog
    from g2b_relay.g2b.client import G2BClient
    from g2b_relay.webhook.relay import WebhookRelay

logger = logging.getLogger(__name__)

KIND_LABELS = {
    DataKind.BID_NOTICE: "입찰공고",
    DataKind.PRE_NOTICE: "사전공고",
    DataKind.CONTRACT: "계약현황",
}

# Keys of the "send all" results map, in relay order.
RESULT_KEYS = {
    DataKind.BID_NOTICE: "bidNotice",
    DataKind.PRE_NOTICE: "preNotice",
    DataKind.CONTRACT: "contract",
}

SOURCE_LIVE = "live"
SOURCE_MOCK = "mock"
SOURCE_FALLBACK = "fallback"


def _utc_now() -> datetime:
    return datetime.now(UTC)


# --- Outcomes ---


class DatasetSummary(BaseModel):
    totalCount: int
    pageNo: int
    numOfRows: int
    items: int


class RelayOutcome(BaseModel):
    success: bool
    message: str
    data: DatasetSummary
    webhookSuccess: bool
    dataSource: str
    timestamp: str


class RelayAllOutcome(BaseModel):
    success: bool
    message: str
    results: dict[str, bool]
    timestamp: str


class ConnectionTestOutcome(BaseModel):
    success: bool
    message: str
    timestamp: str


# --- Orchestrator ---


class RelayOrchestrator:
    """Coordinates the G2B client and the webhook relay for each data kind."""

    def __init__(
        self,
        client: G2BClient,
        relay: WebhookRelay,
        clock: Callable[[], datetime] | None = None,
        delivery_log: DeliveryLog | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._relay = relay
        self._clock = clock or _utc_now
        self._delivery_log = delivery_log
        self._rng = rng

    async def relay_kind(
        self,
        kind: DataKind,
        page_no: int = 1,
        num_of_rows: int = 10,
        from_dt: str | None = None,
        to_dt: str | None = None,
    ) -> RelayOutcome:
        """Fetch one page of ``kind`` (falling back to mock data) and relay it."""
        failure: dict[str, object] | None = None
        try:
            dataset = await self._fetch(kind, page_no, num_of_rows, from_dt, to_dt)
        except ExternalAPIError as exc:
            logger.warning(
                "G2B %s fetch failed, using mock data: %s %s",
                kind.value, exc.message, exc.detail,
            )
            failure = {"error": exc.message, **exc.detail}
        except Exception as exc:
            logger.exception("G2B %s fetch raised, using mock data", kind.value)
            failure = {"error": f"{type(exc).__name__}: {exc}"}

        if failure is None:
            source = SOURCE_MOCK if self._client.is_using_mock_data else SOURCE_LIVE
            await self._record(DeliveryEventType.FETCH_SUCCESS, kind, source, True, None)
        else:
            dataset = mock_data.mock_dataset(kind, page_no, num_of_rows, self._rng)
            source = SOURCE_FALLBACK
            await self._record(DeliveryEventType.FETCH_FALLBACK, kind, source, False, failure)

        result = await self._relay.send_dataset(kind, dataset)
        label = KIND_LABELS[kind]
        if result:
            message = f"{label} 데이터가 webhook으로 성공적으로 전송되었습니다."
        else:
            message = f"{label} 데이터가 처리되었으나 webhook 전송에 실패했습니다."

        return RelayOutcome(
            success=True,
            message=message,
            data=DatasetSummary(
                totalCount=dataset.totalCount,
                pageNo=dataset.pageNo,
                numOfRows=dataset.numOfRows,
                items=len(dataset.items),
            ),
            webhookSuccess=result.success,
            dataSource=source,
            timestamp=self._clock().isoformat(),
        )

    async def relay_all(self) -> RelayAllOutcome:
        """Relay mock datasets of every kind; one failure never stops the others."""
        results = {key: False for key in RESULT_KEYS.values()}
        for kind, key in RESULT_KEYS.items():
            try:
                dataset = mock_data.mock_dataset(kind, rng=self._rng)
                result = await self._relay.send_dataset(kind, dataset)
                results[key] = result.success
            except Exception:
                logger.exception("Relaying %s dataset failed", kind.value)

        success_count = sum(results.values())
        return RelayAllOutcome(
            success=success_count > 0,
            message=f"{success_count}/{len(results)} 개의 데이터가 webhook으로 전송되었습니다.",
            results=results,
            timestamp=self._clock().isoformat(),
        )

    async def test_webhook(self) -> ConnectionTestOutcome:
        result = await self._relay.test_connection()
        message = (
            "Webhook 연결이 정상입니다." if result else "Webhook 연결에 실패했습니다."
        )
        return ConnectionTestOutcome(
            success=result.success,
            message=message,
            timestamp=self._clock().isoformat(),
        )

    async def _fetch(
        self,
        kind: DataKind,
        page_no: int,
        num_of_rows: int,
        from_dt: str | None,
        to_dt: str | None,
    ) -> Dataset:
        if kind is DataKind.CONTRACT:
            envelope = await self._client.get_contract_list(ContractSearchParams(
                pageNo=page_no, numOfRows=num_of_rows, fromDt=from_dt, toDt=to_dt,
            ))
        else:
            params = BidSearchParams(
                pageNo=page_no, numOfRows=num_of_rows, fromDt=from_dt, toDt=to_dt,
            )
            if kind is DataKind.PRE_NOTICE:
                envelope = await self._client.get_pre_notice_list(params)
            else:
                envelope = await self._client.get_bid_list(params)
        return Dataset.from_envelope(envelope)

    async def _record(
        self,
        event_type: DeliveryEventType,
        kind: DataKind,
        source: str,
        success: bool,
        details: dict[str, object] | None,
    ) -> None:
        if not self._delivery_log:
            return
        event = DeliveryEvent(
            event_type=event_type,
            kind=kind.value,
            data_source=source,
            success=success,
            details=details,
        )
        try:
            await asyncio.to_thread(self._delivery_log.log, event)
        except OSError:
            logger.exception("Failed to write delivery log entry")
