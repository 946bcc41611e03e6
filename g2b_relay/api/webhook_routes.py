"""Webhook relay endpoints.

Provides endpoints for:
- Testing webhook connectivity
- Fetching one dataset kind and relaying it
- Relaying every kind in one call
- Reading recent delivery log events
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from g2b_relay.models import DataKind

if TYPE_CHECKING:
    from g2b_relay.audit.delivery_log import DeliveryLog
    from g2b_relay.pipeline.orchestrator import RelayOrchestrator

logger = logging.getLogger(__name__)


def create_webhook_router(
    orchestrator: RelayOrchestrator,
    delivery_log: DeliveryLog | None = None,
) -> APIRouter:
    """Create the webhook relay API router."""
    router = APIRouter(prefix="/webhook")

    async def _relay(
        kind: DataKind,
        page_no: int,
        num_of_rows: int,
        from_dt: str | None,
        to_dt: str | None,
    ) -> JSONResponse:
        outcome = await orchestrator.relay_kind(kind, page_no, num_of_rows, from_dt, to_dt)
        logger.info(
            "Relayed %s page %d (%s, webhook=%s)",
            kind.value, page_no, outcome.dataSource, outcome.webhookSuccess,
        )
        return JSONResponse(outcome.model_dump())

    @router.get("/test")
    async def test_webhook() -> JSONResponse:
        outcome = await orchestrator.test_webhook()
        return JSONResponse(
            outcome.model_dump(),
            status_code=200 if outcome.success else 500,
        )

    @router.post("/bid-notice")
    async def send_bid_notice(
        pageNo: int = Query(1, ge=1),
        numOfRows: int = Query(10, ge=1),
        fromDt: str | None = None,
        toDt: str | None = None,
    ) -> JSONResponse:
        return await _relay(DataKind.BID_NOTICE, pageNo, numOfRows, fromDt, toDt)

    @router.post("/pre-notice")
    async def send_pre_notice(
        pageNo: int = Query(1, ge=1),
        numOfRows: int = Query(10, ge=1),
        fromDt: str | None = None,
        toDt: str | None = None,
    ) -> JSONResponse:
        return await _relay(DataKind.PRE_NOTICE, pageNo, numOfRows, fromDt, toDt)

    @router.post("/contract")
    async def send_contract(
        pageNo: int = Query(1, ge=1),
        numOfRows: int = Query(10, ge=1),
        fromDt: str | None = None,
        toDt: str | None = None,
    ) -> JSONResponse:
        return await _relay(DataKind.CONTRACT, pageNo, numOfRows, fromDt, toDt)

    @router.post("/all")
    async def send_all() -> JSONResponse:
        outcome = await orchestrator.relay_all()
        return JSONResponse(outcome.model_dump())

    @router.get("/logs")
    async def delivery_logs(limit: int = Query(50, ge=1, le=1000)) -> JSONResponse:
        if delivery_log is None:
            return JSONResponse(
                {"success": False, "message": "전송 로그가 설정되지 않았습니다."},
                status_code=404,
            )
        events = delivery_log.recent(limit)
        return JSONResponse({
            "success": True,
            "events": [e.model_dump(mode="json") for e in events],
        })

    return router
