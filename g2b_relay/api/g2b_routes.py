"""Read-only endpoints over the procurement API (status, bids, contracts)."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from g2b_relay.models import ApiEnvelope, BidSearchParams, ContractSearchParams

if TYPE_CHECKING:
    from g2b_relay.g2b.client import G2BClient


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def create_g2b_router(client: G2BClient) -> APIRouter:
    """Create the G2B data API router.

    ``ExternalAPIError`` raised by the client is turned into a 503 by the
    application-level handler.
    """
    router = APIRouter(prefix="/g2b")

    def _page(envelope: ApiEnvelope[Any], key: str, **extra: Any) -> JSONResponse:
        body = envelope.body
        return JSONResponse({
            "success": True,
            "data": {
                **extra,
                key: [item.model_dump(exclude_none=True) for item in body.items],
                "pagination": {
                    "pageNo": body.pageNo,
                    "numOfRows": body.numOfRows,
                    "totalCount": body.totalCount,
                },
                "isUsingMockData": client.is_using_mock_data,
            },
            "timestamp": _now_iso(),
        })

    def _single(envelope: ApiEnvelope[Any], key: str, label: str) -> JSONResponse:
        if not envelope.body.items:
            return JSONResponse(
                {
                    "success": False,
                    "error": {"code": "NOT_FOUND", "message": f"{label}을(를) 찾을 수 없습니다."},
                    "timestamp": _now_iso(),
                },
                status_code=404,
            )
        return JSONResponse({
            "success": True,
            "data": {
                key: envelope.body.items[0].model_dump(exclude_none=True),
                "isUsingMockData": client.is_using_mock_data,
            },
            "timestamp": _now_iso(),
        })

    @router.get("/status")
    async def status() -> JSONResponse:
        is_available = await client.check_api_status()
        return JSONResponse({
            "success": True,
            "data": {
                "isAvailable": is_available,
                "isUsingMockData": client.is_using_mock_data,
                "config": client.get_config(),
            },
            "timestamp": _now_iso(),
        })

    @router.get("/bids")
    async def bid_list(
        pageNo: int = Query(1, ge=1),
        numOfRows: int = Query(10, ge=1),
        bidNtceNm: str | None = None,
        dminsttNm: str | None = None,
        bidMethdNm: str | None = None,
        fromDt: str | None = None,
        toDt: str | None = None,
    ) -> JSONResponse:
        envelope = await client.get_bid_list(BidSearchParams(
            pageNo=pageNo,
            numOfRows=numOfRows,
            bidNtceNm=bidNtceNm,
            dminsttNm=dminsttNm,
            bidMethdNm=bidMethdNm,
            fromDt=fromDt,
            toDt=toDt,
        ))
        return _page(envelope, "bids")

    # Fixed-prefix routes are registered before /bids/{bidNtceNo}.
    @router.get("/bids/search/{keyword}")
    async def search_bids(
        keyword: str,
        pageNo: int = Query(1, ge=1),
        numOfRows: int = Query(10, ge=1),
    ) -> JSONResponse:
        params = BidSearchParams(pageNo=pageNo, numOfRows=numOfRows)
        envelope = await client.search_bids_by_keyword(keyword, params)
        return _page(envelope, "bids", keyword=keyword)

    @router.get("/bids/institution/{institutionName}")
    async def bids_by_institution(
        institutionName: str,
        pageNo: int = Query(1, ge=1),
        numOfRows: int = Query(10, ge=1),
    ) -> JSONResponse:
        params = BidSearchParams(pageNo=pageNo, numOfRows=numOfRows)
        envelope = await client.get_bids_by_institution(institutionName, params)
        return _page(envelope, "bids", institutionName=institutionName)

    @router.get("/bids/date-range/{fromDate}/{toDate}")
    async def bids_by_date_range(
        fromDate: str,
        toDate: str,
        pageNo: int = Query(1, ge=1),
        numOfRows: int = Query(10, ge=1),
    ) -> JSONResponse:
        params = BidSearchParams(pageNo=pageNo, numOfRows=numOfRows)
        envelope = await client.get_bids_by_date_range(fromDate, toDate, params)
        return _page(envelope, "bids", fromDate=fromDate, toDate=toDate)

    @router.get("/bids/{bidNtceNo}")
    async def bid_detail(bidNtceNo: str) -> JSONResponse:
        envelope = await client.get_bid_detail(bidNtceNo)
        return _single(envelope, "bid", "입찰공고")

    @router.get("/pre-notices")
    async def pre_notice_list(
        pageNo: int = Query(1, ge=1),
        numOfRows: int = Query(10, ge=1),
        fromDt: str | None = None,
        toDt: str | None = None,
    ) -> JSONResponse:
        envelope = await client.get_pre_notice_list(BidSearchParams(
            pageNo=pageNo, numOfRows=numOfRows, fromDt=fromDt, toDt=toDt,
        ))
        return _page(envelope, "preNotices")

    @router.get("/contracts")
    async def contract_list(
        pageNo: int = Query(1, ge=1),
        numOfRows: int = Query(10, ge=1),
        cntrctNm: str | None = None,
        dminsttNm: str | None = None,
        fromDt: str | None = None,
        toDt: str | None = None,
    ) -> JSONResponse:
        envelope = await client.get_contract_list(ContractSearchParams(
            pageNo=pageNo,
            numOfRows=numOfRows,
            cntrctNm=cntrctNm,
            dminsttNm=dminsttNm,
            fromDt=fromDt,
            toDt=toDt,
        ))
        return _page(envelope, "contracts")

    @router.get("/contracts/{cntrctNo}")
    async def contract_detail(cntrctNo: str) -> JSONResponse:
        envelope = await client.get_contract_detail(cntrctNo)
        return _single(envelope, "contract", "계약")

    return router
