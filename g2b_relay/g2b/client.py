"""Async client for the public procurement (나라장터) OpenAPI.

The data source is fixed at construction. In mock mode no request ever
leaves the process; in live mode every failure surfaces as
``ExternalAPIError`` so callers have a single type to recover from.
"""

from __future__ import annotations

import logging
import random
import re
from typing import Any, TypeVar
from urllib.parse import unquote

import httpx
from pydantic import BaseModel, ValidationError

from g2b_relay.config import Settings
from g2b_relay.errors import ConfigurationError, ExternalAPIError
from g2b_relay.g2b import mock_data
from g2b_relay.models import (
    ApiEnvelope,
    BidRecord,
    BidSearchParams,
    ContractRecord,
    ContractSearchParams,
    DataKind,
    DataSource,
    PreNoticeRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

SERVICE_NAME = "G2B API"

BID_LIST_OPERATION = "getBidPblancListInfoServc"
BID_DETAIL_OPERATION = "getBidPblancDtlInfoServc"
PRE_NOTICE_LIST_OPERATION = "getPreBidPblancListInfoServc"
CONTRACT_LIST_OPERATION = "getCntrctInfoServc"
CONTRACT_DETAIL_OPERATION = "getCntrctDetailInfoServc"

_HTTP_STATUS_MESSAGES = {
    400: "bad request",
    401: "authentication failed",
    403: "access denied",
    404: "API endpoint not found",
    429: "request quota exceeded",
    500: "upstream internal server error",
    502: "bad gateway",
    503: "service temporarily unavailable",
}

_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "temporary failure in name resolution",
)

# data.go.kr answers key problems with an XML document even when type=json.
_XML_REASON = re.compile(r"<returnReasonCode>(.*?)</returnReasonCode>", re.S)
_XML_AUTH_MSG = re.compile(r"<returnAuthMsg>(.*?)</returnAuthMsg>", re.S)


def prepare_service_key(raw: str | None) -> str | None:
    """Return the decoded form of a data.go.kr service key.

    Keys are issued both URL-encoded and decoded. httpx encodes query
    values itself, so an already-encoded key is decoded once here.
    """
    if not raw:
        return None
    key = raw.strip()
    if "%" in key:
        key = unquote(key)
    return key or None


class G2BClient:
    """Fetches bid, pre-notice and contract pages from the procurement API."""

    def __init__(
        self,
        settings: Settings,
        data_source: DataSource | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._data_source = data_source or settings.data_source
        self._service_key = prepare_service_key(settings.service_key)
        if self._data_source is DataSource.LIVE and not self._service_key:
            raise ConfigurationError("G2B service key is required for live data")
        self._transport = transport
        self._rng = rng

    @property
    def data_source(self) -> DataSource:
        return self._data_source

    @property
    def is_using_mock_data(self) -> bool:
        return self._data_source is DataSource.MOCK

    # --- bid notices ---

    async def get_bid_list(
        self, params: BidSearchParams | None = None,
    ) -> ApiEnvelope[BidRecord]:
        params = params or BidSearchParams()
        if self.is_using_mock_data:
            logger.debug("Serving mock bid list page %d", params.pageNo)
            return mock_data.mock_page(
                DataKind.BID_NOTICE, params.pageNo, params.numOfRows, self._rng,
            )
        return await self._request(
            self._settings.bid_base_url, BID_LIST_OPERATION, params.to_query(), BidRecord,
        )

    async def get_bid_detail(self, bid_ntce_no: str) -> ApiEnvelope[BidRecord]:
        if self.is_using_mock_data:
            bid = mock_data.generate_bids(1, self._rng)[0].model_copy(
                update={"bidNtceNo": bid_ntce_no},
            )
            return ApiEnvelope.build(BidRecord, [bid], 1, 1, 1)
        return await self._request(
            self._settings.bid_base_url,
            BID_DETAIL_OPERATION,
            {"bidNtceNo": bid_ntce_no, "inqryDiv": "2"},
            BidRecord,
        )

    async def search_bids_by_keyword(
        self, keyword: str, params: BidSearchParams | None = None,
    ) -> ApiEnvelope[BidRecord]:
        params = params or BidSearchParams()
        if self.is_using_mock_data:
            needle = keyword.lower()
            return self._filtered_mock_bids(
                lambda b: needle in b.bidNtceNm.lower() or needle in b.dminsttNm.lower(),
                params,
            )
        return await self.get_bid_list(params.model_copy(update={"bidNtceNm": keyword}))

    async def get_bids_by_institution(
        self, institution_name: str, params: BidSearchParams | None = None,
    ) -> ApiEnvelope[BidRecord]:
        params = params or BidSearchParams()
        if self.is_using_mock_data:
            needle = institution_name.lower()
            return self._filtered_mock_bids(lambda b: needle in b.dminsttNm.lower(), params)
        return await self.get_bid_list(
            params.model_copy(update={"dminsttNm": institution_name}),
        )

    async def get_bids_by_date_range(
        self, from_dt: str, to_dt: str, params: BidSearchParams | None = None,
    ) -> ApiEnvelope[BidRecord]:
        params = params or BidSearchParams()
        if self.is_using_mock_data:
            low, high = _date_key(from_dt), _date_key(to_dt)
            return self._filtered_mock_bids(
                lambda b: low <= _date_key(b.bidNtceDt) <= high, params,
            )
        return await self.get_bid_list(
            params.model_copy(update={"fromDt": from_dt, "toDt": to_dt}),
        )

    # --- pre-notices ---

    async def get_pre_notice_list(
        self, params: BidSearchParams | None = None,
    ) -> ApiEnvelope[PreNoticeRecord]:
        params = params or BidSearchParams()
        if self.is_using_mock_data:
            return mock_data.mock_page(
                DataKind.PRE_NOTICE, params.pageNo, params.numOfRows, self._rng,
            )
        return await self._request(
            self._settings.bid_base_url,
            PRE_NOTICE_LIST_OPERATION,
            params.to_query(),
            PreNoticeRecord,
        )

    # --- contracts ---

    async def get_contract_list(
        self, params: ContractSearchParams | None = None,
    ) -> ApiEnvelope[ContractRecord]:
        params = params or ContractSearchParams()
        if self.is_using_mock_data:
            return mock_data.mock_page(
                DataKind.CONTRACT, params.pageNo, params.numOfRows, self._rng,
            )
        return await self._request(
            self._settings.contract_base_url,
            CONTRACT_LIST_OPERATION,
            params.to_query(),
            ContractRecord,
        )

    async def get_contract_detail(self, cntrct_no: str) -> ApiEnvelope[ContractRecord]:
        if self.is_using_mock_data:
            contract = mock_data.generate_contracts(1, self._rng)[0].model_copy(
                update={"cntrctNo": cntrct_no},
            )
            return ApiEnvelope.build(ContractRecord, [contract], 1, 1, 1)
        return await self._request(
            self._settings.contract_base_url,
            CONTRACT_DETAIL_OPERATION,
            {"cntrctNo": cntrct_no},
            ContractRecord,
        )

    # --- health ---

    async def check_api_status(self) -> bool:
        """Health check; never raises."""
        if self.is_using_mock_data:
            return True
        try:
            await self.get_bid_list(BidSearchParams(pageNo=1, numOfRows=1))
        except ExternalAPIError as exc:
            logger.warning("G2B API status check failed: %s %s", exc.message, exc.detail)
            return False
        return True

    def get_config(self) -> dict[str, Any]:
        return {**self._settings.public_view(), "dataSource": self._data_source.value}

    # --- internals ---

    def _filtered_mock_bids(
        self, predicate: Any, params: BidSearchParams,
    ) -> ApiEnvelope[BidRecord]:
        total = mock_data.MOCK_TOTALS[DataKind.BID_NOTICE]
        matches = [b for b in mock_data.generate_bids(total, self._rng) if predicate(b)]
        return ApiEnvelope.build(
            BidRecord,
            mock_data.paginate(matches, params.pageNo, params.numOfRows),
            params.pageNo,
            params.numOfRows,
            len(matches),
        )

    async def _request(
        self,
        base_url: str,
        operation: str,
        params: dict[str, Any],
        item_model: type[T],
    ) -> ApiEnvelope[T]:
        url = f"{base_url.rstrip('/')}/{operation}"
        query = {**params, "serviceKey": self._service_key, "type": "json"}

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self._settings.api_timeout,
            ) as client:
                resp = await client.get(url, params=query)
        except httpx.TimeoutException as exc:
            raise _network_error("request timed out", exc) from exc
        except httpx.ConnectError as exc:
            reason = "DNS lookup failed" if _is_dns_failure(exc) else "connection refused"
            raise _network_error(reason, exc) from exc
        except httpx.TransportError as exc:
            raise _network_error("network error", exc) from exc
        except httpx.RequestError as exc:
            # Undecodable body, redirect loop
            raise _network_error("invalid response", exc) from exc

        if not resp.is_success:
            message = _HTTP_STATUS_MESSAGES.get(resp.status_code, "unknown error")
            logger.error("G2B API %s returned HTTP %d", operation, resp.status_code)
            raise ExternalAPIError(SERVICE_NAME, message, {
                "status": resp.status_code,
                "data": resp.text[:500],
            })

        try:
            envelope = ApiEnvelope.from_upstream(resp.json(), item_model)
        except (ValueError, ValidationError) as exc:
            raise _malformed_error(resp, exc) from exc

        if not envelope.is_success:
            logger.error(
                "G2B API %s result %s: %s",
                operation, envelope.header.resultCode, envelope.header.resultMsg,
            )
            raise ExternalAPIError(SERVICE_NAME, "result code indicates failure", {
                "resultCode": envelope.header.resultCode,
                "resultMsg": envelope.header.resultMsg,
                "status": resp.status_code,
            })
        return envelope


def _network_error(reason: str, exc: httpx.RequestError) -> ExternalAPIError:
    logger.error("G2B API %s: %s", reason, exc)
    return ExternalAPIError(SERVICE_NAME, reason, {
        "error": type(exc).__name__,
        "message": str(exc),
    })


def _malformed_error(resp: httpx.Response, exc: Exception) -> ExternalAPIError:
    text = resp.text
    detail: dict[str, object] = {"status": resp.status_code, "data": text[:500]}
    reason = _XML_REASON.search(text)
    auth_msg = _XML_AUTH_MSG.search(text)
    if reason:
        detail["returnReasonCode"] = reason.group(1).strip()
    if auth_msg:
        detail["returnAuthMsg"] = auth_msg.group(1).strip()
    logger.error("G2B API returned a malformed response: %s", exc)
    return ExternalAPIError(SERVICE_NAME, "malformed response", detail)


def _is_dns_failure(exc: httpx.ConnectError) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in _DNS_FAILURE_MARKERS)


def _date_key(value: str) -> str:
    """``2024-07-01``, ``20240701`` and ``202407010000`` all map to ``20240701``."""
    return re.sub(r"\D", "", value)[:8]
