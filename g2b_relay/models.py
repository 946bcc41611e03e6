"""Shared Pydantic data models for the G2B relay service.

Record field names follow the procurement OpenAPI wire names so that live
and mock records serialize identically.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# --- Enums ---


class DataSource(str, Enum):
    LIVE = "live"
    MOCK = "mock"


class DataKind(str, Enum):
    """Dataset kinds relayed downstream; the value is the metadata type tag."""

    BID_NOTICE = "bid_notice"
    PRE_NOTICE = "pre_notice"
    CONTRACT = "contract_status"


class DeliveryEventType(str, Enum):
    FETCH_SUCCESS = "fetch_success"
    FETCH_FALLBACK = "fetch_fallback"
    RELAY_SUCCESS = "relay_success"
    RELAY_FAILURE = "relay_failure"
    CONNECTION_TEST = "connection_test"


# --- Procurement records ---

_RECORD_CONFIG = ConfigDict(frozen=True, extra="allow", coerce_numbers_to_str=True)


class BidRecord(BaseModel):
    """A single tender notice (입찰공고)."""

    model_config = _RECORD_CONFIG

    bidNtceNo: str
    bidNtceNm: str = ""
    dminsttNm: str = ""
    bidMethdNm: str = Field(
        default="", validation_alias=AliasChoices("bidMethdNm", "cntrctCnclsMthdNm"),
    )
    presmptPrce: str = ""
    bidNtceDt: str = ""
    opengDt: str = ""
    bidwinnrNm: str | None = None
    bidwinnrPrce: str | None = None
    bidNtceUrl: str | None = Field(
        default=None, validation_alias=AliasChoices("bidNtceUrl", "bidNtceDtlUrl"),
    )
    dminsttUrl: str | None = None


class ContractRecord(BaseModel):
    """An awarded contract (계약현황)."""

    model_config = _RECORD_CONFIG

    cntrctNo: str = Field(validation_alias=AliasChoices("cntrctNo", "untyCntrctNo"))
    cntrctNm: str = ""
    dminsttNm: str = Field(
        default="", validation_alias=AliasChoices("dminsttNm", "cntrctInsttNm"),
    )
    cntrctMthdNm: str = Field(
        default="", validation_alias=AliasChoices("cntrctMthdNm", "cntrctCnclsMthdNm"),
    )
    cntrctPrce: str = Field(
        default="", validation_alias=AliasChoices("cntrctPrce", "thtmCntrctAmt", "totCntrctAmt"),
    )
    cntrctDt: str = Field(
        default="", validation_alias=AliasChoices("cntrctDt", "cntrctCnclsDate"),
    )
    cntrctUrl: str | None = Field(
        default=None, validation_alias=AliasChoices("cntrctUrl", "cntrctDtlInfoUrl"),
    )


class PreNoticeRecord(BaseModel):
    """An advance notice (사전공고) preceding a full bid notice."""

    model_config = _RECORD_CONFIG

    preBidNtceNo: str = Field(validation_alias=AliasChoices("preBidNtceNo", "bfSpecRgstNo"))
    preBidNtceNm: str = Field(
        default="", validation_alias=AliasChoices("preBidNtceNm", "prdctClsfcNoNm"),
    )
    dminsttNm: str = Field(
        default="", validation_alias=AliasChoices("dminsttNm", "rlDminsttNm", "orderInsttNm"),
    )
    preBidNtceDt: str = Field(
        default="", validation_alias=AliasChoices("preBidNtceDt", "rgstDt"),
    )
    presmptPrce: str | None = Field(
        default=None, validation_alias=AliasChoices("presmptPrce", "asignBdgtAmt"),
    )
    preBidNtceUrl: str | None = None


# --- API envelope ---

T = TypeVar("T", bound=BaseModel)


class ApiHeader(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    resultCode: str
    resultMsg: str = ""


class ApiBody(BaseModel, Generic[T]):
    model_config = ConfigDict(frozen=True)

    items: list[T] = Field(default_factory=list)
    numOfRows: int = 0
    pageNo: int = 1
    totalCount: int = 0


class ApiEnvelope(BaseModel, Generic[T]):
    """The procurement API response wrapper (header + paged body)."""

    model_config = ConfigDict(frozen=True)

    header: ApiHeader
    body: ApiBody[T]

    @property
    def is_success(self) -> bool:
        return self.header.resultCode == "00"

    @classmethod
    def build(
        cls,
        item_model: type[T],
        items: list[T],
        page_no: int,
        num_of_rows: int,
        total_count: int,
    ) -> ApiEnvelope[T]:
        """Build a successful envelope around already-typed items."""
        return ApiEnvelope[item_model](  # type: ignore[valid-type]
            header=ApiHeader(resultCode="00", resultMsg="NORMAL SERVICE"),
            body=ApiBody[item_model](  # type: ignore[valid-type]
                items=items,
                numOfRows=num_of_rows,
                pageNo=page_no,
                totalCount=total_count,
            ),
        )

    @classmethod
    def from_upstream(cls, payload: Any, item_model: type[T]) -> ApiEnvelope[T]:
        """Parse the raw ``{"response": {"header", "body"}}`` document.

        Raises ``ValueError`` (or pydantic's ``ValidationError``) when the
        document does not have the envelope shape.
        """
        response = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(response, dict) or not isinstance(response.get("header"), dict):
            raise ValueError("response envelope missing")
        body = response.get("body") or {}
        if not isinstance(body, dict):
            raise ValueError("response body is not an object")
        items = normalize_items(body.get("items"))
        return ApiEnvelope[item_model].model_validate({  # type: ignore[valid-type]
            "header": response["header"],
            "body": {
                "items": items,
                "numOfRows": body.get("numOfRows") or len(items),
                "pageNo": body.get("pageNo") or 1,
                "totalCount": body.get("totalCount") or len(items),
            },
        })


def normalize_items(raw: Any) -> list[dict[str, Any]]:
    """Flatten the upstream ``items`` shapes into a list of dicts.

    The API returns a list, ``{"item": [...]}``, ``{"item": {...}}`` for a
    single row, or an empty string when nothing matched.
    """
    if not raw:
        return []
    if isinstance(raw, dict):
        inner = raw.get("item", raw)
        if isinstance(inner, dict):
            return [inner]
        return [i for i in inner or [] if isinstance(i, dict)]
    if isinstance(raw, list):
        return [i for i in raw if isinstance(i, dict)]
    return []


# --- Search parameters ---


class BidSearchParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    pageNo: int = Field(default=1, ge=1)
    numOfRows: int = Field(default=10, ge=1)
    bidNtceNm: str | None = None
    dminsttNm: str | None = None
    bidMethdNm: str | None = None
    fromDt: str | None = None
    toDt: str | None = None

    def to_query(self) -> dict[str, Any]:
        return _to_query(self.model_dump(exclude_none=True))


class ContractSearchParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    pageNo: int = Field(default=1, ge=1)
    numOfRows: int = Field(default=10, ge=1)
    cntrctNm: str | None = None
    dminsttNm: str | None = None
    fromDt: str | None = None
    toDt: str | None = None

    def to_query(self) -> dict[str, Any]:
        return _to_query(self.model_dump(exclude_none=True))


def _to_query(params: dict[str, Any]) -> dict[str, Any]:
    """Rename the date filters to the upstream inquiry-period parameters."""
    from_dt = params.pop("fromDt", None)
    to_dt = params.pop("toDt", None)
    if from_dt or to_dt:
        params["inqryDiv"] = "1"
    if from_dt:
        params["inqryBgnDt"] = from_dt
    if to_dt:
        params["inqryEndDt"] = to_dt
    return params


# --- Relay models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Dataset(BaseModel):
    """One page of records in the shape sent downstream."""

    model_config = ConfigDict(frozen=True)

    totalCount: int
    pageNo: int
    numOfRows: int
    items: list[dict[str, Any]]

    @classmethod
    def from_envelope(cls, envelope: ApiEnvelope[Any]) -> Dataset:
        body = envelope.body
        return cls(
            totalCount=body.totalCount,
            pageNo=body.pageNo,
            numOfRows=body.numOfRows,
            items=[item.model_dump(exclude_none=True) for item in body.items],
        )


class RelayMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    totalCount: int | None = None
    pageNo: int | None = None
    numOfRows: int | None = None


class WebhookPayload(BaseModel):
    """Envelope POSTed to the webhook; built fresh for every send."""

    timestamp: str = Field(default_factory=_now_iso)
    source: str
    data: Any
    metadata: dict[str, Any] | None = None


class DeliveryEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: DeliveryEventType
    kind: str | None = None
    data_source: str | None = None
    success: bool
    details: dict[str, object] | None = None
