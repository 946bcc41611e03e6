"""Tests for record, envelope and search parameter models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from g2b_relay.models import (
    ApiEnvelope,
    BidRecord,
    BidSearchParams,
    ContractRecord,
    ContractSearchParams,
    Dataset,
    PreNoticeRecord,
    WebhookPayload,
    normalize_items,
)
from tests.conftest import make_bid_item, make_upstream_payload


class TestRecords:
    def test_numeric_price_coerced_to_string(self) -> None:
        bid = BidRecord.model_validate(make_bid_item(presmptPrce=150000000))
        assert bid.presmptPrce == "150000000"

    def test_unknown_upstream_fields_kept(self) -> None:
        bid = BidRecord.model_validate(make_bid_item(ntceKindNm="등록공고"))
        assert bid.model_dump()["ntceKindNm"] == "등록공고"

    def test_bid_number_required(self) -> None:
        with pytest.raises(ValidationError):
            BidRecord.model_validate({"bidNtceNm": "no number"})

    def test_contract_upstream_aliases(self) -> None:
        contract = ContractRecord.model_validate({
            "untyCntrctNo": "R24TA0001",
            "cntrctNm": "유지관리 용역",
            "cntrctInsttNm": "통계청",
            "thtmCntrctAmt": "52000000",
            "cntrctCnclsDate": "2024-06-30",
        })
        assert contract.cntrctNo == "R24TA0001"
        assert contract.dminsttNm == "통계청"
        assert contract.cntrctPrce == "52000000"
        assert contract.cntrctDt == "2024-06-30"

    def test_pre_notice_upstream_aliases(self) -> None:
        notice = PreNoticeRecord.model_validate({
            "bfSpecRgstNo": "812345",
            "prdctClsfcNoNm": "서버",
            "rlDminsttNm": "조달청",
            "rgstDt": "2024-07-02",
            "asignBdgtAmt": 30000000,
        })
        assert notice.preBidNtceNo == "812345"
        assert notice.preBidNtceNm == "서버"
        assert notice.presmptPrce == "30000000"


class TestNormalizeItems:
    def test_list(self) -> None:
        assert normalize_items([{"a": 1}, {"b": 2}]) == [{"a": 1}, {"b": 2}]

    def test_item_list_wrapper(self) -> None:
        assert normalize_items({"item": [{"a": 1}]}) == [{"a": 1}]

    def test_single_item_wrapper(self) -> None:
        assert normalize_items({"item": {"a": 1}}) == [{"a": 1}]

    @pytest.mark.parametrize("raw", ["", None, [], {}])
    def test_empty_shapes(self, raw: object) -> None:
        assert normalize_items(raw) == []


class TestApiEnvelope:
    def test_from_upstream_parses_items(self) -> None:
        payload = make_upstream_payload([make_bid_item()], total_count=42)
        envelope = ApiEnvelope.from_upstream(payload, BidRecord)
        assert envelope.is_success
        assert envelope.body.totalCount == 42
        assert isinstance(envelope.body.items[0], BidRecord)

    def test_from_upstream_single_item_object(self) -> None:
        payload = make_upstream_payload({"item": make_bid_item()})
        envelope = ApiEnvelope.from_upstream(payload, BidRecord)
        assert len(envelope.body.items) == 1

    def test_from_upstream_missing_response(self) -> None:
        with pytest.raises(ValueError):
            ApiEnvelope.from_upstream({"nope": {}}, BidRecord)

    def test_failure_code_not_success(self) -> None:
        payload = make_upstream_payload([], result_code="30", result_msg="SERVICE KEY IS NOT REGISTERED")
        envelope = ApiEnvelope.from_upstream(payload, BidRecord)
        assert not envelope.is_success

    def test_build_is_normal_service(self) -> None:
        envelope = ApiEnvelope.build(BidRecord, [], 2, 5, 100)
        assert envelope.header.resultCode == "00"
        assert envelope.body.pageNo == 2
        assert envelope.body.totalCount == 100


class TestSearchParams:
    def test_defaults(self) -> None:
        assert BidSearchParams().to_query() == {"pageNo": 1, "numOfRows": 10}

    def test_date_filters_renamed(self) -> None:
        query = BidSearchParams(fromDt="202407010000", toDt="202407312359").to_query()
        assert query["inqryBgnDt"] == "202407010000"
        assert query["inqryEndDt"] == "202407312359"
        assert query["inqryDiv"] == "1"
        assert "fromDt" not in query

    def test_contract_filters(self) -> None:
        query = ContractSearchParams(cntrctNm="서버").to_query()
        assert query["cntrctNm"] == "서버"

    @pytest.mark.parametrize("field", ["pageNo", "numOfRows"])
    def test_page_values_must_be_positive(self, field: str) -> None:
        with pytest.raises(ValidationError):
            BidSearchParams(**{field: 0})


class TestRelayModels:
    def test_dataset_from_envelope(self) -> None:
        envelope = ApiEnvelope.from_upstream(
            make_upstream_payload([make_bid_item()], total_count=9), BidRecord,
        )
        dataset = Dataset.from_envelope(envelope)
        assert dataset.totalCount == 9
        assert dataset.items[0]["bidNtceNo"] == "20240000001"
        assert "bidwinnrNm" not in dataset.items[0]

    def test_payload_timestamp_defaults_to_now(self) -> None:
        payload = WebhookPayload(source="G2B_API", data={})
        assert payload.timestamp.endswith("+00:00")
