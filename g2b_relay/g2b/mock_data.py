"""Placeholder procurement datasets used when live data is unavailable.

Values are random but the record shape is fixed. Pass a seeded
``random.Random`` to get a repeatable set.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Any

from g2b_relay.models import (
    ApiEnvelope,
    BidRecord,
    ContractRecord,
    DataKind,
    Dataset,
    PreNoticeRecord,
)

INSTITUTIONS = (
    "과학기술정보통신부",
    "행정안전부",
    "중소벤처기업부",
    "산업통상자원부",
    "조달청",
    "한국산업기술진흥원",
    "정보통신산업진흥원",
    "통계청",
)
BID_METHODS = ("일반입찰", "제한입찰", "지명입찰", "수의계약")
CONTRACT_METHODS = ("일반계약", "제한경쟁계약", "수의계약")
PROJECT_SUBJECTS = (
    "AI 기술개발",
    "클라우드 인프라",
    "스마트팩토리",
    "데이터 분석 플랫폼",
    "디지털 전환 지원",
    "IoT 센서 네트워크",
    "블록체인 기반 시스템",
    "스마트시티 플랫폼",
)
PROJECT_SUFFIXES = ("구축 사업", "고도화 사업", "유지관리 용역", "개발 사업")

MIN_PRICE = 10_000_000
MAX_PRICE = 1_500_000_000

# Size of the full mock set per kind; the bid total is what the client reports.
MOCK_TOTALS = {
    DataKind.BID_NOTICE: 100,
    DataKind.PRE_NOTICE: 50,
    DataKind.CONTRACT: 75,
}

_RECORD_MODELS: dict[DataKind, type[Any]] = {
    DataKind.BID_NOTICE: BidRecord,
    DataKind.PRE_NOTICE: PreNoticeRecord,
    DataKind.CONTRACT: ContractRecord,
}


def _price(rng: random.Random) -> str:
    return str(rng.randint(MIN_PRICE // 1000, MAX_PRICE // 1000) * 1000)


def _project_name(rng: random.Random) -> str:
    return f"{rng.choice(PROJECT_SUBJECTS)} {rng.choice(PROJECT_SUFFIXES)}"


def _recent_date(rng: random.Random, today: date) -> date:
    return today - timedelta(days=rng.randint(0, 30))


def generate_bids(count: int, rng: random.Random | None = None) -> list[BidRecord]:
    rng = rng or random.Random()
    today = date.today()
    bids = []
    for i in range(1, count + 1):
        notice_day = _recent_date(rng, today)
        bids.append(BidRecord(
            bidNtceNo=f"{notice_day.year}{i:06d}",
            bidNtceNm=_project_name(rng),
            dminsttNm=rng.choice(INSTITUTIONS),
            bidMethdNm=rng.choice(BID_METHODS),
            presmptPrce=_price(rng),
            bidNtceDt=notice_day.isoformat(),
            opengDt=(notice_day + timedelta(days=rng.randint(7, 60))).isoformat(),
            bidNtceUrl=f"https://www.g2b.go.kr/bid/{notice_day.year}{i:06d}",
        ))
    return bids


def generate_contracts(count: int, rng: random.Random | None = None) -> list[ContractRecord]:
    rng = rng or random.Random()
    today = date.today()
    contracts = []
    for i in range(1, count + 1):
        contract_day = _recent_date(rng, today)
        contracts.append(ContractRecord(
            cntrctNo=f"CTR-{contract_day.year}-{i:04d}",
            cntrctNm=f"{_project_name(rng)} 계약",
            dminsttNm=rng.choice(INSTITUTIONS),
            cntrctMthdNm=rng.choice(CONTRACT_METHODS),
            cntrctPrce=_price(rng),
            cntrctDt=contract_day.isoformat(),
        ))
    return contracts


def generate_pre_notices(count: int, rng: random.Random | None = None) -> list[PreNoticeRecord]:
    rng = rng or random.Random()
    today = date.today()
    notices = []
    for i in range(1, count + 1):
        notice_day = _recent_date(rng, today)
        notices.append(PreNoticeRecord(
            preBidNtceNo=f"PRE-{notice_day.year}-{i:04d}",
            preBidNtceNm=f"사전공고 {_project_name(rng)}",
            dminsttNm=rng.choice(INSTITUTIONS),
            preBidNtceDt=notice_day.isoformat(),
            presmptPrce=_price(rng),
        ))
    return notices


_GENERATORS = {
    DataKind.BID_NOTICE: generate_bids,
    DataKind.PRE_NOTICE: generate_pre_notices,
    DataKind.CONTRACT: generate_contracts,
}


def generate(kind: DataKind, count: int, rng: random.Random | None = None) -> list[Any]:
    return _GENERATORS[kind](count, rng)


def paginate(records: list[Any], page_no: int, num_of_rows: int) -> list[Any]:
    start = (page_no - 1) * num_of_rows
    return records[start:start + num_of_rows]


def mock_page(
    kind: DataKind,
    page_no: int = 1,
    num_of_rows: int = 10,
    rng: random.Random | None = None,
) -> ApiEnvelope[Any]:
    """A successful envelope holding one page of the kind's full mock set."""
    total = MOCK_TOTALS[kind]
    records = generate(kind, total, rng)
    return ApiEnvelope.build(
        _RECORD_MODELS[kind],
        paginate(records, page_no, num_of_rows),
        page_no,
        num_of_rows,
        total,
    )


def mock_dataset(
    kind: DataKind,
    page_no: int = 1,
    num_of_rows: int = 10,
    rng: random.Random | None = None,
) -> Dataset:
    return Dataset.from_envelope(mock_page(kind, page_no, num_of_rows, rng))
