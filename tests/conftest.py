"""Shared test fixtures for g2b-relay."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from g2b_relay.audit.delivery_log import DeliveryLog
from g2b_relay.config import Settings

WEBHOOK_URL = "http://hooks.test/g2b"
LIVE_KEY = "live-service-key"


@pytest.fixture
def mock_delivery_log() -> MagicMock:
    return MagicMock(spec=DeliveryLog)


@pytest.fixture
def delivery_log(tmp_path: Path) -> DeliveryLog:
    return DeliveryLog(str(tmp_path / "logs" / "delivery.jsonl"))


@pytest.fixture
def captured() -> list[httpx.Request]:
    """Requests seen by a transport built with ``make_transport``."""
    return []


# --- Factory functions for test data ---


def make_settings(**kwargs: Any) -> Settings:
    """Factory for Settings with a webhook configured and mock data selected."""
    defaults: dict[str, Any] = {
        "data_source_mode": "mock",
        "webhook_url": WEBHOOK_URL,
        "webhook_api_key": "hook-secret",
    }
    defaults.update(kwargs)
    return Settings(**defaults)


def make_live_settings(**kwargs: Any) -> Settings:
    defaults: dict[str, Any] = {
        "data_source_mode": "live",
        "service_key": LIVE_KEY,
        "bid_base_url": "http://g2b.test/bid",
        "contract_base_url": "http://g2b.test/contract",
    }
    defaults.update(kwargs)
    return make_settings(**defaults)


def make_upstream_payload(
    items: Any,
    result_code: str = "00",
    result_msg: str = "NORMAL SERVICE",
    total_count: int | None = None,
    page_no: int = 1,
    num_of_rows: int = 10,
) -> dict[str, Any]:
    """Factory for the raw ``{"response": {...}}`` document the API returns."""
    if total_count is None:
        total_count = len(items) if isinstance(items, list) else 1
    return {
        "response": {
            "header": {"resultCode": result_code, "resultMsg": result_msg},
            "body": {
                "items": items,
                "numOfRows": num_of_rows,
                "pageNo": page_no,
                "totalCount": total_count,
            },
        },
    }


def make_bid_item(**kwargs: Any) -> dict[str, Any]:
    defaults: dict[str, Any] = {
        "bidNtceNo": "20240000001",
        "bidNtceNm": "클라우드 인프라 구축 사업",
        "dminsttNm": "조달청",
        "bidMethdNm": "일반입찰",
        "presmptPrce": 150000000,
        "bidNtceDt": "2024-07-01 10:00:00",
        "opengDt": "2024-07-15 10:00:00",
    }
    defaults.update(kwargs)
    return defaults


def make_transport(
    handler: Callable[[httpx.Request], httpx.Response],
    captured: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """Wrap ``handler`` in a MockTransport that records every request."""

    def _handle(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        return handler(request)

    return httpx.MockTransport(_handle)


def json_response(payload: Any, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status_code, json=payload)


def failing_handler(exc: Exception) -> Callable[[httpx.Request], httpx.Response]:
    def _raise(request: httpx.Request) -> httpx.Response:
        raise exc

    return _raise


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


def no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected outbound request to {request.url}")


class _NotGzipStream(httpx.AsyncByteStream):
    async def __aiter__(self):  # noqa: ANN204
        yield b"this body is not gzip data"


def corrupt_gzip(request: httpx.Request) -> httpx.Response:
    """A streamed 200 whose body contradicts its ``Content-Encoding: gzip``."""
    return httpx.Response(200, headers={"Content-Encoding": "gzip"}, stream=_NotGzipStream())
