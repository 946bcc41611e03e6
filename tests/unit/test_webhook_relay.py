"""Tests for the webhook relay (payload shape, auth header, failure reporting)."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from g2b_relay.errors import ConfigurationError
from g2b_relay.models import DataKind, Dataset, DeliveryEventType
from g2b_relay.webhook.models import RelayResult
from g2b_relay.webhook.relay import (
    PAYLOAD_SOURCE,
    TEST_PAYLOAD_SOURCE,
    USER_AGENT,
    WebhookRelay,
)
from tests.conftest import (
    WEBHOOK_URL,
    failing_handler,
    make_settings,
    make_transport,
    request_json,
)

FIXED_NOW = datetime(2024, 7, 1, 9, 30, tzinfo=UTC)


def _make_relay(handler=None, captured=None, **kwargs: Any) -> WebhookRelay:  # noqa: ANN001
    handler = handler or (lambda request: httpx.Response(200, json={"ok": True}))
    defaults: dict[str, Any] = {
        "url": WEBHOOK_URL,
        "api_key": "hook-secret",
        "transport": make_transport(handler, captured),
        "clock": lambda: FIXED_NOW,
    }
    defaults.update(kwargs)
    return WebhookRelay(**defaults)


def _make_dataset(**kwargs: Any) -> Dataset:
    defaults: dict[str, Any] = {
        "totalCount": 100,
        "pageNo": 1,
        "numOfRows": 2,
        "items": [{"bidNtceNo": "1"}, {"bidNtceNo": "2"}],
    }
    defaults.update(kwargs)
    return Dataset(**defaults)


class TestRelayResult:
    def test_truthiness_follows_success(self) -> None:
        assert RelayResult(success=True)
        assert not RelayResult(success=False, reason="HTTP 500")


class TestConstruction:
    def test_missing_url_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="WEBHOOK_URL"):
            WebhookRelay(url=None)

    def test_from_settings_without_url_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            WebhookRelay.from_settings(make_settings(webhook_url=None))

    def test_from_settings(self) -> None:
        relay = WebhookRelay.from_settings(make_settings())
        assert relay.url == WEBHOOK_URL


class TestSend:
    @pytest.mark.asyncio
    async def test_posts_envelope_with_bearer_auth(self, captured: list[httpx.Request]) -> None:
        relay = _make_relay(captured=captured)
        result = await relay.send({"x": 1}, {"type": "bid_notice"})

        assert result.success is True
        assert result.status_code == 200
        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == WEBHOOK_URL
        assert request.headers["Authorization"] == "Bearer hook-secret"
        assert request.headers["User-Agent"] == USER_AGENT
        assert request.headers["Content-Type"] == "application/json"
        body = request_json(request)
        assert body == {
            "timestamp": FIXED_NOW.isoformat(),
            "source": PAYLOAD_SOURCE,
            "data": {"x": 1},
            "metadata": {"type": "bid_notice"},
        }

    @pytest.mark.asyncio
    async def test_dataset_metadata_mirrors_counts(self, captured: list[httpx.Request]) -> None:
        relay = _make_relay(captured=captured)
        dataset = _make_dataset(totalCount=75, pageNo=3, numOfRows=2)
        await relay.send_dataset(DataKind.CONTRACT, dataset)

        body = request_json(captured[0])
        assert body["metadata"] == {
            "type": "contract_status",
            "totalCount": 75,
            "pageNo": 3,
            "numOfRows": 2,
        }
        assert body["metadata"]["totalCount"] == body["data"]["totalCount"]
        assert len(body["data"]["items"]) == 2

    @pytest.mark.asyncio
    async def test_timestamp_fresh_per_send(self, captured: list[httpx.Request]) -> None:
        times = iter([FIXED_NOW, FIXED_NOW.replace(minute=31)])
        relay = _make_relay(captured=captured, clock=lambda: next(times))
        await relay.send({})
        await relay.send({})
        stamps = [request_json(r)["timestamp"] for r in captured]
        assert stamps[0] != stamps[1]

    @pytest.mark.asyncio
    async def test_non_2xx_is_failure(self) -> None:
        relay = _make_relay(lambda request: httpx.Response(502, text="bad gateway"))
        result = await relay.send({})
        assert not result
        assert result.status_code == 502
        assert result.reason == "HTTP 502"
        assert result.response_body == "bad gateway"

    @pytest.mark.asyncio
    async def test_timeout_returns_failure(self) -> None:
        relay = _make_relay(failing_handler(httpx.ReadTimeout("slow")), timeout=0.5)
        result = await relay.send({})
        assert result.success is False
        assert result.reason == "timed out after 0.5s"

    @pytest.mark.asyncio
    async def test_connection_error_returns_failure(self) -> None:
        relay = _make_relay(failing_handler(httpx.ConnectError("refused")))
        result = await relay.send({})
        assert result.success is False
        assert "ConnectError" in (result.reason or "")

    @pytest.mark.asyncio
    async def test_unserializable_data_returns_failure(
        self, captured: list[httpx.Request], mock_delivery_log: MagicMock,
    ) -> None:
        relay = _make_relay(captured=captured, delivery_log=mock_delivery_log)
        result = await relay.send({"when": object()}, {"type": "bid_notice"})

        assert not result
        assert "not serializable" in (result.reason or "")
        assert captured == []
        event = mock_delivery_log.log.call_args.args[0]
        assert event.event_type is DeliveryEventType.RELAY_FAILURE
        assert event.kind == "bid_notice"

    @pytest.mark.asyncio
    async def test_no_retry(self, captured: list[httpx.Request]) -> None:
        relay = _make_relay(lambda request: httpx.Response(500), captured)
        await relay.send({})
        assert len(captured) == 1


class TestConnectionTest:
    @pytest.mark.asyncio
    async def test_diagnostic_payload(self, captured: list[httpx.Request]) -> None:
        relay = _make_relay(captured=captured)
        result = await relay.test_connection()
        assert result.success is True
        body = request_json(captured[0])
        assert body["source"] == TEST_PAYLOAD_SOURCE
        assert body["data"]["test"] is True
        assert body["message"] == "Webhook 연결 테스트"

    @pytest.mark.asyncio
    async def test_failure_reported(self) -> None:
        relay = _make_relay(lambda request: httpx.Response(401))
        result = await relay.test_connection()
        assert result.success is False


class TestDeliveryLogging:
    @pytest.mark.asyncio
    async def test_records_success_and_failure(self, mock_delivery_log: MagicMock) -> None:
        ok = _make_relay(delivery_log=mock_delivery_log)
        await ok.send({}, {"type": "pre_notice"})
        failing = _make_relay(lambda request: httpx.Response(500), delivery_log=mock_delivery_log)
        await failing.send({}, {"type": "pre_notice"})

        events = [c.args[0] for c in mock_delivery_log.log.call_args_list]
        assert [e.event_type for e in events] == [
            DeliveryEventType.RELAY_SUCCESS,
            DeliveryEventType.RELAY_FAILURE,
        ]
        assert events[0].kind == "pre_notice"
        assert events[1].details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_log_write_error_does_not_raise(self, mock_delivery_log: MagicMock) -> None:
        mock_delivery_log.log.side_effect = OSError("disk full")
        relay = _make_relay(delivery_log=mock_delivery_log)
        result = await relay.send({})
        assert result.success is True

    @pytest.mark.asyncio
    async def test_log_written_off_event_loop_thread(self, mock_delivery_log: MagicMock) -> None:
        threads: list[int] = []
        mock_delivery_log.log.side_effect = lambda event: threads.append(threading.get_ident())
        await _make_relay(delivery_log=mock_delivery_log).test_connection()

        assert len(threads) == 1
        assert threads[0] != threading.get_ident()
