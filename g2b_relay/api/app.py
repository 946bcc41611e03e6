"""FastAPI application for the G2B relay service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from g2b_relay.api.g2b_routes import create_g2b_router
from g2b_relay.api.rate_limiter import SlidingWindowRateLimiter
from g2b_relay.api.webhook_routes import create_webhook_router
from g2b_relay.audit.delivery_log import DeliveryLog
from g2b_relay.config import Settings
from g2b_relay.errors import ExternalAPIError
from g2b_relay.g2b.client import G2BClient
from g2b_relay.pipeline.orchestrator import RelayOrchestrator
from g2b_relay.webhook.relay import WebhookRelay

logger = logging.getLogger(__name__)

_RATE_LIMITED_PREFIX = "/webhook/"


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    return create_app(Settings.from_env())


def create_app(
    settings: Settings,
    client: G2BClient | None = None,
    relay: WebhookRelay | None = None,
    orchestrator: RelayOrchestrator | None = None,
    delivery_log: DeliveryLog | None = None,
) -> FastAPI:
    """Create the API app; missing collaborators are built from ``settings``.

    Raises ``ConfigurationError`` immediately when no webhook URL is set.
    """
    if delivery_log is None and settings.delivery_log_path:
        delivery_log = DeliveryLog.from_env(settings.delivery_log_path)
    client = client or G2BClient(settings)
    relay = relay or WebhookRelay.from_settings(settings, delivery_log=delivery_log)
    orchestrator = orchestrator or RelayOrchestrator(
        client, relay, delivery_log=delivery_log,
    )
    limiter = SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    logger.info(
        "G2B relay starting (data source: %s, webhook: %s)",
        client.data_source.value, relay.url,
    )

    app = FastAPI(title="G2B Relay", docs_url=None, redoc_url=None)
    app.state.client = client
    app.state.relay = relay
    app.state.orchestrator = orchestrator
    app.state.rate_limiter = limiter

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.middleware("http")
    async def rate_limit(request: Request, call_next) -> Response:  # noqa: ANN001
        if request.method == "POST" and request.url.path.startswith(_RATE_LIMITED_PREFIX):
            client_ip = request.client.host if request.client else "unknown"
            if not limiter.check(client_ip):
                logger.warning("Rate limit exceeded for %s", client_ip)
                return JSONResponse(
                    {"success": False, "message": "요청 한도를 초과했습니다. 잠시 후 다시 시도하세요."},
                    status_code=429,
                )
        return await call_next(request)

    @app.exception_handler(ExternalAPIError)
    async def external_api_error(request: Request, exc: ExternalAPIError) -> JSONResponse:
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc, exc.detail)
        return JSONResponse(
            {
                "success": False,
                "error": {"code": exc.code, "message": f"외부 서비스({exc.service}) 오류: {exc.message}"},
            },
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            {"success": False, "message": "서버 내부 오류가 발생했습니다."},
            status_code=500,
        )

    app.include_router(create_webhook_router(orchestrator, delivery_log))
    app.include_router(create_g2b_router(client))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app
