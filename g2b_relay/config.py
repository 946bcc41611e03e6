"""Environment-driven configuration for the G2B relay service."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from g2b_relay.errors import ConfigurationError
from g2b_relay.models import DataSource

DEFAULT_BID_BASE_URL = "https://apis.data.go.kr/1230000/BidPublicInfoService02"
DEFAULT_CONTRACT_BASE_URL = "https://apis.data.go.kr/1230000/CntrctInfoService"

# Values shipped in sample .env files; treated as "no key configured".
_PLACEHOLDER_KEYS = frozenset({"test-key", "your-g2b-service-key-here"})

_DATA_SOURCE_MODES = ("auto", "live", "mock")


class Settings(BaseModel):
    """Typed, immutable view of the service configuration."""

    model_config = ConfigDict(frozen=True)

    service_key: str | None = None
    bid_base_url: str = DEFAULT_BID_BASE_URL
    contract_base_url: str = DEFAULT_CONTRACT_BASE_URL
    api_timeout: float = 10.0
    data_source_mode: str = "auto"
    environment: str = "development"

    webhook_url: str | None = None
    webhook_api_key: str = ""
    webhook_timeout: float = 30.0
    webhook_test_timeout: float = 10.0

    delivery_log_path: str | None = None
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 900
    cors_origin: str = "http://localhost:3000"

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        load_env_file: bool = True,
    ) -> Settings:
        """Build settings from environment variables (and ``.env`` when present)."""
        if environ is None:
            if load_env_file:
                load_dotenv()
            environ = os.environ

        mode = environ.get("G2B_DATA_SOURCE", "auto").strip().lower()
        if mode not in _DATA_SOURCE_MODES:
            raise ConfigurationError(
                f"G2B_DATA_SOURCE must be one of {', '.join(_DATA_SOURCE_MODES)}, got {mode!r}"
            )

        settings = cls(
            service_key=_clean_key(environ.get("G2B_SERVICE_KEY")),
            bid_base_url=environ.get("G2B_BID_BASE_URL", DEFAULT_BID_BASE_URL),
            contract_base_url=environ.get("G2B_CONTRACT_BASE_URL", DEFAULT_CONTRACT_BASE_URL),
            api_timeout=_number(environ, "G2B_TIMEOUT", 10.0, float),
            data_source_mode=mode,
            environment=environ.get("APP_ENV", "development"),
            webhook_url=environ.get("WEBHOOK_URL") or None,
            webhook_api_key=environ.get("WEBHOOK_API_KEY", ""),
            webhook_timeout=_number(environ, "WEBHOOK_TIMEOUT", 30.0, float),
            webhook_test_timeout=_number(environ, "WEBHOOK_TEST_TIMEOUT", 10.0, float),
            delivery_log_path=environ.get("DELIVERY_LOG_PATH") or None,
            rate_limit_max_requests=_number(environ, "RATE_LIMIT_MAX_REQUESTS", 100, int),
            rate_limit_window_seconds=_number(environ, "RATE_LIMIT_WINDOW_SECONDS", 900, int),
            cors_origin=environ.get("CORS_ORIGIN", "http://localhost:3000"),
        )
        # Resolve eagerly so a live-mode misconfiguration fails at startup.
        settings.data_source  # noqa: B018
        return settings

    @property
    def data_source(self) -> DataSource:
        """Select live or mock data once, from the mode and key presence."""
        if self.data_source_mode == "mock" or self.environment == "test":
            return DataSource.MOCK
        if self.data_source_mode == "live":
            if not self.service_key:
                raise ConfigurationError(
                    "G2B_SERVICE_KEY is required when G2B_DATA_SOURCE=live"
                )
            return DataSource.LIVE
        return DataSource.LIVE if self.service_key else DataSource.MOCK

    def public_view(self) -> dict[str, Any]:
        """Configuration without secrets, for status reporting."""
        return {
            "bidBaseUrl": self.bid_base_url,
            "contractBaseUrl": self.contract_base_url,
            "timeout": self.api_timeout,
            "dataSourceMode": self.data_source_mode,
            "webhookConfigured": bool(self.webhook_url),
        }


def _clean_key(raw: str | None) -> str | None:
    if raw is None:
        return None
    key = raw.strip()
    if not key or key in _PLACEHOLDER_KEYS:
        return None
    return key


def _number(environ: Mapping[str, str], name: str, default: Any, cast: type) -> Any:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
