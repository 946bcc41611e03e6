"""Error types shared across the client, relay and HTTP layers."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Raised at construction time when a required setting is missing or invalid."""


class ExternalAPIError(Exception):
    """Raised when the procurement API does not yield a valid envelope.

    Covers non-'00' result codes, malformed bodies, non-2xx statuses and
    network failures. ``detail`` carries diagnostic fields for logging.
    """

    status_code = 503
    code = "EXTERNAL_API_ERROR"

    def __init__(
        self,
        service: str,
        message: str,
        detail: dict[str, object] | None = None,
    ) -> None:
        self.service = service
        self.message = message
        self.detail = detail or {}
        super().__init__(f"{service}: {message}")
