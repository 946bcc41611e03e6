"""Data models for the webhook relay."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RelayResult:
    """Outcome of one webhook delivery; truthy exactly when it succeeded."""

    success: bool
    reason: str | None = None
    status_code: int | None = None
    response_body: str | None = None

    def __bool__(self) -> bool:
        return self.success
