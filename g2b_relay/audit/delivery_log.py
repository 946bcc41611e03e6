"""Append-only JSON Lines record of fetches and relays, with rotation."""

from __future__ import annotations

import fcntl
import json
import logging
import os
from pathlib import Path

from g2b_relay.models import DeliveryEvent

logger = logging.getLogger(__name__)


class DeliveryLog:
    """Append-only structured log of data fetches and webhook deliveries."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count

    @classmethod
    def from_env(cls, log_path: str) -> DeliveryLog:
        """Create a DeliveryLog with rotation limits from environment variables."""
        max_bytes = int(os.environ.get("DELIVERY_LOG_MAX_BYTES", "10485760"))
        backup_count = int(os.environ.get("DELIVERY_LOG_BACKUP_COUNT", "5"))
        return cls(log_path=log_path, max_bytes=max_bytes, backup_count=backup_count)

    def _maybe_rotate(self) -> None:
        if not self.log_path.exists():
            return
        if self.log_path.stat().st_size < self._max_bytes:
            return

        oldest = self.log_path.parent / f"{self.log_path.name}.{self._backup_count}"
        if oldest.exists():
            oldest.unlink()

        for i in range(self._backup_count - 1, 0, -1):
            src = self.log_path.parent / f"{self.log_path.name}.{i}"
            dst = self.log_path.parent / f"{self.log_path.name}.{i + 1}"
            if src.exists():
                src.rename(dst)

        self.log_path.rename(self.log_path.parent / f"{self.log_path.name}.1")

    def log(self, event: DeliveryEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        line = event.model_dump_json()

        lock_file = self.log_path.parent / f".{self.log_path.name}.lock"
        with open(lock_file, "w") as lf:
            fcntl.flock(lf, fcntl.LOCK_EX)
            try:
                self._maybe_rotate()
                with open(self.log_path, "a") as f:
                    f.write(line + "\n")
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)

    def recent(self, limit: int = 50) -> list[DeliveryEvent]:
        """Newest events first, from the current (unrotated) file only."""
        if limit <= 0 or not self.log_path.exists():
            return []
        lines = [ln for ln in self.log_path.read_text().splitlines() if ln.strip()]
        events = []
        for line in reversed(lines[-limit:]):
            try:
                events.append(DeliveryEvent.model_validate_json(line))
            except ValueError:
                logger.warning("Skipping unreadable delivery log line: %.80s", line)
        return events
