"""
Audit trail of committed pool operations.

Every successful mint, burn and swap appends one AuditRecord holding the
actor, the operation parameters and the pool quantities before and after.
Subscribers are notified synchronously once the operation has committed; a
failing subscriber is logged and skipped. An optional JSON-lines file
(CLAMM_AUDIT_FILE) mirrors the log on disk.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    """One committed pool operation."""
    sequence: int
    action: str  # "mint", "burn" or "swap"
    actor: str
    details: dict[str, Any] = field(default_factory=dict)
    before: dict[str, Any] = field(default_factory=dict)
    after: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)


AuditSubscriber = Callable[[AuditRecord], None]


class AuditLog:
    """Append-only in-memory audit log."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path
        self._records: list[AuditRecord] = []
        self._subscribers: list[AuditSubscriber] = []

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(list(self._records))

    @property
    def records(self) -> list[AuditRecord]:
        return list(self._records)

    def last(self) -> AuditRecord | None:
        return self._records[-1] if self._records else None

    def subscribe(self, subscriber: AuditSubscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: AuditSubscriber) -> None:
        self._subscribers.remove(subscriber)

    def append(
        self,
        action: str,
        actor: str,
        details: dict[str, Any],
        before: dict[str, Any],
        after: dict[str, Any],
    ) -> AuditRecord:
        """Record a committed operation and notify subscribers."""
        record = AuditRecord(
            sequence=len(self._records) + 1,
            action=action,
            actor=actor,
            details=dict(details),
            before=dict(before),
            after=dict(after),
        )
        self._records.append(record)

        if self.path:
            self._write(record)

        for subscriber in list(self._subscribers):
            try:
                subscriber(record)
            except Exception:
                # The operation is already committed; a subscriber cannot undo it
                logger.exception(
                    "Audit subscriber failed on record %d",
                    record.sequence,
                    extra={
                        "event": "audit.subscriber_failed",
                        "sequence": record.sequence,
                        "action": record.action,
                    },
                )

        return record

    def _write(self, record: AuditRecord) -> None:
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(record.to_json() + "\n")
        except OSError as e:
            logger.warning(
                "Failed to write audit record %d: %s",
                record.sequence,
                e,
                extra={"event": "audit.write_failed", "path": self.path, "sequence": record.sequence},
            )
