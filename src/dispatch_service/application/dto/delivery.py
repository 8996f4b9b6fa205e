from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DeliveryReceipt:
    """Decoded body of an accepted delivery response."""

    message: str
    message_id: str | None
    status_code: int


@dataclass(slots=True)
class CycleReport:
    """Per-cycle counters returned by the batch sender."""

    fetched: int = 0
    delivered: int = 0
    skipped: int = 0
    failed: int = 0
    unpersisted: int = 0
