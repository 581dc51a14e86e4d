"""Operation tags and poll windows for river table scans."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Tuple


class OperationType(str, Enum):
    """Pending change kinds a river row can carry in ``source_operation``."""

    CREATE = "create"
    INDEX = "index"
    DELETE = "delete"
    UPDATE = "update"

    def __str__(self) -> str:
        return self.value


# Visited in this order every cycle; delete runs before update.
CYCLE_ORDER: Tuple[OperationType, ...] = (
    OperationType.CREATE,
    OperationType.INDEX,
    OperationType.DELETE,
    OperationType.UPDATE,
)

ACK_MARKER = "ack"


@dataclass(frozen=True)
class PollWindow:
    """Half-open interval ``[start, end)`` of ``source_timestamp`` values."""

    start: datetime
    end: datetime

    @classmethod
    def ending_at(cls, now: datetime, interval: timedelta) -> "PollWindow":
        if interval <= timedelta(0):
            raise ValueError("polling interval must be positive")
        return cls(start=now - interval, end=now)

    def contains(self, value: datetime) -> bool:
        return self.start <= value < self.end

    def as_params(self) -> Tuple[datetime, datetime]:
        return (self.start, self.end)


__all__ = ["ACK_MARKER", "CYCLE_ORDER", "OperationType", "PollWindow"]
