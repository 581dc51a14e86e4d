"""Exception hierarchy for river cycles."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple


class RiverIOError(IOError):
    """I/O-kind failure surfaced by a river cycle."""


class DialectError(RiverIOError):
    """Raised when every quoting variant of a statement was rejected."""

    def __init__(self, message: str, *, statement: str = "") -> None:
        super().__init__(message)
        self.statement = statement


class ReplicationError(RiverIOError):
    """Raised when mapping rows or flushing documents to the sink fails."""


class AcknowledgmentError(RiverIOError):
    """Raised when an acknowledgment record could not be persisted."""

    def __init__(
        self,
        message: str,
        *,
        index: Optional[str] = None,
        type: Optional[str] = None,
        id: Optional[str] = None,
        position: int = 0,
    ) -> None:
        super().__init__(message)
        self.index = index
        self.type = type
        self.id = id
        self.position = position


class CycleError(RiverIOError):
    """Aggregates phase failures when the cycle continues past errors."""

    def __init__(self, failures: Sequence[Tuple[str, BaseException]]) -> None:
        self.failures = list(failures)
        summary = ", ".join(f"{optype}: {exc}" for optype, exc in self.failures)
        super().__init__(f"{len(self.failures)} phase(s) failed ({summary})")


__all__ = [
    "AcknowledgmentError",
    "CycleError",
    "DialectError",
    "ReplicationError",
    "RiverIOError",
]
