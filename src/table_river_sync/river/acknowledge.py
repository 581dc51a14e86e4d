"""Persist bulk outcomes back into the river's acknowledgment table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple

from ..sink.bulk import BulkOutcome, RowKey
from .dialect import StatementTemplate, execute_with_fallback
from .errors import AcknowledgmentError, RiverIOError
from .operations import ACK_MARKER

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AcknowledgmentRecord:
    """One row of ``<river>_ack`` keyed by (index, type, id)."""

    index: Optional[str]
    type: Optional[str]
    id: Optional[str]
    target_timestamp: datetime
    target_operation: str
    target_failed: bool
    target_message: Optional[str] = None
    row_key: Optional[RowKey] = None

    @classmethod
    def from_outcome(cls, outcome: BulkOutcome, now: datetime) -> "AcknowledgmentRecord":
        return cls(
            index=outcome.index,
            type=outcome.type,
            id=outcome.id,
            target_timestamp=now,
            target_operation=outcome.op_type,
            target_failed=bool(outcome.failed),
            target_message=outcome.message,
            row_key=outcome.row_key,
        )

    @property
    def key(self) -> RowKey:
        """Key of the river row this record acknowledges."""

        if self.row_key is not None:
            return self.row_key
        return (self.index, self.type, self.id)

    def insert_params(self) -> Tuple[Any, ...]:
        return (
            self.index,
            self.type,
            self.id,
            self.target_timestamp,
            self.target_operation,
            self.target_failed,
            self.target_message,
        )

    def update_params(self) -> Tuple[Any, ...]:
        return (
            self.target_timestamp,
            self.target_operation,
            self.target_failed,
            self.target_message,
            self.index,
            self.type,
            self.id,
        )


# NULL and empty address columns compare equal
_KEY_MATCH = (
    "coalesce({_index}, '') = coalesce({p}, '') "
    "and coalesce({_type}, '') = coalesce({p}, '') "
    "and {_id} = {p}"
)


def insert_ack_template(ack_table: str) -> StatementTemplate:
    return StatementTemplate(
        "insert into {ack_table} ({_index}, {_type}, {_id}, {target_timestamp}, "
        "{target_operation}, {target_failed}, {target_message}) "
        "values ({p}, {p}, {p}, {p}, {p}, {p}, {p})",
        tables={"ack_table": ack_table},
    )


def update_ack_template(ack_table: str) -> StatementTemplate:
    return StatementTemplate(
        "update {ack_table} set {target_timestamp} = {p}, {target_operation} = {p}, "
        "{target_failed} = {p}, {target_message} = {p} where " + _KEY_MATCH,
        tables={"ack_table": ack_table},
    )


def mark_row_template(table: str) -> StatementTemplate:
    return StatementTemplate(
        "update {table} set {source_operation} = {p} where " + _KEY_MATCH,
        tables={"table": table},
    )


def insert_ack_record(connection: Any, ack_table: str, record: AcknowledgmentRecord) -> None:
    result, _ = execute_with_fallback(
        connection, insert_ack_template(ack_table), record.insert_params()
    )
    _release(result)


def upsert_ack_record(connection: Any, ack_table: str, record: AcknowledgmentRecord) -> None:
    """Update the record for the key, inserting it when none exists yet."""

    result, _ = execute_with_fallback(
        connection, update_ack_template(ack_table), record.update_params()
    )
    updated = getattr(result, "rowcount", -1)
    _release(result)
    if updated == 0:
        insert_ack_record(connection, ack_table, record)


def mark_row_acknowledged(connection: Any, table: str, record: AcknowledgmentRecord) -> int:
    """Flip the river row's ``source_operation`` to the terminal ``ack`` marker.

    Returns the driver's rowcount, ``-1`` when it does not report one.
    """

    result, _ = execute_with_fallback(
        connection, mark_row_template(table), (ACK_MARKER, *record.key)
    )
    updated = getattr(result, "rowcount", -1)
    _release(result)
    return updated


def _release(result: Any) -> None:
    close = getattr(result, "close", None)
    if close is not None:
        close()


class AcknowledgeHandler(Protocol):
    """Role hook persisting one acknowledgment record."""

    def on_acknowledge(self, connection: Any, record: AcknowledgmentRecord) -> None: ...


class AcknowledgmentWriter:
    """Writes one acknowledgment per bulk outcome, stopping at the first failure."""

    def __init__(
        self,
        handler: AcknowledgeHandler,
        *,
        enabled: bool,
        river_name: str = "",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._handler = handler
        self._enabled = enabled
        self._river_name = river_name
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._enabled

    def acknowledge(
        self, connection: Any, outcomes: Optional[Sequence[BulkOutcome]]
    ) -> int:
        if not self._enabled:
            return 0
        if outcomes is None:
            logger.warning("(%s) can't acknowledge null bulk response", self._river_name)
            return 0
        written = 0
        for position, outcome in enumerate(outcomes):
            record = AcknowledgmentRecord.from_outcome(outcome, self._clock())
            try:
                self._handler.on_acknowledge(connection, record)
            except RiverIOError as exc:
                raise AcknowledgmentError(
                    f"({self._river_name}) acknowledgment of item {position} "
                    f"{record.index}/{record.type}/{record.id} failed: {exc}",
                    index=record.index,
                    type=record.type,
                    id=record.id,
                    position=position,
                ) from exc
            written += 1
        logger.debug("(%s) acknowledged %d bulk items", self._river_name, written)
        return written


__all__ = [
    "AcknowledgeHandler",
    "AcknowledgmentRecord",
    "AcknowledgmentWriter",
    "insert_ack_record",
    "mark_row_acknowledged",
    "upsert_ack_record",
]
