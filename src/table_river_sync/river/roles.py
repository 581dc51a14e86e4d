"""Mouth and target roles: where a river polls and how it acknowledges."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..config import ROLE_MOUTH, ROLE_TARGET
from ..db import ConnectionProvider
from .acknowledge import (
    AcknowledgmentRecord,
    insert_ack_record,
    mark_row_acknowledged,
    upsert_ack_record,
)
from .errors import RiverIOError

logger = logging.getLogger(__name__)


class RiverRole(Protocol):
    """Capabilities that distinguish the two river roles."""

    name: str
    ordered: bool

    def select_connection(self) -> Any: ...

    def ack_connection(self) -> Any: ...

    def on_acknowledge(self, connection: Any, record: AcknowledgmentRecord) -> None: ...


class _BaseRole:
    name = ""
    ordered = True

    def __init__(self, connections: ConnectionProvider, river_name: str) -> None:
        self._connections = connections
        self._river_name = river_name

    @property
    def table(self) -> str:
        return self._river_name

    @property
    def ack_table(self) -> str:
        return f"{self._river_name}_ack"

    def ack_connection(self) -> Any:
        return self._connections.for_writing()


class MouthRole(_BaseRole):
    """Read role: polls the reading connection, appends to ``<river>_ack``."""

    name = ROLE_MOUTH
    ordered = True

    def select_connection(self) -> Any:
        return self._connections.for_reading()

    def on_acknowledge(self, connection: Any, record: AcknowledgmentRecord) -> None:
        insert_ack_record(connection, self.ack_table, record)


class TargetRole(_BaseRole):
    """Write role: polls the writing connection and flips acknowledged rows to ``ack``."""

    name = ROLE_TARGET
    ordered = False

    def select_connection(self) -> Any:
        return self._connections.for_writing()

    def on_acknowledge(self, connection: Any, record: AcknowledgmentRecord) -> None:
        flag_error: RiverIOError | None = None
        try:
            flagged = mark_row_acknowledged(connection, self.table, record)
            if flagged == 0:
                logger.warning(
                    "(%s) no river row matched %s/%s/%s; it stays pending",
                    self._river_name,
                    *record.key,
                )
        except RiverIOError as exc:
            logger.warning(
                "(%s) could not flag %s/%s/%s as acknowledged: %s",
                self._river_name,
                record.index,
                record.type,
                record.id,
                exc,
            )
            flag_error = exc
        upsert_ack_record(connection, self.ack_table, record)
        if flag_error is not None:
            raise flag_error


def build_role(name: str, connections: ConnectionProvider, river_name: str) -> RiverRole:
    if name == ROLE_TARGET:
        return TargetRole(connections, river_name)
    if name == ROLE_MOUTH:
        return MouthRole(connections, river_name)
    raise ValueError(f"unknown river role: {name}")


__all__ = ["MouthRole", "RiverRole", "TargetRole", "build_role"]
