"""Select pending river rows for one operation type."""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from .dialect import QuotingStyle, StatementTemplate, execute_with_fallback
from .operations import OperationType, PollWindow

logger = logging.getLogger(__name__)


class ChangeSelector:
    """Builds and runs the ``select *`` scan over the river table.

    With acknowledgment enabled rows are eligible by their flag alone and the
    statement carries no time predicate. Otherwise rows must also fall inside
    the cycle's poll window.
    """

    def __init__(self, table: str, *, ordered: bool = True) -> None:
        if not table:
            raise ValueError("river table name must be provided")
        self._table = table
        self._ordered = ordered

    @property
    def table(self) -> str:
        return self._table

    def template(self, *, ack_mode: bool) -> StatementTemplate:
        text = "select * from {table} where {source_operation} = {p}"
        if not ack_mode:
            text += " and {source_timestamp} >= {p} and {source_timestamp} < {p}"
        if self._ordered:
            text += " order by {source_timestamp}"
        return StatementTemplate(text, tables={"table": self._table})

    def select(
        self,
        connection: Any,
        operation: OperationType,
        *,
        ack_mode: bool,
        window: Optional[PollWindow] = None,
    ) -> Tuple[Any, QuotingStyle]:
        """Execute the scan and return the open result with the quoting that worked."""

        params: Tuple[Any, ...] = (operation.value,)
        if ack_mode:
            logger.debug(
                "fetching all rows of %s with source_operation %s",
                self._table,
                operation.value,
            )
        else:
            if window is None:
                raise ValueError("a poll window is required when acknowledgment is off")
            logger.debug(
                "fetching rows of %s with source_operation %s and source_timestamp in [%s, %s)",
                self._table,
                operation.value,
                window.start,
                window.end,
            )
            params += window.as_params()
        return execute_with_fallback(
            connection, self.template(ack_mode=ack_mode), params
        )


__all__ = ["ChangeSelector"]
