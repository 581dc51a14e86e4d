"""Cycle driver for the "table" river strategy.

One cycle visits every operation type in a fixed order and, for each,
selects the flagged rows, replicates them to the sink, flushes the sink and
acknowledges the bulk outcome back into the river table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Tuple

from ..config import CONTINUE, FAIL_FAST
from ..sink.bulk import BulkOutcome, BulkSink
from .acknowledge import AcknowledgmentWriter
from .dialect import QuotingStyle
from .errors import CycleError, ReplicationError, RiverIOError
from .operations import CYCLE_ORDER, OperationType, PollWindow
from .replicator import RowMapper, RowReplicator
from .roles import RiverRole
from .selector import ChangeSelector

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CycleMetrics:
    """Counters accumulated across cycles for in-process assertions."""

    cycles_total: int = 0
    documents_replicated_total: int = 0
    acknowledged_total: int = 0
    failed_items_total: int = 0
    phase_errors_total: int = 0

    def inc_cycles(self) -> None:
        self.cycles_total += 1

    def inc_replicated(self, amount: int) -> None:
        self.documents_replicated_total += max(0, amount)

    def inc_acknowledged(self, amount: int) -> None:
        self.acknowledged_total += max(0, amount)

    def inc_failed_items(self, amount: int) -> None:
        self.failed_items_total += max(0, amount)

    def inc_phase_errors(self) -> None:
        self.phase_errors_total += 1

    def snapshot(self) -> dict[str, int]:
        return {
            "cycles_total": self.cycles_total,
            "documents_replicated_total": self.documents_replicated_total,
            "acknowledged_total": self.acknowledged_total,
            "failed_items_total": self.failed_items_total,
            "phase_errors_total": self.phase_errors_total,
        }


@dataclass(frozen=True)
class PhaseResult:
    operation: OperationType
    replicated: int
    acknowledged: int
    failed: int
    quoting: QuotingStyle


class TableRiverSource:
    """Runs poll, replicate and acknowledge for every operation type."""

    strategy = "table"

    def __init__(
        self,
        *,
        role: RiverRole,
        sink: BulkSink,
        mapper: RowMapper,
        river_name: str,
        polling_interval: timedelta,
        acknowledge: bool,
        digesting: bool = False,
        phase_failure_policy: str = FAIL_FAST,
        clock: Callable[[], datetime] = _utcnow,
        metrics: Optional[CycleMetrics] = None,
    ) -> None:
        if phase_failure_policy not in {FAIL_FAST, CONTINUE}:
            raise ValueError(f"unknown phase failure policy: {phase_failure_policy}")
        self._role = role
        self._sink = sink
        self._river_name = river_name
        self._polling_interval = polling_interval
        self._acknowledge = acknowledge
        self._policy = phase_failure_policy
        self._clock = clock
        self._metrics = metrics or CycleMetrics()
        self._selector = ChangeSelector(river_name, ordered=role.ordered)
        self._replicator = RowReplicator(mapper, digest=digesting)
        self._writer = AcknowledgmentWriter(
            role, enabled=acknowledge, river_name=river_name, clock=clock
        )

    @property
    def metrics(self) -> CycleMetrics:
        return self._metrics

    @property
    def acknowledge(self) -> bool:
        return self._acknowledge

    def poll_window(self, now: datetime) -> Optional[PollWindow]:
        if self._acknowledge:
            return None
        return PollWindow.ending_at(now, self._polling_interval)

    def fetch(self) -> List[PhaseResult]:
        """Run one full cycle; raising is the only failure signal."""

        window = self.poll_window(self._clock())
        connection = self._role.select_connection()
        results: List[PhaseResult] = []
        failures: List[Tuple[str, BaseException]] = []
        for operation in CYCLE_ORDER:
            try:
                results.append(self.run_phase(connection, operation, window))
            except RiverIOError as exc:
                self._metrics.inc_phase_errors()
                if self._policy == FAIL_FAST:
                    raise
                logger.error(
                    "(%s) %s phase failed, continuing: %s",
                    self._river_name,
                    operation.value,
                    exc,
                )
                failures.append((operation.value, exc))
        self._metrics.inc_cycles()
        if failures:
            raise CycleError(failures)
        return results

    def run_phase(
        self,
        connection: Any,
        operation: OperationType,
        window: Optional[PollWindow],
    ) -> PhaseResult:
        result, quoting = self._selector.select(
            connection, operation, ack_mode=self._acknowledge, window=window
        )
        try:
            replicated = self._replicator.replicate(result, self._sink)
        except RiverIOError:
            dropped = self._sink.discard()
            logger.warning(
                "(%s) discarded %d unsent %s documents",
                self._river_name,
                dropped,
                operation.value,
            )
            raise
        self._metrics.inc_replicated(replicated)

        outcomes = self._flush(operation)
        failed = sum(1 for outcome in outcomes or () if outcome.failed)
        self._metrics.inc_failed_items(failed)

        acknowledged = 0
        if self._writer.enabled:
            acknowledged = self._writer.acknowledge(self._role.ack_connection(), outcomes)
            self._metrics.inc_acknowledged(acknowledged)

        if replicated:
            logger.info(
                "(%s) %s: %d replicated, %d failed, %d acknowledged",
                self._river_name,
                operation.value,
                replicated,
                failed,
                acknowledged,
            )
        return PhaseResult(
            operation=operation,
            replicated=replicated,
            acknowledged=acknowledged,
            failed=failed,
            quoting=quoting,
        )

    def _flush(self, operation: OperationType) -> Optional[List[BulkOutcome]]:
        try:
            return self._sink.flush()
        except Exception as exc:  # noqa: BLE001 - sink transport is pluggable
            raise ReplicationError(
                f"({self._river_name}) sink flush for {operation.value} failed: {exc}"
            ) from exc


__all__ = ["CycleMetrics", "PhaseResult", "TableRiverSource"]
