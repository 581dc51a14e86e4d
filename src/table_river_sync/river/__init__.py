"""The "table" river strategy: poll, replicate and acknowledge flagged rows."""

from .acknowledge import AcknowledgmentRecord, AcknowledgmentWriter
from .dialect import LADDER, QuotingStyle, StatementTemplate, execute_with_fallback
from .errors import (
    AcknowledgmentError,
    CycleError,
    DialectError,
    ReplicationError,
    RiverIOError,
)
from .operations import ACK_MARKER, CYCLE_ORDER, OperationType, PollWindow
from .replicator import RowMapper, RowReplicator, TableRowMapper
from .roles import MouthRole, RiverRole, TargetRole, build_role
from .selector import ChangeSelector
from .source import CycleMetrics, PhaseResult, TableRiverSource

__all__ = [
    "ACK_MARKER",
    "AcknowledgmentError",
    "AcknowledgmentRecord",
    "AcknowledgmentWriter",
    "CYCLE_ORDER",
    "ChangeSelector",
    "CycleError",
    "CycleMetrics",
    "DialectError",
    "LADDER",
    "MouthRole",
    "OperationType",
    "PhaseResult",
    "PollWindow",
    "QuotingStyle",
    "ReplicationError",
    "RiverIOError",
    "RiverRole",
    "RowMapper",
    "RowReplicator",
    "StatementTemplate",
    "TableRiverSource",
    "TableRowMapper",
    "TargetRole",
    "build_role",
    "execute_with_fallback",
]
