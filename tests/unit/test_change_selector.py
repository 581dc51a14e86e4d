from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from table_river_sync.db import ConnectionProvider
from table_river_sync.river.dialect import QuotingStyle
from table_river_sync.river.operations import CYCLE_ORDER, OperationType, PollWindow
from table_river_sync.river.replicator import TableRowMapper
from table_river_sync.river.roles import MouthRole
from table_river_sync.river.selector import ChangeSelector
from table_river_sync.river.source import TableRiverSource


class _FakeResult:
    def __init__(self):
        self.closed = False

    def __iter__(self):
        return iter(())

    def close(self) -> None:
        self.closed = True


class _RecordingConnection:
    placeholder = "?"

    def __init__(self, reject_quoted_table: bool = False):
        self.reject_quoted_table = reject_quoted_table
        self.executed = []

    def execute(self, query, params=()):
        self.executed.append((query, tuple(params)))
        if self.reject_quoted_table and 'from "' in query:
            raise RuntimeError("quoted table names are not supported")
        return _FakeResult()


WINDOW = PollWindow.ending_at(datetime(2025, 1, 1, 12, 0, 0), timedelta(minutes=1))


@pytest.mark.unit
def test_ack_mode_query_has_no_time_predicate() -> None:
    conn = _RecordingConnection()
    selector = ChangeSelector("books")

    selector.select(conn, OperationType.CREATE, ack_mode=True)

    query, params = conn.executed[0]
    assert "source_timestamp" in query  # ordering only
    assert ">=" not in query and "<" not in query
    assert query == (
        'select * from "books" where "source_operation" = ? order by "source_timestamp"'
    )
    assert params == ("create",)


@pytest.mark.unit
def test_window_mode_binds_operation_then_window() -> None:
    conn = _RecordingConnection()
    selector = ChangeSelector("books")

    selector.select(conn, OperationType.UPDATE, ack_mode=False, window=WINDOW)

    query, params = conn.executed[0]
    assert query == (
        'select * from "books" where "source_operation" = ? '
        'and "source_timestamp" >= ? and "source_timestamp" < ? '
        'order by "source_timestamp"'
    )
    assert params == ("update", WINDOW.start, WINDOW.end)


@pytest.mark.unit
def test_unordered_selector_omits_order_by() -> None:
    conn = _RecordingConnection()
    selector = ChangeSelector("books", ordered=False)

    selector.select(conn, OperationType.DELETE, ack_mode=True)

    assert "order by" not in conn.executed[0][0]


@pytest.mark.unit
def test_window_is_required_without_ack_mode() -> None:
    selector = ChangeSelector("books")
    with pytest.raises(ValueError):
        selector.select(_RecordingConnection(), OperationType.INDEX, ack_mode=False)


@pytest.mark.unit
def test_rejected_quoted_table_uses_second_variant() -> None:
    conn = _RecordingConnection(reject_quoted_table=True)
    selector = ChangeSelector("books")

    result, style = selector.select(
        conn, OperationType.INDEX, ack_mode=False, window=WINDOW
    )

    assert style is QuotingStyle.UNQUOTED_TABLE
    assert isinstance(result, _FakeResult)
    assert conn.executed[1][0].startswith('select * from books where "source_operation"')
    assert conn.executed[1][1] == ("index", WINDOW.start, WINDOW.end)


@pytest.mark.unit
def test_poll_window_is_half_open() -> None:
    now = datetime(2025, 1, 1, 12, 0, 0)
    window = PollWindow.ending_at(now, timedelta(seconds=30))

    assert window.start == now - timedelta(seconds=30)
    assert window.contains(window.start)
    assert not window.contains(now)
    assert window.contains(now - timedelta(microseconds=1))


@pytest.mark.unit
def test_poll_window_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        PollWindow.ending_at(datetime(2025, 1, 1), timedelta(0))


@pytest.mark.unit
def test_cycle_order_runs_delete_before_update() -> None:
    assert [op.value for op in CYCLE_ORDER] == ["create", "index", "delete", "update"]


@pytest.mark.unit
def test_selector_requires_table_name() -> None:
    with pytest.raises(ValueError):
        ChangeSelector("")


class _EmptySink:
    def add(self, document) -> None:
        raise AssertionError("no rows expected")

    def flush(self):
        return []

    def discard(self) -> int:
        return 0


@pytest.mark.unit
def test_default_clock_binds_utc_aware_window() -> None:
    conn = _RecordingConnection()
    source = TableRiverSource(
        role=MouthRole(ConnectionProvider(lambda: conn), "books"),
        sink=_EmptySink(),
        mapper=TableRowMapper(default_index="books"),
        river_name="books",
        polling_interval=timedelta(minutes=1),
        acknowledge=False,
    )
    before = datetime.now(timezone.utc)

    source.fetch()

    after = datetime.now(timezone.utc)
    windows = {params[1:] for _query, params in conn.executed}
    assert len(windows) == 1
    start, end = windows.pop()
    assert end.utcoffset() == timedelta(0)
    assert before <= end <= after
    assert end - start == timedelta(minutes=1)
