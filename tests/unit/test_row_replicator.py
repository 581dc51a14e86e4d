from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from table_river_sync.river.errors import ReplicationError
from table_river_sync.river.replicator import RowReplicator, TableRowMapper
from table_river_sync.sink.bulk import Document


class _FakeResult:
    def __init__(self, rows, description=None):
        self._rows = rows
        self.description = description
        self.closed = False

    def __iter__(self):
        return iter(self._rows)

    def close(self) -> None:
        self.closed = True


class _ListSink:
    def __init__(self):
        self.documents = []

    def add(self, document: Document) -> None:
        self.documents.append(document)

    def flush(self):
        batch, self.documents = self.documents, []
        return batch

    def discard(self) -> int:
        dropped = len(self.documents)
        self.documents = []
        return dropped


class _ExplodingMapper:
    def to_document(self, row):
        raise KeyError("title")


@pytest.mark.unit
def test_mapper_addresses_document_and_strips_control_columns() -> None:
    mapper = TableRowMapper(default_index="library", default_type="book")
    row = {
        "_index": "books",
        "_type": None,
        "_id": 7,
        "source_operation": "index",
        "source_timestamp": datetime(2025, 1, 1, 12, 0),
        "title": "Dune",
        "author.name": "Herbert",
        "author.born": datetime(1920, 10, 8),
        "price": Decimal("9.50"),
    }

    document = mapper.to_document(row)

    assert document.index == "books"
    assert document.type == "book"
    assert document.id == "7"
    assert document.row_key == ("books", None, 7)
    assert document.op_type == "index"
    assert document.source == {
        "title": "Dune",
        "author": {"name": "Herbert", "born": "1920-10-08T00:00:00"},
        "price": 9.5,
    }


@pytest.mark.unit
def test_mapper_accepts_upper_case_labels() -> None:
    mapper = TableRowMapper(default_index="library")
    document = mapper.to_document(
        {"_ID": "a1", "SOURCE_OPERATION": "DELETE", "TITLE": "x"}
    )

    assert document.id == "a1"
    assert document.op_type == "delete"
    assert document.index == "library"
    assert document.source == {"TITLE": "x"}


@pytest.mark.unit
def test_mapper_rejects_rows_without_id() -> None:
    mapper = TableRowMapper(default_index="library")
    with pytest.raises(ValueError):
        mapper.to_document({"source_operation": "create", "title": "x"})


@pytest.mark.unit
def test_replicator_emits_every_row_and_closes_result() -> None:
    rows = [
        ("books", "book", "1", "create", "Dune"),
        ("books", "book", "1", "create", "Dune"),
    ]
    description = [
        ("_index",),
        ("_type",),
        ("_id",),
        ("source_operation",),
        ("title",),
    ]
    result = _FakeResult(rows, description)
    sink = _ListSink()
    replicator = RowReplicator(TableRowMapper(default_index="books"), digest=True)

    count = replicator.replicate(result, sink)

    # identical rows are both emitted; no digest deduplication
    assert count == 2
    assert [doc.id for doc in sink.documents] == ["1", "1"]
    assert result.closed is True


@pytest.mark.unit
def test_replicator_wraps_mapper_errors_and_still_closes() -> None:
    result = _FakeResult([{"_id": "1"}])
    replicator = RowReplicator(_ExplodingMapper())

    with pytest.raises(ReplicationError) as excinfo:
        replicator.replicate(result, _ListSink())

    assert isinstance(excinfo.value, IOError)
    assert isinstance(excinfo.value.__cause__, KeyError)
    assert result.closed is True
