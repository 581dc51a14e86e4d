"""Map selected river rows to documents and hand them to the sink."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Protocol

from ..db import row_to_mapping
from ..sink.bulk import BulkSink, Document
from .errors import ReplicationError

logger = logging.getLogger(__name__)

CONTROL_COLUMNS = frozenset(
    {
        "source_operation",
        "source_timestamp",
        "_index",
        "_type",
        "_id",
        "target_timestamp",
        "target_operation",
        "target_failed",
        "target_message",
    }
)


class RowMapper(Protocol):
    """Turns one river row into a sink document."""

    def to_document(self, row: Mapping[str, Any]) -> Document: ...


def _column(row: Mapping[str, Any], name: str) -> Any:
    if name in row:
        return row[name]
    # case-insensitive engines hand back upper-cased labels
    return row.get(name.upper())


def _plain(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def _assign(target: Dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    node = target
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


class TableRowMapper:
    """Default mapper for river tables.

    ``_index``, ``_type`` and ``_id`` columns address the document and
    ``source_operation`` picks the bulk action. Dotted column names such as
    ``person.name`` become nested objects. Control columns are not copied
    into the document source.
    """

    def __init__(self, *, default_index: str, default_type: Optional[str] = None) -> None:
        self._default_index = default_index
        self._default_type = default_type

    def to_document(self, row: Mapping[str, Any]) -> Document:
        doc_id = _column(row, "_id")
        if doc_id is None:
            raise ValueError("river row has no _id column value")
        operation = _column(row, "source_operation")
        if not operation:
            raise ValueError(f"river row {doc_id} has no source_operation")
        source: Dict[str, Any] = {}
        for name, value in row.items():
            if str(name).lower() in CONTROL_COLUMNS:
                continue
            _assign(source, str(name), _plain(value))
        row_index = _column(row, "_index")
        row_type = _column(row, "_type")
        return Document(
            index=row_index or self._default_index,
            type=row_type or self._default_type,
            id=str(doc_id),
            op_type=str(operation).strip().lower(),
            source=source,
            row_key=(row_index, row_type, doc_id),
        )


class RowReplicator:
    """Drains a result into the sink buffer, releasing it on every path.

    Every row is emitted; content digests are never consulted because each
    row is already flagged with the change it carries.
    """

    def __init__(self, mapper: RowMapper, *, digest: bool = False) -> None:
        self._mapper = mapper
        if digest:
            logger.debug("digesting is ignored by the table strategy")

    def replicate(self, result: Any, sink: BulkSink) -> int:
        count = 0
        try:
            description = getattr(result, "description", None)
            for raw in result:
                row = row_to_mapping(description, raw)
                try:
                    document = self._mapper.to_document(row)
                except Exception as exc:  # noqa: BLE001 - mapper is pluggable
                    raise ReplicationError(f"failed to map river row: {exc}") from exc
                try:
                    sink.add(document)
                except Exception as exc:  # noqa: BLE001 - sink is pluggable
                    raise ReplicationError(
                        f"sink rejected document {document.id}: {exc}"
                    ) from exc
                count += 1
        finally:
            close = getattr(result, "close", None)
            if close is not None:
                close()
        return count


__all__ = ["CONTROL_COLUMNS", "RowMapper", "RowReplicator", "TableRowMapper"]
