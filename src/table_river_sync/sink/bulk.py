"""Documents, bulk outcomes and the sink contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

# (_index, _type, _id) exactly as read from the river row, NULLs included
RowKey = Tuple[Any, Any, Any]


@dataclass(frozen=True)
class Document:
    """A river row addressed to the sink."""

    index: str
    type: Optional[str]
    id: str
    op_type: str
    source: Dict[str, Any] = field(default_factory=dict)
    row_key: Optional[RowKey] = field(default=None, compare=False)


@dataclass(frozen=True)
class BulkOutcome:
    """Per-item result of a bulk write."""

    index: Optional[str]
    type: Optional[str]
    id: Optional[str]
    op_type: str
    failed: bool = False
    message: Optional[str] = None
    row_key: Optional[RowKey] = field(default=None, compare=False)

    @classmethod
    def failure(cls, document: Document, message: str) -> "BulkOutcome":
        return cls(
            index=document.index,
            type=document.type,
            id=document.id,
            op_type=document.op_type,
            failed=True,
            message=message,
            row_key=document.row_key,
        )


class BulkSink(Protocol):
    """Accumulates documents and writes them in one bulk request."""

    def add(self, document: Document) -> None: ...

    def flush(self) -> Optional[List[BulkOutcome]]: ...

    def discard(self) -> int: ...


def _error_message(error: Any) -> str:
    if isinstance(error, Mapping):
        kind = error.get("type")
        reason = error.get("reason")
        if kind and reason:
            return f"{kind}: {reason}"
        return str(reason or kind or error)
    return str(error)


def parse_bulk_response(
    payload: Mapping[str, Any], documents: Sequence[Document]
) -> List[BulkOutcome]:
    """Translate a ``_bulk`` response body into outcomes in submission order."""

    items = payload.get("items")
    if not isinstance(items, list):
        raise ValueError("bulk response is missing 'items'")
    if len(items) != len(documents):
        raise ValueError(
            f"bulk response has {len(items)} items for {len(documents)} documents"
        )
    outcomes: List[BulkOutcome] = []
    for item, document in zip(items, documents):
        if not isinstance(item, Mapping) or not item:
            raise ValueError(f"malformed bulk response item: {item!r}")
        op_type, body = next(iter(item.items()))
        body = body if isinstance(body, Mapping) else {}
        error = body.get("error")
        # a delete of a missing document reports 404 without an error
        failed = error is not None
        message = _error_message(error) if failed else None
        outcomes.append(
            BulkOutcome(
                index=body.get("_index", document.index),
                type=body.get("_type", document.type),
                id=str(body.get("_id", document.id)),
                op_type=str(op_type),
                failed=failed,
                message=message,
                row_key=document.row_key,
            )
        )
    return outcomes


__all__ = ["BulkOutcome", "BulkSink", "Document", "RowKey", "parse_bulk_response"]
