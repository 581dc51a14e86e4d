"""Bulk sink for replicated river documents."""

from .bulk import BulkOutcome, BulkSink, Document, parse_bulk_response
from .client import (
    ElasticsearchBulkSink,
    RetryPolicy,
    SinkRequestError,
    SinkSettings,
    build_bulk_body,
)

__all__ = [
    "BulkOutcome",
    "BulkSink",
    "Document",
    "ElasticsearchBulkSink",
    "RetryPolicy",
    "SinkRequestError",
    "SinkSettings",
    "build_bulk_body",
    "parse_bulk_response",
]
