"""Bulk sink posting river documents to an Elasticsearch-compatible ``_bulk`` API."""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import httpx

from .bulk import BulkOutcome, Document, parse_bulk_response

logger = logging.getLogger(__name__)


class SinkRequestError(RuntimeError):
    """Wraps terminal bulk request failures."""


@dataclass(frozen=True)
class SinkSettings:
    """Settings that control the bulk sink behaviour."""

    base_url: str
    endpoint_path: str = "/_bulk"
    request_timeout_seconds: float = 10.0
    retry_attempts: int = 3
    retry_base_delay_seconds: float = 0.2
    retry_max_delay_seconds: float = 6.4
    username: str = ""
    password: str = ""
    refresh: bool = False
    jitter: Optional[Callable[[float], float]] = None

    def resolve_endpoint(self) -> str:
        """Return the absolute endpoint URL for ``_bulk`` calls."""
        base = self.base_url.rstrip("/")
        path = self.endpoint_path.strip()
        if not path:
            return base
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{base}{path}"


class RetryPolicy:
    """Exponential backoff with jitter helper."""

    def __init__(
        self,
        *,
        attempts: int,
        base_delay: float,
        max_delay: float,
        jitter: Optional[Callable[[float], float]] = None,
    ) -> None:
        if attempts < 0:
            raise ValueError("attempts must be >= 0")
        if base_delay <= 0 or max_delay <= 0:
            raise ValueError("delays must be positive")
        self._retries = attempts
        self._jitter_fn = jitter or (lambda limit: random.uniform(0, limit))
        self._limits: List[float] = []
        delay = base_delay
        for _ in range(self._retries):
            self._limits.append(min(delay, max_delay))
            delay = min(delay * 2, max_delay)

    @property
    def max_attempts(self) -> int:
        """Return the total attempts (first try + retries)."""
        return self._retries + 1

    def next_delay(self, attempt: int) -> float:
        """Return the backoff delay (seconds) before ``attempt``."""
        if attempt <= 1:
            return 0.0
        index = min(attempt - 2, len(self._limits) - 1)
        if index < 0:
            return 0.0
        return max(0.0, self._jitter_fn(self._limits[index]))


def build_bulk_body(documents: Sequence[Document]) -> str:
    """Render documents as newline-delimited bulk actions."""

    lines: List[str] = []
    for document in documents:
        meta = {"_index": document.index, "_id": document.id}
        if document.type:
            meta["_type"] = document.type
        lines.append(json.dumps({document.op_type: meta}, default=str))
        if document.op_type == "delete":
            continue
        if document.op_type == "update":
            source = {"doc": document.source, "doc_as_upsert": True}
        else:
            source = document.source
        lines.append(json.dumps(source, default=str))
    return "\n".join(lines) + "\n"


class ElasticsearchBulkSink:
    """Buffers documents per phase and writes them in one ``_bulk`` request."""

    def __init__(
        self,
        settings: SinkSettings,
        *,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._sleep = sleep
        self._endpoint = settings.resolve_endpoint()
        if settings.refresh:
            self._endpoint = f"{self._endpoint}?refresh=true"
        self._retry_policy = RetryPolicy(
            attempts=settings.retry_attempts,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
            jitter=settings.jitter,
        )
        self._buffer: List[Document] = []
        if http_client is None:
            auth = None
            if settings.username:
                auth = (settings.username, settings.password)
            http_client = httpx.Client(
                timeout=settings.request_timeout_seconds,
                auth=auth,
                headers={"Accept": "application/json"},
            )
        self._http_client = http_client

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def add(self, document: Document) -> None:
        self._buffer.append(document)

    def discard(self) -> int:
        dropped = len(self._buffer)
        self._buffer = []
        return dropped

    def flush(self) -> List[BulkOutcome]:
        """Send buffered documents; failed requests become failed outcomes."""

        batch, self._buffer = self._buffer, []
        if not batch:
            return []
        try:
            payload = self._send(batch)
            return parse_bulk_response(payload, batch)
        except (SinkRequestError, ValueError) as exc:
            logger.error("bulk request for %d documents failed: %s", len(batch), exc)
            return [BulkOutcome.failure(document, str(exc)) for document in batch]

    def close(self) -> None:
        self._http_client.close()

    def __enter__(self) -> "ElasticsearchBulkSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _send(self, batch: Sequence[Document]) -> dict:
        body = build_bulk_body(batch)
        attempt = 1
        while True:
            try:
                response = self._http_client.post(
                    self._endpoint,
                    content=body.encode("utf-8"),
                    headers={"Content-Type": "application/x-ndjson"},
                )
                response.raise_for_status()
                return response.json()
            except httpx.HTTPError as exc:
                if attempt >= self._retry_policy.max_attempts or not self._is_retriable(
                    exc
                ):
                    raise SinkRequestError(f"bulk request failed: {exc}") from exc
                attempt += 1
                delay = self._retry_policy.next_delay(attempt)
                logger.warning(
                    "bulk request failed (%s); retry %d in %.2fs", exc, attempt, delay
                )
                if delay > 0:
                    self._sleep(delay)

    @staticmethod
    def _is_retriable(error: Exception) -> bool:
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            return status >= 500 or status == 429
        return isinstance(error, httpx.RequestError)


__all__ = [
    "ElasticsearchBulkSink",
    "RetryPolicy",
    "SinkRequestError",
    "SinkSettings",
    "build_bulk_body",
]
