"""Polling runtime that drives table river cycles at a fixed interval."""

from __future__ import annotations

import argparse
import logging
import time
from threading import Event
from typing import Callable, Optional

from .config import Settings, load_settings
from .db import ConnectionProvider
from .river import TableRiverSource, TableRowMapper, build_role
from .river.replicator import RowMapper
from .sink import BulkSink, ElasticsearchBulkSink, SinkSettings

logger = logging.getLogger(__name__)


class RiverService:
    """Runs one cycle per polling interval until stopped.

    Cycles never overlap; a failed cycle is logged and the next tick starts
    again from whatever the river table holds.
    """

    def __init__(
        self,
        source: TableRiverSource,
        *,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._source = source
        self._interval = interval_seconds
        self._clock = clock
        self._stop_event = Event()
        self._sleep = sleep or self._stop_event.wait
        self.failed_cycles = 0

    @property
    def source(self) -> TableRiverSource:
        return self._source

    def stop(self) -> None:
        self._stop_event.set()

    def run_once(self) -> bool:
        try:
            self._source.fetch()
        except Exception:  # noqa: BLE001 - next cycle resumes from table state
            self.failed_cycles += 1
            logger.exception("river cycle failed - retrying next interval")
            return False
        return True

    def run_forever(self) -> None:
        while not self._stop_event.is_set():
            started = self._clock()
            self.run_once()
            remaining = self._interval - (self._clock() - started)
            if remaining > 0 and not self._stop_event.is_set():
                self._sleep(remaining)


def build_sink(settings: Settings) -> ElasticsearchBulkSink:
    return ElasticsearchBulkSink(
        SinkSettings(
            base_url=settings.sink_base_url,
            request_timeout_seconds=settings.sink_request_timeout_seconds,
            retry_attempts=settings.sink_retry_attempts,
            retry_base_delay_seconds=settings.sink_retry_base_delay_seconds,
            retry_max_delay_seconds=settings.sink_retry_max_delay_seconds,
            username=settings.sink_username,
            password=settings.sink_password,
            refresh=settings.sink_refresh,
        )
    )


def build_river_source(
    settings: Settings,
    *,
    connections: Optional[ConnectionProvider] = None,
    sink: Optional[BulkSink] = None,
    mapper: Optional[RowMapper] = None,
    **kwargs,
) -> TableRiverSource:
    """Construct a table river source using application settings."""

    connections = connections or ConnectionProvider.from_settings(settings)
    role = build_role(settings.role, connections, settings.river_name)
    return TableRiverSource(
        role=role,
        sink=sink or build_sink(settings),
        mapper=mapper
        or TableRowMapper(
            default_index=settings.default_index,
            default_type=settings.default_type,
        ),
        river_name=settings.river_name,
        polling_interval=settings.polling_interval,
        acknowledge=settings.acknowledge,
        digesting=settings.digesting,
        phase_failure_policy=settings.phase_failure_policy,
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Table river sync")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("run", help="Poll the river table every polling interval")
    subparsers.add_parser("once", help="Run a single cycle and exit")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Entrypoint used by both python -m and the console script hook."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        )
    settings = load_settings()
    connections = ConnectionProvider.from_settings(settings)
    sink = build_sink(settings)
    source = build_river_source(settings, connections=connections, sink=sink)
    service = RiverService(source, interval_seconds=settings.polling_interval_seconds)
    logger.info(
        "river %s starting as %s (acknowledge=%s, interval=%ss)",
        settings.river_name,
        settings.role,
        settings.acknowledge,
        settings.polling_interval_seconds,
    )
    try:
        if args.command == "once":
            return 0 if service.run_once() else 1
        service.run_forever()
    except KeyboardInterrupt:
        logger.info("shutdown requested (KeyboardInterrupt)")
        service.stop()
    finally:
        sink.close()
        connections.close()
    return 0


__all__ = ["RiverService", "build_river_source", "build_sink", "main"]
