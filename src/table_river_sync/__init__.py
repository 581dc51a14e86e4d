"""Change-data-capture sync from flagged river tables to a search index."""

from .river import OperationType, PollWindow, TableRiverSource


def main() -> None:
    """Entrypoint proxy that defers importing the service until needed."""

    from .service import main as _service_main

    raise SystemExit(_service_main())


__all__ = ["main", "OperationType", "PollWindow", "TableRiverSource"]
