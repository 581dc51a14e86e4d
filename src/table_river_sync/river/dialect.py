"""Runtime identifier-quoting fallback for river statements.

No single quoting convention works across the databases a river table may
live in: some engines reject a quoted table name, others accept the syntax
but fail at execution time, and case-insensitive engines only match
lower-cased bare identifiers. Every statement is therefore rendered as a
ladder of variants and executed until one succeeds. The resolved variant is
never cached; the next statement starts from the first variant again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Sequence, Tuple

from ..db import placeholder_for
from .errors import DialectError

logger = logging.getLogger(__name__)


class QuotingStyle(Enum):
    QUOTED = "quoted"
    UNQUOTED_TABLE = "unquoted_table"
    UNQUOTED = "unquoted"


LADDER: Tuple[QuotingStyle, ...] = (
    QuotingStyle.QUOTED,
    QuotingStyle.UNQUOTED_TABLE,
    QuotingStyle.UNQUOTED,
)


class _Identifiers(dict):
    """format_map namespace that quotes any column name it is asked for."""

    def __init__(self, style: QuotingStyle, tables: Mapping[str, str], placeholder: str):
        super().__init__()
        self._style = style
        for key, name in tables.items():
            self[key] = _quote_table(name, style)
        self["p"] = placeholder

    def __missing__(self, column: str) -> str:
        if self._style is QuotingStyle.UNQUOTED:
            return column.lower()
        return f'"{column}"'


def _quote_table(name: str, style: QuotingStyle) -> str:
    if style is QuotingStyle.QUOTED:
        return f'"{name}"'
    if style is QuotingStyle.UNQUOTED:
        return name.lower()
    return name


@dataclass(frozen=True)
class StatementTemplate:
    """SQL text with ``{table}``-style table slots, ``{column}`` slots and ``{p}`` binds.

    Table slots are resolved from ``tables``; any other name is treated as a
    column identifier and quoted according to the style being rendered.
    """

    text: str
    tables: Mapping[str, str] = field(default_factory=dict)

    def render(self, style: QuotingStyle, *, placeholder: str = "%s") -> str:
        return self.text.format_map(_Identifiers(style, self.tables, placeholder))

    def variants(self, *, placeholder: str = "%s") -> Dict[QuotingStyle, str]:
        return {style: self.render(style, placeholder=placeholder) for style in LADDER}


def execute_with_fallback(
    connection: Any,
    template: StatementTemplate,
    params: Sequence[Any] = (),
) -> Tuple[Any, QuotingStyle]:
    """Execute the first quoting variant the connection accepts.

    Returns the driver result and the style that succeeded. Only the last
    variant's failure escapes, wrapped in :class:`DialectError`.
    """

    placeholder = placeholder_for(connection)
    bound = tuple(params)
    last_error: BaseException | None = None
    text = ""
    for style in LADDER:
        text = template.render(style, placeholder=placeholder)
        try:
            result = connection.execute(text, bound)
        except Exception as exc:  # noqa: BLE001 - driver error classes differ per dialect
            last_error = exc
            logger.debug("statement rejected with %s quoting: %s", style.value, exc)
            continue
        return result, style
    raise DialectError(
        f"statement failed under every quoting variant: {last_error}",
        statement=text,
    ) from last_error


__all__ = [
    "LADDER",
    "QuotingStyle",
    "StatementTemplate",
    "execute_with_fallback",
]
