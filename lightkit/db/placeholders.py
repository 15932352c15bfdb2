from __future__ import annotations
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from lightkit.errors import ConfigurationError

_QUOTES = ("'", '"', "`")

DriverParams = Union[Tuple[Any, ...], Dict[str, Any]]


def replace_placeholders(sql: str, replace: Callable[[int], str]) -> str:
    """
    Substitute every '?' that sits outside quoted text.

    `replace` receives the 0-based position of the placeholder and returns
    the text to put in its place. Quoted strings and quoted identifiers are
    copied through untouched, so a column named `a?b` survives.
    """
    out = []
    quote: Optional[str] = None
    index = 0
    for ch in sql:
        if quote:
            out.append(ch)
            if ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
            out.append(ch)
        elif ch == "?":
            out.append(replace(index))
            index += 1
        else:
            out.append(ch)
    return "".join(out)


def count_placeholders(sql: str) -> int:
    positions = []

    def mark(i: int) -> str:
        positions.append(i)
        return "?"

    replace_placeholders(sql, mark)
    return len(positions)


def to_paramstyle(sql: str, bindings: Sequence[Any], paramstyle: str) -> Tuple[str, Optional[DriverParams]]:
    """
    Rewrite '?' placeholders for a DBAPI paramstyle.

    Returns (sql, params); params is None when there is nothing to bind, and
    the statement must then be sent without parameters so drivers that do
    %-formatting leave the text alone.
    """
    if not bindings:
        return sql, None
    if paramstyle == "qmark":
        return sql, tuple(bindings)
    if paramstyle in ("format", "pyformat"):
        # literal % must survive the driver's %-formatting
        return replace_placeholders(sql.replace("%", "%%"), lambda i: "%s"), tuple(bindings)
    if paramstyle == "numeric":
        return replace_placeholders(sql, lambda i: f":{i + 1}"), tuple(bindings)
    if paramstyle == "named":
        params = {f"p{i + 1}": value for i, value in enumerate(bindings)}
        return replace_placeholders(sql, lambda i: f":p{i + 1}"), params
    raise ConfigurationError(f"Unsupported DBAPI paramstyle: {paramstyle!r}")
