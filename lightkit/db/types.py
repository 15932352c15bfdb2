from __future__ import annotations
from typing import Any, Dict, List, NamedTuple, TypedDict, Union


# ---- typed data structures

class ConnectionConfig(TypedDict, total=False):
    driver: str       # 'mysql' (default), 'pgsql', 'sqlite' or a SQLAlchemy drivername
    host: str         # server host, '127.0.0.1' by default
    port: int         # optional, driver default when missing
    database: str     # database name (file path for sqlite)
    username: str     # 'root' by default
    password: str
    charset: str      # 'utf8mb4' or '<charset>_<collation>', e.g. 'utf8mb4_unicode_ci'
    options: Dict[str, Any]  # extra keyword arguments for create_engine()


class Raw:
    """
    SQL fragment emitted verbatim, without identifier quoting.

        qb.select("id", Raw("COUNT(*) AS cnt"))

    Never build a Raw from user input.
    """

    __slots__ = ("sql",)

    def __init__(self, sql: str):
        self.sql = str(sql)

    def __str__(self) -> str:
        return self.sql

    def __repr__(self) -> str:
        return f"Raw({self.sql!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Raw) and other.sql == self.sql

    def __hash__(self) -> int:
        return hash((Raw, self.sql))


# column / table reference: plain names get quoted, Raw does not
Ref = Union[str, Raw]

# one result row, column name -> value, in driver column order
Row = Dict[str, Any]


class Clause(NamedTuple):
    connector: str        # 'AND' | 'OR'; ignored for the first clause of a chain
    sql: str              # compiled fragment with '?' placeholders
    bindings: List[Any]   # values for the fragment's placeholders, left to right


class Join(NamedTuple):
    type: str             # 'INNER' | 'LEFT' | 'RIGHT'
    table: str            # already quoted
    first: str            # already quoted
    operator: str
    second: str           # already quoted


class Order(NamedTuple):
    column: str           # already quoted
    direction: str        # 'ASC' | 'DESC'


Bindings = List[Any]
