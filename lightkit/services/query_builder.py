import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import String, literal
from sqlalchemy.engine import Engine
from sqlalchemy.exc import CompileError

from lightkit.db import connections
from lightkit.db.placeholders import count_placeholders, replace_placeholders, to_paramstyle
from lightkit.db.types import Bindings, Clause, ConnectionConfig, Join, Order, Raw, Ref, Row
from lightkit.errors import InvalidArgumentError
from lightkit.state.query_state import QueryState

logger = logging.getLogger(__name__)

# marks "no third argument" in where(); None is a legitimate value to bind
_MISSING = object()

OPERATORS = frozenset({"=", "<", ">", "<=", ">=", "<>", "!=", "<=>", "LIKE", "NOT LIKE"})
CONNECTORS = ("AND", "OR")
JOIN_TYPES = ("INNER", "LEFT", "RIGHT")


class QueryBuilder:
    """
    Fluent SELECT/INSERT/UPDATE/DELETE builder over a SQLAlchemy Engine.

        qb = QueryBuilder(engine)
        users = (qb.table("users")
                   .select("id", "name")
                   .where("status", "active")
                   .order_by("id", "DESC")
                   .limit(10)
                   .get())

        new_id = qb.table("users").insert({"name": "John", "email": "j@e.com"})
        qb.table("users").where("id", new_id).update({"name": "Jane"})
        qb.table("users").where("id", new_id).delete()

    table() starts a new statement and clears every clause. Terminal
    operations (get, first, count, insert, update, delete) clear every clause
    afterwards but keep the table, so the next statement can reuse it.

    One builder is one mutable accumulator: do not share an instance between
    threads without external locking.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.state = QueryState()

    @classmethod
    def from_env(cls, env: Optional[Any] = None) -> "QueryBuilder":
        return cls(connections.from_env(env))

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> "QueryBuilder":
        return cls(connections.make(config))

    # ---------- validation helpers ----------

    @staticmethod
    def _operator(operator: str) -> str:
        op = " ".join(str(operator).split()).upper()
        if op not in OPERATORS:
            raise InvalidArgumentError(f"Unsupported operator: {operator!r}")
        return op

    @staticmethod
    def _connector(connector: str) -> str:
        conn = str(connector).strip().upper()
        if conn not in CONNECTORS:
            raise InvalidArgumentError(f"Connector must be AND or OR, got {connector!r}")
        return conn

    @staticmethod
    def _non_negative(value: int, what: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgumentError(f"{what} must be an integer, got {value!r}")
        if value < 0:
            raise InvalidArgumentError(f"{what} must be >= 0")
        return value

    def _add_where(self, connector: str, sql: str, bindings: Bindings) -> "QueryBuilder":
        self.state.wheres.append(Clause(self._connector(connector), sql, bindings))
        return self

    # ---------- statement shape ----------

    def table(self, name: Ref) -> "QueryBuilder":
        """Start a new statement on `name`; all previous clauses are dropped."""
        if not name:
            raise InvalidArgumentError("Table name cannot be empty")
        self.state.reset()
        self.state.table = name
        return self

    def select(self, *columns: Ref) -> "QueryBuilder":
        if columns:
            self.state.columns = list(columns)
        return self

    def select_raw(self, expression: str) -> "QueryBuilder":
        """select_raw('COUNT(*) AS cnt'); replaces the default '*' on first use."""
        if self.state.columns == ["*"]:
            self.state.columns = []
        self.state.columns.append(Raw(expression))
        return self

    def where(self, column: Ref, operator: Any, value: Any = _MISSING, connector: str = "AND") -> "QueryBuilder":
        """
        where('age', '>', 25)   -> `age` > ?
        where('status', 'new')  -> `status` = ?
        """
        if value is _MISSING:
            operator, value = "=", operator
        op = self._operator(operator)
        return self._add_where(connector, f"{self.state.wrap(column)} {op} ?", [value])

    def or_where(self, column: Ref, operator: Any, value: Any = _MISSING) -> "QueryBuilder":
        return self.where(column, operator, value, connector="OR")

    def where_null(self, column: Ref, connector: str = "AND", negate: bool = False) -> "QueryBuilder":
        sql = f"{self.state.wrap(column)} IS {'NOT ' if negate else ''}NULL"
        return self._add_where(connector, sql, [])

    def where_not_null(self, column: Ref, connector: str = "AND") -> "QueryBuilder":
        return self.where_null(column, connector, negate=True)

    def or_where_null(self, column: Ref) -> "QueryBuilder":
        return self.where_null(column, "OR")

    def or_where_not_null(self, column: Ref) -> "QueryBuilder":
        return self.where_null(column, "OR", negate=True)

    def where_in(self, column: Ref, values: Iterable[Any], connector: str = "AND", negate: bool = False) -> "QueryBuilder":
        if isinstance(values, (str, bytes)):
            raise InvalidArgumentError("where_in() expects a collection of values, not a string")
        values = list(values)
        if not values:
            # IN () is invalid SQL: empty IN never matches, empty NOT IN always does
            return self._add_where(connector, "1 = 1" if negate else "1 = 0", [])
        placeholders = ", ".join("?" for _ in values)
        sql = f"{self.state.wrap(column)} {'NOT ' if negate else ''}IN ({placeholders})"
        return self._add_where(connector, sql, values)

    def where_not_in(self, column: Ref, values: Iterable[Any], connector: str = "AND") -> "QueryBuilder":
        return self.where_in(column, values, connector, negate=True)

    def or_where_in(self, column: Ref, values: Iterable[Any]) -> "QueryBuilder":
        return self.where_in(column, values, "OR")

    def or_where_not_in(self, column: Ref, values: Iterable[Any]) -> "QueryBuilder":
        return self.where_in(column, values, "OR", negate=True)

    def where_between(self, column: Ref, start: Any, end: Any, connector: str = "AND", negate: bool = False) -> "QueryBuilder":
        sql = f"{self.state.wrap(column)} {'NOT ' if negate else ''}BETWEEN ? AND ?"
        return self._add_where(connector, sql, [start, end])

    def or_where_between(self, column: Ref, start: Any, end: Any) -> "QueryBuilder":
        return self.where_between(column, start, end, "OR")

    def where_not_between(self, column: Ref, start: Any, end: Any, connector: str = "AND") -> "QueryBuilder":
        return self.where_between(column, start, end, connector, negate=True)

    def join(self, table: Ref, first: Ref, operator: str, second: Ref, type: str = "INNER") -> "QueryBuilder":
        join_type = str(type).strip().upper()
        if join_type not in JOIN_TYPES:
            raise InvalidArgumentError(f"Unsupported join type: {type!r}")
        wrap = self.state.wrap
        self.state.joins.append(Join(join_type, wrap(table), wrap(first), self._operator(operator), wrap(second)))
        return self

    def left_join(self, table: Ref, first: Ref, operator: str, second: Ref) -> "QueryBuilder":
        return self.join(table, first, operator, second, "LEFT")

    def right_join(self, table: Ref, first: Ref, operator: str, second: Ref) -> "QueryBuilder":
        return self.join(table, first, operator, second, "RIGHT")

    def group_by(self, *columns: Ref) -> "QueryBuilder":
        self.state.group_bys.extend(self.state.wrap(c) for c in columns)
        return self

    def having(self, column: Ref, operator: str, value: Any, connector: str = "AND") -> "QueryBuilder":
        sql = f"{self.state.wrap(column)} {self._operator(operator)} ?"
        self.state.havings.append(Clause(self._connector(connector), sql, [value]))
        return self

    def or_having(self, column: Ref, operator: str, value: Any) -> "QueryBuilder":
        return self.having(column, operator, value, "OR")

    def order_by(self, column: Ref, direction: str = "ASC") -> "QueryBuilder":
        # anything but DESC sorts ascending
        dir_ = "DESC" if str(direction).strip().upper() == "DESC" else "ASC"
        self.state.orders.append(Order(self.state.wrap(column), dir_))
        return self

    def limit(self, limit: int) -> "QueryBuilder":
        self.state.limit = self._non_negative(limit, "Limit")
        return self

    def offset(self, offset: int) -> "QueryBuilder":
        self.state.offset = self._non_negative(offset, "Offset")
        return self

    # ---------- terminal operations ----------

    def get(self) -> List[Row]:
        """Run the SELECT and return every row as a dict, in driver order."""
        sql, bindings = self.state.compile_select()
        try:
            return self._execute(sql, bindings)["rows"]
        finally:
            self.state.reset_clauses()

    def first(self) -> Optional[Row]:
        """First matching row or None; sets LIMIT 1 unless a limit is already set."""
        if self.state.limit is None:
            self.state.limit = 1
        rows = self.get()
        return rows[0] if rows else None

    def count(self) -> int:
        """COUNT(*) of the current query; the selected columns are kept."""
        original = list(self.state.columns)
        self.state.columns = [Raw("COUNT(*) AS aggregate")]
        try:
            row = self.first()
        finally:
            self.state.columns = original
        return int(row["aggregate"]) if row else 0

    def insert(self, data: Mapping[Ref, Any]) -> Optional[int]:
        """Insert one row; returns the generated primary key (driver lastrowid)."""
        sql, bindings = self.state.compile_insert(data)
        try:
            return self._execute(sql, bindings, write=True)["last_id"]
        finally:
            self.state.reset_clauses()

    def update(self, data: Mapping[Ref, Any]) -> int:
        """
        Update rows matching the WHERE clauses; returns the affected row count.

        On MySQL this is the number of matched rows, changed or not: the
        SQLAlchemy MySQL dialects connect with CLIENT.FOUND_ROWS.
        """
        sql, bindings = self.state.compile_update(data)
        try:
            return self._execute(sql, bindings, write=True)["row_count"]
        finally:
            self.state.reset_clauses()

    def delete(self) -> int:
        """Delete rows matching the WHERE clauses; returns the affected row count."""
        sql, bindings = self.state.compile_delete()
        try:
            return self._execute(sql, bindings, write=True)["row_count"]
        finally:
            self.state.reset_clauses()

    def to_sql(self) -> Tuple[str, Bindings]:
        """Compile the current SELECT without running it or touching state."""
        return self.state.compile_select()

    def to_raw_sql(self) -> str:
        """
        SELECT with the bindings inlined as dialect literals.
        For logs and debugging only; never execute the result.
        """
        sql, bindings = self.state.compile_select()
        expected = count_placeholders(sql)
        if expected != len(bindings):
            raise InvalidArgumentError(
                f"Statement has {expected} placeholder(s) but {len(bindings)} binding(s)"
            )
        return replace_placeholders(sql, lambda i: self._literal(bindings[i]))

    # ---------- internals ----------

    def _literal(self, value: Any) -> str:
        if value is None:
            return "NULL"
        dialect = self.engine.dialect
        try:
            return str(literal(value).compile(dialect=dialect, compile_kwargs={"literal_binds": True}))
        except CompileError:
            # no literal renderer for this type: fall back to a quoted string
            return String().literal_processor(dialect)(str(value))

    def _execute(self, sql: str, bindings: Bindings, *, write: bool = False) -> Dict[str, Any]:
        expected = count_placeholders(sql)
        if expected != len(bindings):
            raise InvalidArgumentError(
                f"Statement has {expected} placeholder(s) but {len(bindings)} binding(s)"
            )

        driver_sql, params = to_paramstyle(sql, bindings, self.engine.dialect.paramstyle)
        opener = self.engine.begin if write else self.engine.connect

        t0 = time.perf_counter()
        rows: List[Row] = []
        with opener() as conn:
            if params is None:
                res = conn.exec_driver_sql(driver_sql, execution_options={"no_parameters": True})
            else:
                res = conn.exec_driver_sql(driver_sql, params)
            if res.returns_rows:
                rows = [dict(r) for r in res.mappings()]
            row_count = res.rowcount if write else len(rows)
            last_id = res.lastrowid if write else None
        dt = round((time.perf_counter() - t0) * 1000, 1)

        logger.debug("[sql] %s | %d binding(s) | %.1f ms", sql, len(bindings), dt)
        return {"rows": rows, "row_count": row_count, "last_id": last_id, "duration_ms": dt}
