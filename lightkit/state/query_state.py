from __future__ import annotations
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from lightkit.db.types import Bindings, Clause, Join, Order, Raw, Ref
from lightkit.errors import InvalidArgumentError


class QueryState:
    """
    Shape of one in-progress statement and the compiler that turns it into
    SQL text with positional '?' placeholders plus the matching bindings.

    Bindings are always returned in the left-to-right order of the
    placeholders: data values (INSERT/UPDATE), then WHERE, then HAVING.
    """

    # MySQL dialect; swap for '"' to emit ANSI identifiers
    quote_char = "`"

    def __init__(self):
        self.table: Optional[Ref] = None
        self.reset_clauses()

    def reset(self) -> None:
        """Forget everything, including the target table."""
        self.table = None
        self.reset_clauses()

    def reset_clauses(self) -> None:
        """Forget every clause but keep the target table."""
        self.columns: List[Ref] = ["*"]
        self.wheres: List[Clause] = []
        self.joins: List[Join] = []
        self.group_bys: List[str] = []
        self.havings: List[Clause] = []
        self.orders: List[Order] = []
        self.limit: Optional[int] = None
        self.offset: Optional[int] = None

    # ---------- identifiers ----------

    @classmethod
    def _quote_ident(cls, ident: str) -> str:
        # embedded quote characters are escaped by doubling
        q = cls.quote_char
        return q + ident.replace(q, q + q) + q

    @classmethod
    def wrap(cls, ref: Ref) -> str:
        """
        'users'         -> '`users`'
        'users.id'      -> '`users`.`id`'
        'users.*'       -> '`users`.*'
        Raw('NOW()')    -> 'NOW()'
        """
        if isinstance(ref, Raw):
            return ref.sql
        return ".".join(
            "*" if seg == "*" else cls._quote_ident(seg) for seg in str(ref).split(".")
        )

    # ---------- compilation ----------

    def _require_table(self, action: str) -> Ref:
        if not self.table:
            raise InvalidArgumentError(f"No table selected for {action}")
        return self.table

    @staticmethod
    def compile_boolean_chain(parts: Sequence[Clause]) -> Tuple[str, Bindings]:
        """expr1 AND expr2 OR expr3; the first connector is implicit."""
        sql = ""
        bindings: Bindings = []
        for i, part in enumerate(parts):
            sql += part.sql if i == 0 else f" {part.connector} {part.sql}"
            bindings.extend(part.bindings)
        return sql, bindings

    def compile_where(self) -> Tuple[str, Bindings]:
        if not self.wheres:
            return "", []
        sql, bindings = self.compile_boolean_chain(self.wheres)
        return " WHERE " + sql, bindings

    def compile_select(self) -> Tuple[str, Bindings]:
        table = self._require_table("select")

        columns = ", ".join(self.wrap(c) for c in self.columns) if self.columns else "*"
        sql = f"SELECT {columns} FROM {self.wrap(table)}"

        for join in self.joins:
            sql += f" {join.type} JOIN {join.table} ON {join.first} {join.operator} {join.second}"

        where_sql, bindings = self.compile_where()
        sql += where_sql

        if self.group_bys:
            sql += " GROUP BY " + ", ".join(self.group_bys)
        if self.havings:
            having_sql, having_bindings = self.compile_boolean_chain(self.havings)
            sql += " HAVING " + having_sql
            bindings.extend(having_bindings)

        if self.orders:
            sql += " ORDER BY " + ", ".join(f"{o.column} {o.direction}" for o in self.orders)
        if self.limit is not None:
            sql += f" LIMIT {int(self.limit)}"
        if self.offset is not None:
            sql += f" OFFSET {int(self.offset)}"

        return sql, bindings

    def compile_insert(self, data: Mapping[Ref, Any]) -> Tuple[str, Bindings]:
        table = self._require_table("insert")
        if not data:
            raise InvalidArgumentError("Insert data cannot be empty")

        columns = ", ".join(self.wrap(c) for c in data)
        placeholders = ", ".join("?" for _ in data)
        sql = f"INSERT INTO {self.wrap(table)} ({columns}) VALUES ({placeholders})"
        return sql, list(data.values())

    def compile_update(self, data: Mapping[Ref, Any]) -> Tuple[str, Bindings]:
        table = self._require_table("update")
        if not data:
            raise InvalidArgumentError("Update data cannot be empty")
        if not self.wheres:
            raise InvalidArgumentError("Refusing to update without a WHERE clause")

        sets = ", ".join(f"{self.wrap(c)} = ?" for c in data)
        where_sql, where_bindings = self.compile_where()
        sql = f"UPDATE {self.wrap(table)} SET {sets}{where_sql}"
        return sql, list(data.values()) + where_bindings

    def compile_delete(self) -> Tuple[str, Bindings]:
        table = self._require_table("delete")
        if not self.wheres:
            raise InvalidArgumentError("Refusing to delete without a WHERE clause")

        where_sql, where_bindings = self.compile_where()
        return f"DELETE FROM {self.wrap(table)}{where_sql}", where_bindings
