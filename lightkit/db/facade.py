"""
Process-wide convenience access to one QueryBuilder.

    qb = DB.from_config({"driver": "sqlite", "database": "app.db"})
    user = DB.table("users").where("id", 1).first()

DB holds a single shared builder with no locking. Concurrent callers whose
table()/terminal-operation sequences overlap will corrupt each other's
clauses; give each thread its own QueryBuilder instead.
"""

from typing import Any, Optional, Union

from sqlalchemy.engine import Engine

from lightkit.db.types import ConnectionConfig, Ref
from lightkit.errors import NotInitializedError
from lightkit.services.query_builder import QueryBuilder


class DB:
    _builder: Optional[QueryBuilder] = None

    @classmethod
    def init(cls, connection: Union[Engine, QueryBuilder]) -> QueryBuilder:
        """Hold `connection` (an Engine or a ready QueryBuilder) and return the builder."""
        cls._builder = connection if isinstance(connection, QueryBuilder) else QueryBuilder(connection)
        return cls._builder

    @classmethod
    def from_env(cls, env: Optional[Any] = None) -> QueryBuilder:
        cls._builder = QueryBuilder.from_env(env)
        return cls._builder

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> QueryBuilder:
        cls._builder = QueryBuilder.from_config(config)
        return cls._builder

    @classmethod
    def table(cls, name: Ref) -> QueryBuilder:
        return cls.query().table(name)

    @classmethod
    def query(cls) -> QueryBuilder:
        """The held builder, as is."""
        if cls._builder is None:
            raise NotInitializedError(
                "DB facade is not initialized. Call DB.init(), DB.from_env() or DB.from_config() first."
            )
        return cls._builder

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._builder is not None

    @classmethod
    def reset(cls) -> None:
        cls._builder = None
