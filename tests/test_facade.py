"""DB facade: one shared builder, explicit initialisation."""

import pytest

from lightkit.db.facade import DB
from lightkit.errors import ConfigurationError, NotInitializedError
from lightkit.services.query_builder import QueryBuilder


def test_table_before_init_fails():
    assert not DB.is_initialized()
    with pytest.raises(NotInitializedError):
        DB.table("users")
    with pytest.raises(ConfigurationError):
        DB.query()


def test_init_with_engine_returns_builder(engine):
    qb = DB.init(engine)
    assert isinstance(qb, QueryBuilder)
    assert DB.query() is qb
    assert DB.table("users").where("name", "Alice").first()["age"] == 30


def test_init_with_builder_keeps_it(qb):
    assert DB.init(qb) is qb
    assert DB.table("orders") is qb
    assert qb.state.table == "orders"


def test_table_proxies_to_same_instance(engine):
    DB.init(engine)
    first = DB.table("users").where("id", 1)
    second = DB.table("orders")
    # one shared accumulator: the second table() wiped the first statement
    assert first is second
    assert second.to_sql() == ("SELECT * FROM `orders`", [])


def test_from_config_and_from_env():
    qb = DB.from_config({"driver": "sqlite"})
    assert DB.query() is qb

    qb_env = DB.from_env({"DB_DRIVER": "sqlite"})
    assert DB.query() is qb_env
    assert qb_env is not qb


def test_reset(engine):
    DB.init(engine)
    DB.reset()
    assert not DB.is_initialized()
