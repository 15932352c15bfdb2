"""
Connection factory: turns a config mapping or DB_* environment variables
into a SQLAlchemy Engine that has already answered a ping.
"""

import logging
import os
import re
import time
from typing import Any, Callable, Mapping, Optional, Tuple

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from lightkit.db.types import ConnectionConfig
from lightkit.errors import DatabaseConnectionError, InvalidArgumentError

logger = logging.getLogger(__name__)

DEFAULTS = {
    "driver": "mysql",
    "host": "127.0.0.1",
    "port": None,
    "database": "",
    "username": "root",
    "password": "",
    "charset": "utf8mb4",
}

# short driver names -> SQLAlchemy drivernames; anything else is used as is
DRIVERS = {
    "mysql": "mysql+pymysql",
    "pgsql": "postgresql+psycopg2",
    "postgres": "postgresql+psycopg2",
    "postgresql": "postgresql+psycopg2",
    "sqlite": "sqlite",
}

# config key -> environment variable
ENV_KEYS = {
    "driver": "DB_DRIVER",
    "host": "DB_HOST",
    "port": "DB_PORT",
    "database": "DB_NAME",
    "username": "DB_USER",
    "password": "DB_PASS",
    "charset": "DB_CHARSET",
}

_CHARSET_RE = re.compile(r"^([a-z0-9]+)(?:_(\w+))?$", re.IGNORECASE)


def split_charset(charset: str) -> Tuple[str, Optional[str]]:
    """
    'utf8mb4'            -> ('utf8mb4', None)
    'utf8mb4_unicode_ci' -> ('utf8mb4', 'utf8mb4_unicode_ci')

    MySQL collation names carry their charset prefix, so the collation is
    returned whole.
    """
    m = _CHARSET_RE.match(charset or "")
    if not m:
        raise InvalidArgumentError(f"Invalid charset: {charset!r}")
    return m.group(1), (charset if m.group(2) else None)


def _resolve(config: Mapping[str, Any]) -> dict:
    # None means "use the default", like a missing key
    return {key: config.get(key) if config.get(key) is not None else default
            for key, default in DEFAULTS.items()}


def build_url(config: Mapping[str, Any]) -> URL:
    """Build the SQLAlchemy URL for a connection config (defaults applied)."""
    cfg = _resolve(config)
    drivername = DRIVERS.get(str(cfg["driver"]).lower(), str(cfg["driver"]))

    if drivername.startswith("sqlite"):
        # empty database -> in-memory
        return URL.create(drivername, database=cfg["database"] or None)

    port = cfg["port"]
    if port in ("", None):
        port = None
    else:
        try:
            port = int(port)
        except (TypeError, ValueError):
            raise InvalidArgumentError(f"Invalid port: {port!r}") from None

    charset, _ = split_charset(cfg["charset"])
    query = {"charset": charset} if drivername.startswith("mysql") else {}

    return URL.create(
        drivername,
        username=cfg["username"] or None,
        password=cfg["password"] or None,
        host=cfg["host"] or None,
        port=port,
        database=cfg["database"] or None,
        query=query,
    )


def set_names_listener(charset: str, collation: str) -> Callable[[Any, Any], None]:
    """'connect' event hook that pins the session charset and collation."""
    statement = f"SET NAMES '{charset}' COLLATE '{collation}'"

    def _set_names(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(statement)
        finally:
            cursor.close()

    return _set_names


def ping(engine: Engine) -> float:
    """Run SELECT 1 and return the round trip in milliseconds."""
    t0 = time.perf_counter()
    with engine.connect() as conn:
        conn.exec_driver_sql("SELECT 1")
    return (time.perf_counter() - t0) * 1000


def make(config: Optional[ConnectionConfig] = None) -> Engine:
    """
    Create an Engine from a config mapping and check that it connects.

    Keys (all optional): driver, host, port, database, username, password,
    charset, options. `options` goes straight to create_engine().
    Raises DatabaseConnectionError when the database cannot be reached.
    """
    config = dict(config or {})
    options = config.pop("options", None) or {}

    url = build_url(config)
    safe_url = url.render_as_string(hide_password=True)

    engine = None
    try:
        engine = create_engine(url, **options)
        if url.get_backend_name() == "mysql":
            charset, collation = split_charset(_resolve(config)["charset"])
            if collation:
                event.listen(engine, "connect", set_names_listener(charset, collation))
        dt = ping(engine)
    except SQLAlchemyError as e:
        if engine is not None:
            engine.dispose()
        logger.error("[db] ERR %s: %s", safe_url, e)
        raise DatabaseConnectionError(f"Database connection failed: {e}") from e

    logger.info("[db] OK  %s (%.1f ms)", safe_url, dt)
    return engine


def from_env(env: Optional[Any] = None) -> Engine:
    """
    Create an Engine from DB_DRIVER, DB_HOST, DB_PORT, DB_NAME, DB_USER,
    DB_PASS and DB_CHARSET.

    `env` is anything with a get(key, default) method: an EnvManager, a
    plain dict, or os.environ (the default).
    """
    source = os.environ if env is None else env
    config = {key: source.get(var, DEFAULTS[key]) for key, var in ENV_KEYS.items()}
    return make(config)
