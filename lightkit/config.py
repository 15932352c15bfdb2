"""
One-call bootstrap: load the .env file and point the DB facade at it.

    from lightkit import config
    config.init()                      # .env, or $LIGHTKIT_ENV_FILE
    DB.table("users").get()
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from lightkit.db.facade import DB
from lightkit.env.env_manager import EnvManager

logger = logging.getLogger(__name__)

_env: Optional[EnvManager] = None


def init(env_path: Optional[Union[str, Path]] = None) -> EnvManager:
    """Load the env file and initialise DB from it. Later calls are no-ops."""
    global _env
    if _env is not None:
        return _env

    path = env_path or os.getenv("LIGHTKIT_ENV_FILE", ".env")
    env = EnvManager().load(path)
    DB.from_env(env)

    _env = env
    logger.info("lightkit initialised from %s", path)
    return env


def env() -> EnvManager:
    if _env is None:
        return init()
    return _env


def reset() -> None:
    global _env
    _env = None
    DB.reset()
