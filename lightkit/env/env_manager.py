"""Loader for KEY=VALUE environment files (.env)."""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

from dotenv.parser import parse_stream

from lightkit.errors import EnvFileError, EnvFileNotFoundError

logger = logging.getLogger(__name__)

_QUOTES = ("'", '"')


def _raw_value(text: str) -> str:
    """Everything after the first '=', minus one pair of surrounding quotes."""
    value = text.split("=", 1)[1].strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        value = value[1:-1]
    return value


class EnvManager:
    """
    Values loaded from .env files, with the process environment as fallback.

        env = EnvManager().load(".env")
        env.get("DB_HOST", "127.0.0.1")

    Lookup order for get(): loaded values, then os.environ, then the default.
    A key loaded with an empty value is returned as "" (it is set, just empty).
    """

    def __init__(self):
        self._data: Dict[str, str] = {}

    def load(self, path: Union[str, Path], *, override: bool = True) -> "EnvManager":
        """
        Parse `path` and export every pair to os.environ.

        Blank lines and '#' comments are skipped; every other line needs a
        '=' (the first one splits key from value). Matching quotes around a
        value are stripped; nothing else (inline comments, escapes) is
        interpreted. With override=False, variables already present in
        os.environ keep their value there; the loaded value is still
        returned by get().
        """
        path = Path(path)
        if not path.is_file():
            raise EnvFileNotFoundError(f"Env file not found: {path}")

        loaded: Dict[str, str] = {}
        with path.open(encoding="utf-8") as stream:
            for binding in parse_stream(stream):
                raw = binding.original.string
                text = raw.strip()
                # the marked text starts with any blank lines before the pair
                line = binding.original.line + raw[: len(raw) - len(raw.lstrip())].count("\n")
                if binding.error:
                    raise EnvFileError(f"{path}:{line}: cannot parse {text!r}")
                if binding.key is None:
                    continue  # blank line or comment
                if binding.value is None or "=" not in text:
                    raise EnvFileError(f"{path}:{line}: expected KEY=VALUE, got {binding.key!r}")
                if "\n" in text:
                    raise EnvFileError(f"{path}:{line}: value of {binding.key!r} spans several lines")
                # dotenv locates the pair; the value itself is taken as written
                loaded[binding.key] = _raw_value(text)

        # nothing is applied unless the whole file parsed
        for key, value in loaded.items():
            self._data[key] = value
            if override or key not in os.environ:
                os.environ[key] = value

        logger.debug("Loaded %d variable(s) from %s", len(loaded), path)
        return self

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        if key in self._data:
            return self._data[key]
        return os.environ.get(key, default)

    def has(self, key: str) -> bool:
        return key in self._data or key in os.environ

    def all(self) -> Dict[str, str]:
        return dict(self._data)

    def clear(self) -> None:
        """Forget loaded values; os.environ is left as is."""
        self._data.clear()
