"""EnvManager: .env parsing and lookup order."""

import os

import pytest

from lightkit.env.env_manager import EnvManager
from lightkit.errors import EnvFileError, EnvFileNotFoundError

KEYS = ("LK_HOST", "LK_NAME", "LK_PASS", "LK_EMPTY", "LK_URL", "LK_SINGLE", "LK_EXISTING", "LK_HASH", "LK_ESC", "LK_MULTI")

ENV_FILE = """\
# database settings
LK_HOST=db.internal

LK_NAME = "shop"
LK_SINGLE='single quoted'
LK_PASS=pa=ss=word
LK_EMPTY=
export LK_URL="mysql://root@localhost/db"
"""


@pytest.fixture(autouse=True)
def clean_environ():
    yield
    for key in KEYS:
        os.environ.pop(key, None)


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / ".env"
    path.write_text(ENV_FILE, encoding="utf-8")
    return path


def test_load_parses_pairs(env_file):
    env = EnvManager().load(env_file)
    assert env.all() == {
        "LK_HOST": "db.internal",
        "LK_NAME": "shop",
        "LK_SINGLE": "single quoted",
        "LK_PASS": "pa=ss=word",
        "LK_EMPTY": "",
        "LK_URL": "mysql://root@localhost/db",
    }


def test_load_exports_to_process_environment(env_file):
    EnvManager().load(env_file)
    assert os.environ["LK_HOST"] == "db.internal"
    assert os.environ["LK_PASS"] == "pa=ss=word"


def test_empty_value_is_returned_not_default(env_file):
    env = EnvManager().load(env_file)
    assert env.get("LK_EMPTY", "fallback") == ""
    assert env.has("LK_EMPTY")


def test_get_falls_back_to_environ_then_default(monkeypatch):
    env = EnvManager()
    monkeypatch.setenv("LK_EXISTING", "from-process")
    assert env.get("LK_EXISTING") == "from-process"
    assert env.get("LK_NOT_THERE") is None
    assert env.get("LK_NOT_THERE", "dflt") == "dflt"
    assert env.has("LK_EXISTING")
    assert not env.has("LK_NOT_THERE")


def test_override_false_keeps_process_value(tmp_path, monkeypatch):
    monkeypatch.setenv("LK_EXISTING", "from-process")
    path = tmp_path / ".env"
    path.write_text("LK_EXISTING=from-file\n", encoding="utf-8")

    env = EnvManager().load(path, override=False)

    assert os.environ["LK_EXISTING"] == "from-process"
    assert env.get("LK_EXISTING") == "from-file"


def test_missing_file(tmp_path):
    with pytest.raises(EnvFileNotFoundError) as exc_info:
        EnvManager().load(tmp_path / "nope.env")
    assert isinstance(exc_info.value, FileNotFoundError)


@pytest.mark.parametrize("bad_line", ["JUST_A_KEY", "=no_key", "LK_NAME=\"unterminated"])
def test_malformed_line_reports_line_number(tmp_path, bad_line):
    path = tmp_path / ".env"
    path.write_text(f"LK_HOST=ok\n{bad_line}\n", encoding="utf-8")

    with pytest.raises(EnvFileError, match=":2:"):
        EnvManager().load(path)
    # nothing half-applied
    assert "LK_HOST" not in os.environ


def test_clear_forgets_loaded_values(env_file):
    env = EnvManager().load(env_file)
    env.clear()
    assert env.all() == {}
    # still visible through the process environment
    assert env.get("LK_HOST") == "db.internal"


def test_values_are_taken_as_written(tmp_path):
    path = tmp_path / ".env"
    path.write_text('LK_HASH=abc #1\nLK_ESC="a\\nb"\nLK_SINGLE=\'it\\\'s\'\n', encoding="utf-8")

    env = EnvManager().load(path)

    # no inline-comment stripping, no escape processing
    assert env.get("LK_HASH") == "abc #1"
    assert env.get("LK_ESC") == "a\\nb"
    assert env.get("LK_SINGLE") == "it\\'s"
    assert os.environ["LK_HASH"] == "abc #1"


def test_quoted_value_spanning_lines_is_rejected(tmp_path):
    path = tmp_path / ".env"
    path.write_text('LK_HOST=ok\n\nLK_MULTI="first\nsecond"\n', encoding="utf-8")

    with pytest.raises(EnvFileError, match=":3:"):
        EnvManager().load(path)
    assert "LK_HOST" not in os.environ
