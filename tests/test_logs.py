import logging

from weavecli.cli.common.logs import configure_logging


def test_logging_is_silent_by_default(monkeypatch, tmp_path):
    monkeypatch.setenv("WEAVE_CONFIG_DIR", str(tmp_path))
    monkeypatch.delenv("WEAVE_DEBUG", raising=False)

    assert configure_logging() is None
    handlers = logging.getLogger("weavecli").handlers
    assert [type(h) for h in handlers] == [logging.NullHandler]


def test_debug_env_writes_to_file(monkeypatch, tmp_path):
    monkeypatch.setenv("WEAVE_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("WEAVE_DEBUG", "1")

    path = configure_logging()
    logging.getLogger("weavecli.core.executor").debug("Spawning: fab ls")
    root = logging.getLogger("weavecli")
    for handler in root.handlers:
        handler.flush()

    assert path == str(tmp_path / "debug.log")
    assert "Spawning: fab ls" in (tmp_path / "debug.log").read_text(encoding="utf-8")

    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
