from __future__ import annotations

from omnirelay.core.config import Config, LoggingConfig
from omnirelay.runtime.logging import bootstrap_logging
from omnirelay.util.log import LogFormat, LogLevel


def _capture(monkeypatch) -> dict[str, object]:  # type: ignore[no-untyped-def]
    seen: dict[str, object] = {}

    def fake_configure(cls, *, level=None, format=None, console=None, file=None, dev=False) -> None:  # type: ignore[no-untyped-def]
        seen.update(level=level, format=format, console=console, file=file, dev=dev)

    monkeypatch.setattr("omnirelay.runtime.logging.Log.configure", classmethod(fake_configure))
    return seen


def test_bootstrap_logging_cli_defaults(monkeypatch) -> None:  # type: ignore[no-untyped-def]
    seen = _capture(monkeypatch)

    settings = bootstrap_logging(Config(), mode="cli")

    assert settings.level == LogLevel.INFO
    assert settings.format == LogFormat.KV
    assert settings.console is False
    assert settings.file is True
    assert seen["console"] is False
    assert seen["dev"] is False


def test_bootstrap_logging_watch_logs_to_console(monkeypatch) -> None:  # type: ignore[no-untyped-def]
    seen = _capture(monkeypatch)

    settings = bootstrap_logging(Config(log_level="debug"), mode="watch")

    assert settings.console is True
    assert settings.level == LogLevel.DEBUG
    assert seen["console"] is True


def test_bootstrap_logging_prefers_logging_config(monkeypatch) -> None:  # type: ignore[no-untyped-def]
    seen = _capture(monkeypatch)
    config = Config(
        log_level="warn",
        logging=LoggingConfig(level="error", format="json", console=True, file=False, dev_file=True),
    )

    settings = bootstrap_logging(config, mode="cli")

    assert settings.level == LogLevel.ERROR
    assert settings.format == LogFormat.JSON
    assert settings.console is True
    assert settings.file is False
    assert seen["dev"] is True


def test_bootstrap_logging_explicit_arguments_win(monkeypatch) -> None:  # type: ignore[no-untyped-def]
    _capture(monkeypatch)
    config = Config(logging=LoggingConfig(console=True))

    settings = bootstrap_logging(config, mode="watch", console=False, level="warning")

    assert settings.console is False
    assert settings.level == LogLevel.WARN
