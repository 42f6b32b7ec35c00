"""Runtime logging bootstrap helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from ..core.config import Config
from ..util.log import Log, LogFormat, LogLevel

LogMode = Literal["cli", "watch"]


@dataclass(frozen=True)
class LogSettings:
    level: LogLevel
    format: LogFormat
    console: bool
    file: bool
    dev_file: bool


def _mode_console(mode: LogMode) -> bool:
    return mode == "watch"


def resolve_settings(
    cfg: Config,
    *,
    mode: LogMode,
    level: Optional[str] = None,
    format: Optional[str] = None,
    console: Optional[bool] = None,
    file: Optional[bool] = None,
    dev_file: Optional[bool] = None,
) -> LogSettings:
    """Explicit arguments win over the ``logging`` section, which wins over mode defaults."""
    log = cfg.logging

    lv = LogLevel.parse(level or log.level or cfg.log_level)
    fm = LogFormat.parse(format or log.format)

    use_console = console
    if use_console is None:
        use_console = log.console if log.console is not None else _mode_console(mode)

    use_file = file
    if use_file is None:
        use_file = log.file if log.file is not None else True

    use_dev = dev_file
    if use_dev is None:
        use_dev = log.dev_file if log.dev_file is not None else False

    return LogSettings(
        level=lv,
        format=fm,
        console=use_console,
        file=use_file,
        dev_file=use_dev,
    )


def bootstrap_logging(
    cfg: Config,
    *,
    mode: LogMode,
    level: Optional[str] = None,
    format: Optional[str] = None,
    console: Optional[bool] = None,
    file: Optional[bool] = None,
    dev_file: Optional[bool] = None,
) -> LogSettings:
    """Resolve settings and initialize the process logger."""
    settings = resolve_settings(
        cfg,
        mode=mode,
        level=level,
        format=format,
        console=console,
        file=file,
        dev_file=dev_file,
    )
    Log.configure(
        level=settings.level,
        format=settings.format,
        console=settings.console,
        file=settings.file,
        dev=settings.dev_file,
    )
    return settings
