"""
Project-local logging wrapper that configures handlers and re-exports stdlib logging.
Usage in your code:
    import uflp_utils.logging as logging
    logging.setup(log_dir="logs", level="INFO")
    logger = logging.getLogger(__name__)

Benchmark worker processes call setup_worker(): they only get a console
handler, the rotating files stay owned by the parent process.
"""
from __future__ import annotations

from pathlib import Path
import logging as _stdlog
from logging.handlers import RotatingFileHandler

from uflp_utils.context import LogContextFilter

FORMAT = (
    "%(asctime)s | %(levelname)s | %(processName)s | %(name)s | "
    "instance=%(instance_id)s algorithm=%(algorithm)s | "
    "%(message)s"
)

# third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("gurobipy",)

_FLAG = "_uflp_local_logging_initialized"


def _level(level) -> int:
    if isinstance(level, int):
        return level
    return getattr(_stdlog, str(level).upper(), _stdlog.INFO)


def _handler(handler: _stdlog.Handler, level: int) -> _stdlog.Handler:
    handler.setLevel(level)
    handler.setFormatter(_stdlog.Formatter(FORMAT))
    handler.addFilter(LogContextFilter())
    return handler


def _configure(handlers, level: int, library_level: str) -> _stdlog.Logger:
    root = _stdlog.getLogger()
    root.setLevel(level)
    for handler in handlers:
        root.addHandler(handler)
    for name in NOISY_LOGGERS:
        _stdlog.getLogger(name).setLevel(_level(library_level))
    setattr(root, _FLAG, True)
    return root


def setup(
    log_dir: str = "logs",
    level: str = "INFO",
    max_bytes: int = 5_000_000,
    backup_count: int = 5,
    library_level: str = "WARNING",
) -> _stdlog.Logger:
    """
    Configure console + rotating app.log / errors.log handlers.
    Safe to call multiple times; guarded by a flag on the root logger.
    """
    root = _stdlog.getLogger()
    if getattr(root, _FLAG, False):
        return root

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    lvl = _level(level)
    handlers = [
        _handler(_stdlog.StreamHandler(), lvl),
        _handler(RotatingFileHandler(str(Path(log_dir) / "app.log"), maxBytes=max_bytes,
                                     backupCount=backup_count, encoding="utf-8"), lvl),
        _handler(RotatingFileHandler(str(Path(log_dir) / "errors.log"), maxBytes=max_bytes,
                                     backupCount=backup_count, encoding="utf-8"), _stdlog.ERROR),
    ]
    return _configure(handlers, lvl, library_level)


def setup_worker(level: str = "INFO", library_level: str = "WARNING") -> _stdlog.Logger:
    """
    Console-only setup for pool workers. A forked worker inherits the
    parent's handlers and is left alone.
    """
    root = _stdlog.getLogger()
    if getattr(root, _FLAG, False):
        return root
    lvl = _level(level)
    return _configure([_handler(_stdlog.StreamHandler(), lvl)], lvl, library_level)


# Re-export stdlib logging API so you can use this module like logging
getLogger = _stdlog.getLogger
DEBUG = _stdlog.DEBUG
INFO = _stdlog.INFO
WARNING = _stdlog.WARNING
ERROR = _stdlog.ERROR
CRITICAL = _stdlog.CRITICAL
exception = _stdlog.exception
