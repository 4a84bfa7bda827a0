# log.py
# Role: Shared logging setup (rich console output) for the app, services and scripts.

"""
Logging utilities.

Call init_logging() once at startup (main.py does it); modules grab their
logger with get_logger(__name__). init_logging is idempotent, so scripts and
tests can call it again without stacking handlers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock

from rich.console import Console
from rich.logging import RichHandler

__all__ = ["init_logging", "get_logger", "set_level"]


@dataclass
class LoggingConfig:
    """Runtime configuration for the logging subsystem."""

    app_name: str = "finance"
    level: str | int = "INFO"
    rich_tracebacks: bool = True


_config_lock = RLock()
_config: LoggingConfig | None = None


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def init_logging(**kwargs: object) -> None:
    """
    Install a RichHandler on the root logger.

    Repeated calls with the same options are no-ops; different options
    replace the existing handler.
    """
    global _config

    with _config_lock:
        cfg = LoggingConfig()
        for key, value in kwargs.items():
            if hasattr(cfg, key):
                setattr(cfg, key, value)

        if _config is not None and _config == cfg:
            return

        level = _parse_level(cfg.level)
        root = logging.getLogger()
        for handler in list(root.handlers):
            if isinstance(handler, RichHandler):
                root.removeHandler(handler)

        handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=cfg.rich_tracebacks,
            show_path=False,
            markup=False,
            log_time_format="%Y-%m-%d %H:%M:%S",
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)
        root.setLevel(level)

        _config = cfg


def get_logger(name: str | None = None) -> logging.Logger:
    cfg = _config or LoggingConfig()
    return logging.getLogger(name or cfg.app_name)


def set_level(level: str | int) -> None:
    new_level = _parse_level(level)
    root = logging.getLogger()
    root.setLevel(new_level)
    for handler in root.handlers:
        handler.setLevel(new_level)
