#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Logging mixin shared by EasyRMI runtime components.

Classes inherit :class:`ModernLogger` and log through ``self.debug``,
``self.info`` and friends. All loggers live under the ``easyrmi`` namespace
and share a single rich console handler installed on first use.
"""

import logging
import threading
from typing import Any, Union

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "easyrmi"

_HANDLER_INSTALL_LOCK = threading.Lock()
_HANDLER_INSTALLED = False

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def parse_log_level(level: Union[str, int]) -> int:
    """
    Convert a level name (``"info"``, ``"debug"``, ...) or number to a
    ``logging`` level.
    """
    if isinstance(level, int):
        return level
    try:
        return _LEVELS[str(level).strip().lower()]
    except KeyError:
        raise ValueError(
            "Unknown log level '{0}', expected one of: {1}".format(
                level, ", ".join(sorted(_LEVELS))
            )
        ) from None


def _install_root_handler() -> None:
    global _HANDLER_INSTALLED

    if _HANDLER_INSTALLED:
        return

    with _HANDLER_INSTALL_LOCK:
        if _HANDLER_INSTALLED:
            return

        root = logging.getLogger(ROOT_LOGGER_NAME)
        handler = RichHandler(
            show_path=False,
            rich_tracebacks=True,
            markup=False,
            log_time_format="[%X]",
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)
        root.propagate = False
        _HANDLER_INSTALLED = True


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger nested under the ``easyrmi`` namespace.
    """
    _install_root_handler()
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = "{0}.{1}".format(ROOT_LOGGER_NAME, name)
    return logging.getLogger(name)


class ModernLogger:
    """
    Logging mixin exposing ``debug/info/warning/error/critical/exception``.

    Messages accept ``%``-style arguments and the usual ``exc_info`` keyword,
    exactly like :class:`logging.Logger`.
    """

    def __init__(self, name: str = ROOT_LOGGER_NAME, level: Union[str, int] = "info") -> None:
        self._logger = get_logger(name)
        self._logger.setLevel(parse_log_level(level))

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def set_log_level(self, level: Union[str, int]) -> None:
        self._logger.setLevel(parse_log_level(level))

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.critical(msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.exception(msg, *args, **kwargs)
