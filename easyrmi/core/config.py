#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Runtime configuration for EasyRMI stubs and skeletons.

Configuration is programmatic only. A process-wide default is returned by
:func:`get_config`; individual stubs and skeletons may be given their own
:class:`RMIConfig` instead.
"""

import dataclasses
import threading
from dataclasses import dataclass
from typing import Any, Optional

from .utils.logger import parse_log_level

DEFAULT_MAX_FRAME_BYTES = 4 * 1024 * 1024
MIN_MAX_FRAME_BYTES = DEFAULT_MAX_FRAME_BYTES


@dataclass(frozen=True)
class RMIConfig:
    """
    Tunables shared by the stub factory and the skeleton.

    Attributes:
        max_frame_bytes: Largest accepted frame body; never below 4 MiB
        connect_timeout: Seconds allowed for a stub to connect (None: OS default)
        call_timeout: Seconds a stub waits for a reply (None: no limit)
        request_timeout: Seconds a skeleton waits for a complete request
        accept_backlog: Listen backlog of skeleton sockets
        max_workers: Worker threads running implementation methods per skeleton
        start_timeout: Seconds ``Skeleton.start`` waits for its event loop
        stop_timeout: Seconds ``Skeleton.stop`` waits (None: until done)
        log_level: Level name for runtime loggers
    """

    max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES
    connect_timeout: Optional[float] = 10.0
    call_timeout: Optional[float] = None
    request_timeout: Optional[float] = 30.0
    accept_backlog: int = 128
    max_workers: int = 16
    start_timeout: float = 10.0
    stop_timeout: Optional[float] = None
    log_level: str = "info"

    def __post_init__(self) -> None:
        if self.max_frame_bytes < MIN_MAX_FRAME_BYTES:
            raise ValueError(
                "max_frame_bytes must be at least {0}, got {1}".format(
                    MIN_MAX_FRAME_BYTES, self.max_frame_bytes
                )
            )
        for name in ("connect_timeout", "call_timeout", "request_timeout", "stop_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive or None, got {value}")
        if self.start_timeout <= 0:
            raise ValueError(f"start_timeout must be positive, got {self.start_timeout}")
        if self.accept_backlog < 1:
            raise ValueError(f"accept_backlog must be positive, got {self.accept_backlog}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")
        parse_log_level(self.log_level)


_config_lock = threading.Lock()
_default_config = RMIConfig()


def get_config() -> RMIConfig:
    """Return the process-wide default configuration."""
    return _default_config


def set_config(config: RMIConfig) -> RMIConfig:
    """Replace the process-wide default configuration."""
    global _default_config

    if not isinstance(config, RMIConfig):
        raise TypeError("config must be an RMIConfig instance")
    with _config_lock:
        _default_config = config
    return config


def create_config(**overrides: Any) -> RMIConfig:
    """
    Build a configuration from the current default with ``overrides`` applied.
    """
    return dataclasses.replace(get_config(), **overrides)
