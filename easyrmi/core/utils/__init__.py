#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Utility exports for EasyRMI core.
"""

from .logger import ModernLogger, get_logger, parse_log_level
from .exceptions import *  # noqa: F401,F403
from .exceptions import ExceptionFormatter, ExceptionTranslator

format_exception = ExceptionFormatter.format_exception
format_exception_chain = ExceptionFormatter.format_exception_chain

__all__ = [
    "ModernLogger",
    "get_logger",
    "parse_log_level",
    "ExceptionFormatter",
    "ExceptionTranslator",
    "format_exception",
    "format_exception_chain",
]
