#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the logging mixin.
"""

import logging

import pytest
from rich.logging import RichHandler

from easyrmi.core.utils.logger import ROOT_LOGGER_NAME, ModernLogger, get_logger, parse_log_level


def test_parse_log_level_accepts_names_and_numbers():
    assert parse_log_level("debug") == logging.DEBUG
    assert parse_log_level(" WARNING ") == logging.WARNING
    assert parse_log_level(logging.ERROR) == logging.ERROR

    with pytest.raises(ValueError):
        parse_log_level("chatty")


def test_loggers_are_namespaced_and_share_one_rich_handler():
    get_logger("first")
    get_logger("easyrmi.second")

    root = logging.getLogger(ROOT_LOGGER_NAME)
    rich_handlers = [handler for handler in root.handlers if isinstance(handler, RichHandler)]

    assert len(rich_handlers) == 1
    assert get_logger("stub").name == "easyrmi.stub"
    assert get_logger("easyrmi.skeleton").name == "easyrmi.skeleton"


def test_modern_logger_mixin_sets_level():
    class Component(ModernLogger):
        def __init__(self):
            super().__init__(name="component", level="debug")

    component = Component()
    assert component.logger.name == "easyrmi.component"
    assert component.logger.level == logging.DEBUG

    component.set_log_level("error")
    assert component.logger.level == logging.ERROR
    component.debug("suppressed %s", "message")
