#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for runtime configuration.
"""

import pytest

from easyrmi.core.config import (
    DEFAULT_MAX_FRAME_BYTES,
    RMIConfig,
    create_config,
    get_config,
    set_config,
)


def test_defaults():
    config = RMIConfig()

    assert config.max_frame_bytes == DEFAULT_MAX_FRAME_BYTES == 4 * 1024 * 1024
    assert config.call_timeout is None
    assert config.max_workers > 0
    assert config.log_level == "info"


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_frame_bytes": 1024},
        {"connect_timeout": 0},
        {"call_timeout": -1},
        {"request_timeout": 0},
        {"start_timeout": 0},
        {"accept_backlog": 0},
        {"max_workers": 0},
        {"log_level": "chatty"},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValueError):
        RMIConfig(**overrides)


def test_create_config_applies_overrides_to_current_default():
    config = create_config(call_timeout=2.5, max_workers=4)

    assert config.call_timeout == 2.5
    assert config.max_workers == 4
    assert config.connect_timeout == get_config().connect_timeout


def test_set_config_replaces_process_default():
    previous = get_config()
    try:
        custom = set_config(RMIConfig(max_workers=2))
        assert get_config() is custom
        assert create_config().max_workers == 2
    finally:
        set_config(previous)

    with pytest.raises(TypeError):
        set_config({"max_workers": 2})


def test_config_is_immutable():
    config = RMIConfig()

    with pytest.raises(AttributeError):
        config.max_workers = 3
