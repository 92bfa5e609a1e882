#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pytest bootstrap for local package imports.
"""

import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def serve():
    """
    Start skeletons on 127.0.0.1 with an OS-assigned port; all are stopped
    at teardown.
    """
    from easyrmi.core.nodes.skeleton import Skeleton

    started = []

    def _serve(interface, impl, endpoint=("127.0.0.1", 0), skeleton_cls=Skeleton, **kwargs):
        skeleton = skeleton_cls(interface, impl, endpoint, **kwargs)
        skeleton.start()
        started.append(skeleton)
        return skeleton

    yield _serve

    for skeleton in started:
        skeleton.stop()
