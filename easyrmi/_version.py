#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Single source of truth for the EasyRMI package version.
"""

__version__ = "0.1.0"
