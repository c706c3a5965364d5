# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/cli/__init__.py
"""Command line interface."""

from .parser import build_parser

__all__ = ["build_parser"]
