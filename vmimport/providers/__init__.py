# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/__init__.py
"""Source platform providers and mappers."""

from .base import ClientFactory, Credentials, DataVolumeCredentials, Mapper, Provider, SourceClient
from .mapper import BaseMapper
from .registry import ProviderRegistry

__all__ = [
    "ClientFactory",
    "Credentials",
    "DataVolumeCredentials",
    "Mapper",
    "Provider",
    "SourceClient",
    "BaseMapper",
    "ProviderRegistry",
]
