# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/ovirt/__init__.py
from .client import OvirtClient
from .mapper import OvirtMapper
from .provider import OvirtProvider

__all__ = ["OvirtClient", "OvirtMapper", "OvirtProvider"]
