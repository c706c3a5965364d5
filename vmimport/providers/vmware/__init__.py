# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/vmware/__init__.py
from .client import VmwareClient
from .mapper import VmwareMapper
from .provider import VmwareProvider

__all__ = ["VmwareClient", "VmwareMapper", "VmwareProvider"]
