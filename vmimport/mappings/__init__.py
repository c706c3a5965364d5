# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/mappings/__init__.py
from .finder import ResourceMappingsFinder
from .merger import merge_items, merge_mappings

__all__ = ["ResourceMappingsFinder", "merge_items", "merge_mappings"]
