# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/mappings/merger.py
"""
Merging of the inline mapping on an import request (primary) with a
reusable ResourceMapping (secondary).

None means "absent" and is not the same as an empty list: merging with an
absent side returns the other side unchanged. Otherwise the result is a
dedup-by-identity union in which primary items win every id or name
collision and disjoint secondary items survive.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from ..api.types import MappingItem, Mappings


def merge_items(
    primary: Optional[List[MappingItem]],
    secondary: Optional[List[MappingItem]],
) -> Optional[List[MappingItem]]:
    if primary is None:
        return secondary
    if secondary is None:
        return primary

    by_id: Dict[str, MappingItem] = {}
    by_name: Dict[str, MappingItem] = {}
    for item in secondary:
        if item.source.id:
            by_id[item.source.id] = item
        if item.source.name:
            by_name[item.source.name] = item

    result: List[MappingItem] = []
    consumed_ids = set()
    for item in primary:
        sid, sname = item.source.id, item.source.name
        if not sid and not sname:
            continue
        result.append(item)
        if sid:
            consumed_ids.add(sid)
            _discard(by_id, by_name, by_id.get(sid))
            by_id.pop(sid, None)
        if sname:
            _discard(by_id, by_name, by_name.get(sname))
            by_name.pop(sname, None)

    for sid, item in list(by_id.items()):
        result.append(item)
        consumed_ids.add(sid)
        if item.source.name:
            by_name.pop(item.source.name, None)

    for item in by_name.values():
        if item.source.id and item.source.id in consumed_ids:
            continue
        result.append(item)

    return result


def _discard(by_id: Dict[str, MappingItem], by_name: Dict[str, MappingItem], item: Optional[MappingItem]) -> None:
    # drop a shadowed secondary item from both indices
    if item is None:
        return
    if item.source.id and by_id.get(item.source.id) is item:
        del by_id[item.source.id]
    if item.source.name and by_name.get(item.source.name) is item:
        del by_name[item.source.name]


def merge_mappings(external: Optional[Mappings], inline: Optional[Mappings]) -> Mappings:
    """
    Merge the inline mapping (primary) with the external resource mapping
    (secondary). Disk mappings always come from the inline value.
    """
    if external is None and inline is None:
        return Mappings()
    if external is None:
        return inline.deepcopy()  # type: ignore[union-attr]
    if inline is None:
        merged = external.deepcopy()
        merged.disk_mappings = None
        return merged

    return Mappings(
        network_mappings=merge_items(inline.network_mappings, external.network_mappings),
        storage_mappings=merge_items(inline.storage_mappings, external.storage_mappings),
        disk_mappings=inline.disk_mappings,
    )
