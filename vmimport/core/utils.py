# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/core/utils.py
from __future__ import annotations

import hashlib
import re
from typing import Iterable, Optional

from .exceptions import ValidationError

DNS1123_SUBDOMAIN_MAX = 253
LABEL_VALUE_MAX = 63

_DNS1123_SUBDOMAIN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
_ILLEGAL = re.compile(r"[^a-z0-9-]+")


class U:
    @staticmethod
    def to_loggable_id(id: Optional[str], name: Optional[str]) -> str:
        """`name(id)`, `name` or `id`, whichever parts are known."""
        identifier = id or ""
        if name:
            identifier = f"{name}({identifier})" if identifier else name
        return identifier

    @staticmethod
    def to_loggable_resource_name(name: str, namespace: Optional[str]) -> str:
        return f"{namespace}/{name}" if namespace else name

    @staticmethod
    def with_message(message: str, new_message: str) -> str:
        return new_message if not message else f"{message}, {new_message}"

    @staticmethod
    def join_messages(messages: Iterable[str]) -> str:
        out = ""
        for m in messages:
            out = U.with_message(out, m)
        return out

    @staticmethod
    def normalize_name(name: str) -> str:
        """
        Turn an arbitrary source VM name into a DNS-1123 subdomain name.
        Raises ValidationError when nothing usable is left.
        """
        if not name:
            raise ValidationError(code=2, msg="The provided name is empty")
        if len(name) <= DNS1123_SUBDOMAIN_MAX and _DNS1123_SUBDOMAIN.match(name):
            return name

        n = name.lower().replace(".", "-")
        legal = [i for i, ch in enumerate(n) if ch.isdigit() or ("a" <= ch <= "z")]
        if not legal:
            raise ValidationError(code=2, msg=f"The name {name!r} doesn't contain a legal alphanumeric character")
        n = _ILLEGAL.sub("", n[legal[0] : legal[-1] + 1])
        return n[:DNS1123_SUBDOMAIN_MAX]

    @staticmethod
    def ensure_label_value_length(value: str) -> str:
        """Shorten to a label-safe length, keeping the original length as suffix."""
        n = len(value)
        if n <= LABEL_VALUE_MAX:
            return value
        suffix = str(n)
        return f"{value[: LABEL_VALUE_MAX - len(suffix) - 1]}-{suffix}"

    @staticmethod
    def build_data_volume_name(target_vm_name: str, disk_id: str) -> str:
        return hashlib.sha1((target_vm_name + disk_id).encode("utf-8")).hexdigest()

    @staticmethod
    def round_up(n: int, multiple: int) -> int:
        return ((n + multiple - 1) // multiple) * multiple

    @staticmethod
    def format_bytes(n: int) -> str:
        """
        Render a byte count as the largest binary quantity that divides it
        exactly, e.g. 1073741824 -> "1Gi", 1536 -> "1536".
        """
        if n < 0:
            raise ValueError("bytes can't be negative")
        for suffix, factor in (("Ti", 1024**4), ("Gi", 1024**3), ("Mi", 1024**2), ("Ki", 1024)):
            if n >= factor and n % factor == 0:
                return f"{n // factor}{suffix}"
        return str(n)
