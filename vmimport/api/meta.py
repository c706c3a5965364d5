# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/api/meta.py
"""
Object metadata and the dict <-> dataclass codec shared by every API type.

Objects travel as camelCase dicts (YAML manifests, the file store, logs).
Dataclass field `owner_references` is `ownerReferences` on the wire unless
the field's metadata overrides it with {"json": "..."}.
"""

from __future__ import annotations

import copy
import datetime as _dt
import typing
import uuid
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, TypeVar

T = TypeVar("T", bound="Serializable")


def utcnow() -> _dt.datetime:
    return _dt.datetime.now(tz=_dt.timezone.utc).replace(microsecond=0)


def format_time(t: _dt.datetime) -> str:
    if t.tzinfo is None:
        t = t.replace(tzinfo=_dt.timezone.utc)
    return t.astimezone(_dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_time(v: Any) -> _dt.datetime:
    if isinstance(v, _dt.datetime):
        return v if v.tzinfo else v.replace(tzinfo=_dt.timezone.utc)
    if isinstance(v, _dt.date):
        return _dt.datetime(v.year, v.month, v.day, tzinfo=_dt.timezone.utc)
    s = str(v).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    t = _dt.datetime.fromisoformat(s)
    return t if t.tzinfo else t.replace(tzinfo=_dt.timezone.utc)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


_HINTS: Dict[type, Dict[str, Any]] = {}


def _hints(cls: type) -> Dict[str, Any]:
    h = _HINTS.get(cls)
    if h is None:
        h = typing.get_type_hints(cls)
        _HINTS[cls] = h
    return h


def _encode(v: Any) -> Any:
    if isinstance(v, Serializable):
        return v.to_dict()
    if isinstance(v, _dt.datetime):
        return format_time(v)
    if isinstance(v, (list, tuple)):
        return [_encode(x) for x in v]
    if isinstance(v, dict):
        return {str(k): _encode(x) for k, x in v.items()}
    return v


def _decode(tp: Any, v: Any) -> Any:
    if v is None:
        return None
    origin = typing.get_origin(tp)
    args = typing.get_args(tp)
    if origin is typing.Union:
        inner = [a for a in args if a is not type(None)]
        return _decode(inner[0], v) if len(inner) == 1 else v
    if origin in (list, List):
        return [_decode(args[0] if args else Any, x) for x in (v or [])]
    if origin in (dict, Dict):
        vt = args[1] if len(args) == 2 else Any
        return {str(k): _decode(vt, x) for k, x in (v or {}).items()}
    if isinstance(tp, type) and issubclass(tp, Serializable):
        return tp.from_dict(v)
    if tp is _dt.datetime:
        return parse_time(v)
    if tp is bool:
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)
    if tp is int:
        return int(v)
    if tp is float:
        return float(v)
    if tp is str:
        return str(v)
    return v


class Serializable:
    """
    Mixin for dataclasses: camelCase dict codec and deep copy.

    None-valued fields are omitted on encode; unknown keys are ignored on decode.
    """

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            v = getattr(self, f.name)
            if v is None:
                continue
            out[f.metadata.get("json", _camel(f.name))] = _encode(v)
        return out

    @classmethod
    def from_dict(cls: Type[T], data: Optional[Dict[str, Any]]) -> T:
        data = data or {}
        hints = _hints(cls)
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):  # type: ignore[arg-type]
            if not f.init:
                continue
            key = f.metadata.get("json", _camel(f.name))
            if key in data:
                value = _decode(hints[f.name], data[key])
                if value is None:
                    continue
                kwargs[f.name] = value
        return cls(**kwargs)

    def deepcopy(self: T) -> T:
        return copy.deepcopy(self)


@dataclass(frozen=True)
class NamespacedName:
    namespace: str
    name: str

    @classmethod
    def parse(cls, key: str, default_namespace: str = "default") -> "NamespacedName":
        if "/" in key:
            ns, name = key.split("/", 1)
            return cls(ns or default_namespace, name)
        return cls(default_namespace, key)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


@dataclass
class ObjectIdentifier(Serializable):
    name: str = ""
    namespace: Optional[str] = None

    def resolve(self, default_namespace: str) -> NamespacedName:
        return NamespacedName(self.namespace or default_namespace, self.name)


@dataclass
class OwnerReference(Serializable):
    api_version: str = ""
    kind: str = ""
    name: str = ""
    uid: str = ""
    controller: bool = False
    block_owner_deletion: bool = False


@dataclass
class ObjectMeta(Serializable):
    name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    generation: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    owner_references: List[OwnerReference] = field(default_factory=list)
    finalizers: List[str] = field(default_factory=list)
    creation_timestamp: Optional[_dt.datetime] = None
    deletion_timestamp: Optional[_dt.datetime] = None

    def controller_ref(self) -> Optional[OwnerReference]:
        for ref in self.owner_references:
            if ref.controller:
                return ref
        return None


_KINDS: Dict[str, Type["ApiObject"]] = {}


@dataclass
class ApiObject(Serializable):
    """
    Base of every persisted object. Subclasses set KIND / API_VERSION and
    register themselves so manifests can be decoded by their `kind`.
    """

    KIND: ClassVar[str] = ""
    API_VERSION: ClassVar[str] = "v1"
    NAMESPACED: ClassVar[bool] = True

    metadata: ObjectMeta = field(default_factory=ObjectMeta)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.KIND:
            _KINDS[cls.KIND] = cls

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def namespaced_name(self) -> NamespacedName:
        return NamespacedName(self.metadata.namespace, self.metadata.name)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.KIND, self.metadata.namespace, self.metadata.name)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"apiVersion": self.API_VERSION, "kind": self.KIND}
        d.update(super().to_dict())
        return d

    def owner_reference(self, *, controller: bool = True) -> OwnerReference:
        """Reference from an owned object back to this one."""
        return OwnerReference(
            api_version=self.API_VERSION,
            kind=self.KIND,
            name=self.metadata.name,
            uid=self.metadata.uid,
            controller=controller,
            block_owner_deletion=controller,
        )

    def set_controller_reference(self, owner: "ApiObject") -> None:
        """
        Make `owner` the controller of this object. An object has at most one
        controller; a different existing controller is an error.
        """
        existing = self.metadata.controller_ref()
        if existing is not None:
            if existing.uid == owner.metadata.uid:
                return
            raise ValueError(
                f"{self.KIND} {self.namespaced_name} is already controlled by {existing.kind} {existing.name}"
            )
        self.metadata.owner_references.append(owner.owner_reference(controller=True))

    def is_controlled_by(self, owner: "ApiObject") -> bool:
        ref = self.metadata.controller_ref()
        return ref is not None and ref.uid == owner.metadata.uid


def kind_class(kind: str) -> Type[ApiObject]:
    try:
        return _KINDS[kind]
    except KeyError:
        raise ValueError(f"unknown kind: {kind!r}") from None


def decode_object(data: Dict[str, Any]) -> ApiObject:
    """Decode a manifest dict into its registered ApiObject subclass."""
    if not isinstance(data, dict) or not data.get("kind"):
        raise ValueError("manifest must be a mapping with a 'kind'")
    return kind_class(str(data["kind"])).from_dict(data)


def new_uid() -> str:
    return str(uuid.uuid4())
