# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/base.py
"""
Provider and Mapper contracts.

A Provider talks to one source platform on behalf of one import request:
it loads the source VM, validates it, stops/starts it, snapshots it for
warm imports and builds a Mapper. A Mapper turns the loaded source VM
into the VirtualMachine and DataVolumes created in the cluster.

Platform I/O sits behind SourceClient so providers can be driven by a
scripted client in tests.
"""

from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Dict, List, Optional

import yaml

from ..api.constants import IMPORT_LABEL, SOURCE_VM_INITIAL_STATE_ANNOTATION, VMStatus
from ..api.objects import ConfigMap, DataVolume, Secret, VirtualMachine
from ..api.source import SourceVMDescription
from ..api.types import Condition, Mappings, ProviderSource, ResourceMappingSpec, SourceVM, VirtualMachineImport
from ..core.exceptions import CleanupErrors, NotFoundError, ProviderError, wrap_provider
from ..core.logger import Log
from ..core.utils import U
from ..mappings.merger import merge_mappings
from ..store.base import ObjectStore
from ..validation.engine import ValidationEngine, ValidationReport

# keys of the transient credentials secret read by the volume importer
SECRET_ACCESS_KEY = "accessKeyId"
SECRET_SECRET_KEY = "secretKey"
CA_CERT_KEY = "ca.pem"


# ---------------------------
# Credentials
# ---------------------------


@dataclass
class Credentials:
    api_url: str
    username: str
    password: str = field(repr=False)
    ca_cert: Optional[str] = field(default=None, repr=False)
    thumbprint: Optional[str] = None

    @classmethod
    def from_secret(cls, secret: Secret, key: str, *, require_ca: bool = False) -> "Credentials":
        """
        Parse the YAML document stored under `key` in the provider secret:
        apiUrl, username, password and optionally caCert / thumbprint.
        """
        where = f"secret {secret.namespaced_name}"
        raw = secret.data.get(key)
        if not raw:
            raise wrap_provider(f"{where} has no {key!r} entry", code=4)
        try:
            data = yaml.safe_load(raw) or {}
        except yaml.YAMLError as e:
            raise wrap_provider(f"{where}: {key!r} is not valid YAML", e, code=4)
        if not isinstance(data, dict):
            raise wrap_provider(f"{where}: {key!r} must be a mapping", code=4)

        for attr in ("apiUrl", "username", "password"):
            if attr not in data:
                raise wrap_provider(f"{key} secret must contain {attr} attribute", code=4)
            if not str(data[attr] or ""):
                raise wrap_provider(f"{key} secret {attr} cannot be empty", code=4)
        if require_ca:
            if "caCert" not in data:
                raise wrap_provider(f"{key} secret must contain caCert attribute", code=4)
            if not str(data["caCert"] or ""):
                raise wrap_provider(f"{key} secret caCert cannot be empty", code=4)

        return cls(
            api_url=str(data["apiUrl"]),
            username=str(data["username"]),
            password=str(data["password"]),
            ca_cert=_decode_ca(str(data["caCert"]), key) if data.get("caCert") else None,
            thumbprint=str(data["thumbprint"]) if data.get("thumbprint") else None,
        )


def _decode_ca(value: str, key: str) -> str:
    """caCert is PEM text, or PEM encoded once more as base64."""
    if "-----BEGIN" in value:
        return value
    try:
        decoded = base64.b64decode("".join(value.split()), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise wrap_provider(f"Failed to decode {key} secret caCert: expected PEM or base64", e, code=4)
    if "-----BEGIN" not in decoded:
        raise wrap_provider(f"{key} secret caCert is not a PEM certificate", code=4)
    return decoded


@dataclass(frozen=True)
class DataVolumeCredentials:
    """What the volume importer needs to reach the source disks."""

    url: str
    secret_name: str
    config_map_name: str = ""
    thumbprint: str = ""


# ---------------------------
# Source platform client
# ---------------------------


class SourceClient(ABC):
    @abstractmethod
    def get_vm(self, vm: SourceVM) -> SourceVMDescription:
        """Find the VM by id, else by name (and cluster). Raises ProviderError if absent."""

    @abstractmethod
    def get_vm_status(self, vm_id: str) -> str:
        ...

    @abstractmethod
    def stop_vm(self, vm_id: str) -> None:
        ...

    @abstractmethod
    def start_vm(self, vm_id: str) -> None:
        ...

    @abstractmethod
    def create_snapshot(self, vm_id: str, description: str) -> str:
        ...

    @abstractmethod
    def remove_snapshot(self, vm_id: str, snapshot_id: str) -> None:
        ...

    def get_disk_status(self, disk_id: str) -> Optional[str]:
        return None

    def close(self) -> None:
        return None


ClientFactory = Callable[[Credentials], SourceClient]


# ---------------------------
# Mapper
# ---------------------------


class Mapper(ABC):
    @abstractmethod
    def resolve_vm_name(self, target_vm_name: Optional[str]) -> str:
        ...

    @abstractmethod
    def map_vm(self, target_vm_name: str) -> VirtualMachine:
        ...

    @abstractmethod
    def map_data_volumes(self, target_vm_name: str) -> Dict[str, DataVolume]:
        """Source disk id -> DataVolume to create."""

    @abstractmethod
    def map_disk(self, vm: VirtualMachine, data_volume: DataVolume) -> None:
        """Wire `data_volume` into the VM's volumes and disk devices (idempotent)."""

    @abstractmethod
    def running_state(self) -> bool:
        ...


# ---------------------------
# Provider
# ---------------------------


class Provider(ABC):
    """
    Shared provider behaviour; subclasses pick the secret key, the client,
    the validator set and the mapper.
    """

    SOURCE_TYPE: ClassVar[str] = ""
    SECRET_KEY: ClassVar[str] = ""
    REQUIRE_CA: ClassVar[bool] = False

    def __init__(
        self,
        request: VirtualMachineImport,
        store: ObjectStore,
        *,
        engine: Optional[ValidationEngine] = None,
        client_factory: Optional[ClientFactory] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.request = request
        self.store = store
        self.engine = engine or ValidationEngine()
        self.logger = logger or Log.get(f"provider.{self.SOURCE_TYPE}")
        self._client_factory = client_factory or self._default_client
        self.client: Optional[SourceClient] = None
        self.credentials: Optional[Credentials] = None
        self.vm: Optional[SourceVMDescription] = None
        self.mappings: Mappings = Mappings()

    # -- platform hooks ----------------------------------------------------

    @abstractmethod
    def _default_client(self, credentials: Credentials) -> SourceClient:
        ...

    @abstractmethod
    def _validate_report(self) -> ValidationReport:
        ...

    @abstractmethod
    def create_mapper(self) -> Mapper:
        ...

    def supports_warm_migration(self) -> bool:
        return False

    # -- connection --------------------------------------------------------

    def connect(self, secret: Secret) -> None:
        self.credentials = Credentials.from_secret(secret, self.SECRET_KEY, require_ca=self.REQUIRE_CA)
        self.client = self._client_factory(self.credentials)

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None

    def _require_client(self) -> SourceClient:
        if self.client is None:
            raise ProviderError(code=50, msg=f"{self.SOURCE_TYPE} provider is not connected")
        return self.client

    def _require_vm(self) -> SourceVMDescription:
        if self.vm is None:
            raise ProviderError(code=50, msg="VM has not been loaded")
        return self.vm

    # -- source VM ---------------------------------------------------------

    def load_vm(self, source: ProviderSource) -> None:
        self.vm = self._require_client().get_vm(source.vm)
        Log.trace(self.logger, "loaded source VM %s", U.to_loggable_id(self.vm.id, self.vm.name))

    def prepare_resource_mapping(self, external: Optional[ResourceMappingSpec], source: ProviderSource) -> None:
        external_mappings = external.for_source(self.SOURCE_TYPE) if external is not None else None
        self.mappings = merge_mappings(external_mappings, source.mappings)

    def validate(self) -> List[Condition]:
        self._require_vm()
        return self.engine.validate(self._validate_report(), request=str(self.request.namespaced_name))

    def validate_disk_status(self, disk_id: str) -> bool:
        return True

    def get_vm_name(self) -> str:
        return self._require_vm().name

    def get_vm_status(self) -> str:
        vm = self._require_vm()
        return self._require_client().get_vm_status(vm.id)

    def stop_vm(self) -> bool:
        """Stop the source VM if it is up. Returns True if it was running."""
        vm = self._require_vm()
        if self.get_vm_status() == VMStatus.DOWN:
            return False
        self._require_client().stop_vm(vm.id)
        Log.step(self.logger, f"stopped source VM {U.to_loggable_id(vm.id, vm.name)}")
        return True

    def start_vm(self) -> None:
        vm = self._require_vm()
        self._require_client().start_vm(vm.id)

    def create_vm_snapshot(self) -> str:
        vm = self._require_vm()
        return self._require_client().create_snapshot(vm.id, f"vmimport {self.request.namespaced_name}")

    def remove_vm_snapshot(self, snapshot_id: str) -> None:
        vm = self._require_vm()
        self._require_client().remove_snapshot(vm.id, snapshot_id)

    # -- templates ---------------------------------------------------------

    def find_template(self) -> None:
        return None

    def process_template(self, template: object, vm_name: str, namespace: str) -> VirtualMachine:
        raise ProviderError(code=50, msg=f"{self.SOURCE_TYPE} provider does not support templates")

    # -- transient objects -------------------------------------------------

    def _transient_name(self, request: VirtualMachineImport, suffix: str) -> str:
        return U.normalize_name(f"{request.name}-{self.SOURCE_TYPE}-{suffix}")

    def secret_name(self, request: VirtualMachineImport) -> str:
        return self._transient_name(request, "credentials")

    def config_map_name(self, request: VirtualMachineImport) -> str:
        return self._transient_name(request, "ca")

    def _labels(self, request: VirtualMachineImport) -> Dict[str, str]:
        return {IMPORT_LABEL: U.ensure_label_value_length(request.name)}

    def credentials_secret(self, request: VirtualMachineImport) -> Secret:
        creds = self._require_credentials()
        secret = Secret(data={SECRET_ACCESS_KEY: creds.username, SECRET_SECRET_KEY: creds.password})
        secret.metadata.name = self.secret_name(request)
        secret.metadata.namespace = request.namespace
        secret.metadata.labels = self._labels(request)
        secret.set_controller_reference(request)
        return secret

    def ca_config_map(self, request: VirtualMachineImport) -> Optional[ConfigMap]:
        creds = self._require_credentials()
        if not creds.ca_cert:
            return None
        cm = ConfigMap(data={CA_CERT_KEY: creds.ca_cert})
        cm.metadata.name = self.config_map_name(request)
        cm.metadata.namespace = request.namespace
        cm.metadata.labels = self._labels(request)
        cm.set_controller_reference(request)
        return cm

    def data_volume_credentials(self) -> DataVolumeCredentials:
        creds = self._require_credentials()
        return DataVolumeCredentials(
            url=creds.api_url,
            secret_name=self.secret_name(self.request),
            config_map_name=self.config_map_name(self.request) if creds.ca_cert else "",
            thumbprint=creds.thumbprint or "",
        )

    def _require_credentials(self) -> Credentials:
        if self.credentials is None:
            raise ProviderError(code=50, msg=f"{self.SOURCE_TYPE} provider is not connected")
        return self.credentials

    # -- cleanup -----------------------------------------------------------

    def clean_up(self, failure: bool, request: VirtualMachineImport) -> None:
        """
        Remove transient objects; on failure also remove the target VM and
        its volumes and restore the source VM to its initial state. Every
        step runs; errors are folded into one CleanupErrors.
        """
        errors: List[BaseException] = []
        ns = request.namespace

        if failure and request.metadata.annotations.get(SOURCE_VM_INITIAL_STATE_ANNOTATION) == VMStatus.UP:
            try:
                self.start_vm()
                Log.step(self.logger, "restored source VM to running", request=str(request.namespaced_name))
            except Exception as e:
                errors.append(e)

        targets = [(Secret, self.secret_name(request)), (ConfigMap, self.config_map_name(request))]
        if failure:
            targets += [(DataVolume, dv.name) for dv in self.store.list(DataVolume, ns, owner_uid=request.metadata.uid)]
            targets += [
                (VirtualMachine, vm.name) for vm in self.store.list(VirtualMachine, ns, owner_uid=request.metadata.uid)
            ]
        for cls, name in targets:
            try:
                self.store.delete(cls, ns, name)
            except NotFoundError:
                continue
            except Exception as e:
                errors.append(e)

        if errors:
            raise CleanupErrors.from_errors(errors, prefix=f"cleanup of {request.namespaced_name} failed")
