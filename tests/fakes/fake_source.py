# SPDX-License-Identifier: LGPL-3.0-or-later
"""
Scripted source platform for reconciler tests.

FakeSourceClient stands in for the oVirt/VMware API clients: it serves a
fixed VM description, records power actions and hands out snapshot ids.
"""
from __future__ import annotations

import datetime as _dt
from typing import Dict, List, Optional, Tuple

from vmimport.api.meta import parse_time
from vmimport.api.objects import Secret
from vmimport.api.source import SourceDisk, SourceNic, SourceVMDescription
from vmimport.api.types import SourceVM, VirtualMachineImport
from vmimport.core.exceptions import ProviderError
from vmimport.providers.base import SourceClient
from vmimport.providers.ovirt.provider import OvirtProvider
from vmimport.providers.registry import ProviderRegistry
from vmimport.providers.vmware.provider import VmwareProvider

ILLEGAL = "illegal"

CA_PEM = "-----BEGIN CERTIFICATE-----\nMIIBfake\n-----END CERTIFICATE-----\n"


class FakeClock:
    def __init__(self, start: str = "2026-01-01T00:00:00Z"):
        self.now = parse_time(start)

    def __call__(self) -> _dt.datetime:
        return self.now

    def advance(self, **kwargs) -> _dt.datetime:
        self.now = self.now + _dt.timedelta(**kwargs)
        return self.now


class FakeSourceClient(SourceClient):
    def __init__(self, vm: SourceVMDescription, *, status: str = "up"):
        self.vm = vm
        self.status = status
        self.calls: List[Tuple[str, str]] = []
        self.snapshots: List[str] = []
        self.removed_snapshots: List[str] = []
        self.disk_status: Dict[str, str] = {}
        self.fail_snapshot = False
        self.fail_remove_snapshot = False
        self.closed = False

    def get_vm(self, vm: SourceVM) -> SourceVMDescription:
        if vm.id not in (None, self.vm.id) or vm.name not in (None, self.vm.name):
            raise ProviderError(code=50, msg=f"VM {vm.id or vm.name} not found")
        described = self.vm.deepcopy()
        described.status = self.status
        return described

    def get_vm_status(self, vm_id: str) -> str:
        return self.status

    def stop_vm(self, vm_id: str) -> None:
        self.calls.append(("stop", vm_id))
        self.status = "down"

    def start_vm(self, vm_id: str) -> None:
        self.calls.append(("start", vm_id))
        self.status = "up"

    def create_snapshot(self, vm_id: str, description: str) -> str:
        if self.fail_snapshot:
            raise ProviderError(code=50, msg="snapshot creation failed")
        snapshot = f"snap-{len(self.snapshots) + 1}"
        self.snapshots.append(snapshot)
        return snapshot

    def remove_snapshot(self, vm_id: str, snapshot_id: str) -> None:
        if self.fail_remove_snapshot:
            raise ProviderError(code=50, msg=f"snapshot {snapshot_id} is locked")
        self.removed_snapshots.append(snapshot_id)

    def get_disk_status(self, disk_id: str) -> Optional[str]:
        return self.disk_status.get(disk_id)

    def close(self) -> None:
        self.closed = True


class FakeVmwareProvider(VmwareProvider):
    """VMware provider whose disk status check consults the fake client."""

    def validate_disk_status(self, disk_id: str) -> bool:
        return self._require_client().get_disk_status(disk_id) != ILLEGAL


def make_source_vm(
    *,
    vm_id: str = "vm-1",
    name: str = "My VM",
    disks: int = 1,
    nics: Optional[List[SourceNic]] = None,
    ha_enabled: bool = False,
) -> SourceVMDescription:
    return SourceVMDescription(
        id=vm_id,
        name=name,
        cpu_sockets=1,
        cpu_cores=2,
        memory_bytes=2 * 1024**3,
        ha_enabled=ha_enabled,
        nics=list(nics or []),
        disks=[
            SourceDisk(id=f"disk-{i}", alias=f"disk{i}", size_bytes=10 * 1024**3, bootable=(i == 1), status="ok")
            for i in range(1, disks + 1)
        ],
    )


def make_secret(namespace: str = "default", name: str = "creds", *, source: str = "vmware", ca: bool = False) -> Secret:
    lines = ["apiUrl: https://source.example.com/api", "username: admin", "password: secret"]
    if ca:
        lines.append("caCert: |\n" + "".join(f"  {line}\n" for line in CA_PEM.splitlines()))
    secret = Secret(data={source: "\n".join(lines) + "\n"})
    secret.metadata.name = name
    secret.metadata.namespace = namespace
    return secret


def make_import(
    name: str = "my-import",
    namespace: str = "default",
    *,
    source: str = "vmware",
    warm: bool = False,
    start_vm: bool = False,
    finalize_date: Optional[str] = None,
    target_vm_name: Optional[str] = None,
    mappings: Optional[dict] = None,
) -> VirtualMachineImport:
    provider_source: dict = {"vm": {"id": "vm-1"}}
    if mappings is not None:
        provider_source["mappings"] = mappings
    spec: dict = {
        "providerCredentialsSecret": {"name": "creds"},
        "source": {source: provider_source},
        "warm": warm,
        "startVm": start_vm,
    }
    if finalize_date is not None:
        spec["finalizeDate"] = finalize_date
    if target_vm_name is not None:
        spec["targetVmName"] = target_vm_name
    return VirtualMachineImport.from_dict({"metadata": {"name": name, "namespace": namespace}, "spec": spec})


def make_registry(client: FakeSourceClient) -> ProviderRegistry:
    def vmware(request, store, *, engine=None, logger=None):
        return FakeVmwareProvider(request, store, engine=engine, logger=logger, client_factory=lambda creds: client)

    def ovirt(request, store, *, engine=None, logger=None):
        return OvirtProvider(request, store, engine=engine, logger=logger, client_factory=lambda creds: client)

    return ProviderRegistry({"vmware": vmware, "ovirt": ovirt})
