# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/vmware/client.py
"""
vSphere client on pyVmomi.

VMs are addressed by instance UUID. Managed object handles are cached per
client so power and snapshot actions do not repeat the inventory search.
"""

from __future__ import annotations

import logging
import ssl
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim

from ...api.constants import VMStatus
from ...api.source import SourceDisk, SourceNic, SourceVMDescription
from ...api.types import SourceVM
from ...core.exceptions import wrap_provider
from ...core.logger import Log
from ...core.utils import U
from ..base import Credentials, SourceClient

POWER_STATES = {"poweredOn": VMStatus.UP, "poweredOff": VMStatus.DOWN, "suspended": "suspended"}


def wait_for_task(task: Any, *, timeout: float = 600.0, poll: float = 1.0) -> Any:
    deadline = time.monotonic() + timeout
    while task.info.state not in (vim.TaskInfo.State.success, vim.TaskInfo.State.error):
        if time.monotonic() > deadline:
            raise wrap_provider(f"vSphere task {task.info.key} did not finish in {timeout:.0f}s")
        time.sleep(poll)
    if task.info.state == vim.TaskInfo.State.error:
        raise wrap_provider(f"vSphere task failed: {task.info.error}")
    return task.info.result


def _parse_endpoint(api_url: str):
    url = api_url if "://" in api_url else f"https://{api_url}"
    parsed = urlparse(url)
    if not parsed.hostname:
        raise wrap_provider(f"invalid vSphere apiUrl: {api_url!r}", code=4)
    return parsed.hostname, parsed.port or 443


class VmwareClient(SourceClient):
    def __init__(self, credentials: Credentials, *, logger: Optional[logging.Logger] = None):
        self.credentials = credentials
        self.host, self.port = _parse_endpoint(credentials.api_url)
        self.logger = logger or Log.get("vmware")
        self.si: Optional[Any] = None
        self._vms: Dict[str, Any] = {}

    # -- session -----------------------------------------------------------

    def _ssl_context(self) -> ssl.SSLContext:
        if self.credentials.thumbprint:
            # pyVmomi pins the certificate by thumbprint instead
            ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            return ctx
        if self.credentials.ca_cert:
            return ssl.create_default_context(cadata=self.credentials.ca_cert)
        return ssl.create_default_context()

    def connect(self) -> None:
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "user": self.credentials.username,
            "pwd": self.credentials.password,
            "port": self.port,
            "sslContext": self._ssl_context(),
        }
        if self.credentials.thumbprint:
            kwargs["thumbprint"] = self.credentials.thumbprint
        try:
            self.si = SmartConnect(**kwargs)
        except Exception as e:
            self.si = None
            raise wrap_provider(f"Failed to connect to vSphere {self.host}:{self.port}: {e}", e)
        self.logger.info("Connected to vSphere: %s:%s", self.host, self.port)

    def close(self) -> None:
        if self.si is not None:
            try:
                Disconnect(self.si)
            finally:
                self.si = None
                self._vms.clear()

    def _content(self) -> Any:
        if self.si is None:
            raise wrap_provider("vSphere client is not connected")
        return self.si.RetrieveContent()

    # -- lookup ------------------------------------------------------------

    def _find_by_uuid(self, uuid: str) -> Optional[Any]:
        content = self._content()
        return content.searchIndex.FindByUuid(None, uuid, True, True)

    def _find_by_name(self, name: str) -> Optional[Any]:
        content = self._content()
        view = content.viewManager.CreateContainerView(content.rootFolder, [vim.VirtualMachine], True)
        try:
            for vm in view.view:
                if vm.name == name:
                    return vm
        finally:
            view.Destroy()
        return None

    def _vm_obj(self, vm_id: str) -> Any:
        obj = self._vms.get(vm_id)
        if obj is None:
            obj = self._find_by_uuid(vm_id)
            if obj is None:
                raise wrap_provider(f"Source VM {vm_id} not found")
            self._vms[vm_id] = obj
        return obj

    def get_vm(self, vm: SourceVM) -> SourceVMDescription:
        obj = None
        if vm.id:
            obj = self._find_by_uuid(vm.id)
        if obj is None and vm.name:
            obj = self._find_by_name(vm.name)
        if obj is None:
            raise wrap_provider(f"Source VM {U.to_loggable_id(vm.id, vm.name)} not found")
        desc = self._describe(obj)
        self._vms[desc.id] = obj
        return desc

    def _describe(self, obj: Any) -> SourceVMDescription:
        cfg = obj.config
        hw = cfg.hardware
        cores = max(1, int(getattr(hw, "numCoresPerSocket", 1) or 1))
        num_cpu = max(1, int(hw.numCPU or 1))
        shares = getattr(getattr(cfg, "cpuAllocation", None), "shares", None)

        desc = SourceVMDescription(
            id=str(cfg.instanceUuid),
            name=str(obj.name),
            status=POWER_STATES.get(str(obj.runtime.powerState), str(obj.runtime.powerState)),
            os_type=getattr(cfg, "guestId", None),
            bios_type=getattr(cfg, "firmware", None),
            cpu_architecture="x86_64",
            cpu_sockets=max(1, num_cpu // cores),
            cpu_cores=cores,
            cpu_threads=1,
            cpu_shares=int(shares.shares) if shares is not None and str(shares.level) == "custom" else None,
            memory_bytes=int(hw.memoryMB or 0) * 1024 * 1024,
        )

        disks: List[SourceDisk] = []
        nics: List[SourceNic] = []
        for dev in hw.device:
            if isinstance(dev, vim.vm.device.VirtualDisk):
                disks.append(self._describe_disk(dev))
            elif isinstance(dev, vim.vm.device.VirtualEthernetCard):
                nics.append(self._describe_nic(dev))
            elif isinstance(dev, vim.vm.device.VirtualFloppy):
                desc.floppies += 1
            elif isinstance(dev, vim.vm.device.VirtualUSBController):
                desc.usb_enabled = True
            elif isinstance(dev, vim.vm.device.VirtualPCIPassthrough):
                desc.host_devices.append(str(dev.deviceInfo.label))
        if disks:
            disks[0].bootable = True
        desc.disks = disks
        desc.nics = nics
        return desc

    @staticmethod
    def _describe_disk(dev: Any) -> SourceDisk:
        backing = dev.backing
        datastore = getattr(backing, "datastore", None)
        return SourceDisk(
            id=str(getattr(backing, "uuid", None) or dev.key),
            alias=str(dev.deviceInfo.label) if dev.deviceInfo else None,
            size_bytes=int(dev.capacityInBytes or 0),
            storage_domain_id=datastore._moId if datastore is not None else None,
            storage_domain_name=datastore.name if datastore is not None else None,
            backing_file=getattr(backing, "fileName", None),
        )

    @staticmethod
    def _describe_nic(dev: Any) -> SourceNic:
        backing = dev.backing
        network_id = None
        network_name = getattr(backing, "deviceName", None)
        network = getattr(backing, "network", None)
        if network is not None:
            network_id = network._moId
            network_name = network.name
        port = getattr(backing, "port", None)
        if port is not None and getattr(port, "portgroupKey", None):
            network_id = port.portgroupKey
        connectable = dev.connectable
        return SourceNic(
            id=str(dev.key),
            name=str(dev.deviceInfo.label) if dev.deviceInfo else None,
            interface=type(dev).__name__.split(".")[-1],
            mac_address=dev.macAddress,
            plugged=bool(connectable.connected) if connectable is not None else None,
            on_boot=bool(connectable.startConnected) if connectable is not None else None,
            network_id=network_id,
            network_name=network_name,
        )

    # -- actions -----------------------------------------------------------

    def get_vm_status(self, vm_id: str) -> str:
        state = str(self._vm_obj(vm_id).runtime.powerState)
        return POWER_STATES.get(state, state)

    def stop_vm(self, vm_id: str) -> None:
        wait_for_task(self._vm_obj(vm_id).PowerOffVM_Task())

    def start_vm(self, vm_id: str) -> None:
        wait_for_task(self._vm_obj(vm_id).PowerOnVM_Task())

    def create_snapshot(self, vm_id: str, description: str) -> str:
        obj = self._vm_obj(vm_id)
        name = f"vmimport-{int(time.time())}"
        snapshot = wait_for_task(obj.CreateSnapshot_Task(name=name, description=description, memory=False, quiesce=False))
        return str(snapshot._moId)

    def remove_snapshot(self, vm_id: str, snapshot_id: str) -> None:
        obj = self._vm_obj(vm_id)
        tree = obj.snapshot.rootSnapshotList if obj.snapshot is not None else []
        found = _find_snapshot(tree, snapshot_id)
        if found is None:
            self.logger.debug("snapshot %s of VM %s already gone", snapshot_id, vm_id)
            return
        wait_for_task(found.RemoveSnapshot_Task(removeChildren=False))


def _find_snapshot(tree: Any, snapshot_id: str) -> Optional[Any]:
    for node in tree or []:
        if node.snapshot._moId == snapshot_id:
            return node.snapshot
        child = _find_snapshot(node.childSnapshotList, snapshot_id)
        if child is not None:
            return child
    return None
