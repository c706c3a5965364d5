# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/mapper.py
"""
Mapping shared by both platforms: CPU topology, memory, firmware, NICs
onto pod/multus networks and disks onto DataVolumes. Subclasses supply the
DataVolume source and the device model tables.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Dict, List, Optional

from ..api.constants import IMPORT_LABEL
from ..api.objects import (
    CPU,
    DataVolume,
    DataVolumeSource,
    Disk,
    Interface,
    Network,
    StorageSpec,
    VirtualMachine,
    Volume,
)
from ..api.source import SourceDisk, SourceNic, SourceVMDescription
from ..api.types import MappingItem, Mappings, VirtualMachineImport
from ..core.exceptions import ValidationError
from ..core.utils import U
from ..validation.models import ARCH_MACHINE_MAPPING, NETWORK_TYPE_MULTUS, NETWORK_TYPE_POD
from ..validation.network_mapping import index_by_id_and_name
from ..validation.storage_mapping import resolve_all
from .base import DataVolumeCredentials, Mapper

ACCESS_MODE_RWO = "ReadWriteOnce"
ACCESS_MODE_ROX = "ReadOnlyMany"

VM_NAME_LABEL = "vm.kubevirt.io/name"


class BaseMapper(Mapper):
    # source NIC model -> interface model
    INTERFACE_MODELS: Dict[str, str] = {}

    def __init__(
        self,
        vm: SourceVMDescription,
        mappings: Mappings,
        credentials: DataVolumeCredentials,
        request: VirtualMachineImport,
    ):
        self.vm = vm
        self.mappings = mappings
        self.credentials = credentials
        self.request = request
        self.namespace = request.namespace

    # -- platform hooks ----------------------------------------------------

    @abstractmethod
    def _data_volume_source(self, disk: SourceDisk) -> DataVolumeSource:
        ...

    def _disk_bus(self, disk: SourceDisk) -> str:
        return "virtio"

    def _firmware(self) -> Optional[str]:
        return None

    def _network_source(self, nic: SourceNic) -> Optional[MappingItem]:
        by_id, by_name = index_by_id_and_name(self.mappings.network_mappings)
        if nic.network_id and nic.network_id in by_id:
            return by_id[nic.network_id]
        if nic.network_name and nic.network_name in by_name:
            return by_name[nic.network_name]
        return None

    # -- Mapper ------------------------------------------------------------

    def resolve_vm_name(self, target_vm_name: Optional[str]) -> str:
        if target_vm_name:
            return target_vm_name
        try:
            return U.normalize_name(self.vm.name)
        except ValidationError:
            return U.normalize_name(f"vm-{self.vm.id}")

    def running_state(self) -> bool:
        return bool(self.vm.ha_enabled)

    def map_vm(self, target_vm_name: str) -> VirtualMachine:
        vm = VirtualMachine()
        vm.metadata.name = target_vm_name
        vm.metadata.namespace = self.namespace
        vm.metadata.labels = {IMPORT_LABEL: U.ensure_label_value_length(self.request.name)}

        template = vm.spec.template
        template.labels = {VM_NAME_LABEL: U.ensure_label_value_length(target_vm_name)}
        domain = template.domain
        domain.cpu = CPU(
            sockets=max(1, self.vm.cpu_sockets),
            cores=max(1, self.vm.cpu_cores),
            threads=max(1, self.vm.cpu_threads),
        )
        if self.vm.memory_bytes > 0:
            domain.memory = U.format_bytes(self.vm.memory_bytes)
        domain.firmware = self._firmware()
        if self.vm.cpu_architecture:
            domain.machine_type = ARCH_MACHINE_MAPPING.get(self.vm.cpu_architecture)

        interfaces, networks = self._map_networks()
        domain.devices.interfaces = interfaces
        template.networks = networks
        vm.spec.running = False
        return vm

    def _map_networks(self):
        interfaces: List[Interface] = []
        networks: List[Network] = []
        for i, nic in enumerate(self.vm.nics):
            item = self._network_source(nic)
            if item is None:
                continue
            name = _nic_name(nic, i)
            model = self.INTERFACE_MODELS.get(nic.interface or "", "virtio")
            if item.type == NETWORK_TYPE_MULTUS:
                target = U.to_loggable_resource_name(item.target.name, item.target.namespace)
                networks.append(Network(name=name, multus_network_name=target))
                interfaces.append(Interface(name=name, model=model, mac_address=nic.mac_address, binding="bridge"))
            elif item.type in (None, NETWORK_TYPE_POD):
                networks.append(Network(name=name, pod=True))
                interfaces.append(
                    Interface(name=name, model=model, mac_address=nic.mac_address, binding="masquerade")
                )
        return interfaces, networks

    def map_data_volumes(self, target_vm_name: str) -> Dict[str, DataVolume]:
        resolutions = resolve_all(self.vm.disks, self.mappings.storage_mappings, self.mappings.disk_mappings)
        out: Dict[str, DataVolume] = {}
        for disk in self.vm.disks:
            r = resolutions[disk.id]
            dv = DataVolume()
            dv.metadata.name = self.data_volume_name(target_vm_name, disk)
            dv.metadata.namespace = self.namespace
            dv.metadata.labels = {IMPORT_LABEL: U.ensure_label_value_length(self.request.name)}
            dv.spec.source = self._data_volume_source(disk)
            dv.spec.storage = StorageSpec(
                storage_class_name=r.storage_class or None,
                volume_mode=r.item.volume_mode if r.item is not None else None,
                access_modes=[_access_mode(disk, r.item)],
                size=U.format_bytes(disk.size_bytes),
            )
            out[disk.id] = dv
        return out

    def data_volume_name(self, target_vm_name: str, disk: SourceDisk) -> str:
        return U.build_data_volume_name(target_vm_name, disk.attachment_id or disk.id)

    def map_disk(self, vm: VirtualMachine, data_volume: DataVolume) -> None:
        volume_name = f"dv-{data_volume.name}"
        if vm.has_volume(volume_name):
            return
        disk = self._disk_for(vm.name, data_volume.name)
        vm.spec.template.volumes.append(Volume(name=volume_name, data_volume=data_volume.name))
        vm.spec.template.domain.devices.disks.append(
            Disk(
                name=volume_name,
                bus=self._disk_bus(disk) if disk is not None else "virtio",
                boot_order=1 if disk is not None and disk.bootable else None,
            )
        )

    def _disk_for(self, target_vm_name: str, data_volume_name: str) -> Optional[SourceDisk]:
        for disk in self.vm.disks:
            if self.data_volume_name(target_vm_name, disk) == data_volume_name:
                return disk
        return None


def _nic_name(nic: SourceNic, index: int) -> str:
    try:
        return U.normalize_name(nic.name or "")
    except ValidationError:
        return f"nic-{index}"


def _access_mode(disk: SourceDisk, item: Optional[MappingItem]) -> str:
    if item is not None and item.access_mode:
        return item.access_mode
    return ACCESS_MODE_ROX if disk.read_only else ACCESS_MODE_RWO
